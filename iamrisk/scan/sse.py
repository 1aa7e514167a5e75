"""
Server-sent event framing for scan streams.

A frame is ``event: <type>\\ndata: <json>\\n\\n``. ``encode_event`` writes
frames and ``SSEDecoder`` reads them back from arbitrarily split text chunks.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import Field

from ..enums import ScanEventType
from ..models import ScanSummary, UserRiskProfile, WireModel

logger = logging.getLogger(__name__)


class StartPayload(WireModel):
    total_count: int
    message: str = ""


class ProgressPayload(WireModel):
    current_index: int = 0
    total_count: int = 0
    permission_set_name: str = ""
    message: str = ""
    current_step: str = "analyzing"
    progress: Optional[int] = None


class ResultPayload(WireModel):
    profile: UserRiskProfile
    index: int
    completed_count: int
    total_count: int
    progress: int
    message: str = ""
    current_step: str = "analyzing"


class CompletePayload(WireModel):
    summary: ScanSummary
    all_results: List[UserRiskProfile] = Field(default_factory=list)
    message: str = ""


EventPayload = Union[StartPayload, ProgressPayload, ResultPayload, CompletePayload]

PAYLOAD_MODELS: Dict[ScanEventType, Type[WireModel]] = {
    ScanEventType.START: StartPayload,
    ScanEventType.PROGRESS: ProgressPayload,
    ScanEventType.RESULT: ResultPayload,
    ScanEventType.COMPLETE: CompletePayload,
}


@dataclass
class ScanEvent:
    """
    One event on a scan stream.

    Attributes:
        type: Event name
        data: JSON-compatible payload with camelCase keys
    """
    type: ScanEventType
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def of(cls, payload: WireModel) -> "ScanEvent":
        """Build an event from a typed payload."""
        for event_type, model in PAYLOAD_MODELS.items():
            if isinstance(payload, model):
                return cls(type=event_type, data=payload.to_json_dict())
        raise TypeError(f"Not an event payload: {type(payload).__name__}")

    def payload(self) -> EventPayload:
        """
        Parse the data into the typed payload for this event type.

        Raises:
            ValidationError: If the data does not match the payload model
        """
        return PAYLOAD_MODELS[self.type].model_validate(self.data)  # type: ignore[return-value]


def encode_event(event: ScanEvent) -> str:
    """Serialize an event to a single SSE frame."""
    return f"event: {event.type.value}\ndata: {json.dumps(event.data, default=str)}\n\n"


class SSEDecoder:
    """
    Incremental SSE decoder.

    Feed it text chunks as they arrive; frames split across chunk boundaries
    are buffered until their terminating blank line is seen. Frames with an
    unknown event name or undecodable data are logged and skipped.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._event_name: Optional[str] = None
        self._data_lines: List[str] = []

    def feed(self, chunk: str) -> List[ScanEvent]:
        """
        Consume a chunk of text.

        Args:
            chunk: Next piece of the stream

        Returns:
            Events completed by this chunk, in stream order
        """
        self._buffer += chunk
        events: List[ScanEvent] = []

        while True:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline].rstrip("\r")
            self._buffer = self._buffer[newline + 1:]

            if line == "":
                event = self._dispatch()
                if event is not None:
                    events.append(event)
            else:
                self._process_line(line)

        return events

    def close(self) -> List[ScanEvent]:
        """
        Flush a trailing frame that was not followed by a blank line.

        Returns:
            The flushed event, if any
        """
        if self._buffer:
            self._process_line(self._buffer.rstrip("\r"))
            self._buffer = ""
        event = self._dispatch()
        return [event] if event is not None else []

    def _process_line(self, line: str) -> None:
        if line.startswith(":"):
            return
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event_name = value.strip()
        elif name == "data":
            self._data_lines.append(value)

    def _dispatch(self) -> Optional[ScanEvent]:
        event_name, data_lines = self._event_name, self._data_lines
        self._event_name = None
        self._data_lines = []

        if not data_lines:
            return None

        raw = "\n".join(data_lines)
        try:
            event_type = ScanEventType(event_name)
        except ValueError:
            logger.warning(f"Skipping frame with unknown event type {event_name!r}")
            return None

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(f"Failed to parse {event_type.value} event data: {raw[:200]}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Skipping {event_type.value} event with non-object data")
            return None

        return ScanEvent(type=event_type, data=data)


def decode_events(text: str) -> List[ScanEvent]:
    """Decode a complete SSE text body."""
    decoder = SSEDecoder()
    return decoder.feed(text) + decoder.close()

