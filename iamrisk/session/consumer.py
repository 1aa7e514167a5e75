"""
Client side of a scan stream.

ScanStreamConsumer applies decoded scan events to a ScanSessionStore, and
run_streaming_scan drives a whole scan from raw SSE text chunks.
"""

import logging
from typing import AsyncIterable, Sequence

from pydantic import ValidationError

from ..analyzers.calculator import round_half_up
from ..enums import ScanEventType
from ..models import PermissionSetDetails, ScanProgress
from ..scan.sse import CompletePayload, ProgressPayload, ResultPayload, ScanEvent, SSEDecoder, StartPayload
from .store import ScanSessionStore

logger = logging.getLogger(__name__)

COMPLETE_MESSAGE = "Risk analysis complete!"
INTERRUPTED_MESSAGE = "Scan interrupted"


class ScanStreamConsumer:
    """Translates scan events into session store updates."""

    def __init__(self, store: ScanSessionStore) -> None:
        self.store = store

    def apply(self, event: ScanEvent) -> None:
        """
        Apply one event to the store.

        Events whose payload does not validate are logged and skipped.
        """
        try:
            payload = event.payload()
        except ValidationError as e:
            logger.warning(f"Skipping malformed {event.type.value} event: {e}")
            return

        if event.type == ScanEventType.START:
            self._on_start(payload)
        elif event.type == ScanEventType.PROGRESS:
            self._on_progress(payload)
        elif event.type == ScanEventType.RESULT:
            self._on_result(payload)
        elif event.type == ScanEventType.COMPLETE:
            self._on_complete(payload)

    def _on_start(self, payload: StartPayload) -> None:
        self.store.update_progress(ScanProgress(
            current_index=0,
            total_count=payload.total_count,
            message=payload.message,
            current_step="start",
            progress=0,
        ))

    def _on_progress(self, payload: ProgressPayload) -> None:
        progress = payload.progress
        if progress is None:
            progress = round_half_up(payload.current_index / payload.total_count * 100) if payload.total_count else 0
        self.store.update_progress(ScanProgress(
            current_index=payload.current_index,
            total_count=payload.total_count,
            permission_set_name=payload.permission_set_name,
            message=payload.message,
            current_step=payload.current_step or "analyzing",
            progress=progress,
        ))

    def _on_result(self, payload: ResultPayload) -> None:
        self.store.add_result(payload.profile)

        progress = ScanProgress(
            current_index=payload.completed_count,
            total_count=payload.total_count,
            permission_set_name=payload.profile.user_name,
            message=payload.message,
            current_step=payload.current_step or "analyzing",
            progress=payload.progress,
        )
        # The last result already means done; the session itself stays
        # active until `complete` so that the summary can still be recorded.
        if payload.progress >= 100 or payload.completed_count >= payload.total_count:
            progress.current_step = "complete"
            progress.permission_set_name = ""
            progress.message = COMPLETE_MESSAGE
            progress.progress = 100
        self.store.update_progress(progress)

    def _on_complete(self, payload: CompletePayload) -> None:
        self.store.set_summary(payload.summary)
        previous = self.store.progress
        total = previous.total_count if previous else payload.summary.total_profiles
        self.store.update_progress(ScanProgress(
            current_index=total,
            total_count=total,
            message=payload.message or COMPLETE_MESSAGE,
            current_step="complete",
            progress=100,
        ))
        self.store.complete_scan()


async def run_streaming_scan(
    store: ScanSessionStore,
    targets: Sequence[PermissionSetDetails],
    region: str,
    sso_region: str,
    frames: AsyncIterable[str],
) -> str:
    """
    Run a scan from the client side.

    If an identical scan is already active in the store, nothing is started
    and ``frames`` is not read. If the scan is cancelled or interrupted, the
    session is marked as failed before the exception propagates.

    Args:
        store: Session store to record the scan in
        targets: Permission sets being scanned
        region: AWS region
        sso_region: SSO region
        frames: Text chunks of the SSE response body

    Returns:
        Id of the session tracking the scan
    """
    if not store.can_start_new_scan(targets, region, sso_region):
        session = store.current_session
        logger.info(f"Scan already in progress with same parameters, reusing session {session.id}")
        return session.id

    session_id = store.start_new_scan(targets, region, sso_region)
    consumer = ScanStreamConsumer(store)
    decoder = SSEDecoder()

    try:
        async for chunk in frames:
            for event in decoder.feed(chunk):
                consumer.apply(event)
        for event in decoder.close():
            consumer.apply(event)
    except Exception as e:
        logger.error(f"Streaming error: {e}", exc_info=True)
        store.set_error(str(e))
        return session_id
    except BaseException:
        # Cancellation or Ctrl-C ends the scan as failed
        if store.is_active:
            store.set_error(INTERRUPTED_MESSAGE)
        raise

    if store.is_active:
        store.complete_scan()
    return session_id
