"""
Tests for iamrisk.scan.sse module.

Tests for SSE frame encoding, incremental decoding and typed payloads.
"""

import json
from typing import List

import pytest
from pydantic import ValidationError

from iamrisk.enums import RiskLevel, ScanEventType
from iamrisk.models import ScanSummary, UserRiskProfile
from iamrisk.scan.sse import (
    CompletePayload,
    ProgressPayload,
    ResultPayload,
    ScanEvent,
    SSEDecoder,
    StartPayload,
    decode_events,
    encode_event,
)


def make_profile(name: str = "Admin") -> UserRiskProfile:
    return UserRiskProfile(
        user_id=f"arn:aws:sso:::permissionSet/ssoins-1/{name}",
        user_name=name,
        overall_risk_score=9,
        risk_level=RiskLevel.CRITICAL,
        total_permission_sets=1,
        admin_access=True,
    )


def sample_events() -> List[ScanEvent]:
    profile = make_profile()
    return [
        ScanEvent.of(StartPayload(total_count=1, message="Initializing risk analysis...")),
        ScanEvent.of(ProgressPayload(current_index=0, total_count=1, permission_set_name="Admin", message="Analyzing Admin...", progress=0)),
        ScanEvent.of(ResultPayload(profile=profile, index=0, completed_count=1, total_count=1, progress=100, message="Completed 1/1: Admin")),
        ScanEvent.of(CompletePayload(summary=ScanSummary(total_profiles=1), all_results=[profile], message="Risk analysis complete!")),
    ]


class TestEncodeEvent:
    """Test encode_event."""

    def test_frame_format(self) -> None:
        event = ScanEvent.of(StartPayload(total_count=3, message="go"))
        frame = encode_event(event)

        assert frame == 'event: start\ndata: {"totalCount": 3, "message": "go"}\n\n'

    def test_data_is_single_line(self) -> None:
        for event in sample_events():
            frame = encode_event(event)
            lines = frame.split("\n")
            assert lines[0] == f"event: {event.type.value}"
            assert lines[1].startswith("data: ")
            assert lines[2:] == ["", ""]

    def test_payloads_use_camel_case(self) -> None:
        result = sample_events()[2]
        assert result.type == ScanEventType.RESULT
        assert result.data["completedCount"] == 1
        assert result.data["profile"]["overallRiskScore"] == 9
        assert result.data["profile"]["unusedPermissions"] is None

    def test_of_rejects_non_payload(self) -> None:
        with pytest.raises(TypeError):
            ScanEvent.of(ScanSummary())


class TestSSEDecoder:
    """Test SSEDecoder."""

    def test_round_trip(self) -> None:
        events = sample_events()
        text = "".join(encode_event(event) for event in events)

        decoded = decode_events(text)

        assert [event.type for event in decoded] == [event.type for event in events]
        assert [event.data for event in decoded] == [json.loads(json.dumps(event.data)) for event in events]

    @pytest.mark.parametrize("chunk_size", [1, 3, 7, 64])
    def test_frames_split_across_chunks(self, chunk_size: int) -> None:
        events = sample_events()
        text = "".join(encode_event(event) for event in events)
        decoder = SSEDecoder()

        decoded: List[ScanEvent] = []
        for start in range(0, len(text), chunk_size):
            decoded.extend(decoder.feed(text[start:start + chunk_size]))
        decoded.extend(decoder.close())

        assert [event.type for event in decoded] == [event.type for event in events]
        assert decoded[2].data["profile"]["userName"] == "Admin"

    def test_incomplete_frame_is_buffered(self) -> None:
        decoder = SSEDecoder()

        assert decoder.feed('event: start\ndata: {"totalCount": 1') == []
        events = decoder.feed('}\n\n')

        assert len(events) == 1
        assert events[0].data == {"totalCount": 1}

    def test_crlf_line_endings(self) -> None:
        events = decode_events('event: progress\r\ndata: {"currentIndex": 2}\r\n\r\n')

        assert events[0].type == ScanEventType.PROGRESS
        assert events[0].data == {"currentIndex": 2}

    def test_invalid_json_is_skipped(self) -> None:
        text = 'event: progress\ndata: {broken\n\nevent: start\ndata: {"totalCount": 2}\n\n'
        events = decode_events(text)

        assert [event.type for event in events] == [ScanEventType.START]

    def test_unknown_event_type_is_skipped(self) -> None:
        events = decode_events('event: error\ndata: {"message": "x"}\n\n')
        assert events == []

    def test_comments_and_empty_frames_ignored(self) -> None:
        events = decode_events(': keep-alive\n\n\n\nevent: start\ndata: {"totalCount": 0}\n\n')
        assert len(events) == 1

    def test_trailing_frame_flushed_on_close(self) -> None:
        decoder = SSEDecoder()
        assert decoder.feed('event: start\ndata: {"totalCount": 1}') == []

        events = decoder.close()

        assert len(events) == 1
        assert events[0].type == ScanEventType.START


class TestPayloads:
    """Test typed payload parsing."""

    def test_payload_parses_typed_model(self) -> None:
        events = decode_events("".join(encode_event(event) for event in sample_events()))

        result = events[2].payload()
        complete = events[3].payload()

        assert isinstance(result, ResultPayload)
        assert result.profile.risk_level == RiskLevel.CRITICAL
        assert isinstance(complete, CompletePayload)
        assert complete.summary.total_profiles == 1
        assert complete.all_results[0].user_name == "Admin"

    def test_progress_defaults(self) -> None:
        payload = ScanEvent(type=ScanEventType.PROGRESS, data={"message": "Using SSO instance", "currentStep": "initialization"}).payload()

        assert isinstance(payload, ProgressPayload)
        assert payload.progress is None
        assert payload.current_step == "initialization"

    def test_invalid_payload_raises(self) -> None:
        with pytest.raises(ValidationError):
            ScanEvent(type=ScanEventType.RESULT, data={"index": 0}).payload()
