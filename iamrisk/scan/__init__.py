"""
Scan execution module.

This module runs risk analysis across many permission sets or users:
- Sequential orchestration with progress events and cancellation
- SSE framing of scan events
- Request validation and responses for the stream and batch endpoints
"""

from .errors import ScanRequestError
from .handlers import (
    ScanRequest,
    ScanResponse,
    handle_batch_request,
    handle_stream_request,
    parse_scan_request,
)
from .orchestrator import ScanOrchestrator, analyze_users_batch
from .sse import ScanEvent, SSEDecoder, decode_events, encode_event

__all__ = [
    "ScanRequestError",
    "ScanRequest",
    "ScanResponse",
    "handle_batch_request",
    "handle_stream_request",
    "parse_scan_request",
    "ScanOrchestrator",
    "analyze_users_batch",
    "ScanEvent",
    "SSEDecoder",
    "decode_events",
    "encode_event",
]
