"""
Scan session module.

Provides the resumable, persisted client-side view of a scan and the
consumer that feeds it from an SSE stream.
"""

from .consumer import ScanStreamConsumer, run_streaming_scan
from .persistence import FileSessionPersistence, InMemorySessionPersistence, SessionPersistence
from .store import ScanSessionStore

__all__ = [
    "ScanStreamConsumer",
    "run_streaming_scan",
    "FileSessionPersistence",
    "InMemorySessionPersistence",
    "SessionPersistence",
    "ScanSessionStore",
]
