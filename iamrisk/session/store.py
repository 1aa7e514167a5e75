"""
Resumable scan session state.

A ScanSessionStore tracks at most one scan at a time, persists a snapshot
after every change, and notifies subscribers. Stores are keyed, so several
clients can share one persistence backend.

States::

    NONE -> ACTIVE -> COMPLETE
                   -> ERRORED
    any  -> NONE (reset_scan)
"""

import logging
import time
import uuid
from typing import Callable, List, Optional, Sequence

from pydantic import ValidationError

from ..constants import SCAN_SESSION_TIMEOUT_SECONDS
from ..enums import SessionState
from ..models import PermissionSetDetails, ScanProgress, ScanSession, ScanSummary, UserRiskProfile
from .persistence import SessionPersistence

logger = logging.getLogger(__name__)

Subscriber = Callable[[Optional[ScanSession]], None]


def generate_session_id(clock: Callable[[], float] = time.time) -> str:
    """Return a new id of the form ``scan_<epoch ms>_<random>``."""
    return f"scan_{int(clock() * 1000)}_{uuid.uuid4().hex[:9]}"


class ScanSessionStore:
    """Keyed, persisted store for one scan session."""

    def __init__(
        self,
        persistence: SessionPersistence,
        key: str = "default",
        ttl_seconds: float = SCAN_SESSION_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.persistence = persistence
        self.key = key
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._session: Optional[ScanSession] = None
        self._subscribers: List[Subscriber] = []
        self._restore()

    # Read accessors

    @property
    def current_session(self) -> Optional[ScanSession]:
        return self._session

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.NONE
        if self._session.is_active:
            return SessionState.ACTIVE
        if self._session.error is not None:
            return SessionState.ERRORED
        return SessionState.COMPLETE

    @property
    def results(self) -> List[UserRiskProfile]:
        return list(self._session.results) if self._session else []

    @property
    def progress(self) -> Optional[ScanProgress]:
        return self._session.progress if self._session else None

    @property
    def summary(self) -> Optional[ScanSummary]:
        return self._session.summary if self._session else None

    @property
    def error(self) -> Optional[str]:
        return self._session.error if self._session else None

    @property
    def is_active(self) -> bool:
        return self._session is not None and self._session.is_active

    # Subscriptions

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for session changes.

        The callback is invoked immediately with the current session, then
        after every change. It receives None after a reset.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)
        callback(self._session)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # Lifecycle

    def can_start_new_scan(
        self,
        targets: Sequence[PermissionSetDetails],
        region: str,
        sso_region: str,
    ) -> bool:
        """
        Check whether a new scan may start.

        Returns:
            False only if an active scan has the same region, SSO region and
            ordered target ARNs
        """
        session = self._session
        if session is None or not session.is_active:
            return True

        same_params = (
            session.region == region
            and session.sso_region == sso_region
            and [target.arn for target in session.targets] == [target.arn for target in targets]
        )
        return not same_params

    def start_new_scan(
        self,
        targets: Sequence[PermissionSetDetails],
        region: str,
        sso_region: str,
    ) -> str:
        """
        Replace any current session with a fresh active one.

        Returns:
            The new session id
        """
        self._session = ScanSession(
            id=generate_session_id(self.clock),
            targets=list(targets),
            region=region,
            sso_region=sso_region,
            start_time=self.clock(),
            is_active=True,
        )
        logger.info(f"Started scan session {self._session.id} with {len(targets)} targets")
        self._changed()
        return self._session.id

    def update_progress(self, progress: ScanProgress) -> None:
        session = self._active_session("update_progress")
        if session is None:
            return
        session.progress = progress
        self._changed()

    def add_result(self, result: UserRiskProfile) -> None:
        session = self._active_session("add_result")
        if session is None:
            return
        session.results.append(result)
        self._changed()

    def set_summary(self, summary: ScanSummary) -> None:
        session = self._active_session("set_summary")
        if session is None:
            return
        session.summary = summary
        self._changed()

    def set_error(self, error: str) -> None:
        """Record an error and end the scan."""
        session = self._active_session("set_error")
        if session is None:
            return
        logger.error(f"Scan session {session.id} failed: {error}")
        session.error = error
        session.is_active = False
        self._changed()

    def complete_scan(self) -> None:
        session = self._active_session("complete_scan")
        if session is None:
            return
        session.is_active = False
        logger.info(f"Scan session {session.id} complete with {len(session.results)} results")
        self._changed()

    def reset_scan(self) -> None:
        """Drop the session and its snapshot from any state."""
        self._session = None
        self.persistence.delete(self.key)
        self._notify()

    # Internals

    def _active_session(self, operation: str) -> Optional[ScanSession]:
        if self._session is None:
            logger.warning(f"Ignoring {operation}: no scan session")
            return None
        if not self._session.is_active:
            logger.warning(f"Ignoring {operation}: scan session {self._session.id} is no longer active")
            return None
        return self._session

    def _changed(self) -> None:
        if self._session is not None:
            self.persistence.save(self.key, self._session.model_dump_json(by_alias=True))
        self._notify()

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self._session)

    def _restore(self) -> None:
        snapshot = self.persistence.load(self.key)
        if snapshot is None:
            return

        try:
            session = ScanSession.model_validate_json(snapshot)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Failed to restore scan session {self.key!r}: {e}")
            self.persistence.delete(self.key)
            return

        age = self.clock() - session.start_time
        if age >= self.ttl_seconds:
            logger.info(f"Discarding expired scan session {session.id} ({int(age)}s old)")
            self.persistence.delete(self.key)
            return

        self._session = session
        logger.info(f"Restored scan session {session.id} ({len(session.results)} results)")
