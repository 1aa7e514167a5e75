"""
Enumerations for iamrisk.

This module contains all enum types used throughout the application
to replace magic strings and improve type safety.
"""

from enum import Enum


class RiskLevel(str, Enum):
    """
    Discrete severity band for a finding or a scored entity.

    Members compare by severity, so ``RiskLevel.CRITICAL > RiskLevel.HIGH``.
    """
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"

    @property
    def rank(self) -> int:
        """Numeric rank, INFO=0 up to CRITICAL=4."""
        return _RISK_LEVEL_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank


_RISK_LEVEL_RANK = {
    RiskLevel.INFO: 0,
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}


class RiskCategory(str, Enum):
    """Taxonomy tag attached to every finding."""
    OVERLY_PERMISSIVE = "OVERLY_PERMISSIVE"
    PRIVILEGE_ESCALATION = "PRIVILEGE_ESCALATION"
    DATA_EXPOSURE = "DATA_EXPOSURE"
    SECURITY_MISCONFIGURATION = "SECURITY_MISCONFIGURATION"
    COMPLIANCE_VIOLATION = "COMPLIANCE_VIOLATION"
    UNUSED_PERMISSIONS = "UNUSED_PERMISSIONS"
    ADMINISTRATIVE_ACCESS = "ADMINISTRATIVE_ACCESS"
    CROSS_ACCOUNT_ACCESS = "CROSS_ACCOUNT_ACCESS"
    SERVICE_SPECIFIC = "SERVICE_SPECIFIC"


class ResourceType(str, Enum):
    """Kind of entity a finding is scoped to."""
    USER = "USER"
    PERMISSION_SET = "PERMISSION_SET"
    POLICY = "POLICY"
    ACCOUNT = "ACCOUNT"


class ScanEventType(str, Enum):
    """Event names carried on the SSE wire."""
    START = "start"
    PROGRESS = "progress"
    RESULT = "result"
    COMPLETE = "complete"


class OrchestratorState(str, Enum):
    """Lifecycle of a single streaming scan request."""
    INIT = "init"
    PROCESSING = "processing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class SessionState(str, Enum):
    """Lifecycle of the scan tracked by a session store."""
    NONE = "none"
    ACTIVE = "active"
    COMPLETE = "complete"
    ERRORED = "errored"
