"""
Wire records for iamrisk.

Everything that crosses a process boundary (SSE payloads, batch responses,
persisted scan sessions, request bodies) is a pydantic model here. Models
serialize with camelCase keys and accept either camelCase or snake_case.
"""

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .enums import ResourceType, RiskCategory, RiskLevel


def _new_finding_id() -> str:
    return f"finding-{uuid.uuid4().hex}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base for all camelCase wire records."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        """Dump to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class FrozenWireModel(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# Inputs

class CustomerManagedPolicyReference(WireModel):
    name: str
    path: str = "/"


class PermissionSetDetails(WireModel):
    """A permission set and the policies attached to it."""
    name: str
    arn: str = ""
    description: Optional[str] = None
    session_duration: Optional[str] = None
    managed_policies: List[str] = Field(default_factory=list)
    customer_managed_policies: List[CustomerManagedPolicyReference] = Field(default_factory=list)
    inline_policy_document: Optional[str] = None

    @classmethod
    def from_arn(cls, arn: str) -> "PermissionSetDetails":
        """Stub for a permission set known only by ARN."""
        return cls(arn=arn, name=arn.split("/")[-1] or arn)


class AccountAccess(WireModel):
    """A user's assignments in one account."""
    account_id: str
    account_name: Optional[str] = None
    has_access: bool = False
    permission_sets: Optional[List[Union[PermissionSetDetails, str]]] = None
    roles: Optional[List[str]] = None
    detailed_access: Optional[List[Dict[str, Any]]] = None


class OrganizationUser(WireModel):
    user_id: str
    user_name: str
    display_name: Optional[str] = None
    home_account_id: Optional[str] = None
    account_access: List[AccountAccess] = Field(default_factory=list)


# Analysis results

class RiskFinding(FrozenWireModel):
    """One classified, scored observation. Immutable once created."""
    id: str = Field(default_factory=_new_finding_id)
    title: str
    description: str
    risk_level: RiskLevel
    category: RiskCategory
    severity: int = Field(ge=1, le=10)
    impact: str
    recommendation: str
    resource_type: ResourceType
    resource_arn: Optional[str] = None
    resource_name: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("details")
    @classmethod
    def copy_details(cls, details: Dict[str, Any]) -> Dict[str, Any]:
        # Statements and principals come straight from the parsed document
        return copy.deepcopy(details)


class PolicyAnalysisResult(WireModel):
    policy_arn: Optional[str] = None
    policy_name: str
    parsed_document: Optional[Dict[str, Any]] = None
    findings: List[RiskFinding] = Field(default_factory=list)
    permissions_count: int = 0
    wildcard_actions_count: int = 0
    admin_permissions: bool = False
    cross_account_access: bool = False
    data_access_permissions: List[str] = Field(default_factory=list)
    service_permissions: Dict[str, List[str]] = Field(default_factory=dict)


class PermissionSetRisk(FrozenWireModel):
    arn: str
    name: str
    risk_score: int = Field(ge=1, le=10)
    risk_level: RiskLevel
    findings: List[RiskFinding] = Field(default_factory=list)
    policy_analyses: List[PolicyAnalysisResult] = Field(default_factory=list)
    admin_permissions: bool = False
    wildcard_actions: int = 0
    # Sorted, unique service prefixes
    sensitive_services: List[str] = Field(default_factory=list)


class AccountRiskSummary(WireModel):
    account_id: str
    account_name: Optional[str] = None
    risk_score: int = Field(ge=1, le=10)
    risk_level: RiskLevel
    findings: List[RiskFinding] = Field(default_factory=list)
    permission_sets: List[PermissionSetRisk] = Field(default_factory=list)
    admin_access: bool = False


class UserRiskProfile(WireModel):
    """
    Aggregated risk for a user.

    Permission sets analyzed on their own are reported in this same shape so
    that the stream carries one record type.
    """
    user_id: str
    user_name: str
    display_name: Optional[str] = None
    overall_risk_score: int = Field(ge=1, le=10)
    risk_level: RiskLevel
    findings: List[RiskFinding] = Field(default_factory=list)
    account_access: List[AccountRiskSummary] = Field(default_factory=list)
    total_permission_sets: int = 0
    admin_access: bool = False
    cross_account_access: bool = False
    # Usage-based detection is not implemented; None means "not computed"
    unused_permissions: Optional[int] = None
    last_analyzed: datetime = Field(default_factory=_utcnow)


# Scan state

class ScanProgress(WireModel):
    current_index: int = 0
    total_count: int = 0
    permission_set_name: str = ""
    message: str = ""
    current_step: str = ""
    progress: int = 0


class ScanSummary(WireModel):
    total_profiles: int = 0
    critical_profiles: int = 0
    # CRITICAL and HIGH together
    high_risk_profiles: int = 0
    admin_profiles: int = 0
    cross_account_profiles: int = 0
    average_risk_score: float = 0.0
    total_findings: int = 0


class ScanSession(WireModel):
    """Resumable state of one scan. Mutated in place by the session store."""
    id: str
    targets: List[PermissionSetDetails] = Field(default_factory=list)
    region: str
    sso_region: str
    start_time: float
    is_active: bool = True
    results: List[UserRiskProfile] = Field(default_factory=list)
    progress: Optional[ScanProgress] = None
    summary: Optional[ScanSummary] = None
    error: Optional[str] = None


class BatchScanResult(WireModel):
    profiles: List[UserRiskProfile] = Field(default_factory=list)
    summary: ScanSummary
    analyzed_at: datetime = Field(default_factory=_utcnow)
