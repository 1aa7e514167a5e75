"""
Risk analysis orchestration.

This module composes PolicyAnalyzer and the scoring functions into risk
profiles for permission sets, accounts and users.

Failures never propagate: each ``assess_*`` method returns an Outcome, and a
Degraded outcome carries a fallback profile with a single INFO
"Risk Analysis Failed" finding so that batch and streaming callers can keep
going with the next entity.
"""

import logging
from typing import List, Optional, Sequence, Set, Union

from ..constants import HIGH_PRIVILEGE_POLICIES, HIGH_SEVERITY_THRESHOLD, SENSITIVE_SERVICES
from ..enums import ResourceType, RiskCategory, RiskLevel
from ..models import (
    AccountAccess,
    AccountRiskSummary,
    OrganizationUser,
    PermissionSetDetails,
    PermissionSetRisk,
    PolicyAnalysisResult,
    RiskFinding,
    ScanSummary,
    UserRiskProfile,
)
from ..outcome import Degraded, Ok, Outcome
from .calculator import level_of, round_half_up, score_account, score_permission_set
from .policy import PolicyAnalyzer

logger = logging.getLogger(__name__)


def analysis_failed_finding(
    resource_type: ResourceType,
    resource_name: str,
    error: str,
    resource_arn: Optional[str] = None,
) -> RiskFinding:
    """
    Build the placeholder finding for an entity whose analysis failed.

    Args:
        resource_type: Type of the entity that failed
        resource_name: Display name of the entity
        error: Message of the triggering error
        resource_arn: ARN of the entity, if known

    Returns:
        INFO-level finding with the error preserved in details
    """
    subject = {
        ResourceType.USER: "user permissions",
        ResourceType.ACCOUNT: "account access",
    }.get(resource_type, "permission set policies")
    return RiskFinding(
        title="Risk Analysis Failed",
        description=f"Unable to complete risk analysis for {resource_name}",
        risk_level=RiskLevel.INFO,
        category=RiskCategory.SECURITY_MISCONFIGURATION,
        severity=1,
        impact="Risk assessment incomplete",
        recommendation=f"Manually review {subject}",
        resource_type=resource_type,
        resource_arn=resource_arn,
        resource_name=resource_name,
        details={"error": error},
    )


def profile_from_permission_set_risk(
    permission_set: PermissionSetDetails,
    risk: PermissionSetRisk,
) -> UserRiskProfile:
    """
    Wrap a permission set's risk in the profile shape used on the wire.

    Args:
        permission_set: The permission set that was analyzed
        risk: Its computed risk

    Returns:
        UserRiskProfile keyed by the permission set ARN (or name)
    """
    return UserRiskProfile(
        user_id=permission_set.arn or permission_set.name,
        user_name=permission_set.name,
        display_name=permission_set.description or permission_set.name,
        overall_risk_score=risk.risk_score,
        risk_level=risk.risk_level,
        findings=risk.findings,
        account_access=[],
        total_permission_sets=1,
        admin_access=risk.admin_permissions,
        cross_account_access=any(
            finding.category == RiskCategory.CROSS_ACCOUNT_ACCESS for finding in risk.findings
        ),
    )


def summarize_profiles(profiles: Sequence[UserRiskProfile]) -> ScanSummary:
    """
    Compute scan-wide statistics over a list of profiles.

    Args:
        profiles: Profiles produced by a scan

    Returns:
        ScanSummary with the average score rounded to one decimal
    """
    if not profiles:
        return ScanSummary()

    average = sum(profile.overall_risk_score for profile in profiles) / len(profiles)
    return ScanSummary(
        total_profiles=len(profiles),
        critical_profiles=sum(1 for profile in profiles if profile.risk_level == RiskLevel.CRITICAL),
        high_risk_profiles=sum(1 for profile in profiles if profile.risk_level >= RiskLevel.HIGH),
        admin_profiles=sum(1 for profile in profiles if profile.admin_access),
        cross_account_profiles=sum(1 for profile in profiles if profile.cross_account_access),
        average_risk_score=round_half_up(average * 10) / 10,
        total_findings=sum(len(profile.findings) for profile in profiles),
    )


class RiskAnalyzer:
    """Builds risk profiles for permission sets, accounts and users."""

    def __init__(self, policy_analyzer: Optional[PolicyAnalyzer] = None) -> None:
        self.policy_analyzer = policy_analyzer or PolicyAnalyzer()

    # Permission sets

    def analyze_permission_set_risk(self, permission_set: PermissionSetDetails, account_id: str) -> PermissionSetRisk:
        """Analyze a permission set, falling back to an INFO profile on failure."""
        return self.assess_permission_set(permission_set, account_id).value

    def assess_permission_set(self, permission_set: PermissionSetDetails, account_id: str) -> Outcome[PermissionSetRisk]:
        """
        Analyze every policy attached to a permission set and score it.

        Args:
            permission_set: Permission set with its policy references
            account_id: Account the permission set is assigned in, recorded on findings

        Returns:
            Ok with the computed risk, or Degraded with a fallback profile
        """
        try:
            analyses: List[PolicyAnalysisResult] = []
            findings: List[RiskFinding] = []

            for policy_arn in permission_set.managed_policies:
                outcome = self.policy_analyzer.assess_managed_policy(policy_arn)
                if isinstance(outcome, Degraded):
                    return self._degraded_permission_set(permission_set, outcome.reason)
                if policy_arn in HIGH_PRIVILEGE_POLICIES:
                    findings.append(self._high_privilege_policy_finding(permission_set, policy_arn, account_id))
                analyses.append(outcome.value)
                findings.extend(outcome.value.findings)

            if permission_set.inline_policy_document:
                outcome = self.policy_analyzer.assess_inline_policy(
                    permission_set.inline_policy_document,
                    permission_set.name,
                )
                if isinstance(outcome, Degraded):
                    return self._degraded_permission_set(permission_set, outcome.reason)
                analyses.append(outcome.value)
                findings.extend(outcome.value.findings)

            return Ok(self._build_permission_set_risk(permission_set, analyses, findings))
        except Exception as e:
            return self._degraded_permission_set(permission_set, str(e))

    def _build_permission_set_risk(
        self,
        permission_set: PermissionSetDetails,
        analyses: List[PolicyAnalysisResult],
        findings: List[RiskFinding],
    ) -> PermissionSetRisk:
        admin_permissions = any(analysis.admin_permissions for analysis in analyses)
        wildcard_actions = sum(analysis.wildcard_actions_count for analysis in analyses)

        sensitive_services: Set[str] = set()
        for analysis in analyses:
            sensitive_services.update(SENSITIVE_SERVICES.intersection(analysis.service_permissions))

        risk_score = score_permission_set(
            admin_permissions=admin_permissions,
            wildcard_actions=wildcard_actions,
            sensitive_services_count=len(sensitive_services),
            findings_count=len(findings),
            high_severity_findings_count=sum(
                1 for finding in findings if finding.severity >= HIGH_SEVERITY_THRESHOLD
            ),
        )

        return PermissionSetRisk(
            arn=permission_set.arn,
            name=permission_set.name,
            risk_score=risk_score,
            risk_level=level_of(risk_score),
            findings=findings,
            policy_analyses=analyses,
            admin_permissions=admin_permissions,
            wildcard_actions=wildcard_actions,
            sensitive_services=sorted(sensitive_services),
        )

    def _degraded_permission_set(self, permission_set: PermissionSetDetails, reason: str) -> Degraded[PermissionSetRisk]:
        logger.error(f"Error analyzing permission set {permission_set.name}: {reason}")
        fallback = PermissionSetRisk(
            arn=permission_set.arn,
            name=permission_set.name,
            risk_score=1,
            risk_level=RiskLevel.INFO,
            findings=[analysis_failed_finding(
                ResourceType.PERMISSION_SET,
                permission_set.name,
                reason,
                resource_arn=permission_set.arn or None,
            )],
        )
        return Degraded(fallback, reason)

    @staticmethod
    def _high_privilege_policy_finding(
        permission_set: PermissionSetDetails,
        policy_arn: str,
        account_id: str,
    ) -> RiskFinding:
        is_admin = "AdministratorAccess" in policy_arn
        return RiskFinding(
            title="High-Privilege AWS Managed Policy",
            description=f"Permission set uses high-privilege policy: {policy_arn}",
            risk_level=RiskLevel.CRITICAL if is_admin else RiskLevel.HIGH,
            category=RiskCategory.OVERLY_PERMISSIVE,
            severity=9 if is_admin else 7,
            impact="Grants broad permissions that may exceed necessary access",
            recommendation="Review policy necessity and consider custom policies with minimal required permissions",
            resource_type=ResourceType.PERMISSION_SET,
            resource_arn=permission_set.arn or None,
            resource_name=permission_set.name,
            details={"policyArn": policy_arn, "accountId": account_id},
        )

    # Accounts

    def assess_account(self, user: OrganizationUser, account_access: AccountAccess) -> Outcome[AccountRiskSummary]:
        """
        Analyze one account a user can access.

        Args:
            user: The user being analyzed
            account_access: The user's assignments in the account

        Returns:
            Ok with the account summary, or Degraded with a fallback summary
        """
        try:
            account_findings: List[RiskFinding] = []
            if account_access.account_id != user.home_account_id:
                account_findings.append(RiskFinding(
                    title="Cross-Account Access Detected",
                    description=(
                        f"User has access to account {account_access.account_id} which is different "
                        f"from their home account {user.home_account_id}"
                    ),
                    risk_level=RiskLevel.MEDIUM,
                    category=RiskCategory.CROSS_ACCOUNT_ACCESS,
                    severity=6,
                    impact="User can access resources across multiple AWS accounts",
                    recommendation="Review cross-account access necessity and ensure principle of least privilege",
                    resource_type=ResourceType.ACCOUNT,
                    resource_name=account_access.account_name or account_access.account_id,
                    details={
                        "homeAccountId": user.home_account_id,
                        "accessAccountId": account_access.account_id,
                    },
                ))

            permission_set_risks = [
                self.analyze_permission_set_risk(self._as_permission_set(item), account_access.account_id)
                for item in account_access.permission_sets or []
            ]

            risk_score = score_account(permission_set_risks, account_findings)
            return Ok(AccountRiskSummary(
                account_id=account_access.account_id,
                account_name=account_access.account_name or account_access.account_id,
                risk_score=risk_score,
                risk_level=level_of(risk_score),
                findings=account_findings,
                permission_sets=permission_set_risks,
                admin_access=any(risk.admin_permissions for risk in permission_set_risks),
            ))
        except Exception as e:
            logger.error(f"Error analyzing account {account_access.account_id} for user {user.user_name}: {e}")
            account_name = account_access.account_name or account_access.account_id
            return Degraded(AccountRiskSummary(
                account_id=account_access.account_id,
                account_name=account_name,
                risk_score=1,
                risk_level=RiskLevel.INFO,
                findings=[analysis_failed_finding(ResourceType.ACCOUNT, account_name, str(e))],
            ), str(e))

    @staticmethod
    def _as_permission_set(item: Union[PermissionSetDetails, str]) -> PermissionSetDetails:
        if isinstance(item, str):
            return PermissionSetDetails.from_arn(item)
        return item

    # Users

    def analyze_user_risk(self, user: OrganizationUser) -> UserRiskProfile:
        """Analyze a user, falling back to an INFO profile on failure."""
        return self.assess_user(user).value

    def assess_user(self, user: OrganizationUser) -> Outcome[UserRiskProfile]:
        """
        Analyze every account a user can access and aggregate the result.

        Args:
            user: User with per-account assignments

        Returns:
            Ok with the user's profile, or Degraded with a fallback profile
        """
        try:
            return Ok(self._build_user_profile(user))
        except Exception as e:
            logger.error(f"Error analyzing risk for user {user.user_name}: {e}")
            return Degraded(UserRiskProfile(
                user_id=user.user_id,
                user_name=user.user_name,
                display_name=user.display_name,
                overall_risk_score=1,
                risk_level=RiskLevel.INFO,
                findings=[analysis_failed_finding(ResourceType.USER, user.user_name, str(e))],
            ), str(e))

    def _build_user_profile(self, user: OrganizationUser) -> UserRiskProfile:
        findings: List[RiskFinding] = []
        account_summaries: List[AccountRiskSummary] = []
        cross_account_access = False

        for account_access in user.account_access:
            if not account_access.has_access:
                continue
            if account_access.account_id != user.home_account_id:
                cross_account_access = True

            summary = self.assess_account(user, account_access).value
            account_summaries.append(summary)
            findings.extend(summary.findings)
            for permission_set_risk in summary.permission_sets:
                findings.extend(permission_set_risk.findings)

        admin_access = any(summary.admin_access for summary in account_summaries)

        if admin_access:
            findings.append(RiskFinding(
                title="Administrative Access Detected",
                description="User has administrative privileges in one or more accounts",
                risk_level=RiskLevel.HIGH,
                category=RiskCategory.ADMINISTRATIVE_ACCESS,
                severity=8,
                impact="User has broad administrative control over AWS resources",
                recommendation="Regularly review administrative access and consider using temporary elevated access patterns",
                resource_type=ResourceType.USER,
                resource_name=user.user_name,
                details={"adminAccess": True},
            ))

        if cross_account_access:
            findings.append(RiskFinding(
                title="Multi-Account Access",
                description="User has access to multiple AWS accounts",
                risk_level=RiskLevel.MEDIUM,
                category=RiskCategory.CROSS_ACCOUNT_ACCESS,
                severity=5,
                impact="Potential for lateral movement across account boundaries",
                recommendation="Implement cross-account access reviews and monitoring",
                resource_type=ResourceType.USER,
                resource_name=user.user_name,
                details={
                    "totalAccounts": len(user.account_access),
                    "accessibleAccounts": sum(1 for access in user.account_access if access.has_access),
                },
            ))

        # Floor at 1 so a user with no accessible accounts still has a valid score
        overall_risk_score = max((summary.risk_score for summary in account_summaries), default=1)

        return UserRiskProfile(
            user_id=user.user_id,
            user_name=user.user_name,
            display_name=user.display_name,
            overall_risk_score=overall_risk_score,
            risk_level=level_of(overall_risk_score),
            findings=findings,
            account_access=account_summaries,
            total_permission_sets=sum(len(access.permission_sets or []) for access in user.account_access),
            admin_access=admin_access,
            cross_account_access=cross_account_access,
        )
