"""
Single-policy analysis.

This module classifies one policy at a time: either an AWS managed policy
referenced by ARN, or an inline JSON policy document. It never calls AWS;
managed policies are judged from their name alone.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..constants import (
    DATA_ACTIONS,
    DESTRUCTIVE_ACTIONS,
    ESCALATION_ACTIONS,
    MANAGED_POLICY_SERVICE_PATTERNS,
)
from ..enums import ResourceType, RiskCategory, RiskLevel
from ..models import PolicyAnalysisResult, RiskFinding
from ..outcome import Degraded, Ok, Outcome

logger = logging.getLogger(__name__)


def _normalize_to_list(value: Any) -> List[str]:
    """
    Normalize an Action/Resource field to a list of strings.

    Args:
        value: Field from a policy statement (string, list, or missing)

    Returns:
        List of string entries; non-string entries are dropped
    """
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    return []


def _normalize_statements(policy: Dict[str, Any]) -> List[Dict[str, Any]]:
    statements = policy.get("Statement")
    if statements is None:
        return []
    if not isinstance(statements, list):
        statements = [statements]
    return [statement for statement in statements if isinstance(statement, dict)]


def _is_wildcard_action(action: str) -> bool:
    return action == "*" or action.endswith(":*")


def policy_name_from_arn(policy_arn: str) -> str:
    """Return the last path segment of a policy ARN."""
    return policy_arn.split("/")[-1] or policy_arn


def services_from_policy_name(policy_name: str) -> Dict[str, List[str]]:
    """
    Guess which services a managed policy covers from its name.

    This is a substring heuristic ("AmazonS3ReadOnlyAccess" -> s3) and says
    nothing about what the policy document really grants.

    Args:
        policy_name: Managed policy name (ARN tail)

    Returns:
        Mapping of service prefix to a single "<service>:*" action
    """
    name_lower = policy_name.lower()
    return {
        service: [f"{service}:*"]
        for pattern, service in MANAGED_POLICY_SERVICE_PATTERNS
        if pattern in name_lower
    }


class PolicyAnalyzer:
    """Classifies individual policies into findings and permission flags."""

    def analyze_managed_policy(self, policy_arn: str) -> PolicyAnalysisResult:
        """Analyze an AWS managed policy by ARN. Never raises."""
        return self.assess_managed_policy(policy_arn).value

    def analyze_inline_policy(self, policy_document: str, policy_name: str) -> PolicyAnalysisResult:
        """Analyze an inline policy JSON document. Never raises."""
        return self.assess_inline_policy(policy_document, policy_name).value

    def assess_managed_policy(self, policy_arn: str) -> Outcome[PolicyAnalysisResult]:
        """
        Analyze an AWS managed policy, reporting whether the result is degraded.

        Args:
            policy_arn: ARN of the managed policy

        Returns:
            Ok with the analysis, or Degraded with an empty result if the
            analysis itself failed
        """
        try:
            return Ok(self._analyze_managed_policy(policy_arn))
        except Exception as e:
            logger.warning(f"Managed policy analysis failed for {policy_arn!r}: {e}")
            name = policy_arn if isinstance(policy_arn, str) else str(policy_arn)
            return Degraded(PolicyAnalysisResult(policy_arn=name, policy_name=name), str(e))

    def assess_inline_policy(self, policy_document: str, policy_name: str) -> Outcome[PolicyAnalysisResult]:
        """
        Analyze an inline policy, reporting whether the result is degraded.

        Malformed JSON is not a failure of the analysis: it produces a normal
        result carrying a SECURITY_MISCONFIGURATION finding.

        Args:
            policy_document: Policy document as a JSON string
            policy_name: Name to attach to findings

        Returns:
            Ok with the analysis, or Degraded with an empty result if the
            analysis itself failed
        """
        try:
            return Ok(self._analyze_inline_policy(policy_document, policy_name))
        except Exception as e:
            logger.warning(f"Inline policy analysis failed for {policy_name!r}: {e}")
            return Degraded(PolicyAnalysisResult(policy_name=policy_name), str(e))

    def _analyze_managed_policy(self, policy_arn: str) -> PolicyAnalysisResult:
        policy_name = policy_name_from_arn(policy_arn)
        findings: List[RiskFinding] = []

        admin_permissions = "AdministratorAccess" in policy_arn
        if admin_permissions:
            findings.append(RiskFinding(
                title="Administrator Access Policy",
                description="Policy grants full administrative access to all AWS services",
                risk_level=RiskLevel.CRITICAL,
                category=RiskCategory.ADMINISTRATIVE_ACCESS,
                severity=10,
                impact="Complete control over AWS account and all resources",
                recommendation="Restrict administrative access to specific users and use temporary elevation when possible",
                resource_type=ResourceType.POLICY,
                resource_arn=policy_arn,
                resource_name=policy_name,
                details={"policyType": "AWS_MANAGED"},
            ))

        if "PowerUserAccess" in policy_arn:
            findings.append(RiskFinding(
                title="Power User Access Policy",
                description="Policy grants broad access excluding IAM management",
                risk_level=RiskLevel.HIGH,
                category=RiskCategory.OVERLY_PERMISSIVE,
                severity=7,
                impact="Extensive access to AWS services with limited restrictions",
                recommendation="Consider more specific policies based on actual job requirements",
                resource_type=ResourceType.POLICY,
                resource_arn=policy_arn,
                resource_name=policy_name,
                details={"policyType": "AWS_MANAGED"},
            ))

        return PolicyAnalysisResult(
            policy_arn=policy_arn,
            policy_name=policy_name,
            findings=findings,
            # Managed policy documents are never fetched, so the action count is unknown
            permissions_count=0,
            wildcard_actions_count=1 if admin_permissions else 0,
            admin_permissions=admin_permissions,
            service_permissions=services_from_policy_name(policy_name),
        )

    def _analyze_inline_policy(self, policy_document: str, policy_name: str) -> PolicyAnalysisResult:
        policy, parse_error = self._parse_policy_document(policy_document)
        if policy is None:
            return PolicyAnalysisResult(
                policy_name=policy_name,
                findings=[self._invalid_document_finding(policy_name, parse_error or "Unknown error")],
            )

        findings: List[RiskFinding] = []
        service_permissions: Dict[str, List[str]] = {}
        data_access_permissions: List[str] = []
        permissions_count = 0
        wildcard_actions_count = 0
        admin_permissions = False
        cross_account_access = False

        for statement in _normalize_statements(policy):
            # Principal is checked on Allow and Deny statements alike
            principal = statement.get("Principal")
            if isinstance(principal, (dict, list)):
                cross_account_access = True
                findings.append(RiskFinding(
                    title="Cross-Account Access Grant",
                    description="Policy allows access from external accounts",
                    risk_level=RiskLevel.HIGH,
                    category=RiskCategory.CROSS_ACCOUNT_ACCESS,
                    severity=7,
                    impact="Resources may be accessible from other AWS accounts",
                    recommendation="Verify and restrict cross-account access to trusted accounts only",
                    resource_type=ResourceType.POLICY,
                    resource_name=policy_name,
                    details={"principal": principal, "effect": statement.get("Effect")},
                ))

            if statement.get("Effect") != "Allow":
                continue

            actions = _normalize_to_list(statement.get("Action"))
            resources = _normalize_to_list(statement.get("Resource"))
            permissions_count += len(actions)

            wildcard_actions_count += sum(1 for action in actions if _is_wildcard_action(action))

            if "*" in actions:
                admin_permissions = True
                findings.append(RiskFinding(
                    title="Wildcard All Actions Permission",
                    description="Policy grants access to all actions (*)",
                    risk_level=RiskLevel.CRITICAL,
                    category=RiskCategory.OVERLY_PERMISSIVE,
                    severity=10,
                    impact="Unrestricted access to all AWS services and actions",
                    recommendation="Replace wildcard with specific required actions",
                    resource_type=ResourceType.POLICY,
                    resource_name=policy_name,
                    details={"statement": statement},
                ))

            for action in actions:
                findings.extend(self._sensitive_action_findings(action, statement, policy_name))
                if action in DATA_ACTIONS:
                    data_access_permissions.append(action)
                service = action.split(":")[0]
                service_permissions.setdefault(service, []).append(action)

            if "*" in resources:
                findings.append(RiskFinding(
                    title="Wildcard Resource Access",
                    description="Policy grants access to all resources (*)",
                    risk_level=RiskLevel.HIGH,
                    category=RiskCategory.OVERLY_PERMISSIVE,
                    severity=7,
                    impact="Actions can be performed on any resource in the account",
                    recommendation="Specify explicit resource ARNs or use resource patterns",
                    resource_type=ResourceType.POLICY,
                    resource_name=policy_name,
                    details={"statement": statement},
                ))

        return PolicyAnalysisResult(
            policy_name=policy_name,
            parsed_document=policy,
            findings=findings,
            permissions_count=permissions_count,
            wildcard_actions_count=wildcard_actions_count,
            admin_permissions=admin_permissions,
            cross_account_access=cross_account_access,
            data_access_permissions=data_access_permissions,
            service_permissions=service_permissions,
        )

    @staticmethod
    def _parse_policy_document(policy_document: str) -> tuple[Optional[Dict[str, Any]], Optional[str]]:
        """
        Parse a policy document.

        Returns:
            Tuple of (policy, error); exactly one of them is None
        """
        try:
            policy = json.loads(policy_document)
        except (TypeError, ValueError) as e:
            return None, str(e)
        if not isinstance(policy, dict):
            return None, "Policy document must be a JSON object"
        return policy, None

    @staticmethod
    def _invalid_document_finding(policy_name: str, error: str) -> RiskFinding:
        return RiskFinding(
            title="Invalid Policy Document",
            description="Policy document contains invalid JSON",
            risk_level=RiskLevel.HIGH,
            category=RiskCategory.SECURITY_MISCONFIGURATION,
            severity=8,
            impact="Policy may not function as expected",
            recommendation="Fix JSON syntax errors in policy document",
            resource_type=ResourceType.POLICY,
            resource_name=policy_name,
            details={"error": error},
        )

    @staticmethod
    def _sensitive_action_findings(
        action: str,
        statement: Dict[str, Any],
        policy_name: str,
    ) -> List[RiskFinding]:
        """
        Look up one action in the sensitive action tables.

        Returns:
            Zero or more findings for the action
        """
        findings: List[RiskFinding] = []

        if action in ESCALATION_ACTIONS:
            findings.append(RiskFinding(
                title="Privilege Escalation Risk",
                description=f"Policy allows privilege escalation action: {action}",
                risk_level=RiskLevel.HIGH,
                category=RiskCategory.PRIVILEGE_ESCALATION,
                severity=8,
                impact="User may be able to escalate their privileges",
                recommendation="Carefully review privilege escalation permissions and add conditions where possible",
                resource_type=ResourceType.POLICY,
                resource_name=policy_name,
                details={"action": action, "statement": statement},
            ))

        if action in DESTRUCTIVE_ACTIONS:
            findings.append(RiskFinding(
                title="Destructive Action Permission",
                description=f"Policy allows potentially destructive action: {action}",
                risk_level=RiskLevel.MEDIUM,
                category=RiskCategory.DATA_EXPOSURE,
                severity=6,
                impact="User can delete or modify critical resources",
                recommendation="Add conditions or move to break-glass access pattern",
                resource_type=ResourceType.POLICY,
                resource_name=policy_name,
                details={"action": action, "statement": statement},
            ))

        if action in DATA_ACTIONS:
            findings.append(RiskFinding(
                title="Sensitive Data Access Permission",
                description=f"Policy allows reading sensitive data: {action}",
                risk_level=RiskLevel.MEDIUM,
                category=RiskCategory.DATA_EXPOSURE,
                severity=6,
                impact="User can read data that may contain secrets or customer information",
                recommendation="Scope data access to the specific resources that require it",
                resource_type=ResourceType.POLICY,
                resource_name=policy_name,
                details={"action": action, "statement": statement},
            ))

        return findings
