"""
Tests for iamrisk.analyzers.policy module.

Tests for managed policy classification and inline policy document analysis.
"""

import json
from typing import Any, Dict, List
from unittest.mock import patch

from iamrisk.analyzers.policy import PolicyAnalyzer, policy_name_from_arn, services_from_policy_name
from iamrisk.enums import RiskCategory, RiskLevel
from iamrisk.models import RiskFinding


def make_policy(*statements: Dict[str, Any]) -> str:
    return json.dumps({"Version": "2012-10-17", "Statement": list(statements)})


def titles(findings: List[RiskFinding]) -> List[str]:
    return [finding.title for finding in findings]


class TestManagedPolicy:
    """Test analyze_managed_policy."""

    def setup_method(self) -> None:
        self.analyzer = PolicyAnalyzer()

    def test_administrator_access(self) -> None:
        """AdministratorAccess grants admin and produces a critical finding."""
        result = self.analyzer.analyze_managed_policy("arn:aws:iam::aws:policy/AdministratorAccess")

        assert result.admin_permissions is True
        assert result.wildcard_actions_count == 1
        assert result.policy_name == "AdministratorAccess"
        assert len(result.findings) == 1
        finding = result.findings[0]
        assert finding.risk_level == RiskLevel.CRITICAL
        assert finding.category == RiskCategory.ADMINISTRATIVE_ACCESS
        assert finding.severity == 10

    def test_power_user_access(self) -> None:
        result = self.analyzer.analyze_managed_policy("arn:aws:iam::aws:policy/PowerUserAccess")

        assert result.admin_permissions is False
        assert result.wildcard_actions_count == 0
        assert len(result.findings) == 1
        assert result.findings[0].risk_level == RiskLevel.HIGH
        assert result.findings[0].category == RiskCategory.OVERLY_PERMISSIVE
        assert result.findings[0].severity == 7

    def test_read_only_policy_has_no_findings(self) -> None:
        result = self.analyzer.analyze_managed_policy("arn:aws:iam::aws:policy/ReadOnlyAccess")

        assert result.admin_permissions is False
        assert result.findings == []
        assert result.permissions_count == 0

    def test_service_permissions_inferred_from_name(self) -> None:
        result = self.analyzer.analyze_managed_policy("arn:aws:iam::aws:policy/AmazonS3ReadOnlyAccess")

        assert result.service_permissions == {"s3": ["s3:*"]}

    def test_assess_reports_ok(self) -> None:
        outcome = self.analyzer.assess_managed_policy("arn:aws:iam::aws:policy/AdministratorAccess")
        assert outcome.degraded is False

    def test_internal_failure_is_degraded_not_raised(self) -> None:
        """A failure inside the analysis yields an empty, degraded result."""
        with patch("iamrisk.analyzers.policy.services_from_policy_name", side_effect=RuntimeError("boom")):
            outcome = self.analyzer.assess_managed_policy("arn:aws:iam::aws:policy/AmazonS3FullAccess")
            result = self.analyzer.analyze_managed_policy("arn:aws:iam::aws:policy/AmazonS3FullAccess")

        assert outcome.degraded is True
        assert outcome.reason == "boom"
        assert outcome.value.findings == []
        assert result.findings == []


class TestPolicyNameHelpers:
    """Test ARN and name helpers."""

    def test_policy_name_from_arn(self) -> None:
        assert policy_name_from_arn("arn:aws:iam::aws:policy/job-function/SystemAdministrator") == "SystemAdministrator"
        assert policy_name_from_arn("NoSlashes") == "NoSlashes"

    def test_services_from_policy_name_multiple(self) -> None:
        services = services_from_policy_name("AWSLambdaDynamoDBExecutionRole")
        assert set(services) == {"lambda", "dynamodb"}


class TestInlinePolicy:
    """Test analyze_inline_policy."""

    def setup_method(self) -> None:
        self.analyzer = PolicyAnalyzer()

    def test_wildcard_all_actions(self) -> None:
        """Action * on Resource * is full admin."""
        document = '{"Version":"2012-10-17","Statement":[{"Effect":"Allow","Action":"*","Resource":"*"}]}'
        result = self.analyzer.analyze_inline_policy(document, "p")

        assert result.admin_permissions is True
        assert result.wildcard_actions_count >= 1
        assert any(
            finding.risk_level == RiskLevel.CRITICAL and finding.category == RiskCategory.OVERLY_PERMISSIVE
            for finding in result.findings
        )
        assert "Wildcard Resource Access" in titles(result.findings)

    def test_invalid_json(self) -> None:
        """Malformed JSON is reported as a finding, not raised."""
        result = self.analyzer.analyze_inline_policy("{not json", "p")

        assert result.permissions_count == 0
        assert len(result.findings) == 1
        finding = result.findings[0]
        assert finding.risk_level == RiskLevel.HIGH
        assert finding.category == RiskCategory.SECURITY_MISCONFIGURATION
        assert finding.severity == 8
        assert finding.details["error"]

    def test_non_object_document(self) -> None:
        result = self.analyzer.analyze_inline_policy("[1, 2, 3]", "p")

        assert len(result.findings) == 1
        assert result.findings[0].title == "Invalid Policy Document"
        assert result.findings[0].details["error"] == "Policy document must be a JSON object"

    def test_service_wildcard_counts(self) -> None:
        document = make_policy({"Effect": "Allow", "Action": ["s3:*", "ec2:Describe*", "iam:*"], "Resource": "arn:aws:s3:::bucket"})
        result = self.analyzer.analyze_inline_policy(document, "p")

        assert result.wildcard_actions_count == 2
        assert result.admin_permissions is False
        assert result.permissions_count == 3
        assert result.findings == []
        assert result.service_permissions == {"s3": ["s3:*"], "ec2": ["ec2:Describe*"], "iam": ["iam:*"]}

    def test_escalation_action(self) -> None:
        document = make_policy({"Effect": "Allow", "Action": "iam:PassRole", "Resource": "arn:aws:iam::111111111111:role/x"})
        result = self.analyzer.analyze_inline_policy(document, "p")

        assert len(result.findings) == 1
        assert result.findings[0].category == RiskCategory.PRIVILEGE_ESCALATION
        assert result.findings[0].severity == 8
        assert result.findings[0].details["action"] == "iam:PassRole"

    def test_destructive_action(self) -> None:
        document = make_policy({"Effect": "Allow", "Action": "s3:DeleteBucket", "Resource": "arn:aws:s3:::b"})
        result = self.analyzer.analyze_inline_policy(document, "p")

        assert titles(result.findings) == ["Destructive Action Permission"]
        assert result.findings[0].risk_level == RiskLevel.MEDIUM
        assert result.findings[0].category == RiskCategory.DATA_EXPOSURE

    def test_data_action_recorded_and_reported(self) -> None:
        document = make_policy({"Effect": "Allow", "Action": ["secretsmanager:GetSecretValue"], "Resource": "arn:aws:secretsmanager:us-east-1:111111111111:secret:x"})
        result = self.analyzer.analyze_inline_policy(document, "p")

        assert result.data_access_permissions == ["secretsmanager:GetSecretValue"]
        assert titles(result.findings) == ["Sensitive Data Access Permission"]
        assert result.findings[0].severity == 6

    def test_deny_statements_are_ignored(self) -> None:
        document = make_policy({"Effect": "Deny", "Action": "*", "Resource": "*"})
        result = self.analyzer.analyze_inline_policy(document, "p")

        assert result.admin_permissions is False
        assert result.permissions_count == 0
        assert result.findings == []

    def test_principal_flagged_regardless_of_effect(self) -> None:
        """An object Principal is reported even on a Deny statement."""
        document = make_policy({"Effect": "Deny", "Principal": {"AWS": "arn:aws:iam::222222222222:root"}, "Action": "s3:GetObject", "Resource": "*"})
        result = self.analyzer.analyze_inline_policy(document, "p")

        assert result.cross_account_access is True
        assert titles(result.findings) == ["Cross-Account Access Grant"]
        assert result.findings[0].details["effect"] == "Deny"

    def test_string_principal_is_not_flagged(self) -> None:
        document = make_policy({"Effect": "Allow", "Principal": "*", "Action": "s3:ListBucket", "Resource": "arn:aws:s3:::b"})
        result = self.analyzer.analyze_inline_policy(document, "p")

        assert result.cross_account_access is False

    def test_single_statement_object(self) -> None:
        document = json.dumps({"Statement": {"Effect": "Allow", "Action": "*", "Resource": "*"}})
        result = self.analyzer.analyze_inline_policy(document, "p")

        assert result.admin_permissions is True

    def test_missing_statement(self) -> None:
        result = self.analyzer.analyze_inline_policy('{"Version": "2012-10-17"}', "p")

        assert result.findings == []
        assert result.permissions_count == 0

    def test_non_object_statements_skipped(self) -> None:
        document = json.dumps({"Statement": ["junk", 42, {"Effect": "Allow", "Action": "s3:ListBucket", "Resource": "arn:aws:s3:::b"}]})
        result = self.analyzer.analyze_inline_policy(document, "p")

        assert result.permissions_count == 1

    def test_findings_are_named_after_the_policy(self) -> None:
        document = make_policy({"Effect": "Allow", "Action": "*", "Resource": "*"})
        result = self.analyzer.analyze_inline_policy(document, "DeveloperAccess")

        assert all(finding.resource_name == "DeveloperAccess" for finding in result.findings)

    def test_internal_failure_is_degraded(self) -> None:
        with patch.object(PolicyAnalyzer, "_parse_policy_document", side_effect=RuntimeError("parser crashed")):
            outcome = self.analyzer.assess_inline_policy("{}", "p")

        assert outcome.degraded is True
        assert outcome.value.policy_name == "p"
        assert outcome.value.findings == []

    def test_finding_details_do_not_alias_parsed_document(self) -> None:
        """Editing the parsed document afterwards leaves findings untouched."""
        document = make_policy({"Effect": "Allow", "Principal": {"AWS": "*"}, "Action": "s3:*", "Resource": "*"})
        result = self.analyzer.analyze_inline_policy(document, "p")

        wildcard = next(finding for finding in result.findings if finding.title == "Wildcard Resource Access")
        cross_account = next(finding for finding in result.findings if finding.title == "Cross-Account Access Grant")
        statement = result.parsed_document["Statement"][0]
        statement["Resource"] = "arn:aws:s3:::changed"
        statement["Principal"]["AWS"] = "arn:aws:iam::123456789012:root"

        assert wildcard.details["statement"]["Resource"] == "*"
        assert wildcard.details["statement"] is not statement
        assert cross_account.details["principal"] == {"AWS": "*"}
