"""
Tests for iamrisk.analyzers.calculator module.

Tests for score computation and score-to-level mapping.
"""

import pytest
from iamrisk.analyzers.calculator import (
    clamp_score,
    describe_level,
    level_of,
    round_half_up,
    score_account,
    score_permission_set,
)
from iamrisk.enums import ResourceType, RiskCategory, RiskLevel
from iamrisk.models import PermissionSetRisk, RiskFinding


def make_risk(score: int) -> PermissionSetRisk:
    return PermissionSetRisk(
        arn=f"arn:aws:sso:::permissionSet/ssoins-1/ps-{score}",
        name=f"ps-{score}",
        risk_score=score,
        risk_level=level_of(score),
    )


def make_finding() -> RiskFinding:
    return RiskFinding(
        title="Cross-Account Access Detected",
        description="d",
        risk_level=RiskLevel.MEDIUM,
        category=RiskCategory.CROSS_ACCOUNT_ACCESS,
        severity=6,
        impact="i",
        recommendation="r",
        resource_type=ResourceType.ACCOUNT,
    )


class TestRoundHalfUp:
    """Test round_half_up function."""

    @pytest.mark.parametrize("value,expected", [
        (2.5, 3),
        (3.5, 4),
        (2.49, 2),
        (0.5, 1),
        (7.0, 7),
    ])
    def test_rounds_half_away_from_even(self, value: float, expected: int) -> None:
        assert round_half_up(value) == expected

    def test_clamp_score_bounds(self) -> None:
        assert clamp_score(0) == 1
        assert clamp_score(15) == 10
        assert clamp_score(5) == 5


class TestScorePermissionSet:
    """Test score_permission_set function."""

    def test_no_signals_scores_one(self) -> None:
        assert score_permission_set(False, 0, 0, 0, 0) == 1

    def test_admin_adds_six(self) -> None:
        assert score_permission_set(True, 0, 0, 0, 0) == 7

    def test_each_term_is_capped(self) -> None:
        """Huge counts hit every cap: 1 + 3 + 2 + 2 + 3 = 11, clamped to 10."""
        assert score_permission_set(False, 100, 100, 100, 100) == 10

    def test_admin_with_everything_clamps_to_ten(self) -> None:
        assert score_permission_set(True, 5, 5, 20, 10) == 10

    def test_fractional_terms_round_half_up(self) -> None:
        """1 + 1.5 (one wildcard) = 2.5 which rounds to 3, not 2."""
        assert score_permission_set(False, 1, 0, 0, 0) == 3

    def test_mixed_terms(self) -> None:
        """1 + 0.5 (one sensitive service) + 0.6 (two findings) + 0.8 (one high) = 2.9."""
        assert score_permission_set(False, 0, 1, 2, 1) == 3

    @pytest.mark.parametrize("admin", [True, False])
    @pytest.mark.parametrize("wildcards", [0, 1, 3])
    @pytest.mark.parametrize("findings", [0, 4, 50])
    def test_score_always_in_range(self, admin: bool, wildcards: int, findings: int) -> None:
        score = score_permission_set(admin, wildcards, wildcards, findings, findings // 2)
        assert 1 <= score <= 10


class TestScoreAccount:
    """Test score_account function."""

    def test_no_permission_sets_scores_one(self) -> None:
        assert score_account([], [make_finding()]) == 1

    def test_single_permission_set(self) -> None:
        """10*0.7 + 10*0.2 = 9.0."""
        assert score_account([make_risk(10)], []) == 9

    def test_max_dominates_average(self) -> None:
        """10*0.7 + 5.5*0.2 = 8.1 -> 8."""
        assert score_account([make_risk(10), make_risk(1)], []) == 8

    def test_account_findings_add_half_point_each(self) -> None:
        """5*0.7 + 5*0.2 + 0.5 = 5.0."""
        assert score_account([make_risk(5)], [make_finding()]) == 5

    def test_account_findings_capped_at_two(self) -> None:
        """3*0.7 + 3*0.2 + 2 = 4.7 -> 5."""
        findings = [make_finding() for _ in range(10)]
        assert score_account([make_risk(3)], findings) == 5


class TestLevelOf:
    """Test level_of and describe_level."""

    @pytest.mark.parametrize("score,level", [
        (10, RiskLevel.CRITICAL),
        (9, RiskLevel.CRITICAL),
        (8, RiskLevel.HIGH),
        (7, RiskLevel.HIGH),
        (6, RiskLevel.MEDIUM),
        (5, RiskLevel.MEDIUM),
        (4, RiskLevel.LOW),
        (3, RiskLevel.LOW),
        (2, RiskLevel.INFO),
        (1, RiskLevel.INFO),
    ])
    def test_thresholds(self, score: int, level: RiskLevel) -> None:
        assert level_of(score) == level

    def test_level_is_monotonic(self) -> None:
        levels = [level_of(score) for score in range(1, 11)]
        assert levels == sorted(levels)

    def test_risk_levels_are_ordered(self) -> None:
        assert RiskLevel.CRITICAL > RiskLevel.HIGH > RiskLevel.MEDIUM > RiskLevel.LOW > RiskLevel.INFO
        assert RiskLevel.HIGH >= RiskLevel.HIGH

    def test_every_level_has_a_description(self) -> None:
        for level in RiskLevel:
            assert describe_level(level)
