"""
Risk scoring.

Pure functions that turn analysis flags and finding counts into a 1-10 score
and a discrete risk level. Nothing here touches I/O or raises for valid input.
"""

import math
from typing import Sequence

from ..constants import (
    MAX_RISK_SCORE,
    MIN_RISK_SCORE,
    RISK_LEVEL_DESCRIPTIONS,
    RISK_LEVEL_THRESHOLDS,
)
from ..enums import RiskLevel
from ..models import PermissionSetRisk, RiskFinding


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer with .5 going up.

    Python's round() rounds half to even, which would score 2.5 as 2.
    """
    return int(math.floor(value + 0.5))


def clamp_score(score: int) -> int:
    """Clamp a score into the valid 1-10 range."""
    return max(MIN_RISK_SCORE, min(score, MAX_RISK_SCORE))


def score_permission_set(
    admin_permissions: bool,
    wildcard_actions: int,
    sensitive_services_count: int,
    findings_count: int,
    high_severity_findings_count: int,
) -> int:
    """
    Score a permission set.

    Args:
        admin_permissions: True if any attached policy grants admin access
        wildcard_actions: Total wildcard actions across all policies
        sensitive_services_count: Number of distinct sensitive services touched
        findings_count: Total number of findings
        high_severity_findings_count: Findings with severity >= 7

    Returns:
        Integer score in [1, 10]
    """
    score = 1.0
    if admin_permissions:
        score += 6
    score += min(wildcard_actions * 1.5, 3)
    score += min(sensitive_services_count * 0.5, 2)
    score += min(findings_count * 0.3, 2)
    score += min(high_severity_findings_count * 0.8, 3)
    return clamp_score(round_half_up(score))


def score_account(
    permission_set_risks: Sequence[PermissionSetRisk],
    account_findings: Sequence[RiskFinding],
) -> int:
    """
    Score an account from its permission sets and account-level findings.

    The riskiest permission set dominates (70%), the average adds a smaller
    share (20%), and each account-level finding adds 0.5 up to 2.

    Returns:
        Integer score in [1, 10]; 1 when no permission sets are attached
    """
    if not permission_set_risks:
        return MIN_RISK_SCORE

    scores = [risk.risk_score for risk in permission_set_risks]
    max_score = max(scores)
    avg_score = sum(scores) / len(scores)
    findings_score = min(len(account_findings) * 0.5, 2)

    return clamp_score(round_half_up(max_score * 0.7 + avg_score * 0.2 + findings_score))


def level_of(score: float) -> RiskLevel:
    """Map a score to its risk level using the fixed 9/7/5/3 thresholds."""
    for threshold, level_name in RISK_LEVEL_THRESHOLDS:
        if score >= threshold:
            return RiskLevel(level_name)
    return RiskLevel.INFO


def describe_level(level: RiskLevel) -> str:
    return RISK_LEVEL_DESCRIPTIONS[level.value]
