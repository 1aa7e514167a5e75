"""
Risk analysis module.

This module turns IAM Identity Center permission sets and user assignments
into scored findings:
- Single-policy classification (managed and inline)
- Score and level computation
- Permission set, account and user aggregation
"""

from .calculator import describe_level, level_of, score_account, score_permission_set
from .policy import PolicyAnalyzer
from .risk import (
    RiskAnalyzer,
    analysis_failed_finding,
    profile_from_permission_set_risk,
    summarize_profiles,
)

__all__ = [
    # Scoring
    "describe_level",
    "level_of",
    "score_account",
    "score_permission_set",
    # Analyzers
    "PolicyAnalyzer",
    "RiskAnalyzer",
    "analysis_failed_finding",
    "profile_from_permission_set_risk",
    "summarize_profiles",
]
