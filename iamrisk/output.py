"""
Centralized output handling with consistent formatting.

This module provides a single point of control for all user-facing output,
ensuring consistent formatting and making it easy to modify output behavior.
"""

import json
import logging
from typing import Any, Optional, Sequence

from .analyzers.calculator import describe_level
from .models import ScanSummary, UserRiskProfile

logger = logging.getLogger(__name__)


class OutputHandler:
    """Centralized output handling with consistent formatting."""

    @staticmethod
    def scan_completed(session_id: str, summary: ScanSummary, profiles: Sequence[UserRiskProfile] = ()) -> None:
        """
        Log scan completion and print the riskiest profiles.

        Args:
            session_id: Id of the finished scan session
            summary: Scan summary statistics
            profiles: Analyzed profiles, in scan order
        """
        logger.info(
            f"Scan {session_id} completed: "
            f"{summary.total_profiles} profiles, "
            f"{summary.high_risk_profiles} high risk, "
            f"{summary.total_findings} findings"
        )

        ranked = sorted(profiles, key=lambda profile: profile.overall_risk_score, reverse=True)
        for profile in ranked:
            print(
                f"  [{profile.risk_level.value:<8}] {profile.overall_risk_score:>2}/10  "
                f"{profile.user_name} ({len(profile.findings)} findings) - {describe_level(profile.risk_level)}"
            )

    @staticmethod
    def error(title: str, error: Exception) -> None:
        """
        Print formatted error message.

        Args:
            title: Error title
            error: Exception that occurred
        """
        print(f"\n🚨 {title}:\n{error}\n")

    @staticmethod
    def success(title: str, data: Optional[Any] = None) -> None:
        """
        Print formatted success message.

        Args:
            title: Success message title
            data: Optional data to display (dict will be JSON formatted)
        """
        print(f"\n✅ {title}")
        if not data:
            return

        if isinstance(data, dict):
            print(json.dumps(data, indent=2, default=str))
            return

        print(data)

    @staticmethod
    def section_header(title: str) -> None:
        """
        Print section header with divider.

        Args:
            title: Section title
        """
        print("\n" + "=" * 80)
        print(title)
        print("=" * 80)
