"""
Scan orchestration.

A ScanOrchestrator analyzes a list of permission sets strictly in input
order and reports its progress as a sequence of ScanEvents:

1. ``start``
2. ``progress`` with ``currentStep="initialization"`` if an SSO instance was found
3. per permission set: ``progress`` then ``result``
4. ``complete`` with the summary and all results

Enrichment against the SSO Admin API is best-effort. Each lookup runs in a
worker thread with a deadline; on timeout the thread is abandoned and the
permission set is analyzed as given.
"""

import asyncio
import logging
from typing import AsyncIterator, Dict, List, Optional, Sequence, Union

from ..analyzers import RiskAnalyzer, profile_from_permission_set_risk, summarize_profiles
from ..analyzers.calculator import round_half_up
from ..aws.sso import SSOPermissionSetDirectory, instance_arn_from_permission_set_arn
from ..constants import DEFAULT_ITEM_TIMEOUT_SECONDS, ORGANIZATION_ACCOUNT_ID
from ..enums import OrchestratorState
from ..models import (
    BatchScanResult,
    OrganizationUser,
    PermissionSetDetails,
    UserRiskProfile,
)
from .errors import ScanRequestError
from .sse import CompletePayload, ProgressPayload, ResultPayload, ScanEvent, StartPayload

logger = logging.getLogger(__name__)


class PermissionSetEnricher:
    """Fetches full permission set details with a per-call deadline."""

    def __init__(
        self,
        directory: Optional[SSOPermissionSetDirectory],
        item_timeout: float = DEFAULT_ITEM_TIMEOUT_SECONDS,
    ) -> None:
        self.directory = directory
        self.item_timeout = item_timeout

    async def resolve_instance_arn(self) -> Optional[str]:
        """
        Find the SSO instance ARN.

        Returns:
            Instance ARN, or None if there is no directory, no instance, or the
            lookup failed or timed out
        """
        if self.directory is None:
            return None
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.directory.find_instance_arn),
                timeout=self.item_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timed out after {self.item_timeout}s looking up the SSO instance")
        except Exception as e:
            logger.warning(f"Could not get SSO instance: {e}")
        return None

    async def enrich(
        self,
        permission_set: PermissionSetDetails,
        instance_arn: Optional[str],
    ) -> PermissionSetDetails:
        """
        Return the full details of a permission set, or the input unchanged.

        Args:
            permission_set: Permission set as supplied by the caller
            instance_arn: Resolved instance ARN; derived from the permission
                set ARN when None

        Returns:
            Enriched permission set, or ``permission_set`` on any failure
        """
        if self.directory is None or not permission_set.arn:
            return permission_set

        instance_arn = instance_arn or instance_arn_from_permission_set_arn(permission_set.arn)
        if not instance_arn:
            logger.warning(f"Could not determine instance ARN for permission set {permission_set.arn}")
            return permission_set

        try:
            details = await asyncio.wait_for(
                asyncio.to_thread(self.directory.describe_permission_set, instance_arn, permission_set.arn),
                timeout=self.item_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timed out after {self.item_timeout}s getting details for {permission_set.name}")
            return permission_set
        except Exception as e:
            logger.warning(f"Failed to get details for {permission_set.name}: {e}")
            return permission_set

        return details if details is not None else permission_set


class ScanOrchestrator:
    """
    Runs one streaming scan over a fixed list of permission sets.

    An orchestrator is single-use: create one per request.
    """

    def __init__(
        self,
        targets: Sequence[PermissionSetDetails],
        directory: Optional[SSOPermissionSetDirectory] = None,
        risk_analyzer: Optional[RiskAnalyzer] = None,
        item_timeout: float = DEFAULT_ITEM_TIMEOUT_SECONDS,
    ) -> None:
        self.targets = list(targets)
        self.risk_analyzer = risk_analyzer or RiskAnalyzer()
        self.enricher = PermissionSetEnricher(directory, item_timeout)
        self.state = OrchestratorState.INIT
        self.results: List[UserRiskProfile] = []

    async def events(self, cancel: Optional[asyncio.Event] = None) -> AsyncIterator[ScanEvent]:
        """
        Analyze every target and yield the scan's events.

        Args:
            cancel: Event that stops the scan before the next item when set

        Yields:
            ScanEvent in stream order
        """
        if self.state != OrchestratorState.INIT:
            raise RuntimeError(f"Scan already ran (state={self.state.value})")

        total = len(self.targets)
        logger.info(f"Starting streaming risk analysis for {total} permission sets")

        try:
            yield ScanEvent.of(StartPayload(total_count=total, message="Initializing risk analysis..."))

            instance_arn = await self.enricher.resolve_instance_arn()
            if instance_arn:
                yield ScanEvent.of(ProgressPayload(
                    total_count=total,
                    message=f"Using SSO instance: {instance_arn}",
                    current_step="initialization",
                ))

            self.state = OrchestratorState.PROCESSING

            for index, permission_set in enumerate(self.targets):
                if self._cancelled(cancel):
                    return

                yield ScanEvent.of(ProgressPayload(
                    current_index=index,
                    total_count=total,
                    permission_set_name=permission_set.name,
                    message=f"Analyzing {permission_set.name or 'Unknown'}...",
                    current_step="analyzing",
                    progress=round_half_up(index / total * 100),
                ))

                enriched = await self.enricher.enrich(permission_set, instance_arn)
                if self._cancelled(cancel):
                    return

                profile = self._analyze(permission_set, enriched)
                self.results.append(profile)
                completed = len(self.results)
                progress = round_half_up(completed / total * 100)

                logger.info(
                    f"Completed {completed}/{total}: {permission_set.name} - "
                    f"{profile.risk_level.value} ({progress}%)"
                )
                yield ScanEvent.of(ResultPayload(
                    profile=profile,
                    index=index,
                    completed_count=completed,
                    total_count=total,
                    progress=progress,
                    message=f"Completed {completed}/{total}: {permission_set.name}",
                ))

            summary = summarize_profiles(self.results)
            self.state = OrchestratorState.COMPLETE
            yield ScanEvent.of(CompletePayload(
                summary=summary,
                all_results=self.results,
                message="Risk analysis complete!",
            ))
        finally:
            if self.state != OrchestratorState.COMPLETE:
                self.state = OrchestratorState.CANCELLED
                logger.info(f"Scan stopped after {len(self.results)}/{total} permission sets")

    async def run_batch(self, cancel: Optional[asyncio.Event] = None) -> BatchScanResult:
        """
        Run the scan to completion without streaming.

        Returns:
            BatchScanResult with every profile and the summary
        """
        async for _ in self.events(cancel):
            pass
        return BatchScanResult(profiles=self.results, summary=summarize_profiles(self.results))

    def _analyze(self, permission_set: PermissionSetDetails, enriched: PermissionSetDetails) -> UserRiskProfile:
        outcome = self.risk_analyzer.assess_permission_set(enriched, ORGANIZATION_ACCOUNT_ID)
        if outcome.degraded:
            logger.warning(f"Analysis of {permission_set.name} degraded: {outcome.reason}")
        return profile_from_permission_set_risk(permission_set, outcome.value)

    def _cancelled(self, cancel: Optional[asyncio.Event]) -> bool:
        if cancel is not None and cancel.is_set():
            logger.info("Scan cancelled")
            self.state = OrchestratorState.CANCELLED
            return True
        return False


async def analyze_users_batch(
    users: Sequence[OrganizationUser],
    directory: Optional[SSOPermissionSetDirectory] = None,
    risk_analyzer: Optional[RiskAnalyzer] = None,
    item_timeout: float = DEFAULT_ITEM_TIMEOUT_SECONDS,
) -> BatchScanResult:
    """
    Analyze users by their account assignments.

    Each distinct permission set is enriched once and the enriched copy is
    used for every user that holds it.

    Args:
        users: Users with account access data
        directory: SSO directory used for enrichment, or None to skip it
        risk_analyzer: Analyzer to use
        item_timeout: Deadline in seconds for each SSO lookup

    Returns:
        BatchScanResult with one profile per user that has access data

    Raises:
        ScanRequestError: If no user has account access data
    """
    users_with_access = [user for user in users if user.account_access]
    if not users_with_access:
        raise ScanRequestError(
            400,
            "No user access data available for risk analysis. "
            "Load users with their account access information first."
        )

    risk_analyzer = risk_analyzer or RiskAnalyzer()
    enricher = PermissionSetEnricher(directory, item_timeout)

    unique: Dict[str, PermissionSetDetails] = {}
    for user in users_with_access:
        for access in user.account_access:
            if not access.has_access:
                continue
            for item in access.permission_sets or []:
                permission_set = item if isinstance(item, PermissionSetDetails) else PermissionSetDetails.from_arn(item)
                unique.setdefault(permission_set.arn or permission_set.name, permission_set)

    logger.info(f"Found {len(unique)} unique permission sets across {len(users_with_access)} users")

    instance_arn = await enricher.resolve_instance_arn()
    enriched: Dict[str, PermissionSetDetails] = {}
    for key, permission_set in unique.items():
        enriched[key] = await enricher.enrich(permission_set, instance_arn)

    profiles: List[UserRiskProfile] = []
    for user in users_with_access:
        enriched_user = user.model_copy(update={
            "account_access": [
                access.model_copy(update={
                    "permission_sets": [
                        enriched.get(_permission_set_key(item), item) for item in access.permission_sets
                    ],
                }) if access.has_access and access.permission_sets else access
                for access in user.account_access
            ],
        })
        outcome = risk_analyzer.assess_user(enriched_user)
        if outcome.degraded:
            logger.warning(f"Analysis of user {user.user_name} degraded: {outcome.reason}")
        profiles.append(outcome.value)
        logger.info(
            f"Risk analysis complete for {user.user_name}: "
            f"{outcome.value.risk_level.value} ({outcome.value.overall_risk_score}/10)"
        )

    return BatchScanResult(profiles=profiles, summary=summarize_profiles(profiles))


def _permission_set_key(item: Union[PermissionSetDetails, str]) -> str:
    if isinstance(item, str):
        return item
    return item.arn or item.name
