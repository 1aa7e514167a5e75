from typing import Any, AsyncIterator, Dict, List, Optional
import argparse
import asyncio
import json
import logging

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from .analyzers import summarize_profiles
from .aws.sessions import session_from_credentials
from .aws.sso import SSOPermissionSetDirectory
from .config import IamRiskConfig
from .enums import OrchestratorState, SessionState
from .models import BatchScanResult, PermissionSetDetails
from .output import OutputHandler
from .scan.errors import ScanRequestError
from .scan.handlers import parse_permission_sets
from .scan.orchestrator import ScanOrchestrator
from .scan.sse import encode_event
from .session.consumer import run_streaming_scan
from .session.persistence import FileSessionPersistence
from .session.store import ScanSessionStore
from .usage import load_yaml_config, parse_cli_args, merge_configs
from .write_results import write_scan_results

logger = logging.getLogger(__name__)


def setup_configuration(cli_args: argparse.Namespace, yaml_config: Dict) -> IamRiskConfig:
    """
    Merge and validate configuration from YAML and CLI arguments.

    Args:
        cli_args: Parsed command line arguments
        yaml_config: Configuration loaded from YAML file

    Returns:
        Validated IamRiskConfig object

    Raises:
        SystemExit: If configuration validation fails
    """
    try:
        final_config = merge_configs(yaml_config, cli_args)
    except (ValueError, TypeError) as e:
        OutputHandler.error("Configuration Error", e)
        exit(1)

    OutputHandler.success("Final Config", final_config.model_dump())

    return final_config


def load_targets(targets_file: str) -> List[PermissionSetDetails]:
    """
    Load permission sets from a JSON file.

    The file holds either a list of permission sets or an object with a
    ``permissionSets`` list, in the same shape as a scan request body.

    Raises:
        ValueError: If the file is not valid JSON
        ScanRequestError: If the permission set list is missing, empty or invalid
    """
    with open(targets_file, 'r') as f:
        data = json.load(f)
    if isinstance(data, list):
        data = {"permissionSets": data}
    if not isinstance(data, dict):
        raise ScanRequestError(400, f"Targets file '{targets_file}' must contain a list or an object")
    return parse_permission_sets(data)


def discover_targets(directory: SSOPermissionSetDirectory) -> List[PermissionSetDetails]:
    """
    Discover every permission set in the region's IAM Identity Center instance.

    Raises:
        ScanRequestError: If no instance or no permission set was found
    """
    instance_arn = directory.find_instance_arn()
    if instance_arn is None:
        raise ScanRequestError(400, f"No IAM Identity Center instance found in {directory.region}")

    targets = directory.discover_permission_sets(instance_arn)
    if not targets:
        raise ScanRequestError(400, f"No permission sets found in {instance_arn}")
    return targets


def build_session_store(final_config: IamRiskConfig) -> ScanSessionStore:
    return ScanSessionStore(
        FileSessionPersistence(final_config.session_dir),
        key=final_config.session_key,
        ttl_seconds=final_config.session_ttl_seconds,
    )


async def run_scan(
    final_config: IamRiskConfig,
    targets: List[PermissionSetDetails],
    directory: Optional[SSOPermissionSetDirectory],
    store: ScanSessionStore,
    stream: bool = False,
    cancel_after: Optional[int] = None,
) -> tuple[str, bool]:
    """
    Run a scan and record it in the session store.

    The orchestrator's events are encoded to SSE frames and fed back through
    the client-side consumer, so the store sees exactly what a remote client
    would.

    Args:
        final_config: Validated configuration
        targets: Permission sets to analyze
        directory: SSO directory used for enrichment, or None to skip it
        store: Session store recording the scan
        stream: If True, print every frame to stdout
        cancel_after: Cancel the scan after this many results

    Returns:
        Tuple of (session_id, completed) where completed is False when the
        scan was cancelled or an identical scan was already in progress
    """
    orchestrator = ScanOrchestrator(
        targets,
        directory=directory,
        item_timeout=final_config.item_timeout_seconds,
    )
    cancel = asyncio.Event()

    async def frames() -> AsyncIterator[str]:
        async for event in orchestrator.events(cancel):
            frame = encode_event(event)
            if stream:
                print(frame, end="", flush=True)
            if cancel_after is not None and len(orchestrator.results) >= cancel_after:
                cancel.set()
            yield frame

    session_id = await run_streaming_scan(
        store,
        targets,
        final_config.region,
        final_config.effective_sso_region,
        frames(),
    )
    return session_id, orchestrator.state == OrchestratorState.COMPLETE


def write_report(final_config: IamRiskConfig, store: ScanSessionStore, completed: bool) -> Dict[str, Any]:
    """
    Write the current session's report to the results directory.

    Returns:
        The report that was written
    """
    session = store.current_session
    if session is None:
        raise RuntimeError("No scan session to report")

    result = BatchScanResult(
        profiles=session.results,
        summary=session.summary or summarize_profiles(session.results),
    )
    report = {
        "sessionId": session.id,
        "region": session.region,
        "ssoRegion": session.sso_region,
        "complete": completed,
        **result.to_json_dict(),
    }
    write_scan_results(final_config.results_dir, session.id, report)
    return report


def main() -> None:
    """Main entry point for iamrisk permission set risk analysis."""
    logging.basicConfig(level=logging.INFO)
    cli_args = parse_cli_args()

    try:
        yaml_config = load_yaml_config(cli_args.config) if cli_args.config else {}
    except ValueError as e:
        OutputHandler.error("Configuration Error", e)
        exit(1)

    final_config = setup_configuration(cli_args, yaml_config)

    try:
        store = build_session_store(final_config)
        if cli_args.reset_session:
            store.reset_scan()

        sso_region = final_config.effective_sso_region
        directory = SSOPermissionSetDirectory(
            session_from_credentials(None, sso_region),
            sso_region,
            timeout=final_config.item_timeout_seconds,
        )

        if cli_args.targets_file:
            targets = load_targets(cli_args.targets_file)
        else:
            targets = discover_targets(directory)

        OutputHandler.section_header(f"RISK ANALYSIS OF {len(targets)} PERMISSION SETS")
        session_id, completed = asyncio.run(run_scan(
            final_config,
            targets,
            directory,
            store,
            stream=cli_args.stream,
            cancel_after=cli_args.cancel_after,
        ))

        if store.state == SessionState.ACTIVE and store.current_session.id == session_id and not completed:
            OutputHandler.success("Scan already in progress", {
                "sessionId": session_id,
                "progress": store.progress.to_json_dict() if store.progress else None,
            })
            return
        if store.state == SessionState.ERRORED:
            raise RuntimeError(store.error)

        report = write_report(final_config, store, completed)
        OutputHandler.scan_completed(session_id, store.summary or summarize_profiles(store.results), store.results)
        OutputHandler.success(
            "Scan complete" if completed else "Scan cancelled",
            report["summary"],
        )

    except ScanRequestError as e:
        OutputHandler.error(f"Invalid Scan Request ({e.status_code})", e)
        logger.error(f"Invalid scan request: {e}", exc_info=True)
        exit(1)
    except (ValueError, ValidationError) as e:
        OutputHandler.error("Configuration Error", e)
        logger.error(f"Invalid configuration: {e}", exc_info=True)
        exit(1)
    except RuntimeError as e:
        OutputHandler.error("Runtime Error", e)
        logger.error(f"Runtime error during scan: {e}", exc_info=True)
        exit(1)
    except ClientError as e:
        error_code = e.response['Error']['Code']
        OutputHandler.error(f"AWS API Error ({error_code})", e)
        logger.error(f"AWS API error: {e}", exc_info=True)
        exit(1)
    except BotoCoreError as e:
        OutputHandler.error("AWS Error", e)
        logger.error(f"AWS error: {e}", exc_info=True)
        exit(1)


if __name__ == "__main__":
    main()
