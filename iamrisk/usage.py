import argparse
import logging
import yaml
from typing import Any, Dict, List, Optional
from .config import IamRiskConfig

logger = logging.getLogger(__name__)


def load_yaml_config(path: str) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file

    Returns:
        Dictionary containing the loaded configuration, or empty dict if file not found

    Raises:
        ValueError: If the file does not contain a YAML mapping
    """
    try:
        with open(path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Config file '{path}' not found. Continuing without it.")
        return {}

    if not isinstance(loaded, dict):
        raise ValueError(f"Config file '{path}' must contain a mapping, got {type(loaded).__name__}")
    return loaded


def parse_cli_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments for the iamrisk tool.

    Args:
        argv: Arguments to parse (defaults to sys.argv[1:])

    Returns:
        Parsed command line arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="iamrisk",
        description="iamrisk - score IAM Identity Center permission sets for security risk"
    )

    parser.add_argument(
        '--config',
        type=str,
        help='Path to config YAML'
    )

    # Scan targets
    parser.add_argument(
        '--targets-file',
        dest='targets_file',
        type=str,
        help='JSON file with a list of permission sets to scan (default: discover via SSO)'
    )

    # Regions (override YAML if provided)
    parser.add_argument(
        '--region',
        type=str,
        help='AWS region (default us-east-1)'
    )
    parser.add_argument(
        '--sso-region',
        dest='sso_region',
        type=str,
        help='IAM Identity Center region (default: same as --region)'
    )

    # Paths (override YAML if provided)
    parser.add_argument(
        '--results-dir',
        dest='results_dir',
        type=str,
        help='Directory to write scan reports to (default iamrisk_results)'
    )
    parser.add_argument(
        '--session-dir',
        dest='session_dir',
        type=str,
        help='Directory for resumable scan sessions (default iamrisk_results/sessions)'
    )

    parser.add_argument(
        '--item-timeout',
        dest='item_timeout_seconds',
        type=float,
        help='Seconds to wait for each SSO lookup before falling back (default 30)'
    )

    # Output options
    parser.add_argument(
        '--stream',
        action='store_true',
        help='Print SSE frames to stdout while scanning'
    )
    parser.add_argument(
        '--reset-session',
        dest='reset_session',
        action='store_true',
        help='Discard any saved scan session before starting'
    )
    parser.add_argument(
        '--cancel-after',
        dest='cancel_after',
        type=int,
        help='Cancel the scan after N results (for testing)'
    )

    return parser.parse_args(argv)


def merge_configs(yaml_config: Dict[str, Any], cli_args: argparse.Namespace) -> IamRiskConfig:
    """
    Merge YAML configuration with CLI arguments and validate the result.

    Args:
        yaml_config: Configuration loaded from YAML file
        cli_args: Parsed command line arguments

    Returns:
        Validated IamRiskConfig object

    Raises:
        ValidationError: If configuration validation fails (a ValueError subclass)
    """
    # Start with YAML
    merged = yaml_config.copy()

    # Apply CLI overrides (only if CLI provided them)
    cli_dict = {
        k: v for k, v in vars(cli_args).items()
        if k in IamRiskConfig.model_fields and v is not None
    }
    merged.update(cli_dict)

    return IamRiskConfig(**merged)
