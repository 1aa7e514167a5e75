"""
Result Writing Module

Handles writing scan reports to JSON files, one file per scan session.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict

# Set up logging
logger = logging.getLogger(__name__)

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def results_path(results_dir: str, session_id: str) -> Path:
    """
    Get the file path for a scan session's report.

    Args:
        results_dir: Base directory for reports
        session_id: Scan session id (e.g., 'scan_1700000000000_a1b2c3d4e')

    Returns:
        Path object for the report file (e.g., '{results_dir}/scan_<id>.json')

    Raises:
        ValueError: If session_id contains path separators or other unsafe characters
    """
    if not _SESSION_ID_PATTERN.match(session_id):
        raise ValueError(f"Invalid session id: {session_id!r}")
    filename = session_id if session_id.startswith("scan_") else f"scan_{session_id}"
    return Path(results_dir) / f"{filename}.json"


def results_exist(results_dir: str, session_id: str) -> bool:
    """
    Check if a report already exists for a scan session.

    Returns:
        True if the report file exists, False otherwise
    """
    return results_path(results_dir, session_id).exists()


def write_scan_results(results_dir: str, session_id: str, data: Dict[str, Any]) -> Path:
    """
    Write a scan report to a JSON file.

    Creates the results directory if needed.

    Args:
        results_dir: Base directory for reports
        session_id: Scan session id
        data: JSON-compatible report (camelCase keys)

    Returns:
        Path of the written file
    """
    output_file = results_path(results_dir, session_id)
    os.makedirs(results_dir, exist_ok=True)

    with open(output_file, 'w') as f:
        json.dump(data, f, indent=2, default=str)
        f.write('\n')
    logger.info(f"Wrote results to {output_file}")
    return output_file
