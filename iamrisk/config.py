from typing import Optional
from pydantic import BaseModel, Field

from .constants import DEFAULT_AWS_REGION, DEFAULT_ITEM_TIMEOUT_SECONDS, SCAN_SESSION_TIMEOUT_SECONDS


# Centralized defaults for directories
DEFAULT_RESULTS_DIR = "iamrisk_results"
DEFAULT_SESSION_DIR = "iamrisk_results/sessions"


class IamRiskConfig(BaseModel):
    region: str = DEFAULT_AWS_REGION
    # IAM Identity Center region; falls back to region when unset
    sso_region: Optional[str] = None
    # Base directory where scan report JSONs are written
    results_dir: str = DEFAULT_RESULTS_DIR
    # Directory holding persisted scan session snapshots
    session_dir: str = DEFAULT_SESSION_DIR
    session_key: str = "default"
    session_ttl_seconds: int = Field(default=SCAN_SESSION_TIMEOUT_SECONDS, gt=0)
    # Deadline for each SSO lookup made during a scan
    item_timeout_seconds: float = Field(default=DEFAULT_ITEM_TIMEOUT_SECONDS, gt=0)

    @property
    def effective_sso_region(self) -> str:
        return self.sso_region or self.region
