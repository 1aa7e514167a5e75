"""
Transport-neutral request handlers for the scan endpoints.

The handlers take a raw request body and headers and return a status code,
headers and body. They know nothing about the web framework that serves
them, so any ASGI or WSGI adapter can mount them.

- ``handle_stream_request``: SSE stream of a permission set scan
- ``handle_batch_request``: single JSON response, for permission sets or users
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional, Union

from botocore.exceptions import BotoCoreError
from pydantic import ValidationError

from ..aws.sessions import Credentials, session_from_credentials
from ..aws.sso import SSOPermissionSetDirectory
from ..constants import (
    ACCESS_KEY_ID_HEADER,
    DEFAULT_AWS_REGION,
    DEFAULT_ITEM_TIMEOUT_SECONDS,
    SECRET_ACCESS_KEY_HEADER,
    SESSION_TOKEN_HEADER,
    SSE_RESPONSE_HEADERS,
)
from ..models import OrganizationUser, PermissionSetDetails
from .errors import ScanRequestError
from .orchestrator import ScanOrchestrator, analyze_users_batch
from .sse import encode_event

logger = logging.getLogger(__name__)

RequestBody = Union[str, bytes, Mapping[str, Any]]
DirectoryFactory = Callable[[Optional[Credentials], str, float], Optional[SSOPermissionSetDirectory]]

_REGION_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


@dataclass
class ScanRequest:
    """
    A validated scan request.

    Attributes:
        targets: Permission sets to analyze, in order
        region: AWS region of the caller
        sso_region: Region of the IAM Identity Center instance
        credentials: Credentials from the request headers, if any
        session_id: Client-side session id, echoed for tracing only
    """
    targets: List[PermissionSetDetails]
    region: str
    sso_region: str
    credentials: Optional[Credentials] = None
    session_id: Optional[str] = None


@dataclass
class ScanResponse:
    """
    Framework-neutral HTTP response.

    ``body`` is an async iterator of text chunks for streams, or a
    JSON-compatible value for batch responses.
    """
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None


def default_directory_factory(
    credentials: Optional[Credentials],
    region: str,
    timeout: float = DEFAULT_ITEM_TIMEOUT_SECONDS,
) -> Optional[SSOPermissionSetDirectory]:
    """Build an SSO directory from request credentials or the default chain."""
    return SSOPermissionSetDirectory(session_from_credentials(credentials, region), region, timeout=timeout)


def _build_directory(
    directory_factory: DirectoryFactory,
    credentials: Optional[Credentials],
    region: str,
    timeout: float,
) -> Optional[SSOPermissionSetDirectory]:
    try:
        return directory_factory(credentials, region, timeout)
    except BotoCoreError as e:
        raise ScanRequestError(400, f"Invalid AWS configuration: {e}") from e


def _decode_body(body: RequestBody) -> Dict[str, Any]:
    if isinstance(body, Mapping):
        return dict(body)
    try:
        decoded = json.loads(body)
    except (TypeError, ValueError) as e:
        raise ScanRequestError(400, "Invalid request body") from e
    if not isinstance(decoded, dict):
        raise ScanRequestError(400, "Invalid request body")
    return decoded


def credentials_from_headers(headers: Mapping[str, str]) -> Optional[Credentials]:
    """
    Extract AWS credentials from request headers.

    Header names are matched case-insensitively.

    Returns:
        Credentials, or None if the access key or secret key is missing
    """
    normalized = {name.lower(): value for name, value in headers.items()}
    access_key_id = normalized.get(ACCESS_KEY_ID_HEADER)
    secret_access_key = normalized.get(SECRET_ACCESS_KEY_HEADER)
    if not access_key_id or not secret_access_key:
        return None
    return Credentials(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        session_token=normalized.get(SESSION_TOKEN_HEADER) or None,
    )


def parse_permission_sets(data: Dict[str, Any]) -> List[PermissionSetDetails]:
    """
    Validate the ``permissionSets`` array of a request.

    Raises:
        ScanRequestError: 400 if the array is missing, empty or has an invalid item
    """
    items = data.get("permissionSets")
    if not isinstance(items, list) or not items:
        raise ScanRequestError(400, "Permission sets array is required")
    try:
        return [PermissionSetDetails.model_validate(item) for item in items]
    except ValidationError as e:
        raise ScanRequestError(400, f"Invalid permission set: {e.errors()[0]['msg']}") from e


def _regions(data: Dict[str, Any]) -> tuple[str, str]:
    region = data.get("region") or DEFAULT_AWS_REGION
    sso_region = data.get("ssoRegion") or region
    for field_name, value in (("region", region), ("ssoRegion", sso_region)):
        if not isinstance(value, str) or not _REGION_PATTERN.match(value):
            raise ScanRequestError(400, f"Invalid {field_name}: {value!r}")
    return region, sso_region


def parse_scan_request(body: RequestBody, headers: Mapping[str, str]) -> ScanRequest:
    """
    Validate a streaming scan request.

    Args:
        body: JSON body, raw or already decoded
        headers: Request headers

    Returns:
        ScanRequest ready to run

    Raises:
        ScanRequestError: 400 for a malformed body, permission set list or region,
            401 when credentials headers are missing
    """
    data = _decode_body(body)
    targets = parse_permission_sets(data)
    region, sso_region = _regions(data)

    credentials = credentials_from_headers(headers)
    if credentials is None:
        raise ScanRequestError(401, "AWS credentials not provided")

    return ScanRequest(
        targets=targets,
        region=region,
        sso_region=sso_region,
        credentials=credentials,
        session_id=data.get("sessionId"),
    )


def build_stream_response(
    request: ScanRequest,
    directory_factory: DirectoryFactory = default_directory_factory,
    item_timeout: float = DEFAULT_ITEM_TIMEOUT_SECONDS,
    cancel: Optional[asyncio.Event] = None,
) -> ScanResponse:
    """
    Start a streaming scan for a validated request.

    Returns:
        200 response whose body yields SSE frames

    Raises:
        ScanRequestError: 400 if the SSO client cannot be created for the region
    """
    orchestrator = ScanOrchestrator(
        request.targets,
        directory=_build_directory(directory_factory, request.credentials, request.sso_region, item_timeout),
        item_timeout=item_timeout,
    )

    async def frames() -> AsyncIterator[str]:
        async for event in orchestrator.events(cancel):
            yield encode_event(event)

    logger.info(
        f"Streaming scan of {len(request.targets)} permission sets "
        f"(region={request.region}, sso_region={request.sso_region}, session={request.session_id})"
    )
    return ScanResponse(status_code=200, headers=dict(SSE_RESPONSE_HEADERS), body=frames())


def _error_response(error: ScanRequestError) -> ScanResponse:
    logger.warning(f"Rejected scan request ({error.status_code}): {error.message}")
    return ScanResponse(
        status_code=error.status_code,
        headers={"Content-Type": "application/json"},
        body={"error": error.message},
    )


def handle_stream_request(
    body: RequestBody,
    headers: Mapping[str, str],
    directory_factory: DirectoryFactory = default_directory_factory,
    item_timeout: float = DEFAULT_ITEM_TIMEOUT_SECONDS,
    cancel: Optional[asyncio.Event] = None,
) -> ScanResponse:
    """
    Handle a streaming scan request end to end.

    Validation errors become a 400/401 response before the stream starts.
    """
    try:
        request = parse_scan_request(body, headers)
        return build_stream_response(request, directory_factory, item_timeout, cancel)
    except ScanRequestError as e:
        return _error_response(e)


async def handle_batch_request(
    body: RequestBody,
    headers: Mapping[str, str],
    directory_factory: DirectoryFactory = default_directory_factory,
    item_timeout: float = DEFAULT_ITEM_TIMEOUT_SECONDS,
) -> ScanResponse:
    """
    Handle a batch analysis request.

    With ``analysisType == "permission-sets"`` the body carries
    ``permissionSets``; otherwise it carries ``users`` with their account
    access. Header credentials are optional here; without them the default
    credential chain is used.

    Returns:
        200 response with a BatchScanResult body, or a 400 error response
    """
    try:
        data = _decode_body(body)
        region, sso_region = _regions(data)
        credentials = credentials_from_headers(headers)

        if data.get("analysisType") == "permission-sets":
            targets = parse_permission_sets(data)
            logger.info(f"Analyzing risk for {len(targets)} permission sets (sso_region={sso_region})")
            orchestrator = ScanOrchestrator(
                targets,
                directory=_build_directory(directory_factory, credentials, sso_region, item_timeout),
                item_timeout=item_timeout,
            )
            result = await orchestrator.run_batch()
        else:
            users = _parse_users(data)
            logger.info(f"Analyzing risk for {len(users)} users (sso_region={sso_region})")
            result = await analyze_users_batch(
                users,
                directory=_build_directory(directory_factory, credentials, sso_region, item_timeout),
                item_timeout=item_timeout,
            )
    except ScanRequestError as e:
        return _error_response(e)

    logger.info(
        f"Batch analysis complete: {result.summary.total_findings} findings "
        f"across {result.summary.total_profiles} profiles"
    )
    return ScanResponse(
        status_code=200,
        headers={"Content-Type": "application/json"},
        body=result.to_json_dict(),
    )


def _parse_users(data: Dict[str, Any]) -> List[OrganizationUser]:
    items = data.get("users")
    if not isinstance(items, list):
        raise ScanRequestError(400, "Users array is required for user-based analysis")
    try:
        return [OrganizationUser.model_validate(item) for item in items]
    except ValidationError as e:
        raise ScanRequestError(400, f"Invalid user: {e.errors()[0]['msg']}") from e
