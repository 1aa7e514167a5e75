"""AWS session management utilities."""

from dataclasses import dataclass
from typing import Optional

from boto3.session import Session


@dataclass(frozen=True)
class Credentials:
    """
    Caller-supplied AWS credentials.

    Attributes:
        access_key_id: AWS access key ID
        secret_access_key: AWS secret access key
        session_token: Session token for temporary credentials, if any
    """
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None

    def __repr__(self) -> str:
        return f"Credentials(access_key_id={self.access_key_id!r}, secret_access_key='***')"


def session_from_credentials(
    credentials: Optional[Credentials],
    region: str
) -> Session:
    """
    Build a boto3 session for a region.

    Args:
        credentials: Explicit credentials, or None to use the default provider chain
        region: Region to bind the session to

    Returns:
        boto3 Session
    """
    if credentials is None:
        return Session(region_name=region)

    return Session(
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        aws_session_token=credentials.session_token,
        region_name=region
    )
