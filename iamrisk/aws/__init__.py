"""AWS integration library for iamrisk permission set analysis."""

from .sessions import Credentials, session_from_credentials
from .sso import SSOPermissionSetDirectory, instance_arn_from_permission_set_arn

__all__ = [
    "Credentials",
    "session_from_credentials",
    "SSOPermissionSetDirectory",
    "instance_arn_from_permission_set_arn",
]
