"""
IAM Identity Center (SSO Admin) permission set lookups.

This module reads permission sets and their attached policies from the SSO
Admin API. Lookups are best-effort: a ClientError is logged and turned into
None or an empty list so that callers can fall back to the data they already
have.
"""

import logging
from typing import List, Optional

from boto3.session import Session
from botocore.config import Config
from botocore.exceptions import ClientError
from mypy_boto3_sso_admin.client import SSOAdminClient

from ..constants import DEFAULT_ITEM_TIMEOUT_SECONDS, SSO_INSTANCE_ARN_TEMPLATE
from ..models import CustomerManagedPolicyReference, PermissionSetDetails

logger = logging.getLogger(__name__)


def instance_arn_from_permission_set_arn(permission_set_arn: str) -> Optional[str]:
    """
    Derive the SSO instance ARN from a permission set ARN.

    ``arn:aws:sso:::permissionSet/ssoins-abc/ps-def`` maps to
    ``arn:aws:sso:::instance/ssoins-abc``.

    Args:
        permission_set_arn: Full permission set ARN

    Returns:
        Instance ARN, or None if the ARN does not have the expected shape
    """
    parts = permission_set_arn.split("/")
    if len(parts) < 3 or not parts[0].endswith(":permissionSet") or not parts[1]:
        return None
    return SSO_INSTANCE_ARN_TEMPLATE.format(instance_id=parts[1])


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class SSOPermissionSetDirectory:
    """Read-only view of the permission sets in an IAM Identity Center instance."""

    def __init__(
        self,
        session: Session,
        region: str,
        timeout: float = DEFAULT_ITEM_TIMEOUT_SECONDS,
    ) -> None:
        """
        Create an SSO Admin client whose calls give up after ``timeout``.

        Args:
            session: boto3 session to create the client from
            region: Region of the IAM Identity Center instance
            timeout: Connect and read timeout in seconds for each API call
        """
        self.region = region
        boto_config = Config(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 1, "mode": "standard"},
        )
        self.client: SSOAdminClient = session.client("sso-admin", region_name=region, config=boto_config)

    def find_instance_arn(self) -> Optional[str]:
        """
        Return the ARN of the first SSO instance in the region.

        Returns:
            Instance ARN, or None if there is no instance or listing is denied
        """
        try:
            paginator = self.client.get_paginator("list_instances")
            for page in paginator.paginate():
                for instance in page.get("Instances", []):
                    instance_arn = instance.get("InstanceArn")
                    if instance_arn:
                        logger.info(f"Found SSO instance {instance_arn} in {self.region}")
                        return instance_arn
        except ClientError as e:
            logger.warning(f"Could not list SSO instances in {self.region}: {_error_code(e) or e}")
            return None

        logger.info(f"No SSO instance found in {self.region}")
        return None

    def list_permission_sets(self, instance_arn: str) -> List[str]:
        """
        List the permission set ARNs of an instance.

        Args:
            instance_arn: SSO instance ARN

        Returns:
            Permission set ARNs, or an empty list on error
        """
        arns: List[str] = []
        try:
            paginator = self.client.get_paginator("list_permission_sets")
            for page in paginator.paginate(InstanceArn=instance_arn):
                arns.extend(page.get("PermissionSets", []))
        except ClientError as e:
            logger.warning(f"Could not list permission sets for {instance_arn}: {_error_code(e) or e}")
            return []
        return arns

    def describe_permission_set(self, instance_arn: str, permission_set_arn: str) -> Optional[PermissionSetDetails]:
        """
        Fetch a permission set with its managed, customer managed and inline policies.

        A missing inline policy or customer managed policy listing does not
        fail the lookup.

        Args:
            instance_arn: SSO instance ARN
            permission_set_arn: Permission set ARN

        Returns:
            PermissionSetDetails, or None if the permission set could not be read
        """
        try:
            response = self.client.describe_permission_set(
                InstanceArn=instance_arn,
                PermissionSetArn=permission_set_arn
            )
            permission_set = response.get("PermissionSet")
            if not permission_set:
                return None

            managed_policies: List[str] = []
            paginator = self.client.get_paginator("list_managed_policies_in_permission_set")
            for page in paginator.paginate(InstanceArn=instance_arn, PermissionSetArn=permission_set_arn):
                managed_policies.extend(
                    policy["Arn"] for policy in page.get("AttachedManagedPolicies", []) if policy.get("Arn")
                )
        except ClientError as e:
            logger.warning(f"Could not get details for permission set {permission_set_arn}: {_error_code(e) or e}")
            return None

        return PermissionSetDetails(
            arn=permission_set_arn,
            name=permission_set.get("Name") or permission_set_arn.split("/")[-1],
            description=permission_set.get("Description"),
            session_duration=permission_set.get("SessionDuration"),
            managed_policies=managed_policies,
            customer_managed_policies=self._customer_managed_policies(instance_arn, permission_set_arn),
            inline_policy_document=self._inline_policy(instance_arn, permission_set_arn),
        )

    def discover_permission_sets(self, instance_arn: str) -> List[PermissionSetDetails]:
        """
        Describe every permission set in an instance, skipping unreadable ones.

        Args:
            instance_arn: SSO instance ARN

        Returns:
            List of PermissionSetDetails in listing order
        """
        permission_sets: List[PermissionSetDetails] = []
        for arn in self.list_permission_sets(instance_arn):
            details = self.describe_permission_set(instance_arn, arn)
            if details is not None:
                permission_sets.append(details)
        logger.info(f"Discovered {len(permission_sets)} permission sets in {instance_arn}")
        return permission_sets

    def _customer_managed_policies(self, instance_arn: str, permission_set_arn: str) -> List[CustomerManagedPolicyReference]:
        references: List[CustomerManagedPolicyReference] = []
        try:
            paginator = self.client.get_paginator("list_customer_managed_policy_references_in_permission_set")
            for page in paginator.paginate(InstanceArn=instance_arn, PermissionSetArn=permission_set_arn):
                for reference in page.get("CustomerManagedPolicyReferences", []):
                    references.append(CustomerManagedPolicyReference(
                        name=reference["Name"],
                        path=reference.get("Path", "/"),
                    ))
        except ClientError as e:
            logger.warning(
                f"Could not list customer managed policies for {permission_set_arn}: {_error_code(e) or e}"
            )
            return []
        return references

    def _inline_policy(self, instance_arn: str, permission_set_arn: str) -> Optional[str]:
        try:
            response = self.client.get_inline_policy_for_permission_set(
                InstanceArn=instance_arn,
                PermissionSetArn=permission_set_arn
            )
        except ClientError as e:
            # No inline policy or access denied
            logger.debug(f"No inline policy for {permission_set_arn}: {_error_code(e) or e}")
            return None
        return response.get("InlinePolicy") or None
