"""
Constants module for sensitive action tables, service lists and scan defaults.

This module contains the fixed lookup tables the analyzers classify against.
"""

from typing import Dict, List, Tuple

# AWS SSO ARN formats
# arn:aws:sso:::permissionSet/ssoins-1234567890abcdef/ps-1234567890abcdef
# arn:aws:sso:::instance/ssoins-1234567890abcdef
SSO_INSTANCE_ARN_TEMPLATE = "arn:aws:sso:::instance/{instance_id}"

# Account id reported for permission sets analyzed outside any account context
ORGANIZATION_ACCOUNT_ID = "organization"

# Read access to stored data
DATA_ACTIONS = frozenset({
    "s3:GetObject",
    "s3:GetBucketAcl",
    "s3:GetBucketPolicy",
    "dynamodb:GetItem",
    "dynamodb:Query",
    "dynamodb:Scan",
    "rds:DescribeDBInstances",
    "secretsmanager:GetSecretValue",
    "ssm:GetParameter",
    "ssm:GetParametersByPath",
})

# Actions that let a principal widen its own permissions
ESCALATION_ACTIONS = frozenset({
    "iam:CreateRole",
    "iam:AttachRolePolicy",
    "iam:PutRolePolicy",
    "iam:AssumeRole",
    "iam:PassRole",
    "sts:AssumeRole",
    "lambda:InvokeFunction",
    "lambda:CreateFunction",
    "ec2:RunInstances",
})

DESTRUCTIVE_ACTIONS = frozenset({
    "s3:DeleteBucket",
    "s3:DeleteObject",
    "dynamodb:DeleteTable",
    "rds:DeleteDBInstance",
    "ec2:TerminateInstances",
    "cloudformation:DeleteStack",
})

# Services that hold sensitive data
SENSITIVE_SERVICES = frozenset({
    "secretsmanager",
    "ssm",
    "kms",
    "certificatemanager",
    "s3",
    "dynamodb",
    "rds",
    "redshift",
    "elasticsearch",
    "opensearch",
})

# AWS managed policies that grant high privileges
HIGH_PRIVILEGE_POLICIES = frozenset({
    "arn:aws:iam::aws:policy/AdministratorAccess",
    "arn:aws:iam::aws:policy/PowerUserAccess",
    "arn:aws:iam::aws:policy/IAMFullAccess",
    "arn:aws:iam::aws:policy/SecurityAudit",
    "arn:aws:iam::aws:policy/ReadOnlyAccess",
    "arn:aws:iam::aws:policy/job-function/SystemAdministrator",
    "arn:aws:iam::aws:policy/job-function/NetworkAdministrator",
    "arn:aws:iam::aws:policy/job-function/DatabaseAdministrator",
})

# Managed policy name substrings mapped to the service they most likely cover.
# Name matching only: this is a guess, not what the policy actually grants.
MANAGED_POLICY_SERVICE_PATTERNS: List[Tuple[str, str]] = [
    ("s3", "s3"),
    ("ec2", "ec2"),
    ("iam", "iam"),
    ("lambda", "lambda"),
    ("rds", "rds"),
    ("dynamodb", "dynamodb"),
    ("cloudformation", "cloudformation"),
    ("cloudwatch", "cloudwatch"),
]

# Score thresholds for each risk level, highest first
RISK_LEVEL_THRESHOLDS: List[Tuple[int, str]] = [
    (9, "CRITICAL"),
    (7, "HIGH"),
    (5, "MEDIUM"),
    (3, "LOW"),
]

MIN_RISK_SCORE = 1
MAX_RISK_SCORE = 10

# Findings at or above this severity count as high severity when scoring
HIGH_SEVERITY_THRESHOLD = 7

RISK_LEVEL_DESCRIPTIONS: Dict[str, str] = {
    "CRITICAL": "Immediate attention required",
    "HIGH": "Review recommended",
    "MEDIUM": "Monitor closely",
    "LOW": "Generally acceptable",
    "INFO": "Informational only",
}

# Scan sessions older than this are discarded on restore
SCAN_SESSION_TIMEOUT_SECONDS = 60 * 60

# Upper bound for each network-bound step of a scan
DEFAULT_ITEM_TIMEOUT_SECONDS = 30.0

DEFAULT_AWS_REGION = "us-east-1"

# Credential headers expected on scan requests
ACCESS_KEY_ID_HEADER = "x-aws-access-key-id"
SECRET_ACCESS_KEY_HEADER = "x-aws-secret-access-key"
SESSION_TOKEN_HEADER = "x-aws-session-token"

SSE_RESPONSE_HEADERS: Dict[str, str] = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}
