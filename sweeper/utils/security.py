"""Input validation and log sanitization for the account sweeper.

Operator-supplied values (protection tag, region list, SNS topic ARN) are
checked before the engine starts. Provider error text can echo request
details back (presigned S3 URLs, session tokens), so anything that reaches a
log line or the report goes through LogSanitizer first.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern

REGION_PATTERN = re.compile(r"^[a-z]{2}(-[a-z]+)+-[0-9]$")
ACCOUNT_ID_PATTERN = re.compile(r"^[0-9]{12}$")

# AWS tag character set
TAG_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9\s_.:/=+\-@]+$")
TAG_VALUE_PATTERN = re.compile(r"^[a-zA-Z0-9\s_.:/=+\-@]*$")

# Shell and template metacharacters; never legitimate in a region or ARN
UNSAFE_CHARACTERS = frozenset("<>{}[]|\\`$;!&*()\"'\n\r\t")

MAX_TAG_KEY_LENGTH = 128
MAX_TAG_VALUE_LENGTH = 256
MAX_REGION_LENGTH = 20
MAX_ARN_LENGTH = 2048

ARN_PARTITIONS = ("aws", "aws-cn", "aws-us-gov")


@dataclass
class ValidationResult:
    """Result of input validation."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    sanitized_value: Optional[Any] = None

    @classmethod
    def valid(cls, sanitized_value: Any = None) -> "ValidationResult":
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def invalid(cls, errors: List[str]) -> "ValidationResult":
        return cls(is_valid=False, errors=errors)

    @classmethod
    def from_errors(cls, errors: List[str], value: Any) -> "ValidationResult":
        return cls.invalid(errors) if errors else cls.valid(value)


def _shape_errors(
    label: str,
    value: str,
    max_length: int,
    pattern: Optional[Pattern] = None,
    reject_unsafe: bool = False,
) -> List[str]:
    errors = []
    if len(value) > max_length:
        errors.append(f"{label} exceeds maximum length of {max_length}")
    if reject_unsafe and any(c in UNSAFE_CHARACTERS for c in value):
        errors.append(f"{label} contains potentially dangerous characters")
    if pattern is not None and not pattern.match(value):
        errors.append(f"{label} contains invalid characters")
    return errors


class InputValidator:
    """Validates operator-supplied configuration values."""

    @staticmethod
    def validate_region(region: str) -> ValidationResult:
        """
        Validate an AWS region name.

        Args:
            region: The region to validate

        Returns:
            ValidationResult with validation status and any errors
        """
        if not region:
            return ValidationResult.invalid(["Region cannot be empty"])

        errors = _shape_errors("Region", region, MAX_REGION_LENGTH, reject_unsafe=True)
        if not REGION_PATTERN.match(region):
            errors.append(f"Region '{region}' does not match expected pattern (e.g., us-east-1)")
        return ValidationResult.from_errors(errors, region)

    @staticmethod
    def validate_account_id(account_id: str) -> ValidationResult:
        """Validate a 12-digit AWS account ID."""
        if not account_id or not ACCOUNT_ID_PATTERN.match(account_id):
            return ValidationResult.invalid(["Account ID must be exactly 12 digits"])
        return ValidationResult.valid(account_id)

    @staticmethod
    def validate_tag_key(key: str) -> ValidationResult:
        if not key:
            return ValidationResult.invalid(["Tag key cannot be empty"])
        errors = _shape_errors("Tag key", key, MAX_TAG_KEY_LENGTH, TAG_KEY_PATTERN)
        return ValidationResult.from_errors(errors, key)

    @staticmethod
    def validate_tag_value(value: str) -> ValidationResult:
        """Validate a tag value. Empty values are allowed."""
        errors = _shape_errors("Tag value", value or "", MAX_TAG_VALUE_LENGTH, TAG_VALUE_PATTERN)
        return ValidationResult.from_errors(errors, value)

    @staticmethod
    def validate_arn(arn: str) -> ValidationResult:
        """
        Validate an AWS ARN.

        The sanitized value is the ARN split into its components
        (partition, service, region, account, resource).

        Args:
            arn: The ARN to validate

        Returns:
            ValidationResult with validation status and any errors
        """
        if not arn:
            return ValidationResult.invalid(["ARN cannot be empty"])

        errors = _shape_errors("ARN", arn, MAX_ARN_LENGTH, reject_unsafe=True)
        parts = arn.split(":", 5)
        if len(parts) < 6:
            errors.append("ARN does not have enough components")
            return ValidationResult.invalid(errors)

        prefix, partition, service, region, account, resource = parts
        if prefix != "arn" or partition not in ARN_PARTITIONS:
            errors.append("ARN must start with 'arn:aws'")
        if not service or not resource:
            errors.append("ARN is missing its service or resource")
        if region and not REGION_PATTERN.match(region):
            errors.append(f"ARN region '{region}' is not a valid region")
        if account and not ACCOUNT_ID_PATTERN.match(account):
            errors.append("ARN account must be exactly 12 digits")

        components = {
            "partition": partition,
            "service": service,
            "region": region,
            "account": account,
            "resource": resource,
        }
        return ValidationResult.from_errors(errors, components)


class LogSanitizer:
    """Redacts credentials from text headed for logs and reports."""

    SENSITIVE_PATTERNS = [
        (re.compile(r"(AKIA|ASIA)[0-9A-Z]{16}"), "[REDACTED_ACCESS_KEY]"),
        # presigned URL query parameters
        (re.compile(r"(?i)(X-Amz-(Signature|Credential|Security-Token))=[^&\s]+"), r"\1=[REDACTED]"),
        (re.compile(r"(?i)password\s*[=:]\s*\S+"), "password=[REDACTED]"),
        (re.compile(r"(?i)secret\s*[=:]\s*\S+"), "secret=[REDACTED]"),
        (re.compile(r"(?i)(?<!-)token\s*[=:]\s*\S+"), "token=[REDACTED]"),
        (re.compile(r"(?i)api[_-]?key\s*[=:]\s*\S+"), "api_key=[REDACTED]"),
    ]

    SENSITIVE_KEYS = ("password", "secret", "token", "credential", "auth")

    @classmethod
    def sanitize(cls, message: str) -> str:
        """Return message with credentials replaced by placeholders."""
        for pattern, replacement in cls.SENSITIVE_PATTERNS:
            message = pattern.sub(replacement, message)
        return message

    @classmethod
    def sanitize_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively sanitize a dictionary; values under sensitive keys are dropped."""
        return {key: cls._sanitize_value(key, value) for key, value in data.items()}

    @classmethod
    def _sanitize_value(cls, key: str, value: Any) -> Any:
        if any(s in key.lower() for s in cls.SENSITIVE_KEYS):
            return "[REDACTED]"
        if isinstance(value, str):
            return cls.sanitize(value)
        if isinstance(value, dict):
            return cls.sanitize_dict(value)
        if isinstance(value, list):
            return [cls.sanitize(v) if isinstance(v, str) else v for v in value]
        return value
