"""Custom exceptions and error codes."""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the API."""

    # Authentication errors (401)
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"

    # Authorization errors (403)
    FORBIDDEN = "FORBIDDEN"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Not found errors (404)
    USER_NOT_FOUND = "USER_NOT_FOUND"
    NOTIFICATION_RULE_NOT_FOUND = "NOTIFICATION_RULE_NOT_FOUND"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_NOTIFICATION_RULE = "INVALID_NOTIFICATION_RULE"
    INVALID_NOTIFICATION_SETTINGS = "INVALID_NOTIFICATION_SETTINGS"
    INVALID_DIGEST_FREQUENCY = "INVALID_DIGEST_FREQUENCY"

    # Conflict errors (409)
    SETTINGS_CONFLICT = "SETTINGS_CONFLICT"

    # Rate limiting (429)
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    MAIL_DELIVERY_FAILED = "MAIL_DELIVERY_FAILED"


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Any | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ) -> None:
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=401,
        )


class InsufficientPermissionsError(AppException):
    """User does not have sufficient permissions."""

    def __init__(self, required_role: str = "admin") -> None:
        super().__init__(
            error_code=ErrorCode.INSUFFICIENT_PERMISSIONS,
            message=f"Insufficient permissions. Required role: {required_role}",
            status_code=403,
            details={"required_role": required_role},
        )


class NotificationRuleNotFoundError(AppException):
    """Notification rule not found."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(
            error_code=ErrorCode.NOTIFICATION_RULE_NOT_FOUND,
            message=f"Notification rule not found: {rule_id}",
            status_code=404,
            details={"rule_id": rule_id},
        )


class InvalidNotificationRuleError(AppException):
    """Notification rule failed validation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_NOTIFICATION_RULE,
            message=message,
            status_code=400,
            details={"field": field} if field else None,
        )


class InvalidNotificationSettingsError(AppException):
    """Global notification settings failed validation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_NOTIFICATION_SETTINGS,
            message=message,
            status_code=400,
            details={"field": field} if field else None,
        )


class SettingsConflictError(AppException):
    """Notification settings were modified by someone else."""

    def __init__(self, expected_version: int | None = None) -> None:
        super().__init__(
            error_code=ErrorCode.SETTINGS_CONFLICT,
            message="Notification settings were modified concurrently; reload and retry",
            status_code=409,
            details={"expected_version": expected_version},
        )


class InvalidDigestFrequencyError(AppException):
    """Digest runs only exist for the periodic frequencies."""

    def __init__(self, frequency: str) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_DIGEST_FREQUENCY,
            message=f"Digest frequency must be hourly, daily or weekly, got: {frequency}",
            status_code=400,
            details={"frequency": frequency},
        )


class MailDeliveryError(AppException):
    """The mail transport rejected or failed to deliver a message."""

    def __init__(self, recipient: str, reason: str) -> None:
        super().__init__(
            error_code=ErrorCode.MAIL_DELIVERY_FAILED,
            message=f"Failed to deliver mail to {recipient}: {reason}",
            status_code=502,
            details={"recipient": recipient},
        )
