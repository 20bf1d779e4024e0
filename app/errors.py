"""Typed application errors.

Every error carries a machine-readable ``code`` and the HTTP ``status_code``
the API layer should answer with, so services can raise them without knowing
anything about FastAPI.
"""

from __future__ import annotations

from typing import Any, Optional


class ReminderServiceError(Exception):
    """Base exception for the reminders backend."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Any] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class InvalidInputError(ReminderServiceError):
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class PhoneNotVerifiedError(ReminderServiceError):
    """Recipient phone is unknown or has not completed verification."""

    def __init__(self, message: str = "Recipient phone is not verified", details: Optional[Any] = None):
        super().__init__(message, code="PHONE_NOT_VERIFIED", status_code=422, details=details)


class NotFoundError(ReminderServiceError):
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class InvalidOrExpiredCodeError(ReminderServiceError):
    """Verification code rejected.

    ``reason`` is one of ``no_pending_code``, ``mismatch``, ``expired`` or
    ``already_used``; it is logged but never shown to the caller.
    """

    def __init__(self, reason: str, message: str = "Invalid or expired code"):
        self.reason = reason
        super().__init__(message, code="INVALID_OR_EXPIRED_CODE", status_code=400)


class PhoneAlreadyVerifiedError(ReminderServiceError):
    def __init__(self, message: str = "Phone number is already verified", details: Optional[Any] = None):
        super().__init__(message, code="PHONE_ALREADY_VERIFIED", status_code=409, details=details)


class SmsDeliveryError(ReminderServiceError):
    def __init__(self, message: str = "SMS delivery failed", details: Optional[Any] = None):
        super().__init__(message, code="SMS_DELIVERY_FAILED", status_code=502, details=details)
