"""
Error taxonomy for notification delivery.

Provider clients raise these; channel adapters turn them into a SendOutcome so no
error from a single channel attempt escapes to the caller of notify().
"""
from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    CHANNEL_DISABLED = "CHANNEL_DISABLED"
    RECIPIENT_NOT_FOUND = "RECIPIENT_NOT_FOUND"
    RECIPIENT_DATA_MISSING = "RECIPIENT_DATA_MISSING"
    PROVIDER_REJECTED = "PROVIDER_REJECTED"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    TOKEN_DEAD = "TOKEN_DEAD"
    PAYLOAD_INVALID = "PAYLOAD_INVALID"


class NotificationError(Exception):
    """Base class; every subclass maps to one ErrorCode stored on the attempt."""

    code: ErrorCode = ErrorCode.PROVIDER_REJECTED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationMissing(NotificationError):
    """Channel disabled for the process lifetime (credential absent at startup)."""

    code = ErrorCode.CHANNEL_DISABLED


class RecipientNotFound(NotificationError):
    """No such user, or the user is inactive. Every step of the chain is skipped."""

    code = ErrorCode.RECIPIENT_NOT_FOUND


class RecipientDataMissing(NotificationError):
    """No phone / push token for this recipient. Terminal for that channel only."""

    code = ErrorCode.RECIPIENT_DATA_MISSING


class ProviderRejected(NotificationError):
    """Non-2xx response or non-success result code from the provider."""

    code = ErrorCode.PROVIDER_REJECTED

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderTimeout(ProviderRejected):
    code = ErrorCode.PROVIDER_TIMEOUT


class TokenInvalid(ProviderRejected):
    """Push provider says the device token is permanently unusable."""

    code = ErrorCode.TOKEN_DEAD


class PayloadInvalid(NotificationError, ValueError):
    """A template variable required by the notification type is missing."""

    code = ErrorCode.PAYLOAD_INVALID
