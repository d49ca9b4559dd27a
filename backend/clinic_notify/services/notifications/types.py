"""Shared types for notification dispatch. Same shapes regardless of provider."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from clinic_notify.core.errors import ErrorCode, NotificationError


class NotificationType(str, Enum):
    RESERVATION_CONFIRMED = "RESERVATION_CONFIRMED"
    RESERVATION_CANCELLED = "RESERVATION_CANCELLED"
    RESERVATION_REMINDER = "RESERVATION_REMINDER"
    REVIEW_REQUEST = "REVIEW_REQUEST"
    NEW_RESERVATION = "NEW_RESERVATION"
    NEW_REVIEW = "NEW_REVIEW"
    UNANSWERED_CHAT = "UNANSWERED_CHAT"


class Channel(str, Enum):
    PUSH = "PUSH"
    BUSINESS_MESSAGE = "BUSINESS_MESSAGE"
    SMS = "SMS"


class DeliveryStatus(str, Enum):
    SENT = "SENT"
    FAILED = "FAILED"


class Topology(str, Enum):
    PUSH_ONLY = "PUSH_ONLY"
    FALLBACK = "FALLBACK"  # business message, then SMS
    PARALLEL = "PARALLEL"  # push ∥ (business message, then SMS)


FAILED = "FAILED"


@dataclass(frozen=True)
class RecipientContact:
    """Read-only projection of a users row: what the channels need to reach someone."""
    user_id: int
    name: str | None = None
    phone: str | None = None
    push_token: str | None = None
    active: bool = True


@dataclass(frozen=True)
class PushContent:
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class BusinessMessageContent:
    template_code: str
    variables: dict[str, str]
    buttons: list[dict[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class SmsContent:
    text: str


@dataclass(frozen=True)
class ChannelContent:
    """Per-channel content for one notification. A channel with None content is not used."""
    push: PushContent | None = None
    business_message: BusinessMessageContent | None = None
    sms: SmsContent | None = None


@dataclass(frozen=True)
class SendOutcome:
    """What an adapter returns. Adapters never raise."""
    success: bool
    provider_message_id: str | None = None
    error_code: ErrorCode | None = None
    error_message: str | None = None

    @classmethod
    def ok(cls, provider_message_id: str | None = None) -> SendOutcome:
        return cls(success=True, provider_message_id=provider_message_id)

    @classmethod
    def from_error(cls, exc: NotificationError) -> SendOutcome:
        return cls(success=False, error_code=exc.code, error_message=exc.message)


@dataclass(frozen=True)
class AttemptResult:
    """One logged step of a chain (one DeliveryAttempt row)."""
    channel: Channel
    status: DeliveryStatus
    error_code: ErrorCode | None = None
    error_message: str | None = None
    provider_message_id: str | None = None

    @property
    def sent(self) -> bool:
        return self.status == DeliveryStatus.SENT


@dataclass
class BranchOutcome:
    """Result of one chain branch: push alone, or business message with SMS fallback."""
    attempts: list[AttemptResult] = field(default_factory=list)

    @property
    def channel(self) -> Channel | None:
        """First channel that succeeded, or None."""
        for a in self.attempts:
            if a.sent:
                return a.channel
        return None

    @property
    def success(self) -> bool:
        return self.channel is not None

    @property
    def result(self) -> str:
        """'PUSH' | 'BUSINESS_MESSAGE' | 'SMS' | 'FAILED'."""
        ch = self.channel
        return ch.value if ch is not None else FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result,
            "attempts": [
                {
                    "channel": a.channel.value,
                    "status": a.status.value,
                    "error_code": a.error_code.value if a.error_code else None,
                    "error_message": a.error_message,
                }
                for a in self.attempts
            ],
        }


@dataclass
class ChainOutcome:
    """Combined result of notify(): one branch per independent chain the type uses."""
    recipient_id: int
    type: NotificationType | None
    push: BranchOutcome | None = None
    message: BranchOutcome | None = None

    @property
    def branches(self) -> list[BranchOutcome]:
        return [b for b in (self.push, self.message) if b is not None]

    @property
    def success(self) -> bool:
        return any(b.success for b in self.branches)

    @property
    def attempts(self) -> list[AttemptResult]:
        return [a for b in self.branches for a in b.attempts]

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient_id": self.recipient_id,
            "type": self.type.value if self.type else None,
            "success": self.success,
            "push": self.push.to_dict() if self.push else None,
            "message": self.message.to_dict() if self.message else None,
        }


@dataclass(frozen=True)
class FanOutResult:
    success: int = 0
    failed: int = 0

    def __add__(self, other: FanOutResult) -> FanOutResult:
        return FanOutResult(self.success + other.success, self.failed + other.failed)

    def to_dict(self) -> dict[str, int]:
        return {"success": self.success, "failed": self.failed}
