"""
Per-type content: push title/body/data, AlimTalk template variables + buttons, SMS fallback text.

Payloads are flat str -> str maps. REQUIRED_PAYLOAD_KEYS lists what each type needs;
validate_payload() checks it before any content is built so a missing key fails the
whole notification instead of sending a half-filled message.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Mapping
from zoneinfo import ZoneInfo

from clinic_notify.core.channel_config import ChannelConfig
from clinic_notify.core.errors import PayloadInvalid
from clinic_notify.services.notifications.types import (
    BusinessMessageContent,
    ChannelContent,
    NotificationType,
    PushContent,
    RecipientContact,
    SmsContent,
)

REQUIRED_PAYLOAD_KEYS: dict[NotificationType, tuple[str, ...]] = {
    NotificationType.RESERVATION_CONFIRMED: ("reservation_id", "hospital_name", "reserved_at"),
    NotificationType.RESERVATION_CANCELLED: ("reservation_id",),
    NotificationType.RESERVATION_REMINDER: ("reservation_id", "hospital_name"),
    NotificationType.REVIEW_REQUEST: ("reservation_id", "hospital_id", "hospital_name"),
    NotificationType.NEW_RESERVATION: ("hospital_id", "patient_name", "treatment_name"),
    NotificationType.NEW_REVIEW: ("hospital_id",),
    NotificationType.UNANSWERED_CHAT: ("hospital_id", "unanswered_count"),
}

# Payload field copied into delivery_attempts.correlation_key (what the anti-join matches on)
CORRELATION_KEY_FIELD: dict[NotificationType, str] = {
    NotificationType.RESERVATION_CONFIRMED: "reservation_id",
    NotificationType.RESERVATION_CANCELLED: "reservation_id",
    NotificationType.RESERVATION_REMINDER: "reservation_id",
    NotificationType.REVIEW_REQUEST: "reservation_id",
    NotificationType.NEW_RESERVATION: "hospital_id",
    NotificationType.NEW_REVIEW: "hospital_id",
    NotificationType.UNANSWERED_CHAT: "hospital_id",
}

# App screen opened when the push is tapped
PUSH_SCREENS: dict[NotificationType, str] = {
    NotificationType.RESERVATION_CONFIRMED: "ReservationDetail",
    NotificationType.RESERVATION_CANCELLED: "ReservationDetail",
    NotificationType.RESERVATION_REMINDER: "ReservationDetail",
    NotificationType.REVIEW_REQUEST: "WriteReview",
    NotificationType.NEW_RESERVATION: "DashboardReservations",
    NotificationType.NEW_REVIEW: "DashboardReviews",
    NotificationType.UNANSWERED_CHAT: "DashboardChats",
}


def validate_payload(ntype: NotificationType, payload: Mapping[str, Any] | None) -> dict[str, str]:
    """Return a str -> str copy of payload. Raises PayloadInvalid if a required key is missing or blank."""
    clean = {str(k): "" if v is None else str(v) for k, v in (payload or {}).items()}
    missing = [k for k in REQUIRED_PAYLOAD_KEYS[ntype] if not clean.get(k, "").strip()]
    if missing:
        raise PayloadInvalid(f"{ntype.value} payload missing {', '.join(missing)}")
    return clean


def correlation_key(ntype: NotificationType, payload: Mapping[str, str]) -> str | None:
    value = payload.get(CORRELATION_KEY_FIELD[ntype])
    return str(value) if value else None


def build_content(
    ntype: NotificationType,
    payload: Mapping[str, str],
    contact: RecipientContact | None,
    config: ChannelConfig,
) -> ChannelContent:
    """Build every channel's content for this type. payload must already be validated."""
    builder = _BUILDERS[ntype]
    try:
        return builder(payload, contact, config)
    except (KeyError, ValueError) as e:
        # e.g. reserved_at that isn't ISO 8601
        raise PayloadInvalid(f"{ntype.value} payload invalid: {e}") from e


# --- Formatting helpers ---


def _local(iso: str, tz_name: str) -> datetime:
    dt = datetime.fromisoformat(iso.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(ZoneInfo(tz_name))


def format_push_datetime(iso: str, tz_name: str) -> str:
    """'2026-03-05T05:30:00Z' -> '2026.03.05 14:30' in the clinic's timezone."""
    return _local(iso, tz_name).strftime("%Y.%m.%d %H:%M")


def format_message_datetime(iso: str, tz_name: str) -> tuple[str, str]:
    """-> ('2026년 3월 5일', '14:30') in the clinic's timezone."""
    d = _local(iso, tz_name)
    return f"{d.year}년 {d.month}월 {d.day}일", d.strftime("%H:%M")


def _push_data(ntype: NotificationType, payload: Mapping[str, str], **extra: str) -> dict[str, str]:
    data = {"type": ntype.value, "screen": PUSH_SCREENS[ntype]}
    for key in ("reservation_id", "hospital_id"):
        if payload.get(key):
            data[key] = payload[key]
    data.update(extra)
    return data


# --- Builders, one per type ---


def _reservation_confirmed(payload, contact, config: ChannelConfig) -> ChannelContent:
    tz = config.clinic_timezone
    hospital = payload["hospital_name"]
    treatment = payload.get("treatment_name") or "시술"
    reservation_id = payload["reservation_id"]
    date_str, time_str = format_message_datetime(payload["reserved_at"], tz)
    link = f"{config.deeplink_base}reservation/{reservation_id}"

    push = PushContent(
        title="예약 확정",
        body=f"{hospital} 예약이 확정되었습니다. 예약일: {format_push_datetime(payload['reserved_at'], tz)}",
        data=_push_data(NotificationType.RESERVATION_CONFIRMED, payload, link=link),
    )
    message = None
    template_code = config.template_codes.get(NotificationType.RESERVATION_CONFIRMED.value)
    if template_code:
        message = BusinessMessageContent(
            template_code=template_code,
            variables={
                "patientName": (contact.name if contact else None) or "",
                "hospitalName": hospital,
                "date": date_str,
                "time": time_str,
                "treatmentName": treatment,
                "hospitalAddress": payload.get("hospital_address", ""),
            },
            buttons=[
                {"type": "AL", "name": "예약 확인하기", "schemeAndroid": link, "schemeIos": link},
            ],
        )
    sms = SmsContent(
        text=(
            f"{config.sms_brand_prefix} {hospital} 예약이 확정되었습니다.\n"
            f"예약일시: {date_str} {time_str}\n"
            f"시술: {treatment}"
        )
    )
    return ChannelContent(push=push, business_message=message, sms=sms)


def _reservation_cancelled(payload, contact, config: ChannelConfig) -> ChannelContent:
    reason = payload.get("reason", "").strip()
    body = f"예약이 취소되었습니다. {reason}".strip()
    return ChannelContent(
        push=PushContent(
            title="예약 취소",
            body=body,
            data=_push_data(NotificationType.RESERVATION_CANCELLED, payload),
        ),
        sms=SmsContent(text=f"{config.sms_brand_prefix} {body}"),
    )


def _reservation_reminder(payload, contact, config: ChannelConfig) -> ChannelContent:
    hospital = payload["hospital_name"]
    body = f"내일 {hospital} 예약이 있습니다"
    if payload.get("reserved_at"):
        _, time_str = format_message_datetime(payload["reserved_at"], config.clinic_timezone)
        body = f"내일 {time_str} {hospital} 예약이 있습니다"
    return ChannelContent(
        push=PushContent(
            title="예약 리마인더",
            body=body,
            data=_push_data(NotificationType.RESERVATION_REMINDER, payload),
        ),
        sms=SmsContent(text=f"{config.sms_brand_prefix} {body}"),
    )


def _review_request(payload, contact, config: ChannelConfig) -> ChannelContent:
    hospital = payload["hospital_name"]
    link = f"{config.deeplink_base}review/write?hospitalId={payload['hospital_id']}"
    return ChannelContent(
        push=PushContent(
            title="리뷰를 남겨주세요",
            body=f"{hospital} 방문 어떠셨나요? 솔직한 후기를 남겨주세요",
            data=_push_data(NotificationType.REVIEW_REQUEST, payload, link=link),
        ),
        sms=SmsContent(
            text=f"{config.sms_brand_prefix} {hospital} 방문해 주셔서 감사합니다!\n솔직한 후기를 남겨주세요."
        ),
    )


def _new_reservation(payload, contact, config: ChannelConfig) -> ChannelContent:
    return ChannelContent(
        push=PushContent(
            title="새 예약 접수",
            body=f"새 예약이 접수되었습니다. {payload['patient_name']} / {payload['treatment_name']}",
            data=_push_data(NotificationType.NEW_RESERVATION, payload),
        )
    )


def _new_review(payload, contact, config: ChannelConfig) -> ChannelContent:
    return ChannelContent(
        push=PushContent(
            title="새 리뷰 등록",
            body="새 리뷰가 등록되었습니다. 확인 후 답변해주세요",
            data=_push_data(NotificationType.NEW_REVIEW, payload),
        )
    )


def _unanswered_chat(payload, contact, config: ChannelConfig) -> ChannelContent:
    return ChannelContent(
        push=PushContent(
            title="미답변 문의",
            body=f"24시간 이상 미답변 채팅이 {payload['unanswered_count']}건 있습니다",
            data=_push_data(NotificationType.UNANSWERED_CHAT, payload),
        )
    )


_BUILDERS: dict[NotificationType, Callable[..., ChannelContent]] = {
    NotificationType.RESERVATION_CONFIRMED: _reservation_confirmed,
    NotificationType.RESERVATION_CANCELLED: _reservation_cancelled,
    NotificationType.RESERVATION_REMINDER: _reservation_reminder,
    NotificationType.REVIEW_REQUEST: _review_request,
    NotificationType.NEW_RESERVATION: _new_reservation,
    NotificationType.NEW_REVIEW: _new_review,
    NotificationType.UNANSWERED_CHAT: _unanswered_chat,
}
