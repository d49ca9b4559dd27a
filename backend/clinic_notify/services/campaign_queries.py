"""
Candidate queries for the scheduled campaigns.

Each window is a half-open interval [start, end) computed from an injected `now`, so the
boundaries are testable with synthetic timestamps. Every query anti-joins delivery_attempts:
a reservation (or hospital) that already has an attempt of the campaign's type, SENT or
FAILED, is not a candidate again. Two overlapping runs can still both see a candidate
before either logs it; that duplicate is accepted (no unique constraint).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import String, cast, func
from sqlalchemy.orm import Session

from clinic_notify.core.constants import (
    RESERVATION_STATUS_CONFIRMED,
    RESERVATION_STATUS_DONE,
    REVIEW_REQUEST_DELAY_HOURS,
    REVIEW_REQUEST_WINDOW_HOURS,
    UNANSWERED_CHAT_AGE_HOURS,
    UNANSWERED_CHAT_REALERT_HOURS,
)
from clinic_notify.models.chat_room import ChatRoom
from clinic_notify.models.hospital import Hospital
from clinic_notify.models.reservation import Reservation
from clinic_notify.services.notifications.delivery_log import already_attempted
from clinic_notify.services.notifications.types import NotificationType


@dataclass(frozen=True)
class CampaignCandidate:
    """One notification a campaign should send. recipient_id is None for hospital-wide (staff) alerts."""
    correlation_key: str
    payload: dict[str, str] = field(default_factory=dict)
    recipient_id: int | None = None


def _utc(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _iso_utc(dt: datetime) -> str:
    # SQLite hands back naive datetimes; they are stored as UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def tomorrow_window(now: datetime | None, tz_name: str) -> tuple[datetime, datetime]:
    """
    [local tomorrow 00:00, local day-after 00:00) in the clinic's timezone, returned in UTC.
    At 2026-03-04 09:00 KST this is [2026-03-04 15:00Z, 2026-03-05 15:00Z).
    """
    tz = ZoneInfo(tz_name)
    local_today = _utc(now).astimezone(tz).date()
    start = datetime.combine(local_today + timedelta(days=1), time.min, tzinfo=tz)
    end = datetime.combine(local_today + timedelta(days=2), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def review_request_window(now: datetime | None) -> tuple[datetime, datetime]:
    """[now - 25h, now - 24h): reservations completed about a day ago. Hourly runs tile this without gaps."""
    now = _utc(now)
    end = now - timedelta(hours=REVIEW_REQUEST_DELAY_HOURS)
    return end - timedelta(hours=REVIEW_REQUEST_WINDOW_HOURS), end


def unanswered_chat_cutoff(now: datetime | None) -> datetime:
    """Chats whose last message is strictly older than this count as unanswered."""
    return _utc(now) - timedelta(hours=UNANSWERED_CHAT_AGE_HOURS)


def find_reminder_candidates(db: Session, *, now: datetime | None, tz_name: str) -> list[CampaignCandidate]:
    """CONFIRMED reservations scheduled for local tomorrow with no RESERVATION_REMINDER attempt yet."""
    start, end = tomorrow_window(now, tz_name)
    rows = (
        db.query(Reservation, Hospital.name)
        .join(Hospital, Hospital.hospital_id == Reservation.hospital_id)
        .filter(
            Reservation.status == RESERVATION_STATUS_CONFIRMED,
            Reservation.reserved_at >= start,
            Reservation.reserved_at < end,
            ~already_attempted(
                NotificationType.RESERVATION_REMINDER,
                cast(Reservation.reservation_id, String),
                recipient_id=Reservation.user_id,
            ),
        )
        .order_by(Reservation.reserved_at, Reservation.reservation_id)
        .all()
    )
    return [
        CampaignCandidate(
            recipient_id=r.user_id,
            correlation_key=str(r.reservation_id),
            payload={
                "reservation_id": str(r.reservation_id),
                "hospital_name": hospital_name,
                "reserved_at": _iso_utc(r.reserved_at),
            },
        )
        for r, hospital_name in rows
    ]


def find_review_request_candidates(db: Session, *, now: datetime | None) -> list[CampaignCandidate]:
    """DONE reservations with updated_at in review_request_window(now) and no REVIEW_REQUEST attempt."""
    start, end = review_request_window(now)
    rows = (
        db.query(Reservation, Hospital.name)
        .join(Hospital, Hospital.hospital_id == Reservation.hospital_id)
        .filter(
            Reservation.status == RESERVATION_STATUS_DONE,
            Reservation.updated_at >= start,
            Reservation.updated_at < end,
            ~already_attempted(
                NotificationType.REVIEW_REQUEST,
                cast(Reservation.reservation_id, String),
            ),
        )
        .order_by(Reservation.updated_at, Reservation.reservation_id)
        .all()
    )
    return [
        CampaignCandidate(
            recipient_id=r.user_id,
            correlation_key=str(r.reservation_id),
            payload={
                "reservation_id": str(r.reservation_id),
                "hospital_id": str(r.hospital_id),
                "hospital_name": hospital_name,
            },
        )
        for r, hospital_name in rows
    ]


def find_unanswered_chat_candidates(db: Session, *, now: datetime | None) -> list[CampaignCandidate]:
    """
    One candidate per hospital with chats unread by staff for over 24h, unless that
    hospital already got an UNANSWERED_CHAT alert in the last 24h. Payload carries the count.
    """
    now = _utc(now)
    cutoff = unanswered_chat_cutoff(now)
    realert_since = now - timedelta(hours=UNANSWERED_CHAT_REALERT_HOURS)
    rows = (
        db.query(ChatRoom.hospital_id, func.count(ChatRoom.room_id))
        .filter(
            ChatRoom.hospital_unread_count > 0,
            ChatRoom.last_message_at.is_not(None),
            ChatRoom.last_message_at < cutoff,
            ~already_attempted(
                NotificationType.UNANSWERED_CHAT,
                cast(ChatRoom.hospital_id, String),
                since=realert_since,
            ),
        )
        .group_by(ChatRoom.hospital_id)
        .order_by(ChatRoom.hospital_id)
        .all()
    )
    return [
        CampaignCandidate(
            correlation_key=str(hospital_id),
            payload={"hospital_id": str(hospital_id), "unanswered_count": str(count)},
        )
        for hospital_id, count in rows
    ]
