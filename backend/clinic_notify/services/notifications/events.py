"""
Scenario helpers: one function per product event.

Callers (reservation/review/chat handlers, campaign jobs) call these after their own
state change is committed. Each builds the flat string payload for the type and hands
it to the Dispatcher; staff-facing events fan out to the hospital's active staff.
"""
import logging
from datetime import datetime, timezone

from clinic_notify.services.notifications.dispatcher import Dispatcher
from clinic_notify.services.notifications.types import ChainOutcome, FanOutResult, NotificationType

logger = logging.getLogger(__name__)


def _iso(value: datetime | str) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return str(value)


def notify_reservation_confirmed(
    dispatcher: Dispatcher,
    user_id: int,
    *,
    reservation_id: int,
    hospital_name: str,
    reserved_at: datetime | str,
    treatment_name: str | None = None,
    hospital_address: str | None = None,
) -> ChainOutcome:
    """Patient: push and AlimTalk (SMS if AlimTalk fails) at the same time."""
    payload = {
        "reservation_id": str(reservation_id),
        "hospital_name": hospital_name,
        "reserved_at": _iso(reserved_at),
    }
    if treatment_name:
        payload["treatment_name"] = treatment_name
    if hospital_address:
        payload["hospital_address"] = hospital_address
    return dispatcher.notify(user_id, NotificationType.RESERVATION_CONFIRMED, payload)


def notify_reservation_cancelled(
    dispatcher: Dispatcher, user_id: int, *, reservation_id: int, reason: str = ""
) -> ChainOutcome:
    return dispatcher.notify(
        user_id,
        NotificationType.RESERVATION_CANCELLED,
        {"reservation_id": str(reservation_id), "reason": reason or ""},
    )


def notify_reservation_reminder(
    dispatcher: Dispatcher,
    user_id: int,
    *,
    reservation_id: int,
    hospital_name: str,
    reserved_at: datetime | str | None = None,
) -> ChainOutcome:
    payload = {"reservation_id": str(reservation_id), "hospital_name": hospital_name}
    if reserved_at is not None:
        payload["reserved_at"] = _iso(reserved_at)
    return dispatcher.notify(user_id, NotificationType.RESERVATION_REMINDER, payload)


def notify_review_request(
    dispatcher: Dispatcher, user_id: int, *, reservation_id: int, hospital_id: int, hospital_name: str
) -> ChainOutcome:
    return dispatcher.notify(
        user_id,
        NotificationType.REVIEW_REQUEST,
        {
            "reservation_id": str(reservation_id),
            "hospital_id": str(hospital_id),
            "hospital_name": hospital_name,
        },
    )


def _notify_staff(dispatcher: Dispatcher, hospital_id: int, ntype: NotificationType, payload: dict[str, str]) -> FanOutResult:
    try:
        staff = dispatcher.directory.staff_ids(hospital_id)
    except Exception as e:
        logger.exception("%s: staff lookup failed for hospital %s: %s", ntype.value, hospital_id, e)
        return FanOutResult()
    if not staff:
        logger.info("%s: hospital %s has no active staff", ntype.value, hospital_id)
        return FanOutResult()
    return dispatcher.notify_many(staff, ntype, payload)


def notify_new_reservation(
    dispatcher: Dispatcher, hospital_id: int, *, patient_name: str, treatment_name: str
) -> FanOutResult:
    return _notify_staff(
        dispatcher,
        hospital_id,
        NotificationType.NEW_RESERVATION,
        {"hospital_id": str(hospital_id), "patient_name": patient_name, "treatment_name": treatment_name},
    )


def notify_new_review(dispatcher: Dispatcher, hospital_id: int) -> FanOutResult:
    return _notify_staff(dispatcher, hospital_id, NotificationType.NEW_REVIEW, {"hospital_id": str(hospital_id)})


def notify_unanswered_chat(dispatcher: Dispatcher, hospital_id: int, *, unanswered_count: int) -> FanOutResult:
    return _notify_staff(
        dispatcher,
        hospital_id,
        NotificationType.UNANSWERED_CHAT,
        {"hospital_id": str(hospital_id), "unanswered_count": str(unanswered_count)},
    )
