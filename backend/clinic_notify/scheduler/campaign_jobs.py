"""
Scheduled campaigns: reservation reminder (daily), review request and unanswered chat (hourly).

Each job opens its own session for the candidate query, closes it, then dispatches.
Jobs never raise: a failure is logged and the run reports what it got through.
Overlapping runs are allowed (max_instances=2); the delivery_attempts anti-join in
the candidate queries keeps duplicates rare.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session

from clinic_notify.core.constants import (
    CAMPAIGN_JOB_MAX_INSTANCES,
    REMINDER_JOB_ID,
    REVIEW_REQUEST_JOB_ID,
    UNANSWERED_CHAT_JOB_ID,
)
from clinic_notify.services.campaign_queries import (
    CampaignCandidate,
    find_reminder_candidates,
    find_review_request_candidates,
    find_unanswered_chat_candidates,
)
from clinic_notify.services.notifications.dispatcher import Dispatcher
from clinic_notify.services.notifications.events import (
    notify_reservation_reminder,
    notify_review_request,
    notify_unanswered_chat,
)

logger = logging.getLogger(__name__)


@dataclass
class CampaignRunResult:
    candidates: int = 0
    sent: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"candidates": self.candidates, "sent": self.sent, "failed": self.failed}


def _load(
    session_factory: Callable[[], Session],
    query: Callable[..., list[CampaignCandidate]],
    **kwargs: Any,
) -> list[CampaignCandidate]:
    db = session_factory()
    try:
        return query(db, **kwargs)
    finally:
        db.close()


def run_reminder_job(
    dispatcher: Dispatcher,
    *,
    now: datetime | None = None,
    session_factory: Callable[[], Session] | None = None,
) -> CampaignRunResult:
    """Remind patients of CONFIRMED reservations tomorrow (clinic local day)."""
    result = CampaignRunResult()
    try:
        candidates = _load(
            session_factory or dispatcher.session_factory,
            find_reminder_candidates,
            now=now,
            tz_name=dispatcher.config.clinic_timezone,
        )
        result.candidates = len(candidates)
        for c in candidates:
            outcome = notify_reservation_reminder(
                dispatcher,
                c.recipient_id,
                reservation_id=int(c.payload["reservation_id"]),
                hospital_name=c.payload["hospital_name"],
                reserved_at=c.payload.get("reserved_at"),
            )
            if outcome.success:
                result.sent += 1
            else:
                result.failed += 1
    except Exception as e:
        logger.exception("Reservation reminder job failed: %s", e)
    logger.info("Reservation reminder job: %s", result.to_dict())
    return result


def run_review_request_job(
    dispatcher: Dispatcher,
    *,
    now: datetime | None = None,
    session_factory: Callable[[], Session] | None = None,
) -> CampaignRunResult:
    """Ask for a review once per reservation, about 24h after it was marked DONE."""
    result = CampaignRunResult()
    try:
        candidates = _load(
            session_factory or dispatcher.session_factory,
            find_review_request_candidates,
            now=now,
        )
        result.candidates = len(candidates)
        for c in candidates:
            outcome = notify_review_request(
                dispatcher,
                c.recipient_id,
                reservation_id=int(c.payload["reservation_id"]),
                hospital_id=int(c.payload["hospital_id"]),
                hospital_name=c.payload["hospital_name"],
            )
            if outcome.success:
                result.sent += 1
            else:
                result.failed += 1
    except Exception as e:
        logger.exception("Review request job failed: %s", e)
    logger.info("Review request job: %s", result.to_dict())
    return result


def run_unanswered_chat_job(
    dispatcher: Dispatcher,
    *,
    now: datetime | None = None,
    session_factory: Callable[[], Session] | None = None,
) -> CampaignRunResult:
    """
    Alert hospital staff about chats unanswered for over 24h: one aggregated alert per
    hospital, at most once per 24h. sent/failed count staff recipients, not hospitals.
    """
    result = CampaignRunResult()
    try:
        candidates = _load(
            session_factory or dispatcher.session_factory,
            find_unanswered_chat_candidates,
            now=now,
        )
        result.candidates = len(candidates)
        for c in candidates:
            fan_out = notify_unanswered_chat(
                dispatcher,
                int(c.payload["hospital_id"]),
                unanswered_count=int(c.payload["unanswered_count"]),
            )
            result.sent += fan_out.success
            result.failed += fan_out.failed
    except Exception as e:
        logger.exception("Unanswered chat job failed: %s", e)
    logger.info("Unanswered chat job: %s", result.to_dict())
    return result


def register_campaign_jobs(scheduler, dispatcher: Dispatcher, *, reminder_hour: int = 9) -> None:
    """Add the three campaign jobs to an APScheduler scheduler. Cron times are clinic local time."""
    tz = dispatcher.config.clinic_timezone
    common = {"max_instances": CAMPAIGN_JOB_MAX_INSTANCES, "coalesce": True, "replace_existing": True}
    scheduler.add_job(
        run_reminder_job,
        "cron",
        hour=reminder_hour,
        minute=0,
        timezone=tz,
        args=[dispatcher],
        id=REMINDER_JOB_ID,
        **common,
    )
    scheduler.add_job(
        run_review_request_job,
        "cron",
        minute=0,
        timezone=tz,
        args=[dispatcher],
        id=REVIEW_REQUEST_JOB_ID,
        **common,
    )
    scheduler.add_job(
        run_unanswered_chat_job,
        "cron",
        minute=0,
        timezone=tz,
        args=[dispatcher],
        id=UNANSWERED_CHAT_JOB_ID,
        **common,
    )
    logger.info(
        "Campaign jobs registered: reminder daily %02d:00, review request and unanswered chat hourly (%s)",
        reminder_hour, tz,
    )


CAMPAIGN_JOBS = {
    "reminder": run_reminder_job,
    "review_request": run_review_request_job,
    "unanswered_chat": run_unanswered_chat_job,
}
