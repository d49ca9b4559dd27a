"""
Delivery log: append-only record of every channel attempt (delivery_attempts).

Each write opens its own short session from the session factory, so chain branches
running in different threads never share a Session. A failed write is logged and
swallowed; it never reaches the caller of notify().
"""
import json
import logging
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_notify.core.constants import ERROR_MESSAGE_MAX_LENGTH
from clinic_notify.models.delivery_attempt import DeliveryAttempt
from clinic_notify.services.notifications.types import (
    AttemptResult,
    BusinessMessageContent,
    NotificationType,
    PushContent,
    SmsContent,
)

logger = logging.getLogger(__name__)


def _title_body(content: Any) -> tuple[str | None, str | None]:
    if isinstance(content, PushContent):
        return content.title, content.body
    if isinstance(content, BusinessMessageContent):
        return content.template_code, json.dumps(content.variables, ensure_ascii=False)
    if isinstance(content, SmsContent):
        return "SMS", content.text
    return None, None


class DeliveryLog:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def record(
        self,
        *,
        recipient_id: int,
        ntype: NotificationType,
        attempt: AttemptResult,
        content: Any,
        payload: dict[str, str],
        correlation_key: str | None,
    ) -> None:
        title, body = _title_body(content)
        error = attempt.error_message
        if attempt.error_code is not None:
            error = f"{attempt.error_code.value}: {error}" if error else attempt.error_code.value
        row = DeliveryAttempt(
            recipient_id=recipient_id,
            type=ntype.value,
            channel=attempt.channel.value,
            title=title,
            body=body,
            payload=dict(payload),
            correlation_key=correlation_key,
            status=attempt.status.value,
            error_message=error[:ERROR_MESSAGE_MAX_LENGTH] if error else None,
            provider_message_id=attempt.provider_message_id,
        )
        db = self._session_factory()
        try:
            db.add(row)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                "Delivery log write failed (user=%s type=%s channel=%s status=%s): %s",
                recipient_id, ntype.value, attempt.channel.value, attempt.status.value, e,
            )
        finally:
            db.close()

    def has_attempt(
        self,
        *,
        ntype: NotificationType,
        correlation_key: str,
        recipient_id: int | None = None,
        since: datetime | None = None,
    ) -> bool:
        """True if any attempt (SENT or FAILED) exists for this type + correlation key."""
        db = self._session_factory()
        try:
            q = select(already_attempted(ntype, correlation_key, recipient_id=recipient_id, since=since))
            return bool(db.execute(q).scalar())
        finally:
            db.close()

    def list_for_recipient(self, recipient_id: int, *, limit: int = 50) -> list[DeliveryAttempt]:
        db = self._session_factory()
        try:
            return (
                db.query(DeliveryAttempt)
                .filter(DeliveryAttempt.recipient_id == recipient_id)
                .order_by(DeliveryAttempt.created_at.desc(), DeliveryAttempt.id.desc())
                .limit(limit)
                .all()
            )
        finally:
            db.close()


def already_attempted(
    ntype: NotificationType,
    correlation_key: Any,
    *,
    recipient_id: Any = None,
    since: datetime | None = None,
):
    """
    EXISTS clause over delivery_attempts, usable standalone or correlated inside a
    campaign query (pass column expressions for correlation_key / recipient_id).
    Any status counts: a logged FAILED attempt is still "already handled".
    """
    clause = exists().where(
        DeliveryAttempt.type == ntype.value,
        DeliveryAttempt.correlation_key == correlation_key,
    )
    if recipient_id is not None:
        clause = clause.where(DeliveryAttempt.recipient_id == recipient_id)
    if since is not None:
        clause = clause.where(DeliveryAttempt.created_at >= since)
    return clause
