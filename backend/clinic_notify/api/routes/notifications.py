"""
Notifications API: manual dispatch trigger and the delivery audit listing.

Dispatch is for operators and internal callers; application code normally goes through
the event helpers in services.notifications.events.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from clinic_notify.api.deps import get_dispatcher
from clinic_notify.db.session import get_db
from clinic_notify.models.delivery_attempt import DeliveryAttempt
from clinic_notify.services.notifications.dispatcher import Dispatcher
from clinic_notify.services.notifications.types import NotificationType

router = APIRouter()
logger = logging.getLogger(__name__)


# --- Dispatch ---


class DispatchRequest(BaseModel):
    type: NotificationType
    recipient_ids: list[int] = Field(..., min_length=1, max_length=500)
    payload: dict[str, Any] = Field(default_factory=dict, description="Template variables (reservation_id, hospital_name, ...)")


@router.post("/notifications/dispatch")
def dispatch_notification(body: DispatchRequest, dispatcher: Dispatcher = Depends(get_dispatcher)) -> dict[str, Any]:
    """
    Send one notification type to one or more users. A single recipient gets the full
    per-channel outcome back; several get success/failed counts.
    """
    if len(body.recipient_ids) == 1:
        outcome = dispatcher.notify(body.recipient_ids[0], body.type, body.payload)
        return {"ok": outcome.success, "outcome": outcome.to_dict()}
    result = dispatcher.notify_many(body.recipient_ids, body.type, body.payload)
    return {"ok": result.failed == 0, **result.to_dict()}


# --- Delivery log ---


@router.get("/notifications/deliveries")
def list_deliveries(
    db: Session = Depends(get_db),
    recipient_id: int | None = Query(None, ge=1),
    type: NotificationType | None = Query(None),
    correlation_key: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> dict[str, Any]:
    """Delivery attempts, newest first. Filter by recipient, type or correlation key."""
    if recipient_id is None and correlation_key is None:
        raise HTTPException(status_code=400, detail="recipient_id or correlation_key is required")
    q = db.query(DeliveryAttempt)
    if recipient_id is not None:
        q = q.filter(DeliveryAttempt.recipient_id == recipient_id)
    if type is not None:
        q = q.filter(DeliveryAttempt.type == type.value)
    if correlation_key is not None:
        q = q.filter(DeliveryAttempt.correlation_key == correlation_key)
    rows = q.order_by(DeliveryAttempt.created_at.desc(), DeliveryAttempt.id.desc()).limit(limit).all()
    return {
        "deliveries": [
            {
                "id": r.id,
                "recipient_id": r.recipient_id,
                "type": r.type,
                "channel": r.channel,
                "status": r.status,
                "title": r.title,
                "body": r.body,
                "correlation_key": r.correlation_key,
                "error_message": r.error_message,
                "provider_message_id": r.provider_message_id,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ],
    }
