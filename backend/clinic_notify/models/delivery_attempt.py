"""Delivery attempt: one logged, terminal outcome of sending through one channel.

Append-only audit of every push / AlimTalk / SMS attempt, and the source of truth for
campaign idempotency (anti-join on recipient_id + type + correlation_key).

correlation_key: business id the notification is about (reservation id, or hospital id
for staff alerts), copied out of payload so the anti-join doesn't need JSON operators.
title: push title, or the AlimTalk template code.
body: push body, JSON of template variables, or SMS text.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from clinic_notify.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryAttempt(Base):
    __tablename__ = "delivery_attempts"
    __table_args__ = (
        Index("ix_delivery_attempts_dedupe", "type", "correlation_key", "recipient_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(Integer, nullable=False, index=True)
    type = Column(String(32), nullable=False, index=True)
    channel = Column(String(20), nullable=False)  # PUSH | BUSINESS_MESSAGE | SMS
    title = Column(String(256), nullable=True)
    body = Column(Text, nullable=True)
    payload = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    correlation_key = Column(String(64), nullable=True)
    status = Column(String(10), nullable=False)  # SENT | FAILED
    error_message = Column(Text, nullable=True)
    provider_message_id = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
