"""
Test configuration and fixtures.

Provides:
- SQLite file database per test (schema from the models, no migrations)
- Seeder for booking-side rows (users, hospitals, reservations, chat rooms)
- FakeAdapter channels with scripted outcomes, and a Dispatcher factory wired to them
"""
import itertools
import os
import threading
from datetime import datetime, timezone
from typing import Generator

# The engine in clinic_notify.db.session is created at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///./clinic_notify_test.db")
os.environ["DISABLE_SCHEDULER"] = "1"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from clinic_notify.core.channel_config import ChannelConfig
from clinic_notify.db.base import Base
from clinic_notify.models import ChatRoom, DeliveryAttempt, Hospital, Reservation, User
from clinic_notify.services.notifications.dispatcher import Dispatcher
from clinic_notify.services.notifications.types import Channel, SendOutcome


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'notify.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Seed data
# =============================================================================

class Seeder:
    """Insert booking-side rows, each in its own committed session; methods return the new id."""

    _tokens = itertools.count(1)

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _add(self, row):
        db = self._session_factory()
        try:
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()

    def hospital(self, name: str = "강남뷰티의원", address: str = "서울 강남구 테헤란로 1") -> int:
        return self._add(Hospital(name=name, address=address)).hospital_id

    def user(
        self,
        *,
        name: str = "김환자",
        phone: str | None = "010-1234-5678",
        push_token: str | None = "default",
        hospital_id: int | None = None,
        is_active: bool = True,
    ) -> int:
        if push_token == "default":
            push_token = f"fcm-token-{next(self._tokens)}"
        return self._add(
            User(name=name, phone=phone, push_token=push_token, hospital_id=hospital_id, is_active=is_active)
        ).user_id

    def reservation(
        self,
        *,
        user_id: int,
        hospital_id: int,
        status: str,
        reserved_at: datetime,
        updated_at: datetime | None = None,
    ) -> int:
        updated_at = updated_at or datetime.now(timezone.utc)
        return self._add(
            Reservation(
                user_id=user_id,
                hospital_id=hospital_id,
                status=status,
                reserved_at=reserved_at,
                created_at=updated_at,
                updated_at=updated_at,
            )
        ).reservation_id

    def chat_room(self, *, user_id: int, hospital_id: int, hospital_unread_count: int, last_message_at: datetime) -> int:
        return self._add(
            ChatRoom(
                user_id=user_id,
                hospital_id=hospital_id,
                hospital_unread_count=hospital_unread_count,
                user_unread_count=0,
                last_message_at=last_message_at,
            )
        ).room_id

    def attempts(self, **filters) -> list[DeliveryAttempt]:
        db = self._session_factory()
        try:
            return db.query(DeliveryAttempt).filter_by(**filters).order_by(DeliveryAttempt.id).all()
        finally:
            db.close()

    def push_token(self, user_id: int) -> str | None:
        db = self._session_factory()
        try:
            return db.query(User.push_token).filter(User.user_id == user_id).scalar()
        finally:
            db.close()


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


# =============================================================================
# Channels and dispatcher
# =============================================================================

class FakeAdapter:
    """Channel adapter double: returns scripted outcomes in order (then successes) and records calls."""

    def __init__(self, channel: Channel, outcomes=None, *, enabled: bool = True):
        self.channel = channel
        self.enabled = enabled
        self._outcomes = list(outcomes or [])
        self._lock = threading.Lock()
        self.calls = []

    def send(self, recipient, content):
        with self._lock:
            self.calls.append((recipient, content))
            n = len(self.calls)
            outcome = self._outcomes.pop(0) if self._outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        return outcome or SendOutcome.ok(f"{self.channel.value.lower()}-{n}")


@pytest.fixture
def channel_config() -> ChannelConfig:
    return ChannelConfig(template_codes={"RESERVATION_CONFIRMED": "TPL_RESV_CONFIRM"})


@pytest.fixture
def make_dispatcher(session_factory, channel_config):
    def _make(push=None, business=None, sms=None, **kwargs) -> Dispatcher:
        return Dispatcher(
            channel_config,
            session_factory=session_factory,
            push=push or FakeAdapter(Channel.PUSH),
            business=business or FakeAdapter(Channel.BUSINESS_MESSAGE),
            sms=sms or FakeAdapter(Channel.SMS),
            **kwargs,
        )

    return _make


@pytest.fixture
def dispatcher(make_dispatcher) -> Dispatcher:
    return make_dispatcher()


@pytest.fixture
def fake_adapter():
    """The FakeAdapter class, for tests that script outcomes."""
    return FakeAdapter
