"""Recipient directory: read-only contact lookups over the booking backend's users table."""
from typing import Callable

from sqlalchemy.orm import Session

from clinic_notify.models.user import User
from clinic_notify.services.notifications.types import RecipientContact


class RecipientDirectory:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_contact(self, user_id: int) -> RecipientContact | None:
        """Contact for one user, or None if no such user. Inactive users come back with active=False."""
        db = self._session_factory()
        try:
            user = db.query(User).filter(User.user_id == user_id).first()
            if user is None:
                return None
            return RecipientContact(
                user_id=user.user_id,
                name=user.name,
                phone=(user.phone or "").strip() or None,
                push_token=(user.push_token or "").strip() or None,
                active=bool(user.is_active),
            )
        finally:
            db.close()

    def staff_ids(self, hospital_id: int) -> list[int]:
        """Active staff of a hospital. Staff without a push token are included so their skipped attempt is logged."""
        db = self._session_factory()
        try:
            rows = (
                db.query(User.user_id)
                .filter(User.hospital_id == hospital_id, User.is_active.is_(True))
                .order_by(User.user_id)
                .all()
            )
            return [r[0] for r in rows]
        finally:
            db.close()
