"""Device token store: one FCM token per user on users.push_token (last write wins, no history)."""
import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_notify.models.user import User

logger = logging.getLogger(__name__)


class DeviceTokenStore:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, user_id: int) -> str | None:
        db = self._session_factory()
        try:
            row = db.query(User.push_token).filter(User.user_id == user_id).first()
            return row[0] if row else None
        finally:
            db.close()

    def set(self, user_id: int, token: str) -> bool:
        """Register (or replace) the user's token. Returns False if the user doesn't exist."""
        db = self._session_factory()
        try:
            updated = db.execute(
                update(User)
                .where(User.user_id == user_id)
                .values(push_token=token, updated_at=datetime.now(timezone.utc))
            ).rowcount
            db.commit()
            return bool(updated)
        finally:
            db.close()

    def clear(self, user_id: int, token: str | None = None) -> None:
        """
        Drop a dead token. When token is given, only clear if it is still the stored one,
        so a fresh registration that landed mid-send is not wiped.
        """
        db = self._session_factory()
        try:
            stmt = update(User).where(User.user_id == user_id)
            if token is not None:
                stmt = stmt.where(User.push_token == token)
            cleared = db.execute(stmt.values(push_token=None, updated_at=datetime.now(timezone.utc))).rowcount
            db.commit()
            if cleared:
                logger.warning("Removed dead push token: user_id=%s", user_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Clearing push token failed for user_id=%s: %s", user_id, e)
        finally:
            db.close()
