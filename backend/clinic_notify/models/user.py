"""Users table of the booking backend (patients and hospital staff). Mapped for contact lookup.

Staff rows have hospital_id set. push_token is the device's FCM registration token:
written by client registration, cleared here when FCM reports it dead.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, true
from sqlalchemy.sql import func

from clinic_notify.db.base import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(256), nullable=True)
    name = Column(String(128), nullable=True)
    phone = Column(String(32), nullable=True)
    push_token = Column(String(512), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    hospital_id = Column(Integer, ForeignKey("hospitals.hospital_id"), nullable=True, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)
