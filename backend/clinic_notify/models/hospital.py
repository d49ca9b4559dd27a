"""Hospitals table of the booking backend (read-only here)."""
from sqlalchemy import Column, Integer, String

from clinic_notify.db.base import Base


class Hospital(Base):
    __tablename__ = "hospitals"

    hospital_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(256), nullable=False)
    address = Column(String(512), nullable=True)
