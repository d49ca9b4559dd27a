"""Chat rooms between a patient and a hospital (read-only here).

hospital_unread_count > 0 means the patient wrote and staff have not read it yet.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer

from clinic_notify.db.base import Base


class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    room_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    hospital_id = Column(Integer, ForeignKey("hospitals.hospital_id"), nullable=False, index=True)
    hospital_unread_count = Column(Integer, nullable=False, default=0, server_default="0")
    user_unread_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_message_at = Column(DateTime(timezone=True), nullable=True)
