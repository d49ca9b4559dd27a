from clinic_notify.models.chat_room import ChatRoom
from clinic_notify.models.delivery_attempt import DeliveryAttempt
from clinic_notify.models.hospital import Hospital
from clinic_notify.models.reservation import Reservation
from clinic_notify.models.user import User

__all__ = [
    "ChatRoom",
    "DeliveryAttempt",
    "Hospital",
    "Reservation",
    "User",
]
