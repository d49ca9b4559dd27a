"""
Delivery channels: FCM push, Kakao AlimTalk, Kakao SMS.
Each wraps one transport and returns the same SendOutcome so the chain stays channel-agnostic.
"""
from clinic_notify.services.notifications.channels.base import ChannelAdapter
from clinic_notify.services.notifications.channels.kakao import BusinessMessageAdapter, KakaoBizClient, SmsAdapter
from clinic_notify.services.notifications.channels.push import PushAdapter, ServiceAccountTokenSource

__all__ = [
    "BusinessMessageAdapter",
    "ChannelAdapter",
    "KakaoBizClient",
    "PushAdapter",
    "ServiceAccountTokenSource",
    "SmsAdapter",
]
