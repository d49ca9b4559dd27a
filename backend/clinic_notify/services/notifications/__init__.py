"""
Notification delivery: channel adapters, fallback chains, the Dispatcher and its delivery log.
"""
from clinic_notify.services.notifications.chain import TOPOLOGIES
from clinic_notify.services.notifications.delivery_log import DeliveryLog, already_attempted
from clinic_notify.services.notifications.dispatcher import Dispatcher, build_dispatcher
from clinic_notify.services.notifications.recipients import RecipientDirectory
from clinic_notify.services.notifications.token_store import DeviceTokenStore
from clinic_notify.services.notifications.types import (
    AttemptResult,
    BranchOutcome,
    ChainOutcome,
    Channel,
    DeliveryStatus,
    FanOutResult,
    NotificationType,
    RecipientContact,
    SendOutcome,
    Topology,
)

__all__ = [
    "AttemptResult",
    "BranchOutcome",
    "ChainOutcome",
    "Channel",
    "DeliveryLog",
    "DeliveryStatus",
    "DeviceTokenStore",
    "Dispatcher",
    "FanOutResult",
    "NotificationType",
    "RecipientContact",
    "RecipientDirectory",
    "SendOutcome",
    "TOPOLOGIES",
    "Topology",
    "already_attempted",
    "build_dispatcher",
]
