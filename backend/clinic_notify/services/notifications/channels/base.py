"""Protocol for delivery channels. Every adapter returns the same SendOutcome shape."""
from typing import Any, Protocol

from clinic_notify.services.notifications.types import Channel, RecipientContact, SendOutcome


class ChannelAdapter(Protocol):
    """Interface for push, AlimTalk and SMS. Same contract; only the transport differs.

    Adapters do network I/O only. They never write the delivery log or touch the
    token store; the Dispatcher does that with the returned outcome.
    """

    channel: Channel

    @property
    def enabled(self) -> bool:
        """False when the credential this channel needs was absent at startup."""
        ...

    def send(self, recipient: RecipientContact, content: Any) -> SendOutcome:
        """Send one message. Never raises: provider errors, timeouts and missing data come back as a failed outcome."""
        ...
