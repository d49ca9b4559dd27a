"""
Dispatcher: the single entry point for sending a notification.

notify() resolves the recipient, builds per-channel content, runs the type's topology
and writes one delivery_attempts row per channel step. Nothing raises out of notify():
every failure ends up as a FAILED row with an error code.
"""
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Iterable, Mapping

from sqlalchemy.orm import Session

from clinic_notify.core.channel_config import ChannelConfig
from clinic_notify.core.errors import (
    ConfigurationMissing,
    ErrorCode,
    NotificationError,
    PayloadInvalid,
    RecipientDataMissing,
    RecipientNotFound,
)
from clinic_notify.services.notifications.chain import (
    TOPOLOGIES,
    run_fan_out,
    run_parallel,
    run_sequential,
)
from clinic_notify.services.notifications.channels import (
    BusinessMessageAdapter,
    ChannelAdapter,
    KakaoBizClient,
    PushAdapter,
    SmsAdapter,
)
from clinic_notify.services.notifications.delivery_log import DeliveryLog
from clinic_notify.services.notifications.phone import normalize_phone
from clinic_notify.services.notifications.recipients import RecipientDirectory
from clinic_notify.services.notifications.templates import build_content, correlation_key, validate_payload
from clinic_notify.services.notifications.token_store import DeviceTokenStore
from clinic_notify.services.notifications.types import (
    AttemptResult,
    ChainOutcome,
    Channel,
    ChannelContent,
    DeliveryStatus,
    FanOutResult,
    NotificationType,
    RecipientContact,
    SendOutcome,
    Topology,
)

logger = logging.getLogger(__name__)


@dataclass
class _Request:
    """Everything the steps of one notify() call share."""
    recipient_id: int
    type: NotificationType
    payload: dict[str, str]
    correlation_key: str | None = None
    contact: RecipientContact | None = None
    content: ChannelContent = field(default_factory=ChannelContent)
    # Set when every step must be skipped (unknown recipient, bad payload)
    skip: NotificationError | None = None

    def content_for(self, channel: Channel) -> Any:
        if channel == Channel.PUSH:
            return self.content.push
        if channel == Channel.BUSINESS_MESSAGE:
            return self.content.business_message
        return self.content.sms


class Dispatcher:
    def __init__(
        self,
        config: ChannelConfig,
        *,
        session_factory: Callable[[], Session],
        push: ChannelAdapter | None = None,
        business: ChannelAdapter | None = None,
        sms: ChannelAdapter | None = None,
        directory: RecipientDirectory | None = None,
        log: DeliveryLog | None = None,
        token_store: DeviceTokenStore | None = None,
        topologies: Mapping[NotificationType, Topology] | None = None,
    ) -> None:
        self.config = config
        self.session_factory = session_factory
        self._adapters: dict[Channel, ChannelAdapter] = {
            Channel.PUSH: push or PushAdapter(config),
            Channel.BUSINESS_MESSAGE: business or BusinessMessageAdapter(config),
            Channel.SMS: sms or SmsAdapter(config),
        }
        self.directory = directory or RecipientDirectory(session_factory)
        self.log = log or DeliveryLog(session_factory)
        self.token_store = token_store or DeviceTokenStore(session_factory)
        self._topologies = dict(topologies or TOPOLOGIES)

    def notify(self, recipient_id: int, ntype: NotificationType | str, payload: Mapping[str, Any]) -> ChainOutcome:
        """
        Send one notification to one recipient over the type's channels. Never raises.
        An unknown type string is logged and returns an outcome with type None and no rows.
        """
        try:
            ntype = NotificationType(ntype)
        except ValueError:
            logger.error("notify: unknown notification type %r for recipient %s", ntype, recipient_id)
            return ChainOutcome(recipient_id=recipient_id, type=None)
        try:
            return self._notify(recipient_id, ntype, payload)
        except Exception as e:
            logger.exception("notify failed: recipient=%s type=%s: %s", recipient_id, ntype.value, e)
            return ChainOutcome(recipient_id=recipient_id, type=ntype)

    def notify_many(
        self,
        recipient_ids: Iterable[int],
        ntype: NotificationType | str,
        payload: Mapping[str, Any],
    ) -> FanOutResult:
        """Same notification to many recipients, at most config.max_concurrency at a time."""
        try:
            ntype = NotificationType(ntype)
        except ValueError:
            ids = list(dict.fromkeys(recipient_ids))
            logger.error("notify_many: unknown notification type %r for %s recipient(s)", ntype, len(ids))
            return FanOutResult(failed=len(ids))
        result = run_fan_out(
            recipient_ids,
            lambda rid: self.notify(rid, ntype, payload).success,
            max_workers=self.config.max_concurrency,
        )
        logger.info(
            "notify_many %s: success=%s failed=%s", ntype.value, result.success, result.failed
        )
        return result

    def close(self) -> None:
        """Release adapter HTTP clients. Called on app shutdown."""
        for adapter in self._adapters.values():
            close = getattr(adapter, "close", None)
            if close is not None:
                close()

    def _notify(self, recipient_id: int, ntype: NotificationType, payload: Mapping[str, Any]) -> ChainOutcome:
        req = self._prepare(recipient_id, ntype, payload)
        push_steps = [partial(self._attempt, req, Channel.PUSH)]
        message_steps = [
            partial(self._attempt, req, Channel.BUSINESS_MESSAGE),
            partial(self._attempt, req, Channel.SMS),
        ]

        outcome = ChainOutcome(recipient_id=recipient_id, type=ntype)
        topology = self._topologies.get(ntype)
        if topology == Topology.PARALLEL:
            outcome.push, outcome.message = run_parallel([push_steps, message_steps])
        elif topology == Topology.FALLBACK:
            outcome.message = run_sequential(message_steps)
        elif topology == Topology.PUSH_ONLY:
            outcome.push = run_sequential(push_steps)
        else:
            logger.warning("No channel topology for %s; nothing sent", ntype.value)
            return outcome

        if outcome.success:
            logger.info(
                "Notified user %s (%s): %s",
                recipient_id, ntype.value, ", ".join(b.result for b in outcome.branches),
            )
        else:
            logger.warning("Notification %s to user %s failed on every channel", ntype.value, recipient_id)
        return outcome

    def _prepare(self, recipient_id: int, ntype: NotificationType, payload: Mapping[str, Any]) -> _Request:
        raw = {str(k): "" if v is None else str(v) for k, v in (payload or {}).items()}
        req = _Request(recipient_id=recipient_id, type=ntype, payload=raw)
        try:
            req.payload = validate_payload(ntype, payload)
        except PayloadInvalid as e:
            req.skip = e
        req.correlation_key = correlation_key(ntype, req.payload)
        if req.skip is not None:
            return req

        contact = self.directory.get_contact(recipient_id)
        if contact is None:
            req.skip = RecipientNotFound(f"user {recipient_id} not found")
            return req
        if not contact.active:
            req.skip = RecipientNotFound(f"user {recipient_id} is inactive")
            return req
        req.contact = contact

        try:
            req.content = build_content(ntype, req.payload, contact, self.config)
        except PayloadInvalid as e:
            req.skip = e
        return req

    def _precheck(self, req: _Request, channel: Channel, adapter: ChannelAdapter, content: Any) -> NotificationError | None:
        """Reason this step can't reach the provider, or None if it can."""
        if req.skip is not None:
            return req.skip
        if content is None:
            return ConfigurationMissing(f"{channel.value} not used for {req.type.value}")
        if not adapter.enabled:
            return ConfigurationMissing(f"{channel.value} channel not configured")
        contact = req.contact
        if channel == Channel.PUSH:
            if not contact.push_token:
                return RecipientDataMissing("no push token")
        elif not normalize_phone(contact.phone, self.config.phone_country_code):
            return RecipientDataMissing("no phone number")
        return None

    def _attempt(self, req: _Request, channel: Channel) -> AttemptResult:
        """One chain step: send (or skip with a reason), log the row, clear a dead token."""
        adapter = self._adapters[channel]
        content = req.content_for(channel)
        reason = self._precheck(req, channel, adapter, content)
        if reason is not None:
            outcome = SendOutcome.from_error(reason)
        else:
            try:
                outcome = adapter.send(req.contact, content)
            except Exception as e:
                logger.exception("%s adapter raised for user %s: %s", channel.value, req.recipient_id, e)
                outcome = SendOutcome(success=False, error_code=ErrorCode.PROVIDER_REJECTED, error_message=str(e))

        attempt = AttemptResult(
            channel=channel,
            status=DeliveryStatus.SENT if outcome.success else DeliveryStatus.FAILED,
            error_code=None if outcome.success else (outcome.error_code or ErrorCode.PROVIDER_REJECTED),
            error_message=None if outcome.success else outcome.error_message,
            provider_message_id=outcome.provider_message_id,
        )
        self.log.record(
            recipient_id=req.recipient_id,
            ntype=req.type,
            attempt=attempt,
            content=content,
            payload=req.payload,
            correlation_key=req.correlation_key,
        )
        if attempt.error_code == ErrorCode.TOKEN_DEAD and req.contact is not None:
            self.token_store.clear(req.contact.user_id, req.contact.push_token)
        if not attempt.sent:
            logger.info(
                "%s %s -> user %s: %s %s",
                req.type.value, channel.value, req.recipient_id,
                attempt.error_code.value, attempt.error_message or "",
            )
        return attempt


def build_dispatcher(app_settings: Any = None, session_factory: Callable[[], Session] | None = None) -> Dispatcher:
    """Dispatcher wired from Settings; AlimTalk and SMS share one Kakao client."""
    if app_settings is None:
        from clinic_notify.config import settings as app_settings
    if session_factory is None:
        from clinic_notify.db.session import SessionLocal as session_factory
    config = ChannelConfig.from_settings(app_settings)
    kakao = KakaoBizClient(config.kakao, timeout=config.timeout_seconds)
    return Dispatcher(
        config,
        session_factory=session_factory,
        push=PushAdapter(config),
        business=BusinessMessageAdapter(config, client=kakao),
        sms=SmsAdapter(config, client=kakao),
    )
