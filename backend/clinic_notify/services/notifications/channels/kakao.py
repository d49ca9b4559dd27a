"""
Kakao Biz Message adapters: AlimTalk (templated business message) and plain SMS.

Both use the same sender credentials (KAKAO_BIZ_API_KEY, KAKAO_SENDER_KEY). SMS is only
ever used as the fallback step after AlimTalk; callers never address it directly.
"""
import logging
from typing import Any

import httpx

from clinic_notify.core.channel_config import ChannelConfig, KakaoCredentials
from clinic_notify.core.constants import ERROR_MESSAGE_MAX_LENGTH, KAKAO_RESULT_OK
from clinic_notify.core.errors import (
    ConfigurationMissing,
    NotificationError,
    ProviderRejected,
    ProviderTimeout,
    RecipientDataMissing,
)
from clinic_notify.services.notifications.phone import normalize_phone
from clinic_notify.services.notifications.types import (
    BusinessMessageContent,
    Channel,
    RecipientContact,
    SendOutcome,
    SmsContent,
)

logger = logging.getLogger(__name__)


class KakaoBizClient:
    """Kakao Biz Message API client: lowest level, posts and checks resultCode."""

    def __init__(self, credentials: KakaoCredentials | None, *, timeout: float, http_client: httpx.Client | None = None) -> None:
        self._credentials = credentials
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    @property
    def sender_key(self) -> str:
        return self._credentials.sender_key if self._credentials else ""

    def is_configured(self) -> bool:
        return self._credentials is not None

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def post(self, path: str, body: dict[str, Any]) -> str | None:
        """POST to the sender API. Returns the provider message id; raises ProviderRejected/ProviderTimeout."""
        if not self._credentials:
            raise ConfigurationMissing("Kakao Biz Message not configured")
        url = f"{self._credentials.base_url}{path}"
        headers = {"Authorization": f"Bearer {self._credentials.api_key}"}
        try:
            resp = self._http.post(url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"Kakao {path} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderRejected(f"Kakao {path} request failed: {e}") from e

        try:
            result = resp.json() if resp.content else {}
        except ValueError:
            result = {}
        if not resp.is_success:
            detail = (result.get("message") if isinstance(result, dict) else None) or resp.text[:300]
            raise ProviderRejected(
                f"Kakao {path} HTTP {resp.status_code}: {detail}"[:ERROR_MESSAGE_MAX_LENGTH],
                status_code=resp.status_code,
            )
        if not isinstance(result, dict):
            raise ProviderRejected(f"Kakao {path} returned a malformed response")

        recipients = result.get("recipientList")
        if not isinstance(recipients, list):
            recipients = []
        recipient = recipients[0] if recipients and isinstance(recipients[0], dict) else {}
        if recipient.get("resultCode") == KAKAO_RESULT_OK or result.get("resultCode") == KAKAO_RESULT_OK:
            return recipient.get("messageId") or result.get("messageId")
        message = recipient.get("resultMessage") or result.get("resultMessage") or "send failed"
        code = recipient.get("resultCode") or result.get("resultCode")
        raise ProviderRejected(f"Kakao {path} result {code}: {message}"[:ERROR_MESSAGE_MAX_LENGTH])


class BusinessMessageAdapter:
    """AlimTalk: template code + variables + optional app-link buttons."""

    channel = Channel.BUSINESS_MESSAGE

    def __init__(self, config: ChannelConfig, *, client: KakaoBizClient | None = None) -> None:
        self._client = client or KakaoBizClient(config.kakao, timeout=config.timeout_seconds)
        self._country_code = config.phone_country_code

    @property
    def enabled(self) -> bool:
        return self._client.is_configured()

    def close(self) -> None:
        self._client.close()

    def send(self, recipient: RecipientContact, content: BusinessMessageContent) -> SendOutcome:
        try:
            phone = normalize_phone(recipient.phone, self._country_code)
            if not phone:
                raise RecipientDataMissing("no phone number")
            entry: dict[str, Any] = {
                "recipientNo": phone,
                "templateParameter": dict(content.variables),
            }
            if content.buttons:
                entry["buttons"] = list(content.buttons)
            message_id = self._client.post(
                "/send",
                {
                    "senderKey": self._client.sender_key,
                    "templateCode": content.template_code,
                    "recipientList": [entry],
                },
            )
        except NotificationError as e:
            return SendOutcome.from_error(e)
        return SendOutcome.ok(message_id)


class SmsAdapter:
    """Plain-text SMS on the same provider. Fallback transport only."""

    channel = Channel.SMS

    def __init__(self, config: ChannelConfig, *, client: KakaoBizClient | None = None) -> None:
        self._client = client or KakaoBizClient(config.kakao, timeout=config.timeout_seconds)
        self._country_code = config.phone_country_code

    @property
    def enabled(self) -> bool:
        return self._client.is_configured()

    def close(self) -> None:
        self._client.close()

    def send(self, recipient: RecipientContact, content: SmsContent) -> SendOutcome:
        try:
            phone = normalize_phone(recipient.phone, self._country_code)
            if not phone:
                raise RecipientDataMissing("no phone number")
            message_id = self._client.post(
                "/sms/send",
                {
                    "senderKey": self._client.sender_key,
                    "recipientList": [{"recipientNo": phone, "content": content.text}],
                },
            )
        except NotificationError as e:
            return SendOutcome.from_error(e)
        return SendOutcome.ok(message_id)
