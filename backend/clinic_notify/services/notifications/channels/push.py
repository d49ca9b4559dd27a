"""
Send push notifications via Firebase Cloud Messaging (FCM HTTP v1).

Requires a service account (FIREBASE_SERVICE_ACCOUNT_KEY or FIREBASE_SERVICE_ACCOUNT_PATH).
If not configured the adapter is disabled and send() returns a CHANNEL_DISABLED outcome.
A token FCM reports as unregistered comes back as TOKEN_DEAD so the caller can clear it.
"""
import logging
import threading
import time
from typing import Any, Callable

import httpx
import jwt

from clinic_notify.core.channel_config import ChannelConfig, ServiceAccount
from clinic_notify.core.constants import (
    ERROR_MESSAGE_MAX_LENGTH,
    FCM_ACCESS_TOKEN_REFRESH_MARGIN_SECONDS,
    FCM_SCOPE,
    FCM_SEND_URL,
)
from clinic_notify.core.errors import (
    ConfigurationMissing,
    NotificationError,
    ProviderRejected,
    ProviderTimeout,
    RecipientDataMissing,
    TokenInvalid,
)
from clinic_notify.services.notifications.types import Channel, PushContent, RecipientContact, SendOutcome

logger = logging.getLogger(__name__)

# FCM v1 errorCode values meaning the registration token will never work again
_DEAD_TOKEN_ERROR_CODES = {"UNREGISTERED"}


class ServiceAccountTokenSource:
    """OAuth2 access token for FCM, minted from a service account JWT and cached until near expiry."""

    def __init__(self, account: ServiceAccount, http: httpx.Client) -> None:
        self._account = account
        self._http = http
        self._cache: tuple[str, float] | None = None  # (token, expiry_epoch)
        self._lock = threading.Lock()

    def _assertion(self, now: float) -> str:
        token = jwt.encode(
            {
                "iss": self._account.client_email,
                "scope": FCM_SCOPE,
                "aud": self._account.token_uri,
                "iat": int(now),
                "exp": int(now) + 3600,
            },
            self._account.private_key,
            algorithm="RS256",
        )
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token

    def __call__(self) -> str:
        with self._lock:
            now = time.time()
            if self._cache and self._cache[1] > now:
                return self._cache[0]
            try:
                assertion = self._assertion(now)
            except Exception as e:
                raise ConfigurationMissing(f"FCM service account key unusable: {e}") from e
            try:
                resp = self._http.post(
                    self._account.token_uri,
                    data={
                        "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                        "assertion": assertion,
                    },
                )
            except httpx.TimeoutException as e:
                raise ProviderTimeout(f"FCM token request timed out: {e}") from e
            except httpx.HTTPError as e:
                raise ProviderRejected(f"FCM token request failed: {e}") from e
            if not resp.is_success:
                raise ProviderRejected(
                    f"FCM token request HTTP {resp.status_code}: {resp.text[:300]}",
                    status_code=resp.status_code,
                )
            body = _json_object(resp)
            access_token = body.get("access_token")
            if not access_token:
                raise ProviderRejected("FCM token response has no access_token")
            try:
                expires_in = float(body.get("expires_in") or 3600)
            except (TypeError, ValueError):
                expires_in = 3600.0
            self._cache = (access_token, now + expires_in - FCM_ACCESS_TOKEN_REFRESH_MARGIN_SECONDS)
            return access_token


def build_fcm_message(token: str, content: PushContent, android_channel_id: str) -> dict[str, Any]:
    """FCM v1 request body: notification + string data + platform delivery hints."""
    return {
        "message": {
            "token": token,
            "notification": {"title": content.title, "body": content.body},
            "data": {k: str(v) for k, v in content.data.items()},
            "android": {
                "priority": "high",
                "notification": {"channel_id": android_channel_id, "sound": "default"},
            },
            "apns": {"payload": {"aps": {"sound": "default", "badge": 1}}},
        }
    }


def _json_object(resp: httpx.Response) -> dict[str, Any]:
    """Response body as a dict, or {} when it is not JSON or not an object."""
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _fcm_error(resp: httpx.Response) -> ProviderRejected:
    """Map an FCM error response to TokenInvalid (dead token) or ProviderRejected."""
    error = _json_object(resp).get("error")
    if not isinstance(error, dict):
        error = {}
    status = str(error.get("status") or "")
    message = str(error.get("message") or resp.text[:300])
    details = error.get("details")
    error_codes = {
        d.get("errorCode")
        for d in (details if isinstance(details, list) else [])
        if isinstance(d, dict) and d.get("errorCode")
    }
    text = f"FCM HTTP {resp.status_code} {status}: {message}"[:ERROR_MESSAGE_MAX_LENGTH]
    if error_codes & _DEAD_TOKEN_ERROR_CODES:
        return TokenInvalid(text, status_code=resp.status_code)
    if status == "INVALID_ARGUMENT" and "registration token" in message.lower():
        return TokenInvalid(text, status_code=resp.status_code)
    return ProviderRejected(text, status_code=resp.status_code)


class PushAdapter:
    """Mobile push through FCM. One long-lived httpx client per adapter (thread-safe)."""

    channel = Channel.PUSH

    def __init__(
        self,
        config: ChannelConfig,
        *,
        http_client: httpx.Client | None = None,
        access_token: Callable[[], str] | None = None,
    ) -> None:
        self._account = config.push
        self._android_channel_id = config.android_channel_id
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=config.timeout_seconds)
        self._access_token = access_token
        if self._access_token is None and self._account is not None:
            self._access_token = ServiceAccountTokenSource(self._account, self._http)

    @property
    def enabled(self) -> bool:
        return self._account is not None and self._access_token is not None

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def send(self, recipient: RecipientContact, content: PushContent) -> SendOutcome:
        try:
            message_id = self._send(recipient, content)
        except NotificationError as e:
            return SendOutcome.from_error(e)
        return SendOutcome.ok(message_id)

    def _send(self, recipient: RecipientContact, content: PushContent) -> str | None:
        if not recipient.push_token:
            raise RecipientDataMissing("no push token")
        if not self.enabled:
            raise ConfigurationMissing("push channel disabled (FCM not configured)")
        bearer = self._access_token()
        url = FCM_SEND_URL.format(project_id=self._account.project_id)
        body = build_fcm_message(recipient.push_token, content, self._android_channel_id)
        try:
            resp = self._http.post(url, json=body, headers={"Authorization": f"Bearer {bearer}"})
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"FCM request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderRejected(f"FCM request failed: {e}") from e
        if resp.status_code != 200:
            err = _fcm_error(resp)
            logger.warning("FCM rejected push for user %s: %s", recipient.user_id, err.message)
            raise err
        return _json_object(resp).get("name")
