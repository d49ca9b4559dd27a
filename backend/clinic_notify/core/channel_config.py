"""
Channel configuration snapshot, built once at process start from Settings.

Which channels are enabled is decided here (credential present or not) and passed
into the adapters and the Dispatcher; nothing checks a module-level flag later.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from clinic_notify.core.constants import GOOGLE_TOKEN_URI

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceAccount:
    """Fields of a Google service account JSON needed to mint FCM access tokens."""
    project_id: str
    client_email: str
    private_key: str
    token_uri: str = GOOGLE_TOKEN_URI

    @classmethod
    def from_json(cls, raw: str | dict[str, Any]) -> "ServiceAccount":
        data = json.loads(raw) if isinstance(raw, str) else raw
        if not isinstance(data, dict):
            raise ValueError("service account JSON is not an object")
        missing = [k for k in ("project_id", "client_email", "private_key") if not data.get(k)]
        if missing:
            raise ValueError(f"service account JSON missing {', '.join(missing)}")
        return cls(
            project_id=data["project_id"],
            client_email=data["client_email"],
            private_key=data["private_key"],
            token_uri=data.get("token_uri") or GOOGLE_TOKEN_URI,
        )


@dataclass(frozen=True)
class KakaoCredentials:
    api_key: str
    sender_key: str
    base_url: str


@dataclass(frozen=True)
class ChannelConfig:
    """Snapshot of channel config for passing around (e.g. tests build one directly)."""
    push: ServiceAccount | None = None
    kakao: KakaoCredentials | None = None
    # NotificationType value -> AlimTalk template code
    template_codes: dict[str, str] = field(default_factory=dict)
    android_channel_id: str = "beautycare_default"
    deeplink_base: str = "beautycare://"
    timeout_seconds: float = 10.0
    phone_country_code: str = "82"
    sms_brand_prefix: str = "[뷰티케어]"
    clinic_timezone: str = "Asia/Seoul"
    max_concurrency: int = 4

    @property
    def push_enabled(self) -> bool:
        return self.push is not None

    @property
    def kakao_enabled(self) -> bool:
        return self.kakao is not None

    @classmethod
    def from_settings(cls, settings: Any) -> "ChannelConfig":
        push = _load_service_account(
            settings.firebase_service_account_key, settings.firebase_service_account_path
        )
        if push is None:
            logger.warning("FIREBASE_SERVICE_ACCOUNT_KEY/PATH not set or invalid; push channel disabled")

        kakao = None
        if settings.kakao_biz_api_key and settings.kakao_sender_key:
            kakao = KakaoCredentials(
                api_key=settings.kakao_biz_api_key,
                sender_key=settings.kakao_sender_key,
                base_url=settings.kakao_biz_api_url.rstrip("/"),
            )
        else:
            logger.warning("KAKAO_BIZ_API_KEY or KAKAO_SENDER_KEY not set; business message and SMS disabled")

        return cls(
            push=push,
            kakao=kakao,
            template_codes={"RESERVATION_CONFIRMED": settings.kakao_tpl_reservation_confirmed},
            android_channel_id=settings.fcm_android_channel_id,
            deeplink_base=settings.app_deeplink_base,
            timeout_seconds=settings.provider_timeout_seconds,
            phone_country_code=settings.phone_country_code,
            sms_brand_prefix=settings.sms_brand_prefix,
            clinic_timezone=settings.clinic_timezone,
            max_concurrency=max(1, settings.notify_max_concurrency),
        )


def _load_service_account(inline_json: str, path: str) -> ServiceAccount | None:
    """Load from inline JSON first, then from a file path. Return None if neither works."""
    raw = inline_json
    if not raw and path:
        p = Path(path)
        if not p.exists():
            logger.warning("FIREBASE_SERVICE_ACCOUNT_PATH %s does not exist", path)
            return None
        try:
            raw = p.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("FIREBASE_SERVICE_ACCOUNT_PATH read failed: %s", e)
            return None
    if not raw:
        return None
    try:
        return ServiceAccount.from_json(raw)
    except ValueError as e:
        logger.warning("Firebase service account parse failed: %s", e)
        return None
