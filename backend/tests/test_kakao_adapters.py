"""Kakao AlimTalk and SMS adapters, against httpx.MockTransport."""
import json

import httpx

from clinic_notify.core.channel_config import ChannelConfig, KakaoCredentials
from clinic_notify.core.errors import ErrorCode
from clinic_notify.services.notifications.channels.kakao import BusinessMessageAdapter, KakaoBizClient, SmsAdapter
from clinic_notify.services.notifications.types import BusinessMessageContent, RecipientContact, SmsContent

CREDENTIALS = KakaoCredentials(api_key="biz-key", sender_key="sender-1", base_url="https://kakao.test/v2/sender")
CONFIG = ChannelConfig(kakao=CREDENTIALS)
CONTACT = RecipientContact(user_id=1, name="김환자", phone="+82 10-1234-5678")
MESSAGE = BusinessMessageContent(
    template_code="TPL_RESV_CONFIRM",
    variables={"patientName": "김환자", "hospitalName": "강남뷰티의원"},
    buttons=[{"type": "AL", "name": "예약 확인하기", "schemeAndroid": "beautycare://reservation/7"}],
)


def _client(handler, credentials=CREDENTIALS) -> KakaoBizClient:
    return KakaoBizClient(credentials, timeout=5, http_client=httpx.Client(transport=httpx.MockTransport(handler)))


def _ok(message_id: str = "msg-1") -> httpx.Response:
    return httpx.Response(
        200,
        json={"resultCode": "0000", "recipientList": [{"resultCode": "0000", "messageId": message_id}]},
    )


def test_alimtalk_posts_template_and_normalized_phone():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return _ok("alim-1")

    outcome = BusinessMessageAdapter(CONFIG, client=_client(handler)).send(CONTACT, MESSAGE)

    assert outcome.success
    assert outcome.provider_message_id == "alim-1"
    assert seen["url"] == "https://kakao.test/v2/sender/send"
    assert seen["auth"] == "Bearer biz-key"
    body = seen["body"]
    assert body["senderKey"] == "sender-1"
    assert body["templateCode"] == "TPL_RESV_CONFIRM"
    entry = body["recipientList"][0]
    assert entry["recipientNo"] == "01012345678"
    assert entry["templateParameter"]["hospitalName"] == "강남뷰티의원"
    assert entry["buttons"][0]["type"] == "AL"


def test_alimtalk_result_code_failure_is_rejected():
    def handler(request):
        return httpx.Response(
            200,
            json={"resultCode": "3018", "recipientList": [{"resultCode": "3018", "resultMessage": "NoSendAvailableException"}]},
        )

    outcome = BusinessMessageAdapter(CONFIG, client=_client(handler)).send(CONTACT, MESSAGE)

    assert not outcome.success
    assert outcome.error_code == ErrorCode.PROVIDER_REJECTED
    assert "3018" in outcome.error_message


def test_http_error_is_rejected():
    outcome = BusinessMessageAdapter(
        CONFIG, client=_client(lambda r: httpx.Response(401, json={"message": "invalid api key"}))
    ).send(CONTACT, MESSAGE)
    assert outcome.error_code == ErrorCode.PROVIDER_REJECTED
    assert "invalid api key" in outcome.error_message


def test_timeout_is_provider_timeout():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    outcome = SmsAdapter(CONFIG, client=_client(handler)).send(CONTACT, SmsContent(text="hi"))
    assert outcome.error_code == ErrorCode.PROVIDER_TIMEOUT


def test_sms_posts_plain_text():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return _ok("sms-1")

    outcome = SmsAdapter(CONFIG, client=_client(handler)).send(CONTACT, SmsContent(text="[뷰티케어] 예약이 확정되었습니다."))

    assert outcome.success
    assert outcome.provider_message_id == "sms-1"
    assert seen["url"] == "https://kakao.test/v2/sender/sms/send"
    assert seen["body"]["recipientList"] == [{"recipientNo": "01012345678", "content": "[뷰티케어] 예약이 확정되었습니다."}]


def test_missing_phone_makes_no_request():
    calls = []
    adapter = SmsAdapter(CONFIG, client=_client(lambda r: calls.append(r) or _ok()))
    outcome = adapter.send(RecipientContact(user_id=1, phone=None), SmsContent(text="hi"))
    assert outcome.error_code == ErrorCode.RECIPIENT_DATA_MISSING
    assert calls == []


def test_unconfigured_client_disables_both_channels():
    client = _client(lambda r: _ok(), credentials=None)
    business = BusinessMessageAdapter(ChannelConfig(), client=client)
    sms = SmsAdapter(ChannelConfig(), client=client)

    assert not business.enabled and not sms.enabled
    assert business.send(CONTACT, MESSAGE).error_code == ErrorCode.CHANNEL_DISABLED


def test_recipient_list_of_unexpected_shape_uses_top_level_result():
    client = _client(lambda r: httpx.Response(200, json={"resultCode": "0000", "messageId": "m-9", "recipientList": "n/a"}))
    assert client.post("/alimtalk", {}) == "m-9"


def test_close_releases_only_an_owned_client():
    owned = KakaoBizClient(CREDENTIALS, timeout=5)
    injected_http = httpx.Client(transport=httpx.MockTransport(lambda r: _ok()))
    injected = KakaoBizClient(CREDENTIALS, timeout=5, http_client=injected_http)

    BusinessMessageAdapter(CONFIG, client=owned).close()
    SmsAdapter(CONFIG, client=injected).close()

    assert owned._http.is_closed
    assert not injected_http.is_closed
