"""Payload validation and per-type content."""
import pytest

from clinic_notify.core.channel_config import ChannelConfig
from clinic_notify.core.errors import PayloadInvalid
from clinic_notify.services.notifications.templates import (
    build_content,
    correlation_key,
    format_message_datetime,
    format_push_datetime,
    validate_payload,
)
from clinic_notify.services.notifications.types import NotificationType, RecipientContact

CONFIRMED = NotificationType.RESERVATION_CONFIRMED


@pytest.fixture
def contact():
    return RecipientContact(user_id=1, name="김환자", phone="010-1234-5678", push_token="tok")


@pytest.fixture
def confirmed_payload():
    return {
        "reservation_id": "7",
        "hospital_name": "강남뷰티의원",
        "reserved_at": "2026-03-05T05:30:00Z",
        "treatment_name": "보톡스",
        "hospital_address": "서울 강남구",
    }


def test_validate_payload_stringifies_values():
    clean = validate_payload(NotificationType.UNANSWERED_CHAT, {"hospital_id": 3, "unanswered_count": 2})
    assert clean == {"hospital_id": "3", "unanswered_count": "2"}


def test_validate_payload_rejects_missing_and_blank_keys():
    with pytest.raises(PayloadInvalid) as exc:
        validate_payload(CONFIRMED, {"reservation_id": "7", "hospital_name": "  "})
    assert "hospital_name" in exc.value.message
    assert "reserved_at" in exc.value.message


def test_correlation_key_by_type():
    assert correlation_key(NotificationType.REVIEW_REQUEST, {"reservation_id": "9", "hospital_id": "2"}) == "9"
    assert correlation_key(NotificationType.NEW_REVIEW, {"hospital_id": "2"}) == "2"
    assert correlation_key(NotificationType.NEW_REVIEW, {}) is None


def test_datetimes_render_in_clinic_timezone():
    assert format_push_datetime("2026-03-05T05:30:00Z", "Asia/Seoul") == "2026.03.05 14:30"
    assert format_message_datetime("2026-03-05T05:30:00+00:00", "Asia/Seoul") == ("2026년 3월 5일", "14:30")


def test_reservation_confirmed_builds_all_three_channels(contact, confirmed_payload):
    config = ChannelConfig(template_codes={"RESERVATION_CONFIRMED": "TPL_RESV_CONFIRM"})
    content = build_content(CONFIRMED, confirmed_payload, contact, config)

    assert content.push.title == "예약 확정"
    assert "2026.03.05 14:30" in content.push.body
    assert content.push.data["type"] == "RESERVATION_CONFIRMED"
    assert content.push.data["reservation_id"] == "7"

    message = content.business_message
    assert message.template_code == "TPL_RESV_CONFIRM"
    assert message.variables["patientName"] == "김환자"
    assert message.variables["date"] == "2026년 3월 5일"
    assert message.variables["time"] == "14:30"
    assert message.buttons[0]["schemeAndroid"] == "beautycare://reservation/7"

    assert content.sms.text.startswith("[뷰티케어] 강남뷰티의원")


def test_no_template_code_means_no_business_message(contact, confirmed_payload):
    content = build_content(CONFIRMED, confirmed_payload, contact, ChannelConfig())
    assert content.business_message is None
    assert content.sms is not None


def test_unparseable_date_is_payload_invalid(contact, confirmed_payload):
    confirmed_payload["reserved_at"] = "next tuesday"
    with pytest.raises(PayloadInvalid):
        build_content(CONFIRMED, confirmed_payload, contact, ChannelConfig())


def test_staff_types_are_push_only(contact):
    content = build_content(
        NotificationType.UNANSWERED_CHAT,
        {"hospital_id": "3", "unanswered_count": "4"},
        contact,
        ChannelConfig(),
    )
    assert "4건" in content.push.body
    assert content.business_message is None
    assert content.sms is None
