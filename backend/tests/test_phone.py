"""Phone normalization for the Kakao Biz API."""
import pytest

from clinic_notify.services.notifications.phone import normalize_phone


@pytest.mark.parametrize(
    "raw",
    [
        "+821012345678",
        "010-1234-5678",
        "+82 10-1234-5678",
        "(010) 1234.5678",
        "+82 010 1234 5678",
    ],
)
def test_formats_normalize_to_same_local_number(raw):
    assert normalize_phone(raw) == "01012345678"


def test_empty_phone_is_empty_string():
    assert normalize_phone(None) == ""
    assert normalize_phone("") == ""


def test_other_country_code_left_alone():
    assert normalize_phone("+1 415-555-0100") == "+14155550100"
    assert normalize_phone("+1 415-555-0100", country_code="1") == "04155550100"
