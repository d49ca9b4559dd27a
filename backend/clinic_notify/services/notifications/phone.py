"""Phone number normalization for the Kakao Biz API (AlimTalk and SMS)."""
import re

_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_phone(phone: str | None, country_code: str = "82") -> str:
    """
    Strip separators and turn an international prefix into the local trunk prefix.
    '+82 10-1234-5678', '+821012345678' and '010-1234-5678' all -> '01012345678'.
    Returns '' for empty input.
    """
    if not phone:
        return ""
    cleaned = _SEPARATORS.sub("", phone)
    prefix = f"+{country_code}"
    if cleaned.startswith(prefix):
        rest = cleaned[len(prefix):]
        # +82 010... is a common input mistake; don't double the trunk zero
        cleaned = rest if rest.startswith("0") else "0" + rest
    return cleaned
