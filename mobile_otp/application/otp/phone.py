import re

from ...exceptions import InvalidFormat

MIN_DIGITS = 10
MAX_DIGITS = 15
NATIONAL_NUMBER_LENGTH = 10

_NON_DIGITS = re.compile(r"\D")


def normalize_mobile(raw: str, default_country_code: str = "91") -> str:
    """Canonicalize a free-form phone number to ``+<country code><digits>``.

    Every non-digit is dropped before validation. A leading ``+`` marks the
    number as already international; a bare national number (10 digits) gets
    the default country code; anything longer is assumed to carry its own
    country code. The result is stable under repeated normalization.
    """
    if raw is None:
        raise InvalidFormat()
    raw = raw.strip()
    digits = _NON_DIGITS.sub("", raw)
    if len(digits) < MIN_DIGITS or len(digits) > MAX_DIGITS:
        raise InvalidFormat()

    if raw.startswith("+") or len(digits) != NATIONAL_NUMBER_LENGTH:
        return f"+{digits}"

    country_code = _NON_DIGITS.sub("", default_country_code or "")
    canonical = f"{country_code}{digits}"
    if len(canonical) > MAX_DIGITS:
        raise InvalidFormat()
    return f"+{canonical}"


def mask_mobile(mobile: str) -> str:
    """Keep the last four digits for log lines."""
    if not mobile or len(mobile) <= 4:
        return "****"
    return f"{'*' * (len(mobile) - 4)}{mobile[-4:]}"
