import pytest

from mobile_otp.application.otp.phone import normalize_mobile, mask_mobile
from mobile_otp.exceptions import InvalidFormat


@pytest.mark.parametrize("raw,expected", [
    ("+911234567890", "+911234567890"),
    ("1234567890", "+911234567890"),
    ("(987) 654-3210", "+919876543210"),
    ("+1 415 555 0100", "+14155550100"),
    ("919876543210", "+919876543210"),
    ("  +44 20 7946 0958 ", "+442079460958"),
])
def test_normalize_mobile_canonical_form(raw, expected):
    assert normalize_mobile(raw) == expected


@pytest.mark.parametrize("raw", [
    "1234567890",
    "+911234567890",
    "9123456789",
    "+1-415-555-0100",
    "00441234567890",
])
def test_normalize_mobile_is_idempotent(raw):
    once = normalize_mobile(raw)
    assert normalize_mobile(once) == once


def test_national_number_starting_with_country_digits_still_gets_prefix():
    assert normalize_mobile("9123456789") == "+919123456789"


def test_default_country_code_is_configurable():
    assert normalize_mobile("4155550100", default_country_code="1") == "+14155550100"


@pytest.mark.parametrize("raw", ["", "12345", "123456789", "1234567890123456", "abc", "+91 12"])
def test_normalize_mobile_rejects_bad_lengths(raw):
    with pytest.raises(InvalidFormat) as exc:
        normalize_mobile(raw)
    assert exc.value.status_code == 400
    assert exc.value.code == "INVALID_FORMAT"


def test_normalize_mobile_rejects_none():
    with pytest.raises(InvalidFormat):
        normalize_mobile(None)


def test_mask_mobile_keeps_last_four_digits():
    assert mask_mobile("+911234567890") == "*********7890"
    assert mask_mobile("12") == "****"
