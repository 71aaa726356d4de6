"""
tests.test_phone

Phone number normalization tests.
"""

from __future__ import annotations

import pytest

from delivery_auth.auth.phone import (
    PhoneNumberError,
    extract_mobile_number,
    format_phone_number,
    normalize_indian_phone_number,
)


@pytest.mark.parametrize(
    "raw",
    ["9876543210", "09876543210", "919876543210", "+91 98765-43210", "+91 (987) 654 3210"],
)
def test_common_formats_normalize_to_e164(raw: str) -> None:
    assert normalize_indian_phone_number(raw) == "+919876543210"


@pytest.mark.parametrize("raw", ["", None, "12345", "98765432101234"])
def test_unrecognised_shapes_are_rejected(raw: str | None) -> None:
    assert extract_mobile_number(raw) == ""
    with pytest.raises(PhoneNumberError):
        normalize_indian_phone_number(raw)


def test_numbers_must_start_with_six_to_nine() -> None:
    with pytest.raises(PhoneNumberError, match="start with 6, 7, 8, or 9"):
        normalize_indian_phone_number("5876543210")


def test_format_for_display() -> None:
    assert format_phone_number("+919876543210") == "+91 98765 43210"
    assert format_phone_number("123") == "123"
