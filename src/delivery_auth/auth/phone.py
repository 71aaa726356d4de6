"""
delivery_auth.auth.phone

Phone number handling for phone/OTP sign-in.

Responsibilities:
- Normalize Indian mobile numbers given in any common format to E.164 (`+91XXXXXXXXXX`).
- Format numbers for display.
"""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D")
# Indian mobile numbers are 10 digits starting with 6, 7, 8 or 9.
_MOBILE = re.compile(r"^[6-9]\d{9}$")

COUNTRY_CODE = "+91"


class PhoneNumberError(ValueError):
    pass


def clean_phone_number(phone_number: str | None) -> str:
    if not phone_number:
        return ""
    return _NON_DIGITS.sub("", str(phone_number))


def extract_mobile_number(phone_number: str | None) -> str:
    """
    Return the bare 10-digit number from `9876543210`, `09876543210`, `919876543210`
    or `+91 98765-43210`; empty string when the shape is not recognised.
    """

    cleaned = clean_phone_number(phone_number)
    if len(cleaned) == 10:
        return cleaned
    if len(cleaned) == 11 and cleaned.startswith("0"):
        return cleaned[1:]
    if len(cleaned) == 12 and cleaned.startswith("91"):
        return cleaned[2:]
    return ""


def normalize_indian_phone_number(phone_number: str | None) -> str:
    mobile = extract_mobile_number(phone_number)
    if not mobile:
        raise PhoneNumberError("Please enter a valid 10-digit Indian mobile number")
    if not _MOBILE.match(mobile):
        raise PhoneNumberError(
            "Invalid Indian mobile number. It should start with 6, 7, 8, or 9 and be 10 digits long."
        )
    return f"{COUNTRY_CODE}{mobile}"


def format_phone_number(phone_number: str) -> str:
    cleaned = clean_phone_number(phone_number)
    if len(cleaned) < 10:
        return phone_number
    mobile = cleaned[-10:]
    return f"{COUNTRY_CODE} {mobile[:5]} {mobile[5:]}"
