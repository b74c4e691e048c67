"""Shared validation utilities"""

import re
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(:[0-5]\d(\.\d+)?)?$")


def clean_optional(value: Optional[str]) -> Optional[str]:
    """Strip whitespace; empty strings become None"""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Trim and lowercase an email address.

    Returns None for empty values. Malformed addresses are kept as typed
    (they come from public booking forms) so they can still be matched.
    """
    email = clean_optional(email)
    if email is None:
        return None
    return email.lower()


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Remove spaces, dots, dashes and brackets from a phone number.

    A leading ``+`` is preserved; no country is assumed.
    """
    phone = clean_optional(phone)
    if phone is None:
        return None
    prefix = "+" if phone.startswith("+") else ""
    digits = re.sub(r"\D", "", phone)
    return f"{prefix}{digits}" if digits else None


def validate_time(value: str) -> str:
    """
    Validate a clock time and return it as ``HH:MM`` (seconds dropped).

    Raises:
        ValueError: If the value is not a valid 24h time
    """
    value = (value or "").strip()
    match = TIME_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid time: {value!r}")
    return f"{int(match.group(1)):02d}:{match.group(2)}"
