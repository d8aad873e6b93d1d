"""Normalization of login identifiers (email or phone)."""

import re

BANGLADESH_MOBILE = re.compile(r"^(?:\+?880|0)?(1[3-9]\d{8})$")
E164 = re.compile(r"^\+[1-9]\d{7,14}$")


def is_email(identifier: str) -> bool:
    """An identifier containing '@' is treated as an email address."""
    return "@" in identifier


def normalize_email(email: str) -> str:
    """Lower-case and trim an email address."""
    return email.strip().lower()


def normalize_phone(phone: str) -> str | None:
    """
    Normalize a phone number to E.164.

    Local Bangladeshi mobile numbers (01XXXXXXXXX) get the +880 prefix.

    Args:
        phone: Raw phone number as typed by the user

    Returns:
        Normalized number, or None if it is not a valid phone number
    """
    compact = re.sub(r"[\s\-().]", "", phone)

    match = BANGLADESH_MOBILE.match(compact)
    if match:
        return f"+880{match.group(1)}"

    if E164.match(compact):
        return compact

    return None


def normalize_identifier(identifier: str) -> tuple[str, str | None]:
    """
    Classify and normalize a login identifier.

    Returns:
        Tuple of (identifier type, normalized value or None if unparseable)
    """
    if is_email(identifier):
        return "email", normalize_email(identifier)
    return "phone", normalize_phone(identifier)
