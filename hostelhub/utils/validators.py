"""Custom validation utilities."""

import re

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_blank(value: str | None) -> bool:
    """True for None, empty and whitespace-only strings."""
    return value is None or not value.strip()


def validate_email(email: str) -> bool:
    """Loose email shape check (something@domain.tld)."""
    return bool(EMAIL_PATTERN.match(email.strip()))


def validate_indian_mobile(mobile: str) -> bool:
    """Validate an Indian mobile number.

    Accepted formats:
    - +919876543210 (international)
    - 09876543210 (local with trunk prefix)
    - 9876543210 (ten digits)

    Args:
        mobile: Mobile number to validate

    Returns:
        bool: True if valid mobile format
    """
    cleaned = re.sub(r"[\s\-\(\)]", "", mobile)

    if cleaned.startswith("+91"):
        cleaned = cleaned[3:]
    elif cleaned.startswith("0"):
        cleaned = cleaned[1:]

    return len(cleaned) == 10 and cleaned.isdigit() and cleaned[0] in "6789"


def normalize_mobile(mobile: str) -> str:
    """Normalize a mobile number to +91XXXXXXXXXX, or return it unchanged."""
    cleaned = re.sub(r"[^\d+]", "", mobile)

    if cleaned.startswith("+91"):
        return cleaned
    if cleaned.startswith("0") and len(cleaned) == 11:
        return "+91" + cleaned[1:]
    if len(cleaned) == 10:
        return "+91" + cleaned

    return mobile


def mask_sensitive_data(data: str, visible_chars: int = 4) -> str:
    """Mask sensitive data showing only last few characters.

    Args:
        data: Sensitive data to mask
        visible_chars: Number of characters to show at end

    Returns:
        str: Masked string like '******3210'
    """
    if len(data) <= visible_chars:
        return "*" * len(data)

    masked_length = len(data) - visible_chars
    return "*" * masked_length + data[-visible_chars:]
