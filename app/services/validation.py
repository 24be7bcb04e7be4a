"""Input checks shared by the public inquiry surface and the agent tools."""

import re
from typing import Dict, Optional

from app.config import settings

MALICIOUS_PATTERN = re.compile(r"<script|onerror|onload|javascript:", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^(09|\+639)\d{9}$")


def contains_malicious_content(*values: Optional[str]) -> bool:
    return any(isinstance(value, str) and MALICIOUS_PATTERN.search(value) for value in values)


def sanitize_text(value: Optional[str]) -> Optional[str]:
    """Trim and drop angle brackets."""
    if value is None:
        return None
    return value.strip().replace("<", "").replace(">", "")


def normalize_phone(phone: str) -> str:
    return re.sub(r"[\s-]", "", phone or "")


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(normalize_phone(phone)))


def validate_inquiry_fields(name: str, email: str, phone: str, message: str) -> Dict[str, str]:
    """
    Returns a field -> message map; empty when the submission is acceptable.
    Expects already-sanitised values.
    """
    errors: Dict[str, str] = {}

    if not name:
        errors["name"] = "Name is required"

    if not email:
        errors["email"] = "Email is required"
    elif not is_valid_email(email):
        errors["email"] = "Invalid email format"

    if not phone:
        errors["phone"] = "Phone number is required"
    elif not is_valid_phone(phone):
        errors["phone"] = "Invalid phone number. Use 09XXXXXXXXX or +639XXXXXXXXX"

    min_length = settings.INQUIRY_MIN_MESSAGE_LENGTH
    if not message:
        errors["message"] = "Message is required"
    elif len(message) < min_length:
        errors["message"] = f"Message must be at least {min_length} characters"

    return errors
