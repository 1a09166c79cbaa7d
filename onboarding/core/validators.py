"""Input validation helpers for onboarding payloads."""
from __future__ import annotations
from typing import Any, Mapping

from .errors import ValidationError

EMAIL_MAX_LENGTH = 254
NAME_MAX_LENGTH = 128


def require_fields(payload: Mapping[str, Any], *fields: str) -> None:
    """Raise a 400 for the first field that is missing or blank."""
    for name in fields:
        value = payload.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{name} is required")


def validate_email(email: Any) -> str:
    """Validate and normalize an email address.

    Raises:
        ValidationError: If email is invalid
    """
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("email is required")

    email = email.strip().lower()
    if "@" not in email:
        raise ValidationError("Invalid email format")

    local, domain = email.rsplit("@", 1)
    if not local or not domain or "." not in domain:
        raise ValidationError("Invalid email format")
    if len(email) > EMAIL_MAX_LENGTH:
        raise ValidationError("Email exceeds maximum length")

    return email


def validate_name(name: Any, field: str) -> str:
    """Validate first/last name fields and return them trimmed."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{field} is required")

    name = name.strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"{field} exceeds maximum length")
    if any(char in name for char in "<>`|$"):
        raise ValidationError(f"{field} contains invalid characters")

    return name


def parse_role(raw: Any) -> str:
    """Accept a role as a plain string or a select-input object ``{"value": ...}``."""
    if isinstance(raw, Mapping):
        raw = raw.get("value")
    return raw.strip() if isinstance(raw, str) else ""
