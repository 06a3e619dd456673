"""Validation helpers for upload-intent requests."""

import re
from datetime import timedelta
from typing import Any, Optional

from models.errors import ValidationError

DEFAULT_EXPIRATION_MINUTES = 60

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9.-]")


def sanitize_display_name(display_name: str) -> str:
    """Replace every character outside `[A-Za-z0-9.-]` with `_`.

    The result is safe to embed in an object key regardless of caller input.
    """
    return _UNSAFE_KEY_CHARS.sub("_", display_name)


def build_object_key(image_id: str, display_name: str, prefix: str = "images/") -> str:
    """Derive the object-store key for an image from its id and display name."""
    return f"{prefix}{image_id}-{sanitize_display_name(display_name)}"


def validate_upload_intent(display_name: Optional[str], content_type: Optional[str], ttl: Any) -> None:
    """Check the inputs of an upload intent.

    Raises:
        ValidationError: If a field is missing or the TTL is not a positive duration.
    """
    name = (display_name or "").strip() if isinstance(display_name, str) else ""
    ctype = (content_type or "").strip() if isinstance(content_type, str) else ""
    if not name or not ctype:
        raise ValidationError("fileName and contentType are required")
    if not isinstance(ttl, timedelta) or ttl <= timedelta(0):
        raise ValidationError("Invalid expiration time")


def parse_expiration_minutes(value: Any) -> int:
    """Parse the `expirationMinutes` request field into a positive integer.

    Accepts ints and base-10 numeric strings; a missing value means the default.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_EXPIRATION_MINUTES
    if isinstance(value, bool):
        raise ValidationError("Invalid expiration time")
    if isinstance(value, int):
        minutes = value
    else:
        try:
            minutes = int(str(value).strip(), 10)
        except ValueError as exc:
            raise ValidationError("Invalid expiration time") from exc
    if minutes <= 0:
        raise ValidationError("Invalid expiration time")
    return minutes
