from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class ImageRecord:
    """In-memory representation of a row in the `images` table.

    Attributes:
        id: Random UUID string, generated at creation and never reused.
        original_name: Caller-supplied display name (raw, not path-safe).
        mime_type: Caller-declared content type, trusted as-is.
        path: Object-store key holding the binary content. Immutable.
        expires_at: Absolute UTC time after which the image is expired.
        created_at: UTC time the record was created.
        url: Read reference handed back to the caller; opaque to the service.
        size: Byte size, 0 unless known. Never re-measured.
        is_expired_flag: Persisted, monotonic cache of the expiration decision.
    """

    id: str
    original_name: str
    mime_type: str
    path: str
    expires_at: datetime
    created_at: datetime
    url: Optional[str] = None
    size: int = 0
    is_expired_flag: bool = False

    def __post_init__(self) -> None:
        if self.expires_at <= self.created_at:
            raise ValueError(
                f"Image {self.id}: expires_at must be later than created_at"
            )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return True if the flag is set or the expiry time has passed."""
        now = now or utc_now()
        return self.is_expired_flag or now > self.expires_at

    def remaining_time(self, now: Optional[datetime] = None) -> timedelta:
        """Time left before expiry; zero once flagged or past expiry."""
        if self.is_expired_flag:
            return timedelta(0)
        now = now or utc_now()
        return max(timedelta(0), self.expires_at - now)

    def public_view(self) -> Dict[str, Any]:
        """Projection safe to hand to callers (never exposes `path`)."""
        return {
            "id": self.id,
            "url": self.url,
            "originalName": self.original_name,
            "mimeType": self.mime_type,
            "size": self.size,
            "expiresAt": self.expires_at.isoformat(),
            "createdAt": self.created_at.isoformat(),
        }
