"""Object store contract used by the image lifecycle engine.

Implementations live in `services.s3_object_store` and
`services.local_object_store`. Failures other than "object absent" are raised
as `models.errors.ObjectStoreError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PresignedUrls:
    """A write URL and a read URL for one key, sharing one expiry horizon."""

    upload_url: str
    download_url: str


class ObjectStore(ABC):
    """Capability contract for the store holding image bytes."""

    @abstractmethod
    async def create_upload_and_download_urls(
        self, key: str, content_type: str, ttl_seconds: int
    ) -> PresignedUrls:
        """Issue time-limited write and read URLs for `key`.

        Both URLs expire no later than `ttl_seconds` from issuance.
        """

    @abstractmethod
    async def fetch_object(self, key: str) -> Optional[bytes]:
        """Return the object's bytes, or None if no object exists at `key`."""

    @abstractmethod
    async def delete_object(self, key: str) -> bool:
        """Delete the object at `key`.

        Returns:
            True if an object was deleted (or the backend cannot tell),
            False if it was already absent. Absence is not an error.
        """

    @abstractmethod
    async def check_connectivity(self) -> bool:
        """Return True if the backend is reachable and usable."""
