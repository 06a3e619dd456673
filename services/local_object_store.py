"""Filesystem-backed object store for local development.

Objects live under a root directory. Upload and download URLs point back at
this service's `/objects/{key}` routes and carry an HMAC-SHA256 signature over
the operation, key, content type and expiry, so they are time-limited and
cannot be forged without the signing secret.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import math
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlencode

import aiofiles
import aiofiles.os

from models.errors import ObjectStoreError
from services.object_store import ObjectStore, PresignedUrls

logger = logging.getLogger(__name__)

OP_PUT = "put"
OP_GET = "get"


class LocalObjectStore(ObjectStore):
    """Store objects on disk and issue HMAC-signed URLs for them."""

    def __init__(self, root_dir: Path | str, public_base_url: str, signing_secret: str) -> None:
        if not signing_secret:
            raise ValueError("A signing secret is required for local presigned URLs.")
        self.root_dir = Path(root_dir).expanduser().resolve()
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")
        self._secret = signing_secret.encode("utf-8")

    def _resolve(self, key: str) -> Path:
        """Map a key to a path under the root, refusing anything that escapes it."""
        candidate = (self.root_dir / key).resolve()
        if candidate == self.root_dir or self.root_dir not in candidate.parents:
            raise ObjectStoreError(f"Object key {key!r} resolves outside the storage root")
        return candidate

    def sign(self, op: str, key: str, content_type: str, expires: int) -> str:
        message = f"{op}\n{key}\n{content_type}\n{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def verify(
        self,
        op: str,
        key: str,
        content_type: str,
        expires: int,
        signature: str,
        now: Optional[float] = None,
    ) -> bool:
        """Return True if `signature` is valid for the request and not yet expired."""
        now = time.time() if now is None else now
        if expires < now:
            return False
        expected = self.sign(op, key, content_type, expires)
        return hmac.compare_digest(expected, signature or "")

    def _signed_url(self, op: str, key: str, content_type: str, expires: int) -> str:
        query = urlencode(
            {
                "op": op,
                "ct": content_type,
                "expires": expires,
                "signature": self.sign(op, key, content_type, expires),
            }
        )
        return f"{self.public_base_url}/objects/{quote(key)}?{query}"

    async def create_upload_and_download_urls(
        self, key: str, content_type: str, ttl_seconds: int
    ) -> PresignedUrls:
        self._resolve(key)
        expires = math.floor(time.time()) + int(ttl_seconds)
        return PresignedUrls(
            upload_url=self._signed_url(OP_PUT, key, content_type, expires),
            download_url=self._signed_url(OP_GET, key, content_type, expires),
        )

    async def store_object(self, key: str, data: bytes) -> int:
        """Write `data` at `key`, replacing any existing object. Returns bytes written."""
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as exc:
            raise ObjectStoreError(f"Failed to store object {key}") from exc
        logger.info("Stored object %s (%d bytes)", key, len(data))
        return len(data)

    async def fetch_object(self, key: str) -> Optional[bytes]:
        path = self._resolve(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ObjectStoreError(f"Failed to fetch object {key}") from exc

    async def delete_object(self, key: str) -> bool:
        path = self._resolve(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise ObjectStoreError(f"Failed to delete object {key}") from exc
        return True

    async def check_connectivity(self) -> bool:
        return await aiofiles.os.path.isdir(self.root_dir)
