"""S3-backed object store using `aioboto3`.

Works against AWS S3 or any S3-compatible endpoint (LocalStack, MinIO) when
`endpoint_url` is given.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from models.errors import ObjectStoreError
from services.object_store import ObjectStore, PresignedUrls

logger = logging.getLogger(__name__)

# SigV4 presigned URLs cannot outlive seven days.
MAX_PRESIGN_SECONDS = 7 * 24 * 60 * 60

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class S3ObjectStore(ObjectStore):
    """Presign, fetch and delete image objects in one S3 bucket."""

    def __init__(
        self,
        bucket: str,
        *,
        region_name: str = "eu-west-1",
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        session: Optional[Any] = None,
    ) -> None:
        if not bucket:
            raise ValueError("An S3 bucket name is required.")
        self.bucket = bucket
        self._client_kwargs: Dict[str, Any] = {"region_name": region_name}
        if endpoint_url:
            self._client_kwargs["endpoint_url"] = endpoint_url
        # Only pass credentials when both are provided; otherwise defer to the default chain.
        if aws_access_key_id and aws_secret_access_key:
            self._client_kwargs["aws_access_key_id"] = aws_access_key_id
            self._client_kwargs["aws_secret_access_key"] = aws_secret_access_key
        self._session = session or aioboto3.Session()
        logger.info("S3ObjectStore initialized with bucket %s in region %s", bucket, region_name)

    def _client(self):
        return self._session.client("s3", **self._client_kwargs)

    async def create_upload_and_download_urls(
        self, key: str, content_type: str, ttl_seconds: int
    ) -> PresignedUrls:
        expires_in = min(int(ttl_seconds), MAX_PRESIGN_SECONDS)
        if expires_in < ttl_seconds:
            logger.warning(
                "Requested TTL %ss for %s exceeds presign limit; URLs capped at %ss",
                ttl_seconds,
                key,
                expires_in,
            )
        try:
            async with self._client() as s3:
                upload_url = await s3.generate_presigned_url(
                    "put_object",
                    Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                    ExpiresIn=expires_in,
                )
                download_url = await s3.generate_presigned_url(
                    "get_object",
                    Params={"Bucket": self.bucket, "Key": key},
                    ExpiresIn=expires_in,
                )
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(f"Failed to generate presigned URLs for {key}") from exc
        return PresignedUrls(upload_url=upload_url, download_url=download_url)

    async def fetch_object(self, key: str) -> Optional[bytes]:
        try:
            async with self._client() as s3:
                response = await s3.get_object(Bucket=self.bucket, Key=key)
                body = response.get("Body")
                if body is None:
                    return None
                return await body.read()
        except ClientError as exc:
            if _error_code(exc) in _MISSING_KEY_CODES:
                return None
            raise ObjectStoreError(f"Failed to fetch object {key}") from exc
        except BotoCoreError as exc:
            raise ObjectStoreError(f"Failed to fetch object {key}") from exc

    async def delete_object(self, key: str) -> bool:
        # S3 answers 204 whether or not the key existed, so absence is indistinguishable.
        try:
            async with self._client() as s3:
                await s3.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_KEY_CODES:
                return False
            raise ObjectStoreError(f"Failed to delete object {key}") from exc
        except BotoCoreError as exc:
            raise ObjectStoreError(f"Failed to delete object {key}") from exc
        return True

    async def check_connectivity(self) -> bool:
        try:
            async with self._client() as s3:
                await s3.head_bucket(Bucket=self.bucket)
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 connectivity check failed for bucket %s: %s", self.bucket, exc)
            return False
        return True


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))
