"""Image lifecycle engine: creation, expiry-checked reads, and the expiration sweep.

The engine is stateless between calls. Both stores are injected at
construction; everything it knows about an image is reloaded from the
metadata store per call. Concurrent sweeps and reactive purges are safe
because the expire-and-purge transition is idempotent: the flag is written
before the object is deleted, neither step rolls back the other, and
deleting an absent object is not an error.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from dal.image_dal import ImageDAL
from models.image_record import ImageRecord, utc_now
from models.lifecycle_results import (
    ImageContent,
    LookupResult,
    PurgeOutcome,
    SweepReport,
    UploadTicket,
)
from services.object_store import ObjectStore
from utils.media_validation import build_object_key, validate_upload_intent

logger = logging.getLogger(__name__)

# Records expiring sooner than this are logged during the sweep's full scan.
EXPIRY_WARNING_WINDOW = timedelta(minutes=5)

Clock = Callable[[], datetime]


class ImageLifecycleEngine:
    """Orchestrate image records across the metadata store and the object store."""

    def __init__(
        self,
        metadata_store: ImageDAL,
        object_store: ObjectStore,
        *,
        key_prefix: str = "images/",
        clock: Optional[Clock] = None,
    ) -> None:
        """
        Args:
            metadata_store: Persists image records (see `dal.image_dal.ImageDAL`).
            object_store: Holds image bytes and issues presigned URLs.
            key_prefix: Prefix for derived object keys.
            clock: Returns the current UTC time; defaults to the system clock.
        """
        self.metadata_store = metadata_store
        self.object_store = object_store
        self.key_prefix = key_prefix
        self._clock = clock or utc_now

    async def initiate_upload(self, display_name: str, declared_content_type: str, ttl: timedelta) -> UploadTicket:
        """Create an active image record and presigned URLs to upload and read it.

        Args:
            display_name: Caller-supplied name; sanitized into the object key.
            declared_content_type: Content type the upload must use.
            ttl: Positive lifetime of the image.

        Returns:
            UploadTicket with the new id, write URL, read URL and metadata.

        Raises:
            ValidationError: If an argument is missing or the TTL is not positive.
            ObjectStoreError, MetadataStoreError: If either store fails; nothing
                is persisted in that case.
        """
        validate_upload_intent(display_name, declared_content_type, ttl)

        image_id = str(uuid.uuid4())
        key = build_object_key(image_id, display_name, self.key_prefix)
        created_at = self._clock()
        expires_at = created_at + ttl
        ttl_seconds = max(1, math.ceil(ttl.total_seconds()))

        try:
            urls = await self.object_store.create_upload_and_download_urls(key, declared_content_type, ttl_seconds)
        except Exception:
            logger.exception("Error generating presigned URLs for image %s (key %s)", image_id, key)
            raise

        record = ImageRecord(
            id=image_id,
            original_name=display_name,
            mime_type=declared_content_type,
            path=key,
            expires_at=expires_at,
            created_at=created_at,
            url=urls.download_url,
            size=0,
        )
        try:
            await self.metadata_store.put(record)
        except Exception:
            logger.exception("Error saving metadata for image %s", image_id)
            raise

        logger.info("Generated upload URL for %s with expiration at %s", image_id, expires_at.isoformat())
        return UploadTicket(
            id=image_id,
            upload_url=urls.upload_url,
            url=urls.download_url,
            expires_at=expires_at,
            created_at=created_at,
            original_name=display_name,
            mime_type=declared_content_type,
            size=0,
        )

    async def fetch_metadata(self, image_id: str) -> LookupResult[Dict[str, Any]]:
        """Return the public projection of an active image.

        Read-only: an expired record reports not-found but is not flagged or purged.
        """
        try:
            record = await self.metadata_store.get_by_id(image_id)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Error getting metadata for image %s: %s", image_id, exc)
            return LookupResult.failed(exc)

        if record is None or record.is_expired(self._clock()):
            return LookupResult.not_found()
        return LookupResult.found(record.public_view())

    async def fetch_content(self, image_id: str) -> LookupResult[ImageContent]:
        """Return the bytes of an active image, purging it if found expired."""
        try:
            record = await self.metadata_store.get_by_id(image_id)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Error getting image %s from metadata store: %s", image_id, exc)
            return LookupResult.failed(exc)

        if record is None:
            logger.info("Image %s not found in metadata store", image_id)
            return LookupResult.not_found()

        if record.is_expired(self._clock()):
            logger.info("Image %s has expired", image_id)
            await self.expire_and_purge(record)
            return LookupResult.not_found()

        try:
            data = await self.object_store.fetch_object(record.path)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Error getting object %s for image %s: %s", record.path, image_id, exc)
            return LookupResult.failed(exc)

        if data is None:
            # Absence alone does not prove expiry (never uploaded, or removed out-of-band).
            logger.warning("Image %s is active but object %s is missing", image_id, record.path)
            return LookupResult.not_found()

        return LookupResult.found(ImageContent(data=data, mime_type=record.mime_type, record=record))

    async def expire_and_purge(self, record: ImageRecord) -> PurgeOutcome:
        """Mark a record expired, then delete its object. Never raises.

        The flag is written first so a crash before the delete still leaves the
        record marked. The metadata row itself is kept.
        """
        outcome = PurgeOutcome(image_id=record.id)

        if not record.is_expired_flag:
            try:
                outcome.flag_set = await self.metadata_store.set_expired_flag(record.id)
                record.is_expired_flag = True
                if not outcome.flag_set:
                    logger.warning("Image %s has no metadata row to flag", record.id)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.error("Error marking image %s as expired: %s", record.id, exc)
                outcome.errors.append(f"flag {record.id}: {exc}")

        try:
            outcome.object_deleted = await self.object_store.delete_object(record.path)
            if outcome.object_deleted:
                logger.info("Deleted stored object %s for image %s", record.path, record.id)
            else:
                logger.debug("Object %s for image %s was already gone", record.path, record.id)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Error deleting object %s for image %s: %s", record.path, record.id, exc)
            outcome.errors.append(f"delete {record.id}: {exc}")

        return outcome

    async def sweep_expired(self) -> SweepReport:
        """Find every expirable record and drive it through expire-and-purge.

        Pass 1 trusts the store's expired-or-flagged filter; pass 2 re-checks
        every unflagged record against the clock to catch rows the coarser
        store filter missed. Failures are logged and counted, never raised.
        """
        report = SweepReport(started_at=self._clock())

        try:
            candidates = await self.metadata_store.scan_expired_or_flagged(report.started_at)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Error scanning for expired images: %s", exc)
            report.failures.append(f"scan_expired_or_flagged: {exc}")
            candidates = []

        report.flagged_scan_candidates = len(candidates)
        if candidates:
            logger.info("Found %d expired images to purge", len(candidates))
        for record in candidates:
            report.record(await self.expire_and_purge(record))

        now = self._clock()
        try:
            records = await self.metadata_store.scan_all()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Error scanning all images: %s", exc)
            report.failures.append(f"scan_all: {exc}")
            records = []

        logger.debug("Checking %d images for precise expiration at %s", len(records), now.isoformat())
        for record in records:
            if record.is_expired_flag:
                continue
            if record.expires_at < now:
                logger.info(
                    "Marking image %s as expired - expired %d seconds ago",
                    record.id,
                    int((now - record.expires_at).total_seconds()),
                )
                report.full_scan_candidates += 1
                report.record(await self.expire_and_purge(record))
            elif record.remaining_time(now) < EXPIRY_WARNING_WINDOW:
                logger.debug(
                    "Image %s will expire in %d seconds",
                    record.id,
                    int(record.remaining_time(now).total_seconds()),
                )

        report.finished_at = self._clock()
        logger.info(
            "Sweep finished: %d flagged-scan candidates, %d late candidates, %d flags set, %d objects deleted, %d failures",
            report.flagged_scan_candidates,
            report.full_scan_candidates,
            report.flags_set,
            report.objects_deleted,
            len(report.failures),
        )
        return report
