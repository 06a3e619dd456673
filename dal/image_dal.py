"""Async Data Access Layer for the `images` table.

Provides ImageDAL, the metadata store used by the image lifecycle engine.
Every method opens its own connection through
`utils.database_init.AsyncDatabaseInitializer`, so concurrent requests and
sweeps never share connection state.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import aiosqlite

from models.errors import MetadataStoreError
from models.image_record import ImageRecord
from utils.database_init import AsyncDatabaseInitializer

logger = logging.getLogger(__name__)


class ImageDAL:
    """Data access layer for image metadata records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`). Driver errors are re-raised as
    `MetadataStoreError`.
    """

    _COLUMNS = (
        "id",
        "original_name",
        "mime_type",
        "size",
        "path",
        "url",
        "expires_at",
        "created_at",
        "is_expired_flag",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)
    _PLACEHOLDERS = ", ".join("?" for _ in _COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def put(self, record: ImageRecord) -> None:
        """Insert a record, or refresh the mutable fields of an existing one.

        `path`, `expires_at` and `created_at` are never overwritten, and the
        expired flag can only move from false to true.
        """
        try:
            async with self._db.connection() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO images ({self._COLUMN_LIST}) VALUES ({self._PLACEHOLDERS})
                    ON CONFLICT(id) DO UPDATE SET
                        original_name = excluded.original_name,
                        mime_type = excluded.mime_type,
                        size = excluded.size,
                        url = excluded.url,
                        is_expired_flag = MAX(images.is_expired_flag, excluded.is_expired_flag)
                    """,
                    self._record_to_row(record),
                )
                await conn.commit()
        except aiosqlite.Error as exc:
            raise MetadataStoreError(f"Failed to save image {record.id}") from exc
        logger.info("Saved image %s to metadata store", record.id)

    async def get_by_id(self, image_id: str) -> Optional[ImageRecord]:
        """Return the ImageRecord for `image_id`, or None if not found."""
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute(
                    f"SELECT {self._COLUMN_LIST} FROM images WHERE id = ?",
                    (image_id,),
                )
                row = await cur.fetchone()
        except aiosqlite.Error as exc:
            raise MetadataStoreError(f"Failed to load image {image_id}") from exc
        if not row:
            return None
        try:
            return self._row_to_record(row)
        except (TypeError, ValueError) as exc:
            raise MetadataStoreError(f"Image {image_id} has a malformed row: {exc}") from exc

    async def delete_by_id(self, image_id: str) -> bool:
        """Delete a record by id. Returns True if a row was deleted.

        The lifecycle engine never calls this; expired metadata is kept.
        """
        try:
            async with self._db.connection() as conn:
                await conn.execute("DELETE FROM images WHERE id = ?", (image_id,))
                await conn.commit()
                cur = await conn.execute("SELECT changes()")
                changed = await cur.fetchone()
        except aiosqlite.Error as exc:
            raise MetadataStoreError(f"Failed to delete image {image_id}") from exc
        deleted = bool(changed and changed[0] > 0)
        if deleted:
            logger.info("Deleted image %s from metadata store", image_id)
        return deleted

    async def set_expired_flag(self, image_id: str) -> bool:
        """Set `is_expired_flag` to true. Idempotent.

        Returns:
            True if a row with `image_id` exists (whether or not it was
            already flagged), False otherwise.
        """
        try:
            async with self._db.connection() as conn:
                await conn.execute(
                    "UPDATE images SET is_expired_flag = 1 WHERE id = ?",
                    (image_id,),
                )
                await conn.commit()
                cur = await conn.execute("SELECT changes()")
                changed = await cur.fetchone()
        except aiosqlite.Error as exc:
            raise MetadataStoreError(f"Failed to mark image {image_id} as expired") from exc
        logger.info("Marked image %s as expired in metadata store", image_id)
        return bool(changed and changed[0] > 0)

    async def scan_expired_or_flagged(self, now: datetime) -> List[ImageRecord]:
        """Return records with `expires_at < now` or the expired flag set.

        The comparison is done in whole epoch seconds, so a record expiring
        within the current second is not returned; the sweep's full scan
        catches those.
        """
        cutoff = math.floor(now.timestamp())
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute(
                    f"SELECT {self._COLUMN_LIST} FROM images "
                    "WHERE expires_at < ? OR is_expired_flag = 1",
                    (cutoff,),
                )
                rows = await cur.fetchall()
        except aiosqlite.Error as exc:
            raise MetadataStoreError("Failed to scan for expired images") from exc
        return self._rows_to_records(rows)

    async def scan_all(self) -> List[ImageRecord]:
        """Return every record in the store. Malformed rows are logged and skipped."""
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute(
                    f"SELECT {self._COLUMN_LIST} FROM images ORDER BY created_at"
                )
                rows = await cur.fetchall()
        except aiosqlite.Error as exc:
            raise MetadataStoreError("Failed to scan images") from exc
        return self._rows_to_records(rows)

    async def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute("SELECT 1")
                row = await cur.fetchone()
        except aiosqlite.Error as exc:
            logger.error("Metadata store ping failed: %s", exc)
            return False
        return bool(row and row[0] == 1)

    @classmethod
    def _rows_to_records(cls, rows: Sequence[Sequence[object]]) -> List[ImageRecord]:
        """Convert scan rows, skipping any row that is not a valid record."""
        records = []
        for row in rows:
            try:
                records.append(cls._row_to_record(row))
            except (TypeError, ValueError) as exc:
                logger.error("Skipping malformed image row %r: %s", row[0] if row else None, exc)
        return records

    @staticmethod
    def _record_to_row(record: ImageRecord) -> tuple:
        return (
            record.id,
            record.original_name,
            record.mime_type,
            record.size,
            record.path,
            record.url,
            record.expires_at.timestamp(),
            record.created_at.timestamp(),
            1 if record.is_expired_flag else 0,
        )

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> ImageRecord:
        """Convert a DB row tuple into an ImageRecord."""
        return ImageRecord(
            id=row[0],
            original_name=row[1],
            mime_type=row[2],
            size=int(row[3] or 0),
            path=row[4],
            url=row[5],
            expires_at=datetime.fromtimestamp(float(row[6]), tz=timezone.utc),
            created_at=datetime.fromtimestamp(float(row[7]), tz=timezone.utc),
            is_expired_flag=bool(row[8]),
        )
