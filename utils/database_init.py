import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite database holding image metadata.

    - The database file is located at: <db_dir>/app.db
    - A RuntimeError is raised if `db_dir` is not a directory and cannot be created.
    - On the first call to `ensure_database()` for a given instance the
      `images` table and its indexes are created if missing. Existing rows
      are kept: metadata outlives the objects it describes.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, db_dir: Path | str) -> None:
        db_dir = Path(db_dir).expanduser()

        # If the path exists but is not a directory, that's a configuration error.
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR points to a file, not a directory ({db_dir}). "
                "Please set DATABASE_DIR to a directory path."
            )

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {db_dir}"
            ) from exc

        self.db_dir = db_dir
        self.db_path = self.db_dir / "app.db"

        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database and schema exist at `self.db_path`.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            max_attempts = 3
            for attempt in range(1, max_attempts + 1):
                try:
                    async with aiosqlite.connect(self.db_path) as db:
                        await db.execute("PRAGMA journal_mode=WAL;")
                        await db.execute(
                            """
                            CREATE TABLE IF NOT EXISTS images (
                                id TEXT PRIMARY KEY,
                                original_name TEXT NOT NULL,
                                mime_type TEXT NOT NULL,
                                size INTEGER NOT NULL DEFAULT 0,
                                path TEXT NOT NULL,
                                url TEXT,
                                expires_at REAL NOT NULL,
                                created_at REAL NOT NULL,
                                is_expired_flag INTEGER NOT NULL DEFAULT 0
                            )
                            """
                        )
                        # The sweep filters on both columns.
                        await db.execute(
                            "CREATE INDEX IF NOT EXISTS idx_images_expires_at ON images(expires_at)"
                        )
                        await db.execute(
                            "CREATE INDEX IF NOT EXISTS idx_images_expired_flag ON images(is_expired_flag)"
                        )
                        await db.commit()
                    break
                except FileNotFoundError:
                    # On some platforms a transient missing file error may occur; retry a few times.
                    if attempt >= max_attempts:
                        raise
                    await asyncio.sleep(0.1 * attempt)

            self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding a fresh `aiosqlite.Connection`.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
