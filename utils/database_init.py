import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite database backing the record store.

    - The database file is located at: <db_dir>/app.db
    - A RuntimeError is raised if `db_dir` points to a file or cannot be created.
    - On the first call to `ensure_database()` for a given instance:
        * If `reset` is set, any existing database file is deleted.
        * The `documents` table and its indexes are created.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, db_dir: Path | str, *, reset: bool = False) -> None:
        db_dir = Path(db_dir).expanduser()

        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"Database directory {db_dir} points to a file, not a directory. "
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
        self.reset = reset

        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite schema exists at `self.db_path`.

        On first call this will:
            - Delete any existing database file when `reset` is set.
            - Create the `documents` table and its lookup indexes.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            if self.reset and self.db_path.exists():
                try:
                    self.db_path.unlink()
                except Exception as exc:
                    raise RuntimeError(
                        f"Failed to delete existing database at {self.db_path}"
                    ) from exc

            max_attempts = 3
            for attempt in range(1, max_attempts + 1):
                try:
                    async with aiosqlite.connect(self.db_path) as db:
                        await db.execute("PRAGMA journal_mode=WAL;")
                        # One row per document; `body` holds the JSON document
                        # and the remaining columns mirror fields used for lookups.
                        await db.execute(
                            """
                            CREATE TABLE IF NOT EXISTS documents (
                                id TEXT PRIMARY KEY,
                                collection TEXT NOT NULL,
                                owner TEXT NOT NULL,
                                body TEXT NOT NULL,
                                created_at REAL NOT NULL,
                                updated_at REAL NOT NULL,
                                revision INTEGER NOT NULL DEFAULT 0
                            )
                            """
                        )
                        await db.execute(
                            "CREATE INDEX IF NOT EXISTS idx_documents_owner "
                            "ON documents(collection, owner, created_at)"
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
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
