"""
Database management for pagesnap.
Handles SQLite connection, schema and snapshot/source operations.
"""

import asyncio
import sqlite3
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import aiosqlite

from src.snapshot.errors import DuplicateSnapshotError
from src.utils.config import get_settings, resolve_path
from src.utils.logging import get_logger

logger = get_logger(__name__)


def to_timestamp(moment: datetime) -> str:
    """Format a datetime as a sortable ISO-8601 UTC string.

    Naive datetimes are taken to be UTC already.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="microseconds")


def capture_date(moment: datetime) -> str:
    """UTC calendar date (YYYY-MM-DD) of a moment."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).date().isoformat()


SCHEMA_PATH = Path(__file__).with_name("schema.sql")

# Applied to every new connection
_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA busy_timeout = 5000",
)


class Database:
    """Async SQLite store for sources and snapshots.

    One aiosqlite connection in autocommit mode; statements are serialized
    through an asyncio lock so concurrent tasks never interleave on it.
    """

    def __init__(self, db_path: str | Path | None = None):
        """
        Args:
            db_path: SQLite file, or ":memory:". Defaults to
                storage.database_path from settings.
        """
        if db_path is None:
            db_path = resolve_path(get_settings().storage.database_path)

        self.db_path = Path(db_path)
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Open the connection. No-op when already open."""
        if self._connection is not None:
            return

        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        connection = await aiosqlite.connect(self.db_path, isolation_level=None)
        connection.row_factory = aiosqlite.Row
        for pragma in _PRAGMAS:
            await connection.execute(pragma)

        self._connection = connection
        logger.info("Database connected", path=str(self.db_path))

    async def close(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        logger.info("Database closed", path=str(self.db_path))

    async def initialize_schema(self) -> None:
        """Create tables and indexes. Safe to run on an existing database."""
        script = SCHEMA_PATH.read_text(encoding="utf-8")
        async with self._lock:
            await self._require_connection().executescript(script)
        logger.info("Database schema ready")

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Database is not connected")
        return self._connection

    async def execute(self, sql: str, parameters: tuple | dict = ()) -> aiosqlite.Cursor:
        """Run one statement and return its cursor."""
        connection = self._require_connection()
        async with self._lock:
            return await connection.execute(sql, parameters)

    async def fetch_one(self, sql: str, parameters: tuple | dict = ()) -> dict[str, Any] | None:
        cursor = await self.execute(sql, parameters)
        row = await cursor.fetchone()
        return None if row is None else dict(row)

    async def fetch_all(self, sql: str, parameters: tuple | dict = ()) -> list[dict[str, Any]]:
        cursor = await self.execute(sql, parameters)
        return [dict(row) for row in await cursor.fetchall()]

    async def insert(self, table: str, row: dict[str, Any]) -> None:
        """INSERT one row. Constraint violations surface as sqlite3.IntegrityError."""
        columns = ", ".join(row)
        placeholders = ", ".join("?" * len(row))
        await self.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            tuple(row.values()),
        )

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        where: str,
        where_params: tuple = (),
    ) -> int:
        """UPDATE matching rows and return how many changed."""
        assignments = ", ".join(f"{column} = ?" for column in values)
        cursor = await self.execute(
            f"UPDATE {table} SET {assignments} WHERE {where}",
            (*values.values(), *where_params),
        )
        return cursor.rowcount

    # ============================================================
    # Snapshot operations (capture pipeline contract)
    # ============================================================

    async def find_snapshots(
        self,
        url: str,
        from_ts: datetime,
        to_ts: datetime,
    ) -> list[dict[str, Any]]:
        """Snapshots for url with from_ts <= captured_at < to_ts.

        Returns:
            Rows with captured_at only.
        """
        return await self.fetch_all(
            """
            SELECT captured_at FROM snapshots
            WHERE url = ? AND captured_at >= ? AND captured_at < ?
            ORDER BY captured_at ASC
            """,
            (url, to_timestamp(from_ts), to_timestamp(to_ts)),
        )

    async def insert_snapshot(
        self,
        url: str,
        content: str,
        captured_at: datetime,
    ) -> dict[str, Any]:
        """Insert a snapshot.

        Args:
            url: Captured URL.
            content: Serialized content artifact, stored verbatim.
            captured_at: Capture time.

        Returns:
            The stored row (id, url, content, captured_at).

        Raises:
            DuplicateSnapshotError: A snapshot for url already exists for
                the UTC day of captured_at.
        """
        row = {
            "id": str(uuid.uuid4()),
            "url": url,
            "content": content,
            "captured_at": to_timestamp(captured_at),
        }
        day = capture_date(captured_at)

        try:
            await self.insert("snapshots", {**row, "capture_date": day})
        except sqlite3.IntegrityError as e:
            raise DuplicateSnapshotError(url, capture_date=day) from e

        logger.info("Snapshot stored", snapshot_id=row["id"], url=url, size=len(content))
        return row

    async def update_source_last_snapshot(self, url: str, captured_at: datetime) -> int:
        """Set last_snapshot_at for the source registered under url.

        Returns:
            Rows affected (0 when url is not a registered source).
        """
        return await self.update(
            "sources",
            {"last_snapshot_at": to_timestamp(captured_at)},
            "url = ?",
            (url,),
        )

    # ============================================================
    # Snapshot tooling
    # ============================================================

    async def list_snapshots(
        self,
        limit: int = 10,
        url: str | None = None,
    ) -> list[dict[str, Any]]:
        """Recent snapshots, newest first, without content."""
        if url is None:
            return await self.fetch_all(
                "SELECT id, url, captured_at FROM snapshots ORDER BY captured_at DESC LIMIT ?",
                (limit,),
            )
        return await self.fetch_all(
            """
            SELECT id, url, captured_at FROM snapshots
            WHERE url = ? ORDER BY captured_at DESC LIMIT ?
            """,
            (url, limit),
        )

    async def get_snapshot_content(self, snapshot_id: str) -> str | None:
        """Stored payload of a snapshot exactly as written, or None."""
        row = await self.fetch_one(
            "SELECT content FROM snapshots WHERE id = ?",
            (snapshot_id,),
        )
        return row["content"] if row else None

    async def delete_snapshot(self, snapshot_id: str) -> bool:
        """Delete one snapshot. Returns True if a row was removed."""
        cursor = await self.execute("DELETE FROM snapshots WHERE id = ?", (snapshot_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Snapshot deleted", snapshot_id=snapshot_id)
        return deleted

    async def get_snapshot_stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Aggregate snapshot counts.

        Args:
            now: Reference time for "today". Defaults to current UTC time.

        Returns:
            Dict with total, today, per_source, success and failure. Failed
            captures are never stored, so failure is always 0.
        """
        now = now or datetime.now(UTC)
        today = capture_date(now)

        total_row = await self.fetch_one("SELECT COUNT(*) AS n FROM snapshots")
        today_row = await self.fetch_one(
            "SELECT COUNT(*) AS n FROM snapshots WHERE capture_date = ?",
            (today,),
        )
        per_source_rows = await self.fetch_all(
            "SELECT url, COUNT(*) AS n FROM snapshots GROUP BY url ORDER BY url"
        )

        total = total_row["n"] if total_row else 0
        return {
            "total": total,
            "today": today_row["n"] if today_row else 0,
            "per_source": {r["url"]: r["n"] for r in per_source_rows},
            "success": total,
            "failure": 0,
        }

    # ============================================================
    # Source registry
    # ============================================================

    async def list_sources(
        self,
        *,
        active_only: bool = True,
        include_counts: bool = False,
    ) -> list[dict[str, Any]]:
        """Registered sources, never-captured first, then most recently captured.

        last_snapshot_at is derived from snapshot history when any exists,
        so a failed source update after a stored snapshot does not leave a
        stale value behind.

        Args:
            active_only: Only sources with is_active set.
            include_counts: Add snapshot_count per source.

        Returns:
            List of source rows (is_active as bool).
        """
        columns = (
            "s.id, s.url, s.is_active, "
            "COALESCE((SELECT MAX(sn.captured_at) FROM snapshots sn WHERE sn.url = s.url), "
            "s.last_snapshot_at) AS last_snapshot_at, "
            "s.created_at"
        )
        if include_counts:
            columns += (
                ", (SELECT COUNT(*) FROM snapshots sn WHERE sn.url = s.url) AS snapshot_count"
            )
        where = "WHERE s.is_active = 1" if active_only else ""

        # Derived column wrapped so ORDER BY cannot bind to s.last_snapshot_at
        rows = await self.fetch_all(
            f"SELECT * FROM (SELECT {columns} FROM sources s {where}) "
            "ORDER BY last_snapshot_at IS NOT NULL, last_snapshot_at DESC, created_at ASC"
        )
        for row in rows:
            row["is_active"] = bool(row["is_active"])
        return rows

    async def get_source(self, url: str) -> dict[str, Any] | None:
        """Source registered under url, or None."""
        row = await self.fetch_one(
            "SELECT id, url, is_active, last_snapshot_at, created_at FROM sources WHERE url = ?",
            (url,),
        )
        if row:
            row["is_active"] = bool(row["is_active"])
        return row

    async def add_source(self, url: str) -> dict[str, Any]:
        """Register a new active source.

        Raises:
            ValueError: url is already registered.
        """
        row = {
            "id": str(uuid.uuid4()),
            "url": url,
            "is_active": 1,
            "last_snapshot_at": None,
            "created_at": to_timestamp(datetime.now(UTC)),
        }
        try:
            await self.insert("sources", row)
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Source already registered: {url}") from e

        logger.info("Source added", source_id=row["id"], url=url)
        return {**row, "is_active": True}

    async def update_source_status(self, url: str, is_active: bool) -> dict[str, Any] | None:
        """Enable or disable a source. Returns the updated row, or None if unknown."""
        updated = await self.update(
            "sources",
            {"is_active": 1 if is_active else 0},
            "url = ?",
            (url,),
        )
        if not updated:
            return None
        logger.info("Source status updated", url=url, is_active=is_active)
        return await self.get_source(url)

    async def delete_source(self, source_id: str) -> bool:
        """Delete a source by id. Its snapshots are kept."""
        cursor = await self.execute("DELETE FROM sources WHERE id = ?", (source_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Source deleted", source_id=source_id)
        return deleted


# Global database instance
_db: Database | None = None


async def get_database() -> Database:
    """Get the global database instance.

    Returns:
        Database instance.
    """
    global _db
    if _db is None:
        _db = Database()
        await _db.connect()
        await _db.initialize_schema()
    return _db


async def close_database() -> None:
    """Close the global database instance."""
    global _db
    if _db is not None:
        await _db.close()
        _db = None
