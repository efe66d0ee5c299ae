"""
Storage contract consumed by the capture pipeline.

The pipeline only needs three operations; any backend providing them can
be injected into the orchestrator (the SQLite Database does, and tests use
in-memory fakes).
"""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SnapshotStore(Protocol):
    """Narrow read/write contract used by the dedup guard and orchestrator."""

    async def find_snapshots(
        self,
        url: str,
        from_ts: datetime,
        to_ts: datetime,
    ) -> list[dict[str, Any]]:
        """Return rows ({captured_at, ...}) for url with from_ts <= captured_at < to_ts."""
        ...

    async def insert_snapshot(
        self,
        url: str,
        content: str,
        captured_at: datetime,
    ) -> dict[str, Any]:
        """Insert a snapshot and return the stored row (id, url, content, captured_at)."""
        ...

    async def update_source_last_snapshot(
        self,
        url: str,
        captured_at: datetime,
    ) -> int:
        """Set last_snapshot_at on the source for url. Returns rows affected."""
        ...
