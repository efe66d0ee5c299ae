"""
Same-day duplicate capture check.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta

from src.snapshot.store import SnapshotStore
from src.utils.logging import get_logger

logger = get_logger(__name__)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def utc_day_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """Return [start_of_day, start_of_next_day) in UTC for a moment.

    Naive datetimes are taken to be UTC already.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    day: date = moment.astimezone(UTC).date()
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


class DedupGuard:
    """Vetoes a capture when a snapshot for the URL exists for today (UTC).

    The check-then-insert sequence is not atomic; the storage layer's
    (url, capture_date) uniqueness constraint closes the race.
    """

    def __init__(
        self,
        store: SnapshotStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._clock = clock

    async def has_snapshot_today(self, url: str) -> bool:
        """Check whether url already has a snapshot captured today.

        Args:
            url: Source URL.

        Returns:
            True if one or more same-day snapshots exist.
        """
        start, end = utc_day_bounds(self._clock())
        rows = await self._store.find_snapshots(url, start, end)
        if rows:
            logger.info(
                "Same-day snapshot found",
                url=url,
                capture_date=start.date().isoformat(),
                existing=len(rows),
            )
            return True
        return False
