"""
Daily snapshot job.

Captures every active source once, sequentially. A failure on one source
never stops the run; only a failure to list sources does.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from src.snapshot.errors import DuplicateSnapshotError, SnapshotError
from src.snapshot.orchestrator import CaptureOrchestrator
from src.utils.logging import get_logger

logger = get_logger(__name__)


class SourceLister(Protocol):
    async def list_sources(
        self,
        *,
        active_only: bool = True,
        include_counts: bool = False,
    ) -> list[dict[str, Any]]: ...


@dataclass
class JobResult:
    """Outcome of one job run."""

    total: int = 0
    captured: list[str] = field(default_factory=list)
    skipped_duplicate: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": not self.failed,
            "total": self.total,
            "captured": self.captured,
            "skipped_duplicate": self.skipped_duplicate,
            "failed": self.failed,
        }


async def run_daily_snapshots(
    sources: SourceLister,
    orchestrator: CaptureOrchestrator,
) -> JobResult:
    """Capture a snapshot for each active source.

    Args:
        sources: Source registry.
        orchestrator: Capture orchestrator bound to a store.

    Returns:
        JobResult summarizing per-source outcomes.

    Raises:
        Exception: Listing sources failed; nothing was captured.
    """
    active = await sources.list_sources(active_only=True, include_counts=True)
    result = JobResult(total=len(active))
    logger.info("Snapshot job started", active_sources=len(active))

    for source in active:
        url = source["url"]
        try:
            await orchestrator.capture_snapshot(url)
        except DuplicateSnapshotError:
            result.skipped_duplicate.append(url)
            continue
        except SnapshotError as e:
            logger.error("Snapshot failed", url=url, error_code=e.code.value, error=e.message)
            result.failed[url] = e.message
            continue
        except Exception as e:
            logger.exception("Snapshot failed unexpectedly", url=url)
            result.failed[url] = str(e) or type(e).__name__
            continue

        result.captured.append(url)
        logger.info("Snapshot taken", url=url)

    logger.info(
        "Snapshot job completed",
        captured=len(result.captured),
        skipped_duplicate=len(result.skipped_duplicate),
        failed=len(result.failed),
    )
    return result
