"""
Capture orchestration for pagesnap.

Drives one capture request through:

    CHECKING_DEDUP -> ATTEMPTING* -> SUCCEEDED | EXHAUSTED
    SUCCEEDED -> PERSISTING -> DONE

Each attempt draws a fresh fingerprint and opens a fresh isolated session
on a browser process shared by all attempts of the request. Attempt-level
failures are logged and counted; dedup and persistence failures end the
request immediately.
"""

import asyncio
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from src.crawler.fingerprint import Fingerprint, FingerprintGenerator
from src.crawler.session import BrowserHandle, BrowserLauncher, CaptureSession, SessionFactory
from src.extractor.pipeline import ExtractionPipeline
from src.snapshot.dedup import DedupGuard, utc_day_bounds, utc_now
from src.snapshot.errors import (
    DuplicateSnapshotError,
    PersistenceError,
    RetriesExhaustedError,
    SnapshotError,
)
from src.snapshot.schemas import ContentArtifact, Snapshot
from src.snapshot.store import SnapshotStore
from src.utils.backoff import BackoffConfig, calculate_backoff, estimate_worst_case_seconds
from src.utils.config import CaptureConfig, get_settings
from src.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


class CaptureState(str, Enum):
    """States of a capture request."""

    CHECKING_DEDUP = "checking_dedup"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    PERSISTING = "persisting"
    DONE = "done"


@dataclass
class AttemptFailure:
    """Bookkeeping for one failed attempt."""

    attempt: int
    error_code: str
    error: str
    fingerprint: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt": self.attempt,
            "error_code": self.error_code,
            "error": self.error,
            "fingerprint": self.fingerprint,
        }


class CaptureOrchestrator:
    """Captures a snapshot of a URL with bounded, re-fingerprinted retries.

    All collaborators are injected; defaults are built from settings.
    """

    def __init__(
        self,
        store: SnapshotStore,
        *,
        launcher: BrowserLauncher | None = None,
        session_factory: SessionFactory | None = None,
        pipeline: ExtractionPipeline | None = None,
        fingerprints: FingerprintGenerator | None = None,
        config: CaptureConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self._store = store
        self._launcher = launcher or BrowserLauncher()
        self._session_factory = session_factory or SessionFactory()
        self._pipeline = pipeline or ExtractionPipeline()
        self._fingerprints = fingerprints or FingerprintGenerator()
        self._config = config or get_settings().capture
        self._clock = clock
        self._sleep = sleep
        self._dedup = DedupGuard(store, clock)
        self.state = CaptureState.DONE

    def _transition(self, state: CaptureState) -> None:
        logger.debug("Capture state", state=state.value, previous=self.state.value)
        self.state = state

    @property
    def _backoff(self) -> BackoffConfig | None:
        if self._config.retry_backoff_base <= 0:
            return None
        return BackoffConfig(
            base_delay=self._config.retry_backoff_base,
            max_delay=max(self._config.retry_backoff_max, self._config.retry_backoff_base),
        )

    async def capture_snapshot(self, url: str) -> Snapshot:
        """Capture, persist and return a snapshot of url.

        Args:
            url: Page to capture.

        Returns:
            The persisted Snapshot.

        Raises:
            DuplicateSnapshotError: A snapshot for url exists for today (UTC).
            RetriesExhaustedError: Every attempt failed.
            PersistenceError: Snapshot insert or source update failed.
        """
        with LogContext(url=url, capture_id=str(uuid.uuid4())):
            self._transition(CaptureState.CHECKING_DEDUP)
            if await self._dedup.has_snapshot_today(url):
                start, _ = utc_day_bounds(self._clock())
                logger.info("Skipping capture: already captured today")
                self._transition(CaptureState.DONE)
                raise DuplicateSnapshotError(url, capture_date=start.date().isoformat())

            logger.info("Capture started")
            artifact = await self._run_attempts(url)

            self._transition(CaptureState.PERSISTING)
            snapshot = await self._persist(url, artifact)
            self._transition(CaptureState.DONE)
            logger.info("Snapshot captured", snapshot_id=snapshot.id, length=artifact.length)
            return snapshot

    async def _run_attempts(self, url: str) -> ContentArtifact:
        """Run the bounded attempt loop on one shared browser process."""
        max_attempts = self._config.max_attempts
        timeout_ms = int(self._config.navigation_timeout * 1000)
        deadline = self._config.max_capture_seconds
        backoff = self._backoff
        failures: list[AttemptFailure] = []
        started = time.monotonic()

        logger.debug(
            "Attempt loop configured",
            max_attempts=max_attempts,
            timeout_ms=timeout_ms,
            worst_case_seconds=estimate_worst_case_seconds(
                max_attempts, self._config.navigation_timeout, backoff
            ),
        )

        browser = await self._launcher.launch()
        try:
            self._transition(CaptureState.ATTEMPTING)
            for attempt in range(1, max_attempts + 1):
                if deadline is not None and time.monotonic() - started >= deadline:
                    logger.warning(
                        "Capture deadline reached",
                        attempts=len(failures),
                        deadline_seconds=deadline,
                    )
                    self._transition(CaptureState.EXHAUSTED)
                    raise RetriesExhaustedError(
                        url,
                        len(failures),
                        failures=[f.to_dict() for f in failures],
                        reason="deadline",
                    )

                fingerprint = self._fingerprints.generate()
                logger.info(
                    "Capture attempt",
                    attempt=attempt,
                    max_attempts=max_attempts,
                    **fingerprint.to_log_dict(),
                )

                try:
                    artifact = await self._attempt(browser, fingerprint, url, timeout_ms)
                except Exception as e:
                    failure = self._record_failure(attempt, e, fingerprint)
                    failures.append(failure)
                    logger.warning(
                        "Capture attempt failed",
                        attempt=attempt,
                        error_code=failure.error_code,
                        error=failure.error,
                    )
                    if backoff is not None and attempt < max_attempts:
                        await self._sleep(calculate_backoff(attempt - 1, backoff))
                    continue

                self._transition(CaptureState.SUCCEEDED)
                logger.info(
                    "Content captured",
                    attempt=attempt,
                    title=artifact.title[:80],
                    length=artifact.length,
                )
                return artifact

            self._transition(CaptureState.EXHAUSTED)
            logger.error("All capture attempts failed", attempts=max_attempts)
            raise RetriesExhaustedError(
                url,
                max_attempts,
                failures=[f.to_dict() for f in failures],
            )
        finally:
            await browser.close()

    async def _attempt(
        self,
        browser: BrowserHandle,
        fingerprint: Fingerprint,
        url: str,
        timeout_ms: int,
    ) -> ContentArtifact:
        """One attempt: open a session, extract, always close the session."""
        session: CaptureSession | None = None
        try:
            session = await self._session_factory.open(browser, fingerprint)
            return await self._pipeline.extract(session, url, timeout_ms)
        finally:
            if session is not None:
                await session.close()

    @staticmethod
    def _record_failure(
        attempt: int,
        error: Exception,
        fingerprint: Fingerprint,
    ) -> AttemptFailure:
        if isinstance(error, SnapshotError):
            code = error.code.value
            message = error.message
        else:
            code = type(error).__name__
            message = str(error) or type(error).__name__
        return AttemptFailure(
            attempt=attempt,
            error_code=code,
            error=message,
            fingerprint=fingerprint.to_log_dict(),
        )

    async def _persist(self, url: str, artifact: ContentArtifact) -> Snapshot:
        """Insert the snapshot, then stamp the source with the same timestamp."""
        captured_at = self._clock()
        content = artifact.to_json()

        try:
            row = await self._store.insert_snapshot(url, content, captured_at)
        except DuplicateSnapshotError:
            logger.warning("Concurrent capture stored a snapshot first")
            raise
        except Exception as e:
            logger.error("Snapshot insert failed", error=str(e))
            raise PersistenceError(url, "insert_snapshot", str(e)) from e

        snapshot = Snapshot.model_validate(row)

        try:
            updated = await self._store.update_source_last_snapshot(url, captured_at)
        except Exception as e:
            logger.error(
                "Failed to update last_snapshot_at",
                snapshot_id=snapshot.id,
                error=str(e),
            )
            raise PersistenceError(
                url,
                "update_source_last_snapshot",
                str(e),
                snapshot_id=snapshot.id,
            ) from e

        if not updated:
            logger.warning("No registered source matched url; last_snapshot_at not set")

        return snapshot
