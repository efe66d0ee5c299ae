"""
Pytest fixtures and configuration for pagesnap tests.

=============================================================================
Test Classification
=============================================================================

- @pytest.mark.unit: Single class/function, no external dependencies
  - Fast (<1s per test)
  - Playwright objects replaced by unittest.mock fakes
  - DEFAULT: Tests without marker are auto-classified as unit

- @pytest.mark.integration: Multiple components, temporary SQLite database
  - Medium (<5s per test)

- @pytest.mark.e2e: Real Chromium and network access
  - DEFAULT EXCLUDED: Must use `pytest -m e2e` to run

=============================================================================
Mock Strategy
=============================================================================

- Browser (Playwright): Always mocked in unit/integration
- File I/O: Use tmp_path fixture
- Database: Use in-memory SQLite (:memory:) or temp file
- Storage contract: InMemorySnapshotStore for orchestrator tests
"""

import os
import tempfile
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
import structlog

# Set test environment before importing anything else
os.environ["PAGESNAP_CONFIG_DIR"] = str(Path(__file__).parent.parent / "config")
os.environ["PAGESNAP_GENERAL__LOG_LEVEL"] = "DEBUG"


# =============================================================================
# Pytest Hooks for Test Classification
# =============================================================================


def pytest_configure(config):
    """Register custom markers for test classification."""
    config.addinivalue_line(
        "markers", "unit: Unit tests with no external dependencies (fast, <1s/test)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests with a temporary database (<5s/test)"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests requiring a real browser (excluded by default)"
    )


def pytest_collection_modifyitems(config, items):
    """Tests without an explicit classification marker are unit tests."""
    for item in items:
        has_classification = any(
            marker.name in ("unit", "integration", "e2e") for marker in item.iter_markers()
        )
        if not has_classification:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def route_structlog_to_stdlib():
    """Send structlog events through stdlib logging during tests.

    structlog's default factory prints to stdout, which would mix log lines
    into the JSON printed by CLI commands. Routed through stdlib, events
    land in pytest's log capture instead.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


# =============================================================================
# Filesystem / Database Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db_path(temp_dir: Path) -> Path:
    """Create a temporary database path."""
    return temp_dir / "test_pagesnap.db"


@pytest_asyncio.fixture
async def test_database(temp_db_path: Path):
    """Create a temporary test database.

    Saves and restores the global database singleton around the test.
    """
    from src.storage import database as db_module
    from src.storage.database import Database

    saved_global = db_module._db
    db_module._db = None

    db = Database(temp_db_path)
    await db.connect()
    await db.initialize_schema()

    yield db

    await db.close()

    db_module._db = saved_global


@pytest_asyncio.fixture
async def memory_database():
    """Create an in-memory database for fast tests."""
    from src.storage.database import Database

    db = Database(":memory:")
    await db.connect()
    await db.initialize_schema()

    yield db

    await db.close()


@pytest.fixture(autouse=True)
def reset_global_database():
    """Reset global database singleton between tests.

    Prevents asyncio.Lock() from being bound to a stale event loop.
    """
    yield
    from src.storage import database as db_module

    db_module._db = None


# =============================================================================
# Storage Contract Fake
# =============================================================================


class InMemorySnapshotStore:
    """SnapshotStore backed by lists, recording call order."""

    def __init__(self) -> None:
        self.snapshots: list[dict[str, Any]] = []
        self.sources: dict[str, datetime | None] = {}
        self.calls: list[str] = []
        self.source_updates: list[tuple[str, datetime]] = []
        self.insert_error: Exception | None = None
        self.update_error: Exception | None = None

    async def find_snapshots(
        self,
        url: str,
        from_ts: datetime,
        to_ts: datetime,
    ) -> list[dict[str, Any]]:
        self.calls.append("find_snapshots")
        return [
            {"captured_at": s["captured_at"]}
            for s in self.snapshots
            if s["url"] == url and from_ts <= s["captured_at"] < to_ts
        ]

    async def insert_snapshot(
        self,
        url: str,
        content: str,
        captured_at: datetime,
    ) -> dict[str, Any]:
        self.calls.append("insert_snapshot")
        if self.insert_error is not None:
            raise self.insert_error
        row = {
            "id": f"snap-{len(self.snapshots) + 1}",
            "url": url,
            "content": content,
            "captured_at": captured_at,
        }
        self.snapshots.append(row)
        return dict(row)

    async def update_source_last_snapshot(self, url: str, captured_at: datetime) -> int:
        self.calls.append("update_source_last_snapshot")
        if self.update_error is not None:
            raise self.update_error
        self.source_updates.append((url, captured_at))
        if url not in self.sources:
            return 0
        self.sources[url] = captured_at
        return 1


@pytest.fixture
def memory_store() -> InMemorySnapshotStore:
    """Empty in-memory snapshot store."""
    return InMemorySnapshotStore()


# =============================================================================
# Playwright Fakes
# =============================================================================


def make_mock_page(html: str = "<html><body></body></html>") -> MagicMock:
    """Mock Playwright Page with async goto/content/close."""
    page = MagicMock()
    page.goto = AsyncMock(return_value=None)
    page.content = AsyncMock(return_value=html)
    page.close = AsyncMock()
    return page


def make_mock_context(page: MagicMock | None = None) -> MagicMock:
    """Mock Playwright BrowserContext returning page from new_page()."""
    context = MagicMock()
    context.add_init_script = AsyncMock()
    context.new_page = AsyncMock(return_value=page or make_mock_page())
    context.close = AsyncMock()
    return context


@pytest.fixture
def fixed_clock():
    """Clock frozen at 2026-03-15 12:00:00 UTC."""
    moment = datetime(2026, 3, 15, 12, 0, 0, tzinfo=UTC)
    return lambda: moment


@pytest.fixture
def make_page():
    """Factory fixture for mock Playwright pages."""
    return make_mock_page


@pytest.fixture
def make_context():
    """Factory fixture for mock Playwright browser contexts."""
    return make_mock_context
