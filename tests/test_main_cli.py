"""
Tests for src/main.py (command-line surface).

## Test Perspectives Table
| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|----------------------|---------------------------------------|-----------------|-------|
| TC-CLI-01 | capture without --url | Abnormal – usage | SystemExit(2) | argparse |
| TC-CLI-02 | sources add + list | Equivalence – registry | Source printed, exit 0 | temp DB |
| TC-CLI-03 | sources add twice | Abnormal – duplicate | exit 1 | - |
| TC-CLI-04 | sources disable unknown | Abnormal – missing | exit 1 | - |
| TC-CLI-05 | sources list --counts | Equivalence – counts | snapshot_count present | - |
| TC-CLI-06 | snapshots list/show/delete | Equivalence – tooling | Rows printed, deleted | - |
| TC-CLI-07 | snapshots show unknown id | Abnormal – missing | exit 1 | - |
| TC-CLI-08 | stats on empty DB | Boundary – empty | total 0, exit 0 | - |
| TC-CLI-09 | capture, duplicate today | Equivalence – skip | exit 3, DUPLICATE_SNAPSHOT | - |
| TC-CLI-10 | capture, retries exhausted | Abnormal – failure | exit 1, RETRIES_EXHAUSTED | - |
| TC-CLI-11 | run, source listing fails | Abnormal – job | exit 1 | - |
| TC-CLI-12 | capture, browser launch fails | Abnormal – environment | exit 1, JSON error | - |
"""

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.snapshot.errors import DuplicateSnapshotError, RetriesExhaustedError
from src.storage.database import Database

pytestmark = pytest.mark.integration


@pytest.fixture
def cli(tmp_path: Path):
    """Run main() against a temporary database file.

    Each invocation opens its own connection inside main()'s event loop.
    """
    from src import main as main_module

    db_path = tmp_path / "cli.db"
    opened: list[Database] = []

    async def fake_initialize() -> Database:
        db = Database(db_path)
        await db.connect()
        await db.initialize_schema()
        opened.append(db)
        return db

    async def fake_shutdown() -> None:
        await opened.pop().close()

    def run(*argv: str) -> int:
        with (
            patch.object(main_module, "initialize", fake_initialize),
            patch.object(main_module, "shutdown", fake_shutdown),
            patch.object(main_module, "load_dotenv_if_present"),
        ):
            return main_module.main(list(argv))

    run.db_path = db_path  # type: ignore[attr-defined]
    return run


def _output(capsys: pytest.CaptureFixture[str]):
    return json.loads(capsys.readouterr().out)


def _seed_snapshot(db_path: Path, url: str) -> str:
    async def seed() -> str:
        db = Database(db_path)
        await db.connect()
        await db.initialize_schema()
        try:
            row = await db.insert_snapshot(
                url,
                '{"title":"T","textContent":"body","length":4}',
                datetime(2026, 3, 1, 12, 0, tzinfo=UTC),
            )
        finally:
            await db.close()
        return row["id"]

    return asyncio.run(seed())


class TestParser:
    def test_capture_requires_url(self):
        """TC-CLI-01: capture without --url is a usage error."""
        from src.main import build_parser

        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["capture"])

        assert exc_info.value.code == 2

    def test_snapshots_list_defaults(self):
        from src.main import build_parser

        args = build_parser().parse_args(["snapshots", "list"])

        assert args.limit == 10
        assert args.url is None


class TestSourcesCommands:
    def test_add_and_list(self, cli, capsys):
        """
        TC-CLI-02: a registered source is listed as active.

        // Given: an empty database
        // When:  `sources add <url>` then `sources list`
        // Then:  both exit 0 and the listing contains the URL
        """
        # Given / When
        assert cli("sources", "add", "https://example.com/a") == 0
        added = _output(capsys)
        assert cli("sources", "list") == 0
        listed = _output(capsys)

        # Then
        assert added["url"] == "https://example.com/a"
        assert added["is_active"] is True
        assert [s["url"] for s in listed] == ["https://example.com/a"]
        assert "snapshot_count" not in listed[0]

    def test_add_duplicate_fails(self, cli, capsys):
        """TC-CLI-03: the same URL cannot be registered twice."""
        cli("sources", "add", "https://example.com/a")
        capsys.readouterr()

        code = cli("sources", "add", "https://example.com/a")

        assert code == 1
        assert _output(capsys)["ok"] is False

    def test_disable_unknown_fails(self, cli, capsys):
        """TC-CLI-04: disabling an unregistered URL is reported."""
        code = cli("sources", "disable", "https://example.com/missing")

        assert code == 1
        assert "Unknown source" in _output(capsys)["error"]

    def test_disabled_source_hidden_unless_all(self, cli, capsys):
        cli("sources", "add", "https://example.com/a")
        cli("sources", "disable", "https://example.com/a")
        capsys.readouterr()

        cli("sources", "list")
        active = _output(capsys)
        cli("sources", "list", "--all")
        everything = _output(capsys)

        assert active == []
        assert everything[0]["is_active"] is False

    def test_list_with_counts(self, cli, capsys):
        """TC-CLI-05: --counts adds snapshot_count and derived last_snapshot_at."""
        cli("sources", "add", "https://example.com/a")
        _seed_snapshot(cli.db_path, "https://example.com/a")
        capsys.readouterr()

        cli("sources", "list", "--counts")
        listed = _output(capsys)

        assert listed[0]["snapshot_count"] == 1
        assert listed[0]["last_snapshot_at"].startswith("2026-03-01T12:00:00")


class TestSnapshotsCommands:
    def test_list_show_delete(self, cli, capsys):
        """TC-CLI-06: stored snapshots can be listed, shown and deleted."""
        snapshot_id = _seed_snapshot(cli.db_path, "https://example.com/a")

        assert cli("snapshots", "list") == 0
        listed = _output(capsys)
        assert cli("snapshots", "show", snapshot_id) == 0
        shown = _output(capsys)
        assert cli("snapshots", "delete", snapshot_id) == 0
        capsys.readouterr()
        assert cli("snapshots", "list") == 0
        after = _output(capsys)

        assert [s["id"] for s in listed] == [snapshot_id]
        assert shown == {"title": "T", "textContent": "body", "length": 4, "content": None}
        assert after == []

    def test_show_raw_prints_payload(self, cli, capsys):
        snapshot_id = _seed_snapshot(cli.db_path, "https://example.com/a")

        cli("snapshots", "show", snapshot_id, "--raw")

        assert capsys.readouterr().out.strip() == '{"title":"T","textContent":"body","length":4}'

    def test_show_unknown(self, cli, capsys):
        """TC-CLI-07: unknown snapshot ids are reported."""
        assert cli("snapshots", "show", "nope") == 1
        assert _output(capsys)["ok"] is False


class TestStatsCommand:
    def test_empty_stats(self, cli, capsys):
        """TC-CLI-08: statistics on an empty database."""
        assert cli("stats") == 0

        stats = _output(capsys)
        assert stats["total"] == 0
        assert stats["failure"] == 0
        assert stats["per_source"] == {}


class TestCaptureCommand:
    def _orchestrator(self, error: Exception) -> MagicMock:
        orchestrator = MagicMock()
        orchestrator.capture_snapshot = AsyncMock(side_effect=error)
        return MagicMock(return_value=orchestrator)

    def test_duplicate_exit_code(self, cli, capsys):
        """TC-CLI-09: a same-day duplicate exits with 3."""
        url = "https://example.com/a"
        factory = self._orchestrator(DuplicateSnapshotError(url, capture_date="2026-03-01"))

        with patch("src.snapshot.orchestrator.CaptureOrchestrator", factory):
            code = cli("capture", "--url", url)

        assert code == 3
        assert _output(capsys)["error_code"] == "DUPLICATE_SNAPSHOT"

    def test_exhausted_exit_code(self, cli, capsys):
        """TC-CLI-10: exhausted retries exit with 1."""
        url = "https://example.com/a"
        factory = self._orchestrator(RetriesExhaustedError(url, 5))

        with patch("src.snapshot.orchestrator.CaptureOrchestrator", factory):
            code = cli("capture", "-u", url)

        output = _output(capsys)
        assert code == 1
        assert output["error_code"] == "RETRIES_EXHAUSTED"
        assert output["details"]["attempts"] == 5

    def test_launch_failure_exit_code(self, cli, capsys):
        """
        TC-CLI-12: a browser that cannot start is reported, not a traceback.

        // Given: capture_snapshot raises RuntimeError from the launcher
        // When:  `capture --url` runs
        // Then:  exit code 1 with a JSON error body
        """
        # Given
        url = "https://example.com/a"
        factory = self._orchestrator(RuntimeError("Executable doesn't exist"))

        # When
        with patch("src.snapshot.orchestrator.CaptureOrchestrator", factory):
            code = cli("capture", "--url", url)

        # Then
        assert code == 1
        assert _output(capsys) == {"ok": False, "error": "Executable doesn't exist"}


class TestRunCommand:
    def test_listing_failure_exits_nonzero(self, cli, capsys):
        """TC-CLI-11: the job fails as a whole only if sources cannot be listed."""
        with (
            patch("src.snapshot.orchestrator.CaptureOrchestrator"),
            patch(
                "src.snapshot.job.run_daily_snapshots",
                AsyncMock(side_effect=RuntimeError("database is locked")),
            ),
        ):
            code = cli("run")

        assert code == 1
        assert _output(capsys) == {"ok": False, "error": "database is locked"}
