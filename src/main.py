"""
Main entry point for pagesnap.
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from src.snapshot.errors import DuplicateSnapshotError, SnapshotError
from src.snapshot.schemas import ContentArtifact, SnapshotStats, SnapshotSummary, Source
from src.storage.database import Database, close_database, get_database
from src.utils.config import ensure_directories, get_settings
from src.utils.dotenv import load_dotenv_if_present
from src.utils.logging import configure_logging, get_logger

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_DUPLICATE = 3


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


async def initialize() -> Database:
    """Initialize the application and return the database."""
    ensure_directories()

    settings = get_settings()
    configure_logging(log_level=settings.general.log_level)

    logger = get_logger(__name__)
    logger.info(
        "pagesnap initializing",
        version=settings.general.version,
        log_level=settings.general.log_level,
    )

    return await get_database()


async def shutdown() -> None:
    """Shutdown the application."""
    logger = get_logger(__name__)
    await close_database()
    logger.info("pagesnap shutdown complete")


async def cmd_capture(db: Database, args: argparse.Namespace) -> int:
    from src.snapshot.orchestrator import CaptureOrchestrator

    try:
        snapshot = await CaptureOrchestrator(db).capture_snapshot(args.url)
    except DuplicateSnapshotError as e:
        _print_json(e.to_dict())
        return EXIT_DUPLICATE
    except SnapshotError as e:
        _print_json(e.to_dict())
        return EXIT_FAILURE
    except Exception as e:
        # Browser launch failures are not retried and carry no error code
        get_logger(__name__).exception("Capture failed", url=args.url)
        _print_json({"ok": False, "error": str(e) or type(e).__name__})
        return EXIT_FAILURE

    artifact = snapshot.artifact
    _print_json({
        "ok": True,
        "id": snapshot.id,
        "url": snapshot.url,
        "captured_at": snapshot.captured_at.isoformat(),
        "title": artifact.title,
        "length": artifact.length,
    })
    return EXIT_OK


async def cmd_run(db: Database, args: argparse.Namespace) -> int:
    from src.snapshot.job import run_daily_snapshots
    from src.snapshot.orchestrator import CaptureOrchestrator

    logger = get_logger(__name__)
    try:
        result = await run_daily_snapshots(db, CaptureOrchestrator(db))
    except Exception as e:
        logger.error("Error fetching sources", error=str(e))
        _print_json({"ok": False, "error": str(e)})
        return EXIT_FAILURE

    _print_json(result.to_dict())
    return EXIT_OK


async def cmd_sources(db: Database, args: argparse.Namespace) -> int:
    if args.sources_command == "list":
        sources = await db.list_sources(
            active_only=not args.all,
            include_counts=args.counts,
        )
        exclude = None if args.counts else {"snapshot_count"}
        _print_json([
            Source.model_validate(s).model_dump(mode="json", exclude=exclude) for s in sources
        ])
        return EXIT_OK

    if args.sources_command == "add":
        try:
            source = await db.add_source(args.url)
        except ValueError as e:
            _print_json({"ok": False, "error": str(e)})
            return EXIT_FAILURE
        _print_json(Source.model_validate(source).model_dump(mode="json", exclude={"snapshot_count"}))
        return EXIT_OK

    if args.sources_command in ("enable", "disable"):
        source = await db.update_source_status(
            args.url,
            args.sources_command == "enable",
        )
        if source is None:
            _print_json({"ok": False, "error": f"Unknown source: {args.url}"})
            return EXIT_FAILURE
        _print_json(Source.model_validate(source).model_dump(mode="json", exclude={"snapshot_count"}))
        return EXIT_OK

    if args.sources_command == "delete":
        if not await db.delete_source(args.id):
            _print_json({"ok": False, "error": f"Unknown source id: {args.id}"})
            return EXIT_FAILURE
        _print_json({"ok": True, "message": "Source deleted successfully"})
        return EXIT_OK

    return EXIT_USAGE


async def cmd_snapshots(db: Database, args: argparse.Namespace) -> int:
    if args.snapshots_command == "list":
        rows = await db.list_snapshots(limit=args.limit, url=args.url)
        _print_json([SnapshotSummary.model_validate(r).model_dump(mode="json") for r in rows])
        return EXIT_OK

    if args.snapshots_command == "show":
        content = await db.get_snapshot_content(args.id)
        if content is None:
            _print_json({"ok": False, "error": f"Snapshot not found: {args.id}"})
            return EXIT_FAILURE
        if args.raw:
            print(content)
        else:
            _print_json(ContentArtifact.from_json(content).model_dump(by_alias=True))
        return EXIT_OK

    if args.snapshots_command == "delete":
        if not await db.delete_snapshot(args.id):
            _print_json({"ok": False, "error": f"Snapshot not found: {args.id}"})
            return EXIT_FAILURE
        _print_json({"ok": True, "message": "Snapshot deleted successfully"})
        return EXIT_OK

    return EXIT_USAGE


async def cmd_stats(db: Database, args: argparse.Namespace) -> int:
    stats = SnapshotStats.model_validate(await db.get_snapshot_stats())
    _print_json(stats.model_dump())
    return EXIT_OK


COMMANDS = {
    "capture": cmd_capture,
    "run": cmd_run,
    "sources": cmd_sources,
    "snapshots": cmd_snapshots,
    "stats": cmd_stats,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagesnap",
        description="pagesnap - daily readable-content snapshots of web pages",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create data directories and database schema")

    capture = sub.add_parser("capture", help="Capture one URL now")
    capture.add_argument("--url", "-u", required=True, help="Page to capture")

    sub.add_parser("run", help="Capture every active source once")

    sources = sub.add_parser("sources", help="Manage registered sources")
    sources_sub = sources.add_subparsers(dest="sources_command", required=True)
    sources_list = sources_sub.add_parser("list", help="List sources")
    sources_list.add_argument("--all", action="store_true", help="Include inactive sources")
    sources_list.add_argument("--counts", action="store_true", help="Include snapshot counts")
    for name in ("add", "enable", "disable"):
        p = sources_sub.add_parser(name, help=f"{name.capitalize()} a source")
        p.add_argument("url")
    sources_delete = sources_sub.add_parser("delete", help="Delete a source by id")
    sources_delete.add_argument("id")

    snapshots = sub.add_parser("snapshots", help="Inspect stored snapshots")
    snapshots_sub = snapshots.add_subparsers(dest="snapshots_command", required=True)
    snapshots_list = snapshots_sub.add_parser("list", help="List recent snapshots")
    snapshots_list.add_argument("--limit", "-n", type=int, default=10)
    snapshots_list.add_argument("--url", "-u", default=None)
    snapshots_show = snapshots_sub.add_parser("show", help="Print snapshot content")
    snapshots_show.add_argument("id")
    snapshots_show.add_argument("--raw", action="store_true", help="Print stored payload as-is")
    snapshots_delete = snapshots_sub.add_parser("delete", help="Delete a snapshot")
    snapshots_delete.add_argument("id")

    sub.add_parser("stats", help="Show snapshot statistics")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    load_dotenv_if_present()
    args = build_parser().parse_args(argv)

    async def async_main() -> int:
        db = await initialize()
        try:
            if args.command == "init":
                print("pagesnap initialized successfully.")
                return EXIT_OK
            return await COMMANDS[args.command](db, args)
        finally:
            await shutdown()

    return asyncio.run(async_main())


if __name__ == "__main__":
    sys.exit(main())
