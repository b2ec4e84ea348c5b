"""Command line entry point: report, stats repair, demo data and the HTTP server."""

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .adapters.jsonl_log import JsonlEventLog
from .analytics import compute_usage_report
from .config import Settings
from .demo import build_demo_batches
from .errors import StatsPersistFailure, StoreError
from .logging_config import setup_logging
from .report import render_report
from .service import UsageAnalyticsService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="usagemet", description="Usage telemetry log and reports")
    ap.add_argument("--data-dir", default=None, help="Directory holding events.jsonl and stats.json")
    ap.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    sub = ap.add_subparsers(dest="command", required=True)

    report = sub.add_parser("report", help="Print the usage report")
    report.add_argument("--top", type=int, default=None, help="Number of most active users to list")

    sub.add_parser(
        "rebuild-stats", help="Recompute the stats file from the event log (run while ingestion is idle)"
    )

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    seed = sub.add_parser("seed", help="Append synthetic demo batches")
    seed.add_argument("--batches", type=int, default=50)
    seed.add_argument("--seed", type=int, default=42)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.data_dir:
        overrides["DATA_DIR"] = Path(args.data_dir)
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level
    if args.command == "report" and args.top is not None:
        overrides["TOP_USERS_LIMIT"] = args.top
    if args.command == "serve":
        if args.host:
            overrides["HOST"] = args.host
        if args.port:
            overrides["PORT"] = args.port
    settings = Settings(**overrides)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT, settings.LOG_FILE)

    if args.command == "report":
        return _report(settings)
    if args.command == "rebuild-stats":
        return _rebuild_stats(settings)
    if args.command == "seed":
        return _seed(settings, args.batches, args.seed)
    return _serve(settings)


def _report(settings: Settings) -> int:
    if not settings.events_path.exists():
        print(f"Event log not found: {settings.events_path}")
        print("Make sure that:")
        print("1. The analytics server is running")
        print("2. The application is sending data")
        print(f"3. The file is located at {settings.events_path}")
        return 1

    try:
        log = JsonlEventLog(settings.events_path)
        report = compute_usage_report(
            log.iter_sessions(),
            thresholds=settings.engagement_thresholds(),
            top_users=settings.TOP_USERS_LIMIT,
        )
    except StoreError as exc:
        print(f"Failed to analyze data: {exc.message}")
        return 1
    print(render_report(report))
    return 0


def _rebuild_stats(settings: Settings) -> int:
    service = UsageAnalyticsService.from_settings(settings)
    try:
        stats = service.rebuild_stats()
    except (StoreError, StatsPersistFailure) as exc:
        print(f"Rebuild failed: {exc.message}")
        return 1

    print("=== STATS REBUILT ===")
    print(f"sessions: {stats['total_sessions']} events: {stats['total_events']}")
    print(f"calculations: {stats['total_calculations']} shares: {stats['total_shares']}")
    print(f"unique users: {stats['unique_users_count']}")
    return 0


def _seed(settings: Settings, batches: int, seed: int) -> int:
    service = UsageAnalyticsService.from_settings(settings)
    total = 0
    try:
        for batch in build_demo_batches(count=batches, seed=seed):
            total += service.submit(batch)["events_received"]
    except StoreError as exc:
        print(f"Seeding failed: {exc.message}")
        return 1
    print(f"Seeded {batches} batches ({total} events) into {settings.events_path}")
    return 0


def _serve(settings: Settings) -> int:
    import uvicorn

    from .adapters.fastapi_app import create_app

    app = create_app(UsageAnalyticsService.from_settings(settings), settings)
    logger.info("Analytics server running on port %d", settings.PORT)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
