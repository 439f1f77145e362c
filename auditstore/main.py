"""Command-line entrypoints for the audit report store maintenance jobs."""
from __future__ import annotations

import argparse
import asyncio
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import httpx
import tomllib
from dateutil import parser as dateparser
from dotenv import load_dotenv
from pydantic import ValidationError

try:
    import uvloop
except ImportError:  # pragma: no cover - uvloop optional on some platforms
    uvloop = None

from auditstore.fetch.session import create_validation_session
from auditstore.fetch.validator import UrlValidator
from auditstore.observability.log import configure_logging
from auditstore.observability.metrics import MetricsRegistry
from auditstore.observability.tracing import clear_context, set_context
from auditstore.orchestrator.checkpoint import CheckpointStore
from auditstore.orchestrator.config import FetchSettings, ReconcileSettings
from auditstore.orchestrator.maintenance import purge_invalid_urls, urls_last_viewed_before
from auditstore.orchestrator.reconcile import Reconciler, RunSummary
from auditstore.orchestrator.schedule_loop import run_schedule_loop
from auditstore.storage.documents import SQLiteDocumentStore
from auditstore.storage.manifests import write_manifest

DEFAULT_SETTINGS = Path("config/settings.toml")
DEFAULT_LOGGING = Path("config/logging.yaml")


def load_settings(path: Path) -> Dict[str, object]:
    """Read the TOML configuration file."""
    with path.open("rb") as handle:
        return tomllib.load(handle)


def settings_path() -> Path:
    return Path(os.environ.get("AUDITSTORE_SETTINGS", DEFAULT_SETTINGS))


def _reconcile_settings(settings: Dict[str, object]) -> ReconcileSettings:
    try:
        return ReconcileSettings.from_settings(settings)
    except ValidationError as exc:
        raise SystemExit(f"Invalid [reconcile] settings: {exc}")


def _fetch_settings(settings: Dict[str, object]) -> FetchSettings:
    try:
        return FetchSettings.from_settings(settings)
    except ValidationError as exc:
        raise SystemExit(f"Invalid [fetch] settings: {exc}")


def open_store(settings: Dict[str, object]) -> SQLiteDocumentStore:
    return SQLiteDocumentStore(Path(settings["store"]["sqlite_path"]))


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="auditstore", description="Audit report store maintenance")
    sub = parser.add_subparsers(dest="command", required=True)

    reconcile = sub.add_parser("reconcile", help="Validate tracked URLs and record invalid ones")
    reconcile.add_argument("--dry-run", action="store_true", help="Print the resume plan without validating")

    check = sub.add_parser("check", help="Validate a single URL")
    check.add_argument("--url", required=True)
    check.add_argument("--method", default="GET", choices=["GET", "HEAD"])
    check.add_argument("--timeout-ms", type=int, default=30 * 1000)

    stale = sub.add_parser("stale", help="List URLs not viewed since a date")
    stale.add_argument("--before", required=True, help="ISO date; URLs last viewed earlier are listed")

    purge = sub.add_parser("purge", help="Remove every URL recorded in the checkpoint from the store")
    purge.add_argument("--yes", action="store_true", help="Confirm the destructive removal")

    schedule = sub.add_parser("schedule", help="Run reconciliation on the configured cron schedule")
    schedule.add_argument("--ticks", type=int, help="Number of runs to execute")
    schedule.add_argument("--interval", type=int, help="Seconds between runs, overriding the cron")

    return parser


async def run_reconcile(
    settings: Dict[str, object],
    *,
    run_id: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RunSummary:
    """Execute one reconciliation pass and write its manifest and metrics."""
    reconcile_settings = _reconcile_settings(settings)
    fetch_settings = _fetch_settings(settings)
    run_id = run_id or datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
    metrics = MetricsRegistry()
    checkpoint = CheckpointStore(reconcile_settings.checkpoint_path)
    store = open_store(settings)

    set_context(run_id=run_id)
    try:
        async with create_validation_session(
            user_agent=fetch_settings.user_agent,
            timeout=reconcile_settings.timeout_ms / 1000,
            max_connections=fetch_settings.max_connections,
            max_redirects=fetch_settings.max_redirects,
            transport=transport,
        ) as session:
            reconciler = Reconciler(
                store=store,
                validator=UrlValidator(session, metrics=metrics),
                checkpoint=checkpoint,
                settings=reconcile_settings,
                metrics=metrics,
            )
            summary = await reconciler.run()
    finally:
        clear_context()

    app_settings = settings.get("app", {})
    write_manifest(
        Path(app_settings.get("manifest_dir", "data/manifests")),
        run_id,
        {
            "num_removed": summary.num_removed,
            "num_validated": summary.num_validated,
            "num_failed": summary.num_failed,
            "num_urls": len(summary.all_urls),
            "start_after": summary.start_after,
            "checkpoint": str(checkpoint.path),
            "metrics": metrics.snapshot(),
        },
    )
    metrics.export(path=Path(app_settings.get("metrics_dir", "data/metrics")) / f"run_{run_id}.json", run_id=run_id)
    return summary


def _print_plan(settings: Dict[str, object]) -> None:
    reconcile_settings = _reconcile_settings(settings)
    summary = CheckpointStore(reconcile_settings.checkpoint_path).summary()
    plan = {
        "checkpoint": str(reconcile_settings.checkpoint_path),
        "known_invalid": summary.entries,
        "start_after": summary.resume_cursor,
        "page_size": reconcile_settings.page_size,
        "max_pages": reconcile_settings.max_pages,
        "concurrency": reconcile_settings.concurrency,
        "timeout_ms": reconcile_settings.timeout_ms,
        "method": reconcile_settings.method,
    }
    print(json.dumps(plan, indent=2))


async def check_url(
    args: argparse.Namespace,
    settings: Dict[str, object],
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    fetch_settings = _fetch_settings(settings)
    async with create_validation_session(
        user_agent=fetch_settings.user_agent,
        timeout=args.timeout_ms / 1000,
        max_connections=1,
        max_redirects=fetch_settings.max_redirects,
        transport=transport,
    ) as session:
        return await UrlValidator(session).validate(args.method, args.url, args.timeout_ms)


async def list_stale(args: argparse.Namespace, settings: Dict[str, object]) -> List[Dict[str, object]]:
    cutoff = dateparser.isoparse(args.before)
    if cutoff.tzinfo is None:
        cutoff = cutoff.replace(tzinfo=timezone.utc)
    stale = await urls_last_viewed_before(open_store(settings), cutoff)
    return [{"url": item.url, "last_viewed": item.last_viewed.isoformat()} for item in stale]


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    settings = load_settings(settings_path())
    configure_logging(DEFAULT_LOGGING)

    if uvloop is not None:
        uvloop.install()

    if args.command == "reconcile":
        if args.dry_run:
            _print_plan(settings)
            return
        summary = asyncio.run(run_reconcile(settings))
        print(json.dumps({
            "num_removed": summary.num_removed,
            "num_validated": summary.num_validated,
            "num_failed": summary.num_failed,
            "num_urls": len(summary.all_urls),
        }, indent=2))
        return

    if args.command == "check":
        ok = asyncio.run(check_url(args, settings))
        print(json.dumps({"url": args.url, "ok": ok}, indent=2))
        if not ok:
            raise SystemExit(1)
        return

    if args.command == "stale":
        print(json.dumps(asyncio.run(list_stale(args, settings)), indent=2))
        return

    if args.command == "purge":
        if not args.yes:
            raise SystemExit("Refusing to purge without --yes")
        checkpoint = CheckpointStore(_reconcile_settings(settings).checkpoint_path)
        removed = asyncio.run(purge_invalid_urls(open_store(settings), checkpoint))
        print(json.dumps({"removed": removed}, indent=2))
        return

    if args.command == "schedule":
        asyncio.run(run_schedule_loop(settings, interval_seconds=args.interval, ticks=args.ticks))


if __name__ == "__main__":
    main()
