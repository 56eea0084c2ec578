#!/usr/bin/env python3
"""
Command-line front end for incubator logs.

Examples::

    incuview-report files
    incuview-report sessions --shelf 2 --span 24h
    incuview-report sessions --barcode PLATE-001 --from 2024-03-01 --to 2024-03-03
    incuview-report export --shelf 1 --from 2024-03-01 --out exports/
    incuview-report prune --days 7
    incuview-report chart --span 6h
    incuview-report chart --span 1h --follow

Logs are read from the REST backend when ``api_base_url`` is configured,
otherwise from the local data directory (see :class:`AppPaths`).
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Sequence

import yaml

from ..config import AppPaths, IncuviewConfig, load_config
from ..core.merge import NAMED_SPANS, TimeWindow
from ..core.pipeline import EventSource, NullEventSource, ReportPipeline, date_range_window
from ..core.models import Session
from ..core.refresh import RefreshScheduler
from ..dataio.log_store import LocalLogStore
from ..remote.event_log import EventLogReader
from ..remote.http_client import HttpEventSource, HttpLogStore

logger = logging.getLogger(__name__)

_LOG_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


# --------------------------------------------------------------------------- # wiring
def build_store(config: IncuviewConfig, paths: AppPaths):
    if config.api_base_url:
        return HttpLogStore(config.api_base_url, timeout=config.request_timeout_s)
    return LocalLogStore(paths.data_root)


def build_event_source(config: IncuviewConfig, paths: AppPaths) -> EventSource:
    if config.api_base_url:
        return HttpEventSource(config.api_base_url, timeout=config.request_timeout_s)
    if paths.event_logs.is_dir():
        return EventLogReader(paths.event_logs)
    logger.info("No event source configured; reports will carry no events")
    return NullEventSource()


def _parse_day(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got {text!r}") from exc


def resolve_window(args: argparse.Namespace, now: datetime) -> TimeWindow:
    """``--from/--to`` whole days take precedence over ``--span``."""
    if args.start is not None:
        return date_range_window(args.start, args.end or args.start)
    return TimeWindow.last(args.span, now)


# --------------------------------------------------------------------------- # output
def _format_session(index: int, session: Session) -> str:
    start = session.start_time.strftime("%Y-%m-%d %H:%M:%S")
    end = session.end_time.strftime("%Y-%m-%d %H:%M:%S")
    minutes = session.duration_ms / 60000.0
    barcode = session.barcode or "-"
    return (
        f"#{index} shelf {session.channel} {start} -> {end} "
        f"({minutes:.1f} min, {session.sample_count} samples, plate {barcode})"
    )


def _print_sessions(sessions: Sequence[Session]) -> None:
    if not sessions:
        print("No sessions found.")
        return
    for index, session in enumerate(sessions, start=1):
        print(_format_session(index, session))
        for annotated in session.events:
            stamp = annotated.display_time or "--:--:--"
            print(f"    {stamp}  {annotated.description}")


def _sessions_for(pipeline: ReportPipeline, args: argparse.Namespace, now: datetime):
    window = resolve_window(args, now)
    if args.barcode:
        return pipeline.barcode_report(args.barcode, window)
    return pipeline.shelf_report(args.shelf, window)


# --------------------------------------------------------------------------- # commands
def cmd_files(store, args: argparse.Namespace) -> int:
    infos = store.list_files()
    if not infos:
        print("No log files found.")
        return 0
    for info in infos:
        print(f"{info.filename:40s} {info.size:>10d} B {info.row_count:>8d} rows")
    return 0


def cmd_sessions(pipeline: ReportPipeline, args: argparse.Namespace, now: datetime) -> int:
    _print_sessions(_sessions_for(pipeline, args, now))
    return 0


def cmd_export(pipeline: ReportPipeline, args: argparse.Namespace, now: datetime) -> int:
    sessions = _sessions_for(pipeline, args, now)
    if not sessions:
        print("No sessions found; nothing exported.")
        return 1
    written = pipeline.export_sessions(Path(args.out), sessions, args.barcode)
    for path in written:
        print(f"[INFO] Wrote {path}")
    return 0


def cmd_prune(store, args: argparse.Namespace, config: IncuviewConfig) -> int:
    days = config.retention_days if args.days is None else args.days
    deleted = store.delete_files_older_than(days)
    print(f"Deleted {len(deleted)} file(s) older than {days:g} days.")
    for name in deleted:
        print(f"  {name}")
    return 0


def _print_chart(records: Sequence[dict]) -> None:
    for record in records:
        print(json.dumps(record, sort_keys=True))


def cmd_chart(pipeline: ReportPipeline, args: argparse.Namespace, now: datetime) -> int:
    simulated = args.simulated or None
    if not args.follow:
        _print_chart(pipeline.chart_data(resolve_window(args, now), simulated=simulated))
        return 0

    # Relative spans slide with the clock on every refresh.
    def job() -> list:
        return pipeline.chart_data(resolve_window(args, pipeline.clock()), simulated=simulated)

    scheduler = RefreshScheduler(
        job,
        _print_chart,
        interval_s=pipeline.config.refresh_interval_seconds,
        on_error=lambda exc: logger.warning("Chart refresh failed: %s", exc),
    )
    scheduler.start()
    try:
        while scheduler.is_alive():
            scheduler.join(1.0)
    finally:
        scheduler.stop()
    return 0


# --------------------------------------------------------------------------- # CLI
def _add_window_args(parser: argparse.ArgumentParser, default_span: str) -> None:
    parser.add_argument(
        "--span",
        choices=sorted(NAMED_SPANS),
        default=default_span,
        help=f"Relative window ending now (default: {default_span}).",
    )
    parser.add_argument(
        "--from",
        dest="start",
        type=_parse_day,
        help="First calendar day (UTC), overrides --span.",
    )
    parser.add_argument(
        "--to",
        dest="end",
        type=_parse_day,
        help="Last calendar day (UTC), inclusive (default: same as --from).",
    )


def _add_selection_args(parser: argparse.ArgumentParser) -> None:
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--shelf", type=int, choices=range(1, 5), help="Shelf number (1-4).")
    target.add_argument("--barcode", type=str, help="Plate barcode, across all shelves.")
    _add_window_args(parser, "7d")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect incubator telemetry logs, sessions, and events."
    )
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        help="Path to an incuview YAML config file.",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        help="Directory holding the daily CSV logs (overrides config).",
    )
    parser.add_argument(
        "--api-url",
        type=str,
        help="Base URL of the incubator REST backend (overrides config).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug).",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("files", help="List daily log files.")

    sessions = commands.add_parser("sessions", help="Summarise sessions and their events.")
    _add_selection_args(sessions)

    export = commands.add_parser("export", help="Write one CSV per session.")
    _add_selection_args(export)
    export.add_argument("-o", "--out", default=".", help="Output directory (default: cwd).")

    prune = commands.add_parser("prune", help="Delete log files older than N days.")
    prune.add_argument(
        "--days",
        type=float,
        help="Retention in days (default: retention_days from config).",
    )

    chart = commands.add_parser("chart", help="Print dashboard chart records as JSON lines.")
    _add_window_args(chart, "24h")
    chart.add_argument(
        "--simulated",
        action="store_true",
        help="Read simulated-mode logs instead of live ones.",
    )
    chart.add_argument(
        "-f",
        "--follow",
        action="store_true",
        help="Reprint the chart every refresh_interval_seconds until interrupted.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=_LOG_LEVELS[min(args.verbose, len(_LOG_LEVELS) - 1)],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        parser.error(f"Could not load config {args.config}: {exc}")
    if args.data_dir:
        config.data_dir = args.data_dir
    if args.api_url:
        config.api_base_url = args.api_url
    config = config.sanitized()

    paths = AppPaths(config)
    store = build_store(config, paths)
    now = datetime.now(timezone.utc)

    try:
        if args.command == "files":
            return cmd_files(store, args)
        if args.command == "prune":
            return cmd_prune(store, args, config)

        pipeline = ReportPipeline(
            store=store,
            events=build_event_source(config, paths),
            config=config,
        )
        if args.command == "sessions":
            return cmd_sessions(pipeline, args, now)
        if args.command == "export":
            return cmd_export(pipeline, args, now)
        return cmd_chart(pipeline, args, now)
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
