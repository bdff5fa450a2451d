from __future__ import annotations

import argparse
import logging
from dataclasses import replace

from dotenv import find_dotenv, load_dotenv

from ai_watch.config import WatchConfig
from ai_watch.models import Snapshot
from ai_watch.snapshot import SnapshotAssembler

LOG_FORMAT = "[ai-watch] %(levelname)s %(name)s: %(message)s"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Brand, Search Console and AI-crawler snapshot",
        epilog=(
            "RUN_DEADLINE_SEC bounds how long the snapshot waits for its sources. "
            "A source still running at the deadline is left out of data.json, but the "
            "process only exits once that source hits its own network timeout."
        ),
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory for data.json (default: OUTPUT_DIR from .env or ./ai-watch)",
    )
    parser.add_argument(
        "--log-path",
        default=None,
        help="Access log to scan for crawlers, plain or .gz (default: LOG_PATH)",
    )
    parser.add_argument(
        "--max-log-lines",
        type=int,
        default=None,
        help="Only scan the newest N log lines (default: LOG_MAX_LINES, 0 = all)",
    )
    parser.add_argument("--skip-alerts", action="store_true", help="Do not fetch RSS alert feeds.")
    parser.add_argument("--skip-gsc", action="store_true", help="Do not query Search Console.")
    parser.add_argument("--skip-bots", action="store_true", help="Do not scan the access log.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def _apply_overrides(config: WatchConfig, args: argparse.Namespace) -> WatchConfig:
    updates: dict[str, object] = {}
    if args.output_dir:
        updates["output_dir"] = args.output_dir
    if args.log_path is not None:
        updates["log_path"] = args.log_path
    if args.max_log_lines is not None:
        updates["log_max_lines"] = max(0, args.max_log_lines)
    if args.skip_alerts:
        updates["alert_feeds"] = ()
    if args.skip_gsc:
        updates["gsc_property"] = ""
    if args.skip_bots:
        updates["log_path"] = ""
    return replace(config, **updates) if updates else config


def _gsc_state(config: WatchConfig, snapshot: Snapshot) -> str:
    if not snapshot.gsc.is_placeholder:
        return "ok"
    return "unavailable" if config.gsc_enabled else "not configured"


def main(argv: list[str] | None = None) -> None:
    try:
        load_dotenv(find_dotenv(usecwd=True), override=False)
    except Exception:
        pass

    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    config = _apply_overrides(WatchConfig.from_env(), args)
    assembler = SnapshotAssembler(config)

    try:
        output_path, snapshot = assembler.run()
    except OSError as exc:
        raise SystemExit(f"Failed to write snapshot to {config.output_path}: {exc}") from exc

    gsc_state = _gsc_state(config, snapshot)
    print(
        f"Snapshot written: {output_path} | alerts={len(snapshot.alerts)} | "
        f"gsc={gsc_state} | bots={len(snapshot.bots)}"
    )


if __name__ == "__main__":
    main()
