from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from ai_watch.alerts import AlertsFetcher
from ai_watch.bot_log import BotLogScanner, build_signatures
from ai_watch.config import WatchConfig
from ai_watch.models import AlertItem, BotStat, GSCSection, Snapshot
from ai_watch.search_metrics import SearchMetricsFetcher

logger = logging.getLogger(__name__)


class SnapshotAssembler:
    """Run the three sources side by side and write one ``data.json``."""

    def __init__(
        self,
        config: WatchConfig,
        alerts_fetcher: AlertsFetcher | None = None,
        metrics_fetcher: SearchMetricsFetcher | None = None,
        bot_scanner: BotLogScanner | None = None,
    ) -> None:
        self.config = config
        self.alerts_fetcher = alerts_fetcher or AlertsFetcher(
            config.alert_feeds,
            timeout_sec=config.alert_feed_timeout_sec,
        )
        self.metrics_fetcher = metrics_fetcher or SearchMetricsFetcher(config)
        self.bot_scanner = bot_scanner or BotLogScanner(
            config.log_path,
            signatures=build_signatures(config.bot_extra_tokens),
            max_lines=config.log_max_lines,
        )

    def collect(self) -> tuple[list[AlertItem], GSCSection | None, list[BotStat]]:
        tasks: dict[str, tuple[Callable[[], Any], Any]] = {
            "alerts": (self.alerts_fetcher.fetch, []),
            "gsc": (self.metrics_fetcher.fetch, None),
            "bots": (self.bot_scanner.scan, []),
        }
        results: dict[str, Any] = {name: default for name, (_, default) in tasks.items()}

        deadline = self.config.run_deadline_sec if self.config.run_deadline_sec > 0 else None
        pool = ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="ai-watch")
        future_map = {pool.submit(func): name for name, (func, _) in tasks.items()}
        try:
            done, pending = wait(future_map, timeout=deadline)
            for future in done:
                name = future_map[future]
                try:
                    results[name] = future.result()
                except Exception as exc:
                    logger.warning("Source %s failed: %s", name, exc)
            for future in pending:
                logger.warning(
                    "Source %s missed the %ss run deadline, writing partial snapshot.",
                    future_map[future],
                    deadline,
                )
        finally:
            # Stragglers are abandoned; their results are never read.
            pool.shutdown(wait=False, cancel_futures=True)

        return results["alerts"], results["gsc"], results["bots"]

    def build(
        self,
        alerts: list[AlertItem],
        gsc: GSCSection | None,
        bots: list[BotStat],
        generated_at: datetime | None = None,
    ) -> Snapshot:
        return Snapshot(
            generated_at=generated_at or datetime.now(timezone.utc),
            brand_terms=list(self.config.brand_terms),
            alerts=alerts,
            gsc=gsc if gsc is not None else GSCSection.not_configured(),
            bots=bots,
        )

    def write(self, snapshot: Snapshot) -> Path:
        # Plain overwrite; a concurrent reader can see a truncated file.
        output_path = self.config.output_path
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(
            json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        logger.info("Wrote %s", output_path)
        return output_path

    def run(self) -> tuple[Path, Snapshot]:
        alerts, gsc, bots = self.collect()
        snapshot = self.build(alerts, gsc, bots)
        return self.write(snapshot), snapshot
