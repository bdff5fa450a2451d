from __future__ import annotations

import json
import threading
from dataclasses import replace
from datetime import datetime, timezone

from ai_watch import alerts
from ai_watch.alerts import AlertsFetcher
from ai_watch.bot_log import BotLogScanner
from ai_watch.config import WatchConfig
from ai_watch.models import GSCSection, PageRow, QueryRow
from ai_watch.search_metrics import SearchMetricsFetcher
from ai_watch.snapshot import SnapshotAssembler


def _config(tmp_path, **overrides) -> WatchConfig:
    base = WatchConfig(
        brand_terms=("wpg",),
        alert_feeds=("https://feeds.example/a", "https://feeds.example/b"),
        alert_feed_timeout_sec=5.0,
        gsc_client_id="client-id",
        gsc_client_secret="client-secret",
        gsc_refresh_token="refresh-token",
        gsc_property="https://worldpoker.guide/",
        gsc_token_uri="https://oauth2.googleapis.com/token",
        gsc_row_limit=25000,
        gsc_timeout_sec=30,
        log_path="",
        bot_extra_tokens=(),
        log_max_lines=0,
        output_dir=str(tmp_path / "ai-watch"),
        run_deadline_sec=10.0,
    )
    return replace(base, **overrides)


def _rss(*entries: tuple[str, str]) -> str:
    items = "".join(
        f"<item><title>{link}</title><link>{link}</link><pubDate>{pub}</pubDate></item>"
        for link, pub in entries
    )
    return f"<rss><channel><title>Google Alerts - wpg</title>{items}</channel></rss>"


FEEDS = {
    "https://feeds.example/a": _rss(
        ("https://n.example/1", "Mon, 01 Jan 2024 10:00:00 +0000"),
        ("https://n.example/2", "Tue, 02 Jan 2024 10:00:00 +0000"),
        ("https://n.example/dup", "Wed, 03 Jan 2024 10:00:00 +0000"),
    ),
    "https://feeds.example/b": _rss(
        ("https://n.example/dup", "Thu, 04 Jan 2024 10:00:00 +0000"),
        ("https://n.example/3", "Fri, 05 Jan 2024 10:00:00 +0000"),
    ),
}

LOG_LINES = [
    '1.1.1.1 - - [10/Oct/2024:13:55:36 +0000] "GET / HTTP/1.1" 200 1 "-" "GPTBot/1.2"',
    '1.1.1.1 - - [10/Oct/2024:13:55:37 +0000] "GET / HTTP/1.1" 200 1 "-" "Mozilla/5.0 Safari"',
    '1.1.1.1 - - [10/Oct/2024:13:55:38 +0000] "GET / HTTP/1.1" 200 1 "-" "Googlebot/2.1"',
    '1.1.1.1 - - [10/Oct/2024:13:55:39 +0000] "GET / HTTP/1.1" 200 1 "-" "-"',
    '1.1.1.1 - - [10/Oct/2024:13:55:40 +0000] "GET / HTTP/1.1" 200 1 "-" "compatible; GPTBot/1.2"',
]


class _FakeResponse:
    def __init__(self, text: str):
        self.text = text

    def raise_for_status(self) -> None:
        return None


class _FakeGSCClient:
    def fetch_query_rows(self, window):
        return [QueryRow("wpg", 3, 30, 0.1, 1.0), QueryRow("poker", 9, 90, 0.1, 5.0)]

    def fetch_page_rows(self, window):
        return [PageRow("https://worldpoker.guide/", 12, 120, 0.1)]


class _FailingGSCClient:
    def fetch_query_rows(self, window):
        raise RuntimeError("GSC API error for dimension query: invalid_grant")

    def fetch_page_rows(self, window):
        raise RuntimeError("unreachable")


def _mock_get(url: str, timeout: float = 0):
    del timeout
    return _FakeResponse(FEEDS[url])


def _assembler(config: WatchConfig, gsc_client) -> SnapshotAssembler:
    return SnapshotAssembler(
        config,
        metrics_fetcher=SearchMetricsFetcher(config, client=gsc_client),
    )


def test_end_to_end_snapshot(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(alerts.requests, "get", _mock_get)
    log_path = tmp_path / "access.log"
    log_path.write_text("\n".join(LOG_LINES) + "\n", encoding="utf-8")
    config = _config(tmp_path, log_path=str(log_path))

    output_path, snapshot = _assembler(config, _FakeGSCClient()).run()

    assert output_path == config.output_path
    payload = json.loads(output_path.read_text(encoding="utf-8"))
    assert list(payload) == ["generated_at", "brand_terms", "alerts", "gsc", "bots"]
    assert payload["brand_terms"] == ["wpg"]
    assert len(payload["alerts"]) == 4
    assert payload["alerts"][0]["link"] == "https://n.example/3"
    assert [alert["link"] for alert in payload["alerts"]].count("https://n.example/dup") == 1
    assert [row["query"] for row in payload["gsc"]["topQueries"]] == ["wpg"]
    assert payload["gsc"]["topPages"][0]["clicks"] == 12
    assert payload["gsc"]["summary"]["ctr"] == 0.1
    assert payload["bots"] == [
        {"name": "GPTBot", "hits": 2, "last_seen": "10/Oct/2024:13:55:40 +0000"},
        {"name": "Googlebot", "hits": 1, "last_seen": "10/Oct/2024:13:55:38 +0000"},
    ]
    assert len(snapshot.alerts) == 4


def test_gsc_failure_still_writes_snapshot(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(alerts.requests, "get", _mock_get)
    log_path = tmp_path / "access.log"
    log_path.write_text("\n".join(LOG_LINES) + "\n", encoding="utf-8")
    config = _config(tmp_path, log_path=str(log_path))

    output_path, _ = _assembler(config, _FailingGSCClient()).run()

    payload = json.loads(output_path.read_text(encoding="utf-8"))
    assert payload["gsc"] == {"summary": {"note": "not configured"}, "topQueries": [], "topPages": []}
    assert len(payload["alerts"]) == 4
    assert len(payload["bots"]) == 2


def test_unconfigured_sources_produce_placeholders(tmp_path) -> None:
    config = _config(tmp_path, alert_feeds=(), gsc_property="", log_path="")

    output_path, _ = SnapshotAssembler(config).run()

    payload = json.loads(output_path.read_text(encoding="utf-8"))
    assert payload["alerts"] == []
    assert payload["bots"] == []
    assert payload["gsc"]["summary"] == {"note": "not configured"}


def test_run_overwrites_previous_snapshot(tmp_path) -> None:
    config = _config(tmp_path, alert_feeds=(), gsc_property="")
    config.output_path.parent.mkdir(parents=True)
    config.output_path.write_text('{"stale": true, "padding": "' + "x" * 5000 + '"}', encoding="utf-8")

    SnapshotAssembler(config).run()

    payload = json.loads(config.output_path.read_text(encoding="utf-8"))
    assert "stale" not in payload


def test_crashing_source_is_isolated(tmp_path) -> None:
    config = _config(tmp_path, alert_feeds=(), gsc_property="")

    class _ExplodingScanner(BotLogScanner):
        def scan(self):
            raise ValueError("unexpected")

    assembler = SnapshotAssembler(config, bot_scanner=_ExplodingScanner(""))
    alerts_out, gsc, bots = assembler.collect()

    assert alerts_out == [] and gsc is None and bots == []


def test_deadline_returns_partial_results(tmp_path) -> None:
    release = threading.Event()
    config = _config(tmp_path, alert_feeds=(), gsc_property="", run_deadline_sec=0.2)

    class _SlowAlerts(AlertsFetcher):
        def fetch(self):
            release.wait(5)
            return ["late"]

    class _FastGSC(SearchMetricsFetcher):
        def fetch(self, run_date=None):
            return GSCSection(summary={"clicks": 1})

    assembler = SnapshotAssembler(
        config,
        alerts_fetcher=_SlowAlerts(()),
        metrics_fetcher=_FastGSC(config),
    )
    try:
        alerts_out, gsc, bots = assembler.collect()
    finally:
        release.set()

    assert alerts_out == []
    assert gsc is not None and gsc.summary == {"clicks": 1}
    assert bots == []


def test_build_uses_given_timestamp(tmp_path) -> None:
    config = _config(tmp_path)
    stamp = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    snapshot = SnapshotAssembler(config).build([], None, [], generated_at=stamp)

    assert snapshot.to_dict()["generated_at"] == "2024-05-01T12:00:00+00:00"
