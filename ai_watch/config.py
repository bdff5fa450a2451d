from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_BRAND_TERMS = "World Poker Guide,wpg,worldpoker.guide"
DEFAULT_GSC_TOKEN_URI = "https://oauth2.googleapis.com/token"
OUTPUT_FILENAME = "data.json"


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default.strip()
    value = raw.strip()
    placeholder = f"{name}="
    unquoted = value.strip("'\"").strip()
    if unquoted.lower() == placeholder.lower():
        return default.strip()
    return value if value else default.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    return int(raw) if raw else default


def _env_csv(name: str, default: str = "") -> tuple[str, ...]:
    raw = _env(name, default)
    values = [part.strip() for part in raw.split(",") if part.strip()]
    return tuple(values)


@dataclass(frozen=True)
class WatchConfig:
    brand_terms: tuple[str, ...]

    alert_feeds: tuple[str, ...]
    alert_feed_timeout_sec: float

    gsc_client_id: str
    gsc_client_secret: str
    gsc_refresh_token: str
    gsc_property: str
    gsc_token_uri: str
    gsc_row_limit: int
    gsc_timeout_sec: int

    log_path: str
    bot_extra_tokens: tuple[str, ...]
    log_max_lines: int

    output_dir: str
    run_deadline_sec: float

    @classmethod
    def from_env(cls) -> "WatchConfig":
        return cls(
            brand_terms=_env_csv("BRAND_TERMS", DEFAULT_BRAND_TERMS),
            alert_feeds=_env_csv("ALERT_FEEDS"),
            alert_feed_timeout_sec=_env_float("ALERT_FEED_TIMEOUT_SEC", 25.0),
            gsc_client_id=_env("GSC_CLIENT_ID"),
            gsc_client_secret=_env("GSC_CLIENT_SECRET"),
            gsc_refresh_token=_env("GSC_REFRESH_TOKEN"),
            gsc_property=_env("GSC_PROPERTY"),
            gsc_token_uri=_env("GSC_TOKEN_URI", DEFAULT_GSC_TOKEN_URI),
            gsc_row_limit=max(1, _env_int("GSC_ROW_LIMIT", 25000)),
            gsc_timeout_sec=max(1, _env_int("GSC_TIMEOUT_SEC", 30)),
            log_path=_env("LOG_PATH"),
            bot_extra_tokens=_env_csv("BOT_EXTRA"),
            log_max_lines=max(0, _env_int("LOG_MAX_LINES", 0)),
            output_dir=_env("OUTPUT_DIR", "ai-watch"),
            run_deadline_sec=_env_float("RUN_DEADLINE_SEC", 120.0),
        )

    @property
    def gsc_enabled(self) -> bool:
        return bool(
            self.gsc_client_id
            and self.gsc_client_secret
            and self.gsc_refresh_token
            and self.gsc_property
        )

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir) / OUTPUT_FILENAME
