from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from ai_watch.models import DateWindow

PRIMARY_LOOKBACK_DAYS = 30
FALLBACK_LOOKBACK_DAYS = 90


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def compute_lookback_window(days: int, run_date: date | None = None) -> DateWindow:
    """Build a ``days``-long window that closes on the day before ``run_date``.

    Search Console data for the current day is incomplete, so the window always
    ends yesterday (UTC when ``run_date`` is not given).
    """
    if days < 1:
        raise ValueError(f"Lookback window must cover at least one day, got {days}.")
    run_date = run_date or utc_today()
    end = run_date - timedelta(days=1)
    start = end - timedelta(days=days - 1)
    return DateWindow(f"Last {days} days", start, end)


def compute_windows(run_date: date | None = None) -> dict[str, DateWindow]:
    return {
        "primary": compute_lookback_window(PRIMARY_LOOKBACK_DAYS, run_date),
        "fallback": compute_lookback_window(FALLBACK_LOOKBACK_DAYS, run_date),
    }
