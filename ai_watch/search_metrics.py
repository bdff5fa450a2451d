from __future__ import annotations

import logging
from datetime import date

from ai_watch.clients.gsc_client import GSCClient
from ai_watch.config import WatchConfig
from ai_watch.models import DateWindow, GSCSection, PageRow, QueryRow
from ai_watch.time_windows import compute_windows

logger = logging.getLogger(__name__)

TOP_ROWS = 50


def filter_brand_queries(rows: list[QueryRow], brand_terms: tuple[str, ...]) -> list[QueryRow]:
    terms = tuple(term.strip().lower() for term in brand_terms if term.strip())
    if not terms:
        return []
    return [row for row in rows if any(term in row.query.lower() for term in terms)]


def summarize_pages(rows: list[PageRow]) -> dict[str, float]:
    # Ratio of sums, not the mean of per-page CTR.
    clicks = sum(row.clicks for row in rows)
    impressions = sum(row.impressions for row in rows)
    return {
        "clicks": clicks,
        "impressions": impressions,
        "ctr": (clicks / impressions if impressions else 0.0),
    }


class SearchMetricsFetcher:
    def __init__(self, config: WatchConfig, client: GSCClient | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def client(self) -> GSCClient:
        if self._client is None:
            self._client = GSCClient(
                site_url=self.config.gsc_property,
                client_id=self.config.gsc_client_id,
                client_secret=self.config.gsc_client_secret,
                refresh_token=self.config.gsc_refresh_token,
                token_uri=self.config.gsc_token_uri,
                row_limit=self.config.gsc_row_limit,
                timeout_sec=self.config.gsc_timeout_sec,
            )
        return self._client

    def _fetch_window(self, window: DateWindow) -> tuple[list[QueryRow], list[PageRow]]:
        query_rows = self.client.fetch_query_rows(window)
        page_rows = self.client.fetch_page_rows(window)
        return query_rows, page_rows

    def fetch(self, run_date: date | None = None) -> GSCSection | None:
        """Return the GSC section, or ``None`` when unconfigured or unavailable."""
        if not self.config.gsc_enabled:
            logger.info("GSC credentials missing, skipping Search Console.")
            return None

        try:
            windows = compute_windows(run_date)
            window = windows["primary"]
            query_rows, page_rows = self._fetch_window(window)
            fallback_used = False
            if not query_rows and not page_rows:
                window = windows["fallback"]
                logger.info("GSC returned no rows for 30 days, retrying %s.", window.label)
                query_rows, page_rows = self._fetch_window(window)
                fallback_used = True
        except Exception as exc:
            logger.warning("GSC fetch failed for %s: %s", self.config.gsc_property, exc)
            return None

        brand_rows = sorted(
            filter_brand_queries(query_rows, self.config.brand_terms),
            key=lambda row: row.impressions,
            reverse=True,
        )
        pages = sorted(page_rows, key=lambda row: row.clicks, reverse=True)

        summary: dict[str, object] = dict(summarize_pages(pages))
        summary.update(
            {
                "period": window.label,
                "window_days": window.days,
                "fallback_used": fallback_used,
                "brand_queries": len(brand_rows),
                "pages": len(pages),
            }
        )
        logger.info("GSC: %d brand queries, %d pages (%s).", len(brand_rows), len(pages), window.label)
        return GSCSection(
            summary=summary,
            top_queries=brand_rows[:TOP_ROWS],
            top_pages=pages[:TOP_ROWS],
        )
