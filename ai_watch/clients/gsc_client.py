from __future__ import annotations

import httplib2
from google.oauth2.credentials import Credentials as UserCredentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ai_watch.models import DateWindow, PageRow, QueryRow


class GSCClient:
    """Thin wrapper for Search Console Search Analytics API."""

    SCOPES = ["https://www.googleapis.com/auth/webmasters.readonly"]
    HTTP_TIMEOUT_SEC = 30
    API_RETRIES = 0

    def __init__(
        self,
        site_url: str,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        token_uri: str = "https://oauth2.googleapis.com/token",
        row_limit: int = 25000,
        timeout_sec: int = HTTP_TIMEOUT_SEC,
    ) -> None:
        self.site_url = site_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.token_uri = token_uri
        self.row_limit = row_limit
        self.timeout_sec = timeout_sec
        self._service = None

    def _build_credentials(self) -> UserCredentials:
        if not (self.client_id and self.client_secret):
            raise RuntimeError("Missing GSC_CLIENT_ID/GSC_CLIENT_SECRET for OAuth credentials.")
        if not self.refresh_token:
            raise RuntimeError("Missing GSC_REFRESH_TOKEN for OAuth credentials.")

        return UserCredentials(
            token=None,
            refresh_token=self.refresh_token,
            token_uri=self.token_uri,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=self.SCOPES,
        )

    def _build_service(self):
        if self._service is not None:
            return self._service

        http = AuthorizedHttp(
            self._build_credentials(),
            http=httplib2.Http(timeout=self.timeout_sec),
        )
        self._service = build(
            "searchconsole",
            "v1",
            http=http,
            cache_discovery=False,
        )
        return self._service

    def _query(self, window: DateWindow, dimension: str) -> list[dict]:
        service = self._build_service()
        body = {
            "startDate": window.start.isoformat(),
            "endDate": window.end.isoformat(),
            "dimensions": [dimension],
            "rowLimit": self.row_limit,
        }

        try:
            response = (
                service.searchanalytics()
                .query(siteUrl=self.site_url, body=body)
                .execute(num_retries=self.API_RETRIES)
            )
        except TimeoutError as exc:
            raise RuntimeError(f"GSC API timeout for dimension {dimension}: {exc}") from exc
        except HttpError as exc:
            raise RuntimeError(f"GSC API error for dimension {dimension}: {exc}") from exc

        if not isinstance(response, dict):
            raise RuntimeError(f"Unexpected GSC response for dimension {dimension}.")
        rows = response.get("rows") or []
        if not isinstance(rows, list):
            raise RuntimeError(f"Malformed GSC rows for dimension {dimension}.")
        return rows

    @staticmethod
    def _first_key(row: dict) -> str:
        keys = row.get("keys") or []
        return str(keys[0]) if keys else ""

    def fetch_query_rows(self, window: DateWindow) -> list[QueryRow]:
        return [
            QueryRow(
                query=self._first_key(row),
                clicks=int(row.get("clicks", 0) or 0),
                impressions=int(row.get("impressions", 0) or 0),
                ctr=float(row.get("ctr", 0.0) or 0.0),
                position=float(row.get("position", 0.0) or 0.0),
            )
            for row in self._query(window, "query")
        ]

    def fetch_page_rows(self, window: DateWindow) -> list[PageRow]:
        return [
            PageRow(
                page=self._first_key(row),
                clicks=int(row.get("clicks", 0) or 0),
                impressions=int(row.get("impressions", 0) or 0),
                ctr=float(row.get("ctr", 0.0) or 0.0),
            )
            for row in self._query(window, "page")
        ]
