from __future__ import annotations

from datetime import date

import pytest

from ai_watch.clients.gsc_client import GSCClient
from ai_watch.models import DateWindow


class _FakeRequest:
    def __init__(self, payload):
        self._payload = payload

    def execute(self, num_retries: int = 0):
        del num_retries
        return self._payload


class _FakeSearchAnalytics:
    def __init__(self, service):
        self._service = service

    def query(self, siteUrl: str, body: dict):
        self._service.calls.append((siteUrl, body))
        return _FakeRequest(self._service.payloads[body["dimensions"][0]])


class _FakeService:
    def __init__(self, payloads):
        self.payloads = payloads
        self.calls: list[tuple[str, dict]] = []

    def searchanalytics(self):
        return _FakeSearchAnalytics(self)


WINDOW = DateWindow("Last 30 days", date(2024, 1, 31), date(2024, 2, 29))


def _client(service: _FakeService) -> GSCClient:
    client = GSCClient(
        site_url="sc-domain:worldpoker.guide",
        client_id="id",
        client_secret="secret",
        refresh_token="refresh",
    )
    client._service = service
    return client


def test_fetch_rows_builds_request_and_parses_rows() -> None:
    service = _FakeService(
        {
            "query": {"rows": [{"keys": ["wpg"], "clicks": 4, "impressions": 40, "ctr": 0.1, "position": 2.5}]},
            "page": {"rows": [{"keys": ["https://worldpoker.guide/"], "clicks": 7.0, "impressions": 70.0}]},
        }
    )
    client = _client(service)

    queries = client.fetch_query_rows(WINDOW)
    pages = client.fetch_page_rows(WINDOW)

    assert queries[0].query == "wpg" and queries[0].clicks == 4 and queries[0].position == 2.5
    assert pages[0].page == "https://worldpoker.guide/" and pages[0].clicks == 7 and pages[0].ctr == 0.0
    site_url, body = service.calls[0]
    assert site_url == "sc-domain:worldpoker.guide"
    assert body == {
        "startDate": "2024-01-31",
        "endDate": "2024-02-29",
        "dimensions": ["query"],
        "rowLimit": 25000,
    }


def test_empty_response_yields_no_rows() -> None:
    client = _client(_FakeService({"query": {}, "page": {"rows": []}}))
    assert client.fetch_query_rows(WINDOW) == []
    assert client.fetch_page_rows(WINDOW) == []


def test_malformed_rows_raise() -> None:
    client = _client(_FakeService({"query": {"rows": "oops"}}))
    with pytest.raises(RuntimeError):
        client.fetch_query_rows(WINDOW)


def test_missing_refresh_token_is_rejected() -> None:
    client = GSCClient(site_url="x", client_id="id", client_secret="secret", refresh_token="")
    with pytest.raises(RuntimeError):
        client._build_credentials()
