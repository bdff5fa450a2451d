from __future__ import annotations

import html
import logging
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from urllib.parse import parse_qs, urlparse

import requests

from ai_watch.models import AlertItem

logger = logging.getLogger(__name__)

ATOM_NS = "{http://www.w3.org/2005/Atom}"
DEFAULT_TITLE_PREFIXES = ("Google Alerts - ",)
UNTITLED = "(untitled)"


def _strip_html(text: str) -> str:
    cleaned = re.sub(r"<[^>]+>", " ", text or "")
    cleaned = html.unescape(cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def _parse_datetime(raw_value: object) -> datetime | None:
    if raw_value is None:
        return None
    text = str(raw_value).strip()
    if not text:
        return None
    parsed: datetime | None = None
    try:
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _unwrap_redirect(link: str) -> str:
    """Google Alerts links point at google.com/url?url=<target>; return the target."""
    parsed = urlparse(link)
    host = parsed.netloc.lower()
    if (host == "google.com" or host.endswith(".google.com")) and parsed.path == "/url":
        target = parse_qs(parsed.query).get("url") or parse_qs(parsed.query).get("q")
        if target and target[0]:
            return target[0]
    return link


def _strip_prefix(title: str, prefixes: tuple[str, ...]) -> str:
    text = (title or "").strip()
    for prefix in prefixes:
        text = re.sub(rf"^{re.escape(prefix.strip())}\s*", "", text, flags=re.IGNORECASE)
    return text.strip()


def _findtext(elem: ET.Element, *tags: str) -> str:
    for tag in tags:
        value = elem.findtext(tag)
        if value and value.strip():
            return value.strip()
    return ""


def _item_link(item: ET.Element) -> str:
    link = _findtext(item, "link")
    if link:
        return link
    for tag in ("link", f"{ATOM_NS}link"):
        for link_elem in item.findall(tag):
            rel = link_elem.attrib.get("rel", "alternate")
            href = str(link_elem.attrib.get("href", "")).strip()
            if href and rel == "alternate":
                return href
    return ""


def parse_feed(text: str, prefixes: tuple[str, ...] = DEFAULT_TITLE_PREFIXES) -> list[AlertItem]:
    """Parse an RSS 2.0 or Atom document into alert items.

    Raises ``xml.etree.ElementTree.ParseError`` on malformed XML.
    """
    root = ET.fromstring(text)

    channel = root.find("channel")
    feed_title = ""
    if channel is not None:
        feed_title = _findtext(channel, "title")
    if not feed_title:
        feed_title = _findtext(root, "title", f"{ATOM_NS}title")
    source = _strip_prefix(_strip_html(feed_title), prefixes)

    items = root.findall(".//item")
    if not items:
        items = root.findall(".//entry") or root.findall(f".//{ATOM_NS}entry")

    now = datetime.now(timezone.utc)
    out: list[AlertItem] = []
    for item in items:
        title = _strip_html(_findtext(item, "title", f"{ATOM_NS}title"))
        link = _unwrap_redirect(_item_link(item))
        guid = _findtext(item, "guid", "id", f"{ATOM_NS}id")
        published_raw = _findtext(
            item,
            "pubDate",
            "published",
            "updated",
            f"{ATOM_NS}published",
            f"{ATOM_NS}updated",
        )
        published = _parse_datetime(published_raw) or now
        out.append(
            AlertItem(
                id=guid or link or f"{title}-{published_raw}",
                title=title or UNTITLED,
                link=link,
                source=source,
                published=published,
            )
        )
    return out


def dedupe_alerts(items: list[AlertItem]) -> list[AlertItem]:
    """Sort newest first and keep the first item per dedup key."""
    seen: set[str] = set()
    out: list[AlertItem] = []
    for item in sorted(items, key=lambda row: row.published, reverse=True):
        key = item.dedup_key
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


class AlertsFetcher:
    def __init__(
        self,
        feed_urls: tuple[str, ...],
        timeout_sec: float = 25.0,
        title_prefixes: tuple[str, ...] = DEFAULT_TITLE_PREFIXES,
    ) -> None:
        self.feed_urls = tuple(url for url in feed_urls if url.strip())
        self.timeout_sec = timeout_sec
        self.title_prefixes = title_prefixes

    def _fetch_feed(self, url: str) -> list[AlertItem]:
        response = requests.get(url, timeout=self.timeout_sec)
        response.raise_for_status()
        return parse_feed(response.text, self.title_prefixes)

    def fetch(self) -> list[AlertItem]:
        if not self.feed_urls:
            logger.info("ALERT_FEEDS not set, skipping RSS.")
            return []

        collected: list[AlertItem] = []
        for url in self.feed_urls:
            try:
                collected.extend(self._fetch_feed(url))
            except (requests.RequestException, ET.ParseError, ValueError) as exc:
                logger.warning("RSS error for %s: %s", url, exc)

        alerts = dedupe_alerts(collected)
        logger.info("Alerts: %d items from %d feeds.", len(alerts), len(self.feed_urls))
        return alerts
