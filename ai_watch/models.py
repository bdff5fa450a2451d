from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(frozen=True)
class DateWindow:
    name: str
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()} → {self.end.isoformat()}"


@dataclass
class AlertItem:
    id: str
    title: str
    link: str
    source: str
    published: datetime

    @property
    def dedup_key(self) -> str:
        # Link first, id only when the item has no link.
        return self.link or self.id

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "link": self.link,
            "source": self.source,
            "published": self.published.isoformat(),
        }


@dataclass
class QueryRow:
    query: str
    clicks: int
    impressions: int
    ctr: float
    position: float

    def to_dict(self) -> dict[str, object]:
        return {
            "query": self.query,
            "clicks": self.clicks,
            "impressions": self.impressions,
            "ctr": self.ctr,
            "position": self.position,
        }


@dataclass
class PageRow:
    page: str
    clicks: int
    impressions: int
    ctr: float

    def to_dict(self) -> dict[str, object]:
        return {
            "page": self.page,
            "clicks": self.clicks,
            "impressions": self.impressions,
            "ctr": self.ctr,
        }


@dataclass(frozen=True)
class BotSignature:
    name: str
    pattern: re.Pattern[str]

    @classmethod
    def from_regex(cls, name: str, regex: str) -> "BotSignature":
        return cls(name=name, pattern=re.compile(regex, re.IGNORECASE))

    def matches(self, user_agent: str) -> bool:
        return self.pattern.search(user_agent) is not None


@dataclass
class BotStat:
    name: str
    hits: int = 0
    last_seen: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "hits": self.hits, "last_seen": self.last_seen}


@dataclass
class GSCSection:
    summary: dict[str, object]
    top_queries: list[QueryRow] = field(default_factory=list)
    top_pages: list[PageRow] = field(default_factory=list)

    @classmethod
    def not_configured(cls) -> "GSCSection":
        return cls(summary={"note": "not configured"})

    @property
    def is_placeholder(self) -> bool:
        return self.summary == {"note": "not configured"} and not self.top_queries and not self.top_pages

    def to_dict(self) -> dict[str, object]:
        return {
            "summary": dict(self.summary),
            "topQueries": [row.to_dict() for row in self.top_queries],
            "topPages": [row.to_dict() for row in self.top_pages],
        }


@dataclass
class Snapshot:
    generated_at: datetime
    brand_terms: list[str]
    alerts: list[AlertItem]
    gsc: GSCSection
    bots: list[BotStat]

    def to_dict(self) -> dict[str, object]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "brand_terms": list(self.brand_terms),
            "alerts": [item.to_dict() for item in self.alerts],
            "gsc": self.gsc.to_dict(),
            "bots": [stat.to_dict() for stat in self.bots],
        }
