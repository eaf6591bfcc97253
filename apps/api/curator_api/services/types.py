from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlparse


class ContentType(str, Enum):
    WEB = "web"
    NEWS = "news"
    RSS = "rss"
    GITHUB = "github"
    REDDIT = "reddit"
    ABSTRACT = "abstract"
    RELATED = "related"


@dataclass(frozen=True)
class SearchQuery:
    query: str
    category: str = "general"
    priority: float = 0.0
    reasoning: str = ""
    # Preferred provider hints supplied by the query generator.
    sources: tuple[str, ...] = ()


@dataclass
class SearchOptions:
    max_results: int = 10
    language: str = "ja"
    region: str = "JP"
    date_restrict: str | None = "m1"


@dataclass
class RawContent:
    title: str
    url: str
    summary: str
    source_name: str
    type: ContentType = ContentType.WEB
    published_at: dt.datetime | None = None
    domain: str = ""
    relevance_score: float = 0.5
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.domain:
            self.domain = domain_of(self.url)


@dataclass
class SearchApiResponse:
    success: bool
    results: list[RawContent]
    total_results: int
    query: str
    processing_time_ms: int
    provider: str | None = None

    @classmethod
    def failed(cls, query: str, processing_time_ms: int, provider: str | None = None) -> SearchApiResponse:
        return cls(
            success=False,
            results=[],
            total_results=0,
            query=query,
            processing_time_ms=processing_time_ms,
            provider=provider,
        )


def domain_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def parse_datetime(raw: Any) -> dt.datetime | None:
    """Best-effort ISO-8601 parsing; anything unparseable becomes None."""
    if not raw or not isinstance(raw, str):
        return None
    try:
        parsed = dt.datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed
