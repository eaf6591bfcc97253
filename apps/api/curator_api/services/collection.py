from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Sequence

from ..config import Settings
from ..logging_utils import get_logger
from .dedup import Deduplicator
from .providers.base import BaseProvider, SearchProvider
from .providers.github import GitHubProvider
from .providers.news import NewsApiProvider
from .providers.rss import RssProvider
from .ratelimit import RateLimitConfig, RateLimiter
from .types import RawContent

logger = get_logger(__name__)

DEFAULT_SOURCES = ("rss", "github")

REQUIRED_ENV_KEYS = {
    "GOOGLE_CSE_API_KEY": "google_cse_api_key",
    "GOOGLE_CSE_CX": "google_cse_cx",
    "SERPAPI_API_KEY": "serpapi_api_key",
    "NEWS_API_KEY": "news_api_key",
    "GITHUB_TOKEN": "github_token",
}


@dataclass
class CollectionResult:
    results: list[RawContent]
    sources: list[str]
    total_found: int
    rate_limited: list[str]
    # Requested names with no configured collector.
    skipped: list[str] = field(default_factory=list)


@dataclass
class CollectorStatus:
    available: list[str]
    rate_limited: list[tuple[str, dt.datetime | None]]
    missing_keys: list[str] = field(default_factory=list)

    @property
    def has_all_keys(self) -> bool:
        return not self.missing_keys


@dataclass
class CollectorCheck:
    success: bool
    count: int
    error: str | None = None


def check_api_keys(settings: Settings) -> list[str]:
    return [env for env, attr in REQUIRED_ENV_KEYS.items() if not getattr(settings, attr)]


def build_collectors(settings: Settings, limiter: RateLimiter, transport=None) -> dict[str, BaseProvider]:
    common = {
        "limiter": limiter,
        "timeout": settings.request_timeout_seconds,
        "transport": transport,
        "user_agent": settings.user_agent,
    }
    collectors: dict[str, BaseProvider] = {
        "rss": RssProvider(
            feeds=settings.rss_feeds,
            rate_limit=RateLimitConfig(settings.rss_rate_limit_max, settings.rss_rate_limit_window_seconds),
            **common,
        ),
        "github": GitHubProvider(
            token=settings.github_token,
            base_url=settings.github_base_url,
            rate_limit=RateLimitConfig(settings.github_rate_limit_max, settings.github_rate_limit_window_seconds),
            **common,
        ),
    }
    if settings.news_api_key:
        collectors["news"] = NewsApiProvider(
            api_key=settings.news_api_key,
            base_url=settings.news_api_base_url,
            rate_limit=RateLimitConfig(settings.news_rate_limit_max, settings.news_rate_limit_window_seconds),
            **common,
        )
    else:
        logger.warning("NEWS_API_KEY not found, News collector disabled")
    return collectors


class ContentCollector:
    """Collect from several named sources at once, skipping the ones currently rate limited."""

    def __init__(self, collectors: dict[str, SearchProvider], missing_keys: Sequence[str] = ()) -> None:
        self.collectors = collectors
        self.missing_keys = list(missing_keys)
        logger.info(
            "Collectors initialized",
            extra={"extra_fields": {"available": list(collectors), "missing_keys": self.missing_keys}},
        )

    @classmethod
    def from_settings(cls, settings: Settings, limiter: RateLimiter, transport=None) -> ContentCollector:
        return cls(build_collectors(settings, limiter, transport=transport), check_api_keys(settings))

    async def collect_content(
        self,
        query: str,
        sources: Sequence[str] = DEFAULT_SOURCES,
        limit: int = 20,
    ) -> CollectionResult:
        logger.info(
            "Starting content collection",
            extra={"extra_fields": {"query": query, "sources": list(sources), "limit": limit}},
        )
        dedup = Deduplicator()
        collected: list[RawContent] = []
        used: list[str] = []
        rate_limited: list[str] = []
        skipped: list[str] = []
        per_source = math.ceil(limit / len(sources)) if sources else 0

        for name in sources:
            collector = self.collectors.get(name)
            if collector is None:
                logger.warning(f"Collector not found: {name}")
                skipped.append(name)
                continue
            if collector.is_rate_limited():
                logger.warning(f"Collector rate limited: {name}")
                rate_limited.append(name)
                continue

            results = await collector.collect(query, per_source)
            if results:
                collected.extend(dedup.merge(results))
                used.append(name)

        final = collected[:limit]
        logger.info(
            "Collection completed",
            extra={
                "extra_fields": {
                    "total_found": len(final),
                    "sources": used,
                    "rate_limited": rate_limited,
                    "skipped": skipped,
                }
            },
        )
        return CollectionResult(
            results=final,
            sources=used,
            total_found=len(final),
            rate_limited=rate_limited,
            skipped=skipped,
        )

    def status(self) -> CollectorStatus:
        available: list[str] = []
        limited: list[tuple[str, dt.datetime | None]] = []
        for name, collector in self.collectors.items():
            if collector.is_rate_limited():
                limited.append((name, collector.next_available_at()))
            else:
                available.append(name)
        return CollectorStatus(available=available, rate_limited=limited, missing_keys=self.missing_keys)

    async def test_collectors(self, query: str = "test", limit: int = 3) -> dict[str, CollectorCheck]:
        """Run one small collection per source and report which ones answer."""
        checks: dict[str, CollectorCheck] = {}
        for name, collector in self.collectors.items():
            outcome = await collector.attempt(query, limit)
            if outcome.ok:
                checks[name] = CollectorCheck(success=True, count=len(outcome.results))
                logger.info(f"Test successful for {name}: {len(outcome.results)} items")
            else:
                checks[name] = CollectorCheck(success=False, count=0, error=str(outcome.error))
                logger.error(f"Test failed for {name}", extra={"extra_fields": {"error": str(outcome.error)}})
        return checks
