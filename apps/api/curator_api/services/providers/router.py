from __future__ import annotations

import time
from typing import Sequence

from ...config import Settings
from ...logging_utils import get_logger
from ..dedup import deduplicate
from ..ratelimit import RateLimitConfig, RateLimiter
from ..scoring import RelevanceScorer
from ..types import SearchApiResponse, SearchOptions, SearchQuery
from .base import BaseProvider, SearchProvider
from .duckduckgo import DuckDuckGoProvider
from .google import GoogleSearchProvider
from .searxng import SearXNGProvider
from .serpapi import SerpApiProvider

logger = get_logger(__name__)


def build_web_providers(settings: Settings, limiter: RateLimiter, transport=None) -> list[BaseProvider]:
    """Web search providers in preference order: Google > SerpApi > SearXNG > DuckDuckGo (free)."""
    common = {
        "limiter": limiter,
        "timeout": settings.request_timeout_seconds,
        "transport": transport,
        "user_agent": settings.user_agent,
    }
    return [
        GoogleSearchProvider(
            api_key=settings.google_cse_api_key,
            cx=settings.google_cse_cx,
            base_url=settings.google_cse_base_url,
            rate_limit=RateLimitConfig(settings.google_rate_limit_max, settings.google_rate_limit_window_seconds),
            **common,
        ),
        SerpApiProvider(
            api_key=settings.serpapi_api_key,
            base_url=settings.serpapi_base_url,
            rate_limit=RateLimitConfig(settings.serpapi_rate_limit_max, settings.serpapi_rate_limit_window_seconds),
            **common,
        ),
        SearXNGProvider(
            base_url=settings.searxng_base_url,
            engines=settings.searxng_engines,
            rate_limit=RateLimitConfig(settings.searxng_rate_limit_max, settings.searxng_rate_limit_window_seconds),
            **common,
        ),
        DuckDuckGoProvider(
            base_url=settings.duckduckgo_base_url,
            rate_limit=RateLimitConfig(
                settings.duckduckgo_rate_limit_max, settings.duckduckgo_rate_limit_window_seconds
            ),
            **common,
        ),
    ]


class FallbackSearchEngine:
    """
    Answer each query with exactly one provider.

    The first provider in preference order that has credentials and is not
    currently rate limited is called once. A failed call is reported as
    ``success=False``; the engine does not cascade to the next provider, which
    keeps request volume against providers at one call per query.
    """

    def __init__(
        self,
        providers: Sequence[SearchProvider],
        limiter: RateLimiter,
        scorer: RelevanceScorer | None = None,
    ) -> None:
        self.providers = list(providers)
        self.limiter = limiter
        self.scorer = scorer or RelevanceScorer()

    @classmethod
    def from_settings(cls, settings: Settings, limiter: RateLimiter, transport=None) -> FallbackSearchEngine:
        return cls(
            providers=build_web_providers(settings, limiter, transport=transport),
            limiter=limiter,
            scorer=RelevanceScorer(settings.trusted_domains),
        )

    def available_providers(self) -> list[str]:
        return [p.name for p in self.providers if p.enabled()]

    def select_provider(self) -> SearchProvider | None:
        for provider in self.providers:
            if not provider.enabled():
                continue
            if self.limiter.is_limited(provider.rate_limit_key, provider.rate_limit):
                continue
            return provider
        return None

    def rate_limit_snapshot(self) -> dict[str, dict[str, int | float | bool]]:
        return self.limiter.snapshot({p.rate_limit_key: p.rate_limit for p in self.providers})

    async def search_with_query(self, query: SearchQuery, options: SearchOptions | None = None) -> SearchApiResponse:
        options = options or SearchOptions()
        started = time.perf_counter()

        def elapsed_ms() -> int:
            return int((time.perf_counter() - started) * 1000)

        try:
            provider = self.select_provider()
            if provider is None:
                logger.warning(
                    "No search provider available",
                    extra={"extra_fields": {"query": query.query, "providers": [p.name for p in self.providers]}},
                )
                return SearchApiResponse.failed(query.query, elapsed_ms())

            outcome = await provider.attempt(query.query, options.max_results, options)
            if not outcome.ok:
                return SearchApiResponse.failed(query.query, elapsed_ms(), provider=provider.name)

            unique = deduplicate(outcome.results)
            ranked = self.scorer.score(unique, query.query)
            return SearchApiResponse(
                success=True,
                results=ranked,
                total_results=len(ranked),
                query=query.query,
                processing_time_ms=elapsed_ms(),
                provider=provider.name,
            )
        except Exception as exc:
            logger.error(
                f"Web search error: {exc}",
                exc_info=True,
                extra={"extra_fields": {"query": query.query}},
            )
            return SearchApiResponse.failed(query.query, elapsed_ms())
