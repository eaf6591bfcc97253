from __future__ import annotations

import asyncio
from dataclasses import replace

import httpx
import pytest

from curator_api.services.providers.base import BaseProvider
from curator_api.services.ratelimit import RateLimitConfig, RateLimiter
from curator_api.services.types import ContentType, RawContent


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(BaseProvider):
    """In-memory provider: records every call, optionally fails or sleeps."""

    def __init__(
        self,
        name: str,
        results: list[RawContent] | None = None,
        *,
        is_enabled: bool = True,
        fail: bool = False,
        delay: float = 0.0,
        limiter: RateLimiter | None = None,
        rate_limit: RateLimitConfig | None = None,
        cap: int | None = None,
    ) -> None:
        super().__init__(limiter=limiter or RateLimiter(), rate_limit=rate_limit)
        self.name = name
        self.results = results or []
        self.is_enabled = is_enabled
        self.fail = fail
        self.delay = delay
        self.max_results_cap = cap
        self.calls: list[tuple[str, int]] = []

    def enabled(self) -> bool:
        return self.is_enabled

    async def _fetch(self, query, limit, options):
        self.calls.append((query, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise httpx.ConnectError("connection refused")
        return [replace(item) for item in self.results]


def make_item(
    url: str,
    title: str = "",
    summary: str = "",
    score: float = 0.5,
    domain: str = "",
    source: str = "fake",
) -> RawContent:
    return RawContent(
        title=title,
        url=url,
        summary=summary,
        source_name=source,
        type=ContentType.WEB,
        domain=domain,
        relevance_score=score,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(retention_seconds=3600, clock=clock)
