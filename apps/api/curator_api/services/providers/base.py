from __future__ import annotations

import asyncio
import datetime as dt
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

import httpx

from ...logging_utils import get_logger
from ..ratelimit import RateLimitConfig, RateLimiter
from ..types import RawContent, SearchOptions
from .errors import ProviderError, ProviderQuotaError, classify_http_error

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_USER_AGENT = "ContentCurator/1.0"


@dataclass
class ProviderOutcome:
    results: list[RawContent] = field(default_factory=list)
    error: ProviderError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SearchProvider(Protocol):
    """What the engine and the collector rely on; ``BaseProvider`` satisfies it."""

    name: str
    rate_limit: RateLimitConfig

    @property
    def rate_limit_key(self) -> str: ...

    def enabled(self) -> bool: ...

    def is_rate_limited(self) -> bool: ...

    def next_available_at(self) -> dt.datetime | None: ...

    async def attempt(self, query: str, limit: int, options: SearchOptions | None = None) -> ProviderOutcome: ...

    async def collect(self, query: str, limit: int, options: SearchOptions | None = None) -> list[RawContent]: ...


class BaseProvider(ABC):
    """Shared plumbing for every adapter.

    Subclasses implement ``_fetch`` and may raise freely; ``attempt`` and
    ``collect`` turn every failure into an empty result list after logging it.
    Each attempt is tracked against the limiter before the request goes out,
    so a failed call still counts against the provider's quota.
    """

    name: str = "provider"
    # Providers with a hard ceiling on results per call set this.
    max_results_cap: int | None = None
    required_credentials: tuple[str, ...] = ()

    def __init__(
        self,
        limiter: RateLimiter,
        rate_limit: RateLimitConfig | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.limiter = limiter
        self.rate_limit = rate_limit or RateLimitConfig()
        self.timeout = timeout
        self.transport = transport
        self.user_agent = user_agent

    @property
    def rate_limit_key(self) -> str:
        return f"provider:{self.name}"

    def missing_credentials(self) -> list[str]:
        return [cred for cred in self.required_credentials if not getattr(self, cred, "")]

    def enabled(self) -> bool:
        return not self.missing_credentials()

    def is_rate_limited(self) -> bool:
        return self.limiter.is_limited(self.rate_limit_key, self.rate_limit)

    def next_available_at(self) -> dt.datetime | None:
        return self.limiter.next_available_at(self.rate_limit_key, self.rate_limit)

    def effective_limit(self, limit: int) -> int:
        limit = max(0, limit)
        if self.max_results_cap is not None:
            return min(limit, self.max_results_cap)
        return limit

    @abstractmethod
    async def _fetch(self, query: str, limit: int, options: SearchOptions) -> list[RawContent]:
        """Provider-specific request + mapping."""

    async def attempt(self, query: str, limit: int, options: SearchOptions | None = None) -> ProviderOutcome:
        limit = self.effective_limit(limit)
        opts = options or SearchOptions(max_results=limit)
        return await self._guarded("search", query, lambda: self._fetch(query, limit, opts), limit)

    async def collect(self, query: str, limit: int, options: SearchOptions | None = None) -> list[RawContent]:
        outcome = await self.attempt(query, limit, options)
        return outcome.results

    async def _guarded(
        self,
        context: str,
        query: str,
        call: Callable[[], Awaitable[list[RawContent]]],
        limit: int | None = None,
    ) -> ProviderOutcome:
        if not self.enabled():
            logger.warning(
                f"{self.name} called without credentials",
                extra={"extra_fields": {"provider": self.name, "missing": self.missing_credentials()}},
            )
            return ProviderOutcome()

        self.limiter.track(self.rate_limit_key)
        logger.debug(
            f"Calling {self.name}",
            extra={"extra_fields": {"provider": self.name, "context": context, "query": query, "limit": limit}},
        )
        try:
            results = await asyncio.wait_for(call(), timeout=self.timeout)
        except Exception as exc:
            error = classify_http_error(self.name, exc)
            self._log_failure(error, context, query)
            return ProviderOutcome(error=error)

        if limit is not None:
            results = results[:limit]
        logger.info(
            f"Collected {len(results)} items from {self.name}",
            extra={"extra_fields": {"provider": self.name, "context": context, "query": query, "count": len(results)}},
        )
        return ProviderOutcome(results=results)

    def _log_failure(self, error: ProviderError, context: str, query: str) -> None:
        fields = {
            "provider": self.name,
            "context": context,
            "query": query,
            "error_kind": error.kind,
            "status_code": error.status_code,
        }
        if isinstance(error, ProviderQuotaError):
            logger.error(f"{self.name} rate limit exceeded", extra={"extra_fields": fields})
        elif error.kind == "auth":
            logger.error(f"{self.name} authentication failed - check API key", extra={"extra_fields": fields})
        else:
            logger.error(f"{self.name} request failed: {error}", extra={"extra_fields": fields})

    def _client(self, headers: dict[str, str] | None = None) -> httpx.AsyncClient:
        merged = {"User-Agent": self.user_agent}
        if headers:
            merged.update(headers)
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport, headers=merged)

    async def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        async with self._client(headers) as client:
            res = await client.get(url, params=params)
        res.raise_for_status()
        return res.json()

    async def _get_object(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        payload = await self._get_json(url, params=params, headers=headers)
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        return payload


def truncate(text: str, limit: int = 300) -> str:
    return text[:limit] + "..." if len(text) > limit else text
