from __future__ import annotations

import re
from typing import Any

from ..dedup import deduplicate
from ..types import ContentType, RawContent, SearchOptions, parse_datetime
from .base import BaseProvider, ProviderOutcome, truncate
from .errors import ProviderAuthError, ProviderQuotaError, ProviderTransportError

NEWS_API_URL = "https://newsapi.org/v2"
EVERYTHING_ENDPOINT = "/everything"
TOP_HEADLINES_ENDPOINT = "/top-headlines"
MAX_PAGE_SIZE = 100

TRUNCATION_MARKER_RE = re.compile(r"\s*\[\+\d+ chars\]$")
HTML_TAG_RE = re.compile(r"<[^>]*>")

QUOTA_CODES = {"rateLimited", "maximumResultsReached"}
AUTH_CODES = {"apiKeyDisabled", "apiKeyExhausted", "apiKeyInvalid", "apiKeyMissing"}


class NewsApiProvider(BaseProvider):
    name = "news"
    required_credentials = ("api_key",)
    base_score = 0.6

    def __init__(self, api_key: str, base_url: str = NEWS_API_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def _fetch(self, query: str, limit: int, options: SearchOptions) -> list[RawContent]:
        params = {
            "q": query,
            "sortBy": "publishedAt",
            "pageSize": min(limit, MAX_PAGE_SIZE),
            "language": "en",
        }
        return await self._articles(EVERYTHING_ENDPOINT, params, limit)

    async def collect_from_sources(self, query: str, sources: list[str], limit: int) -> list[RawContent]:
        params = {
            "q": query,
            "sources": ",".join(sources),
            "sortBy": "publishedAt",
            "pageSize": min(limit, MAX_PAGE_SIZE),
        }
        outcome = await self._guarded(
            "sources", query, lambda: self._articles(EVERYTHING_ENDPOINT, params, limit), limit
        )
        return outcome.results

    async def top_headlines(self, category: str | None = None, country: str = "us", limit: int = 20) -> list[RawContent]:
        params: dict[str, Any] = {"country": country, "pageSize": min(limit, MAX_PAGE_SIZE)}
        if category:
            params["category"] = category
        outcome: ProviderOutcome = await self._guarded(
            "headlines", category or "", lambda: self._articles(TOP_HEADLINES_ENDPOINT, params, limit), limit
        )
        return outcome.results

    async def _articles(self, endpoint: str, params: dict[str, Any], limit: int) -> list[RawContent]:
        payload = await self._get_object(f"{self.base_url}{endpoint}", params={**params, "apiKey": self.api_key})
        status = payload.get("status")
        if status != "ok":
            code = payload.get("code") or status or "unknown"
            message = f"News API error: {code}"
            if code in QUOTA_CODES:
                raise ProviderQuotaError(self.name, message)
            if code in AUTH_CODES:
                raise ProviderAuthError(self.name, message)
            raise ProviderTransportError(self.name, message)

        articles = [a for a in payload.get("articles") or [] if isinstance(a, dict) and is_valid_article(a)]
        results = [self._transform(a) for a in articles][:limit]
        return deduplicate(results)

    def _transform(self, article: dict[str, Any]) -> RawContent:
        source = article.get("source") or {}
        image_url = article.get("urlToImage")
        return RawContent(
            title=article["title"],
            url=article["url"],
            summary=extract_summary(article),
            source_name=source.get("name") or "News API",
            type=ContentType.NEWS,
            published_at=parse_datetime(article.get("publishedAt")),
            relevance_score=self.base_score,
            extra={
                "author": article.get("author") or "Unknown",
                "source_id": source.get("id"),
                "image_url": image_url,
                "has_image": bool(image_url),
            },
        )


def is_valid_article(article: dict[str, Any]) -> bool:
    title = article.get("title") or ""
    url = article.get("url") or ""
    return bool(
        title
        and url
        and article.get("publishedAt")
        and "[Removed]" not in title
        and "removed.com" not in url
    )


def _clean(text: str) -> str:
    return HTML_TAG_RE.sub("", TRUNCATION_MARKER_RE.sub("", text)).strip()


def extract_summary(article: dict[str, Any]) -> str:
    description = article.get("description")
    if description:
        return truncate(_clean(description))
    content = article.get("content")
    if content:
        return truncate(_clean(content))
    return "No summary available"
