from __future__ import annotations

from typing import Any

from ..types import ContentType, RawContent, SearchOptions, parse_datetime
from .base import BaseProvider


class SearXNGProvider(BaseProvider):
    """Self-hosted SearXNG instance; enabled only when a base URL is configured."""

    name = "searxng"
    base_score = 0.65

    def __init__(self, base_url: str, engines: str = "", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url
        self.engines = engines

    def enabled(self) -> bool:
        return bool(self.base_url)

    async def _fetch(self, query: str, limit: int, options: SearchOptions) -> list[RawContent]:
        url = f"{self.base_url.rstrip('/')}/search"
        base_params: dict[str, Any] = {
            "q": query,
            "format": "json",
            "pageno": 1,
            "safesearch": 0,
            "language": options.language,
        }

        params = dict(base_params)
        if self.engines:
            params["engines"] = self.engines
        payload = await self._get_object(url, params=params)
        # Some engines get rate-limited/captcha'd intermittently. Retry once without an explicit
        # engine restriction so SearXNG can use whatever engines are currently healthy.
        if self.engines and not (payload.get("results") or []):
            payload = await self._get_object(url, params=base_params)

        results: list[RawContent] = []
        for row in payload.get("results") or []:
            if not row.get("url"):
                continue
            results.append(
                RawContent(
                    title=row.get("title") or "Untitled",
                    url=row["url"],
                    summary=row.get("content") or "",
                    source_name="SearXNG",
                    type=ContentType.WEB,
                    published_at=parse_datetime(row.get("publishedDate")),
                    relevance_score=self.base_score,
                    extra={"engine": row.get("engine"), "engines": row.get("engines"), "category": row.get("category")},
                )
            )
        return results[:limit]
