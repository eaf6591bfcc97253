from __future__ import annotations

from typing import Any

from ..types import ContentType, RawContent, SearchOptions
from .base import BaseProvider

SERPAPI_URL = "https://serpapi.com/search"


class SerpApiProvider(BaseProvider):
    name = "serpapi"
    max_results_cap = 20
    required_credentials = ("api_key",)
    base_score = 0.7

    def __init__(self, api_key: str, base_url: str = SERPAPI_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url

    async def _fetch(self, query: str, limit: int, options: SearchOptions) -> list[RawContent]:
        params = {
            "engine": "google",
            "api_key": self.api_key,
            "q": query,
            "num": str(min(limit, 20)),
            "hl": options.language,
            "gl": options.region,
        }
        payload = await self._get_object(self.base_url, params=params)

        results: list[RawContent] = []
        for item in payload.get("organic_results") or []:
            link = item.get("link")
            if not link:
                continue
            results.append(
                RawContent(
                    title=item.get("title") or "",
                    url=link,
                    summary=item.get("snippet") or "",
                    source_name="SERP API",
                    type=ContentType.WEB,
                    relevance_score=self.base_score,
                    extra={"position": item.get("position")} if item.get("position") is not None else {},
                )
            )
        return results
