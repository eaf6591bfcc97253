from __future__ import annotations

from typing import Any

from ..types import ContentType, RawContent, SearchOptions, parse_datetime
from .base import BaseProvider

GOOGLE_CSE_URL = "https://www.googleapis.com/customsearch/v1"


class GoogleSearchProvider(BaseProvider):
    """Google Custom Search JSON API. Needs both an API key and a search engine id (cx)."""

    name = "google"
    max_results_cap = 10
    required_credentials = ("api_key", "cx")
    base_score = 0.8

    def __init__(self, api_key: str, cx: str, base_url: str = GOOGLE_CSE_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.cx = cx
        self.base_url = base_url

    async def _fetch(self, query: str, limit: int, options: SearchOptions) -> list[RawContent]:
        params: dict[str, Any] = {
            "key": self.api_key,
            "cx": self.cx,
            "q": query,
            "num": str(min(limit, 10)),
            "lr": f"lang_{options.language}",
            "gl": options.region,
            "safe": "active",
        }
        if options.date_restrict:
            params["dateRestrict"] = options.date_restrict

        payload = await self._get_object(self.base_url, params=params)

        results: list[RawContent] = []
        for item in payload.get("items") or []:
            link = item.get("link")
            if not link:
                continue
            results.append(
                RawContent(
                    title=item.get("title") or "",
                    url=link,
                    summary=item.get("snippet") or "",
                    source_name="Google Search",
                    type=ContentType.WEB,
                    published_at=parse_datetime(_published_time(item)),
                    relevance_score=self.base_score,
                )
            )
        return results


def _published_time(item: dict[str, Any]) -> str | None:
    metatags = (item.get("pagemap") or {}).get("metatags") or []
    if not metatags or not isinstance(metatags[0], dict):
        return None
    return metatags[0].get("article:published_time")
