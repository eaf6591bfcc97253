from __future__ import annotations

from typing import Any

from ..types import ContentType, RawContent, SearchOptions, domain_of
from .base import BaseProvider

DUCKDUCKGO_URL = "https://api.duckduckgo.com/"
FREE_RESULT_CEILING = 5


class DuckDuckGoProvider(BaseProvider):
    """DuckDuckGo Instant Answer API.

    Free and unauthenticated, so always enabled, but it only returns an abstract
    plus related topics: results are capped at five whatever the caller asks for.
    """

    name = "duckduckgo"
    max_results_cap = FREE_RESULT_CEILING

    def __init__(self, base_url: str = DUCKDUCKGO_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url

    async def _fetch(self, query: str, limit: int, options: SearchOptions) -> list[RawContent]:
        params = {
            "q": query,
            "format": "json",
            "no_html": "1",
            "skip_disambig": "1",
        }
        data = await self._get_object(self.base_url, params=params)

        results: list[RawContent] = []
        if data.get("Abstract"):
            abstract_url = data.get("AbstractURL") or "#"
            results.append(
                RawContent(
                    title=data.get("Heading") or query,
                    url=abstract_url,
                    summary=data["Abstract"],
                    source_name="DuckDuckGo",
                    type=ContentType.ABSTRACT,
                    domain=domain_of(abstract_url) or "duckduckgo.com",
                    relevance_score=0.6,
                )
            )

        for topic in (data.get("RelatedTopics") or [])[: max(0, limit - 1)]:
            # Grouped topics ({"Name": ..., "Topics": [...]}) carry no FirstURL and are skipped.
            first_url = topic.get("FirstURL")
            text = topic.get("Text")
            if not first_url or not text:
                continue
            results.append(
                RawContent(
                    title=text.split(" - ")[0] or text,
                    url=first_url,
                    summary=text,
                    source_name="DuckDuckGo",
                    type=ContentType.RELATED,
                    relevance_score=0.5,
                )
            )
        return results
