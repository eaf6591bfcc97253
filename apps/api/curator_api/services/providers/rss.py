from __future__ import annotations

import asyncio
import calendar
import datetime as dt
import math
import re
from typing import Any

import feedparser

from ...config import FeedSource
from ...logging_utils import get_logger
from ..dedup import deduplicate
from ..types import ContentType, RawContent, SearchOptions, parse_datetime
from .base import BaseProvider, truncate

logger = get_logger(__name__)

HTML_TAG_RE = re.compile(r"<[^>]*>")


class RssProvider(BaseProvider):
    """Polls the configured feeds concurrently and keeps items that mention the query."""

    name = "rss"
    base_score = 0.5

    def __init__(self, feeds: list[FeedSource], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.feeds = feeds

    def active_feeds(self) -> list[FeedSource]:
        return [feed for feed in self.feeds if feed.active]

    def enabled(self) -> bool:
        return bool(self.active_feeds())

    async def _fetch(self, query: str, limit: int, options: SearchOptions) -> list[RawContent]:
        feeds = self.active_feeds()
        per_feed = math.ceil(limit / len(feeds)) if feeds else 0
        batches = await asyncio.gather(*(self._fetch_feed(feed, query, per_feed) for feed in feeds))
        items = [item for batch in batches for item in batch]
        return deduplicate(items)[:limit]

    async def _fetch_feed(self, feed: FeedSource, query: str, per_feed: int) -> list[RawContent]:
        logger.info(f"Fetching RSS feed: {feed.name}", extra={"extra_fields": {"feed": feed.url}})
        try:
            async with self._client() as client:
                res = await client.get(feed.url)
            res.raise_for_status()
            parsed = feedparser.parse(res.content)
        except Exception as exc:
            # One broken feed must not sink the others.
            logger.error(f"Failed to fetch {feed.name}: {exc}", extra={"extra_fields": {"feed": feed.url}})
            return []

        items = [transform_entry(entry, feed) for entry in parsed.entries[:per_feed]]
        return [item for item in items if item.url and matches_query(item, query)]


def transform_entry(entry: Any, feed: FeedSource) -> RawContent:
    categories = [tag.get("term") for tag in entry.get("tags", []) if tag.get("term")]
    return RawContent(
        title=entry.get("title") or "Untitled",
        url=entry.get("link") or entry.get("id") or "",
        summary=extract_summary(entry),
        source_name=feed.name,
        type=ContentType.RSS,
        published_at=_entry_published(entry),
        relevance_score=RssProvider.base_score,
        extra={
            "author": entry.get("author") or "Unknown",
            "categories": categories,
            "guid": entry.get("id"),
            "feed_category": feed.category,
        },
    )


def _entry_published(entry: Any) -> dt.datetime | None:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if parsed:
        return dt.datetime.fromtimestamp(calendar.timegm(parsed), dt.UTC)
    return parse_datetime(entry.get("published") or entry.get("updated"))


def extract_summary(entry: Any) -> str:
    content = entry.get("summary") or entry.get("description") or ""
    if not content and entry.get("content"):
        content = entry["content"][0].get("value", "")
    return truncate(HTML_TAG_RE.sub("", content).strip())


def matches_query(item: RawContent, query: str) -> bool:
    if not query or not query.strip():
        return True
    haystack = " ".join([item.title, item.summary, *item.extra.get("categories", [])]).lower()
    return query.lower() in haystack
