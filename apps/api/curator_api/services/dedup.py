from __future__ import annotations

from typing import Iterable
from urllib.parse import urlsplit, urlunsplit

from .types import RawContent


def normalize_url(url: str) -> str:
    """Identity key for a result: case-folded, fragment and trailing slash dropped."""
    cleaned = (url or "").strip().casefold()
    if not cleaned:
        return ""
    try:
        split = urlsplit(cleaned)
    except ValueError:
        return cleaned.rstrip("/")
    path = split.path.rstrip("/")
    return urlunsplit((split.scheme, split.netloc, path, split.query, ""))


class Deduplicator:
    """First occurrence wins. Reuse one instance to merge several result lists."""

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def merge(self, items: Iterable[RawContent]) -> list[RawContent]:
        kept: list[RawContent] = []
        for item in items:
            key = normalize_url(item.url)
            if key in self._seen:
                continue
            self._seen.add(key)
            kept.append(item)
        return kept

    def __len__(self) -> int:
        return len(self._seen)


def deduplicate(items: Iterable[RawContent]) -> list[RawContent]:
    return Deduplicator().merge(items)
