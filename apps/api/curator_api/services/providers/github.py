from __future__ import annotations

import asyncio
import datetime as dt
import math
import re
from dataclasses import dataclass
from typing import Any

import httpx

from ...logging_utils import get_logger
from ..dedup import deduplicate
from ..types import ContentType, RawContent, SearchOptions, parse_datetime
from .base import BaseProvider, ProviderOutcome, truncate
from .errors import ProviderQuotaError

logger = get_logger(__name__)

GITHUB_API_URL = "https://api.github.com"
MARKDOWN_HEADER_RE = re.compile(r"#+\s*")


@dataclass
class GitHubRateLimit:
    limit: int
    remaining: int
    reset_at: dt.datetime


class GitHubProvider(BaseProvider):
    """Repository search. Works unauthenticated at a lower rate limit; a token raises it."""

    name = "github"
    base_score = 0.6

    def __init__(self, token: str = "", base_url: str = GITHUB_API_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.token = token
        self.base_url = base_url.rstrip("/")
        if not token:
            logger.warning("GITHUB_TOKEN not found, using unauthenticated requests (lower rate limit)")

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    async def _fetch(self, query: str, limit: int, options: SearchOptions) -> list[RawContent]:
        repos = await self._search_repositories(query, math.ceil(limit * 0.7))
        trending = await self._trending_repositories(query, math.ceil(limit * 0.3))
        return deduplicate(repos + trending)[:limit]

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            return await self._get_json(f"{self.base_url}{path}", params=params, headers=self._headers())
        except httpx.HTTPStatusError as exc:
            # GitHub reports an exhausted quota as 403 with a zero remaining header.
            response = exc.response
            if response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0":
                raise ProviderQuotaError(self.name, "rate limit exceeded", 403) from exc
            raise

    async def _search(self, q: str, per_page: int) -> list[dict[str, Any]]:
        payload = await self._get(
            "/search/repositories",
            params={"q": q, "sort": "stars", "order": "desc", "per_page": per_page},
        )
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        return [item for item in payload.get("items") or [] if isinstance(item, dict)]

    async def _search_repositories(self, query: str, limit: int) -> list[RawContent]:
        q = f"{query} language:typescript OR language:javascript OR language:python"
        items = await self._search(q, min(limit, 100))
        return [transform_repository(item) for item in items if item.get("html_url")]

    async def _trending_repositories(self, query: str, limit: int) -> list[RawContent]:
        since = (dt.datetime.now(dt.UTC) - dt.timedelta(days=7)).date().isoformat()
        try:
            items = await self._search(f"{query} created:>{since}", min(limit, 30))
        except Exception as exc:
            # Trending is supplementary; the main search results stand on their own.
            logger.warning(f"Failed to fetch trending repositories: {exc}")
            return []
        return [transform_repository(item, trending=True) for item in items if item.get("html_url")]

    async def search_by_language(self, language: str, limit: int = 10) -> list[RawContent]:
        """Most-starred repositories for one language."""

        async def call() -> list[RawContent]:
            items = await self._search(f"language:{language}", min(limit, 100))
            return [transform_repository(item) for item in items if item.get("html_url")]

        outcome: ProviderOutcome = await self._guarded("language", language, call, limit)
        return outcome.results

    async def releases(self, owner: str, repo: str, limit: int = 5) -> list[RawContent]:
        """Published releases of one repository; drafts without a publish date are skipped."""

        async def call() -> list[RawContent]:
            payload = await self._get(f"/repos/{owner}/{repo}/releases", params={"per_page": limit})
            if not isinstance(payload, list):
                raise ValueError(f"expected a JSON array, got {type(payload).__name__}")
            return [
                transform_release(release, owner, repo)
                for release in payload
                if isinstance(release, dict) and release.get("published_at") and release.get("html_url")
            ]

        outcome: ProviderOutcome = await self._guarded("releases", f"{owner}/{repo}", call, limit)
        return outcome.results

    async def rate_limit_info(self) -> GitHubRateLimit | None:
        # GitHub does not count /rate_limit against the quota, so this is not tracked.
        try:
            payload = await asyncio.wait_for(self._get("/rate_limit"), timeout=self.timeout)
            rate = payload["rate"]
            return GitHubRateLimit(
                limit=int(rate["limit"]),
                remaining=int(rate["remaining"]),
                reset_at=dt.datetime.fromtimestamp(int(rate["reset"]), dt.UTC),
            )
        except (httpx.HTTPError, ProviderQuotaError, TimeoutError, ValueError, KeyError, TypeError) as exc:
            logger.error(f"Failed to get rate limit info: {exc}", extra={"extra_fields": {"provider": self.name}})
            return None


def transform_repository(repo: dict[str, Any], trending: bool = False) -> RawContent:
    description = truncate(repo.get("description") or "No description available")
    stars = repo.get("stargazers_count") or 0
    forks = repo.get("forks_count") or 0
    language = repo.get("language")
    footer = f"⭐ {stars} stars | 🍴 {forks} forks"
    if language:
        footer += f" | 📝 {language}"
    owner = repo.get("owner") or {}
    license_info = repo.get("license") or {}
    full_name = repo.get("full_name") or repo.get("name") or "unknown"
    return RawContent(
        title=f"{full_name} 🔥" if trending else full_name,
        url=repo["html_url"],
        summary=f"{description}\n\n{footer}",
        source_name="GitHub",
        type=ContentType.GITHUB,
        published_at=parse_datetime(repo.get("updated_at")),
        relevance_score=GitHubProvider.base_score,
        extra={
            "author": owner.get("login"),
            "stars": stars,
            "forks": forks,
            "language": language,
            "topics": repo.get("topics") or [],
            "open_issues": repo.get("open_issues_count"),
            "license": license_info.get("name"),
            "repository_type": "trending" if trending else "search",
        },
    )


def transform_release(release: dict[str, Any], owner: str, repo: str) -> RawContent:
    name = release.get("name") or release.get("tag_name") or "untitled"
    notes = truncate(release.get("body") or "No release notes available")
    author = release.get("author") or {}
    return RawContent(
        title=f"{owner}/{repo} - {name}",
        url=release["html_url"],
        summary=MARKDOWN_HEADER_RE.sub("", notes).replace("\r\n", "\n"),
        source_name="GitHub Releases",
        type=ContentType.GITHUB,
        published_at=parse_datetime(release.get("published_at")),
        relevance_score=GitHubProvider.base_score,
        extra={
            "author": author.get("login"),
            "tag_name": release.get("tag_name"),
            "repository": f"{owner}/{repo}",
            "release_type": "release",
        },
    )
