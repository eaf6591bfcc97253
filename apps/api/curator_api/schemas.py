from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, Field

from .services.collection import CollectionResult, CollectorCheck, CollectorStatus
from .services.types import RawContent, SearchApiResponse, SearchOptions, SearchQuery

ContentTypeName = Literal["web", "news", "rss", "github", "reddit", "abstract", "related"]
SourceName = Literal["rss", "github", "news"]


class SearchQueryIn(BaseModel):
    query: str = Field(..., min_length=1, max_length=300)
    category: str = "general"
    priority: float = 0.0
    reasoning: str = ""
    sources: list[str] = Field(default_factory=list)

    def to_query(self) -> SearchQuery:
        return SearchQuery(
            query=self.query,
            category=self.category,
            priority=self.priority,
            reasoning=self.reasoning,
            sources=tuple(self.sources),
        )


class SearchRequest(BaseModel):
    query: SearchQueryIn
    max_results: int = Field(default=10, ge=1, le=50)
    language: str | None = Field(default=None, min_length=2, max_length=10)
    region: str | None = Field(default=None, min_length=2, max_length=10)
    date_restrict: str | None = Field(default=None, pattern=r"^[dwmy]\d{1,3}$")

    def to_options(self, defaults: SearchOptions) -> SearchOptions:
        return SearchOptions(
            max_results=self.max_results,
            language=self.language or defaults.language,
            region=self.region or defaults.region,
            date_restrict=self.date_restrict or defaults.date_restrict,
        )


class BatchSearchRequest(BaseModel):
    queries: list[SearchQueryIn] = Field(..., min_length=1, max_length=50)
    max_results_per_query: int | None = Field(default=None, ge=1, le=50)
    concurrency: int | None = Field(default=None, ge=1, le=20)


class CollectRequest(BaseModel):
    query: str = Field(default="", max_length=300)
    sources: list[SourceName] = Field(default_factory=lambda: ["rss", "github"], min_length=1)
    limit: int = Field(default=20, ge=1, le=100)


class ContentItem(BaseModel):
    title: str
    url: str
    summary: str
    source: str
    type: ContentTypeName
    published_at: dt.datetime | None = None
    domain: str
    relevance_score: float = Field(..., ge=0, le=1)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, item: RawContent) -> ContentItem:
        return cls(
            title=item.title,
            url=item.url,
            summary=item.summary,
            source=item.source_name,
            type=item.type.value,
            published_at=item.published_at,
            domain=item.domain,
            relevance_score=min(1.0, max(0.0, item.relevance_score)),
            metadata=item.extra,
        )


class SearchResponse(BaseModel):
    success: bool
    results: list[ContentItem]
    total_results: int
    query: str
    processing_time_ms: int
    provider: str | None = None

    @classmethod
    def from_result(cls, response: SearchApiResponse) -> SearchResponse:
        return cls(
            success=response.success,
            results=[ContentItem.from_raw(item) for item in response.results],
            total_results=response.total_results,
            query=response.query,
            processing_time_ms=response.processing_time_ms,
            provider=response.provider,
        )


class BatchSearchResponse(BaseModel):
    generated_at: dt.datetime
    count: int
    results: dict[str, SearchResponse]


class CollectResponse(BaseModel):
    results: list[ContentItem]
    sources: list[str]
    total_found: int
    rate_limited: list[str]
    skipped: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: CollectionResult) -> CollectResponse:
        return cls(
            results=[ContentItem.from_raw(item) for item in result.results],
            sources=result.sources,
            total_found=result.total_found,
            rate_limited=result.rate_limited,
            skipped=result.skipped,
        )


class RateLimitedSource(BaseModel):
    name: str
    next_available_at: dt.datetime | None = None


class CollectorStatusResponse(BaseModel):
    available: list[str]
    rate_limited: list[RateLimitedSource]
    has_all_keys: bool
    missing_keys: list[str]

    @classmethod
    def from_status(cls, status: CollectorStatus) -> CollectorStatusResponse:
        return cls(
            available=status.available,
            rate_limited=[RateLimitedSource(name=n, next_available_at=at) for n, at in status.rate_limited],
            has_all_keys=status.has_all_keys,
            missing_keys=status.missing_keys,
        )


class CollectorCheckOut(BaseModel):
    success: bool
    count: int
    error: str | None = None

    @classmethod
    def from_check(cls, check: CollectorCheck) -> CollectorCheckOut:
        return cls(success=check.success, count=check.count, error=check.error)


class ReleasesResponse(BaseModel):
    repository: str
    results: list[ContentItem]
