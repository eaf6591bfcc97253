from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .logging_utils import configure_logging, get_logger
from .schemas import (
    BatchSearchRequest,
    BatchSearchResponse,
    CollectorCheckOut,
    CollectorStatusResponse,
    CollectRequest,
    CollectResponse,
    ContentItem,
    ReleasesResponse,
    SearchRequest,
    SearchResponse,
)
from .services.batch import BatchScheduler
from .services.collection import ContentCollector
from .services.providers.github import GitHubProvider
from .services.providers.router import FallbackSearchEngine
from .services.ratelimit import RateLimiter
from .services.types import SearchOptions

settings = get_settings()
configure_logging(settings.log_level, json_output=settings.log_json)
logger = get_logger(__name__)


def build_rate_limiter(settings: Settings) -> RateLimiter:
    # Retain entries at least as long as the longest provider window, or daily quotas could never trip.
    longest_window = max(
        settings.google_rate_limit_window_seconds,
        settings.serpapi_rate_limit_window_seconds,
        settings.searxng_rate_limit_window_seconds,
        settings.duckduckgo_rate_limit_window_seconds,
        settings.news_rate_limit_window_seconds,
        settings.github_rate_limit_window_seconds,
        settings.rss_rate_limit_window_seconds,
    )
    return RateLimiter(retention_seconds=max(settings.rate_limit_retention_seconds, longest_window))


def default_search_options(settings: Settings) -> SearchOptions:
    return SearchOptions(
        max_results=settings.default_max_results_per_query,
        language=settings.search_language,
        region=settings.search_region,
        date_restrict=settings.search_date_restrict or None,
    )


async def _cleanup_loop(limiter: RateLimiter, interval_seconds: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        limiter.cleanup()


@asynccontextmanager
async def lifespan(_: FastAPI):
    task = asyncio.create_task(_cleanup_loop(limiter, settings.rate_limit_cleanup_interval_seconds))
    logger.info("Curator API started", extra={"extra_fields": {"providers": engine.available_providers()}})
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_origin, "http://localhost:3000", "http://127.0.0.1:3000"],
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

limiter = build_rate_limiter(settings)
engine = FallbackSearchEngine.from_settings(settings, limiter)
scheduler = BatchScheduler(
    engine,
    pause_seconds=settings.batch_pause_seconds,
    default_options=default_search_options(settings),
)
collector = ContentCollector.from_settings(settings, limiter)


@app.get("/v1/health")
def health() -> dict:
    return {
        "status": "ok",
        "providers": engine.available_providers(),
        "rate_limits": engine.rate_limit_snapshot(),
    }


@app.post("/v1/search", response_model=SearchResponse)
async def search(req: SearchRequest) -> SearchResponse:
    options = req.to_options(default_search_options(settings))
    result = await engine.search_with_query(req.query.to_query(), options)
    return SearchResponse.from_result(result)


@app.post("/v1/search/batch", response_model=BatchSearchResponse)
async def search_batch(req: BatchSearchRequest) -> BatchSearchResponse:
    results = await scheduler.search_multiple_queries(
        [q.to_query() for q in req.queries],
        max_results_per_query=req.max_results_per_query or settings.default_max_results_per_query,
        concurrency=req.concurrency or settings.batch_concurrency,
    )
    return BatchSearchResponse(
        generated_at=dt.datetime.now(dt.UTC),
        count=len(results),
        results={query: SearchResponse.from_result(result) for query, result in results.items()},
    )


@app.post("/v1/collect", response_model=CollectResponse)
async def collect(req: CollectRequest) -> CollectResponse:
    unknown = [name for name in req.sources if name not in collector.collectors]
    if len(unknown) == len(req.sources):
        raise HTTPException(status_code=400, detail=f"No configured collector among: {', '.join(unknown)}")
    result = await collector.collect_content(req.query, sources=req.sources, limit=req.limit)
    return CollectResponse.from_result(result)


@app.get("/v1/collectors/status", response_model=CollectorStatusResponse)
def collectors_status() -> CollectorStatusResponse:
    return CollectorStatusResponse.from_status(collector.status())


@app.post("/v1/collectors/test", response_model=dict[str, CollectorCheckOut])
async def collectors_test() -> dict[str, CollectorCheckOut]:
    checks = await collector.test_collectors()
    return {name: CollectorCheckOut.from_check(check) for name, check in checks.items()}


@app.get("/v1/github/{owner}/{repo}/releases", response_model=ReleasesResponse)
async def github_releases(owner: str, repo: str, limit: int = Query(default=5, ge=1, le=50)) -> ReleasesResponse:
    github = collector.collectors.get("github")
    if not isinstance(github, GitHubProvider):
        raise HTTPException(status_code=404, detail="GitHub collector is not configured")
    releases = await github.releases(owner, repo, limit=limit)
    return ReleasesResponse(repository=f"{owner}/{repo}", results=[ContentItem.from_raw(r) for r in releases])
