from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence

from ..logging_utils import get_logger
from .providers.router import FallbackSearchEngine
from .types import SearchApiResponse, SearchOptions, SearchQuery

logger = get_logger(__name__)

DEFAULT_CONCURRENCY = 3
DEFAULT_PAUSE_SECONDS = 1.0
DEFAULT_MAX_RESULTS_PER_QUERY = 8


def plan_groups(queries: Sequence[SearchQuery], concurrency: int) -> list[list[SearchQuery]]:
    """Highest priority first (stable), split into consecutive groups of ``concurrency``."""
    size = max(1, concurrency)
    ordered = sorted(queries, key=lambda q: q.priority, reverse=True)
    return [ordered[i : i + size] for i in range(0, len(ordered), size)]


class BatchScheduler:
    """
    Run many queries with bounded concurrency.

    Each group is dispatched together and fully settled before the next one
    starts; a fixed pause separates groups (never after the last), so providers
    never see more than ``concurrency`` in-flight requests from one batch.
    """

    def __init__(
        self,
        engine: FallbackSearchEngine,
        pause_seconds: float = DEFAULT_PAUSE_SECONDS,
        default_options: SearchOptions | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.engine = engine
        self.pause_seconds = pause_seconds
        self.default_options = default_options or SearchOptions()
        self._sleep = sleep

    async def _run_one(self, query: SearchQuery, options: SearchOptions) -> SearchApiResponse:
        return await self.engine.search_with_query(query, options)

    async def search_multiple_queries(
        self,
        queries: Sequence[SearchQuery],
        max_results_per_query: int = DEFAULT_MAX_RESULTS_PER_QUERY,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> dict[str, SearchApiResponse]:
        options = SearchOptions(
            max_results=max_results_per_query,
            language=self.default_options.language,
            region=self.default_options.region,
            date_restrict=self.default_options.date_restrict,
        )
        results: dict[str, SearchApiResponse] = {}
        groups = plan_groups(queries, concurrency)

        logger.info(
            f"Starting batch of {len(queries)} queries",
            extra={"extra_fields": {"query_count": len(queries), "groups": len(groups), "concurrency": concurrency}},
        )

        for index, group in enumerate(groups):
            settled = await asyncio.gather(*(self._run_one(q, options) for q in group), return_exceptions=True)
            for query, outcome in zip(group, settled):
                if isinstance(outcome, BaseException):
                    logger.error(
                        f"Query failed outside the engine: {outcome}",
                        extra={"extra_fields": {"query": query.query, "error_type": type(outcome).__name__}},
                    )
                    outcome = SearchApiResponse.failed(query.query, 0)
                if query.query in results:
                    logger.warning(
                        "Duplicate query text in batch; keeping the later result",
                        extra={"extra_fields": {"query": query.query}},
                    )
                results[query.query] = outcome

            if index < len(groups) - 1:
                await self._sleep(self.pause_seconds)

        return results
