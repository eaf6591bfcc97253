from __future__ import annotations

from typing import Any

import httpx

from .config import Settings


def build_queries(settings: Settings) -> list[dict[str, Any]]:
    texts = [q.strip() for q in settings.worker_queries.split(",") if q.strip()]
    return [
        {"query": text, "category": "scheduled", "priority": float(len(texts) - i), "reasoning": "worker schedule"}
        for i, text in enumerate(texts)
    ]


def run_batch_search(settings: Settings, client: httpx.Client | None = None) -> tuple[bool, dict[str, Any]]:
    queries = build_queries(settings)
    if not queries:
        return False, {"error": "no queries configured"}

    url = f"{settings.api_base_url.rstrip('/')}/v1/search/batch"
    body = {
        "queries": queries,
        "max_results_per_query": settings.worker_max_results_per_query,
        "concurrency": settings.worker_concurrency,
    }
    owns_client = client is None
    client = client or httpx.Client(timeout=120.0)
    try:
        res = client.post(url, json=body)
        res.raise_for_status()
        return True, res.json()
    except (httpx.HTTPError, ValueError) as exc:
        return False, {"error": f"batch search failed: {exc}"}
    finally:
        if owns_client:
            client.close()


def summarize(payload: dict[str, Any]) -> dict[str, int]:
    results = payload.get("results") or {}
    return {
        "queries": len(results),
        "succeeded": sum(1 for r in results.values() if r.get("success")),
        "items": sum(len(r.get("results") or []) for r in results.values()),
    }
