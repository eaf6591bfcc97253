from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from ..config import DEFAULT_TRUSTED_DOMAINS
from .types import RawContent

DEFAULT_BASE_SCORE = 0.5
TITLE_WEIGHT = 0.3
SNIPPET_WEIGHT = 0.2
TRUSTED_DOMAIN_BONUS = 0.2


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _term_ratio(terms: list[str], text: str | None) -> float:
    if not terms or not text:
        return 0.0
    lowered = text.lower()
    return sum(1 for term in terms if term in lowered) / len(terms)


class RelevanceScorer:
    """
    Rank results against a query.

    score = base (provider-assigned, 0.5 if missing)
          + 0.3 * share of query terms in the title
          + 0.2 * share of query terms in the snippet
          + 0.2 if the domain contains a trusted domain
    clamped to [0, 1]. Sorting is stable, so ties keep provider order.
    """

    def __init__(self, trusted_domains: Iterable[str] | None = None) -> None:
        if trusted_domains is None:
            trusted_domains = DEFAULT_TRUSTED_DOMAINS
        self.trusted_domains = [d.lower() for d in trusted_domains]

    def is_trusted(self, domain: str) -> bool:
        domain = (domain or "").lower()
        return bool(domain) and any(trusted in domain for trusted in self.trusted_domains)

    def score_one(self, item: RawContent, terms: list[str]) -> float:
        score = item.relevance_score or DEFAULT_BASE_SCORE
        score += _term_ratio(terms, item.title) * TITLE_WEIGHT
        score += _term_ratio(terms, item.summary) * SNIPPET_WEIGHT
        if self.is_trusted(item.domain):
            score += TRUSTED_DOMAIN_BONUS
        return _clamp(score, 0.0, 1.0)

    def score(self, results: list[RawContent], query: str) -> list[RawContent]:
        terms = query.lower().split()
        scored = [replace(item, relevance_score=self.score_one(item, terms)) for item in results]
        scored.sort(key=lambda item: item.relevance_score, reverse=True)
        return scored
