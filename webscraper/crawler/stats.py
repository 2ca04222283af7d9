"""Crawl counters and content-match statistics aggregation."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Iterable, Mapping

from .constants import TOP_MATCHES_LIMIT
from .filters import LinkDecision
from .frontier import EnqueueResult
from .types import ContentStatistics, RenderedPage, ScrapedPage


class StatsCollector:
    """Collect counters for one crawl run.

    Owned by a single crawl thread; no locking.
    """

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._status_codes: Counter[str] = Counter()
        self._frontier_snapshot: dict[str, int] = {}
        self._fetch_elapsed_ms_total = 0
        self._fetch_elapsed_samples = 0

    def increment(self, key: str, amount: int = 1) -> None:
        self._counters[key] += amount

    def record_enqueue(self, result: EnqueueResult) -> None:
        self._counters[f"frontier_{result.status.value}"] += 1

    def record_link_decision(self, decision: LinkDecision) -> None:
        if not decision.accepted:
            self._counters[f"links_{decision.value}"] += 1

    def record_fetch(self, page: RenderedPage, *, attempts: int) -> None:
        self._counters["fetch_ok" if page.ok else "fetch_error"] += 1
        self._counters["fetch_attempts"] += attempts
        if attempts > 1:
            self._counters["fetch_retried"] += 1
        if page.status_code is not None:
            self._status_codes[str(page.status_code)] += 1
        if page.elapsed_ms is not None:
            self._fetch_elapsed_ms_total += int(page.elapsed_ms)
            self._fetch_elapsed_samples += 1

    def record_frontier_snapshot(self, snapshot: Mapping[str, int]) -> None:
        self._frontier_snapshot = dict(snapshot)

    def counters(self) -> dict[str, int]:
        """Return a flat counter mapping for the crawl summary."""

        out = dict(sorted(self._counters.items()))
        for code, count in sorted(self._status_codes.items()):
            out[f"status_{code}"] = count
        for key, value in self._frontier_snapshot.items():
            out[f"frontier_{key}"] = int(value)
        if self._fetch_elapsed_samples:
            out["fetch_avg_elapsed_ms"] = self._fetch_elapsed_ms_total // self._fetch_elapsed_samples
        return out


def compute_content_statistics(
    pages: Iterable[ScrapedPage],
    *,
    limit: int = TOP_MATCHES_LIMIT,
) -> ContentStatistics | None:
    """Aggregate relevance results over pages that carry one.

    Returns `None` when no page was analysed.
    """

    keyword_counts: Counter[str] = Counter()
    pattern_counts: Counter[str] = Counter()
    total_keywords = 0
    total_patterns = 0
    score_sum = 0.0
    analysed = 0
    with_content = 0

    for page in pages:
        analysis = page.metadata.content_analysis
        if analysis is None:
            continue
        analysed += 1
        score_sum += analysis.relevance_score
        total_keywords += len(analysis.keyword_matches)
        total_patterns += len(analysis.pattern_matches)
        keyword_counts.update(analysis.keyword_matches)
        pattern_counts.update(analysis.pattern_matches)
        if analysis.is_relevant:
            with_content += 1

    if analysed == 0:
        return None

    return ContentStatistics(
        total_keyword_matches=total_keywords,
        total_pattern_matches=total_patterns,
        average_relevance_score=score_sum / analysed,
        pages_with_content=with_content,
        top_keywords=tuple(keyword_counts.most_common(limit)),
        top_patterns=tuple(pattern_counts.most_common(limit)),
    )


__all__ = ["StatsCollector", "compute_content_statistics"]
