"""Result fusion for hybrid search.

Lexical and semantic scores share a 0-100+ scale (weighted field matches vs.
``round(similarity * 100)``), so fusion keeps raw scores rather than
re-normalizing: the same document found by both paths keeps whichever entry
scored higher, and the merged set is ranked with a total tie-break order.
"""

from dataclasses import dataclass, field
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Optional, Sequence

import structlog

from ..models import MatchType, ScoredResult

logger = structlog.get_logger("search_service.fusion")


@dataclass
class ResultPage:
    """A window of ranked results and the size of the set it was cut from.

    ``matched_ids`` lists every matching id when ``results`` is a truncated
    candidate list, so totals can still be computed over the full set.
    """
    results: List[ScoredResult] = field(default_factory=list)
    total_count: int = 0
    degraded: bool = False
    matched_ids: FrozenSet[str] = frozenset()


def rank(results: Iterable[ScoredResult]) -> List[ScoredResult]:
    """Sort by relevance desc, then created_at desc, then id."""
    return sorted(results, key=ScoredResult.ranking_key)


def paginate(ranked: Sequence[ScoredResult], limit: int, offset: int) -> ResultPage:
    """Slice ``[offset, offset + limit)``; an offset past the end yields an empty page."""
    return ResultPage(results=list(ranked[offset:offset + limit]), total_count=len(ranked))


def candidate_cap(limit: int, offset: int, minimum: int = 0) -> int:
    """How many pre-fusion candidates a path should hand over for one page."""
    return max(2 * (offset + limit), minimum)


def _prefer(current: ScoredResult, challenger: ScoredResult) -> ScoredResult:
    if challenger.relevance_score > current.relevance_score:
        return challenger
    if challenger.relevance_score == current.relevance_score and challenger.match_type == MatchType.LEXICAL:
        # Exact tie: the lexical entry is the explainable one.
        return challenger
    return current


class ResultFusion:
    """Merges lexical and semantic results into one ranked, deduplicated list."""

    def deduplicate(
        self,
        lexical_results: Sequence[ScoredResult],
        semantic_results: Sequence[ScoredResult]
    ) -> List[ScoredResult]:
        """One entry per document id, keeping the higher-scoring path."""
        best: Dict[str, ScoredResult] = {}
        for result in [*lexical_results, *semantic_results]:
            current = best.get(result.id)
            best[result.id] = result if current is None else _prefer(current, result)
        return list(best.values())

    def fuse(
        self,
        lexical_results: Sequence[ScoredResult],
        semantic_results: Sequence[ScoredResult],
        limit: int,
        offset: int,
        lexical_ids: Optional[AbstractSet[str]] = None
    ) -> ResultPage:
        """Deduplicate, rank and window the union of both paths.

        When ``lexical_results`` is a capped candidate list, ``lexical_ids``
        holds the id of every lexical match and the total is counted over
        the union of those ids and the semantic ids.
        """
        merged = rank(self.deduplicate(lexical_results, semantic_results))
        page = paginate(merged, limit, offset)
        if lexical_ids is not None:
            page.total_count = len(set(lexical_ids).union(r.id for r in semantic_results))

        logger.info(
            "Fusion completed",
            lexical_count=len(lexical_results),
            semantic_count=len(semantic_results),
            fused_count=page.total_count,
            returned=len(page.results)
        )
        return page
