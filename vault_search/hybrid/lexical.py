"""Lexical matcher: substring search over document metadata and text.

Candidates come from the document store's text predicate; relevance is a
sum of fixed per-field weights for every field that contains the query.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import structlog

from vaultlibs.document_store.base import DocumentStore
from vaultlibs.document_store.models import DocumentRecord, SearchFilters

from ..errors import RetrievalFailed
from ..models import MatchType, ScoredResult
from ..ranking.fusion import ResultPage, candidate_cap, paginate, rank
from .filters import FilterPipeline

logger = structlog.get_logger("search_service.lexical")

MIN_HIGHLIGHT_TERM_CHARS = 3


@dataclass(frozen=True)
class LexicalWeights:
    """Score added when the query appears in a field."""
    name: int = 50
    summary: int = 30
    text: int = 20
    tag: int = 25


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


def match_highlights(document: DocumentRecord, query: str) -> Dict[str, List[str]]:
    """Query terms (3+ chars) found in the name, summary and tags."""
    terms = [t for t in query.lower().split() if len(t) >= MIN_HIGHLIGHT_TERM_CHARS]
    highlights: Dict[str, List[str]] = {}

    name = [t for t in terms if _contains(document.name, t)]
    if name:
        highlights["name"] = name

    summary = [t for t in terms if _contains(document.ai_summary, t)]
    if summary:
        highlights["summary"] = summary

    tags = sorted({tag for tag in document.tags for t in terms if t in tag.lower()})
    if tags:
        highlights["tags"] = tags

    return highlights


class LexicalMatcher:
    """Scores store candidates by where the query appears."""

    def __init__(
        self,
        store: DocumentStore,
        filter_pipeline: Optional[FilterPipeline] = None,
        weights: Optional[LexicalWeights] = None,
        max_candidates: int = 500
    ):
        self.store = store
        self.filter_pipeline = filter_pipeline or FilterPipeline()
        self.weights = weights or LexicalWeights()
        self.max_candidates = max_candidates

    def score(self, document: DocumentRecord, query: str) -> int:
        """Additive field-match score for a lowercased-query substring test."""
        needle = query.strip().lower()
        score = 0
        if _contains(document.name, needle):
            score += self.weights.name
        if _contains(document.ai_summary, needle):
            score += self.weights.summary
        if _contains(document.extracted_text, needle):
            score += self.weights.text
        if any(needle in tag.lower() for tag in document.tags):
            score += self.weights.tag
        return score

    async def search(
        self,
        query: str,
        filters: SearchFilters,
        limit: int,
        offset: int,
        scope: Optional[str] = None,
        paginate_results: bool = True
    ) -> ResultPage:
        """Run the lexical path.

        With ``paginate_results`` the page ``[offset, offset + limit)`` is
        returned; otherwise the top candidates are returned unwindowed for
        fusion. Store failures raise ``RetrievalFailed``; this path never
        returns partial results.
        """
        try:
            candidates = await self.store.find_by_text_predicate(query, filters, scope)
        except Exception as e:
            logger.error("Lexical retrieval failed", query=query, error=str(e))
            raise RetrievalFailed(f"Document store unavailable: {e}") from e

        eligible = self.filter_pipeline.apply(candidates, filters, scope)

        scored = []
        for document in eligible:
            relevance = self.score(document, query)
            if relevance <= 0:
                continue
            scored.append(ScoredResult(
                document=document,
                relevance_score=relevance,
                match_type=MatchType.LEXICAL,
                highlights=match_highlights(document, query),
            ))

        ranked = rank(scored)

        logger.info(
            "Lexical search completed",
            candidates=len(candidates),
            eligible=len(eligible),
            results_count=len(ranked)
        )

        if paginate_results:
            return paginate(ranked, limit, offset)

        cap = candidate_cap(limit, offset, self.max_candidates)
        return ResultPage(
            results=ranked[:cap],
            total_count=len(ranked),
            matched_ids=frozenset(r.id for r in ranked),
        )
