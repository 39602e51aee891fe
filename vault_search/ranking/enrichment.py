"""Response enrichment: suggestions, search tips and a result-quality score."""

from typing import List, Optional, Sequence

import structlog

from vaultlibs.document_store.base import DocumentStore

from ..models import ScoredResult

logger = structlog.get_logger("search_service.enrichment")

MAX_SUGGESTIONS = 5
MAX_TIPS = 3
BROAD_RESULT_COUNT = 20

# Query keyword -> (category that must exist in the vault, suggestions).
RELATED_SEARCHES = (
    ("insurance", "Insurance", ("Show all insurance policies", "Find expiring insurance documents")),
    ("tax", "Tax", ("Show tax documents for this year", "Find tax deduction receipts")),
)

NO_RESULT_SUGGESTIONS = ("Try using different keywords", "Search in all categories")


def search_tips(query: str, result_count: int) -> List[str]:
    """Short hints on how to refine the query."""
    tips = []
    if result_count == 0:
        tips.extend([
            "Try using broader search terms",
            "Check if documents are uploaded and processed",
            "Use category filters to narrow down search",
        ])
    elif result_count > BROAD_RESULT_COUNT:
        tips.extend([
            "Use specific keywords to narrow results",
            "Apply date or category filters",
            "Try semantic search for better relevance",
        ])

    stripped = query.strip()
    if len(stripped) < 3:
        tips.append("Use at least 3 characters for better results")
    if " " not in stripped:
        tips.append("Try using multiple keywords for better matching")

    return tips[:MAX_TIPS]


def result_quality(results: Sequence[ScoredResult]) -> int:
    """Average relevance of the returned page, rounded."""
    if not results:
        return 0
    return round(sum(r.relevance_score for r in results) / len(results))


class SearchEnricher:
    """Builds the suggestion list shown alongside a result page."""

    def __init__(self, store: Optional[DocumentStore] = None):
        self.store = store

    async def suggestions(
        self,
        query: str,
        results: Sequence[ScoredResult],
        scope: Optional[str] = None
    ) -> List[str]:
        suggestions: List[str] = []

        categories: List[str] = []
        for result in results:
            category = result.document.category
            if category and category not in categories:
                categories.append(category)
        if len(categories) > 1:
            suggestions.append(f"Filter by {categories[0]} documents")

        lowered = query.lower()
        if self.store is not None and any(keyword in lowered for keyword, _, _ in RELATED_SEARCHES):
            try:
                available = set(await self.store.list_categories(scope))
            except Exception as e:
                logger.warning("Could not load categories for suggestions", error=str(e))
                available = set()
            for keyword, category, related in RELATED_SEARCHES:
                if keyword in lowered and category in available:
                    suggestions.extend(related)

        if not results:
            suggestions.extend(NO_RESULT_SUGGESTIONS)

        return suggestions[:MAX_SUGGESTIONS]
