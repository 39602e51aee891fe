"""Domain models for a single search request.

Everything here is built fresh per request and discarded after the response
is returned.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from vaultlibs.document_store.models import DateRange, DocumentRecord, SearchFilters

from .errors import InvalidRequest

CONTENT_PREVIEW_CHARS = 200


class SearchStrategy(str, Enum):
    """Which retrieval paths run for a request."""
    LEXICAL = "lexical"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: Any) -> "SearchStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise InvalidRequest(f"Unknown search strategy {value!r}; expected one of: {allowed}")


class MatchType(str, Enum):
    """Retrieval path that produced a result."""
    LEXICAL = "lexical"
    SEMANTIC = "semantic"


@dataclass(frozen=True)
class SearchRequest:
    """A validated-on-demand search request."""
    query: str
    filters: SearchFilters = field(default_factory=SearchFilters)
    strategy: SearchStrategy = SearchStrategy.HYBRID
    limit: int = 20
    offset: int = 0
    include_content: bool = False

    def validate(self) -> None:
        """Raise ``InvalidRequest`` unless the request can be executed."""
        if not isinstance(self.query, str) or not self.query.strip():
            raise InvalidRequest("Search query is required")
        SearchStrategy.parse(self.strategy)
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 1:
            raise InvalidRequest("limit must be a positive integer")
        if isinstance(self.offset, bool) or not isinstance(self.offset, int) or self.offset < 0:
            raise InvalidRequest("offset must be a non-negative integer")

    @property
    def normalized_query(self) -> str:
        return self.query.strip()


@dataclass
class ScoredResult:
    """A document with the relevance assigned by one retrieval path."""
    document: DocumentRecord
    relevance_score: int
    match_type: MatchType
    similarity: Optional[float] = None
    highlights: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.document.id

    def ranking_key(self) -> Tuple[int, float, str]:
        """Sort key: relevance desc, created_at desc, id asc."""
        return (-self.relevance_score, -self.document.created_at.timestamp(), self.document.id)

    def to_dict(self, include_content: bool = False) -> Dict[str, Any]:
        """Wire representation of the result."""
        document = self.document
        text = document.extracted_text
        preview = None
        if text:
            preview = text if len(text) <= CONTENT_PREVIEW_CHARS else text[:CONTENT_PREVIEW_CHARS] + "..."
        return {
            "id": document.id,
            "name": document.name,
            "category": document.category,
            "fileType": document.file_type,
            "fileSize": document.file_size,
            "createdAt": document.created_at.isoformat(),
            "vaultScope": document.vault_scope,
            "tags": list(document.tags),
            "aiSummary": document.ai_summary,
            "relevanceScore": self.relevance_score,
            "matchType": self.match_type.value,
            "similarity": self.similarity,
            "highlights": self.highlights,
            "contentPreview": preview,
            "extractedText": text if include_content else None,
        }


@dataclass
class SearchResponse:
    """Ranked page of results plus request echo and search metadata."""
    results: List[ScoredResult]
    total_count: int
    strategy_used: SearchStrategy
    query: str
    filters: SearchFilters
    suggestions: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    include_content: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict(self.include_content) for r in self.results],
            "totalCount": self.total_count,
            "strategyUsed": self.strategy_used.value,
            "query": self.query,
            "filters": self.filters.to_dict(),
            "suggestions": self.suggestions,
            "searchMetadata": self.metadata,
        }


__all__ = [
    "DateRange",
    "DocumentRecord",
    "MatchType",
    "ScoredResult",
    "SearchFilters",
    "SearchRequest",
    "SearchResponse",
    "SearchStrategy",
]
