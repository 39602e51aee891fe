"""Filter pipeline shared by the lexical and semantic matchers.

Both matchers run their candidates through the same ``FilterPipeline`` so
the two paths see the same universe of eligible documents. The pipeline is
pure and order-preserving.
"""

from datetime import date, datetime, time, timezone
from typing import Any, List, Mapping, Optional, Sequence, TypeVar, Union

import structlog

from vaultlibs.document_store.models import DateRange, DocumentRecord, SearchFilters

from ..errors import InvalidFilter, InvalidRequest
from ..models import ScoredResult

logger = structlog.get_logger("search_service.filters")

# Wire keys (camelCase as sent by clients, snake_case accepted too) -> field.
FILTER_KEYS = {
    "category": "category",
    "fileType": "file_type",
    "file_type": "file_type",
    "dateRange": "date_range",
    "date_range": "date_range",
    "vaultScope": "vault_scope",
    "vault_scope": "vault_scope",
}

Candidate = TypeVar("Candidate", DocumentRecord, ScoredResult)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so comparisons never mix naive and aware."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def parse_bound(value: Any, name: str, end_of_day: bool = False) -> datetime:
    """Parse an ISO-8601 date or datetime bound.

    A date-only ``end`` bound covers the whole day.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        raise InvalidFilter(f"dateRange.{name} must be an ISO-8601 date string")

    text = value.strip()
    try:
        if len(text) == 10:
            return parse_bound(date.fromisoformat(text), name, end_of_day)
        return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        raise InvalidFilter(f"dateRange.{name} is not a valid ISO-8601 date: {value!r}")


def parse_date_range(raw: Any) -> DateRange:
    if not isinstance(raw, Mapping):
        raise InvalidFilter("dateRange must be an object with 'start' and 'end'")
    unknown = set(raw) - {"start", "end"}
    if unknown:
        raise InvalidFilter(f"Unrecognized dateRange keys: {', '.join(sorted(unknown))}")
    if "start" not in raw or "end" not in raw:
        raise InvalidFilter("dateRange requires both 'start' and 'end'")

    start = parse_bound(raw["start"], "start")
    end = parse_bound(raw["end"], "end", end_of_day=True)
    if start > end:
        raise InvalidFilter("dateRange.start must not be after dateRange.end")
    return DateRange(start=start, end=end)


def parse_filters(raw: Optional[Union[Mapping[str, Any], SearchFilters]]) -> SearchFilters:
    """Build ``SearchFilters`` from a wire mapping.

    Unrecognized keys are rejected rather than silently ignored.
    """
    if raw is None:
        return SearchFilters()
    if isinstance(raw, SearchFilters):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidRequest("filters must be an object")

    unknown = [key for key in raw if key not in FILTER_KEYS]
    if unknown:
        raise InvalidRequest(f"Unrecognized filter keys: {', '.join(sorted(unknown))}")

    values = {}
    for key, value in raw.items():
        if value is None:
            continue
        field_name = FILTER_KEYS[key]
        if field_name == "date_range":
            values[field_name] = parse_date_range(value)
        elif not isinstance(value, str) or not value:
            raise InvalidFilter(f"Filter {key!r} must be a non-empty string")
        else:
            values[field_name] = value

    return SearchFilters(**values)


class FilterPipeline:
    """Applies category, file type, date range and vault scope constraints."""

    def apply(
        self,
        candidates: Sequence[Candidate],
        filters: SearchFilters,
        default_scope: Optional[str] = None
    ) -> List[Candidate]:
        """Return the candidates satisfying every filter, in input order.

        ``default_scope`` is the requesting identity's personal scope and only
        applies when ``filters.vault_scope`` is unset.
        """
        scope = filters.vault_scope if filters.vault_scope is not None else default_scope
        if filters.is_empty() and scope is None:
            return list(candidates)

        kept = [c for c in candidates if self.matches(self._document(c), filters, scope)]

        if len(kept) < len(candidates):
            logger.debug("Filters applied", original_count=len(candidates), filtered_count=len(kept))
        return kept

    def matches(self, document: DocumentRecord, filters: SearchFilters, scope: Optional[str]) -> bool:
        if filters.category is not None and document.category != filters.category:
            return False

        if filters.file_type is not None:
            if not document.file_type or filters.file_type.lower() not in document.file_type.lower():
                return False

        if filters.date_range is not None:
            if not filters.date_range.contains(as_utc(document.created_at)):
                return False

        if scope is not None and document.vault_scope != scope:
            return False

        return True

    @staticmethod
    def _document(candidate: Candidate) -> DocumentRecord:
        if isinstance(candidate, ScoredResult):
            return candidate.document
        return candidate
