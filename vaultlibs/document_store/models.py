"""Read-only document projections and the filter structure applied to them."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class DocumentRecord:
    """Projection of a stored document as consumed by search.

    Owned and mutated exclusively by the document store; readers treat it
    as immutable.
    """
    id: str
    name: str
    created_at: datetime
    category: Optional[str] = None
    extracted_text: Optional[str] = None
    ai_summary: Optional[str] = None
    tags: Tuple[str, ...] = ()
    file_type: Optional[str] = None
    file_size: int = 0
    vault_scope: Optional[str] = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive ``[start, end]`` bounds on ``DocumentRecord.created_at``."""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class SearchFilters:
    """Recognized search filters, AND-combined."""
    category: Optional[str] = None
    file_type: Optional[str] = None
    date_range: Optional[DateRange] = None
    vault_scope: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.category, self.file_type, self.date_range, self.vault_scope))

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase keys, ISO-8601 dates), unset keys omitted."""
        data: Dict[str, Any] = {}
        if self.category is not None:
            data["category"] = self.category
        if self.file_type is not None:
            data["fileType"] = self.file_type
        if self.date_range is not None:
            data["dateRange"] = {
                "start": self.date_range.start.isoformat(),
                "end": self.date_range.end.isoformat(),
            }
        if self.vault_scope is not None:
            data["vaultScope"] = self.vault_scope
        return data


NO_FILTERS = SearchFilters()
