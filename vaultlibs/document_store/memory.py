"""In-memory document store.

Used for local development (``VAULT_STORE_BACKEND=memory``) and tests. It
evaluates the same predicate the PostgreSQL store pushes down, against a
list of records held in process.
"""

from typing import Iterable, List, Optional

import structlog

from .base import DocumentStore
from .models import DocumentRecord, SearchFilters

logger = structlog.get_logger("document_store.memory")


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


class InMemoryDocumentStore(DocumentStore):
    """Document store backed by a Python list."""

    def __init__(self, records: Optional[Iterable[DocumentRecord]] = None):
        self._records: List[DocumentRecord] = list(records or [])

    def add(self, record: DocumentRecord) -> None:
        self._records.append(record)

    async def find_by_text_predicate(
        self,
        query: str,
        filters: SearchFilters,
        scope: Optional[str] = None
    ) -> List[DocumentRecord]:
        needle = query.strip().lower()
        matches = [
            record for record in self._records
            if _contains(record.name, needle)
            or _contains(record.extracted_text, needle)
            or _contains(record.ai_summary, needle)
        ]
        logger.debug("Text predicate evaluated", query=query, matches=len(matches))
        return matches

    async def list_categories(self, scope: Optional[str] = None) -> List[str]:
        return sorted({
            record.category for record in self._records
            if record.category and (scope is None or record.vault_scope == scope)
        })

    async def health_check(self) -> bool:
        return True
