"""Base document store interface.

Defines the read-only contract search depends on, independent of the
backing implementation (PostgreSQL, in-memory, etc.).

All methods are asynchronous to support high-throughput services.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import DocumentRecord, SearchFilters


class DocumentStore(ABC):
    """Abstract base class for document stores.

    Implementations push the text predicate and as many filters as they can
    down to the backing store. Callers may re-apply filters locally.
    """

    @abstractmethod
    async def find_by_text_predicate(
        self,
        query: str,
        filters: SearchFilters,
        scope: Optional[str] = None
    ) -> List[DocumentRecord]:
        """Find documents whose name, extracted text, or summary contain ``query``.

        Matching is a case-insensitive substring test OR-ed across the three
        fields. ``scope`` is the requesting identity's default vault scope,
        used when ``filters.vault_scope`` is unset.

        Raises
        - ``StoreUnavailable`` when the store cannot be reached or queried
        """
        pass

    @abstractmethod
    async def list_categories(self, scope: Optional[str] = None) -> List[str]:
        """Distinct document categories visible in ``scope``, sorted."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the document store is healthy."""
        pass

    async def close(self) -> None:
        """Release connections held by the store."""


class DocumentStoreError(Exception):
    """Base exception for document store operations."""
    pass


class StoreUnavailable(DocumentStoreError):
    """Store could not be reached or the query failed."""
    pass
