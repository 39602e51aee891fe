"""Document store abstractions and implementations.

Modules
- ``models``: ``DocumentRecord``, ``SearchFilters``, ``DateRange``
- ``base``: abstract ``DocumentStore`` contract and errors
- ``postgres``: asyncpg-backed store over the ``documents`` table
- ``memory``: in-process store for development and tests
"""

from .base import DocumentStore, DocumentStoreError, StoreUnavailable
from .models import DateRange, DocumentRecord, SearchFilters

__all__ = [
    "DateRange",
    "DocumentRecord",
    "DocumentStore",
    "DocumentStoreError",
    "SearchFilters",
    "StoreUnavailable",
]
