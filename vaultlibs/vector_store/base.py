"""Base vector index interface.

Defines the nearest-neighbour contract search depends on, independent of
the backing implementation (pgvector, in-memory, etc.).

All methods are asynchronous to support high-throughput services.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from ..document_store.models import DocumentRecord

Neighbour = Tuple[DocumentRecord, float]


class VectorIndex(ABC):
    """Abstract base class for vector indexes.

    Implementations return cosine similarity in ``[0, 1]`` (higher is
    closer) so callers can scale it onto their own relevance range.
    """

    @abstractmethod
    async def nearest(
        self,
        vector: Sequence[float],
        scope: Optional[str],
        threshold: float,
        limit: int
    ) -> List[Neighbour]:
        """Find documents nearest to ``vector``.

        Returns
        - ``(document, similarity)`` pairs with ``similarity >= threshold``,
          sorted by descending similarity, at most ``limit`` long. Only
          documents in ``scope`` are returned when a scope is given.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the vector index is healthy."""
        pass

    async def close(self) -> None:
        """Release connections held by the index."""


class VectorIndexError(Exception):
    """Base exception for vector index operations."""
    pass


class VectorIndexConnectionError(VectorIndexError):
    """Connection error to vector index."""
    pass


class VectorIndexQueryError(VectorIndexError):
    """Query error in vector index."""
    pass
