"""Vector index abstractions and implementations.

Modules
- ``base``: abstract ``VectorIndex`` contract and errors
- ``pgvector``: PostgreSQL + pgvector nearest-neighbour lookups
- ``memory``: brute-force numpy index for development and tests
"""

from .base import (
    Neighbour,
    VectorIndex,
    VectorIndexConnectionError,
    VectorIndexError,
    VectorIndexQueryError,
)

__all__ = [
    "Neighbour",
    "VectorIndex",
    "VectorIndexConnectionError",
    "VectorIndexError",
    "VectorIndexQueryError",
]
