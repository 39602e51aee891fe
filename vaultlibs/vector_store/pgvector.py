"""PgVector implementation of the vector index.

Embeddings live in ``document_embeddings`` (one row per document) and are
joined back to ``documents`` so results carry the full record projection.
Cosine distance is computed with the ``<=>`` operator and converted to a
``similarity`` score in ``[0, 1]``.

Connection management
- A shared asyncpg pool is created on demand and reused across calls
- The pgvector codec is registered on every new connection
"""

import asyncio
from typing import Any, List, Optional, Sequence

import asyncpg
import numpy as np
import structlog
from asyncpg import Pool
from pgvector.asyncpg import register_vector

from ..document_store.postgres import DOCUMENT_COLUMNS, VAULT_SCOPE_SQL, record_from_row
from .base import (
    Neighbour,
    VectorIndex,
    VectorIndexConnectionError,
    VectorIndexQueryError,
)

logger = structlog.get_logger("vector_store.pgvector")

# Cosine distance spans [0, 2]; similarity is reported on [0, 1].
SIMILARITY_SQL = "GREATEST(0, 1 - (e.embedding <=> $1))"


def clamp_similarity(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


class PgVectorIndex(VectorIndex):
    """PgVector-backed vector index."""

    def __init__(
        self,
        dsn: str,
        pool_size: int = 10,
        command_timeout: int = 30,
        vector_dimension: Optional[int] = None,
    ):
        """Configure a PgVector-backed vector index.

        Parameters
        - dsn: PostgreSQL DSN including database and credentials
        - pool_size: Max size of asyncpg connection pool
        - command_timeout: Seconds to allow per DB command
        - vector_dimension: Expected dimensionality of query vectors
        """
        self.dsn = dsn
        self.pool_size = pool_size
        self.command_timeout = command_timeout
        self.vector_dimension = vector_dimension
        self._pool: Optional[Pool] = None
        self._pool_lock = asyncio.Lock()

    @property
    def _host(self) -> str:
        return self.dsn.rsplit("@", 1)[-1].split("/", 1)[0]

    async def _pool_or_connect(self) -> Pool:
        """Return the shared pool, creating it (with the vector codec) on first use."""
        if self._pool is not None:
            return self._pool
        async with self._pool_lock:
            if self._pool is not None:
                return self._pool
            try:
                self._pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=1,
                    max_size=self.pool_size,
                    command_timeout=self.command_timeout,
                    init=register_vector,
                )
            except (asyncpg.PostgresError, OSError) as e:
                logger.error("Could not open vector index pool", dsn_host=self._host, error=str(e))
                raise VectorIndexConnectionError(f"Could not open vector index pool: {e}") from e
            logger.info("Vector index pool opened", dsn_host=self._host, max_size=self.pool_size)
            return self._pool

    def _ensure_vector_dimension(self, vector: Sequence[float]) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float32)
        if array.ndim != 1:
            raise VectorIndexQueryError(f"Expected a 1-D query vector, got shape {array.shape}")
        if self.vector_dimension and array.shape[0] != self.vector_dimension:
            raise VectorIndexQueryError(
                f"Vector dimension {array.shape[0]} does not match expected {self.vector_dimension}"
            )
        return array

    def build_nearest_query(self, scope: Optional[str]) -> str:
        """SQL for a nearest-neighbour lookup; ``$1`` vector, ``$2`` threshold, ``$3`` limit."""
        scope_clause = f"AND {VAULT_SCOPE_SQL} = $4" if scope is not None else ""
        return f"""
            SELECT {DOCUMENT_COLUMNS},
                   {SIMILARITY_SQL} AS similarity
            FROM document_embeddings e
            JOIN documents d ON d.id = e.document_id
            WHERE d.status = 'completed'
              AND {SIMILARITY_SQL} >= $2
              {scope_clause}
            ORDER BY e.embedding <=> $1
            LIMIT $3
        """

    async def nearest(
        self,
        vector: Sequence[float],
        scope: Optional[str],
        threshold: float,
        limit: int
    ) -> List[Neighbour]:
        vector_array = self._ensure_vector_dimension(vector)
        args: List[Any] = [vector_array, threshold, limit]
        if scope is not None:
            args.append(scope)

        pool = await self._pool_or_connect()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(self.build_nearest_query(scope), *args)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Vector similarity search failed", error=str(e))
            raise VectorIndexQueryError(f"Vector similarity search failed: {e}") from e

        neighbours = [(record_from_row(row), clamp_similarity(row["similarity"])) for row in rows]

        logger.info(
            "Vector similarity search completed",
            query_vector_dim=len(vector_array),
            scope=scope,
            limit=limit,
            results_count=len(neighbours)
        )
        return neighbours

    async def health_check(self) -> bool:
        """True when the pool opens and the embeddings table is readable."""
        try:
            pool = await self._pool_or_connect()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1 FROM document_embeddings LIMIT 1")
        except (VectorIndexConnectionError, asyncpg.PostgresError, OSError) as e:
            logger.warning("Vector index health check failed", error=str(e))
            return False
        return True

    async def close(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            await pool.close()
            logger.info("Vector index pool closed")
