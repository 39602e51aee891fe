"""PostgreSQL implementation of the document store.

Reads the vault's ``documents`` table. The text predicate is pushed down as
an OR of ``ILIKE`` conditions; category, file type, date range and vault
scope are pushed down as additional ``AND`` conditions.

Connection management
- A shared asyncpg pool is created on demand and reused across calls
- Queries are funneled through ``_fetch`` for uniform error handling
"""

import asyncio
from typing import Any, List, Optional, Sequence, Tuple

import asyncpg
import structlog
from asyncpg import Pool

from .base import DocumentStore, StoreUnavailable
from .models import DocumentRecord, SearchFilters

logger = structlog.get_logger("document_store.postgres")

# Personal documents carry only ``user_id``; shared ones also carry a family vault.
VAULT_SCOPE_SQL = "COALESCE(d.family_vault_id::text, d.user_id::text)"

DOCUMENT_COLUMNS = f"""
    d.id::text AS id, d.name, d.category, d.extracted_text, d.ai_summary,
    COALESCE(d.ai_tags, '{{}}'::text[]) || COALESCE(d.custom_tags, '{{}}'::text[]) AS tags,
    d.file_type, COALESCE(d.file_size, 0) AS file_size, d.created_at,
    {VAULT_SCOPE_SQL} AS vault_scope
"""


def escape_like(value: str) -> str:
    """Escape ``LIKE`` wildcards so the query is matched literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def record_from_row(row: Any) -> DocumentRecord:
    """Build a ``DocumentRecord`` from a row selected with ``DOCUMENT_COLUMNS``."""
    return DocumentRecord(
        id=row["id"],
        name=row["name"],
        category=row["category"],
        extracted_text=row["extracted_text"],
        ai_summary=row["ai_summary"],
        tags=tuple(row["tags"] or ()),
        file_type=row["file_type"],
        file_size=int(row["file_size"] or 0),
        created_at=row["created_at"],
        vault_scope=row["vault_scope"],
    )


def build_filter_clauses(
    filters: SearchFilters,
    scope: Optional[str],
    params: List[Any]
) -> List[str]:
    """Translate filters into SQL conditions, appending bind values to ``params``."""
    clauses = []

    if filters.category is not None:
        params.append(filters.category)
        clauses.append(f"d.category = ${len(params)}")

    if filters.file_type is not None:
        params.append(f"%{escape_like(filters.file_type)}%")
        clauses.append(f"d.file_type ILIKE ${len(params)}")

    if filters.date_range is not None:
        params.append(filters.date_range.start)
        clauses.append(f"d.created_at >= ${len(params)}")
        params.append(filters.date_range.end)
        clauses.append(f"d.created_at <= ${len(params)}")

    effective_scope = filters.vault_scope if filters.vault_scope is not None else scope
    if effective_scope is not None:
        params.append(effective_scope)
        clauses.append(f"{VAULT_SCOPE_SQL} = ${len(params)}")

    return clauses


class PostgresDocumentStore(DocumentStore):
    """PostgreSQL-backed document store."""

    def __init__(
        self,
        dsn: str,
        pool_size: int = 10,
        command_timeout: int = 30,
    ):
        """Configure the store.

        Parameters
        - dsn: PostgreSQL DSN including database and credentials
        - pool_size: Max size of asyncpg connection pool
        - command_timeout: Seconds to allow per DB command
        """
        self.dsn = dsn
        self.pool_size = pool_size
        self.command_timeout = command_timeout
        self._pool: Optional[Pool] = None
        self._pool_lock = asyncio.Lock()

    async def _get_pool(self) -> Pool:
        """Get or create the connection pool; concurrent first callers share one."""
        if self._pool is not None:
            return self._pool
        async with self._pool_lock:
            if self._pool is None:
                try:
                    self._pool = await asyncpg.create_pool(
                        self.dsn,
                        min_size=1,
                        max_size=self.pool_size,
                        command_timeout=self.command_timeout,
                    )
                    logger.info("Created document store connection pool", pool_size=self.pool_size)
                except Exception as e:
                    logger.error("Failed to create document store connection pool", error=str(e))
                    raise StoreUnavailable(f"Failed to create connection pool: {e}") from e
        return self._pool

    async def _fetch(self, sql: str, params: Sequence[Any]) -> List[Any]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(sql, *params)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Document store query failed", error=str(e))
            raise StoreUnavailable(f"Document store query failed: {e}") from e

    def build_text_query(
        self,
        query: str,
        filters: SearchFilters,
        scope: Optional[str] = None
    ) -> Tuple[str, List[Any]]:
        """Compose the lexical candidate query and its bind values."""
        params: List[Any] = [f"%{escape_like(query.strip())}%"]
        clauses = [
            "d.status = 'completed'",
            "(d.name ILIKE $1 OR d.extracted_text ILIKE $1 OR d.ai_summary ILIKE $1)",
        ]
        clauses.extend(build_filter_clauses(filters, scope, params))

        sql = (
            f"SELECT {DOCUMENT_COLUMNS} FROM documents d "
            f"WHERE {' AND '.join(clauses)} "
            "ORDER BY d.created_at DESC"
        )
        return sql, params

    async def find_by_text_predicate(
        self,
        query: str,
        filters: SearchFilters,
        scope: Optional[str] = None
    ) -> List[DocumentRecord]:
        sql, params = self.build_text_query(query, filters, scope)
        rows = await self._fetch(sql, params)

        logger.info("Text predicate search completed", results_count=len(rows))
        return [record_from_row(row) for row in rows]

    async def list_categories(self, scope: Optional[str] = None) -> List[str]:
        params: List[Any] = []
        sql = (
            "SELECT DISTINCT d.category FROM documents d "
            "WHERE d.status = 'completed' AND d.category IS NOT NULL"
        )
        if scope is not None:
            params.append(scope)
            sql += f" AND {VAULT_SCOPE_SQL} = $1"
        sql += " ORDER BY d.category"

        rows = await self._fetch(sql, params)
        return [row["category"] for row in rows]

    async def health_check(self) -> bool:
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.error("Document store health check failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
