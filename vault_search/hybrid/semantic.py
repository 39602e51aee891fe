"""Semantic matcher: vector similarity over document embeddings.

This path is best-effort. An unconfigured provider, a failed or slow
embedding call, a vector index error, or a cancelled in-flight call all
produce an empty, ``degraded`` page instead of an error. Lexical search is
the fallback of record.
"""

import asyncio
from typing import List, Optional, Sequence

import structlog

from vaultlibs.common.metrics import MetricsCollector
from vaultlibs.document_store.models import SearchFilters
from vaultlibs.embeddings.base import EmbeddingProvider, ProviderTimeout, ProviderUnavailable
from vaultlibs.vector_store.base import Neighbour, VectorIndex, VectorIndexError

from ..models import MatchType, ScoredResult
from ..ranking.fusion import ResultPage, candidate_cap, paginate, rank
from .filters import FilterPipeline

logger = structlog.get_logger("search_service.semantic")


def similarity_to_score(similarity: float) -> int:
    """Map a 0-1 similarity onto the shared 0-100 relevance scale."""
    return int(round(similarity * 100))


class SemanticMatcher:
    """Embeds the query and ranks the vector index's nearest documents."""

    def __init__(
        self,
        provider: Optional[EmbeddingProvider],
        index: VectorIndex,
        filter_pipeline: Optional[FilterPipeline] = None,
        similarity_threshold: float = 0.70,
        timeout: float = 5.0,
        min_candidates: int = 20,
        metrics: Optional[MetricsCollector] = None
    ):
        """Configure the matcher.

        Parameters
        - provider: Embedding provider; ``None`` means semantic search is off
        - index: Vector index queried with the query embedding
        - similarity_threshold: Minimum cosine similarity (0-1) to keep
        - timeout: Seconds allowed for each of the embedding and index calls
        - min_candidates: Floor for the number of neighbours requested
        """
        self.provider = provider
        self.index = index
        self.filter_pipeline = filter_pipeline or FilterPipeline()
        self.similarity_threshold = similarity_threshold
        self.timeout = timeout
        self.min_candidates = min_candidates
        self.metrics = metrics

    @property
    def available(self) -> bool:
        """Whether a configured embedding provider is attached."""
        return self.provider is not None and self.provider.configured

    async def _embed(self, query: str) -> List[float]:
        if not self.available:
            raise ProviderUnavailable("Embedding provider is not configured")
        try:
            return await asyncio.wait_for(self.provider.embed(query), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(f"Embedding call exceeded {self.timeout}s") from e

    async def _nearest(self, vector: Sequence[float], scope: Optional[str], cap: int) -> List[Neighbour]:
        try:
            return await asyncio.wait_for(
                self.index.nearest(vector, scope, self.similarity_threshold, cap),
                timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise VectorIndexError(f"Vector query exceeded {self.timeout}s") from e

    def _degraded(self, reason: str, query: str, error: Optional[BaseException] = None) -> ResultPage:
        if reason == "unconfigured":
            logger.info("Semantic search skipped, provider not configured")
        else:
            logger.warning(
                "Semantic search degraded to empty results",
                reason=reason,
                query=query,
                error=str(error) if error else None
            )
        if self.metrics:
            self.metrics.record_semantic_degradation(reason)
        return ResultPage(degraded=True)

    async def search(
        self,
        query: str,
        filters: SearchFilters,
        limit: int,
        offset: int,
        scope: Optional[str] = None,
        paginate_results: bool = True
    ) -> ResultPage:
        """Run the semantic path. Never raises for provider or index failures."""
        effective_scope = filters.vault_scope if filters.vault_scope is not None else scope
        cap = candidate_cap(limit, offset, self.min_candidates)

        try:
            vector = await self._embed(query)
            neighbours = await self._nearest(vector, effective_scope, cap)
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                # The request itself is being cancelled; let it unwind.
                raise
            return self._degraded("cancelled", query)
        except ProviderUnavailable as e:
            reason = "provider_unavailable" if self.available else "unconfigured"
            return self._degraded(reason, query, e)
        except ProviderTimeout as e:
            return self._degraded("provider_timeout", query, e)
        except VectorIndexError as e:
            return self._degraded("index_error", query, e)
        except Exception as e:
            return self._degraded("error", query, e)

        results = [
            ScoredResult(
                document=document,
                relevance_score=similarity_to_score(similarity),
                match_type=MatchType.SEMANTIC,
                similarity=similarity,
            )
            for document, similarity in neighbours
        ]
        results = self.filter_pipeline.apply(results, filters, scope)
        ranked = rank(results)

        logger.info(
            "Semantic search completed",
            neighbours=len(neighbours),
            results_count=len(ranked),
            threshold=self.similarity_threshold
        )

        if paginate_results:
            return paginate(ranked, limit, offset)
        return ResultPage(results=ranked, total_count=len(ranked))
