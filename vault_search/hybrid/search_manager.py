"""Search manager: owns the collaborators behind the search orchestrator.

Builds the document store, vector index, embedding provider and analytics
sink from ``SearchConfig`` (or accepts injected ones), wires them into a
``SearchOrchestrator`` and releases them on shutdown.
"""

from contextlib import suppress
from typing import Dict, Optional

import structlog

from vaultlibs.common.circuit_breaker import CircuitBreaker
from vaultlibs.common.config import SearchConfig
from vaultlibs.common.events import (
    AnalyticsSink,
    NullAnalyticsSink,
    RedisAnalyticsSink,
    create_event_publisher,
)
from vaultlibs.common.metrics import MetricsCollector
from vaultlibs.document_store.base import DocumentStore
from vaultlibs.document_store.memory import InMemoryDocumentStore
from vaultlibs.document_store.postgres import PostgresDocumentStore
from vaultlibs.embeddings.base import EmbeddingProvider, EmbeddingProviderError
from vaultlibs.embeddings.http import HttpEmbeddingProvider
from vaultlibs.vector_store.base import VectorIndex
from vaultlibs.vector_store.memory import InMemoryVectorIndex
from vaultlibs.vector_store.pgvector import PgVectorIndex

from ..models import SearchRequest, SearchResponse
from ..ranking.enrichment import SearchEnricher
from ..ranking.fusion import ResultFusion
from .filters import FilterPipeline
from .lexical import LexicalMatcher, LexicalWeights
from .orchestrator import SearchOrchestrator
from .semantic import SemanticMatcher

logger = structlog.get_logger("search_service.search_manager")


class SearchManager:
    """Manages hybrid search operations.

    Responsibilities
    - Build or accept the store, vector index, provider and analytics sink
    - Expose ``execute`` for the API layer
    - Report dependency health and close connections on shutdown
    """

    def __init__(
        self,
        config: SearchConfig,
        document_store: Optional[DocumentStore] = None,
        vector_index: Optional[VectorIndex] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        analytics_sink: Optional[AnalyticsSink] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        """Construct a search manager.

        Parameters
        - config: ``SearchConfig`` providing DSN, Redis URL and search tuning
        - document_store / vector_index / embedding_provider / analytics_sink:
          Optional pre-built collaborators; missing ones are created in
          ``initialize`` from ``config``
        """
        self.config = config
        self.document_store = document_store
        self.vector_index = vector_index
        self.embedding_provider = embedding_provider
        self.analytics_sink = analytics_sink
        self.metrics = metrics
        self.orchestrator: Optional[SearchOrchestrator] = None

    def _create_document_store(self) -> DocumentStore:
        if self.config.vault_store_backend == "memory":
            return InMemoryDocumentStore()
        return PostgresDocumentStore(
            self.config.vault_db_dsn,
            pool_size=self.config.vault_db_pool_size,
            command_timeout=self.config.vault_db_command_timeout,
        )

    def _create_vector_index(self) -> VectorIndex:
        if self.config.vault_store_backend == "memory":
            return InMemoryVectorIndex()
        return PgVectorIndex(
            self.config.vault_db_dsn,
            pool_size=self.config.vault_db_pool_size,
            command_timeout=self.config.vault_db_command_timeout,
        )

    def _create_embedding_provider(self) -> EmbeddingProvider:
        breaker = CircuitBreaker(
            failure_threshold=self.config.vault_embedding_failure_threshold,
            recovery_timeout=self.config.vault_embedding_recovery_timeout,
            expected_exception=EmbeddingProviderError,
            name="embedding_provider",
        )
        return HttpEmbeddingProvider(
            base_url=self.config.vault_embedding_url,
            model=self.config.vault_embedding_model,
            api_key=self.config.vault_embedding_api_key,
            timeout=self.config.vault_embedding_timeout_seconds,
            retry_attempts=self.config.vault_embedding_retry_attempts,
            retry_base_delay=self.config.vault_embedding_retry_base_delay,
            retry_max_delay=self.config.vault_embedding_retry_max_delay,
            circuit_breaker=breaker,
            metrics=self.metrics,
        )

    def _create_analytics_sink(self) -> AnalyticsSink:
        if not self.config.vault_analytics_enabled:
            return NullAnalyticsSink()
        publisher = create_event_publisher(
            self.config.vault_redis_url,
            channel_prefix=self.config.vault_events_channel_prefix,
            socket_timeout=self.config.vault_redis_socket_timeout_seconds,
        )
        return RedisAnalyticsSink(
            publisher,
            max_pending=self.config.vault_analytics_max_pending,
            metrics=self.metrics,
        )

    async def initialize(self) -> None:
        """Create missing collaborators and wire the orchestrator."""
        try:
            if self.document_store is None:
                self.document_store = self._create_document_store()
            if self.vector_index is None:
                self.vector_index = self._create_vector_index()
            if self.embedding_provider is None:
                self.embedding_provider = self._create_embedding_provider()
            if self.analytics_sink is None:
                self.analytics_sink = self._create_analytics_sink()

            pipeline = FilterPipeline()
            weights = LexicalWeights(
                name=self.config.vault_lexical_name_weight,
                summary=self.config.vault_lexical_summary_weight,
                text=self.config.vault_lexical_text_weight,
                tag=self.config.vault_lexical_tag_weight,
            )
            lexical = LexicalMatcher(
                self.document_store,
                filter_pipeline=pipeline,
                weights=weights,
                max_candidates=self.config.vault_lexical_max_candidates,
            )
            semantic = SemanticMatcher(
                self.embedding_provider,
                self.vector_index,
                filter_pipeline=pipeline,
                similarity_threshold=self.config.vault_vector_similarity_threshold,
                timeout=self.config.vault_vector_timeout_seconds,
                min_candidates=self.config.vault_fusion_min_candidates,
                metrics=self.metrics,
            )
            self.orchestrator = SearchOrchestrator(
                lexical,
                semantic,
                fusion=ResultFusion(),
                enricher=SearchEnricher(self.document_store),
                analytics_sink=self.analytics_sink,
                request_timeout=self.config.vault_request_timeout_seconds,
                metrics=self.metrics,
            )

            logger.info(
                "Search manager initialized successfully",
                store_backend=self.config.vault_store_backend,
                semantic_available=semantic.available,
                analytics_enabled=self.config.vault_analytics_enabled
            )

        except Exception as e:
            logger.error("Failed to initialize search manager", error=str(e))
            raise

    async def execute(self, request: SearchRequest, scope: Optional[str] = None) -> SearchResponse:
        if self.orchestrator is None:
            raise RuntimeError("Search manager not initialized")
        return await self.orchestrator.execute(request, scope)

    async def component_health(self) -> Dict[str, bool]:
        """Per-dependency health for the ``/health`` endpoint."""
        components = {
            "document_store": False,
            "vector_index": False,
            "embedding_provider": bool(self.embedding_provider and self.embedding_provider.configured),
        }
        checks = (("document_store", self.document_store), ("vector_index", self.vector_index))
        for name, dependency in checks:
            if dependency is None:
                continue
            try:
                components[name] = await dependency.health_check()
            except Exception as e:
                logger.warning("Dependency health check failed", component=name, error=str(e))
        return components

    async def health_check(self) -> bool:
        """Check if the search manager is healthy.

        Only the document store is required; semantic search degrades
        without the vector index or embedding provider.
        """
        components = await self.component_health()
        if not components["vector_index"]:
            logger.warning("Vector index unhealthy, semantic search will degrade")
        return components["document_store"]

    async def cleanup(self) -> None:
        """Cleanup resources."""
        try:
            if self.analytics_sink is not None:
                with suppress(Exception):
                    self.analytics_sink.close()

            if self.embedding_provider is not None:
                await self.embedding_provider.close()

            if self.vector_index is not None:
                await self.vector_index.close()

            if self.document_store is not None:
                await self.document_store.close()

            logger.info("Search manager cleanup completed")

        except Exception as e:
            logger.error("Search manager cleanup failed", error=str(e))
