"""Search orchestrator: validates a request, runs the matchers it selects,
fuses their output and assembles the response.

Failure semantics
- Validation errors raise ``InvalidRequest`` before any matcher runs.
- The lexical path is authoritative: its failure fails the request with
  ``RetrievalFailed`` and cancels any in-flight semantic work.
- The semantic path degrades to empty results; in hybrid mode the response
  then reports ``strategy_used = lexical``.
- Analytics are fire-and-forget and never affect the response.
"""

import asyncio
import time
from typing import Optional, Tuple

import structlog

from vaultlibs.common.events import AnalyticsSink, NullAnalyticsSink, SearchUsageEvent
from vaultlibs.common.logging import log_performance
from vaultlibs.common.metrics import MetricsCollector

from ..errors import InvalidRequest, RetrievalFailed
from ..models import SearchRequest, SearchResponse, SearchStrategy
from ..ranking.enrichment import SearchEnricher, result_quality, search_tips
from ..ranking.fusion import ResultFusion, ResultPage, paginate
from .lexical import LexicalMatcher
from .semantic import SemanticMatcher

logger = structlog.get_logger("search_service.orchestrator")


class SearchOrchestrator:
    """Executes one search request end to end."""

    def __init__(
        self,
        lexical: LexicalMatcher,
        semantic: SemanticMatcher,
        fusion: Optional[ResultFusion] = None,
        enricher: Optional[SearchEnricher] = None,
        analytics_sink: Optional[AnalyticsSink] = None,
        request_timeout: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        """Wire the orchestrator.

        Parameters
        - lexical / semantic: The two retrieval paths
        - request_timeout: Deadline in seconds for the lexical path; ``None``
          disables it
        - analytics_sink: Receives one ``SearchUsageEvent`` per request
        """
        self.lexical = lexical
        self.semantic = semantic
        self.fusion = fusion or ResultFusion()
        self.enricher = enricher or SearchEnricher()
        self.analytics_sink = analytics_sink or NullAnalyticsSink()
        self.request_timeout = request_timeout
        self.metrics = metrics

    async def execute(self, request: SearchRequest, scope: Optional[str] = None) -> SearchResponse:
        """Run ``request`` on behalf of the identity whose personal scope is ``scope``."""
        start_time = time.time()

        try:
            request.validate()
        except InvalidRequest as e:
            logger.info("Rejected search request", error=str(e))
            if self.metrics:
                self.metrics.record_search_failure("invalid_request")
            raise

        strategy = SearchStrategy.parse(request.strategy)
        query = request.normalized_query

        try:
            page, strategy_used = await self._dispatch(strategy, query, request, scope)
        except RetrievalFailed:
            if self.metrics:
                self.metrics.record_search_failure("retrieval_failed")
            raise

        suggestions = await self.enricher.suggestions(query, page.results, scope)
        duration = time.time() - start_time

        semantic_available = self.semantic.available
        if strategy != SearchStrategy.LEXICAL:
            semantic_available = semantic_available and not page.degraded

        response = SearchResponse(
            results=page.results,
            total_count=page.total_count,
            strategy_used=strategy_used,
            query=query,
            filters=request.filters,
            suggestions=suggestions,
            metadata={
                "processing_time_ms": int(duration * 1000),
                "result_quality_score": result_quality(page.results),
                "search_tips": search_tips(query, page.total_count),
                "semantic_available": semantic_available,
            },
            include_content=request.include_content,
        )

        self._emit_usage(response, scope)

        if self.metrics:
            self.metrics.record_search(strategy_used.value, duration, len(page.results))

        log_performance(
            "search",
            duration * 1000,
            strategy=strategy.value,
            strategy_used=strategy_used.value,
            results_count=len(page.results),
            total_count=page.total_count
        )
        return response

    async def _dispatch(
        self,
        strategy: SearchStrategy,
        query: str,
        request: SearchRequest,
        scope: Optional[str]
    ) -> Tuple[ResultPage, SearchStrategy]:
        if strategy == SearchStrategy.LEXICAL:
            page = await self._run_lexical(query, request, scope, paginate_results=True)
            return page, SearchStrategy.LEXICAL

        if strategy == SearchStrategy.SEMANTIC:
            page = await self.semantic.search(
                query, request.filters, request.limit, request.offset, scope, paginate_results=True
            )
            return page, SearchStrategy.SEMANTIC

        return await self._run_hybrid(query, request, scope)

    async def _run_lexical(
        self,
        query: str,
        request: SearchRequest,
        scope: Optional[str],
        paginate_results: bool
    ) -> ResultPage:
        search = self.lexical.search(
            query, request.filters, request.limit, request.offset, scope, paginate_results=paginate_results
        )
        if self.request_timeout is None:
            return await search
        try:
            return await asyncio.wait_for(search, timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Lexical search exceeded deadline", timeout=self.request_timeout)
            raise RetrievalFailed(f"Search exceeded {self.request_timeout}s deadline") from e

    async def _run_hybrid(
        self,
        query: str,
        request: SearchRequest,
        scope: Optional[str]
    ) -> Tuple[ResultPage, SearchStrategy]:
        semantic_task = asyncio.create_task(
            self.semantic.search(
                query, request.filters, request.limit, request.offset, scope, paginate_results=False
            )
        )

        try:
            lexical_page = await self._run_lexical(query, request, scope, paginate_results=False)
        except BaseException:
            semantic_task.cancel()
            await asyncio.wait([semantic_task])
            raise

        semantic_page = await semantic_task

        if semantic_page.degraded:
            page = paginate(lexical_page.results, request.limit, request.offset)
            page.total_count = lexical_page.total_count
            page.degraded = True
            return page, SearchStrategy.LEXICAL

        page = self.fusion.fuse(
            lexical_page.results,
            semantic_page.results,
            request.limit,
            request.offset,
            lexical_ids=lexical_page.matched_ids,
        )
        return page, SearchStrategy.HYBRID

    def _emit_usage(self, response: SearchResponse, scope: Optional[str]) -> None:
        event = SearchUsageEvent(
            timestamp=0,
            event_type="",
            query=response.query,
            strategy=response.strategy_used.value,
            results_count=len(response.results),
            total_count=response.total_count,
            filters=response.filters.to_dict(),
            scope=scope,
        )
        try:
            self.analytics_sink.record(event)
        except Exception as e:
            logger.warning("Failed to record search usage", error=str(e))
