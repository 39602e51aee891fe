"""API routes for the search service."""

import time
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidRequest, SearchError
from ..hybrid.filters import parse_filters
from ..hybrid.search_manager import SearchManager
from ..models import SearchRequest, SearchStrategy
from ..runtime.metrics import MetricsCollector

logger = structlog.get_logger("search_service.api")

router = APIRouter()


class SearchRequestBody(BaseModel):
    """Request model for the search endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., description="Search query")
    filters: Optional[Dict[str, Any]] = Field(
        None, description="category, fileType, dateRange{start,end}, vaultScope"
    )
    strategy: str = Field("hybrid", description="lexical, semantic or hybrid")
    limit: Optional[int] = Field(None, description="Maximum number of results")
    offset: int = Field(0, description="Number of ranked results to skip")
    include_content: bool = Field(
        False, alias="includeContent", description="Return full extracted text"
    )


def get_search_manager(request: Request) -> SearchManager:
    """Get search manager from application state."""
    return request.app.state.search_manager


def get_metrics(request: Request) -> Optional[MetricsCollector]:
    """Get metrics collector from application state."""
    return getattr(request.app.state, "metrics_collector", None)


def error_response(error: Exception) -> JSONResponse:
    status_code = error.status_code if isinstance(error, SearchError) else 500
    message = str(error) if isinstance(error, SearchError) else "Internal server error"
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/search")
async def search(
    body: SearchRequestBody,
    vault_scope: Optional[str] = Header(None, alias="X-Vault-Scope"),
    search_manager: SearchManager = Depends(get_search_manager),
    metrics_collector: Optional[MetricsCollector] = Depends(get_metrics)
):
    """Perform a lexical, semantic or hybrid document search."""
    start_time = time.time()

    try:
        limit = body.limit if body.limit is not None else search_manager.config.vault_search_default_limit
        request = SearchRequest(
            query=body.query,
            filters=parse_filters(body.filters),
            strategy=SearchStrategy.parse(body.strategy),
            limit=limit,
            offset=body.offset,
            include_content=body.include_content,
        )
    except InvalidRequest as e:
        logger.info("Search rejected", query=body.query, error=str(e))
        if metrics_collector:
            metrics_collector.record_search_failure("invalid_request")
        return error_response(e)

    try:
        response = await search_manager.execute(request, scope=vault_scope)

    except SearchError as e:
        # Failure metrics for these are recorded by the orchestrator.
        if e.status_code < 500:
            logger.info("Search rejected", query=body.query, error=str(e))
        else:
            logger.error("Search failed", query=body.query, error=str(e))
        return error_response(e)

    except Exception as e:
        logger.exception("Unexpected search failure", query=body.query, error=str(e))
        if metrics_collector:
            metrics_collector.record_search_failure("internal_error")
        return error_response(e)

    logger.info(
        "Search completed",
        query=response.query,
        strategy_used=response.strategy_used.value,
        results_count=len(response.results),
        total_count=response.total_count,
        latency_ms=(time.time() - start_time) * 1000
    )
    return response.to_dict()
