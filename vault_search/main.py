"""Vault search service application."""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vaultlibs.common.config import SearchConfig
from vaultlibs.common.logging import configure_logging, request_context

from .api.routes import router as api_router
from .hybrid.search_manager import SearchManager
from .runtime.metrics import get_metrics_collector

logger = structlog.get_logger("search_service")

SERVICE_NAME = "search-service"
SERVICE_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the search manager on startup and release it on shutdown."""
    config = SearchConfig()
    configure_logging(SERVICE_NAME, config.vault_log_level, config.vault_log_format, env=config.vault_env)

    app.state.metrics_collector = get_metrics_collector(SERVICE_NAME)
    app.state.search_manager = SearchManager(config, metrics=app.state.metrics_collector)
    await app.state.search_manager.initialize()
    logger.info("Search service started", port=config.vault_search_port, store_backend=config.vault_store_backend)

    yield

    logger.info("Shutting down search service")
    await app.state.search_manager.cleanup()


app = FastAPI(
    title="Vault Search Service",
    description="Hybrid lexical and semantic search over vault documents",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies get the same ``{"error": ...}`` shape as rejected searches."""
    errors = exc.errors()
    if not errors:
        return JSONResponse(status_code=400, content={"error": "Invalid request"})

    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse(status_code=400, content={"error": message})


@app.middleware("http")
async def observe_request(request: Request, call_next):
    """Tag logs with a request id, time the request and record HTTP metrics."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    start_time = time.time()

    with request_context(request_id=request_id, path=request.url.path):
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("Unhandled request error", error=str(e))
            response = JSONResponse(status_code=500, content={"error": "Internal server error"})

    duration = time.time() - start_time
    response.headers["X-Process-Time"] = str(duration)
    response.headers["X-Request-ID"] = request_id

    metrics_collector = getattr(request.app.state, "metrics_collector", None)
    if metrics_collector is not None:
        metrics_collector.record_http_request(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code,
            duration=duration
        )
    return response


@app.get("/health")
async def health_check(request: Request):
    """Healthy while the document store answers; lists each dependency."""
    search_manager = getattr(request.app.state, "search_manager", None)
    if search_manager is None:
        return JSONResponse(status_code=503, content={"status": "starting", "service": SERVICE_NAME})

    components = await search_manager.component_health()
    healthy = components["document_store"]
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "service": SERVICE_NAME,
        "components": components,
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@app.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint."""
    metrics_collector = getattr(request.app.state, "metrics_collector", None)
    if metrics_collector is None:
        return Response(content="# No metrics available\n", media_type="text/plain")
    return Response(content=metrics_collector.get_metrics(), media_type="text/plain")


@app.get("/")
async def root():
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "metrics": "/metrics",
            "search": "/api/v1/search",
        },
    }


if __name__ == "__main__":
    uvicorn.run(
        "vault_search.main:app",
        host="0.0.0.0",
        port=SearchConfig().vault_search_port,
        log_level="info"
    )
