"""
FastAPI application factory and module-level app instance.

This module provides:
- create_app(): Factory function for creating FastAPI instances
- bootstrap(): Startup checks (cluster health, schema registration)
- app: Module-level instance for uvicorn (uvicorn api.app:app)
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from elasticsearch import Elasticsearch
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from config import Config
from config import config as global_config
from errors import InvalidFilter, SearchBackendError
from indexer import cluster_health, get_client, server_version
from schema import ensure_schema

from .models import HealthResponse
from .routes import build_router

logger = logging.getLogger(__name__)

LIVENESS_MESSAGE = "Search service is running."


def bootstrap(client: Elasticsearch, cfg: Config) -> list[str]:
    """
    Check the cluster and make sure the mode's indices exist.

    Returns:
        Names of indices created during this startup.

    Raises:
        SearchBackendError: The cluster is unreachable.
        SchemaError: An index could not be created.
    """
    status = cluster_health(client)
    logger.info("Elasticsearch cluster health: %s (version %s)", status, server_version(client))
    created = ensure_schema(client, cfg)
    logger.info("Indexes ensured.")
    return created


def _failure(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"success": False, "error": message})


def add_exception_handlers(app: FastAPI) -> None:
    """Map request-level failures to the {success: false, error} envelope."""

    @app.exception_handler(InvalidFilter)
    async def invalid_filter_handler(request: Request, exc: InvalidFilter) -> JSONResponse:
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        return _failure(str(exc))

    @app.exception_handler(SearchBackendError)
    async def backend_error_handler(request: Request, exc: SearchBackendError) -> JSONResponse:
        logger.error("Search backend failure on %s %s", request.method, request.url.path, exc_info=exc)
        return _failure(str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ())[1:]) or 'body'}: {err.get('msg', 'invalid')}"
            for err in exc.errors()
        )
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, problems)
        return _failure(f"Invalid request: {problems}")


def create_app(client: Elasticsearch | None = None, cfg: Config | None = None) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    Args:
        client: Elasticsearch client to share across requests; built from cfg when omitted.
        cfg: Settings; defaults to the global configuration.

    Returns:
        FastAPI: Configured application. Startup fails (and the server never
        listens) if the cluster is unreachable or the schema cannot be ensured.
    """
    cfg = cfg or global_config
    owns_client = client is None
    es = client if client is not None else get_client(cfg.ELASTICSEARCH_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await run_in_threadpool(bootstrap, es, cfg)
        except Exception:
            logger.exception("Startup error")
            raise
        yield
        if owns_client:
            es.close()

    app = FastAPI(
        title="Federated Search API",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.es_client = es
    app.state.settings = cfg

    logger.info(f"Elasticsearch URL: {cfg.ELASTICSEARCH_URL}")
    logger.info(f"Service mode: {cfg.SERVICE_MODE} (indices: {', '.join(cfg.index_names())})")

    # Add CORS middleware only if origins are configured
    origins = cfg.API_CORS_ORIGINS or []
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )

    add_exception_handlers(app)
    app.include_router(build_router(cfg.SERVICE_MODE))

    @app.get("/", response_class=PlainTextResponse, tags=["infra"])
    def root() -> str:
        """Liveness string."""
        return LIVENESS_MESSAGE

    @app.get("/healthz", response_model=HealthResponse, tags=["infra"])
    def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    return app


# For `uvicorn api.app:app --reload`
app = create_app()
