from __future__ import annotations

"""Application factory for the Linked-Data resolver API."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ldResolver import __version__ as package_version
from ldResolver.config import HandlerConfig, load_handler_config
from ldResolver.observability import load_observability_config
from ldResolver.sparql import HttpSparqlClient, SparqlClient
from ldResolver.utils.log_json import JsonLogger

from .config import ApiSettings
from .health import router as health_router
from .logging_integration import ObservabilityMiddleware
from .middleware import RequestContextMiddleware, SparqlResourceMiddleware
from .schemas import ProblemDetails


def create_app(
    settings: Optional[ApiSettings] = None,
    *,
    handler_config: Optional[HandlerConfig] = None,
    sparql_client: Optional[SparqlClient] = None,
) -> FastAPI:
    settings = settings or ApiSettings.from_env()
    handler_config = handler_config or load_handler_config(settings.handler_config_path)
    if sparql_client is None:
        sparql_client = HttpSparqlClient(
            handler_config.endpoint_url, timeout=settings.request_timeout_seconds
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        # Pooled async HTTP clients are closed on shutdown.
        close_hook = getattr(sparql_client, "aclose", None)
        if callable(close_hook):
            await close_hook()

    app = FastAPI(
        title="ldResolver",
        version=package_version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        default_response_class=JSONResponse,
        lifespan=lifespan,
    )

    observability = load_observability_config()
    json_logger = JsonLogger(
        "api",
        max_field_bytes=observability.request_log.max_field_bytes,
        sample_rate=observability.request_log.sample_rate,
        log_passthrough=observability.request_log.log_passthrough,
    )

    # Starlette runs the last middleware added first.
    app.add_middleware(
        SparqlResourceMiddleware,
        config=handler_config,
        client=sparql_client,
        public_base=settings.public_base,
        reserved_paths=settings.reserved_paths,
    )
    app.add_middleware(
        ObservabilityMiddleware, logger=json_logger, settings=observability.request_log
    )
    app.add_middleware(RequestContextMiddleware)

    app.state.settings = settings
    app.state.handler_config = handler_config
    app.state.sparql_client = sparql_client
    app.state.observability = observability
    app.state.request_logger = json_logger

    app.include_router(health_router)

    @app.exception_handler(HTTPException)
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
        problem = ProblemDetails.for_status(
            exc.status_code,
            detail=exc.detail if isinstance(exc.detail, str) else None,
            instance=str(request.url),
            trace_id=getattr(request.state, "trace_id", ""),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=problem.model_dump(exclude_none=True),
            headers=dict(exc.headers or {}),
            media_type="application/problem+json",
        )

    return app


__all__ = ["create_app"]
