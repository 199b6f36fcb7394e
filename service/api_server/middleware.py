from __future__ import annotations

"""Custom ASGI middleware for the resolver API."""

import json
import logging
import time
import uuid
from typing import Awaitable, Callable
from urllib.parse import unquote

from fastapi import Request, Response
from starlette.background import BackgroundTask
from starlette.datastructures import MutableHeaders
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import StreamingResponse
from starlette.types import ASGIApp

from ldResolver.config import HandlerConfig
from ldResolver.resolver import (
    HANDLED_METHODS,
    NotApplicable,
    Resolved,
    ResourceResolver,
    UpstreamError,
)
from ldResolver.sparql import SparqlClient, SparqlUnavailable

from .schemas.errors import ProblemDetails


class RequestContextMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self._logger = logging.getLogger("ldresolver.api")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        trace_id = uuid.uuid4().hex
        start = time.perf_counter()
        request.state.trace_id = trace_id
        request.state.resolution = None
        request.state.iri = None
        request.state.endpoint = None
        try:
            response = await call_next(request)
        except Exception as exc:
            problem = ProblemDetails.for_status(
                500,
                kind="internal",
                detail=str(exc),
                instance=str(request.url),
                trace_id=trace_id,
            )
            self._logger.exception(
                "Unhandled error", extra={"trace_id": trace_id, "path": request.url.path}
            )
            return _problem_response(status=500, problem=problem, trace_id=trace_id)
        duration = time.perf_counter() - start
        _inject_headers(response.headers, trace_id, duration)
        return response


class SparqlResourceMiddleware(BaseHTTPMiddleware):
    """Answer ``GET``/``HEAD`` requests for resources found in the triple store.

    Requests the resolver has no opinion on continue down the stack. When the
    existence query fails upstream, the failing status is only sent if no
    later handler answers the request.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        config: HandlerConfig,
        client: SparqlClient,
        public_base: str | None = None,
        reserved_paths: tuple[str, ...] = (),
    ) -> None:
        super().__init__(app)
        self._config = config
        self._client = client
        self._resolver = ResourceResolver(config, client)
        self._public_base = public_base
        self._reserved = tuple(reserved_paths)
        self._logger = logging.getLogger("ldresolver.api.resolver")

    def _resolver_for(self, request: Request) -> ResourceResolver:
        bind = getattr(self._client, "bind", None)
        if self._config.endpoint_is_absolute or not callable(bind):
            return self._resolver
        endpoint = self._config.endpoint_for(str(request.url))
        return ResourceResolver(self._config, bind(endpoint))

    def _is_reserved(self, path: str) -> bool:
        return any(path == prefix or path.startswith(prefix + "/") for prefix in self._reserved)

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.method.upper() not in HANDLED_METHODS or self._is_reserved(request.url.path):
            return await call_next(request)
        iri = request_iri(request, self._public_base)
        resolver = self._resolver_for(request)
        request.state.iri = iri
        request.state.endpoint = resolver.endpoint
        try:
            outcome = await resolver.resolve(request.method, iri, request.headers.get("accept"))
        except SparqlUnavailable as exc:
            request.state.resolution = "unavailable"
            self._logger.warning("SPARQL endpoint unavailable for <%s>: %s", iri, exc)
            problem = ProblemDetails.for_status(
                502,
                kind="upstream",
                detail="The SPARQL endpoint could not be reached",
                instance=str(request.url),
                trace_id=getattr(request.state, "trace_id", None),
            )
            return _problem_response(status=502, problem=problem)

        if isinstance(outcome, Resolved):
            request.state.resolution = "resolved"
            if outcome.body is None:
                return Response(status_code=outcome.status)
            response = StreamingResponse(
                outcome.body,
                status_code=outcome.status,
                background=BackgroundTask(outcome.aclose),
            )
            response.raw_headers = [
                (name.lower().encode("latin-1"), value.encode("latin-1"))
                for name, value in outcome.headers
            ]
            return response

        if isinstance(outcome, NotApplicable):
            request.state.resolution = outcome.reason
            return await call_next(request)

        request.state.resolution = "upstream_error"
        response = await call_next(request)
        if isinstance(outcome, UpstreamError) and response.status_code == 404:
            problem = ProblemDetails.for_status(
                outcome.status,
                kind="upstream",
                detail="The SPARQL endpoint rejected the existence query",
                instance=str(request.url),
                trace_id=getattr(request.state, "trace_id", None),
            )
            return _problem_response(status=outcome.status, problem=problem)
        return response


def request_iri(request: Request, public_base: str | None = None) -> str:
    """Return the resource IRI named by ``request`` (query string excluded)."""

    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = unquote(raw_path.decode("utf-8", errors="replace"))
    else:
        path = request.url.path
    base = public_base or f"{request.url.scheme}://{request.url.netloc}"
    return base.rstrip("/") + path


def _inject_headers(headers: MutableHeaders, trace_id: str, duration: float) -> None:
    headers["X-Request-Id"] = trace_id
    headers["Server-Timing"] = f"app;dur={duration * 1000:.2f}"


def _problem_response(
    *,
    status: int,
    problem: ProblemDetails,
    trace_id: str | None = None,
) -> Response:
    payload = problem.model_dump(exclude_none=True)
    content = json.dumps(payload)
    headers = {
        "Content-Type": "application/problem+json",
        "Cache-Control": "no-store",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "no-referrer",
    }
    if trace_id:
        headers["X-Request-Id"] = trace_id
    return Response(content=content, status_code=status, headers=headers)


__all__ = [
    "RequestContextMiddleware",
    "SparqlResourceMiddleware",
    "request_iri",
]
