from __future__ import annotations

"""Per-request resolution log and default security headers."""

import time
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ldResolver.observability.config import RequestLogSettings
from ldResolver.utils.log_json import JsonLogger, ResolutionEvent

SECURITY_HEADERS = (
    ("Cache-Control", "no-store"),
    ("X-Content-Type-Options", "nosniff"),
    ("Referrer-Policy", "no-referrer"),
)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Log what the resolver did with each request.

    Security headers are only added when the response does not carry them,
    so caching headers relayed from the SPARQL endpoint are kept.
    """

    def __init__(self, app: ASGIApp, *, logger: JsonLogger, settings: RequestLogSettings) -> None:
        super().__init__(app)
        self._logger = logger
        self._settings = settings

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            self._record(request, 500, start, error=repr(exc))
            raise
        for name, value in SECURITY_HEADERS:
            response.headers.setdefault(name, value)
        self._record(request, response.status_code, start)
        return response

    def _record(self, request: Request, status: int, start: float, *, error: str | None = None) -> None:
        if not self._settings.enabled:
            return
        state = request.state
        self._logger.log(
            ResolutionEvent(
                trace_id=getattr(state, "trace_id", ""),
                method=request.method,
                path=request.url.path,
                status=status,
                latency_ms=round((time.perf_counter() - start) * 1000, 3),
                outcome=getattr(state, "resolution", None),
                iri=getattr(state, "iri", None),
                endpoint=getattr(state, "endpoint", None),
                accept=request.headers.get("accept"),
                client=request.client.host if request.client else None,
                error=error,
            )
        )


__all__ = ["ObservabilityMiddleware", "SECURITY_HEADERS"]
