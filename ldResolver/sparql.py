from __future__ import annotations

"""SPARQL protocol client used by the resource resolver."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Iterable, Mapping, Protocol, Sequence

import httpx

logger = logging.getLogger(__name__)

RESULTS_JSON = "application/sparql-results+json"
DEFAULT_GRAPH_ACCEPT = "application/n-triples"


class SparqlError(RuntimeError):
    """Raised when the SPARQL endpoint answers with a non-200 status."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class SparqlUnavailable(SparqlError):
    """Raised when the endpoint cannot be reached at all."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=None)


@dataclass(slots=True)
class GraphStream:
    """Streamed result of a graph query.

    ``headers`` are the upstream response headers in order. ``encoded`` is true
    when the upstream applied a content encoding that the client removed while
    reading ``body``.
    """

    status: int
    headers: Sequence[tuple[str, str]]
    body: AsyncIterator[bytes] | None
    encoded: bool = False
    _close: Callable[[], Awaitable[None]] | None = field(default=None, repr=False)

    async def aclose(self) -> None:
        if self._close is not None:
            await self._close()


class SparqlClient(Protocol):
    async def ask(self, query: str, *, headers: Mapping[str, str] | None = None) -> bool:
        ...

    async def construct(
        self,
        query: str,
        *,
        headers: Mapping[str, str] | None = None,
        accept: str | None = None,
    ) -> GraphStream:
        ...


class HttpSparqlClient:
    """SPARQL 1.1 protocol over HTTP GET with a pooled ``httpx`` client."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 30.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http is None

    def bind(self, endpoint: str) -> "HttpSparqlClient":
        """Return a client for ``endpoint`` sharing this connection pool."""

        return HttpSparqlClient(endpoint, http=self._http)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _request(self, query: str, accept: str, headers: Mapping[str, str] | None) -> httpx.Request:
        merged = dict(headers or {})
        merged["Accept"] = accept
        return self._http.build_request(
            "GET", self.endpoint, params={"query": query}, headers=merged
        )

    async def _send(self, request: httpx.Request, *, stream: bool) -> httpx.Response:
        try:
            return await self._http.send(request, stream=stream)
        except httpx.HTTPError as exc:
            logger.warning("SPARQL endpoint %s unreachable: %s", self.endpoint, exc)
            raise SparqlUnavailable(f"SPARQL endpoint unreachable: {exc}") from exc

    async def ask(self, query: str, *, headers: Mapping[str, str] | None = None) -> bool:
        """Execute an ``ASK`` query and return the boolean result."""

        resp = await self._send(self._request(query, RESULTS_JSON, headers), stream=False)
        if resp.status_code != 200:
            raise SparqlError(f"SPARQL ASK failed: {resp.status_code}", status=resp.status_code)
        try:
            data = resp.json()
            return bool(data["boolean"])
        except (ValueError, KeyError, TypeError) as exc:
            raise SparqlError("Missing boolean result from SPARQL endpoint", status=502) from exc

    async def construct(
        self,
        query: str,
        *,
        headers: Mapping[str, str] | None = None,
        accept: str | None = None,
    ) -> GraphStream:
        """Execute a graph query and stream the serialized result."""

        request = self._request(query, accept or DEFAULT_GRAPH_ACCEPT, headers)
        resp = await self._send(request, stream=True)
        if resp.status_code != 200:
            await resp.aclose()
            raise SparqlError(
                f"SPARQL graph query failed: {resp.status_code}", status=resp.status_code
            )
        return GraphStream(
            status=resp.status_code,
            headers=list(resp.headers.multi_items()),
            body=_iter_body(resp),
            encoded="content-encoding" in resp.headers,
            _close=resp.aclose,
        )


async def _iter_body(resp: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in resp.aiter_bytes():
            yield chunk
    finally:
        await resp.aclose()


class StubSparqlClient:
    """Simple in-memory client for tests and smoke checks.

    ``resources`` maps an IRI (as embedded in the query) to existence, and
    ``graphs`` maps it to the bytes returned by a graph query. A query matches
    the first key it contains.
    """

    def __init__(
        self,
        resources: Mapping[str, bool] | None = None,
        graphs: Mapping[str, bytes] | None = None,
        *,
        content_type: str = DEFAULT_GRAPH_ACCEPT,
    ) -> None:
        self._resources = dict(resources or {})
        self._graphs = dict(graphs or {})
        self._content_type = content_type
        self.ask_calls: list[tuple[str, dict[str, str]]] = []
        self.construct_calls: list[tuple[str, dict[str, str], str | None]] = []

    def _match(self, query: str, keys: Iterable[str]) -> str | None:
        for key in sorted(keys, key=len, reverse=True):
            if key in query:
                return key
        return None

    async def ask(self, query: str, *, headers: Mapping[str, str] | None = None) -> bool:
        await asyncio.sleep(0)
        self.ask_calls.append((query, dict(headers or {})))
        key = self._match(query, self._resources)
        return bool(key and self._resources[key])

    async def construct(
        self,
        query: str,
        *,
        headers: Mapping[str, str] | None = None,
        accept: str | None = None,
    ) -> GraphStream:
        await asyncio.sleep(0)
        self.construct_calls.append((query, dict(headers or {}), accept))
        key = self._match(query, self._graphs)
        payload = self._graphs.get(key, b"") if key else b""

        async def body() -> AsyncIterator[bytes]:
            yield payload

        return GraphStream(
            status=200,
            headers=[("content-type", accept or self._content_type)],
            body=body(),
        )


__all__ = [
    "DEFAULT_GRAPH_ACCEPT",
    "GraphStream",
    "HttpSparqlClient",
    "SparqlClient",
    "SparqlError",
    "SparqlUnavailable",
    "StubSparqlClient",
]
