from __future__ import annotations

"""Resolve resource IRIs to RDF graphs held behind a SPARQL endpoint.

Each request runs at most two queries against the endpoint: an ``ASK`` to
check that the resource (or container) exists, then a graph query whose result
is streamed back unchanged. The resolver never writes a response itself; it
returns one of three outcomes and leaves dispatch to the host:

``Resolved``
    the resource exists; relay ``status``, ``headers`` and ``body``.
``NotApplicable``
    the resolver has no opinion; the next handler should answer.
``UpstreamError``
    the existence query failed with ``status``.
"""

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Sequence, Union
from urllib.parse import quote

from .config import HandlerConfig
from .sparql import SparqlClient, SparqlError, SparqlUnavailable

logger = logging.getLogger(__name__)

HANDLED_METHODS = frozenset({"GET", "HEAD"})

# Characters left intact by ECMAScript ``encodeURI``.
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"

NOT_APPLICABLE_METHOD = "method"
NOT_APPLICABLE_NOT_FOUND = "not_found"
NOT_APPLICABLE_GRAPH_FAILED = "graph_failed"
NOT_APPLICABLE_NO_STREAM = "no_stream"


@dataclass(frozen=True, slots=True)
class Resolved:
    status: int
    headers: tuple[tuple[str, str], ...] = ()
    body: AsyncIterator[bytes] | None = None
    close: Callable[[], Awaitable[None]] | None = field(default=None, repr=False)

    async def aclose(self) -> None:
        if self.close is not None:
            await self.close()


@dataclass(frozen=True, slots=True)
class NotApplicable:
    reason: str


@dataclass(frozen=True, slots=True)
class UpstreamError:
    status: int


Resolution = Union[Resolved, NotApplicable, UpstreamError]


def encode_iri(iri: str) -> str:
    """Percent-encode ``iri`` for embedding in a query string."""

    return quote(iri, safe=_URI_SAFE)


def relay_headers(headers: Sequence[tuple[str, str]], *, encoded: bool) -> tuple[tuple[str, str], ...]:
    """Drop the headers describing a transport encoding the client removed."""

    dropped = {"content-encoding"}
    if encoded:
        dropped.add("content-length")
    return tuple((name, value) for name, value in headers if name.lower() not in dropped)


class ResourceResolver:
    def __init__(self, config: HandlerConfig, client: SparqlClient) -> None:
        self.config = config
        self.templates = config.templates
        self._client = client

    @property
    def endpoint(self) -> str:
        return getattr(self._client, "endpoint", None) or self.config.endpoint_url

    def is_container(self, iri: str) -> bool:
        return self.config.resource_no_slash and iri.endswith("/")

    def query_headers(self) -> dict[str, str]:
        credentials = self.config.authentication
        if credentials is None:
            return {}
        return {"Authorization": credentials.header_value()}

    def exists_query(self, iri: str) -> str:
        return self.templates.exists_for(self.is_container(iri)).render(iri)

    def graph_query(self, iri: str) -> str:
        return self.templates.graph_for(self.is_container(iri)).render(iri)

    async def resolve(self, method: str, iri: str, accept: str | None = None) -> Resolution:
        method = method.upper()
        if method not in HANDLED_METHODS:
            return NotApplicable(NOT_APPLICABLE_METHOD)

        iri = encode_iri(iri)
        logger.debug("handle %s request for IRI <%s>", method, iri)

        query = self.exists_query(iri)
        logger.debug("SPARQL exists query for IRI <%s> : %s", iri, query)
        try:
            exists = await self._client.ask(query, headers=self.query_headers())
        except SparqlUnavailable:
            raise
        except SparqlError as exc:
            if exc.status is None:
                raise
            logger.info("Exists query for <%s> failed with status %s", iri, exc.status)
            return UpstreamError(exc.status)
        if not exists:
            return NotApplicable(NOT_APPLICABLE_NOT_FOUND)
        if method == "HEAD":
            return Resolved(status=200)

        query = self.graph_query(iri)
        logger.debug("SPARQL query for IRI <%s> : %s", iri, query)
        try:
            result = await self._client.construct(
                query, headers=self.query_headers(), accept=accept
            )
        except SparqlUnavailable:
            raise
        except SparqlError as exc:
            if exc.status is None:
                raise
            logger.info("Graph query for <%s> failed with status %s", iri, exc.status)
            return NotApplicable(NOT_APPLICABLE_GRAPH_FAILED)
        if result.body is None:
            await result.aclose()
            return NotApplicable(NOT_APPLICABLE_NO_STREAM)
        return Resolved(
            status=200,
            headers=relay_headers(result.headers, encoded=result.encoded),
            body=result.body,
            close=result.aclose,
        )


__all__ = [
    "HANDLED_METHODS",
    "NotApplicable",
    "Resolution",
    "Resolved",
    "ResourceResolver",
    "UpstreamError",
    "encode_iri",
    "relay_headers",
]
