from __future__ import annotations

import gzip
import json
from typing import Callable
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi.testclient import TestClient

from ldResolver.config import HandlerConfig
from ldResolver.sparql import HttpSparqlClient
from service.api_server import create_app
from service.api_server.config import ApiSettings

ENDPOINT = "http://store.example/sparql"


class FakeStore:
    """SPARQL endpoint double served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.resources: dict[str, bytes] = {}
        self.ask_status = 200
        self.graph_status = 200
        self.graph_headers: dict[str, str] = {}
        self.gzip = False
        self.requests: list[httpx.Request] = []

    def queries(self, kind: str) -> list[str]:
        found = []
        for request in self.requests:
            query = parse_qs(urlsplit(str(request.url)).query)["query"][0]
            if query.startswith(kind):
                found.append(query)
        return found

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        query = parse_qs(urlsplit(str(request.url)).query)["query"][0]
        match = next((iri for iri in self.resources if iri in query), None)
        if query.startswith("ASK"):
            if self.ask_status != 200:
                return httpx.Response(self.ask_status, text="upstream failure")
            return httpx.Response(200, content=json.dumps({"boolean": match is not None}))
        if self.graph_status != 200:
            return httpx.Response(self.graph_status, text="graph failure")
        headers = {"Content-Type": request.headers.get("accept", "application/n-triples")}
        headers.update(self.graph_headers)
        body = self.resources.get(match, b"")
        if self.gzip:
            body = gzip.compress(body)
            headers["Content-Encoding"] = "gzip"
        return httpx.Response(200, content=body, headers=headers)


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def make_client(store: FakeStore) -> Callable[..., TestClient]:
    def factory(**config) -> TestClient:
        config.setdefault("endpoint_url", ENDPOINT)
        handler_config = HandlerConfig(**config)
        http = httpx.AsyncClient(transport=httpx.MockTransport(store.handler))
        sparql = HttpSparqlClient(handler_config.endpoint_url, http=http)
        settings = ApiSettings(host="testserver", port=8080)
        app = create_app(settings, handler_config=handler_config, sparql_client=sparql)
        return TestClient(app)

    return factory


@pytest.fixture()
def client(make_client) -> TestClient:
    return make_client()
