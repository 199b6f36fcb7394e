from __future__ import annotations

import pytest

TURTLE = b"<http://testserver/resource/a> <http://ex/p> <http://ex/o> .\n"


@pytest.mark.parametrize("path", ["/health", "/resource/a", "/resource/missing"])
def test_security_headers_present(client, store, path: str) -> None:
    store.resources["http://testserver/resource/a"] = TURTLE
    res = client.get(path)
    assert res.headers["Cache-Control"] == "no-store"
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["Referrer-Policy"] == "no-referrer"


def test_request_context_headers(client, store) -> None:
    store.resources["http://testserver/resource/a"] = TURTLE
    res = client.get("/resource/a")
    assert len(res.headers["X-Request-Id"]) == 32
    assert res.headers["Server-Timing"].startswith("app;dur=")


def test_problem_details_shape(client) -> None:
    res = client.get("/resource/missing")
    assert res.status_code == 404
    body = res.json()
    assert body["title"] == "Not Found"
    assert body["type"].endswith("/http")
    assert body["instance"] == "http://testserver/resource/missing"
    assert body["trace_id"] == res.headers["X-Request-Id"]
