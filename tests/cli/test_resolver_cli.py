from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from ldResolver.cli import __main__ as cli_main
from ldResolver.sparql import HttpSparqlClient

GRAPH = b"<http://ex/a> <http://ex/p> <http://ex/o> .\n"


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for name in (
        "LDRESOLVER_CONFIG",
        "LDRESOLVER_ENDPOINT_URL",
        "LDRESOLVER_SPARQL_USER",
        "LDRESOLVER_SPARQL_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def requests_seen(monkeypatch) -> list[httpx.Request]:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        query = request.url.params["query"]
        if query.startswith("ASK"):
            status = 500 if "broken" in query else 200
            return httpx.Response(status, json={"boolean": "http://ex/a" in query})
        return httpx.Response(200, content=GRAPH, headers={"Content-Type": "application/n-triples"})

    def factory(endpoint: str, *, timeout: float = 30.0) -> HttpSparqlClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler), timeout=timeout)
        return HttpSparqlClient(endpoint, http=http)

    monkeypatch.setattr(cli_main, "_client_factory", factory)
    return seen


def test_resolve_writes_graph(requests_seen):
    runner = CliRunner()
    result = runner.invoke(
        cli_main.cli,
        ["resolve", "http://ex/a", "--endpoint", "http://store.example/sparql"],
    )
    assert result.exit_code == 0, result.output
    assert GRAPH.decode("utf-8") in result.output
    assert "status: 200" in result.output
    assert len(requests_seen) == 2


def test_resolve_head_skips_graph(requests_seen):
    runner = CliRunner()
    result = runner.invoke(
        cli_main.cli,
        ["resolve", "http://ex/a", "--method", "head", "--endpoint", "http://store.example/sparql"],
    )
    assert result.exit_code == 0, result.output
    assert len(requests_seen) == 1


def test_resolve_not_found_exit_code(requests_seen):
    runner = CliRunner()
    result = runner.invoke(
        cli_main.cli,
        ["resolve", "http://ex/missing", "--endpoint", "http://store.example/sparql"],
    )
    assert result.exit_code == cli_main.EXIT_PASSTHROUGH
    assert "passthrough: not_found" in result.output


def test_resolve_upstream_error_exit_code(requests_seen):
    runner = CliRunner()
    result = runner.invoke(
        cli_main.cli,
        ["resolve", "http://ex/broken", "--endpoint", "http://store.example/sparql"],
    )
    assert result.exit_code == cli_main.EXIT_UPSTREAM_ERROR
    assert "upstream error: 500" in result.output


def test_resolve_requires_absolute_endpoint(requests_seen):
    runner = CliRunner()
    result = runner.invoke(cli_main.cli, ["resolve", "http://ex/a"])
    assert result.exit_code == 2
    assert "relative" in result.output
    assert requests_seen == []


def test_resolve_uses_config_file_credentials(requests_seen, tmp_path: Path):
    path = tmp_path / "handler.yml"
    path.write_text(
        "endpointUrl: http://store.example/sparql\n"
        "authentication: {user: alice, password: secret}\n",
        encoding="utf-8",
    )
    runner = CliRunner()
    result = runner.invoke(cli_main.cli, ["resolve", "http://ex/a", "--config", str(path)])
    assert result.exit_code == 0, result.output
    assert requests_seen[0].headers["Authorization"] == "Basic YWxpY2U6c2VjcmV0"


def test_config_command_redacts_password(tmp_path: Path):
    path = tmp_path / "handler.yml"
    path.write_text(
        "endpointUrl: http://store.example/sparql\n"
        "authentication: {user: alice, password: secret}\n",
        encoding="utf-8",
    )
    runner = CliRunner()
    result = runner.invoke(cli_main.cli, ["config", "--config", str(path)])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["endpoint_url"] == "http://store.example/sparql"
    assert data["authentication"] == {"user": "alice", "password": "***"}
    assert "secret" not in result.output
