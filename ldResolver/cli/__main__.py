from __future__ import annotations

"""Command line for serving and exercising the resolver."""

import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import BinaryIO

import click

from ldResolver import __version__
from ldResolver.config import ConfigError, HandlerConfig, load_handler_config
from ldResolver.resolver import NotApplicable, Resolved, ResourceResolver
from ldResolver.sparql import HttpSparqlClient, SparqlUnavailable

EXIT_RESOLVED = 0
EXIT_PASSTHROUGH = 1
EXIT_UPSTREAM_ERROR = 2

# Replaced in tests to route requests through a mock transport.
_client_factory = HttpSparqlClient


def _load_config(config_path: Path | None, endpoint: str | None) -> HandlerConfig:
    try:
        config = load_handler_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    if endpoint:
        config = replace(config, endpoint_url=endpoint)
    return config


async def _resolve(
    config: HandlerConfig,
    method: str,
    iri: str,
    accept: str | None,
    timeout: float,
    out: BinaryIO,
) -> int:
    client = _client_factory(config.endpoint_url, timeout=timeout)
    try:
        outcome = await ResourceResolver(config, client).resolve(method, iri, accept)
        if isinstance(outcome, Resolved):
            click.echo(f"status: {outcome.status}", err=True)
            for name, value in outcome.headers:
                click.echo(f"{name}: {value}", err=True)
            if outcome.body is not None:
                try:
                    async for chunk in outcome.body:
                        out.write(chunk)
                    out.flush()
                finally:
                    await outcome.aclose()
            return EXIT_RESOLVED
        if isinstance(outcome, NotApplicable):
            click.echo(f"passthrough: {outcome.reason}", err=True)
            return EXIT_PASSTHROUGH
        click.echo(f"upstream error: {outcome.status}", err=True)
        return EXIT_UPSTREAM_ERROR
    finally:
        await client.aclose()


@click.group()
@click.version_option(__version__)
@click.option("-v", "--verbose", is_flag=True, help="Log SPARQL queries.")
def cli(verbose: bool) -> None:
    """ldResolver command line."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@click.option("--host", default=None, help="Override LDRESOLVER_API_HOST")
@click.option("--port", type=int, default=None, help="Override LDRESOLVER_API_PORT")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Handler configuration YAML (overrides LDRESOLVER_CONFIG).",
)
@click.option("--endpoint", default=None, help="Override the SPARQL endpoint URL.")
def serve(host: str | None, port: int | None, config_path: Path | None, endpoint: str | None) -> None:
    """Serve the resolver API with uvicorn."""
    import uvicorn

    from service.api_server import create_app
    from service.api_server.config import ApiSettings

    settings = ApiSettings.from_env()
    if host:
        settings.host = host
    if port:
        settings.port = port
    if config_path:
        settings.handler_config_path = config_path
    config = _load_config(settings.handler_config_path, endpoint)
    app = create_app(settings, handler_config=config)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


@cli.command()
@click.argument("iri")
@click.option(
    "--method",
    type=click.Choice(["GET", "HEAD"], case_sensitive=False),
    default="GET",
    show_default=True,
)
@click.option("--accept", default=None, help="Accept header forwarded to the endpoint.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Handler configuration YAML (overrides LDRESOLVER_CONFIG).",
)
@click.option("--endpoint", default=None, help="Override the SPARQL endpoint URL.")
@click.option("--timeout", type=float, default=30.0, show_default=True)
def resolve(
    iri: str,
    method: str,
    accept: str | None,
    config_path: Path | None,
    endpoint: str | None,
    timeout: float,
) -> None:
    """Resolve IRI once and write the graph to stdout."""
    config = _load_config(config_path, endpoint)
    if not config.endpoint_is_absolute:
        raise click.UsageError(
            f"SPARQL endpoint {config.endpoint_url!r} is relative; pass --endpoint"
        )
    out = click.get_binary_stream("stdout")
    try:
        code = asyncio.run(_resolve(config, method.upper(), iri, accept, timeout, out))
    except SparqlUnavailable as exc:
        raise click.ClickException(str(exc)) from exc
    raise SystemExit(code)


@cli.command(name="config")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Handler configuration YAML (overrides LDRESOLVER_CONFIG).",
)
def show_config(config_path: Path | None) -> None:
    """Print the effective handler configuration as JSON."""
    config = _load_config(config_path, None)
    click.echo(json.dumps(config.redacted(), sort_keys=True, indent=2))


def main() -> None:  # pragma: no cover - CLI entrypoint
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
