from __future__ import annotations

"""CLI entrypoint exposing ``main`` for console_scripts."""

__all__ = ["main"]


def main() -> None:  # pragma: no cover - thin wrapper
    from .__main__ import cli as _cli

    _cli()
