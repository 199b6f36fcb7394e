from __future__ import annotations

"""Runtime settings for the resolver API."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from ldResolver.config import CONFIG_ENV

DEFAULT_RESERVED_PATHS = ("/health",)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(slots=True)
class ApiSettings:
    host: str = "127.0.0.1"
    port: int = 8080
    request_timeout_seconds: float = 30.0
    handler_config_path: Path | None = None
    public_base: str | None = None
    reserved_paths: tuple[str, ...] = field(default=DEFAULT_RESERVED_PATHS)

    @classmethod
    def from_env(cls) -> "ApiSettings":
        config_path = os.getenv(CONFIG_ENV)
        public_base = os.getenv("LDRESOLVER_PUBLIC_BASE") or None
        return cls(
            host=os.getenv("LDRESOLVER_API_HOST", "127.0.0.1"),
            port=_env_int("LDRESOLVER_API_PORT", 8080),
            request_timeout_seconds=_env_float("LDRESOLVER_REQUEST_TIMEOUT", 30.0),
            handler_config_path=Path(config_path) if config_path else None,
            public_base=public_base.rstrip("/") if public_base else None,
        )


__all__ = ["ApiSettings"]
