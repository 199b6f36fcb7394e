from __future__ import annotations

"""Request log and health-check settings, read from an optional YAML file.

Example::

    request_log:
      enabled: true
      sample_rate: 0.25
      max_field_bytes: 512
      log_passthrough: false
    health:
      sparql_ask_ms: 800
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

CONFIG_ENV = "LDRESOLVER_OBSERVABILITY_CONFIG"


@dataclass(slots=True)
class RequestLogSettings:
    enabled: bool = True
    sample_rate: float = 1.0
    max_field_bytes: int = 1024
    log_passthrough: bool = True


@dataclass(slots=True)
class HealthBudgets:
    sparql_ask_ms: int = 1500


@dataclass(slots=True)
class ObservabilityConfig:
    request_log: RequestLogSettings = field(default_factory=RequestLogSettings)
    health: HealthBudgets = field(default_factory=HealthBudgets)


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else {}


def _number(value: Any, cast: type, default: Any) -> Any:
    if value is None or isinstance(value, bool):
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        return default


def _request_log(data: Mapping[str, Any]) -> RequestLogSettings:
    defaults = RequestLogSettings()
    rate = _number(data.get("sample_rate"), float, defaults.sample_rate)
    return RequestLogSettings(
        enabled=bool(data.get("enabled", defaults.enabled)),
        sample_rate=max(0.0, min(1.0, rate)),
        max_field_bytes=max(0, _number(data.get("max_field_bytes"), int, defaults.max_field_bytes)),
        log_passthrough=bool(data.get("log_passthrough", defaults.log_passthrough)),
    )


def load_observability_config(path: Path | None = None) -> ObservabilityConfig:
    """Read ``path`` (or ``$LDRESOLVER_OBSERVABILITY_CONFIG``); defaults when absent."""

    if path is None:
        env = os.getenv(CONFIG_ENV)
        if not env:
            return ObservabilityConfig()
        path = Path(env)
    if not path.exists():
        return ObservabilityConfig()
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, Mapping):
        return ObservabilityConfig()
    ask_ms = _number(_section(raw, "health").get("sparql_ask_ms"), int, HealthBudgets().sparql_ask_ms)
    return ObservabilityConfig(
        request_log=_request_log(_section(raw, "request_log")),
        health=HealthBudgets(sparql_ask_ms=max(1, ask_ms)),
    )


__all__ = [
    "HealthBudgets",
    "ObservabilityConfig",
    "RequestLogSettings",
    "load_observability_config",
]
