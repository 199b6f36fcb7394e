from __future__ import annotations

"""Handler configuration: defaults overlaid by user settings.

The configuration is built once at startup and shared read-only by every
request. Keys are accepted in the camelCase form used by existing deployment
files (``resourceNoSlash``, ``endpointUrl`` ...) as well as in snake_case.
"""

import base64
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urljoin, urlparse

import yaml

from .templates import TemplateSet

CONFIG_ENV = "LDRESOLVER_CONFIG"
ENDPOINT_ENV = "LDRESOLVER_ENDPOINT_URL"
USER_ENV = "LDRESOLVER_SPARQL_USER"
PASSWORD_ENV = "LDRESOLVER_SPARQL_PASSWORD"

DEFAULT_ENDPOINT_URL = "/query"
DEFAULT_RESOURCE_EXISTS_QUERY = "ASK { <${iri}> ?p ?o }"
DEFAULT_RESOURCE_GRAPH_QUERY = "DESCRIBE <${iri}>"
DEFAULT_CONTAINER_EXISTS_QUERY = 'ASK { ?s a ?o. FILTER REGEX(STR(?s), "^${iri}") }'
DEFAULT_CONTAINER_GRAPH_QUERY = (
    'CONSTRUCT { ?s a ?o. } WHERE { ?s a ?o. FILTER REGEX(STR(?s), "^${iri}") }'
)

_KEY_ALIASES = {
    "endpointUrl": "endpoint_url",
    "resourceNoSlash": "resource_no_slash",
    "resourceExistsQuery": "resource_exists_query",
    "resourceGraphQuery": "resource_graph_query",
    "containerExistsQuery": "container_exists_query",
    "containerGraphQuery": "container_graph_query",
}
_TEMPLATE_FIELDS = (
    "resource_exists_query",
    "resource_graph_query",
    "container_exists_query",
    "container_graph_query",
)


class ConfigError(ValueError):
    """Raised when handler configuration cannot be interpreted."""


@dataclass(frozen=True, slots=True)
class Credentials:
    user: str
    password: str = field(repr=False)

    def header_value(self) -> str:
        token = base64.b64encode(f"{self.user}:{self.password}".encode("utf-8"))
        return "Basic " + token.decode("ascii")


@dataclass(frozen=True, slots=True)
class HandlerConfig:
    endpoint_url: str = DEFAULT_ENDPOINT_URL
    authentication: Credentials | None = None
    resource_no_slash: bool = True
    resource_exists_query: str = DEFAULT_RESOURCE_EXISTS_QUERY
    resource_graph_query: str = DEFAULT_RESOURCE_GRAPH_QUERY
    container_exists_query: str = DEFAULT_CONTAINER_EXISTS_QUERY
    container_graph_query: str = DEFAULT_CONTAINER_GRAPH_QUERY

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "HandlerConfig":
        """Overlay ``data`` on the defaults; unknown keys are ignored."""

        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError("Handler configuration must be a mapping")
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = _KEY_ALIASES.get(key, key)
            if name in _TEMPLATE_FIELDS:
                if not isinstance(value, str):
                    raise ConfigError(f"{key} must be a string query template")
                values[name] = value
            elif name == "endpoint_url":
                if not isinstance(value, str) or not value:
                    raise ConfigError(f"{key} must be a non-empty string")
                values[name] = value
            elif name == "resource_no_slash":
                if not isinstance(value, bool):
                    raise ConfigError(f"{key} must be a boolean")
                values[name] = value
            elif name == "authentication":
                values[name] = _parse_credentials(value)
        return cls(**values)

    @property
    def templates(self) -> TemplateSet:
        return TemplateSet.from_strings(
            resource_exists=self.resource_exists_query,
            resource_graph=self.resource_graph_query,
            container_exists=self.container_exists_query,
            container_graph=self.container_graph_query,
        )

    @property
    def endpoint_is_absolute(self) -> bool:
        parsed = urlparse(self.endpoint_url)
        return bool(parsed.scheme and parsed.netloc)

    def endpoint_for(self, request_url: str) -> str:
        """Resolve a relative endpoint against the incoming request URL."""

        return urljoin(request_url, self.endpoint_url)

    def with_env(self) -> "HandlerConfig":
        """Return a copy with ``LDRESOLVER_*`` environment overrides applied.

        The user and password variables override the configured values one
        field at a time, so a secret injected through the environment keeps
        the user named in the config file.
        """

        updated = self
        endpoint = os.getenv(ENDPOINT_ENV)
        if endpoint:
            updated = replace(updated, endpoint_url=endpoint)
        user = os.getenv(USER_ENV)
        password = os.getenv(PASSWORD_ENV)
        if user or password:
            current = self.authentication
            updated = replace(
                updated,
                authentication=_parse_credentials(
                    {
                        "user": user or (current.user if current else None),
                        "password": password or (current.password if current else None),
                    }
                ),
            )
        return updated

    def redacted(self) -> dict[str, Any]:
        data = asdict(self)
        if self.authentication is not None:
            data["authentication"] = {"user": self.authentication.user, "password": "***"}
        return data


def _credential_field(value: Any, key: str) -> str | None:
    # YAML reads unquoted digits as numbers.
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ConfigError(f"authentication.{key} must be a string")


def _parse_credentials(value: Any) -> Credentials | None:
    if value is None or value is False:
        return None
    if not isinstance(value, Mapping):
        raise ConfigError("authentication must be a mapping with user and password")
    user = _credential_field(value.get("user"), "user")
    password = _credential_field(value.get("password"), "password")
    if not user or not password:
        return None
    return Credentials(user=user, password=password)


def load_handler_config(path: Path | None = None) -> HandlerConfig:
    """Load handler settings from YAML, then apply environment overrides."""

    if path is None:
        env = os.getenv(CONFIG_ENV)
        path = Path(env) if env else None
    if path is None:
        return HandlerConfig().with_env()
    if not path.exists():
        raise ConfigError(f"Handler config not found: {path}")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    return HandlerConfig.from_mapping(raw or {}).with_env()


__all__ = [
    "ConfigError",
    "Credentials",
    "HandlerConfig",
    "load_handler_config",
]
