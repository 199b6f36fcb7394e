from __future__ import annotations

"""One JSON line per resolved (or passed-through) request.

Values that may carry secrets are scrubbed before they are written: Basic
credentials, ``user:password@`` URL userinfo and query strings, which hold
the SPARQL text sent to the endpoint.
"""

import json
import logging
import random
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

BASIC_AUTH_RE = re.compile(r"(?:basic|bearer)\s+[A-Za-z0-9+/\-_=.]+", re.IGNORECASE)
USERINFO_RE = re.compile(r"(https?://)[^/\s:@]+:[^/\s@]+@")
URL_QUERY_RE = re.compile(r"(https?://[^\s?]+)\?\S+")

# Outcomes the resolver answered itself.
ANSWERED_OUTCOMES = frozenset({"resolved", "upstream_error", "unavailable"})


def scrub(value: str) -> str:
    value = BASIC_AUTH_RE.sub("[redacted]", value)
    value = USERINFO_RE.sub(r"\1[redacted]@", value)
    return URL_QUERY_RE.sub(r"\1", value)


def _clip(value: str, max_bytes: int) -> str:
    blob = value.encode("utf-8")
    if max_bytes <= 0 or len(blob) <= max_bytes:
        return value
    return blob[:max_bytes].decode("utf-8", errors="ignore") + "..."


@dataclass(slots=True)
class ResolutionEvent:
    """What happened to one request on its way through the resolver."""

    trace_id: str
    method: str
    path: str
    status: int | None
    latency_ms: float
    outcome: str | None = None
    iri: str | None = None
    endpoint: str | None = None
    accept: str | None = None
    client: str | None = None
    error: str | None = None

    @property
    def level(self) -> int:
        if self.error is not None or (self.status or 0) >= 500:
            return logging.ERROR
        if self.outcome == "upstream_error" or (self.status or 0) >= 400:
            return logging.WARNING
        return logging.INFO

    @property
    def answered(self) -> bool:
        return self.outcome in ANSWERED_OUTCOMES


class JsonLogger:
    """Write :class:`ResolutionEvent` records as compact JSON lines.

    Warnings and errors are always written; ``sample_rate`` only thins out
    the informational lines.
    """

    def __init__(
        self,
        service: str,
        *,
        logger: logging.Logger | None = None,
        max_field_bytes: int = 1024,
        sample_rate: float = 1.0,
        log_passthrough: bool = True,
    ) -> None:
        self._service = service
        self._logger = logger or logging.getLogger(f"ldresolver.{service}.json")
        if not self._logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)
        self._logger.propagate = False
        self._logger.setLevel(logging.INFO)
        self._max_field_bytes = max(0, int(max_field_bytes))
        self._sample_rate = max(0.0, min(1.0, float(sample_rate)))
        self._log_passthrough = log_passthrough

    def _keep(self, event: ResolutionEvent) -> bool:
        if event.level > logging.INFO:
            return True
        if not event.answered and not self._log_passthrough:
            return False
        return self._sample_rate >= 1.0 or random.random() < self._sample_rate

    def log(self, event: ResolutionEvent) -> dict[str, Any] | None:
        """Write ``event`` and return the entry, or ``None`` when it was skipped."""

        if not self._keep(event):
            return None
        entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": logging.getLevelName(event.level),
            "service": self._service,
        }
        for key, value in asdict(event).items():
            if value is None:
                continue
            if isinstance(value, str):
                value = _clip(scrub(value), self._max_field_bytes)
            entry[key] = value
        payload = json.dumps(entry, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
        self._logger.log(event.level, payload)
        return entry


__all__ = ["JsonLogger", "ResolutionEvent", "scrub"]
