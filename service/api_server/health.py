from __future__ import annotations

"""Health endpoint with a SPARQL readiness probe."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request

from ldResolver.observability.config import HealthBudgets
from ldResolver.resolver import ResourceResolver
from ldResolver.sparql import SparqlError
from ldResolver.templates import PLACEHOLDER

router = APIRouter(tags=["health"])

PROBE_QUERY = "ASK {}"


@router.get("/health", summary="Service health check")
async def health(request: Request) -> Dict[str, Any]:
    obs = getattr(request.app.state, "observability", None)
    budgets: HealthBudgets = getattr(obs, "health", HealthBudgets())
    readiness_checks: Dict[str, Dict[str, Any]] = {
        "sparql": await _check_sparql(request, budgets),
        "templates": _check_templates(request),
    }
    readiness_status = "pass" if all(check["status"] == "pass" for check in readiness_checks.values()) else "fail"
    overall_status = "ok" if readiness_status == "pass" else "error"

    return {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "liveness": {"status": "pass"},
        "readiness": {
            "status": readiness_status,
            "checks": readiness_checks,
        },
    }


async def _check_sparql(request: Request, budgets: HealthBudgets) -> Dict[str, Any]:
    config = request.app.state.handler_config
    client = request.app.state.sparql_client
    detail: Dict[str, Any] = {"endpoint": config.endpoint_url}
    bind = getattr(client, "bind", None)
    if not config.endpoint_is_absolute and callable(bind):
        endpoint = config.endpoint_for(str(request.url))
        client = bind(endpoint)
        detail["endpoint"] = endpoint
    headers = ResourceResolver(config, client).query_headers()
    start = time.perf_counter()
    status = "pass"
    try:
        await asyncio.wait_for(
            client.ask(PROBE_QUERY, headers=headers),
            timeout=budgets.sparql_ask_ms / 1000.0,
        )
    except asyncio.TimeoutError:
        status = "fail"
        detail["reason"] = f"no answer within {budgets.sparql_ask_ms}ms budget"
    except SparqlError as exc:
        status = "fail"
        detail["error"] = str(exc)
        if exc.status is not None:
            detail["upstream_status"] = exc.status
    detail["latency_ms"] = round((time.perf_counter() - start) * 1000, 3)
    return {"status": status, "details": detail}


def _check_templates(request: Request) -> Dict[str, Any]:
    templates = request.app.state.handler_config.templates
    missing = [t.name for t in templates if PLACEHOLDER not in t.text]
    detail: Dict[str, Any] = {"templates": len(templates.names)}
    if missing:
        detail["without_placeholder"] = missing
    return {"status": "pass" if not missing else "fail", "details": detail}


__all__ = ["router", "health"]
