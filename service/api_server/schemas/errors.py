from __future__ import annotations

"""Shared error schema definitions."""

from http import HTTPStatus

from pydantic import BaseModel

PROBLEM_BASE = "https://ldresolver.dev/problems"


class ProblemDetails(BaseModel):
    type: str
    title: str
    status: int
    detail: str | None = None
    instance: str | None = None
    trace_id: str | None = None

    @classmethod
    def for_status(
        cls,
        status: int,
        *,
        kind: str = "http",
        detail: str | None = None,
        instance: str | None = None,
        trace_id: str | None = None,
    ) -> "ProblemDetails":
        try:
            title = HTTPStatus(status).phrase
        except ValueError:
            title = "HTTP Error"
        return cls(
            type=f"{PROBLEM_BASE}/{kind}",
            title=title,
            status=status,
            detail=detail,
            instance=instance,
            trace_id=trace_id,
        )
