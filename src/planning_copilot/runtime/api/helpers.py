"""Helper utilities shared by API routes."""

from __future__ import annotations

from fastapi import HTTPException

from ..errors import AgentNotAllowedInLane, CopilotError, NotFoundError, ProviderError

DEFAULT_TENANT = "default"


def _tenant(raw: str | None) -> str:
    return (raw or "").strip() or DEFAULT_TENANT


def _http_error(exc: CopilotError) -> HTTPException:
    """Map a runtime error to its HTTP status.

    Permission errors are 403, missing entities 404, provider failures 502,
    and every other runtime error 400.
    """
    if isinstance(exc, AgentNotAllowedInLane):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ProviderError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
