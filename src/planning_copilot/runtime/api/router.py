"""Assemble the planning API router."""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from fastapi import APIRouter

from ..copilot.factory import CopilotRuntime
from .deps import RouteDeps
from .routes_agents import register_agent_routes
from .routes_copilot import register_copilot_routes
from .routes_projects import register_project_routes


def create_router(resolve_runtime: Callable[[Optional[str]], CopilotRuntime]) -> APIRouter:
    """Create the API router.

    Args:
        resolve_runtime (Callable[[Optional[str]], CopilotRuntime]): Returns the
            project-scoped runtime for an optional ``project_dir`` value.

    Returns:
        APIRouter: Router exposing copilot, project, and agent endpoints under ``/api``.
    """
    router = APIRouter(prefix="/api", tags=["api"])
    deps = RouteDeps(resolve_runtime=resolve_runtime)
    register_copilot_routes(router, deps)
    register_project_routes(router, deps)
    register_agent_routes(router, deps)
    return router
