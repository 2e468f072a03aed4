"""FastAPI app wiring for the planning copilot service."""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, cast

from fastapi import FastAPI, Query, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..runtime.api import create_router
from ..runtime.copilot import CopilotRuntime, create_copilot_runtime
from ..runtime.events import hub
from ..runtime.gateway import CompletionClient
from ..runtime.storage.bootstrap import SCHEMA_VERSION
from ..runtime.storage.container import Container

logger = logging.getLogger(__name__)


def create_app(
    project_dir: Optional[Path] = None,
    enable_cors: bool = True,
    completion_client: Optional[CompletionClient] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        project_dir (Optional[Path]): Default project directory used when request-level
            ``project_dir`` query parameters are not provided.
        enable_cors (bool): Whether to install permissive CORS middleware for browser
            clients.
        completion_client (Optional[CompletionClient]): Completion client injected into
            every project runtime. Each runtime builds one from its config when omitted.

    Returns:
        FastAPI: Configured application with API routes, health probes, and the
        websocket bridge. Per-project runtimes are cached on ``app.state``.
    """
    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        hub.attach_loop(asyncio.get_running_loop())
        try:
            yield
        finally:
            app.state.runtimes = {}

    app = FastAPI(
        title="Planning Copilot",
        description="Planning conversations that turn into board cards and reviewed documents",
        version=__version__,
        lifespan=_lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.default_project_dir = project_dir
    app.state.runtimes = {}
    runtime_lock = threading.Lock()

    def _resolve_project_dir(project_dir_param: Optional[str] = None) -> Path:
        if project_dir_param:
            return Path(project_dir_param).expanduser().resolve()
        if app.state.default_project_dir:
            return Path(app.state.default_project_dir).resolve()
        return Path.cwd().resolve()

    def _resolve_runtime(project_dir_param: Optional[str] = None) -> CopilotRuntime:
        resolved = _resolve_project_dir(project_dir_param)
        key = str(resolved)
        # Sync routes run in the threadpool; build each runtime once.
        with runtime_lock:
            cache = cast(dict[str, CopilotRuntime], app.state.runtimes)
            if key not in cache:
                logger.info("Initializing planning runtime for %s", key)
                cache[key] = create_copilot_runtime(Container(resolved), client=completion_client)
            return cache[key]

    app.include_router(create_router(_resolve_runtime))

    @app.get("/")
    async def root(project_dir: Optional[str] = Query(None)) -> dict[str, object]:
        """Return basic service metadata for the selected project context."""
        runtime = _resolve_runtime(project_dir)
        return {
            "name": "Planning Copilot",
            "version": __version__,
            "project": str(runtime.container.project_dir),
            "schema_version": SCHEMA_VERSION,
            "provider": runtime.gateway.provider,
        }

    @app.get("/healthz")
    async def healthz() -> dict[str, object]:
        """Expose liveness status for process-level health checks."""
        return {"status": "ok", "version": __version__}

    @app.get("/readyz")
    async def readyz(project_dir: Optional[str] = Query(None)) -> dict[str, object]:
        """Expose readiness for the selected project context.

        Args:
            project_dir: Optional project directory used to resolve runtime state.

        Returns:
            A payload indicating readiness, cached runtimes, and websocket subscribers.
        """
        runtime = _resolve_runtime(project_dir)
        return {
            "status": "ready",
            "project": str(runtime.container.project_dir),
            "runtimes": len(app.state.runtimes),
            "subscribers": hub.connected,
        }

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """Bridge websocket clients to the shared event hub handler."""
        await hub.handle_connection(websocket)

    return app


app = create_app()
