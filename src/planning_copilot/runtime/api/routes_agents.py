"""Agent registry and agent execution route registration."""

from __future__ import annotations

import json
from typing import Any, Iterator, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse

from ..copilot.factory import CopilotRuntime
from ..errors import CopilotError
from ..gateway.adapter import ExecutionContext, ExecutionOptions
from ..prompting.builder import PromptContext
from .deps import RouteDeps
from .helpers import _http_error
from .schemas import ExecuteAgentRequest

_TASK_LOG_EXCERPT = 500


def _execution_context(runtime: CopilotRuntime, agent_name: str, body: ExecuteAgentRequest) -> ExecutionContext:
    project = runtime.container.projects.get(body.project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")

    lane_number: Optional[int] = None
    card_title: Optional[str] = None
    card_description: Optional[str] = None
    if body.card_id:
        card = runtime.container.cards.get(body.card_id)
        board = runtime.container.boards.get(card.board_id) if card else None
        if card is None or board is None or board.project_id != project.id:
            raise HTTPException(status_code=404, detail="Card not found")
        lane = board.lane_by_id(card.lane_id)
        lane_number = lane.lane_number if lane else None
        card_title, card_description = card.title, card.description

    built = runtime.prompts.build_prompt(
        PromptContext(
            project_id=project.id,
            agent_name=agent_name,
            card_id=body.card_id,
            additional_context=body.additional_context,
        ),
        body.complexity,
    )
    return ExecutionContext(
        project_id=project.id,
        user_message=body.message,
        lane_number=lane_number,
        card_title=card_title,
        card_description=card_description,
        system_prompt=built.system_prompt,
        user_context=built.user_context,
    )


def _options(body: ExecuteAgentRequest) -> ExecutionOptions:
    return ExecutionOptions(model=body.model, temperature=body.temperature, max_tokens=body.max_tokens)


def register_agent_routes(router: APIRouter, deps: RouteDeps) -> None:
    """Register agent listing, routing, and execution routes."""
    @router.get("/agents")
    async def list_agents(project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        """List all registered agent definitions."""
        runtime = deps.resolve_runtime(project_dir)
        return {"agents": [definition.to_dict() for definition in runtime.registry.all()]}

    @router.get("/agents/lanes/{lane_number}")
    async def agents_for_lane(lane_number: int, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        return {"lane": lane_number, "agents": [d.to_dict() for d in runtime.registry.by_lane(lane_number)]}

    @router.get("/agents/routing")
    async def agent_routing(project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        """Return the card routing table the copilot places cards with."""
        runtime = deps.resolve_runtime(project_dir)
        routing = runtime.routing
        return {
            "baseline": routing.baseline,
            "routes": {
                name: {"lanes": list(route.lanes), "priority": route.priority, "default_lane": route.default_lane}
                for name, route in routing.routes.items()
            },
            "aliases": dict(routing.aliases),
        }

    @router.post("/agents/{agent_name}/execute")
    def execute_agent(
        agent_name: str,
        body: ExecuteAgentRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """Run an agent to completion and log the run to its Task document.

        Args:
            agent_name: Registered agent to run.
            body: Project, optional card, instruction, and model overrides.
            project_dir: Optional project directory used to resolve runtime state.

        Returns:
            A payload with the reply, token usage, cost, and price.

        Raises:
            HTTPException: 403 when the card's lane is outside the agent's lanes,
                404 for unknown agents or cards, 502 on provider failure.
        """
        runtime = deps.resolve_runtime(project_dir)
        try:
            context = _execution_context(runtime, agent_name, body)
            result = runtime.gateway.execute(agent_name, context, _options(body))
        except CopilotError as exc:
            raise _http_error(exc) from exc
        heading = context.card_title or body.message[:80]
        runtime.agent_documents.append_task(
            body.project_id,
            agent_name,
            f"**{heading}**\n\n{result.content[:_TASK_LOG_EXCERPT]}",
        )
        return {"result": result.to_dict()}

    @router.post("/agents/{agent_name}/stream")
    def stream_agent(
        agent_name: str,
        body: ExecuteAgentRequest,
        project_dir: Optional[str] = Query(None),
    ) -> StreamingResponse:
        """Stream an agent run as newline-delimited JSON chunks.

        Each line is ``{"content": ...}`` until a final ``{"done": true, "usage": ...}``
        line. A provider failure mid-stream ends with an ``{"error": ...}`` line.
        """
        runtime = deps.resolve_runtime(project_dir)
        try:
            context = _execution_context(runtime, agent_name, body)
            chunks = runtime.gateway.stream(agent_name, context, _options(body))
            first = next(chunks)
        except CopilotError as exc:
            raise _http_error(exc) from exc

        def _lines() -> Iterator[str]:
            chunk = first
            try:
                while True:
                    if chunk.done:
                        yield json.dumps({"done": True, "usage": chunk.usage.to_dict() if chunk.usage else None}) + "\n"
                        return
                    yield json.dumps({"content": chunk.content}) + "\n"
                    chunk = next(chunks)
            except CopilotError as exc:
                yield json.dumps({"error": str(exc)}) + "\n"
            finally:
                chunks.close()

        return StreamingResponse(_lines(), media_type="application/x-ndjson")
