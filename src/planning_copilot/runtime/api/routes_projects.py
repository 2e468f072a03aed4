"""Project, board, card history, and project settings route registration."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Header, HTTPException, Query

from ..copilot.factory import CopilotRuntime
from ..domain.models import Project, StyleGuide
from ..errors import CopilotError
from ..prompting.agent_context import TodoItem, parse_todos
from .deps import RouteDeps
from .helpers import _http_error, _tenant
from .schemas import (
    AgentDocTypeName,
    AgentDocumentRequest,
    AgentTodoRequest,
    AgentTodoStatusRequest,
    CreateProjectRequest,
    EventChannelName,
    StyleGuideRequest,
)


def register_project_routes(router: APIRouter, deps: RouteDeps) -> None:
    """Register project setup, board read, and per-project settings routes."""
    def _project(runtime: CopilotRuntime, project_id: str) -> Project:
        project = runtime.container.projects.get(project_id)
        if project is None:
            raise HTTPException(status_code=404, detail="Project not found")
        return project

    @router.post("/projects")
    async def create_project(
        body: CreateProjectRequest,
        project_dir: Optional[str] = Query(None),
        x_tenant_id: Optional[str] = Header(None),
    ) -> dict[str, Any]:
        """Create a project with its board and default lanes.

        Args:
            body: Project name, description, and optional document directory.
            project_dir: Optional project directory used to resolve runtime state.
            x_tenant_id: Tenant header; ``default`` when absent.

        Returns:
            A payload containing the created project and board.
        """
        runtime = deps.resolve_runtime(project_dir)
        try:
            project, board = runtime.copilot.create_project(
                _tenant(x_tenant_id),
                body.name,
                description=body.description,
                local_path=body.local_path,
            )
        except CopilotError as exc:
            raise _http_error(exc) from exc
        return {"project": project.to_dict(), "board": board.to_dict()}

    @router.get("/projects")
    async def list_projects(
        project_dir: Optional[str] = Query(None),
        x_tenant_id: Optional[str] = Header(None),
    ) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        tenant = _tenant(x_tenant_id)
        return {"projects": [p.to_dict() for p in runtime.container.projects.list() if p.tenant_id == tenant]}

    @router.get("/projects/{project_id}")
    async def get_project(project_id: str, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        return {"project": _project(runtime, project_id).to_dict()}

    @router.get("/projects/{project_id}/board")
    async def get_board(project_id: str, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        """Return the project's board with its cards ordered by lane and position."""
        runtime = deps.resolve_runtime(project_dir)
        _project(runtime, project_id)
        board = runtime.container.boards.for_project(project_id)
        if board is None:
            raise HTTPException(status_code=404, detail="Board not found")
        cards = runtime.container.cards.for_board(board.id)
        return {"board": board.to_dict(), "cards": [card.to_dict() for card in cards]}

    @router.get("/projects/{project_id}/documents")
    async def list_documents(project_id: str, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        _project(runtime, project_id)
        return {"documents": [doc.to_dict() for doc in runtime.container.documents.for_project(project_id)]}

    @router.get("/projects/{project_id}/todos")
    async def list_todos(project_id: str, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        _project(runtime, project_id)
        return {"todos": [todo.to_dict() for todo in runtime.container.todos.for_project(project_id)]}

    @router.get("/projects/{project_id}/usage")
    async def list_usage(project_id: str, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        """Return recorded model usage and the billed totals for a project."""
        runtime = deps.resolve_runtime(project_dir)
        _project(runtime, project_id)
        records = [r for r in runtime.container.usage.list() if r.project_id == project_id]
        return {
            "usage": [r.to_dict() for r in records],
            "totals": {
                "input_tokens": sum(r.input_tokens for r in records),
                "output_tokens": sum(r.output_tokens for r in records),
                "cost": sum(r.cost for r in records),
                "price": sum(r.price for r in records),
            },
        }

    @router.get("/projects/{project_id}/style-guide")
    async def get_style_guide(project_id: str, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        _project(runtime, project_id)
        guide = runtime.container.style_guides.get(project_id)
        return {"style_guide": guide.to_dict() if guide else None}

    @router.put("/projects/{project_id}/style-guide")
    async def put_style_guide(
        project_id: str,
        body: StyleGuideRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """Merge the given conventions into the project's style guide."""
        runtime = deps.resolve_runtime(project_dir)
        _project(runtime, project_id)
        current = runtime.container.style_guides.get(project_id) or StyleGuide(project_id=project_id)
        merged = StyleGuide.from_dict({**current.to_dict(), **body.values, "project_id": project_id})
        return {"style_guide": runtime.container.style_guides.upsert(merged).to_dict()}

    @router.get("/projects/{project_id}/agents/{agent_name}/documents/{doc_type}")
    async def get_agent_document(
        project_id: str,
        agent_name: str,
        doc_type: AgentDocTypeName,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        document = runtime.agent_documents.get(project_id, agent_name, doc_type)
        if document is None:
            raise HTTPException(status_code=404, detail="Agent document not found")
        return {"document": document.to_dict()}

    @router.put("/projects/{project_id}/agents/{agent_name}/documents/{doc_type}")
    async def put_agent_document(
        project_id: str,
        agent_name: str,
        doc_type: AgentDocTypeName,
        body: AgentDocumentRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """Replace an agent's Plan, Task, or Todo document."""
        runtime = deps.resolve_runtime(project_dir)
        _project(runtime, project_id)
        if runtime.registry.get(agent_name) is None:
            raise HTTPException(status_code=404, detail=f"Agent definition not found: {agent_name}")
        document = runtime.agent_documents.save(project_id, agent_name, doc_type, body.content)
        return {"document": document.to_dict()}

    @router.post("/projects/{project_id}/agents/{agent_name}/todos")
    async def add_agent_todo(
        project_id: str,
        agent_name: str,
        body: AgentTodoRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """Append a checklist item to the agent's Todo document."""
        runtime = deps.resolve_runtime(project_dir)
        _project(runtime, project_id)
        if runtime.registry.get(agent_name) is None:
            raise HTTPException(status_code=404, detail=f"Agent definition not found: {agent_name}")
        item = TodoItem(title=body.title, status=body.status, priority=body.priority, description=body.description)
        document = runtime.agent_documents.add_todo(project_id, agent_name, item)
        return {"todo": asdict(item), "document": document.to_dict()}

    @router.patch("/projects/{project_id}/agents/{agent_name}/todos/{item_id}")
    async def update_agent_todo(
        project_id: str,
        agent_name: str,
        item_id: str,
        body: AgentTodoStatusRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        _project(runtime, project_id)
        try:
            document = runtime.agent_documents.update_todo_status(project_id, agent_name, item_id, body.status)
        except CopilotError as exc:
            raise _http_error(exc) from exc
        items = [asdict(item) for item in parse_todos(document.content)]
        return {"todos": items, "document": document.to_dict()}

    @router.get("/projects/{project_id}/events")
    async def list_events(
        project_id: str,
        limit: int = Query(100, ge=1, le=2000),
        channel: Optional[EventChannelName] = Query(None),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """Return the project's recent events, oldest first.

        ``limit`` bounds the tail of the shared event log that is scanned.
        """
        runtime = deps.resolve_runtime(project_dir)
        _project(runtime, project_id)
        events = [
            event
            for event in runtime.container.events.list_recent(limit=limit)
            if event.get("project_id") == project_id and (channel is None or event.get("channel") == channel)
        ]
        return {"events": events}

    @router.get("/cards/{card_id}/history")
    async def card_history(card_id: str, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        """Return a card's audit trail in append order."""
        runtime = deps.resolve_runtime(project_dir)
        card = runtime.container.cards.get(card_id)
        if card is None:
            raise HTTPException(status_code=404, detail="Card not found")
        return {"card": card.to_dict(), "history": [e.to_dict() for e in runtime.container.card_history.for_card(card_id)]}
