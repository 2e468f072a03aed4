"""Copilot conversation, phase, and document route registration."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Header, Query

from ..copilot.service import ChatTurn
from ..errors import CopilotError
from .deps import RouteDeps
from .helpers import _http_error, _tenant
from .schemas import (
    ChatRequest,
    CreateConversationRequest,
    GenerateAllRequest,
    GenerateDocumentRequest,
    PhaseResponseRequest,
    ReviewDecisionRequest,
)


def register_copilot_routes(router: APIRouter, deps: RouteDeps) -> None:
    """Register chat, conversation, phase, and document lifecycle routes."""
    @router.post("/copilot/chat")
    def chat(
        body: ChatRequest,
        project_dir: Optional[str] = Query(None),
        x_tenant_id: Optional[str] = Header(None),
    ) -> dict[str, Any]:
        """Run one copilot turn.

        Args:
            body: Operator message and planning scope.
            project_dir: Optional project directory used to resolve runtime state.
            x_tenant_id: Tenant header; ``default`` when absent.

        Returns:
            A payload with the cleaned reply, phase outcome, and action summary.

        Raises:
            HTTPException: 404 for an unknown conversation, 502 when the model call fails.
        """
        runtime = deps.resolve_runtime(project_dir)
        turn = ChatTurn(
            message=body.message,
            conversation_id=body.conversation_id,
            context=body.context,
            project_id=body.project_id,
            card_id=body.card_id,
            phase=body.phase,
            metadata=body.metadata,
        )
        try:
            return runtime.copilot.chat(_tenant(x_tenant_id), turn).to_dict()
        except CopilotError as exc:
            raise _http_error(exc) from exc

    @router.get("/copilot/conversations")
    async def list_conversations(
        project_id: Optional[str] = Query(None),
        project_dir: Optional[str] = Query(None),
        x_tenant_id: Optional[str] = Header(None),
    ) -> dict[str, Any]:
        """List the tenant's most recent active conversations."""
        runtime = deps.resolve_runtime(project_dir)
        items = runtime.copilot.list_conversations(_tenant(x_tenant_id), project_id=project_id)
        return {"conversations": [c.to_dict() for c in items]}

    @router.post("/copilot/conversations")
    async def create_conversation(
        body: CreateConversationRequest,
        project_dir: Optional[str] = Query(None),
        x_tenant_id: Optional[str] = Header(None),
    ) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        conversation = runtime.copilot.create_conversation(
            _tenant(x_tenant_id),
            context=body.context,
            project_id=body.project_id,
            card_id=body.card_id,
            title=body.title,
        )
        return {"conversation": conversation.to_dict()}

    @router.get("/copilot/conversations/{conversation_id}")
    async def get_conversation(
        conversation_id: str,
        project_dir: Optional[str] = Query(None),
        x_tenant_id: Optional[str] = Header(None),
    ) -> dict[str, Any]:
        """Return a conversation with its messages in creation order."""
        runtime = deps.resolve_runtime(project_dir)
        try:
            conversation, messages = runtime.copilot.get_conversation(_tenant(x_tenant_id), conversation_id)
        except CopilotError as exc:
            raise _http_error(exc) from exc
        return {"conversation": conversation.to_dict(), "messages": [m.to_dict() for m in messages]}

    @router.post("/copilot/conversations/{conversation_id}/close")
    async def close_conversation(
        conversation_id: str,
        project_dir: Optional[str] = Query(None),
        x_tenant_id: Optional[str] = Header(None),
    ) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        try:
            conversation = runtime.copilot.close_conversation(_tenant(x_tenant_id), conversation_id)
        except CopilotError as exc:
            raise _http_error(exc) from exc
        return {"conversation": conversation.to_dict()}

    @router.post("/copilot/phase")
    async def record_phase_response(body: PhaseResponseRequest, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        """Store the operator's answer for a phase and make it current."""
        runtime = deps.resolve_runtime(project_dir)
        try:
            project = runtime.copilot.record_phase_response(body.project_id, body.phase, body.response)
        except CopilotError as exc:
            raise _http_error(exc) from exc
        return {"project": project.to_dict()}

    @router.get("/copilot/phase/{project_id}")
    async def get_phase(project_id: str, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        try:
            return runtime.copilot.get_phase(project_id)
        except CopilotError as exc:
            raise _http_error(exc) from exc

    @router.post("/copilot/generate")
    async def generate_document(body: GenerateDocumentRequest, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        """Generate one planning document and put its review card in review.

        Args:
            body: Project, document type, and review card/todo switches.
            project_dir: Optional project directory used to resolve runtime state.

        Returns:
            A payload with the new document version, review card, and filesystem outcome.
        """
        runtime = deps.resolve_runtime(project_dir)
        try:
            result = runtime.lifecycle.generate(
                body.project_id,
                body.document_type,
                create_review_card=body.create_review_card,
                create_todo=body.create_todo,
            )
        except CopilotError as exc:
            raise _http_error(exc) from exc
        return result.to_dict()

    @router.post("/copilot/generate-all")
    async def generate_all_documents(body: GenerateAllRequest, project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        try:
            return runtime.lifecycle.generate_all(body.project_id).to_dict()
        except CopilotError as exc:
            raise _http_error(exc) from exc

    @router.post("/copilot/approve-review")
    async def approve_review(
        body: ReviewDecisionRequest,
        project_dir: Optional[str] = Query(None),
        x_tenant_id: Optional[str] = Header(None),
    ) -> dict[str, Any]:
        """Approve a document in review and move its card to the complete lane."""
        runtime = deps.resolve_runtime(project_dir)
        try:
            return runtime.lifecycle.approve(body.project_id, body.document_type, performed_by=_tenant(x_tenant_id))
        except CopilotError as exc:
            raise _http_error(exc) from exc

    @router.post("/copilot/reject-review")
    async def reject_review(
        body: ReviewDecisionRequest,
        project_dir: Optional[str] = Query(None),
        x_tenant_id: Optional[str] = Header(None),
    ) -> dict[str, Any]:
        runtime = deps.resolve_runtime(project_dir)
        try:
            return runtime.lifecycle.reject(
                body.project_id,
                body.document_type,
                performed_by=_tenant(x_tenant_id),
                reason=body.reason,
            )
        except CopilotError as exc:
            raise _http_error(exc) from exc
