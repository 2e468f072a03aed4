"""Copilot conversation turns, phase tracking, and project setup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..agents.routing import AgentRoutingTable
from ..domain.models import Board, Conversation, Lane, Message, Project
from ..documents.lifecycle import DocumentLifecycle, GenerateAllResult
from ..errors import NotFoundError, PreconditionError
from ..events.bus import EventBus
from ..gateway.adapter import ExecutionGatewayAdapter, ExecutionOptions
from ..gateway.clients import ChatMessage
from ..planning.actions import parse_actions
from ..planning.executor import ActionExecutor, ActionResult
from ..planning.phases import DOCUMENT_TRIGGER_PHASE, INITIAL_PHASE, evaluate
from ..storage.interfaces import (
    BoardRepository,
    CardRepository,
    ConversationRepository,
    DocumentRepository,
    MessageRepository,
    ProjectRepository,
)
from .system_prompt import CopilotPromptInputs, build_copilot_system_prompt

logger = logging.getLogger(__name__)

COPILOT_AGENT = "ceo_copilot"
CHAT_MAX_TOKENS = 2048
ACTIVE_CONVERSATION_LIMIT = 20

DEFAULT_LANES: tuple[tuple[int, str], ...] = (
    (0, "Vision & CoPilot Planning"),
    (1, "PRD / MVP Definition"),
    (2, "Research"),
    (3, "Architecture & Stack"),
    (4, "Planning & Task Breakdown"),
    (5, "Scaffolding / Setup"),
    (6, "Build"),
    (7, "Test & QA"),
    (8, "Deploy"),
    (9, "Docs & Training"),
    (10, "Learn & Optimize"),
)


@dataclass(frozen=True)
class ChatTurn:
    """One operator message and where it belongs."""
    message: str
    conversation_id: Optional[str] = None
    context: str = "planning"
    project_id: Optional[str] = None
    card_id: Optional[str] = None
    phase: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


@dataclass
class ChatReply:
    conversation_id: str
    message: Message
    current_phase: str
    next_phase: Optional[str]
    phase_complete: bool
    actions: ActionResult
    documents: Optional[GenerateAllResult] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "message": self.message.to_dict(),
            "current_phase": self.current_phase,
            "next_phase": self.next_phase,
            "phase_complete": self.phase_complete,
            "actions": self.actions.to_dict(),
            "documents": self.documents.to_dict() if self.documents else None,
        }


class CopilotService:
    """Run planning conversations and keep the project phase in step."""
    def __init__(
        self,
        *,
        projects: ProjectRepository,
        boards: BoardRepository,
        cards: CardRepository,
        conversations: ConversationRepository,
        messages: MessageRepository,
        documents: DocumentRepository,
        gateway: ExecutionGatewayAdapter,
        executor: ActionExecutor,
        lifecycle: DocumentLifecycle,
        routing: AgentRoutingTable,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._projects = projects
        self._boards = boards
        self._cards = cards
        self._conversations = conversations
        self._messages = messages
        self._documents = documents
        self._gateway = gateway
        self._executor = executor
        self._lifecycle = lifecycle
        self._routing = routing
        self._bus = bus

    def chat(self, tenant_id: str, turn: ChatTurn) -> ChatReply:
        """Handle one operator message end to end.

        Args:
            tenant_id (str): Tenant the conversation belongs to.
            turn (ChatTurn): Message, optional conversation id, and planning scope.

        Returns:
            ChatReply: Stored assistant message with directives stripped, the
            phase outcome, the action summary, and generated documents when the
            turn finished the architecture phase.

        Raises:
            NotFoundError: When ``conversation_id`` is unknown or owned by another tenant.
            ProviderError: When the model call fails. No assistant message is stored.
        """
        conversation = self._open_conversation(tenant_id, turn)
        history = self._messages.for_conversation(conversation.id)
        self._messages.append(
            Message(conversation_id=conversation.id, role="user", content=turn.message, metadata=dict(turn.metadata or {}))
        )

        phase = turn.phase or INITIAL_PHASE
        project = self._projects.get(turn.project_id) if turn.project_id else None
        system_prompt = self._system_prompt(turn, phase, project)
        messages: list[ChatMessage] = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m.role, "content": m.content} for m in history)
        messages.append({"role": "user", "content": turn.message})

        result = self._gateway.chat(
            messages,
            COPILOT_AGENT,
            ExecutionOptions(max_tokens=CHAT_MAX_TOKENS, operation="chat"),
            project_id=turn.project_id,
        )

        cleaned, actions = parse_actions(result.content)
        if actions and turn.project_id and project is None:
            action_result = ActionResult(errors=[f"Project not found: {turn.project_id}"])
            logger.warning("Skipped %d card actions: project %s not found", len(actions), turn.project_id)
        else:
            board = self._boards.for_project(project.id) if project else None
            action_result = self._executor.execute(actions, project.id if project else None, board.id if board else None)

        assistant = self._messages.append(
            Message(
                conversation_id=conversation.id,
                role="assistant",
                content=cleaned,
                metadata={
                    "phase": phase,
                    "model": result.model,
                    "provider": result.provider,
                    "input_tokens": result.input_tokens,
                    "output_tokens": result.output_tokens,
                    "actions": {
                        "created": len(action_result.cards_created),
                        "moved": len(action_result.cards_moved),
                        "updated": len(action_result.cards_updated),
                        "errors": len(action_result.errors),
                    },
                },
            )
        )
        self._conversations.upsert(conversation)

        outcome = evaluate(cleaned, phase)
        generated: Optional[GenerateAllResult] = None
        if outcome.phase_complete and outcome.next_phase and project is not None:
            project = self._set_phase(project.id, outcome.next_phase)
            if outcome.next_phase == DOCUMENT_TRIGGER_PHASE:
                logger.info("Architecture phase complete for project %s; generating documents", project.id)
                generated = self._lifecycle.generate_all(project.id)

        self._emit("message.created", conversation.id, turn.project_id, {"message": assistant.to_dict(), "phase": outcome.current_phase})
        return ChatReply(
            conversation_id=conversation.id,
            message=assistant,
            current_phase=outcome.current_phase,
            next_phase=outcome.next_phase,
            phase_complete=outcome.phase_complete,
            actions=action_result,
            documents=generated,
        )

    def record_phase_response(self, project_id: str, phase: str, response: str) -> Project:
        """Store the operator's answer for ``phase`` and make it the project phase."""
        project = self._require_project(project_id)
        project.phase_responses[phase] = response
        project.phase = phase
        return self._projects.upsert(project)

    def get_phase(self, project_id: str) -> dict[str, Any]:
        project = self._require_project(project_id)
        return {"project_id": project.id, "phase": project.phase, "responses": dict(project.phase_responses)}

    def list_conversations(
        self,
        tenant_id: str,
        *,
        project_id: Optional[str] = None,
        limit: int = ACTIVE_CONVERSATION_LIMIT,
    ) -> list[Conversation]:
        items = [
            c
            for c in self._conversations.list()
            if c.tenant_id == tenant_id and c.status == "active" and (project_id is None or c.project_id == project_id)
        ]
        return items[:limit]

    def get_conversation(self, tenant_id: str, conversation_id: str) -> tuple[Conversation, list[Message]]:
        conversation = self._require_conversation(tenant_id, conversation_id)
        return conversation, self._messages.for_conversation(conversation.id)

    def create_conversation(
        self,
        tenant_id: str,
        *,
        context: str = "planning",
        project_id: Optional[str] = None,
        card_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Conversation:
        conversation = self._conversations.upsert(
            Conversation(
                tenant_id=tenant_id,
                project_id=project_id,
                card_id=card_id,
                context=context,
                title=title or f"{context} conversation",
            )
        )
        self._emit("conversation.created", conversation.id, project_id, {"conversation": conversation.to_dict()})
        return conversation

    def close_conversation(self, tenant_id: str, conversation_id: str) -> Conversation:
        conversation = self._require_conversation(tenant_id, conversation_id)
        conversation.status = "closed"
        conversation = self._conversations.upsert(conversation)
        self._emit("conversation.closed", conversation.id, conversation.project_id, {"conversation": conversation.to_dict()})
        return conversation

    def create_project(
        self,
        tenant_id: str,
        name: str,
        *,
        description: str = "",
        local_path: Optional[str] = None,
    ) -> tuple[Project, Board]:
        """Create a project with its board and the default lanes 0 through 10."""
        if not name.strip():
            raise PreconditionError("Project name is required")
        project = self._projects.upsert(
            Project(tenant_id=tenant_id, name=name.strip(), description=description, local_path=local_path)
        )
        board = self._boards.upsert(
            Board(
                project_id=project.id,
                name=f"{project.name} Board",
                lanes=[Lane(lane_number=number, name=lane_name) for number, lane_name in DEFAULT_LANES],
            )
        )
        logger.info("Created project %s with board %s", project.id, board.id)
        self._emit("project.created", project.id, project.id, {"project": project.to_dict()}, channel="system")
        return project, board

    def _open_conversation(self, tenant_id: str, turn: ChatTurn) -> Conversation:
        if turn.conversation_id:
            return self._require_conversation(tenant_id, turn.conversation_id)
        return self.create_conversation(
            tenant_id,
            context=turn.context,
            project_id=turn.project_id,
            card_id=turn.card_id,
        )

    def _system_prompt(self, turn: ChatTurn, phase: str, project: Optional[Project]) -> str:
        documents = []
        recent_cards = []
        if project is not None:
            documents = self._documents.for_project(project.id)
            board = self._boards.for_project(project.id)
            if board is not None:
                recent_cards = sorted(self._cards.for_board(board.id), key=lambda c: c.updated_at, reverse=True)

        card = self._cards.get(turn.card_id) if turn.card_id else None
        card_lane = None
        if card is not None:
            card_board = self._boards.get(card.board_id)
            card_lane = card_board.lane_by_id(card.lane_id) if card_board else None

        inputs = CopilotPromptInputs(
            context=turn.context,
            phase=phase,
            project=project,
            documents=documents,
            recent_cards=recent_cards,
            card=card,
            card_lane=card_lane,
        )
        return build_copilot_system_prompt(inputs, self._routing)

    def _set_phase(self, project_id: str, phase: str) -> Project:
        project = self._require_project(project_id)
        project.phase = phase
        return self._projects.upsert(project)

    def _require_project(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project not found: {project_id}")
        return project

    def _require_conversation(self, tenant_id: str, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None or conversation.tenant_id != tenant_id:
            raise NotFoundError("Conversation not found")
        return conversation

    def _emit(
        self,
        event_type: str,
        entity_id: str,
        project_id: Optional[str],
        payload: dict[str, Any],
        *,
        channel: str = "conversations",
    ) -> None:
        if self._bus is not None:
            self._bus.emit(channel=channel, event_type=event_type, entity_id=entity_id, payload=payload, project_id=project_id)
