"""Planning document generation and the review card lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..domain.models import (
    DOCUMENT_TYPE_NAMES,
    DOCUMENT_TYPES,
    Board,
    Card,
    CardHistoryEntry,
    Document,
    Project,
    ProjectTodo,
    ReviewState,
    review_state_of,
)
from ..errors import CopilotError, InvalidReviewTransition, NotFoundError
from ..events.bus import EventBus
from ..storage.interfaces import (
    BoardRepository,
    CardHistoryRepository,
    CardRepository,
    DocumentRepository,
    ProjectRepository,
    TodoRepository,
)
from .templates import document_file_name, render_document

logger = logging.getLogger(__name__)

INITIAL_LANES = {"blueprint": 0, "prd": 1, "mvp": 1, "playbook": 0}
REVIEW_LANE = 6
COMPLETE_LANE = 7
REVIEW_OWNER = "ceo_copilot"

ALLOWED_TRANSITIONS: frozenset[tuple[str, str]] = frozenset(
    {
        ("none", "pending"),
        ("pending", "in_review"),
        ("in_review", "approved"),
        ("in_review", "rejected"),
        ("rejected", "pending"),
    }
)
_REOPENABLE = {"in_review", "approved"}
_CARD_STATUS = {
    "none": "pending",
    "pending": "pending",
    "in_review": "Ready",
    "approved": "Done",
    "rejected": "Blocked",
}


@dataclass
class FilesystemResult:
    saved: bool
    file_path: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"saved": self.saved, "file_path": self.file_path, "error": self.error}


@dataclass
class DocumentGenerationResult:
    """Outcome of generating one planning document."""
    doc_type: str
    document: Document
    filesystem: FilesystemResult
    review_card: Optional[Card] = None
    card_created: bool = False
    linked_todo: Optional[ProjectTodo] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_type": self.doc_type,
            "success": True,
            "document": self.document.to_dict(),
            "filesystem": self.filesystem.to_dict(),
            "review_card": self.review_card.to_dict() if self.review_card else None,
            "card_created": self.card_created,
            "linked_todo": self.linked_todo.to_dict() if self.linked_todo else None,
        }


@dataclass
class GenerateAllResult:
    results: list[dict[str, Any]] = field(default_factory=list)
    phase: str = "blueprint-review"

    def to_dict(self) -> dict[str, Any]:
        return {"results": list(self.results), "phase": self.phase}


def review_card_title(doc_type: str) -> str:
    return f"Review {DOCUMENT_TYPE_NAMES[doc_type]}"


class DocumentLifecycle:
    """Generate versioned planning documents and drive their review cards.

    Review cards move through ``none -> pending -> in_review`` on generation,
    then to ``approved`` or ``rejected`` on operator decision. A rejected card
    loops back to ``pending``. Regenerating an ``in_review`` or ``approved``
    document reopens its card through ``pending``. Every transition is
    written to the card history.
    """
    def __init__(
        self,
        *,
        projects: ProjectRepository,
        boards: BoardRepository,
        cards: CardRepository,
        history: CardHistoryRepository,
        documents: DocumentRepository,
        todos: TodoRepository,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._projects = projects
        self._boards = boards
        self._cards = cards
        self._history = history
        self._documents = documents
        self._todos = todos
        self._bus = bus

    def generate(
        self,
        project_id: str,
        doc_type: str,
        *,
        create_review_card: bool = True,
        create_todo: bool = True,
        performed_by: str = REVIEW_OWNER,
    ) -> DocumentGenerationResult:
        """Render and store a new version of one planning document.

        Args:
            project_id (str): Project whose phase responses feed the template.
            doc_type (str): One of ``blueprint``, ``prd``, ``mvp``, ``playbook``.
            create_review_card (bool): Find or create the review card and put it in review.
            create_todo (bool): Create or relink the matching review todo.
            performed_by (str): Actor recorded in card history.

        Returns:
            DocumentGenerationResult: Stored document, review card, todo, and
            the outcome of the best-effort write to the project directory.

        Raises:
            NotFoundError: When the project does not exist.
            CopilotError: When ``doc_type`` is not a planning document type.
        """
        if doc_type not in DOCUMENT_TYPES:
            raise CopilotError(f"Unknown document type: {doc_type}")
        project = self._require_project(project_id)
        content = render_document(doc_type, project.name, project.phase_responses)
        document = self._documents.append_version(project_id, doc_type, content)
        filesystem = self._write_to_project_dir(project, doc_type, content)

        result = DocumentGenerationResult(doc_type=doc_type, document=document, filesystem=filesystem)
        board = self._boards.for_project(project_id)
        if board is not None and create_review_card:
            card, created = self._find_or_create_review_card(board, doc_type, project.name, performed_by)
            card = self._enter_review(board, card, performed_by, document)
            result.review_card = card
            result.card_created = created
            if create_todo:
                result.linked_todo = self._link_todo(project_id, doc_type, card)

        logger.info(
            "Generated %s v%s for project %s (review card: %s)",
            doc_type,
            document.version,
            project_id,
            result.review_card.id if result.review_card else None,
        )
        self._emit("document.generated", document.id, project_id, {"document_type": doc_type, "version": document.version})
        return result

    def generate_all(self, project_id: str, *, performed_by: str = REVIEW_OWNER) -> GenerateAllResult:
        """Generate every planning document in order, then move the project to review.

        A failure on one document is recorded in its result entry and does
        not stop the others.
        """
        project = self._require_project(project_id)
        outcome = GenerateAllResult()
        for doc_type in DOCUMENT_TYPES:
            try:
                outcome.results.append(self.generate(project_id, doc_type, performed_by=performed_by).to_dict())
            except (CopilotError, OSError) as exc:
                logger.warning("Failed to generate %s for project %s: %s", doc_type, project_id, exc)
                outcome.results.append({"document_type": doc_type, "success": False, "error": str(exc)})
        project = self._require_project(project.id)
        project.phase = outcome.phase
        self._projects.upsert(project)
        return outcome

    def approve(self, project_id: str, doc_type: str, *, performed_by: str = "user") -> dict[str, Any]:
        """Approve an in-review document and move its card to the complete lane."""
        board, card = self._require_review_card(project_id, doc_type)
        complete_lane = board.lane_by_number(COMPLETE_LANE)
        if complete_lane is None:
            raise NotFoundError("Complete lane not found")
        card = self._transition(
            board,
            card,
            "approved",
            performed_by=performed_by,
            target_lane=COMPLETE_LANE,
            details=f"{DOCUMENT_TYPE_NAMES[doc_type]} approved",
        )
        completed = 0
        for todo in self._todos.for_project(project_id):
            if todo.card_id == card.id and not todo.completed:
                todo.completed = True
                self._todos.upsert(todo)
                completed += 1
        self._emit("review.approved", card.id, project_id, {"document_type": doc_type})
        return {"card": card.to_dict(), "moved_to_lane": complete_lane.name, "todos_completed": completed}

    def reject(
        self,
        project_id: str,
        doc_type: str,
        *,
        performed_by: str = "user",
        reason: Optional[str] = None,
    ) -> dict[str, Any]:
        """Record a rejection and send the card back to ``pending`` for rework."""
        board, card = self._require_review_card(project_id, doc_type)
        extra = {"reason": reason} if reason else {}
        card = self._transition(board, card, "rejected", performed_by=performed_by, details=reason, metadata=extra)
        card = self._transition(board, card, "pending", performed_by=performed_by, details="Awaiting revision")
        self._emit("review.rejected", card.id, project_id, {"document_type": doc_type, "reason": reason})
        return {"card": card.to_dict()}

    def find_review_card(self, board: Board, doc_type: str, project_name: str = "") -> Optional[Card]:
        name = DOCUMENT_TYPE_NAMES[doc_type]
        titles = {review_card_title(doc_type).lower(), name.lower()}
        if project_name:
            titles.add(f"{project_name} - {name}".lower())
        cards = self._cards.for_board(board.id)
        for card in cards:
            if card.metadata.get("document_type") == doc_type:
                return card
        for card in cards:
            if card.title.lower() in titles:
                return card
        return None

    def _find_or_create_review_card(self, board: Board, doc_type: str, project_name: str, performed_by: str) -> tuple[Card, bool]:
        existing = self.find_review_card(board, doc_type, project_name)
        if existing is not None:
            if existing.metadata.get("document_type") != doc_type:
                existing.metadata["document_type"] = doc_type
                self._cards.upsert(existing)
            return existing, False

        lane = board.lane_by_number(INITIAL_LANES[doc_type]) or board.lane_by_number(REVIEW_LANE)
        if lane is None:
            raise NotFoundError(f"Initial lane {INITIAL_LANES[doc_type]} not found for {doc_type}")
        name = DOCUMENT_TYPE_NAMES[doc_type]
        card = self._cards.insert(
            Card(
                board_id=board.id,
                lane_id=lane.id,
                title=review_card_title(doc_type),
                description=f"Review and approve the {name} document for {project_name}.",
                card_type="Doc",
                priority="high",
                assigned_agent=REVIEW_OWNER,
                status="pending",
                metadata={"document_type": doc_type, "review_state": "none"},
            )
        )
        self._history.append(
            CardHistoryEntry(
                card_id=card.id,
                action="created",
                new_value=lane.name,
                performed_by=performed_by,
                details=f"Card created for {name} document",
                metadata={"document_type": doc_type},
            )
        )
        return card, True

    def _enter_review(self, board: Board, card: Card, performed_by: str, document: Document) -> Card:
        meta = {"document_id": document.id, "version": document.version}
        state = review_state_of(card)
        if state in _REOPENABLE:
            card = self._reopen(board, card, performed_by, meta)
        elif state in {"none", "rejected"}:
            card = self._transition(board, card, "pending", performed_by=performed_by, metadata=meta)
        name = DOCUMENT_TYPE_NAMES[card.metadata["document_type"]]
        return self._transition(
            board,
            card,
            "in_review",
            performed_by=performed_by,
            target_lane=REVIEW_LANE,
            details=f"{name} document generated and ready for review",
            metadata=meta,
        )

    def _reopen(self, board: Board, card: Card, performed_by: str, metadata: dict[str, Any]) -> Card:
        previous = review_state_of(card)
        card.metadata["review_state"] = "pending"
        card.status = _CARD_STATUS["pending"]
        self._cards.upsert(card)
        self._history.append(
            CardHistoryEntry(
                card_id=card.id,
                action="reopened",
                previous_value=previous,
                new_value="pending",
                performed_by=performed_by,
                details="Document regenerated",
                metadata=dict(metadata),
            )
        )
        return card

    def _transition(
        self,
        board: Board,
        card: Card,
        target: ReviewState,
        *,
        performed_by: str,
        target_lane: Optional[int] = None,
        details: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Card:
        current = review_state_of(card)
        if (current, target) not in ALLOWED_TRANSITIONS:
            raise InvalidReviewTransition(current, target)

        previous_lane = board.lane_by_id(card.lane_id)
        new_lane = board.lane_by_number(target_lane) if target_lane is not None else None
        lane_changed = new_lane is not None and new_lane.id != card.lane_id

        card.metadata["review_state"] = target
        card.status = _CARD_STATUS[target]
        self._cards.upsert(card)
        if lane_changed and new_lane is not None:
            card, _ = self._cards.move(card.id, new_lane.id)

        self._history.append(
            CardHistoryEntry(
                card_id=card.id,
                action="lane_change" if lane_changed else "status_change",
                previous_value=(previous_lane.name if previous_lane else None) if lane_changed else current,
                new_value=new_lane.name if lane_changed and new_lane else target,
                performed_by=performed_by,
                details=details or f"Review {current} -> {target}",
                metadata={
                    "from_state": current,
                    "to_state": target,
                    "lane_changed": lane_changed,
                    "previous_lane_number": previous_lane.lane_number if previous_lane else None,
                    "new_lane_number": new_lane.lane_number if new_lane else (previous_lane.lane_number if previous_lane else None),
                    **(metadata or {}),
                },
            )
        )
        return card

    def _link_todo(self, project_id: str, doc_type: str, card: Card) -> ProjectTodo:
        content = review_card_title(doc_type)
        for todo in self._todos.for_project(project_id):
            if todo.content == content:
                todo.card_id = card.id
                todo.completed = False
                return self._todos.upsert(todo)
        return self._todos.upsert(ProjectTodo(project_id=project_id, content=content, card_id=card.id))

    def _require_project(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project not found: {project_id}")
        return project

    def _require_review_card(self, project_id: str, doc_type: str) -> tuple[Board, Card]:
        project = self._require_project(project_id)
        board = self._boards.for_project(project_id)
        if board is None:
            raise NotFoundError(f"No board found for project {project_id}")
        card = self.find_review_card(board, doc_type, project.name)
        if card is None:
            raise NotFoundError(f"Review card not found: {review_card_title(doc_type)}")
        return board, card

    def _write_to_project_dir(self, project: Project, doc_type: str, content: str) -> FilesystemResult:
        if not project.local_path:
            return FilesystemResult(saved=False, error="No local path configured for project")
        target = Path(project.local_path) / "docs" / document_file_name(doc_type)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to write %s to %s: %s", doc_type, target, exc)
            return FilesystemResult(saved=False, file_path=str(target), error=str(exc))
        return FilesystemResult(saved=True, file_path=str(target))

    def _emit(self, event_type: str, entity_id: str, project_id: str, payload: dict[str, Any]) -> None:
        if self._bus is not None:
            self._bus.emit(channel="documents", event_type=event_type, entity_id=entity_id, payload=payload, project_id=project_id)
