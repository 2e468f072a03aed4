"""Repository interfaces for planning runtime persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from ..domain.models import (
    AgentDocument,
    Board,
    Card,
    CardHistoryEntry,
    Conversation,
    Document,
    Message,
    Project,
    ProjectTodo,
    StyleGuide,
    UsageRecord,
)


class ProjectRepository(ABC):
    """Persistence contract for projects."""
    @abstractmethod
    def list(self) -> List[Project]:
        raise NotImplementedError

    @abstractmethod
    def get(self, project_id: str) -> Optional[Project]:
        """Fetch a project by id, or ``None`` when no record exists."""
        raise NotImplementedError

    @abstractmethod
    def upsert(self, project: Project) -> Project:
        """Create or update a project record and refresh ``updated_at``."""
        raise NotImplementedError


class BoardRepository(ABC):
    """Persistence contract for boards and their lanes."""
    @abstractmethod
    def get(self, board_id: str) -> Optional[Board]:
        raise NotImplementedError

    @abstractmethod
    def for_project(self, project_id: str) -> Optional[Board]:
        """Return the first board owned by ``project_id``."""
        raise NotImplementedError

    @abstractmethod
    def upsert(self, board: Board) -> Board:
        raise NotImplementedError


class CardRepository(ABC):
    """Persistence contract for board cards.

    Position assignment and title de-duplication happen inside the
    repository lock so concurrent writers cannot interleave between the
    lookup and the write.
    """
    @abstractmethod
    def get(self, card_id: str) -> Optional[Card]:
        raise NotImplementedError

    @abstractmethod
    def for_board(self, board_id: str) -> List[Card]:
        """List cards on a board ordered by lane then position."""
        raise NotImplementedError

    @abstractmethod
    def children(self, parent_id: str) -> List[Card]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, card: Card) -> Card:
        """Replace a card by id, or append it unchanged when new."""
        raise NotImplementedError

    @abstractmethod
    def insert(self, card: Card) -> Card:
        """Append a card at the end of its lane.

        Args:
            card (Card): Card to persist. Its ``position`` is overwritten.

        Returns:
            Card: Persisted card with ``position = max(lane positions) + 1``.
        """
        raise NotImplementedError

    @abstractmethod
    def insert_or_merge(self, card: Card, merge: Callable[[Card], None]) -> tuple[Card, Optional[Card]]:
        """Insert ``card`` unless a card with the same title exists on its board.

        Args:
            card (Card): Candidate card to insert.
            merge (Callable[[Card], None]): Mutates the existing duplicate in place.

        Returns:
            tuple[Card, Optional[Card]]: The persisted card and, when a duplicate
            was merged, a snapshot of it taken before ``merge`` ran.
        """
        raise NotImplementedError

    @abstractmethod
    def move(self, card_id: str, lane_id: str) -> tuple[Card, str]:
        """Move a card to the end of ``lane_id``.

        Returns:
            tuple[Card, str]: Updated card and the lane id it came from.

        Raises:
            NotFoundError: When the card does not exist.
        """
        raise NotImplementedError


class CardHistoryRepository(ABC):
    """Append-only audit log for cards."""
    @abstractmethod
    def append(self, entry: CardHistoryEntry) -> CardHistoryEntry:
        raise NotImplementedError

    @abstractmethod
    def for_card(self, card_id: str) -> List[CardHistoryEntry]:
        raise NotImplementedError


class ConversationRepository(ABC):
    """Persistence contract for conversations."""
    @abstractmethod
    def list(self) -> List[Conversation]:
        """List conversations newest-first by ``updated_at``."""
        raise NotImplementedError

    @abstractmethod
    def get(self, conversation_id: str) -> Optional[Conversation]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, conversation: Conversation) -> Conversation:
        raise NotImplementedError


class MessageRepository(ABC):
    """Append-only message log keyed by conversation."""
    @abstractmethod
    def append(self, message: Message) -> Message:
        raise NotImplementedError

    @abstractmethod
    def for_conversation(self, conversation_id: str) -> List[Message]:
        """List messages for a conversation in creation order."""
        raise NotImplementedError


class DocumentRepository(ABC):
    """Persistence contract for versioned planning documents."""
    @abstractmethod
    def get(self, project_id: str, doc_type: str) -> Optional[Document]:
        raise NotImplementedError

    @abstractmethod
    def for_project(self, project_id: str) -> List[Document]:
        raise NotImplementedError

    @abstractmethod
    def append_version(self, project_id: str, doc_type: str, content: str) -> Document:
        """Append a new version, creating the document on first use.

        Args:
            project_id (str): Owning project.
            doc_type (str): One of the planning document types.
            content (str): Rendered document body.

        Returns:
            Document: Document with the new version as its latest.
        """
        raise NotImplementedError


class AgentDocumentRepository(ABC):
    """Persistence contract for agent plan/task/todo documents."""
    @abstractmethod
    def get(self, project_id: str, agent_name: str, doc_type: str) -> Optional[AgentDocument]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, document: AgentDocument) -> AgentDocument:
        """Store ``document``, bumping its version when one already exists."""
        raise NotImplementedError


class StyleGuideRepository(ABC):
    """Persistence contract for per-project style guides."""
    @abstractmethod
    def get(self, project_id: str) -> Optional[StyleGuide]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, guide: StyleGuide) -> StyleGuide:
        raise NotImplementedError


class UsageRepository(ABC):
    """Append-only usage ledger for model calls."""
    @abstractmethod
    def append(self, record: UsageRecord) -> UsageRecord:
        raise NotImplementedError

    @abstractmethod
    def list(self) -> List[UsageRecord]:
        raise NotImplementedError


class TodoRepository(ABC):
    """Persistence contract for project todos."""
    @abstractmethod
    def for_project(self, project_id: str) -> List[ProjectTodo]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, todo: ProjectTodo) -> ProjectTodo:
        raise NotImplementedError


class EventRepository(ABC):
    """Persistence contract for runtime event streams."""
    @abstractmethod
    def append(self, *, channel: str, event_type: str, entity_id: str, payload: dict[str, Any], project_id: str) -> dict[str, Any]:
        """Append an event envelope and return the persisted record.

        Args:
            channel (str): Event channel name (for example ``cards`` or ``documents``).
            event_type (str): Event type label within the channel namespace.
            entity_id (str): Identifier for the related entity.
            payload (dict[str, Any]): JSON-serializable event payload.
            project_id (str): Identifier for the related project.

        Returns:
            dict[str, Any]: Persisted event envelope including id and timestamp metadata.
        """
        raise NotImplementedError

    @abstractmethod
    def list_recent(self, limit: int = 100) -> List[dict[str, Any]]:
        """List the most recent events, capped at ``limit`` records."""
        raise NotImplementedError
