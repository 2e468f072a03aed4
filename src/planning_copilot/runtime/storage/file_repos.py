"""File-backed repository implementations for planning runtime state."""

from __future__ import annotations

import copy
import json
import os
import threading
import uuid
from collections import deque
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

from ...io_utils import FileLock, _load_data, _save_data
from ..domain.models import (
    AgentDocument,
    Board,
    Card,
    CardHistoryEntry,
    Conversation,
    Document,
    DocumentVersion,
    Message,
    Project,
    ProjectTodo,
    StyleGuide,
    UsageRecord,
    now_iso,
)
from ..errors import NotFoundError
from .interfaces import (
    AgentDocumentRepository,
    BoardRepository,
    CardHistoryRepository,
    CardRepository,
    ConversationRepository,
    DocumentRepository,
    EventRepository,
    MessageRepository,
    ProjectRepository,
    StyleGuideRepository,
    TodoRepository,
    UsageRepository,
)

T = TypeVar("T")


class _YamlCollectionRepo(Generic[T]):
    def __init__(
        self,
        path: Path,
        lock_path: Path,
        key: str,
        loader: Callable[[dict[str, Any]], T],
        dumper: Callable[[T], dict[str, Any]],
    ) -> None:
        """Initialize the YamlCollectionRepo.

        Args:
            path (Path): YAML file path containing this repository collection.
            lock_path (Path): Lock file path used for cross-process synchronization.
            key (str): Top-level YAML key that stores serialized collection items.
            loader (Callable[[dict[str, Any]], T]): Converts raw dictionaries into models.
            dumper (Callable[[T], dict[str, Any]]): Converts models into dictionaries.
        """
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()
        self._key = key
        self._loader = loader
        self._dumper = dumper

    def _load(self) -> list[T]:
        raw = _load_data(self._path, {})
        if not isinstance(raw, dict):
            return []
        items = raw.get(self._key, [])
        if not isinstance(items, list):
            return []
        return [self._loader(item) for item in items if isinstance(item, dict)]

    def _save(self, items: list[T]) -> None:
        _save_data(self._path, {"version": 1, self._key: [self._dumper(item) for item in items]})

    def read(self) -> list[T]:
        with self._thread_lock:
            with self._lock:
                return self._load()

    @contextmanager
    def transaction(self) -> Iterator[list[T]]:
        """Hold both locks, yield the loaded items, and save them on clean exit."""
        with self._thread_lock:
            with self._lock:
                items = self._load()
                yield items
                self._save(items)


def _replace_by_id(items: list[Any], item: Any) -> bool:
    for idx, existing in enumerate(items):
        if existing.id == item.id:
            items[idx] = item
            return True
    return False


def _next_position(cards: list[Card], lane_id: str) -> int:
    positions = [c.position for c in cards if c.lane_id == lane_id]
    return (max(positions) + 1) if positions else 0


class FileProjectRepository(ProjectRepository):
    """YAML-backed project repository."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[Project](path, lock_path, "projects", Project.from_dict, lambda p: p.to_dict())

    def list(self) -> list[Project]:
        return self._repo.read()

    def get(self, project_id: str) -> Optional[Project]:
        for project in self.list():
            if project.id == project_id:
                return project
        return None

    def upsert(self, project: Project) -> Project:
        project.updated_at = now_iso()
        with self._repo.transaction() as items:
            if not _replace_by_id(items, project):
                items.append(project)
        return project


class FileBoardRepository(BoardRepository):
    """YAML-backed board repository; lanes are stored inline."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[Board](path, lock_path, "boards", Board.from_dict, lambda b: b.to_dict())

    def get(self, board_id: str) -> Optional[Board]:
        for board in self._repo.read():
            if board.id == board_id:
                return board
        return None

    def for_project(self, project_id: str) -> Optional[Board]:
        for board in self._repo.read():
            if board.project_id == project_id:
                return board
        return None

    def upsert(self, board: Board) -> Board:
        with self._repo.transaction() as items:
            if not _replace_by_id(items, board):
                items.append(board)
        return board


class FileCardRepository(CardRepository):
    """YAML-backed card repository with lock-held position and dedup logic."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        """Initialize the FileCardRepository.

        Args:
            path (Path): YAML file path for card records.
            lock_path (Path): Lock file path held across lookup-then-write sequences.
        """
        self._repo = _YamlCollectionRepo[Card](path, lock_path, "cards", Card.from_dict, lambda c: c.to_dict())

    def get(self, card_id: str) -> Optional[Card]:
        for card in self._repo.read():
            if card.id == card_id:
                return card
        return None

    def for_board(self, board_id: str) -> list[Card]:
        cards = [c for c in self._repo.read() if c.board_id == board_id]
        return sorted(cards, key=lambda c: (c.lane_id, c.position))

    def children(self, parent_id: str) -> list[Card]:
        return [c for c in self._repo.read() if c.parent_id == parent_id]

    def upsert(self, card: Card) -> Card:
        card.updated_at = now_iso()
        with self._repo.transaction() as items:
            if not _replace_by_id(items, card):
                items.append(card)
        return card

    def insert(self, card: Card) -> Card:
        with self._repo.transaction() as items:
            card.position = _next_position(items, card.lane_id)
            card.created_at = card.created_at or now_iso()
            card.updated_at = now_iso()
            items.append(card)
        return card

    def insert_or_merge(self, card: Card, merge: Callable[[Card], None]) -> tuple[Card, Optional[Card]]:
        """Insert a card or merge it into an exact-title duplicate on the same board.

        Args:
            card (Card): Candidate card for insertion.
            merge (Callable[[Card], None]): Applied to the duplicate while the lock is held.
                An exception raised here leaves the stored cards unchanged.

        Returns:
            tuple[Card, Optional[Card]]: Persisted card plus the pre-merge snapshot
            when a duplicate existed, otherwise ``None``.
        """
        with self._repo.transaction() as items:
            for existing in items:
                if existing.board_id == card.board_id and existing.title == card.title:
                    previous = copy.deepcopy(existing)
                    merge(existing)
                    if existing.lane_id != previous.lane_id:
                        others = [c for c in items if c.id != existing.id]
                        existing.position = _next_position(others, existing.lane_id)
                    existing.updated_at = now_iso()
                    return existing, previous
            card.position = _next_position(items, card.lane_id)
            card.updated_at = now_iso()
            items.append(card)
            return card, None

    def move(self, card_id: str, lane_id: str) -> tuple[Card, str]:
        with self._repo.transaction() as items:
            for card in items:
                if card.id != card_id:
                    continue
                from_lane = card.lane_id
                others = [c for c in items if c.id != card_id]
                card.lane_id = lane_id
                card.position = _next_position(others, lane_id)
                card.updated_at = now_iso()
                return card, from_lane
        raise NotFoundError(f"Card not found: {card_id}")


class FileCardHistoryRepository(CardHistoryRepository):
    """YAML-backed append-only card history."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[CardHistoryEntry](
            path, lock_path, "card_history", CardHistoryEntry.from_dict, lambda h: h.to_dict()
        )

    def append(self, entry: CardHistoryEntry) -> CardHistoryEntry:
        with self._repo.transaction() as items:
            items.append(entry)
        return entry

    def for_card(self, card_id: str) -> list[CardHistoryEntry]:
        return [entry for entry in self._repo.read() if entry.card_id == card_id]


class FileConversationRepository(ConversationRepository):
    """YAML-backed conversation repository."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[Conversation](
            path, lock_path, "conversations", Conversation.from_dict, lambda c: c.to_dict()
        )

    def list(self) -> list[Conversation]:
        return sorted(self._repo.read(), key=lambda c: c.updated_at, reverse=True)

    def get(self, conversation_id: str) -> Optional[Conversation]:
        for conversation in self._repo.read():
            if conversation.id == conversation_id:
                return conversation
        return None

    def upsert(self, conversation: Conversation) -> Conversation:
        conversation.updated_at = now_iso()
        with self._repo.transaction() as items:
            if not _replace_by_id(items, conversation):
                items.append(conversation)
        return conversation


class FileMessageRepository(MessageRepository):
    """YAML-backed message log."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[Message](path, lock_path, "messages", Message.from_dict, lambda m: m.to_dict())

    def append(self, message: Message) -> Message:
        with self._repo.transaction() as items:
            items.append(message)
        return message

    def for_conversation(self, conversation_id: str) -> list[Message]:
        # Storage order is append order, which is creation order.
        return [m for m in self._repo.read() if m.conversation_id == conversation_id]


class FileDocumentRepository(DocumentRepository):
    """YAML-backed planning document store with inline version history."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[Document](path, lock_path, "documents", Document.from_dict, lambda d: d.to_dict())

    def get(self, project_id: str, doc_type: str) -> Optional[Document]:
        for doc in self._repo.read():
            if doc.project_id == project_id and doc.doc_type == doc_type:
                return doc
        return None

    def for_project(self, project_id: str) -> list[Document]:
        return [doc for doc in self._repo.read() if doc.project_id == project_id]

    def append_version(self, project_id: str, doc_type: str, content: str) -> Document:
        with self._repo.transaction() as items:
            target: Optional[Document] = None
            for doc in items:
                if doc.project_id == project_id and doc.doc_type == doc_type:
                    target = doc
                    break
            if target is None:
                target = Document.from_dict({"project_id": project_id, "doc_type": doc_type})
                items.append(target)
            target.versions.append(DocumentVersion(version=target.version + 1, content=content))
            target.updated_at = now_iso()
            return target


class FileAgentDocumentRepository(AgentDocumentRepository):
    """YAML-backed agent document store."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[AgentDocument](
            path, lock_path, "agent_documents", AgentDocument.from_dict, lambda d: d.to_dict()
        )

    def get(self, project_id: str, agent_name: str, doc_type: str) -> Optional[AgentDocument]:
        for doc in self._repo.read():
            if doc.project_id == project_id and doc.agent_name == agent_name and doc.doc_type == doc_type:
                return doc
        return None

    def upsert(self, document: AgentDocument) -> AgentDocument:
        with self._repo.transaction() as items:
            for idx, existing in enumerate(items):
                if (existing.project_id, existing.agent_name, existing.doc_type) == (
                    document.project_id,
                    document.agent_name,
                    document.doc_type,
                ):
                    document.id = existing.id
                    document.version = existing.version + 1
                    document.updated_at = now_iso()
                    items[idx] = document
                    return document
            items.append(document)
        return document


class FileStyleGuideRepository(StyleGuideRepository):
    """YAML-backed style guide store keyed by project."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[StyleGuide](path, lock_path, "style_guides", StyleGuide.from_dict, lambda g: g.to_dict())

    def get(self, project_id: str) -> Optional[StyleGuide]:
        for guide in self._repo.read():
            if guide.project_id == project_id:
                return guide
        return None

    def upsert(self, guide: StyleGuide) -> StyleGuide:
        with self._repo.transaction() as items:
            items[:] = [g for g in items if g.project_id != guide.project_id]
            items.append(guide)
        return guide


class FileUsageRepository(UsageRepository):
    """YAML-backed usage ledger."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[UsageRecord](path, lock_path, "usage", UsageRecord.from_dict, lambda u: u.to_dict())

    def append(self, record: UsageRecord) -> UsageRecord:
        with self._repo.transaction() as items:
            items.append(record)
        return record

    def list(self) -> list[UsageRecord]:
        return self._repo.read()


class FileTodoRepository(TodoRepository):
    """YAML-backed project todo store."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[ProjectTodo](path, lock_path, "todos", ProjectTodo.from_dict, lambda t: t.to_dict())

    def for_project(self, project_id: str) -> list[ProjectTodo]:
        return [todo for todo in self._repo.read() if todo.project_id == project_id]

    def upsert(self, todo: ProjectTodo) -> ProjectTodo:
        with self._repo.transaction() as items:
            if not _replace_by_id(items, todo):
                items.append(todo)
        return todo


class FileEventRepository(EventRepository):
    """JSONL-backed event stream repository."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        """Initialize the FileEventRepository.

        Args:
            path (Path): JSONL file path where event envelopes are appended.
            lock_path (Path): Lock file path used while writing or reading events.
        """
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()

    def append(self, *, channel: str, event_type: str, entity_id: str, payload: dict[str, Any], project_id: str) -> dict[str, Any]:
        event = {
            "id": f"evt-{uuid.uuid4().hex[:10]}",
            "ts": now_iso(),
            "channel": channel,
            "type": event_type,
            "entity_id": entity_id,
            "payload": payload,
            "project_id": project_id,
        }
        with self._thread_lock:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(json.dumps(event, default=str) + "\n")
                    handle.flush()
                    os.fsync(handle.fileno())
        return event

    def list_recent(self, limit: int = 100) -> list[dict[str, Any]]:
        """Read the newest events up to ``limit``.

        Args:
            limit (int): Maximum number of newest events to return.

        Returns:
            list[dict[str, Any]]: Parsed event envelopes from the tail of the stream.
        """
        if limit <= 0 or not self._path.exists():
            return []
        with self._thread_lock:
            with self._lock:
                with self._path.open("r", encoding="utf-8") as handle:
                    selected = list(deque(handle, maxlen=limit))
        events: list[dict[str, Any]] = []
        for line in selected:
            try:
                parsed = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                events.append(parsed)
        return events


class FileConfigRepository:
    """YAML-backed repository for runtime configuration."""
    def __init__(self, path: Path, lock_path: Path) -> None:
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()

    def load(self) -> dict[str, Any]:
        """Load configuration from disk, or an empty mapping."""
        with self._thread_lock:
            with self._lock:
                raw = _load_data(self._path, {})
                return raw if isinstance(raw, dict) else {}

    def save(self, config: dict[str, Any]) -> dict[str, Any]:
        """Persist configuration to disk atomically."""
        with self._thread_lock:
            with self._lock:
                _save_data(self._path, config)
        return config
