"""Domain model dataclasses and normalization helpers."""

from __future__ import annotations

import copy
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional, cast

ConversationStatus = Literal["active", "closed"]
MessageRole = Literal["user", "assistant"]
DocumentType = Literal["blueprint", "prd", "mvp", "playbook"]
AgentDocType = Literal["Plan", "Task", "Todo"]
ReviewState = Literal["none", "pending", "in_review", "approved", "rejected"]

DOCUMENT_TYPES: tuple[str, ...] = ("blueprint", "prd", "mvp", "playbook")
DOCUMENT_TYPE_NAMES: dict[str, str] = {
    "blueprint": "Blueprint",
    "prd": "PRD",
    "mvp": "MVP",
    "playbook": "Agent Playbook",
}
CARD_PRIORITIES = ("Low", "Medium", "High", "Critical")

_VALID_CONVERSATION_STATUSES = {"active", "closed"}
_VALID_MESSAGE_ROLES = {"user", "assistant"}
_VALID_AGENT_DOC_TYPES = {"Plan", "Task", "Todo"}
_VALID_REVIEW_STATES = {"none", "pending", "in_review", "approved", "rejected"}


def now_iso() -> str:
    """Get the current UTC timestamp formatted as ISO-8601 text."""
    return datetime.now(timezone.utc).isoformat()


def _id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


def _opt_str(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


@dataclass
class Project:
    """Project that owns a board, planning documents, and phase answers."""
    id: str = field(default_factory=lambda: _id("proj"))
    tenant_id: str = "default"
    name: str = ""
    description: str = ""
    status: str = "active"
    phase: str = "welcome"
    local_path: Optional[str] = None
    phase_responses: dict[str, str] = field(default_factory=dict)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize a project to a plain dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        """Deserialize a project from persisted data."""
        responses = data.get("phase_responses")
        return cls(
            id=str(data.get("id") or _id("proj")),
            tenant_id=str(data.get("tenant_id") or "default"),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            status=str(data.get("status") or "active"),
            phase=str(data.get("phase") or "welcome"),
            local_path=_opt_str(data.get("local_path")),
            phase_responses={str(k): str(v) for k, v in responses.items()} if isinstance(responses, dict) else {},
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
        )


@dataclass
class Lane:
    """Numbered column on a board."""
    id: str = field(default_factory=lambda: _id("lane"))
    lane_number: int = 0
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize a lane."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Lane":
        """Deserialize a lane, coercing the lane number."""
        return cls(
            id=str(data.get("id") or _id("lane")),
            lane_number=_as_int(data.get("lane_number"), 0),
            name=str(data.get("name") or ""),
        )


@dataclass
class Board:
    """Board owned by a project, with its lanes ordered by lane number."""
    id: str = field(default_factory=lambda: _id("board"))
    project_id: str = ""
    name: str = "Main Board"
    lanes: list[Lane] = field(default_factory=list)
    created_at: str = field(default_factory=now_iso)

    def lane_by_number(self, lane_number: int) -> Optional[Lane]:
        """Return the lane with ``lane_number`` or ``None``."""
        for lane in self.lanes:
            if lane.lane_number == lane_number:
                return lane
        return None

    def lane_by_id(self, lane_id: str) -> Optional[Lane]:
        """Return the lane with ``lane_id`` or ``None``."""
        for lane in self.lanes:
            if lane.id == lane_id:
                return lane
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize the board including nested lanes."""
        data = asdict(self)
        data["lanes"] = [lane.to_dict() for lane in self.lanes]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Board":
        """Deserialize a board and sort its lanes."""
        lanes = [Lane.from_dict(item) for item in list(data.get("lanes") or []) if isinstance(item, dict)]
        lanes.sort(key=lambda lane: lane.lane_number)
        return cls(
            id=str(data.get("id") or _id("board")),
            project_id=str(data.get("project_id") or ""),
            name=str(data.get("name") or "Main Board"),
            lanes=lanes,
            created_at=str(data.get("created_at") or now_iso()),
        )


@dataclass
class Card:
    """Unit of work tracked within one lane of a board."""
    id: str = field(default_factory=lambda: _id("card"))
    board_id: str = ""
    lane_id: str = ""
    title: str = ""
    description: str = ""
    card_type: str = "task"
    priority: str = "Medium"
    assigned_agent: Optional[str] = None
    status: str = "pending"
    position: int = 0
    parent_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize a card to a dictionary payload."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Card":
        """Deserialize and normalize a card from persisted data."""
        return cls(
            id=str(data.get("id") or _id("card")),
            board_id=str(data.get("board_id") or ""),
            lane_id=str(data.get("lane_id") or ""),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            card_type=str(data.get("card_type") or "task"),
            priority=str(data.get("priority") or "Medium"),
            assigned_agent=_opt_str(data.get("assigned_agent")),
            status=str(data.get("status") or "pending"),
            position=_as_int(data.get("position"), 0),
            parent_id=_opt_str(data.get("parent_id")),
            metadata=dict(data.get("metadata") or {}),
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
        )


@dataclass
class CardHistoryEntry:
    """Append-only audit record of a change to a card."""
    id: str = field(default_factory=lambda: _id("hist"))
    card_id: str = ""
    action: str = "updated"
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    performed_by: str = "system"
    details: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize a history entry."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CardHistoryEntry":
        """Deserialize a history entry."""
        return cls(
            id=str(data.get("id") or _id("hist")),
            card_id=str(data.get("card_id") or ""),
            action=str(data.get("action") or "updated"),
            previous_value=_opt_str(data.get("previous_value")),
            new_value=_opt_str(data.get("new_value")),
            performed_by=str(data.get("performed_by") or "system"),
            details=_opt_str(data.get("details")),
            metadata=dict(data.get("metadata") or {}),
            created_at=str(data.get("created_at") or now_iso()),
        )


@dataclass
class Conversation:
    """Planning conversation scoped to a tenant and optionally a project or card."""
    id: str = field(default_factory=lambda: _id("conv"))
    tenant_id: str = "default"
    project_id: Optional[str] = None
    card_id: Optional[str] = None
    context: str = "planning"
    title: str = ""
    status: ConversationStatus = "active"
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize a conversation."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Conversation":
        """Deserialize a conversation, normalizing its status."""
        status = str(data.get("status") or "active")
        if status not in _VALID_CONVERSATION_STATUSES:
            status = "active"
        return cls(
            id=str(data.get("id") or _id("conv")),
            tenant_id=str(data.get("tenant_id") or "default"),
            project_id=_opt_str(data.get("project_id")),
            card_id=_opt_str(data.get("card_id")),
            context=str(data.get("context") or "planning"),
            title=str(data.get("title") or ""),
            status=cast(ConversationStatus, status),
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
        )


@dataclass
class Message:
    """One role-tagged turn in a conversation."""
    id: str = field(default_factory=lambda: _id("msg"))
    conversation_id: str = ""
    role: MessageRole = "user"
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize a message."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Deserialize a message, defaulting unknown roles to ``user``."""
        role = str(data.get("role") or "user")
        if role not in _VALID_MESSAGE_ROLES:
            role = "user"
        return cls(
            id=str(data.get("id") or _id("msg")),
            conversation_id=str(data.get("conversation_id") or ""),
            role=cast(MessageRole, role),
            content=str(data.get("content") or ""),
            metadata=dict(data.get("metadata") or {}),
            created_at=str(data.get("created_at") or now_iso()),
        )


@dataclass
class DocumentVersion:
    """Immutable snapshot of one generated document version."""
    version: int = 1
    content: str = ""
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize a document version."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentVersion":
        """Deserialize a document version."""
        return cls(
            version=_as_int(data.get("version"), 1),
            content=str(data.get("content") or ""),
            created_at=str(data.get("created_at") or now_iso()),
        )


@dataclass
class Document:
    """Versioned planning document keyed by ``(project_id, doc_type)``."""
    id: str = field(default_factory=lambda: _id("doc"))
    project_id: str = ""
    doc_type: DocumentType = "blueprint"
    versions: list[DocumentVersion] = field(default_factory=list)
    updated_at: str = field(default_factory=now_iso)

    @property
    def version(self) -> int:
        return self.versions[-1].version if self.versions else 0

    @property
    def content(self) -> str:
        return self.versions[-1].content if self.versions else ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize the document with its version history."""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "doc_type": self.doc_type,
            "version": self.version,
            "content": self.content,
            "versions": [v.to_dict() for v in self.versions],
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        """Deserialize a document and order its versions."""
        doc_type = str(data.get("doc_type") or "blueprint").lower()
        if doc_type not in DOCUMENT_TYPES:
            doc_type = "blueprint"
        versions = [DocumentVersion.from_dict(v) for v in list(data.get("versions") or []) if isinstance(v, dict)]
        versions.sort(key=lambda v: v.version)
        return cls(
            id=str(data.get("id") or _id("doc")),
            project_id=str(data.get("project_id") or ""),
            doc_type=cast(DocumentType, doc_type),
            versions=versions,
            updated_at=str(data.get("updated_at") or now_iso()),
        )


@dataclass
class AgentDocument:
    """Agent-authored working document (plan, task log, or todo list)."""
    id: str = field(default_factory=lambda: _id("adoc"))
    project_id: str = ""
    agent_name: str = ""
    doc_type: AgentDocType = "Plan"
    content: str = ""
    version: int = 1
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize an agent document."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgentDocument":
        """Deserialize an agent document."""
        doc_type = str(data.get("doc_type") or "Plan")
        if doc_type not in _VALID_AGENT_DOC_TYPES:
            doc_type = "Plan"
        return cls(
            id=str(data.get("id") or _id("adoc")),
            project_id=str(data.get("project_id") or ""),
            agent_name=str(data.get("agent_name") or ""),
            doc_type=cast(AgentDocType, doc_type),
            content=str(data.get("content") or ""),
            version=_as_int(data.get("version"), 1),
            updated_at=str(data.get("updated_at") or now_iso()),
        )


@dataclass
class StyleGuide:
    """Per-project coding conventions surfaced to agents."""
    project_id: str = ""
    variable_case: str = "camelCase"
    function_case: str = "camelCase"
    class_case: str = "PascalCase"
    constant_case: str = "UPPER_SNAKE"
    file_case: str = "kebab-case"
    component_case: str = "PascalCase"
    indent_style: str = "spaces"
    indent_size: int = 2
    max_line_length: int = 100
    semicolons: bool = True
    single_quotes: bool = True
    trailing_commas: str = "es5"
    date_format: str = "ISO8601"
    currency_format: str = "USD"
    phone_format: str = "E164"
    zip_code_format: str = "US"
    number_format: str = "en-US"
    max_function_length: int = 50
    max_file_length: int = 400
    require_docstrings: bool = False
    test_naming_pattern: str = "*.test.ts"
    primary_language: str = "typescript"
    frameworks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize a style guide."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StyleGuide":
        """Deserialize a style guide, filling unset or mistyped fields with defaults."""
        base = cls()
        values: dict[str, Any] = {}
        for name, default in base.to_dict().items():
            raw = data.get(name)
            if raw is None:
                values[name] = copy.deepcopy(default)
            elif isinstance(default, bool):
                values[name] = bool(raw)
            elif isinstance(default, int):
                values[name] = _as_int(raw, default)
            elif isinstance(default, list):
                values[name] = [str(item) for item in raw] if isinstance(raw, list) else []
            else:
                values[name] = str(raw)
        return cls(**values)


@dataclass
class UsageRecord:
    """Token usage and billing for one completed model call."""
    id: str = field(default_factory=lambda: _id("usage"))
    agent_name: str = ""
    provider: str = ""
    model: str = ""
    operation: str = "chat"
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    price: float = 0.0
    project_id: Optional[str] = None
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize a usage record."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UsageRecord":
        """Deserialize a usage record."""
        return cls(
            id=str(data.get("id") or _id("usage")),
            agent_name=str(data.get("agent_name") or ""),
            provider=str(data.get("provider") or ""),
            model=str(data.get("model") or ""),
            operation=str(data.get("operation") or "chat"),
            input_tokens=_as_int(data.get("input_tokens"), 0),
            output_tokens=_as_int(data.get("output_tokens"), 0),
            cost=float(data.get("cost") or 0.0),
            price=float(data.get("price") or 0.0),
            project_id=_opt_str(data.get("project_id")),
            created_at=str(data.get("created_at") or now_iso()),
        )


@dataclass
class ProjectTodo:
    """Checklist item linked to a card, used for document review reminders."""
    id: str = field(default_factory=lambda: _id("todo"))
    project_id: str = ""
    content: str = ""
    completed: bool = False
    category: str = "review"
    agent_source: str = "ceo_copilot"
    card_id: Optional[str] = None
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize a todo."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectTodo":
        """Deserialize a todo."""
        return cls(
            id=str(data.get("id") or _id("todo")),
            project_id=str(data.get("project_id") or ""),
            content=str(data.get("content") or ""),
            completed=bool(data.get("completed", False)),
            category=str(data.get("category") or "review"),
            agent_source=str(data.get("agent_source") or "ceo_copilot"),
            card_id=_opt_str(data.get("card_id")),
            created_at=str(data.get("created_at") or now_iso()),
        )


def review_state_of(card: Card) -> ReviewState:
    """Read the review lifecycle state stored on a review card."""
    raw = str(card.metadata.get("review_state") or "none")
    return cast(ReviewState, raw if raw in _VALID_REVIEW_STATES else "none")
