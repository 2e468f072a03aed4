"""Pydantic request schemas for the planning API."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

PhaseName = Literal[
    "welcome",
    "vision",
    "requirements",
    "goals",
    "roles",
    "architecture",
    "blueprint-review",
    "prd-review",
    "mvp-review",
    "playbook-review",
    "planning-complete",
    "general",
]
DocumentTypeName = Literal["blueprint", "prd", "mvp", "playbook"]
AgentDocTypeName = Literal["Plan", "Task", "Todo"]
TodoStatusName = Literal["pending", "in_progress", "completed", "blocked"]
TodoPriorityName = Literal["low", "medium", "high"]
EventChannelName = Literal["cards", "documents", "conversations", "system"]
Complexity = Literal["simple", "moderate", "complex"]


class ChatRequest(BaseModel):
    """One operator message for the copilot."""

    message: str = Field(min_length=1)
    conversation_id: Optional[str] = None
    context: str = "planning"
    project_id: Optional[str] = None
    card_id: Optional[str] = None
    phase: Optional[PhaseName] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class CreateConversationRequest(BaseModel):
    context: str = "planning"
    project_id: Optional[str] = None
    card_id: Optional[str] = None
    title: Optional[str] = None


class PhaseResponseRequest(BaseModel):
    """Operator answer recorded for a planning phase."""

    project_id: str
    phase: PhaseName
    response: str


class GenerateDocumentRequest(BaseModel):
    project_id: str
    document_type: DocumentTypeName
    create_review_card: bool = True
    create_todo: bool = True


class GenerateAllRequest(BaseModel):
    project_id: str


class ReviewDecisionRequest(BaseModel):
    """Approve or reject the review card of one document."""

    project_id: str
    document_type: DocumentTypeName
    reason: Optional[str] = None


class CreateProjectRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    local_path: Optional[str] = None


class ExecuteAgentRequest(BaseModel):
    """Run one agent against a project, optionally on a card."""

    project_id: str
    message: str = Field(min_length=1)
    card_id: Optional[str] = None
    complexity: Complexity = "moderate"
    additional_context: Optional[dict[str, Any]] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)


class AgentDocumentRequest(BaseModel):
    content: str


class AgentTodoRequest(BaseModel):
    """New checklist entry for an agent's Todo document."""

    title: str = Field(min_length=1)
    priority: TodoPriorityName = "medium"
    status: TodoStatusName = "pending"
    description: Optional[str] = None


class AgentTodoStatusRequest(BaseModel):
    status: TodoStatusName


class StyleGuideRequest(BaseModel):
    """Partial style guide; unset fields keep their current values."""

    values: dict[str, Any] = Field(default_factory=dict)
