"""System prompt for copilot planning turns."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ...prompts import load as load_prompt
from ..agents.routing import AgentRoutingTable
from ..domain.models import CARD_PRIORITIES, Card, Document, Lane, Project
from ..planning.phases import phase_guidance

RESPONSE_EXCERPT_CHARS = 200
DOCUMENT_EXCERPT_CHARS = 500
RECENT_CARD_LIMIT = 10

_CLOSING = "Remember: be helpful, not interrogative. Accept what the operator tells you and help them make progress."


@dataclass(frozen=True)
class CopilotPromptInputs:
    """Everything the copilot prompt describes for one turn."""
    context: str
    phase: str
    project: Optional[Project] = None
    documents: list[Document] = field(default_factory=list)
    recent_cards: list[Card] = field(default_factory=list)
    card: Optional[Card] = None
    card_lane: Optional[Lane] = None


def _previous_responses(project: Optional[Project]) -> str:
    if project is None or not project.phase_responses:
        return ""
    return "\n".join(
        f"{phase}: {response[:RESPONSE_EXCERPT_CHARS]}..." for phase, response in project.phase_responses.items()
    )


def _project_context(inputs: CopilotPromptInputs) -> str:
    project = inputs.project
    if project is None:
        return ""
    docs = "\n".join(f"- {doc.doc_type}: {doc.content[:DOCUMENT_EXCERPT_CHARS]}..." for doc in inputs.documents)
    cards = "\n".join(f"- [{card.status}] {card.title} (id: {card.id})" for card in inputs.recent_cards[:RECENT_CARD_LIMIT])
    return (
        f"Project: {project.name}\n"
        f"Description: {project.description or 'N/A'}\n"
        f"Status: {project.status}\n\n"
        f"Documents:\n{docs or 'No documents yet'}\n\n"
        f"Recent Cards:\n{cards or 'No cards yet'}\n"
    )


def _card_context(card: Optional[Card], lane: Optional[Lane]) -> str:
    if card is None:
        return ""
    lane_label = f"{lane.name} (Lane {lane.lane_number})" if lane else "Unknown"
    return (
        f"Selected Card: {card.title}\n"
        f"Description: {card.description or 'N/A'}\n"
        f"Lane: {lane_label}\n"
        f"Status: {card.status}\n"
        f"Priority: {card.priority}\n"
        f"Type: {card.card_type}\n"
    )


def build_copilot_system_prompt(inputs: CopilotPromptInputs, routing: AgentRoutingTable) -> str:
    """Assemble the copilot prompt.

    Sections in order: base instructions with the action format and agent
    playbook, current context and phase, phase guidance, earlier phase
    answers, project context, then the selected card.
    """
    base = load_prompt("copilot/system.md").format(
        valid_agents=", ".join(routing.agents()),
        valid_priorities=", ".join(reversed(CARD_PRIORITIES)),
    )
    parts = [base, f"Current Context: {inputs.context}\nCurrent Planning Phase: {inputs.phase}"]

    guidance = phase_guidance(inputs.phase)
    if guidance:
        parts.append(f"=== PHASE GUIDANCE ===\n{guidance}\n===")
    previous = _previous_responses(inputs.project)
    if previous:
        parts.append(f"What we've discussed so far:\n{previous}")
    project_context = _project_context(inputs)
    if project_context:
        parts.append(project_context.rstrip())
    card_context = _card_context(inputs.card, inputs.card_lane)
    if card_context:
        parts.append(card_context.rstrip())
    parts.append(_CLOSING)
    return "\n\n".join(parts)
