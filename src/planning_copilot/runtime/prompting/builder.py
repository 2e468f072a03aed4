"""Assemble an agent's system prompt and user context within token budgets."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

from ..agents.registry import AgentRegistry
from ..domain.models import DOCUMENT_TYPES
from ..storage.interfaces import (
    BoardRepository,
    CardRepository,
    DocumentRepository,
    ProjectRepository,
    StyleGuideRepository,
)
from .agent_context import AgentDocumentService
from .budget import BudgetMode, TokenBudget, budget_for, estimate_tokens, truncate_to_tokens
from .style_guide import format_style_guide

logger = logging.getLogger(__name__)

TaskComplexity = Literal["simple", "moderate", "complex"]

SECTION_SEPARATOR = "\n\n---\n\n"
_PROJECT_CONTEXT_DOCS = tuple(t for t in DOCUMENT_TYPES if t != "playbook")


@dataclass(frozen=True)
class PromptContext:
    """Inputs for one prompt build.

    Attributes:
        project_id: Project whose documents and style guide are included.
        agent_name: Registered agent the prompt is for.
        card_id: Card to describe; takes precedence over ``card_title``.
        card_title: Free-form task title used when no card exists yet.
        card_description: Description paired with ``card_title``.
        additional_context: Extra key/values rendered as JSON.
    """
    project_id: str
    agent_name: str
    card_id: Optional[str] = None
    card_title: Optional[str] = None
    card_description: Optional[str] = None
    additional_context: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class BuiltPrompt:
    system_prompt: str
    user_context: str
    total_token_estimate: int
    mode: BudgetMode


def mode_for(complexity: str) -> BudgetMode:
    return "summary" if complexity == "simple" else "full"


class PromptBuilder:
    """Build prompts from the agent definition and stored project state.

    Every optional section is fetched independently. A section whose data
    source fails is logged and left out, so one broken store never blocks
    the prompt.
    """
    def __init__(
        self,
        *,
        registry: AgentRegistry,
        projects: ProjectRepository,
        boards: BoardRepository,
        cards: CardRepository,
        documents: DocumentRepository,
        style_guides: StyleGuideRepository,
        agent_documents: AgentDocumentService,
        budget_overrides: Optional[Mapping[str, Mapping[str, int]]] = None,
    ) -> None:
        self._registry = registry
        self._projects = projects
        self._boards = boards
        self._cards = cards
        self._documents = documents
        self._style_guides = style_guides
        self._agent_documents = agent_documents
        self._budget_overrides = budget_overrides

    def budget(self, mode: BudgetMode) -> TokenBudget:
        return budget_for(mode, self._budget_overrides)

    def build_prompt(self, context: PromptContext, complexity: str = "moderate") -> BuiltPrompt:
        """Build the system prompt and user context for ``context.agent_name``.

        Args:
            context (PromptContext): Agent, project, and card to describe.
            complexity (str): ``simple`` selects the summary budget, anything else full.

        Returns:
            BuiltPrompt: Prompt strings with their combined token estimate.

        Raises:
            AgentNotFound: When the agent is not registered.
        """
        mode = mode_for(complexity)
        budget = self.budget(mode)
        logger.info(
            "Building prompt project=%s agent=%s mode=%s complexity=%s",
            context.project_id,
            context.agent_name,
            mode,
            complexity,
        )
        system_prompt = self.build_system_prompt(context.agent_name, context.project_id, budget, mode)
        user_context = self.build_user_context(context, budget)
        return BuiltPrompt(
            system_prompt=system_prompt,
            user_context=user_context,
            total_token_estimate=estimate_tokens(system_prompt) + estimate_tokens(user_context),
            mode=mode,
        )

    def build_system_prompt(
        self, agent_name: str, project_id: str, budget: TokenBudget, mode: BudgetMode = "full"
    ) -> str:
        definition = self._registry.require(agent_name)
        prompt = truncate_to_tokens(definition.system_prompt, budget.system_prompt)

        style_section = self._style_guide_section(project_id, budget.style_guide)
        if style_section:
            prompt += f"\n\n{style_section}"

        agent_section = self._agent_doc_section(project_id, agent_name, budget, mode)
        if agent_section:
            prompt += f"\n\n{agent_section}"
        return prompt

    def build_user_context(self, context: PromptContext, budget: TokenBudget) -> str:
        sections: list[str] = []

        project_section = self._project_section(context.project_id, budget.project_context)
        if project_section:
            sections.append(project_section)

        if context.card_id:
            card_section = self._card_section(context.card_id, budget.card_context)
            if card_section:
                sections.append(card_section)
        elif context.card_title:
            sections.append(f"## Current Task\n\n**{context.card_title}**\n\n{context.card_description or ''}")

        if context.additional_context:
            rendered = json.dumps(context.additional_context, indent=2, default=str)
            sections.append(f"## Additional Context\n\n{rendered}")

        return SECTION_SEPARATOR.join(sections)

    def _style_guide_section(self, project_id: str, max_tokens: int) -> Optional[str]:
        try:
            guide = self._style_guides.get(project_id)
        except Exception:
            logger.warning("Failed to load style guide for project %s", project_id, exc_info=True)
            return None
        if guide is None:
            return None
        return truncate_to_tokens(format_style_guide(guide), max_tokens)

    def _agent_doc_section(
        self, project_id: str, agent_name: str, budget: TokenBudget, mode: BudgetMode
    ) -> Optional[str]:
        try:
            content = self._agent_documents.token_optimized_context(project_id, agent_name, mode, budget)
        except Exception:
            logger.warning("Failed to load agent documents project=%s agent=%s", project_id, agent_name, exc_info=True)
            return None
        if not content.strip():
            return None
        return f"## Your Current Context\n\n{content}"

    def _project_section(self, project_id: str, max_tokens: int) -> Optional[str]:
        try:
            project = self._projects.get(project_id)
            if project is None:
                return None
            docs = [d for d in self._documents.for_project(project_id) if d.doc_type in _PROJECT_CONTEXT_DOCS]
        except Exception:
            logger.warning("Failed to load project context for %s", project_id, exc_info=True)
            return None

        docs.sort(key=lambda d: d.doc_type)
        lines = [
            f"## Project: {project.name}",
            f"- **Status**: {project.status}",
            f"- **Phase**: {project.phase}",
        ]
        remaining = max_tokens - estimate_tokens("\n".join(lines))
        for doc in docs:
            share = remaining // len(docs)
            excerpt = truncate_to_tokens(doc.content, share)
            if excerpt:
                lines.append(f"\n### {doc.doc_type.upper()} (v{doc.version})\n\n{excerpt}")
                remaining -= estimate_tokens(excerpt)
        return "\n".join(lines)

    def _card_section(self, card_id: str, max_tokens: int) -> Optional[str]:
        try:
            card = self._cards.get(card_id)
            if card is None:
                return None
            board = self._boards.get(card.board_id)
            parent = self._cards.get(card.parent_id) if card.parent_id else None
            children = self._cards.children(card.id)
        except Exception:
            logger.warning("Failed to load card context for %s", card_id, exc_info=True)
            return None

        lane = board.lane_by_id(card.lane_id) if board else None
        lane_label = f"{lane.name} ({lane.lane_number})" if lane else "Unknown"
        lines = [
            "## Current Card",
            f"- **Title**: {card.title}",
            f"- **Type**: {card.card_type}",
            f"- **Priority**: {card.priority}",
            f"- **Status**: {card.status}",
            f"- **Lane**: {lane_label}",
        ]
        if card.description:
            lines.append(f"\n### Description\n\n{card.description}")
        if parent:
            lines.append(f"\n### Parent Card\n- {parent.card_type}: {parent.title}")
        if children:
            lines.append("\n### Child Cards")
            lines.extend(f"- [{child.status}] {child.card_type}: {child.title}" for child in children)
        return truncate_to_tokens("\n".join(lines), max_tokens)
