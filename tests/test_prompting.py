from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import pytest

from planning_copilot.prompts import load as load_prompt
from planning_copilot.runtime.agents.registry import AgentRegistry
from planning_copilot.runtime.domain.models import Board, Card, Lane, Project, StyleGuide
from planning_copilot.runtime.errors import AgentNotFound
from planning_copilot.runtime.prompting.agent_context import AgentDocumentService, TodoItem, parse_todos
from planning_copilot.runtime.prompting.budget import (
    TOKEN_BUDGETS,
    TRUNCATION_MARKER,
    budget_for,
    estimate_tokens,
    truncate_to_tokens,
)
from planning_copilot.runtime.prompting.builder import PromptBuilder, PromptContext, mode_for
from planning_copilot.runtime.storage.container import Container
from planning_copilot.runtime.storage.interfaces import StyleGuideRepository


class _BrokenStyleGuides(StyleGuideRepository):
    def get(self, project_id: str) -> Optional[StyleGuide]:
        raise RuntimeError("style guide store offline")

    def upsert(self, guide: StyleGuide) -> StyleGuide:
        raise RuntimeError("style guide store offline")


def _builder(container: Container, **overrides: object) -> PromptBuilder:
    kwargs: dict[str, object] = {
        "registry": AgentRegistry(),
        "projects": container.projects,
        "boards": container.boards,
        "cards": container.cards,
        "documents": container.documents,
        "style_guides": container.style_guides,
        "agent_documents": AgentDocumentService(container.agent_documents),
    }
    kwargs.update(overrides)
    return PromptBuilder(**kwargs)  # type: ignore[arg-type]


def _seed(container: Container) -> tuple[Project, Card]:
    project = container.projects.upsert(Project(name="Iced Tea", phase="architecture"))
    board = container.boards.upsert(
        Board(project_id=project.id, lanes=[Lane(lane_number=3, name="Architecture & Stack"), Lane(lane_number=6, name="Build")])
    )
    parent = container.cards.insert(Card(board_id=board.id, lane_id=board.lanes[0].id, title="Platform epic", card_type="epic"))
    card = container.cards.insert(
        Card(
            board_id=board.id,
            lane_id=board.lanes[1].id,
            title="Checkout API",
            description="Stripe-backed checkout",
            parent_id=parent.id,
        )
    )
    container.cards.insert(Card(board_id=board.id, lane_id=board.lanes[1].id, title="Webhook handler", parent_id=card.id))
    container.documents.append_version(project.id, "blueprint", "Blueprint body")
    container.documents.append_version(project.id, "prd", "PRD body")
    container.documents.append_version(project.id, "playbook", "Playbook body")
    container.style_guides.upsert(StyleGuide(project_id=project.id, frameworks=["fastapi"]))
    return project, card


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


@pytest.mark.parametrize("length,budget", [(0, 10), (39, 10), (40, 10), (41, 10), (1000, 7), (55, 0)])
def test_truncation_never_exceeds_budget_plus_marker(length: int, budget: int) -> None:
    text = "x" * length
    result = truncate_to_tokens(text, budget)
    assert estimate_tokens(result) <= budget + estimate_tokens(TRUNCATION_MARKER)
    if length <= budget * 4:
        assert result == text
    else:
        assert result.endswith(TRUNCATION_MARKER)


def test_budget_overrides_apply_per_mode() -> None:
    budget = budget_for("summary", {"summary": {"style_guide": 50}, "full": {"style_guide": 9}})
    assert budget.style_guide == 50
    assert budget.system_prompt == TOKEN_BUDGETS["summary"].system_prompt
    assert budget_for("full") is TOKEN_BUDGETS["full"]


def test_mode_for_complexity() -> None:
    assert mode_for("simple") == "summary"
    assert mode_for("complex") == "full"
    assert mode_for("moderate") == "full"
    assert mode_for("whatever") == "full"


def test_build_prompt_orders_sections(tmp_path: Path) -> None:
    container = Container(tmp_path)
    project, card = _seed(container)
    docs = AgentDocumentService(container.agent_documents)
    docs.save(project.id, "architect", "Plan", "Split checkout into a service.")

    built = _builder(container).build_prompt(PromptContext(project_id=project.id, agent_name="architect", card_id=card.id), "complex")

    assert built.mode == "full"
    assert built.system_prompt.startswith(load_prompt("agents/architect.md")[:40])
    style_at = built.system_prompt.index("## Project Style Guide")
    context_at = built.system_prompt.index("## Your Current Context")
    assert style_at < context_at
    assert "Split checkout into a service." in built.system_prompt

    user = built.user_context
    assert user.index("## Project: Iced Tea") < user.index("## Current Card")
    assert "- **Phase**: architecture" in user
    assert "### BLUEPRINT (v1)" in user
    assert "### PRD (v1)" in user
    assert "Playbook body" not in user
    assert "- **Lane**: Build (6)" in user
    assert "### Parent Card\n- epic: Platform epic" in user
    assert "Webhook handler" in user
    assert built.total_token_estimate == estimate_tokens(built.system_prompt) + estimate_tokens(user)


def test_simple_complexity_uses_summary_budget(tmp_path: Path) -> None:
    container = Container(tmp_path)
    project, _ = _seed(container)
    container.documents.append_version(project.id, "mvp", "m" * 20000)

    built = _builder(container).build_prompt(PromptContext(project_id=project.id, agent_name="qa"), "simple")

    assert built.mode == "summary"
    assert TRUNCATION_MARKER in built.user_context
    project_section = built.user_context.split("\n\n---\n\n")[0]
    assert estimate_tokens(project_section) <= TOKEN_BUDGETS["summary"].project_context + 3 * estimate_tokens(TRUNCATION_MARKER) + 40


def test_configured_budget_reaches_agent_documents(tmp_path: Path) -> None:
    container = Container(tmp_path)
    project, _ = _seed(container)
    service = AgentDocumentService(container.agent_documents)
    service.save(project.id, "qa", "Plan", "p" * 40000)
    builder = _builder(container, agent_documents=service, budget_overrides={"full": {"agent_plan": 100}})

    built = builder.build_prompt(PromptContext(project_id=project.id, agent_name="qa"), "complex")

    assert built.mode == "full"
    assert "## Agent Plan" in built.system_prompt
    assert "p" * 400 in built.system_prompt
    assert "p" * 401 not in built.system_prompt


def test_failing_section_is_omitted(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    container = Container(tmp_path)
    project, _ = _seed(container)

    built = _builder(container, style_guides=_BrokenStyleGuides()).build_prompt(
        PromptContext(project_id=project.id, agent_name="architect")
    )

    assert "## Project Style Guide" not in built.system_prompt
    assert "## Project: Iced Tea" in built.user_context
    assert "Failed to load style guide" in caplog.text


def test_unknown_agent_is_hard_error(tmp_path: Path) -> None:
    container = Container(tmp_path)
    project, _ = _seed(container)
    with pytest.raises(AgentNotFound):
        _builder(container).build_prompt(PromptContext(project_id=project.id, agent_name="nobody"))


def test_free_form_task_and_additional_context(tmp_path: Path) -> None:
    container = Container(tmp_path)
    project, _ = _seed(container)

    built = _builder(container).build_prompt(
        PromptContext(
            project_id=project.id,
            agent_name="docs",
            card_title="Write onboarding guide",
            card_description="For new operators",
            additional_context={"audience": "ops"},
        )
    )

    assert "## Current Task\n\n**Write onboarding guide**\n\nFor new operators" in built.user_context
    assert json.dumps({"audience": "ops"}, indent=2) in built.user_context


def test_agent_context_summary_keeps_recent_tasks_and_urgent_todos(tmp_path: Path) -> None:
    container = Container(tmp_path)
    service = AgentDocumentService(container.agent_documents)
    for index in range(5):
        service.append_task("p1", "qa", f"task entry {index}")
    service.set_todos(
        "p1",
        "qa",
        [
            TodoItem(title="Flaky login test", priority="high"),
            TodoItem(title="Tidy fixtures", priority="low"),
            TodoItem(title="Load test", priority="low", status="in_progress"),
            TodoItem(title="Old bug", priority="high", status="completed"),
        ],
    )

    summary = service.token_optimized_context("p1", "qa", "summary")

    assert "[2 earlier tasks omitted]" in summary
    assert "task entry 4" in summary
    assert "task entry 0" not in summary
    assert "Flaky login test" in summary
    assert "Load test" in summary
    assert "Tidy fixtures" not in summary
    assert "Old bug" not in summary

    full = service.token_optimized_context("p1", "qa", "full")
    assert "task entry 0" in full
    assert "Tidy fixtures" in full


def test_todo_status_update_round_trips_through_markdown(tmp_path: Path) -> None:
    container = Container(tmp_path)
    service = AgentDocumentService(container.agent_documents)
    item = TodoItem(title="Write plan", priority="high")
    service.add_todo("p1", "planner", item)

    doc = service.update_todo_status("p1", "planner", item.id, "completed")

    parsed = parse_todos(doc.content)
    assert [(t.id, t.status) for t in parsed] == [(item.id, "completed")]
    assert doc.version == 2
