from __future__ import annotations

from pathlib import Path

from planning_copilot.runtime.agents.routing import AgentRoute, AgentRoutingTable
from planning_copilot.runtime.documents.lifecycle import DocumentLifecycle
from planning_copilot.runtime.domain.models import Board, Card, Lane, Project
from planning_copilot.runtime.events.bus import EventBus
from planning_copilot.runtime.planning.actions import CardAction, parse_actions
from planning_copilot.runtime.planning.executor import DUPLICATE_REASON, ActionExecutor
from planning_copilot.runtime.storage.container import Container


def _setup(tmp_path: Path, lanes: range = range(0, 11)) -> tuple[Container, Project, Board, ActionExecutor]:
    container = Container(tmp_path)
    project = container.projects.upsert(Project(name="Iced Tea"))
    board = container.boards.upsert(
        Board(project_id=project.id, lanes=[Lane(lane_number=n, name=f"Lane {n}") for n in lanes])
    )
    executor = ActionExecutor(
        boards=container.boards,
        cards=container.cards,
        history=container.card_history,
        routing=AgentRoutingTable(),
        bus=EventBus(container.events),
    )
    return container, project, board, executor


def _create(title: str, **extra: str) -> CardAction:
    return CardAction(kind="CREATE_CARD", data={"title": title, **extra})


def test_create_uses_agent_default_lane_and_priority(tmp_path: Path) -> None:
    container, project, board, executor = _setup(tmp_path)

    result = executor.execute([_create("Design login screen", agent="frontend-agent")], project.id, board.id)

    assert result.errors == []
    card = result.cards_created[0]
    assert board.lane_by_id(card.lane_id).lane_number == 5
    assert card.priority == "High"
    assert card.assigned_agent == "frontend-agent"
    assert card.status == "pending"
    assert container.card_history.for_card(card.id) == []


def test_unknown_agent_falls_back_to_baseline_route(tmp_path: Path) -> None:
    _, project, board, executor = _setup(tmp_path)

    result = executor.execute([_create("Kickoff", agent="mystery-agent")], project.id, board.id)

    card = result.cards_created[0]
    assert board.lane_by_id(card.lane_id).lane_number == 0
    assert card.priority == "Critical"


def test_natural_language_agent_mention_is_resolved(tmp_path: Path) -> None:
    _, project, board, executor = _setup(tmp_path)

    result = executor.execute([_create("Hero banner", agent="UI Agent")], project.id, board.id)

    card = result.cards_created[0]
    assert card.assigned_agent == "frontend-agent"
    assert board.lane_by_id(card.lane_id).lane_number == 5


def test_duplicate_title_updates_existing_card_with_one_history_entry(tmp_path: Path) -> None:
    container, project, board, executor = _setup(tmp_path)
    first = executor.execute([_create("Design login screen", agent="ceo-copilot")], project.id, board.id)
    original = first.cards_created[0]
    container.cards.upsert(Card(**{**original.to_dict(), "status": "done"}))

    second = executor.execute(
        [_create("Design login screen", agent="frontend-agent", description="Now with SSO")],
        project.id,
        board.id,
    )

    cards = container.cards.for_board(board.id)
    assert len(cards) == 1
    merged = second.cards_created[0]
    assert merged.id == original.id
    assert board.lane_by_id(merged.lane_id).lane_number == 5
    assert merged.status == "pending"
    assert merged.description == "Now with SSO"
    history = container.card_history.for_card(merged.id)
    assert len(history) == 1
    assert history[0].action == "updated"
    assert history[0].metadata["reason"] == DUPLICATE_REASON


def test_positions_are_unique_and_increasing_within_lane(tmp_path: Path) -> None:
    container, project, board, executor = _setup(tmp_path)

    executor.execute([_create(f"Task {i}", agent="qa-agent") for i in range(4)], project.id, board.id)

    positions = [c.position for c in container.cards.for_board(board.id)]
    assert positions == [0, 1, 2, 3]
    assert len(set(positions)) == len(positions)


def test_move_to_missing_lane_reports_error_and_siblings_still_apply(tmp_path: Path) -> None:
    container, project, board, executor = _setup(tmp_path)
    card = executor.execute([_create("Schema", agent="database-agent")], project.id, board.id).cards_created[0]

    result = executor.execute(
        [
            CardAction(kind="MOVE_CARD", data={"cardId": card.id, "toLane": "99"}),
            _create("Write docs", agent="docs-agent"),
            CardAction(kind="MOVE_CARD", data={"cardId": card.id, "toLane": "4"}),
        ],
        project.id,
        board.id,
    )

    assert len(result.errors) == 1
    assert "99" in result.errors[0]
    assert [c.title for c in result.cards_created] == ["Write docs"]
    moved = container.cards.get(card.id)
    assert board.lane_by_id(moved.lane_id).lane_number == 4


def test_move_with_non_integer_lane_or_unknown_card_is_per_action_error(tmp_path: Path) -> None:
    _, project, board, executor = _setup(tmp_path)

    result = executor.execute(
        [
            CardAction(kind="MOVE_CARD", data={"cardId": "card-missing", "toLane": "2"}),
            CardAction(kind="MOVE_CARD", data={"cardId": "card-missing", "toLane": "two"}),
        ],
        project.id,
        board.id,
    )

    assert len(result.errors) == 2
    assert result.cards_moved == []


def test_update_only_touches_present_fields(tmp_path: Path) -> None:
    _, project, board, executor = _setup(tmp_path)
    card = executor.execute([_create("API", agent="backend-agent")], project.id, board.id).cards_created[0]

    result = executor.execute(
        [CardAction(kind="UPDATE_CARD", data={"cardId": card.id, "status": "in_progress"})],
        project.id,
        board.id,
    )

    updated = result.cards_updated[0]
    assert updated.status == "in_progress"
    assert updated.priority == "High"
    assert updated.assigned_agent == "backend-agent"


def test_missing_board_is_single_precondition_error(tmp_path: Path) -> None:
    container, project, _, executor = _setup(tmp_path)

    result = executor.execute([_create("A"), _create("B")], project.id, None)

    assert len(result.errors) == 1
    assert result.cards_created == []
    assert container.cards.for_board("anything") == []


def test_no_actions_is_an_empty_result(tmp_path: Path) -> None:
    _, _, _, executor = _setup(tmp_path)
    result = executor.execute([], None, None)
    assert result.to_dict() == {"cards_created": [], "cards_moved": [], "cards_updated": [], "errors": []}


def test_missing_default_lane_is_per_action_error(tmp_path: Path) -> None:
    _, project, board, executor = _setup(tmp_path, lanes=range(0, 3))

    result = executor.execute(
        [_create("Deploy pipeline", agent="devops-agent"), _create("Research", agent="research-agent")],
        project.id,
        board.id,
    )

    assert len(result.errors) == 1
    assert "Lane 8" in result.errors[0]
    assert [c.title for c in result.cards_created] == ["Research"]


def test_substitute_routing_table_is_honoured(tmp_path: Path) -> None:
    container, project, board, _ = _setup(tmp_path)
    routing = AgentRoutingTable(routes={"ceo-copilot": AgentRoute(lanes=(2,), priority="Low", default_lane=2)}, aliases={})
    executor = ActionExecutor(boards=container.boards, cards=container.cards, history=container.card_history, routing=routing)

    _, actions = parse_actions("[ACTION:CREATE_CARD]\ntitle: Survey\nagent: frontend-agent\n[/ACTION]")
    card = executor.execute(actions, project.id, board.id).cards_created[0]

    assert board.lane_by_id(card.lane_id).lane_number == 2
    assert card.priority == "Low"


def test_create_with_review_card_title_leaves_review_card_alone(tmp_path: Path) -> None:
    container, project, board, executor = _setup(tmp_path)
    lifecycle = DocumentLifecycle(
        projects=container.projects,
        boards=container.boards,
        cards=container.cards,
        history=container.card_history,
        documents=container.documents,
        todos=container.todos,
    )
    review = lifecycle.generate(project.id, "blueprint").review_card
    history_before = len(container.card_history.for_card(review.id))

    result = executor.execute(
        [_create("Review Blueprint", agent="ceo-copilot"), _create("Draft copy", agent="docs-agent")],
        project.id,
        board.id,
    )

    assert [c.title for c in result.cards_created] == ["Draft copy"]
    assert len(result.errors) == 1
    assert "document review" in result.errors[0]
    card = container.cards.get(review.id)
    assert card.status == "Ready"
    assert card.metadata["review_state"] == "in_review"
    assert board.lane_by_id(card.lane_id).lane_number == 6
    assert len(container.card_history.for_card(review.id)) == history_before
    lifecycle.approve(project.id, "blueprint")
