from __future__ import annotations

from pathlib import Path

import pytest

from planning_copilot.runtime.copilot.factory import CopilotRuntime, create_copilot_runtime
from planning_copilot.runtime.copilot.service import DEFAULT_LANES, ChatTurn
from planning_copilot.runtime.errors import NotFoundError, PreconditionError, ProviderError
from planning_copilot.runtime.gateway.clients import ScriptedCompletionClient
from planning_copilot.runtime.storage.container import Container

TENANT = "acme"

CARD_REPLY = """Sounds good, I'll put the login work on the board.
[ACTION:CREATE_CARD]
title: Login screen
description: Email and password form
agent: frontend-agent
[/ACTION]
What should happen after a user signs in?"""


def _runtime(tmp_path: Path, *replies: str) -> tuple[CopilotRuntime, ScriptedCompletionClient]:
    client = ScriptedCompletionClient(replies)
    return create_copilot_runtime(Container(tmp_path), client=client), client


def test_create_project_seeds_board_lanes(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path)

    project, board = runtime.copilot.create_project(TENANT, "  Iced Tea  ", description="Tea subscriptions")

    assert project.name == "Iced Tea"
    assert project.tenant_id == TENANT
    assert project.phase == "welcome"
    assert board.name == "Iced Tea Board"
    assert [(lane.lane_number, lane.name) for lane in board.lanes] == list(DEFAULT_LANES)
    assert runtime.container.boards.for_project(project.id).id == board.id

    with pytest.raises(PreconditionError):
        runtime.copilot.create_project(TENANT, "   ")


def test_chat_executes_actions_and_stores_clean_reply(tmp_path: Path) -> None:
    runtime, client = _runtime(tmp_path, CARD_REPLY)
    project, board = runtime.copilot.create_project(TENANT, "Iced Tea")

    reply = runtime.copilot.chat(TENANT, ChatTurn(message="We need a login page", project_id=project.id))

    assert "[ACTION:" not in reply.message.content
    assert reply.message.content.startswith("Sounds good")
    assert reply.message.content.endswith("signs in?")
    assert reply.current_phase == "welcome"
    assert reply.phase_complete is False
    assert reply.next_phase is None
    assert reply.documents is None

    created = reply.actions.cards_created
    assert [card.title for card in created] == ["Login screen"]
    assert board.lane_by_id(created[0].lane_id).lane_number == 5
    assert reply.message.metadata["actions"]["created"] == 1
    assert reply.message.metadata["provider"] == "scripted"

    system = client.calls[0][0]
    assert system["role"] == "system"
    assert "Current Planning Phase: welcome" in system["content"]
    assert "Project: Iced Tea" in system["content"]

    conversation, messages = runtime.copilot.get_conversation(TENANT, reply.conversation_id)
    assert conversation.title == "planning conversation"
    assert [(m.role, m.content) for m in messages] == [
        ("user", "We need a login page"),
        ("assistant", reply.message.content),
    ]


def test_actions_for_unknown_project_report_the_missing_id(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path, CARD_REPLY)

    reply = runtime.copilot.chat(TENANT, ChatTurn(message="We need a login page", project_id="proj-gone"))

    assert reply.actions.cards_created == []
    assert reply.actions.errors == ["Project not found: proj-gone"]
    assert reply.message.metadata["actions"]["errors"] == 1


def test_follow_up_turn_carries_history(tmp_path: Path) -> None:
    runtime, client = _runtime(tmp_path, "First answer.", "Second answer.")

    first = runtime.copilot.chat(TENANT, ChatTurn(message="Hello"))
    runtime.copilot.chat(TENANT, ChatTurn(message="And then?", conversation_id=first.conversation_id))

    sent = client.calls[1]
    assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
    assert [m["content"] for m in sent[1:]] == ["Hello", "First answer.", "And then?"]


def test_phase_signal_advances_and_generates_documents(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path, "That architecture works. Let me generate your documents now.")
    project, board = runtime.copilot.create_project(TENANT, "Iced Tea")
    runtime.copilot.record_phase_response(project.id, "architecture", "FastAPI with Postgres")

    reply = runtime.copilot.chat(TENANT, ChatTurn(message="Use FastAPI", project_id=project.id, phase="architecture"))

    assert reply.phase_complete is True
    assert reply.next_phase == "blueprint-review"
    assert reply.documents is not None
    assert [r["document_type"] for r in reply.documents.results] == ["blueprint", "prd", "mvp", "playbook"]
    assert runtime.container.projects.get(project.id).phase == "blueprint-review"
    assert "FastAPI with Postgres" in runtime.container.documents.get(project.id, "blueprint").content
    review_lane = board.lane_by_number(6)
    in_review = [c for c in runtime.container.cards.for_board(board.id) if c.lane_id == review_lane.id]
    assert len(in_review) == 4


def test_phase_advance_is_single_step(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path, "Great, let's move to the vision phase.")
    project, _ = runtime.copilot.create_project(TENANT, "Iced Tea")

    reply = runtime.copilot.chat(TENANT, ChatTurn(message="Hi", project_id=project.id))

    assert reply.next_phase == "vision"
    assert runtime.copilot.get_phase(project.id)["phase"] == "vision"


def test_provider_failure_stores_no_assistant_message(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path, "   ")
    conversation = runtime.copilot.create_conversation(TENANT)

    with pytest.raises(ProviderError):
        runtime.copilot.chat(TENANT, ChatTurn(message="Hello", conversation_id=conversation.id))

    _, messages = runtime.copilot.get_conversation(TENANT, conversation.id)
    assert [m.role for m in messages] == ["user"]


def test_conversations_are_tenant_scoped(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path)
    conversation = runtime.copilot.create_conversation(TENANT, context="card", title="Checkout")

    with pytest.raises(NotFoundError):
        runtime.copilot.get_conversation("other", conversation.id)
    with pytest.raises(NotFoundError):
        runtime.copilot.chat("other", ChatTurn(message="hi", conversation_id=conversation.id))
    assert runtime.copilot.list_conversations("other") == []


def test_list_and_close_conversations(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path)
    project, _ = runtime.copilot.create_project(TENANT, "Iced Tea")
    scoped = runtime.copilot.create_conversation(TENANT, project_id=project.id)
    loose = runtime.copilot.create_conversation(TENANT)

    assert {c.id for c in runtime.copilot.list_conversations(TENANT)} == {scoped.id, loose.id}
    assert [c.id for c in runtime.copilot.list_conversations(TENANT, project_id=project.id)] == [scoped.id]
    assert len(runtime.copilot.list_conversations(TENANT, limit=1)) == 1

    closed = runtime.copilot.close_conversation(TENANT, loose.id)

    assert closed.status == "closed"
    assert [c.id for c in runtime.copilot.list_conversations(TENANT)] == [scoped.id]


def test_phase_responses_are_recorded(tmp_path: Path) -> None:
    runtime, _ = _runtime(tmp_path)
    project, _ = runtime.copilot.create_project(TENANT, "Iced Tea")

    runtime.copilot.record_phase_response(project.id, "vision", "Cold brew for offices")

    state = runtime.copilot.get_phase(project.id)
    assert state == {"project_id": project.id, "phase": "vision", "responses": {"vision": "Cold brew for offices"}}
    with pytest.raises(NotFoundError):
        runtime.copilot.get_phase("proj-missing")
