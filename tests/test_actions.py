from __future__ import annotations

from planning_copilot.runtime.planning.actions import parse_actions

REPLY = """Great, creating the cards now.

[ACTION:CREATE_CARD]
title: Design login screen
description: Email and password form
agent: frontend-agent
[/ACTION]

[ACTION:MOVE_CARD]
cardId: card-123
toLane: 4
[/ACTION]

[ACTION:UPDATE_CARD]
cardId: card-456
status: in_progress
priority: High
[/ACTION]"""


def test_parse_extracts_each_kind_and_strips_blocks() -> None:
    cleaned, actions = parse_actions(REPLY)

    assert cleaned == "Great, creating the cards now."
    assert [a.kind for a in actions] == ["CREATE_CARD", "MOVE_CARD", "UPDATE_CARD"]
    assert actions[0].data == {
        "title": "Design login screen",
        "description": "Email and password form",
        "agent": "frontend-agent",
    }
    assert actions[1].data == {"cardId": "card-123", "toLane": "4"}
    assert actions[2].data["status"] == "in_progress"


def test_parsing_is_idempotent_on_cleaned_output() -> None:
    cleaned, _ = parse_actions(REPLY)
    again, actions = parse_actions(cleaned)
    assert actions == []
    assert again == cleaned


def test_invalid_blocks_are_dropped_but_still_stripped() -> None:
    text = "Done.\n[ACTION:CREATE_CARD]\ndescription: no title here\n[/ACTION]\n[ACTION:MOVE_CARD]\ncardId: c1\n[/ACTION]"
    cleaned, actions = parse_actions(text)
    assert actions == []
    assert cleaned == "Done."


def test_values_keep_text_after_first_colon() -> None:
    text = "[ACTION:CREATE_CARD]\ntitle: API: auth endpoints\n: orphan value\nnot a pair\n[/ACTION]"
    _, actions = parse_actions(text)
    assert actions[0].data == {"title": "API: auth endpoints"}


def test_nested_blocks_leave_no_directive_behind() -> None:
    text = "Hi [ACTION:CREATE_CARD]title: a [ACTION:MOVE_CARD]cardId: x\ntoLane: 1[/ACTION] tail[/ACTION] bye"
    cleaned, _ = parse_actions(text)
    again, actions = parse_actions(cleaned)
    assert "[ACTION:" not in cleaned
    assert actions == []
    assert again == cleaned


def test_text_without_blocks_is_only_trimmed() -> None:
    cleaned, actions = parse_actions("  Tell me more about your users.  \n")
    assert cleaned == "Tell me more about your users."
    assert actions == []
