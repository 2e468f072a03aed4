"""Token budgets and the character-based token estimate."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Literal, Mapping, Optional

BudgetMode = Literal["full", "summary"]

CHARS_PER_TOKEN = 4
TRUNCATION_MARKER = "\n\n[... content truncated for context window]"


@dataclass(frozen=True)
class TokenBudget:
    """Per-section token allowances for one prompt mode."""
    system_prompt: int
    style_guide: int
    agent_plan: int
    agent_task: int
    agent_todo: int
    project_context: int
    card_context: int


TOKEN_BUDGETS: dict[str, TokenBudget] = {
    "full": TokenBudget(
        system_prompt=4000,
        style_guide=800,
        agent_plan=4000,
        agent_task=2000,
        agent_todo=1000,
        project_context=2500,
        card_context=1000,
    ),
    "summary": TokenBudget(
        system_prompt=2000,
        style_guide=300,
        agent_plan=1500,
        agent_task=500,
        agent_todo=300,
        project_context=1000,
        card_context=500,
    ),
}


def budget_for(mode: BudgetMode, overrides: Optional[Mapping[str, Mapping[str, int]]] = None) -> TokenBudget:
    """Return the budget for ``mode`` with any configured overrides applied."""
    budget = TOKEN_BUDGETS[mode]
    changes = dict((overrides or {}).get(mode) or {})
    return replace(budget, **changes) if changes else budget


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Cut ``text`` to ``max_tokens`` worth of characters.

    Content that fits is returned unchanged. Otherwise the first
    ``max_tokens * 4`` characters are kept and the truncation marker is
    appended so the cut is always visible to the model.
    """
    max_chars = max(max_tokens, 0) * CHARS_PER_TOKEN
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER
