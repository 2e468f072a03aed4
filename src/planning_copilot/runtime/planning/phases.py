"""Planning phase order, guidance, and reply-driven completion detection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from ...prompts import load as load_prompt

Phase = Literal[
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

PHASE_ORDER: tuple[str, ...] = (
    "welcome",
    "vision",
    "requirements",
    "goals",
    "roles",
    "architecture",
    "blueprint-review",
    "planning-complete",
)
INITIAL_PHASE = "welcome"
DOCUMENT_TRIGGER_PHASE = "blueprint-review"

_GUIDED_PHASES = frozenset(PHASE_ORDER) | {"general"}

PHASE_TRIGGERS: dict[str, tuple[str, ...]] = {
    "welcome": ("vision phase", "move to vision", "vision stage", "clarify the vision", "let's clarify"),
    "vision": (
        "requirements phase",
        "move to requirements",
        "requirements stage",
        "define requirements",
        "list the requirements",
    ),
    "requirements": ("goals phase", "move to goals", "goals stage", "define goals", "set goals", "success metrics"),
    "goals": ("roles phase", "move to roles", "roles stage", "identify roles", "team and agents"),
    "roles": (
        "architecture phase",
        "move to architecture",
        "architecture stage",
        "technical architecture",
        "tech stack",
    ),
    "architecture": (
        "planning complete",
        "blueprint",
        "ready to generate",
        "prd",
        "complete",
        "finished planning",
        "create the documents",
        "creating the documents",
        "generate the documents",
        "generating documents",
        "i'll create the necessary documents",
        "create the necessary documents",
        "let me create",
        "let me generate",
        "creating your documents",
        "generating your documents",
        "i'll generate",
        "i will generate",
        "i will create",
        "begin generating",
        "start generating",
        "start creating",
        "proceed with document",
        "create your blueprint",
        "finalize the planning",
        "finalize planning",
        "ready to finalize",
        "let's finalize",
    ),
    "blueprint-review": (
        "documents approved",
        "planning complete",
        "approved all the documents",
        "review is complete",
        "ready to start building",
    ),
    "planning-complete": ("ready to start building", "hand off to the build", "start the build"),
}

GENERIC_TRIGGERS: tuple[str, ...] = (
    "move to the next phase",
    "move on to",
    "proceed to",
    "let's move to",
    "ready to move",
    "moving forward to",
    "next phase",
    "let's proceed",
    "shall we move",
    "ready to proceed",
    "on to the next",
)


@dataclass(frozen=True)
class PhaseOutcome:
    """Result of evaluating one assistant reply against the current phase."""
    current_phase: str
    phase_complete: bool
    next_phase: Optional[str]


def phase_guidance(phase: str) -> str:
    """Return the guidance text injected into the copilot prompt for ``phase``."""
    if phase not in _GUIDED_PHASES:
        return ""
    return load_prompt(f"phases/{phase}.md")


def next_phase(phase: str) -> Optional[str]:
    """Return the phase after ``phase``, or ``None`` at the terminal or off-sequence phases."""
    try:
        index = PHASE_ORDER.index(phase)
    except ValueError:
        return None
    if index >= len(PHASE_ORDER) - 1:
        return None
    return PHASE_ORDER[index + 1]


def detect_signal(text: str, phase: str) -> bool:
    """Report whether ``text`` signals that ``phase`` is done.

    Phase-specific triggers are checked first, then the generic set. The
    ``general`` mode never signals.
    """
    if phase == "general":
        return False
    lowered = text.lower()
    if any(trigger in lowered for trigger in PHASE_TRIGGERS.get(phase, ())):
        return True
    return any(trigger in lowered for trigger in GENERIC_TRIGGERS)


def evaluate(reply: str, phase: str) -> PhaseOutcome:
    """Evaluate a cleaned assistant reply. Pure; the caller persists any advance."""
    complete = detect_signal(reply, phase)
    return PhaseOutcome(
        current_phase=phase,
        phase_complete=complete,
        next_phase=next_phase(phase) if complete else None,
    )
