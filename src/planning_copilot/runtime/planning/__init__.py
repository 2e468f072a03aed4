"""Planning phases and card directive handling."""

from .actions import CardAction, parse_actions
from .executor import ActionExecutor, ActionResult
from .phases import PHASE_ORDER, PhaseOutcome, detect_signal, evaluate, next_phase

__all__ = [
    "CardAction",
    "parse_actions",
    "ActionExecutor",
    "ActionResult",
    "PHASE_ORDER",
    "PhaseOutcome",
    "detect_signal",
    "evaluate",
    "next_phase",
]
