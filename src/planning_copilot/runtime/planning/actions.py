"""Parse card directives embedded in assistant replies."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

ActionKind = Literal["CREATE_CARD", "MOVE_CARD", "UPDATE_CARD"]

_REQUIRED_KEYS: dict[str, tuple[str, ...]] = {
    "CREATE_CARD": ("title",),
    "MOVE_CARD": ("cardId", "toLane"),
    "UPDATE_CARD": ("cardId",),
}
_PATTERNS = [
    (kind, re.compile(r"\[ACTION:" + kind + r"\]([\s\S]*?)\[/ACTION\]"))
    for kind in _REQUIRED_KEYS
]


@dataclass(frozen=True)
class CardAction:
    """One accepted directive with its raw ``key: value`` fields."""
    kind: ActionKind
    data: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {"type": self.kind, "data": dict(self.data)}


def _parse_body(body: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for line in body.strip().split("\n"):
        key, sep, value = line.partition(":")
        key = key.strip()
        if sep and key:
            data[key] = value.strip()
    return data


def parse_actions(text: str) -> tuple[str, list[CardAction]]:
    """Extract directives from ``text``.

    Every block of a known kind is removed from the returned text whether or
    not it is valid. Blocks missing a required key are dropped silently.
    Removal repeats until no block remains, so parsing the cleaned text
    again yields nothing and returns it unchanged.

    Args:
        text (str): Raw model reply.

    Returns:
        tuple[str, list[CardAction]]: Cleaned, stripped reply and accepted actions.
    """
    cleaned = text
    actions: list[CardAction] = []
    found = True
    while found:
        found = False
        for kind, pattern in _PATTERNS:
            matches = list(pattern.finditer(cleaned))
            if not matches:
                continue
            found = True
            for match in matches:
                data = _parse_body(match.group(1))
                if all(data.get(key) for key in _REQUIRED_KEYS[kind]):
                    actions.append(CardAction(kind=kind, data=data))  # type: ignore[arg-type]
            cleaned = pattern.sub("", cleaned)
    return cleaned.strip(), actions
