"""Routing table used to place copilot-created cards on the board."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

BASELINE_AGENT = "ceo-copilot"


@dataclass(frozen=True)
class AgentRoute:
    """Where cards for one agent land by default.

    Attributes:
        lanes: Lanes the agent normally works in.
        priority: Priority given to new cards that do not name one.
        default_lane: Lane new cards for the agent are created in.
    """
    lanes: tuple[int, ...]
    priority: str
    default_lane: int


DEFAULT_ROUTES: dict[str, AgentRoute] = {
    "ceo-copilot": AgentRoute(lanes=(0, 1), priority="Critical", default_lane=0),
    "frontend-agent": AgentRoute(lanes=(5, 6), priority="High", default_lane=5),
    "backend-agent": AgentRoute(lanes=(5, 6), priority="High", default_lane=5),
    "database-agent": AgentRoute(lanes=(3, 5), priority="High", default_lane=3),
    "qa-agent": AgentRoute(lanes=(7,), priority="Medium", default_lane=7),
    "devops-agent": AgentRoute(lanes=(8,), priority="Medium", default_lane=8),
    "architect-agent": AgentRoute(lanes=(3, 4), priority="High", default_lane=3),
    "research-agent": AgentRoute(lanes=(2,), priority="Medium", default_lane=2),
    "docs-agent": AgentRoute(lanes=(9,), priority="Low", default_lane=9),
    "wordpress-agent": AgentRoute(lanes=tuple(range(0, 10)), priority="High", default_lane=5),
}

DEFAULT_ALIASES: dict[str, str] = {
    "frontend": "frontend-agent",
    "ui": "frontend-agent",
    "ui agent": "frontend-agent",
    "frontend agent": "frontend-agent",
    "backend": "backend-agent",
    "api": "backend-agent",
    "backend agent": "backend-agent",
    "database": "database-agent",
    "db": "database-agent",
    "db agent": "database-agent",
    "database agent": "database-agent",
    "qa": "qa-agent",
    "test": "qa-agent",
    "testing": "qa-agent",
    "qa agent": "qa-agent",
    "devops": "devops-agent",
    "deploy": "devops-agent",
    "devops agent": "devops-agent",
    "architect": "architect-agent",
    "architecture": "architect-agent",
    "architect agent": "architect-agent",
    "research": "research-agent",
    "research agent": "research-agent",
    "docs": "docs-agent",
    "documentation": "docs-agent",
    "docs agent": "docs-agent",
    "copilot": "ceo-copilot",
    "ceo": "ceo-copilot",
    "wordpress": "wordpress-agent",
    "wordpress agent": "wordpress-agent",
    "wp": "wordpress-agent",
    "wp agent": "wordpress-agent",
    "cms": "wordpress-agent",
    "cms agent": "wordpress-agent",
    "woocommerce": "wordpress-agent",
    "gutenberg": "wordpress-agent",
    "theme": "wordpress-agent",
    "plugin": "wordpress-agent",
}


@dataclass(frozen=True)
class AgentRoutingTable:
    """Agent slug to :class:`AgentRoute` mapping with a baseline fallback.

    Instances are plain values; callers construct one and pass it to the
    action executor instead of reading module globals.
    """
    routes: Mapping[str, AgentRoute] = field(default_factory=lambda: dict(DEFAULT_ROUTES))
    aliases: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_ALIASES))
    baseline: str = BASELINE_AGENT

    def __post_init__(self) -> None:
        if self.baseline not in self.routes:
            raise ValueError(f"Baseline agent {self.baseline!r} has no route")

    def route_for(self, agent: Optional[str]) -> AgentRoute:
        """Return the route for ``agent``, or the baseline route when unknown or empty."""
        return self.routes.get(agent or "") or self.routes[self.baseline]

    def resolve_alias(self, text: str) -> Optional[str]:
        """Map a natural-language mention such as ``"ui agent"`` to an agent slug."""
        key = " ".join(str(text or "").lower().split())
        if key in self.routes:
            return key
        return self.aliases.get(key)

    def agents(self) -> list[str]:
        return list(self.routes)
