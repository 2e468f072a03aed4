"""Lookup of agent definitions by name and lane."""

from __future__ import annotations

from typing import Iterable, Optional

from ..errors import AgentNotAllowedInLane, AgentNotFound
from .definitions import AGENT_DEFINITIONS, AgentDefinition


class AgentRegistry:
    """Read-only index over a fixed set of agent definitions."""
    def __init__(self, definitions: Iterable[AgentDefinition] = AGENT_DEFINITIONS) -> None:
        self._by_name: dict[str, AgentDefinition] = {d.name: d for d in definitions}
        self._by_lane: dict[int, list[AgentDefinition]] = {}
        for definition in self._by_name.values():
            for lane in definition.allowed_lanes:
                self._by_lane.setdefault(lane, []).append(definition)

    def get(self, name: str) -> Optional[AgentDefinition]:
        return self._by_name.get(name)

    def require(self, name: str) -> AgentDefinition:
        """Return the named definition or raise :class:`AgentNotFound`."""
        definition = self._by_name.get(name)
        if definition is None:
            raise AgentNotFound(name)
        return definition

    def all(self) -> list[AgentDefinition]:
        return list(self._by_name.values())

    def is_allowed_in_lane(self, name: str, lane_number: int) -> bool:
        definition = self._by_name.get(name)
        return definition is not None and lane_number in definition.allowed_lanes

    def by_lane(self, lane_number: int) -> list[AgentDefinition]:
        return list(self._by_lane.get(lane_number, []))


def require_lane_permission(registry: AgentRegistry, name: str, lane_number: int) -> AgentDefinition:
    """Check that ``name`` may operate in ``lane_number``.

    Args:
        registry (AgentRegistry): Registry holding the agent definitions.
        name (str): Agent to check.
        lane_number (int): Lane the agent is about to act in.

    Returns:
        AgentDefinition: The agent's definition when permitted.

    Raises:
        AgentNotFound: When ``name`` is not registered.
        AgentNotAllowedInLane: When the lane is outside the agent's allowed lanes.
    """
    definition = registry.require(name)
    if lane_number not in definition.allowed_lanes:
        raise AgentNotAllowedInLane(name, lane_number, display_name=definition.display_name)
    return definition
