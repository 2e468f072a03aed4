"""Agent definitions, registry, and card routing."""

from .definitions import AGENT_DEFINITIONS, AgentDefinition
from .registry import AgentRegistry, require_lane_permission
from .routing import AgentRoute, AgentRoutingTable

__all__ = [
    "AGENT_DEFINITIONS",
    "AgentDefinition",
    "AgentRegistry",
    "AgentRoute",
    "AgentRoutingTable",
    "require_lane_permission",
]
