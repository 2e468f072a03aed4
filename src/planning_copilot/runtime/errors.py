"""Exception types raised by the planning runtime."""

from __future__ import annotations


class CopilotError(RuntimeError):
    """Base class for planning runtime failures."""


class PreconditionError(CopilotError):
    """Raised when identifiers required for an operation are missing."""


class NotFoundError(CopilotError):
    """Raised when a referenced project, board, lane, card, or document is absent."""


class AgentNotFound(NotFoundError):
    """Raised when an agent name is not in the registry."""

    def __init__(self, agent_name: str) -> None:
        super().__init__(f"Agent definition not found: {agent_name}")
        self.agent_name = agent_name


class AgentNotAllowedInLane(CopilotError):
    """Raised when an agent is asked to operate in a lane it is not permitted in."""

    def __init__(self, agent_name: str, lane_number: int, *, display_name: str | None = None) -> None:
        label = display_name or agent_name
        super().__init__(f"Agent {label} cannot run in lane {lane_number}")
        self.agent_name = agent_name
        self.lane_number = lane_number


class InvalidReviewTransition(CopilotError):
    """Raised when a review card is asked to make a transition its state does not allow."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Invalid review transition {current} -> {target}")
        self.current = current
        self.target = target


class ProviderError(CopilotError):
    """Raised when the model call fails or returns no usable content.

    Attributes:
        provider: Provider name the call was routed to.
        model: Model identifier requested for the call.
    """

    def __init__(self, message: str, *, provider: str | None = None, model: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.model = model
