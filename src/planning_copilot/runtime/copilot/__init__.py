"""Copilot conversation service and its wiring."""

from .factory import CopilotRuntime, create_copilot_runtime
from .service import DEFAULT_LANES, ChatReply, ChatTurn, CopilotService
from .system_prompt import CopilotPromptInputs, build_copilot_system_prompt

__all__ = [
    "DEFAULT_LANES",
    "ChatReply",
    "ChatTurn",
    "CopilotPromptInputs",
    "CopilotRuntime",
    "CopilotService",
    "build_copilot_system_prompt",
    "create_copilot_runtime",
]
