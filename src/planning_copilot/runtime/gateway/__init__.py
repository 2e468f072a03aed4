"""Model execution gateway: completion clients, billing, and the agent adapter."""

from .adapter import (
    ExecutionContext,
    ExecutionGatewayAdapter,
    ExecutionOptions,
    ExecutionResult,
    StreamChunk,
    build_messages,
)
from .billing import BillingPolicy
from .clients import (
    Completion,
    CompletionClient,
    CompletionOptions,
    OpenAICompletionClient,
    ScriptedCompletionClient,
    StreamEvent,
    build_completion_client,
)

__all__ = [
    "BillingPolicy",
    "Completion",
    "CompletionClient",
    "CompletionOptions",
    "ExecutionContext",
    "ExecutionGatewayAdapter",
    "ExecutionOptions",
    "ExecutionResult",
    "OpenAICompletionClient",
    "ScriptedCompletionClient",
    "StreamChunk",
    "StreamEvent",
    "build_completion_client",
    "build_messages",
]
