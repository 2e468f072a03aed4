"""Token-budgeted prompt assembly for agents."""

from .budget import TOKEN_BUDGETS, TokenBudget, estimate_tokens, truncate_to_tokens
from .builder import BuiltPrompt, PromptBuilder, PromptContext

__all__ = [
    "TOKEN_BUDGETS",
    "TokenBudget",
    "estimate_tokens",
    "truncate_to_tokens",
    "BuiltPrompt",
    "PromptBuilder",
    "PromptContext",
]
