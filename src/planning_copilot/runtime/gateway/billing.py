"""Provider cost and customer price calculation for model calls."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Mapping

logger = logging.getLogger(__name__)

# USD per 1M tokens as (input, output).
MODEL_RATES: dict[str, tuple[float, float]] = {
    "gpt-4o": (2.50, 10.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4-turbo": (10.00, 30.00),
    "claude-3-5-sonnet-20241022": (3.00, 15.00),
    "claude-3-5-haiku-20241022": (0.80, 4.00),
}
DEFAULT_RATE_MODEL = "gpt-4o"
_TOKENS_PER_RATE_UNIT = 1_000_000


@dataclass(frozen=True)
class BillingPolicy:
    """Turn token usage into provider cost and a rounded customer price.

    Attributes:
        markup: Multiplier applied to cost.
        increment: Price step; prices always round up to a multiple of it.
        rates: Per-model ``(input, output)`` USD per million tokens.
    """
    markup: float = 5.0
    increment: float = 0.25
    rates: Mapping[str, tuple[float, float]] = field(default_factory=lambda: dict(MODEL_RATES))

    def cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        rates = self.rates.get(model)
        if rates is None:
            logger.debug("No rate for model %s, billing at %s rates", model, DEFAULT_RATE_MODEL)
            rates = self.rates.get(DEFAULT_RATE_MODEL, MODEL_RATES[DEFAULT_RATE_MODEL])
        input_rate, output_rate = rates
        return (input_tokens * input_rate + output_tokens * output_rate) / _TOKENS_PER_RATE_UNIT

    def price(self, cost: float) -> float:
        """Return ``ceil(cost * markup / increment) * increment``; zero cost is free."""
        if cost <= 0:
            return 0.0
        # Rounded before ceil so float noise does not add a whole increment.
        steps = math.ceil(round(cost * self.markup / self.increment, 9))
        return round(steps * self.increment, 6)
