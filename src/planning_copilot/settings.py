"""Parse gateway and prompt-budget configuration from the runtime config."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional, cast

ProviderType = Literal["openai", "scripted"]

PROVIDER_ENV_VAR = "PLANNING_COPILOT_PROVIDER"
_BUDGET_KEYS = (
    "system_prompt",
    "style_guide",
    "agent_plan",
    "agent_task",
    "agent_todo",
    "project_context",
    "card_context",
)


@dataclass(frozen=True)
class GatewaySettings:
    """Normalized settings for the model execution gateway.

    Attributes:
        provider: Completion backend, ``openai`` or the deterministic ``scripted`` client.
        model: Model used when an agent definition does not name one.
        temperature: Sampling temperature passed to every call.
        max_tokens: Completion token ceiling passed to every call.
        billing_markup: Multiplier applied to provider cost to get the price.
        billing_increment: Price rounding step, always rounded up.
        base_url: Optional OpenAI-compatible endpoint override.
    """
    provider: ProviderType = "openai"
    model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 4096
    billing_markup: float = 5.0
    billing_increment: float = 0.25
    base_url: Optional[str] = None


@dataclass(frozen=True)
class RuntimeSettings:
    """Resolved configuration for one service instance.

    Attributes:
        gateway: Model gateway settings.
        token_budgets: Per-mode overrides keyed ``full``/``summary`` then section name.
    """
    gateway: GatewaySettings
    token_budgets: dict[str, dict[str, int]] = field(default_factory=dict)


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _as_positive_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _budget_overrides(raw: Any) -> dict[str, dict[str, int]]:
    out: dict[str, dict[str, int]] = {}
    for mode, values in _as_dict(raw).items():
        if mode not in {"full", "summary"}:
            continue
        section = {
            key: _as_positive_int(value, 0)
            for key, value in _as_dict(values).items()
            if key in _BUDGET_KEYS
        }
        section = {key: value for key, value in section.items() if value > 0}
        if section:
            out[mode] = section
    return out


def get_runtime_settings(*, config: dict[str, Any], env: Optional[Mapping[str, str]] = None) -> RuntimeSettings:
    """Resolve gateway and budget settings from a parsed ``config.yaml``.

    Args:
        config (dict[str, Any]): Runtime configuration that may include ``gateway``
            and ``token_budgets`` sections.
        env (Optional[Mapping[str, str]]): Environment used for the provider
            override. Defaults to ``os.environ``.

    Returns:
        RuntimeSettings: Frozen settings with invalid values replaced by defaults.
    """
    environ = os.environ if env is None else env
    gateway_cfg = _as_dict(config.get("gateway"))
    defaults = GatewaySettings()

    provider = str(environ.get(PROVIDER_ENV_VAR) or gateway_cfg.get("provider") or defaults.provider).strip().lower()
    if provider not in {"openai", "scripted"}:
        provider = defaults.provider

    increment = _as_float(gateway_cfg.get("billing_increment"), defaults.billing_increment)
    if increment <= 0:
        increment = defaults.billing_increment

    gateway = GatewaySettings(
        provider=cast(ProviderType, provider),
        model=str(gateway_cfg.get("model") or defaults.model).strip() or defaults.model,
        temperature=_as_float(gateway_cfg.get("temperature"), defaults.temperature),
        max_tokens=_as_positive_int(gateway_cfg.get("max_tokens"), defaults.max_tokens),
        billing_markup=_as_float(gateway_cfg.get("billing_markup"), defaults.billing_markup),
        billing_increment=increment,
        base_url=str(gateway_cfg.get("base_url") or "").strip() or None,
    )
    return RuntimeSettings(gateway=gateway, token_budgets=_budget_overrides(config.get("token_budgets")))
