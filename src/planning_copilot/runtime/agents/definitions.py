"""Built-in agent definitions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...prompts import load as load_prompt


@dataclass(frozen=True)
class AgentDefinition:
    """Immutable description of one specialized agent.

    Attributes:
        name: Registry key (for example ``"architect"``).
        display_name: Human readable name.
        description: One-line summary of what the agent does.
        allowed_lanes: Lane numbers the agent may operate in.
        default_provider: Provider the agent prefers.
        default_model: Model the agent prefers on that provider.
        prompt_name: Template path under ``prompts/`` for the base system prompt.
    """
    name: str
    display_name: str
    description: str
    allowed_lanes: tuple[int, ...]
    default_provider: str
    default_model: str
    prompt_name: Optional[str] = None

    @property
    def system_prompt(self) -> str:
        return load_prompt(self.prompt_name or f"agents/{self.name}.md")

    def to_dict(self) -> dict[str, object]:
        """Serialize the definition for API responses."""
        return {
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "allowed_lanes": list(self.allowed_lanes),
            "default_provider": self.default_provider,
            "default_model": self.default_model,
        }


_OPENAI = ("openai", "gpt-4o")
_ANTHROPIC = ("anthropic", "claude-3-5-sonnet-20241022")


def _agent(name: str, display_name: str, description: str, lanes: tuple[int, ...], provider: tuple[str, str]) -> AgentDefinition:
    return AgentDefinition(
        name=name,
        display_name=display_name,
        description=description,
        allowed_lanes=lanes,
        default_provider=provider[0],
        default_model=provider[1],
    )


AGENT_DEFINITIONS: tuple[AgentDefinition, ...] = (
    _agent(
        "ceo_copilot",
        "CEO CoPilot",
        "Executive supervisor that runs Lane 0 Q&A and keeps Blueprint, PRD, MVP, and work aligned.",
        tuple(range(0, 11)),
        _OPENAI,
    ),
    _agent("strategy", "Strategy Agent", "Turns raw Q&A into positioning, segments, feature buckets, and a risk map.", (0,), _OPENAI),
    _agent("storyboard_ux", "Storyboard/UX Agent", "Translates strategy into user flows and text wireframes.", (0,), _OPENAI),
    _agent("prd", "PRD Agent", "Generates and maintains the Product Requirements Document.", (1,), _OPENAI),
    _agent("mvp_scope", "MVP Scope Agent", "Defines the minimal viable slice and its feature cards.", (1,), _OPENAI),
    _agent("research", "Research Agent", "Researches technologies, competitors, and patterns.", (2,), _OPENAI),
    _agent("architect", "Architect Agent", "Designs system architecture and picks the stack.", (3,), _ANTHROPIC),
    _agent("planner", "Planner Agent", "Breaks features into tasks with dependencies and acceptance criteria.", (4,), _OPENAI),
    _agent(
        "code_standards",
        "Code Standards Agent",
        "Defines coding conventions, maintains the style guide, and validates code before commits.",
        (3, 5, 6, 7),
        _ANTHROPIC,
    ),
    _agent("dev_backend", "Dev Backend Agent", "Implements backend APIs and services.", (6,), _ANTHROPIC),
    _agent("dev_frontend", "Dev Frontend Agent", "Implements frontend components and pages.", (6,), _ANTHROPIC),
    _agent("devops", "DevOps Agent", "Owns infrastructure-as-code, CI/CD, and deployment configs.", (5, 8), _ANTHROPIC),
    _agent("qa", "QA Agent", "Writes test plans and runs tests.", (7,), _ANTHROPIC),
    _agent("docs", "Docs Agent", "Writes user documentation, API docs, and runbooks.", (9,), _OPENAI),
    _agent("refactor", "Refactor Agent", "Improves code quality while keeping behavior.", (6, 10), _ANTHROPIC),
    _agent("troubleshooter", "Troubleshooter Agent", "Debugs failing builds, tests, and production issues.", (7,), _ANTHROPIC),
)
