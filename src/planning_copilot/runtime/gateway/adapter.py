"""Uniform agent execution over an injected completion client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional

from ...settings import GatewaySettings
from ..agents.definitions import AgentDefinition
from ..agents.registry import AgentRegistry, require_lane_permission
from ..domain.models import UsageRecord
from ..errors import CopilotError, ProviderError
from ..storage.interfaces import UsageRepository
from .billing import BillingPolicy
from .clients import ChatMessage, Completion, CompletionClient, CompletionOptions

logger = logging.getLogger(__name__)

_CONTEXT_SECTIONS = (("blueprint", "Blueprint"), ("prd", "PRD"), ("mvp", "MVP"), ("plan", "Plan"))
_MIN_CONTEXT_LENGTH = 20


@dataclass(frozen=True)
class ExecutionContext:
    """What an agent run is about.

    Attributes:
        project_id: Project the run is billed to.
        user_message: Instruction for the agent.
        lane_number: Lane of the card being worked; checked against the agent.
        card_title: Title of the card being worked.
        card_description: Description of the card being worked.
        documents: Planning document excerpts keyed ``blueprint``/``prd``/``mvp``/``plan``.
        system_prompt: Prebuilt system prompt. Defaults to the agent's base prompt.
        user_context: Prebuilt context message. Replaces the one built from ``documents``.
    """
    project_id: Optional[str]
    user_message: str
    lane_number: Optional[int] = None
    card_title: Optional[str] = None
    card_description: Optional[str] = None
    documents: Mapping[str, str] = field(default_factory=dict)
    system_prompt: Optional[str] = None
    user_context: Optional[str] = None


@dataclass(frozen=True)
class ExecutionOptions:
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    operation: str = "execute"


@dataclass(frozen=True)
class ExecutionResult:
    content: str
    input_tokens: int
    output_tokens: int
    cost: float
    price: float
    model: str
    provider: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost": self.cost,
            "price": self.price,
            "model": self.model,
            "provider": self.provider,
        }


@dataclass(frozen=True)
class StreamChunk:
    """Incremental content, or the final usage report when ``done`` is set."""
    content: str = ""
    done: bool = False
    usage: Optional[ExecutionResult] = None


def build_messages(definition: AgentDefinition, context: ExecutionContext) -> list[ChatMessage]:
    """Lay out system prompt, project context, then the user instruction."""
    messages: list[ChatMessage] = [{"role": "system", "content": context.system_prompt or definition.system_prompt}]

    project_context = context.user_context
    if project_context is None:
        project_context = "Project Context:\n\n"
        for key, heading in _CONTEXT_SECTIONS:
            if context.documents.get(key):
                project_context += f"## {heading}\n{context.documents[key]}\n\n"
        if context.card_title:
            project_context += (
                f"## Current Card\nTitle: {context.card_title}\n"
                f"Description: {context.card_description or ''}\n"
                f"Lane: {context.lane_number if context.lane_number is not None else 'Unknown'}\n"
            )
    if len(project_context.strip()) > _MIN_CONTEXT_LENGTH:
        messages.append({"role": "user", "content": project_context})

    messages.append({"role": "user", "content": context.user_message})
    return messages


class ExecutionGatewayAdapter:
    """Dispatch agent runs to the completion client and record usage.

    The client is injected once at construction. Calls are never retried: a
    provider failure or an empty completion raises :class:`ProviderError` for
    the caller to handle.
    """
    def __init__(
        self,
        *,
        registry: AgentRegistry,
        client: CompletionClient,
        usage: Optional[UsageRepository] = None,
        settings: Optional[GatewaySettings] = None,
        billing: Optional[BillingPolicy] = None,
    ) -> None:
        self._registry = registry
        self._client = client
        self._usage = usage
        self._settings = settings or GatewaySettings()
        self._billing = billing or BillingPolicy(
            markup=self._settings.billing_markup,
            increment=self._settings.billing_increment,
        )

    @property
    def provider(self) -> str:
        return self._client.provider

    def execute(
        self,
        agent_name: str,
        context: ExecutionContext,
        options: Optional[ExecutionOptions] = None,
    ) -> ExecutionResult:
        """Run one agent turn to completion.

        Args:
            agent_name (str): Registered agent to run.
            context (ExecutionContext): Project, card, and instruction for the run.
            options (Optional[ExecutionOptions]): Per-call model overrides.

        Returns:
            ExecutionResult: Reply text with token usage, cost, and price.

        Raises:
            AgentNotFound: When the agent is not registered.
            AgentNotAllowedInLane: When ``context.lane_number`` is outside the agent's lanes.
            ProviderError: When the provider fails or returns no content.
        """
        definition = self._authorize(agent_name, context)
        opts = options or ExecutionOptions()
        messages = build_messages(definition, context)
        return self._complete(definition, messages, opts, context.project_id)

    def stream(
        self,
        agent_name: str,
        context: ExecutionContext,
        options: Optional[ExecutionOptions] = None,
    ) -> Iterator[StreamChunk]:
        """Yield content chunks, then one ``done`` chunk carrying usage.

        Closing the iterator early stops reading from the provider. Usage is
        only recorded for streams read to the end.
        """
        definition = self._authorize(agent_name, context)
        opts = options or ExecutionOptions()
        completion_options = self._completion_options(definition, opts)
        messages = build_messages(definition, context)

        parts: list[str] = []
        input_tokens = 0
        output_tokens = 0
        try:
            for event in self._client.stream(messages, completion_options):
                if event.done:
                    input_tokens, output_tokens = event.input_tokens, event.output_tokens
                    break
                if event.content:
                    parts.append(event.content)
                    yield StreamChunk(content=event.content)
        except CopilotError:
            raise
        except Exception as exc:
            raise self._provider_error(exc, completion_options.model) from exc

        completion = Completion(
            content="".join(parts),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=completion_options.model,
        )
        result = self._finish(definition, completion, opts, context.project_id)
        yield StreamChunk(done=True, usage=result)

    def chat(
        self,
        messages: list[ChatMessage],
        agent_name: str,
        options: Optional[ExecutionOptions] = None,
        *,
        project_id: Optional[str] = None,
    ) -> ExecutionResult:
        """Complete a prepared conversation for ``agent_name``.

        Copilot turns carry no card lane, so only the agent's existence is
        checked.
        """
        definition = self._registry.require(agent_name)
        return self._complete(definition, messages, options or ExecutionOptions(operation="chat"), project_id)

    def _authorize(self, agent_name: str, context: ExecutionContext) -> AgentDefinition:
        if context.lane_number is None:
            return self._registry.require(agent_name)
        return require_lane_permission(self._registry, agent_name, context.lane_number)

    def _completion_options(self, definition: AgentDefinition, options: ExecutionOptions) -> CompletionOptions:
        model = options.model
        if not model:
            # The agent's preferred model only applies when it runs on our provider.
            model = definition.default_model if definition.default_provider == self._client.provider else self._settings.model
        return CompletionOptions(
            model=model,
            temperature=self._settings.temperature if options.temperature is None else options.temperature,
            max_tokens=options.max_tokens or self._settings.max_tokens,
        )

    def _complete(
        self,
        definition: AgentDefinition,
        messages: list[ChatMessage],
        options: ExecutionOptions,
        project_id: Optional[str],
    ) -> ExecutionResult:
        completion_options = self._completion_options(definition, options)
        logger.info(
            "Dispatching %s for agent=%s provider=%s model=%s messages=%d",
            options.operation,
            definition.name,
            self._client.provider,
            completion_options.model,
            len(messages),
        )
        try:
            completion = self._client.complete(messages, completion_options)
        except CopilotError:
            raise
        except Exception as exc:
            raise self._provider_error(exc, completion_options.model) from exc
        return self._finish(definition, completion, options, project_id)

    def _finish(
        self,
        definition: AgentDefinition,
        completion: Completion,
        options: ExecutionOptions,
        project_id: Optional[str],
    ) -> ExecutionResult:
        if not completion.content.strip():
            raise ProviderError(
                f"Empty completion for agent {definition.name}",
                provider=self._client.provider,
                model=completion.model,
            )
        cost = self._billing.cost(completion.model, completion.input_tokens, completion.output_tokens)
        result = ExecutionResult(
            content=completion.content,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            cost=cost,
            price=self._billing.price(cost),
            model=completion.model,
            provider=self._client.provider,
        )
        if self._usage is not None:
            self._usage.append(
                UsageRecord(
                    agent_name=definition.name,
                    provider=result.provider,
                    model=result.model,
                    operation=options.operation,
                    input_tokens=result.input_tokens,
                    output_tokens=result.output_tokens,
                    cost=result.cost,
                    price=result.price,
                    project_id=project_id,
                )
            )
        return result

    def _provider_error(self, exc: Exception, model: str) -> ProviderError:
        logger.exception("Provider %s failed for model %s", self._client.provider, model)
        return ProviderError(f"Provider call failed: {exc}", provider=self._client.provider, model=model)
