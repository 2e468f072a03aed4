"""Wire the copilot services for one project state root."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...settings import RuntimeSettings, get_runtime_settings
from ..agents.registry import AgentRegistry
from ..agents.routing import AgentRoutingTable
from ..documents.lifecycle import DocumentLifecycle
from ..events.bus import EventBus
from ..gateway.adapter import ExecutionGatewayAdapter
from ..gateway.clients import CompletionClient, build_completion_client
from ..planning.executor import ActionExecutor
from ..prompting.agent_context import AgentDocumentService
from ..prompting.builder import PromptBuilder
from ..storage.container import Container
from .service import CopilotService


@dataclass(frozen=True)
class CopilotRuntime:
    """Services sharing one container, event bus, and completion client."""
    container: Container
    settings: RuntimeSettings
    bus: EventBus
    registry: AgentRegistry
    routing: AgentRoutingTable
    gateway: ExecutionGatewayAdapter
    executor: ActionExecutor
    lifecycle: DocumentLifecycle
    agent_documents: AgentDocumentService
    prompts: PromptBuilder
    copilot: CopilotService


def create_copilot_runtime(
    container: Container,
    *,
    client: Optional[CompletionClient] = None,
    registry: Optional[AgentRegistry] = None,
    routing: Optional[AgentRoutingTable] = None,
) -> CopilotRuntime:
    """Build every service for ``container``.

    Args:
        container (Container): Repositories for the project state root.
        client (Optional[CompletionClient]): Completion client to inject. Built
            from the ``gateway`` config section when omitted.
        registry (Optional[AgentRegistry]): Agent registry, the built-in agents by default.
        routing (Optional[AgentRoutingTable]): Card routing table, the default table when omitted.

    Returns:
        CopilotRuntime: Wired services.
    """
    settings = get_runtime_settings(config=container.config.load())
    bus = EventBus(container.events)
    registry = registry or AgentRegistry()
    routing = routing or AgentRoutingTable()
    gateway = ExecutionGatewayAdapter(
        registry=registry,
        client=client or build_completion_client(settings.gateway),
        usage=container.usage,
        settings=settings.gateway,
    )
    executor = ActionExecutor(
        boards=container.boards,
        cards=container.cards,
        history=container.card_history,
        routing=routing,
        bus=bus,
    )
    lifecycle = DocumentLifecycle(
        projects=container.projects,
        boards=container.boards,
        cards=container.cards,
        history=container.card_history,
        documents=container.documents,
        todos=container.todos,
        bus=bus,
    )
    agent_documents = AgentDocumentService(container.agent_documents)
    prompts = PromptBuilder(
        registry=registry,
        projects=container.projects,
        boards=container.boards,
        cards=container.cards,
        documents=container.documents,
        style_guides=container.style_guides,
        agent_documents=agent_documents,
        budget_overrides=settings.token_budgets,
    )
    copilot = CopilotService(
        projects=container.projects,
        boards=container.boards,
        cards=container.cards,
        conversations=container.conversations,
        messages=container.messages,
        documents=container.documents,
        gateway=gateway,
        executor=executor,
        lifecycle=lifecycle,
        routing=routing,
        bus=bus,
    )
    return CopilotRuntime(
        container=container,
        settings=settings,
        bus=bus,
        registry=registry,
        routing=routing,
        gateway=gateway,
        executor=executor,
        lifecycle=lifecycle,
        agent_documents=agent_documents,
        prompts=prompts,
        copilot=copilot,
    )
