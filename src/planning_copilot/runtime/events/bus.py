"""Event bus wrapper that persists and broadcasts runtime events."""

from __future__ import annotations

from typing import Any

from ..storage.interfaces import EventRepository
from .ws import hub


class EventBus:
    """Persist runtime events and fan them out to websocket subscribers."""
    def __init__(self, repo: EventRepository) -> None:
        self._repo = repo

    def emit(
        self,
        *,
        channel: str,
        event_type: str,
        entity_id: str,
        payload: dict[str, Any],
        project_id: str | None = None,
    ) -> dict[str, Any]:
        """Append an event to storage and publish it to connected clients.

        Args:
            channel (str): One of the hub channels (``cards``, ``documents``, ...).
            event_type (str): Event type label within the channel.
            entity_id (str): Identifier of the card, document, or conversation.
            payload (dict[str, Any]): JSON-serializable event body.
            project_id (str | None): Project the entity belongs to, when known.

        Returns:
            dict[str, Any]: Persisted event envelope.
        """
        event = self._repo.append(
            channel=channel,
            event_type=event_type,
            entity_id=entity_id,
            payload=payload,
            project_id=project_id or "",
        )
        hub.publish_sync(event)
        return event
