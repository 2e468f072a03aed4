"""Websocket fan-out of board, document, and conversation events."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

CHANNELS = frozenset({"cards", "documents", "conversations", "system"})


def _ids(message: dict[str, Any], plural: str, singular: str) -> set[str]:
    values = [*message.get(plural, []), message.get(singular)]
    return {str(v).strip() for v in values if v is not None and str(v).strip()}


@dataclass
class Subscription:
    """What one websocket client wants to receive.

    Empty project or conversation filters mean "all". ``system`` events go
    to every client regardless of channels.
    """
    channels: set[str] = field(default_factory=set)
    project_ids: set[str] = field(default_factory=set)
    conversation_ids: set[str] = field(default_factory=set)

    def matches(self, event: dict[str, Any]) -> bool:
        channel = event.get("channel")
        if channel == "system":
            return True
        if channel not in self.channels:
            return False
        if self.project_ids and str(event.get("project_id") or "") not in self.project_ids:
            return False
        if channel == "conversations" and self.conversation_ids:
            return str(event.get("entity_id") or "") in self.conversation_ids
        return True

    def apply(self, message: dict[str, Any]) -> Optional[str]:
        """Update filters from a client message and return the ack type."""
        action = message.get("action")
        channels = {str(c) for c in message.get("channels", [])}
        projects = _ids(message, "project_ids", "project_id")
        conversations = _ids(message, "conversation_ids", "conversation_id")
        if action == "subscribe":
            self.channels |= channels & CHANNELS
            self.project_ids |= projects
            self.conversation_ids |= conversations
            return "subscribed"
        if action == "unsubscribe":
            self.channels -= channels
            self.project_ids -= projects
            self.conversation_ids -= conversations
            return "unsubscribed"
        if action == "ping":
            return "pong"
        return None

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "channels": sorted(self.channels),
            "project_ids": sorted(self.project_ids),
            "conversation_ids": sorted(self.conversation_ids),
        }


def _system(event_type: str, payload: dict[str, Any]) -> str:
    return json.dumps({"channel": "system", "type": event_type, "payload": payload})


class WebSocketHub:
    """Hold connected clients and deliver events that match their subscription."""
    def __init__(self) -> None:
        self._clients: dict[int, tuple[WebSocket, Subscription]] = {}
        self._seq = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> int:
        return len(self._clients)

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Remember the server loop so worker threads can publish into it."""
        with self._lock:
            self._loop = loop

    async def handle_connection(self, websocket: WebSocket) -> None:
        self.attach_loop(asyncio.get_running_loop())
        await websocket.accept()
        subscription = Subscription()
        key = id(websocket)
        self._clients[key] = (websocket, subscription)
        try:
            await websocket.send_text(_system("connected", {"channels": sorted(CHANNELS)}))
            while True:
                message = json.loads(await websocket.receive_text())
                ack = subscription.apply(message if isinstance(message, dict) else {})
                if ack == "pong":
                    await websocket.send_text(_system("pong", {}))
                elif ack:
                    await websocket.send_text(_system(ack, subscription.to_dict()))
        except WebSocketDisconnect:
            logger.debug("WebSocket client %s disconnected", key)
        except (ValueError, RuntimeError):
            logger.debug("WebSocket client %s dropped", key, exc_info=True)
        finally:
            self._clients.pop(key, None)

    async def publish(self, event: dict[str, Any]) -> None:
        self._seq += 1
        frame = json.dumps({**event, "seq": self._seq}, default=str)
        dead: list[int] = []
        for key, (websocket, subscription) in list(self._clients.items()):
            if not subscription.matches(event):
                continue
            try:
                await websocket.send_text(frame)
            except (RuntimeError, WebSocketDisconnect):
                dead.append(key)
        for key in dead:
            self._clients.pop(key, None)

    def publish_sync(self, event: dict[str, Any]) -> None:
        """Schedule :meth:`publish` from sync code without waiting for delivery."""
        with self._lock:
            loop = self._loop
        if loop is not None and loop.is_running():
            asyncio.run_coroutine_threadsafe(self.publish(event), loop)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No event loop for websocket publish of %s", event.get("type"))
            return
        self.attach_loop(running)
        running.create_task(self.publish(event))


hub = WebSocketHub()
