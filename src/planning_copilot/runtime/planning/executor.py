"""Apply parsed card directives to a project board."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..agents.routing import AgentRoutingTable
from ..domain.models import Board, Card, CardHistoryEntry
from ..errors import CopilotError, NotFoundError
from ..events.bus import EventBus
from ..storage.interfaces import BoardRepository, CardHistoryRepository, CardRepository
from .actions import CardAction

logger = logging.getLogger(__name__)

DUPLICATE_REASON = "Copilot CREATE_CARD action updated the existing card instead of creating a duplicate"


@dataclass
class ActionResult:
    """Per-kind outcomes of one executed batch."""
    cards_created: list[Card] = field(default_factory=list)
    cards_moved: list[Card] = field(default_factory=list)
    cards_updated: list[Card] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cards_created": [c.to_dict() for c in self.cards_created],
            "cards_moved": [c.to_dict() for c in self.cards_moved],
            "cards_updated": [c.to_dict() for c in self.cards_updated],
            "errors": list(self.errors),
        }


class ActionExecutor:
    """Execute card actions independently, collecting failures instead of aborting."""
    def __init__(
        self,
        *,
        boards: BoardRepository,
        cards: CardRepository,
        history: CardHistoryRepository,
        routing: AgentRoutingTable,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._boards = boards
        self._cards = cards
        self._history = history
        self._routing = routing
        self._bus = bus

    def execute(self, actions: list[CardAction], project_id: Optional[str], board_id: Optional[str]) -> ActionResult:
        """Apply ``actions`` to the board.

        Args:
            actions (list[CardAction]): Parsed directives in reply order.
            project_id (Optional[str]): Project that owns the board.
            board_id (Optional[str]): Board the actions target.

        Returns:
            ActionResult: Cards touched per action kind plus one error string per
            failed action. A missing project or board yields a single error and
            nothing executes.
        """
        result = ActionResult()
        if not actions:
            return result
        if not project_id or not board_id:
            result.errors.append(f"Missing project_id ({project_id}) or board_id ({board_id}); cannot execute actions")
            logger.warning(result.errors[-1])
            return result
        board = self._boards.get(board_id)
        if board is None or board.project_id != project_id:
            result.errors.append(f"Board {board_id} not found for project {project_id}")
            logger.warning(result.errors[-1])
            return result

        for action in actions:
            try:
                if action.kind == "CREATE_CARD":
                    result.cards_created.append(self._create(board, project_id, action.data))
                elif action.kind == "MOVE_CARD":
                    result.cards_moved.append(self._move(board, project_id, action.data))
                elif action.kind == "UPDATE_CARD":
                    result.cards_updated.append(self._update(board, project_id, action.data))
            except CopilotError as exc:
                logger.info("Card action %s failed: %s", action.kind, exc)
                result.errors.append(str(exc))
            except Exception as exc:
                logger.exception("Card action %s raised unexpectedly", action.kind)
                result.errors.append(f"{action.kind} failed: {exc}")

        logger.info(
            "Executed %d card actions board=%s created=%d moved=%d updated=%d errors=%d",
            len(actions),
            board_id,
            len(result.cards_created),
            len(result.cards_moved),
            len(result.cards_updated),
            len(result.errors),
        )
        return result

    def _create(self, board: Board, project_id: str, data: dict[str, str]) -> Card:
        requested = data.get("agent") or ""
        agent = self._routing.resolve_alias(requested) or requested or self._routing.baseline
        route = self._routing.route_for(agent)
        lane = board.lane_by_number(route.default_lane)
        if lane is None:
            raise NotFoundError(f"Lane {route.default_lane} not found for agent {agent}")

        description = data.get("description") or ""
        priority = data.get("priority") or route.priority
        candidate = Card(
            board_id=board.id,
            lane_id=lane.id,
            title=data["title"],
            description=description,
            card_type="task",
            priority=priority,
            assigned_agent=agent,
            status="pending",
        )

        def merge(existing: Card) -> None:
            if existing.metadata.get("document_type"):
                raise CopilotError(
                    f"Card {existing.title!r} tracks a document review; approve or reject the document instead"
                )
            existing.lane_id = lane.id
            existing.description = description or existing.description
            existing.priority = priority
            existing.assigned_agent = agent
            existing.status = "pending"

        card, previous = self._cards.insert_or_merge(candidate, merge)
        if previous is None:
            self._emit("card.created", card, project_id)
            return card

        self._history.append(
            CardHistoryEntry(
                card_id=card.id,
                action="updated",
                previous_value=previous.description or None,
                new_value=description or None,
                performed_by=agent,
                metadata={"reason": DUPLICATE_REASON},
            )
        )
        self._emit("card.updated", card, project_id)
        return card

    def _move(self, board: Board, project_id: str, data: dict[str, str]) -> Card:
        raw_lane = data["toLane"]
        try:
            lane_number = int(raw_lane.strip())
        except ValueError:
            raise CopilotError(f"Invalid lane number {raw_lane!r} for card {data['cardId']}") from None
        lane = board.lane_by_number(lane_number)
        if lane is None:
            raise NotFoundError(f"Lane {lane_number} not found on board {board.id}")
        self._require_card(board, data["cardId"])
        card, _ = self._cards.move(data["cardId"], lane.id)
        self._emit("card.moved", card, project_id)
        return card

    def _update(self, board: Board, project_id: str, data: dict[str, str]) -> Card:
        card = self._require_card(board, data["cardId"])
        if data.get("status"):
            card.status = data["status"]
        if data.get("priority"):
            card.priority = data["priority"]
        if data.get("assignedAgent"):
            card.assigned_agent = data["assignedAgent"]
        self._cards.upsert(card)
        self._emit("card.updated", card, project_id)
        return card

    def _require_card(self, board: Board, card_id: str) -> Card:
        card = self._cards.get(card_id)
        if card is None or card.board_id != board.id:
            raise NotFoundError(f"Card not found: {card_id}")
        return card

    def _emit(self, event_type: str, card: Card, project_id: str) -> None:
        if self._bus is None:
            return
        self._bus.emit(
            channel="cards",
            event_type=event_type,
            entity_id=card.id,
            payload={"card": card.to_dict()},
            project_id=project_id,
        )
