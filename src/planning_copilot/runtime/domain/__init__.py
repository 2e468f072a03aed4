"""Domain models for planning runtime state."""

from .models import Board, Card, CardHistoryEntry, Conversation, Document, Lane, Message, Project

__all__ = [
    "Project",
    "Board",
    "Lane",
    "Card",
    "CardHistoryEntry",
    "Conversation",
    "Message",
    "Document",
]
