"""Dependency container for runtime repositories."""

from __future__ import annotations

from pathlib import Path

from .bootstrap import ensure_state_root
from .file_repos import (
    FileAgentDocumentRepository,
    FileBoardRepository,
    FileCardHistoryRepository,
    FileCardRepository,
    FileConfigRepository,
    FileConversationRepository,
    FileDocumentRepository,
    FileEventRepository,
    FileMessageRepository,
    FileProjectRepository,
    FileStyleGuideRepository,
    FileTodoRepository,
    FileUsageRepository,
)


class Container:
    """Wire file-backed repositories under one project state root."""
    def __init__(self, project_dir: Path) -> None:
        """Initialize the Container.

        Args:
            project_dir (Path): Directory whose ``.planning_copilot`` folder holds state.
        """
        self.project_dir = project_dir.resolve()
        self.state_root = ensure_state_root(self.project_dir)
        root = self.state_root

        self.projects = FileProjectRepository(root / "projects.yaml", root / "projects.lock")
        self.boards = FileBoardRepository(root / "boards.yaml", root / "boards.lock")
        self.cards = FileCardRepository(root / "cards.yaml", root / "cards.lock")
        self.card_history = FileCardHistoryRepository(root / "card_history.yaml", root / "card_history.lock")
        self.conversations = FileConversationRepository(root / "conversations.yaml", root / "conversations.lock")
        self.messages = FileMessageRepository(root / "messages.yaml", root / "messages.lock")
        self.documents = FileDocumentRepository(root / "documents.yaml", root / "documents.lock")
        self.agent_documents = FileAgentDocumentRepository(root / "agent_documents.yaml", root / "agent_documents.lock")
        self.style_guides = FileStyleGuideRepository(root / "style_guides.yaml", root / "style_guides.lock")
        self.usage = FileUsageRepository(root / "usage.yaml", root / "usage.lock")
        self.todos = FileTodoRepository(root / "todos.yaml", root / "todos.lock")
        self.events = FileEventRepository(root / "events.jsonl", root / "events.lock")
        self.config = FileConfigRepository(root / "config.yaml", root / "config.lock")
