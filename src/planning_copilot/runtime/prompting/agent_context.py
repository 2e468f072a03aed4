"""Agent plan/task/todo documents and their token-optimized rendering."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Literal, Optional

from ..domain.models import AgentDocument, now_iso
from ..errors import NotFoundError
from ..storage.interfaces import AgentDocumentRepository
from .budget import TOKEN_BUDGETS, BudgetMode, TokenBudget, truncate_to_tokens

logger = logging.getLogger(__name__)

TodoStatus = Literal["pending", "in_progress", "completed", "blocked"]
TodoPriority = Literal["low", "medium", "high"]

_STATUS_MARKS = {"completed": "x", "in_progress": "~", "blocked": "!", "pending": " "}
_MARK_STATUS = {mark: status for status, mark in _STATUS_MARKS.items()}
_STATUS_ORDER = {"in_progress": 0, "blocked": 1, "pending": 2, "completed": 3}
_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
_TODO_LINE = re.compile(r"^- \[([ x~!])\] \((high|medium|low)\) (.+?) \(id: ([^)]+)\)$")
_TASK_SPLIT = re.compile(r"\n---\n## (?=\d{4}-\d{2}-\d{2}T)")
_RECENT_TASKS = 3


@dataclass
class TodoItem:
    """One checklist entry inside an agent's Todo document."""
    title: str
    status: TodoStatus = "pending"
    priority: TodoPriority = "medium"
    description: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:10])


def format_todos(items: list[TodoItem]) -> str:
    ordered = sorted(items, key=lambda i: (_STATUS_ORDER.get(i.status, 9), _PRIORITY_ORDER.get(i.priority, 9)))
    lines = ["# Agent Todo List", ""]
    for item in ordered:
        lines.append(f"- [{_STATUS_MARKS.get(item.status, ' ')}] ({item.priority}) {item.title} (id: {item.id})")
        if item.description:
            lines.append(f"  - {item.description}")
    return "\n".join(lines)


def parse_todos(content: str) -> list[TodoItem]:
    items: list[TodoItem] = []
    for line in content.splitlines():
        match = _TODO_LINE.match(line)
        if not match:
            continue
        mark, priority, title, item_id = match.groups()
        items.append(TodoItem(title=title, status=_MARK_STATUS[mark], priority=priority, id=item_id))  # type: ignore[arg-type]
    return items


class AgentDocumentService:
    """Read and maintain the per-agent Plan, Task, and Todo documents."""
    def __init__(self, repo: AgentDocumentRepository) -> None:
        self._repo = repo

    def get(self, project_id: str, agent_name: str, doc_type: str) -> Optional[AgentDocument]:
        return self._repo.get(project_id, agent_name, doc_type)

    def save(self, project_id: str, agent_name: str, doc_type: str, content: str) -> AgentDocument:
        """Create or replace one agent document, bumping its version."""
        doc = self._repo.upsert(
            AgentDocument(project_id=project_id, agent_name=agent_name, doc_type=doc_type, content=content)  # type: ignore[arg-type]
        )
        logger.info("Agent document updated project=%s agent=%s type=%s version=%s", project_id, agent_name, doc_type, doc.version)
        return doc

    def append_task(self, project_id: str, agent_name: str, entry: str) -> AgentDocument:
        """Append a timestamped entry to the agent's Task log."""
        existing = self._repo.get(project_id, agent_name, "Task")
        block = f"\n---\n## {now_iso()}\n\n{entry}\n"
        return self.save(project_id, agent_name, "Task", (existing.content if existing else "") + block)

    def set_todos(self, project_id: str, agent_name: str, items: list[TodoItem]) -> AgentDocument:
        return self.save(project_id, agent_name, "Todo", format_todos(items))

    def add_todo(self, project_id: str, agent_name: str, item: TodoItem) -> AgentDocument:
        existing = self._repo.get(project_id, agent_name, "Todo")
        items = parse_todos(existing.content) if existing else []
        return self.set_todos(project_id, agent_name, [*items, item])

    def update_todo_status(self, project_id: str, agent_name: str, item_id: str, status: TodoStatus) -> AgentDocument:
        existing = self._repo.get(project_id, agent_name, "Todo")
        if existing is None:
            raise NotFoundError(f"Todo document not found for agent {agent_name}")
        items = parse_todos(existing.content)
        for item in items:
            if item.id == item_id:
                item.status = status
                return self.set_todos(project_id, agent_name, items)
        raise NotFoundError(f"Todo item not found: {item_id}")

    def token_optimized_context(
        self,
        project_id: str,
        agent_name: str,
        mode: BudgetMode = "full",
        budget: Optional[TokenBudget] = None,
    ) -> str:
        """Render the agent's documents within ``budget``, defaulting to the ``mode`` budget.

        Full mode includes whole (truncated) documents. Summary mode keeps
        only the last few task entries and open high-priority todos.
        """
        budget = budget or TOKEN_BUDGETS[mode]
        plan = self._repo.get(project_id, agent_name, "Plan")
        task = self._repo.get(project_id, agent_name, "Task")
        todo = self._repo.get(project_id, agent_name, "Todo")

        result = ""
        if plan:
            content = truncate_to_tokens(plan.content, budget.agent_plan)
            if content:
                result += f"## Agent Plan\n\n{content}\n\n"
        if task:
            if mode == "full":
                content = truncate_to_tokens(task.content, budget.agent_task)
            else:
                content = _recent_tasks(task.content, budget.agent_task)
            if content:
                result += f"## Recent Tasks\n\n{content}\n\n"
        if todo:
            if mode == "full":
                content = truncate_to_tokens(todo.content, budget.agent_todo)
            else:
                content = _high_priority_todos(todo.content, budget.agent_todo)
            if content:
                result += f"## Pending Items\n\n{content}\n\n"
        return result


def _recent_tasks(content: str, max_tokens: int) -> str:
    sections = [s for s in _TASK_SPLIT.split(content) if s.strip()]
    result = "\n---\n## ".join(sections[-_RECENT_TASKS:])
    if len(sections) > _RECENT_TASKS:
        result = f"[{len(sections) - _RECENT_TASKS} earlier tasks omitted]\n\n{result}"
    return truncate_to_tokens(result, max_tokens)


def _high_priority_todos(content: str, max_tokens: int) -> str:
    items = [
        item
        for item in parse_todos(content)
        if item.status != "completed" and (item.priority == "high" or item.status == "in_progress")
    ]
    if not items:
        return ""
    return truncate_to_tokens(format_todos(items), max_tokens)
