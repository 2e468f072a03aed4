from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from ...io_utils import _load_data
from .file_repos import FileConfigRepository

SCHEMA_VERSION = 1
STATE_DIR = ".planning_copilot"

STATE_FILES = {
    "projects": "projects.yaml",
    "boards": "boards.yaml",
    "cards": "cards.yaml",
    "card_history": "card_history.yaml",
    "conversations": "conversations.yaml",
    "messages": "messages.yaml",
    "documents": "documents.yaml",
    "agent_documents": "agent_documents.yaml",
    "style_guides": "style_guides.yaml",
    "usage": "usage.yaml",
    "todos": "todos.yaml",
    "events": "events.jsonl",
    "config": "config.yaml",
}


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _schema_version(path: Path) -> int | None:
    raw = _load_data(path, None)
    if not isinstance(raw, dict):
        return None
    try:
        return int(raw.get("schema_version"))
    except (TypeError, ValueError):
        return None


def _needs_archive(base: Path) -> bool:
    if not base.exists():
        return False
    config_path = base / STATE_FILES["config"]
    if not config_path.exists():
        return True
    return _schema_version(config_path) != SCHEMA_VERSION


def _ensure_gitignored(project_dir: Path) -> None:
    """Add the state directory to the project's .gitignore if not already present."""
    gitignore = project_dir / ".gitignore"
    entry = f"{STATE_DIR}/"
    if gitignore.exists():
        content = gitignore.read_text(encoding="utf-8")
        existing = {line.strip() for line in content.splitlines()}
        if entry in existing or STATE_DIR in existing:
            return
        if content and not content.endswith("\n"):
            content += "\n"
        content += f"\n# Planning copilot runtime data\n{entry}\n"
        gitignore.write_text(content, encoding="utf-8")
    else:
        gitignore.write_text(f"# Planning copilot runtime data\n{entry}\n", encoding="utf-8")


def ensure_state_root(project_dir: Path) -> Path:
    """Create (or migrate) the runtime state directory under ``project_dir``.

    A state directory written by an incompatible schema is renamed aside
    rather than rewritten in place.
    """
    state_root = project_dir / STATE_DIR
    if _needs_archive(state_root):
        state_root.rename(project_dir / f"{STATE_DIR}_legacy_{_utc_stamp()}")

    state_root.mkdir(parents=True, exist_ok=True)
    _ensure_gitignored(project_dir)

    for file_name in STATE_FILES.values():
        target = state_root / file_name
        if file_name.endswith(".yaml") and not target.exists():
            target.write_text("version: 1\n", encoding="utf-8")
        if file_name.endswith(".jsonl") and not target.exists():
            target.touch()

    config_repo = FileConfigRepository(state_root / "config.yaml", state_root / "config.lock")
    config = config_repo.load()
    config.pop("version", None)
    config["schema_version"] = SCHEMA_VERSION
    config.setdefault(
        "gateway",
        {
            "provider": "openai",
            "model": "gpt-4o",
            "temperature": 0.7,
            "max_tokens": 4096,
            "billing_markup": 5.0,
            "billing_increment": 0.25,
        },
    )
    config_repo.save(config)

    return state_root
