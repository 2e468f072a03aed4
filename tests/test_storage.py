from __future__ import annotations

from pathlib import Path

import yaml

from planning_copilot.cli import parse_args
from planning_copilot.runtime.domain.models import Card, Project
from planning_copilot.runtime.storage.bootstrap import SCHEMA_VERSION, STATE_DIR, STATE_FILES, ensure_state_root
from planning_copilot.runtime.storage.container import Container
from planning_copilot.settings import PROVIDER_ENV_VAR, get_runtime_settings


def test_state_root_is_seeded_and_gitignored(tmp_path: Path) -> None:
    root = ensure_state_root(tmp_path)

    assert root == tmp_path / STATE_DIR
    for file_name in STATE_FILES.values():
        assert (root / file_name).exists(), file_name
    config = yaml.safe_load((root / "config.yaml").read_text(encoding="utf-8"))
    assert config["schema_version"] == SCHEMA_VERSION
    assert config["gateway"]["model"] == "gpt-4o"
    assert f"{STATE_DIR}/" in (tmp_path / ".gitignore").read_text(encoding="utf-8")


def test_existing_gitignore_is_appended_once(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("node_modules/", encoding="utf-8")

    ensure_state_root(tmp_path)
    ensure_state_root(tmp_path)

    content = (tmp_path / ".gitignore").read_text(encoding="utf-8")
    assert content.startswith("node_modules/\n")
    assert content.count(f"{STATE_DIR}/") == 1


def test_incompatible_state_is_archived(tmp_path: Path) -> None:
    old = tmp_path / STATE_DIR
    old.mkdir()
    (old / "config.yaml").write_text("schema_version: 0\n", encoding="utf-8")
    (old / "projects.yaml").write_text("projects: []\n", encoding="utf-8")

    ensure_state_root(tmp_path)

    archived = [p for p in tmp_path.iterdir() if p.name.startswith(f"{STATE_DIR}_legacy_")]
    assert len(archived) == 1
    assert (archived[0] / "projects.yaml").exists()
    assert (tmp_path / STATE_DIR / "config.yaml").exists()


def test_config_edits_survive_restart(tmp_path: Path) -> None:
    container = Container(tmp_path)
    config = container.config.load()
    config["gateway"]["model"] = "gpt-4o-mini"
    container.config.save(config)

    reopened = Container(tmp_path)

    assert reopened.config.load()["gateway"]["model"] == "gpt-4o-mini"


def test_repositories_persist_across_containers(tmp_path: Path) -> None:
    first = Container(tmp_path)
    project = first.projects.upsert(Project(name="Iced Tea"))
    card = first.cards.insert(Card(board_id="board-1", lane_id="lane-a", title="One"))
    second_card = first.cards.insert(Card(board_id="board-1", lane_id="lane-a", title="Two"))

    second = Container(tmp_path)

    assert second.projects.get(project.id).name == "Iced Tea"
    assert [c.position for c in second.cards.for_board("board-1")] == [0, 1]
    moved, previous_lane = second.cards.move(card.id, "lane-b")
    assert (moved.lane_id, moved.position, previous_lane) == ("lane-b", 0, "lane-a")
    assert second.cards.get(second_card.id).lane_id == "lane-a"


def test_settings_normalize_invalid_values() -> None:
    settings = get_runtime_settings(
        config={
            "gateway": {"provider": "carrier-pigeon", "max_tokens": -5, "billing_increment": 0, "temperature": "warm"},
            "token_budgets": {"summary": {"style_guide": 120, "bogus": 9, "card_context": 0}, "tiny": {"style_guide": 1}},
        },
        env={},
    )

    assert settings.gateway.provider == "openai"
    assert settings.gateway.max_tokens == 4096
    assert settings.gateway.billing_increment == 0.25
    assert settings.gateway.temperature == 0.7
    assert settings.token_budgets == {"summary": {"style_guide": 120}}


def test_provider_env_override() -> None:
    settings = get_runtime_settings(
        config={"gateway": {"provider": "openai", "base_url": " http://localhost:11434/v1 "}},
        env={PROVIDER_ENV_VAR: "Scripted"},
    )

    assert settings.gateway.provider == "scripted"
    assert settings.gateway.base_url == "http://localhost:11434/v1"


def test_cli_parses_serve_and_init() -> None:
    serve = parse_args(["--log-level", "debug", "serve", "--port", "9000", "--provider", "scripted", "--no-cors"])
    assert (serve.command, serve.port, serve.host, serve.provider, serve.no_cors) == ("serve", 9000, "127.0.0.1", "scripted", True)
    assert serve.log_level == "debug"

    init = parse_args(["init", "--project-dir", "/tmp/project"])
    assert init.command == "init"
    assert init.project_dir == Path("/tmp/project")
