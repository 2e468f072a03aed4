from __future__ import annotations

import json
from pathlib import Path

from fastapi.testclient import TestClient

from planning_copilot.runtime.gateway.clients import ScriptedCompletionClient
from planning_copilot.server.api import create_app

ARCHITECT_CARD_REPLY = """Noted.
[ACTION:CREATE_CARD]
title: Pick the database
agent: architect-agent
[/ACTION]"""


def _client(tmp_path: Path, *replies: str) -> tuple[TestClient, ScriptedCompletionClient]:
    completion = ScriptedCompletionClient(replies)
    app = create_app(project_dir=tmp_path, completion_client=completion)
    return TestClient(app), completion


def _create_project(client: TestClient, name: str = "Iced Tea") -> dict:
    response = client.post("/api/projects", json={"name": name, "description": "Tea subscriptions"})
    assert response.status_code == 200
    return response.json()


def test_health_and_root(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    with client:
        assert client.get("/healthz").json()["status"] == "ok"
        ready = client.get("/readyz").json()
        assert ready["status"] == "ready"
        assert ready["runtimes"] == 1
        root = client.get("/").json()
        assert root["provider"] == "scripted"
        assert root["project"] == str(tmp_path.resolve())
    assert (tmp_path / ".planning_copilot" / "config.yaml").exists()


def test_project_board_has_default_lanes(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    with client:
        created = _create_project(client)
        project_id = created["project"]["id"]

        board = client.get(f"/api/projects/{project_id}/board").json()
        assert [lane["lane_number"] for lane in board["board"]["lanes"]] == list(range(0, 11))
        assert board["cards"] == []

        listed = client.get("/api/projects").json()["projects"]
        assert [p["id"] for p in listed] == [project_id]
        assert client.get("/api/projects", headers={"X-Tenant-Id": "other"}).json()["projects"] == []

        assert client.get("/api/projects/proj-missing").status_code == 404
        assert client.post("/api/projects", json={"name": ""}).status_code == 422


def test_chat_creates_cards_and_conversation(tmp_path: Path) -> None:
    client, completion = _client(tmp_path, ARCHITECT_CARD_REPLY)
    with client:
        project_id = _create_project(client)["project"]["id"]

        response = client.post(
            "/api/copilot/chat",
            json={"message": "What database should we use?", "project_id": project_id},
            headers={"X-Tenant-Id": "acme"},
        )

        assert response.status_code == 200
        payload = response.json()
        assert payload["message"]["content"] == "Noted."
        assert [c["title"] for c in payload["actions"]["cards_created"]] == ["Pick the database"]
        assert payload["current_phase"] == "welcome"
        assert len(completion.calls) == 1

        conversation_id = payload["conversation_id"]
        detail = client.get(f"/api/copilot/conversations/{conversation_id}", headers={"X-Tenant-Id": "acme"})
        assert detail.status_code == 200
        assert [m["role"] for m in detail.json()["messages"]] == ["user", "assistant"]
        assert client.get(f"/api/copilot/conversations/{conversation_id}").status_code == 404

        listed = client.get("/api/copilot/conversations", headers={"X-Tenant-Id": "acme"}).json()
        assert [c["id"] for c in listed["conversations"]] == [conversation_id]
        closed = client.post(f"/api/copilot/conversations/{conversation_id}/close", headers={"X-Tenant-Id": "acme"})
        assert closed.json()["conversation"]["status"] == "closed"

        usage = client.get(f"/api/projects/{project_id}/usage").json()
        assert len(usage["usage"]) == 1
        assert usage["totals"]["price"] >= usage["totals"]["cost"]


def test_chat_validation_and_provider_failure(tmp_path: Path) -> None:
    client, _ = _client(tmp_path, "  ")
    with client:
        assert client.post("/api/copilot/chat", json={"message": ""}).status_code == 422
        assert client.post("/api/copilot/chat", json={"message": "hi", "phase": "daydreaming"}).status_code == 422
        assert client.post("/api/copilot/chat", json={"message": "hi", "conversation_id": "conv-missing"}).status_code == 404
        assert client.post("/api/copilot/chat", json={"message": "hi"}).status_code == 502


def test_document_review_flow(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    with client:
        project_id = _create_project(client)["project"]["id"]
        phase = client.post(
            "/api/copilot/phase",
            json={"project_id": project_id, "phase": "vision", "response": "Cold brew for offices"},
        )
        assert phase.json()["project"]["phase"] == "vision"
        assert client.get(f"/api/copilot/phase/{project_id}").json()["responses"] == {"vision": "Cold brew for offices"}

        generated = client.post("/api/copilot/generate", json={"project_id": project_id, "document_type": "blueprint"})
        assert generated.status_code == 200
        body = generated.json()
        assert body["success"] is True
        assert body["card_created"] is True
        assert body["review_card"]["status"] == "Ready"
        assert "Cold brew for offices" in body["document"]["content"]

        premature = client.post("/api/copilot/approve-review", json={"project_id": project_id, "document_type": "prd"})
        assert premature.status_code == 404

        approved = client.post(
            "/api/copilot/approve-review",
            json={"project_id": project_id, "document_type": "blueprint"},
            headers={"X-Tenant-Id": "reviewer"},
        )
        assert approved.status_code == 200
        assert approved.json()["moved_to_lane"] == "Test & QA"

        again = client.post("/api/copilot/approve-review", json={"project_id": project_id, "document_type": "blueprint"})
        assert again.status_code == 400

        card_id = approved.json()["card"]["id"]
        history = client.get(f"/api/cards/{card_id}/history").json()["history"]
        assert history[-1]["performed_by"] == "reviewer"

        todos = client.get(f"/api/projects/{project_id}/todos").json()["todos"]
        assert [t["completed"] for t in todos] == [True]

        bad_type = client.post("/api/copilot/generate", json={"project_id": project_id, "document_type": "roadmap"})
        assert bad_type.status_code == 422


def test_generate_all_and_reject(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    with client:
        project_id = _create_project(client)["project"]["id"]

        outcome = client.post("/api/copilot/generate-all", json={"project_id": project_id}).json()
        assert outcome["phase"] == "blueprint-review"
        assert len(outcome["results"]) == 4

        rejected = client.post(
            "/api/copilot/reject-review",
            json={"project_id": project_id, "document_type": "mvp", "reason": "Too broad"},
        )
        assert rejected.status_code == 200
        assert rejected.json()["card"]["metadata"]["review_state"] == "pending"

        documents = client.get(f"/api/projects/{project_id}/documents").json()["documents"]
        assert sorted(d["doc_type"] for d in documents) == ["blueprint", "mvp", "playbook", "prd"]


def test_agent_listing_and_routing(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    with client:
        agents = client.get("/api/agents").json()["agents"]
        assert "architect" in {a["name"] for a in agents}

        lane = client.get("/api/agents/lanes/8").json()
        assert {a["name"] for a in lane["agents"]} == {"ceo_copilot", "devops"}

        routing = client.get("/api/agents/routing").json()
        assert routing["baseline"] == "ceo-copilot"
        assert routing["routes"]["qa-agent"]["default_lane"] == 7


def test_execute_enforces_card_lane(tmp_path: Path) -> None:
    client, completion = _client(tmp_path, ARCHITECT_CARD_REPLY)
    with client:
        project_id = _create_project(client)["project"]["id"]
        chat = client.post("/api/copilot/chat", json={"message": "Plan the data layer", "project_id": project_id}).json()
        card_id = chat["actions"]["cards_created"][0]["id"]

        denied = client.post(
            "/api/agents/qa/execute",
            json={"project_id": project_id, "card_id": card_id, "message": "Write tests"},
        )
        assert denied.status_code == 403

        completion.queue("Use Postgres with a read replica.")
        allowed = client.post(
            "/api/agents/architect/execute",
            json={"project_id": project_id, "card_id": card_id, "message": "Choose the database", "complexity": "simple"},
        )
        assert allowed.status_code == 200
        assert allowed.json()["result"]["content"] == "Use Postgres with a read replica."

        task_log = client.get(f"/api/projects/{project_id}/agents/architect/documents/Task")
        assert task_log.status_code == 200
        assert "Pick the database" in task_log.json()["document"]["content"]

        assert client.post(
            "/api/agents/nobody/execute", json={"project_id": project_id, "message": "hi"}
        ).status_code == 404
        assert client.post(
            "/api/agents/architect/execute", json={"project_id": project_id, "card_id": "card-missing", "message": "hi"}
        ).status_code == 404


def test_stream_returns_ndjson(tmp_path: Path) -> None:
    client, completion = _client(tmp_path)
    with client:
        project_id = _create_project(client)["project"]["id"]
        completion.queue("Runbook: restart the worker, then check the queue.")

        response = client.post("/api/agents/docs/stream", json={"project_id": project_id, "message": "Write a runbook"})

        assert response.status_code == 200
        lines = [json.loads(line) for line in response.text.splitlines() if line]
        assert "".join(line.get("content", "") for line in lines[:-1]) == "Runbook: restart the worker, then check the queue."
        assert lines[-1]["done"] is True
        assert lines[-1]["usage"]["provider"] == "scripted"


def test_style_guide_and_agent_documents(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    with client:
        project_id = _create_project(client)["project"]["id"]
        assert client.get(f"/api/projects/{project_id}/style-guide").json() == {"style_guide": None}

        updated = client.put(
            f"/api/projects/{project_id}/style-guide",
            json={"values": {"indent_size": 4, "frameworks": ["fastapi"]}},
        ).json()["style_guide"]
        assert updated["indent_size"] == 4
        assert updated["variable_case"] == "camelCase"

        saved = client.put(
            f"/api/projects/{project_id}/agents/planner/documents/Plan",
            json={"content": "Ship checkout first."},
        )
        assert saved.status_code == 200
        assert saved.json()["document"]["version"] == 1
        assert client.put(
            f"/api/projects/{project_id}/agents/nobody/documents/Plan", json={"content": "x"}
        ).status_code == 404
        assert client.get(f"/api/projects/{project_id}/agents/planner/documents/Todo").status_code == 404


def test_agent_todo_checklist(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    with client:
        project_id = _create_project(client)["project"]["id"]
        base = f"/api/projects/{project_id}/agents/planner/todos"

        added = client.post(base, json={"title": "Draft launch plan", "priority": "high"})
        assert added.status_code == 200
        item_id = added.json()["todo"]["id"]
        assert "Draft launch plan" in added.json()["document"]["content"]

        done = client.patch(f"{base}/{item_id}", json={"status": "completed"}).json()
        assert [(t["id"], t["status"]) for t in done["todos"]] == [(item_id, "completed")]
        assert done["document"]["version"] == 2

        assert client.patch(f"{base}/missing", json={"status": "completed"}).status_code == 404
        assert client.patch(f"{base}/{item_id}", json={"status": "finished"}).status_code == 422
        assert client.post(f"/api/projects/{project_id}/agents/nobody/todos", json={"title": "x"}).status_code == 404


def test_project_events_are_filtered(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    with client:
        project_id = _create_project(client)["project"]["id"]
        other_id = _create_project(client, "Lemonade")["project"]["id"]
        client.post("/api/copilot/generate", json={"project_id": project_id, "document_type": "prd"})

        events = client.get(f"/api/projects/{project_id}/events").json()["events"]
        assert {e["project_id"] for e in events} == {project_id}
        assert events[0]["type"] == "project.created"

        documents = client.get(f"/api/projects/{project_id}/events", params={"channel": "documents"}).json()["events"]
        assert documents and {e["channel"] for e in documents} == {"documents"}
        assert client.get(f"/api/projects/{other_id}/events", params={"channel": "documents"}).json()["events"] == []
        assert client.get(f"/api/projects/{project_id}/events", params={"limit": 0}).status_code == 422
