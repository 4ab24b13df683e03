from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import RecordingHandler, make_api
from instagrap.exporters import ResultsExporter
from instagrap.state import StateManager


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler({
        ("POST", "/remote-scrape"): httpx.Response(200, json={"status": "queued", "operation": "op1", "exec_id": "e1"}),
        ("GET", "/criteria"): httpx.Response(500, text="classifier down"),
    })


@pytest.fixture
def client(manager: StateManager, handler: RecordingHandler, tmp_path: Path) -> TestClient:
    import main as main_module

    app = main_module.create_app(
        manager=manager,
        api=make_api(handler),
        exporter=ResultsExporter(target_dir=tmp_path / "dl", opener=lambda _path: None),
    )
    with TestClient(app) as test_client:
        yield test_client


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"ok": True}


def test_create_and_list_todos(client: TestClient) -> None:
    resp = client.post("/commands/create_todo", json={"target_account": "alice", "target_count": 50})
    assert resp.status_code == 200
    assert resp.json() is None

    todos = client.post("/commands/get_todos").json()["todos"]
    assert [(t["target_account"], t["status"]) for t in todos] == [("alice", "pending")]


def test_create_todo_validates_bounds(client: TestClient) -> None:
    resp = client.post("/commands/create_todo", json={"target_account": "alice", "target_count": 0})
    assert resp.status_code == 422


def test_remote_scrape_round_trip(client: TestClient) -> None:
    resp = client.post("/commands/proxy_remote_scrape", json={"target": "alice", "target_yes": 10})
    assert resp.json()["status"] == "queued"

    ops = client.post("/commands/get_persistent_operations").json()["operations"]
    assert [(o["operation_id"], o["status"], o["exec_id"]) for o in ops] == [("op1", "running", "e1")]


def test_errors_reach_the_ui_as_strings(client: TestClient) -> None:
    resp = client.post("/commands/get_classification_criteria")
    assert resp.status_code == 400
    assert resp.json() == {"detail": "HTTP error 500: classifier down"}

    resp = client.post("/commands/set_active_criteria", json={"id": "missing"})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Criteria preset not found"}

    resp = client.post("/commands/proxy_register_state", json={"gcs_uri": "http://nope"})
    assert resp.json() == {"detail": "Invalid GCS URI: must start with gs://"}


def test_preset_commands(client: TestClient) -> None:
    preset_id = client.post("/commands/create_criteria_preset", json={"name": "A", "criteria": "a"}).json()
    client.post("/commands/rename_criteria_preset", json={"id": preset_id, "name": "B"})
    client.post("/commands/set_active_criteria", json={"id": preset_id})

    saved = client.post("/commands/get_saved_criteria").json()
    assert saved["active_id"] == preset_id
    assert saved["presets"][0]["name"] == "B"

    client.post("/commands/set_active_criteria", json={"id": None})
    assert client.post("/commands/get_saved_criteria").json()["active_id"] is None


def test_save_file_dialog(client: TestClient, tmp_path: Path) -> None:
    resp = client.post(
        "/commands/save_file_dialog",
        json={"content": "a,b", "filename": "out.csv", "file_type": "CSV Files"},
    )
    assert resp.status_code == 200
    assert Path(resp.json()["path"]).read_text(encoding="utf-8") == "a,b"
