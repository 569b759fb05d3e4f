"""
Tests for the Flask API: auth, CRUD routes, reposition, error mapping.
"""
import pytest

from boardsync.config import Config
from boardsync.server import create_app
from boardsync.store import KanbanStore

API_KEY = "s3cret"


@pytest.fixture
def store(db_path):
    return KanbanStore(db_path, seed_demo=True)


@pytest.fixture
def client(db_path, store):
    config = Config(db_path=db_path, api_secret=API_KEY).validate()
    app = create_app(config, store=store)
    app.testing = True
    return app.test_client()


def auth():
    return {"X-API-Key": API_KEY}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Auth
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_missing_key_is_401(client):
    r = client.delete("/api/tasks/t1")
    assert r.status_code == 401


def test_wrong_key_is_403(client):
    r = client.delete("/api/tasks/t1", headers={"X-API-Key": "nope"})
    assert r.status_code == 403


def test_no_secret_configured_is_503(db_path, store):
    app = create_app(Config(db_path=db_path).validate(), store=store)
    r = app.test_client().delete("/api/tasks/t1", headers=auth())
    assert r.status_code == 503


def test_reads_need_no_key(client):
    assert client.get("/api/boards/b1").status_code == 200
    assert client.get("/health").get_json()["status"] == "ok"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Routes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_get_board_seeds(client):
    data = client.get("/api/boards/b1").get_json()
    assert [c["id"] for c in data["columns"]] == ["todo", "doing", "done"]
    assert data["column_task_ids"]["todo"] == ["t1", "t2"]
    assert data["tasks"]["t3"]["title"] == "Drag & drop"


def test_create_task(client):
    client.get("/api/boards/b1")
    r = client.post("/api/boards/b1/tasks", headers=auth(), json={
        "id": "n1", "column_id": "done", "title": "X", "position": 100,
    })
    assert r.status_code == 201
    assert r.get_json()["priority"] == "medium"
    board = client.get("/api/boards/b1").get_json()
    assert board["column_task_ids"]["done"] == ["t4", "n1"]


def test_create_task_bad_body(client):
    client.get("/api/boards/b1")
    r = client.post("/api/boards/b1/tasks", headers=auth(), json={"title": "X"})
    assert r.status_code == 400
    assert "error" in r.get_json()


def test_create_task_bad_priority(client):
    client.get("/api/boards/b1")
    r = client.post("/api/boards/b1/tasks", headers=auth(), json={
        "id": "n1", "column_id": "done", "title": "X", "position": 0, "priority": "urgent",
    })
    assert r.status_code == 400


def test_create_task_unknown_column(client):
    client.get("/api/boards/b1")
    r = client.post("/api/boards/b1/tasks", headers=auth(), json={
        "id": "n1", "column_id": "archive", "title": "X", "position": 0,
    })
    assert r.status_code == 404


def test_update_task(client):
    client.get("/api/boards/b1")
    r = client.patch("/api/tasks/t1", headers=auth(), json={"title": "Renamed", "priority": "low"})
    assert r.status_code == 200
    assert r.get_json()["title"] == "Renamed"
    assert r.get_json()["priority"] == "low"


def test_update_unknown_task(client):
    r = client.patch("/api/tasks/ghost", headers=auth(), json={"title": "X"})
    assert r.status_code == 404


def test_delete_task(client):
    client.get("/api/boards/b1")
    assert client.delete("/api/tasks/t1", headers=auth()).status_code == 204
    assert client.delete("/api/tasks/t1", headers=auth()).status_code == 404


def test_reposition(client):
    client.get("/api/boards/b1")
    r = client.post("/api/boards/b1/reposition", headers=auth(), json={"entries": [
        {"id": "t2", "column_id": "todo", "position": 0},
        {"id": "t1", "column_id": "doing", "position": 0},
        {"id": "t3", "column_id": "doing", "position": 100},
    ]})
    assert r.status_code == 204
    board = client.get("/api/boards/b1").get_json()
    assert board["column_task_ids"]["todo"] == ["t2"]
    assert board["column_task_ids"]["doing"] == ["t1", "t3"]


def test_reposition_unknown_task(client):
    client.get("/api/boards/b1")
    r = client.post("/api/boards/b1/reposition", headers=auth(), json={"entries": [
        {"id": "ghost", "column_id": "todo", "position": 0},
    ]})
    assert r.status_code == 404


def test_reposition_requires_list(client):
    r = client.post("/api/boards/b1/reposition", headers=auth(), json={"entries": "t1"})
    assert r.status_code == 400


def test_reset(client):
    client.get("/api/boards/b1")
    client.delete("/api/tasks/t1", headers=auth())
    r = client.post("/api/boards/b1/reset", headers=auth(), json={"demo": True})
    assert r.status_code == 200
    assert r.get_json()["column_task_ids"]["todo"] == ["t1", "t2"]
