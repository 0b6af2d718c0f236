from fastapi.testclient import TestClient

from sqlalchemy.exc import OperationalError

from kanban.config import Settings
from kanban.main import create_app
from kanban.models import Board


AUTH = {"Authorization": "Bearer alice"}


def make_board(client, **body):
    body.setdefault("name", "Sprint")
    res = client.post("/api/boards", json=body, headers=AUTH)
    assert res.status_code == 201
    return res.json()


def test_requires_bearer_token(client):
    assert client.get("/api/boards").status_code == 401
    res = client.get("/api/boards", headers={"Authorization": "Token alice"})
    assert res.status_code == 401
    assert res.json()["code"] == "unauthorized"
    assert res.headers["WWW-Authenticate"] == "Bearer"


def test_unauthorized_before_body_validation(client):
    assert client.post("/api/boards", json={}).status_code == 401


def test_configured_tokens():
    settings = Settings(database_url="memory://", auth_tokens={"s3cret": "alice"})
    with TestClient(create_app(settings)) as client:
        assert client.get("/api/boards", headers=AUTH).status_code == 401
        res = client.post("/api/boards", json={"name": "B"}, headers={"Authorization": "Bearer s3cret"})
        assert res.json()["owner"] == "alice"


def test_list_boards(client):
    assert client.get("/api/boards", headers=AUTH).json() == []
    make_board(client, name="One")
    make_board(client, name="Two")
    res = client.get("/api/boards", headers={"Authorization": "Bearer bob"})
    assert [b["name"] for b in res.json()] == ["One", "Two"]


def test_create_board_missing_name_is_400(client):
    res = client.post("/api/boards", json={"columns": []}, headers=AUTH)
    assert res.status_code == 400
    body = res.json()
    assert body["code"] == "validation_error"
    assert body["requestId"]


def test_error_envelope_echoes_request_id(client):
    res = client.get("/api/boards/nope", headers={**AUTH, "X-Request-ID": "req-1"})
    assert res.status_code == 404
    assert res.json() == {
        "code": "board_not_found",
        "message": "Board not found",
        "details": None,
        "requestId": "req-1",
    }


def test_board_lifecycle_scenario(client):
    board = make_board(client)
    assert board["columns"] == []
    assert board["owner"] == "alice"

    res = client.put(
        f"/api/boards/{board['id']}",
        json={"newColumns": [{"name": "Todo", "tasks": []}]},
        headers=AUTH,
    )
    assert res.status_code == 200
    columns = res.json()["columns"]
    assert [c["name"] for c in columns] == ["Todo"]
    column_id = columns[0]["id"]

    tasks_url = f"/api/boards/{board['id']}/columns/{column_id}/tasks"
    res = client.post(
        tasks_url,
        json={"title": "Write plan", "description": "...", "status": "todo"},
        headers=AUTH,
    )
    assert res.status_code == 201
    task = res.json()
    assert task["subtasks"] == []

    res = client.put(f"{tasks_url}/{task['id']}", json={"status": "done"}, headers=AUTH)
    assert res.status_code == 200
    assert res.json() == {**task, "status": "done"}

    res = client.delete(f"{tasks_url}/{task['id']}", headers=AUTH)
    assert res.json() == {"message": "Task deleted"}
    board = client.get(f"/api/boards/{board['id']}", headers=AUTH).json()
    assert board["columns"][0]["tasks"] == []


def test_update_board_add_and_remove_columns(client):
    board = make_board(client, columns=[{"name": "Todo"}, {"name": "Done"}])
    todo, done = board["columns"]
    res = client.put(
        f"/api/boards/{board['id']}",
        json={"name": "", "newColumns": [{"name": "X"}], "columnsToRemove": [todo["id"], "unknown"]},
        headers=AUTH,
    )
    body = res.json()
    assert body["name"] == "Sprint"
    assert [c["name"] for c in body["columns"]] == ["Done", "X"]
    assert body["columns"][0]["id"] == done["id"]


def test_delete_board(client):
    board = make_board(client)
    url = f"/api/boards/{board['id']}"
    assert client.delete(url, headers=AUTH).json() == {"id": board["id"]}
    assert client.get(url, headers=AUTH).status_code == 404
    assert client.delete(url, headers=AUTH).status_code == 404


def test_task_not_found_levels(client):
    board = make_board(client, columns=[{"name": "Todo"}])
    column_id = board["columns"][0]["id"]
    res = client.put(f"/api/boards/{board['id']}/columns/nope/tasks/t", json={}, headers=AUTH)
    assert (res.status_code, res.json()["code"]) == (404, "column_not_found")
    res = client.put(f"/api/boards/{board['id']}/columns/{column_id}/tasks/t", json={}, headers=AUTH)
    assert (res.status_code, res.json()["code"]) == (404, "task_not_found")
    res = client.delete(f"/api/boards/nope/columns/{column_id}/tasks/t", headers=AUTH)
    assert (res.status_code, res.json()["code"]) == (404, "board_not_found")


def test_invalid_status_is_400(client):
    board = make_board(client, columns=[{"name": "Todo"}])
    url = f"/api/boards/{board['id']}/columns/{board['columns'][0]['id']}/tasks"
    res = client.post(url, json={"title": "x", "status": "blocked"}, headers=AUTH)
    assert res.status_code == 400
    assert res.json()["details"] == {"status": "blocked"}


def test_edit_task_replace_then_remove_subtasks(client):
    board = make_board(client, columns=[{"name": "Todo"}])
    url = f"/api/boards/{board['id']}/columns/{board['columns'][0]['id']}/tasks"
    task = client.post(
        url, json={"title": "t", "status": "todo", "subtasks": [{"title": "a"}, {"title": "b"}]}, headers=AUTH
    ).json()
    drop = task["subtasks"][1]["id"]
    res = client.put(f"{url}/{task['id']}", json={"subtasksToRemove": [drop]}, headers=AUTH)
    assert [s["title"] for s in res.json()["subtasks"]] == ["a"]
    res = client.put(
        f"{url}/{task['id']}", json={"subtasks": [{"title": "c", "isCompleted": True}]}, headers=AUTH
    )
    assert [(s["title"], s["isCompleted"]) for s in res.json()["subtasks"]] == [("c", True)]


def test_edit_subtask_positional_merge(client):
    board = make_board(client, columns=[{"name": "Todo"}])
    url = f"/api/boards/{board['id']}/columns/{board['columns'][0]['id']}/tasks"
    task = client.post(
        url, json={"title": "t", "status": "todo", "subtasks": [{"title": "one"}, {"title": "two"}]}, headers=AUTH
    ).json()
    res = client.put(
        f"{url}/{task['id']}/subtask",
        json={"status": "doing", "subtasks": [{"title": "a", "isCompleted": True}]},
        headers=AUTH,
    )
    assert res.status_code == 200
    edited = res.json()
    assert edited["status"] == "doing"
    assert edited["subtasks"][0] == {"id": task["subtasks"][0]["id"], "title": "a", "isCompleted": True}
    assert edited["subtasks"][1] == task["subtasks"][1]


def test_etag_and_if_match(client):
    board = make_board(client)
    url = f"/api/boards/{board['id']}"
    etag = client.get(url, headers=AUTH).headers["ETag"]
    assert etag == '"1"'
    res = client.put(url, json={"name": "A"}, headers={**AUTH, "If-Match": etag})
    assert res.json()["version"] == 2
    res = client.put(url, json={"name": "B"}, headers={**AUTH, "If-Match": etag})
    assert res.status_code == 412
    res = client.put(url, json={"name": "B"}, headers={**AUTH, "If-Match": "garbage"})
    assert res.status_code == 412
    assert client.get(url, headers=AUTH).json()["name"] == "A"


def test_edit_subtask_not_found_levels(client):
    board = make_board(client, columns=[{"name": "Todo"}])
    column_id = board["columns"][0]["id"]
    cases = [
        (f"/api/boards/nope/columns/{column_id}/tasks/t/subtask", "board_not_found"),
        (f"/api/boards/{board['id']}/columns/nope/tasks/t/subtask", "column_not_found"),
        (f"/api/boards/{board['id']}/columns/{column_id}/tasks/t/subtask", "task_not_found"),
    ]
    for url, code in cases:
        res = client.put(url, json={"status": "done"}, headers=AUTH)
        assert (res.status_code, res.json()["code"]) == (404, code)


def test_if_match_star_skips_version_check(client):
    board = make_board(client)
    url = f"/api/boards/{board['id']}"
    client.put(url, json={"name": "A"}, headers=AUTH)
    res = client.put(url, json={"name": "B"}, headers={**AUTH, "If-Match": "*"})
    assert res.status_code == 200
    assert res.json()["name"] == "B"


def test_starlette_errors_use_envelope(client):
    res = client.get("/api/nothing-here", headers={**AUTH, "X-Request-ID": "req-2"})
    assert res.status_code == 404
    assert res.json() == {"code": "not_found", "message": "Not Found", "details": None, "requestId": "req-2"}

    res = client.delete("/api/boards", headers=AUTH)
    assert res.status_code == 405
    assert res.json()["code"] == "method_not_allowed"
    assert "GET" in res.headers["Allow"]

    res = client.post(
        "/api/boards",
        content=b'{"name": "\xff"}',
        headers={**AUTH, "Content-Type": "application/json"},
    )
    assert res.status_code == 400
    assert res.json()["code"] == "bad_request"


def test_store_failure_is_500(monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    with TestClient(create_app(Settings(database_url="sqlite://"))) as client:
        board = make_board(client)
        monkeypatch.setattr(client.app.state.repository.store, "SessionLocal", broken)
        res = client.get(f"/api/boards/{board['id']}", headers=AUTH)
        assert res.status_code == 500
        body = res.json()
        assert body["code"] == "store_failure"
        assert body["message"] == "Document store failure"
        assert "disk I/O error" not in res.text


def test_concurrent_writer_gets_409_with_optimistic_locking(monkeypatch):
    settings = Settings(database_url="memory://", optimistic_locking=True)
    with TestClient(create_app(settings)) as client:
        board = make_board(client)
        store = client.app.state.repository.store
        snapshot = store.get_board(board["id"]).to_document()
        # Both writers load the same version before either saves.
        monkeypatch.setattr(store, "get_board", lambda _: Board.from_document(snapshot))
        url = f"/api/boards/{board['id']}"
        assert client.put(url, json={"name": "First"}, headers=AUTH).status_code == 200
        res = client.put(url, json={"name": "Second"}, headers=AUTH)
        assert res.status_code == 409
        assert res.json()["code"] == "conflict"
        monkeypatch.undo()
        assert client.get(url, headers=AUTH).json()["name"] == "First"


def test_startup_configures_logging(monkeypatch):
    levels = []
    monkeypatch.setattr("kanban.main.configure_logging", levels.append)
    with TestClient(create_app(Settings(database_url="memory://", log_level="DEBUG"))):
        pass
    assert levels == ["DEBUG"]
