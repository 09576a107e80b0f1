import json
from datetime import date, datetime

from fastapi.testclient import TestClient

from todo_audit.main import app, create_app
from todo_audit.repositories import InMemoryRepository
from todo_audit.settings import Settings

BASE = "/api/v1/todos/"


def create_todo(client, title="Buy milk", due_date=None):
    res = client.post(BASE, json={"title": title, "due_date": due_date})
    assert res.status_code == 201
    return res.json()


def assert_todo_shape(todo: dict):
    for key in ["id", "title", "due_date", "done_flag", "created_at", "updated_at", "deleted_at"]:
        assert key in todo
    assert isinstance(todo["id"], int)
    assert isinstance(todo["title"], str)
    assert isinstance(todo["done_flag"], bool)
    # Timestamps are ISO8601 strings parseable by datetime.fromisoformat
    datetime.fromisoformat(todo["created_at"])
    datetime.fromisoformat(todo["updated_at"])
    if todo["due_date"] is not None:
        date.fromisoformat(todo["due_date"])


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] in ("memory", "sqlite")

    def test_module_level_app_uses_memory_backend(self):
        res = TestClient(app).get("/")
        assert res.json()["backend"] == "memory"


class TestTodoLifecycle:
    def test_create_then_list(self, client):
        todo = create_todo(client)
        assert_todo_shape(todo)
        assert todo["done_flag"] is False
        assert todo["due_date"] is None
        assert todo["deleted_at"] is None

        items = client.get(BASE).json()
        assert len(items) == 1
        assert items[0]["id"] == todo["id"]
        assert [e["action"] for e in items[0]["audit_logs"]] == ["CREATE"]
        assert items[0]["audit_logs"][0]["summary"] == 'Created "Buy milk"'

    def test_toggle(self, client):
        todo = create_todo(client)
        res = client.post(f"{BASE}{todo['id']}/toggle")
        assert res.status_code == 200
        assert res.json()["done_flag"] is True

        item = client.get(BASE).json()[0]
        assert [e["action"] for e in item["audit_logs"]] == ["TOGGLE", "CREATE"]
        assert item["audit_logs"][0]["summary"] == "Marked as done"

    def test_update_title(self, client):
        todo = create_todo(client, due_date="2030-06-01")
        res = client.patch(f"{BASE}{todo['id']}", json={"title": "Buy oat milk"})
        assert res.status_code == 200
        updated = res.json()
        assert updated["title"] == "Buy oat milk"
        assert updated["due_date"] == "2030-06-01"

        latest = client.get(BASE).json()[0]["audit_logs"][0]
        assert latest["action"] == "UPDATE"
        assert json.loads(latest["old_values"])["title"] == "Buy milk"
        assert json.loads(latest["new_values"])["title"] == "Buy oat milk"

    def test_update_clears_due_date_with_null(self, client):
        todo = create_todo(client, due_date="2030-06-01")
        res = client.patch(f"{BASE}{todo['id']}", json={"due_date": None})
        assert res.status_code == 200
        assert res.json()["due_date"] is None

    def test_delete(self, client):
        todo = create_todo(client)
        res = client.delete(f"{BASE}{todo['id']}")
        assert res.status_code == 200
        assert res.json() == {"success": True}
        assert client.get(BASE).json() == []

        res_toggle = client.post(f"{BASE}{todo['id']}/toggle")
        assert res_toggle.status_code == 404
        assert res_toggle.json()["detail"] == "Todo not found or has been deleted"

        res_patch = client.patch(f"{BASE}{todo['id']}", json={"title": "Nope"})
        assert res_patch.status_code == 404
        assert res_patch.json()["detail"] == "Todo not found or has been deleted"

    def test_history_survives_delete(self, client):
        todo = create_todo(client)
        client.post(f"{BASE}{todo['id']}/toggle")
        client.delete(f"{BASE}{todo['id']}")

        res = client.get(f"{BASE}{todo['id']}/audit-logs")
        assert res.status_code == 200
        logs = res.json()
        assert [e["action"] for e in logs] == ["DELETE", "TOGGLE", "CREATE"]
        assert logs[0]["summary"] == "Deleted"
        assert json.loads(logs[0]["old_values"])["done_flag"] is True

    def test_history_of_unknown_id_is_empty(self, client):
        res = client.get(f"{BASE}999999/audit-logs")
        assert res.status_code == 200
        assert res.json() == []

    def test_delete_missing_is_success(self, client):
        res = client.delete(f"{BASE}999999")
        assert res.status_code == 200
        assert res.json() == {"success": True}

    def test_toggle_missing(self, client):
        res = client.post(f"{BASE}999999/toggle")
        assert res.status_code == 404
        assert res.json()["detail"] == "Todo not found or has been deleted"


class TestValidationErrors:
    def test_create_validation_error_title_empty(self, client):
        res = client.post(BASE, json={"title": "  "})
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert body.get("message") == "Request validation failed"
        assert isinstance(body.get("detail"), list)

    def test_create_title_too_long(self, client):
        res = client.post(BASE, json={"title": "x" * 256})
        assert res.status_code == 422

    def test_create_title_at_limit(self, client):
        res = client.post(BASE, json={"title": "x" * 255})
        assert res.status_code == 201

    def test_create_empty_due_date_means_none(self, client):
        res = client.post(BASE, json={"title": "No date", "due_date": ""})
        assert res.status_code == 201
        assert res.json()["due_date"] is None

    def test_patch_rejects_null_title(self, client):
        todo = create_todo(client)
        res = client.patch(f"{BASE}{todo['id']}", json={"title": None})
        assert res.status_code == 422
        assert res.json().get("error") == "ValidationError"

        item = client.get(BASE).json()[0]
        assert item["title"] == "Buy milk"
        assert [e["action"] for e in item["audit_logs"]] == ["CREATE"]

    def test_patch_without_title_keeps_it(self, client):
        todo = create_todo(client)
        res = client.patch(f"{BASE}{todo['id']}", json={"due_date": "2030-06-01"})
        assert res.status_code == 200
        assert res.json()["title"] == "Buy milk"

    def test_patch_validation_error_bad_due_date(self, client):
        todo = create_todo(client, title="Due date bad")
        res = client.patch(f"{BASE}{todo['id']}", json={"due_date": "not-a-date"})
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert isinstance(body.get("detail"), list)
        # failed requests leave no audit trace
        item = client.get(BASE).json()[0]
        assert [e["action"] for e in item["audit_logs"]] == ["CREATE"]


def test_create_app_uses_injected_repository():
    repo = InMemoryRepository()
    client = TestClient(create_app(settings=Settings(), repository=repo))
    create_todo(client, title="Injected")
    assert [t["title"] for t in repo.get_all()] == ["Injected"]


def test_create_app_builds_sqlite_backend(tmp_path):
    settings = Settings(persistence_backend="sqlite", sqlite_db_path=str(tmp_path / "app.db"))
    client = TestClient(create_app(settings=settings))
    create_todo(client, title="On disk")
    assert client.get("/").json()["backend"] == "sqlite"
    assert (tmp_path / "app.db").exists()
