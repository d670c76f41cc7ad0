"""Tests for session endpoints and session-scoped task listing."""

from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from taskboard.config import settings
from taskboard.models import Session as SessionModel
from taskboard.models import Task

from conftest import make_task


class TestListSessions:
    def test_list_sessions_empty(self, client: TestClient):
        response = client.get("/api/v1/sessions")
        assert response.status_code == 200
        assert response.json() == {"sessions": []}

    def test_session_created_on_first_task(self, client: TestClient):
        response = client.post(
            "/api/v1/sessions/alpha/tasks", json={"task_number": 1, "subject": "First"}
        )
        assert response.status_code == 201

        sessions = client.get("/api/v1/sessions").json()["sessions"]
        assert len(sessions) == 1
        assert sessions[0]["session_key"] == "alpha"
        assert sessions[0]["name"] == "Session alpha"

    def test_most_recently_active_first(self, client: TestClient, session: Session):
        make_task(session, session_key="older")
        make_task(session, session_key="newer")
        # Touching "older" again moves it to the front
        make_task(session, session_key="older", task_number=2)

        sessions = client.get("/api/v1/sessions").json()["sessions"]
        assert [s["session_key"] for s in sessions] == ["older", "newer"]


class TestUpdateSession:
    def test_rename_session(self, client: TestClient, task: Task):
        response = client.patch(
            "/api/v1/sessions/s1", json={"name": "Docs sprint", "project_path": "/work/docs"}
        )
        assert response.status_code == 200
        data = response.json()["session"]
        assert data["name"] == "Docs sprint"
        assert data["project_path"] == "/work/docs"

    def test_partial_update_keeps_other_fields(self, client: TestClient, task: Task):
        client.patch("/api/v1/sessions/s1", json={"project_path": "/work/docs"})
        response = client.patch("/api/v1/sessions/s1", json={"name": "Renamed"})
        data = response.json()["session"]
        assert data["name"] == "Renamed"
        assert data["project_path"] == "/work/docs"

    def test_update_unknown_session(self, client: TestClient):
        response = client.patch("/api/v1/sessions/missing", json={"name": "x"})
        assert response.status_code == 404
        assert response.json() == {"detail": "Session not found", "error": "not_found"}

    def test_overlong_session_key_is_400(self, client: TestClient):
        response = client.patch(f"/api/v1/sessions/{'k' * 256}", json={"name": "x"})
        assert response.status_code == 400
        assert response.json()["fields"][0]["field"] == "path.session_key"


class TestListSessionTasks:
    def test_ordered_by_task_number(self, client: TestClient, session: Session):
        for number in (3, 1, 2):
            make_task(session, task_number=number)

        response = client.get("/api/v1/sessions/s1/tasks")
        assert response.status_code == 200
        data = response.json()
        assert data["sessionKey"] == "s1"
        assert [t["task_number"] for t in data["tasks"]] == [1, 2, 3]

    def test_only_lists_own_session(self, client: TestClient, session: Session):
        make_task(session, session_key="s1")
        make_task(session, session_key="s2")

        tasks = client.get("/api/v1/sessions/s2/tasks").json()["tasks"]
        assert len(tasks) == 1

    def test_unknown_session_is_empty(self, client: TestClient):
        response = client.get("/api/v1/sessions/nobody/tasks")
        assert response.status_code == 200
        assert response.json() == {"sessionKey": "nobody", "tasks": []}

    def test_unknown_session_strict(self, client: TestClient):
        with patch.object(settings, "strict_session_lookup", True):
            response = client.get("/api/v1/sessions/nobody/tasks")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_listing_does_not_create_session(self, client: TestClient, session: Session):
        client.get("/api/v1/sessions/nobody/tasks")
        assert session.query(SessionModel).count() == 0

    def test_overlong_session_key_is_400(self, client: TestClient):
        response = client.get(f"/api/v1/sessions/{'k' * 256}/tasks")
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_session_key_at_column_length(self, client: TestClient):
        response = client.get(f"/api/v1/sessions/{'k' * 255}/tasks")
        assert response.status_code == 200
