"""Tests for the async API client."""

import json
from uuid import uuid4

import httpx
import pytest
from fastapi.testclient import TestClient

from taskboard.client.api import (
    TaskboardAPIError,
    TaskboardClient,
    TaskboardConnectionError,
    TaskboardError,
    TaskboardResponseError,
)
from taskboard.main import app
from taskboard.models import TaskStatus
from taskboard.schemas import TaskCreate, TaskUpdate

from conftest import session_json, task_json


def mock_client(handler) -> TaskboardClient:
    return TaskboardClient(
        base_url="http://taskboard.test", transport=httpx.MockTransport(handler)
    )


class TestTaskboardClient:
    @pytest.mark.asyncio
    async def test_list_tasks(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v1/sessions/s1/tasks"
            return httpx.Response(
                200, json={"sessionKey": "s1", "tasks": [task_json(1), task_json(2)]}
            )

        async with mock_client(handler) as client:
            tasks = await client.list_tasks("s1")

        assert [t.task_number for t in tasks] == [1, 2]

    @pytest.mark.asyncio
    async def test_list_tasks_treats_404_as_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"detail": "Session not found", "error": "not_found"})

        async with mock_client(handler) as client:
            assert await client.list_tasks("missing") == []

    @pytest.mark.asyncio
    async def test_session_key_is_escaped(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.raw_path)
            return httpx.Response(200, json={"sessionKey": "a/b", "tasks": []})

        async with mock_client(handler) as client:
            await client.list_tasks("a/b")

        assert seen == [b"/api/v1/sessions/a%2Fb/tasks"]

    @pytest.mark.asyncio
    async def test_list_sessions(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"sessions": [session_json("s1"), session_json("s2")]})

        async with mock_client(handler) as client:
            sessions = await client.list_sessions()

        assert [s.session_key for s in sessions] == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_update_task_sends_only_set_fields(self):
        task_id = uuid4()
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PATCH"
            assert request.url.path == f"/api/v1/tasks/{task_id}"
            bodies.append(json.loads(request.content))
            return httpx.Response(
                200, json={"task": task_json(1, status="in_progress", task_id=task_id)}
            )

        async with mock_client(handler) as client:
            task = await client.update_task(task_id, TaskUpdate(status=TaskStatus.IN_PROGRESS))

        assert bodies == [{"status": "in_progress"}]
        assert task.status == TaskStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_error_response_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                409,
                json={
                    "detail": "Task with this task_number already exists for this session",
                    "error": "conflict",
                },
            )

        async with mock_client(handler) as client:
            with pytest.raises(TaskboardAPIError) as exc_info:
                await client.create_task("s1", TaskCreate(task_number=1, subject="Dup"))

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "conflict"
        assert "already exists" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_validation_error_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={
                    "error": "validation_error",
                    "message": "Request validation failed",
                    "fields": [],
                },
            )

        async with mock_client(handler) as client:
            with pytest.raises(TaskboardAPIError) as exc_info:
                await client.update_task(uuid4(), TaskUpdate(subject="x"))

        assert exc_info.value.detail == "Request validation failed"
        assert exc_info.value.code == "validation_error"

    @pytest.mark.asyncio
    async def test_plain_text_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad gateway")

        async with mock_client(handler) as client:
            with pytest.raises(TaskboardAPIError) as exc_info:
                await client.list_sessions()

        assert exc_info.value.status_code == 502
        assert exc_info.value.detail == "Bad gateway"

    @pytest.mark.asyncio
    async def test_transport_failure_raises_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(TaskboardConnectionError):
                await client.health()

    @pytest.mark.asyncio
    async def test_redirect_loop_raises_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(TaskboardConnectionError):
                await client.list_sessions()

    @pytest.mark.asyncio
    async def test_non_json_success_body_raises_response_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>captive portal</html>")

        async with mock_client(handler) as client:
            with pytest.raises(TaskboardResponseError) as exc_info:
                await client.list_tasks("s1")

        assert isinstance(exc_info.value, TaskboardError)

    @pytest.mark.asyncio
    async def test_wrong_shape_success_body_raises_response_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"sessions": [{"unexpected": True}]})

        async with mock_client(handler) as client:
            with pytest.raises(TaskboardResponseError):
                await client.list_sessions()

    @pytest.mark.asyncio
    async def test_upload_sends_raw_body(self):
        task_id = uuid4()

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["x-filename"] == "notes.txt"
            assert request.headers["content-type"] == "text/plain"
            assert request.content == b"hello"
            now = "2026-01-01T00:00:00Z"
            return httpx.Response(
                201,
                json={
                    "file": {
                        "id": str(uuid4()),
                        "task_id": str(task_id),
                        "filename": "notes.txt",
                        "content_type": "text/plain",
                        "size_bytes": 5,
                        "file_path": "/data/files/s1/1/notes.txt",
                        "created_at": now,
                    }
                },
            )

        async with mock_client(handler) as client:
            task_file = await client.upload_file(task_id, "notes.txt", b"hello", "text/plain")

        assert task_file.size_bytes == 5


class TestClientAgainstApp:
    """Drive the real application through ASGITransport."""

    @pytest.mark.asyncio
    async def test_task_lifecycle(self, client: TestClient):
        transport = httpx.ASGITransport(app=app)
        async with TaskboardClient(base_url="http://testserver", transport=transport) as api:
            created = await api.create_task(
                "s1", TaskCreate(task_number=1, subject="Write spec", priority=5)
            )
            assert created.status == TaskStatus.PENDING

            with pytest.raises(TaskboardAPIError) as exc_info:
                await api.create_task("s1", TaskCreate(task_number=1, subject="Again"))
            assert exc_info.value.status_code == 409

            uploaded = await api.upload_file(created.id, "notes.txt", b"draft")
            assert await api.download_file(created.id, uploaded.id) == b"draft"
            assert [f.filename for f in await api.list_files(created.id)] == ["notes.txt"]
            await api.delete_file(created.id, uploaded.id)

            moved = await api.update_task(created.id, TaskUpdate(status=TaskStatus.COMPLETED))
            assert moved.completed_at is not None

            await api.delete_task(created.id)
            assert await api.list_tasks("s1") == []

            health = await api.health()
            assert health.status == "healthy"
