"""Async HTTP client for the Taskboard API.

Wraps ``httpx.AsyncClient`` and parses responses into the same pydantic
schemas the server uses. Every failure is raised as a TaskboardError:

  - TaskboardAPIError for non-2xx responses, carrying status and detail
  - TaskboardConnectionError for transport failures and timeouts
  - TaskboardResponseError for 2xx bodies that do not match the expected schema
"""

import logging
from typing import Any, TypeVar
from urllib.parse import quote
from uuid import UUID

import httpx
from pydantic import BaseModel

from taskboard.client.config import ClientSettings
from taskboard.schemas import (
    HealthStatus,
    Session,
    SessionEnvelope,
    SessionList,
    SessionUpdate,
    Task,
    TaskCreate,
    TaskEnvelope,
    TaskFile,
    TaskFileEnvelope,
    TaskFileList,
    TaskList,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class TaskboardError(Exception):
    """Base class for client-side failures."""


class TaskboardAPIError(TaskboardError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, detail: str, code: str | None = None):
        self.status_code = status_code
        self.detail = detail
        self.code = code
        super().__init__(f"HTTP {status_code}: {detail}")


class TaskboardConnectionError(TaskboardError):
    """The request never produced a response."""


class TaskboardResponseError(TaskboardError):
    """A successful response carried a body that could not be parsed."""


ModelT = TypeVar("ModelT", bound=BaseModel)


def _error_detail(response: httpx.Response) -> tuple[str, str | None]:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase, None
    if not isinstance(body, dict):
        return str(body), None
    detail = body.get("detail") or body.get("message") or response.reason_phrase
    return str(detail), body.get("error")


def _session_path(session_key: str) -> str:
    return f"{API_PREFIX}/sessions/{quote(session_key, safe='')}"


class TaskboardClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        settings: ClientSettings | None = None,
    ):
        settings = settings or ClientSettings()
        self.base_url = base_url or settings.api_base_url
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "TaskboardClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.debug(f"{method} {path} failed: {e!r}")
            raise TaskboardConnectionError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            detail, code = _error_detail(response)
            raise TaskboardAPIError(response.status_code, detail, code)
        return response

    async def _get_model(
        self, model: type[ModelT], method: str, path: str, **kwargs: Any
    ) -> ModelT:
        response = await self._request(method, path, **kwargs)
        try:
            return model.model_validate(response.json())
        except ValueError as e:
            # Covers both undecodable JSON and pydantic validation errors
            raise TaskboardResponseError(
                f"{method} {path} returned an unexpected {model.__name__} body: {e}"
            ) from e

    # =========================================================================
    # System
    # =========================================================================

    async def health(self) -> HealthStatus:
        return await self._get_model(HealthStatus, "GET", "/api/health")

    # =========================================================================
    # Sessions and tasks
    # =========================================================================

    async def list_sessions(self) -> list[Session]:
        body = await self._get_model(SessionList, "GET", f"{API_PREFIX}/sessions")
        return body.sessions

    async def update_session(self, session_key: str, changes: SessionUpdate) -> Session:
        body = await self._get_model(
            SessionEnvelope,
            "PATCH",
            _session_path(session_key),
            json=changes.model_dump(mode="json", exclude_unset=True),
        )
        return body.session

    async def list_tasks(self, session_key: str) -> list[Task]:
        """List a session's tasks. A server in strict mode answers 404; that reads as empty."""
        try:
            body = await self._get_model(TaskList, "GET", f"{_session_path(session_key)}/tasks")
        except TaskboardAPIError as e:
            if e.status_code == 404:
                return []
            raise
        return body.tasks

    async def create_task(self, session_key: str, task: TaskCreate) -> Task:
        body = await self._get_model(
            TaskEnvelope,
            "POST",
            f"{_session_path(session_key)}/tasks",
            json=task.model_dump(mode="json"),
        )
        return body.task

    async def update_task(self, task_id: UUID, changes: TaskUpdate) -> Task:
        body = await self._get_model(
            TaskEnvelope,
            "PATCH",
            f"{API_PREFIX}/tasks/{task_id}",
            json=changes.model_dump(mode="json", exclude_unset=True),
        )
        return body.task

    async def delete_task(self, task_id: UUID) -> None:
        await self._request("DELETE", f"{API_PREFIX}/tasks/{task_id}")

    # =========================================================================
    # Attachments
    # =========================================================================

    async def list_files(self, task_id: UUID) -> list[TaskFile]:
        body = await self._get_model(TaskFileList, "GET", f"{API_PREFIX}/tasks/{task_id}/files")
        return body.files

    async def upload_file(
        self,
        task_id: UUID,
        filename: str,
        content: bytes,
        content_type: str | None = None,
    ) -> TaskFile:
        headers = {"X-Filename": filename}
        if content_type:
            headers["Content-Type"] = content_type
        body = await self._get_model(
            TaskFileEnvelope,
            "POST",
            f"{API_PREFIX}/tasks/{task_id}/files",
            content=content,
            headers=headers,
        )
        return body.file

    async def download_file(self, task_id: UUID, file_id: UUID) -> bytes:
        response = await self._request("GET", f"{API_PREFIX}/tasks/{task_id}/files/{file_id}")
        return response.content

    async def delete_file(self, task_id: UUID, file_id: UUID) -> None:
        await self._request("DELETE", f"{API_PREFIX}/tasks/{task_id}/files/{file_id}")
