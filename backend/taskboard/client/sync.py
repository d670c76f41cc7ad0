"""Background polling of the Taskboard API.

``TaskPoller`` fetches tasks on a fixed interval and hands each snapshot to a
callback, usually ``BoardStore.reconcile``. Poll failures are logged and only
delay the next attempt; the previous snapshot stays on the board.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from taskboard.client.api import TaskboardClient, TaskboardError
from taskboard.client.config import ClientSettings
from taskboard.schemas import HealthStatus, Task

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[Task]], Awaitable[None] | None]


class TaskPoller:
    def __init__(
        self,
        client: TaskboardClient,
        on_update: SnapshotCallback | None = None,
        session_key: str | None = None,
        interval: float | None = None,
        max_backoff: float | None = None,
        settings: ClientSettings | None = None,
    ):
        settings = settings or ClientSettings()
        self.client = client
        self.on_update = on_update
        self.session_key = session_key
        self.interval = interval if interval is not None else settings.poll_interval_seconds
        self.max_backoff = max_backoff if max_backoff is not None else settings.max_backoff_seconds

        self.failures = 0
        self.last_fetch: datetime | None = None
        self._cycle_lock = asyncio.Lock()
        self._stopped = asyncio.Event()

    def set_scope(self, session_key: str | None) -> None:
        """Poll one session, or every session when ``session_key`` is None."""
        self.session_key = session_key

    async def check_health(self) -> HealthStatus:
        """Verify the API is reachable and healthy.

        Unlike background polls, failures here are raised so they can be shown.

        Raises:
            TaskboardError: If the request fails or the service is not healthy.
        """
        try:
            health = await self.client.health()
        except TaskboardError as e:
            raise TaskboardError(f"Taskboard API is unreachable: {e}") from e

        if health.status != "healthy":
            raise TaskboardError(
                f"Taskboard API is {health.status} "
                f"(database={health.services.database.value}, redis={health.services.redis.value})"
            )
        return health

    async def fetch(self) -> list[Task]:
        if self.session_key is not None:
            return await self.client.list_tasks(self.session_key)

        sessions = await self.client.list_sessions()
        results = await asyncio.gather(
            *(self.client.list_tasks(s.session_key) for s in sessions),
            return_exceptions=True,
        )

        tasks: list[Task] = []
        for session, result in zip(sessions, results):
            if isinstance(result, TaskboardError):
                logger.warning(f"Skipping session {session.session_key!r}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            tasks.extend(result)
        return tasks

    async def poll_once(self) -> bool:
        """Run one poll cycle. Returns True when a snapshot was delivered."""
        async with self._cycle_lock:
            try:
                tasks = await self.fetch()
            except TaskboardError as e:
                self.failures += 1
                logger.warning(
                    f"Poll failed ({self.failures} in a row), retrying in "
                    f"{self.next_delay():.1f}s: {e}"
                )
                return False

            self.failures = 0
            self.last_fetch = datetime.now(timezone.utc)
            if self.on_update is not None:
                result = self.on_update(tasks)
                if inspect.isawaitable(result):
                    await result
            return True

    def next_delay(self) -> float:
        if self.failures == 0:
            return self.interval
        return min(self.interval * 2**self.failures, self.max_backoff)

    async def run(self) -> None:
        """Poll until ``stop()`` is called."""
        self._stopped.clear()
        logger.info(
            f"Polling {self.client.base_url} every {self.interval}s "
            f"(scope={self.session_key or 'all sessions'})"
        )
        while not self._stopped.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.next_delay())
            except asyncio.TimeoutError:
                continue
        logger.info("Polling stopped")

    def stop(self) -> None:
        """End the poll loop after the current cycle. In-flight requests are not aborted."""
        self._stopped.set()
