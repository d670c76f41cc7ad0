"""Background jobs using ARQ with Redis.

Attachment cleanup after a task is deleted runs here so the request does not
wait on filesystem work. The same connection pool backs the Redis health check.
When no Redis URL is configured, or the queue cannot be reached, cleanup runs
inline instead.
"""

import logging
from typing import Any
from uuid import uuid4

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from sqlalchemy.orm import Session, sessionmaker

from taskboard.config import settings
from taskboard.database import SessionLocal
from taskboard.schemas.system import ServiceState
from taskboard.services import task_service
from taskboard.services.storage import FileStorage, InvalidFilenameError
from taskboard.services.task_service import DeletedTask

logger = logging.getLogger(__name__)

# Global connection pool (initialized on startup)
_redis_pool: ArqRedis | None = None


class QueueNotConfiguredError(Exception):
    """Raised when the queue is used without a configured Redis URL."""


def is_queue_enabled() -> bool:
    return bool(settings.redis_url)


def get_redis_settings() -> RedisSettings:
    """Get Redis settings from application config."""
    if not settings.redis_url:
        raise QueueNotConfiguredError("REDIS_URL is not set")
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    redis_settings.conn_retries = settings.redis_conn_retries
    return redis_settings


async def get_redis_pool() -> ArqRedis:
    """Get or create the Redis connection pool."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = await create_pool(get_redis_settings())
    return _redis_pool


async def close_redis_pool() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.close()
        _redis_pool = None


async def check_redis() -> ServiceState:
    if not is_queue_enabled():
        return ServiceState.DISABLED
    try:
        pool = await get_redis_pool()
        await pool.ping()
    except Exception as e:
        logger.warning(f"Redis health check failed: {e!r}")
        return ServiceState.DISCONNECTED
    return ServiceState.CONNECTED


# ============================================================================
# Job Definitions (executed by workers)
# ============================================================================


def _task_directory(storage: FileStorage, session_key: str, task_number: int) -> str | None:
    try:
        return str(storage.task_dir(session_key, task_number))
    except InvalidFilenameError:
        logger.warning(f"Session key {session_key!r} has no storage directory")
        return None


def purge_task_objects(
    db: Session,
    storage: FileStorage,
    session_key: str,
    task_number: int,
    file_paths: list[str],
) -> int:
    """Remove a deleted task's objects that no attachment row references any more.

    Task numbers are reusable, so by the time cleanup runs a new task may own the
    same directory and object paths. Those are left alone.
    """
    live = task_service.referenced_file_paths(db, file_paths)
    if live:
        logger.info(f"Keeping {len(live)} object(s) now owned by a recreated task")

    directory = None
    if task_service.task_number_in_use(db, session_key, task_number):
        logger.info(
            f"Task #{task_number} in session {session_key!r} exists again, keeping its directory"
        )
    else:
        directory = _task_directory(storage, session_key, task_number)

    return storage.remove_objects([p for p in file_paths if p not in live], directory)


async def run_attachment_cleanup(
    ctx: dict[str, Any],
    session_key: str,
    task_number: int,
    file_paths: list[str],
) -> dict[str, Any]:
    """Remove the stored objects of a deleted task."""
    storage: FileStorage = ctx.get("storage") or FileStorage(settings.files_base_path)
    session_factory = ctx.get("session_factory") or SessionLocal

    db = session_factory()
    try:
        removed = purge_task_objects(db, storage, session_key, task_number, file_paths)
    finally:
        db.close()
    return {
        "success": True,
        "removed": removed,
        "session_key": session_key,
        "task_number": task_number,
    }


# ============================================================================
# Submission API (used by FastAPI endpoints)
# ============================================================================


async def submit_attachment_cleanup(
    session_key: str, task_number: int, file_paths: list[str]
) -> str:
    """Submit an attachment cleanup job to the queue.

    Returns the ARQ job ID for status tracking.
    """
    pool = await get_redis_pool()
    job = await pool.enqueue_job("run_attachment_cleanup", session_key, task_number, file_paths)
    if job is None:
        raise RuntimeError("Attachment cleanup job was not enqueued")

    logger.info(
        f"Submitted attachment cleanup for task #{task_number} in session {session_key!r}, "
        f"job_id={job.job_id}"
    )
    return job.job_id


async def cleanup_deleted_task(
    deleted: DeletedTask,
    storage: FileStorage,
    session_factory: sessionmaker[Session] = SessionLocal,
) -> str | None:
    """Best-effort removal of a deleted task's stored objects.

    Returns the job ID when the work was queued, or None when it ran inline.
    """
    if is_queue_enabled():
        try:
            return await submit_attachment_cleanup(
                deleted.session_key, deleted.task_number, deleted.file_paths
            )
        except Exception as e:
            logger.warning(
                f"Could not queue attachment cleanup for task {deleted.task_id}, "
                f"running inline: {e!r}"
            )

    db = session_factory()
    try:
        purge_task_objects(
            db, storage, deleted.session_key, deleted.task_number, deleted.file_paths
        )
    finally:
        db.close()
    return None


# ============================================================================
# ARQ Worker Configuration
# ============================================================================


async def startup(ctx: dict[str, Any]) -> None:
    """Worker startup hook."""
    ctx["worker_id"] = str(uuid4())[:8]
    ctx["storage"] = FileStorage(settings.files_base_path)
    ctx["session_factory"] = SessionLocal
    logger.info(f"ARQ worker starting up with id={ctx['worker_id']}")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Worker shutdown hook."""
    logger.info(f"ARQ worker shutting down with id={ctx.get('worker_id')}")


async def on_job_end(ctx: dict[str, Any]) -> None:
    """Called when a job ends (success or failure)."""
    job_id = ctx.get("job_id", "unknown")
    job_try = ctx.get("job_try", 0)
    logger.info(f"Job ended: {job_id} (attempt {job_try})")


class WorkerSettings:
    """ARQ Worker configuration."""

    functions = [run_attachment_cleanup]

    redis_settings = get_redis_settings() if is_queue_enabled() else None

    max_tries = settings.task_queue_max_retries
    retry_jobs = True
    job_timeout = settings.task_queue_job_timeout_seconds

    # Lifecycle hooks
    on_startup = startup
    on_shutdown = shutdown
    after_job_end = on_job_end

    # Keep results for 1 hour
    keep_result = 3600
