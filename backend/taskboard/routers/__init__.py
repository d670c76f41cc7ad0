from taskboard.routers.files import router as files_router
from taskboard.routers.sessions import router as sessions_router
from taskboard.routers.system import router as system_router
from taskboard.routers.tasks import router as tasks_router

__all__ = [
    "files_router",
    "sessions_router",
    "system_router",
    "tasks_router",
]
