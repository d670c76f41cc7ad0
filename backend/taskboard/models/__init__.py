from taskboard.models.base import Base
from taskboard.models.enums import TaskStatus
from taskboard.models.session import Session
from taskboard.models.task import Task
from taskboard.models.task_file import TaskFile

__all__ = [
    # Base
    "Base",
    # Enums
    "TaskStatus",
    # Models
    "Session",
    "Task",
    "TaskFile",
]
