from enum import Enum


class TaskStatus(str, Enum):
    """Canonical task lifecycle states, shared by the API and the board client."""

    BACKLOG = "backlog"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"
