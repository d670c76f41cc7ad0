"""Kanban board view model.

The board keeps two things: the tasks as last confirmed by the server, and the
status moves the user has made that the server has not confirmed yet. What the
board shows is the confirmed tasks with the pending moves laid on top, so a poll
that lands mid-move never snaps a dragged card back, and a rejected move only has
to be dropped to restore the card to its previous column.

State changes go through ``reduce`` only. ``BoardStore`` is the single writer
and notifies its subscribers after every change.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from uuid import UUID, uuid4

from taskboard.client.api import TaskboardClient, TaskboardError
from taskboard.models.enums import TaskStatus
from taskboard.schemas import Task, TaskUpdate

logger = logging.getLogger(__name__)

BOARD_COLUMNS = (
    TaskStatus.BACKLOG,
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
    TaskStatus.BLOCKED,
    TaskStatus.COMPLETED,
)


def group_by_status(tasks: Iterable[Task]) -> dict[TaskStatus, list[Task]]:
    """Split tasks into board columns, each sorted by ascending priority.

    ``sorted`` is stable, so equal priorities keep the order they arrived in.
    """
    columns: dict[TaskStatus, list[Task]] = {status: [] for status in BOARD_COLUMNS}
    for task in tasks:
        columns[task.status].append(task)
    return {status: sorted(column, key=lambda t: t.priority) for status, column in columns.items()}


@dataclass(frozen=True)
class PendingMove:
    move_id: str
    task_id: UUID
    from_status: TaskStatus
    to_status: TaskStatus


@dataclass(frozen=True)
class BoardState:
    tasks: tuple[Task, ...] = ()
    pending: tuple[PendingMove, ...] = ()

    def visible_tasks(self) -> list[Task]:
        """Confirmed tasks with every pending move applied, latest move winning."""
        overlay = {move.task_id: move.to_status for move in self.pending}
        return [
            task.model_copy(update={"status": overlay[task.id]}) if task.id in overlay else task
            for task in self.tasks
        ]

    def columns(self) -> dict[TaskStatus, list[Task]]:
        return group_by_status(self.visible_tasks())

    def find(self, task_id: UUID) -> Task | None:
        for task in self.visible_tasks():
            if task.id == task_id:
                return task
        return None


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True)
class Reconciled:
    """A poll returned this server snapshot."""

    tasks: tuple[Task, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MoveStarted:
    move: PendingMove


@dataclass(frozen=True)
class MoveConfirmed:
    move_id: str
    task: Task


@dataclass(frozen=True)
class MoveFailed:
    move_id: str


BoardAction = Reconciled | MoveStarted | MoveConfirmed | MoveFailed


def _without_move(pending: tuple[PendingMove, ...], move_id: str) -> tuple[PendingMove, ...]:
    return tuple(move for move in pending if move.move_id != move_id)


def reduce(state: BoardState, action: BoardAction) -> BoardState:
    if isinstance(action, Reconciled):
        present = {task.id for task in action.tasks}
        # Moves on tasks that vanished from the server have nothing left to show
        pending = tuple(move for move in state.pending if move.task_id in present)
        return BoardState(tasks=tuple(action.tasks), pending=pending)

    if isinstance(action, MoveStarted):
        return replace(state, pending=state.pending + (action.move,))

    if isinstance(action, MoveConfirmed):
        tasks = tuple(action.task if task.id == action.task.id else task for task in state.tasks)
        return BoardState(tasks=tasks, pending=_without_move(state.pending, action.move_id))

    if isinstance(action, MoveFailed):
        return replace(state, pending=_without_move(state.pending, action.move_id))

    raise TypeError(f"Unknown board action: {action!r}")


class BoardStore:
    def __init__(self, state: BoardState | None = None):
        self._state = state or BoardState()
        self._subscribers: list[Callable[[BoardState], None]] = []

    @property
    def state(self) -> BoardState:
        return self._state

    def subscribe(self, callback: Callable[[BoardState], None]) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def dispatch(self, action: BoardAction) -> BoardState:
        self._state = reduce(self._state, action)
        for callback in list(self._subscribers):
            callback(self._state)
        return self._state

    def reconcile(self, tasks: Iterable[Task]) -> BoardState:
        return self.dispatch(Reconciled(tuple(tasks)))

    def begin_move(self, task_id: UUID, to_status: TaskStatus) -> PendingMove | None:
        """Apply a move locally. Returns None for unknown tasks and same-column drops."""
        task = self._state.find(task_id)
        if task is None or task.status == to_status:
            return None

        move = PendingMove(
            move_id=uuid4().hex,
            task_id=task_id,
            from_status=task.status,
            to_status=to_status,
        )
        self.dispatch(MoveStarted(move))
        return move


async def move_task(
    store: BoardStore,
    client: TaskboardClient,
    task_id: UUID,
    to_status: TaskStatus,
) -> bool:
    """Move a task to another column optimistically.

    The board shows the task in its new column right away. If the server
    rejects the change the move is rolled back. Returns True when the server
    confirmed the move.
    """
    move = store.begin_move(task_id, to_status)
    if move is None:
        return False

    try:
        task = await client.update_task(task_id, TaskUpdate(status=to_status))
    except TaskboardError as e:
        logger.warning(
            f"Moving task {task_id} from {move.from_status.value} to {to_status.value} "
            f"failed, rolling back: {e}"
        )
        store.dispatch(MoveFailed(move.move_id))
        return False

    store.dispatch(MoveConfirmed(move.move_id, task))
    return True
