"""Task store: the canonical in-memory collection kept in sync with storage.

Every mutating action is optimistic. The new state is committed in memory
first, then the whole collection is handed to the persistence gateway. When
the save fails only the task touched by that action is put back the way it
was, and the failure is recorded in :attr:`TaskStore.error`; the action itself
still returns normally.

The store holds no lock. Two overlapping actions each save the collection as
it stood at their own commit, so the later save wins.
"""

from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Union
from uuid import UUID

from ..exceptions import MigrationError, StorageError, TaskNotFoundError
from ..models.task import Quadrant, Task, TaskCreateData, TaskUpdateData
from ..utils.logging import LoggerMixin, TimedOperation
from .migration import MigrationService
from .storage import PersistenceGateway
from .task_service import TaskService

TaskId = Union[UUID, str]


class StoreStatus(str, Enum):
    """Lifecycle of the store."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


class TaskStore(LoggerMixin):
    """Explicitly constructed state container owning its gateway."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        migrator: Optional[MigrationService] = None,
        task_service: Optional[TaskService] = None
    ):
        """Initialize the store.

        Args:
            gateway: Persistence gateway receiving full-collection saves
            migrator: Optional one-time migration run before the first load
            task_service: Domain operations; a default instance is created
                when omitted
        """
        self._gateway = gateway
        self._migrator = migrator
        self._service = task_service or TaskService()
        self._tasks: List[Task] = []
        self.status = StoreStatus.IDLE
        self.is_loading = False
        self.error: Optional[Exception] = None

    @property
    def tasks(self) -> List[Task]:
        """Snapshot of the collection in storage order."""
        return list(self._tasks)

    # -------------------- lifecycle --------------------

    async def init(self) -> None:
        """Run the migration check, then load every task from storage.

        Failures are recorded in :attr:`error`; the collection keeps its
        previous value and the store does not become ready.
        """
        previous_status = self.status
        self.status = StoreStatus.LOADING
        self.is_loading = True
        self.error = None

        try:
            with TimedOperation("task store init", __name__):
                if self._migrator is not None:
                    await self._migrator.migrate_if_needed()
                tasks = await self._gateway.load_tasks()
        except (MigrationError, StorageError) as e:
            self.log_error(f"Failed to initialize task store: {e}")
            self._fail_init(e, previous_status)
            return
        except Exception as e:
            self.log_error(f"Unexpected error while initializing task store: {e}", exc_info=True)
            self._fail_init(e, previous_status)
            return

        self._tasks = list(tasks)
        self.is_loading = False
        self.status = StoreStatus.READY
        self.log_info(f"Task store ready with {len(self._tasks)} tasks")

    def _fail_init(self, error: Exception, previous_status: StoreStatus) -> None:
        self.error = error
        self.is_loading = False
        self.status = previous_status

    async def retry(self) -> None:
        """Re-enter loading after a failure."""
        await self.init()

    def dispose(self) -> None:
        """Drop in-memory state and return to idle."""
        self._tasks = []
        self.error = None
        self.is_loading = False
        self.status = StoreStatus.IDLE

    def clear_error(self) -> None:
        """Acknowledge the last recorded error."""
        self.error = None

    # -------------------- mutations --------------------

    async def create_task(self, data: Union[TaskCreateData, Mapping[str, Any]]) -> Task:
        """Create a task and persist the collection.

        Raises:
            ValidationError: If the title is invalid; nothing is committed
        """
        task = self._service.create_task(data)
        await self._attempt(task.id, None, task, "create task")
        return task

    async def update_task(self, task_id: TaskId, updates: Union[TaskUpdateData, Mapping[str, Any]]) -> Task:
        """Merge updates into a task."""
        return await self._transition(task_id, lambda t: self._service.update_task(t, updates), "update task")

    async def delete_task(self, task_id: TaskId) -> None:
        """Remove a task from the collection."""
        current = self._require(task_id)
        await self._attempt(current.id, current, None, "delete task")

    async def move_task_to_quadrant(self, task_id: TaskId, quadrant: Quadrant) -> Task:
        """Move a task into a quadrant."""
        return await self._transition(
            task_id, lambda t: self._service.move_task_to_quadrant(t, quadrant), "move task"
        )

    async def pin_task_to_today(self, task_id: TaskId) -> Task:
        """Pin a task to the today panel."""
        return await self._transition(task_id, self._service.pin_task_to_today, "pin task")

    async def unpin_task_from_today(self, task_id: TaskId) -> Task:
        """Unpin a task from the today panel."""
        return await self._transition(task_id, self._service.unpin_task_from_today, "unpin task")

    async def complete_task(self, task_id: TaskId) -> Task:
        """Complete a task."""
        return await self._transition(task_id, self._service.complete_task, "complete task")

    async def uncomplete_task(self, task_id: TaskId) -> Task:
        """Restore a completed task."""
        return await self._transition(task_id, self._service.uncomplete_task, "uncomplete task")

    async def _transition(self, task_id: TaskId, operation: Callable[[Task], Task], action: str) -> Task:
        current = self._require(task_id)
        updated = operation(current)
        await self._attempt(current.id, current, updated, action)
        return updated

    async def _attempt(self, task_id: UUID, snapshot: Optional[Task], updated: Optional[Task], action: str) -> None:
        """Commit ``updated`` optimistically, persist, restore ``snapshot`` on failure.

        ``snapshot`` is None for creation and ``updated`` is None for deletion.
        A ``StorageError`` is recorded in :attr:`error`; any other exception
        is re-raised after the rollback.
        """
        index = self._index_of(task_id)
        self._tasks = self._put(self._tasks, task_id, updated, index, insert=snapshot is None)

        try:
            await self._gateway.save_tasks(list(self._tasks))
        except StorageError as e:
            self.log_error(f"Failed to {action} {task_id}, rolling back: {e}")
            self._tasks = self._put(self._tasks, task_id, snapshot, index, insert=updated is None)
            self.error = e
            return
        except Exception:
            self.log_error(f"Unexpected error during {action} {task_id}, rolling back", exc_info=True)
            self._tasks = self._put(self._tasks, task_id, snapshot, index, insert=updated is None)
            raise

        self.log_debug(f"Persisted {action} {task_id}")

    @staticmethod
    def _put(
        tasks: List[Task],
        task_id: UUID,
        value: Optional[Task],
        index: Optional[int],
        insert: bool
    ) -> List[Task]:
        """Return a copy of ``tasks`` with the entry for ``task_id`` set to ``value``.

        None removes the entry. A missing entry is added back only when
        ``insert`` is set (applying a create, undoing a delete), at ``index``
        when given and still in range.
        """
        if value is None:
            return [t for t in tasks if t.id != task_id]
        if any(t.id == task_id for t in tasks):
            return [value if t.id == task_id else t for t in tasks]
        if not insert:
            return list(tasks)
        if index is None or index > len(tasks):
            return list(tasks) + [value]
        return tasks[:index] + [value] + tasks[index:]

    # -------------------- reads --------------------

    def get_task(self, task_id: TaskId) -> Optional[Task]:
        """Return the task with this id, if present."""
        try:
            wanted = task_id if isinstance(task_id, UUID) else UUID(str(task_id))
        except ValueError:
            return None
        for task in self._tasks:
            if task.id == wanted:
                return task
        return None

    def inbox_tasks(self) -> List[Task]:
        """Active tasks without a quadrant."""
        return [t for t in self._tasks if t.quadrant is None and t.completed_at is None]

    def quadrant_tasks(self, quadrant: Quadrant, exclude_pinned: bool = True) -> List[Task]:
        """Active tasks in one quadrant.

        Args:
            quadrant: Quadrant to list
            exclude_pinned: Leave out tasks shown on the today panel
        """
        return [
            t for t in self._tasks
            if t.quadrant == quadrant
            and t.completed_at is None
            and not (exclude_pinned and t.is_pinned_to_today)
        ]

    def today_tasks(self) -> List[Task]:
        """Active tasks pinned to today."""
        return [t for t in self._tasks if t.is_pinned_to_today and t.completed_at is None]

    def log_tasks(self) -> List[Task]:
        """Completed tasks, newest completion first."""
        completed = [t for t in self._tasks if t.completed_at is not None]
        return sorted(completed, key=lambda t: t.completed_at, reverse=True)

    def _require(self, task_id: TaskId) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _index_of(self, task_id: UUID) -> Optional[int]:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        return None
