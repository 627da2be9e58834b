"""Task domain operations.

Every operation is pure: it takes a task (or creation data) and returns a new
:class:`Task`, leaving its input untouched. Nothing here touches storage.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional, Union

from ..exceptions import ValidationError
from ..models.task import TITLE_MAX_LENGTH, Quadrant, Task, TaskCreateData, TaskUpdateData
from ..utils.dates import utc_now

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(TaskUpdateData.model_fields)
NON_NULLABLE_FIELDS = frozenset({"title", "is_pinned_to_today", "tags"})


class TaskService:
    """Validated state transitions over single task values."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """Initialize the task service.

        Args:
            clock: Callable returning the current aware datetime; defaults to
                UTC wall-clock time
        """
        self._clock = clock or utc_now

    def validate_title(self, title: Optional[str]) -> str:
        """Validate a title and return it trimmed.

        Args:
            title: Candidate title

        Returns:
            The trimmed title

        Raises:
            ValidationError: If the title is empty or longer than 200 characters
        """
        if title is None or not title.strip():
            raise ValidationError("Task title cannot be empty", "title", title)

        stripped = title.strip()
        if len(stripped) > TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Task title must be at most {TITLE_MAX_LENGTH} characters",
                "title",
                title
            )
        return stripped

    def create_task(self, data: Union[TaskCreateData, Mapping[str, Any]]) -> Task:
        """Create a new task.

        Args:
            data: Task creation data

        Returns:
            Created task, in the inbox unless a quadrant was given

        Raises:
            ValidationError: If the title is invalid
        """
        if not isinstance(data, TaskCreateData):
            data = TaskCreateData(**data)

        title = self.validate_title(data.title)
        now = self._clock()

        task = Task(
            title=title,
            description=data.description,
            quadrant=data.quadrant,
            is_pinned_to_today=False,
            due_date=data.due_date,
            tags=list(data.tags) if data.tags is not None else [],
            created_at=now,
            updated_at=now,
        )
        logger.debug(f"Created task {task.id}: {task.title}")
        return task

    def update_task(self, task: Task, updates: Union[TaskUpdateData, Mapping[str, Any]]) -> Task:
        """Shallow-merge updates onto a task.

        Args:
            task: Original task
            updates: Fields to overwrite; only explicitly given fields apply

        Returns:
            Updated task

        Raises:
            ValidationError: If a field is not updatable or the title is invalid
        """
        if isinstance(updates, TaskUpdateData):
            changes = updates.changes()
        else:
            unknown = set(updates) - UPDATABLE_FIELDS
            if unknown:
                field = sorted(unknown)[0]
                raise ValidationError(f"Field '{field}' cannot be updated", field, updates[field])
            changes = TaskUpdateData(**updates).changes()

        for field in NON_NULLABLE_FIELDS & set(changes):
            if changes[field] is None and field != "title":
                raise ValidationError(f"Field '{field}' cannot be cleared", field, None)

        if "title" in changes:
            changes["title"] = self.validate_title(changes["title"])
        if changes.get("tags") is not None:
            changes["tags"] = list(changes["tags"])

        changes["updated_at"] = self._advance(task)
        return task.model_copy(update=changes)

    def move_task_to_quadrant(self, task: Task, quadrant: Quadrant) -> Task:
        """Move a task into a matrix quadrant."""
        return task.model_copy(update={
            "quadrant": Quadrant(quadrant),
            "updated_at": self._advance(task),
        })

    def pin_task_to_today(self, task: Task) -> Task:
        """Pin a task to the today panel. Pinning twice is harmless."""
        return task.model_copy(update={
            "is_pinned_to_today": True,
            "updated_at": self._advance(task),
        })

    def unpin_task_from_today(self, task: Task) -> Task:
        """Remove a task from the today panel."""
        return task.model_copy(update={
            "is_pinned_to_today": False,
            "updated_at": self._advance(task),
        })

    def complete_task(self, task: Task) -> Task:
        """Mark a task as completed.

        Quadrant and pin state are kept for the log; active views filter
        completed tasks out by ``completed_at``.
        """
        now = self._advance(task)
        return task.model_copy(update={"completed_at": now, "updated_at": now})

    def uncomplete_task(self, task: Task) -> Task:
        """Restore a completed task to the active state."""
        return task.model_copy(update={
            "completed_at": None,
            "updated_at": self._advance(task),
        })

    def _advance(self, task: Task) -> datetime:
        """Return a timestamp strictly after the task's ``updated_at``."""
        now = self._clock()
        if now <= task.updated_at:
            now = task.updated_at + timedelta(microseconds=1)
        return now
