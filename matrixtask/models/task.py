"""Domain models for the task management system."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

TITLE_MAX_LENGTH = 200


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Quadrant(str, Enum):
    """Urgency/importance matrix buckets."""
    IMPORTANT_URGENT = "important-urgent"
    IMPORTANT_NOT_URGENT = "important-not-urgent"
    NOT_IMPORTANT_URGENT = "not-important-urgent"
    NOT_IMPORTANT_NOT_URGENT = "not-important-not-urgent"


class Task(BaseModel):
    """Task domain model.

    Instances are frozen. Every state transition in
    :mod:`matrixtask.services.task_service` returns a new copy instead of
    mutating the task it was given.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Unique task identifier")
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH, description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    quadrant: Optional[Quadrant] = Field(None, description="Matrix quadrant, None while in the inbox")
    is_pinned_to_today: bool = Field(default=False, description="Pinned to the today panel")
    due_date: Optional[datetime] = Field(None, description="Due date, truncated to the start of the day")
    tags: List[str] = Field(default_factory=list, description="Tags in insertion order")
    created_at: datetime = Field(default_factory=_utc_now, description="Task creation timestamp")
    updated_at: datetime = Field(default_factory=_utc_now, description="Task last update timestamp")
    completed_at: Optional[datetime] = Field(None, description="Completion timestamp")

    @property
    def is_completed(self) -> bool:
        """Whether the task is in the completed lifecycle state."""
        return self.completed_at is not None

    @property
    def is_in_inbox(self) -> bool:
        """Whether the task still waits to be sorted into a quadrant."""
        return self.quadrant is None and not self.is_completed


class ParsedTask(BaseModel):
    """Result of parsing one line of free-form task input."""
    title: str = Field(default="", description="Residual text after date and tag extraction")
    due_date: Optional[datetime] = Field(None, description="Extracted due date")
    tags: List[str] = Field(default_factory=list, description="Extracted tags")


class TaskCreateData(BaseModel):
    """Data accepted by task creation.

    The title is not constrained here; the domain operation applies the
    title rule.
    """
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    due_date: Optional[datetime] = Field(None, description="Due date")
    tags: Optional[List[str]] = Field(None, description="Tags")
    quadrant: Optional[Quadrant] = Field(None, description="Initial quadrant, None for the inbox")

    @classmethod
    def from_parsed(cls, parsed: ParsedTask, quadrant: Optional[Quadrant] = None) -> "TaskCreateData":
        """Build creation data from parser output."""
        return cls(
            title=parsed.title,
            due_date=parsed.due_date,
            tags=list(parsed.tags),
            quadrant=quadrant,
        )


class TaskUpdateData(BaseModel):
    """Partial update for a task.

    Only explicitly set fields are merged, so passing ``description=None``
    clears the description while omitting it leaves it untouched. Identity,
    creation time and completion time are not updatable.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    quadrant: Optional[Quadrant] = Field(None, description="Matrix quadrant")
    is_pinned_to_today: Optional[bool] = Field(None, description="Pinned to the today panel")
    due_date: Optional[datetime] = Field(None, description="Due date")
    tags: Optional[List[str]] = Field(None, description="Tags")

    def changes(self) -> dict:
        """Return only the fields the caller explicitly set."""
        return self.model_dump(exclude_unset=True)
