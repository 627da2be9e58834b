"""API request/response schemas for the task management system."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .models.task import Quadrant, Task


class TaskCreateRequest(BaseModel):
    """Schema for creating a new task."""
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    due_date: Optional[datetime] = Field(None, description="Due date")
    tags: Optional[List[str]] = Field(None, description="Tags")
    quadrant: Optional[Quadrant] = Field(None, description="Initial quadrant, omitted for the inbox")


class QuickAddRequest(BaseModel):
    """Schema for creating a task from one line of free text."""
    text: str = Field(..., min_length=1, max_length=1000, description="Free-form task input")
    quadrant: Optional[Quadrant] = Field(None, description="Initial quadrant, omitted for the inbox")


class ParseRequest(BaseModel):
    """Schema for parsing free text without creating a task."""
    text: str = Field(..., max_length=1000, description="Free-form task input")


class MoveRequest(BaseModel):
    """Schema for moving a task into a quadrant."""
    quadrant: Quadrant = Field(..., description="Target quadrant")


class TaskResponse(BaseModel):
    """Schema for task API responses."""
    id: UUID = Field(..., description="Unique task identifier")
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    quadrant: Optional[Quadrant] = Field(None, description="Matrix quadrant")
    is_pinned_to_today: bool = Field(..., description="Pinned to the today panel")
    due_date: Optional[datetime] = Field(None, description="Due date")
    tags: List[str] = Field(..., description="Tags")
    created_at: datetime = Field(..., description="Task creation timestamp")
    updated_at: datetime = Field(..., description="Task last update timestamp")
    completed_at: Optional[datetime] = Field(None, description="Completion timestamp")

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        """Build a response from a domain task."""
        return cls(**task.model_dump())


class TaskListResponse(BaseModel):
    """Schema for task list API responses."""
    tasks: List[TaskResponse] = Field(..., description="List of tasks")
    total: int = Field(..., description="Total number of tasks")


class StoreStateResponse(BaseModel):
    """Schema for the task store status."""
    status: str = Field(..., description="Store lifecycle status")
    is_loading: bool = Field(..., description="Whether a load is in progress")
    error: Optional[str] = Field(None, description="Last recorded error, if any")
    task_count: int = Field(..., description="Number of tasks in memory")


class HealthResponse(BaseModel):
    """Schema for health check responses."""
    status: str = Field(default="healthy", description="Service health status")
    store_status: str = Field(..., description="Task store lifecycle status")
    version: str = Field(default="1.0.0", description="Application version")
