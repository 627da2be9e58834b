"""Task management routes.

Mutations answer with the optimistic task value. When the save behind a
mutation fails the store rolls the task back and records the error, which
clients observe through ``GET /tasks/state``.
"""

import logging
from enum import Enum
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_parser, get_task_store
from ..exceptions import TaskNotFoundError, ValidationError
from ..models.task import ParsedTask, Quadrant, TaskCreateData, TaskUpdateData
from ..schemas import (
    MoveRequest,
    ParseRequest,
    QuickAddRequest,
    StoreStateResponse,
    TaskCreateRequest,
    TaskListResponse,
    TaskResponse,
)
from ..services.parser import NaturalLanguageParser
from ..services.task_store import TaskStore

logger = logging.getLogger(__name__)

router = APIRouter()


class TaskView(str, Enum):
    """Read views over the collection."""
    ALL = "all"
    INBOX = "inbox"
    TODAY = "today"
    LOG = "log"
    QUADRANT = "quadrant"


def _not_found(task_id: UUID) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Task {task_id} not found"
    )


def _invalid(e: ValidationError) -> HTTPException:
    logger.warning(f"Validation error on field '{e.field}': {e}")
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=str(e)
    )


@router.get("/state", response_model=StoreStateResponse)
async def get_store_state(store: TaskStore = Depends(get_task_store)) -> StoreStateResponse:
    """Report the store lifecycle status and last error."""
    return StoreStateResponse(
        status=store.status.value,
        is_loading=store.is_loading,
        error=str(store.error) if store.error is not None else None,
        task_count=len(store.tasks),
    )


@router.post("/retry", response_model=StoreStateResponse)
async def retry_load(store: TaskStore = Depends(get_task_store)) -> StoreStateResponse:
    """Re-run initialization after an error."""
    logger.info("Retrying task store initialization")
    await store.retry()
    return await get_store_state(store)


@router.post("/parse", response_model=ParsedTask)
async def parse_text(
    request: ParseRequest,
    parser: NaturalLanguageParser = Depends(get_parser)
) -> ParsedTask:
    """Parse free text into title, due date and tags without creating a task."""
    return parser.parse(request.text)


@router.get("/", response_model=TaskListResponse)
async def list_tasks(
    view: TaskView = Query(TaskView.ALL),
    quadrant: Optional[Quadrant] = Query(None),
    store: TaskStore = Depends(get_task_store)
) -> TaskListResponse:
    """List tasks for one view.

    Args:
        view: Which view to list
        quadrant: Required for the quadrant view
        store: Task store instance

    Returns:
        Task list response
    """
    if view == TaskView.INBOX:
        tasks = store.inbox_tasks()
    elif view == TaskView.TODAY:
        tasks = store.today_tasks()
    elif view == TaskView.LOG:
        tasks = store.log_tasks()
    elif view == TaskView.QUADRANT:
        if quadrant is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The quadrant view needs a quadrant"
            )
        tasks = store.quadrant_tasks(quadrant)
    else:
        tasks = store.tasks

    logger.debug(f"Listing {len(tasks)} tasks for view={view.value}")
    return TaskListResponse(tasks=[TaskResponse.from_task(t) for t in tasks], total=len(tasks))


@router.post("/", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    request: TaskCreateRequest,
    store: TaskStore = Depends(get_task_store)
) -> TaskResponse:
    """Create a new task from structured data."""
    try:
        task = await store.create_task(TaskCreateData(**request.model_dump()))
    except ValidationError as e:
        raise _invalid(e)
    logger.info(f"Created task {task.id}: {task.title}")
    return TaskResponse.from_task(task)


@router.post("/quick", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def quick_add_task(
    request: QuickAddRequest,
    store: TaskStore = Depends(get_task_store),
    parser: NaturalLanguageParser = Depends(get_parser)
) -> TaskResponse:
    """Create a task from one line of free text."""
    parsed = parser.parse(request.text)
    try:
        task = await store.create_task(TaskCreateData.from_parsed(parsed, quadrant=request.quadrant))
    except ValidationError as e:
        raise _invalid(e)
    logger.info(f"Quick-added task {task.id}: {task.title}")
    return TaskResponse.from_task(task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: UUID, store: TaskStore = Depends(get_task_store)) -> TaskResponse:
    """Get a specific task by ID."""
    task = store.get_task(task_id)
    if task is None:
        raise _not_found(task_id)
    return TaskResponse.from_task(task)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: UUID,
    updates: TaskUpdateData,
    store: TaskStore = Depends(get_task_store)
) -> TaskResponse:
    """Update a task; only fields present in the body change."""
    try:
        task = await store.update_task(task_id, updates)
    except TaskNotFoundError:
        raise _not_found(task_id)
    except ValidationError as e:
        raise _invalid(e)
    return TaskResponse.from_task(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: UUID, store: TaskStore = Depends(get_task_store)):
    """Delete a task."""
    try:
        await store.delete_task(task_id)
    except TaskNotFoundError:
        raise _not_found(task_id)
    logger.info(f"Deleted task {task_id}")


@router.post("/{task_id}/move", response_model=TaskResponse)
async def move_task(
    task_id: UUID,
    request: MoveRequest,
    store: TaskStore = Depends(get_task_store)
) -> TaskResponse:
    """Move a task into a quadrant."""
    try:
        task = await store.move_task_to_quadrant(task_id, request.quadrant)
    except TaskNotFoundError:
        raise _not_found(task_id)
    return TaskResponse.from_task(task)


@router.post("/{task_id}/pin", response_model=TaskResponse)
async def pin_task(task_id: UUID, store: TaskStore = Depends(get_task_store)) -> TaskResponse:
    """Pin a task to today."""
    try:
        task = await store.pin_task_to_today(task_id)
    except TaskNotFoundError:
        raise _not_found(task_id)
    return TaskResponse.from_task(task)


@router.post("/{task_id}/unpin", response_model=TaskResponse)
async def unpin_task(task_id: UUID, store: TaskStore = Depends(get_task_store)) -> TaskResponse:
    """Unpin a task from today."""
    try:
        task = await store.unpin_task_from_today(task_id)
    except TaskNotFoundError:
        raise _not_found(task_id)
    return TaskResponse.from_task(task)


@router.post("/{task_id}/complete", response_model=TaskResponse)
async def complete_task(task_id: UUID, store: TaskStore = Depends(get_task_store)) -> TaskResponse:
    """Complete a task."""
    try:
        task = await store.complete_task(task_id)
    except TaskNotFoundError:
        raise _not_found(task_id)
    return TaskResponse.from_task(task)


@router.post("/{task_id}/uncomplete", response_model=TaskResponse)
async def uncomplete_task(task_id: UUID, store: TaskStore = Depends(get_task_store)) -> TaskResponse:
    """Restore a completed task."""
    try:
        task = await store.uncomplete_task(task_id)
    except TaskNotFoundError:
        raise _not_found(task_id)
    return TaskResponse.from_task(task)
