"""Exception hierarchy for the task management core."""

from typing import Any, Optional


class MatrixTaskError(Exception):
    """Base class for all task management errors."""


class ValidationError(MatrixTaskError, ValueError):
    """Raised when a task field fails validation.

    Always raised synchronously by the domain operations, before any state
    change is committed.
    """

    def __init__(self, message: str, field: str, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class TaskNotFoundError(MatrixTaskError, LookupError):
    """Raised when an action targets a task id that is not in the store."""

    def __init__(self, task_id: Any):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class StorageError(MatrixTaskError):
    """Raised by a persistence gateway on any underlying I/O failure."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class MigrationError(MatrixTaskError):
    """Raised when the one-time legacy data migration fails."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
