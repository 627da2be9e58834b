"""Shared test fixtures and configuration for the test suite."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

# Add the parent directory to the path for imports
sys.path.append(str(Path(__file__).parent.parent))

from matrixtask.config import Settings
from matrixtask.exceptions import StorageError
from matrixtask.main import create_app
from matrixtask.models.task import Task
from matrixtask.services.storage import InMemoryStorageService
from matrixtask.services.task_service import TaskService
from matrixtask.services.task_store import TaskStore

# 2026-02-11 is a Wednesday
WEDNESDAY = datetime(2026, 2, 11, 10, 30, 15)


class SteppingClock:
    """Clock that advances one second per call."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


class FrozenClock:
    """Clock that always returns the same instant."""

    def __init__(self, value: datetime):
        self.value = value

    def __call__(self) -> datetime:
        return self.value


@pytest.fixture
def fixed_now() -> datetime:
    """A known Wednesday morning, naive local time."""
    return WEDNESDAY


@pytest.fixture
def clock() -> SteppingClock:
    """Deterministic UTC clock."""
    return SteppingClock(datetime(2026, 2, 11, 1, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def task_service(clock) -> TaskService:
    """Create a task service with a deterministic clock."""
    return TaskService(clock=clock)


@pytest.fixture
def sample_task(task_service) -> Task:
    """Create a sample task for testing."""
    return task_service.create_task({"title": "Test Task", "description": "This is a test task"})


@pytest.fixture
def memory_gateway() -> InMemoryStorageService:
    """Empty in-memory persistence gateway."""
    return InMemoryStorageService()


@pytest.fixture
def failing_gateway() -> AsyncMock:
    """Gateway whose saves and loads always fail."""
    gateway = AsyncMock()
    gateway.save_tasks.side_effect = StorageError("disk full")
    gateway.load_tasks.side_effect = StorageError("database unavailable")
    gateway.clear.side_effect = StorageError("database unavailable")
    return gateway


@pytest.fixture
def task_store(memory_gateway, task_service) -> TaskStore:
    """Task store over an in-memory gateway."""
    return TaskStore(memory_gateway, task_service=task_service)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings with temporary directories."""
    return Settings(
        storage_backend="sqlite",
        database_path=tmp_path / "data" / "tasks.db",
        legacy_data_file=tmp_path / "data" / "legacy.json",
        migration_flag_file=tmp_path / "data" / ".migrated",
        log_dir=tmp_path / "logs",
        log_level="DEBUG",
        environment="test",
    )


@pytest.fixture
def client(test_settings) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    app = create_app(settings=test_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_task_data():
    """Sample task data for testing."""
    return {"title": "Test Task", "description": "This is a test task description"}
