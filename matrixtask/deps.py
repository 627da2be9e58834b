"""Dependency injection helpers for FastAPI."""

from functools import lru_cache

from fastapi import HTTPException, Request, status

from .config import Settings
from .services.migration import MigrationService
from .services.parser import NaturalLanguageParser
from .services.storage import (
    InMemoryStorageService,
    JsonFileStorageService,
    PersistenceGateway,
    SQLiteStorageService,
)
from .services.task_store import TaskStore


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return Settings()


@lru_cache()
def get_parser() -> NaturalLanguageParser:
    """Get the shared natural-language parser."""
    return NaturalLanguageParser()


def build_gateway(settings: Settings) -> PersistenceGateway:
    """Create the persistence gateway selected in settings."""
    if settings.storage_backend == "memory":
        return InMemoryStorageService()
    if settings.storage_backend == "json":
        return JsonFileStorageService(settings.database_path.with_suffix(".json"))
    return SQLiteStorageService(settings.database_path)


def build_task_store(settings: Settings) -> TaskStore:
    """Wire a task store with its gateway and migration check."""
    gateway = build_gateway(settings)
    migrator = MigrationService(
        legacy=JsonFileStorageService(settings.legacy_data_file),
        target=gateway,
        flag_path=settings.migration_flag_file,
    )
    return TaskStore(gateway, migrator=migrator)


def get_task_store(request: Request) -> TaskStore:
    """Get the task store owned by the running application."""
    store = getattr(request.app.state, "task_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Task store not initialized"
        )
    return store
