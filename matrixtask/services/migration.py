"""One-time migration of legacy JSON data into the active gateway."""

import logging
from pathlib import Path
from typing import List

from ..exceptions import MigrationError, StorageError
from ..models.task import Task
from ..utils.logging import log_async_function_call
from .storage import JsonFileStorageService, PersistenceGateway

logger = logging.getLogger(__name__)


class MigrationService:
    """Moves tasks from the legacy JSON file into the target gateway once.

    A marker file records success, so later runs return immediately.
    """

    def __init__(self, legacy: JsonFileStorageService, target: PersistenceGateway, flag_path: Path):
        self.legacy = legacy
        self.target = target
        self.flag_path = Path(flag_path)

    def is_migrated(self) -> bool:
        """Whether a previous run already completed."""
        try:
            return self.flag_path.read_text(encoding="utf-8").strip() == "true"
        except FileNotFoundError:
            return False

    @log_async_function_call("MigrationService.migrate_if_needed")
    async def migrate_if_needed(self) -> int:
        """Migrate legacy tasks unless that already happened.

        Legacy tasks are upserted by id into whatever the target already holds.

        Returns:
            Number of tasks migrated (0 when skipped)

        Raises:
            MigrationError: If the tasks cannot be written to the target or the
                marker cannot be written
        """
        try:
            if self.is_migrated():
                logger.debug("[Migration] Already migrated, skipping")
                return 0

            try:
                tasks = await self.legacy.load_tasks()
            except StorageError as e:
                # Unreadable legacy data is treated like no legacy data.
                logger.warning(f"[Migration] Failed to read legacy tasks, skipping them: {e}")
                tasks = []

            if not tasks:
                logger.info("[Migration] No legacy data, marking as migrated")
                self._mark_migrated()
                return 0

            logger.info(f"[Migration] Found {len(tasks)} legacy tasks, migrating...")
            existing = await self.target.load_tasks()
            await self.target.save_tasks(self._merge(existing, tasks))
            await self.legacy.clear()
            self._mark_migrated()

            logger.info(f"[Migration] Completed migration of {len(tasks)} tasks")
            return len(tasks)

        except (StorageError, OSError) as e:
            logger.error(f"[Migration] Failed to migrate data: {e}")
            raise MigrationError("Failed to migrate legacy task data", e) from e

    def reset_migration_flag(self) -> None:
        """Forget that the migration ran."""
        self.flag_path.unlink(missing_ok=True)

    @staticmethod
    def _merge(existing: List[Task], legacy: List[Task]) -> List[Task]:
        """Upsert legacy tasks by id into the target's current collection."""
        incoming = {t.id: t for t in legacy}
        merged = [incoming.pop(t.id, t) for t in existing]
        return merged + [t for t in legacy if t.id in incoming]

    def _mark_migrated(self) -> None:
        self.flag_path.parent.mkdir(parents=True, exist_ok=True)
        self.flag_path.write_text("true", encoding="utf-8")
