"""Tests for the optimistic task store."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from matrixtask.exceptions import MigrationError, StorageError, TaskNotFoundError, ValidationError
from matrixtask.models.task import Quadrant
from matrixtask.services.storage import InMemoryStorageService
from matrixtask.services.task_store import StoreStatus, TaskStore


class ScriptedGateway(InMemoryStorageService):
    """In-memory gateway whose saves can be held back or made to fail.

    Each entry of ``script`` applies to one save call, in order:
    ``(gate, error)`` where ``gate`` is an ``asyncio.Event`` to wait on (or
    None) and ``error`` is raised after the wait (or None).
    """

    def __init__(self, tasks=None):
        super().__init__(tasks)
        self.saved_titles = []
        self.script = []

    async def save_tasks(self, tasks):
        self.saved_titles.append([t.title for t in tasks])
        gate, error = self.script.pop(0) if self.script else (None, None)
        if gate is not None:
            await gate.wait()
        if error is not None:
            raise error
        await super().save_tasks(tasks)


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def store(gateway, task_service) -> TaskStore:
    return TaskStore(gateway, task_service=task_service)


async def seed(store, *titles):
    """Create tasks through the store and return them."""
    return [await store.create_task({"title": title}) for title in titles]


class TestInit:
    """Store lifecycle."""

    @pytest.mark.asyncio
    async def test_init_loads_tasks(self, sample_task, task_service):
        store = TaskStore(InMemoryStorageService([sample_task]), task_service=task_service)
        assert store.status == StoreStatus.IDLE

        await store.init()

        assert store.status == StoreStatus.READY
        assert store.is_loading is False
        assert store.error is None
        assert store.tasks == [sample_task]

    @pytest.mark.asyncio
    async def test_migration_runs_before_load(self):
        order = []
        migrator = AsyncMock()
        migrator.migrate_if_needed.side_effect = lambda: order.append("migrate")
        gateway = AsyncMock()
        gateway.load_tasks.side_effect = lambda: order.append("load") or []

        await TaskStore(gateway, migrator=migrator).init()

        assert order == ["migrate", "load"]

    @pytest.mark.asyncio
    async def test_load_failure_sets_error(self, failing_gateway):
        store = TaskStore(failing_gateway)

        await store.init()

        assert isinstance(store.error, StorageError)
        assert store.is_loading is False
        assert store.status == StoreStatus.IDLE
        assert store.tasks == []

    @pytest.mark.asyncio
    async def test_migration_failure_blocks_load(self):
        migrator = AsyncMock()
        migrator.migrate_if_needed.side_effect = MigrationError("legacy data broken")
        gateway = AsyncMock()

        store = TaskStore(gateway, migrator=migrator)
        await store.init()

        assert isinstance(store.error, MigrationError)
        assert store.status != StoreStatus.READY
        gateway.load_tasks.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_previous_tasks(self, sample_task):
        gateway = AsyncMock()
        gateway.load_tasks.side_effect = [[sample_task], StorageError("gone")]
        store = TaskStore(gateway)

        await store.init()
        await store.retry()

        assert store.tasks == [sample_task]
        assert isinstance(store.error, StorageError)
        assert store.status == StoreStatus.READY

    @pytest.mark.asyncio
    async def test_retry_recovers(self, sample_task):
        gateway = AsyncMock()
        gateway.load_tasks.side_effect = [StorageError("offline"), [sample_task]]
        store = TaskStore(gateway)

        await store.init()
        assert store.error is not None

        await store.retry()

        assert store.error is None
        assert store.status == StoreStatus.READY
        assert store.tasks == [sample_task]

    @pytest.mark.asyncio
    async def test_unexpected_load_error_is_recorded(self):
        gateway = AsyncMock()
        gateway.load_tasks.side_effect = RuntimeError("driver crashed")
        store = TaskStore(gateway)

        await store.init()

        assert isinstance(store.error, RuntimeError)
        assert store.is_loading is False
        assert store.status == StoreStatus.IDLE

    @pytest.mark.asyncio
    async def test_unexpected_migration_error_is_recorded(self, sample_task):
        migrator = AsyncMock()
        migrator.migrate_if_needed.side_effect = [RuntimeError("flag unreadable"), 0]
        gateway = AsyncMock()
        gateway.load_tasks.return_value = [sample_task]
        store = TaskStore(gateway, migrator=migrator)

        await store.init()

        assert isinstance(store.error, RuntimeError)
        assert store.is_loading is False
        gateway.load_tasks.assert_not_called()

        await store.retry()

        assert store.error is None
        assert store.status == StoreStatus.READY
        assert store.tasks == [sample_task]

    @pytest.mark.asyncio
    async def test_loading_flag_while_loading(self):
        release = asyncio.Event()

        async def slow_load():
            await release.wait()
            return []

        gateway = AsyncMock()
        gateway.load_tasks.side_effect = slow_load
        store = TaskStore(gateway)

        pending = asyncio.create_task(store.init())
        await asyncio.sleep(0)

        assert store.is_loading is True
        assert store.status == StoreStatus.LOADING

        release.set()
        await pending

        assert store.is_loading is False
        assert store.status == StoreStatus.READY

    @pytest.mark.asyncio
    async def test_dispose(self, store):
        await store.init()
        await seed(store, "a")
        store.error = StorageError("old")

        store.dispose()

        assert store.tasks == []
        assert store.error is None
        assert store.status == StoreStatus.IDLE


class TestMutations:
    """Optimistic mutations that persist successfully."""

    @pytest.mark.asyncio
    async def test_create_persists_whole_collection(self, store, gateway):
        await seed(store, "a", "b")

        assert gateway.saved_titles == [["a"], ["a", "b"]]
        assert [t.title for t in await gateway.load_tasks()] == ["a", "b"]
        assert store.error is None

    @pytest.mark.asyncio
    async def test_create_invalid_title_changes_nothing(self, store, gateway):
        with pytest.raises(ValidationError):
            await store.create_task({"title": "   "})

        assert store.tasks == []
        assert gateway.saved_titles == []
        assert store.error is None

    @pytest.mark.asyncio
    async def test_update_invalid_title_changes_nothing(self, store, gateway):
        (task,) = await seed(store, "a")

        with pytest.raises(ValidationError):
            await store.update_task(task.id, {"title": ""})

        assert store.get_task(task.id) == task
        assert len(gateway.saved_titles) == 1

    @pytest.mark.asyncio
    async def test_update(self, store, gateway):
        (task,) = await seed(store, "a")

        updated = await store.update_task(task.id, {"title": "renamed", "tags": ["x"]})

        assert store.get_task(task.id) == updated
        assert updated.tags == ["x"]
        assert gateway.saved_titles[-1] == ["renamed"]

    @pytest.mark.asyncio
    async def test_delete(self, store, gateway):
        a, b = await seed(store, "a", "b")

        await store.delete_task(a.id)

        assert store.tasks == [b]
        assert gateway.saved_titles[-1] == ["b"]

    @pytest.mark.asyncio
    async def test_lifecycle_actions(self, store):
        (task,) = await seed(store, "a")

        moved = await store.move_task_to_quadrant(task.id, Quadrant.IMPORTANT_URGENT)
        pinned = await store.pin_task_to_today(task.id)
        completed = await store.complete_task(task.id)
        restored = await store.uncomplete_task(task.id)
        unpinned = await store.unpin_task_from_today(task.id)

        assert moved.quadrant == Quadrant.IMPORTANT_URGENT
        assert pinned.is_pinned_to_today is True
        assert completed.completed_at is not None
        assert restored.completed_at is None
        assert unpinned.is_pinned_to_today is False
        assert store.get_task(task.id) == unpinned
        assert task.updated_at < moved.updated_at < pinned.updated_at < completed.updated_at
        assert completed.updated_at < restored.updated_at < unpinned.updated_at

    @pytest.mark.asyncio
    async def test_accepts_string_ids(self, store):
        (task,) = await seed(store, "a")

        pinned = await store.pin_task_to_today(str(task.id))

        assert pinned.id == task.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("task_id", ["not-a-uuid", "550e8400-e29b-41d4-a716-446655440000"])
    async def test_unknown_task(self, store, gateway, task_id):
        await seed(store, "a")

        with pytest.raises(TaskNotFoundError):
            await store.complete_task(task_id)
        with pytest.raises(TaskNotFoundError):
            await store.delete_task(task_id)

        assert len(gateway.saved_titles) == 1

    @pytest.mark.asyncio
    async def test_sequential_updates_persist_last_intent(self, store, gateway):
        (task,) = await seed(store, "a")

        for title in ("b", "c", "d"):
            await store.update_task(task.id, {"title": title})

        assert [t.title for t in await gateway.load_tasks()] == ["d"]


class TestRollback:
    """Failed saves revert only the task the action touched."""

    @pytest.mark.asyncio
    async def test_failed_create_removes_task(self, store, gateway):
        (existing,) = await seed(store, "a")
        gateway.script.append((None, StorageError("disk full")))

        created = await store.create_task({"title": "b"})

        assert created.title == "b"
        assert store.tasks == [existing]
        assert isinstance(store.error, StorageError)

    @pytest.mark.asyncio
    async def test_failed_update_reverts_single_task(self, store, gateway):
        a, b = await seed(store, "a", "b")
        gateway.script.append((None, StorageError("disk full")))

        await store.update_task(a.id, {"title": "changed"})

        assert store.tasks == [a, b]
        assert store.error is not None

    @pytest.mark.asyncio
    async def test_failed_delete_reinserts_at_position(self, store, gateway):
        a, b, c = await seed(store, "a", "b", "c")
        gateway.script.append((None, StorageError("disk full")))

        await store.delete_task(b.id)

        assert store.tasks == [a, b, c]
        assert isinstance(store.error, StorageError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", [
        "pin_task_to_today",
        "unpin_task_from_today",
        "complete_task",
        "uncomplete_task",
    ])
    async def test_failed_transition_reverts(self, store, gateway, action):
        a, b = await seed(store, "a", "b")
        gateway.script.append((None, StorageError("disk full")))

        await getattr(store, action)(a.id)

        assert store.get_task(a.id) == a
        assert store.get_task(b.id) == b
        assert store.error is not None

    @pytest.mark.asyncio
    async def test_failed_move_reverts(self, store, gateway):
        (a,) = await seed(store, "a")
        gateway.script.append((None, StorageError("disk full")))

        await store.move_task_to_quadrant(a.id, Quadrant.NOT_IMPORTANT_URGENT)

        assert store.get_task(a.id).quadrant is None

    @pytest.mark.asyncio
    async def test_unexpected_save_error_rolls_back_and_raises(self, store, gateway):
        a, b = await seed(store, "a", "b")
        gateway.script.append((None, RuntimeError("driver crashed")))

        with pytest.raises(RuntimeError):
            await store.update_task(a.id, {"title": "changed"})

        assert store.tasks == [a, b]
        assert store.error is None

    @pytest.mark.asyncio
    async def test_unexpected_save_error_on_create_removes_task(self, store, gateway):
        (a,) = await seed(store, "a")
        gateway.script.append((None, RuntimeError("driver crashed")))

        with pytest.raises(RuntimeError):
            await store.create_task({"title": "b"})

        assert store.tasks == [a]

    @pytest.mark.asyncio
    async def test_error_stays_until_cleared(self, store, gateway):
        (a,) = await seed(store, "a")
        gateway.script.append((None, StorageError("disk full")))

        await store.pin_task_to_today(a.id)
        await store.pin_task_to_today(a.id)

        assert store.get_task(a.id).is_pinned_to_today is True
        assert store.error is not None

        store.clear_error()
        assert store.error is None

    @pytest.mark.asyncio
    async def test_concurrent_failure_leaves_other_action_applied(self, store, gateway):
        a, b = await seed(store, "a", "b")
        release = asyncio.Event()
        gateway.script.append((release, StorageError("timeout")))

        first = asyncio.create_task(store.update_task(a.id, {"title": "a2"}))
        await asyncio.sleep(0)
        await store.update_task(b.id, {"title": "b2"})

        assert [t.title for t in store.tasks] == ["a2", "b2"]

        release.set()
        await first

        assert [t.title for t in store.tasks] == ["a", "b2"]
        assert store.error is not None

    @pytest.mark.asyncio
    async def test_overlapping_writes_last_save_wins(self, store, gateway):
        (a,) = await seed(store, "a")
        release = asyncio.Event()
        gateway.script.append((release, None))

        first = asyncio.create_task(store.update_task(a.id, {"title": "first"}))
        await asyncio.sleep(0)
        await store.update_task(a.id, {"title": "second"})
        release.set()
        await first

        # Each save wrote the collection as of its own commit.
        assert gateway.saved_titles[-2:] == [["first"], ["second"]]
        assert store.get_task(a.id).title == "second"
        assert [t.title for t in await gateway.load_tasks()] == ["first"]
        assert store.error is None


class TestViews:
    """Derived read views."""

    @pytest.mark.asyncio
    async def test_views(self, store):
        inbox, urgent, pinned, done_first, done_second = await seed(
            store, "inbox", "urgent", "pinned", "done 1", "done 2"
        )
        await store.move_task_to_quadrant(urgent.id, Quadrant.IMPORTANT_URGENT)
        await store.move_task_to_quadrant(pinned.id, Quadrant.IMPORTANT_URGENT)
        await store.pin_task_to_today(pinned.id)
        await store.move_task_to_quadrant(done_first.id, Quadrant.IMPORTANT_URGENT)
        await store.complete_task(done_first.id)
        await store.complete_task(done_second.id)

        assert [t.title for t in store.inbox_tasks()] == ["inbox"]
        assert [t.title for t in store.quadrant_tasks(Quadrant.IMPORTANT_URGENT)] == ["urgent"]
        assert [t.title for t in store.quadrant_tasks(Quadrant.IMPORTANT_URGENT, exclude_pinned=False)] == [
            "urgent", "pinned"
        ]
        assert store.quadrant_tasks(Quadrant.NOT_IMPORTANT_NOT_URGENT) == []
        assert [t.title for t in store.today_tasks()] == ["pinned"]
        assert [t.title for t in store.log_tasks()] == ["done 2", "done 1"]

    @pytest.mark.asyncio
    async def test_completed_pinned_task_leaves_today(self, store):
        (task,) = await seed(store, "a")
        await store.pin_task_to_today(task.id)

        await store.complete_task(task.id)

        assert store.today_tasks() == []
        assert store.inbox_tasks() == []
        assert [t.id for t in store.log_tasks()] == [task.id]

    @pytest.mark.asyncio
    async def test_tasks_property_is_a_copy(self, store):
        await seed(store, "a")

        store.tasks.clear()

        assert len(store.tasks) == 1

    def test_get_task_with_bad_id(self, store):
        assert store.get_task("nope") is None
