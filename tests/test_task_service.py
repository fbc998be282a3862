"""
Тесты TaskService и in-memory хранилища.

Тестирует:
- Создание задачи -> TaskCreated
- Смену статуса -> TaskUpdated со старым и новым статусом
- Порядок "запись -> публикация" и потерю события при PublishError
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tasktracker.config.services import QueueSettings
from tasktracker.messaging.publisher import TaskEventPublisher
from tasktracker.schemas.task import CreateTaskRequest, TaskStatus, UpdateTaskStatusRequest
from tasktracker.services.task_service import TaskService
from tasktracker.shared.exceptions import PublishError
from tasktracker.storage.repositories import InMemoryTaskRepository


@pytest.fixture
def bus(queue_config):
    manager = MagicMock()
    manager.config = queue_config
    manager.publish = AsyncMock()
    return manager


@pytest.fixture
def repository():
    return InMemoryTaskRepository()


@pytest.fixture
def service(repository, bus):
    return TaskService(repository, TaskEventPublisher(bus))


@pytest.fixture(autouse=True)
def publishing_enabled():
    with patch.object(QueueSettings, "get_instance", return_value=QueueSettings(enabled=True)):
        yield


class TestInMemoryTaskRepository:
    """Тесты хранилища."""

    @pytest.mark.asyncio
    async def test_ids_are_sequential(self, repository):
        """Id выдаются последовательно с 1."""
        first = await repository.add(CreateTaskRequest(name="A"))
        second = await repository.add(CreateTaskRequest(name="B"))

        assert (first.id, second.id) == (1, 2)
        assert first.status is TaskStatus.NOT_STARTED

    @pytest.mark.asyncio
    async def test_update_status_returns_old_status(self, repository):
        """update_status возвращает прежний статус и обновлённую запись."""
        await repository.add(CreateTaskRequest(name="A"))

        old_status, task = await repository.update_status(1, TaskStatus.IN_PROGRESS)

        assert old_status is TaskStatus.NOT_STARTED
        assert task.status is TaskStatus.IN_PROGRESS
        assert task.updated_at is not None

    @pytest.mark.asyncio
    async def test_update_missing_task(self, repository):
        """Нет задачи -> None."""
        assert await repository.update_status(99, TaskStatus.COMPLETED) is None

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, repository):
        """Изменение возвращённой записи не меняет хранилище."""
        task = await repository.add(CreateTaskRequest(name="A"))
        task.name = "changed"

        stored = await repository.get(1)

        assert stored.name == "A"


class TestCreateTask:
    """Тесты создания задачи."""

    @pytest.mark.asyncio
    async def test_create_publishes_task_created(self, service, bus):
        """Создание "Ship report" публикует TaskCreated с id из хранилища."""
        task = await service.create_task(CreateTaskRequest(name="Ship report", description=""))

        bus.publish.assert_awaited_once()
        queue_name, msg = bus.publish.await_args.args
        assert queue_name == "test-task-created"
        assert msg.task_id == task.id
        assert msg.name == "Ship report"
        assert msg.description == ""
        assert msg.assigned_to is None

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_stored_task(self, service, bus, repository):
        """PublishError уходит вызывающему, задача остаётся в хранилище."""
        bus.publish = AsyncMock(side_effect=PublishError("broker down", queue_name="test-task-created"))

        with pytest.raises(PublishError):
            await service.create_task(CreateTaskRequest(name="Ship report"))

        stored = await repository.list()
        assert [t.name for t in stored] == ["Ship report"]

    @pytest.mark.asyncio
    async def test_publishing_disabled(self, service, bus):
        """enabled=False: задача создаётся без события."""
        with patch.object(QueueSettings, "get_instance", return_value=QueueSettings(enabled=False)):
            task = await service.create_task(CreateTaskRequest(name="Quiet"))

        assert task.id == 1
        bus.publish.assert_not_awaited()


class TestUpdateTaskStatus:
    """Тесты смены статуса."""

    @pytest.mark.asyncio
    async def test_update_publishes_old_and_new_status(self, service, bus):
        """NotStarted -> Completed публикует TaskUpdated(1, NotStarted, Completed)."""
        await service.create_task(CreateTaskRequest(name="Ship report"))
        bus.publish.reset_mock()

        task = await service.update_task_status(1, UpdateTaskStatusRequest(new_status=TaskStatus.COMPLETED))

        assert task.status is TaskStatus.COMPLETED
        queue_name, msg = bus.publish.await_args.args
        assert queue_name == "test-task-updated"
        assert (msg.task_id, msg.old_status, msg.new_status) == (
            1,
            TaskStatus.NOT_STARTED,
            TaskStatus.COMPLETED,
        )

    @pytest.mark.asyncio
    async def test_status_by_name(self, service, bus):
        """Статус в запросе можно передать именем."""
        await service.create_task(CreateTaskRequest(name="A"))

        task = await service.update_task_status(1, UpdateTaskStatusRequest(new_status="InProgress"))

        assert task.status is TaskStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_missing_task_publishes_nothing(self, service, bus):
        """Нет задачи -> None, событие не публикуется."""
        result = await service.update_task_status(42, UpdateTaskStatusRequest(new_status=TaskStatus.COMPLETED))

        assert result is None
        bus.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_new_status(self, service, bus, repository):
        """Статус сохранён, даже если событие не опубликовано."""
        await service.create_task(CreateTaskRequest(name="A"))
        bus.publish = AsyncMock(side_effect=PublishError("nack", queue_name="test-task-updated"))

        with pytest.raises(PublishError):
            await service.update_task_status(1, UpdateTaskStatusRequest(new_status=TaskStatus.IN_PROGRESS))

        stored = await repository.get(1)
        assert stored.status is TaskStatus.IN_PROGRESS
