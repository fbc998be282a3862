"""
Сервис задач: запись в хранилище + публикация доменного события.

Порядок всегда "commit в хранилище -> publish". Если publish упал после
успешной записи, событие теряется: PublishError уходит вызывающему, изменение
в хранилище остаётся (outbox не используется, это известное ограничение).
"""

from __future__ import annotations

from typing import List, Optional

from tasktracker.config import settings
from tasktracker.messaging.publisher import TaskEventPublisher, get_task_event_publisher
from tasktracker.schemas.task import CreateTaskRequest, TaskItem, UpdateTaskStatusRequest
from tasktracker.storage.repositories import TaskRepository
from tasktracker.utility.logging_client import logger

COMPONENT = "task_service"


class TaskService:
    def __init__(
        self,
        repository: TaskRepository,
        publisher: Optional[TaskEventPublisher] = None,
    ) -> None:
        self._repository = repository
        self._publisher = publisher

    @property
    def publisher(self) -> TaskEventPublisher:
        if self._publisher is None:
            self._publisher = get_task_event_publisher()
        return self._publisher

    async def list_tasks(self) -> List[TaskItem]:
        return await self._repository.list()

    async def get_task(self, task_id: int) -> Optional[TaskItem]:
        return await self._repository.get(task_id)

    async def create_task(self, request: CreateTaskRequest) -> TaskItem:
        """
        Создать задачу и опубликовать TaskCreated.

        Raises:
            PublishError: задача сохранена, но событие не принято брокером
        """
        task = await self._repository.add(request)

        if settings.queue.enabled:
            await self.publisher.publish_task_created(
                task_id=task.id,
                name=task.name,
                description=task.description,
                assigned_to=task.assigned_to,
            )
        else:
            logger.debug(f"Публикация событий выключена, TaskCreated({task.id}) пропущен", component=COMPONENT)

        logger.info(f"Task created: {task.id}", component=COMPONENT)
        return task

    async def update_task_status(self, task_id: int, request: UpdateTaskStatusRequest) -> Optional[TaskItem]:
        """
        Сменить статус задачи и опубликовать TaskUpdated.

        Returns:
            Обновлённая задача или None если задачи нет (событие не публикуется)

        Raises:
            PublishError: статус сохранён, но событие не принято брокером
        """
        result = await self._repository.update_status(task_id, request.new_status)
        if result is None:
            return None
        old_status, task = result

        if settings.queue.enabled:
            await self.publisher.publish_task_updated(
                task_id=task.id,
                old_status=old_status,
                new_status=task.status,
            )
        else:
            logger.debug(f"Публикация событий выключена, TaskUpdated({task.id}) пропущен", component=COMPONENT)

        logger.info(f"Task updated: {task.id}, Status: {task.status.name}", component=COMPONENT)
        return task
