"""
Публикация доменных событий задач в RabbitMQ.

Этот модуль нужен, чтобы TaskService мог отправлять события после записи в
хранилище (а обработка шла в worker процессе).
"""

from __future__ import annotations

from typing import Optional

from tasktracker.config import settings
from tasktracker.config.services import QueueSettings
from tasktracker.messaging.broker import RabbitConnectionManager, get_connection_manager
from tasktracker.messaging.models import TaskCreatedMessage, TaskUpdatedMessage
from tasktracker.schemas.task import TaskStatus


class TaskEventPublisher:
    """
    Лёгкий publisher событий задач.

    Примечание:
    - Подключение создаётся менеджером при первом publish.
    - В рамках процесса держим один менеджер соединения, чтобы не создавать
      TCP-соединения для каждого publish.
    - PublishError пробрасывается вызывающему, повторов нет.
    """

    def __init__(
        self,
        connection_manager: Optional[RabbitConnectionManager] = None,
        config: Optional[QueueSettings] = None,
    ) -> None:
        self._bus = connection_manager or get_connection_manager()
        self._config = config or self._bus.config

    async def publish_task_created(
        self,
        *,
        task_id: int,
        name: str,
        description: str = "",
        assigned_to: Optional[str] = None,
    ) -> TaskCreatedMessage:
        msg = TaskCreatedMessage(
            task_id=task_id,
            name=name,
            description=description,
            assigned_to=assigned_to,
        )
        await self._bus.publish(self._config.task_created_queue, msg)
        return msg

    async def publish_task_updated(
        self,
        *,
        task_id: int,
        old_status: TaskStatus,
        new_status: TaskStatus,
    ) -> TaskUpdatedMessage:
        msg = TaskUpdatedMessage(task_id=task_id, old_status=old_status, new_status=new_status)
        await self._bus.publish(self._config.task_updated_queue, msg)
        return msg


_publisher: Optional[TaskEventPublisher] = None


def get_task_event_publisher() -> TaskEventPublisher:
    global _publisher
    if _publisher is None:
        _publisher = TaskEventPublisher(config=settings.queue)
    return _publisher
