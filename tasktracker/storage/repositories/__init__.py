"""
Repository pattern для хранилища задач.

Message bus обращается к хранилищу только через две операции:
- "persist new task"      -> TaskRepository.add
- "persist status change" -> TaskRepository.update_status

Архитектура:
- TaskRepository: абстрактный базовый класс
- InMemoryTaskRepository: реализация в памяти процесса (dev/тесты)
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from tasktracker.schemas.task import CreateTaskRequest, TaskItem, TaskStatus


class TaskRepository(ABC):
    """Базовый класс хранилища задач."""

    @abstractmethod
    async def add(self, request: CreateTaskRequest) -> TaskItem:
        """
        Сохранить новую задачу (статус NOT_STARTED).

        Returns:
            Сохранённая запись с присвоенным id
        """

    @abstractmethod
    async def get(self, task_id: int) -> Optional[TaskItem]:
        """Получить задачу по id или None."""

    @abstractmethod
    async def list(self) -> List[TaskItem]:
        """Все задачи в порядке id."""

    @abstractmethod
    async def update_status(
        self, task_id: int, new_status: TaskStatus
    ) -> Optional[Tuple[TaskStatus, TaskItem]]:
        """
        Сохранить смену статуса.

        Returns:
            (старый статус, обновлённая запись) или None если задачи нет
        """


from tasktracker.storage.repositories.memory import InMemoryTaskRepository

__all__ = [
    "TaskRepository",
    "InMemoryTaskRepository",
]
