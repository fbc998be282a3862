"""
In-memory хранилище задач.

Id присваиваются последовательно с 1. Записи отдаются копиями, чтобы
вызывающий код не менял состояние хранилища в обход репозитория.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

from tasktracker.schemas.task import CreateTaskRequest, TaskItem, TaskStatus, utc_now
from tasktracker.storage.repositories import TaskRepository


class InMemoryTaskRepository(TaskRepository):
    def __init__(self) -> None:
        self._tasks: Dict[int, TaskItem] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def add(self, request: CreateTaskRequest) -> TaskItem:
        async with self._lock:
            task = TaskItem(
                id=self._next_id,
                name=request.name,
                description=request.description,
                assigned_to=request.assigned_to,
                status=TaskStatus.NOT_STARTED,
                created_at=utc_now(),
            )
            self._tasks[task.id] = task
            self._next_id += 1
            return task.model_copy()

    async def get(self, task_id: int) -> Optional[TaskItem]:
        task = self._tasks.get(task_id)
        return task.model_copy() if task else None

    async def list(self) -> List[TaskItem]:
        return [self._tasks[key].model_copy() for key in sorted(self._tasks)]

    async def update_status(
        self, task_id: int, new_status: TaskStatus
    ) -> Optional[Tuple[TaskStatus, TaskItem]]:
        async with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            old_status = task.status
            updated = task.model_copy(update={"status": new_status, "updated_at": utc_now()})
            self._tasks[task_id] = updated
            return old_status, updated.model_copy()
