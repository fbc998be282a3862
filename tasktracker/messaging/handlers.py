"""
Обработчики событий задач.

Побочные эффекты уже выполнены синхронно в TaskService, поэтому обработчики
только фиксируют событие в логах. Обработчик может быть вызван повторно для
того же сообщения (at-least-once), поэтому он должен оставаться идемпотентным.
"""

from __future__ import annotations

import asyncio

from tasktracker.messaging.models import TaskCreatedMessage, TaskUpdatedMessage
from tasktracker.utility.logging_client import logger


async def handle_task_created(msg: TaskCreatedMessage, cancel_event: asyncio.Event) -> None:
    """Зафиксировать создание задачи."""
    logger.structured(
        "info",
        "task_created_processed",
        component="handlers",
        message_id=str(msg.message_id),
        task_id=msg.task_id,
        assigned_to=msg.assigned_to,
    )


async def handle_task_updated(msg: TaskUpdatedMessage, cancel_event: asyncio.Event) -> None:
    """Зафиксировать смену статуса задачи."""
    logger.structured(
        "info",
        "task_updated_processed",
        component="handlers",
        message_id=str(msg.message_id),
        task_id=msg.task_id,
        old_status=msg.old_status.name,
        new_status=msg.new_status.name,
    )
