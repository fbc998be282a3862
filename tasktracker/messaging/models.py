"""
Pydantic-модели доменных событий для RabbitMQ.

Конверт (envelope) = идентичность (MessageId, Timestamp) + payload одного
варианта. Тип варианта на проводе не передаётся: он определяется очередью.
Ключи JSON в PascalCase.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tasktracker.schemas.task import TaskStatus, utc_now


class BaseMessage(BaseModel):
    """Базовый конверт события. Неизменяем после создания."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    message_id: UUID = Field(default_factory=uuid4, alias="MessageId", description="Уникальный ID сообщения")
    timestamp: datetime = Field(default_factory=utc_now, alias="Timestamp", description="Время создания (UTC)")

    @field_validator("timestamp")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class TaskCreatedMessage(BaseMessage):
    """Событие: задача создана."""

    task_id: int = Field(..., alias="TaskId", description="ID задачи в хранилище")
    name: str = Field(..., alias="Name", description="Название задачи")
    description: str = Field(default="", alias="Description", description="Описание")
    assigned_to: Optional[str] = Field(default=None, alias="AssignedTo", description="Исполнитель")


class TaskUpdatedMessage(BaseMessage):
    """Событие: статус задачи изменён."""

    task_id: int = Field(..., alias="TaskId", description="ID задачи в хранилище")
    old_status: TaskStatus = Field(..., alias="OldStatus", description="Статус до изменения")
    new_status: TaskStatus = Field(..., alias="NewStatus", description="Статус после изменения")

    @field_validator("old_status", "new_status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> Any:
        return TaskStatus.parse(value)
