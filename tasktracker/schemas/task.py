"""
Схемы задач трекера.

Запись задачи и payload'ы операций "создать задачу" / "сменить статус".
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from tasktracker.config.constants import (
    TASK_ASSIGNEE_MAX_LENGTH,
    TASK_DESCRIPTION_MAX_LENGTH,
    TASK_NAME_MAX_LENGTH,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(IntEnum):
    """Статус задачи. На проводе передаётся целым числом."""

    NOT_STARTED = 1
    IN_PROGRESS = 2
    COMPLETED = 3

    @classmethod
    def parse(cls, value: Any) -> Any:
        """
        Принимает имя статуса в любом регистре/стиле ("NotStarted", "not_started").

        Значения, которые не похожи на имя, возвращаются как есть, дальше их
        проверяет pydantic.
        """
        if isinstance(value, str) and not value.isdigit():
            normalized = value.replace("_", "").replace("-", "").lower()
            for member in cls:
                if member.name.replace("_", "").lower() == normalized:
                    return member
        return value


class TaskItem(BaseModel):
    """Запись задачи в хранилище."""

    id: int = Field(..., ge=1, description="Идентификатор задачи")
    name: str = Field(..., max_length=TASK_NAME_MAX_LENGTH, description="Название")
    description: str = Field(default="", max_length=TASK_DESCRIPTION_MAX_LENGTH, description="Описание")
    status: TaskStatus = Field(default=TaskStatus.NOT_STARTED, description="Текущий статус")
    assigned_to: Optional[str] = Field(
        default=None, max_length=TASK_ASSIGNEE_MAX_LENGTH, description="Исполнитель"
    )
    created_at: datetime = Field(default_factory=utc_now, description="Время создания (UTC)")
    updated_at: Optional[datetime] = Field(default=None, description="Время последнего изменения (UTC)")


class CreateTaskRequest(BaseModel):
    """Запрос на создание задачи."""

    name: str = Field(..., min_length=1, max_length=TASK_NAME_MAX_LENGTH, description="Название")
    description: str = Field(default="", max_length=TASK_DESCRIPTION_MAX_LENGTH, description="Описание")
    assigned_to: Optional[str] = Field(
        default=None, max_length=TASK_ASSIGNEE_MAX_LENGTH, description="Исполнитель"
    )


class UpdateTaskStatusRequest(BaseModel):
    """Запрос на смену статуса задачи."""

    new_status: TaskStatus = Field(..., description="Новый статус")

    @field_validator("new_status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> Any:
        return TaskStatus.parse(value)
