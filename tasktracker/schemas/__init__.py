"""
Pydantic schemas for the task tracker.

    from tasktracker.schemas import CreateTaskRequest, TaskStatus
"""

from tasktracker.schemas.task import (
    CreateTaskRequest,
    TaskItem,
    TaskStatus,
    UpdateTaskStatusRequest,
    utc_now,
)

__all__ = [
    "CreateTaskRequest",
    "TaskItem",
    "TaskStatus",
    "UpdateTaskStatusRequest",
    "utc_now",
]
