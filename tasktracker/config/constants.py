"""
Константы приложения.

Параметры протокола, которые не должны меняться через конфигурацию.
"""

from typing import Final

# =======================
# RabbitMQ
# =======================

PREFETCH_COUNT: Final[int] = 1
"""Не более одного неподтверждённого сообщения на consumer (backpressure)"""

PREFETCH_SIZE: Final[int] = 0
"""Без ограничения по размеру (0 = не используется)"""

CONTENT_TYPE_JSON: Final[str] = "application/json"
"""Content-type тела сообщений"""

CONTENT_ENCODING: Final[str] = "utf-8"

# =======================
# Tasks
# =======================

TASK_NAME_MAX_LENGTH: Final[int] = 100
TASK_DESCRIPTION_MAX_LENGTH: Final[int] = 500
TASK_ASSIGNEE_MAX_LENGTH: Final[int] = 100
