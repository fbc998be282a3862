"""
Конфигурация приложения.

Модуль содержит:
- Константы (constants.py)
- Загрузчик конфигурации (config_loader.py)
- Централизованные настройки (settings.py)

Пример использования:
    from tasktracker.config import settings

    print(settings.queue.task_created_queue)
    print(settings.queue.retry_count)
"""

# Импорт settings должен быть первым
from tasktracker.config.settings import settings

from tasktracker.config.constants import (
    CONTENT_ENCODING,
    CONTENT_TYPE_JSON,
    PREFETCH_COUNT,
    PREFETCH_SIZE,
    TASK_ASSIGNEE_MAX_LENGTH,
    TASK_DESCRIPTION_MAX_LENGTH,
    TASK_NAME_MAX_LENGTH,
)

__all__ = [
    "settings",
    # RabbitMQ
    "PREFETCH_COUNT",
    "PREFETCH_SIZE",
    "CONTENT_TYPE_JSON",
    "CONTENT_ENCODING",
    # Tasks
    "TASK_NAME_MAX_LENGTH",
    "TASK_DESCRIPTION_MAX_LENGTH",
    "TASK_ASSIGNEE_MAX_LENGTH",
]
