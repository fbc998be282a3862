"""
Настройки внутренних сервисов.

Содержит конфигурацию для:
- RabbitMQ (очереди доменных событий задач)
- Логирования
"""

from typing import Optional
from urllib.parse import quote

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from tasktracker.config.config_loader import BaseSettingsWithLoader


class QueueSettings(BaseSettingsWithLoader):
    """Настройки RabbitMQ (брокер событий задач)."""

    yaml_group = "queue"

    # Подключение
    host: str = Field(default="localhost", description="Хост RabbitMQ")
    port: int = Field(default=5672, description="Порт AMQP")
    username: str = Field(default="guest", description="Пользователь")
    password: str = Field(default="guest", description="Пароль")
    vhost: str = Field(default="/", description="Virtual host")
    connect_timeout: float = Field(default=10.0, gt=0, description="Таймаут одной попытки подключения (сек)")

    # Очереди
    task_created_queue: str = Field(default="task-created", description="Очередь событий создания задач")
    task_updated_queue: str = Field(default="task-updated", description="Очередь событий смены статуса")

    # Повторы при установке соединения
    retry_count: int = Field(default=5, ge=1, description="Количество попыток подключения")
    retry_interval_ms: int = Field(
        default=1000,
        ge=0,
        description="Базовая задержка экспоненциального backoff (мс)",
    )

    # Публикация событий из TaskService
    enabled: bool = Field(default=True, description="Публиковать доменные события в RabbitMQ")

    @property
    def retry_interval(self) -> float:
        """Базовая задержка backoff в секундах."""
        return self.retry_interval_ms / 1000.0

    @property
    def amqp_url(self) -> str:
        """AMQP URL для подключения."""
        vhost = quote(self.vhost, safe="")
        return f"amqp://{quote(self.username, safe='')}:{quote(self.password, safe='')}@{self.host}:{self.port}/{vhost}"

    @property
    def safe_url(self) -> str:
        """AMQP URL без пароля (для логов)."""
        vhost = quote(self.vhost, safe="")
        return f"amqp://{self.username}:***@{self.host}:{self.port}/{vhost}"

    model_config = SettingsConfigDict(env_prefix="RABBITMQ_")


class LogSettings(BaseSettingsWithLoader):
    """Настройки логирования."""

    yaml_group = "logging"

    level: str = Field(default="INFO", description="Уровень логирования")
    file_enabled: bool = Field(default=True, description="Логирование в файл")
    file_path: str = Field(default="./logs", description="Каталог файлов логов")
    rich_tracebacks: bool = Field(default=True, description="Подробные traceback'и в консоли")
    console_width: Optional[int] = Field(default=None, description="Ширина консоли rich (None = авто)")

    model_config = SettingsConfigDict(env_prefix="LOG_")


queue_settings = QueueSettings.get_instance()
log_settings = LogSettings.get_instance()


__all__ = [
    "QueueSettings",
    "LogSettings",
    "queue_settings",
    "log_settings",
]
