"""
Корневая конфигурация приложения.

Settings: лёгкий facade с @property, который всегда возвращает
singleton-экземпляры через get_instance(). Тесты могут сбросить кеш через
ConfigLoader.clear_cache() и получить свежие значения.
"""

from tasktracker.config.base import AppBaseSettings, app_base_settings
from tasktracker.config.services import (
    LogSettings,
    QueueSettings,
    log_settings,
    queue_settings,
)


class Settings:
    """Facade around singleton settings groups."""

    @property
    def app(self) -> AppBaseSettings:
        return AppBaseSettings.get_instance()

    @property
    def queue(self) -> QueueSettings:
        return QueueSettings.get_instance()

    @property
    def logging(self) -> LogSettings:
        return LogSettings.get_instance()


settings = Settings()


__all__ = [
    "Settings",
    "settings",
    "AppBaseSettings",
    "app_base_settings",
    "QueueSettings",
    "queue_settings",
    "LogSettings",
    "log_settings",
]
