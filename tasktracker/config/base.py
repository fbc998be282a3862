"""
Базовые настройки приложения.

Содержит общие настройки, которые не относятся к конкретным сервисам.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from tasktracker.config.config_loader import BaseSettingsWithLoader


class AppBaseSettings(BaseSettingsWithLoader):
    """Основные настройки приложения."""

    yaml_group = "app"

    app_name: str = Field(default="task-tracker", description="Название приложения")
    app_version: str = Field(default="0.1.0", description="Версия приложения")
    environment: str = Field(default="dev", description="Окружение (dev/staging/prod)")

    # Остановка worker'а
    drain_timeout: Optional[float] = Field(
        default=None,
        ge=0,
        description="Сколько ждать обработчики при остановке перед их прерыванием (сек, None = без ограничения)",
    )

    model_config = SettingsConfigDict(env_prefix="APP_")


app_base_settings = AppBaseSettings.get_instance()


__all__ = [
    "AppBaseSettings",
    "app_base_settings",
]
