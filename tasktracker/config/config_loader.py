"""
Загрузчик конфигурации.

Источники (в порядке приоритета):
1. Аргументы конструктора
2. Environment variables
3. .env файл
4. YAML файлы в каталоге `config/`
5. Значения по умолчанию

Пример использования:
    from tasktracker.config.services import QueueSettings

    queue = QueueSettings.get_instance()
    print(queue.host)  # Загружено из Env/YAML
"""

import os
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional, Tuple, Type, TypeVar

import yaml
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from tasktracker.shared.exceptions import ConfigurationError

T = TypeVar("T", bound=BaseSettings)


class ConfigLoader:
    """Загрузка YAML конфигурации с кешированием."""

    _cache: Dict[str, Any] = {}

    YAML_CONFIG_DIR = Path("config")

    # Текущее окружение (dev, staging, prod)
    ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")

    @classmethod
    def load_from_yaml(cls, filename: str, group: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Загрузка конфигурации из YAML файла.

        Сначала ищется файл для текущего окружения (например `settings.dev.yaml`),
        затем базовый.

        Args:
            filename: Имя YAML файла
            group: Группа конфигурации (ключ верхнего уровня)

        Returns:
            Dict с конфигурацией или None если файла/группы нет

        Raises:
            ConfigurationError: файл существует, но не разбирается
        """
        cache_key = f"yaml:{filename}:{group}"
        if cache_key in cls._cache:
            return cls._cache[cache_key]

        env_filename = filename.replace(".yaml", f".{cls.ENVIRONMENT}.yaml")
        yaml_path = cls.YAML_CONFIG_DIR / env_filename

        if not yaml_path.exists():
            yaml_path = cls.YAML_CONFIG_DIR / filename

        if not yaml_path.exists():
            return None

        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Не удалось разобрать {yaml_path}",
                details={"path": str(yaml_path)},
                original_error=e,
            ) from e

        result = data.get(group) if group else data
        cls._cache[cache_key] = result
        return result

    @classmethod
    def clear_cache(cls) -> None:
        """Очистить кеш конфигураций (включая singleton'ы настроек)."""
        cls._cache.clear()


class YamlGroupSettingsSource(PydanticBaseSettingsSource):
    """Источник настроек pydantic-settings: группа из YAML файла."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        # Значения отдаются целиком через __call__
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        settings_cls = self.settings_cls
        group = getattr(settings_cls, "yaml_group", None)
        filename = getattr(settings_cls, "yaml_file", None) or "settings.yaml"
        if not group and not getattr(settings_cls, "yaml_file", None):
            return {}
        return ConfigLoader.load_from_yaml(filename, group) or {}


class BaseSettingsWithLoader(BaseSettings):
    """
    Базовый класс для настроек с поддержкой YAML.

    Пример:
        class QueueSettings(BaseSettingsWithLoader):
            yaml_group = "queue"

            host: str = "localhost"
    """

    # Группа в YAML файле (переопределяется в наследниках)
    yaml_group: ClassVar[Optional[str]] = None

    # Имя YAML файла (по умолчанию settings.yaml)
    yaml_file: ClassVar[Optional[str]] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlGroupSettingsSource(settings_cls),
            file_secret_settings,
        )

    @classmethod
    def get_instance(cls: Type[T]) -> T:
        """Получить singleton экземпляр настроек."""
        cache_key = f"settings:{cls.__name__}"
        if cache_key not in ConfigLoader._cache:
            ConfigLoader._cache[cache_key] = cls()
        return ConfigLoader._cache[cache_key]
