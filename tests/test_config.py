"""
Тесты конфигурации: YAML + environment.
"""

import pytest

from tasktracker.config.base import AppBaseSettings
from tasktracker.config.config_loader import ConfigLoader
from tasktracker.config.services import QueueSettings
from tasktracker.shared.exceptions import ConfigurationError


@pytest.fixture
def yaml_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(ConfigLoader, "YAML_CONFIG_DIR", tmp_path)
    monkeypatch.setattr(ConfigLoader, "ENVIRONMENT", "test")
    ConfigLoader.clear_cache()
    yield tmp_path
    ConfigLoader.clear_cache()


class TestQueueSettings:
    """Тесты настроек RabbitMQ."""

    def test_defaults(self, yaml_dir):
        """Значения по умолчанию без YAML."""
        cfg = QueueSettings()

        assert cfg.retry_count == 5
        assert cfg.retry_interval_ms == 1000
        assert cfg.retry_interval == 1.0
        assert cfg.enabled is True

    def test_yaml_group(self, yaml_dir):
        """Значения читаются из группы queue."""
        (yaml_dir / "settings.yaml").write_text(
            "queue:\n  host: rabbit.internal\n  task_created_queue: tc\n  retry_count: 3\n",
            encoding="utf-8",
        )

        cfg = QueueSettings()

        assert cfg.host == "rabbit.internal"
        assert cfg.task_created_queue == "tc"
        assert cfg.retry_count == 3

    def test_environment_file_preferred(self, yaml_dir):
        """settings.<env>.yaml важнее базового файла."""
        (yaml_dir / "settings.yaml").write_text("queue:\n  host: base\n", encoding="utf-8")
        (yaml_dir / "settings.test.yaml").write_text("queue:\n  host: env-specific\n", encoding="utf-8")

        assert QueueSettings().host == "env-specific"

    def test_env_overrides_yaml(self, yaml_dir, monkeypatch):
        """Переменные окружения важнее YAML."""
        (yaml_dir / "settings.yaml").write_text("queue:\n  host: from-yaml\n", encoding="utf-8")
        monkeypatch.setenv("RABBITMQ_HOST", "from-env")
        monkeypatch.setenv("RABBITMQ_RETRY_INTERVAL_MS", "250")

        cfg = QueueSettings()

        assert cfg.host == "from-env"
        assert cfg.retry_interval == 0.25

    def test_invalid_retry_count(self, yaml_dir):
        """retry_count < 1 отвергается."""
        with pytest.raises(ValueError):
            QueueSettings(retry_count=0)

    def test_broken_yaml(self, yaml_dir):
        """Неразбираемый YAML -> ConfigurationError."""
        (yaml_dir / "settings.yaml").write_text("queue: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            QueueSettings()

    def test_urls(self, yaml_dir):
        """amqp_url экранирует credentials и vhost, safe_url скрывает пароль."""
        cfg = QueueSettings(username="u@x", password="p/w", host="h", port=5673, vhost="/")

        assert cfg.amqp_url == "amqp://u%40x:p%2Fw@h:5673/%2F"
        assert cfg.safe_url == "amqp://u@x:***@h:5673/%2F"

    def test_singleton_and_cache_reset(self, yaml_dir):
        """get_instance() кешируется до clear_cache()."""
        first = QueueSettings.get_instance()

        assert QueueSettings.get_instance() is first

        ConfigLoader.clear_cache()
        assert QueueSettings.get_instance() is not first


class TestAppSettings:
    """Тесты общих настроек."""

    def test_drain_timeout_unbounded_by_default(self, yaml_dir):
        """По умолчанию обработчики при остановке не прерываются."""
        assert AppBaseSettings().drain_timeout is None

    def test_drain_timeout_from_env(self, yaml_dir, monkeypatch):
        """Ограничение включается явно."""
        monkeypatch.setenv("APP_DRAIN_TIMEOUT", "15")

        assert AppBaseSettings().drain_timeout == 15.0
