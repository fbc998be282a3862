"""Task tracker: доменные события задач поверх RabbitMQ."""

__version__ = "0.1.0"
