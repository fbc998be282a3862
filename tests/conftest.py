"""
Общие фикстуры: фейковые объекты aio-pika без реального брокера.
"""

import os

# Файловые логи в тестах не нужны
os.environ.setdefault("LOG_FILE_ENABLED", "false")

from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from tasktracker.config.services import QueueSettings


class FakeIncomingMessage:
    """Входящее сообщение: записывает ack/nack."""

    def __init__(
        self,
        body: bytes,
        delivery_tag: int = 1,
        redelivered: bool = False,
        message_id: Optional[str] = None,
    ):
        self.body = body
        self.delivery_tag = delivery_tag
        self.redelivered = redelivered
        self.message_id = message_id
        self.ack = AsyncMock()
        self.nack = AsyncMock()


class FakeQueue:
    """
    Очередь с простейшей семантикой брокера: nack(requeue=True) -> повторная доставка.
    """

    def __init__(self, name: str):
        self.name = name
        self.callback = None
        self.cancelled: List[str] = []
        self.deliveries = 0

    async def consume(self, callback, no_ack: bool = False):
        assert no_ack is False
        self.callback = callback
        return f"ctag-{self.name}"

    async def cancel(self, consumer_tag: str):
        self.cancelled.append(consumer_tag)

    async def deliver(self, body: bytes, max_deliveries: int = 5) -> FakeIncomingMessage:
        """Доставлять, пока сообщение возвращается в очередь (не более max_deliveries раз)."""
        redelivered = False
        message = None
        for tag in range(1, max_deliveries + 1):
            message = FakeIncomingMessage(body, delivery_tag=tag, redelivered=redelivered)
            self.deliveries += 1
            await self.callback(message)
            requeued = any(
                call.kwargs.get("requeue", True) for call in message.nack.await_args_list
            )
            if not requeued:
                break
            redelivered = True
        return message


def make_channel(queues=None):
    queues = queues if queues is not None else {}

    async def declare_queue(name, **kwargs):
        return queues.setdefault(name, FakeQueue(name))

    channel = MagicMock()
    channel.is_closed = False
    channel.declare_queue = AsyncMock(side_effect=declare_queue)
    channel.set_qos = AsyncMock()
    channel.default_exchange.publish = AsyncMock()
    channel.close = AsyncMock()
    channel.queues = queues
    return channel


def make_connection(channel):
    connection = MagicMock()
    connection.is_closed = False
    connection.channel = AsyncMock(return_value=channel)
    connection.close = AsyncMock()
    return connection


@pytest.fixture
def queue_config() -> QueueSettings:
    return QueueSettings(
        host="rabbit.local",
        port=5672,
        username="tracker",
        password="secret",
        vhost="/",
        task_created_queue="test-task-created",
        task_updated_queue="test-task-updated",
        retry_count=5,
        retry_interval_ms=1000,
    )


@pytest.fixture
def channel():
    return make_channel()


@pytest.fixture
def connection(channel):
    return make_connection(channel)
