"""
Event worker (RabbitMQ consumer).

Запуск:
    python -m tasktracker.messaging.worker
"""

from __future__ import annotations

import asyncio
import sys

from tasktracker.messaging.broker import RabbitConnectionManager
from tasktracker.messaging.processor import EventProcessor
from tasktracker.services.shutdown_manager import ShutdownManager
from tasktracker.shared.exceptions import BrokerConnectionError, SubscriptionError
from tasktracker.utility.logging_client import logger

COMPONENT = "worker"


async def run_worker(
    connection_manager: RabbitConnectionManager | None = None,
    shutdown_manager: ShutdownManager | None = None,
    *,
    install_signals: bool = True,
) -> int:
    """
    Поднять соединение, запустить процессор и ждать сигнала остановки.

    Returns:
        Код выхода процесса (0 - штатная остановка, 1 - брокер недоступен/ошибка подписки)
    """
    bus = connection_manager or RabbitConnectionManager()
    shutdown = shutdown_manager or ShutdownManager()
    processor = EventProcessor(bus)

    try:
        await bus.open()
    except BrokerConnectionError as e:
        logger.error(f"Worker не запущен: {e}", component=COMPONENT)
        await bus.close()
        return 1

    # Порядок важен: сначала дожидаемся обработчиков, потом закрываем канал
    shutdown.register_cleanup(processor.stop)
    shutdown.register_cleanup(bus.close)

    if install_signals:
        shutdown.install_signal_handlers()

    try:
        await processor.start()
    except SubscriptionError as e:
        logger.error(f"Worker не запущен: {e}", component=COMPONENT)
        await shutdown.initiate_shutdown()
        return 1

    logger.info("Worker запущен, ожидание сообщений", component=COMPONENT)
    await shutdown.wait()
    return 0


def main() -> None:
    # Важно: это long-lived процесс (воркер).
    sys.exit(asyncio.run(run_worker()))


if __name__ == "__main__":
    main()
