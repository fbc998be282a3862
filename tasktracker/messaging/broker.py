"""
Менеджер соединения с RabbitMQ (aio-pika).

Единственный владелец соединения и канала на весь процесс:
- open(): подключение с экспоненциальным backoff (tenacity)
- publish(): durable-очередь + persistent-сообщение + publisher confirm
- subscribe(): prefetch=1, ручные ack/nack по delivery tag
- close(): идемпотентное освобождение, ошибки только логируются

Важно:
- Создание `RabbitConnectionManager(...)` не подключается к RabbitMQ сразу:
  соединение устанавливается явным `open()` или при первом publish/subscribe.
- Все операции с каналом (declare/qos/publish/consume/ack/nack/close) идут под
  одним asyncio.Lock; обработчики сообщений выполняются вне lock'а.
- wait_idle() ждёт, пока каждая полученная доставка получит ack/nack: после
  этого close() уже не отрежет подтверждение.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import aio_pika
from aio_pika import DeliveryMode, Message
from aio_pika.abc import (
    AbstractChannel,
    AbstractConnection,
    AbstractIncomingMessage,
    AbstractQueue,
)
from aio_pika.exceptions import AMQPConnectionError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tasktracker.config import CONTENT_TYPE_JSON, PREFETCH_COUNT, PREFETCH_SIZE, settings
from tasktracker.config.services import QueueSettings
from tasktracker.messaging.codec import encode
from tasktracker.messaging.models import BaseMessage
from tasktracker.shared.exceptions import (
    BrokerConnectionError,
    DispatchCancelledError,
    MessageDecodeError,
    MessageEncodeError,
    PublishError,
    SubscriptionError,
)
from tasktracker.utility.logging_client import logger, set_correlation_id

COMPONENT = "rabbitmq"

# Ошибки, при которых имеет смысл повторить подключение
TRANSIENT_CONNECTION_ERRORS = (
    AMQPConnectionError,
    ConnectionError,
    OSError,
    asyncio.TimeoutError,
)

Decoder = Callable[[bytes], BaseMessage]
MessageHandler = Callable[[BaseMessage], Awaitable[Any]]
SleepFunc = Callable[[float], Awaitable[None]]


class RabbitConnectionManager:
    """
    Одно соединение + один канал RabbitMQ на процесс.

    Пример:
        async with RabbitConnectionManager() as bus:
            await bus.publish("task-created", TaskCreatedMessage(...))
    """

    def __init__(
        self,
        config: Optional[QueueSettings] = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._config = config or settings.queue
        self._sleep = sleep
        self._connection: Optional[AbstractConnection] = None
        self._channel: Optional[AbstractChannel] = None
        # queue name -> (queue, consumer tag)
        self._consumers: Dict[str, Tuple[AbstractQueue, str]] = {}
        self._open_lock = asyncio.Lock()
        self._channel_lock = asyncio.Lock()
        # Доставки, для которых ещё не выполнен ack/nack
        self._active_deliveries = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False

    @property
    def config(self) -> QueueSettings:
        return self._config

    @property
    def is_open(self) -> bool:
        return (
            self._channel is not None
            and not self._channel.is_closed
            and self._connection is not None
            and not self._connection.is_closed
        )

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def active_deliveries(self) -> int:
        return self._active_deliveries

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """
        Установить соединение и канал.

        Повторяет попытку при transient-ошибках: ровно `retry_count` попыток,
        задержка перед попыткой N+1 = retry_interval * 2^(N-1).

        Raises:
            BrokerConnectionError: попытки исчерпаны или ошибка не transient
        """
        if self.is_open:
            return
        async with self._open_lock:
            if self.is_open:
                return
            if self._closed:
                raise BrokerConnectionError("Менеджер соединения уже закрыт")

            cfg = self._config
            logger.info(
                f"Подключение к {cfg.safe_url} (попыток: {cfg.retry_count}, "
                f"базовая задержка: {cfg.retry_interval_ms} мс)",
                component=COMPONENT,
            )

            retrying = AsyncRetrying(
                stop=stop_after_attempt(cfg.retry_count),
                wait=wait_exponential(multiplier=cfg.retry_interval, exp_base=2),
                retry=retry_if_exception_type(TRANSIENT_CONNECTION_ERRORS),
                before_sleep=self._log_retry,
                sleep=self._sleep,
            )
            try:
                async for attempt in retrying:
                    with attempt:
                        await self._connect_once()
            except RetryError as e:
                last_error = e.last_attempt.exception()
                logger.error(
                    f"RabbitMQ недоступен после {cfg.retry_count} попыток: {last_error}",
                    component=COMPONENT,
                )
                raise BrokerConnectionError(
                    "Не удалось подключиться к RabbitMQ",
                    attempts=cfg.retry_count,
                    details={"url": cfg.safe_url},
                    original_error=last_error if isinstance(last_error, Exception) else None,
                ) from last_error
            except Exception as e:
                logger.error(f"Ошибка подключения к RabbitMQ: {e}", component=COMPONENT)
                raise BrokerConnectionError(
                    "Ошибка подключения к RabbitMQ",
                    attempts=retrying.statistics.get("attempt_number", 1),
                    details={"url": cfg.safe_url},
                    original_error=e,
                ) from e

            logger.info("Соединение с RabbitMQ установлено", component=COMPONENT)

    async def _connect_once(self) -> None:
        cfg = self._config
        connection = await aio_pika.connect(cfg.amqp_url, timeout=cfg.connect_timeout)
        try:
            channel = await connection.channel(publisher_confirms=True)
        except BaseException:
            await connection.close()
            raise
        self._connection = connection
        self._channel = channel

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Попытка подключения {retry_state.attempt_number}/{self._config.retry_count} "
            f"не удалась ({type(exc).__name__}: {exc}). Повтор через {delay * 1000:.0f} мс",
            component=COMPONENT,
        )

    async def close(self) -> None:
        """Закрыть канал и соединение. Повторный вызов ничего не делает."""
        if self._closed:
            return
        self._closed = True

        channel, connection = self._channel, self._connection
        self._channel = None
        self._connection = None
        self._consumers.clear()

        # Ждём текущую операцию с каналом (publish, ack/nack), новые уже не начнутся
        async with self._channel_lock:
            if channel is not None and not channel.is_closed:
                try:
                    await channel.close()
                except Exception as e:
                    logger.error(f"Ошибка закрытия канала RabbitMQ: {e}", component=COMPONENT)

            if connection is not None and not connection.is_closed:
                try:
                    await connection.close()
                except Exception as e:
                    logger.error(f"Ошибка закрытия соединения RabbitMQ: {e}", component=COMPONENT)

        logger.info("Соединение с RabbitMQ закрыто", component=COMPONENT)

    async def __aenter__(self) -> "RabbitConnectionManager":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _require_channel(self) -> AbstractChannel:
        if self._closed:
            raise RuntimeError("connection manager is closed")
        await self.open()
        channel = self._channel
        if channel is None:
            raise RuntimeError("connection manager has no open channel")
        return channel

    async def _declare_queue(self, channel: AbstractChannel, queue_name: str) -> AbstractQueue:
        # Вызывается под _channel_lock
        return await channel.declare_queue(
            queue_name,
            durable=True,
            exclusive=False,
            auto_delete=False,
        )

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish(self, queue_name: str, envelope: BaseMessage) -> None:
        """
        Опубликовать конверт в durable-очередь.

        Успешный возврат = брокер подтвердил приём (publisher confirm), но не
        обработку. Повторов нет: политику повторов выбирает вызывающий.

        Raises:
            PublishError: ошибка сериализации, канал закрыт, брокер отказал
        """
        try:
            body = encode(envelope)
        except MessageEncodeError as e:
            raise PublishError(
                "Не удалось сериализовать сообщение",
                queue_name=queue_name,
                original_error=e,
            ) from e

        message = Message(
            body,
            delivery_mode=DeliveryMode.PERSISTENT,
            content_type=CONTENT_TYPE_JSON,
            message_id=str(envelope.message_id),
            timestamp=envelope.timestamp,
            type=type(envelope).__name__,
        )

        try:
            channel = await self._require_channel()
            async with self._channel_lock:
                await self._declare_queue(channel, queue_name)
                await channel.default_exchange.publish(message, routing_key=queue_name)
        except Exception as e:
            logger.error(
                f"Ошибка публикации в очередь {queue_name}: {type(e).__name__}: {e}",
                component=COMPONENT,
            )
            raise PublishError(
                "Брокер не принял сообщение",
                queue_name=queue_name,
                details={"message_id": str(envelope.message_id)},
                original_error=e,
            ) from e

        logger.info(
            f"Сообщение {envelope.message_id} отправлено в очередь {queue_name}: {body.decode()}",
            component=COMPONENT,
        )

    # ------------------------------------------------------------------
    # Subscribe
    # ------------------------------------------------------------------

    async def subscribe(self, queue_name: str, decoder: Decoder, handler: MessageHandler) -> str:
        """
        Подписаться на очередь с prefetch=1 и ручным подтверждением.

        Для каждой доставки:
        - decoder упал -> nack без requeue (poison message)
        - handler упал -> nack с requeue
        - handler отработал -> ack

        Returns:
            consumer tag

        Raises:
            SubscriptionError: не удалось объявить очередь / выставить QoS / начать consume
        """
        callback = self._make_callback(queue_name, decoder, handler)
        try:
            channel = await self._require_channel()
            async with self._channel_lock:
                queue = await self._declare_queue(channel, queue_name)
                await channel.set_qos(
                    prefetch_count=PREFETCH_COUNT,
                    prefetch_size=PREFETCH_SIZE,
                    global_=False,
                )
                consumer_tag = await queue.consume(callback, no_ack=False)
        except Exception as e:
            logger.error(f"Ошибка подписки на очередь {queue_name}: {e}", component=COMPONENT)
            raise SubscriptionError(
                "Не удалось подписаться на очередь",
                queue_name=queue_name,
                original_error=e,
            ) from e

        self._consumers[queue_name] = (queue, consumer_tag)
        logger.info(f"Подписка на очередь {queue_name} оформлена", component=COMPONENT)
        return consumer_tag

    def _make_callback(
        self,
        queue_name: str,
        decoder: Decoder,
        handler: MessageHandler,
    ) -> Callable[[AbstractIncomingMessage], Awaitable[None]]:
        async def process(message: AbstractIncomingMessage) -> None:
            set_correlation_id(message.message_id)
            logger.info(
                f"Получено сообщение из {queue_name} "
                f"(delivery_tag={message.delivery_tag}, redelivered={message.redelivered}): "
                f"{message.body.decode(errors='replace')}",
                component=COMPONENT,
            )

            try:
                envelope = decoder(message.body)
            except MessageDecodeError as e:
                logger.error(
                    f"Невалидное сообщение в {queue_name}, отбрасываем без requeue: {e}",
                    component=COMPONENT,
                )
                await self._settle(message, queue_name, ack=False, requeue=False)
                return

            try:
                await handler(envelope)
            except DispatchCancelledError:
                logger.info(
                    f"Обработка остановлена, сообщение {envelope.message_id} возвращено в {queue_name}",
                    component=COMPONENT,
                )
                await self._settle(message, queue_name, ack=False, requeue=True)
                return
            except Exception as e:
                logger.error(
                    f"Ошибка обработки сообщения {envelope.message_id} из {queue_name}, вернём в очередь: {e}",
                    component=COMPONENT,
                )
                logger.log_exception(
                    e,
                    component=COMPONENT,
                    context={
                        "queue": queue_name,
                        "message_id": str(envelope.message_id),
                        "delivery_tag": message.delivery_tag,
                        "redelivered": message.redelivered,
                    },
                )
                await self._settle(message, queue_name, ack=False, requeue=True)
                return

            await self._settle(message, queue_name, ack=True)

        async def on_message(message: AbstractIncomingMessage) -> None:
            # Доставка активна от получения до ack/nack включительно
            self._active_deliveries += 1
            self._idle.clear()
            try:
                await process(message)
            finally:
                self._active_deliveries -= 1
                if self._active_deliveries == 0:
                    self._idle.set()

        return on_message

    async def _settle(
        self,
        message: AbstractIncomingMessage,
        queue_name: str,
        *,
        ack: bool,
        requeue: bool = False,
    ) -> None:
        """ack/nack конкретной доставки. Ошибка не пробрасывается: брокер сам вернёт неподтверждённое."""
        try:
            async with self._channel_lock:
                if ack:
                    await message.ack()
                else:
                    await message.nack(requeue=requeue)
        except Exception as e:
            action = "ack" if ack else f"nack(requeue={requeue})"
            logger.error(
                f"Не удалось выполнить {action} для delivery_tag={message.delivery_tag} "
                f"в {queue_name}: {e}",
                component=COMPONENT,
            )

    async def cancel_consumers(self) -> None:
        """Остановить доставку по всем подпискам этого менеджера."""
        consumers = dict(self._consumers)
        self._consumers.clear()
        for queue_name, (queue, consumer_tag) in consumers.items():
            try:
                async with self._channel_lock:
                    await queue.cancel(consumer_tag)
                logger.info(f"Consumer очереди {queue_name} остановлен", component=COMPONENT)
            except Exception as e:
                logger.error(
                    f"Не удалось остановить consumer очереди {queue_name}: {e}",
                    component=COMPONENT,
                )

    async def wait_idle(self) -> None:
        """Дождаться, пока все полученные доставки получат ack/nack."""
        if self._active_deliveries:
            logger.info(
                f"Ожидание подтверждения {self._active_deliveries} доставок",
                component=COMPONENT,
            )
        await self._idle.wait()


_connection_manager: Optional[RabbitConnectionManager] = None


def get_connection_manager() -> RabbitConnectionManager:
    global _connection_manager
    if _connection_manager is None or _connection_manager.is_closed:
        _connection_manager = RabbitConnectionManager()
    return _connection_manager
