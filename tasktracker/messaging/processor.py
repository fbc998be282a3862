"""
Процессор событий задач (consumer host).

Жизненный цикл:
    NEW -> STARTING -> RUNNING -> STOPPED

- start(): регистрирует все подписки; любая ошибка регистрации фатальна.
- stop(): выставляет cancel_event, останавливает consumer'ы и ждёт завершения
  уже запущенных обработчиков (их результат всё ещё решает ack/nack), затем
  ждёт, пока брокер получит ack/nack по каждой доставке. Обработчики не
  прерываются, если drain_timeout не задан явно.

Повторов обработчиков здесь нет: повтор = nack с requeue в RabbitConnectionManager.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Type

from tasktracker.config import settings
from tasktracker.config.services import QueueSettings
from tasktracker.messaging.broker import RabbitConnectionManager, get_connection_manager
from tasktracker.messaging.codec import decoder_for
from tasktracker.messaging.handlers import handle_task_created, handle_task_updated
from tasktracker.messaging.models import BaseMessage, TaskCreatedMessage, TaskUpdatedMessage
from tasktracker.shared.exceptions import (
    DispatchCancelledError,
    ProcessorStateError,
    SubscriptionError,
)
from tasktracker.utility.logging_client import logger

COMPONENT = "processor"

EventHandler = Callable[[BaseMessage, asyncio.Event], Awaitable[None]]


class ProcessorState(str, Enum):
    NEW = "new"
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class Subscription:
    """Очередь -> ожидаемый тип конверта -> обработчик."""

    queue_name: str
    message_type: Type[BaseMessage]
    handler: EventHandler


def default_subscriptions(config: Optional[QueueSettings] = None) -> List[Subscription]:
    cfg = config or settings.queue
    return [
        Subscription(cfg.task_created_queue, TaskCreatedMessage, handle_task_created),
        Subscription(cfg.task_updated_queue, TaskUpdatedMessage, handle_task_updated),
    ]


class EventProcessor:
    """Долгоживущая задача: держит подписки на очереди событий задач."""

    def __init__(
        self,
        connection_manager: Optional[RabbitConnectionManager] = None,
        subscriptions: Optional[Iterable[Subscription]] = None,
        *,
        drain_timeout: Optional[float] = None,
    ) -> None:
        self._bus = connection_manager or get_connection_manager()
        if subscriptions is None:
            subscriptions = default_subscriptions(self._bus.config)
        self._subscriptions = tuple(subscriptions)
        self._drain_timeout = settings.app.drain_timeout if drain_timeout is None else drain_timeout

        self._state = ProcessorState.NEW
        self._cancel_event = asyncio.Event()
        self._in_flight: Set[asyncio.Task] = set()
        self._registry: Dict[str, Subscription] = {}

    @property
    def state(self) -> ProcessorState:
        return self._state

    @property
    def cancel_event(self) -> asyncio.Event:
        return self._cancel_event

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def registered_queues(self) -> List[str]:
        return list(self._registry)

    async def start(self) -> None:
        """
        Зарегистрировать подписки и перейти в RUNNING.

        Raises:
            ProcessorStateError: процессор уже запускался
            SubscriptionError: не удалось зарегистрировать подписку
        """
        if self._state is not ProcessorState.NEW:
            raise ProcessorStateError(
                "Процессор уже запускался",
                details={"state": self._state.value},
            )

        self._state = ProcessorState.STARTING
        logger.info(
            f"Запуск процессора сообщений задач (подписок: {len(self._subscriptions)})...",
            component=COMPONENT,
        )

        for sub in self._subscriptions:
            if self._cancel_event.is_set():
                break
            try:
                await self._bus.subscribe(sub.queue_name, decoder_for(sub.message_type), self._dispatcher(sub))
            except Exception as e:
                self._state = ProcessorState.STOPPED
                self._cancel_event.set()
                await self._bus.cancel_consumers()
                logger.error(f"Запуск процессора прерван: {e}", component=COMPONENT)
                if isinstance(e, SubscriptionError):
                    raise
                raise SubscriptionError(
                    "Не удалось зарегистрировать подписку",
                    queue_name=sub.queue_name,
                    original_error=e,
                ) from e
            self._registry[sub.queue_name] = sub

        if self._cancel_event.is_set():
            # stop() пришёл во время регистрации
            await self._bus.cancel_consumers()
            self._state = ProcessorState.STOPPED
            logger.info("Остановка запрошена во время запуска, процессор не запущен", component=COMPONENT)
            return

        self._state = ProcessorState.RUNNING
        logger.info(f"Процессор запущен, очереди: {', '.join(self._registry)}", component=COMPONENT)

    async def run_forever(self) -> None:
        """start() и ожидание сигнала остановки."""
        await self.start()
        await self._cancel_event.wait()

    async def stop(self) -> None:
        """Прекратить приём доставок и дождаться in-flight обработчиков. Идемпотентен."""
        if self._cancel_event.is_set() and self._state is ProcessorState.STOPPED:
            return

        previous = self._state
        self._cancel_event.set()
        self._state = ProcessorState.STOPPED
        logger.info(f"Остановка процессора (состояние было: {previous.value})", component=COMPONENT)

        if previous is ProcessorState.RUNNING:
            await self._bus.cancel_consumers()
        await self._drain_in_flight()
        await self._bus.wait_idle()

        logger.info("Процессор остановлен", component=COMPONENT)

    async def _drain_in_flight(self) -> None:
        tasks = list(self._in_flight)
        if not tasks:
            return

        timeout = "без ограничения" if self._drain_timeout is None else f"{self._drain_timeout}s"
        logger.info(f"Ожидание {len(tasks)} обработчиков (timeout: {timeout})", component=COMPONENT)
        _, pending = await asyncio.wait(tasks, timeout=self._drain_timeout)
        if pending:
            logger.warning(
                f"drain_timeout истёк, {len(pending)} обработчиков прерваны (сообщения вернутся в очередь)",
                component=COMPONENT,
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    def _dispatcher(self, sub: Subscription) -> Callable[[BaseMessage], Awaitable[None]]:
        async def dispatch(envelope: BaseMessage) -> None:
            if self._cancel_event.is_set():
                raise DispatchCancelledError(
                    "Процессор остановлен",
                    details={"queue": sub.queue_name, "message_id": str(envelope.message_id)},
                )

            task = asyncio.create_task(sub.handler(envelope, self._cancel_event))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            timer = logger.timed("dispatch", component=COMPONENT).add_context(
                queue=sub.queue_name,
                message_id=str(envelope.message_id),
            )
            try:
                with timer:
                    await task
            except asyncio.CancelledError:
                if task.cancelled():
                    raise DispatchCancelledError(
                        "Обработчик прерван при остановке",
                        details={"queue": sub.queue_name, "message_id": str(envelope.message_id)},
                    ) from None
                raise

        return dispatch
