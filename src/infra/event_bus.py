# src/infra/event_bus.py
"""
Публикация доменных событий поездок в RabbitMQ (topic exchange).

Событие отправляется только после успешной записи в базу.
Сбой публикации логируется и не влияет на результат операции.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import aio_pika
from aio_pika import ExchangeType, Message
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractExchange

from src.common.logger import log_debug, log_error, log_info


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class DomainEvent:
    """Доменное событие. routing_key совпадает с event_type."""
    event_type: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: str = field(default_factory=_utc_now_iso)

    def to_json(self) -> str:
        return json.dumps({
            "event_id": self.event_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "payload": self.payload,
        }, ensure_ascii=False, default=str)


class EventTypes:
    """Типы событий сервиса поездок."""
    RIDE_REQUESTED = "ride.requested"
    RIDE_ACCEPTED = "ride.accepted"
    RIDE_STATUS_CHANGED = "ride.status_changed"
    RIDE_CANCELLED = "ride.cancelled"
    RIDE_DECLINED = "ride.declined"
    RIDE_PAID = "ride.paid"
    RIDE_PAYMENT_FAILED = "ride.payment_failed"
    RATING_SUBMITTED = "rating.submitted"


class EventBus:
    """
    Издатель событий в RabbitMQ (Singleton).
    Использует connect_robust, поэтому переживает переподключения брокера.
    """

    _instance: EventBus | None = None
    _connection: AbstractConnection | None = None
    _channel: AbstractChannel | None = None
    _exchange: AbstractExchange | None = None

    def __new__(cls) -> EventBus:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._connection = None
        self._channel = None
        self._exchange = None
        self._exchange_name = "rides.events"

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(
        self,
        url: str,
        exchange_name: str = "rides.events",
        prefetch_count: int = 10,
    ) -> None:
        """
        Подключается к брокеру и объявляет durable topic exchange.

        Args:
            url: amqp:// URL
            exchange_name: Имя exchange
            prefetch_count: QoS канала
        """
        if self.is_connected:
            return

        self._exchange_name = exchange_name
        self._connection = await aio_pika.connect_robust(url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=prefetch_count)
        self._exchange = await self._channel.declare_exchange(
            self._exchange_name,
            ExchangeType.TOPIC,
            durable=True,
        )

    async def disconnect(self) -> None:
        """Закрывает соединение с RabbitMQ."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self._channel = None
            self._exchange = None

    async def publish(self, event: DomainEvent) -> bool:
        """
        Публикует событие. Никогда не бросает исключений.

        Returns:
            True, если брокер принял сообщение
        """
        if not self.is_connected or self._exchange is None:
            await log_error(
                f"Событие {event.event_type} не опубликовано: нет соединения с RabbitMQ",
                logger_name="event_bus",
            )
            return False

        message = Message(
            body=event.to_json().encode(),
            content_type="application/json",
            message_id=event.event_id,
            timestamp=datetime.now(timezone.utc),
        )

        try:
            await self._exchange.publish(message, routing_key=event.event_type)
        except Exception as e:
            await log_error(
                f"Ошибка публикации события {event.event_type}: {e}",
                logger_name="event_bus",
            )
            return False

        await log_debug(f"Событие опубликовано: {event.event_type}", logger_name="event_bus")
        return True

    async def health_check(self) -> bool:
        return self.is_connected


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Возвращает глобальный EventBus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


async def init_event_bus() -> EventBus:
    """Подключается к RabbitMQ по настройкам."""
    from src.config import settings

    event_bus = get_event_bus()
    await event_bus.connect(
        url=settings.rabbitmq.url,
        exchange_name=settings.rabbitmq.RABBITMQ_EXCHANGE,
        prefetch_count=settings.rabbitmq.RABBITMQ_PREFETCH_COUNT,
    )
    await log_info(
        f"RabbitMQ подключён: {settings.rabbitmq.RABBITMQ_HOST}:{settings.rabbitmq.RABBITMQ_PORT}",
        logger_name="event_bus",
    )
    return event_bus


async def close_event_bus() -> None:
    """Закрывает подключение к RabbitMQ."""
    await get_event_bus().disconnect()
    await log_info("RabbitMQ отключён", logger_name="event_bus")
