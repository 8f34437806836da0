# src/core/billing/service.py
"""
Мост между платёжным провайдером и поездками.

- create_intent: пассажир начинает оплату своей поездки;
- settle: подтверждённое провайдером событие "оплата прошла" фиксирует
  payment_status=paid, payment_intent_id, final_fare и paid_at.
  Повторное событие для оплаченной поездки ничего не меняет;
- handle_event: разбор webhook событий провайдера.

Статус самой поездки при оплате не меняется.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from src.common.constants import PaymentStatus
from src.common.exceptions import NotFoundError, StateConflictError, ValidationError
from src.common.logger import log_info, log_warning
from src.core.access import Actor, Capability, authorize, ensure_participant
from src.core.billing.gateway import PaymentGateway
from src.core.billing.webhooks import WebhookEvent
from src.core.rides.models import Ride
from src.core.rides.repository import RideRepository
from src.infra.event_bus import DomainEvent, EventBus, EventTypes


@dataclass(frozen=True)
class SettlementNotice:
    """Проверенное уведомление провайдера об успешной оплате."""
    ride_id: str
    amount: int
    transaction_id: str


@dataclass(frozen=True)
class SettlementResult:
    """applied=False означает, что поездка уже была оплачена."""
    applied: bool
    ride: Ride


@dataclass(frozen=True)
class PaymentIntentResult:
    client_secret: str
    amount: int


class PaymentService:
    """Сервис оплаты поездок."""

    def __init__(
        self,
        rides: RideRepository,
        gateway: PaymentGateway | None = None,
        event_bus: EventBus | None = None,
        currency: str = "usd",
        on_ride_changed: Callable[[str], Any] | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """
        Args:
            rides: Хранилище поездок
            gateway: Клиент провайдера (нужен только для create_intent)
            event_bus: Шина событий
            currency: Валюта платежей
            on_ride_changed: Корутина-колбэк после изменения поездки (сброс кэша)
            clock: Источник текущего времени
        """
        self._rides = rides
        self._gateway = gateway
        self._event_bus = event_bus
        self._currency = currency
        self._on_ride_changed = on_ride_changed
        self._clock = clock

    async def create_intent(self, ride_id: str, actor: Actor) -> PaymentIntentResult:
        """
        Создаёт платёж на estimated_fare поездки.

        Raises:
            NotFoundError, AuthorizationError
            StateConflictError: поездка уже оплачена
            UnexpectedError: провайдер недоступен
        """
        authorize(actor, Capability.PAY_FOR_RIDE)
        ride = await self._rides.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        ensure_participant(actor, ride)
        if ride.is_paid:
            raise StateConflictError("Ride is already paid")
        if self._gateway is None:
            raise RuntimeError("Платёжный шлюз не настроен")

        intent = await self._gateway.create_payment_intent(
            amount=ride.estimated_fare,
            currency=self._currency,
            metadata={"rideId": ride.id, "riderId": actor.user_id},
        )
        updated = await self._rides.set_payment_status(ride.id, PaymentStatus.PENDING, intent.id)
        if updated is not None:
            await self._ride_changed(ride.id)

        await log_info(
            f"Платёж {intent.id} создан для поездки {ride.id} на {intent.amount}",
            logger_name="billing",
        )
        return PaymentIntentResult(client_secret=intent.client_secret, amount=intent.amount)

    async def settle(self, notice: SettlementNotice) -> SettlementResult:
        """
        Фиксирует успешную оплату.

        Обновление условно (payment_status != paid), поэтому повторное
        уведомление не перезаписывает final_fare и paid_at.

        Raises:
            NotFoundError: поездки нет
        """
        ride = await self._rides.mark_paid(
            notice.ride_id,
            payment_intent_id=notice.transaction_id,
            amount=notice.amount,
            paid_at=self._clock(),
        )
        if ride is None:
            existing = await self._rides.get_by_id(notice.ride_id)
            if existing is None:
                raise NotFoundError("Ride not found")
            await log_warning(
                f"Повторное уведомление об оплате поездки {notice.ride_id} "
                f"({notice.transaction_id}) пропущено",
                logger_name="billing",
            )
            return SettlementResult(applied=False, ride=existing)

        await self._ride_changed(ride.id)
        await self._publish(EventTypes.RIDE_PAID, ride, amount=notice.amount)
        await log_info(
            f"Поездка {ride.id} оплачена: {notice.amount} ({notice.transaction_id})",
            logger_name="billing",
        )
        return SettlementResult(applied=True, ride=ride)

    async def mark_failed(self, ride_id: str, transaction_id: str) -> Ride | None:
        """payment_status=failed, если поездка ещё не оплачена."""
        ride = await self._rides.set_payment_status(ride_id, PaymentStatus.FAILED, transaction_id)
        if ride is None:
            await log_warning(
                f"Неуспешная оплата {transaction_id} для поездки {ride_id} не применена",
                logger_name="billing",
            )
            return None

        await self._ride_changed(ride.id)
        await self._publish(EventTypes.RIDE_PAYMENT_FAILED, ride)
        await log_info(f"Оплата поездки {ride_id} не прошла ({transaction_id})", logger_name="billing")
        return ride

    async def handle_event(self, event: WebhookEvent) -> bool:
        """
        Обрабатывает проверенное событие провайдера.

        Returns:
            True, если событие изменило поездку

        Raises:
            ValidationError: в событии нет rideId или суммы
            NotFoundError: поездки нет
        """
        match event.type:
            case "payment_intent.succeeded":
                notice = self._notice_from_intent(event.object)
                result = await self.settle(notice)
                return result.applied
            case "payment_intent.payment_failed":
                intent = event.object
                ride_id = self._ride_id_from_intent(intent)
                return await self.mark_failed(ride_id, intent.get("id", "")) is not None
            case _:
                await log_info(f"Необработанный тип события {event.type}", logger_name="billing")
                return False

    @staticmethod
    def _ride_id_from_intent(intent: dict[str, Any]) -> str:
        ride_id = (intent.get("metadata") or {}).get("rideId")
        if not ride_id:
            raise ValidationError("Payment intent has no rideId metadata")
        return ride_id

    def _notice_from_intent(self, intent: dict[str, Any]) -> SettlementNotice:
        amount = intent.get("amount_received") or intent.get("amount")
        if not isinstance(amount, int) or not intent.get("id"):
            raise ValidationError("Payment intent has no amount or id")
        return SettlementNotice(
            ride_id=self._ride_id_from_intent(intent),
            amount=amount,
            transaction_id=intent["id"],
        )

    async def _ride_changed(self, ride_id: str) -> None:
        if self._on_ride_changed is not None:
            await self._on_ride_changed(ride_id)

    async def _publish(self, event_type: str, ride: Ride, **payload: Any) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(DomainEvent(
            event_type=event_type,
            payload={
                "ride_id": ride.id,
                "rider_id": ride.rider_id,
                "payment_status": ride.payment_status.value if ride.payment_status else None,
                **payload,
            },
        ))
