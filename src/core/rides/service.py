# src/core/rides/service.py
"""
Жизненный цикл поездки.

Сервис проверяет права и предусловия, а затем выполняет одно
условное обновление в базе. Проигравший гонку запрос получает
StateConflictError (или RideNotAvailableError при принятии),
состояние при этом не меняется.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, NoReturn

from src.common.constants import CancelledBy, RideStatus, UserRole
from src.common.exceptions import (
    NotFoundError,
    RideNotAvailableError,
    StateConflictError,
    ValidationError,
)
from src.common.logger import log_debug, log_error, log_info, log_warning
from src.core.access import Actor, Capability, authorize, ensure_participant
from src.core.fares import FareCalculator
from src.core.rides.models import Ride, RideRequest
from src.core.rides.repository import RideRepository
from src.core.rides.state_machine import parse_requested_status, plan_transition
from src.infra.event_bus import DomainEvent, EventBus, EventTypes
from src.infra.redis_client import RedisClient

DEFAULT_RIDER_CANCEL_REASON = "Cancelled by rider"
DEFAULT_DRIVER_DECLINE_REASON = "Declined by driver"

# Статусы, после которых пассажир уже не может отменить заказ сам
_RIDER_CANCEL_LOCKED = frozenset({
    RideStatus.ACCEPTED,
    RideStatus.PICKED_UP,
    RideStatus.IN_PROGRESS,
    RideStatus.AWAITING_PAYMENT,
    RideStatus.COMPLETED,
})
_ALREADY_CANCELLED = frozenset({RideStatus.CANCELLED, RideStatus.DECLINED})
_DECLINABLE = frozenset({RideStatus.REQUESTED, RideStatus.ACCEPTED})

# Версия кэша живёт дольше любого чтения, которое её сравнивает
RIDE_CACHE_VERSION_TTL = 3600


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RideService:
    """Сервис поездок."""

    def __init__(
        self,
        repository: RideRepository,
        fare_calculator: FareCalculator,
        redis: RedisClient | None = None,
        event_bus: EventBus | None = None,
        ride_ttl: int = 60,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            repository: Хранилище поездок (условные обновления)
            fare_calculator: Калькулятор стоимости
            redis: Кэш чтения поездок, необязателен
            event_bus: Шина событий, необязательна
            ride_ttl: TTL записи кэша (секунды)
            clock: Источник текущего времени
        """
        self._repo = repository
        self._fares = fare_calculator
        self._redis = redis
        self._event_bus = event_bus
        self._ride_ttl = ride_ttl
        self._clock = clock

    @staticmethod
    def _ride_cache_key(ride_id: str) -> str:
        return f"ride:{ride_id}"

    @staticmethod
    def _ride_version_key(ride_id: str) -> str:
        return f"ride:{ride_id}:version"

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_ride(self, ride_id: str, actor: Actor) -> Ride:
        """
        Поездка по ID для участника. Водитель также видит
        свободные заявки, которые может принять.

        Промах кэша заполняется, только если с момента чтения версии
        никто не вызвал invalidate_cache(). Иначе чтение, начатое до
        записи, могло бы положить в кэш уже устаревшую поездку.

        Raises:
            NotFoundError, AuthorizationError
        """
        ride = await self._get_cached(ride_id)
        if ride is None:
            version = await self._cache_version(ride_id)
            ride = await self._load(ride_id)
            await self._cache(ride, version)

        if actor.is_driver and ride.status == RideStatus.REQUESTED:
            return ride
        ensure_participant(actor, ride, "Not authorized to view this ride")
        return ride

    async def list_available(self, actor: Actor) -> list[Ride]:
        """Все заявки в статусе requested, сначала самые старые."""
        authorize(actor, Capability.VIEW_AVAILABLE_RIDES)
        return await self._repo.list_by_status(RideStatus.REQUESTED)

    async def list_my_rides(self, actor: Actor) -> list[Ride]:
        """Поездки пользователя в его роли, сначала новые."""
        if actor.role == UserRole.RIDER:
            return await self._repo.list_for_rider(actor.user_id)
        return await self._repo.list_for_driver(actor.user_id)

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ
    # =========================================================================

    async def request_ride(self, actor: Actor, request: RideRequest) -> Ride:
        """
        Создаёт заявку в статусе requested без водителя.

        Raises:
            AuthorizationError: пользователь не пассажир
            ValidationError: по координатам не удалось посчитать стоимость
        """
        authorize(actor, Capability.REQUEST_RIDE)

        quote = self._fares.quote(*request.coordinates)
        if not quote.is_valid:
            raise ValidationError("Invalid pickup or destination coordinates")

        ride = await self._repo.create(Ride(
            rider_id=actor.user_id,
            pickup_latitude=request.pickup_latitude,
            pickup_longitude=request.pickup_longitude,
            pickup_address=request.pickup_address,
            destination_latitude=request.destination_latitude,
            destination_longitude=request.destination_longitude,
            destination_address=request.destination_address,
            ride_type=request.ride_type,
            status=RideStatus.REQUESTED,
            estimated_fare=quote.amount,
            created_at=self._clock(),
        ))

        await log_info(
            f"Поездка {ride.id} создана: {quote.distance_km:.2f} км, {ride.estimated_fare}",
            extra={"ride_id": ride.id, "rider_id": actor.user_id},
        )
        await self._publish(EventTypes.RIDE_REQUESTED, ride)
        return ride

    async def accept(self, ride_id: str, actor: Actor) -> Ride:
        """
        Водитель принимает заявку.

        Чтение и запись объединены в одно условное обновление
        (id = ride_id AND status = 'requested'), поэтому второй водитель
        получает RideNotAvailableError.
        """
        authorize(actor, Capability.ACCEPT_RIDE)

        ride = await self._repo.try_transition(
            ride_id,
            RideStatus.REQUESTED,
            {
                "driver_id": actor.user_id,
                "status": RideStatus.ACCEPTED,
                "accepted_at": self._clock(),
            },
        )
        if ride is None:
            await log_warning(
                f"Поездка {ride_id} недоступна для водителя {actor.user_id}",
                extra={"ride_id": ride_id},
            )
            raise RideNotAvailableError()

        await self._after_write(EventTypes.RIDE_ACCEPTED, ride)
        await log_info(f"Поездка {ride_id} принята водителем {actor.user_id}")
        return ride

    async def transition(self, ride_id: str, actor: Actor, new_status: str | RideStatus) -> Ride:
        """
        Смена статуса участником поездки.

        Любой закреплённый участник может запросить любой из допустимых
        статусов. Запрос completed от водителя сохраняется как
        awaiting_payment (см. STORED_STATUS_RULES).

        Raises:
            ValidationError: недопустимый статус
            NotFoundError: поездки нет
            AuthorizationError: пользователь не участник
            StateConflictError: переход запрещён или проигран гонке
        """
        requested = parse_requested_status(new_status)
        ride = await self._load(ride_id)
        ensure_participant(actor, ride, "Not authorized to update this ride")

        plan = plan_transition(ride, actor.role, requested, self._clock())
        updated = await self._repo.try_transition(ride_id, plan.expected, plan.fields)
        if updated is None:
            await self._lost_race(ride_id, plan.expected)

        await self._after_write(
            EventTypes.RIDE_STATUS_CHANGED,
            updated,
            previous_status=plan.expected.value,
            requested_status=requested.value,
        )
        await log_info(
            f"Поездка {ride_id}: {plan.expected.value} -> {updated.status.value} "
            f"({actor.role.value} {actor.user_id})",
        )
        return updated

    async def cancel_by_rider(self, ride_id: str, actor: Actor, reason: str | None = None) -> Ride:
        """
        Пассажир отменяет свою заявку, пока её никто не принял.

        Raises:
            NotFoundError, AuthorizationError, StateConflictError
        """
        authorize(actor, Capability.CANCEL_RIDE_REQUEST)
        ride = await self._load(ride_id)
        ensure_participant(actor, ride, "Not authorized to cancel this ride")

        if ride.status in _RIDER_CANCEL_LOCKED:
            raise StateConflictError(
                "Cannot cancel ride after driver has accepted. Please contact the driver."
            )
        if ride.status in _ALREADY_CANCELLED:
            raise StateConflictError("Ride is already cancelled")

        updated = await self._repo.try_transition(
            ride_id,
            RideStatus.REQUESTED,
            {
                "status": RideStatus.CANCELLED,
                "cancelled_by": CancelledBy.RIDER,
                "cancelled_at": self._clock(),
                "cancellation_reason": reason or DEFAULT_RIDER_CANCEL_REASON,
            },
        )
        if updated is None:
            await self._lost_race(ride_id, RideStatus.REQUESTED)

        await self._after_write(EventTypes.RIDE_CANCELLED, updated)
        await log_info(f"Поездка {ride_id} отменена пассажиром {actor.user_id}")
        return updated

    async def decline_by_driver(self, ride_id: str, actor: Actor, reason: str | None = None) -> Ride:
        """
        Водитель отклоняет заявку.

        Свободную заявку (requested) может отклонить любой водитель,
        принятую (accepted) только закреплённый за ней. Для принятой
        поездки driver_id остаётся в записи.

        Raises:
            NotFoundError, AuthorizationError, StateConflictError
        """
        authorize(actor, Capability.DECLINE_RIDE)
        ride = await self._load(ride_id)

        if ride.status not in _DECLINABLE:
            raise StateConflictError("Cannot decline this ride")
        if ride.status == RideStatus.ACCEPTED:
            ensure_participant(actor, ride, "Not authorized to decline this ride")

        fields: dict[str, Any] = {
            "status": RideStatus.DECLINED,
            "cancelled_by": CancelledBy.DRIVER,
            "cancelled_at": self._clock(),
            "cancellation_reason": reason or DEFAULT_DRIVER_DECLINE_REASON,
        }
        if ride.status == RideStatus.REQUESTED:
            fields["driver_id"] = None

        updated = await self._repo.try_transition(ride_id, ride.status, fields)
        if updated is None:
            await self._lost_race(ride_id, ride.status)

        await self._after_write(EventTypes.RIDE_DECLINED, updated)
        await log_info(f"Поездка {ride_id} отклонена водителем {actor.user_id}")
        return updated

    # =========================================================================
    # ВСПОМОГАТЕЛЬНЫЕ
    # =========================================================================

    async def _load(self, ride_id: str) -> Ride:
        ride = await self._repo.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        return ride

    async def _lost_race(self, ride_id: str, expected: RideStatus) -> NoReturn:
        await log_warning(
            f"Поездка {ride_id} уже не в статусе {expected.value}, изменение отклонено",
            extra={"ride_id": ride_id, "expected_status": expected.value},
        )
        raise StateConflictError()

    async def _after_write(self, event_type: str, ride: Ride, **payload: Any) -> None:
        await self.invalidate_cache(ride.id)
        await self._publish(event_type, ride, **payload)

    async def _publish(self, event_type: str, ride: Ride, **payload: Any) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(DomainEvent(
            event_type=event_type,
            payload={
                "ride_id": ride.id,
                "rider_id": ride.rider_id,
                "driver_id": ride.driver_id,
                "status": ride.status.value,
                **payload,
            },
        ))

    async def _get_cached(self, ride_id: str) -> Ride | None:
        if self._redis is None:
            return None
        try:
            return await self._redis.get_model(self._ride_cache_key(ride_id), Ride)
        except Exception as e:
            await log_warning(f"Кэш поездки {ride_id} недоступен: {e}")
            return None

    async def _cache_version(self, ride_id: str) -> str | None:
        """Текущая версия записи кэша. None, если кэш недоступен."""
        if self._redis is None:
            return None
        try:
            return await self._redis.get(self._ride_version_key(ride_id)) or ""
        except Exception as e:
            await log_warning(f"Версия кэша поездки {ride_id} недоступна: {e}")
            return None

    async def _cache(self, ride: Ride, version: str | None) -> None:
        if self._redis is None or version is None:
            return
        try:
            written = await self._redis.set_model_if_version(
                self._ride_cache_key(ride.id),
                ride,
                ttl=self._ride_ttl,
                version_key=self._ride_version_key(ride.id),
                expected_version=version,
            )
        except Exception as e:
            await log_warning(f"Не удалось закэшировать поездку {ride.id}: {e}")
            return
        if not written:
            await log_debug(f"Поездка {ride.id} изменилась во время чтения, кэш не заполнен")

    async def invalidate_cache(self, ride_id: str) -> None:
        """Сдвигает версию и удаляет поездку из кэша чтения."""
        if self._redis is None:
            return
        try:
            await self._redis.incr(self._ride_version_key(ride_id), ttl=RIDE_CACHE_VERSION_TTL)
            await self._redis.delete(self._ride_cache_key(ride_id))
        except Exception as e:
            await log_error(f"Не удалось сбросить кэш поездки {ride_id}: {e}")
