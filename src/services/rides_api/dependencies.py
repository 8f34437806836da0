# src/services/rides_api/dependencies.py
"""
Dependency Injection для Rides API.

Инфраструктура передаётся один раз при старте (init_dependencies),
сервисы создаются лениво и живут до cleanup_dependencies().
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.core.billing import PaymentGateway, PaymentService
    from src.core.earnings import EarningsService
    from src.core.ratings import RatingService
    from src.core.rides import RideService
    from src.core.users import UserService
    from src.infra.database import DatabaseManager
    from src.infra.event_bus import EventBus
    from src.infra.redis_client import RedisClient


# Синглтоны для инфраструктуры
_db: "DatabaseManager | None" = None
_redis: "RedisClient | None" = None
_event_bus: "EventBus | None" = None
_gateway: "PaymentGateway | None" = None

# Синглтоны для сервисов
_ride_service: "RideService | None" = None
_rating_service: "RatingService | None" = None
_earnings_service: "EarningsService | None" = None
_user_service: "UserService | None" = None
_payment_service: "PaymentService | None" = None


async def init_dependencies(
    db: "DatabaseManager",
    redis: "RedisClient | None",
    event_bus: "EventBus | None",
    gateway: "PaymentGateway | None" = None,
) -> None:
    """Инициализировать зависимости при старте приложения."""
    global _db, _redis, _event_bus, _gateway
    _db = db
    _redis = redis
    _event_bus = event_bus
    _gateway = gateway


async def cleanup_dependencies() -> None:
    """Сбросить сервисы и закрыть HTTP клиент провайдера."""
    global _db, _redis, _event_bus, _gateway
    global _ride_service, _rating_service, _earnings_service, _user_service, _payment_service

    if _gateway is not None:
        await _gateway.close()

    _db = _redis = _event_bus = _gateway = None
    _ride_service = _rating_service = _earnings_service = _user_service = _payment_service = None


def get_db() -> "DatabaseManager":
    """Получить менеджер базы данных."""
    if _db is None:
        raise RuntimeError("База данных не инициализирована. Вызовите init_dependencies()")
    return _db


def get_ride_service() -> "RideService":
    """Получить сервис поездок."""
    global _ride_service

    if _ride_service is None:
        from src.config import settings
        from src.core.fares import FareCalculator
        from src.core.rides import RideRepository, RideService

        _ride_service = RideService(
            repository=RideRepository(get_db()),
            fare_calculator=FareCalculator.from_settings(),
            redis=_redis,
            event_bus=_event_bus,
            ride_ttl=settings.redis_ttl.RIDE_TTL,
        )

    return _ride_service


def get_rating_service() -> "RatingService":
    """Получить сервис оценок."""
    global _rating_service

    if _rating_service is None:
        from src.core.ratings import RatingRepository, RatingService
        from src.core.rides import RideRepository
        from src.core.users import UserRepository

        db = get_db()
        _rating_service = RatingService(
            ratings=RatingRepository(db),
            rides=RideRepository(db),
            users=UserRepository(db),
            event_bus=_event_bus,
        )

    return _rating_service


def get_earnings_service() -> "EarningsService":
    """Получить сервис статистики водителя."""
    global _earnings_service

    if _earnings_service is None:
        from src.core.earnings import EarningsService
        from src.core.rides import RideRepository

        _earnings_service = EarningsService.from_settings(RideRepository(get_db()))

    return _earnings_service


def get_user_service() -> "UserService":
    """Получить сервис пользователей."""
    global _user_service

    if _user_service is None:
        from src.core.users import UserRepository, UserService

        _user_service = UserService(UserRepository(get_db()))

    return _user_service


def get_payment_service() -> "PaymentService":
    """Получить сервис оплаты."""
    global _payment_service

    if _payment_service is None:
        from src.config import settings
        from src.core.billing import PaymentService
        from src.core.rides import RideRepository

        _payment_service = PaymentService(
            rides=RideRepository(get_db()),
            gateway=_gateway,
            event_bus=_event_bus,
            currency=settings.fares.CURRENCY,
            on_ride_changed=get_ride_service().invalidate_cache,
        )

    return _payment_service


async def get_health_components() -> dict[str, bool]:
    """Состояние подключений. Неинициализированный компонент считается недоступным."""
    return {
        "postgres": await _db.health_check() if _db is not None else False,
        "redis": await _redis.health_check() if _redis is not None else False,
        "rabbitmq": await _event_bus.health_check() if _event_bus is not None else False,
    }
