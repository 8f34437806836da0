# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import os
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")

from src.common.constants import PaymentStatus, RideStatus, UserRole  # noqa: E402
from src.core.access import Actor  # noqa: E402
from src.core.rides.models import Ride  # noqa: E402
from src.core.rides.repository import MUTABLE_COLUMNS  # noqa: E402


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Тестовая конфигурация",
        "PROJECT_NAME": "rides_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "RIDES_API_HOST": "127.0.0.1",
        "RIDES_API_PORT": 5050,
        "CORS_ORIGINS": ["http://test.local"],
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "json",
        "TIMEZONE": "Europe/Berlin",
        "DB_HOST": "db.local",
        "DB_PORT": 5433,
        "DB_NAME": "rides_test",
        "DB_USER": "tester",
        "DB_MIN_POOL_SIZE": 1,
        "DB_MAX_POOL_SIZE": 3,
        "REDIS_HOST": "redis.local",
        "REDIS_PORT": 6380,
        "REDIS_DB": 2,
        "REDIS_NAMESPACE": "rides_test",
        "RIDE_TTL": 30,
        "RABBITMQ_HOST": "mq.local",
        "RABBITMQ_EXCHANGE": "rides.test",
        "BASE_FARE": 500,
        "PER_KM_RATE": 100,
        "CURRENCY": "eur",
        "PLATFORM_FEE_RATE": 0.25,
        "PERIOD_EARNINGS_SHARE": 0.75,
        "RECENT_RIDES_LIMIT": 5,
        "JWT_ALGORITHM": "HS256",
        "ACCESS_TOKEN_EXPIRE_MINUTES": 15,
        "WEBHOOK_TOLERANCE_SECONDS": 120,
        "PAYMENTS_REQUEST_TIMEOUT": 3.0,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.delete = AsyncMock(return_value=1)
    redis.incr = AsyncMock(return_value=1)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model_if_version = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=True)
    event_bus.is_connected = True
    return event_bus


@pytest.fixture
def sign_webhook():
    """Собирает заголовок Stripe-Signature: t=<ts>,v1=HMAC-SHA256(secret, "<ts>.<body>")."""
    def _sign(payload: bytes, secret: str, timestamp: int | None = None) -> str:
        ts = int(time.time()) if timestamp is None else timestamp
        digest = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"
    return _sign


# =============================================================================
# IN-MEMORY РЕПОЗИТОРИИ
# =============================================================================

class FakeRideRepository:
    """
    Хранилище поездок в памяти с теми же условными обновлениями,
    что и RideRepository. Сравнение и запись выполняются без await
    между ними, как один UPDATE в базе.
    """

    def __init__(self, rides: list[Ride] | None = None) -> None:
        self.rides: dict[str, Ride] = {ride.id: ride for ride in rides or []}
        self.transitions: list[tuple[str, RideStatus, dict[str, Any]]] = []

    def add(self, ride: Ride) -> Ride:
        self.rides[ride.id] = ride
        return ride

    async def create(self, ride: Ride) -> Ride:
        stored = ride.model_copy(update={
            "created_at": ride.created_at or datetime.now(timezone.utc),
        })
        self.rides[stored.id] = stored
        return stored

    async def get_by_id(self, ride_id: str) -> Ride | None:
        return self.rides.get(ride_id)

    async def list_by_status(self, status: RideStatus) -> list[Ride]:
        rides = [ride for ride in self.rides.values() if ride.status == status]
        return sorted(rides, key=lambda ride: ride.created_at)

    async def list_for_rider(self, rider_id: str) -> list[Ride]:
        rides = [ride for ride in self.rides.values() if ride.rider_id == rider_id]
        return sorted(rides, key=lambda ride: ride.created_at, reverse=True)

    async def list_for_driver(self, driver_id: str) -> list[Ride]:
        rides = [ride for ride in self.rides.values() if ride.driver_id == driver_id]
        return sorted(rides, key=lambda ride: ride.created_at, reverse=True)

    async def list_completed_for_driver(
        self,
        driver_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Ride]:
        rides = [
            ride for ride in self.rides.values()
            if ride.driver_id == driver_id
            and ride.status == RideStatus.COMPLETED
            and (start is None or ride.created_at >= start)
            and (end is None or ride.created_at <= end)
        ]
        return sorted(rides, key=lambda ride: ride.created_at, reverse=True)

    async def try_transition(
        self,
        ride_id: str,
        expected_status: RideStatus,
        fields: dict[str, Any],
    ) -> Ride | None:
        unknown = set(fields) - MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Недопустимые колонки для перехода: {sorted(unknown)}")

        # Точка переключения для конкурирующих корутин
        await asyncio.sleep(0)

        ride = self.rides.get(ride_id)
        if ride is None or ride.status != expected_status:
            return None
        updated = ride.model_copy(update={**fields, "updated_at": datetime.now(timezone.utc)})
        self.rides[ride_id] = updated
        self.transitions.append((ride_id, expected_status, fields))
        return updated

    async def mark_paid(
        self,
        ride_id: str,
        payment_intent_id: str,
        amount: int,
        paid_at: datetime,
    ) -> Ride | None:
        ride = self.rides.get(ride_id)
        if ride is None or ride.payment_status == PaymentStatus.PAID:
            return None
        updated = ride.model_copy(update={
            "payment_status": PaymentStatus.PAID,
            "payment_intent_id": payment_intent_id,
            "final_fare": amount,
            "paid_at": paid_at,
        })
        self.rides[ride_id] = updated
        return updated

    async def set_payment_status(
        self,
        ride_id: str,
        payment_status: PaymentStatus,
        payment_intent_id: str | None = None,
    ) -> Ride | None:
        ride = self.rides.get(ride_id)
        if ride is None or ride.payment_status == PaymentStatus.PAID:
            return None
        updated = ride.model_copy(update={
            "payment_status": payment_status,
            "payment_intent_id": payment_intent_id or ride.payment_intent_id,
        })
        self.rides[ride_id] = updated
        return updated


@pytest.fixture
def ride_repo() -> FakeRideRepository:
    """Пустое хранилище поездок в памяти."""
    return FakeRideRepository()


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

RIDER_ID = "11111111-1111-1111-1111-111111111111"
DRIVER_ID = "22222222-2222-2222-2222-222222222222"
OTHER_DRIVER_ID = "33333333-3333-3333-3333-333333333333"
OTHER_RIDER_ID = "44444444-4444-4444-4444-444444444444"


@pytest.fixture
def rider() -> Actor:
    return Actor(user_id=RIDER_ID, role=UserRole.RIDER)


@pytest.fixture
def driver() -> Actor:
    return Actor(user_id=DRIVER_ID, role=UserRole.DRIVER)


@pytest.fixture
def other_driver() -> Actor:
    return Actor(user_id=OTHER_DRIVER_ID, role=UserRole.DRIVER)


@pytest.fixture
def other_rider() -> Actor:
    return Actor(user_id=OTHER_RIDER_ID, role=UserRole.RIDER)


def make_ride(**overrides: Any) -> Ride:
    """Поездка Берлин, Alexanderplatz -> Brandenburger Tor в статусе requested."""
    data: dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "rider_id": RIDER_ID,
        "driver_id": None,
        "pickup_latitude": 52.5219,
        "pickup_longitude": 13.4132,
        "pickup_address": "Alexanderplatz",
        "destination_latitude": 52.5163,
        "destination_longitude": 13.3777,
        "destination_address": "Brandenburger Tor",
        "status": RideStatus.REQUESTED,
        "estimated_fare": 1500,
        "created_at": datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return Ride(**data)


@pytest.fixture
def sample_ride_row() -> dict[str, Any]:
    """Строка rides из asyncpg (UUID объектами)."""
    return {
        "id": uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa"),
        "rider_id": uuid.UUID(RIDER_ID),
        "driver_id": None,
        "pickup_latitude": 52.5219,
        "pickup_longitude": 13.4132,
        "pickup_address": "Alexanderplatz",
        "destination_latitude": 52.5163,
        "destination_longitude": 13.3777,
        "destination_address": "Brandenburger Tor",
        "ride_type": "standard",
        "status": "requested",
        "estimated_fare": 1500,
        "final_fare": None,
        "payment_status": None,
        "payment_intent_id": None,
        "cancelled_by": None,
        "cancellation_reason": None,
        "created_at": datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc),
        "accepted_at": None,
        "picked_up_at": None,
        "completed_at": None,
        "cancelled_at": None,
        "paid_at": None,
        "updated_at": datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc),
    }


@pytest.fixture
def sample_user_row() -> dict[str, Any]:
    """Строка users из asyncpg."""
    return {
        "id": uuid.UUID(DRIVER_ID),
        "email": "driver@example.com",
        "first_name": "Анна",
        "last_name": "Шмидт",
        "phone_number": "+491701234567",
        "user_type": "driver",
        "is_active": True,
        "average_rating": 4.5,
        "total_ratings": 2,
        "current_latitude": None,
        "current_longitude": None,
        "last_location_update": None,
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
def ride_factory():
    """Фабрика поездок с переопределяемыми полями."""
    return make_ride
