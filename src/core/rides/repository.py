# src/core/rides/repository.py
"""
Репозиторий поездок.

Все изменения поездки идут через условный UPDATE ... RETURNING:
None вместо строки означает, что условие не совпало (статус уже
изменил конкурирующий запрос или поездки нет).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from src.common.constants import PaymentStatus, RideStatus
from src.core.rides.models import Ride
from src.infra.database import DatabaseManager

# Колонки, которые разрешено менять через try_transition
MUTABLE_COLUMNS: frozenset[str] = frozenset({
    "status",
    "driver_id",
    "cancelled_by",
    "cancellation_reason",
    "accepted_at",
    "picked_up_at",
    "completed_at",
    "cancelled_at",
})


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class RideRepository:
    """Репозиторий поездок."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных
        """
        self._db = db

    async def create(self, ride: Ride) -> Ride:
        """Сохраняет новую поездку и возвращает строку из базы."""
        row = await self._db.fetchrow(
            """
            INSERT INTO rides (
                id, rider_id, driver_id,
                pickup_latitude, pickup_longitude, pickup_address,
                destination_latitude, destination_longitude, destination_address,
                ride_type, status, estimated_fare, created_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, COALESCE($13, NOW()))
            RETURNING *
            """,
            ride.id,
            ride.rider_id,
            ride.driver_id,
            ride.pickup_latitude,
            ride.pickup_longitude,
            ride.pickup_address,
            ride.destination_latitude,
            ride.destination_longitude,
            ride.destination_address,
            ride.ride_type.value,
            ride.status.value,
            ride.estimated_fare,
            ride.created_at,
        )
        return self._row_to_ride(row)

    async def get_by_id(self, ride_id: str) -> Optional[Ride]:
        row = await self._db.fetchrow("SELECT * FROM rides WHERE id = $1", ride_id)
        if row is None:
            return None
        return self._row_to_ride(row)

    async def list_by_status(self, status: RideStatus) -> list[Ride]:
        """Поездки в статусе, сначала самые старые."""
        rows = await self._db.fetch(
            "SELECT * FROM rides WHERE status = $1 ORDER BY created_at ASC",
            status.value,
        )
        return [self._row_to_ride(row) for row in rows]

    async def list_for_rider(self, rider_id: str) -> list[Ride]:
        """Поездки пассажира, сначала новые."""
        rows = await self._db.fetch(
            "SELECT * FROM rides WHERE rider_id = $1 ORDER BY created_at DESC",
            rider_id,
        )
        return [self._row_to_ride(row) for row in rows]

    async def list_for_driver(self, driver_id: str) -> list[Ride]:
        """Поездки водителя, сначала новые."""
        rows = await self._db.fetch(
            "SELECT * FROM rides WHERE driver_id = $1 ORDER BY created_at DESC",
            driver_id,
        )
        return [self._row_to_ride(row) for row in rows]

    async def list_completed_for_driver(
        self,
        driver_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Ride]:
        """
        Завершённые поездки водителя, сначала новые.
        Границы [start, end] по created_at включительны.
        """
        conditions = ["driver_id = $1", "status = $2"]
        params: list[Any] = [driver_id, RideStatus.COMPLETED.value]

        if start is not None:
            params.append(start)
            conditions.append(f"created_at >= ${len(params)}")
        if end is not None:
            params.append(end)
            conditions.append(f"created_at <= ${len(params)}")

        rows = await self._db.fetch(
            f"""
            SELECT * FROM rides
            WHERE {" AND ".join(conditions)}
            ORDER BY created_at DESC
            """,
            *params,
        )
        return [self._row_to_ride(row) for row in rows]

    async def try_transition(
        self,
        ride_id: str,
        expected_status: RideStatus,
        fields: dict[str, Any],
    ) -> Optional[Ride]:
        """
        Compare-and-swap по статусу.

        UPDATE применяется, только если поездка всё ещё в expected_status.
        Из двух конкурирующих запросов с одинаковым ожиданием
        успешен ровно один.

        Returns:
            Обновлённая поездка или None, если ни одна строка не изменилась
        """
        unknown = set(fields) - MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Недопустимые колонки для перехода: {sorted(unknown)}")
        if not fields:
            raise ValueError("Пустой набор изменений")

        set_clauses = []
        params: list[Any] = [ride_id, expected_status.value]
        for column, value in fields.items():
            params.append(_to_db(value))
            set_clauses.append(f"{column} = ${len(params)}")
        set_clauses.append("updated_at = NOW()")

        row = await self._db.fetchrow(
            f"""
            UPDATE rides
            SET {", ".join(set_clauses)}
            WHERE id = $1 AND status = $2
            RETURNING *
            """,
            *params,
        )
        if row is None:
            return None
        return self._row_to_ride(row)

    async def mark_paid(
        self,
        ride_id: str,
        payment_intent_id: str,
        amount: int,
        paid_at: datetime,
    ) -> Optional[Ride]:
        """
        Фиксирует успешную оплату.
        Повторная оплата уже оплаченной поездки ничего не меняет (None).
        """
        row = await self._db.fetchrow(
            """
            UPDATE rides
            SET payment_status = $2,
                payment_intent_id = $3,
                final_fare = $4,
                paid_at = $5,
                updated_at = NOW()
            WHERE id = $1 AND payment_status IS DISTINCT FROM $2
            RETURNING *
            """,
            ride_id,
            PaymentStatus.PAID.value,
            payment_intent_id,
            amount,
            paid_at,
        )
        if row is None:
            return None
        return self._row_to_ride(row)

    async def set_payment_status(
        self,
        ride_id: str,
        payment_status: PaymentStatus,
        payment_intent_id: str | None = None,
    ) -> Optional[Ride]:
        """
        Меняет статус оплаты (pending / failed), не трогая оплаченные поездки.
        """
        row = await self._db.fetchrow(
            """
            UPDATE rides
            SET payment_status = $2,
                payment_intent_id = COALESCE($3, payment_intent_id),
                updated_at = NOW()
            WHERE id = $1 AND payment_status IS DISTINCT FROM $4
            RETURNING *
            """,
            ride_id,
            payment_status.value,
            payment_intent_id,
            PaymentStatus.PAID.value,
        )
        if row is None:
            return None
        return self._row_to_ride(row)

    @staticmethod
    def _row_to_ride(row: Any) -> Ride:
        """Конвертирует строку БД в модель Ride."""
        return Ride.model_validate(dict(row))
