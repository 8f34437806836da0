# src/core/rides/models.py
"""
Модели данных поездок.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.common.constants import (
    CancelledBy,
    PaymentStatus,
    RideStatus,
    RideType,
)


def uuid_to_str(value: Any) -> Any:
    """asyncpg отдаёт UUID колонки объектами uuid.UUID."""
    if isinstance(value, UUID):
        return str(value)
    return value


class Ride(BaseModel):
    """Поездка."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()), description="UUID поездки")
    rider_id: str = Field(..., description="UUID пассажира")
    driver_id: Optional[str] = Field(None, description="UUID водителя, пусто до принятия")

    # Локации
    pickup_latitude: float = Field(..., description="Широта подачи")
    pickup_longitude: float = Field(..., description="Долгота подачи")
    pickup_address: Optional[str] = Field(None, description="Адрес подачи")
    destination_latitude: float = Field(..., description="Широта назначения")
    destination_longitude: float = Field(..., description="Долгота назначения")
    destination_address: Optional[str] = Field(None, description="Адрес назначения")

    ride_type: RideType = Field(RideType.STANDARD, description="Класс поездки")
    status: RideStatus = Field(RideStatus.REQUESTED, description="Статус поездки")

    # Деньги в центах
    estimated_fare: int = Field(..., ge=0, description="Расчётная стоимость")
    final_fare: Optional[int] = Field(None, description="Оплаченная стоимость")

    # Оплата
    payment_status: Optional[PaymentStatus] = Field(None, description="Статус оплаты")
    payment_intent_id: Optional[str] = Field(None, description="ID платежа у провайдера")

    # Отмена
    cancelled_by: Optional[CancelledBy] = Field(None, description="Кто отменил")
    cancellation_reason: Optional[str] = Field(None, description="Причина отмены")

    # Временные метки
    created_at: Optional[datetime] = Field(None, description="Время создания")
    accepted_at: Optional[datetime] = Field(None, description="Время принятия")
    picked_up_at: Optional[datetime] = Field(None, description="Время посадки")
    completed_at: Optional[datetime] = Field(None, description="Время завершения")
    cancelled_at: Optional[datetime] = Field(None, description="Время отмены")
    paid_at: Optional[datetime] = Field(None, description="Время оплаты")
    updated_at: Optional[datetime] = Field(None, description="Время изменения")

    @field_validator("id", "rider_id", "driver_id", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Any:
        return uuid_to_str(v)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def gross_fare(self) -> int:
        """Оплаченная сумма, если есть, иначе расчётная."""
        return self.final_fare if self.final_fare is not None else self.estimated_fare


class RideRequest(BaseModel):
    """Заявка пассажира на поездку."""

    pickup_latitude: float = Field(..., ge=-90.0, le=90.0, allow_inf_nan=False)
    pickup_longitude: float = Field(..., ge=-180.0, le=180.0, allow_inf_nan=False)
    pickup_address: Optional[str] = Field(None, max_length=500)
    destination_latitude: float = Field(..., ge=-90.0, le=90.0, allow_inf_nan=False)
    destination_longitude: float = Field(..., ge=-180.0, le=180.0, allow_inf_nan=False)
    destination_address: Optional[str] = Field(None, max_length=500)
    ride_type: RideType = RideType.STANDARD

    @property
    def coordinates(self) -> tuple[float, float, float, float]:
        return (
            self.pickup_latitude,
            self.pickup_longitude,
            self.destination_latitude,
            self.destination_longitude,
        )

