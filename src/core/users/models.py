# src/core/users/models.py
"""
Модели данных пользователей.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.common.constants import UserRole
from src.core.rides.models import uuid_to_str


class User(BaseModel):
    """Пользователь без секретов (хэш пароля в модель не попадает)."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="UUID пользователя")
    email: str = Field(..., description="Email")
    first_name: Optional[str] = Field(None, description="Имя")
    last_name: Optional[str] = Field(None, description="Фамилия")
    phone_number: Optional[str] = Field(None, description="Телефон")
    user_type: UserRole = Field(..., description="Роль пользователя")
    is_active: bool = Field(True, description="Активен ли пользователь")

    # Проекция рейтинга, пишется только сервисом рейтингов
    average_rating: Optional[float] = Field(None, ge=0.0, le=5.0, description="Средняя оценка")
    total_ratings: int = Field(0, ge=0, description="Количество оценок")

    # Текущее положение (только водители)
    current_latitude: Optional[float] = Field(None, description="Широта")
    current_longitude: Optional[float] = Field(None, description="Долгота")
    last_location_update: Optional[datetime] = Field(None, description="Время обновления локации")

    created_at: Optional[datetime] = Field(None, description="Дата регистрации")
    updated_at: Optional[datetime] = Field(None, description="Дата обновления")

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v: Any) -> Any:
        return uuid_to_str(v)

    @property
    def full_name(self) -> str:
        """Полное имя пользователя."""
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class ProfileUpdate(BaseModel):
    """Изменение профиля."""

    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=32)


class LocationUpdate(BaseModel):
    """Текущие координаты водителя."""

    latitude: float = Field(..., ge=-90.0, le=90.0, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180.0, le=180.0, allow_inf_nan=False)


class RatingSummary(BaseModel):
    """Агрегат оценок пользователя."""

    user_id: str
    average_rating: Optional[float] = None
    total_ratings: int = 0
