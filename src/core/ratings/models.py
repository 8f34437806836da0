# src/core/ratings/models.py
"""
Модели оценок.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.rides.models import uuid_to_str


class Rating(BaseModel):
    """Оценка одного участника поездки другим. Одна на пару (поездка, автор)."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="UUID оценки")
    ride_id: str = Field(..., description="UUID поездки")
    rated_by: str = Field(..., description="Кто оценил")
    rated_user: str = Field(..., description="Кого оценили")
    rating: Optional[float] = Field(None, description="Оценка 0-5, пусто для отзыва без оценки")
    review: Optional[str] = Field(None, description="Текст отзыва")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", "ride_id", "rated_by", "rated_user", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Any:
        return uuid_to_str(v)


class RatingSubmission(BaseModel):
    """Оценка, которую отправляет участник. Диапазон проверяет сервис."""

    rating: Optional[float] = None
    review: Optional[str] = Field(None, max_length=2000)
