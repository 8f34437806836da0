# src/services/rides_api/schemas.py
"""
Модели запросов и ответов HTTP API.
Успешный ответ: {"message": ..., "data": ...}, ошибка: {"error": ...}.
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Успешный ответ."""
    message: str
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    """Ответ с ошибкой."""
    error: str


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""
    status: str = Field(..., description="healthy или degraded")
    service: str
    version: str
    components: dict[str, bool] = Field(default_factory=dict)


class StatusUpdateRequest(BaseModel):
    """Запрошенный участником статус поездки."""
    status: str


class ReasonRequest(BaseModel):
    """Тело отмены или отказа."""
    reason: Optional[str] = Field(None, max_length=500)


class PaymentIntentRequest(BaseModel):
    ride_id: UUID


class PaymentIntentResponse(BaseModel):
    client_secret: str
    amount: int


class WebhookAck(BaseModel):
    received: bool = True
    applied: bool = False
