# src/services/rides_api/routes/drivers.py
"""
Endpoints водителя:
- GET /drivers/stats - заработок и статистика
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from src.core.access import Actor
from src.core.earnings import DriverStats, EarningsService
from src.services.rides_api.auth import get_current_actor
from src.services.rides_api.dependencies import get_earnings_service
from src.services.rides_api.schemas import ApiResponse, ErrorResponse

router = APIRouter(
    prefix="/drivers",
    tags=["Drivers"],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)


@router.get("/stats", response_model=ApiResponse[DriverStats], summary="Статистика водителя")
async def driver_stats(
    actor: Annotated[Actor, Depends(get_current_actor)],
    service: Annotated[EarningsService, Depends(get_earnings_service)],
    start_date: datetime | None = Query(default=None, description="Начало периода (created_at)"),
    end_date: datetime | None = Query(default=None, description="Конец периода (created_at)"),
) -> ApiResponse[DriverStats]:
    """
    Итоги по завершённым поездкам водителя:
    - `total_stats` - валовый доход, комиссия 20% и чистый доход
    - `period_stats` - сегодня / 7 дней / текущий месяц (80% от стоимости)
    - `recent_rides` - 10 последних поездок
    """
    stats = await service.get_stats(actor, start_date, end_date)
    return ApiResponse(message="Driver stats", data=stats)
