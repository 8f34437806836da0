# src/core/earnings/service.py
"""
Агрегатор заработка водителя.

Итоги считаются точно: platform_fee = round(gross * PLATFORM_FEE_RATE),
net = gross - platform_fee. Разбивка по периодам использует упрощённую
долю водителя round(fare * PERIOD_EARNINGS_SHARE) по каждой поездке,
поэтому суммы по периодам могут расходиться с net на копейки.
Обе формулы сохранены отдельно и настраиваются независимо.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from src.common.exceptions import ValidationError
from src.core.access import Actor, Capability, authorize
from src.core.fares import round_half_away_from_zero
from src.core.rides.models import Ride
from src.core.rides.repository import RideRepository


class TotalStats(BaseModel):
    """Итоги за выбранный диапазон."""
    total_rides: int = 0
    total_gross_earnings: int = 0
    platform_fee: int = 0
    total_net_earnings: int = 0
    available_to_withdraw: int = 0


class PeriodBucket(BaseModel):
    """Количество поездок и заработок за период."""
    rides: int = 0
    earnings: int = 0


class PeriodStats(BaseModel):
    today: PeriodBucket = Field(default_factory=PeriodBucket)
    week: PeriodBucket = Field(default_factory=PeriodBucket)
    month: PeriodBucket = Field(default_factory=PeriodBucket)


class DriverStats(BaseModel):
    total_stats: TotalStats
    period_stats: PeriodStats
    recent_rides: list[Ride] = Field(default_factory=list)


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _round_int(value: float) -> int:
    return int(round_half_away_from_zero(value))


def compute_driver_stats(
    rides: list[Ride],
    now: datetime,
    tz: ZoneInfo | timezone = timezone.utc,
    platform_fee_rate: float = 0.20,
    period_share: float = 0.80,
    recent_limit: int = 10,
) -> DriverStats:
    """
    Считает статистику по завершённым поездкам водителя.

    Args:
        rides: Завершённые поездки, сначала новые
        now: Текущий момент
        tz: Календарь для "сегодня" и "этот месяц"
        platform_fee_rate: Комиссия платформы для итогов
        period_share: Доля водителя для разбивки по периодам
        recent_limit: Сколько последних поездок вернуть
    """
    gross = sum(ride.gross_fare for ride in rides)
    platform_fee = _round_int(gross * platform_fee_rate)
    net = gross - platform_fee

    local_now = _as_aware(now).astimezone(tz)
    today = local_now.date()
    week_start = local_now - timedelta(days=7)
    month_start = local_now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    periods = PeriodStats()
    for ride in rides:
        if ride.created_at is None:
            continue
        created = _as_aware(ride.created_at).astimezone(tz)
        share = _round_int(ride.gross_fare * period_share)

        buckets = []
        if created.date() == today:
            buckets.append(periods.today)
        if created >= week_start:
            buckets.append(periods.week)
        if created >= month_start:
            buckets.append(periods.month)

        for bucket in buckets:
            bucket.rides += 1
            bucket.earnings += share

    return DriverStats(
        total_stats=TotalStats(
            total_rides=len(rides),
            total_gross_earnings=gross,
            platform_fee=platform_fee,
            total_net_earnings=net,
            available_to_withdraw=net,
        ),
        period_stats=periods,
        recent_rides=rides[:recent_limit],
    )


class EarningsService:
    """Сервис статистики водителя."""

    def __init__(
        self,
        rides: RideRepository,
        timezone_name: str = "UTC",
        platform_fee_rate: float = 0.20,
        period_share: float = 0.80,
        recent_limit: int = 10,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._rides = rides
        self._tz = ZoneInfo(timezone_name)
        self._platform_fee_rate = platform_fee_rate
        self._period_share = period_share
        self._recent_limit = recent_limit
        self._clock = clock

    @classmethod
    def from_settings(cls, rides: RideRepository) -> EarningsService:
        from src.config import settings

        return cls(
            rides,
            timezone_name=settings.domain.TIMEZONE,
            platform_fee_rate=settings.earnings.PLATFORM_FEE_RATE,
            period_share=settings.earnings.PERIOD_EARNINGS_SHARE,
            recent_limit=settings.earnings.RECENT_RIDES_LIMIT,
        )

    async def get_stats(
        self,
        actor: Actor,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> DriverStats:
        """
        Статистика текущего водителя, фильтр по created_at включительно.

        Raises:
            AuthorizationError: пользователь не водитель
            ValidationError: start позже end
        """
        authorize(actor, Capability.VIEW_EARNINGS)

        start = _as_aware(start) if start is not None else None
        end = _as_aware(end) if end is not None else None
        if start is not None and end is not None and start > end:
            raise ValidationError("start_date must not be after end_date")

        rides = await self._rides.list_completed_for_driver(actor.user_id, start, end)
        return compute_driver_stats(
            rides,
            now=self._clock(),
            tz=self._tz,
            platform_fee_rate=self._platform_fee_rate,
            period_share=self._period_share,
            recent_limit=self._recent_limit,
        )
