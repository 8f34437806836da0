# tests/core/test_earnings.py
"""
Тесты для статистики заработка водителя.
"""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from src.common.constants import PaymentStatus, RideStatus
from src.common.exceptions import AuthorizationError, ValidationError
from src.core.access import Actor
from src.core.earnings import EarningsService, compute_driver_stats

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def completed_rides(ride_factory, driver: Actor) -> list:
    """Четыре завершённые поездки, сначала новые."""
    def completed(created_at: datetime, **kw):
        return ride_factory(status=RideStatus.COMPLETED, driver_id=driver.user_id, created_at=created_at, **kw)

    return [
        completed(datetime(2024, 5, 15, 8, 0, tzinfo=timezone.utc), estimated_fare=1000),
        completed(
            datetime(2024, 5, 10, 10, 0, tzinfo=timezone.utc),
            estimated_fare=1800,
            final_fare=2005,
            payment_status=PaymentStatus.PAID,
        ),
        completed(datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc), estimated_fare=1500),
        completed(datetime(2024, 4, 30, 23, 0, tzinfo=timezone.utc), estimated_fare=999),
    ]


class TestComputeDriverStats:
    """Тесты для compute_driver_stats."""

    def test_totals(self, completed_rides: list) -> None:
        """Комиссия 20% от валового дохода, чистый доход - остаток."""
        stats = compute_driver_stats(completed_rides, now=NOW)

        assert stats.total_stats.total_rides == 4
        assert stats.total_stats.total_gross_earnings == 5504
        assert stats.total_stats.platform_fee == 1101
        assert stats.total_stats.total_net_earnings == 4403
        assert stats.total_stats.available_to_withdraw == 4403

    def test_period_buckets(self, completed_rides: list) -> None:
        """Сегодня, 7 дней и календарный месяц, по 80% от стоимости каждой поездки."""
        stats = compute_driver_stats(completed_rides, now=NOW)

        assert (stats.period_stats.today.rides, stats.period_stats.today.earnings) == (1, 800)
        assert (stats.period_stats.week.rides, stats.period_stats.week.earnings) == (2, 2404)
        assert (stats.period_stats.month.rides, stats.period_stats.month.earnings) == (3, 3604)

    def test_recent_rides_limited(self, completed_rides: list) -> None:
        stats = compute_driver_stats(completed_rides, now=NOW, recent_limit=2)
        assert [r.id for r in stats.recent_rides] == [r.id for r in completed_rides[:2]]

    def test_empty(self) -> None:
        stats = compute_driver_stats([], now=NOW)
        assert stats.total_stats.total_rides == 0
        assert stats.total_stats.platform_fee == 0
        assert stats.period_stats.month.earnings == 0
        assert stats.recent_rides == []

    def test_today_follows_configured_timezone(self, ride_factory, driver: Actor) -> None:
        """В Берлине 00:30 следующего дня: поездка в 23:50 по Берлину уже вчерашняя."""
        now = datetime(2024, 5, 15, 22, 30, tzinfo=timezone.utc)
        after_midnight = ride_factory(
            status=RideStatus.COMPLETED,
            driver_id=driver.user_id,
            created_at=datetime(2024, 5, 15, 22, 10, tzinfo=timezone.utc),
        )
        before_midnight = ride_factory(
            status=RideStatus.COMPLETED,
            driver_id=driver.user_id,
            created_at=datetime(2024, 5, 15, 21, 50, tzinfo=timezone.utc),
        )

        berlin = compute_driver_stats([after_midnight, before_midnight], now=now, tz=ZoneInfo("Europe/Berlin"))
        utc = compute_driver_stats([after_midnight, before_midnight], now=now)

        assert berlin.period_stats.today.rides == 1
        assert utc.period_stats.today.rides == 2

    def test_custom_rates(self, completed_rides: list) -> None:
        stats = compute_driver_stats(completed_rides, now=NOW, platform_fee_rate=0.25, period_share=0.5)
        assert stats.total_stats.platform_fee == 1376
        assert stats.period_stats.today.earnings == 500


class TestEarningsService:
    """Тесты для EarningsService."""

    @pytest.fixture
    def service(self, ride_repo) -> EarningsService:
        return EarningsService(ride_repo, timezone_name="UTC", clock=lambda: NOW)

    @pytest.mark.asyncio
    async def test_driver_stats(self, service: EarningsService, ride_repo, completed_rides: list, driver: Actor) -> None:
        for ride in completed_rides:
            ride_repo.add(ride)

        stats = await service.get_stats(driver)

        assert stats.total_stats.total_rides == 4
        assert stats.recent_rides[0].id == completed_rides[0].id

    @pytest.mark.asyncio
    async def test_date_range_filter(
        self,
        service: EarningsService,
        ride_repo,
        completed_rides: list,
        driver: Actor,
    ) -> None:
        """Диапазон включителен, наивные даты считаются UTC."""
        for ride in completed_rides:
            ride_repo.add(ride)

        stats = await service.get_stats(
            driver,
            start=datetime(2024, 5, 1, 0, 0),
            end=datetime(2024, 5, 10, 10, 0),
        )

        assert stats.total_stats.total_rides == 2
        assert stats.total_stats.total_gross_earnings == 3505

    @pytest.mark.asyncio
    async def test_other_drivers_rides_excluded(
        self,
        service: EarningsService,
        ride_repo,
        ride_factory,
        driver: Actor,
        other_driver: Actor,
    ) -> None:
        ride_repo.add(ride_factory(status=RideStatus.COMPLETED, driver_id=other_driver.user_id))
        ride_repo.add(ride_factory(status=RideStatus.AWAITING_PAYMENT, driver_id=driver.user_id))

        stats = await service.get_stats(driver)

        assert stats.total_stats.total_rides == 0

    @pytest.mark.asyncio
    async def test_rider_forbidden(self, service: EarningsService, rider: Actor) -> None:
        with pytest.raises(AuthorizationError, match="Only drivers can view stats"):
            await service.get_stats(rider)

    @pytest.mark.asyncio
    async def test_inverted_range(self, service: EarningsService, driver: Actor) -> None:
        with pytest.raises(ValidationError):
            await service.get_stats(
                driver,
                start=datetime(2024, 6, 1, tzinfo=timezone.utc),
                end=datetime(2024, 5, 1, tzinfo=timezone.utc),
            )

    def test_from_settings(self, ride_repo) -> None:
        from src.config import settings

        service = EarningsService.from_settings(ride_repo)
        assert service._platform_fee_rate == settings.earnings.PLATFORM_FEE_RATE
        assert service._recent_limit == settings.earnings.RECENT_RIDES_LIMIT
