# src/core/fares/calculator.py
"""
Калькулятор стоимости поездки.

estimated_fare = round(base_fare + distance_km * per_km_rate)
в минимальных денежных единицах (центах), округление половины от нуля.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

EARTH_RADIUS_KM = 6371.0


def _coordinate_is_valid(value: float, limit: float) -> bool:
    return math.isfinite(value) and -limit <= value <= limit


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Расстояние по большой окружности (км) по формуле Haversine.
    Для нечисловых или вне диапазона координат возвращает NaN.
    """
    if not (
        _coordinate_is_valid(lat1, 90.0)
        and _coordinate_is_valid(lat2, 90.0)
        and _coordinate_is_valid(lon1, 180.0)
        and _coordinate_is_valid(lon2, 180.0)
    ):
        return math.nan

    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)
    # У почти противоположных точек погрешность float даёт a > 1
    a = min(1.0, max(0.0, a))

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def round_half_away_from_zero(value: float) -> float:
    """2.5 -> 3.0, -2.5 -> -3.0. NaN и бесконечности возвращаются как есть."""
    if not math.isfinite(value):
        return value
    return float(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class FareQuote:
    """Результат расчёта. fare может быть NaN при плохих координатах."""
    distance_km: float
    fare: float

    @property
    def is_valid(self) -> bool:
        return math.isfinite(self.fare) and self.fare >= 0

    @property
    def amount(self) -> int:
        """Стоимость в центах. Вызывать только для is_valid."""
        if not self.is_valid:
            raise ValueError(f"Некорректная стоимость поездки: {self.fare}")
        return int(self.fare)


class FareCalculator:
    """Калькулятор стоимости по базовому тарифу и цене за километр."""

    def __init__(self, base_fare: int, per_km_rate: int) -> None:
        self.base_fare = base_fare
        self.per_km_rate = per_km_rate

    @classmethod
    def from_settings(cls) -> FareCalculator:
        """Создаёт калькулятор с тарифами из config.json."""
        from src.config import settings

        return cls(
            base_fare=settings.fares.BASE_FARE,
            per_km_rate=settings.fares.PER_KM_RATE,
        )

    def quote(
        self,
        pickup_latitude: float,
        pickup_longitude: float,
        destination_latitude: float,
        destination_longitude: float,
    ) -> FareQuote:
        """
        Рассчитывает стоимость поездки.

        Не бросает исключений: вызывающий код обязан проверить
        FareQuote.is_valid перед сохранением.
        """
        distance = haversine_km(
            pickup_latitude,
            pickup_longitude,
            destination_latitude,
            destination_longitude,
        )
        fare = round_half_away_from_zero(self.base_fare + distance * self.per_km_rate)
        return FareQuote(distance_km=distance, fare=fare)
