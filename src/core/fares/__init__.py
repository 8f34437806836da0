# src/core/fares/__init__.py
"""
Расчёт стоимости поездки.
"""

from src.core.fares.calculator import (
    FareCalculator,
    FareQuote,
    haversine_km,
    round_half_away_from_zero,
)

__all__ = [
    "FareCalculator",
    "FareQuote",
    "haversine_km",
    "round_half_away_from_zero",
]
