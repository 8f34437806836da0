# src/core/earnings/__init__.py
"""
Статистика заработка водителя.
"""

from src.core.earnings.service import (
    DriverStats,
    EarningsService,
    PeriodStats,
    TotalStats,
    compute_driver_stats,
)

__all__ = [
    "DriverStats",
    "EarningsService",
    "PeriodStats",
    "TotalStats",
    "compute_driver_stats",
]
