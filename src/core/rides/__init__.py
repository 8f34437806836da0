# src/core/rides/__init__.py
"""
Домен поездок: модели, автомат статусов, репозиторий и сервис.
"""

from src.core.rides.models import Ride, RideRequest
from src.core.rides.repository import RideRepository
from src.core.rides.service import RideService

__all__ = [
    "Ride",
    "RideRequest",
    "RideRepository",
    "RideService",
]
