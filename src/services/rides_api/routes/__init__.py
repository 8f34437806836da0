# src/services/rides_api/routes/__init__.py
"""
Роутеры Rides API.
"""

from src.services.rides_api.routes.drivers import router as drivers_router
from src.services.rides_api.routes.payments import router as payments_router
from src.services.rides_api.routes.rides import router as rides_router
from src.services.rides_api.routes.users import router as users_router

__all__ = [
    "drivers_router",
    "payments_router",
    "rides_router",
    "users_router",
]
