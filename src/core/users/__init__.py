# src/core/users/__init__.py
"""
Домен пользователей: профиль, локация водителя, проекция рейтинга.
"""

from src.core.users.models import LocationUpdate, ProfileUpdate, RatingSummary, User
from src.core.users.repository import UserRepository
from src.core.users.service import UserService

__all__ = [
    "User",
    "ProfileUpdate",
    "LocationUpdate",
    "RatingSummary",
    "UserRepository",
    "UserService",
]
