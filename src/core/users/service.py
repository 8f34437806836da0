# src/core/users/service.py
"""
Сервис профиля и локации пользователя.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from src.common.exceptions import NotFoundError
from src.common.logger import log_debug, log_info
from src.core.access import Actor, Capability, authorize
from src.core.users.models import LocationUpdate, ProfileUpdate, User
from src.core.users.repository import UserRepository


class UserService:
    """Сервис пользователей."""

    def __init__(
        self,
        repository: UserRepository,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._repo = repository
        self._clock = clock

    async def update_profile(self, actor: Actor, update: ProfileUpdate) -> User:
        """
        Обновляет имя и телефон текущего пользователя.

        Raises:
            NotFoundError: пользователя нет
        """
        user = await self._repo.update_profile(actor.user_id, update)
        if user is None:
            raise NotFoundError("User not found or update failed")
        await log_info(f"Профиль пользователя {actor.user_id} обновлён")
        return user

    async def update_location(self, actor: Actor, location: LocationUpdate) -> None:
        """
        Сохраняет текущие координаты водителя.

        Raises:
            AuthorizationError: пользователь не водитель
            NotFoundError: пользователя нет
        """
        authorize(actor, Capability.UPDATE_LOCATION)
        updated = await self._repo.update_location(
            actor.user_id,
            location.latitude,
            location.longitude,
            self._clock(),
        )
        if not updated:
            raise NotFoundError("User not found")
        await log_debug(
            f"Водитель {actor.user_id}: {location.latitude:.5f}, {location.longitude:.5f}"
        )
