# src/core/users/repository.py
"""
Репозиторий пользователей.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from src.common.constants import UserRole
from src.core.users.models import ProfileUpdate, User
from src.infra.database import DatabaseManager

_USER_COLUMNS = """
    id, email, first_name, last_name, phone_number, user_type, is_active,
    average_rating, total_ratings,
    current_latitude, current_longitude, last_location_update,
    created_at, updated_at
"""


class UserRepository:
    """Репозиторий пользователей."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(
        self,
        email: str,
        user_type: UserRole,
        first_name: str | None = None,
        last_name: str | None = None,
        phone_number: str | None = None,
        password_hash: str | None = None,
    ) -> User:
        """
        Создаёт пользователя. Повторная регистрация email
        обновляет имя и телефон.
        """
        row = await self._db.fetchrow(
            f"""
            INSERT INTO users (email, password_hash, first_name, last_name, phone_number, user_type)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (email) DO UPDATE SET
                first_name = EXCLUDED.first_name,
                last_name = EXCLUDED.last_name,
                phone_number = EXCLUDED.phone_number,
                updated_at = NOW()
            RETURNING {_USER_COLUMNS}
            """,
            email,
            password_hash,
            first_name,
            last_name,
            phone_number,
            user_type.value,
        )
        return self._row_to_user(row)

    async def update_profile(self, user_id: str, update: ProfileUpdate) -> Optional[User]:
        """Обновляет профиль. None, если пользователя нет."""
        row = await self._db.fetchrow(
            f"""
            UPDATE users
            SET first_name = $2, last_name = $3, phone_number = $4, updated_at = NOW()
            WHERE id = $1
            RETURNING {_USER_COLUMNS}
            """,
            user_id,
            update.first_name,
            update.last_name,
            update.phone_number,
        )
        if row is None:
            return None
        return self._row_to_user(row)

    async def update_location(
        self,
        user_id: str,
        latitude: float,
        longitude: float,
        updated_at: datetime,
    ) -> bool:
        """Сохраняет текущие координаты. False, если пользователя нет."""
        result = await self._db.execute(
            """
            UPDATE users
            SET current_latitude = $2, current_longitude = $3, last_location_update = $4
            WHERE id = $1
            """,
            user_id,
            latitude,
            longitude,
            updated_at,
        )
        return result == "UPDATE 1"

    async def update_rating_summary(
        self,
        user_id: str,
        average_rating: float | None,
        total_ratings: int,
    ) -> None:
        """Записывает агрегат оценок."""
        await self._db.execute(
            """
            UPDATE users
            SET average_rating = $2, total_ratings = $3
            WHERE id = $1
            """,
            user_id,
            average_rating,
            total_ratings,
        )

    @staticmethod
    def _row_to_user(row: Any) -> User:
        return User.model_validate(dict(row))
