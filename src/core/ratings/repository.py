# src/core/ratings/repository.py
"""
Репозиторий оценок.
"""

from __future__ import annotations

from typing import Any

from src.core.ratings.models import Rating
from src.infra.database import DatabaseManager


class RatingRepository:
    """Репозиторий оценок."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def upsert(
        self,
        ride_id: str,
        rated_by: str,
        rated_user: str,
        rating: float | None,
        review: str | None,
    ) -> Rating:
        """
        Вставляет оценку или обновляет существующую для (ride_id, rated_by).
        Уникальный ключ гарантирует одну строку на пару даже при гонке.
        """
        row = await self._db.fetchrow(
            """
            INSERT INTO ratings (ride_id, rated_by, rated_user, rating, review)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (ride_id, rated_by) DO UPDATE SET
                rating = EXCLUDED.rating,
                review = EXCLUDED.review,
                updated_at = NOW()
            RETURNING *
            """,
            ride_id,
            rated_by,
            rated_user,
            rating,
            review,
        )
        return self._row_to_rating(row)

    async def list_for_ride(self, ride_id: str) -> list[Rating]:
        rows = await self._db.fetch(
            "SELECT * FROM ratings WHERE ride_id = $1 ORDER BY created_at ASC",
            ride_id,
        )
        return [self._row_to_rating(row) for row in rows]

    async def list_for_user(self, user_id: str) -> list[Rating]:
        """Оценки пользователя с числовым значением, сначала новые."""
        rows = await self._db.fetch(
            """
            SELECT * FROM ratings
            WHERE rated_user = $1 AND rating IS NOT NULL
            ORDER BY created_at DESC
            """,
            user_id,
        )
        return [self._row_to_rating(row) for row in rows]

    async def scores_for_user(self, user_id: str) -> list[float]:
        """Все числовые оценки пользователя."""
        rows = await self._db.fetch(
            "SELECT rating FROM ratings WHERE rated_user = $1 AND rating IS NOT NULL",
            user_id,
        )
        return [float(row["rating"]) for row in rows]

    @staticmethod
    def _row_to_rating(row: Any) -> Rating:
        return Rating.model_validate(dict(row))
