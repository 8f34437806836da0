# src/core/ratings/service.py
"""
Журнал оценок.

Оценка записывается по завершённой поездке, после чего пересчитывается
средняя оценка пользователя. Пересчёт - производная проекция: его сбой
логируется и не отменяет записанную оценку. Для ремонта проекции
recompute_user_rating() можно вызвать отдельно.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

from src.common.constants import RideStatus
from src.common.exceptions import AuthorizationError, NotFoundError, ValidationError
from src.common.logger import log_error, log_info
from src.core.access import Actor
from src.core.ratings.models import Rating, RatingSubmission
from src.core.ratings.repository import RatingRepository
from src.core.rides.models import Ride
from src.core.rides.repository import RideRepository
from src.core.users.models import RatingSummary
from src.core.users.repository import UserRepository
from src.infra.event_bus import DomainEvent, EventBus, EventTypes

MIN_SCORE = 0.0
MAX_SCORE = 5.0


def validate_score(score: float | None) -> None:
    """
    Raises:
        ValidationError: оценка не в диапазоне [0, 5]
    """
    if score is None:
        return
    if not math.isfinite(score) or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError("Rating must be between 0 and 5")


def counterpart_of(ride: Ride, user_id: str) -> str | None:
    """
    Второй участник поездки относительно user_id.

    Raises:
        AuthorizationError: user_id не участвует в поездке
    """
    if ride.rider_id == user_id:
        return ride.driver_id
    if ride.driver_id is not None and ride.driver_id == user_id:
        return ride.rider_id
    raise AuthorizationError("Not authorized to rate this ride")


def summarize_scores(user_id: str, scores: list[float]) -> RatingSummary:
    """Среднее с округлением половины вверх до 2 знаков. Без оценок среднее пустое."""
    if not scores:
        return RatingSummary(user_id=user_id, average_rating=None, total_ratings=0)
    total = sum(Decimal(str(score)) for score in scores)
    average = (total / len(scores)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return RatingSummary(
        user_id=user_id,
        average_rating=float(average),
        total_ratings=len(scores),
    )


class RatingService:
    """Сервис оценок."""

    def __init__(
        self,
        ratings: RatingRepository,
        rides: RideRepository,
        users: UserRepository,
        event_bus: EventBus | None = None,
    ) -> None:
        self._ratings = ratings
        self._rides = rides
        self._users = users
        self._event_bus = event_bus

    async def submit(self, ride_id: str, actor: Actor, submission: RatingSubmission) -> Rating:
        """
        Записывает оценку участника завершённой поездки.

        Raises:
            ValidationError: оценка вне диапазона или у поездки нет второго участника
            NotFoundError: нет завершённой поездки с таким ID
            AuthorizationError: пользователь не участник поездки
        """
        validate_score(submission.rating)

        ride = await self._rides.get_by_id(ride_id)
        if ride is None or ride.status != RideStatus.COMPLETED:
            raise NotFoundError("Completed ride not found")

        rated_user = counterpart_of(ride, actor.user_id)
        if rated_user is None:
            raise ValidationError("Cannot determine user to rate")

        rating = await self._ratings.upsert(
            ride_id=ride_id,
            rated_by=actor.user_id,
            rated_user=rated_user,
            rating=submission.rating,
            review=submission.review or None,
        )
        await log_info(
            f"Оценка {submission.rating} по поездке {ride_id}: {actor.user_id} -> {rated_user}",
            extra={"ride_id": ride_id, "rating_id": rating.id},
        )

        await self.refresh_user_rating(rated_user)

        if self._event_bus is not None:
            await self._event_bus.publish(DomainEvent(
                event_type=EventTypes.RATING_SUBMITTED,
                payload={
                    "ride_id": ride_id,
                    "rated_by": actor.user_id,
                    "rated_user": rated_user,
                    "rating": submission.rating,
                },
            ))
        return rating

    async def recompute_user_rating(self, user_id: str) -> RatingSummary:
        """
        Пересчитывает и сохраняет среднюю оценку пользователя.
        Ошибки хранилища пробрасываются.
        """
        scores = await self._ratings.scores_for_user(user_id)
        summary = summarize_scores(user_id, scores)
        await self._users.update_rating_summary(
            user_id,
            summary.average_rating,
            summary.total_ratings,
        )
        return summary

    async def refresh_user_rating(self, user_id: str) -> RatingSummary | None:
        """Пересчёт без проброса ошибок. None, если пересчёт не удался."""
        try:
            return await self.recompute_user_rating(user_id)
        except Exception as e:
            await log_error(
                f"Не удалось пересчитать рейтинг пользователя {user_id}: {e}",
                extra={"user_id": user_id},
                exc_info=True,
            )
            return None

    async def list_for_ride(self, ride_id: str) -> list[Rating]:
        return await self._ratings.list_for_ride(ride_id)

    async def list_for_user(self, user_id: str, actor: Actor) -> list[Rating]:
        """
        Оценки, полученные пользователем. Смотреть можно только свои.

        Raises:
            AuthorizationError
        """
        if actor.user_id != user_id:
            raise AuthorizationError("Not authorized to view these ratings")
        return await self._ratings.list_for_user(user_id)
