# tests/core/test_ratings.py
"""
Тесты для журнала оценок и пересчёта средней оценки.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.common.constants import RideStatus
from src.common.exceptions import AuthorizationError, NotFoundError, ValidationError
from src.core.access import Actor
from src.core.ratings import Rating, RatingRepository, RatingService, RatingSubmission
from src.core.ratings.service import counterpart_of, summarize_scores, validate_score
from src.infra.event_bus import EventTypes


def _rating(ride_id: str, rated_by: str, rated_user: str, score: float | None) -> Rating:
    return Rating(
        id=str(uuid.uuid4()),
        ride_id=ride_id,
        rated_by=rated_by,
        rated_user=rated_user,
        rating=score,
        created_at=datetime(2024, 5, 10, tzinfo=timezone.utc),
    )



class FakeRatingRepository:
    """Журнал оценок в памяти. Одна строка на пару (поездка, автор)."""

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], Rating] = {}

    async def upsert(
        self,
        ride_id: str,
        rated_by: str,
        rated_user: str,
        rating: float | None,
        review: str | None,
    ) -> Rating:
        existing = self.rows.get((ride_id, rated_by))
        if existing is None:
            stored = _rating(ride_id, rated_by, rated_user, rating).model_copy(update={"review": review})
        else:
            stored = existing.model_copy(update={
                "rating": rating,
                "review": review,
                "updated_at": datetime(2024, 5, 11, tzinfo=timezone.utc),
            })
        self.rows[(ride_id, rated_by)] = stored
        return stored

    async def list_for_ride(self, ride_id: str) -> list[Rating]:
        return [r for r in self.rows.values() if r.ride_id == ride_id]

    async def list_for_user(self, user_id: str) -> list[Rating]:
        return [r for r in self.rows.values() if r.rated_user == user_id and r.rating is not None]

    async def scores_for_user(self, user_id: str) -> list[float]:
        return [r.rating for r in await self.list_for_user(user_id)]

@pytest.fixture
def ratings_repo() -> AsyncMock:
    repo = AsyncMock(spec=RatingRepository)
    repo.upsert.side_effect = lambda **kw: _rating(kw["ride_id"], kw["rated_by"], kw["rated_user"], kw["rating"])
    repo.scores_for_user.return_value = [5.0, 4.0, 4.0]
    repo.list_for_ride.return_value = []
    repo.list_for_user.return_value = []
    return repo


@pytest.fixture
def users_repo() -> AsyncMock:
    repo = AsyncMock()
    repo.update_rating_summary = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def service(ratings_repo: AsyncMock, users_repo: AsyncMock, ride_repo, mock_event_bus: AsyncMock) -> RatingService:
    return RatingService(
        ratings=ratings_repo,
        rides=ride_repo,
        users=users_repo,
        event_bus=mock_event_bus,
    )


class TestHelpers:
    """Тесты для вспомогательных функций."""

    @pytest.mark.parametrize("score", [0.0, 2.5, 5.0, None])
    def test_valid_scores(self, score: float | None) -> None:
        validate_score(score)

    @pytest.mark.parametrize("score", [-0.1, 5.01, math.nan, math.inf])
    def test_invalid_scores(self, score: float) -> None:
        with pytest.raises(ValidationError, match="Rating must be between 0 and 5"):
            validate_score(score)

    def test_counterpart(self, ride_factory, rider: Actor, driver: Actor) -> None:
        ride = ride_factory(driver_id=driver.user_id)
        assert counterpart_of(ride, rider.user_id) == driver.user_id
        assert counterpart_of(ride, driver.user_id) == rider.user_id

    def test_counterpart_stranger(self, ride_factory, other_rider: Actor) -> None:
        with pytest.raises(AuthorizationError):
            counterpart_of(ride_factory(driver_id="d"), other_rider.user_id)

    def test_summary_rounds_to_two_places(self) -> None:
        summary = summarize_scores("u", [5.0, 4.0, 4.0])
        assert summary.average_rating == 4.33
        assert summary.total_ratings == 3

    @pytest.mark.parametrize(
        "scores,expected",
        [
            ([5.0] * 7 + [2.0], 4.63),
            ([4.0, 4.25], 4.13),
            ([1.0, 2.0, 2.0, 2.0, 2.0, 2.0, 2.0, 2.0], 1.88),
        ],
    )
    def test_summary_rounds_half_up(self, scores: list[float], expected: float) -> None:
        """Половина округляется вверх: 37/8 = 4.625 -> 4.63, а не 4.62."""
        assert summarize_scores("u", scores).average_rating == expected

    def test_summary_without_scores(self) -> None:
        """Нет числовых оценок - среднее пустое, счётчик ноль."""
        summary = summarize_scores("u", [])
        assert summary.average_rating is None
        assert summary.total_ratings == 0


class TestSubmit:
    """Тесты для RatingService.submit."""

    @pytest.mark.asyncio
    async def test_rider_rates_driver(
        self,
        service: RatingService,
        ride_repo,
        ride_factory,
        rider: Actor,
        driver: Actor,
        ratings_repo: AsyncMock,
        users_repo: AsyncMock,
        mock_event_bus: AsyncMock,
    ) -> None:
        """Оценка записывается, рейтинг водителя пересчитывается."""
        ride = ride_repo.add(ride_factory(status=RideStatus.COMPLETED, driver_id=driver.user_id))

        rating = await service.submit(ride.id, rider, RatingSubmission(rating=5, review="Отлично"))

        assert rating.rated_user == driver.user_id
        assert rating.rated_by == rider.user_id
        ratings_repo.upsert.assert_awaited_once_with(
            ride_id=ride.id,
            rated_by=rider.user_id,
            rated_user=driver.user_id,
            rating=5.0,
            review="Отлично",
        )
        ratings_repo.scores_for_user.assert_awaited_once_with(driver.user_id)
        users_repo.update_rating_summary.assert_awaited_once_with(driver.user_id, 4.33, 3)
        event = mock_event_bus.publish.call_args.args[0]
        assert event.event_type == EventTypes.RATING_SUBMITTED

    @pytest.mark.asyncio
    async def test_driver_rates_rider(
        self,
        service: RatingService,
        ride_repo,
        ride_factory,
        rider: Actor,
        driver: Actor,
    ) -> None:
        ride = ride_repo.add(ride_factory(status=RideStatus.COMPLETED, driver_id=driver.user_id))
        rating = await service.submit(ride.id, driver, RatingSubmission(rating=4))
        assert rating.rated_user == rider.user_id

    @pytest.mark.asyncio
    async def test_review_without_score(
        self,
        service: RatingService,
        ride_repo,
        ride_factory,
        rider: Actor,
        driver: Actor,
        ratings_repo: AsyncMock,
    ) -> None:
        ride = ride_repo.add(ride_factory(status=RideStatus.COMPLETED, driver_id=driver.user_id))
        rating = await service.submit(ride.id, rider, RatingSubmission(review="Без оценки"))
        assert rating.rating is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [RideStatus.AWAITING_PAYMENT, RideStatus.IN_PROGRESS, RideStatus.CANCELLED])
    async def test_only_completed_rides(
        self,
        service: RatingService,
        ride_repo,
        ride_factory,
        rider: Actor,
        status: RideStatus,
    ) -> None:
        ride = ride_repo.add(ride_factory(status=status, driver_id="d"))
        with pytest.raises(NotFoundError, match="Completed ride not found"):
            await service.submit(ride.id, rider, RatingSubmission(rating=5))

    @pytest.mark.asyncio
    async def test_out_of_range_checked_first(
        self,
        service: RatingService,
        ratings_repo: AsyncMock,
        rider: Actor,
    ) -> None:
        with pytest.raises(ValidationError):
            await service.submit("any", rider, RatingSubmission(rating=6))
        ratings_repo.upsert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stranger_cannot_rate(
        self,
        service: RatingService,
        ride_repo,
        ride_factory,
        other_rider: Actor,
    ) -> None:
        ride = ride_repo.add(ride_factory(status=RideStatus.COMPLETED, driver_id="d"))
        with pytest.raises(AuthorizationError, match="Not authorized to rate this ride"):
            await service.submit(ride.id, other_rider, RatingSubmission(rating=1))

    @pytest.mark.asyncio
    async def test_ride_without_driver(
        self,
        service: RatingService,
        ride_repo,
        ride_factory,
        rider: Actor,
    ) -> None:
        ride = ride_repo.add(ride_factory(status=RideStatus.COMPLETED, driver_id=None))
        with pytest.raises(ValidationError, match="Cannot determine user to rate"):
            await service.submit(ride.id, rider, RatingSubmission(rating=3))

    @pytest.mark.asyncio
    async def test_projection_failure_keeps_rating(
        self,
        service: RatingService,
        ride_repo,
        ride_factory,
        rider: Actor,
        driver: Actor,
        users_repo: AsyncMock,
    ) -> None:
        """Сбой пересчёта не отменяет записанную оценку."""
        ride = ride_repo.add(ride_factory(status=RideStatus.COMPLETED, driver_id=driver.user_id))
        users_repo.update_rating_summary.side_effect = RuntimeError("db down")

        rating = await service.submit(ride.id, rider, RatingSubmission(rating=2))

        assert rating.rating == 2.0


class TestRecompute:
    @pytest.mark.asyncio
    async def test_recompute_without_scores(
        self,
        service: RatingService,
        ratings_repo: AsyncMock,
        users_repo: AsyncMock,
    ) -> None:
        ratings_repo.scores_for_user.return_value = []

        summary = await service.recompute_user_rating("u-1")

        assert summary.average_rating is None
        users_repo.update_rating_summary.assert_awaited_once_with("u-1", None, 0)

    @pytest.mark.asyncio
    async def test_recompute_propagates_errors(self, service: RatingService, ratings_repo: AsyncMock) -> None:
        ratings_repo.scores_for_user.side_effect = RuntimeError("db down")
        with pytest.raises(RuntimeError):
            await service.recompute_user_rating("u-1")

    @pytest.mark.asyncio
    async def test_refresh_swallows_errors(self, service: RatingService, ratings_repo: AsyncMock) -> None:
        ratings_repo.scores_for_user.side_effect = RuntimeError("db down")
        assert await service.refresh_user_rating("u-1") is None


class TestListings:
    @pytest.mark.asyncio
    async def test_list_own_ratings(self, service: RatingService, ratings_repo: AsyncMock, driver: Actor) -> None:
        await service.list_for_user(driver.user_id, driver)
        ratings_repo.list_for_user.assert_awaited_once_with(driver.user_id)

    @pytest.mark.asyncio
    async def test_cannot_list_others(self, service: RatingService, driver: Actor, rider: Actor) -> None:
        with pytest.raises(AuthorizationError, match="Not authorized to view these ratings"):
            await service.list_for_user(rider.user_id, driver)


class TestRatingRepository:
    """Тесты SQL репозитория оценок."""

    @pytest.mark.asyncio
    async def test_upsert_uses_unique_key(self, mock_db: AsyncMock) -> None:
        row: dict[str, Any] = {
            "id": uuid.uuid4(),
            "ride_id": uuid.uuid4(),
            "rated_by": uuid.uuid4(),
            "rated_user": uuid.uuid4(),
            "rating": 4.5,
            "review": None,
            "created_at": datetime(2024, 5, 10, tzinfo=timezone.utc),
            "updated_at": None,
        }
        mock_db.fetchrow.return_value = row

        rating = await RatingRepository(mock_db).upsert("r", "a", "b", 4.5, None)

        query = mock_db.fetchrow.call_args.args[0]
        assert "ON CONFLICT (ride_id, rated_by) DO UPDATE" in query
        assert rating.id == str(row["id"])
        assert rating.rating == 4.5

    @pytest.mark.asyncio
    async def test_scores_for_user(self, mock_db: AsyncMock) -> None:
        mock_db.fetch.return_value = [{"rating": 5}, {"rating": 3.5}]
        assert await RatingRepository(mock_db).scores_for_user("u") == [5.0, 3.5]


class TestResubmission:
    """Повторная оценка той же поездки тем же автором."""

    @pytest.fixture
    def fake_ratings(self) -> FakeRatingRepository:
        return FakeRatingRepository()

    @pytest.fixture
    def fake_service(
        self,
        fake_ratings: FakeRatingRepository,
        users_repo: AsyncMock,
        ride_repo,
    ) -> RatingService:
        return RatingService(ratings=fake_ratings, rides=ride_repo, users=users_repo)

    @pytest.mark.asyncio
    async def test_second_submission_replaces_first(
        self,
        fake_service: RatingService,
        fake_ratings: FakeRatingRepository,
        ride_repo,
        ride_factory,
        rider: Actor,
        driver: Actor,
        users_repo: AsyncMock,
    ) -> None:
        """Остаётся одна строка со второй оценкой, средняя считается по ней."""
        ride = ride_repo.add(ride_factory(status=RideStatus.COMPLETED, driver_id=driver.user_id))

        first = await fake_service.submit(ride.id, rider, RatingSubmission(rating=2, review="Опоздал"))
        second = await fake_service.submit(ride.id, rider, RatingSubmission(rating=5))

        stored = await fake_service.list_for_ride(ride.id)
        assert len(stored) == 1
        assert stored[0].id == first.id == second.id
        assert stored[0].rating == 5.0
        assert stored[0].review is None
        users_repo.update_rating_summary.assert_awaited_with(driver.user_id, 5.0, 1)

    @pytest.mark.asyncio
    async def test_both_participants_keep_separate_rows(
        self,
        fake_service: RatingService,
        ride_repo,
        ride_factory,
        rider: Actor,
        driver: Actor,
    ) -> None:
        ride = ride_repo.add(ride_factory(status=RideStatus.COMPLETED, driver_id=driver.user_id))

        await fake_service.submit(ride.id, rider, RatingSubmission(rating=4))
        await fake_service.submit(ride.id, driver, RatingSubmission(rating=3))

        stored = await fake_service.list_for_ride(ride.id)
        assert {(r.rated_by, r.rating) for r in stored} == {
            (rider.user_id, 4.0),
            (driver.user_id, 3.0),
        }
