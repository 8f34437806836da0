# src/services/rides_api/routes/rides.py
"""
Endpoints поездок:
- POST /rides/request - заявка пассажира
- GET /rides/available - свободные заявки (водитель)
- GET /rides/my-rides - мои поездки
- GET /rides/{ride_id} - поездка
- POST /rides/{ride_id}/accept - принять (водитель)
- PUT /rides/{ride_id}/status - сменить статус (участник)
- POST /rides/{ride_id}/cancel - отменить заявку (пассажир)
- POST /rides/{ride_id}/decline - отклонить (водитель)
- POST /rides/{ride_id}/rate - оценить (участник)
- GET /rides/{ride_id}/ratings - оценки поездки
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from src.core.access import Actor
from src.core.ratings import Rating, RatingService, RatingSubmission
from src.core.rides import Ride, RideRequest, RideService
from src.services.rides_api.auth import get_current_actor
from src.services.rides_api.dependencies import get_rating_service, get_ride_service
from src.services.rides_api.schemas import (
    ApiResponse,
    ErrorResponse,
    ReasonRequest,
    StatusUpdateRequest,
)

router = APIRouter(
    prefix="/rides",
    tags=["Rides"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)

CurrentActor = Annotated[Actor, Depends(get_current_actor)]
Rides = Annotated[RideService, Depends(get_ride_service)]
Ratings = Annotated[RatingService, Depends(get_rating_service)]


@router.post(
    "/request",
    response_model=ApiResponse[Ride],
    status_code=status.HTTP_201_CREATED,
    summary="Заказать поездку",
)
async def request_ride(body: RideRequest, actor: CurrentActor, service: Rides) -> ApiResponse[Ride]:
    """Создаёт заявку со статусом requested и расчётной стоимостью."""
    ride = await service.request_ride(actor, body)
    return ApiResponse(message="Ride requested successfully", data=ride)


@router.get("/available", response_model=ApiResponse[list[Ride]], summary="Свободные заявки")
async def list_available(actor: CurrentActor, service: Rides) -> ApiResponse[list[Ride]]:
    rides = await service.list_available(actor)
    return ApiResponse(message="Available rides", data=rides)


@router.get("/my-rides", response_model=ApiResponse[list[Ride]], summary="Мои поездки")
async def list_my_rides(actor: CurrentActor, service: Rides) -> ApiResponse[list[Ride]]:
    rides = await service.list_my_rides(actor)
    return ApiResponse(message="User rides", data=rides)


@router.get("/{ride_id}", response_model=ApiResponse[Ride], summary="Поездка")
async def get_ride(ride_id: UUID, actor: CurrentActor, service: Rides) -> ApiResponse[Ride]:
    ride = await service.get_ride(str(ride_id), actor)
    return ApiResponse(message="Ride details", data=ride)


@router.post("/{ride_id}/accept", response_model=ApiResponse[Ride], summary="Принять заявку")
async def accept_ride(ride_id: UUID, actor: CurrentActor, service: Rides) -> ApiResponse[Ride]:
    """
    Принять заявку. Если её уже принял другой водитель,
    возвращается 404 `Ride not available`.
    """
    ride = await service.accept(str(ride_id), actor)
    return ApiResponse(message="Ride accepted successfully", data=ride)


@router.put("/{ride_id}/status", response_model=ApiResponse[Ride], summary="Сменить статус")
async def update_status(
    ride_id: UUID,
    body: StatusUpdateRequest,
    actor: CurrentActor,
    service: Rides,
) -> ApiResponse[Ride]:
    """
    Допустимые статусы: picked_up, in_progress, completed, awaiting_payment, cancelled.
    `completed` от водителя сохраняется как `awaiting_payment`.
    """
    ride = await service.transition(str(ride_id), actor, body.status)
    return ApiResponse(message="Ride status updated successfully", data=ride)


@router.post("/{ride_id}/cancel", response_model=ApiResponse[Ride], summary="Отменить заявку")
async def cancel_ride(
    ride_id: UUID,
    actor: CurrentActor,
    service: Rides,
    body: ReasonRequest | None = None,
) -> ApiResponse[Ride]:
    ride = await service.cancel_by_rider(str(ride_id), actor, body.reason if body else None)
    return ApiResponse(message="Ride cancelled successfully", data=ride)


@router.post("/{ride_id}/decline", response_model=ApiResponse[Ride], summary="Отклонить заявку")
async def decline_ride(
    ride_id: UUID,
    actor: CurrentActor,
    service: Rides,
    body: ReasonRequest | None = None,
) -> ApiResponse[Ride]:
    ride = await service.decline_by_driver(str(ride_id), actor, body.reason if body else None)
    return ApiResponse(message="Ride declined successfully", data=ride)


@router.post("/{ride_id}/rate", response_model=ApiResponse[Rating], summary="Оценить поездку")
async def rate_ride(
    ride_id: UUID,
    body: RatingSubmission,
    actor: CurrentActor,
    service: Ratings,
) -> ApiResponse[Rating]:
    """Повторная оценка той же поездки обновляет предыдущую."""
    rating = await service.submit(str(ride_id), actor, body)
    return ApiResponse(message="Rating submitted successfully", data=rating)


@router.get("/{ride_id}/ratings", response_model=ApiResponse[list[Rating]], summary="Оценки поездки")
async def list_ride_ratings(
    ride_id: UUID,
    actor: CurrentActor,
    service: Ratings,
) -> ApiResponse[list[Rating]]:
    ratings = await service.list_for_ride(str(ride_id))
    return ApiResponse(message="Ride ratings", data=ratings)
