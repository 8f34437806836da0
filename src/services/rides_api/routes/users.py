# src/services/rides_api/routes/users.py
"""
Endpoints пользователя:
- PUT /users/profile - обновить профиль
- PUT /users/location - обновить координаты (водитель)
- GET /users/ratings/{user_id} - полученные оценки (только свои)
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from src.core.access import Actor
from src.core.ratings import Rating, RatingService
from src.core.users import LocationUpdate, ProfileUpdate, User, UserService
from src.services.rides_api.auth import get_current_actor
from src.services.rides_api.dependencies import get_rating_service, get_user_service
from src.services.rides_api.schemas import ApiResponse, ErrorResponse

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)

CurrentActor = Annotated[Actor, Depends(get_current_actor)]


@router.put("/profile", response_model=ApiResponse[User], summary="Обновить профиль")
async def update_profile(
    body: ProfileUpdate,
    actor: CurrentActor,
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse[User]:
    user = await service.update_profile(actor, body)
    return ApiResponse(message="Profile updated successfully", data=user)


@router.put("/location", response_model=ApiResponse[None], summary="Обновить координаты")
async def update_location(
    body: LocationUpdate,
    actor: CurrentActor,
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse[None]:
    await service.update_location(actor, body)
    return ApiResponse(message="Location updated successfully")


@router.get("/ratings/{user_id}", response_model=ApiResponse[list[Rating]], summary="Мои оценки")
async def list_user_ratings(
    user_id: UUID,
    actor: CurrentActor,
    service: Annotated[RatingService, Depends(get_rating_service)],
) -> ApiResponse[list[Rating]]:
    ratings = await service.list_for_user(str(user_id), actor)
    return ApiResponse(message="User ratings", data=ratings)
