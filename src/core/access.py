# src/core/access.py
"""
Права доступа по ролям.

Роль пользователя раскрывается в набор возможностей (Capability),
каждая операция сервиса проверяет ровно одну возможность через authorize().
Проверка участника поездки вынесена в ensure_participant().
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from src.common.constants import UserRole
from src.common.exceptions import AuthorizationError

if TYPE_CHECKING:
    from src.core.rides.models import Ride


class Capability(str, Enum):
    """Возможности, которые выдаются ролям."""
    REQUEST_RIDE = "request_ride"
    CANCEL_RIDE_REQUEST = "cancel_ride_request"
    PAY_FOR_RIDE = "pay_for_ride"
    VIEW_AVAILABLE_RIDES = "view_available_rides"
    ACCEPT_RIDE = "accept_ride"
    DECLINE_RIDE = "decline_ride"
    VIEW_EARNINGS = "view_earnings"
    UPDATE_LOCATION = "update_location"


ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.RIDER: frozenset({
        Capability.REQUEST_RIDE,
        Capability.CANCEL_RIDE_REQUEST,
        Capability.PAY_FOR_RIDE,
    }),
    UserRole.DRIVER: frozenset({
        Capability.VIEW_AVAILABLE_RIDES,
        Capability.ACCEPT_RIDE,
        Capability.DECLINE_RIDE,
        Capability.VIEW_EARNINGS,
        Capability.UPDATE_LOCATION,
    }),
}

# Тексты отказов, которые видит клиент
DENIAL_MESSAGES: dict[Capability, str] = {
    Capability.REQUEST_RIDE: "Only riders can request rides",
    Capability.CANCEL_RIDE_REQUEST: "Only riders can cancel ride requests",
    Capability.PAY_FOR_RIDE: "Only riders can pay for rides",
    Capability.VIEW_AVAILABLE_RIDES: "Only drivers can view available rides",
    Capability.ACCEPT_RIDE: "Only drivers can accept rides",
    Capability.DECLINE_RIDE: "Only drivers can decline rides",
    Capability.VIEW_EARNINGS: "Only drivers can view stats",
    Capability.UPDATE_LOCATION: "Only drivers can update location",
}


@dataclass(frozen=True)
class Actor:
    """Проверенная пара (пользователь, роль) от слоя аутентификации."""
    user_id: str
    role: UserRole

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER

    @property
    def is_rider(self) -> bool:
        return self.role == UserRole.RIDER


def has_capability(role: UserRole, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def authorize(actor: Actor, capability: Capability) -> None:
    """
    Проверяет, что роль пользователя даёт нужную возможность.

    Raises:
        AuthorizationError: если возможности нет
    """
    if not has_capability(actor.role, capability):
        raise AuthorizationError(DENIAL_MESSAGES.get(capability))


def is_participant(actor: Actor, ride: Ride) -> bool:
    """Пользователь в своей роли закреплён за поездкой."""
    match actor.role:
        case UserRole.DRIVER:
            return ride.driver_id is not None and ride.driver_id == actor.user_id
        case UserRole.RIDER:
            return ride.rider_id == actor.user_id
        case _:
            return False


def ensure_participant(actor: Actor, ride: Ride, message: str | None = None) -> None:
    """
    Raises:
        AuthorizationError: если пользователь не водитель и не пассажир этой поездки
    """
    if not is_participant(actor, ride):
        raise AuthorizationError(message)
