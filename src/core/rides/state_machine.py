# src/core/rides/state_machine.py
"""
Конечный автомат статусов поездки.

    requested -> accepted -> picked_up -> in_progress -> awaiting_payment -> completed
    requested | accepted -> cancelled | declined

Правила заданы таблицами, чтобы их можно было проверить по отдельности:
- ALLOWED_TRANSITIONS: какие переходы разрешены из текущего статуса;
- STORED_STATUS_RULES: (роль, запрошенный статус) -> статус, который сохраняется;
- TIMESTAMP_FIELDS: какую временную метку ставит запрошенный статус.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.common.constants import TERMINAL_RIDE_STATUSES, RideStatus, UserRole
from src.common.exceptions import StateConflictError, ValidationError
from src.core.rides.models import Ride


ALLOWED_TRANSITIONS: dict[RideStatus, frozenset[RideStatus]] = {
    RideStatus.REQUESTED: frozenset({
        RideStatus.ACCEPTED,
        RideStatus.CANCELLED,
        RideStatus.DECLINED,
    }),
    RideStatus.ACCEPTED: frozenset({
        RideStatus.PICKED_UP,
        RideStatus.CANCELLED,
        RideStatus.DECLINED,
    }),
    RideStatus.PICKED_UP: frozenset({
        RideStatus.IN_PROGRESS,
    }),
    RideStatus.IN_PROGRESS: frozenset({
        RideStatus.AWAITING_PAYMENT,
        RideStatus.COMPLETED,
    }),
    RideStatus.AWAITING_PAYMENT: frozenset({
        RideStatus.COMPLETED,
    }),
    **{status: frozenset() for status in TERMINAL_RIDE_STATUSES},
}

# Статусы, которые участник может запросить через смену статуса
REQUESTABLE_STATUSES: frozenset[RideStatus] = frozenset({
    RideStatus.PICKED_UP,
    RideStatus.IN_PROGRESS,
    RideStatus.COMPLETED,
    RideStatus.AWAITING_PAYMENT,
    RideStatus.CANCELLED,
})

# Водитель завершает обслуживание, но поездка ждёт оплаты
STORED_STATUS_RULES: dict[tuple[UserRole, RideStatus], RideStatus] = {
    (UserRole.DRIVER, RideStatus.COMPLETED): RideStatus.AWAITING_PAYMENT,
}

# Ключ - запрошенный статус, а не сохранённый
TIMESTAMP_FIELDS: dict[RideStatus, str] = {
    RideStatus.PICKED_UP: "picked_up_at",
    RideStatus.COMPLETED: "completed_at",
    RideStatus.CANCELLED: "cancelled_at",
}


def can_transition(current: RideStatus, target: RideStatus) -> bool:
    """Проверяет, разрешён ли переход current -> target."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def resolve_stored_status(role: UserRole, requested: RideStatus) -> RideStatus:
    """Статус, который будет записан в базу для запроса этой роли."""
    return STORED_STATUS_RULES.get((role, requested), requested)


def parse_requested_status(value: str | RideStatus) -> RideStatus:
    """
    Raises:
        ValidationError: статус не входит в REQUESTABLE_STATUSES
    """
    try:
        status = RideStatus(value)
    except ValueError:
        raise ValidationError("Invalid status") from None
    if status not in REQUESTABLE_STATUSES:
        raise ValidationError("Invalid status")
    return status


@dataclass(frozen=True)
class TransitionPlan:
    """Условное обновление: применить fields, если статус всё ещё expected."""
    expected: RideStatus
    target: RideStatus
    fields: dict[str, Any] = field(default_factory=dict)


def plan_transition(
    ride: Ride,
    role: UserRole,
    requested: RideStatus,
    now: datetime,
) -> TransitionPlan:
    """
    Строит изменение поездки для запроса участника.

    Каждая временная метка ставится не более одного раза:
    completed_at, поставленный водителем, не перезаписывается
    при последующем подтверждении пассажиром.

    Raises:
        StateConflictError: переход из текущего статуса запрещён
    """
    target = resolve_stored_status(role, requested)
    if not can_transition(ride.status, target):
        raise StateConflictError(
            f"Cannot change ride status from {ride.status.value} to {target.value}"
        )

    fields: dict[str, Any] = {"status": target}
    timestamp_field = TIMESTAMP_FIELDS.get(requested)
    if timestamp_field and getattr(ride, timestamp_field) is None:
        fields[timestamp_field] = now

    return TransitionPlan(expected=ride.status, target=target, fields=fields)
