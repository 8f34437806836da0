# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Роли пользователей."""
    RIDER = "rider"
    DRIVER = "driver"


class RideStatus(str, Enum):
    """Статусы поездки."""
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    IN_PROGRESS = "in_progress"
    AWAITING_PAYMENT = "awaiting_payment"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DECLINED = "declined"


# Статусы, из которых поездка уже не выходит
TERMINAL_RIDE_STATUSES: frozenset[RideStatus] = frozenset({
    RideStatus.COMPLETED,
    RideStatus.CANCELLED,
    RideStatus.DECLINED,
})


class RideType(str, Enum):
    """Классы поездки."""
    STANDARD = "standard"
    COMFORT = "comfort"
    XL = "xl"


class CancelledBy(str, Enum):
    """Кто отменил поездку."""
    RIDER = "rider"
    DRIVER = "driver"


class PaymentStatus(str, Enum):
    """Статусы оплаты поездки."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
