# src/common/__init__.py
"""
Общие утилиты, константы, ошибки и логгер.
"""

from src.common.logger import get_logger, log_info, log_error, log_warning, log_debug
from src.common.constants import TypeMsg, UserRole, RideStatus, PaymentStatus
from src.common.exceptions import (
    DomainError,
    ValidationError,
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    UnexpectedError,
)

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "TypeMsg",
    "UserRole",
    "RideStatus",
    "PaymentStatus",
    "DomainError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "StateConflictError",
    "UnexpectedError",
]
