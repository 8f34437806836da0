# src/common/exceptions.py
"""
Иерархия доменных ошибок.

Каждый вид ошибки несёт HTTP-статус, в который его переводит API.
Ни одна из этих ошибок не возникает после частичной записи.
"""

from __future__ import annotations


class DomainError(Exception):
    """Базовая доменная ошибка."""

    http_status: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DomainError):
    """Некорректные входные данные (исправляется вызывающей стороной)."""

    http_status = 400
    default_message = "Invalid input"


class AuthenticationError(DomainError):
    """Отсутствует или невалиден токен доступа."""

    http_status = 401
    default_message = "Authentication required"


class AuthorizationError(DomainError):
    """Неверная роль или пользователь не участник поездки."""

    http_status = 403
    default_message = "Not authorized"


class NotFoundError(DomainError):
    """Сущность не найдена."""

    http_status = 404
    default_message = "Not found"


class StateConflictError(DomainError):
    """Текущий статус не удовлетворяет предусловию (включая проигранную гонку)."""

    http_status = 400
    default_message = "Ride is no longer in the expected state"


class RideNotAvailableError(StateConflictError):
    """Поездку уже принял другой водитель или она больше не в статусе requested."""

    http_status = 404
    default_message = "Ride not available"


class UnexpectedError(DomainError):
    """Сбой хранилища или внешнего сервиса."""

    http_status = 500
    default_message = "Internal server error"
