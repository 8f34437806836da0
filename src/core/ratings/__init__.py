# src/core/ratings/__init__.py
"""
Журнал оценок и проекция средней оценки пользователя.
"""

from src.core.ratings.models import Rating, RatingSubmission
from src.core.ratings.repository import RatingRepository
from src.core.ratings.service import RatingService

__all__ = [
    "Rating",
    "RatingSubmission",
    "RatingRepository",
    "RatingService",
]
