"""Repository layer: database access only. No ORM calls in business logic."""

from src.repository.rating_repo import LEADERBOARD_SIZE, RatingRepository

__all__ = [
    "LEADERBOARD_SIZE",
    "RatingRepository",
]
