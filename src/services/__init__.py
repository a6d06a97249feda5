"""Service layer: request pipelines composed from storage, AI, and repository pieces."""

from src.services.rating_service import LeaderboardEntry, TreeRatingService, UploadResult

__all__ = [
    "LeaderboardEntry",
    "TreeRatingService",
    "UploadResult",
]
