"""SQLModel table/entity definitions. Used by Repository layer only."""

from src.models.entities import TreeRatingRecord

__all__ = [
    "TreeRatingRecord",
]
