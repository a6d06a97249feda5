"""SQLModel table/entity definitions for Tree Rater. Postgres 16+ only (JSONB)."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import TIMESTAMP, Column, Index, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel


class TreeRatingRecord(SQLModel, table=True):
    """One analyzed upload. Written once, never updated; total score is derived, not stored."""

    __tablename__ = "tree_ratings"
    __table_args__ = (
        Index("ix_tree_ratings_aesthetics_score", text("aesthetics_score DESC")),
    )

    id: int | None = Field(default=None, primary_key=True)
    image_url: str = Field(nullable=False)
    aesthetics_score: float | None = Field(default=0)
    aesthetics_explanation: str = ""
    originality_score: float | None = Field(default=0)
    originality_explanation: str = ""
    great_features: str = ""
    improvements: list[Any] | None = Field(default=None, sa_column=Column(JSONB))
    # Assigned by the database on insert; the default only covers in-memory records.
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
        ),
    )

    @property
    def total_score(self) -> float:
        return (self.aesthetics_score or 0) + (self.originality_score or 0)
