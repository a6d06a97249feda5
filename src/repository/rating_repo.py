"""Rating repository: insert tree ratings and read the leaderboard."""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Callable, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.ai.schema import TreeRating
from src.core.errors import RecordStoreError
from src.models.entities import TreeRatingRecord

LEADERBOARD_SIZE = 10

_COLUMNS = (
    "id, image_url, aesthetics_score, aesthetics_explanation, originality_score, "
    "originality_explanation, great_features, improvements, created_at"
)


def _row_to_record(row: Sequence[Any]) -> TreeRatingRecord:
    improvements = row[7]
    if isinstance(improvements, str):
        improvements = json.loads(improvements)
    return TreeRatingRecord(
        id=row[0],
        image_url=row[1],
        aesthetics_score=row[2],
        aesthetics_explanation=row[3] or "",
        originality_score=row[4],
        originality_explanation=row[5] or "",
        great_features=row[6] or "",
        improvements=improvements,
        created_at=row[8],
    )


class RatingRepository:
    """
    Database access for tree_ratings. The table is the single source of truth:
    no caching, every read reflects the last committed write.

    SQLAlchemy failures are re-raised as RecordStoreError.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session_scope(self, write: bool = False) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            if write:
                session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise RecordStoreError(f"Database error: {e}") from e
        finally:
            session.close()

    def insert_rating(self, image_url: str, rating: TreeRating) -> TreeRatingRecord:
        """Insert one rating row and return it with the store-assigned id and created_at."""
        with self._session_scope(write=True) as session:
            row = session.execute(
                text(
                    f"""
                    INSERT INTO tree_ratings (
                        image_url, aesthetics_score, aesthetics_explanation,
                        originality_score, originality_explanation,
                        great_features, improvements
                    )
                    VALUES (
                        :image_url, :aesthetics_score, :aesthetics_explanation,
                        :originality_score, :originality_explanation,
                        :great_features, CAST(:improvements AS JSONB)
                    )
                    RETURNING {_COLUMNS}
                    """
                ),
                {
                    "image_url": image_url,
                    "aesthetics_score": rating.aesthetics.score,
                    "aesthetics_explanation": rating.aesthetics.explanation,
                    "originality_score": rating.originality.score,
                    "originality_explanation": rating.originality.explanation,
                    "great_features": rating.great_features,
                    "improvements": json.dumps(rating.improvements),
                },
            ).fetchone()
        if row is None:
            raise RecordStoreError("Failed to store rating")
        return _row_to_record(row)

    def list_top(self, limit: int = LEADERBOARD_SIZE) -> list[TreeRatingRecord]:
        """
        Return up to limit ratings ordered by aesthetics_score descending.

        Ties fall back to insertion order (id ascending); NULL scores sort last.
        """
        with self._session_scope(write=False) as session:
            rows = session.execute(
                text(
                    f"SELECT {_COLUMNS} FROM tree_ratings "
                    "ORDER BY aesthetics_score DESC NULLS LAST, id ASC "
                    "LIMIT :limit"
                ),
                {"limit": limit},
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def get_rating(self, rating_id: int) -> TreeRatingRecord | None:
        """Return a single rating by id, or None if not found."""
        with self._session_scope(write=False) as session:
            row = session.execute(
                text(f"SELECT {_COLUMNS} FROM tree_ratings WHERE id = :id"),
                {"id": rating_id},
            ).fetchone()
        if row is None:
            return None
        return _row_to_record(row)

    def count(self) -> int:
        with self._session_scope(write=False) as session:
            value = session.execute(text("SELECT COUNT(*) FROM tree_ratings")).scalar()
        return int(value or 0)
