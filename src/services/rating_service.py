"""Rating service: the upload pipeline and the leaderboard projection.

Upload: validate -> store blob -> critique -> parse -> persist. The three external
calls are causally dependent and run sequentially, once each. A failure at any step
aborts the request and leaves earlier side effects in place: if the insert fails
after the blob was stored, the blob is orphaned (no compensation).
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from src.ai.analysis import analyze_tree
from src.ai.critic_base import BaseTreeCritic
from src.ai.schema import TreeRating
from src.core.errors import PayloadTooLargeError, ValidationError
from src.core.storage import LocalBlobStore, detect_image_format, extension_for
from src.models.entities import TreeRatingRecord
from src.repository.rating_repo import LEADERBOARD_SIZE, RatingRepository

_log = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
# Declared types that say nothing about the payload; Pillow decides for these.
GENERIC_CONTENT_TYPES = frozenset({"application/octet-stream", "binary/octet-stream"})


@dataclass
class UploadResult:
    image_url: str
    rating: TreeRating
    record_id: int | None = None


@dataclass
class LeaderboardEntry:
    """One leaderboard row. score is always aesthetics_score + originality_score."""

    id: int
    image_url: str
    aesthetics_score: float
    originality_score: float
    created_at: datetime | None

    @property
    def score(self) -> float:
        return self.aesthetics_score + self.originality_score

    @classmethod
    def from_record(cls, record: TreeRatingRecord) -> "LeaderboardEntry":
        return cls(
            id=record.id or 0,
            image_url=record.image_url,
            aesthetics_score=record.aesthetics_score or 0,
            originality_score=record.originality_score or 0,
            created_at=record.created_at,
        )


class TreeRatingService:
    """Orchestrates one upload end to end and shapes the leaderboard."""

    def __init__(
        self,
        blob_store: LocalBlobStore,
        critic: BaseTreeCritic,
        rating_repo: RatingRepository,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ) -> None:
        self.blob_store = blob_store
        self.critic = critic
        self.rating_repo = rating_repo
        self.max_upload_bytes = max_upload_bytes

    def validate(self, data: bytes | None, content_type: str | None) -> str:
        """Check an upload before any side effect. Returns the detected image format."""
        if not data:
            raise ValidationError("No image file provided")
        if len(data) > self.max_upload_bytes:
            raise PayloadTooLargeError(self.max_upload_bytes)
        declared = (content_type or "").split(";")[0].strip().lower()
        if declared and declared not in GENERIC_CONTENT_TYPES and not declared.startswith("image/"):
            raise ValidationError("Only image files can be rated")
        return detect_image_format(data)

    def submit(
        self,
        data: bytes | None,
        content_type: str | None,
        original_name: str | None = None,
    ) -> UploadResult:
        """Run the whole upload pipeline for one file. Errors propagate as TreeRaterError subclasses."""
        image_format = self.validate(data, content_type)
        assert data is not None
        _log.info(
            "File details: size=%s mimetype=%s original_name=%s format=%s",
            len(data),
            content_type,
            original_name,
            image_format,
        )

        filename = self.blob_store.generate_filename(extension_for(image_format, content_type))
        _log.info("Generated filename: %s", filename)
        self.blob_store.upload(filename, data, content_type)

        public_url = self.blob_store.get_public_url(filename)
        _log.info("Public URL generated: %s", public_url)

        _log.info("Starting analysis with %s", self.critic.get_model_card().name)
        rating = analyze_tree(self.critic, public_url)
        _log.info("Analysis completed: %s", rating.model_dump(by_alias=True))

        try:
            record = self.rating_repo.insert_rating(public_url, rating)
        except Exception:
            _log.error("Rating storage failed; blob %s left without a record", filename)
            raise
        _log.info("Stored rating %s for %s", record.id, filename)
        return UploadResult(image_url=public_url, rating=rating, record_id=record.id)

    def top_trees(self, limit: int = LEADERBOARD_SIZE) -> list[LeaderboardEntry]:
        """Leaderboard: up to limit records by aesthetics score descending, recomputed per call."""
        records = self.rating_repo.list_top(limit)
        _log.info("Fetched %s trees for leaderboard", len(records))
        return [LeaderboardEntry.from_record(r) for r in records]

    def get_tree(self, rating_id: int) -> TreeRatingRecord | None:
        return self.rating_repo.get_rating(rating_id)
