"""Error taxonomy for the rating pipeline. Each error knows the HTTP status it maps to."""


class TreeRaterError(Exception):
    """Base class for every error the pipeline raises on purpose."""

    status_code = 500


class ValidationError(TreeRaterError):
    """The client sent something we cannot rate (missing file, not an image)."""

    status_code = 400


class PayloadTooLargeError(ValidationError):
    status_code = 413

    def __init__(self, max_bytes: int) -> None:
        self.max_bytes = max_bytes
        mb = max_bytes / (1024 * 1024)
        limit = int(mb) if mb == int(mb) else round(mb, 1)
        super().__init__(f"File too large. Maximum size is {limit}MB")


class RateLimitError(TreeRaterError):
    status_code = 429

    def __init__(self, message: str, retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ExternalServiceError(TreeRaterError):
    """A managed collaborator (blob store, oracle, database) failed. Never retried."""


class BlobStoreError(ExternalServiceError):
    pass


class RecordStoreError(ExternalServiceError):
    pass


class InferenceError(ExternalServiceError):
    """The AI oracle could not produce a usable reply."""

    status_code = 503


class ParseError(InferenceError):
    pass
