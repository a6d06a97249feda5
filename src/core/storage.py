"""Local blob store: uploaded tree photos under data_dir, served publicly via the /media mount."""

import io
import logging
import mimetypes
import time
import uuid
from pathlib import Path
from typing import Callable

from PIL import Image, UnidentifiedImageError

from src.core.errors import BlobStoreError, ValidationError

_log = logging.getLogger(__name__)

DEFAULT_BUCKET = "christmas-trees"
MEDIA_MOUNT = "/media"

# Pillow format name -> file extension
_FORMAT_EXTENSIONS = {
    "JPEG": ".jpg",
    "MPO": ".jpg",
    "PNG": ".png",
    "WEBP": ".webp",
    "GIF": ".gif",
    "BMP": ".bmp",
    "TIFF": ".tiff",
    "HEIF": ".heic",
}


def detect_image_format(data: bytes) -> str:
    """Return the Pillow format name for image bytes; raise ValidationError if not an image.

    Only the header is parsed and the pixel data is checked with verify(); nothing is decoded.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise ValidationError("Invalid image file") from e
    if not fmt:
        raise ValidationError("Invalid image file")
    return fmt


def extension_for(image_format: str | None, content_type: str | None) -> str:
    """Pick a file extension from the detected format, falling back to the declared MIME type."""
    if image_format and image_format.upper() in _FORMAT_EXTENSIONS:
        return _FORMAT_EXTENSIONS[image_format.upper()]
    if content_type:
        guessed = mimetypes.guess_extension(content_type.split(";")[0].strip())
        if guessed:
            return ".jpg" if guessed in (".jpe", ".jpeg") else guessed
    return ".jpg"


def _atomic_write(dest_path: Path, write_fn: Callable[[Path], None]) -> None:
    """Write to tmp path then atomically rename. Clean up tmp on failure."""
    tmp_path = dest_path.with_suffix(dest_path.suffix + ".tmp")
    try:
        write_fn(tmp_path)
        tmp_path.replace(dest_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


class LocalBlobStore:
    """
    Stores uploaded images under data_dir / bucket / filename.

    Objects are write-once (no upsert): uploading to an existing name fails.
    Public URLs are public_base_url + /media/{bucket}/{filename}; the API mounts
    data_dir at /media so those URLs are fetchable by the oracle.
    """

    def __init__(
        self,
        data_dir: str | Path,
        public_base_url: str,
        bucket: str = DEFAULT_BUCKET,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.public_base_url = public_base_url.rstrip("/")
        self.bucket = bucket

    @property
    def bucket_dir(self) -> Path:
        return self.data_dir / self.bucket

    @staticmethod
    def generate_filename(extension: str = ".jpg") -> str:
        """tree-<epoch ms>-<random hex>; the random suffix keeps same-millisecond uploads apart."""
        timestamp = int(time.time() * 1000)
        return f"tree-{timestamp}-{uuid.uuid4().hex[:8]}{extension}"

    def _object_path(self, filename: str) -> Path:
        name = Path(filename).name
        if not name or name != filename:
            raise BlobStoreError(f"Invalid object name: {filename!r}")
        return self.bucket_dir / name

    def upload(self, filename: str, data: bytes, content_type: str | None = None) -> Path:
        """Persist data under filename. Raises BlobStoreError on any storage failure."""
        path = self._object_path(filename)
        try:
            self.bucket_dir.mkdir(parents=True, exist_ok=True)
            if path.exists():
                raise BlobStoreError(f"Upload failed: object {filename} already exists")

            def _do_write(p: Path) -> None:
                p.write_bytes(data)

            _atomic_write(path, _do_write)
        except OSError as e:
            raise BlobStoreError(f"Upload failed: {e}") from e
        _log.debug("Stored %s (%s bytes, %s)", path, len(data), content_type or "unknown type")
        return path

    def get_public_url(self, filename: str) -> str:
        return f"{self.public_base_url}{MEDIA_MOUNT}/{self.bucket}/{Path(filename).name}"
