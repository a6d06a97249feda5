"""Tests for the local blob store and image format detection."""

import re

import pytest

from src.core.errors import BlobStoreError, ValidationError
from src.core.storage import LocalBlobStore, detect_image_format, extension_for
from tests.fakes import make_image_bytes

pytestmark = [pytest.mark.fast]


def test_generate_filename_shape():
    name = LocalBlobStore.generate_filename(".png")
    assert re.fullmatch(r"tree-\d{13}-[0-9a-f]{8}\.png", name)


def test_generate_filename_is_unique():
    names = {LocalBlobStore.generate_filename() for _ in range(200)}
    assert len(names) == 200


def test_upload_writes_under_bucket(tmp_path):
    store = LocalBlobStore(tmp_path, "http://localhost:3001")
    path = store.upload("tree-1-abc.jpg", b"data", "image/jpeg")
    assert path == tmp_path / "christmas-trees" / "tree-1-abc.jpg"
    assert path.read_bytes() == b"data"
    assert [p.name for p in (tmp_path / "christmas-trees").iterdir()] == ["tree-1-abc.jpg"]
    assert not list((tmp_path / "christmas-trees").glob("*.tmp"))


def test_upload_does_not_overwrite(tmp_path):
    store = LocalBlobStore(tmp_path, "http://localhost:3001")
    store.upload("tree-1-abc.jpg", b"first")
    with pytest.raises(BlobStoreError, match="already exists"):
        store.upload("tree-1-abc.jpg", b"second")
    assert (tmp_path / "christmas-trees" / "tree-1-abc.jpg").read_bytes() == b"first"


@pytest.mark.parametrize("name", ["../escape.jpg", "sub/dir.jpg", ""])
def test_upload_rejects_path_components(tmp_path, name):
    store = LocalBlobStore(tmp_path, "http://localhost:3001")
    with pytest.raises(BlobStoreError, match="Invalid object name"):
        store.upload(name, b"x")
    assert not [p for p in tmp_path.rglob("*") if p.is_file()]


def test_upload_os_error_becomes_blob_store_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = LocalBlobStore(blocker, "http://localhost:3001")
    with pytest.raises(BlobStoreError, match="Upload failed"):
        store.upload("tree-1-abc.jpg", b"x")


def test_public_url(tmp_path):
    store = LocalBlobStore(tmp_path, "https://trees.example.com/")
    assert (
        store.get_public_url("tree-1-abc.jpg")
        == "https://trees.example.com/media/christmas-trees/tree-1-abc.jpg"
    )


def test_detect_image_format(jpeg_bytes, png_bytes):
    assert detect_image_format(jpeg_bytes) == "JPEG"
    assert detect_image_format(png_bytes) == "PNG"
    assert detect_image_format(make_image_bytes("GIF")) == "GIF"


@pytest.mark.parametrize("data", [b"", b"hello world", b"\x89PNG\r\n\x1a\n" + b"\x00" * 8])
def test_detect_image_format_rejects_non_images(data):
    with pytest.raises(ValidationError, match="Invalid image file"):
        detect_image_format(data)


@pytest.mark.parametrize(
    "fmt,content_type,expected",
    [
        ("JPEG", "image/jpeg", ".jpg"),
        ("PNG", None, ".png"),
        ("WEBP", "image/webp", ".webp"),
        (None, "image/png", ".png"),
        (None, "image/jpeg", ".jpg"),
        (None, None, ".jpg"),
    ],
)
def test_extension_for(fmt, content_type, expected):
    assert extension_for(fmt, content_type) == expected
