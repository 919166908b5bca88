# tests/test_storage.py
import pytest

from marketboard.errors import NotFoundError, UploadError
from marketboard.services.storage import (
    HIGHLIGHTS, LISTING_PHOTOS, VERIFICATION_DOCS, make_object_path, remove_quietly, validate_upload,
)


@pytest.mark.parametrize("kind,ctype,size,duration", [
    ("photo", "image/gif", 100, None),
    ("photo", "image/jpeg", 5 * 1024 * 1024 + 1, None),
    ("photo", "image/png", 0, None),
    ("document", "image/webp", 100, None),
    ("highlight", "video/mp4", 100, 31),
])
def test_rejected_uploads(kind, ctype, size, duration):
    with pytest.raises(UploadError):
        validate_upload(kind, ctype, size, duration)


def test_accepted_uploads():
    validate_upload("photo", "image/webp", 1024)
    validate_upload("document", "application/pdf", 10 * 1024 * 1024)
    validate_upload("highlight", "video/webm; codecs=vp9", 2048, 30)
    validate_upload("highlight", "image/jpeg", 2048, None)


def test_object_path_keeps_extension():
    path = make_object_path(7, "Beach.JPG")
    assert path.startswith("7/") and path.endswith(".jpg")
    assert make_object_path(7, None, "image/png").endswith(".png")


def test_public_upload_returns_url_and_serves(storage):
    url = storage.upload(LISTING_PHOTOS, "1/a.jpg", b"abc", "image/jpeg")
    assert url == "http://testserver/media/listing-photos/1/a.jpg"
    assert storage.open_path(LISTING_PHOTOS, "1/a.jpg").read_bytes() == b"abc"


def test_private_upload_needs_signed_token(storage):
    path = storage.upload(VERIFICATION_DOCS, "1/document/id.pdf", b"%PDF", "application/pdf")
    assert path == "1/document/id.pdf"

    with pytest.raises(NotFoundError):
        storage.open_path(VERIFICATION_DOCS, path)

    signed = storage.get_signed_url(VERIFICATION_DOCS, path, ttl=60)
    token = signed.split("?token=", 1)[1]
    assert storage.open_path(VERIFICATION_DOCS, path, token).read_bytes() == b"%PDF"
    with pytest.raises(NotFoundError):
        storage.open_path(VERIFICATION_DOCS, "1/document/other.pdf", token)


def test_path_traversal_is_refused(storage):
    with pytest.raises(NotFoundError):
        storage.upload(HIGHLIGHTS, "../verification-docs/x.pdf", b"x")
    with pytest.raises(NotFoundError):
        storage.open_path("secrets", "x")


def test_remove_quietly_logs_and_continues(storage, caplog):
    storage.upload(HIGHLIGHTS, "1/a.jpg", b"a")

    class Broken:
        def delete(self, bucket, path):
            raise OSError("read-only filesystem")

    remove_quietly(Broken(), HIGHLIGHTS, ["1/a.jpg", None])
    assert "failed to remove highlights/1/a.jpg" in caplog.text

    remove_quietly(storage, HIGHLIGHTS, ["1/a.jpg"])
    with pytest.raises(NotFoundError):
        storage.open_path(HIGHLIGHTS, "1/a.jpg")
