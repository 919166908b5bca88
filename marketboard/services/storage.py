# marketboard/services/storage.py
from __future__ import annotations

import logging
import mimetypes
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..config import settings
from ..errors import UploadError, NotFoundError
from ..utils.security import create_jwt, decode_jwt

logger = logging.getLogger(__name__)

LISTING_PHOTOS = "listing-photos"
HIGHLIGHTS = "highlights"
VERIFICATION_DOCS = "verification-docs"

PUBLIC_BUCKETS = frozenset({LISTING_PHOTOS, HIGHLIGHTS})
BUCKETS = PUBLIC_BUCKETS | {VERIFICATION_DOCS}


@dataclass(frozen=True)
class FileLimit:
    max_size_mb: int
    allowed_types: tuple[str, ...]
    max_duration_sec: int | None = None

    @property
    def max_bytes(self) -> int:
        return self.max_size_mb * 1024 * 1024


@dataclass(frozen=True)
class UploadedFile:
    filename: str | None
    content_type: str | None
    data: bytes
    duration_sec: float | None = None   # declared by the client for videos

    @property
    def size(self) -> int:
        return len(self.data)


FILE_LIMITS = {
    "photo": FileLimit(5, ("image/jpeg", "image/png", "image/webp")),
    "document": FileLimit(10, ("image/jpeg", "image/png", "application/pdf")),
    "highlight": FileLimit(10, ("image/jpeg", "image/png", "image/webp", "video/mp4", "video/webm"), 30),
}


def validate_upload(kind: str, content_type: str | None, size: int, duration_sec: float | None = None) -> None:
    """Check a file before any network/storage call. Raises UploadError."""
    limit = FILE_LIMITS[kind]
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype not in limit.allowed_types:
        raise UploadError(f"file type '{ctype or 'unknown'}' not allowed, use: {', '.join(limit.allowed_types)}")
    if size <= 0:
        raise UploadError("empty file")
    if size > limit.max_bytes:
        raise UploadError(f"file too large, max {limit.max_size_mb}MB")
    if duration_sec is not None and limit.max_duration_sec is not None and ctype.startswith("video/"):
        # trimming is not done server side, longer clips are refused
        if duration_sec > limit.max_duration_sec:
            raise UploadError(f"video too long, max {limit.max_duration_sec}s")


def validate_file(kind: str, f: UploadedFile) -> None:
    validate_upload(kind, f.content_type, f.size, f.duration_sec)


def make_object_path(prefix: str | int, filename: str | None, content_type: str | None = None) -> str:
    ext = ""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
    elif content_type:
        guessed = mimetypes.guess_extension(content_type) or ""
        ext = guessed.lstrip(".")
    name = f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
    return f"{prefix}/{name}.{ext}" if ext else f"{prefix}/{name}"


class ObjectStorage(Protocol):
    def upload(self, bucket: str, path: str, data: bytes, content_type: str | None = None) -> str: ...
    def get_public_url(self, bucket: str, path: str) -> str: ...
    def get_signed_url(self, bucket: str, path: str, ttl: int = 3600) -> str: ...
    def delete(self, bucket: str, path: str) -> None: ...


class LocalObjectStorage:
    """Filesystem storage, files land in ``<root>/<bucket>/<path>``.

    Public urls point at the ``/media`` route; private objects are reachable
    only through a signed url carrying a short lived JWT.
    """

    def __init__(self, root: str | Path, base_url: str) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _resolve(self, bucket: str, path: str) -> Path:
        if bucket not in BUCKETS:
            raise NotFoundError(f"unknown bucket {bucket}")
        base = (self.root / bucket).resolve()
        target = (base / path).resolve()
        if base != target and base not in target.parents:
            raise NotFoundError("object not found")
        return target

    def upload(self, bucket: str, path: str, data: bytes, content_type: str | None = None) -> str:
        target = self._resolve(bucket, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug("stored %s/%s (%d bytes)", bucket, path, len(data))
        if bucket in PUBLIC_BUCKETS:
            return self.get_public_url(bucket, path)
        return path

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/media/{bucket}/{path}"

    def get_signed_url(self, bucket: str, path: str, ttl: int = 3600) -> str:
        token = create_jwt({"bucket": bucket, "path": path}, ttl_sec=ttl)
        return f"{self.base_url}/media/{bucket}/{path}?token={token}"

    def delete(self, bucket: str, path: str) -> None:
        target = self._resolve(bucket, path)
        target.unlink(missing_ok=True)

    def open_path(self, bucket: str, path: str, token: str | None = None) -> Path:
        """Filesystem path for serving; private buckets require a valid token."""
        if bucket not in PUBLIC_BUCKETS:
            claims = decode_jwt(token) if token else None
            if not claims or claims.get("bucket") != bucket or claims.get("path") != path:
                raise NotFoundError("object not found")
        target = self._resolve(bucket, path)
        if not target.is_file():
            raise NotFoundError("object not found")
        return target


def remove_quietly(storage: ObjectStorage, bucket: str, paths) -> None:
    # storage cleanup never blocks the db side, leftovers are only logged
    for path in paths:
        if not path:
            continue
        try:
            storage.delete(bucket, path)
        except Exception:
            logger.exception("failed to remove %s/%s", bucket, path)


_default_storage: LocalObjectStorage | None = None


def get_storage() -> ObjectStorage:
    """FastAPI dependency; tests override it with a temp-dir storage."""
    global _default_storage
    if _default_storage is None:
        _default_storage = LocalObjectStorage(settings.STORAGE_ROOT, settings.PUBLIC_BASE_URL)
    return _default_storage
