from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import quote

import jwt

from tarely.config import settings

logger = logging.getLogger(__name__)

AVATARS = "avatars"
TASK_ATTACHMENTS = "task-attachments"
NOTE_ATTACHMENTS = "note-attachments"
BUCKETS = {AVATARS, TASK_ATTACHMENTS, NOTE_ATTACHMENTS}

_ALGORITHM = "HS256"


class StorageError(Exception):
    """Raised when an object cannot be stored, read or addressed."""


class InvalidSignatureError(StorageError):
    """Raised when a signed URL token is invalid, expired, or for another object."""


def sanitize_filename(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.\-]", "_", name)


def classify_mime_type(mime_type: str) -> str:
    """Coarse file type for attachment listings: image, document or other."""
    mime_type = (mime_type or "").lower()
    if mime_type.startswith("image/"):
        return "image"
    if (
        mime_type == "application/pdf"
        or "document" in mime_type
        or "sheet" in mime_type
        or "text/" in mime_type
    ):
        return "document"
    return "other"


class ObjectStorage:
    """Bucketed object store on the local filesystem.

    Objects are never served directly: callers hand out signed, time-limited
    URLs that the ``/storage`` router verifies before streaming bytes.
    """

    def __init__(self, root: str | Path, signing_secret: str) -> None:
        self._root = Path(root).resolve()
        self._secret = signing_secret

    def _resolve(self, bucket: str, path: str) -> Path:
        if bucket not in BUCKETS:
            raise StorageError(f"Unknown bucket {bucket!r}")
        bucket_root = (self._root / bucket).resolve()
        target = (bucket_root / path).resolve()
        if bucket_root not in target.parents:
            raise StorageError(f"Path {path!r} escapes bucket {bucket!r}")
        return target

    def upload(self, bucket: str, path: str, data: bytes, *, upsert: bool = False) -> str:
        target = self._resolve(bucket, path)
        if target.exists() and not upsert:
            raise StorageError(f"Object {bucket}/{path} already exists")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug("storage: stored %s/%s (%d bytes)", bucket, path, len(data))
        return path

    def read(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        if not target.is_file():
            raise StorageError(f"Object {bucket}/{path} not found")
        return target.read_bytes()

    def remove(self, bucket: str, paths: list[str]) -> None:
        for path in paths:
            target = self._resolve(bucket, path)
            try:
                target.unlink()
            except FileNotFoundError:
                logger.info("storage: %s/%s already gone", bucket, path)

    def exists(self, bucket: str, path: str) -> bool:
        return self._resolve(bucket, path).is_file()

    # ── Signed URLs ───────────────────────────────────────────────────────

    def create_signed_url(self, bucket: str, path: str, expires_in: int | None = None) -> str:
        self._resolve(bucket, path)
        expires_in = expires_in or settings.SIGNED_URL_TTL_SECONDS
        payload = {
            "bucket": bucket,
            "path": path,
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        }
        token = jwt.encode(payload, self._secret, algorithm=_ALGORITHM)
        return f"/storage/{bucket}/{quote(path)}?token={token}"

    def verify_token(self, bucket: str, path: str, token: str) -> None:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        except jwt.ExpiredSignatureError as exc:
            raise InvalidSignatureError("Signed URL expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidSignatureError("Invalid signed URL token") from exc
        if payload.get("bucket") != bucket or payload.get("path") != path:
            raise InvalidSignatureError("Signed URL does not match object")


storage = ObjectStorage(settings.STORAGE_ROOT, settings.STORAGE_SIGNING_SECRET)
