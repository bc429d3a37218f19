"""Object storage for uploaded import files (local filesystem + S3-compatible)."""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, BinaryIO, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

CHUNK_SIZE = 64 * 1024
ZSTD_CONTENT_TYPES = frozenset({"application/zstd", "application/x-zstd"})
MISSING_OBJECT_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
UNSAFE_FILE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(Exception):
    """Raised when an object cannot be stored or read."""


class ObjectNotFoundError(StorageError):
    """Raised when no object exists under a key."""


@dataclass(frozen=True)
class StoredObject:
    """A stored object opened for streaming.

    Attributes:
        key: The object key.
        chunks: The object body as byte chunks, read lazily.
        content_type: The stored content type, when known.
    """

    key: str
    chunks: Iterable[bytes]
    content_type: str | None = None

    @property
    def compressed(self) -> bool:
        """True when the body is zstd-compressed."""
        if self.key.lower().endswith(".zst"):
            return True
        return (self.content_type or "").split(";")[0].strip().lower() in ZSTD_CONTENT_TYPES


class ObjectStorage(Protocol):
    def put(self, key: str, fileobj: BinaryIO, content_type: str | None = None) -> None:
        ...

    def open(self, key: str) -> StoredObject:
        ...


def build_import_object_key(user_id: int, job_id: int, file_name: str) -> str:
    """Key under which an uploaded import file is stored."""
    name = UNSAFE_FILE_NAME_CHARS.sub("_", Path(file_name).name).strip("._") or "upload.pgn"
    return f"imports/{user_id}/{job_id}/{name}"


class FileSystemObjectStorage:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _full_path(self, key: str) -> Path:
        root = self.root.resolve()
        path = (root / key.lstrip("/")).resolve()
        if not path.is_relative_to(root):
            raise StorageError(f"Object key escapes the storage root: {key}")
        return path

    def put(self, key: str, fileobj: BinaryIO, content_type: str | None = None) -> None:
        path = self._full_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as handle:
                shutil.copyfileobj(fileobj, handle, CHUNK_SIZE)
        except OSError as exc:
            raise StorageError(f"Cannot store object {key}: {exc}") from exc

    def open(self, key: str) -> StoredObject:
        path = self._full_path(key)
        if not path.is_file():
            raise ObjectNotFoundError(f"Object not found: {key}")
        return StoredObject(key=key, chunks=self._read_chunks(path))

    def _read_chunks(self, path: Path) -> Iterator[bytes]:
        with path.open("rb") as handle:
            while chunk := handle.read(CHUNK_SIZE):
                yield chunk


class S3ObjectStorage:
    def __init__(
        self,
        bucket: str,
        client: Any | None = None,
        endpoint_url: str | None = None,
        region_name: str | None = None,
    ) -> None:
        self.bucket = bucket
        self._client = client or boto3.client(
            "s3", endpoint_url=endpoint_url, region_name=region_name
        )

    def put(self, key: str, fileobj: BinaryIO, content_type: str | None = None) -> None:
        extra_args = {"ContentType": content_type} if content_type else None
        try:
            self._client.upload_fileobj(fileobj, self.bucket, key, ExtraArgs=extra_args)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Cannot store object {key}: {exc}") from exc

    def open(self, key: str) -> StoredObject:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code")
            if error_code in MISSING_OBJECT_CODES:
                raise ObjectNotFoundError(f"Object not found: {key}") from exc
            raise StorageError(f"Cannot read object {key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Cannot read object {key}: {exc}") from exc
        return StoredObject(
            key=key,
            chunks=response["Body"].iter_chunks(CHUNK_SIZE),
            content_type=response.get("ContentType"),
        )


@lru_cache(maxsize=1)
def get_object_storage() -> ObjectStorage:
    """The storage backend selected by IMPORT_STORAGE_BACKEND."""
    backend = settings.IMPORT_STORAGE_BACKEND
    if backend == "filesystem":
        return FileSystemObjectStorage(settings.IMPORT_STORAGE_ROOT)
    if backend == "s3":
        if not settings.S3_BUCKET:
            raise StorageError("S3_BUCKET must be set for the s3 storage backend")
        return S3ObjectStorage(
            settings.S3_BUCKET,
            endpoint_url=settings.S3_ENDPOINT,
            region_name=settings.S3_REGION,
        )
    raise StorageError(f"Unknown import storage backend: {backend!r}")
