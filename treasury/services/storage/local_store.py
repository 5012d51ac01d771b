"""
Local Blob Store Implementations

``InMemoryBlobStore`` keeps blobs in a dict and is what the tests use.
``FileBlobStore`` keeps one UTF-8 file per key in a directory; a write goes
to a temporary file first and is moved into place with ``os.replace`` so a
key is never left half-written.

Both enforce an optional byte quota over the sum of all stored values,
mirroring the quota of a browser's local storage.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from treasury.services.storage.interface import (
    BlobStoreInterface,
    ConnectionError,
    QuotaExceededError,
    StorageError,
)


logger = structlog.get_logger()

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _blob_size(value: str) -> int:
    return len(value.encode("utf-8"))


def _check_key(key: str) -> None:
    if not _KEY_PATTERN.match(key):
        raise StorageError(f"Invalid blob key: {key!r}")


class InMemoryBlobStore(BlobStoreInterface):
    """Dict-backed store with an optional quota."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self._blobs: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def get(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def set(self, key: str, value: str) -> None:
        _check_key(key)
        if self._quota_bytes is not None:
            used = sum(_blob_size(v) for k, v in self._blobs.items() if k != key)
            if used + _blob_size(value) > self._quota_bytes:
                raise QuotaExceededError(
                    f"Writing '{key}' would exceed the {self._quota_bytes} byte quota"
                )
        self._blobs[key] = value

    def remove(self, key: str) -> None:
        self._blobs.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._blobs)


class FileBlobStore(BlobStoreInterface):
    """
    Directory-backed store.

    Each key maps to ``<directory>/<key>.json``.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Path, quota_bytes: Optional[int] = None):
        self._directory = Path(directory)
        self._quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        _check_key(key)
        return self._directory / f"{key}{self.SUFFIX}"

    def _ensure_directory(self) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConnectionError(f"Cannot create data directory {self._directory}: {e}")

    def _used_bytes(self, excluding: Path) -> int:
        if not self._directory.exists():
            return 0
        return sum(
            path.stat().st_size
            for path in self._directory.glob(f"*{self.SUFFIX}")
            if path != excluding
        )

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read '{key}': {e}")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        self._ensure_directory()

        if self._quota_bytes is not None:
            if self._used_bytes(path) + _blob_size(value) > self._quota_bytes:
                raise QuotaExceededError(
                    f"Writing '{key}' would exceed the {self._quota_bytes} byte quota"
                )

        try:
            self._write_atomic(path, value)
        except OSError as e:
            raise StorageError(f"Failed to write '{key}': {e}")

    @retry(
        retry=retry_if_exception_type(PermissionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write_atomic(self, path: Path, value: str) -> None:
        """Write through a temporary sibling file, then swap it in."""
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{path.stem}-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("blob_written", key=path.stem, bytes=_blob_size(value))

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"Failed to remove '{key}': {e}")

    def keys(self) -> list[str]:
        if not self._directory.exists():
            return []
        return sorted(path.stem for path in self._directory.glob(f"*{self.SUFFIX}"))
