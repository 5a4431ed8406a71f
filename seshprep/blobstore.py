"""Object storage for project files.

Two buckets are used: ``sessions`` for session archives and ``project-files``
for everything else. ``LocalBlobStore`` keeps blobs on disk under a root
directory, ``MemoryBlobStore`` keeps them in a dict for demo mode and tests.
"""
import logging
import shutil
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, Sequence, Tuple, TypeVar

from seshprep.config import settings
from seshprep.errors import TransientStorageError

logger = logging.getLogger(__name__)

SESSIONS_BUCKET = "sessions"
PROJECT_FILES_BUCKET = "project-files"
STAGING_BUCKET = "staging"

T = TypeVar("T")


def bucket_for_category(category: str) -> str:
    return SESSIONS_BUCKET if category == "sessions" else PROJECT_FILES_BUCKET


class BlobStore:
    def put(self, bucket: str, path: str, data: bytes) -> None:
        raise NotImplementedError

    def read(self, bucket: str, path: str) -> bytes:
        raise NotImplementedError

    def compose(self, src_bucket: str, parts: Sequence[str], dst_bucket: str, dst_path: str) -> int:
        """Concatenate ``parts`` in order into one blob and return its size."""
        raise NotImplementedError

    def delete(self, bucket: str, paths: Iterable[str]) -> None:
        raise NotImplementedError

    def exists(self, bucket: str, path: str) -> bool:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    def __init__(self, root):
        self.root = Path(root).resolve()

    def _resolve(self, bucket: str, path: str) -> Path:
        target = (self.root / bucket / path).resolve()
        if self.root / bucket not in target.parents:
            raise ValueError(f"Blob path escapes bucket: {path}")
        return target

    def put(self, bucket, path, data):
        target = self._resolve(bucket, path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise TransientStorageError(f"Could not write {bucket}/{path}: {exc}") from exc

    def read(self, bucket, path):
        target = self._resolve(bucket, path)
        if not target.exists():
            raise FileNotFoundError(f"{bucket}/{path}")
        return target.read_bytes()

    def compose(self, src_bucket, parts, dst_bucket, dst_path):
        sources = [self._resolve(src_bucket, part) for part in parts]
        target = self._resolve(dst_bucket, dst_path)
        for source in sources:
            if not source.exists():
                raise FileNotFoundError(f"{src_bucket}/{source.name}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as out:
                for source in sources:
                    with open(source, "rb") as chunk:
                        shutil.copyfileobj(chunk, out)
            return target.stat().st_size
        except OSError as exc:
            raise TransientStorageError(f"Could not write {dst_bucket}/{dst_path}: {exc}") from exc

    def delete(self, bucket, paths):
        for path in paths:
            target = self._resolve(bucket, path)
            try:
                target.unlink(missing_ok=True)
            except OSError as exc:
                raise TransientStorageError(f"Could not delete {bucket}/{path}: {exc}") from exc

    def exists(self, bucket, path):
        return self._resolve(bucket, path).exists()


class MemoryBlobStore(BlobStore):
    def __init__(self):
        self._blobs: Dict[Tuple[str, str], bytearray] = {}
        self._lock = threading.Lock()

    def put(self, bucket, path, data):
        with self._lock:
            self._blobs[(bucket, path)] = bytearray(data)

    def read(self, bucket, path):
        with self._lock:
            if (bucket, path) not in self._blobs:
                raise FileNotFoundError(f"{bucket}/{path}")
            return bytes(self._blobs[(bucket, path)])

    def compose(self, src_bucket, parts, dst_bucket, dst_path):
        with self._lock:
            blob = bytearray()
            for part in parts:
                if (src_bucket, part) not in self._blobs:
                    raise FileNotFoundError(f"{src_bucket}/{part}")
                blob.extend(self._blobs[(src_bucket, part)])
            self._blobs[(dst_bucket, dst_path)] = blob
            return len(blob)

    def delete(self, bucket, paths):
        with self._lock:
            for path in paths:
                self._blobs.pop((bucket, path), None)

    def exists(self, bucket, path):
        with self._lock:
            return (bucket, path) in self._blobs


def build_blob_store() -> BlobStore:
    backend = settings.BLOB_BACKEND.lower()
    if backend == "local":
        return LocalBlobStore(settings.BLOB_ROOT)
    if backend == "memory":
        return MemoryBlobStore()
    raise ValueError(f"Unknown BLOB_BACKEND {backend!r}")


def with_retries(
    operation: Callable[[], T],
    max_retries: int = None,
    base_delay: float = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying transient storage failures with exponential backoff.

    Only ``TransientStorageError`` is retried; anything else propagates on the
    first attempt.
    """
    max_retries = settings.UPLOAD_MAX_RETRIES if max_retries is None else max_retries
    base_delay = settings.UPLOAD_RETRY_BASE_DELAY if base_delay is None else base_delay

    retries = 0
    while True:
        try:
            return operation()
        except TransientStorageError as exc:
            if retries >= max_retries:
                logger.error("Storage operation failed after %d retries: %s", retries, exc)
                raise
            retries += 1
            retry_delay = base_delay * (2 ** (retries - 1))
            logger.warning("Storage operation failed (%s), retry #%d in %.2fs", exc, retries, retry_delay)
            sleep(retry_delay)
