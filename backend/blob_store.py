# File: backend/blob_store.py
#
# Where approved uploads end up. The registry needs store() (bytes in, URL
# out) and discard() for uploads whose approval was rolled back.

import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Dict, Protocol, Tuple
from urllib.parse import urlparse
from urllib.request import url2pathname

import errors

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def store(self, data: bytes, content_type: str) -> str: ...

    def discard(self, url: str) -> None: ...


class InMemoryBlobStore:
    """Keeps blobs in a dict for the life of the process."""

    def __init__(self):
        self._blobs: Dict[str, Tuple[bytes, str]] = {}

    def store(self, data: bytes, content_type: str) -> str:
        if not data:
            raise errors.StoreError("Refusing to store an empty upload")
        key = uuid.uuid4().hex
        self._blobs[key] = (bytes(data), content_type)
        logger.info("Stored %d bytes (%s) in memory as %s", len(data), content_type, key)
        return f"memory://{key}"

    def get(self, url: str) -> Tuple[bytes, str]:
        key = url.removeprefix("memory://")
        try:
            return self._blobs[key]
        except KeyError:
            raise errors.NotFound(f"No blob stored at {url}") from None

    def discard(self, url: str) -> None:
        if self._blobs.pop(url.removeprefix("memory://"), None) is not None:
            logger.info("Discarded %s", url)

    def __len__(self):
        return len(self._blobs)


class LocalBlobStore:
    """Writes blobs under a directory and returns file:// URLs."""

    def __init__(self, root):
        self.root = Path(root)

    def store(self, data: bytes, content_type: str) -> str:
        if not data:
            raise errors.StoreError("Refusing to store an empty upload")
        extension = mimetypes.guess_extension(content_type or "") or ".bin"
        path = self.root / f"{uuid.uuid4().hex}{extension}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            logger.error("Failed to write upload to %s: %s", path, exc)
            raise errors.StoreError(f"Could not store upload: {exc}") from exc
        logger.info("Stored %d bytes (%s) at %s", len(data), content_type, path)
        return path.resolve().as_uri()

    def discard(self, url: str) -> None:
        path = Path(url2pathname(urlparse(url).path))
        if path.parent != self.root.resolve():
            raise errors.StoreError(f"{url} is not in this store")
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise errors.StoreError(f"Could not discard upload: {exc}") from exc
        logger.info("Discarded %s", path)


def build_blob_store(blob_store_dir: str) -> BlobStore:
    if blob_store_dir:
        return LocalBlobStore(blob_store_dir)
    return InMemoryBlobStore()
