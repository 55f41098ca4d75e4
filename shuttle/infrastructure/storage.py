"""
Blob store for payment proofs.

Files live under ``UPLOAD_DIR``; the locator handed back to callers is the
path relative to that root (``payments/payment_12_1712345678_ab12cd.png``).
Disk I/O runs in a worker thread so request handlers never block the loop.
"""

import asyncio
import mimetypes
import secrets
import time
from pathlib import Path
from typing import Optional

from shuttle.core.config import get_settings
from shuttle.core.exceptions import NotFoundError, ValidationError
from shuttle.core.logging import get_logger

logger = get_logger(__name__)

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "application/pdf": ".pdf",
}


class LocalBlobStore:
    """Filesystem-backed blob store."""

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def _resolve(self, locator: str) -> Path:
        path = (self.root / locator).resolve()
        if self.root not in path.parents:
            raise ValidationError("Invalid file locator")
        return path

    async def save(self, data: bytes, content_type: str, folder: str, stem: str) -> str:
        extension = _EXTENSIONS.get(content_type) or mimetypes.guess_extension(content_type) or ""
        name = f"{stem}_{int(time.time())}_{secrets.token_hex(4)}{extension}"
        locator = f"{folder}/{name}"
        path = self._resolve(locator)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.info("blob_stored", locator=locator, size=len(data), content_type=content_type)
        return locator

    async def read(self, locator: str) -> bytes:
        path = self._resolve(locator)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            raise NotFoundError("file", locator)

    async def delete(self, locator: str) -> None:
        path = self._resolve(locator)
        await asyncio.to_thread(lambda: path.unlink(missing_ok=True))
        logger.info("blob_deleted", locator=locator)


_store: Optional[LocalBlobStore] = None


def get_blob_store() -> LocalBlobStore:
    """Blob store singleton, used as a FastAPI dependency."""
    global _store
    if _store is None:
        _store = LocalBlobStore(get_settings().UPLOAD_DIR)
    return _store
