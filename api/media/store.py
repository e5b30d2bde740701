"""
Image storage.

Keys are derived from the owning resource: `<kind>_<id><ext>`, e.g.
`petition_12.png`. The database stores the key; the store holds the bytes.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from core import config

logger = logging.getLogger(__name__)

CONTENT_TYPE_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
}

EXTENSION_CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
}


class MediaStoreError(RuntimeError):
    pass


class MediaStore(Protocol):
    async def write(self, key: str, data: bytes) -> None: ...

    async def read(self, key: str) -> bytes | None: ...

    async def delete(self, key: str) -> None: ...


def media_key(kind: str, resource_id: int, extension: str) -> str:
    return f"{kind}_{int(resource_id)}{extension}"


def extension_for(content_type: str | None) -> str | None:
    """
    Map a Content-Type header to a stored file extension, or None if unsupported.
    """
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    return CONTENT_TYPE_EXTENSIONS.get(mime)


def content_type_for(key: str) -> str:
    return EXTENSION_CONTENT_TYPES.get(Path(key).suffix.lower(), "application/octet-stream")


class LocalMediaStore:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        name = Path(key).name
        if not name or name != key:
            raise MediaStoreError(f"Invalid media key '{key}'.")
        return self.root / name

    async def write(self, key: str, data: bytes) -> None:
        path = self._path(key)

        def _write() -> None:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_bytes(data)
            tmp.replace(path)

        await asyncio.to_thread(_write)

    async def read(self, key: str) -> bytes | None:
        path = self._path(key)

        def _read() -> bytes | None:
            if not path.is_file():
                return None
            return path.read_bytes()

        return await asyncio.to_thread(_read)

    async def delete(self, key: str) -> None:
        path = self._path(key)
        await asyncio.to_thread(path.unlink, missing_ok=True)


def get_media_store() -> MediaStore:
    return LocalMediaStore(config.image_directory())
