from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath
from urllib.parse import quote

from sitebundle.config import settings
from sitebundle.errors import StorageError
from sitebundle.storage.base import ObjectStore


class LocalObjectStore(ObjectStore):
    """Writes objects under a directory that the web app serves at /files."""

    name = "local"

    def __init__(self, root: str | Path | None = None, base_url: str | None = None):
        self.root = Path(root or settings.base_storage_dir)
        self.base_url = (base_url or settings.files_base).rstrip("/")

    def _target(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or ".." in parts or PurePosixPath(key).is_absolute():
            raise StorageError(f"Refusing to store outside the storage root: {key!r}")
        return self.root.joinpath(*parts)

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        target = self._target(key)
        try:
            await asyncio.to_thread(_write, target, data)
        except OSError as exc:
            raise StorageError(f"Local write failed for {key}: {exc}") from exc
        return f"{self.base_url}/{quote(key, safe='/')}"


def _write(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
