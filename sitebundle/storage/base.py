from __future__ import annotations

from abc import ABC, abstractmethod


class ObjectStore(ABC):
    name: str

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its public URL.

        Raises StorageError on transport or auth failure.
        """
        raise NotImplementedError
