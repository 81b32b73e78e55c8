"""
Storage Module - Black Box Interface

Purpose: Abstract blob persistence
Interface: get(), put(), connect(), disconnect()
Hidden: Redis specifics, key prefixing, connection handling

Can be replaced with any key/value blob backend (R2, S3) without affecting
other modules.
"""

from typing import Dict, Optional, Protocol

import redis.asyncio as redis


class StorageError(Exception):
    """A blob could not be read or written."""


class StorageWriteError(StorageError):
    """A blob could not be written."""


class BlobStore(Protocol):
    """Protocol for key/value blob stores."""

    async def get(self, name: str) -> Optional[str]:
        """Return the object body, or None if it does not exist."""
        ...

    async def put(self, name: str, body: str) -> None:
        """Create or replace an object."""
        ...


class RedisBlobStore:
    """Black box blob store on Redis string keys."""

    def __init__(self, connection_url: str = "redis://localhost:6379/0", prefix: str = "tranquil:blob:"):
        """Initialize storage with connection URL and key prefix."""
        self.url = connection_url
        self.prefix = prefix
        self._client: Optional[redis.Redis] = None

    async def connect(self) -> redis.Redis:
        """Get storage connection."""
        if not self._client:
            self._client = redis.from_url(self.url, decode_responses=True)
        return self._client

    async def disconnect(self):
        """Close storage connection."""
        if self._client:
            await self._client.close()
            self._client = None

    async def get(self, name: str) -> Optional[str]:
        client = await self.connect()
        try:
            return await client.get(self.prefix + name)
        except redis.RedisError as e:
            raise StorageError(f"Failed to read {name}: {e}") from e

    async def put(self, name: str, body: str) -> None:
        client = await self.connect()
        try:
            await client.set(self.prefix + name, body)
        except redis.RedisError as e:
            raise StorageWriteError(f"Failed to write {name}: {e}") from e


class InMemoryBlobStore:
    """Dict-backed blob store for local runs and tests."""

    def __init__(self, objects: Optional[Dict[str, str]] = None):
        self.objects: Dict[str, str] = dict(objects or {})

    async def get(self, name: str) -> Optional[str]:
        return self.objects.get(name)

    async def put(self, name: str, body: str) -> None:
        self.objects[name] = body


from .catalog import CatalogModule  # noqa: E402

__all__ = [
    "BlobStore",
    "RedisBlobStore",
    "InMemoryBlobStore",
    "StorageError",
    "StorageWriteError",
    "CatalogModule",
]
