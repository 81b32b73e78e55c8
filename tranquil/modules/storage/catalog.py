"""
Catalog access on top of a blob store.

Layout:
    patterns.json       JSON list of pattern records
    playlists.json      JSON list of playlist records
    patterns/<uuid>     raw pattern data
    users.json          JSON list of user records
"""

import json
import logging
from typing import Any, Dict, List, Optional

from . import BlobStore, StorageError

logger = logging.getLogger(__name__)

PATTERNS_OBJECT = "patterns.json"
PLAYLISTS_OBJECT = "playlists.json"
USERS_OBJECT = "users.json"


def pattern_data_object(uuid: str) -> str:
    return f"patterns/{uuid}"


def dedupe_by_uuid(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop later records whose uuid was already seen, keeping order."""
    seen = set()
    unique = []
    for record in records:
        uuid = record.get("uuid")
        if uuid in seen:
            continue
        seen.add(uuid)
        unique.append(record)
    return unique


class CatalogModule:
    """Pattern, playlist and user lookups over any BlobStore."""

    def __init__(self, store: BlobStore):
        """
        Args:
            store: BlobStore implementation
        """
        self.store = store

    async def _read_list(self, name: str) -> List[Dict[str, Any]]:
        body = await self.store.get(name)
        if body is None:
            return []
        try:
            records = json.loads(body)
        except ValueError as e:
            raise StorageError(f"{name} is not valid JSON") from e
        if not isinstance(records, list):
            raise StorageError(f"{name} is not a JSON list")
        return records

    async def _prepend(self, name: str, record: Dict[str, Any]) -> None:
        records = await self._read_list(name)
        records.insert(0, record)
        await self.store.put(name, json.dumps(dedupe_by_uuid(records)))

    async def list_patterns(self) -> List[Dict[str, Any]]:
        return await self._read_list(PATTERNS_OBJECT)

    async def get_pattern(self, uuid: str) -> Optional[Dict[str, Any]]:
        for pattern in await self.list_patterns():
            if pattern.get("uuid") == uuid:
                return pattern
        return None

    async def get_pattern_data(self, uuid: str) -> Optional[str]:
        return await self.store.get(pattern_data_object(uuid))

    async def add_pattern(self, pattern: Dict[str, Any], data: str) -> str:
        """Store pattern data, then put the pattern at the front of the index."""
        await self.store.put(pattern_data_object(pattern["uuid"]), data)
        await self._prepend(PATTERNS_OBJECT, pattern)
        logger.info(f"Stored pattern {pattern['uuid']}")
        return pattern["uuid"]

    async def list_playlists(self) -> List[Dict[str, Any]]:
        return await self._read_list(PLAYLISTS_OBJECT)

    async def get_playlist(self, uuid: str) -> Optional[Dict[str, Any]]:
        for playlist in await self.list_playlists():
            if playlist.get("uuid") == uuid:
                return playlist
        return None

    async def add_playlist(self, playlist: Dict[str, Any]) -> str:
        await self._prepend(PLAYLISTS_OBJECT, playlist)
        logger.info(f"Stored playlist {playlist['uuid']}")
        return playlist["uuid"]

    async def find_user(self, email: str) -> Optional[Dict[str, Any]]:
        for user in await self._read_list(USERS_OBJECT):
            if user.get("email") == email:
                return user
        return None
