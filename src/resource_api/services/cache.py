"""Redis-backed cache-aside layer for single-record reads."""

from __future__ import annotations

import json
import logging
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from resource_api.services.store import ResourceRecord

logger = logging.getLogger(__name__)

# Writes only land when the entry is missing or older than ARGV[2]; a read
# that raced a write can never put an outdated snapshot back.
SET_IF_NEWER_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if current then
    local ok, entry = pcall(cjson.decode, current)
    if ok and type(entry) == 'table' and tonumber(entry['version'])
            and tonumber(entry['version']) >= tonumber(ARGV[2]) then
        return 0
    end
end
redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[3])
return 1
"""


class RecordCache:
    """Cache of public record snapshots keyed by collection and record key.

    Every entry carries the record version. Reads populate the cache, updates
    write the new snapshot through and deletes leave a versioned marker, all
    under a newest-version-wins rule. Redis failures are logged and reported
    as misses; a cache outage never fails a request.
    """

    def __init__(self, client: Redis, *, ttl_seconds: int = 300, prefix: str = "record") -> None:
        self._client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, *, ttl_seconds: int = 300) -> RecordCache:
        return cls(Redis.from_url(url), ttl_seconds=ttl_seconds)

    def _key(self, collection: str, key: str) -> str:
        return f"{self.prefix}:{collection}:{key}"

    async def get(self, collection: str, key: str) -> ResourceRecord | None:
        """Return the cached record or None on a miss."""
        try:
            raw = await self._client.get(self._key(collection, key))
        except RedisError as err:
            logger.warning("Record cache read failed for %s: %s", key, err)
            return None
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
            if entry.get("deleted"):
                return None
            return ResourceRecord.from_dict(entry)
        except (ValueError, KeyError, TypeError, AttributeError) as err:
            logger.warning("Discarding unreadable cache entry for %s: %s", key, err)
            return None

    async def _set_if_newer(self, collection: str, key: str, entry: dict[str, Any]) -> None:
        try:
            await self._client.eval(
                SET_IF_NEWER_SCRIPT,
                1,
                self._key(collection, key),
                json.dumps(entry),
                entry["version"],
                self.ttl_seconds,
            )
        except RedisError as err:
            logger.warning("Record cache write failed for %s: %s", key, err)

    async def set(self, collection: str, record: ResourceRecord) -> None:
        await self._set_if_newer(collection, record.key, record.to_dict())

    async def mark_deleted(self, collection: str, key: str, version: int) -> None:
        """Replace any cached snapshot of `key` with a deletion marker."""
        await self._set_if_newer(collection, key, {"key": key, "version": version, "deleted": True})

    async def close(self) -> None:
        await self._client.aclose()
