"""Durable snapshot storage for the tiered cache.

The whole cache is persisted as one JSON blob shaped like the in-memory
structure::

    {"<tenant>": {"<item>": {"data": {...}, "expires": 1700000000000}}}

Two backends are provided: a JSON file on local disk (the default, human
inspectable) and a single Redis key. Both fail soft on load: a missing or
unreadable blob yields an empty snapshot.
"""

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

Snapshot = dict[str, dict[str, dict[str, Any]]]


class BlobStore(ABC):
    """Abstract base class for snapshot backends.

    Defines the load/save interface used by the cache. Implementations store
    the entire snapshot at once; there are no partial updates.
    """

    @abstractmethod
    async def load(self) -> Snapshot:
        """Read the stored snapshot.

        Returns:
            The decoded snapshot, or an empty dict when the blob is missing
            or cannot be parsed.
        """
        pass

    @abstractmethod
    async def save(self, snapshot: Snapshot) -> None:
        """Replace the stored snapshot.

        Readers never observe a partially written blob.

        Args:
            snapshot: The full nested cache structure.

        Raises:
            OSError, redis.RedisError: If the write fails.
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Where the snapshot lives, for diagnostics."""
        pass

    @staticmethod
    def decode(raw: str | bytes, source: str) -> Snapshot:
        """Parse a serialized snapshot, falling back to empty on bad input."""
        try:
            snapshot = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"[CACHE] Failed to parse {source}, starting fresh: {e}")
            return {}
        if not isinstance(snapshot, dict):
            logger.warning(f"[CACHE] {source} is not a JSON object, starting fresh")
            return {}
        return snapshot

    @staticmethod
    def encode(snapshot: Snapshot) -> str:
        return json.dumps(snapshot, indent=2)


class JSONFileBlobStore(BlobStore):
    """Snapshot kept in a JSON file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write leaves the previous snapshot intact.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def location(self) -> str:
        return str(self._path)

    async def load(self) -> Snapshot:
        return await asyncio.to_thread(self._load_sync)

    def _load_sync(self) -> Snapshot:
        if not self._path.exists():
            logger.info(f"[CACHE] Cache file {self._path} not found, starting fresh")
            return {}
        logger.info(f"[CACHE] Loading cache from {self._path}")
        try:
            raw = self._path.read_bytes()
        except OSError as e:
            logger.warning(f"[CACHE] Could not read {self._path}, starting fresh: {e}")
            return {}
        return self.decode(raw, str(self._path))

    async def save(self, snapshot: Snapshot) -> None:
        payload = self.encode(snapshot)
        await asyncio.to_thread(self._write_atomic, payload)

    def _write_atomic(self, payload: str) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(payload)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class RedisBlobStore(BlobStore):
    """Snapshot kept under a single Redis key.

    ``SET`` replaces the value atomically, so readers see either the old or
    the new snapshot.

    Attributes:
        _client: The Redis async client instance.
        _key: The key holding the snapshot.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        key: str = "places_proxy:cache",
    ) -> None:
        """Initialize the Redis snapshot store.

        Args:
            redis_url: Redis connection URL. Defaults to localhost:6379.
            key: Key under which the snapshot is stored.
        """
        self._redis_url = redis_url
        self._key = key
        self._client: redis.Redis | None = None

    @property
    def location(self) -> str:
        return f"{self._redis_url}/{self._key}"

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if self._client is None:
            self._client = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _ensure_connected(self) -> redis.Redis:
        if self._client is None:
            await self.connect()
        return self._client  # type: ignore

    async def load(self) -> Snapshot:
        try:
            client = await self._ensure_connected()
            raw = await client.get(self._key)
        except redis.RedisError as e:
            logger.warning(f"[CACHE] Could not read {self.location}, starting fresh: {e}")
            return {}
        if raw is None:
            logger.info(f"[CACHE] No snapshot at {self.location}, starting fresh")
            return {}
        logger.info(f"[CACHE] Loading cache from {self.location}")
        return self.decode(raw, self.location)

    async def save(self, snapshot: Snapshot) -> None:
        client = await self._ensure_connected()
        await client.set(self._key, self.encode(snapshot))
