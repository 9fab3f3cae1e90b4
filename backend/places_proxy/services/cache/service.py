"""Tenant-partitioned cache with lazy TTL expiry.

Entries are stored two levels deep: tenant key, then item id. Expiry is
never enforced here; ``get`` hands back whatever is stored and the caller
compares ``expires_at`` to the current time. Nothing is ever evicted, so
memory grows with the number of distinct (tenant, item) pairs.

Every ``put`` persists a full snapshot through the configured
:class:`BlobStore`. A failed save is logged and otherwise ignored: the
in-memory cache stays authoritative for the running process.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from .store import BlobStore, Snapshot

logger = logging.getLogger(__name__)


def epoch_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    """A cached record and the instant (epoch ms) it goes stale."""

    data: dict[str, Any]
    expires_at: int

    def is_fresh(self, now_ms: int) -> bool:
        return self.expires_at > now_ms

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "expires": self.expires_at}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CacheEntry":
        data = raw["data"]
        expires = raw["expires"]
        if not isinstance(data, dict):
            raise ValueError("entry data must be an object")
        if isinstance(expires, bool) or not isinstance(expires, (int, float)):
            raise ValueError("entry expires must be a number")
        return cls(data=data, expires_at=int(expires))


class TieredCache:
    """In-memory ``tenant -> item -> CacheEntry`` store backed by a snapshot.

    Built once at startup and shared by all requests.

    Attributes:
        _entries: The nested in-memory structure.
        _store: Snapshot backend.
        _ttl_ms: Default time-to-live for new entries.
        _clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        store: BlobStore,
        ttl_ms: int,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        self._entries: dict[str, dict[str, CacheEntry]] = {}
        self._store = store
        self._ttl_ms = ttl_ms
        self._clock = clock
        # Snapshots are full overwrites; one writer at a time.
        self._save_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Load the persisted snapshot, replacing the in-memory contents.

        Malformed tenants or entries are skipped with a warning.
        """
        snapshot = await self._store.load()
        entries: dict[str, dict[str, CacheEntry]] = {}

        for tenant_key, items in snapshot.items():
            if not isinstance(items, dict):
                logger.warning(f"[CACHE] Skipping malformed tenant partition {tenant_key!r}")
                continue
            partition: dict[str, CacheEntry] = {}
            for item_id, raw in items.items():
                try:
                    partition[item_id] = CacheEntry.from_dict(raw)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"[CACHE] Skipping malformed entry {item_id!r}: {e}")
            entries[tenant_key] = partition

        self._entries = entries
        logger.info(
            f"[CACHE] Loaded {self.entry_count} entries across {self.tenant_count} tenants"
        )

    def get(self, tenant_key: str, item_id: str) -> CacheEntry | None:
        """Return the stored entry, fresh or not.

        Args:
            tenant_key: Partition the item belongs to.
            item_id: Identifier of the item within the partition.

        Returns:
            The entry exactly as stored, or None if there is none.
        """
        partition = self._entries.get(tenant_key)
        if partition is None:
            return None
        return partition.get(item_id)

    async def put(
        self,
        tenant_key: str,
        item_id: str,
        record: dict[str, Any],
        ttl_ms: int | None = None,
    ) -> CacheEntry:
        """Store a record and persist the full snapshot.

        Args:
            tenant_key: Partition to store under (created if absent).
            item_id: Identifier of the item within the partition.
            record: The record to cache. It must not be mutated afterwards.
            ttl_ms: Time-to-live in milliseconds. Uses the default if omitted.

        Returns:
            The entry that was written.
        """
        ttl = ttl_ms if ttl_ms is not None else self._ttl_ms
        entry = CacheEntry(data=record, expires_at=self._clock() + ttl)
        self._entries.setdefault(tenant_key, {})[item_id] = entry
        await self.persist()
        return entry

    async def persist(self) -> None:
        """Write the current contents to the snapshot store.

        Failures are logged and swallowed.
        """
        async with self._save_lock:
            snapshot = self.to_dict()
            try:
                await self._store.save(snapshot)
            except Exception:
                logger.exception(f"[CACHE] Failed to persist cache to {self._store.location}")

    def to_dict(self) -> Snapshot:
        """Plain-data view of the cache, shaped like the persisted blob."""
        return {
            tenant_key: {item_id: entry.to_dict() for item_id, entry in partition.items()}
            for tenant_key, partition in self._entries.items()
        }

    def now(self) -> int:
        return self._clock()

    @property
    def tenant_count(self) -> int:
        """Number of tenant partitions held."""
        return len(self._entries)

    @property
    def entry_count(self) -> int:
        return sum(len(partition) for partition in self._entries.values())

    @property
    def ttl_ms(self) -> int:
        """Get the default TTL in milliseconds."""
        return self._ttl_ms

    @property
    def store(self) -> BlobStore:
        return self._store
