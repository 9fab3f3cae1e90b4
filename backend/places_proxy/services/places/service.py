"""Place lookup orchestration.

Fast path: a fresh cache entry is deep-copied and its ``open_now`` flags
recomputed. Slow path: fetch upstream, normalize, cache, then recompute.

Concurrent lookups for the same (tenant, item) are single-flighted: they
queue on a key-scoped lock, and whoever goes second finds the entry the
first one cached. Lookups for different keys never wait on each other.
"""

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional
from zoneinfo import ZoneInfo

import httpx

from places_proxy.models import (
    ClientError,
    LookupResult,
    PlacesProxyError,
    UpstreamTransportError,
)
from places_proxy.services.cache import TieredCache
from places_proxy.services.opening_hours import (
    calculate_next_relevant_time,
    refresh_open_now,
)

from .fetcher import PlacesDetailsFetcher
from .normalizer import normalize_places_response

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]


class KeyedLocks:
    """Lazily created asyncio locks, dropped once nobody holds or awaits them."""

    def __init__(self) -> None:
        self._locks: dict[CacheKey, asyncio.Lock] = {}
        self._users: dict[CacheKey, int] = {}

    @asynccontextmanager
    async def hold(self, key: CacheKey) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class PlaceLookupService:
    """Serves place records from the cache, falling back to the upstream API."""

    def __init__(
        self,
        cache: TieredCache,
        fetcher: PlacesDetailsFetcher,
        ttl_ms: int | None = None,
        tz: ZoneInfo | None = None,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._ttl_ms = ttl_ms
        self._tz = tz
        self._inflight = KeyedLocks()

    @property
    def cache(self) -> TieredCache:
        return self._cache

    @property
    def tz(self) -> ZoneInfo | None:
        """Reference clock for opening hours; None means the default zone."""
        return self._tz

    async def lookup(
        self,
        tenant_key: str,
        item_id: str,
        include_next: bool = False,
        now: Optional[datetime] = None,
    ) -> LookupResult:
        """Look up a place for a tenant.

        Args:
            tenant_key: The caller's API key; partitions the cache.
            item_id: The place id.
            include_next: Attach a ``nextRelevantTime`` prediction.
            now: Evaluation time for opening hours (defaults to the current
                time on the reference clock).

        Returns:
            The record with freshly computed ``open_now`` and whether it
            came from the cache.

        Raises:
            ClientError: Missing tenant key or item id.
            PlacesProxyError: Upstream failure, passed through unchanged.
        """
        if not tenant_key:
            raise ClientError("Missing API key in `?key=`")
        if not item_id:
            raise ClientError("Missing place id")

        async with self._inflight.hold((tenant_key, item_id)):
            result = self._from_cache(tenant_key, item_id, now)
            if result is None:
                result = await self._from_upstream(tenant_key, item_id, now)

        if include_next:
            prediction = calculate_next_relevant_time(result.record, now, self._tz)
            result.record["nextRelevantTime"] = prediction.model_dump(
                mode="json", by_alias=True
            )
        return result

    def _from_cache(
        self, tenant_key: str, item_id: str, now: Optional[datetime]
    ) -> LookupResult | None:
        entry = self._cache.get(tenant_key, item_id)
        if entry is None or not entry.is_fresh(self._cache.now()):
            return None

        record = copy.deepcopy(entry.data)
        refresh_open_now(record, now, self._tz)
        return LookupResult(record=record, cache_hit=True, forwarded=False)

    async def _from_upstream(
        self, tenant_key: str, item_id: str, now: Optional[datetime]
    ) -> LookupResult:
        try:
            response = await self._fetcher.fetch(item_id, tenant_key)
        except httpx.TimeoutException as e:
            logger.warning(f"[PLACES] Upstream timeout for {item_id}: {e}")
            raise UpstreamTransportError(
                code=504, message=f"Upstream timed out: {e}", status="UPSTREAM_TIMEOUT"
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"[PLACES] Upstream unreachable for {item_id}: {e}")
            raise UpstreamTransportError(
                code=502, message=f"Upstream unavailable: {e}", status="UPSTREAM_UNAVAILABLE"
            ) from e

        try:
            record = normalize_places_response(response)
        except PlacesProxyError as e:
            logger.info(f"[PLACES] Upstream error for {item_id}: {e.code} {e.status} {e.message}")
            raise

        refresh_open_now(record, now, self._tz)
        await self._cache.put(tenant_key, item_id, record, self._ttl_ms)
        return LookupResult(
            record=copy.deepcopy(record), cache_hit=False, forwarded=True
        )
