"""Places Proxy Services.

Service layer components:
- Cache: tenant-partitioned TTL cache with JSON file or Redis snapshots
- Places: Place Details fetcher, response normalizer and lookup orchestration
- Opening hours: open/closed status and next-transition prediction
- Request log: SQLite request accounting for usage statistics
"""

from .cache import (
    BlobStore,
    CacheEntry,
    JSONFileBlobStore,
    RedisBlobStore,
    TieredCache,
)
from .places import (
    PlaceLookupService,
    PlacesDetailsFetcher,
    normalize_places_response,
)
from .request_log import RequestLogEntry, SQLiteRequestLog

__all__ = [
    # Cache
    "BlobStore",
    "CacheEntry",
    "JSONFileBlobStore",
    "RedisBlobStore",
    "TieredCache",
    # Places
    "PlaceLookupService",
    "PlacesDetailsFetcher",
    "normalize_places_response",
    # Request log
    "RequestLogEntry",
    "SQLiteRequestLog",
]
