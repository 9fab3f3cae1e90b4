"""Cache service module.

Tenant-partitioned TTL cache with JSON-file or Redis snapshot persistence.
"""

from .service import CacheEntry, TieredCache, epoch_millis
from .store import BlobStore, JSONFileBlobStore, RedisBlobStore

__all__ = [
    "BlobStore",
    "CacheEntry",
    "JSONFileBlobStore",
    "RedisBlobStore",
    "TieredCache",
    "epoch_millis",
]
