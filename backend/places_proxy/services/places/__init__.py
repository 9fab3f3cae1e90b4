"""Places service module.

Fetching, normalizing and serving Google Place Details through the cache.
"""

from .fetcher import PlacesDetailsFetcher
from .normalizer import STATUS_CODES, normalize_places_response, status_to_code
from .service import KeyedLocks, PlaceLookupService

__all__ = [
    "KeyedLocks",
    "PlaceLookupService",
    "PlacesDetailsFetcher",
    "STATUS_CODES",
    "normalize_places_response",
    "status_to_code",
]
