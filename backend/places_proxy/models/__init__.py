"""Data models and error types."""

from .core import (
    LookupResult,
    NextRelevantTime,
    NormalizedError,
    OpeningHours,
    Period,
    PeriodEndpoint,
)
from .errors import (
    ClientError,
    PlacesProxyError,
    UpstreamLogicalError,
    UpstreamParseError,
    UpstreamTransportError,
)

__all__ = [
    "LookupResult",
    "NextRelevantTime",
    "NormalizedError",
    "OpeningHours",
    "Period",
    "PeriodEndpoint",
    "ClientError",
    "PlacesProxyError",
    "UpstreamLogicalError",
    "UpstreamParseError",
    "UpstreamTransportError",
]
