from .service import (
    DEFAULT_WINDOWS,
    RequestAggregate,
    RequestLogEntry,
    SQLiteRequestLog,
)

__all__ = [
    "DEFAULT_WINDOWS",
    "RequestAggregate",
    "RequestLogEntry",
    "SQLiteRequestLog",
]
