"""API routes for the place details cache proxy.

- GET /places/{place_id}?key=...&next=...  cached Place Details lookup
- GET /health                              cache and process introspection
- GET /stats                               request aggregates per window

Services are built once in the application lifespan and read from
``app.state``; nothing here keeps module-level state.
"""

import logging
import time

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from places_proxy.models import ClientError, PlacesProxyError
from places_proxy.services import (
    PlaceLookupService,
    RequestLogEntry,
    SQLiteRequestLog,
    TieredCache,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_lookup_service(request: Request) -> PlaceLookupService:
    return request.app.state.lookup_service


def get_cache(request: Request) -> TieredCache:
    return request.app.state.cache


def get_request_log(request: Request) -> SQLiteRequestLog:
    return request.app.state.request_log


def error_response(error: PlacesProxyError) -> JSONResponse:
    """Serialize a lookup error with its HTTP status."""
    return JSONResponse(
        status_code=error.http_status,
        content={"error": error.to_error().model_dump()},
    )


@router.get("/places/{place_id}")
async def get_place(
    place_id: str,
    request: Request,
    key: str = Query("", description="Google API key; partitions the cache"),
    include_next: bool = Query(
        False, alias="next", description="Attach a nextRelevantTime prediction"
    ),
    service: PlaceLookupService = Depends(get_lookup_service),
    request_log: SQLiteRequestLog = Depends(get_request_log),
) -> JSONResponse:
    """Get place details, served from the tenant's cache when fresh."""
    log_entry = RequestLogEntry(
        timestamp=int(time.time() * 1000),
        item_id=place_id,
        tenant_key=key or None,
        cache_hit=False,
        status_code=200,
        forwarded=False,
    )

    try:
        result = await service.lookup(key, place_id, include_next=include_next)
    except PlacesProxyError as e:
        log_entry.status_code = e.http_status
        log_entry.forwarded = not isinstance(e, ClientError)
        log_entry.error = e.message
        await request_log.record(log_entry)
        return error_response(e)

    request.state.cache_hit = result.cache_hit
    log_entry.cache_hit = result.cache_hit
    log_entry.forwarded = result.forwarded
    await request_log.record(log_entry)

    return JSONResponse(
        content=result.record,
        headers={
            "X-Cache": "HIT" if result.cache_hit else "MISS",
            "X-Forwarded-Upstream": "true" if result.forwarded else "false",
        },
    )


@router.get("/health")
async def health_check(
    request: Request, cache: TieredCache = Depends(get_cache)
) -> dict:
    """Health check endpoint."""
    settings = request.app.state.settings
    return {
        "status": "ok",
        "cache": {
            "backend": settings.cache_backend,
            "location": cache.store.location,
            "size": cache.tenant_count,
            "entries": cache.entry_count,
            "ttl": cache.ttl_ms,
        },
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
    }


@router.get("/stats")
async def get_stats(request_log: SQLiteRequestLog = Depends(get_request_log)) -> dict:
    """Request counts over the last 3, 7, 30 and 365 days."""
    aggregates = await request_log.query_aggregates()
    return {label: vars(aggregate) for label, aggregate in aggregates.items()}
