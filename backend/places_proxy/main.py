"""Places Proxy FastAPI Application.

Main entry point for the cache proxy server. The cache, fetcher, lookup
service and request log are built once in the lifespan handler and shared
through ``app.state``.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from places_proxy.api import router
from places_proxy.config import Settings, get_settings
from places_proxy.services import (
    BlobStore,
    JSONFileBlobStore,
    PlaceLookupService,
    PlacesDetailsFetcher,
    RedisBlobStore,
    SQLiteRequestLog,
    TieredCache,
)

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs full request URLs, which carry tenant API keys.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_blob_store(settings: Settings) -> BlobStore:
    """Pick the snapshot backend named in the settings."""
    if settings.cache_backend == "redis":
        return RedisBlobStore(redis_url=settings.redis_url, key=settings.redis_key)
    return JSONFileBlobStore(settings.cache_file)


def create_app(
    settings: Settings | None = None,
    fetcher: PlacesDetailsFetcher | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Configuration. Defaults to the environment.
        fetcher: Upstream fetcher. Defaults to one built from the settings.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        store = build_blob_store(settings)
        cache = TieredCache(store, ttl_ms=settings.cache_ttl_ms)
        await cache.initialize()

        upstream = fetcher or PlacesDetailsFetcher(
            details_url=settings.details_url,
            timeout=settings.request_timeout,
        )
        request_log = SQLiteRequestLog(settings.db_file)
        await request_log.initialize()

        app.state.settings = settings
        app.state.cache = cache
        app.state.request_log = request_log
        app.state.lookup_service = PlaceLookupService(
            cache, upstream, tz=settings.reference_tz
        )
        app.state.started_at = time.monotonic()

        logger.info(
            f"Configuration: cache_backend={settings.cache_backend} "
            f"cache_location={store.location} ttl={settings.cache_ttl_ms}ms "
            f"port={settings.port} timezone={settings.reference_timezone}"
        )
        yield
        # Shutdown
        await upstream.close()
        await store.close()
        await request_log.close()

    app = FastAPI(
        title="Places Proxy API",
        description="Tenant-scoped cache in front of Google Place Details",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request on the way in and out, with latency and cache outcome."""
        start = time.perf_counter()
        logger.info(f"→ {request.method} {request.url.path}")
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        cache_hit = getattr(request.state, "cache_hit", None)
        cache_msg = ""
        if cache_hit is True:
            cache_msg = " [cache hit]"
        elif cache_hit is False:
            cache_msg = " [cache miss]"
        logger.info(
            f"← {request.method} {request.url.path} {response.status_code} "
            f"{elapsed_ms:.0f}ms{cache_msg}"
        )
        return response

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": 500,
                    "status": "INTERNAL_ERROR",
                    "message": str(exc),
                },
            },
        )

    app.include_router(router)
    return app


def run() -> None:
    """Run the server with uvicorn on the configured port."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
