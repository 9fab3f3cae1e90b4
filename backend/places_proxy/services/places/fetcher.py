"""Google Places Details fetcher.

Issues the raw lookup request and hands back the transport response
untouched. No retries; the only timeout is the one configured on the
HTTP client.
"""

import logging

import httpx

logger = logging.getLogger(__name__)


class PlacesDetailsFetcher:
    """Thin client for the Place Details endpoint.

    Uses a shared httpx client with connection pooling. The tenant key is
    passed upstream as the API key.
    """

    DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"

    HEADERS = {
        "User-Agent": "PlacesProxy/1.0",
        "Accept": "application/json",
    }

    def __init__(
        self,
        details_url: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._details_url = details_url or self.DETAILS_URL
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self.HEADERS,
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch(self, item_id: str, tenant_key: str) -> httpx.Response:
        """Request details for one place.

        Args:
            item_id: Google place id.
            tenant_key: The caller's Google API key.

        Returns:
            The raw HTTP response, whatever its status.
        """
        client = self._get_client()
        response = await client.get(
            self._details_url,
            params={"place_id": item_id, "key": tenant_key},
        )
        logger.info(f"[PLACES] Upstream details for {item_id}: HTTP {response.status_code}")
        return response
