"""Pytest fixtures for places_proxy tests.

Upstream HTTP is faked with httpx response objects and ``httpx.MockTransport``;
time is driven by a settable clock. Opening-hours tests use naive datetimes,
which the engine reads as America/New_York local time.
"""

import copy
from typing import Any, Callable

import httpx
import pytest

from places_proxy.services.cache import BlobStore

DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"

# Mon-Fri 09:00-17:00, Sat 10:00-Sun 02:00 (overnight)
WEEKLY_PERIODS = [
    {"open": {"day": day, "time": "0900"}, "close": {"day": day, "time": "1700"}}
    for day in range(1, 6)
] + [{"open": {"day": 6, "time": "2200"}, "close": {"day": 0, "time": "0200"}}]


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class MemoryBlobStore(BlobStore):
    """Snapshot store that keeps a deep copy of the last save."""

    def __init__(self, snapshot: dict | None = None) -> None:
        self.snapshot = copy.deepcopy(snapshot) if snapshot is not None else None
        self.saves = 0

    @property
    def location(self) -> str:
        return "memory"

    async def load(self) -> dict:
        return copy.deepcopy(self.snapshot) if self.snapshot is not None else {}

    async def save(self, snapshot: dict) -> None:
        self.saves += 1
        self.snapshot = copy.deepcopy(snapshot)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def sample_place() -> dict[str, Any]:
    return {
        "place_id": "ChIJ_cafe",
        "name": "Corner Cafe",
        "formatted_address": "1 Main St, New York, NY",
        "opening_hours": {
            "open_now": True,
            "periods": copy.deepcopy(WEEKLY_PERIODS),
            "weekday_text": ["Monday: 9:00 AM - 5:00 PM"],
        },
        "current_opening_hours": {"open_now": True},
    }


@pytest.fixture
def make_response() -> Callable[..., httpx.Response]:
    """Build an upstream response as the fetcher would return it."""

    def _make(
        status_code: int = 200,
        json: Any = None,
        text: str | None = None,
    ) -> httpx.Response:
        request = httpx.Request("GET", DETAILS_URL)
        if json is not None:
            return httpx.Response(status_code, json=json, request=request)
        return httpx.Response(status_code, text=text or "", request=request)

    return _make


@pytest.fixture
def ok_body(sample_place: dict[str, Any]) -> dict[str, Any]:
    return {"html_attributions": [], "result": sample_place, "status": "OK"}


@pytest.fixture
def seeded_store() -> Callable[[dict], MemoryBlobStore]:
    """Factory for a memory store that already holds a snapshot."""
    return MemoryBlobStore
