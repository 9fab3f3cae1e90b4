"""API tests for the places proxy routes.

Runs the full application (lifespan included) against a mocked upstream.
"""

import json
from pathlib import Path
from zoneinfo import ZoneInfo

import httpx
import pytest
from fastapi.testclient import TestClient

from places_proxy.config import Settings
from places_proxy.main import build_blob_store, create_app
from places_proxy.services import JSONFileBlobStore, PlacesDetailsFetcher, RedisBlobStore

PLACE_BODY = {
    "status": "OK",
    "result": {
        "place_id": "ChIJ_cafe",
        "name": "Corner Cafe",
        "opening_hours": {
            "open_now": True,
            "periods": [
                {"open": {"day": d, "time": "0900"}, "close": {"day": d, "time": "1700"}}
                for d in range(7)
            ],
        },
    },
}


class Upstream:
    """Mock upstream that replays one body and records requests."""

    def __init__(
        self,
        status_code: int = 200,
        body: dict | None = None,
        text: str | None = None,
        error: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.text = text
        self.error = error
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.body is not None:
            return httpx.Response(self.status_code, json=self.body)
        return httpx.Response(self.status_code, text=self.text or "")

    def fetcher(self) -> PlacesDetailsFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return PlacesDetailsFetcher(client=client)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        cache_file=str(tmp_path / "cache.json"),
        db_file=str(tmp_path / "logs.sqlite"),
        cache_ttl_ms=60_000,
    )


def make_client(settings: Settings, upstream: Upstream) -> TestClient:
    return TestClient(create_app(settings, fetcher=upstream.fetcher()))


class TestGetPlace:
    def test_missing_key_is_400(self, settings: Settings) -> None:
        upstream = Upstream(body=PLACE_BODY)
        with make_client(settings, upstream) as client:
            response = client.get("/places/ChIJ_cafe")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == 400
        assert "key" in response.json()["error"]["message"]
        assert upstream.requests == []

    def test_miss_then_hit(self, settings: Settings) -> None:
        upstream = Upstream(body=PLACE_BODY)
        with make_client(settings, upstream) as client:
            first = client.get("/places/ChIJ_cafe", params={"key": "tenant"})
            second = client.get("/places/ChIJ_cafe", params={"key": "tenant"})

        assert first.status_code == 200
        assert first.headers["X-Cache"] == "MISS"
        assert first.headers["X-Forwarded-Upstream"] == "true"
        assert second.status_code == 200
        assert second.headers["X-Cache"] == "HIT"
        assert second.headers["X-Forwarded-Upstream"] == "false"
        assert first.json()["name"] == second.json()["name"] == "Corner Cafe"
        assert isinstance(second.json()["opening_hours"]["open_now"], bool)
        assert len(upstream.requests) == 1
        assert upstream.requests[0].url.params["key"] == "tenant"

    def test_miss_writes_cache_file(self, settings: Settings) -> None:
        upstream = Upstream(body=PLACE_BODY)
        with make_client(settings, upstream) as client:
            client.get("/places/ChIJ_cafe", params={"key": "tenant"})

        snapshot = json.loads(Path(settings.cache_file).read_text(encoding="utf-8"))
        entry = snapshot["tenant"]["ChIJ_cafe"]
        assert entry["data"]["name"] == "Corner Cafe"
        assert isinstance(entry["expires"], int)

    def test_cache_survives_restart(self, settings: Settings) -> None:
        upstream = Upstream(body=PLACE_BODY)
        with make_client(settings, upstream) as client:
            client.get("/places/ChIJ_cafe", params={"key": "tenant"})
        with make_client(settings, upstream) as client:
            response = client.get("/places/ChIJ_cafe", params={"key": "tenant"})

        assert response.headers["X-Cache"] == "HIT"
        assert len(upstream.requests) == 1

    def test_next_flag_attaches_prediction(self, settings: Settings) -> None:
        upstream = Upstream(body=PLACE_BODY)
        with make_client(settings, upstream) as client:
            response = client.get("/places/ChIJ_cafe", params={"key": "tenant", "next": "true"})

        prediction = response.json()["nextRelevantTime"]
        assert set(prediction) == {"openNow", "nextDate", "nextLabel", "humanString"}
        assert prediction["openNow"] == response.json()["opening_hours"]["open_now"]
        assert prediction["nextDate"] is not None

    def test_logical_error_maps_status(self, settings: Settings) -> None:
        upstream = Upstream(body={"status": "OVER_QUERY_LIMIT", "error_message": "Quota exceeded"})
        with make_client(settings, upstream) as client:
            response = client.get("/places/ChIJ_cafe", params={"key": "tenant"})
            health = client.get("/health").json()

        assert response.status_code == 429
        assert response.json() == {
            "error": {"code": 429, "status": "OVER_QUERY_LIMIT", "message": "Quota exceeded"}
        }
        assert health["cache"]["entries"] == 0
        assert not Path(settings.cache_file).exists()

    def test_transport_error_passes_through(self, settings: Settings) -> None:
        upstream = Upstream(status_code=503, text="try later")
        with make_client(settings, upstream) as client:
            response = client.get("/places/ChIJ_cafe", params={"key": "tenant"})

        assert response.status_code == 503
        assert response.json()["error"]["message"] == "try later"

    def test_parse_error_is_500(self, settings: Settings) -> None:
        upstream = Upstream(status_code=200, text="<html>not json</html>")
        with make_client(settings, upstream) as client:
            response = client.get("/places/ChIJ_cafe", params={"key": "tenant"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == 200
        assert response.json()["error"]["message"].startswith("Error parsing response")

    def test_unreachable_upstream_is_502_and_logged(self, settings: Settings) -> None:
        upstream = Upstream(error=httpx.ConnectError("connection refused"))
        with make_client(settings, upstream) as client:
            response = client.get("/places/ChIJ_cafe", params={"key": "tenant"})
            stats = client.get("/stats").json()

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == 502
        assert error["status"] == "UPSTREAM_UNAVAILABLE"
        assert "connection refused" in error["message"]
        assert len(upstream.requests) == 1
        assert stats["3_days"] == {
            "total": 1,
            "hits": 0,
            "misses": 1,
            "forwarded": 1,
            "errors": 1,
        }

    def test_upstream_timeout_is_504(self, settings: Settings) -> None:
        upstream = Upstream(error=httpx.ReadTimeout("read timed out"))
        with make_client(settings, upstream) as client:
            response = client.get("/places/ChIJ_cafe", params={"key": "tenant"})
            health = client.get("/health").json()

        assert response.status_code == 504
        assert response.json()["error"]["status"] == "UPSTREAM_TIMEOUT"
        assert health["cache"]["entries"] == 0

    def test_reference_timezone_comes_from_settings(self, tmp_path: Path) -> None:
        settings = Settings(
            cache_file=str(tmp_path / "cache.json"),
            db_file=str(tmp_path / "logs.sqlite"),
            reference_timezone="Asia/Tokyo",
        )
        with make_client(settings, Upstream(body=PLACE_BODY)) as client:
            service = client.app.state.lookup_service

        assert service.tz == ZoneInfo("Asia/Tokyo")


class TestHealthAndStats:
    def test_health_reports_cache(self, settings: Settings) -> None:
        upstream = Upstream(body=PLACE_BODY)
        with make_client(settings, upstream) as client:
            client.get("/places/a", params={"key": "tenant-1"})
            client.get("/places/b", params={"key": "tenant-1"})
            client.get("/places/a", params={"key": "tenant-2"})
            body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["cache"]["size"] == 2
        assert body["cache"]["entries"] == 3
        assert body["cache"]["ttl"] == 60_000
        assert body["cache"]["backend"] == "file"
        assert body["uptime"] >= 0

    def test_health_has_no_side_effects(self, settings: Settings) -> None:
        upstream = Upstream(body=PLACE_BODY)
        with make_client(settings, upstream) as client:
            client.get("/health")
            client.get("/health")
        assert upstream.requests == []
        assert not Path(settings.cache_file).exists()

    def test_stats_count_requests(self, settings: Settings) -> None:
        upstream = Upstream(body=PLACE_BODY)
        with make_client(settings, upstream) as client:
            client.get("/places/a", params={"key": "tenant"})
            client.get("/places/a", params={"key": "tenant"})
            client.get("/places/a")
            stats = client.get("/stats").json()

        assert set(stats) == {"3_days", "7_days", "30_days", "365_days"}
        assert stats["3_days"] == {
            "total": 3,
            "hits": 1,
            "misses": 2,
            "forwarded": 1,
            "errors": 1,
        }


class TestBuildBlobStore:
    def test_file_backend(self, settings: Settings) -> None:
        store = build_blob_store(settings)
        assert isinstance(store, JSONFileBlobStore)
        assert store.location == settings.cache_file

    def test_redis_backend(self, tmp_path: Path) -> None:
        settings = Settings(cache_backend="redis", redis_url="redis://cache:6379", redis_key="k")
        store = build_blob_store(settings)
        assert isinstance(store, RedisBlobStore)
        assert store.location == "redis://cache:6379/k"
