"""Tests for the rate limiter and the address geocoder."""

import httpx
import pytest

from auction_finder.geocoding import GeocodeResult, Geocoder, RateLimiter, rate_limit, shared_rate_limiter
from conftest import RecordingSleep, make_opportunity

BASE_URL = "https://api-adresse.test/search/"


def _feature(score: float = 0.9, postcode: str | None = "75002", lon: float = 2.3315, lat: float = 48.8686) -> dict:
    properties = {"score": score, "label": "12 Rue de la Paix 75002 Paris"}
    if postcode is not None:
        properties["postcode"] = postcode
    return {"properties": properties, "geometry": {"type": "Point", "coordinates": [lon, lat]}}


def _geocoder(responses: list, sleep: RecordingSleep, requests: list | None = None, **kwargs) -> Geocoder:
    """Geocoder whose HTTP calls are answered in order from `responses`."""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return Geocoder(
        base_url=BASE_URL,
        client=client,
        rate_limiter=RateLimiter(min_interval=0, sleep=RecordingSleep()),
        sleep=sleep,
        **kwargs,
    )


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_sleeps_remaining_interval(self) -> None:
        """Second call 10ms after the first waits the remaining 15ms."""
        now = [100.0]
        sleep = RecordingSleep()
        limiter = RateLimiter(min_interval=0.025, clock=lambda: now[0], sleep=sleep)
        limiter.wait()
        now[0] = 100.010
        limiter.wait()
        assert sleep.calls == [pytest.approx(0.015)]

    def test_no_sleep_when_interval_elapsed(self) -> None:
        now = [100.0]
        sleep = RecordingSleep()
        limiter = RateLimiter(min_interval=0.025, clock=lambda: now[0], sleep=sleep)
        limiter.wait()
        now[0] = 100.5
        limiter.wait()
        assert sleep.calls == []

    def test_shared_limiter_takes_latest_interval(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A later configured interval replaces the first one; no argument keeps it."""
        monkeypatch.setattr(rate_limit, "_shared", None)
        first = shared_rate_limiter(0.025)
        second = shared_rate_limiter(0.1)
        assert second is first
        assert first.min_interval == 0.1
        assert shared_rate_limiter().min_interval == 0.1


class TestGeocoderResolve:
    """Tests for Geocoder.resolve."""

    def test_success(self) -> None:
        requests: list = []
        geocoder = _geocoder([httpx.Response(200, json={"features": [_feature()]})], RecordingSleep(), requests)
        result = geocoder.resolve("12 rue de la Paix, Paris")
        assert result == GeocodeResult(zip_code="75002", latitude=48.8686, longitude=2.3315)
        assert requests[0].url.params["q"] == "12 rue de la Paix, Paris"

    def test_low_score_returns_none(self) -> None:
        """score 0.3 is rejected even though coordinates are present."""
        geocoder = _geocoder([httpx.Response(200, json={"features": [_feature(score=0.3)]})], RecordingSleep())
        assert geocoder.resolve("somewhere") is None

    def test_no_features_returns_none(self) -> None:
        geocoder = _geocoder([httpx.Response(200, json={"features": []})], RecordingSleep())
        assert geocoder.resolve("nowhere") is None

    def test_blank_address_makes_no_request(self) -> None:
        requests: list = []
        geocoder = _geocoder([], RecordingSleep(), requests)
        assert geocoder.resolve("   ") is None
        assert requests == []

    def test_zip_from_address_when_postcode_missing(self) -> None:
        geocoder = _geocoder([httpx.Response(200, json={"features": [_feature(postcode=None)]})], RecordingSleep())
        result = geocoder.resolve("3 rue Nationale 28700 Oinville")
        assert result.zip_code == "28700"

    def test_429_with_retry_after(self) -> None:
        """retry-after: 2 -> exactly one 2s sleep, then the retry succeeds."""
        sleep = RecordingSleep()
        geocoder = _geocoder(
            [
                httpx.Response(429, headers={"retry-after": "2"}),
                httpx.Response(200, json={"features": [_feature()]}),
            ],
            sleep,
        )
        assert geocoder.resolve("12 rue de la Paix") is not None
        assert sleep.calls == [2.0]

    def test_429_without_retry_after(self) -> None:
        """No retry-after -> exactly one 5s sleep."""
        sleep = RecordingSleep()
        geocoder = _geocoder(
            [httpx.Response(429), httpx.Response(200, json={"features": [_feature()]})],
            sleep,
        )
        assert geocoder.resolve("12 rue de la Paix") is not None
        assert sleep.calls == [5.0]

    def test_429_does_not_consume_attempts(self) -> None:
        """Three 429s then two errors then success still resolves with max_attempts=3."""
        sleep = RecordingSleep()
        geocoder = _geocoder(
            [
                httpx.Response(429),
                httpx.Response(429),
                httpx.Response(429),
                httpx.Response(500),
                httpx.Response(500),
                httpx.Response(200, json={"features": [_feature()]}),
            ],
            sleep,
        )
        assert geocoder.resolve("12 rue de la Paix") is not None
        assert sleep.calls == [5.0, 5.0, 5.0, 1.0, 2.0]

    def test_429_cap(self) -> None:
        sleep = RecordingSleep()
        geocoder = _geocoder([httpx.Response(429)] * 3, sleep, max_rate_limit_retries=2)
        assert geocoder.resolve("12 rue de la Paix") is None
        assert sleep.calls == [5.0, 5.0]

    def test_linear_backoff_then_give_up(self) -> None:
        """Three failures: sleeps 1s and 2s between attempts, then None."""
        sleep = RecordingSleep()
        geocoder = _geocoder(
            [
                httpx.ConnectError("boom"),
                httpx.Response(503),
                httpx.Response(200, content=b"not json"),
            ],
            sleep,
        )
        assert geocoder.resolve("12 rue de la Paix") is None
        assert sleep.calls == [1.0, 2.0]


class TestGeocoderBatch:
    """Tests for Geocoder.resolve_batch."""

    def test_passes_through_located_opportunities(self) -> None:
        """Opportunities with coordinates are not sent to the API; zip is filled from text."""
        requests: list = []
        geocoder = _geocoder([], RecordingSleep(), requests)
        opp = make_opportunity(latitude=48.1, longitude=2.2)
        [result] = geocoder.resolve_batch([opp])
        assert requests == []
        assert result.latitude == 48.1
        assert result.zip_code == "75002"

    def test_zero_coordinates_are_geocoded(self) -> None:
        geocoder = _geocoder([httpx.Response(200, json={"features": [_feature()]})], RecordingSleep())
        [result] = geocoder.resolve_batch([make_opportunity(latitude=0.0, longitude=0.0)])
        assert result.latitude == 48.8686
        assert result.longitude == 2.3315

    def test_failure_keeps_opportunity_without_coordinates(self) -> None:
        geocoder = _geocoder(
            [
                httpx.Response(200, json={"features": [_feature(score=0.2)]}),
                httpx.Response(200, json={"features": [_feature()]}),
            ],
            RecordingSleep(),
        )
        results = geocoder.resolve_batch([make_opportunity(lot_id="1"), make_opportunity(lot_id="2")])
        assert [r.extra.source_id for r in results] == ["1", "2"]
        assert results[0].latitude is None
        assert results[1].latitude == 48.8686

    def test_query_includes_city_when_missing_from_address(self) -> None:
        requests: list = []
        geocoder = _geocoder([httpx.Response(200, json={"features": [_feature()]})], RecordingSleep(), requests)
        geocoder.resolve_batch([make_opportunity(address="Lieu-dit Les Vignes", city="Oinville")])
        assert requests[0].url.params["q"] == "Lieu-dit Les Vignes, Oinville"
