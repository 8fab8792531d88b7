"""Address resolution against the French national address API (api-adresse.data.gouv.fr)."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from auction_finder.departments import extract_zip_code
from auction_finder.errors import GeocodingFailure
from auction_finder.geocoding.rate_limit import RateLimiter, shared_rate_limiter
from auction_finder.models.raw import RawOpportunity

logger = logging.getLogger(__name__)

DEFAULT_GEOCODE_URL = "https://api-adresse.data.gouv.fr/search/"
PROGRESS_EVERY = 100


class FeatureProperties(BaseModel):
    score: float = 0.0
    postcode: Optional[str] = None
    label: Optional[str] = None
    city: Optional[str] = None


class FeatureGeometry(BaseModel):
    coordinates: list[float] = Field(default_factory=list)  # [lon, lat]


class Feature(BaseModel):
    properties: FeatureProperties = Field(default_factory=FeatureProperties)
    geometry: FeatureGeometry = Field(default_factory=FeatureGeometry)


class GeocodeResponse(BaseModel):
    features: list[Feature] = Field(default_factory=list)


@dataclass(frozen=True)
class GeocodeResult:
    zip_code: Optional[str]
    latitude: float
    longitude: float


class Geocoder:
    """
    Resolves free-text addresses to postal code and coordinates.

    Every outbound request goes through the shared RateLimiter. HTTP 429 waits for
    `retry-after` (or a default) without using up the regular attempts; other
    failures back off linearly (retry_delay × attempt). Low-confidence matches are
    discarded.
    """

    DEFAULT_HEADERS = {
        "User-Agent": "auction-finder/0.1 (French auction listings; address lookup)",
        "Accept": "application/json",
    }

    def __init__(
        self,
        base_url: str = DEFAULT_GEOCODE_URL,
        client: Optional[httpx.Client] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep,
        min_score: float = 0.5,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        rate_limit_wait: float = 5.0,
        max_rate_limit_retries: int = 5,
    ):
        self.base_url = base_url
        self._client = client or httpx.Client(
            timeout=15.0,
            follow_redirects=True,
            headers=self.DEFAULT_HEADERS,
        )
        self._rate_limiter = rate_limiter or shared_rate_limiter()
        self._sleep = sleep
        self.min_score = min_score
        self.max_attempts = max(max_attempts, 1)
        self.retry_delay = retry_delay
        self.rate_limit_wait = rate_limit_wait
        self.max_rate_limit_retries = max_rate_limit_retries

    def close(self) -> None:
        self._client.close()

    def _retry_after(self, response: httpx.Response) -> float:
        """Seconds to wait after a 429: the retry-after header, else the default."""
        value = response.headers.get("retry-after")
        if value:
            try:
                seconds = float(value)
                if seconds >= 0:
                    return seconds
            except ValueError:
                logger.debug("Ignoring non-numeric retry-after header %r", value)
        return self.rate_limit_wait

    def _fetch(self, address: str) -> GeocodeResponse:
        """Run the request/retry state machine. Raises GeocodingFailure when out of attempts."""
        attempt = 0
        rate_limited = 0
        while True:
            self._rate_limiter.wait()
            reason: str
            try:
                response = self._client.get(self.base_url, params={"q": address, "limit": 1})
            except httpx.HTTPError as e:
                reason = f"request error: {e}"
            else:
                if response.status_code == 429:
                    rate_limited += 1
                    if rate_limited > self.max_rate_limit_retries:
                        raise GeocodingFailure(address, "rate limited too many times")
                    wait = self._retry_after(response)
                    logger.warning("Geocoding API rate limited, waiting %.1fs", wait)
                    self._sleep(wait)
                    continue
                if response.status_code != 200:
                    reason = f"HTTP {response.status_code}"
                else:
                    try:
                        return GeocodeResponse.model_validate(response.json())
                    except (ValueError, ValidationError) as e:
                        reason = f"invalid response: {e}"

            attempt += 1
            if attempt >= self.max_attempts:
                raise GeocodingFailure(address, reason)
            logger.debug("Geocoding attempt %d for %r failed (%s), retrying", attempt, address, reason)
            self._sleep(self.retry_delay * attempt)

    def resolve(self, address: str) -> Optional[GeocodeResult]:
        """Postal code and coordinates for address, or None if unresolvable or low-confidence."""
        if not address or not address.strip():
            return None
        try:
            payload = self._fetch(address.strip())
        except GeocodingFailure as e:
            logger.warning("%s", e)
            return None

        if not payload.features:
            logger.debug("No geocoding match for %r", address)
            return None
        feature = payload.features[0]
        if feature.properties.score < self.min_score:
            logger.debug("Geocoding score %.2f below %.2f for %r", feature.properties.score, self.min_score, address)
            return None
        coordinates = feature.geometry.coordinates
        if len(coordinates) < 2:
            return None
        return GeocodeResult(
            zip_code=feature.properties.postcode or extract_zip_code(address),
            latitude=coordinates[1],
            longitude=coordinates[0],
        )

    def resolve_batch(self, opportunities: list[RawOpportunity]) -> list[RawOpportunity]:
        """
        Geocode opportunities one after another.
        Ones that already have coordinates are kept as-is (zip filled from the address text).
        Unresolved ones are kept without coordinates.
        """
        results: list[RawOpportunity] = []
        resolved = skipped = failed = 0
        total = len(opportunities)
        for i, opp in enumerate(opportunities, start=1):
            if opp.has_coordinates():
                skipped += 1
                results.append(opp if opp.zip_code else opp.model_copy(update={"zip_code": extract_zip_code(opp.address)}))
            else:
                result = self.resolve(opp.geocoding_query())
                if result is None:
                    failed += 1
                    logger.warning("Could not geocode %s (%s)", opp.url, opp.geocoding_query())
                    results.append(opp)
                else:
                    resolved += 1
                    results.append(
                        opp.model_copy(
                            update={
                                "zip_code": result.zip_code or opp.zip_code,
                                "latitude": result.latitude,
                                "longitude": result.longitude,
                            }
                        )
                    )
            if i % PROGRESS_EVERY == 0:
                logger.info("Geocoded %d/%d", i, total)
        logger.info(
            "Geocoding done: %d resolved, %d already located, %d failed (of %d)",
            resolved,
            skipped,
            failed,
            total,
        )
        return results
