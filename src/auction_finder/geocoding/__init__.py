"""Rate-limited address geocoding."""

from auction_finder.geocoding.geocoder import GeocodeResult, Geocoder
from auction_finder.geocoding.rate_limit import RateLimiter, shared_rate_limiter

__all__ = ["GeocodeResult", "Geocoder", "RateLimiter", "shared_rate_limiter"]
