"""Scraped records before persistence."""

from typing import Optional

from pydantic import BaseModel, Field


class Listing(BaseModel):
    """Candidate listing page discovered on the search results page."""

    url: str


class AuctionExtra(BaseModel):
    """Auction-specific details carried alongside the display fields."""

    source_id: str = Field(..., description="Native lot ID on the auction site")
    url: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    property_type: str = "other"  # house | flat | land | other
    occupation_status: str = "unknown"  # occupied_by_owner | rented | free | unknown

    current_price: Optional[float] = None
    lower_estimate: Optional[float] = None
    upper_estimate: Optional[float] = None
    reserve_price: Optional[float] = None

    description: Optional[str] = None
    energy_class: Optional[str] = None
    area: Optional[float] = None  # m²
    rooms: Optional[int] = None
    venue: Optional[str] = None


class RawOpportunity(BaseModel):
    """
    One auction lot as extracted from its detail page.
    Coordinates and postal code stay empty until geocoding fills them in.
    """

    url: str
    label: str
    address: str
    city: str
    department: str
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    event_date: str = Field(..., description="ISO-8601 UTC timestamp of the auction closing")
    extra: AuctionExtra
    images: list[str] = Field(default_factory=list)

    def has_coordinates(self) -> bool:
        """True when both coordinates are present and not the 0/0 placeholder."""
        return bool(self.latitude) and bool(self.longitude)

    def geocoding_query(self) -> str:
        """Free-text query for the address API: address, plus city when not already in it."""
        address = self.address.strip()
        city = self.city.strip()
        if city and city.lower() not in address.lower():
            return f"{address}, {city}" if address else city
        return address
