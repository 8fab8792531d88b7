"""Persisted auction record."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from auction_finder.models.raw import RawOpportunity

OPPORTUNITY_TYPE = "auction"


def parse_event_date(value: str) -> datetime:
    """Parse the extractor's `YYYY-MM-DDTHH:MM:SS.000Z` timestamps (and plain ISO dates)."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AuctionRecord(BaseModel):
    """Canonical row in the opportunities table, unique on (external_id, type)."""

    external_id: str = Field(..., description="Stable ID: {source}-{lot_id}")
    type: str = OPPORTUNITY_TYPE
    status: str = "upcoming"  # upcoming | past

    label: str = ""
    address: str = ""
    city: str = ""
    zip_code: Optional[str] = None
    department: str = "00"
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    opportunity_date: datetime
    contact_data: dict[str, Any] = Field(default_factory=dict)
    extra_data: dict[str, Any] = Field(default_factory=dict)
    images: list[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_opportunity(
        cls,
        opp: RawOpportunity,
        source: str,
        now: Optional[datetime] = None,
    ) -> "AuctionRecord":
        """Normalize a scraped opportunity into a store row."""
        now = now or datetime.now(timezone.utc)
        event = parse_event_date(opp.event_date)
        contact: dict[str, Any] = {"type": "auction_house"}
        if opp.extra.venue:
            contact["name"] = opp.extra.venue
        return cls(
            external_id=f"{source}-{opp.extra.source_id}",
            status="upcoming" if event > now else "past",
            label=opp.label,
            address=opp.address,
            city=opp.city,
            zip_code=opp.zip_code,
            department=opp.department,
            latitude=opp.latitude,
            longitude=opp.longitude,
            opportunity_date=event,
            contact_data=contact,
            extra_data=opp.extra.model_dump(exclude_none=True),
            images=list(opp.images),
            created_at=now,
            updated_at=now,
        )
