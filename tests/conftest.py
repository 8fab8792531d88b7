"""Pytest fixtures for auction-finder tests."""

import json
import tempfile
from pathlib import Path
from typing import Any, Optional

import pytest

from auction_finder.errors import NavigationError
from auction_finder.models.raw import AuctionExtra, RawOpportunity

SITE = "https://www.encheres-publiques.com"
LOT_URL = f"{SITE}/encheres/immobilier/maisons/eure-et-loir-28/maison-oinville-sous-auneau_12345"


def make_next_data(
    lot_id: str = "12345",
    lot: Optional[dict[str, Any]] = None,
    address: Optional[dict[str, Any]] = None,
    address_key: str = "Adresse:198825",
    categorie: str = "immobilier",
    sous_categorie: str = "maisons",
) -> dict[str, Any]:
    """Build a `__NEXT_DATA__` payload with one Lot record and an optional Adresse record."""
    lot_record = {
        "__typename": "Lot",
        "id": lot_id,
        "nom": "Une maison de 107 m² située à Oinville-Sous-Auneau",
    }
    lot_record.update(lot or {})
    data: dict[str, Any] = {f"Lot:{lot_id}": lot_record}
    if address is not None:
        lot_record.setdefault("adresse_physique", {"__ref": address_key})
        data[address_key] = {"__typename": "Adresse", **address}
    return {
        "query": {"lot_id": lot_id, "categorie": categorie, "sous_categorie": sous_categorie},
        "props": {"pageProps": {"apolloState": {"data": data}}},
    }


def make_opportunity(
    lot_id: str = "12345",
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    event_date: str = "2099-01-01T10:00:00.000Z",
    address: str = "12 rue de la Paix, 75002 Paris",
    city: str = "Paris",
    department: str = "75",
    venue: Optional[str] = "Tribunal judiciaire de Paris",
) -> RawOpportunity:
    """RawOpportunity with sensible defaults."""
    return RawOpportunity(
        url=f"{SITE}/encheres/immobilier/appartements/paris-75/appartement_{lot_id}",
        label="Un appartement",
        address=address,
        city=city,
        department=department,
        latitude=latitude,
        longitude=longitude,
        event_date=event_date,
        extra=AuctionExtra(source_id=lot_id, current_price=100000.0, venue=venue),
        images=[f"{SITE}/images/{lot_id}.jpg"],
    )


class RecordingSleep:
    """Drop-in for time.sleep that records durations instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeSession:
    """
    In-memory BrowserSession.
    `pages` maps URL -> `__NEXT_DATA__` payload (dict, raw string, or None for no state).
    `listing_snapshots[i]` is what the results page shows after i scrolls.
    """

    def __init__(
        self,
        pages: Optional[dict[str, Any]] = None,
        listing_snapshots: Optional[list[list[str]]] = None,
        errors: Optional[dict[str, Exception]] = None,
    ):
        self.pages = pages or {}
        self.listing_snapshots = listing_snapshots or [[]]
        self.errors = errors or {}
        self.navigated: list[str] = []
        self.scrolls = 0
        self.started = False
        self.closed = False
        self.consent_handled = False
        self.current_url: Optional[str] = None

    def start(self) -> None:
        self.started = True

    def navigate(self, url: str) -> None:
        self.navigated.append(url)
        if url in self.errors:
            raise self.errors[url]
        self.current_url = url

    def handle_cookie_consent(self) -> None:
        self.consent_handled = True

    def wait_for_ready(self) -> None:
        pass

    def evaluate(self, script: str) -> Any:
        if "__NEXT_DATA__" in script:
            payload = self.pages.get(self.current_url)
            if isinstance(payload, dict):
                return json.dumps(payload)
            return payload
        index = min(self.scrolls, len(self.listing_snapshots) - 1)
        return list(self.listing_snapshots[index])

    def scroll_to_bottom(self) -> None:
        self.scrolls += 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def temp_db() -> Path:
    """Temporary database path for isolated tests."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = Path(f.name)
    yield path
    path.unlink(missing_ok=True)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def sample_next_data() -> dict[str, Any]:
    """Lot page state with a structured address record."""
    return make_next_data(
        lot={
            "nom": "Un appartement de 3 pièces située à Saint-Malo",
            "description": "Bel appartement proche des remparts",
            "photo": "/images/lots/12345/main.jpg",
            "photos": [{"src": "/images/lots/12345/main.jpg"}, {"src": "/images/lots/12345/2.jpg"}],
            "offre_actuelle": 0,
            "estimation_basse": "85000",
            "estimation_haute": 120000,
            "prix_plancher": "abc",
            "fermeture_reelle_date": 1762970400,
            "encheres_fermeture_date": 1762970500,
            "fermeture_date": 1762970600,
            "critere_consommation_energetique": "D",
            "critere_surface_habitable": "62.5",
            "critere_nombre_de_pieces": 3,
            "critere_occupation_du_bien": "Loué",
            "organisateur": {"nom": "Maître Dupont"},
        },
        address={
            "text": "5 rue de Dinan, 35400 Saint-Malo",
            "ville": "Saint-Malo",
            "department_slug": "ille-et-vilaine",
            "coords": [-2.0075, 48.6493],
        },
        sous_categorie="appartements",
    )


@pytest.fixture
def fake_session_factory():
    """Factory fixture building FakeSession instances."""
    return FakeSession


@pytest.fixture
def navigation_error() -> NavigationError:
    return NavigationError(LOT_URL, "HTTP 503", status=503)
