"""Parsing utilities for encheres-publiques.com lot pages."""

import re
from datetime import date, datetime, timezone
from typing import NamedTuple, Optional, Union
from urllib.parse import urljoin

from auction_finder.departments import (
    DEPARTMENTS,
    UNKNOWN_DEPARTMENT,
    department_for_slug,
    department_from_zip,
    extract_zip_code,
    find_department_in_text,
    normalize_department,
)
from auction_finder.errors import ExtractionFailure
from auction_finder.models.page_state import AddressData, LotData, NextData
from auction_finder.models.raw import AuctionExtra, RawOpportunity

from .constants import (
    ADDRESS_MARKERS,
    OCCUPATION_STATUSES,
    PROPERTY_TYPES,
    SITE_BASE_URL,
    TITLE_MARKERS,
)

# "/encheres/immobilier/maisons/saint-malo-35/maison-..." -> ("saint-malo", "35")
URL_LOCATION_PATTERN = re.compile(r"/([a-z][a-z-]*?)-(\d{2,3}|2[ab])/", re.IGNORECASE)

EVENT_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.000Z"
PLACEHOLDER_LABEL = "Bien immobilier"

Number = Union[int, float, str, None]


class ResolvedAddress(NamedTuple):
    address: str
    city: str
    department: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


def _find_marker(text: str, markers: tuple[str, ...]) -> Optional[re.Match[str]]:
    """First marker (in list order) occurring after position 0 in text, case-insensitive."""
    for marker in markers:
        for m in re.finditer(re.escape(marker), text, re.IGNORECASE):
            if m.start() > 0:
                return m
    return None


def _earliest_marker(text: str, markers: tuple[str, ...]) -> Optional[re.Match[str]]:
    """Marker occurrence with the smallest position after 0, across all markers."""
    found = [
        m
        for marker in markers
        for m in re.finditer(re.escape(marker), text, re.IGNORECASE)
        if m.start() > 0
    ]
    return min(found, key=lambda m: m.start(), default=None)


def extract_title(nom: Optional[str]) -> str:
    """Listing title: the lot name cut before its "située à ..." location phrase."""
    if not nom:
        return ""
    m = _earliest_marker(nom, TITLE_MARKERS)
    if m:
        return nom[: m.start()].strip()
    return nom.strip()


def absolute_url(href: str, base_url: str = SITE_BASE_URL) -> str:
    """Join a site-relative href onto the site base URL; absolute URLs pass through."""
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(base_url.rstrip("/") + "/", href.lstrip("/"))


def parse_url_location(url: str) -> Optional[tuple[str, str]]:
    """(city, department) from a `/<slug>-<dd>/` path segment, e.g. ("Saint-Malo", "35")."""
    m = URL_LOCATION_PATTERN.search(url)
    if not m:
        return None
    department = normalize_department(m.group(2))
    if department not in DEPARTMENTS:
        return None
    city = "-".join(part.capitalize() for part in m.group(1).split("-") if part)
    return city, department


def _url_department(url: str) -> Optional[str]:
    location = parse_url_location(url)
    return location[1] if location else None


def _address_from_record(record: AddressData, url: str) -> ResolvedAddress:
    department = (
        department_for_slug(record.department_slug)
        or normalize_department(record.departement)
        or department_from_zip(extract_zip_code(record.text))
        or _url_department(url)
        or UNKNOWN_DEPARTMENT
    )
    latitude = longitude = None
    if record.coords and len(record.coords) >= 2:
        longitude, latitude = record.coords[0], record.coords[1]
    text = record.text.strip()
    city = record.ville.strip() or text
    return ResolvedAddress(text or city, city, department, latitude, longitude)


def _address_from_name(nom: str, url: str) -> Optional[ResolvedAddress]:
    m = _find_marker(nom, ADDRESS_MARKERS)
    if not m:
        return None
    text = nom[m.end():]
    text = re.sub(r"\s*-\s*", "-", text).strip().rstrip(".").strip()
    if not text:
        return None
    department = find_department_in_text(text) or _url_department(url) or UNKNOWN_DEPARTMENT
    return ResolvedAddress(text, text, department)


def _address_from_url(url: str, label: str) -> ResolvedAddress:
    location = parse_url_location(url)
    if location:
        city, department = location
        return ResolvedAddress(city, city, department)
    placeholder = label or PLACEHOLDER_LABEL
    return ResolvedAddress(placeholder, placeholder, UNKNOWN_DEPARTMENT)


def resolve_address(lot: LotData, state: NextData, url: str) -> ResolvedAddress:
    """
    Resolve the lot's location, first strategy that succeeds:
    1. the structured `Adresse` record referenced by the lot,
    2. the place named after a "située à" marker in the lot name,
    3. the `/<slug>-<dd>/` segment of the listing URL (or a placeholder).
    """
    record = state.address(lot.address_ref())
    if record is not None and (record.text.strip() or record.ville.strip()):
        return _address_from_record(record, url)
    from_name = _address_from_name(lot.nom, url)
    if from_name is not None:
        return from_name
    return _address_from_url(url, extract_title(lot.nom))


def epoch_to_iso(value: Number) -> Optional[str]:
    """Unix epoch seconds (int or numeric string) -> "YYYY-MM-DDTHH:MM:SS.000Z". Zero counts as missing."""
    if value is None or value == "":
        return None
    try:
        seconds = float(value)
        if not seconds:
            return None
        return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(EVENT_DATE_FORMAT)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def extract_event_date(lot: LotData, today: Optional[date] = None) -> str:
    """Actual closing, then auction closing, then generic closing; today at midnight UTC otherwise."""
    for value in (lot.fermeture_reelle_date, lot.encheres_fermeture_date, lot.fermeture_date):
        iso = epoch_to_iso(value)
        if iso:
            return iso
    today = today or datetime.now(timezone.utc).date()
    return datetime(today.year, today.month, today.day, tzinfo=timezone.utc).strftime(EVENT_DATE_FORMAT)


def positive_number(value: Number) -> Optional[float]:
    """Numeric value, or None when missing, zero or not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).replace(" ", "").replace(",", "."))
    except ValueError:
        return None
    if number != number or number == 0:  # NaN or zero
        return None
    return number


def property_type_for(subcategory: Optional[str]) -> str:
    sub = (subcategory or "").lower()
    for keyword, property_type in PROPERTY_TYPES:
        if keyword in sub:
            return property_type
    return "other"


def occupation_status_for(raw: Optional[str]) -> str:
    if not raw:
        return "unknown"
    return OCCUPATION_STATUSES.get(raw.strip(), "unknown")


def extract_images(lot: LotData, base_url: str = SITE_BASE_URL) -> list[str]:
    """Main photo first, then the gallery without the main photo, absolutized and deduplicated."""
    sources: list[str] = []
    if lot.photo:
        sources.append(lot.photo)
    for photo in lot.photos or []:
        if photo.src and photo.src != lot.photo:
            sources.append(photo.src)
    images: list[str] = []
    for src in sources:
        full = absolute_url(src, base_url)
        if full not in images:
            images.append(full)
    return images


def build_extra(lot: LotData, state: NextData, lot_id: str, url: str) -> AuctionExtra:
    rooms = positive_number(lot.critere_nombre_de_pieces)
    venue = lot.organisateur.nom.strip() if lot.organisateur and lot.organisateur.nom else None
    energy_class = (lot.critere_consommation_energetique or "").strip() or None
    return AuctionExtra(
        source_id=lot_id,
        url=url,
        category=state.query.categorie,
        subcategory=state.query.sous_categorie,
        property_type=property_type_for(state.query.sous_categorie),
        occupation_status=occupation_status_for(lot.critere_occupation_du_bien),
        current_price=positive_number(lot.offre_actuelle),
        lower_estimate=positive_number(lot.estimation_basse),
        upper_estimate=positive_number(lot.estimation_haute),
        reserve_price=positive_number(lot.prix_plancher),
        description=(lot.description or "").strip() or None,
        energy_class=energy_class,
        area=positive_number(lot.critere_surface_habitable),
        rooms=int(rooms) if rooms is not None else None,
        venue=venue or None,
    )


def parse_lot_page(
    state: NextData,
    url: str,
    base_url: str = SITE_BASE_URL,
    today: Optional[date] = None,
) -> RawOpportunity:
    """Turn a page's embedded state into a RawOpportunity. Raises ExtractionFailure."""
    lot_id = state.query.lot_id
    if not lot_id:
        raise ExtractionFailure(url, "no matching record")
    lot = state.lot(lot_id)
    if lot is None:
        raise ExtractionFailure(url, "no matching record")

    label = extract_title(lot.nom)
    location = resolve_address(lot, state, url)
    return RawOpportunity(
        url=url,
        label=label,
        address=location.address,
        city=location.city,
        department=location.department,
        zip_code=extract_zip_code(location.address),
        latitude=location.latitude,
        longitude=location.longitude,
        event_date=extract_event_date(lot, today=today),
        extra=build_extra(lot, state, lot_id, url),
        images=extract_images(lot, base_url),
    )
