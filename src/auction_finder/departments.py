"""French departments: codes, names, slugs and lookups from free text."""

import re
import unicodedata
from typing import Optional, Union

UNKNOWN_DEPARTMENT = "00"

DEPARTMENTS: dict[str, str] = {
    "01": "Ain",
    "02": "Aisne",
    "03": "Allier",
    "04": "Alpes-de-Haute-Provence",
    "05": "Hautes-Alpes",
    "06": "Alpes-Maritimes",
    "07": "Ardèche",
    "08": "Ardennes",
    "09": "Ariège",
    "10": "Aube",
    "11": "Aude",
    "12": "Aveyron",
    "13": "Bouches-du-Rhône",
    "14": "Calvados",
    "15": "Cantal",
    "16": "Charente",
    "17": "Charente-Maritime",
    "18": "Cher",
    "19": "Corrèze",
    "2A": "Corse-du-Sud",
    "2B": "Haute-Corse",
    "21": "Côte-d'Or",
    "22": "Côtes-d'Armor",
    "23": "Creuse",
    "24": "Dordogne",
    "25": "Doubs",
    "26": "Drôme",
    "27": "Eure",
    "28": "Eure-et-Loir",
    "29": "Finistère",
    "30": "Gard",
    "31": "Haute-Garonne",
    "32": "Gers",
    "33": "Gironde",
    "34": "Hérault",
    "35": "Ille-et-Vilaine",
    "36": "Indre",
    "37": "Indre-et-Loire",
    "38": "Isère",
    "39": "Jura",
    "40": "Landes",
    "41": "Loir-et-Cher",
    "42": "Loire",
    "43": "Haute-Loire",
    "44": "Loire-Atlantique",
    "45": "Loiret",
    "46": "Lot",
    "47": "Lot-et-Garonne",
    "48": "Lozère",
    "49": "Maine-et-Loire",
    "50": "Manche",
    "51": "Marne",
    "52": "Haute-Marne",
    "53": "Mayenne",
    "54": "Meurthe-et-Moselle",
    "55": "Meuse",
    "56": "Morbihan",
    "57": "Moselle",
    "58": "Nièvre",
    "59": "Nord",
    "60": "Oise",
    "61": "Orne",
    "62": "Pas-de-Calais",
    "63": "Puy-de-Dôme",
    "64": "Pyrénées-Atlantiques",
    "65": "Hautes-Pyrénées",
    "66": "Pyrénées-Orientales",
    "67": "Bas-Rhin",
    "68": "Haut-Rhin",
    "69": "Rhône",
    "70": "Haute-Saône",
    "71": "Saône-et-Loire",
    "72": "Sarthe",
    "73": "Savoie",
    "74": "Haute-Savoie",
    "75": "Paris",
    "76": "Seine-Maritime",
    "77": "Seine-et-Marne",
    "78": "Yvelines",
    "79": "Deux-Sèvres",
    "80": "Somme",
    "81": "Tarn",
    "82": "Tarn-et-Garonne",
    "83": "Var",
    "84": "Vaucluse",
    "85": "Vendée",
    "86": "Vienne",
    "87": "Haute-Vienne",
    "88": "Vosges",
    "89": "Yonne",
    "90": "Territoire de Belfort",
    "91": "Essonne",
    "92": "Hauts-de-Seine",
    "93": "Seine-Saint-Denis",
    "94": "Val-de-Marne",
    "95": "Val-d'Oise",
    "971": "Guadeloupe",
    "972": "Martinique",
    "973": "Guyane",
    "974": "La Réunion",
    "976": "Mayotte",
}

# Large cities whose name alone identifies the department in listing titles.
MAJOR_CITIES: dict[str, str] = {
    "Marseille": "13",
    "Aix-en-Provence": "13",
    "Lyon": "69",
    "Villeurbanne": "69",
    "Toulouse": "31",
    "Nice": "06",
    "Cannes": "06",
    "Nantes": "44",
    "Strasbourg": "67",
    "Montpellier": "34",
    "Bordeaux": "33",
    "Lille": "59",
    "Rennes": "35",
    "Saint-Malo": "35",
    "Reims": "51",
    "Toulon": "83",
    "Grenoble": "38",
    "Dijon": "21",
    "Angers": "49",
    "Nîmes": "30",
    "Le Havre": "76",
    "Rouen": "76",
    "Brest": "29",
    "Limoges": "87",
    "Clermont-Ferrand": "63",
    "Tours": "37",
    "Amiens": "80",
    "Perpignan": "66",
    "Metz": "57",
    "Besançon": "25",
    "Orléans": "45",
    "Mulhouse": "68",
    "Caen": "14",
    "Nancy": "54",
    "Avignon": "84",
    "Chartres": "28",
    "Ajaccio": "2A",
    "Bastia": "2B",
}

# Historical undivided Corsica code: replaced by 2A/2B, never scheduled.
EXCLUDED_PARTITIONS = frozenset({"20"})

_ZIP_RE = re.compile(r"(?<!\d)(\d{5})(?!\d)")


def normalize_text(value: str) -> str:
    """Lowercase, strip accents and turn hyphens/apostrophes into spaces."""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    stripped = re.sub(r"[-'’_]", " ", stripped.lower())
    return re.sub(r"\s+", " ", stripped).strip()


def slugify(value: str) -> str:
    """URL slug as used by the auction site, e.g. "Côte-d'Or" -> "cote-d-or"."""
    return re.sub(r"[^a-z0-9]+", "-", normalize_text(value)).strip("-")


DEPARTMENT_SLUGS: dict[str, str] = {slugify(name): code for code, name in DEPARTMENTS.items()}

# Longest names first so "Eure-et-Loir" wins over "Eure" and "Haute-Loire" over "Loire".
_NAME_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(rf"\b{re.escape(normalize_text(name))}\b"), code)
    for name, code in sorted(
        [(n, c) for c, n in DEPARTMENTS.items()] + list(MAJOR_CITIES.items()),
        key=lambda item: len(item[0]),
        reverse=True,
    )
]


def normalize_department(value: Union[str, int, None]) -> Optional[str]:
    """
    Normalize a department code: 5 -> "05", "2a" -> "2A", "974" -> "974".
    Returns None for empty or unrecognizable values.
    """
    if value is None:
        return None
    text = str(value).strip().upper()
    if not text:
        return None
    if text in ("2A", "2B"):
        return text
    if not text.isdigit():
        return None
    number = int(text)
    if number <= 0:
        return None
    if number < 100:
        return f"{number:02d}"
    return str(number)


def partition_codes() -> list[str]:
    """Metropolitan department codes 01-95 used to fan out scraping jobs (20 excluded)."""
    codes = [f"{n:02d}" for n in range(1, 96)]
    return [c for c in codes if c not in EXCLUDED_PARTITIONS]


def department_for_slug(slug: Optional[str]) -> Optional[str]:
    """Department code for a site slug such as "ille-et-vilaine"."""
    if not slug:
        return None
    return DEPARTMENT_SLUGS.get(slugify(slug))


def find_department_in_text(text: Optional[str]) -> Optional[str]:
    """First department (or major city) name found in free text, matched on word boundaries."""
    if not text:
        return None
    haystack = normalize_text(text)
    for pattern, code in _NAME_PATTERNS:
        if pattern.search(haystack):
            return code
    return None


def extract_zip_code(text: Optional[str]) -> Optional[str]:
    """First 5-digit French postal code in text."""
    if not text:
        return None
    m = _ZIP_RE.search(text)
    return m.group(1) if m else None


def department_from_zip(zip_code: Optional[str]) -> Optional[str]:
    """Department code from a postal code (Corsica and overseas aware)."""
    if not zip_code or len(zip_code) != 5 or not zip_code.isdigit():
        return None
    if zip_code.startswith("97"):
        return zip_code[:3]
    if zip_code.startswith("20"):
        return "2A" if int(zip_code) < 20200 else "2B"
    return normalize_department(zip_code[:2])
