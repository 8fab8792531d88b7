"""encheres-publiques.com page structure and vocabulary."""

SOURCE_ID = "encheres-publiques"

SITE_BASE_URL = "https://www.encheres-publiques.com"
DEFAULT_LISTING_URL = f"{SITE_BASE_URL}/encheres/immobilier?evenements_periode=en_cours_a_venir"

# Title is cut before these
TITLE_MARKERS = (
    "située à",
    "situé à",
    "situées à",
    "situés à",
    "située au",
    "situé au",
)

# Address is the text after the first of these (order matters: specific before generic)
ADDRESS_MARKERS = (
    "située à",
    "situé à",
    "située au",
    "situé au",
    "située dans",
    "située sur",
    "situées",
    "située",
    "situés",
    "situé",
)

# Subcategory substring -> property type
PROPERTY_TYPES = (
    ("maison", "house"),
    ("appartement", "flat"),
    ("terrain", "land"),
)

# critere_occupation_du_bien -> occupation status
OCCUPATION_STATUSES = {
    "Occupé": "occupied_by_owner",
    "Loué": "rented",
    "Libre de toute occupation": "free",
}

# Selectors used inside page scripts
CARD_SELECTOR = '[class*="card"]'
LISTING_PATH = "/encheres/"
EXCLUDED_PATH = "/ventes/"
NEXT_DATA_SELECTOR = "#__NEXT_DATA__"
