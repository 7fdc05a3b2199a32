#!/usr/bin/env python3
"""
Swiss and EU Places Database

Postal-code ranges, city name variants, country names, street suffixes and the
tunable word tables used to tell a Swiss postal code apart from a four-digit
year in the 1900-2099 overlap window.

The year-window tables (KNOWN_CITIES_IN_YEAR_RANGE, NON_CITY_WORDS) are
inherently incomplete. They are plain data so deployments can extend them via
PlacesDatabase.add_known_city() / add_non_city_word() instead of editing code.

Usage:
    from redact_engine.data.swiss_places import get_places_db
    db = get_places_db()
    db.is_known_city("Zürich")          # True
    db.is_non_city_word("Attestation")  # True
    db.canton_for_postal_code(1950)     # "VS"
"""

import re
import unicodedata
from typing import Dict, List, Optional, Set, Tuple


# ============================================================================
# Postal code ranges (min, max, canton)
# ============================================================================

SWISS_POSTAL_RANGES: List[Tuple[int, int, str]] = [
    (1000, 1299, "VD"),
    (1300, 1399, "VD/VS"),
    (1400, 1499, "VD"),
    (1500, 1599, "FR/VD"),
    (1600, 1699, "FR/VD"),
    (1700, 1799, "FR"),
    (1800, 1899, "VD/VS"),
    (1900, 1999, "VS"),
    (2000, 2099, "NE"),
    (2100, 2199, "NE"),
    (2200, 2299, "NE"),
    (2300, 2399, "NE/BE"),
    (2400, 2499, "NE/BE"),
    (2500, 2599, "BE"),
    (2600, 2699, "BE/SO"),
    (2700, 2799, "BE/JU"),
    (2800, 2899, "JU"),
    (2900, 2999, "JU"),
    (3000, 3999, "BE"),
    (4000, 4999, "BS/BL/SO/AG"),
    (5000, 5999, "AG/SO"),
    (6000, 6999, "LU/ZG/SZ/NW/OW/UR/TI"),
    (7000, 7999, "GR"),
    (8000, 8999, "ZH/SH/TG/SG"),
    (9000, 9999, "SG/AR/AI/TG/SH"),
]

# Four-digit numbers in this window may be years rather than postal codes
YEAR_OVERLAP_RANGE = (1900, 2099)


# ============================================================================
# Cities (canonical key -> language variants)
# ============================================================================

SWISS_CITIES: Dict[str, List[str]] = {
    "zurich": ["zürich", "zurich", "zurigo"],
    "geneva": ["genève", "geneva", "genf", "ginevra"],
    "basel": ["basel", "bâle", "basilea"],
    "bern": ["bern", "berne", "berna"],
    "lausanne": ["lausanne", "losanna"],
    "winterthur": ["winterthur", "winterthour"],
    "lucerne": ["luzern", "lucerne", "lucerna"],
    "stgallen": ["st. gallen", "st.gallen", "saint-gall", "san gallo"],
    "lugano": ["lugano"],
    "biel": ["biel", "bienne"],
    "thun": ["thun", "thoune"],
    "fribourg": ["fribourg", "freiburg", "friburgo"],
    "neuchatel": ["neuchâtel", "neuchatel", "neuenburg"],
    "sion": ["sion", "sitten"],
    "chur": ["chur", "coire", "coira"],
    "montreux": ["montreux"],
    "zug": ["zug", "zoug"],
}

# Cities whose postal codes fall inside the 1900-2099 year window (Valais, Neuchâtel)
KNOWN_CITIES_IN_YEAR_RANGE: Set[str] = {
    "sion", "sierre", "martigny", "monthey", "saxon", "fully", "leytron",
    "chamoson", "conthey", "vétroz", "vetroz", "ardon", "riddes", "saillon",
    "brig", "visp", "naters", "zermatt", "saas-fee",
    "neuchâtel", "neuchatel", "la chaux-de-fonds", "le locle", "fleurier",
    "couvet", "môtiers", "motiers", "travers", "boudry", "cortaillod",
    "colombier", "auvernier", "bevaix", "gorgier", "saint-aubin",
}

# Words that follow a year far more often than a postal code does
NON_CITY_WORDS: Set[str] = {
    "attestation", "rapport", "report", "bericht", "document", "dokument",
    "contrat", "contract", "vertrag", "contratto",
    "version", "edition", "ausgabe", "edizione",
    "année", "annee", "year", "jahr", "anno",
    "execution", "exécution", "ausführung", "esecuzione",
    "pour", "and", "oder", "from", "with", "date", "depuis", "since", "ab",
    "fondation", "collective", "stiftung", "fondazione",
    "l'exécution", "l'execution", "l'année", "l'annee",
}


# ============================================================================
# Month names (en/de/fr/it, with ASCII spellings)
# ============================================================================

MONTH_NAME_TO_NUMBER: Dict[str, int] = {
    # English
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    # German (april, august, september, november shared with English)
    "januar": 1, "februar": 2, "märz": 3, "maerz": 3, "mai": 5, "juni": 6,
    "juli": 7, "oktober": 10, "dezember": 12,
    # French
    "janvier": 1, "février": 2, "fevrier": 2, "mars": 3, "avril": 4, "juin": 6,
    "juillet": 7, "août": 8, "aout": 8, "septembre": 9, "octobre": 10, "novembre": 11,
    "décembre": 12, "decembre": 12,
    # Italian
    "gennaio": 1, "febbraio": 2, "marzo": 3, "aprile": 4, "maggio": 5, "giugno": 6,
    "luglio": 7, "agosto": 8, "settembre": 9, "ottobre": 10, "dicembre": 12,
}

MONTH_NAMES: Set[str] = set(MONTH_NAME_TO_NUMBER)


# ============================================================================
# Countries and street suffixes
# ============================================================================

EU_COUNTRIES: Dict[str, List[str]] = {
    "switzerland": ["switzerland", "suisse", "schweiz", "svizzera", "ch"],
    "germany": ["germany", "allemagne", "deutschland", "de"],
    "france": ["france", "frankreich", "francia", "fr"],
    "italy": ["italy", "italie", "italien", "italia", "it"],
    "austria": ["austria", "autriche", "österreich", "at"],
    "liechtenstein": ["liechtenstein", "li"],
    "belgium": ["belgium", "belgique", "belgien", "belgio", "be"],
    "netherlands": ["netherlands", "pays-bas", "niederlande", "paesi bassi", "nl"],
    "luxembourg": ["luxembourg", "luxemburg", "lussemburgo", "lu"],
}

STREET_SUFFIXES: Dict[str, List[str]] = {
    "de": ["strasse", "straße", "str.", "weg", "gasse", "platz", "allee", "ring", "damm"],
    "fr": ["rue", "avenue", "av.", "boulevard", "blvd", "chemin", "ch.", "place", "pl.",
           "route", "rte", "allée", "impasse", "passage", "quai"],
    "it": ["via", "viale", "piazza", "corso", "vicolo", "largo"],
    "en": ["street", "st.", "road", "rd.", "lane", "ln.", "drive", "dr.", "court", "ct.",
           "ave.", "way", "circle"],
}

# Suffixes that trail the name ("Bahnhofstrasse") vs. lead it ("Rue de Lausanne")
TRAILING_STREET_SUFFIXES = STREET_SUFFIXES["de"] + ["street", "road", "lane", "drive", "court", "way"]
LEADING_STREET_SUFFIXES = STREET_SUFFIXES["fr"] + STREET_SUFFIXES["it"]

_ACCENT_MAP = str.maketrans({"ß": "ss"})


def normalize_place_name(name: str) -> str:
    """Lowercase and strip accents ("Zürich" -> "zurich")."""
    lowered = name.lower().strip().translate(_ACCENT_MAP)
    decomposed = unicodedata.normalize("NFKD", lowered)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


class PlacesDatabase:
    """
    Lookup service for Swiss/EU place names.

    All lookups are case-insensitive O(1) set membership.
    """

    def __init__(self):
        self._city_variants: Set[str] = set()
        self._city_variants_normalized: Set[str] = set()
        for variants in SWISS_CITIES.values():
            for variant in variants:
                self._city_variants.add(variant)
                self._city_variants_normalized.add(normalize_place_name(variant))
        self._year_range_cities = {c.lower() for c in KNOWN_CITIES_IN_YEAR_RANGE}
        self._non_city_words = {w.lower() for w in NON_CITY_WORDS}
        self._country_variants: Dict[str, str] = {}
        for country, variants in EU_COUNTRIES.items():
            for variant in variants:
                self._country_variants[variant] = country

    def is_known_city(self, text: str) -> bool:
        """
        Check if text is a known Swiss city in any of its language variants.

        Args:
            text: City name candidate

        Returns:
            True if the name (accent-insensitive) is a known city
        """
        lowered = text.lower().strip()
        if lowered in self._city_variants or lowered in self._year_range_cities:
            return True
        return normalize_place_name(text) in self._city_variants_normalized

    def is_year_range_city(self, word: str) -> bool:
        return word.lower().strip() in self._year_range_cities

    def is_non_city_word(self, word: str) -> bool:
        return word.lower().strip() in self._non_city_words

    def is_month_name(self, word: str) -> bool:
        return word.lower().strip().rstrip(".") in MONTH_NAMES

    def add_known_city(self, name: str):
        """Extend the year-window city table at runtime."""
        self._year_range_cities.add(name.lower().strip())

    def add_non_city_word(self, word: str):
        """Extend the non-city word table at runtime."""
        self._non_city_words.add(word.lower().strip())

    def country_for(self, text: str) -> Optional[str]:
        """Canonical country name for a country variant, or None."""
        return self._country_variants.get(text.lower().strip())

    @property
    def city_variants(self) -> Set[str]:
        return set(self._city_variants)

    @property
    def country_variants(self) -> Set[str]:
        return set(self._country_variants)

    @staticmethod
    def is_valid_swiss_postal_code(code: int) -> bool:
        return any(low <= code <= high for low, high, _ in SWISS_POSTAL_RANGES)

    @staticmethod
    def canton_for_postal_code(code: int) -> Optional[str]:
        for low, high, canton in SWISS_POSTAL_RANGES:
            if low <= code <= high:
                return canton
        return None

    @staticmethod
    def in_year_overlap(code: int) -> bool:
        return YEAR_OVERLAP_RANGE[0] <= code <= YEAR_OVERLAP_RANGE[1]


def street_suffix_pattern(suffixes: List[str]) -> str:
    """Regex alternation for a list of street suffixes, longest first."""
    ordered = sorted(set(suffixes), key=len, reverse=True)
    return "|".join(re.escape(s) for s in ordered)


# Global instance for convenience
_places_db: Optional[PlacesDatabase] = None


def get_places_db() -> PlacesDatabase:
    """Get the global places database instance."""
    global _places_db
    if _places_db is None:
        _places_db = PlacesDatabase()
    return _places_db


def reset_places_db():
    """Discard runtime additions (test harnesses only)."""
    global _places_db
    _places_db = None
