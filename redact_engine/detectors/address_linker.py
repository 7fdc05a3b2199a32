"""
Address relationship linking.

Three cooperating pieces:

- AddressClassifier finds address fragments in raw text (street names by
  DE/FR/IT/EN suffix, house numbers near a street, Swiss/EU postal codes,
  known cities and the capitalized word after a postal code, countries).
- AddressLinker folds proximate fragments into GroupedAddress objects and
  labels each with the component ordering it matched.
- AddressScorer turns a grouped address into a final confidence with a
  per-factor breakdown.

Patterns:
    SWISS        [Street] [Number], [PostalCode] [City]
    EU           [Street] [Number], [PostalCode] [City], [Country]
    ALTERNATIVE  [PostalCode] [City], [Street] [Number]
    PARTIAL      street or number plus postal code or city (or postal + city)

Usage:
    from redact_engine.detectors.address_linker import link_addresses

    for address in link_addresses("Bahnhofstrasse 12, 8001 Zürich"):
        print(address.pattern, address.text, address.confidence)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..data.swiss_places import (
    LEADING_STREET_SUFFIXES,
    TRAILING_STREET_SUFFIXES,
    get_places_db,
    street_suffix_pattern,
)
from .entities import (
    AddressComponent,
    AddressComponentType,
    AddressPattern,
    EntityType,
    GroupedAddress,
    ValidationStatus,
    generate_entity_id,
)
from .validators import SwissAddressValidator

logger = logging.getLogger(__name__)

C = AddressComponentType

_UPPER = "A-ZÄÖÜÉÈÀ"
_LOWER = "a-zäöüßéèàâêîôûç"
_WORD = f"[{_UPPER}][{_LOWER}]+"

# "Bahnhofstrasse", "Hauptstr.", "Main Street"
STREET_TRAILING_PATTERN = re.compile(
    rf"\b({_WORD}(?:[ \t-]+{_WORD})?[ ]?(?i:{street_suffix_pattern(TRAILING_STREET_SUFFIXES)}))(?!\w)"
)
# "Rue de Lausanne", "Via Roma", "Avenue des Alpes"
STREET_LEADING_PATTERN = re.compile(
    rf"\b((?=[{_UPPER}])(?i:{street_suffix_pattern(LEADING_STREET_SUFFIXES)})\s+"
    rf"(?:(?:de\s+la|de\s+l'|de|du|des|della|del|di)\s+)?{_WORD}(?:[ \t-]+{_WORD})*)"
)
STREET_NUMBER_PATTERN = re.compile(r"\b(\d{1,4}[a-zA-Z]?(?:\s*[-–]\s*\d{1,4}[a-zA-Z]?)?)\b")
SWISS_POSTAL_PATTERN = re.compile(r"\b(?:CH[-\s]?)?([1-9]\d{3})\b")
EU_POSTAL_PATTERN = re.compile(r"\b(?:[DFIA][-\s]?)?(\d{5})\b")
CITY_AFTER_POSTAL_PATTERN = re.compile(rf"^[ \t]*({_WORD}(?:[ \t]+[{_LOWER}]+)?)")
NEXT_WORD_PATTERN = re.compile(rf"^[ \t]+({_WORD})")
DIGIT_BEFORE = re.compile(r"\d[ ]?$")
DIGIT_AFTER = re.compile(r"^[ ]?\d")

MIN_STREET_LENGTH = 5


@dataclass
class AddressClassifierConfig:
    max_component_distance: int = 50


@dataclass
class AddressLinkerConfig:
    proximity_threshold: int = 50
    newline_threshold: int = 100
    min_components: int = 2
    max_components: int = 6


@dataclass
class ScoringFactor:
    name: str
    score: float
    max_score: float
    matched: bool
    description: str = ""


@dataclass
class ScoredAddress:
    address: GroupedAddress
    final_confidence: float
    factors: List[ScoringFactor] = field(default_factory=list)
    flagged_for_review: bool = False
    auto_anonymize: bool = False


def _overlaps_any(components: List[AddressComponent], start: int, end: int) -> bool:
    return any(start < c.end and c.start < end for c in components)


# =============================================================================
# COMPONENT CLASSIFICATION
# =============================================================================

class AddressClassifier:
    """Finds address components in text; results are sorted by position."""

    def __init__(self, config: Optional[AddressClassifierConfig] = None):
        self.config = config or AddressClassifierConfig()
        self.places = get_places_db()
        self._year_checker = SwissAddressValidator()
        self._city_pattern = self._variant_pattern(self.places.city_variants)
        self._country_pattern = self._variant_pattern(
            {v for v in self.places.country_variants if len(v) > 2})

    @staticmethod
    def _variant_pattern(variants) -> re.Pattern:
        ordered = sorted(variants, key=len, reverse=True)
        return re.compile(r"(?<!\w)(" + "|".join(re.escape(v) for v in ordered) + r")(?!\w)", re.IGNORECASE)

    def classify(self, text: str) -> List[AddressComponent]:
        components: List[AddressComponent] = []
        streets = self.find_street_names(text)
        components.extend(streets)
        components.extend(self.find_postal_codes(text, components))
        components.extend(self.find_street_numbers(text, streets, components))
        components.extend(self.find_cities(text, components))
        components.extend(self.find_countries(text, components))
        return sorted(components, key=lambda c: (c.start, c.end))

    def find_street_names(self, text: str) -> List[AddressComponent]:
        found: List[AddressComponent] = []
        for pattern in (STREET_LEADING_PATTERN, STREET_TRAILING_PATTERN):
            for match in pattern.finditer(text):
                name = match.group(1).strip()
                start = match.start(1)
                end = start + len(name)
                if len(name) >= MIN_STREET_LENGTH and not _overlaps_any(found, start, end):
                    found.append(AddressComponent(C.STREET_NAME, name, start, end))
        return found

    def find_street_numbers(self, text: str, streets: List[AddressComponent],
                            existing: List[AddressComponent]) -> List[AddressComponent]:
        """House numbers within max_component_distance of a street name."""
        found: List[AddressComponent] = []
        distance = self.config.max_component_distance
        for match in STREET_NUMBER_PATTERN.finditer(text):
            start, end = match.start(1), match.end(1)
            if _overlaps_any(existing, start, end):
                continue
            near_street = any(
                min(abs(start - s.end), abs(start - s.start)) <= distance for s in streets
            )
            if near_street:
                found.append(AddressComponent(C.STREET_NUMBER, match.group(1), start, end))
        return found

    @staticmethod
    def _inside_digit_run(text: str, start: int, end: int) -> bool:
        """Digit groups of an IBAN or phone number are not postal codes."""
        return bool(DIGIT_BEFORE.search(text[max(0, start - 2):start]) or DIGIT_AFTER.match(text[end:end + 2]))

    def find_postal_codes(self, text: str, existing: List[AddressComponent]) -> List[AddressComponent]:
        found: List[AddressComponent] = []
        for match in SWISS_POSTAL_PATTERN.finditer(text):
            if self._inside_digit_run(text, match.start(), match.end()):
                continue
            code = int(match.group(1))
            if not self.places.is_valid_swiss_postal_code(code):
                continue
            if self.places.in_year_overlap(code) and not self._accept_year_range_code(text, match):
                continue
            if not _overlaps_any(existing, match.start(), match.end()):
                found.append(AddressComponent(C.POSTAL_CODE, match.group(0), match.start(), match.end()))
        for match in EU_POSTAL_PATTERN.finditer(text):
            if self._inside_digit_run(text, match.start(), match.end()):
                continue
            if not _overlaps_any(existing + found, match.start(), match.end()):
                found.append(AddressComponent(C.POSTAL_CODE, match.group(0), match.start(), match.end()))
        return found

    def _accept_year_range_code(self, text: str, match: re.Match) -> bool:
        """A 1900-2099 code counts only when a plausible city follows it."""
        follower = NEXT_WORD_PATTERN.match(text[match.end():match.end() + 50])
        if follower is None:
            return False
        candidate = f"{match.group(1)} {follower.group(1)}"
        result = self._year_checker.validate(candidate, text, match.start(1))
        return result.is_valid

    def find_cities(self, text: str, existing: List[AddressComponent]) -> List[AddressComponent]:
        found: List[AddressComponent] = []
        for match in self._city_pattern.finditer(text):
            if not _overlaps_any(existing + found, match.start(), match.end()):
                found.append(AddressComponent(C.CITY, match.group(1), match.start(), match.end()))

        for postal in [c for c in existing if c.type == C.POSTAL_CODE]:
            after = CITY_AFTER_POSTAL_PATTERN.match(text[postal.end:postal.end + 50])
            if after is None:
                continue
            name = after.group(1).strip()
            start = postal.end + after.start(1)
            end = start + len(name)
            if self.places.is_non_city_word(name.split()[0]) or self.places.is_month_name(name.split()[0]):
                continue
            if not _overlaps_any(existing + found, start, end):
                found.append(AddressComponent(C.CITY, name, start, end))
        return found

    def find_countries(self, text: str, existing: List[AddressComponent]) -> List[AddressComponent]:
        found: List[AddressComponent] = []
        for match in self._country_pattern.finditer(text):
            if not _overlaps_any(existing + found, match.start(), match.end()):
                found.append(AddressComponent(C.COUNTRY, match.group(1), match.start(), match.end()))

        # Two-letter codes only as a standalone uppercase token after a comma or space
        for match in re.finditer(r"(?:,\s*|\s)([A-Z]{2})(?=\s|$|\.)", text):
            code = match.group(1)
            if self.places.country_for(code.lower()) is None:
                continue
            if not _overlaps_any(existing + found, match.start(1), match.end(1)):
                found.append(AddressComponent(C.COUNTRY, code, match.start(1), match.end(1)))
        return found


# =============================================================================
# LINKING
# =============================================================================

# Component types allowed to follow each type inside one address
VALID_TRANSITIONS: Dict[AddressComponentType, Tuple[AddressComponentType, ...]] = {
    C.STREET_NAME: (C.STREET_NUMBER, C.POSTAL_CODE, C.CITY),
    C.STREET_NUMBER: (C.POSTAL_CODE, C.CITY, C.STREET_NAME),
    C.POSTAL_CODE: (C.CITY, C.COUNTRY, C.STREET_NAME),
    C.CITY: (C.COUNTRY, C.POSTAL_CODE, C.STREET_NAME),
    C.COUNTRY: (),
    C.REGION: (C.CITY, C.COUNTRY),
}

PATTERN_BASE_CONFIDENCE = {
    AddressPattern.SWISS: 0.85,
    AddressPattern.EU: 0.85,
    AddressPattern.ALTERNATIVE: 0.75,
    AddressPattern.PARTIAL: 0.5,
}


def detect_pattern(components: List[AddressComponent]) -> AddressPattern:
    """Which known ordering a group of components follows."""
    types = {c.type for c in components}
    has_street = C.STREET_NAME in types
    has_number = C.STREET_NUMBER in types
    has_postal = C.POSTAL_CODE in types
    has_city = C.CITY in types
    has_country = C.COUNTRY in types

    ordered = [c.type for c in sorted(components, key=lambda c: c.start)]

    if has_street and has_postal and has_city:
        if has_country:
            return AddressPattern.EU
        street_index = ordered.index(C.STREET_NAME)
        postal_index = ordered.index(C.POSTAL_CODE)
        if street_index < postal_index:
            return AddressPattern.SWISS
        return AddressPattern.ALTERNATIVE

    if (has_street or has_number) and (has_postal or has_city):
        return AddressPattern.PARTIAL
    if has_postal and has_city:
        return AddressPattern.PARTIAL
    return AddressPattern.NONE


def validation_status_for(pattern: AddressPattern) -> ValidationStatus:
    if pattern in (AddressPattern.SWISS, AddressPattern.EU):
        return ValidationStatus.VALID
    if pattern == AddressPattern.ALTERNATIVE:
        return ValidationStatus.PARTIAL
    return ValidationStatus.UNCERTAIN


class AddressLinker:
    """
    Groups components by proximity and ordering.

    A component joins the current group when it starts at most
    proximity_threshold characters after the group's last component (or
    newline_threshold when a line break separates them), its type is an
    allowed successor of the last component's type, and the type is not
    already present (street names excepted). Groups hold 2-6 components.
    """

    def __init__(self, config: Optional[AddressLinkerConfig] = None):
        self.config = config or AddressLinkerConfig()

    def _threshold(self, text: str, previous: AddressComponent, candidate: AddressComponent) -> int:
        between = text[previous.end:candidate.start]
        if "\n" in between or "\r" in between:
            return self.config.newline_threshold
        return self.config.proximity_threshold

    @staticmethod
    def _is_valid_addition(group: List[AddressComponent], candidate: AddressComponent) -> bool:
        existing = {c.type for c in group}
        if candidate.type in existing and candidate.type != C.STREET_NAME:
            return False
        return candidate.type in VALID_TRANSITIONS.get(group[-1].type, ())

    def group(self, components: List[AddressComponent], text: str) -> List[List[AddressComponent]]:
        ordered = sorted(components, key=lambda c: (c.start, c.end))
        used = set()
        groups: List[List[AddressComponent]] = []

        for i, seed in enumerate(ordered):
            if i in used:
                continue
            group = [seed]
            members = [i]
            for j in range(i + 1, len(ordered)):
                if len(group) >= self.config.max_components:
                    break
                if j in used:
                    continue
                candidate = ordered[j]
                gap = candidate.start - group[-1].end
                if gap < 0:
                    continue
                if gap > self._threshold(text, group[-1], candidate):
                    break
                if self._is_valid_addition(group, candidate):
                    group.append(candidate)
                    members.append(j)
            if len(group) >= self.config.min_components:
                used.update(members)
                groups.append(group)
        return groups

    def confidence(self, pattern: AddressPattern, components: List[AddressComponent]) -> float:
        """
        Linker confidence: pattern base, +0.02 per component beyond the
        minimum, +0.05 for street+number, +0.05 for postal+city.
        """
        confidence = PATTERN_BASE_CONFIDENCE.get(pattern, 0.3)
        extra = len(components) - self.config.min_components
        if extra > 0:
            confidence += extra * 0.02
        types = {c.type for c in components}
        if C.STREET_NAME in types and C.STREET_NUMBER in types:
            confidence += 0.05
        if C.POSTAL_CODE in types and C.CITY in types:
            confidence += 0.05
        return min(confidence, 1.0)

    def build(self, components: List[AddressComponent], text: str) -> Optional[GroupedAddress]:
        if len(components) < self.config.min_components:
            return None
        ordered = sorted(components, key=lambda c: c.start)
        pattern = detect_pattern(ordered)
        if pattern == AddressPattern.NONE:
            return None

        group_id = generate_entity_id()
        start, end = ordered[0].start, max(c.end for c in ordered)
        linked = [
            AddressComponent(c.type, c.text, c.start, c.end, linked=True, group_id=group_id)
            for c in ordered
        ]
        address = GroupedAddress(
            id=group_id,
            components=linked,
            start=start,
            end=end,
            text=text[start:end],
            pattern=pattern,
            confidence=self.confidence(pattern, ordered),
            validation_status=validation_status_for(pattern),
        )
        address.entity_type = address_entity_type(address)
        return address

    def link(self, components: List[AddressComponent], text: str) -> List[GroupedAddress]:
        addresses = []
        for group in self.group(components, text):
            address = self.build(group, text)
            if address is not None:
                addresses.append(address)
        return addresses


def address_entity_type(address: GroupedAddress) -> EntityType:
    """SWISS_ADDRESS for Swiss postal codes or pattern, EU_ADDRESS for EU signals."""
    postal = address.component(C.POSTAL_CODE)
    postal_text = postal.text if postal else ""
    digits = re.sub(r"\D", "", postal_text)
    if "CH" in postal_text.upper() or len(digits) == 4 or address.pattern == AddressPattern.SWISS:
        return EntityType.SWISS_ADDRESS
    if address.pattern == AddressPattern.EU or address.component(C.COUNTRY) or len(digits) == 5:
        return EntityType.EU_ADDRESS
    return EntityType.ADDRESS


# =============================================================================
# SCORING
# =============================================================================

@dataclass
class AddressScorerConfig:
    review_threshold: float = 0.6
    auto_anonymize_threshold: float = 0.8
    component_completeness: float = 0.2
    pattern_match: float = 0.3
    postal_code_validation: float = 0.2
    city_validation: float = 0.1
    country_present: float = 0.1


class AddressScorer:
    """Final address confidence = sum of factor scores / sum of maxima."""

    def __init__(self, config: Optional[AddressScorerConfig] = None):
        self.config = config or AddressScorerConfig()
        self.places = get_places_db()

    def score(self, address: GroupedAddress) -> ScoredAddress:
        factors = [
            self._completeness(address),
            self._pattern(address),
            self._postal_code(address),
            self._city(address),
            self._country(address),
        ]
        total = sum(f.score for f in factors)
        maximum = sum(f.max_score for f in factors)
        final = min(total / maximum, 1.0) if maximum else 0.0
        address.score_breakdown = {f.name: round(f.score, 4) for f in factors}
        return ScoredAddress(
            address=address,
            final_confidence=final,
            factors=factors,
            flagged_for_review=final < self.config.review_threshold,
            auto_anonymize=final >= self.config.auto_anonymize_threshold,
        )

    def _completeness(self, address: GroupedAddress) -> ScoringFactor:
        types = {c.type for c in address.components}
        required = {C.STREET_NAME: "street", C.STREET_NUMBER: "number",
                    C.POSTAL_CODE: "postal code", C.CITY: "city"}
        missing = [label for comp_type, label in required.items() if comp_type not in types]
        description = f"{len(types)} unique component types"
        description += f" (missing: {', '.join(missing)})" if missing else " (complete address)"
        return ScoringFactor(
            name="completeness",
            score=min(len(types) * self.config.component_completeness, 1.0),
            max_score=1.0,
            matched=len(types) >= 4,
            description=description,
        )

    def _pattern(self, address: GroupedAddress) -> ScoringFactor:
        weight = self.config.pattern_match
        multipliers = {
            AddressPattern.SWISS: 1.0,
            AddressPattern.EU: 1.0,
            AddressPattern.ALTERNATIVE: 0.8,
            AddressPattern.PARTIAL: 0.5,
        }
        return ScoringFactor(
            name="pattern",
            score=weight * multipliers.get(address.pattern, 0.0),
            max_score=weight,
            matched=address.pattern in (AddressPattern.SWISS, AddressPattern.EU, AddressPattern.ALTERNATIVE),
            description=f"Pattern: {address.pattern.value}",
        )

    def _postal_code(self, address: GroupedAddress) -> ScoringFactor:
        weight = self.config.postal_code_validation
        postal = address.component(C.POSTAL_CODE)
        if postal is None:
            return ScoringFactor("postal", 0.0, weight, False, "No postal code found")

        digits = re.sub(r"\D", "", postal.text)
        code = int(digits) if digits else 0
        if len(digits) == 4 and self.places.is_valid_swiss_postal_code(code):
            canton = self.places.canton_for_postal_code(code)
            return ScoringFactor("postal", weight, weight, True, f"Valid Swiss postal code ({canton})")
        if len(digits) == 5:
            return ScoringFactor("postal", weight * 0.8, weight, True, "EU postal code format")
        return ScoringFactor("postal", weight * 0.3, weight, False, f"Unverified postal code: {postal.text}")

    def _city(self, address: GroupedAddress) -> ScoringFactor:
        weight = self.config.city_validation
        city = address.component(C.CITY)
        if city is None:
            return ScoringFactor("city", 0.0, weight, False, "No city found")
        if self.places.is_known_city(city.text):
            return ScoringFactor("city", weight, weight, True, f"Known Swiss city: {city.text}")
        if address.component(C.POSTAL_CODE) is not None:
            return ScoringFactor("city", weight * 0.5, weight, False, f"City after postal code: {city.text}")
        return ScoringFactor("city", weight * 0.3, weight, False, f"Unverified city: {city.text}")

    def _country(self, address: GroupedAddress) -> ScoringFactor:
        weight = self.config.country_present
        country = address.component(C.COUNTRY)
        if country is not None:
            return ScoringFactor("country", weight, weight, True, f"Country specified: {country.text}")
        postal = address.component(C.POSTAL_CODE)
        if postal is not None and "CH" in postal.text.upper():
            return ScoringFactor("country", weight * 0.5, weight, True, "Swiss country code in postal code")
        return ScoringFactor("country", 0.0, weight, False, "No country specified")


def link_addresses(text: str, linker_config: Optional[AddressLinkerConfig] = None) -> List[GroupedAddress]:
    """Classify, link and score addresses in one call."""
    classifier = AddressClassifier()
    if linker_config is not None:
        classifier.config.max_component_distance = linker_config.proximity_threshold
    linker = AddressLinker(linker_config)
    scorer = AddressScorer()
    addresses = linker.link(classifier.classify(text), text)
    for address in addresses:
        scorer.score(address)
    logger.debug(f"Linked {len(addresses)} addresses")
    return addresses
