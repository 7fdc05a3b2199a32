"""
Format Validation for Detected PII

Checksum and structural validators, one per entity type. Every validator is
stateless, enforces an input-length ceiling before any pattern matching, and
returns a ValidationResult instead of raising.

Libraries used:
- python-stdnum: IBAN registry checks, EAN-13 check digit (Swiss AVS numbers)
- phonenumbers: International phone number validation

Usage:
    from redact_engine.detectors.validators import get_validator_registry

    validator = get_validator_registry().get("IBAN")
    result = validator.validate("CH93 0076 2011 6238 5295 7")
    result.is_valid, result.confidence   # (True, 0.95)
"""

import calendar
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberType
from stdnum import ean
from stdnum import iban as stdnum_iban
from stdnum.exceptions import InvalidChecksum, InvalidFormat, InvalidLength, ValidationError

from ..data.swiss_places import MONTH_NAME_TO_NUMBER, get_places_db

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIDENCE SCALE
# =============================================================================

class Confidence:
    """Ordered confidence levels returned by validators (highest first)."""
    CHECKSUM_VALID = 0.95
    FORMAT_VALID = 0.9
    STANDARD = 0.85
    KNOWN_VALID = 0.82
    MODERATE = 0.75
    WEAK = 0.5
    INVALID_FORMAT = 0.4
    FAILED = 0.3
    FALSE_POSITIVE = 0.2


@dataclass
class ValidationResult:
    is_valid: bool
    confidence: float
    reason: Optional[str] = None


class DuplicateValidatorError(ValueError):
    """Raised when two validators claim the same entity type."""


# =============================================================================
# CHECKSUM ALGORITHMS
# =============================================================================

def mod11_checksum(number: str, weights: Optional[List[int]] = None) -> int:
    """
    Calculate Mod-11 check digit: 11 - (weighted sum mod 11).

    A result of 11 maps to 0; a result of 10 has no valid check digit and is
    returned as 10 so callers can reject it.

    Args:
        number: Digits to checksum (non-digits ignored)
        weights: Weight for each position (default: descending from length)
    """
    digits = [int(d) for d in number if d.isdigit()]

    if weights is None:
        weights = list(range(len(digits) + 1, 1, -1))

    total = sum(d * w for d, w in zip(digits, weights))
    remainder = total % 11

    return (11 - remainder) % 11


def mod97_remainder(number: str) -> int:
    """
    ISO 7064 Mod-97-10 remainder of an IBAN.

    Moves the first 4 chars to the end, converts letters to numbers (A=10,
    B=11, ...) and reduces in 7-digit chunks so no big-int is needed.
    """
    rearranged = number[4:] + number[:4]

    numeric = ""
    for char in rearranged.upper():
        if char.isalpha():
            numeric += str(ord(char) - 55)
        else:
            numeric += char

    remainder = 0
    for i in range(0, len(numeric), 7):
        remainder = int(str(remainder) + numeric[i:i + 7]) % 97
    return remainder


def mod97_validate(number: str) -> bool:
    """Validate using ISO 13616 Mod-97 (remainder must be 1)."""
    return mod97_remainder(number) == 1


def ean13_check_digit(first_twelve: str) -> int:
    """EAN-13 check digit: digits weighted 1,3,1,3,... from the left."""
    return int(ean.calc_check_digit(first_twelve))


# =============================================================================
# VALIDATOR BASE
# =============================================================================

class FormatValidator:
    """
    Base class for type-specific validators.

    Subclasses set `name`, `entity_type` and `max_length` and implement
    `_validate`. Inputs longer than `max_length` fail before any regex runs.
    """

    name = "FormatValidator"
    entity_type = ""
    max_length = 100

    def validate(self, text: str, full_text: str = "", start: Optional[int] = None) -> ValidationResult:
        """
        Validate a matched string.

        Args:
            text: The matched entity text
            full_text: Optional document text, for validators that inspect context
            start: Offset of `text` inside `full_text`, if known

        Returns:
            ValidationResult with is_valid, confidence and an optional reason
        """
        if len(text) > self.max_length:
            return ValidationResult(
                False, Confidence.FAILED,
                f"Input exceeds maximum length of {self.max_length} characters",
            )
        return self._validate(text, full_text, start)

    def _validate(self, text: str, full_text: str, start: Optional[int]) -> ValidationResult:
        raise NotImplementedError


# =============================================================================
# IBAN
# =============================================================================

# Shortest IBAN in the registry (Norway)
IBAN_MIN_LENGTH = 15


class IbanValidator(FormatValidator):
    """
    ISO 13616 check via stdnum.iban: mod-97 checksum, then the per-country
    length and BBAN structure from the IBAN registry.
    """

    name = "IbanValidator"
    entity_type = "IBAN"
    # 34 characters plus grouping spaces
    max_length = 42

    def _validate(self, text, full_text, start):
        clean = stdnum_iban.compact(text)

        if len(clean) < IBAN_MIN_LENGTH:
            return ValidationResult(False, Confidence.FAILED, f"IBAN too short ({len(clean)} chars)")

        country = clean[:2]
        try:
            stdnum_iban.validate(clean)
        except InvalidChecksum:
            return ValidationResult(False, Confidence.INVALID_FORMAT, "IBAN checksum failed")
        except InvalidLength:
            return ValidationResult(False, Confidence.INVALID_FORMAT, f"Invalid {country} IBAN length: {len(clean)}")
        except InvalidFormat:
            return ValidationResult(False, Confidence.INVALID_FORMAT, f"Invalid {country} IBAN structure")
        except ValidationError as e:
            return ValidationResult(False, Confidence.INVALID_FORMAT, f"Invalid IBAN: {e}")

        return ValidationResult(True, Confidence.CHECKSUM_VALID)


# =============================================================================
# SWISS AVS (AHV) NUMBER
# =============================================================================

AVS_COUNTRY_PREFIX = "756"


class SwissAvsValidator(FormatValidator):
    name = "SwissAvsValidator"
    entity_type = "SWISS_AVS"
    max_length = 20

    def _validate(self, text, full_text, start):
        digits = re.sub(r'\D', '', text)

        if len(digits) != 13:
            return ValidationResult(False, Confidence.FAILED, f"AVS must have 13 digits, got {len(digits)}")

        if not digits.startswith(AVS_COUNTRY_PREFIX):
            return ValidationResult(False, Confidence.FAILED, f"AVS must start with {AVS_COUNTRY_PREFIX}")

        if ean13_check_digit(digits[:12]) != int(digits[12]):
            return ValidationResult(False, Confidence.INVALID_FORMAT, "AVS EAN-13 checksum failed")

        return ValidationResult(True, Confidence.CHECKSUM_VALID)


# =============================================================================
# VAT / UID NUMBER
# =============================================================================

CHE_UID_WEIGHTS = [5, 4, 3, 2, 7, 6, 5, 4]
EU_VAT_FORMAT = re.compile(r'^(DE|FR|IT|AT)\d{8,11}$')


class VatNumberValidator(FormatValidator):
    name = "VatNumberValidator"
    entity_type = "VAT_NUMBER"
    max_length = 30

    def _validate(self, text, full_text, start):
        upper = text.upper().strip()

        if upper.startswith("CHE"):
            digits = re.sub(r'\D', '', upper)
            if len(digits) != 9:
                return ValidationResult(
                    False, Confidence.INVALID_FORMAT, f"Swiss UID must have 9 digits, got {len(digits)}")
            check = mod11_checksum(digits[:8], CHE_UID_WEIGHTS)
            if check == 10 or check != int(digits[8]):
                return ValidationResult(False, Confidence.WEAK, "Swiss UID checksum failed")
            return ValidationResult(True, Confidence.FORMAT_VALID)

        if EU_VAT_FORMAT.match(re.sub(r'\s', '', upper)):
            return ValidationResult(True, Confidence.MODERATE)

        return ValidationResult(False, Confidence.INVALID_FORMAT, "Unrecognized VAT format")


# =============================================================================
# DATE
# =============================================================================

ISO_DATE = re.compile(r'(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)')
NUMERIC_DATE = re.compile(r'(?<!\d)(\d{1,2})[./-](\d{1,2})[./-](\d{4}|\d{2})(?!\d)')
# "1er janvier 2024" takes the French ordinal
DAY_MONTH_NAME_DATE = re.compile(r'(\d{1,2})(?:er)?\.?\s*([a-zäöüéèû]+)\s*(\d{2,4})')
MONTH_NAME_DAY_DATE = re.compile(r'([a-z]+)\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})')


def _expand_year(year: int) -> int:
    # Two-digit years: 31-99 -> 1900s, 00-30 -> 2000s
    if year < 100:
        return 1900 + year if year > 30 else 2000 + year
    return year


def parse_date(text: str) -> Optional[Tuple[int, int, int]]:
    """
    Parse a date into (day, month, year) without range checks.

    Understands YYYY-MM-DD, DD.MM.YYYY (also / and -), "5. März 2024",
    "1er janvier 2024" and "March 5, 2024". Returns None when no form
    matches or the month name is unknown.
    """
    match = ISO_DATE.search(text)
    if match:
        return int(match.group(3)), int(match.group(2)), int(match.group(1))

    match = NUMERIC_DATE.search(text)
    if match:
        return int(match.group(1)), int(match.group(2)), _expand_year(int(match.group(3)))

    lowered = text.lower()
    match = DAY_MONTH_NAME_DATE.search(lowered)
    if match:
        month = MONTH_NAME_TO_NUMBER.get(match.group(2))
        if month is None:
            return None
        return int(match.group(1)), month, _expand_year(int(match.group(3)))

    match = MONTH_NAME_DAY_DATE.search(lowered)
    if match:
        month = MONTH_NAME_TO_NUMBER.get(match.group(1))
        if month is None:
            return None
        return int(match.group(2)), month, int(match.group(3))

    return None


class DateValidator(FormatValidator):
    name = "DateValidator"
    entity_type = "DATE"
    max_length = 50

    def __init__(self, min_year: int = 1900, max_year: int = 2100):
        self.min_year = min_year
        self.max_year = max_year

    def _validate(self, text, full_text, start):
        parsed = parse_date(text)
        if parsed is None:
            return ValidationResult(False, Confidence.INVALID_FORMAT, "Could not parse date")

        day, month, year = parsed
        if not 1 <= month <= 12:
            return ValidationResult(False, Confidence.FAILED, f"Invalid month: {month}")

        if not self.min_year <= year <= self.max_year:
            return ValidationResult(
                False, Confidence.INVALID_FORMAT,
                f"Year {year} outside plausible range ({self.min_year}-{self.max_year})",
            )

        days_in_month = calendar.monthrange(year, month)[1]
        if not 1 <= day <= days_in_month:
            return ValidationResult(False, Confidence.FAILED, f"Invalid day {day} for month {month}")

        return ValidationResult(True, Confidence.STANDARD)


# =============================================================================
# EMAIL
# =============================================================================

EMAIL_FORMAT = re.compile(
    r"^[a-z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
    r"(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)+$"
)


class EmailValidator(FormatValidator):
    name = "EmailValidator"
    entity_type = "EMAIL"
    max_length = 254

    def _validate(self, text, full_text, start):
        email = text.strip().lower()

        if not EMAIL_FORMAT.match(email):
            return ValidationResult(False, Confidence.FAILED, "Invalid email format")

        if ".." in email:
            return ValidationResult(False, Confidence.FAILED, "Consecutive dots in email")

        tld = email.rsplit(".", 1)[-1]
        if len(tld) < 2:
            return ValidationResult(False, Confidence.INVALID_FORMAT, f"Top-level domain too short: {tld}")

        return ValidationResult(True, Confidence.FORMAT_VALID)


# =============================================================================
# PHONE
# =============================================================================

class PhoneValidator(FormatValidator):
    """Phone validation via phonenumbers; national numbers parse as Swiss."""

    name = "PhoneValidator"
    entity_type = "PHONE"
    max_length = 25

    def __init__(self, default_region: str = "CH"):
        self.default_region = default_region

    def _validate(self, text, full_text, start):
        digits = re.sub(r'\D', '', text)
        if not 9 <= len(digits) <= 15:
            return ValidationResult(False, Confidence.FAILED, f"Phone must have 9-15 digits, got {len(digits)}")

        try:
            parsed = phonenumbers.parse(text, self.default_region)
        except NumberParseException:
            return ValidationResult(False, Confidence.WEAK, "Unparseable phone number")

        if not phonenumbers.is_valid_number(parsed):
            return ValidationResult(False, Confidence.WEAK, "Not a valid number for its region")

        if phonenumbers.number_type(parsed) == PhoneNumberType.MOBILE:
            return ValidationResult(True, Confidence.FORMAT_VALID)
        return ValidationResult(True, Confidence.MODERATE)


# =============================================================================
# SWISS ADDRESS (postal code + city, year disambiguation)
# =============================================================================

DATE_PREFIX_PATTERN = re.compile(r'\d{1,2}[./]\d{1,2}[./]?\s*$')
DATE_CONTEXT_KEYWORDS = re.compile(
    r'\b(date|depuis|since|ab|from|le|am|on|year|année|annee|jahr|anno|en|im|in|vom|du)\s*[:.]?\s*$',
    re.IGNORECASE,
)
SENTENCE_BOUNDARY_AFTER = re.compile(r'^[\s]*[.;,!?\n]')
STREET_CONTEXT = re.compile(r'(?:Rue|Route|Rte|Chemin|Strasse|Str\.|Via|Avenue|Av\.)', re.IGNORECASE)
# "CH-8001", "CH 8001", "CH8001"
COUNTRY_PREFIX = re.compile(r'^CH[-\s]?(?=\d)', re.IGNORECASE)


def strip_country_prefix(text: str) -> str:
    """Remove a leading "CH-" from a postal code."""
    return COUNTRY_PREFIX.sub("", text, count=1)


class SwissAddressValidator(FormatValidator):
    """
    Validates "NNNN City" matches.

    Postal codes in 1900-2099 collide with years, so those matches must be
    followed by a known city, or survive the date-context checks, to be
    accepted. The city and non-city word tables live in PlacesDatabase.
    """

    name = "SwissAddressValidator"
    entity_type = "SWISS_ADDRESS"
    max_length = 200

    def _validate(self, text, full_text, start):
        address = text.strip()
        stripped = strip_country_prefix(address)
        code_text = stripped[:4]
        if not code_text.isdigit():
            return ValidationResult(False, Confidence.FAILED, f"No postal code at start: {code_text!r}")

        postal_code = int(code_text)
        if not 1000 <= postal_code <= 9999:
            return ValidationResult(
                False, Confidence.FAILED, f"Postal code {postal_code} outside Swiss range (1000-9999)")

        city = stripped[4:].strip()
        if len(city) < 3:
            return ValidationResult(False, Confidence.FAILED, f"City name too short: {city!r}")

        places = get_places_db()
        first_word = city.split()[0]

        if places.in_year_overlap(postal_code):
            year_check = self._check_year_false_positive(address, first_word, full_text, start)
            if not year_check.is_valid:
                return year_check

        if places.is_non_city_word(first_word):
            return ValidationResult(False, Confidence.INVALID_FORMAT, f"{first_word!r} is not a city name")

        return ValidationResult(True, Confidence.KNOWN_VALID)

    def _check_year_false_positive(
        self, address: str, first_word: str, full_text: str, start: Optional[int]
    ) -> ValidationResult:
        places = get_places_db()

        if places.is_year_range_city(first_word):
            return ValidationResult(True, Confidence.STANDARD, f"Known Swiss city: {first_word!r}")

        if places.is_month_name(first_word):
            return ValidationResult(False, Confidence.FALSE_POSITIVE, f"Year followed by month name {first_word!r}")

        if places.is_non_city_word(first_word):
            return ValidationResult(False, Confidence.FAILED, f"Year followed by non-city word {first_word!r}")

        if full_text:
            position = start if start is not None else full_text.find(address)
            if position > 0:
                before = full_text[max(0, position - 20):position]
                if DATE_PREFIX_PATTERN.search(before):
                    return ValidationResult(False, Confidence.FALSE_POSITIVE, "Preceded by date pattern (DD.MM.)")
                if DATE_CONTEXT_KEYWORDS.search(before):
                    return ValidationResult(False, Confidence.FAILED, "Preceded by date-related keyword")

            if position >= 0:
                end = position + len(address)
                after = full_text[end:end + 15]
                if after and SENTENCE_BOUNDARY_AFTER.match(after):
                    street_window = full_text[max(0, position - 50):position]
                    if not STREET_CONTEXT.search(street_window):
                        return ValidationResult(
                            False, Confidence.INVALID_FORMAT, "Year at sentence boundary without street context")

        # Year-range postal codes pass with reduced confidence
        return ValidationResult(True, Confidence.MODERATE)


class SwissPostalCodeValidator(FormatValidator):
    """
    Standalone postal-code check.

    Secondary validator: it shares the SWISS_ADDRESS type with
    SwissAddressValidator, so it is never registered and is only called
    directly.
    """

    name = "SwissPostalCodeValidator"
    entity_type = "SWISS_ADDRESS"
    max_length = 100

    POSTAL_CODE = re.compile(r'\b([1-9]\d{3})\b')

    def _validate(self, text, full_text, start):
        match = self.POSTAL_CODE.search(strip_country_prefix(text.strip()))
        if not match:
            return ValidationResult(False, Confidence.INVALID_FORMAT, "No 4-digit postal code found")

        code = int(match.group(1))
        if not get_places_db().is_valid_swiss_postal_code(code):
            return ValidationResult(False, Confidence.WEAK, f"Postal code {code} outside Swiss ranges")

        return ValidationResult(True, Confidence.STANDARD)


# =============================================================================
# VALIDATOR REGISTRY
# =============================================================================

class ValidatorRegistry:
    """
    One validator per entity type.

    Registering a second validator for a type raises DuplicateValidatorError;
    after freeze() no more registrations are accepted.
    """

    def __init__(self):
        self._validators: Dict[str, FormatValidator] = {}
        self._frozen = False

    def register(self, validator: FormatValidator):
        if self._frozen:
            raise RuntimeError(f"Validator registry is frozen; cannot register {validator.name}")
        key = validator.entity_type.upper()
        existing = self._validators.get(key)
        if existing is not None:
            raise DuplicateValidatorError(
                f"{validator.name} and {existing.name} both claim entity type {key}"
            )
        self._validators[key] = validator

    def get(self, entity_type: str) -> Optional[FormatValidator]:
        return self._validators.get(str(entity_type).upper())

    def has(self, entity_type: str) -> bool:
        return str(entity_type).upper() in self._validators

    def entity_types(self) -> List[str]:
        return sorted(self._validators)

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def reset(self):
        """Clear all validators and unfreeze (test harnesses only)."""
        self._validators.clear()
        self._frozen = False


def create_default_validators() -> List[FormatValidator]:
    return [
        IbanValidator(),
        SwissAvsValidator(),
        VatNumberValidator(),
        DateValidator(),
        SwissAddressValidator(),
        EmailValidator(),
        PhoneValidator(),
    ]


# Global instance for convenience
_validator_registry: Optional[ValidatorRegistry] = None


def get_validator_registry() -> ValidatorRegistry:
    """Get the global validator registry, populated with the default validators."""
    global _validator_registry
    if _validator_registry is None:
        registry = ValidatorRegistry()
        for validator in create_default_validators():
            registry.register(validator)
        registry.freeze()
        _validator_registry = registry
        logger.debug(f"Validator registry ready: {', '.join(registry.entity_types())}")
    return _validator_registry


def reset_validator_registry():
    """Drop the global validator registry (test harnesses only)."""
    global _validator_registry
    _validator_registry = None


def validate_entity(entity_type: str, text: str, full_text: str = "",
                    start: Optional[int] = None) -> Optional[ValidationResult]:
    """
    Validate a detected entity with the registered validator for its type.

    Returns:
        ValidationResult, or None if no validator exists for the type
    """
    validator = get_validator_registry().get(entity_type)
    if validator is None:
        return None
    return validator.validate(text, full_text, start)
