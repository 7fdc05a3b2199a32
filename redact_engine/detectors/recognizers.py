"""
Pattern recognizers as explicit data plus one generic executor.

A RecognizerConfig describes a named bundle of patterns with its priority,
specificity tier, context words, deny patterns and an optional validator
callback. PatternRecognizerExecutor runs a config on top of presidio's
PatternRecognizer (one presidio recognizer per entity type in the bundle).

Nothing registers itself on import: build configs with
create_default_recognizers() or load them from YAML
(config_loader.load_recognizers_from_yaml) and hand them to
RecognizerRegistry.load().

Usage:
    from redact_engine.detectors.recognizers import (
        PatternDefinition, RecognizerConfig, Specificity
    )

    config = RecognizerConfig(
        name="SwissAVS",
        patterns=[PatternDefinition("avs_dots", r"756\\.\\d{4}\\.\\d{4}\\.\\d{2}", 0.7, "SWISS_AVS")],
        supported_countries=["CH"],
        priority=70,
        specificity=Specificity.COUNTRY,
    )
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from presidio_analyzer import Pattern, PatternRecognizer, RecognizerResult

from ..data.swiss_places import LEADING_STREET_SUFFIXES, TRAILING_STREET_SUFFIXES, street_suffix_pattern
from .context_enhancer import ContextEnhancer
from .deny_list import DenyList, compile_deny_regex, is_denied_by_patterns
from .validators import get_validator_registry

logger = logging.getLogger(__name__)

# Default score for rule matches without an explicit pattern score
DEFAULT_RULE_CONFIDENCE = 0.7

DEFAULT_LANGUAGES = ["de", "fr", "it", "en"]

# (match_text, full_text, start) -> accept?
ValidatorCallback = Callable[[str, str, int], bool]


class Specificity(str, Enum):
    """Tie-break tier when priorities are equal: country > region > global."""
    COUNTRY = "country"
    REGION = "region"
    GLOBAL = "global"

    @property
    def rank(self) -> int:
        return _SPECIFICITY_RANK[self]


_SPECIFICITY_RANK = {Specificity.COUNTRY: 0, Specificity.REGION: 1, Specificity.GLOBAL: 2}


@dataclass
class PatternDefinition:
    """One regex with its base score and entity type."""
    name: str
    regex: str
    score: float
    entity_type: str
    is_weak_pattern: bool = False
    ignore_case: bool = False

    def __post_init__(self):
        self.entity_type = str(self.entity_type).upper()
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"Pattern {self.name}: score must be within [0, 1], got {self.score}")
        # Fail fast on an invalid regex
        re.compile(self.regex)

    @property
    def presidio_regex(self) -> str:
        return f"(?i){self.regex}" if self.ignore_case else self.regex


@dataclass
class RecognizerConfig:
    """
    Declarative recognizer definition.

    Empty supported_countries means the recognizer applies to every country.
    """
    name: str
    patterns: List[PatternDefinition]
    supported_languages: List[str] = field(default_factory=lambda: list(DEFAULT_LANGUAGES))
    supported_countries: List[str] = field(default_factory=list)
    priority: int = 0
    specificity: Specificity = Specificity.GLOBAL
    context_words: List[str] = field(default_factory=list)
    deny_patterns: List[str] = field(default_factory=list)
    use_global_deny_list: bool = True
    use_global_context: bool = False
    validator: Optional[ValidatorCallback] = None

    def __post_init__(self):
        self.specificity = Specificity(self.specificity)
        if not self.patterns:
            raise ValueError(f"Recognizer {self.name} has no patterns")

    @property
    def entity_types(self) -> List[str]:
        seen: List[str] = []
        for pattern in self.patterns:
            if pattern.entity_type not in seen:
                seen.append(pattern.entity_type)
        return seen

    def supports_language(self, language: Optional[str]) -> bool:
        if not language:
            return True
        return language.lower() in {lang.lower() for lang in self.supported_languages}

    def supports_country(self, country: Optional[str]) -> bool:
        if not country or not self.supported_countries:
            return True
        return country.upper() in {c.upper() for c in self.supported_countries}


@dataclass
class RecognizerMatch:
    """A raw match produced by one recognizer pattern."""
    entity_type: str
    text: str
    start: int
    end: int
    score: float
    recognizer: str
    pattern_name: Optional[str] = None
    is_weak_pattern: bool = False
    priority: int = 0
    specificity: Specificity = Specificity.GLOBAL
    context_enhanced: bool = False


def registry_validator(entity_type: str) -> ValidatorCallback:
    """Validator callback backed by the format validator registered for entity_type."""

    def _validate(match_text: str, full_text: str, start: int) -> bool:
        validator = get_validator_registry().get(entity_type)
        if validator is None:
            return True
        return validator.validate(match_text, full_text, start).is_valid

    return _validate


class PatternRecognizerExecutor:
    """
    Runs one RecognizerConfig.

    Steps per match: presidio pattern matching, optional context rescoring,
    recognizer-local deny patterns, optional global deny list, validator
    callback.
    """

    def __init__(self, config: RecognizerConfig):
        self.config = config
        self._deny_patterns = [compile_deny_regex(p) for p in config.deny_patterns]
        self._patterns_by_name: Dict[str, PatternDefinition] = {p.name: p for p in config.patterns}
        self._recognizers: List[PatternRecognizer] = []

        language = config.supported_languages[0] if config.supported_languages else "en"
        for entity_type in config.entity_types:
            definitions = [p for p in config.patterns if p.entity_type == entity_type]
            self._recognizers.append(PatternRecognizer(
                supported_entity=entity_type,
                name=f"{config.name}:{entity_type}",
                supported_language=language,
                patterns=[Pattern(name=d.name, regex=d.presidio_regex, score=d.score) for d in definitions],
                context=config.context_words or None,
                global_regex_flags=re.MULTILINE,
            ))

    @property
    def name(self) -> str:
        return self.config.name

    def analyze(
        self,
        text: str,
        language: Optional[str] = None,
        deny_list: Optional[DenyList] = None,
        enhancer: Optional[ContextEnhancer] = None,
    ) -> List[RecognizerMatch]:
        """
        Run all patterns of this recognizer over text.

        Args:
            text: Text to analyze
            language: Document language (for language-scoped deny entries)
            deny_list: Global deny list, consulted when use_global_deny_list is set
            enhancer: Context enhancer, used when use_global_context is set

        Returns:
            Accepted matches sorted by start offset
        """
        matches: List[RecognizerMatch] = []
        for recognizer in self._recognizers:
            results = recognizer.analyze(text, recognizer.supported_entities)
            enhanced = False
            if self.config.use_global_context and enhancer is not None and results:
                enhancer.enhance_using_context(text, results, None, [recognizer], context=self.config.context_words)
                enhanced = True
            for result in results:
                match = self._to_match(text, result, enhanced)
                if self._accept(match, text, language, deny_list):
                    matches.append(match)
        matches.sort(key=lambda m: (m.start, -m.end))
        return matches

    def _to_match(self, text: str, result: RecognizerResult, enhanced: bool) -> RecognizerMatch:
        pattern_name = result.analysis_explanation.pattern_name if result.analysis_explanation else None
        definition = self._patterns_by_name.get(pattern_name)
        metadata = result.recognition_metadata or {}
        return RecognizerMatch(
            entity_type=result.entity_type,
            text=text[result.start:result.end],
            start=result.start,
            end=result.end,
            score=result.score,
            recognizer=self.config.name,
            pattern_name=pattern_name,
            is_weak_pattern=definition.is_weak_pattern if definition else False,
            priority=self.config.priority,
            specificity=self.config.specificity,
            context_enhanced=enhanced and bool(metadata.get(RecognizerResult.IS_SCORE_ENHANCED_BY_CONTEXT_KEY)),
        )

    def _accept(self, match: RecognizerMatch, text: str, language: Optional[str],
                deny_list: Optional[DenyList]) -> bool:
        if self._deny_patterns and is_denied_by_patterns(match.text, self._deny_patterns):
            return False
        if self.config.use_global_deny_list and deny_list is not None:
            if deny_list.is_denied(match.text, match.entity_type, language):
                return False
        if self.config.validator is not None and not self.config.validator(match.text, text, match.start):
            return False
        return True


# =============================================================================
# BUILT-IN RECOGNIZERS (Swiss/EU)
# =============================================================================

_TRAILING_SUFFIXES = street_suffix_pattern([s for s in TRAILING_STREET_SUFFIXES if not s.endswith(".")])
_LEADING_SUFFIXES = street_suffix_pattern([s for s in LEADING_STREET_SUFFIXES if not s.endswith(".")])


def create_default_recognizers() -> List[RecognizerConfig]:
    """High-recall Swiss/EU recognizers, ordered from identifiers to amounts."""
    return [
        # Identifiers
        RecognizerConfig(
            name="SwissAVS",
            patterns=[
                PatternDefinition("avs_with_dots", r"\b756\.\d{4}\.\d{4}\.\d{2}\b", 0.7, "SWISS_AVS"),
                PatternDefinition("avs_with_spaces", r"\b756\s\d{4}\s\d{4}\s\d{2}\b", 0.65, "SWISS_AVS"),
                PatternDefinition("avs_without_dots", r"\b756\d{10}\b", 0.6, "SWISS_AVS"),
            ],
            supported_countries=["CH"],
            priority=70,
            specificity=Specificity.COUNTRY,
            context_words=["ahv", "ahv-nummer", "sozialversicherungsnummer", "avs", "numéro avs",
                           "numero avs", "social security"],
            use_global_context=True,
            validator=registry_validator("SWISS_AVS"),
        ),
        RecognizerConfig(
            name="Iban",
            patterns=[
                PatternDefinition("iban", r"\b[A-Z]{2}\d{2}\s?(?:[A-Z0-9]{4}\s?){3,7}[A-Z0-9]{1,4}\b",
                                  DEFAULT_RULE_CONFIDENCE, "IBAN"),
            ],
            priority=60,
            specificity=Specificity.REGION,
            context_words=["iban", "konto", "compte", "account", "bankverbindung"],
        ),
        RecognizerConfig(
            name="Email",
            patterns=[
                PatternDefinition("email", r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",
                                  DEFAULT_RULE_CONFIDENCE, "EMAIL"),
            ],
            priority=60,
        ),
        # Semi-structured identifiers
        RecognizerConfig(
            name="EuropeanPhone",
            patterns=[
                PatternDefinition(
                    "phone_international",
                    r"(?:\+|\b00)(?:41|49|33|39|43|32|31|352)[\s.-]?(?:\(?\d{1,4}\)?[\s.-]?)?"
                    r"\d{2,4}[\s.-]?\d{2,4}[\s.-]?\d{2,4}\b",
                    DEFAULT_RULE_CONFIDENCE, "PHONE"),
                PatternDefinition("phone_swiss_national", r"\b0\d{2}\s\d{3}\s\d{2}\s\d{2}\b", 0.6, "PHONE"),
            ],
            priority=50,
            specificity=Specificity.REGION,
        ),
        RecognizerConfig(
            name="SwissUid",
            patterns=[
                PatternDefinition("che_uid", r"\bCHE[-\s]?\d{3}[.\s]?\d{3}[.\s]?\d{3}(?:\s*(?:MWST|TVA|IVA))?\b",
                                  DEFAULT_RULE_CONFIDENCE, "VAT_NUMBER", ignore_case=True),
            ],
            supported_countries=["CH"],
            priority=50,
            specificity=Specificity.COUNTRY,
        ),
        RecognizerConfig(
            name="EuVat",
            patterns=[
                PatternDefinition("eu_vat", r"\b(?:DE|FR|IT|AT)\s?\d{8,11}\b", DEFAULT_RULE_CONFIDENCE, "VAT_NUMBER"),
            ],
            priority=50,
            specificity=Specificity.REGION,
        ),
        RecognizerConfig(
            name="SwissQrReference",
            patterns=[
                PatternDefinition("qr_reference",
                                  r"\b\d{2}\s?\d{5}\s?\d{5}\s?\d{5}\s?\d{5}\s?\d{5,6}\b",
                                  DEFAULT_RULE_CONFIDENCE, "PAYMENT_REF"),
            ],
            supported_countries=["CH"],
            priority=50,
            specificity=Specificity.COUNTRY,
        ),
        # Addresses
        RecognizerConfig(
            name="SwissPostalAddress",
            patterns=[
                PatternDefinition("swiss_postal_city",
                                  r"\b(?:CH[-\s]?)?[1-9]\d{3}\s+[A-ZÄÖÜ][a-zäöüéèâ]+(?:[-\s][A-ZÄÖÜ][a-zäöüéèâ]+)*",
                                  DEFAULT_RULE_CONFIDENCE, "SWISS_ADDRESS"),
            ],
            supported_countries=["CH"],
            priority=40,
            specificity=Specificity.COUNTRY,
            validator=_swiss_address_validator,
        ),
        RecognizerConfig(
            name="EuPostalAddress",
            patterns=[
                PatternDefinition("de_at_postal_city",
                                  r"\b(?:D[-\s]|A[-\s])?\d{5}\s+[A-ZÄÖÜ][a-zäöüß]+(?:[-\s][A-ZÄÖÜ][a-zäöüß]+)*",
                                  DEFAULT_RULE_CONFIDENCE, "EU_ADDRESS"),
                PatternDefinition("fr_postal_city",
                                  r"\b(?:F[-\s])?\d{5}\s+[A-ZÀÂÉÈÊÎÔÛ][a-zàâæéèêëïîôœùûüÿç]+"
                                  r"(?:[-\s][A-ZÀÂÉÈÊÎÔÛ][a-zàâæéèêëïîôœùûüÿç]+)*",
                                  DEFAULT_RULE_CONFIDENCE, "EU_ADDRESS"),
            ],
            priority=40,
            specificity=Specificity.REGION,
        ),
        RecognizerConfig(
            name="StreetAddress",
            patterns=[
                PatternDefinition("street_trailing_suffix",
                                  rf"\b[A-ZÄÖÜ][a-zäöüß]*(?:{_TRAILING_SUFFIXES})\s+\d{{1,4}}[a-zA-Z]?\b",
                                  DEFAULT_RULE_CONFIDENCE, "ADDRESS"),
                PatternDefinition("street_leading_suffix",
                                  rf"\b(?:{_LEADING_SUFFIXES})\s+(?:de\s+la\s+|de\s+|du\s+|des\s+|della\s+|del\s+)?"
                                  r"[A-ZÀ-Ý][a-zà-ÿ]+(?:[\s-][A-Za-zà-ÿ]+)*\s+\d{1,4}[a-zA-Z]?\b",
                                  DEFAULT_RULE_CONFIDENCE, "ADDRESS", ignore_case=True),
            ],
            priority=40,
            specificity=Specificity.REGION,
        ),
        # Dates
        RecognizerConfig(
            name="EuropeanDate",
            patterns=[
                PatternDefinition("date_numeric",
                                  r"\b(?:0?[1-9]|[12]\d|3[01])[./-](?:0?[1-9]|1[0-2])[./-](?:19|20)?\d{2}\b",
                                  DEFAULT_RULE_CONFIDENCE, "DATE"),
                PatternDefinition("date_month_de",
                                  r"\b(?:0?[1-9]|[12]\d|3[01])\.?\s*(?:Januar|Februar|März|April|Mai|Juni|Juli"
                                  r"|August|September|Oktober|November|Dezember)\s*(?:19|20)?\d{2}\b",
                                  DEFAULT_RULE_CONFIDENCE, "DATE", ignore_case=True),
                PatternDefinition("date_month_fr",
                                  r"\b(?:0?[1-9]|[12]\d|3[01]|1er)\s*(?:janvier|février|mars|avril|mai|juin|juillet"
                                  r"|août|septembre|octobre|novembre|décembre)\s*(?:19|20)?\d{2}\b",
                                  DEFAULT_RULE_CONFIDENCE, "DATE", ignore_case=True),
                PatternDefinition("date_month_en",
                                  r"\b(?:January|February|March|April|May|June|July|August|September|October"
                                  r"|November|December)\s+(?:0?[1-9]|[12]\d|3[01])(?:st|nd|rd|th)?,?\s+(?:19|20)\d{2}\b",
                                  DEFAULT_RULE_CONFIDENCE, "DATE"),
            ],
            priority=30,
        ),
        # Person names after a salutation or a name label
        RecognizerConfig(
            name="SalutationPersonName",
            patterns=[
                PatternDefinition(
                    "name_after_salutation",
                    r"(?:(?<=Herr\s)|(?<=Frau\s)|(?<=Mr\.\s)|(?<=Mrs\.\s)|(?<=Ms\.\s)|(?<=Dr\.\s)"
                    r"|(?<=Monsieur\s)|(?<=Madame\s)|(?<=Mme\s)|(?<=M\.\s))"
                    r"[A-ZÄÖÜÉÈ][a-zäöüéèàç]+(?:[-\s][A-ZÄÖÜÉÈ][a-zäöüéèàç]+)?",
                    0.6, "PERSON_NAME"),
                PatternDefinition(
                    "name_after_label",
                    r"(?:(?<=Name:\s)|(?<=Nom:\s)|(?<=Vorname:\s)|(?<=Nachname:\s))"
                    r"[A-ZÄÖÜÉÈ][a-zäöüéèàç]+(?:[-\s][A-ZÄÖÜÉÈ][a-zäöüéèàç]+)?",
                    0.5, "PERSON_NAME", is_weak_pattern=True),
            ],
            priority=30,
            use_global_context=True,
        ),
        # Financial amounts
        RecognizerConfig(
            name="CurrencyAmount",
            patterns=[
                PatternDefinition("amount_currency_prefix",
                                  r"(?:\b(?:CHF|EUR|Fr\.?)|€)\s*\d{1,3}(?:['\s.,]\d{3})*(?:[.,](?:\d{2}|-))?",
                                  DEFAULT_RULE_CONFIDENCE, "AMOUNT", ignore_case=True),
            ],
            priority=20,
            specificity=Specificity.REGION,
        ),
    ]


def _swiss_address_validator(match_text: str, full_text: str, start: int) -> bool:
    validator = get_validator_registry().get("SWISS_ADDRESS")
    if validator is None:
        return True
    return validator.validate(match_text, full_text, start).is_valid
