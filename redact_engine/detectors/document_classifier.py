"""
Document-type classification.

Scores the whole text as an invoice, letter, form, contract or report from
three kinds of signals:

- keywords for the detected language, weighted by length (specificity) and
  match count (diminishing returns)
- structural patterns, +0.15 each
- what the first and last five lines contain

Confidence is min(best score / 3, 1). Below the configured minimum the
document is UNKNOWN.

Usage:
    from redact_engine.detectors.document_classifier import DocumentClassifier

    classification = DocumentClassifier().classify(text)
    classification.type, classification.confidence, classification.language
"""

import logging
import math
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional

from ..data.document_keywords import (
    DOCUMENT_KEYWORDS,
    LANGUAGE_INDICATORS,
    PIPELINE_LANGUAGE_MARKERS,
    POSITION_BOOSTS,
    STRUCTURAL_PATTERNS,
)
from .entities import DocumentType

logger = logging.getLogger(__name__)

MAX_EXPECTED_SCORE = 3.0
STRUCTURAL_PATTERN_WEIGHT = 0.15
SECONDARY_TYPE_MIN_SCORE = 0.2
MAX_REPORTED_FEATURES = 10
POSITION_LINES = 5
LANGUAGE_SAMPLE_SIZE = 2000
DEFAULT_LANGUAGE = "de"

APPLICABLE_RULES: Dict[DocumentType, List[str]] = {
    DocumentType.INVOICE: ["vendor", "amount", "vat_number", "payment_ref", "invoice_number"],
    DocumentType.LETTER: ["sender", "recipient", "signature", "salutation"],
    DocumentType.FORM: ["form_field", "checkbox", "signature"],
    DocumentType.CONTRACT: ["parties", "clauses", "signature", "date"],
    DocumentType.REPORT: ["author", "sections", "references"],
    DocumentType.UNKNOWN: [],
}


@dataclass
class ClassificationFeature:
    name: str
    weight: float
    match: Optional[str] = None
    position: Optional[float] = None


@dataclass
class DocumentClassification:
    type: DocumentType
    confidence: float
    language: str
    secondary_type: Optional[DocumentType] = None
    features: List[ClassificationFeature] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)

    def to_dict(self):
        return {
            "type": self.type.value,
            "confidence": round(self.confidence, 4),
            "language": self.language,
            "secondary_type": self.secondary_type.value if self.secondary_type else None,
            "features": [f.name for f in self.features],
        }


@lru_cache(maxsize=2048)
def _phrase_pattern(phrase: str) -> re.Pattern:
    return re.compile(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)")


def keyword_weight(keyword: str, match_count: int) -> float:
    """Longer keywords are more specific; repeats add with diminishing returns."""
    length_factor = min(len(keyword) / 8, 1.5)
    count_factor = 1 + math.log2(match_count + 1) * 0.5
    return 0.08 * length_factor * count_factor


def _count_markers(text: str, markers: Dict[str, List[str]]) -> Dict[str, int]:
    return {
        language: sum(len(_phrase_pattern(word).findall(text)) for word in words)
        for language, words in markers.items()
    }


def detect_language(text: str) -> str:
    """
    Pipeline language (de/fr/en) from marker words in the first 2000
    characters. Ties, including no markers at all, resolve to German.
    """
    sample = text[:LANGUAGE_SAMPLE_SIZE].lower()
    counts = _count_markers(sample, PIPELINE_LANGUAGE_MARKERS)
    best = DEFAULT_LANGUAGE
    for language in ("de", "fr", "en"):
        if counts[language] > counts[best]:
            best = language
    return best


class DocumentClassifier:
    """Keyword, structure and position based document classifier."""

    def __init__(self, min_confidence: float = 0.25, analyze_structure: bool = True):
        self.min_confidence = min_confidence
        self.analyze_structure = analyze_structure

    def detect_document_language(self, text: str) -> str:
        """Classification language (en/fr/de/it); ties keep the first listed."""
        counts = _count_markers(text.lower(), LANGUAGE_INDICATORS)
        return max(counts, key=lambda lang: counts[lang]) if any(counts.values()) else "en"

    def classify(self, text: str) -> DocumentClassification:
        lowered = text.lower()
        language = self.detect_document_language(text)
        scores: Dict[str, float] = {t.value: 0.0 for t in DocumentType if t != DocumentType.UNKNOWN}
        features: List[ClassificationFeature] = []

        for doc_type, by_language in DOCUMENT_KEYWORDS.items():
            keywords = by_language.get(language) or by_language.get("en", [])
            for keyword in keywords:
                matches = _phrase_pattern(keyword).findall(lowered)
                if not matches:
                    continue
                weight = keyword_weight(keyword, len(matches))
                scores[doc_type] += weight
                features.append(ClassificationFeature(f"keyword:{keyword}", weight, matches[0]))

        if self.analyze_structure:
            for doc_type, patterns in STRUCTURAL_PATTERNS.items():
                for pattern in patterns:
                    match = pattern.search(text)
                    if match is None:
                        continue
                    scores[doc_type] += STRUCTURAL_PATTERN_WEIGHT
                    features.append(ClassificationFeature(
                        f"pattern:{doc_type.lower()}",
                        STRUCTURAL_PATTERN_WEIGHT,
                        match.group(0)[:50],
                        match.start() / len(text) if text else None,
                    ))

        self._apply_position_boosts(text, scores, features)

        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        primary_type, primary_score = ranked[0]
        secondary_type, secondary_score = ranked[1]
        confidence = min(primary_score / MAX_EXPECTED_SCORE, 1.0)

        final_type = DocumentType(primary_type) if confidence >= self.min_confidence and primary_score > 0 \
            else DocumentType.UNKNOWN

        return DocumentClassification(
            type=final_type,
            confidence=confidence,
            language=language,
            secondary_type=DocumentType(secondary_type) if secondary_score > SECONDARY_TYPE_MIN_SCORE else None,
            features=sorted(features, key=lambda f: f.weight, reverse=True)[:MAX_REPORTED_FEATURES],
            scores=scores,
        )

    @staticmethod
    def _apply_position_boosts(text: str, scores: Dict[str, float], features: List[ClassificationFeature]):
        lines = text.split("\n")
        zones = {
            "start": "\n".join(lines[:POSITION_LINES]),
            "end": "\n".join(lines[-POSITION_LINES:]),
        }
        for doc_type, name, zone, pattern, weight in POSITION_BOOSTS:
            if pattern.search(zones[zone]):
                scores[doc_type] += weight
                features.append(ClassificationFeature(name, weight, position=0.0 if zone == "start" else 1.0))

    def is_type(self, text: str, doc_type: DocumentType, min_confidence: float = 0.5) -> bool:
        classification = self.classify(text)
        return classification.type == doc_type and classification.confidence >= min_confidence

    @staticmethod
    def get_applicable_rules(doc_type: DocumentType) -> List[str]:
        return list(APPLICABLE_RULES.get(DocumentType(doc_type), []))
