"""
Detection passes run by the pipeline, in fixed order:

    1. HighRecallPass          recognizer registry + ML adapter, overlaps of
                               the same type from both sources merge to BOTH
    2. DenyListFilterPass      drops known false positives
    3. FormatValidationPass    checksum/format validators adjust confidence
    4. ContextScoringPass      nearby vocabulary, factor analysis, runtime hints
    5. AddressRelationshipPass folds address components into grouped addresses
    6. DocumentTypePass        classifies the document, applies type boosts
    7. ConsolidationPass       overlaps, linking, offset repair

Every pass takes the entity list and the shared PipelineContext and returns
the new entity list. Passes may raise; the orchestrator isolates them.

Usage:
    from redact_engine.detectors.passes import create_default_passes

    passes = create_default_passes()
    for detection_pass in passes:
        entities = detection_pass.run(entities, context)
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from ..data.context_words import pos
from .address_linker import AddressClassifier, AddressLinker, AddressScorer
from .consolidation import Consolidator, repair_offsets
from .context_enhancer import ContextEnhancer, get_context_enhancer
from .context_scoring import ContextScorer
from .deny_list import DenyList, get_deny_list
from .document_classifier import DocumentClassification, DocumentClassifier
from .entities import (
    ADDRESS_TYPES,
    DocumentType,
    Entity,
    EntitySource,
    EntityType,
    EntityValidation,
    PipelineContext,
    RuntimeContext,
    ValidationStatus,
    base_type,
)
from .ml_adapter import MLAdapter
from .recognizers import RecognizerMatch
from .registry import RecognizerRegistry, get_registry
from .validators import ValidatorRegistry, get_validator_registry

logger = logging.getLogger(__name__)

T = EntityType

MIN_RULE_MATCH_LENGTH = 3
VALID_CONFIDENCE_MULTIPLIER = 1.2


def _same_base(left: EntityType, right: EntityType) -> bool:
    return base_type(left) == base_type(right)


class DetectionPass:
    """Base class: subclasses set `name` and implement run()."""

    name = "pass"

    def run(self, entities: List[Entity], context: PipelineContext) -> List[Entity]:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"


# =============================================================================
# PASS 1: HIGH RECALL
# =============================================================================

def match_to_entity(match: RecognizerMatch) -> Entity:
    """Convert a recognizer match; types outside EntityType become UNKNOWN."""
    metadata = {
        "priority": match.priority,
        "specificity": match.specificity.value,
        "context_enhanced": match.context_enhanced,
    }
    if match.entity_type in EntityType.__members__:
        entity_type = EntityType(match.entity_type)
    else:
        entity_type = EntityType.UNKNOWN
        metadata["rule_entity_type"] = match.entity_type
    return Entity(
        type=entity_type,
        text=match.text,
        start=match.start,
        end=match.end,
        confidence=max(0.0, min(1.0, match.score)),
        source=EntitySource.RULE,
        recognizer=match.recognizer,
        pattern_name=match.pattern_name,
        metadata=metadata,
    )


def merge_sources(entities: List[Entity], text: str) -> List[Entity]:
    """
    Merge overlapping detections of the same base type.

    ML + RULE overlaps become one BOTH entity (max confidence, union of the
    bounds, text re-sliced, the more specific type). Overlaps from the same
    source keep the earlier entity.
    """
    merged: List[Entity] = []
    for entity in entities:
        existing = next((m for m in merged if _same_base(m.type, entity.type) and m.overlaps(entity)), None)
        if existing is None:
            merged.append(entity)
            continue
        if existing.source == entity.source:
            continue
        existing.start = min(existing.start, entity.start)
        existing.end = max(existing.end, entity.end)
        existing.text = text[existing.start:existing.end]
        existing.confidence = max(existing.confidence, entity.confidence)
        existing.source = EntitySource.BOTH
        if existing.type == base_type(existing.type):
            existing.type = entity.type
        existing.recognizer = existing.recognizer or entity.recognizer
        existing.pattern_name = existing.pattern_name or entity.pattern_name
        for key, value in entity.metadata.items():
            existing.metadata.setdefault(key, value)
    return merged


class HighRecallPass(DetectionPass):
    """Rule-based and ML candidates, tuned for recall."""

    name = "high_recall"

    def __init__(self, registry: Optional[RecognizerRegistry] = None, ml_adapter: Optional[MLAdapter] = None):
        self._registry = registry
        self.ml_adapter = ml_adapter

    @property
    def registry(self) -> RecognizerRegistry:
        if self._registry is None:
            self._registry = get_registry()
        return self._registry

    def run(self, entities, context):
        analysis = self.registry.analyze(
            context.text,
            language=context.language,
            low_confidence_multiplier=context.config.low_confidence_multiplier,
            low_score_entity_names=context.config.low_score_entity_names,
        )
        errors = context.metadata.setdefault("recognizer_errors", [])
        errors.extend(f"{e.recognizer}: {e.error}" for e in analysis.errors)

        rule_entities = [
            match_to_entity(m) for m in analysis.matches
            if len(m.text.strip()) >= MIN_RULE_MATCH_LENGTH
        ]

        ml_entities = [e.copy() for e in context.metadata.get("ml_entities") or []]
        if "ml_entities" not in context.metadata and self.ml_adapter is not None:
            ml_entities = self.ml_adapter.detect(context.text, context.config.ml_confidence_threshold)

        candidates = list(entities) + ml_entities + rule_entities
        merged = merge_sources(candidates, context.text)
        logger.debug(
            f"High recall: {len(rule_entities)} rule, {len(ml_entities)} ML, "
            f"{len(merged)} after merge ({analysis.analysis_time_ms:.1f}ms)"
        )
        return merged


# =============================================================================
# PASS 2: DENY LIST
# =============================================================================

class DenyListFilterPass(DetectionPass):
    name = "deny_list_filter"

    def __init__(self, deny_list: Optional[DenyList] = None):
        self._deny_list = deny_list

    @property
    def deny_list(self) -> DenyList:
        if self._deny_list is None:
            self._deny_list = get_deny_list()
        return self._deny_list

    def run(self, entities, context):
        filtered: Dict[str, int] = context.metadata.setdefault("deny_list_filtered", {})
        kept = []
        for entity in entities:
            if self.deny_list.is_denied(entity.text, entity.type, context.language):
                filtered[entity.type.value] = filtered.get(entity.type.value, 0) + 1
                continue
            kept.append(entity)
        if len(kept) < len(entities):
            logger.debug(f"Deny list removed {len(entities) - len(kept)} entities: {filtered}")
        return kept


# =============================================================================
# PASS 3: FORMAT VALIDATION
# =============================================================================

class FormatValidationPass(DetectionPass):
    """
    Valid entities gain 20% confidence (capped at 1.0); invalid ones drop to
    the validator's confidence. Types without a validator stay unchecked.
    """

    name = "format_validation"

    def __init__(self, validators: Optional[ValidatorRegistry] = None):
        self._validators = validators

    @property
    def validators(self) -> ValidatorRegistry:
        if self._validators is None:
            self._validators = get_validator_registry()
        return self._validators

    def run(self, entities, context):
        for entity in entities:
            validator = self.validators.get(entity.type.value)
            if validator is None:
                entity.validation = EntityValidation(
                    status=ValidationStatus.UNCHECKED,
                    reason=f"No validator for type {entity.type.value}",
                )
                continue

            result = validator.validate(entity.text, context.text, entity.start)
            if result.is_valid:
                entity.confidence = min(1.0, entity.confidence * VALID_CONFIDENCE_MULTIPLIER)
                status = ValidationStatus.VALID
            else:
                entity.confidence = min(entity.confidence, result.confidence)
                status = ValidationStatus.INVALID
            entity.validation = EntityValidation(
                status=status,
                reason=result.reason,
                checked_by=type(validator).__name__,
                confidence=result.confidence,
            )
        return entities


# =============================================================================
# PASS 4: CONTEXT SCORING
# =============================================================================

_DELIMITERS = (",", ";", "\t", "|")


def detect_delimiter(header_line: str) -> Optional[str]:
    """Most frequent delimiter in the header line, if any."""
    counts = {d: header_line.count(d) for d in _DELIMITERS}
    best = max(counts, key=lambda d: counts[d])
    return best if counts[best] else None


def normalize_header(header: str) -> str:
    normalized = header.strip().strip('"').lower()
    normalized = re.sub(r"^(the|a|an)\s+", "", normalized)
    return re.sub(r"\s*(number|no|nr|#|:)$", "", normalized)


def column_header_for(text: str, offset: int) -> Optional[str]:
    """
    Header of the delimited column containing offset, or None.

    The first line is taken as the header row; the header line itself has
    no column.
    """
    header_end = text.find("\n")
    if header_end == -1 or offset <= header_end:
        return None
    header_line = text[:header_end].rstrip("\r")
    delimiter = detect_delimiter(header_line)
    if delimiter is None:
        return None
    line_start = text.rfind("\n", 0, offset) + 1
    index = text.count(delimiter, line_start, offset)
    headers = header_line.split(delimiter)
    if index >= len(headers):
        return None
    return normalize_header(headers[index])


class ContextScoringPass(DetectionPass):
    """
    Confidence from nearby context words (ContextEnhancer), a factor analysis
    recorded on entity.context (ContextScorer) and runtime hints.

    Entities below the review threshold are flagged for review.
    """

    name = "context_scoring"

    def __init__(self, enhancer: Optional[ContextEnhancer] = None):
        self._enhancer = enhancer

    @property
    def enhancer(self) -> ContextEnhancer:
        if self._enhancer is None:
            self._enhancer = get_context_enhancer()
        return self._enhancer

    def run(self, entities, context):
        config = context.config
        runtime = context.runtime or RuntimeContext()
        scorer = ContextScorer(window_size=config.context_window_size)
        extra_words = [pos(word) for word in runtime.context_words]
        boosted = 0

        for entity in entities:
            result = self.enhancer.enhance_with_details(entity, context.text, context.language, extra_words)
            analysis = scorer.analyze(entity, context.text, entities)
            analysis.words_found = list(result.context_found)
            analysis.boost_applied = result.boost_applied
            entity.context = analysis
            if result.boost_applied > 0:
                boosted += 1
            entity.confidence = result.confidence

            hint = self._runtime_hint(entity, context.text, runtime)
            if hint is not None:
                entity.confidence = min(1.0, entity.confidence + runtime.confidence_boost)
                entity.metadata["runtime_hint"] = hint

            if entity.confidence < config.review_threshold:
                entity.flagged_for_review = True

        context.metadata["context_boosted"] = context.metadata.get("context_boosted", 0) + boosted
        logger.debug(f"Context scoring: {boosted} of {len(entities)} entities boosted")
        return entities

    @staticmethod
    def _runtime_hint(entity: Entity, text: str, runtime: RuntimeContext) -> Optional[str]:
        for region in runtime.region_hints:
            if region.start <= entity.start and entity.end <= region.end and any(
                    _same_base(entity.type, EntityType(t)) for t in region.entity_types):
                return "region"
        if runtime.column_hints:
            header = column_header_for(text, entity.start)
            expected = runtime.column_hints.get(header) if header is not None else None
            if expected is not None and _same_base(entity.type, expected):
                return "column"
        return None


# =============================================================================
# PASS 5: ADDRESS RELATIONSHIPS
# =============================================================================

# Entities a grouped address supersedes when they overlap it
ADDRESS_LIKE_TYPES = ADDRESS_TYPES | {T.LOCATION}


class AddressRelationshipPass(DetectionPass):
    """
    Classify address components, link them into grouped addresses and score
    them. Grouped addresses replace overlapping address/location entities.
    Unlinked components that coincide with an existing entity tag it with
    metadata["component_type"] so consolidation can still fold it.
    """

    name = "address_relationship"

    def __init__(
        self,
        classifier: Optional[AddressClassifier] = None,
        linker: Optional[AddressLinker] = None,
        scorer: Optional[AddressScorer] = None,
    ):
        self.classifier = classifier or AddressClassifier()
        self.linker = linker or AddressLinker()
        self.scorer = scorer or AddressScorer()

    def run(self, entities, context):
        text = context.text
        components = self.classifier.classify(text)
        addresses = self.linker.link(components, text)
        if not addresses and not components:
            return entities

        grouped: List[Entity] = []
        for address in addresses:
            scored = self.scorer.score(address)
            grouped.append(Entity(
                type=address.entity_type,
                text=address.text,
                start=address.start,
                end=address.end,
                confidence=scored.final_confidence,
                source=EntitySource.RULE,
                components=address.components,
                flagged_for_review=scored.flagged_for_review,
                recognizer="AddressLinker",
                validation=EntityValidation(
                    status=address.validation_status,
                    reason=f"{address.pattern.value} address pattern",
                    checked_by="AddressLinker",
                    confidence=address.confidence,
                ),
                metadata={
                    "address_group_id": address.id,
                    "pattern": address.pattern.value,
                    "linker_confidence": address.confidence,
                    "score_breakdown": dict(address.score_breakdown),
                    "auto_anonymize": scored.auto_anonymize,
                },
            ))

        kept = [
            e for e in entities
            if not (e.type in ADDRESS_LIKE_TYPES and any(e.overlaps(g) for g in grouped))
        ]

        linked_spans = [(g.start, g.end) for g in grouped]
        for component in components:
            if any(start <= component.start and component.end <= end for start, end in linked_spans):
                continue
            for entity in kept:
                if entity.start == component.start and entity.end == component.end \
                        and entity.type in ADDRESS_LIKE_TYPES:
                    entity.metadata.setdefault("component_type", component.type.name)

        if grouped:
            logger.debug(f"Linked {len(grouped)} addresses from {len(components)} components")
        return sorted(kept + grouped, key=lambda e: e.start)


# =============================================================================
# PASS 6: DOCUMENT TYPE
# =============================================================================

# Flat confidence boosts per document type
DOCUMENT_TYPE_BOOSTS: Dict[DocumentType, Dict[EntityType, float]] = {
    DocumentType.INVOICE: {
        T.IBAN: 0.1, T.VAT_NUMBER: 0.1, T.PAYMENT_REF: 0.1, T.QR_REFERENCE: 0.1,
        T.INVOICE_NUMBER: 0.1, T.AMOUNT: 0.05,
    },
    DocumentType.LETTER: {
        T.PERSON: 0.1, T.PERSON_NAME: 0.1, T.ADDRESS: 0.1, T.SWISS_ADDRESS: 0.1,
        T.EU_ADDRESS: 0.1, T.DATE: 0.05,
    },
    DocumentType.CONTRACT: {
        T.PARTY: 0.1, T.PERSON: 0.05, T.PERSON_NAME: 0.05, T.ORGANIZATION: 0.05, T.DATE: 0.05,
    },
    DocumentType.FORM: {
        T.SWISS_AVS: 0.1, T.PERSON: 0.05, T.PERSON_NAME: 0.05, T.DATE: 0.05,
        T.ADDRESS: 0.05, T.SWISS_ADDRESS: 0.05, T.EU_ADDRESS: 0.05,
    },
    DocumentType.REPORT: {
        T.AUTHOR: 0.1, T.ORGANIZATION: 0.05,
    },
}

HEADER_ZONE = 0.2
FOOTER_ZONE = 0.8

HEADER, BODY, FOOTER = "header", "body", "footer"
NOT_FOOTER = (HEADER, BODY)

# (document type, entity type, zones where it applies, boost)
POSITION_ADJUSTMENTS: List[Tuple[DocumentType, EntityType, Tuple[str, ...], float]] = [
    (DocumentType.INVOICE, T.INVOICE_NUMBER, (HEADER,), 0.1),
    (DocumentType.INVOICE, T.AMOUNT, (BODY,), 0.05),
    (DocumentType.INVOICE, T.IBAN, (FOOTER,), 0.1),
    (DocumentType.INVOICE, T.PAYMENT_REF, (FOOTER,), 0.1),
    (DocumentType.LETTER, T.SENDER, (HEADER,), 0.15),
    (DocumentType.LETTER, T.SIGNATURE, (FOOTER,), 0.15),
    (DocumentType.LETTER, T.SALUTATION_NAME, NOT_FOOTER, 0.1),
    (DocumentType.CONTRACT, T.PARTY, (HEADER,), 0.1),
    (DocumentType.CONTRACT, T.SIGNATURE, (FOOTER,), 0.15),
    (DocumentType.REPORT, T.AUTHOR, (HEADER,), 0.15),
]

LABELED_FIELD_BOOST = 0.1
_LABEL_BEFORE = re.compile(r"[A-Za-zÀ-ÿ][\w .'/-]{0,40}:[ \t]*$")


def position_zone(start: int, text_length: int) -> str:
    position = start / text_length if text_length else 0.0
    if position < HEADER_ZONE:
        return HEADER
    if position > FOOTER_ZONE:
        return FOOTER
    return BODY


def is_labeled_field(text: str, start: int) -> bool:
    """True when the entity follows a "Label:" on the same line."""
    line_start = text.rfind("\n", 0, start) + 1
    return _LABEL_BEFORE.search(text[line_start:start]) is not None


class DocumentTypePass(DetectionPass):
    """
    Classify the document (or take the runtime override) and boost the
    entity types that document type is known to contain. Below the minimum
    classification confidence the document is UNKNOWN and nothing changes.
    """

    name = "document_type"

    def __init__(self, classifier: Optional[DocumentClassifier] = None):
        self.classifier = classifier

    def classify(self, context: PipelineContext) -> DocumentClassification:
        runtime = context.runtime
        if runtime is not None and runtime.document_type is not None:
            return DocumentClassification(type=runtime.document_type, confidence=1.0, language=context.language)
        classifier = self.classifier or DocumentClassifier(
            min_confidence=context.config.document_type_min_confidence
        )
        classification = classifier.classify(context.text)
        if classification.type == DocumentType.UNKNOWN and any(classification.scores.values()):
            logger.warning(
                f"Document classification below {classifier.min_confidence:.2f} "
                f"(confidence {classification.confidence:.2f}), falling back to UNKNOWN"
            )
        return classification

    def run(self, entities, context):
        classification = self.classify(context)
        context.document_type = classification.type
        details = classification.to_dict()
        details["overridden"] = context.runtime is not None and context.runtime.document_type is not None
        context.metadata["document_classification"] = details

        if classification.type == DocumentType.UNKNOWN:
            return entities

        boosts = DOCUMENT_TYPE_BOOSTS.get(classification.type, {})
        text_length = len(context.text)
        for entity in entities:
            boost = boosts.get(entity.type, 0.0)
            zone = position_zone(entity.start, text_length)
            for doc_type, entity_type, zones, amount in POSITION_ADJUSTMENTS:
                if doc_type == classification.type and entity.type == entity_type and zone in zones:
                    boost += amount
            if classification.type == DocumentType.FORM:
                if entity.metadata.get("is_labeled_field") or is_labeled_field(context.text, entity.start):
                    entity.metadata["is_labeled_field"] = True
                    boost += LABELED_FIELD_BOOST
            if boost:
                entity.confidence = min(1.0, entity.confidence + boost)
                entity.metadata["document_type_boost"] = round(boost, 4)
        return entities


# =============================================================================
# PASS 7: CONSOLIDATION
# =============================================================================

OFFSETS_REPAIRED = "offsets_repaired"


def repair_context_offsets(entities: List[Entity], context: PipelineContext) -> List[Entity]:
    """Map spans back to the caller's text once per document."""
    if context.metadata.get(OFFSETS_REPAIRED):
        return entities
    context.metadata[OFFSETS_REPAIRED] = True
    index_map = context.metadata.get("index_map")
    if not index_map or context.text == context.original_text:
        return entities
    return repair_offsets(entities, context.original_text, index_map)


class ConsolidationPass(DetectionPass):
    name = "consolidation"

    def __init__(self, consolidator: Optional[Consolidator] = None):
        self.consolidator = consolidator or Consolidator()

    def run(self, entities, context):
        result = self.consolidator.consolidate(entities, context.text)
        context.metadata["consolidation"] = result.metadata()
        logger.debug(
            f"Consolidation: {result.overlaps_resolved} overlaps resolved, "
            f"{result.addresses_consolidated} addresses, {result.entities_linked} linked groups"
        )
        return repair_context_offsets(result.entities, context)


def create_default_passes(
    registry: Optional[RecognizerRegistry] = None,
    deny_list: Optional[DenyList] = None,
    enhancer: Optional[ContextEnhancer] = None,
    ml_adapter: Optional[MLAdapter] = None,
) -> List[DetectionPass]:
    """The seven built-in passes in pipeline order."""
    return [
        HighRecallPass(registry, ml_adapter),
        DenyListFilterPass(deny_list),
        FormatValidationPass(),
        ContextScoringPass(enhancer),
        AddressRelationshipPass(),
        DocumentTypePass(),
        ConsolidationPass(),
    ]
