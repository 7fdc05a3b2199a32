"""Tests for the individual detection passes."""

from __future__ import annotations

import pytest

from redact_engine.detection_config import PASS_NAMES, PipelineConfig
from redact_engine.detectors.context_enhancer import ContextEnhancer
from redact_engine.detectors.deny_list import DenyList
from redact_engine.detectors.entities import (
    DocumentType,
    Entity,
    EntitySource,
    EntityType,
    PipelineContext,
    RegionHint,
    RuntimeContext,
    ValidationStatus,
)
from redact_engine.detectors.passes import (
    AddressRelationshipPass,
    ConsolidationPass,
    ContextScoringPass,
    DenyListFilterPass,
    DocumentTypePass,
    FormatValidationPass,
    column_header_for,
    create_default_passes,
    detect_delimiter,
    is_labeled_field,
    match_to_entity,
    merge_sources,
    normalize_header,
    position_zone,
)
from redact_engine.detectors.recognizers import RecognizerMatch

IBAN = "CH93 0076 2011 6238 5295 7"


def _entity(entity_type: EntityType, text: str, start: int, confidence: float = 0.5, **kwargs) -> Entity:
    return Entity(type=entity_type, text=text, start=start, end=start + len(text),
                  confidence=confidence, **kwargs)


def _context(text: str, runtime: RuntimeContext = None, **config) -> PipelineContext:
    return PipelineContext(text=text, original_text=text, config=PipelineConfig(**config), runtime=runtime)


def test_default_passes_in_pipeline_order() -> None:
    assert [p.name for p in create_default_passes()] == list(PASS_NAMES)


# -----------------------------------------------------------------------
# High recall
# -----------------------------------------------------------------------


class TestHighRecall:
    def test_match_to_entity(self) -> None:
        match = RecognizerMatch("IBAN", IBAN, 0, len(IBAN), 0.7, "Iban", pattern_name="iban", priority=60)
        entity = match_to_entity(match)
        assert entity.type == EntityType.IBAN
        assert entity.source == EntitySource.RULE
        assert entity.metadata["priority"] == 60

    def test_unknown_rule_type(self) -> None:
        entity = match_to_entity(RecognizerMatch("CUSTOMER_ID", "KD-123456", 0, 9, 0.6, "CustomerNumber"))
        assert entity.type == EntityType.UNKNOWN
        assert entity.metadata["rule_entity_type"] == "CUSTOMER_ID"

    def test_ml_and_rule_merge_to_both(self) -> None:
        text = "Termin mit Anna Keller."
        ml = _entity(EntityType.PERSON, "Anna Keller", 11, 0.6, source=EntitySource.ML)
        rule = _entity(EntityType.PERSON_NAME, "Keller", 16, 0.8)
        merged = merge_sources([ml, rule], text)
        assert len(merged) == 1
        both = merged[0]
        assert (both.type, both.text, both.source) == (EntityType.PERSON_NAME, "Anna Keller", EntitySource.BOTH)
        assert both.confidence == pytest.approx(0.8)

    def test_same_source_keeps_first(self) -> None:
        first = _entity(EntityType.PERSON, "Anna Keller", 0, 0.5)
        second = _entity(EntityType.PERSON, "Keller", 5, 0.9)
        assert merge_sources([first, second], "Anna Keller") == [first]

    def test_different_types_not_merged(self) -> None:
        email = _entity(EntityType.EMAIL, "anna@keller.ch", 0)
        person = _entity(EntityType.PERSON, "anna", 0, source=EntitySource.ML)
        assert len(merge_sources([email, person], "anna@keller.ch")) == 2


# -----------------------------------------------------------------------
# Deny list and format validation
# -----------------------------------------------------------------------


class TestDenyListFilter:
    def test_denied_entities_removed_and_counted(self) -> None:
        context = _context("Montant: 100.00 / Anna Keller")
        entities = [
            _entity(EntityType.ORGANIZATION, "Montant", 0),
            _entity(EntityType.PERSON, "Anna Keller", 18),
        ]
        kept = DenyListFilterPass(DenyList()).run(entities, context)
        assert [e.text for e in kept] == ["Anna Keller"]
        assert context.metadata["deny_list_filtered"] == {"ORGANIZATION": 1}


class TestFormatValidation:
    def test_valid_entity_boosted(self) -> None:
        entity = _entity(EntityType.IBAN, IBAN, 0, 0.7)
        FormatValidationPass().run([entity], _context(IBAN))
        assert entity.validation.status == ValidationStatus.VALID
        assert entity.confidence == pytest.approx(0.84)

    def test_invalid_entity_capped(self) -> None:
        broken = IBAN[:-1] + "8"
        entity = _entity(EntityType.IBAN, broken, 0, 0.7)
        FormatValidationPass().run([entity], _context(broken))
        assert entity.validation.status == ValidationStatus.INVALID
        assert entity.confidence == pytest.approx(0.4)

    def test_boost_capped_at_one(self) -> None:
        entity = _entity(EntityType.IBAN, IBAN, 0, 0.95)
        FormatValidationPass().run([entity], _context(IBAN))
        assert entity.confidence == 1.0

    def test_prefixed_swiss_address_valid(self) -> None:
        text = "Adresse: Bahnhofstrasse 12, CH-8001 Zürich"
        entity = _entity(EntityType.SWISS_ADDRESS, "CH-8001 Zürich", text.index("CH-8001"), 0.7)
        FormatValidationPass().run([entity], _context(text))
        assert entity.validation.status == ValidationStatus.VALID
        assert entity.confidence > 0.7

    def test_no_validator(self) -> None:
        entity = _entity(EntityType.PERSON, "Anna Keller", 0, 0.7)
        FormatValidationPass().run([entity], _context("Anna Keller"))
        assert entity.validation.status == ValidationStatus.UNCHECKED
        assert entity.confidence == 0.7


# -----------------------------------------------------------------------
# Context scoring
# -----------------------------------------------------------------------


class TestColumnHeaders:
    TEXT = "name;iban\nAnna;" + IBAN

    def test_delimiter(self) -> None:
        assert detect_delimiter("a,b;c;d") == ";"
        assert detect_delimiter("no delimiters here") is None

    def test_normalize_header(self) -> None:
        assert normalize_header(' "The Customer Number" ') == "customer"
        assert normalize_header("IBAN:") == "iban"

    def test_header_for_offset(self) -> None:
        assert column_header_for(self.TEXT, self.TEXT.index("CH93")) == "iban"
        assert column_header_for(self.TEXT, self.TEXT.index("Anna")) == "name"

    def test_header_row_has_no_column(self) -> None:
        assert column_header_for(self.TEXT, 2) is None
        assert column_header_for("single line", 3) is None


class TestContextScoring:
    def _pass(self) -> ContextScoringPass:
        return ContextScoringPass(ContextEnhancer(deny_list=DenyList()))

    def test_region_hint(self) -> None:
        runtime = RuntimeContext(region_hints=[RegionHint(0, 20, [EntityType.PERSON])])
        entity = _entity(EntityType.PERSON, "Anna Keller", 0, 0.5)
        self._pass().run([entity], _context("Anna Keller", runtime))
        assert entity.metadata["runtime_hint"] == "region"
        assert entity.confidence == pytest.approx(0.7)

    def test_column_hint(self) -> None:
        text = TestColumnHeaders.TEXT
        runtime = RuntimeContext(column_hints={"IBAN": "IBAN"})
        entity = _entity(EntityType.IBAN, IBAN, text.index("CH93"), 0.5)
        self._pass().run([entity], _context(text, runtime))
        assert entity.metadata["runtime_hint"] == "column"

    def test_low_confidence_flagged(self) -> None:
        entity = _entity(EntityType.PERSON, "Anna Keller", 0, 0.3)
        context = _context("Anna Keller")
        self._pass().run([entity], context)
        assert entity.flagged_for_review
        assert entity.context is not None
        assert context.metadata["context_boosted"] == 0


# -----------------------------------------------------------------------
# Address relationships
# -----------------------------------------------------------------------


class TestAddressRelationship:
    TEXT = "Bahnhofstrasse 12, 8001 Zürich"

    def test_grouped_address_replaces_parts(self) -> None:
        street = _entity(EntityType.ADDRESS, "Bahnhofstrasse 12", 0, 0.7)
        result = AddressRelationshipPass().run([street], _context(self.TEXT))
        assert len(result) == 1
        address = result[0]
        assert address.type == EntityType.SWISS_ADDRESS
        assert (address.start, address.end) == (0, len(self.TEXT))
        assert address.metadata["pattern"] == "SWISS"
        assert address.validation.status == ValidationStatus.VALID
        assert address.confidence > 0.7
        assert len(address.components) >= 3

    def test_unrelated_entities_untouched(self) -> None:
        email = _entity(EntityType.EMAIL, "a@b.ch", 0)
        assert AddressRelationshipPass().run([email], _context("a@b.ch")) == [email]


# -----------------------------------------------------------------------
# Document type
# -----------------------------------------------------------------------


class TestDocumentType:
    def test_zones(self) -> None:
        assert position_zone(0, 100) == "header"
        assert position_zone(50, 100) == "body"
        assert position_zone(90, 100) == "footer"
        assert position_zone(0, 0) == "header"

    def test_labeled_field(self) -> None:
        assert is_labeled_field("Name: Anna Keller", 6)
        assert not is_labeled_field("Anna Keller", 0)

    def test_invoice_footer_boost(self) -> None:
        text = "x " * 100 + IBAN
        entity = _entity(EntityType.IBAN, IBAN, 200, 0.5)
        context = _context(text, RuntimeContext(document_type=DocumentType.INVOICE))
        DocumentTypePass().run([entity], context)
        assert context.document_type == DocumentType.INVOICE
        assert context.metadata["document_classification"]["overridden"] is True
        assert entity.confidence == pytest.approx(0.7)
        assert entity.metadata["document_type_boost"] == pytest.approx(0.2)

    def test_form_labeled_field_boost(self) -> None:
        entity = _entity(EntityType.PERSON, "Anna Keller", 6, 0.5)
        DocumentTypePass().run([entity], _context("Name: Anna Keller", RuntimeContext(document_type="FORM")))
        assert entity.metadata["is_labeled_field"] is True
        assert entity.confidence == pytest.approx(0.65)

    def test_unknown_document_unchanged(self) -> None:
        entity = _entity(EntityType.PERSON, "ipsum", 6, 0.5)
        context = _context("Lorem ipsum dolor sit amet.")
        DocumentTypePass().run([entity], context)
        assert context.document_type == DocumentType.UNKNOWN
        assert entity.confidence == 0.5
        assert "document_type_boost" not in entity.metadata


# -----------------------------------------------------------------------
# Consolidation
# -----------------------------------------------------------------------


class TestConsolidationPass:
    def test_records_statistics(self) -> None:
        text = "Anna Keller, Anna Keller"
        entities = [_entity(EntityType.PERSON, "Anna Keller", 0), _entity(EntityType.PERSON, "Anna Keller", 13)]
        context = _context(text)
        result = ConsolidationPass().run(entities, context)
        assert [e.logical_id for e in result] == ["PERSON_1", "PERSON_1"]
        assert context.metadata["consolidation"]["entities_linked"] == 1
        assert context.metadata["offsets_repaired"] is True
