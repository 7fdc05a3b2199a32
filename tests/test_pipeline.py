"""Tests for the detection pipeline orchestrator."""

from __future__ import annotations

import pytest

from redact_engine.detection_config import PASS_NAMES, PipelineConfig, PipelineConfigError
from redact_engine.detectors.context_enhancer import reset_context_enhancer
from redact_engine.detectors.deny_list import reset_deny_list
from redact_engine.detectors.entities import (
    DocumentType,
    Entity,
    EntitySource,
    EntityType,
    RuntimeContext,
    ValidationStatus,
)
from redact_engine.detectors.passes import ConsolidationPass, DetectionPass, HighRecallPass
from redact_engine.detectors.pipeline import DetectionPipeline, deduplicate, detect, detect_async
from redact_engine.detectors.recognizers import PatternDefinition, RecognizerConfig
from redact_engine.detectors.registry import RecognizerRegistry, reset_registry

IBAN_TEXT = "Zahlung auf IBAN CH93 0076 2011 6238 5295 7."
IBAN = "CH93 0076 2011 6238 5295 7"
PERSON_TEXT = "Termin mit Anna Keller in Bern."


@pytest.fixture(autouse=True)
def _fresh_globals():
    reset_registry()
    reset_deny_list()
    reset_context_enhancer()
    yield
    reset_registry()
    reset_deny_list()
    reset_context_enhancer()


def _entity(entity_type: EntityType, text: str, start: int, confidence: float) -> Entity:
    return Entity(type=entity_type, text=text, start=start, end=start + len(text), confidence=confidence)


def _classifier(text):
    return [
        {"label": "B-PER", "word": "Anna", "start": 11, "end": 15, "score": 0.9},
        {"label": "I-PER", "word": "Keller", "start": 16, "end": 22, "score": 0.9},
    ]


class StaticPass(DetectionPass):
    name = "static"

    def __init__(self, entities):
        self.entities = entities

    def run(self, entities, context):
        return entities + [e.copy() for e in self.entities]


class RaisingPass(DetectionPass):
    name = "raising"

    def run(self, entities, context):
        raise ValueError("broken")


# -----------------------------------------------------------------------
# End-to-end detection
# -----------------------------------------------------------------------


class TestDetect:
    def test_iban_detected_and_validated(self) -> None:
        result = detect(IBAN_TEXT)
        ibans = [e for e in result.entities if e.type == EntityType.IBAN]
        assert len(ibans) == 1
        iban = ibans[0]
        assert iban.text == IBAN
        assert IBAN_TEXT[iban.start:iban.end] == IBAN
        assert iban.validation.status == ValidationStatus.VALID
        assert iban.selected
        assert iban.logical_id == "IBAN_1"

    def test_every_pass_reported(self) -> None:
        result = detect(IBAN_TEXT)
        assert [r.pass_name for r in result.metadata.pass_results] == list(PASS_NAMES)
        assert result.metadata.errors == []
        assert result.metadata.entity_counts["IBAN"] == 1

    def test_blank_text(self) -> None:
        result = detect("   \n ")
        assert result.entities == []
        assert result.metadata.pass_results == []

    def test_document_id_and_language(self) -> None:
        result = detect(IBAN_TEXT, document_id="doc-42", language="FR")
        assert result.document_id == "doc-42"
        assert result.language == "fr"

    def test_offsets_refer_to_original_text(self) -> None:
        text = "Mail: jean (at) example (dot) ch"
        emails = [e for e in detect(text).entities if e.type == EntityType.EMAIL]
        assert len(emails) == 1
        assert text[emails[0].start:emails[0].end] == "jean (at) example (dot) ch"
        assert emails[0].text == "jean (at) example (dot) ch"

    def test_disabled_pass_skipped(self) -> None:
        config = PipelineConfig(passes={"high_recall": False})
        result = detect(IBAN_TEXT, config=config)
        assert result.entities == []
        assert "high_recall" not in [r.pass_name for r in result.metadata.pass_results]

    def test_runtime_document_type_override(self) -> None:
        result = detect(IBAN_TEXT, runtime=RuntimeContext(document_type="INVOICE"))
        assert result.document_type == DocumentType.INVOICE
        assert result.metadata.document_classification["overridden"] is True

    def test_ml_classifier(self) -> None:
        result = detect(PERSON_TEXT, ml_classifier=_classifier)
        people = [e for e in result.entities if e.type == EntityType.PERSON]
        assert [(p.text, p.source) for p in people] == [("Anna Keller", EntitySource.ML)]

    def test_result_serializes(self) -> None:
        data = detect(IBAN_TEXT).to_dict()
        assert data["document_type"] in {t.value for t in DocumentType}
        assert any(e["type"] == "IBAN" for e in data["entities"])


class TestDetectAsync:
    @pytest.mark.asyncio
    async def test_async_classifier(self) -> None:
        async def classify(text):
            return _classifier(text)

        result = await detect_async(PERSON_TEXT, ml_classifier=classify)
        assert any(e.type == EntityType.PERSON and e.text == "Anna Keller" for e in result.entities)

    @pytest.mark.asyncio
    async def test_async_without_classifier(self) -> None:
        result = await DetectionPipeline().process_async(IBAN_TEXT)
        assert any(e.type == EntityType.IBAN for e in result.entities)


# -----------------------------------------------------------------------
# Pass management and isolation
# -----------------------------------------------------------------------


class TestPassManagement:
    def test_default_order(self) -> None:
        assert [p.name for p in DetectionPipeline().get_passes()] == list(PASS_NAMES)

    def test_duplicate_pass_rejected(self) -> None:
        pipeline = DetectionPipeline()
        with pytest.raises(PipelineConfigError):
            pipeline.register_pass(ConsolidationPass())

    def test_remove_pass(self) -> None:
        pipeline = DetectionPipeline()
        removed = pipeline.remove_pass("document_type")
        assert removed.name == "document_type"
        assert "document_type" not in [p.name for p in pipeline.get_passes()]
        with pytest.raises(PipelineConfigError):
            pipeline.remove_pass("document_type")

    def test_register_at_index(self) -> None:
        pipeline = DetectionPipeline()
        pipeline.register_pass(StaticPass([]), index=0)
        assert pipeline.get_passes()[0].name == "static"

    def test_configure_rejects_unknown_keys(self) -> None:
        with pytest.raises(PipelineConfigError):
            DetectionPipeline().configure(no_such_setting=1)


class TestPassIsolation:
    """A failing pass never takes the document down with it."""

    def test_failure_recorded_and_entities_kept(self) -> None:
        entity = _entity(EntityType.PERSON, "Anna Keller", 11, 0.9)
        pipeline = DetectionPipeline(passes=[StaticPass([entity]), RaisingPass()])
        result = pipeline.process(PERSON_TEXT)
        assert [e.text for e in result.entities] == ["Anna Keller"]
        failed = next(r for r in result.metadata.pass_results if r.pass_name == "raising")
        assert failed.error == "ValueError: broken"
        assert failed.entities_added == failed.entities_removed == 0
        assert result.metadata.errors == ["raising: ValueError: broken"]

    def test_failure_in_default_pipeline(self) -> None:
        pipeline = DetectionPipeline()
        pipeline.register_pass(RaisingPass(), index=3)
        result = pipeline.process(IBAN_TEXT)
        assert any(e.type == EntityType.IBAN for e in result.entities)
        assert "raising: ValueError: broken" in result.metadata.errors

    def test_pass_statistics(self) -> None:
        entities = [_entity(EntityType.PERSON, "Anna Keller", 11, 0.9)]
        result = DetectionPipeline(passes=[StaticPass(entities)]).process(PERSON_TEXT)
        stats = result.metadata.pass_results[0]
        assert (stats.entities_added, stats.entities_modified, stats.entities_removed) == (1, 0, 0)
        assert stats.duration_ms >= 0


# -----------------------------------------------------------------------
# Selection
# -----------------------------------------------------------------------


class TestSelection:
    TEXT = "Anna Keller und Hans Meier"

    def _pipeline(self, **config) -> DetectionPipeline:
        entities = [
            _entity(EntityType.PERSON, "Anna Keller", 0, 0.5),
            _entity(EntityType.PERSON, "Hans Meier", 16, 0.9),
        ]
        return DetectionPipeline(config=PipelineConfig(**config), passes=[StaticPass(entities)])

    def test_below_threshold_flagged(self) -> None:
        result = self._pipeline().process(self.TEXT)
        low, high = result.entities
        assert (low.selected, low.flagged_for_review) == (False, True)
        assert (high.selected, high.flagged_for_review) == (True, False)
        assert result.metadata.flagged_count == 1

    def test_threshold_configurable(self) -> None:
        result = self._pipeline(auto_anonymize_threshold=0.4).process(self.TEXT)
        assert all(e.selected for e in result.entities)


class TestSharedRegistry:
    """Pipelines sharing one registry keep their own scoring options."""

    def _registry(self) -> RecognizerRegistry:
        registry = RecognizerRegistry()
        registry.register(RecognizerConfig(
            name="WeakNumber",
            patterns=[PatternDefinition("weak_number", r"\b\d{4}\b", 0.5, "NUMBER", is_weak_pattern=True)],
        ))
        return registry

    def _pipeline(self, registry: RecognizerRegistry, multiplier: float) -> DetectionPipeline:
        return DetectionPipeline(
            config=PipelineConfig(low_confidence_multiplier=multiplier),
            registry=registry,
            passes=[HighRecallPass(registry)],
        )

    def test_multiplier_per_pipeline(self) -> None:
        registry = self._registry()
        strict = self._pipeline(registry, 0.4)
        lenient = self._pipeline(registry, 1.0)

        assert strict.process("Code 1234", language="de").entities[0].confidence == pytest.approx(0.2)
        assert lenient.process("Code 1234", language="de").entities[0].confidence == pytest.approx(0.5)
        assert strict.process("Code 1234", language="de").entities[0].confidence == pytest.approx(0.2)

    def test_configure_does_not_touch_registry(self) -> None:
        registry = self._registry()
        strict = self._pipeline(registry, 0.4)
        lenient = self._pipeline(registry, 0.4)
        lenient.configure(low_confidence_multiplier=1.0, low_score_entity_names={"DATE"})

        assert registry.low_confidence_multiplier == 0.4
        assert registry.low_score_entity_names == set()
        assert strict.process("Code 1234", language="de").entities[0].confidence == pytest.approx(0.2)
        assert lenient.process("Code 1234", language="de").entities[0].confidence == pytest.approx(0.5)


class TestDeduplicate:
    def test_higher_confidence_wins(self) -> None:
        weak = _entity(EntityType.DATE, "12.03.2024", 0, 0.4)
        strong = _entity(EntityType.PHONE, "12.03.20", 0, 0.8)
        assert deduplicate([weak, strong]) == [strong]

    def test_disjoint_kept_in_order(self) -> None:
        first = _entity(EntityType.EMAIL, "a@b.ch", 0, 0.5)
        second = _entity(EntityType.EMAIL, "c@d.ch", 10, 0.5)
        assert deduplicate([second, first]) == [first, second]
