"""
Detection pipeline orchestrator.

Runs the detection passes in their fixed order over one document, times
each pass, isolates failures and assembles the DetectionResult.

A pass that raises is logged, recorded with zero entities added, modified
or removed, and the pipeline continues with the entity list from before
that pass. Only invalid configuration raises to the caller.

Usage:
    from redact_engine.detectors.pipeline import DetectionPipeline, detect

    result = detect("IBAN: CH93 0076 2011 6238 5295 7")
    for entity in result.entities:
        print(entity.type.value, entity.text, entity.confidence)

    pipeline = DetectionPipeline(ml_adapter=MLAdapter(model.classify))
    result = await pipeline.process_async(text, runtime=RuntimeContext(document_type="INVOICE"))
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..detection_config import PipelineConfig, PipelineConfigError
from ..preprocessing.text_normalizer import normalize_with_index_map
from .context_enhancer import ContextEnhancer
from .deny_list import DenyList
from .document_classifier import detect_language
from .entities import (
    DetectionMetadata,
    DetectionResult,
    Entity,
    PassResult,
    PipelineContext,
    RuntimeContext,
)
from .ml_adapter import MLAdapter
from .passes import DetectionPass, create_default_passes, repair_context_offsets
from .registry import RecognizerRegistry

logger = logging.getLogger(__name__)


def _signature(entity: Entity) -> Tuple:
    """Fields whose change counts as a modification."""
    return (
        entity.type,
        entity.start,
        entity.end,
        round(entity.confidence, 6),
        entity.source,
        entity.validation.status if entity.validation else None,
        entity.flagged_for_review,
        entity.logical_id,
    )


def deduplicate(entities: List[Entity]) -> List[Entity]:
    """
    Remove overlapping entities.

    Sorted by start (longer spans first); of two overlapping entities the
    one with higher confidence stays.
    """
    ordered = sorted(entities, key=lambda e: (e.start, -e.length, -e.confidence))
    kept: List[Entity] = []
    for entity in ordered:
        if kept and kept[-1].overlaps(entity):
            if entity.confidence > kept[-1].confidence:
                kept[-1] = entity
            continue
        kept.append(entity)
    return kept


class DetectionPipeline:
    """
    Ordered multi-pass detector for one document at a time.

    Instances share the read-mostly recognizer registry, deny list and
    context vocabulary; everything per document lives in a PipelineContext.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        registry: Optional[RecognizerRegistry] = None,
        deny_list: Optional[DenyList] = None,
        enhancer: Optional[ContextEnhancer] = None,
        ml_adapter: Optional[MLAdapter] = None,
        passes: Optional[List[DetectionPass]] = None,
    ):
        self.config = config or PipelineConfig()
        self.registry = registry
        self.ml_adapter = ml_adapter
        if ml_adapter is not None:
            ml_adapter.confidence_threshold = self.config.ml_confidence_threshold
        self._passes: List[DetectionPass] = []
        for detection_pass in passes if passes is not None else create_default_passes(
                registry, deny_list, enhancer, ml_adapter):
            self.register_pass(detection_pass)

    # =========================================================================
    # Configuration
    # =========================================================================

    def register_pass(self, detection_pass: DetectionPass, index: Optional[int] = None):
        """
        Add a pass (appended unless index is given).

        Raises:
            PipelineConfigError: if a pass with the same name is registered
        """
        if any(p.name == detection_pass.name for p in self._passes):
            raise PipelineConfigError(f"Pass already registered: {detection_pass.name}")
        if index is None:
            self._passes.append(detection_pass)
        else:
            self._passes.insert(index, detection_pass)

    def remove_pass(self, name: str) -> DetectionPass:
        for i, detection_pass in enumerate(self._passes):
            if detection_pass.name == name:
                return self._passes.pop(i)
        raise PipelineConfigError(f"Unknown pass: {name}")

    def get_passes(self) -> List[DetectionPass]:
        return list(self._passes)

    def configure(self, **overrides):
        """Replace config fields (clamped); unknown keys raise PipelineConfigError."""
        self.config = self.config.with_overrides(**overrides)
        if self.ml_adapter is not None:
            self.ml_adapter.confidence_threshold = self.config.ml_confidence_threshold

    # =========================================================================
    # Processing
    # =========================================================================

    def process(
        self,
        text: str,
        document_id: Optional[str] = None,
        language: Optional[str] = None,
        runtime: Optional[RuntimeContext] = None,
    ) -> DetectionResult:
        """
        Detect entities in one document.

        Args:
            text: Document text (offsets in the result refer to this text)
            document_id: Stable id for the document (generated if omitted)
            language: de/fr/en; detected from the text if omitted
            runtime: Per-call hints (document type override, column/region hints)

        Returns:
            DetectionResult, also when individual passes failed
        """
        context = self._prepare(text, document_id, language, runtime)
        return self._execute(context)

    async def process_async(
        self,
        text: str,
        document_id: Optional[str] = None,
        language: Optional[str] = None,
        runtime: Optional[RuntimeContext] = None,
    ) -> DetectionResult:
        """As process(), awaiting the ML collaborator once before the passes run."""
        context = self._prepare(text, document_id, language, runtime)
        if self.ml_adapter is not None and context.text.strip() and self.config.is_pass_enabled("high_recall"):
            context.metadata["ml_entities"] = await self.ml_adapter.detect_async(
                context.text, self.config.ml_confidence_threshold
            )
        return self._execute(context)

    def _prepare(self, text: str, document_id: Optional[str], language: Optional[str],
                 runtime: Optional[RuntimeContext]) -> PipelineContext:
        if self.config.enable_normalization:
            normalized, index_map = normalize_with_index_map(text)
        else:
            normalized, index_map = text, []

        context = PipelineContext(
            text=normalized,
            original_text=text,
            config=self.config,
            runtime=runtime,
            language=(language or detect_language(normalized)).lower(),
        )
        if document_id:
            context.document_id = document_id
        if runtime is not None and runtime.document_type is not None:
            context.document_type = runtime.document_type
        context.metadata["index_map"] = index_map
        return context

    def _execute(self, context: PipelineContext) -> DetectionResult:
        entities: List[Entity] = []
        if context.text.strip():
            for detection_pass in self._passes:
                if not self.config.is_pass_enabled(detection_pass.name):
                    logger.debug(f"Pass {detection_pass.name} disabled")
                    continue
                entities = self._run_pass(detection_pass, entities, context)
            entities = repair_context_offsets(entities, context)

        entities = deduplicate(entities)
        threshold = self.config.auto_anonymize_threshold
        for entity in entities:
            entity.selected = entity.confidence >= threshold
            if not entity.selected:
                entity.flagged_for_review = True

        result = DetectionResult(
            entities=entities,
            document_type=context.document_type,
            language=context.language,
            document_id=context.document_id,
            metadata=self._metadata(entities, context),
        )
        logger.debug(
            f"Document {context.document_id}: {len(entities)} entities, "
            f"{result.metadata.flagged_count} flagged, {result.metadata.total_duration_ms:.1f}ms"
        )
        return result

    def _run_pass(self, detection_pass: DetectionPass, entities: List[Entity],
                  context: PipelineContext) -> List[Entity]:
        before = {e.id: _signature(e) for e in entities}
        working = [e.copy() for e in entities]
        start_time = time.perf_counter()
        try:
            output = detection_pass.run(working, context)
        except Exception as e:
            logger.exception(f"Pass {detection_pass.name} failed; continuing with previous entities")
            context.pass_results[detection_pass.name] = PassResult(
                pass_name=detection_pass.name,
                duration_ms=(time.perf_counter() - start_time) * 1000,
                error=f"{type(e).__name__}: {e}",
            )
            return entities

        after = {e.id: _signature(e) for e in output}
        context.pass_results[detection_pass.name] = PassResult(
            pass_name=detection_pass.name,
            entities_added=sum(1 for entity_id in after if entity_id not in before),
            entities_modified=sum(1 for entity_id, sig in after.items()
                                  if entity_id in before and before[entity_id] != sig),
            entities_removed=sum(1 for entity_id in before if entity_id not in after),
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        return output

    @staticmethod
    def _metadata(entities: List[Entity], context: PipelineContext) -> DetectionMetadata:
        counts: Dict[str, int] = {}
        for entity in entities:
            counts[entity.type.value] = counts.get(entity.type.value, 0) + 1

        errors = [f"{r.pass_name}: {r.error}" for r in context.pass_results.values() if r.error]
        errors.extend(context.metadata.get("recognizer_errors", []))

        return DetectionMetadata(
            total_duration_ms=(time.perf_counter() - context.start_time) * 1000,
            pass_results=list(context.pass_results.values()),
            entity_counts=counts,
            flagged_count=sum(1 for e in entities if e.flagged_for_review),
            deny_list_filtered=dict(context.metadata.get("deny_list_filtered", {})),
            context_boosted=context.metadata.get("context_boosted", 0),
            document_classification=context.metadata.get("document_classification"),
            errors=errors,
        )


def _pipeline_for(config: Optional[PipelineConfig], ml_classifier: Optional[Callable[[str], Any]]):
    config = config or PipelineConfig()
    adapter = MLAdapter(ml_classifier, config.ml_confidence_threshold) if ml_classifier is not None else None
    return DetectionPipeline(config=config, ml_adapter=adapter)


def detect(
    text: str,
    config: Optional[PipelineConfig] = None,
    document_id: Optional[str] = None,
    language: Optional[str] = None,
    runtime: Optional[RuntimeContext] = None,
    ml_classifier: Optional[Callable[[str], Any]] = None,
) -> DetectionResult:
    """Run the default pipeline over text."""
    return _pipeline_for(config, ml_classifier).process(text, document_id, language, runtime)


async def detect_async(
    text: str,
    config: Optional[PipelineConfig] = None,
    document_id: Optional[str] = None,
    language: Optional[str] = None,
    runtime: Optional[RuntimeContext] = None,
    ml_classifier: Optional[Callable[[str], Any]] = None,
) -> DetectionResult:
    return await _pipeline_for(config, ml_classifier).process_async(text, document_id, language, runtime)

