#!/usr/bin/env python3
"""
Adapter for an external token-classification model.

The model is a black box honoring one contract:

    classify(text) -> [{"label", "text", "start", "end", "score"}, ...]

(HuggingFace-style "entity"/"entity_group" and "word" keys are accepted
too.) The adapter strips BIO prefixes, merges I- continuations into the
preceding span, filters by score and maps model labels onto EntityType.
Any failure or empty output yields no entities; rule-based detection
carries on alone.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from .entities import Entity, EntitySource, EntityType

logger = logging.getLogger(__name__)

# Model label -> entity type (None = dropped)
ML_LABEL_MAPPING: Dict[str, Optional[EntityType]] = {
    "PER": EntityType.PERSON,
    "PERSON": EntityType.PERSON,
    "ORG": EntityType.ORGANIZATION,
    "ORGANIZATION": EntityType.ORGANIZATION,
    "LOC": EntityType.LOCATION,
    "LOCATION": EntityType.LOCATION,
    "GPE": EntityType.LOCATION,
    "DATE": EntityType.DATE,
    "PHONE": EntityType.PHONE,
    "EMAIL": EntityType.EMAIL,
    "ADDRESS": EntityType.ADDRESS,
    "MISC": None,
}

DEFAULT_MAX_GAP = 5
DEFAULT_MIN_LENGTH = 2


@dataclass
class MLToken:
    label: str
    start: int
    end: int
    score: float
    text: str = ""


@dataclass
class MergedSpan:
    """Consecutive tokens of one entity type folded into a single span."""
    label: str
    start: int
    end: int
    text: str
    score: float
    token_count: int = 1
    scores: List[float] = field(default_factory=list, repr=False)


def strip_bio_prefix(label: str) -> str:
    if label[:2] in ("B-", "I-"):
        return label[2:]
    return label


def map_ml_label(label: str) -> Optional[EntityType]:
    """Map a raw model label (with or without BIO prefix) to an EntityType."""
    return ML_LABEL_MAPPING.get(strip_bio_prefix(label).upper())


def normalize_prediction(raw: Dict[str, Any]) -> Optional[MLToken]:
    """Accept the documented keys plus HuggingFace aliases."""
    label = raw.get("label") or raw.get("entity_group") or raw.get("entity")
    if not label:
        return None
    try:
        start = int(raw["start"])
        end = int(raw["end"])
        score = float(raw.get("score", 0.0))
    except (KeyError, TypeError, ValueError):
        return None
    if end <= start:
        return None
    return MLToken(label=str(label), start=start, end=end, score=score,
                   text=str(raw.get("text") or raw.get("word") or ""))


def merge_subword_tokens(
    tokens: Iterable[MLToken],
    text: str,
    max_gap: int = DEFAULT_MAX_GAP,
    min_length: int = DEFAULT_MIN_LENGTH,
) -> List[MergedSpan]:
    """
    Merge B-/I- token runs into entity spans.

    An I- token extends the current span when it has the same type and
    starts at most `max_gap` characters after the current end. Scores are
    averaged; the span text is re-sliced from the document.
    """
    ordered = sorted((t for t in tokens if t.label not in ("O", "")), key=lambda t: t.start)
    merged: List[MergedSpan] = []
    current: Optional[MergedSpan] = None

    for token in ordered:
        entity_label = strip_bio_prefix(token.label)
        if (current is not None and token.label.startswith("I-")
                and current.label == entity_label and token.start - current.end <= max_gap):
            current.end = max(current.end, token.end)
            current.scores.append(token.score)
            current.token_count += 1
            continue
        if current is not None:
            merged.append(current)
        current = MergedSpan(label=entity_label, start=token.start, end=token.end, text="",
                             score=token.score, scores=[token.score])
    if current is not None:
        merged.append(current)

    results = []
    for span in merged:
        span.score = sum(span.scores) / len(span.scores)
        span.text = text[span.start:span.end]
        if len(span.text.strip()) >= min_length:
            results.append(span)
    return results


class MLAdapter:
    """
    Wraps a classifier callable (sync or async) behind the token contract.

    Usage:
        adapter = MLAdapter(my_model.classify, confidence_threshold=0.3)
        entities = adapter.detect(text)
    """

    def __init__(
        self,
        classifier: Optional[Callable[[str], Any]] = None,
        confidence_threshold: float = 0.3,
        max_gap: int = DEFAULT_MAX_GAP,
        min_length: int = DEFAULT_MIN_LENGTH,
    ):
        self.classifier = classifier
        self.confidence_threshold = confidence_threshold
        self.max_gap = max_gap
        self.min_length = min_length

    @property
    def is_available(self) -> bool:
        return self.classifier is not None

    def to_entities(self, predictions: Any, text: str, threshold: Optional[float] = None) -> List[Entity]:
        """Convert raw predictions to ML-sourced entities."""
        if not predictions:
            return []
        threshold = self.confidence_threshold if threshold is None else threshold
        tokens = [t for t in (normalize_prediction(p) for p in predictions if isinstance(p, dict)) if t]
        entities = []
        for span in merge_subword_tokens(tokens, text, self.max_gap, self.min_length):
            if span.score < threshold:
                continue
            entity_type = map_ml_label(span.label)
            if entity_type is None:
                continue
            entities.append(Entity(
                type=entity_type,
                text=span.text,
                start=span.start,
                end=span.end,
                confidence=max(0.0, min(1.0, span.score)),
                source=EntitySource.ML,
                metadata={"ml_label": span.label, "ml_score": span.score, "token_count": span.token_count},
            ))
        return entities

    def detect(self, text: str, threshold: Optional[float] = None) -> List[Entity]:
        """Run the classifier synchronously; failures yield []."""
        if self.classifier is None or not text:
            return []
        try:
            predictions = self.classifier(text)
            if inspect.isawaitable(predictions):
                # Async classifier called from sync code
                predictions = asyncio.run(predictions)
        except Exception as e:
            logger.warning(f"ML classification failed, continuing with rules only: {e}")
            return []
        return self._safe_convert(predictions, text, threshold)

    async def detect_async(self, text: str, threshold: Optional[float] = None) -> List[Entity]:
        """Await the classifier once; sync classifiers run in a worker thread."""
        if self.classifier is None or not text:
            return []
        try:
            if inspect.iscoroutinefunction(self.classifier):
                predictions = await self.classifier(text)
            else:
                predictions = await asyncio.to_thread(self.classifier, text)
                if inspect.isawaitable(predictions):
                    predictions = await predictions
        except Exception as e:
            logger.warning(f"ML classification failed, continuing with rules only: {e}")
            return []
        return self._safe_convert(predictions, text, threshold)

    def _safe_convert(self, predictions: Any, text: str, threshold: Optional[float]) -> List[Entity]:
        if not predictions:
            logger.debug("ML classifier returned no predictions")
            return []
        try:
            return self.to_entities(predictions, text, threshold)
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed ML output: {e}")
            return []
