"""
Context Enhancer - adjusts entity confidence from nearby vocabulary.

Looks for weighted context words in a window before and after an entity.
Labels usually precede values ("Name: John"), so preceding matches weigh
more than following ones. Positive words raise confidence by up to
`similarity_factor` and floor it at `min_score_with_context`; negative words
(e.g. a legal-form suffix next to a person name) lower it. No context found
leaves confidence unchanged.

Words are matched on word boundaries, so "tel" does not fire inside "hotel".

Usage:
    from redact_engine.detectors.context_enhancer import get_context_enhancer

    enhancer = get_context_enhancer()
    details = enhancer.enhance_with_details(entity, text, language="de")
    details.confidence, details.context_found
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Pattern

from presidio_analyzer import RecognizerResult
from presidio_analyzer.context_aware_enhancers import ContextAwareEnhancer

from ..data.context_words import ContextWord, get_all_context_words, get_context_words, pos
from .deny_list import DenyList, get_deny_list
from .entities import Entity

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 100

# Entity-specific windows: names sit further from their labels than bank codes
ENTITY_WINDOW_SIZES: Dict[str, int] = {
    "PERSON_NAME": 150,
    "PERSON": 150,
    "IBAN": 40,
    "EMAIL": 50,
    "PHONE": 60,
    "SWISS_AVS": 60,
}


@dataclass
class ContextEnhancerConfig:
    window_size: int = DEFAULT_WINDOW_SIZE
    similarity_factor: float = 0.35
    min_score_with_context: float = 0.4
    preceding_weight: float = 1.2
    following_weight: float = 0.8
    entity_window_sizes: Dict[str, int] = field(default_factory=lambda: dict(ENTITY_WINDOW_SIZES))


@dataclass
class ContextEnhancementResult:
    confidence: float
    original_confidence: float
    context_found: List[str] = field(default_factory=list)
    boost_applied: float = 0.0
    skipped: bool = False


@lru_cache(maxsize=4096)
def _word_pattern(word: str) -> Pattern:
    return re.compile(r'(?<!\w)' + re.escape(word.lower()) + r'(?!\w)')


def contains_word(window: str, word: str) -> bool:
    """Whole-word, case-insensitive search (window must already be lowercase)."""
    return _word_pattern(word).search(window) is not None


class ContextEnhancer(ContextAwareEnhancer):
    """
    Window-based context enhancer.

    Implements presidio's ContextAwareEnhancer interface so it can rescore
    RecognizerResults, and works on pipeline Entities directly via
    enhance() / enhance_with_details().
    """

    def __init__(self, config: Optional[ContextEnhancerConfig] = None, deny_list: Optional[DenyList] = None):
        self.config = config or ContextEnhancerConfig()
        super().__init__(
            context_similarity_factor=self.config.similarity_factor,
            min_score_with_context_similarity=self.config.min_score_with_context,
            context_prefix_count=self.config.window_size,
            context_suffix_count=self.config.window_size,
        )
        self._deny_list = deny_list

    @property
    def deny_list(self) -> DenyList:
        return self._deny_list if self._deny_list is not None else get_deny_list()

    def window_size_for(self, entity_type: str) -> int:
        return self.config.entity_window_sizes.get(str(entity_type).upper(), self.config.window_size)

    def words_for(self, entity_type: str, language: Optional[str] = None) -> List[ContextWord]:
        if language:
            return get_context_words(entity_type, language)
        return get_all_context_words(entity_type)

    def score(
        self,
        confidence: float,
        entity_type: str,
        start: int,
        end: int,
        text: str,
        words: Iterable[ContextWord],
        window_size: Optional[int] = None,
    ) -> ContextEnhancementResult:
        """
        Core scoring on a raw span.

        Args:
            confidence: Current confidence (0-1)
            entity_type: Entity type name, selects the default window size
            start: Span start offset in text
            end: Span end offset in text
            text: Full document text
            words: Weighted context words to look for
            window_size: Override the type's window size

        Returns:
            ContextEnhancementResult with the adjusted confidence
        """
        words = list(words)
        if not words:
            return ContextEnhancementResult(confidence, confidence)

        size = window_size if window_size is not None else self.window_size_for(entity_type)
        before = text[max(0, start - size):start].lower()
        after = text[end:end + size].lower()

        cfg = self.config
        positive_total = 0.0
        negative_total = 0.0
        found: List[str] = []

        for context_word in words:
            contribution = 0.0
            if contains_word(before, context_word.word):
                contribution += context_word.weight * cfg.preceding_weight
            if contains_word(after, context_word.word):
                contribution += context_word.weight * cfg.following_weight
            if contribution == 0.0:
                continue
            contribution = min(contribution, context_word.weight * 2)
            found.append(context_word.word)
            if context_word.is_positive:
                positive_total += contribution
            else:
                negative_total += contribution

        if not found:
            return ContextEnhancementResult(confidence, confidence)

        max_position_weight = max(cfg.preceding_weight, cfg.following_weight)
        positive_boost = min(positive_total / max_position_weight * cfg.similarity_factor, cfg.similarity_factor)
        negative_boost = min(negative_total / max_position_weight * cfg.similarity_factor, cfg.similarity_factor)
        net = positive_boost - negative_boost

        new_confidence = confidence + net
        if positive_boost > 0 and net > 0:
            new_confidence = max(new_confidence, cfg.min_score_with_context)
        new_confidence = max(0.0, min(1.0, new_confidence))

        return ContextEnhancementResult(
            confidence=new_confidence,
            original_confidence=confidence,
            context_found=found,
            boost_applied=new_confidence - confidence,
        )

    def enhance_with_details(
        self,
        entity: Entity,
        text: str,
        language: Optional[str] = None,
        extra_words: Optional[Iterable[ContextWord]] = None,
    ) -> ContextEnhancementResult:
        """
        Score one entity against its type's context words.

        Denied entities are skipped and returned unchanged.
        """
        entity_type = entity.type.value
        if self.deny_list.is_denied(entity.text, entity_type, language):
            return ContextEnhancementResult(entity.confidence, entity.confidence, skipped=True)

        words = self.words_for(entity_type, language)
        if extra_words:
            words = words + list(extra_words)
        return self.score(entity.confidence, entity_type, entity.start, entity.end, text, words)

    def enhance(self, entity: Entity, text: str, language: Optional[str] = None,
                extra_words: Optional[Iterable[ContextWord]] = None) -> float:
        """Return the context-adjusted confidence for an entity."""
        return self.enhance_with_details(entity, text, language, extra_words).confidence

    def enhance_using_context(
        self,
        text: str,
        raw_results: List[RecognizerResult],
        nlp_artifacts=None,
        recognizers=None,
        context: Optional[List[str]] = None,
    ) -> List[RecognizerResult]:
        """
        Rescore presidio results in place.

        Args:
            text: Analyzed text
            raw_results: Results from a recognizer
            nlp_artifacts: Unused, scoring is character-window based
            recognizers: Unused
            context: Extra positive context words

        Returns:
            The same result list with adjusted scores
        """
        extra = [pos(word) for word in (context or [])]
        for result in raw_results:
            words = self.words_for(result.entity_type) + extra
            details = self.score(result.score, result.entity_type, result.start, result.end, text, words)
            if details.context_found:
                result.score = details.confidence
                if result.recognition_metadata is None:
                    result.recognition_metadata = {}
                result.recognition_metadata[RecognizerResult.IS_SCORE_ENHANCED_BY_CONTEXT_KEY] = True
                if result.analysis_explanation is not None:
                    result.analysis_explanation.set_supportive_context_word(details.context_found[0])
                    result.analysis_explanation.set_improved_score(details.confidence)
        return raw_results


# Global instance for convenience
_enhancer: Optional[ContextEnhancer] = None


def get_context_enhancer() -> ContextEnhancer:
    """Get the global context enhancer instance."""
    global _enhancer
    if _enhancer is None:
        _enhancer = ContextEnhancer()
    return _enhancer


def reset_context_enhancer():
    """Drop the global context enhancer (test harnesses only)."""
    global _enhancer
    _enhancer = None
