"""
Recognizer Registry - catalogue and single analyze() entry point for all
pattern recognizers.

Ordering: recognizers run, and their matches are reported, by priority
descending; equal priorities fall back to specificity (country > region >
global) and then registration order.

Failure isolation: an exception inside one recognizer is recorded as a
RecognizerError and never suppresses the matches of the others.

Usage:
    from redact_engine.detectors.registry import RecognizerRegistry
    from redact_engine.detectors.recognizers import create_default_recognizers

    registry = RecognizerRegistry()
    registry.load(create_default_recognizers())
    result = registry.analyze(text, language="de", country="CH")
    for match in result.matches:
        print(match.entity_type, match.text, match.score)
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .context_enhancer import ContextEnhancer, get_context_enhancer
from .deny_list import DenyList, get_deny_list
from .recognizers import (
    PatternRecognizerExecutor,
    RecognizerConfig,
    RecognizerMatch,
    create_default_recognizers,
)

logger = logging.getLogger(__name__)

DEFAULT_LOW_CONFIDENCE_MULTIPLIER = 0.4


class DuplicateNameError(ValueError):
    """A recognizer with the same name is already registered."""


class NotInitializedError(RuntimeError):
    """The registry was queried before any recognizer was registered."""


@dataclass
class RecognizerError:
    recognizer: str
    error: str


@dataclass
class AnalysisResult:
    matches: List[RecognizerMatch] = field(default_factory=list)
    errors: List[RecognizerError] = field(default_factory=list)
    recognizers_used: List[str] = field(default_factory=list)
    analysis_time_ms: float = 0.0


class RecognizerRegistry:
    """
    Holds recognizer executors keyed by unique name.

    Read-mostly: register/configure/reset belong to startup and test setup.
    """

    def __init__(
        self,
        deny_list: Optional[DenyList] = None,
        context_enhancer: Optional[ContextEnhancer] = None,
        low_confidence_multiplier: float = DEFAULT_LOW_CONFIDENCE_MULTIPLIER,
        low_score_entity_names: Optional[Iterable[str]] = None,
    ):
        self.deny_list = deny_list
        self.context_enhancer = context_enhancer
        self.low_confidence_multiplier = low_confidence_multiplier
        self.low_score_entity_names: Set[str] = {n.upper() for n in (low_score_entity_names or [])}
        self._executors: Dict[str, PatternRecognizerExecutor] = {}
        self._registration_index: Dict[str, int] = {}
        self._next_index = 0

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, recognizer):
        """
        Register a recognizer.

        Args:
            recognizer: RecognizerConfig or PatternRecognizerExecutor

        Raises:
            DuplicateNameError: if the name is already registered
        """
        executor = recognizer if isinstance(recognizer, PatternRecognizerExecutor) \
            else PatternRecognizerExecutor(recognizer)
        if executor.name in self._executors:
            raise DuplicateNameError(f"Recognizer already registered: {executor.name}")
        self._executors[executor.name] = executor
        self._registration_index[executor.name] = self._next_index
        self._next_index += 1

    def load(self, configs: Iterable[RecognizerConfig]) -> int:
        """Register a batch of recognizer configs; returns how many were added."""
        count = 0
        for config in configs:
            self.register(config)
            count += 1
        logger.debug(f"Loaded {count} recognizers ({len(self._executors)} total)")
        return count

    def unregister(self, name: str) -> bool:
        if name not in self._executors:
            return False
        del self._executors[name]
        del self._registration_index[name]
        return True

    def configure(
        self,
        low_confidence_multiplier: Optional[float] = None,
        low_score_entity_names: Optional[Iterable[str]] = None,
    ):
        """Update registry-level scoring options."""
        if low_confidence_multiplier is not None:
            self.low_confidence_multiplier = max(0.0, min(1.0, low_confidence_multiplier))
        if low_score_entity_names is not None:
            self.low_score_entity_names = {n.upper() for n in low_score_entity_names}

    def reset(self):
        """Clear all registrations and restore default options (test harnesses only)."""
        self._executors.clear()
        self._registration_index.clear()
        self._next_index = 0
        self.low_confidence_multiplier = DEFAULT_LOW_CONFIDENCE_MULTIPLIER
        self.low_score_entity_names = set()

    # =========================================================================
    # Lookup
    # =========================================================================

    def _ensure_initialized(self):
        if not self._executors:
            raise NotInitializedError(
                "No recognizers registered; call load() or register() before querying the registry"
            )

    def _sort_key(self, executor: PatternRecognizerExecutor):
        config = executor.config
        return -config.priority, config.specificity.rank, self._registration_index[executor.name]

    def _ordered(self) -> List[PatternRecognizerExecutor]:
        return sorted(self._executors.values(), key=self._sort_key)

    def get_all(self) -> List[RecognizerConfig]:
        self._ensure_initialized()
        return [e.config for e in self._ordered()]

    def get(self, name: str) -> Optional[RecognizerConfig]:
        executor = self._executors.get(name)
        return executor.config if executor else None

    def get_by_country(self, country: str) -> List[RecognizerConfig]:
        """Recognizers that explicitly list the country (case-insensitive)."""
        self._ensure_initialized()
        wanted = country.upper()
        return [
            e.config for e in self._ordered()
            if wanted in {c.upper() for c in e.config.supported_countries}
        ]

    def get_by_language(self, language: str) -> List[RecognizerConfig]:
        self._ensure_initialized()
        wanted = language.lower()
        return [
            e.config for e in self._ordered()
            if wanted in {lang.lower() for lang in e.config.supported_languages}
        ]

    def get_by_entity_type(self, entity_type: str) -> List[RecognizerConfig]:
        self._ensure_initialized()
        wanted = str(entity_type).upper()
        return [e.config for e in self._ordered() if wanted in e.config.entity_types]

    def __len__(self):
        return len(self._executors)

    # =========================================================================
    # Analysis
    # =========================================================================

    def analyze(
        self,
        text: str,
        language: Optional[str] = None,
        country: Optional[str] = None,
        low_confidence_multiplier: Optional[float] = None,
        low_score_entity_names: Optional[Iterable[str]] = None,
    ) -> AnalysisResult:
        """
        Run every applicable recognizer over text.

        Args:
            text: Text to analyze
            language: Restrict to recognizers supporting this language
            country: Restrict country-bound recognizers to this country
            low_confidence_multiplier: Per-call override of the registry multiplier
            low_score_entity_names: Per-call override of the down-weighted entity names

        Returns:
            AnalysisResult with matches in priority order, per-recognizer
            errors and timing
        """
        self._ensure_initialized()
        start_time = time.perf_counter()
        result = AnalysisResult()

        multiplier = self.low_confidence_multiplier if low_confidence_multiplier is None \
            else max(0.0, min(1.0, low_confidence_multiplier))
        low_score_names = self.low_score_entity_names if low_score_entity_names is None \
            else {n.upper() for n in low_score_entity_names}

        for executor in self._ordered():
            config = executor.config
            if not config.supports_language(language) or not config.supports_country(country):
                continue
            result.recognizers_used.append(config.name)
            try:
                matches = executor.analyze(text, language, self.deny_list, self.context_enhancer)
            except Exception as e:
                logger.warning(f"Recognizer {config.name} failed: {e}")
                result.errors.append(RecognizerError(config.name, str(e)))
                continue
            for match in matches:
                if match.is_weak_pattern or match.entity_type in low_score_names:
                    match.score = match.score * multiplier
                result.matches.append(match)

        result.analysis_time_ms = (time.perf_counter() - start_time) * 1000
        return result


# Global instance for convenience
_registry: Optional[RecognizerRegistry] = None


def get_registry() -> RecognizerRegistry:
    """Get the global registry, loaded with the built-in recognizers on first use."""
    global _registry
    if _registry is None:
        registry = RecognizerRegistry(deny_list=get_deny_list(), context_enhancer=get_context_enhancer())
        registry.load(create_default_recognizers())
        _registry = registry
    return _registry


def reset_registry():
    """Drop the global registry (test harnesses only)."""
    global _registry
    _registry = None
