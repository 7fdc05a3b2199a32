"""Tests for context-word rescoring and context factor analysis."""

from __future__ import annotations

import pytest

from redact_engine.data.context_words import get_context_words, neg, pos
from redact_engine.detectors.context_enhancer import ContextEnhancer, contains_word
from redact_engine.detectors.context_scoring import ContextScorer
from redact_engine.detectors.deny_list import DenyList
from redact_engine.detectors.entities import Entity, EntityType

IBAN_TEXT = "IBAN: CH93 0076 2011 6238 5295 7"
IBAN_START = IBAN_TEXT.index("CH93")
IBAN_END = len(IBAN_TEXT)


@pytest.fixture()
def enhancer() -> ContextEnhancer:
    return ContextEnhancer(deny_list=DenyList())


# -----------------------------------------------------------------------
# Word matching
# -----------------------------------------------------------------------


class TestContainsWord:
    def test_whole_word(self) -> None:
        assert contains_word("tel: 044 123 45 67", "tel")

    def test_no_match_inside_word(self) -> None:
        assert not contains_word("hotel zürich", "tel")

    def test_phrase(self) -> None:
        assert contains_word("full name: hans", "full name")


# -----------------------------------------------------------------------
# Scoring
# -----------------------------------------------------------------------


class TestScore:
    """Confidence adjustments from weighted context words."""

    def test_no_words_leaves_confidence(self, enhancer: ContextEnhancer) -> None:
        result = enhancer.score(0.5, "IBAN", IBAN_START, IBAN_END, IBAN_TEXT, [])
        assert result.confidence == 0.5
        assert result.context_found == []

    def test_words_absent_leaves_confidence(self, enhancer: ContextEnhancer) -> None:
        result = enhancer.score(0.5, "IBAN", IBAN_START, IBAN_END, IBAN_TEXT, [pos("konto")])
        assert result.confidence == 0.5
        assert result.boost_applied == 0.0

    def test_preceding_positive_word_boosts(self, enhancer: ContextEnhancer) -> None:
        result = enhancer.score(0.5, "IBAN", IBAN_START, IBAN_END, IBAN_TEXT, [pos("iban")])
        assert result.confidence == pytest.approx(0.85)
        assert result.context_found == ["iban"]

    def test_positive_words_never_lower_confidence(self, enhancer: ContextEnhancer) -> None:
        for start_confidence in (0.0, 0.2, 0.5, 0.9, 1.0):
            result = enhancer.score(start_confidence, "IBAN", IBAN_START, IBAN_END, IBAN_TEXT,
                                    [pos("iban", 0.1)])
            assert result.confidence >= start_confidence

    def test_floor_with_positive_context(self, enhancer: ContextEnhancer) -> None:
        result = enhancer.score(0.01, "IBAN", IBAN_START, IBAN_END, IBAN_TEXT, [pos("iban", 0.1)])
        assert result.confidence == pytest.approx(0.4)

    def test_negative_word_lowers(self, enhancer: ContextEnhancer) -> None:
        text = "Hans Muster AG"
        result = enhancer.score(0.5, "PERSON_NAME", 0, 11, text, [neg("ag")])
        assert result.confidence < 0.5
        assert result.boost_applied < 0

    def test_result_clamped_to_unit_interval(self, enhancer: ContextEnhancer) -> None:
        result = enhancer.score(0.95, "IBAN", IBAN_START, IBAN_END, IBAN_TEXT, [pos("iban")])
        assert result.confidence == 1.0

    def test_window_limits_search(self, enhancer: ContextEnhancer) -> None:
        text = "iban" + " " * 200 + "CH93 0076 2011 6238 5295 7"
        start = text.index("CH93")
        result = enhancer.score(0.5, "IBAN", start, len(text), text, [pos("iban")])
        assert result.confidence == 0.5

    def test_entity_window_sizes(self, enhancer: ContextEnhancer) -> None:
        assert enhancer.window_size_for("IBAN") == 40
        assert enhancer.window_size_for("PERSON_NAME") == 150
        assert enhancer.window_size_for("DATE") == 100


class TestEnhanceEntity:
    def test_language_words_used(self, enhancer: ContextEnhancer) -> None:
        assert get_context_words("IBAN", "de")
        entity = Entity(type=EntityType.IBAN, text=IBAN_TEXT[IBAN_START:], start=IBAN_START,
                        end=IBAN_END, confidence=0.5)
        assert enhancer.enhance(entity, IBAN_TEXT, language="de") > 0.5

    def test_denied_entity_skipped(self, enhancer: ContextEnhancer) -> None:
        text = "Name: Montant"
        entity = Entity(type=EntityType.PERSON_NAME, text="Montant", start=6, end=13, confidence=0.5)
        details = enhancer.enhance_with_details(entity, text, language="fr")
        assert details.skipped
        assert details.confidence == 0.5

    def test_extra_words(self, enhancer: ContextEnhancer) -> None:
        text = "Kundennummer xyz: 12345678"
        entity = Entity(type=EntityType.UNKNOWN, text="12345678", start=18, end=26, confidence=0.3)
        details = enhancer.enhance_with_details(entity, text, extra_words=[pos("kundennummer")])
        assert details.confidence > 0.3
        assert "kundennummer" in details.context_found


# -----------------------------------------------------------------------
# Context factors
# -----------------------------------------------------------------------


class TestContextScorer:
    def test_label_and_related_factors(self) -> None:
        text = "Telefon: 044 123 45 67, Hans Muster"
        phone = Entity(type=EntityType.PHONE, text="044 123 45 67", start=9, end=22, confidence=0.6)
        person = Entity(type=EntityType.PERSON_NAME, text="Hans Muster", start=24, end=35, confidence=0.6)
        analysis = ContextScorer().analyze(phone, text, [phone, person])
        factors = {f.name: f for f in analysis.factors}
        assert factors["label_keywords"].matched
        assert factors["related_entities"].matched
        assert not factors["repetition"].matched
        assert 0.0 < analysis.score <= 1.0

    def test_repetition(self) -> None:
        text = "Hans Muster und Hans Muster"
        first = Entity(type=EntityType.PERSON, text="Hans Muster", start=0, end=11, confidence=0.6)
        second = Entity(type=EntityType.PERSON, text="Hans Muster", start=16, end=27, confidence=0.6)
        factor = ContextScorer.repetition(first, [first, second])
        assert factor.matched
        assert "2 times" in factor.description

    def test_body_type_in_header_is_unusual(self) -> None:
        text = "CH93 0076 2011 6238 5295 7" + " filler" * 40
        iban = Entity(type=EntityType.IBAN, text="CH93 0076 2011 6238 5295 7", start=0, end=26, confidence=0.7)
        assert not ContextScorer.document_position(iban, text).matched
