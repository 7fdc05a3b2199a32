"""Tests for the context word database."""

from __future__ import annotations

from redact_engine.data.context_words import (
    get_all_context_words,
    get_context_words,
    get_metadata,
    get_negative_context_words,
    get_positive_context_words,
    get_supported_entity_types,
    get_supported_languages,
)


class TestContextWords:
    def test_type_and_language(self) -> None:
        words = [w.word for w in get_context_words("IBAN", "de")]
        assert "iban" in words
        assert "konto" in words

    def test_language_case_insensitive(self) -> None:
        assert get_context_words("IBAN", "DE") == get_context_words("IBAN", "de")

    def test_unknown_type_or_language(self) -> None:
        assert get_context_words("SPACESHIP", "de") == []
        assert get_context_words("IBAN", "xx") == []

    def test_returns_copy(self) -> None:
        get_context_words("IBAN", "de").clear()
        assert get_context_words("IBAN", "de")

    def test_aliases(self) -> None:
        assert get_context_words("PERSON", "en") == get_context_words("PERSON_NAME", "en")
        assert get_context_words("SWISS_ADDRESS", "fr") == get_context_words("ADDRESS", "fr")

    def test_all_languages_deduplicated(self) -> None:
        words = [w.word.lower() for w in get_all_context_words("IBAN")]
        assert words.count("iban") == 1
        assert "compte" in words and "konto" in words

    def test_polarity_filters(self) -> None:
        positive = get_positive_context_words("PERSON_NAME", "en")
        negative = get_negative_context_words("PERSON_NAME", "en")
        assert positive and all(w.is_positive for w in positive)
        assert negative and not any(w.is_positive for w in negative)
        assert len(positive) + len(negative) == len(get_context_words("PERSON_NAME", "en"))

    def test_supported_types_and_languages(self) -> None:
        assert "IBAN" in get_supported_entity_types()
        assert sorted(get_supported_languages("IBAN")) == ["de", "en", "fr"]
        assert get_supported_languages("SPACESHIP") == []

    def test_metadata(self) -> None:
        assert get_metadata()["version"] == "1.0.0"
