"""Tests for the token-classification adapter."""

from __future__ import annotations

import pytest

from redact_engine.detectors.entities import EntitySource, EntityType
from redact_engine.detectors.ml_adapter import (
    MLAdapter,
    MLToken,
    map_ml_label,
    merge_subword_tokens,
    normalize_prediction,
)

TEXT = "Termin mit Hans Muster bei Muster AG in Zürich."


def _predictions():
    return [
        {"label": "B-PER", "text": "Hans", "start": 11, "end": 15, "score": 0.9},
        {"label": "I-PER", "text": "Muster", "start": 16, "end": 22, "score": 0.7},
        {"label": "O", "text": "bei", "start": 23, "end": 26, "score": 0.99},
        {"label": "B-ORG", "text": "Muster AG", "start": 27, "end": 36, "score": 0.8},
        {"label": "B-LOC", "text": "Zürich", "start": 40, "end": 46, "score": 0.2},
        {"label": "B-MISC", "text": "Termin", "start": 0, "end": 6, "score": 0.9},
    ]


# -----------------------------------------------------------------------
# Token handling
# -----------------------------------------------------------------------


class TestTokens:
    def test_label_mapping(self) -> None:
        assert map_ml_label("B-PER") == EntityType.PERSON
        assert map_ml_label("I-org") == EntityType.ORGANIZATION
        assert map_ml_label("GPE") == EntityType.LOCATION
        assert map_ml_label("MISC") is None
        assert map_ml_label("SOMETHING") is None

    def test_huggingface_keys(self) -> None:
        token = normalize_prediction({"entity_group": "PER", "word": "Hans", "start": 0, "end": 4, "score": 0.9})
        assert token == MLToken(label="PER", start=0, end=4, score=0.9, text="Hans")

    def test_malformed_prediction(self) -> None:
        assert normalize_prediction({"label": "PER", "start": "x", "end": 4}) is None
        assert normalize_prediction({"label": "PER", "start": 4, "end": 4}) is None
        assert normalize_prediction({"start": 0, "end": 4}) is None

    def test_bio_merge(self) -> None:
        tokens = [normalize_prediction(p) for p in _predictions()]
        spans = merge_subword_tokens(tokens, TEXT)
        person = spans[1]
        assert (person.label, person.text, person.token_count) == ("PER", "Hans Muster", 2)
        assert person.score == pytest.approx(0.8)

    def test_i_token_after_gap_starts_new_span(self) -> None:
        tokens = [MLToken("B-PER", 0, 4, 0.9), MLToken("I-PER", 20, 26, 0.9)]
        spans = merge_subword_tokens(tokens, "Hans" + " " * 16 + "Muster")
        assert [s.text for s in spans] == ["Hans", "Muster"]

    def test_short_spans_dropped(self) -> None:
        spans = merge_subword_tokens([MLToken("B-PER", 0, 1, 0.9)], "H.")
        assert spans == []


# -----------------------------------------------------------------------
# Adapter
# -----------------------------------------------------------------------


class TestMLAdapter:
    def test_detect(self) -> None:
        adapter = MLAdapter(lambda text: _predictions(), confidence_threshold=0.3)
        entities = adapter.detect(TEXT)
        assert [(e.type, e.text) for e in entities] == [
            (EntityType.PERSON, "Hans Muster"),
            (EntityType.ORGANIZATION, "Muster AG"),
        ]
        assert all(e.source == EntitySource.ML for e in entities)
        assert entities[0].metadata["token_count"] == 2

    def test_threshold_override(self) -> None:
        adapter = MLAdapter(lambda text: _predictions())
        types = [e.type for e in adapter.detect(TEXT, threshold=0.1)]
        assert EntityType.LOCATION in types

    def test_failure_yields_nothing(self) -> None:
        def broken(text):
            raise RuntimeError("model offline")

        assert MLAdapter(broken).detect(TEXT) == []

    def test_empty_and_malformed_output(self) -> None:
        assert MLAdapter(lambda text: []).detect(TEXT) == []
        assert MLAdapter(lambda text: None).detect(TEXT) == []
        assert MLAdapter(lambda text: ["junk", 42]).detect(TEXT) == []

    def test_no_classifier(self) -> None:
        adapter = MLAdapter()
        assert not adapter.is_available
        assert adapter.detect(TEXT) == []

    @pytest.mark.asyncio
    async def test_async_classifier(self) -> None:
        async def classify(text):
            return _predictions()

        entities = await MLAdapter(classify).detect_async(TEXT)
        assert [e.text for e in entities] == ["Hans Muster", "Muster AG"]

    @pytest.mark.asyncio
    async def test_sync_classifier_awaited_in_thread(self) -> None:
        entities = await MLAdapter(lambda text: _predictions()).detect_async(TEXT)
        assert len(entities) == 2

    @pytest.mark.asyncio
    async def test_async_failure_yields_nothing(self) -> None:
        async def classify(text):
            raise TimeoutError("slow model")

        assert await MLAdapter(classify).detect_async(TEXT) == []
