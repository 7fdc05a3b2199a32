"""Tests for text normalization with offset tracking."""

from __future__ import annotations

from redact_engine.preprocessing.text_normalizer import (
    map_span,
    normalize_text,
    normalize_with_index_map,
)


class TestNormalizeWithIndexMap:
    def test_empty(self) -> None:
        assert normalize_with_index_map("") == ("", [])

    def test_plain_text_unchanged(self) -> None:
        text, index_map = normalize_with_index_map("Hans Muster")
        assert text == "Hans Muster"
        assert index_map == list(range(11))

    def test_zero_width_removed(self) -> None:
        text, index_map = normalize_with_index_map("a\u200bb")
        assert text == "ab"
        assert index_map == [0, 2]

    def test_nbsp_and_dashes_folded(self) -> None:
        assert normalize_text("CHE\u2013116\u00a0281") == "CHE-116 281"

    def test_fullwidth_characters(self) -> None:
        assert normalize_text("\uff21\uff22\uff23") == "ABC"

    def test_email_deobfuscation(self) -> None:
        assert normalize_text("jean (at) example (dot) ch") == "jean@example.ch"
        assert normalize_text("jean [at] example [dot] ch") == "jean@example.ch"
        assert normalize_text("hans (Klammeraffe) beispiel (Punkt) de") == "hans@beispiel.de"

    def test_plain_at_word_kept(self) -> None:
        assert normalize_text("meet at noon") == "meet at noon"

    def test_phone_trunk_prefix(self) -> None:
        assert normalize_text("+41 (0) 44 123 45 67") == "+41 44 123 45 67"

    def test_index_map_length_matches_text(self) -> None:
        text, index_map = normalize_with_index_map("Tel. +41 (0)44 123 45 67, mail: a (at) b (dot) ch")
        assert len(index_map) == len(text)
        assert index_map == sorted(index_map)


class TestMapSpan:
    def test_identity_without_map(self) -> None:
        assert map_span(3, 7, []) == (3, 7)

    def test_exclusive_end(self) -> None:
        original = "x\u200bjean (at) example (dot) ch"
        text, index_map = normalize_with_index_map(original)
        start = text.index("jean")
        mapped = map_span(start, len(text), index_map)
        assert original[mapped[0]:mapped[1]] == "jean (at) example (dot) ch"

    def test_end_past_map(self) -> None:
        assert map_span(0, 10, [0, 1, 2]) == (0, 3)

    def test_never_empty(self) -> None:
        assert map_span(1, 1, [0, 1, 2]) == (1, 2)
