"""Tests for the deny list (false-positive suppression)."""

from __future__ import annotations

import re

import pytest

from redact_engine.detectors.deny_list import (
    DenyList,
    get_deny_list,
    is_denied_by_patterns,
    language_scope,
    reset_deny_list,
)
from redact_engine.detectors.entities import EntityType


@pytest.fixture()
def deny_list() -> DenyList:
    return DenyList()


# -----------------------------------------------------------------------
# Default entries
# -----------------------------------------------------------------------


class TestDefaults:
    def test_table_header_denied_for_any_type(self, deny_list: DenyList) -> None:
        assert deny_list.is_denied("Montant", "PERSON_NAME")
        assert deny_list.is_denied("Montant", "ORGANIZATION")
        assert deny_list.is_denied("Montant")

    @pytest.mark.parametrize("variant", ["MONTANT", "montant", "MoNtAnT", "  Montant  "])
    def test_case_and_whitespace_invariant(self, deny_list: DenyList, variant: str) -> None:
        assert deny_list.is_denied(variant, "PERSON_NAME")

    def test_literal_must_match_whole_text(self, deny_list: DenyList) -> None:
        assert not deny_list.is_denied("Montant Dupont", "LOCATION")

    def test_person_patterns(self, deny_list: DenyList) -> None:
        assert deny_list.is_denied("Muster AG", "PERSON_NAME")
        assert deny_list.is_denied("12345", "PERSON_NAME")
        assert deny_list.is_denied("Rue du Lac", "PERSON_NAME")

    def test_person_and_person_name_share_entries(self, deny_list: DenyList) -> None:
        assert deny_list.is_denied("Muster AG", EntityType.PERSON)

    def test_patterns_scoped_to_entity_type(self, deny_list: DenyList) -> None:
        assert not deny_list.is_denied("Muster AG", "ORGANIZATION")

    def test_real_name_passes(self, deny_list: DenyList) -> None:
        assert not deny_list.is_denied("Hans Muster", "PERSON_NAME")

    def test_empty_text_is_not_denied(self, deny_list: DenyList) -> None:
        assert not deny_list.is_denied("   ", "PERSON_NAME")


# -----------------------------------------------------------------------
# Runtime additions
# -----------------------------------------------------------------------


class TestAddPattern:
    def test_global_literal(self, deny_list: DenyList) -> None:
        deny_list.add_pattern("Konto")
        assert deny_list.is_denied("KONTO", "IBAN")

    def test_scoped_literal(self, deny_list: DenyList) -> None:
        deny_list.add_pattern("Konto", scope="PERSON_NAME")
        assert deny_list.is_denied("konto", "PERSON_NAME")
        assert not deny_list.is_denied("konto", "IBAN")

    def test_regex_string(self, deny_list: DenyList) -> None:
        deny_list.add_pattern(r"^Test\s+\w+$", scope="PERSON_NAME", is_regex=True)
        assert deny_list.is_denied("TEST Person", "PERSON_NAME")

    def test_compiled_pattern_made_case_insensitive(self, deny_list: DenyList) -> None:
        deny_list.add_pattern(re.compile(r"^demo$"))
        assert deny_list.is_denied("DEMO")

    def test_language_scope(self, deny_list: DenyList) -> None:
        deny_list.add_language_pattern("Madame", "fr")
        assert deny_list.is_denied("madame", "PERSON_NAME", language="fr")
        assert not deny_list.is_denied("madame", "PERSON_NAME", language="de")

    def test_language_scope_through_add_pattern(self, deny_list: DenyList) -> None:
        deny_list.add_pattern(r"^Herr\s+Dr\.?$", scope=language_scope("DE"), is_regex=True)
        assert language_scope("DE") == "language:de"
        assert deny_list.is_denied("herr dr.", "PERSON_NAME", language="de")
        assert not deny_list.is_denied("herr dr.", "PERSON_NAME", language="fr")
        assert not deny_list.is_denied("herr dr.", "PERSON_NAME")

    def test_language_scope_needs_code(self, deny_list: DenyList) -> None:
        with pytest.raises(ValueError):
            deny_list.add_pattern("Madame", scope="language:")

    def test_reset_restores_defaults(self, deny_list: DenyList) -> None:
        deny_list.add_pattern("Konto")
        deny_list.reset()
        assert not deny_list.is_denied("Konto")
        assert deny_list.is_denied("Montant")


class TestLoadConfig:
    def test_replace_drops_defaults(self, deny_list: DenyList) -> None:
        deny_list.load_config(global_entries=["Foo"])
        assert deny_list.is_denied("foo")
        assert not deny_list.is_denied("Montant")

    def test_merge_keeps_defaults(self, deny_list: DenyList) -> None:
        deny_list.load_config(by_entity_type={"PERSON_NAME": ["Bar"]}, replace=False)
        assert deny_list.is_denied("bar", "PERSON_NAME")
        assert deny_list.is_denied("Montant")

    def test_stats(self) -> None:
        empty = DenyList(load_defaults=False)
        assert empty.stats() == {"global": 0, "entity_types": 0, "languages": 0}


class TestHelpers:
    def test_recognizer_local_patterns(self) -> None:
        patterns = [re.compile(r"^Muster$", re.IGNORECASE)]
        assert is_denied_by_patterns(" muster ", patterns)
        assert not is_denied_by_patterns("Hans", patterns)

    def test_global_instance(self) -> None:
        reset_deny_list()
        first = get_deny_list()
        assert get_deny_list() is first
        reset_deny_list()
        assert get_deny_list() is not first
