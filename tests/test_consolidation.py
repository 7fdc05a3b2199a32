"""Tests for overlap resolution, address consolidation, linking and offset repair."""

from __future__ import annotations

import pytest

from redact_engine.detectors.consolidation import (
    ConsolidationConfig,
    Consolidator,
    fuzzy_link_text,
    repair_offsets,
)
from redact_engine.detectors.entities import AddressComponentType, Entity, EntityType
from redact_engine.preprocessing.text_normalizer import normalize_with_index_map


def _entity(entity_type: EntityType, text: str, start: int, confidence: float = 0.8, **kwargs) -> Entity:
    return Entity(type=entity_type, text=text, start=start, end=start + len(text),
                  confidence=confidence, **kwargs)


def _spans(entities):
    return [(e.type, e.start, e.end) for e in entities]


# -----------------------------------------------------------------------
# Overlaps
# -----------------------------------------------------------------------


class TestResolveOverlaps:
    def test_higher_priority_type_wins(self) -> None:
        text = "756.1234.5678.97"
        avs = _entity(EntityType.SWISS_AVS, text, 0, 0.7)
        date = _entity(EntityType.DATE, "1234.5678", 4, 0.9)
        result = Consolidator().consolidate([date, avs], text)
        assert _spans(result.entities) == [(EntityType.SWISS_AVS, 0, 16)]
        assert result.overlaps_resolved == 1

    def test_confidence_weighted_strategy(self) -> None:
        # PERSON_NAME 50 * 0.2 = 10 loses to ADDRESS 55 * 0.9
        text = "Bahnhofstrasse 12"
        person = _entity(EntityType.PERSON_NAME, "Bahnhofstrasse", 0, 0.2)
        address = _entity(EntityType.ADDRESS, text, 0, 0.9)
        result = Consolidator().consolidate([person, address], text)
        assert _spans(result.entities) == [(EntityType.ADDRESS, 0, 17)]

    def test_priority_only_strategy(self) -> None:
        text = "hans@muster.ch"
        email = _entity(EntityType.EMAIL, text, 0, 0.1)
        person = _entity(EntityType.PERSON_NAME, "hans", 0, 0.99)
        consolidator = Consolidator(ConsolidationConfig(overlap_strategy="priority-only"))
        result = consolidator.consolidate([person, email], text)
        assert _spans(result.entities) == [(EntityType.EMAIL, 0, 14)]

    def test_chain_keeps_non_overlapping_losers(self) -> None:
        # A overlaps B, B overlaps C, A and C are disjoint; B is weakest
        a = _entity(EntityType.IBAN, "aaaa", 0, 0.9)
        b = _entity(EntityType.DATE, "aabb", 2, 0.9)
        c = _entity(EntityType.EMAIL, "bbcc", 4, 0.9)
        result = Consolidator().consolidate([a, b, c], "aaaabbcc")
        assert _spans(result.entities) == [(EntityType.IBAN, 0, 4), (EntityType.EMAIL, 4, 8)]

    def test_no_overlaps_untouched(self) -> None:
        a = _entity(EntityType.EMAIL, "a@b.ch", 0)
        b = _entity(EntityType.PHONE, "044 123 45 67", 10)
        result = Consolidator().consolidate([b, a], "a@b.ch    044 123 45 67")
        assert _spans(result.entities) == [(EntityType.EMAIL, 0, 6), (EntityType.PHONE, 10, 23)]
        assert result.overlaps_resolved == 0

    def test_original_spans_recorded(self) -> None:
        text = "756.1234.5678.97"
        avs = _entity(EntityType.SWISS_AVS, text, 0, 0.7)
        date = _entity(EntityType.DATE, "1234.5678", 4, 0.9)
        winner = Consolidator().consolidate([avs, date], text).entities[0]
        assert {s["type"] for s in winner.metadata["original_spans"]} == {"SWISS_AVS", "DATE"}

    def test_unknown_strategy_rejected(self) -> None:
        with pytest.raises(ValueError):
            ConsolidationConfig(overlap_strategy="largest")
        with pytest.raises(ValueError):
            Consolidator().configure(linking_strategy="phonetic")


# -----------------------------------------------------------------------
# Address components
# -----------------------------------------------------------------------


class TestAddressConsolidation:
    TEXT = "Bahnhofstrasse 12, 8001 Zürich"

    def _components(self):
        street = _entity(EntityType.LOCATION, "Bahnhofstrasse 12", 0, 0.7,
                         metadata={"component_type": "STREET_NAME"})
        postal = _entity(EntityType.LOCATION, "8001", 19, 0.8, metadata={"component_type": "POSTAL_CODE"})
        city = _entity(EntityType.LOCATION, "Zürich", 24, 0.9, metadata={"component_type": "CITY"})
        return [street, postal, city]

    def test_components_fold_into_address(self) -> None:
        result = Consolidator().consolidate(self._components(), self.TEXT)
        assert result.addresses_consolidated == 1
        assert len(result.entities) == 1
        address = result.entities[0]
        assert address.type == EntityType.SWISS_ADDRESS
        assert address.text == self.TEXT
        assert address.confidence == pytest.approx(0.8)
        assert [c.type for c in address.components] == [
            AddressComponentType.STREET_NAME, AddressComponentType.POSTAL_CODE, AddressComponentType.CITY,
        ]

    def test_low_confidence_group_not_consolidated(self) -> None:
        components = [e.copy(confidence=0.2) for e in self._components()]
        result = Consolidator().consolidate(components, self.TEXT)
        assert result.addresses_consolidated == 0

    def test_disabled(self) -> None:
        consolidator = Consolidator(ConsolidationConfig(enable_address_consolidation=False))
        result = consolidator.consolidate(self._components(), self.TEXT)
        assert result.addresses_consolidated == 0
        assert len(result.entities) == 3


# -----------------------------------------------------------------------
# Linking
# -----------------------------------------------------------------------


class TestLinking:
    TEXT = "Hans Muster schreibt. HANS  MUSTER antwortet. Anna Muster schweigt."

    def _people(self):
        return [
            _entity(EntityType.PERSON_NAME, "Hans Muster", 0),
            _entity(EntityType.PERSON, "HANS  MUSTER", 22),
            _entity(EntityType.PERSON_NAME, "Anna Muster", 46),
        ]

    def test_same_person_shares_logical_id(self) -> None:
        result = Consolidator().consolidate(self._people(), self.TEXT)
        ids = [e.logical_id for e in result.entities]
        assert ids == ["PERSON_1", "PERSON_1", "PERSON_2"]
        assert result.entities_linked == 1

    def test_exact_strategy(self) -> None:
        consolidator = Consolidator(ConsolidationConfig(linking_strategy="exact"))
        ids = [e.logical_id for e in consolidator.consolidate(self._people(), self.TEXT).entities]
        assert ids == ["PERSON_1", "PERSON_2", "PERSON_3"]

    def test_fuzzy_text_strips_titles(self) -> None:
        assert fuzzy_link_text("Herr Dr. Müller") == fuzzy_link_text("müller")

    def test_every_entity_gets_logical_id(self) -> None:
        entities = [_entity(EntityType.EMAIL, "a@b.ch", 0), _entity(EntityType.IBAN, "CH93", 10)]
        result = Consolidator().consolidate(entities, "a@b.ch    CH93")
        assert [e.logical_id for e in result.entities] == ["EMAIL_1", "IBAN_1"]


class TestIdempotence:
    def test_second_pass_changes_nothing(self) -> None:
        text = "756.1234.5678.97 Hans Muster, Hans Muster"
        entities = [
            _entity(EntityType.SWISS_AVS, "756.1234.5678.97", 0, 0.7),
            _entity(EntityType.DATE, "1234.5678", 4, 0.9),
            _entity(EntityType.PERSON_NAME, "Hans Muster", 17),
            _entity(EntityType.PERSON_NAME, "Hans Muster", 30),
        ]
        consolidator = Consolidator()
        first = consolidator.consolidate(entities, text).entities
        second = consolidator.consolidate(first, text).entities

        def snapshot(items):
            return [(e.id, e.type, e.start, e.end, e.confidence, e.logical_id) for e in items]

        assert snapshot(second) == snapshot(first)

    def test_input_not_mutated(self) -> None:
        entity = _entity(EntityType.EMAIL, "a@b.ch", 0)
        Consolidator().consolidate([entity], "a@b.ch")
        assert entity.logical_id is None


# -----------------------------------------------------------------------
# Offset repair
# -----------------------------------------------------------------------


class TestRepairOffsets:
    def test_maps_back_to_original_text(self) -> None:
        original = "Mail: jean (at) example (dot) ch"
        normalized, index_map = normalize_with_index_map(original)
        start = normalized.index("jean")
        email = _entity(EntityType.EMAIL, "jean@example.ch", start)
        repaired = repair_offsets([email], original, index_map)[0]
        assert repaired.text == "jean (at) example (dot) ch"
        assert repaired.metadata["normalized_span"] == {"start": start, "end": start + 15}

    def test_no_index_map_is_identity(self) -> None:
        entity = _entity(EntityType.EMAIL, "a@b.ch", 0)
        assert repair_offsets([entity], "a@b.ch", []) == [entity]
