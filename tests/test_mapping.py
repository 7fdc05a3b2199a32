"""Tests for the anonymization mapping output."""

from __future__ import annotations

import json
from pathlib import Path

from redact_engine.detectors.entities import (
    AddressComponent,
    AddressComponentType,
    DetectionResult,
    DocumentType,
    Entity,
    EntityType,
)
from redact_engine.detectors.mapping import MAPPING_VERSION, build_mapping


def _entity(entity_type: EntityType, text: str, start: int, confidence: float = 0.9, **kwargs) -> Entity:
    return Entity(type=entity_type, text=text, start=start, end=start + len(text),
                  confidence=confidence, **kwargs)


def _address() -> Entity:
    components = [
        AddressComponent(AddressComponentType.STREET_NAME, "Bahnhofstrasse", 0, 14),
        AddressComponent(AddressComponentType.STREET_NUMBER, "12", 15, 17),
        AddressComponent(AddressComponentType.POSTAL_CODE, "8001", 19, 23),
        AddressComponent(AddressComponentType.CITY, "Zürich", 24, 30),
    ]
    return _entity(EntityType.SWISS_ADDRESS, "Bahnhofstrasse 12, 8001 Zürich", 0, 0.85,
                   components=components, logical_id="ADDRESS_1")


def _result(entities) -> DetectionResult:
    return DetectionResult(entities=entities, document_type=DocumentType.LETTER, language="de",
                           document_id="doc_test")


class TestBuildMapping:
    def test_repeated_person_shares_placeholder(self) -> None:
        result = _result([
            _entity(EntityType.PERSON, "Anna Keller", 40, 0.8, logical_id="PERSON_1"),
            _entity(EntityType.PERSON, "Anna Keller", 80, 0.95, logical_id="PERSON_1"),
            _entity(EntityType.PERSON, "A. Keller", 120, logical_id="PERSON_1"),
        ])
        entries = build_mapping(result).entries
        assert [(e.placeholder, e.original) for e in entries] == [
            ("[PERSON_1]", "Anna Keller"),
            ("[PERSON_1]", "A. Keller"),
        ]
        assert entries[0].confidence == 0.95

    def test_address_components(self) -> None:
        entry = build_mapping(_result([_address()])).entries[0]
        assert entry.placeholder == "[ADDRESS_1]"
        assert entry.type == "SWISS_ADDRESS"
        assert entry.components == {
            "STREET_NAME": "Bahnhofstrasse",
            "STREET_NUMBER": "12",
            "POSTAL_CODE": "8001",
            "CITY": "Zürich",
        }

    def test_unselected_excluded_by_default(self) -> None:
        result = _result([
            _entity(EntityType.EMAIL, "anna@keller.ch", 0, 0.4, selected=False, logical_id="EMAIL_1"),
            _entity(EntityType.PHONE, "044 123 45 67", 20, logical_id="PHONE_1"),
        ])
        assert [e.type for e in build_mapping(result).entries] == ["PHONE"]
        assert [e.type for e in build_mapping(result, include_unselected=True).entries] == ["EMAIL", "PHONE"]

    def test_missing_logical_ids_numbered(self) -> None:
        result = _result([
            _entity(EntityType.PERSON_NAME, "Hans Meier", 0),
            _entity(EntityType.PERSON, "hans  meier", 20),
            _entity(EntityType.PERSON, "Eva Roth", 40),
        ])
        placeholders = [e.placeholder for e in build_mapping(result).entries]
        assert placeholders == ["[PERSON_1]", "[PERSON_1]", "[PERSON_2]"]

    def test_document_id_override(self) -> None:
        mapping = build_mapping(_result([]), document_id="invoice-7")
        assert mapping.document_id == "invoice-7"
        assert mapping.entries == []


class TestMappingFile:
    def test_to_dict(self) -> None:
        data = build_mapping(_result([_address()])).to_dict()
        assert data["version"] == MAPPING_VERSION
        assert data["document_id"] == "doc_test"
        assert data["document_type"] == "LETTER"
        assert data["language"] == "de"
        assert data["entities"][0]["components"]["CITY"] == "Zürich"
        assert data["entities"][0]["confidence"] == 0.85

    def test_save(self, tmp_path: Path) -> None:
        path = tmp_path / "out" / "mapping.json"
        build_mapping(_result([_address()])).save(path)
        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["entities"][0]["original"] == "Bahnhofstrasse 12, 8001 Zürich"

    def test_json_keeps_unicode(self) -> None:
        assert "Zürich" in build_mapping(_result([_address()])).to_json()
