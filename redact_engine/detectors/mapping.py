"""
Mapping output for the anonymization stage.

One entry per distinct (placeholder, original text). Placeholders derive
from the entity's logical id, so repeated mentions of the same person share
"[PERSON_1]".

Usage:
    from redact_engine.detectors.mapping import build_mapping

    mapping = build_mapping(result)
    mapping.save("report_mapping.json")
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .consolidation import normalize_link_text
from .entities import DetectionResult, Entity, base_type

logger = logging.getLogger(__name__)

MAPPING_VERSION = "2.0"


@dataclass
class MappingEntry:
    placeholder: str
    original: str
    type: str
    confidence: float
    source: str
    components: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "placeholder": self.placeholder,
            "original": self.original,
            "type": self.type,
            "confidence": round(self.confidence, 4),
            "source": self.source,
        }
        if self.components:
            data["components"] = dict(self.components)
        return data


@dataclass
class MappingFile:
    document_id: str
    processed_at: str
    document_type: str
    language: str
    entries: List[MappingEntry] = field(default_factory=list)
    version: str = MAPPING_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "document_id": self.document_id,
            "processed_at": self.processed_at,
            "document_type": self.document_type,
            "language": self.language,
            "entities": [entry.to_dict() for entry in self.entries],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def save(self, path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.to_json())
        logger.debug(f"Wrote {len(self.entries)} mapping entries to {path}")


def _placeholders(entities: List[Entity]) -> Dict[str, str]:
    """Entity id -> placeholder; entities without a logical id are numbered here."""
    placeholders: Dict[str, str] = {}
    assigned: Dict[str, str] = {}
    counters: Dict[str, int] = {}
    for entity in sorted(entities, key=lambda e: e.start):
        logical_id = entity.logical_id
        if logical_id is None:
            base = base_type(entity.type).value
            key = f"{base}:{normalize_link_text(entity.text)}"
            if key not in assigned:
                counters[base] = counters.get(base, 0) + 1
                assigned[key] = f"{base}_{counters[base]}"
            logical_id = assigned[key]
        placeholders[entity.id] = f"[{logical_id}]"
    return placeholders


def build_mapping(
    result: DetectionResult,
    document_id: Optional[str] = None,
    include_unselected: bool = False,
) -> MappingFile:
    """
    Build the mapping file for a detection result.

    Args:
        result: Pipeline output
        document_id: Overrides result.document_id
        include_unselected: Also map entities below the auto-anonymize threshold

    Returns:
        MappingFile with entries in document order
    """
    entities = [e for e in result.entities if include_unselected or e.selected]
    placeholders = _placeholders(entities)

    entries: Dict[tuple, MappingEntry] = {}
    for entity in sorted(entities, key=lambda e: e.start):
        placeholder = placeholders[entity.id]
        key = (placeholder, entity.text)
        existing = entries.get(key)
        if existing is not None:
            existing.confidence = max(existing.confidence, entity.confidence)
            continue
        components = None
        if entity.components:
            components = {c.type.value: c.text for c in entity.components}
        entries[key] = MappingEntry(
            placeholder=placeholder,
            original=entity.text,
            type=entity.type.value,
            confidence=entity.confidence,
            source=entity.source.value,
            components=components,
        )

    return MappingFile(
        document_id=document_id or result.document_id,
        processed_at=datetime.now().isoformat(),
        document_type=result.document_type.value,
        language=result.language,
        entries=list(entries.values()),
    )
