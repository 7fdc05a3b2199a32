"""
Span consolidation - final clean-up of the entity list.

Steps, in order:
    1. Address consolidation: loose address components (entities carrying
       metadata["component_type"]) that sit close together fold into one
       address entity.
    2. Overlap resolution: among overlapping spans one winner survives,
       chosen by entity-type priority (times confidence for the
       confidence-weighted strategy); longer spans win ties.
    3. Entity linking: every entity gets a logical id "{BASE_TYPE}_{n}";
       mentions with the same base type and normalized text share it.

Consolidation is idempotent: a consolidated list passed through again comes
back unchanged. Offset repair (normalized -> original coordinates) is a
separate step, see repair_offsets().
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..preprocessing.text_normalizer import map_span
from .entities import (
    AddressComponent,
    AddressComponentType,
    Entity,
    EntitySource,
    EntityType,
    base_type,
)

logger = logging.getLogger(__name__)

T = EntityType

DEFAULT_ENTITY_PRIORITY: Dict[EntityType, int] = {
    # Identifiers
    T.SWISS_AVS: 100,
    T.IBAN: 95,
    T.QR_REFERENCE: 90,
    T.VAT_NUMBER: 85,
    # Structured formats
    T.EMAIL: 80,
    T.PHONE: 75,
    T.PAYMENT_REF: 70,
    T.INVOICE_NUMBER: 65,
    # Addresses
    T.SWISS_ADDRESS: 60,
    T.EU_ADDRESS: 58,
    T.ADDRESS: 55,
    # People and organizations
    T.PERSON_NAME: 50,
    T.PERSON: 48,
    T.ORGANIZATION: 45,
    T.VENDOR_NAME: 43,
    # Letter structure
    T.SENDER: 40,
    T.RECIPIENT: 38,
    T.SALUTATION_NAME: 35,
    T.SIGNATURE: 33,
    T.AUTHOR: 30,
    T.PARTY: 28,
    T.REFERENCE_LINE: 25,
    T.LETTER_DATE: 22,
    # General
    T.DATE: 20,
    T.AMOUNT: 18,
    T.LOCATION: 15,
    T.UNKNOWN: 0,
}

OVERLAP_STRATEGIES = ("priority-only", "confidence-weighted")
LINKING_STRATEGIES = ("exact", "normalized", "fuzzy")

# Titles stripped by fuzzy linking ("Herr Müller" == "Müller")
TITLE_WORDS = frozenset({
    "mr", "mr.", "herr", "m.", "monsieur", "mister",
    "mrs", "mrs.", "frau", "mme", "mme.", "madame",
    "ms", "ms.", "fräulein", "mlle", "mademoiselle",
    "dr", "dr.", "doktor", "docteur",
    "prof", "prof.", "professor", "professeur",
})

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]")


@dataclass
class ConsolidationConfig:
    address_max_gap: int = 50
    enable_overlap_resolution: bool = True
    enable_address_consolidation: bool = True
    enable_entity_linking: bool = True
    entity_type_priority: Dict[EntityType, int] = field(default_factory=lambda: dict(DEFAULT_ENTITY_PRIORITY))
    overlap_strategy: str = "confidence-weighted"
    linking_strategy: str = "normalized"
    min_consolidation_confidence: float = 0.5
    preserve_original_spans: bool = True
    min_address_components: int = 2

    def __post_init__(self):
        if self.overlap_strategy not in OVERLAP_STRATEGIES:
            raise ValueError(f"Unknown overlap strategy: {self.overlap_strategy}")
        if self.linking_strategy not in LINKING_STRATEGIES:
            raise ValueError(f"Unknown linking strategy: {self.linking_strategy}")


@dataclass
class ConsolidationResult:
    entities: List[Entity]
    overlaps_resolved: int = 0
    addresses_consolidated: int = 0
    entities_linked: int = 0
    original_entity_count: int = 0
    duration_ms: float = 0.0

    def metadata(self) -> Dict[str, Any]:
        return {
            "overlaps_resolved": self.overlaps_resolved,
            "addresses_consolidated": self.addresses_consolidated,
            "entities_linked": self.entities_linked,
            "original_entity_count": self.original_entity_count,
            "duration_ms": self.duration_ms,
        }


def normalize_link_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text.lower()).strip()


def fuzzy_link_text(text: str) -> str:
    words = [w for w in normalize_link_text(text).split(" ") if w not in TITLE_WORDS]
    return _WHITESPACE.sub(" ", _PUNCTUATION.sub("", " ".join(words))).strip()


def sort_key(entity: Entity) -> Tuple[int, int, str]:
    """Start ascending, longer spans first, then type for a stable order."""
    return entity.start, -(entity.end - entity.start), entity.type.value


class Consolidator:
    """
    Stateless consolidation engine.

    Usage:
        result = Consolidator().consolidate(entities, text)
        result.entities, result.overlaps_resolved
    """

    def __init__(self, config: Optional[ConsolidationConfig] = None):
        self.config = config or ConsolidationConfig()

    def configure(self, **changes):
        for key, value in changes.items():
            if not hasattr(self.config, key):
                raise ValueError(f"Unknown consolidation option: {key}")
            setattr(self.config, key, value)
        self.config.__post_init__()

    def consolidate(self, entities: List[Entity], text: str) -> ConsolidationResult:
        start_time = time.perf_counter()
        result = [e.copy() for e in entities]
        original_count = len(result)

        if self.config.preserve_original_spans:
            for entity in result:
                if "original_spans" not in entity.metadata:
                    entity.metadata["original_spans"] = [
                        {"start": o.start, "end": o.end, "type": o.type.value}
                        for o in entities if o.overlaps(entity)
                    ]

        addresses_consolidated = 0
        if self.config.enable_address_consolidation:
            result, addresses_consolidated = self.consolidate_addresses(result, text)

        overlaps_resolved = 0
        if self.config.enable_overlap_resolution:
            resolved = self.resolve_overlaps(result)
            overlaps_resolved = len(result) - len(resolved)
            result = resolved

        entities_linked = 0
        if self.config.enable_entity_linking:
            entities_linked = self.link_entities(result)

        result.sort(key=sort_key)
        return ConsolidationResult(
            entities=result,
            overlaps_resolved=overlaps_resolved,
            addresses_consolidated=addresses_consolidated,
            entities_linked=entities_linked,
            original_entity_count=original_count,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

    # =========================================================================
    # Overlaps
    # =========================================================================

    def _overlap_score(self, entity: Entity) -> Tuple[float, int]:
        priority = self.config.entity_type_priority.get(entity.type, 0)
        if self.config.overlap_strategy == "confidence-weighted":
            score = priority * entity.confidence
        else:
            score = float(priority)
        return score, entity.end - entity.start

    def pick_winner(self, candidates: List[Entity]) -> Entity:
        # max() keeps the first of equal candidates, so input order breaks exact ties
        return max(candidates, key=self._overlap_score)

    def resolve_overlaps(self, entities: List[Entity]) -> List[Entity]:
        """
        Sweep overlapping clusters; inside a cluster the best entity wins,
        everything overlapping it is dropped, and the rest competes again.
        """
        kept: List[Entity] = []
        for cluster in self._clusters(sorted(entities, key=sort_key)):
            remaining = cluster
            while remaining:
                winner = self.pick_winner(remaining)
                kept.append(winner)
                remaining = [e for e in remaining if e is not winner and not e.overlaps(winner)]
        return sorted(kept, key=sort_key)

    @staticmethod
    def _clusters(ordered: List[Entity]) -> List[List[Entity]]:
        clusters: List[List[Entity]] = []
        cluster_end = -1
        for entity in ordered:
            if clusters and entity.start < cluster_end:
                clusters[-1].append(entity)
                cluster_end = max(cluster_end, entity.end)
            else:
                clusters.append([entity])
                cluster_end = entity.end
        return clusters

    # =========================================================================
    # Address components
    # =========================================================================

    @staticmethod
    def _component_type(entity: Entity) -> Optional[AddressComponentType]:
        value = entity.metadata.get("component_type")
        if value is None or value not in AddressComponentType.__members__:
            return None
        return AddressComponentType[value]

    def consolidate_addresses(self, entities: List[Entity], text: str) -> Tuple[List[Entity], int]:
        components = [e for e in entities if self._component_type(e) is not None and not e.components]
        if len(components) < self.config.min_address_components:
            return entities, 0

        ordered = sorted(components, key=lambda e: e.start)
        groups: List[List[Entity]] = []
        current = [ordered[0]]
        for previous, entity in zip(ordered, ordered[1:]):
            gap = entity.start - previous.end
            between = text[previous.end:entity.start]
            threshold = self.config.address_max_gap * (2 if "\n" in between or "\r" in between else 1)
            if 0 <= gap <= threshold:
                current.append(entity)
            else:
                groups.append(current)
                current = [entity]
        groups.append(current)

        used = set()
        addresses = []
        for group in groups:
            if len(group) < self.config.min_address_components:
                continue
            confidence = sum(e.confidence for e in group) / len(group)
            if confidence < self.config.min_consolidation_confidence:
                continue
            start, end = group[0].start, max(e.end for e in group)
            parts = [AddressComponent(self._component_type(e), e.text, e.start, e.end, linked=True) for e in group]
            addresses.append(Entity(
                type=self._address_type(parts),
                text=text[start:end],
                start=start,
                end=end,
                confidence=confidence,
                source=EntitySource.RULE,
                components=parts,
                metadata={
                    "consolidated_from": [e.id for e in group],
                    "component_count": len(group),
                    "original_spans": [{"start": e.start, "end": e.end, "type": e.type.value} for e in group],
                },
            ))
            used.update(e.id for e in group)

        remaining = [e for e in entities if e.id not in used]
        return remaining + addresses, len(addresses)

    @staticmethod
    def _address_type(parts: List[AddressComponent]) -> EntityType:
        postal = next((p.text for p in parts if p.type == AddressComponentType.POSTAL_CODE), "")
        country = next((p.text.lower() for p in parts if p.type == AddressComponentType.COUNTRY), None)
        swiss_postal = re.fullmatch(r"[1-9]\d{3}", postal) is not None
        if swiss_postal or (country and (country == "ch" or any(
                name in country for name in ("schweiz", "suisse", "switzerland", "svizzera")))):
            return T.SWISS_ADDRESS
        if country or postal:
            return T.EU_ADDRESS
        return T.ADDRESS

    # =========================================================================
    # Linking
    # =========================================================================

    def link_key(self, entity: Entity) -> str:
        base = base_type(entity.type).value
        if self.config.linking_strategy == "exact":
            return f"{base}:{entity.text}"
        if self.config.linking_strategy == "fuzzy":
            return f"{base}:{fuzzy_link_text(entity.text)}"
        return f"{base}:{normalize_link_text(entity.text)}"

    def link_entities(self, entities: List[Entity]) -> int:
        """
        Assign logical ids in document order; returns the number of groups
        with more than one mention.
        """
        ids: Dict[str, str] = {}
        counters: Dict[str, int] = {}
        members: Dict[str, int] = {}
        for entity in sorted(entities, key=sort_key):
            key = self.link_key(entity)
            if key not in ids:
                base = base_type(entity.type).value
                counters[base] = counters.get(base, 0) + 1
                ids[key] = f"{base}_{counters[base]}"
            entity.logical_id = ids[key]
            members[key] = members.get(key, 0) + 1
        return sum(1 for count in members.values() if count > 1)


def repair_offsets(entities: List[Entity], original_text: str, index_map: List[int]) -> List[Entity]:
    """
    Map entity spans from normalized to original coordinates.

    Components are mapped too and the normalized span is kept in
    metadata["normalized_span"]. Callers must apply this exactly once per
    document.
    """
    if not index_map:
        return entities
    repaired = []
    for entity in entities:
        start, end = map_span(entity.start, entity.end, index_map)
        if start >= end:
            logger.warning(f"Dropping entity {entity.id} with empty span after offset repair")
            continue
        clone = entity.copy()
        clone.metadata["normalized_span"] = {"start": entity.start, "end": entity.end}
        clone.start, clone.end = start, end
        clone.text = original_text[start:end]
        if clone.components:
            for component in clone.components:
                component.start, component.end = map_span(component.start, component.end, index_map)
                component.text = original_text[component.start:component.end]
        repaired.append(clone)
    return repaired
