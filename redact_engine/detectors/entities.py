"""
Entity data model shared by every detection pass.

Usage:
    from redact_engine.detectors.entities import Entity, EntityType, EntitySource

    entity = Entity(type=EntityType.IBAN, text="CH93 0076 2011 6238 5295 7",
                    start=6, end=32, confidence=0.7, source=EntitySource.RULE)
"""

import copy
import time
import uuid
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..detection_config import PipelineConfig


class EntityType(str, Enum):
    """Closed set of PII categories the pipeline can emit."""

    PERSON = "PERSON"
    PERSON_NAME = "PERSON_NAME"
    ORGANIZATION = "ORGANIZATION"
    VENDOR_NAME = "VENDOR_NAME"
    LOCATION = "LOCATION"
    ADDRESS = "ADDRESS"
    SWISS_ADDRESS = "SWISS_ADDRESS"
    EU_ADDRESS = "EU_ADDRESS"
    SWISS_AVS = "SWISS_AVS"
    IBAN = "IBAN"
    QR_REFERENCE = "QR_REFERENCE"
    PAYMENT_REF = "PAYMENT_REF"
    VAT_NUMBER = "VAT_NUMBER"
    INVOICE_NUMBER = "INVOICE_NUMBER"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    DATE = "DATE"
    LETTER_DATE = "LETTER_DATE"
    AMOUNT = "AMOUNT"
    SENDER = "SENDER"
    RECIPIENT = "RECIPIENT"
    SALUTATION_NAME = "SALUTATION_NAME"
    SIGNATURE = "SIGNATURE"
    AUTHOR = "AUTHOR"
    PARTY = "PARTY"
    REFERENCE_LINE = "REFERENCE_LINE"
    UNKNOWN = "UNKNOWN"


class EntitySource(str, Enum):
    ML = "ML"
    RULE = "RULE"
    BOTH = "BOTH"
    MANUAL = "MANUAL"


class ValidationStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    UNCHECKED = "unchecked"
    PARTIAL = "partial"
    UNCERTAIN = "uncertain"


class DocumentType(str, Enum):
    INVOICE = "INVOICE"
    LETTER = "LETTER"
    FORM = "FORM"
    CONTRACT = "CONTRACT"
    REPORT = "REPORT"
    UNKNOWN = "UNKNOWN"


class AddressComponentType(str, Enum):
    STREET_NAME = "STREET_NAME"
    STREET_NUMBER = "STREET_NUMBER"
    POSTAL_CODE = "POSTAL_CODE"
    CITY = "CITY"
    COUNTRY = "COUNTRY"
    REGION = "REGION"


class AddressPattern(str, Enum):
    SWISS = "SWISS"
    EU = "EU"
    ALTERNATIVE = "ALTERNATIVE"
    PARTIAL = "PARTIAL"
    NONE = "NONE"


ADDRESS_TYPES = frozenset({EntityType.ADDRESS, EntityType.SWISS_ADDRESS, EntityType.EU_ADDRESS})

# Regional/variant types collapse onto one base type for logical ids and placeholders
BASE_TYPES: Dict[EntityType, EntityType] = {
    EntityType.SWISS_ADDRESS: EntityType.ADDRESS,
    EntityType.EU_ADDRESS: EntityType.ADDRESS,
    EntityType.PERSON_NAME: EntityType.PERSON,
}

# Types that share deny-list and context vocabularies
TYPE_ALIASES: Dict[EntityType, Tuple[EntityType, ...]] = {
    EntityType.PERSON: (EntityType.PERSON_NAME,),
    EntityType.PERSON_NAME: (EntityType.PERSON,),
}


def base_type(entity_type: "EntityType") -> "EntityType":
    return BASE_TYPES.get(entity_type, entity_type)


def generate_entity_id() -> str:
    return f"ent_{uuid.uuid4().hex[:12]}"


@dataclass
class EntityValidation:
    """Outcome of a format validator run."""
    status: ValidationStatus
    reason: Optional[str] = None
    checked_by: Optional[str] = None
    confidence: Optional[float] = None


@dataclass
class ContextFactor:
    name: str
    weight: float
    matched: bool
    description: str = ""


@dataclass
class ContextAnalysis:
    """Context score (0-1) and the factors that produced it."""
    score: float
    factors: List[ContextFactor] = field(default_factory=list)
    words_found: List[str] = field(default_factory=list)
    boost_applied: float = 0.0


@dataclass
class AddressComponent:
    """A typed sub-span of an address."""
    type: AddressComponentType
    text: str
    start: int
    end: int
    linked: bool = False
    group_id: Optional[str] = None


@dataclass
class GroupedAddress:
    """Composite address assembled from proximate components."""
    id: str
    components: List[AddressComponent]
    start: int
    end: int
    text: str
    pattern: AddressPattern
    confidence: float
    validation_status: ValidationStatus
    entity_type: EntityType = EntityType.ADDRESS
    score_breakdown: Dict[str, float] = field(default_factory=dict)

    def component(self, component_type: AddressComponentType) -> Optional[AddressComponent]:
        for comp in self.components:
            if comp.type == component_type:
                return comp
        return None


@dataclass
class Entity:
    """
    A detected PII span.

    Invariants (checked on construction): start < end, 0 <= confidence <= 1,
    and populated components only on address types.
    """
    type: EntityType
    text: str
    start: int
    end: int
    confidence: float
    source: EntitySource = EntitySource.RULE
    id: str = field(default_factory=generate_entity_id)
    validation: Optional[EntityValidation] = None
    context: Optional[ContextAnalysis] = None
    components: Optional[List[AddressComponent]] = None
    logical_id: Optional[str] = None
    flagged_for_review: bool = False
    selected: bool = True
    recognizer: Optional[str] = None
    pattern_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.type = EntityType(self.type)
        self.source = EntitySource(self.source)
        if self.start >= self.end:
            raise ValueError(f"Entity span must satisfy start < end, got [{self.start}, {self.end})")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Entity confidence must be within [0, 1], got {self.confidence}")
        if self.components and self.type not in ADDRESS_TYPES:
            raise ValueError(f"Address components are not allowed on {self.type.value} entities")

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Entity") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "Entity") -> bool:
        return self.start <= other.start and other.end <= self.end

    def copy(self, **changes) -> "Entity":
        """Deep copy with optional field changes (invariants re-checked)."""
        clone = copy.deepcopy(self)
        for key, value in changes.items():
            setattr(clone, key, value)
        if changes:
            clone.__post_init__()
        return clone

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["source"] = self.source.value
        return data


@dataclass
class RegionHint:
    """Entities of `entity_types` are expected inside [start, end)."""
    start: int
    end: int
    entity_types: List[EntityType]


MAX_RUNTIME_BOOST = 0.5


@dataclass
class RuntimeContext:
    """Per-call hints supplied by the integrator."""
    document_type: Optional[DocumentType] = None
    column_hints: Dict[str, EntityType] = field(default_factory=dict)
    region_hints: List[RegionHint] = field(default_factory=list)
    context_words: List[str] = field(default_factory=list)
    confidence_boost: float = 0.2

    def __post_init__(self):
        self.confidence_boost = max(0.0, min(MAX_RUNTIME_BOOST, self.confidence_boost))
        if self.document_type is not None:
            self.document_type = DocumentType(self.document_type)
        self.column_hints = {str(k).strip().lower(): EntityType(v) for k, v in self.column_hints.items()}


@dataclass
class PassResult:
    pass_name: str
    entities_added: int = 0
    entities_modified: int = 0
    entities_removed: int = 0
    duration_ms: float = 0.0
    error: Optional[str] = None


@dataclass
class PipelineContext:
    """
    Per-document state threaded through all passes.

    `text` is the text the passes analyze (normalized when normalization is
    enabled); `original_text` is what the caller supplied. The index map from
    normalized to original offsets lives in metadata["index_map"].
    """
    text: str
    original_text: str
    config: PipelineConfig
    document_id: str = field(default_factory=lambda: f"doc_{uuid.uuid4().hex[:12]}")
    document_type: DocumentType = DocumentType.UNKNOWN
    language: str = "de"
    pass_results: Dict[str, PassResult] = field(default_factory=dict)
    start_time: float = field(default_factory=time.perf_counter)
    runtime: Optional[RuntimeContext] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DetectionMetadata:
    total_duration_ms: float = 0.0
    pass_results: List[PassResult] = field(default_factory=list)
    entity_counts: Dict[str, int] = field(default_factory=dict)
    flagged_count: int = 0
    deny_list_filtered: Dict[str, int] = field(default_factory=dict)
    context_boosted: int = 0
    document_classification: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)


@dataclass
class DetectionResult:
    """Final pipeline output."""
    entities: List[Entity]
    document_type: DocumentType
    language: str
    document_id: str
    metadata: DetectionMetadata = field(default_factory=DetectionMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "document_type": self.document_type.value,
            "language": self.language,
            "document_id": self.document_id,
            "metadata": asdict(self.metadata),
        }
