"""
PII Detection module - recognizers, validators and the detection pipeline

Swiss/EU pattern recognizers run on top of Presidio; passes refine their
candidates into the final entity list.
"""

from .entities import (
    Entity,
    EntityType,
    EntitySource,
    ValidationStatus,
    DocumentType,
    AddressComponent,
    GroupedAddress,
    RuntimeContext,
    RegionHint,
    PipelineContext,
    PassResult,
    DetectionResult,
)
from .validators import (
    Confidence,
    ValidationResult,
    ValidatorRegistry,
    DuplicateValidatorError,
    get_validator_registry,
    validate_entity,
    # Checksum algorithms
    mod11_checksum,
    mod97_validate,
    ean13_check_digit,
)
from .deny_list import DenyList, get_deny_list
from .context_enhancer import ContextEnhancer, get_context_enhancer
from .recognizers import (
    PatternDefinition,
    RecognizerConfig,
    Specificity,
    create_default_recognizers,
)
from .registry import (
    RecognizerRegistry,
    DuplicateNameError,
    NotInitializedError,
    get_registry,
)
from .config_loader import (
    RecognizerConfigError,
    DenyListConfigError,
    load_recognizers_from_yaml,
    load_deny_list_file,
)
from .ml_adapter import MLAdapter
from .address_linker import AddressClassifier, AddressLinker, AddressScorer, link_addresses
from .document_classifier import DocumentClassifier, DocumentClassification
from .consolidation import Consolidator, ConsolidationConfig
from .pipeline import DetectionPipeline, detect, detect_async
from .mapping import MappingFile, MappingEntry, build_mapping

__all__ = [
    # Data model
    "Entity",
    "EntityType",
    "EntitySource",
    "ValidationStatus",
    "DocumentType",
    "AddressComponent",
    "GroupedAddress",
    "RuntimeContext",
    "RegionHint",
    "PipelineContext",
    "PassResult",
    "DetectionResult",
    # Validation
    "Confidence",
    "ValidationResult",
    "ValidatorRegistry",
    "DuplicateValidatorError",
    "get_validator_registry",
    "validate_entity",
    "mod11_checksum",
    "mod97_validate",
    "ean13_check_digit",
    # Deny list and context
    "DenyList",
    "get_deny_list",
    "ContextEnhancer",
    "get_context_enhancer",
    # Recognizers
    "PatternDefinition",
    "RecognizerConfig",
    "Specificity",
    "create_default_recognizers",
    "RecognizerRegistry",
    "DuplicateNameError",
    "NotInitializedError",
    "get_registry",
    "RecognizerConfigError",
    "DenyListConfigError",
    "load_recognizers_from_yaml",
    "load_deny_list_file",
    # Passes
    "MLAdapter",
    "AddressClassifier",
    "AddressLinker",
    "AddressScorer",
    "link_addresses",
    "DocumentClassifier",
    "DocumentClassification",
    "Consolidator",
    "ConsolidationConfig",
    # Pipeline
    "DetectionPipeline",
    "detect",
    "detect_async",
    "MappingFile",
    "MappingEntry",
    "build_mapping",
]
