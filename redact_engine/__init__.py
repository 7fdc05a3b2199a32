"""
Redact Engine - Multi-pass PII detection for Swiss/EU business documents

Recognizers, checksum validators, deny lists and context scoring feed an
ordered pipeline that returns typed, scored entities ready for review or
anonymization.
"""

from .detection_config import VERSION, PipelineConfig, PipelineConfigError
from .detectors.entities import DetectionResult, Entity, EntityType, RuntimeContext
from .detectors.pipeline import DetectionPipeline, detect, detect_async

__version__ = VERSION

__all__ = [
    "DetectionPipeline",
    "DetectionResult",
    "Entity",
    "EntityType",
    "PipelineConfig",
    "PipelineConfigError",
    "RuntimeContext",
    "detect",
    "detect_async",
]
