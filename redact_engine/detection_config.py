#!/usr/bin/env python3
"""
Detection Config - Pipeline thresholds, pass toggles and persisted overrides
"""

import json
import logging
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)

# Engine version - single source of truth
VERSION = "1.0.0"


class PipelineConfigError(ValueError):
    """Raised for invalid pipeline configuration supplied by the integrator."""


# Fixed linear pass order
PASS_NAMES = (
    "high_recall",
    "deny_list_filter",
    "format_validation",
    "context_scoring",
    "address_relationship",
    "document_type",
    "consolidation",
)

DEFAULT_PASSES = {name: True for name in PASS_NAMES}

DEFAULT_PIPELINE_CONFIG: Dict[str, Any] = {
    "ml_confidence_threshold": 0.3,     # ML token spans below this are dropped
    "context_window_size": 50,          # chars scanned around an entity for context factors
    "auto_anonymize_threshold": 0.6,    # >= selected automatically, < flagged for review
    "review_threshold": 0.4,            # context scoring flags entities below this
    "low_confidence_multiplier": 0.4,   # applied to weak patterns / low-score entity types
    "document_type_min_confidence": 0.4,
    "enable_normalization": True,
}

# (min, max) for every numeric setting
CONFIG_BOUNDS = {
    "ml_confidence_threshold": (0.0, 1.0),
    "context_window_size": (0, 1000),
    "auto_anonymize_threshold": (0.0, 1.0),
    "review_threshold": (0.0, 1.0),
    "low_confidence_multiplier": (0.0, 1.0),
    "document_type_min_confidence": (0.0, 1.0),
}


def clamp_setting(key: str, value):
    """Clamp a numeric setting to its bounds; non-numeric settings pass through."""
    if key not in CONFIG_BOUNDS:
        return value
    low, high = CONFIG_BOUNDS[key]
    clamped = max(low, min(high, value))
    if key == "context_window_size":
        clamped = int(clamped)
    return clamped


@dataclass
class PipelineConfig:
    """Tunable configuration surface for one pipeline instance."""
    ml_confidence_threshold: float = 0.3
    context_window_size: int = 50
    auto_anonymize_threshold: float = 0.6
    review_threshold: float = 0.4
    low_confidence_multiplier: float = 0.4
    document_type_min_confidence: float = 0.4
    enable_normalization: bool = True
    passes: Dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_PASSES))
    low_score_entity_names: Set[str] = field(default_factory=set)

    def __post_init__(self):
        for key in CONFIG_BOUNDS:
            setattr(self, key, clamp_setting(key, getattr(self, key)))
        unknown = set(self.passes) - set(PASS_NAMES)
        if unknown:
            raise PipelineConfigError(f"Unknown pass name(s): {', '.join(sorted(unknown))}")
        self.passes = {**DEFAULT_PASSES, **self.passes}
        self.low_score_entity_names = {str(name).upper() for name in self.low_score_entity_names}

    def is_pass_enabled(self, name: str) -> bool:
        return self.passes.get(name, True)

    def with_overrides(self, **overrides) -> "PipelineConfig":
        """Return a copy with the given fields replaced (and clamped)."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise PipelineConfigError(f"Unknown config key(s): {', '.join(sorted(unknown))}")
        if "passes" in overrides:
            overrides["passes"] = {**self.passes, **overrides["passes"]}
        return replace(self, **overrides)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise PipelineConfigError(f"Unknown config key(s): {', '.join(sorted(unknown))}")
        values = dict(data)
        if "low_score_entity_names" in values:
            values["low_score_entity_names"] = set(values["low_score_entity_names"])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **{key: getattr(self, key) for key in DEFAULT_PIPELINE_CONFIG},
            "passes": dict(self.passes),
            "low_score_entity_names": sorted(self.low_score_entity_names),
        }


class DetectionConfig:
    """
    Manages pipeline settings with persistence and an adjustment history
    """

    def __init__(self, config_path: str = None):
        """
        Initialize config manager

        Args:
            config_path: Path to config file (default: ~/.redact/detection_config.json)
        """
        if config_path:
            self.config_path = Path(config_path)
        else:
            self.config_path = Path.home() / ".redact" / "detection_config.json"

        self.config: Dict[str, Any] = {
            "settings": DEFAULT_PIPELINE_CONFIG.copy(),
            "passes": DEFAULT_PASSES.copy(),
            "low_score_entity_names": [],
            "created_at": datetime.now().isoformat(),
            "updated_at": datetime.now().isoformat(),
            "adjustment_history": []
        }

        self._load_config()

    def _load_config(self):
        """Load config from file if it exists"""
        if not self.config_path.exists():
            return
        try:
            with open(self.config_path, 'r') as f:
                saved = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable config {self.config_path}: {e}")
            return

        # Merge with defaults (in case new settings were added)
        settings = {**DEFAULT_PIPELINE_CONFIG, **saved.get("settings", {})}
        self.config["settings"] = {
            key: clamp_setting(key, value) for key, value in settings.items()
            if key in DEFAULT_PIPELINE_CONFIG
        }
        self.config["passes"] = {
            **DEFAULT_PASSES,
            **{k: bool(v) for k, v in saved.get("passes", {}).items() if k in DEFAULT_PASSES},
        }
        self.config["low_score_entity_names"] = list(saved.get("low_score_entity_names", []))
        self.config["created_at"] = saved.get("created_at", self.config["created_at"])
        self.config["updated_at"] = saved.get("updated_at", self.config["updated_at"])
        self.config["adjustment_history"] = saved.get("adjustment_history", [])

    def save(self):
        """Save config to file"""
        self.config["updated_at"] = datetime.now().isoformat()
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            json.dump(self.config, f, indent=2)

    def get_value(self, key: str):
        return self.config["settings"][key]

    def set_value(self, key: str, value, reason: str = None, persist: bool = True):
        """
        Set a pipeline setting

        Args:
            key: Setting name (e.g. "auto_anonymize_threshold")
            value: New value (numeric settings are clamped to CONFIG_BOUNDS)
            reason: Optional reason for the change
            persist: Write the file immediately
        """
        if key not in DEFAULT_PIPELINE_CONFIG:
            raise PipelineConfigError(f"Unknown setting: {key}")

        value = clamp_setting(key, value)
        old_value = self.config["settings"].get(key)
        self.config["settings"][key] = value

        self.config["adjustment_history"].append({
            "key": key,
            "old_value": old_value,
            "new_value": value,
            "reason": reason,
            "timestamp": datetime.now().isoformat()
        })

        # Keep only last 100 adjustments
        self.config["adjustment_history"] = self.config["adjustment_history"][-100:]

        if persist:
            self.save()

    def set_pass_enabled(self, name: str, enabled: bool, persist: bool = True):
        """Enable or disable one pipeline pass"""
        if name not in DEFAULT_PASSES:
            raise PipelineConfigError(f"Unknown pass: {name}")
        self.config["passes"][name] = enabled
        if persist:
            self.save()

    def get_pipeline_config(self) -> PipelineConfig:
        """Build the immutable-by-convention PipelineConfig from current settings"""
        return PipelineConfig(
            **self.config["settings"],
            passes=dict(self.config["passes"]),
            low_score_entity_names=set(self.config["low_score_entity_names"]),
        )

    def reset_to_defaults(self, persist: bool = True):
        """Reset all settings to defaults"""
        self.config["settings"] = DEFAULT_PIPELINE_CONFIG.copy()
        self.config["passes"] = DEFAULT_PASSES.copy()
        self.config["low_score_entity_names"] = []
        self.config["adjustment_history"] = []
        if persist:
            self.save()


# Global instance for convenience
_config: Optional[DetectionConfig] = None


def get_config() -> DetectionConfig:
    """Get the global detection config instance"""
    global _config
    if _config is None:
        _config = DetectionConfig()
    return _config


def reset_config():
    """Drop the global config instance (test harnesses only)"""
    global _config
    _config = None
