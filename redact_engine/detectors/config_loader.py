"""
YAML loading and validation for recognizer and deny-list configuration.

Files are parsed with yaml.safe_load (JSON files load too) and validated
against pydantic models. Every schema violation is collected and reported in
one error; nothing is registered from a file that fails validation.

Recognizer file format (version 1):

    version: 1
    recognizers:
      - name: SwissAVS
        supported_languages: [de, fr, it, en]
        supported_countries: [CH]
        priority: 70
        specificity: country
        patterns:
          - name: avs_with_dots
            regex: '\\b756\\.\\d{4}\\.\\d{4}\\.\\d{2}\\b'
            score: 0.7
            entity_type: SWISS_AVS
        context_words: [ahv, avs]
        use_global_context: true
        validator: SWISS_AVS

Usage:
    from redact_engine.detectors.config_loader import load_recognizers_from_yaml

    configs = load_recognizers_from_yaml(Path("recognizers.yaml"))
    registry.load(configs)
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .deny_list import DenyList, compile_deny_regex, get_deny_list
from .recognizers import PatternDefinition, RecognizerConfig, Specificity, registry_validator
from .validators import get_validator_registry

logger = logging.getLogger(__name__)

SUPPORTED_CONFIG_VERSION = 1


class ConfigLoadError(Exception):
    """Raised when a configuration file is malformed or fails validation.

    Attributes:
        path: The file that failed (None for in-memory data).
        details: Structured error details (pydantic error dicts).
    """

    def __init__(self, path: Optional[Path], details: List[Dict[str, Any]], message: str):
        self.path = path
        self.details = details
        super().__init__(message)


class RecognizerConfigError(ConfigLoadError):
    """Recognizer configuration failed to load."""


class DenyListConfigError(ConfigLoadError):
    """Deny-list configuration failed to load."""


# =============================================================================
# Schema
# =============================================================================

def _check_regex(value: str) -> str:
    try:
        re.compile(value)
    except re.error as e:
        raise ValueError(f"invalid regular expression: {e}") from e
    return value


class PatternSchema(BaseModel):
    name: Optional[str] = None
    regex: str = Field(min_length=1)
    score: float = Field(ge=0.0, le=1.0)
    entity_type: str = Field(min_length=1)
    is_weak_pattern: bool = False
    ignore_case: bool = False

    @field_validator("regex")
    @classmethod
    def regex_compiles(cls, value: str) -> str:
        return _check_regex(value)


class RecognizerSchema(BaseModel):
    name: str = Field(min_length=1)
    patterns: List[PatternSchema] = Field(min_length=1)
    supported_languages: List[str] = Field(default_factory=lambda: ["de", "fr", "it", "en"])
    supported_countries: List[str] = Field(default_factory=list)
    priority: int = 0
    specificity: Specificity = Specificity.GLOBAL
    context_words: List[str] = Field(default_factory=list)
    deny_patterns: List[str] = Field(default_factory=list)
    use_global_deny_list: bool = True
    use_global_context: bool = False
    validator: Optional[str] = None

    @field_validator("deny_patterns")
    @classmethod
    def deny_patterns_compile(cls, value: List[str]) -> List[str]:
        for pattern in value:
            _check_regex(pattern)
        return value

    @field_validator("validator")
    @classmethod
    def validator_exists(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not get_validator_registry().has(value):
            known = ", ".join(get_validator_registry().entity_types())
            raise ValueError(f"unknown validator {value!r} (known: {known})")
        return value.upper()


class RecognizerFileSchema(BaseModel):
    version: Literal[1]
    recognizers: List[RecognizerSchema] = Field(default_factory=list)


class DenyPatternSchema(BaseModel):
    pattern: str = Field(min_length=1)
    type: Literal["string", "regex"] = "string"

    @model_validator(mode="after")
    def regex_compiles(self) -> "DenyPatternSchema":
        if self.type == "regex":
            _check_regex(self.pattern)
        return self


DenyEntrySchema = Union[str, DenyPatternSchema]


class DenyListFileSchema(BaseModel):
    version: Union[int, str] = 1
    global_: List[DenyEntrySchema] = Field(default_factory=list, alias="global")
    by_entity_type: Dict[str, List[DenyEntrySchema]] = Field(default_factory=dict)
    by_language: Dict[str, List[DenyEntrySchema]] = Field(default_factory=dict)


# =============================================================================
# Parsing helpers
# =============================================================================

def _read_yaml(path: Path, error_cls) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found at {path}.")

    raw_text = path.read_text(encoding="utf-8")
    try:
        raw_data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise error_cls(
            path=path,
            details=[{"type": "yaml_parse_error", "msg": str(e)}],
            message=f"Failed to parse YAML in {path}: {e}",
        ) from e

    if raw_data is None:
        raise error_cls(
            path=path,
            details=[{"type": "empty_file"}],
            message=f"Configuration file {path} is empty. It must contain at least a 'version' field.",
        )
    return raw_data


def _duplicate_name_errors(raw_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Repeated recognizer names, in pydantic error-dict shape."""
    recognizers = raw_data.get("recognizers")
    if not isinstance(recognizers, list):
        return []
    errors = []
    seen = set()
    for index, recognizer in enumerate(recognizers):
        name = recognizer.get("name") if isinstance(recognizer, dict) else None
        if not isinstance(name, str) or not name:
            continue
        if name in seen:
            errors.append({
                "type": "duplicate_name",
                "loc": ("recognizers", index, "name"),
                "msg": f"duplicate recognizer name {name!r}",
                "input": name,
            })
        seen.add(name)
    return errors


def _validate_model(model_cls, raw_data: Any, path: Optional[Path], error_cls, extra_checks=None):
    source = path if path is not None else "<config>"
    if not isinstance(raw_data, dict):
        raise error_cls(
            path=path,
            details=[{"type": "not_a_mapping", "got": type(raw_data).__name__}],
            message=f"{source} must contain a mapping at the top level, got {type(raw_data).__name__}.",
        )

    # Cross-item checks read the raw data and are reported with the field errors
    error_details = list(extra_checks(raw_data)) if extra_checks is not None else []
    parsed = None
    try:
        parsed = model_cls.model_validate(raw_data)
    except ValidationError as e:
        error_details = e.errors() + error_details
    if not error_details:
        return parsed

    error_lines = []
    for err in error_details:
        loc = " → ".join(str(part) for part in err["loc"])
        error_lines.append(f"  - {loc}: {err['msg']}")

    summary = "\n".join(error_lines)
    raise error_cls(
        path=path,
        details=error_details,
        message=f"Configuration validation failed for {source} ({len(error_details)} errors):\n{summary}",
    )


def _to_recognizer_config(schema: RecognizerSchema) -> RecognizerConfig:
    patterns = [
        PatternDefinition(
            name=p.name or f"{schema.name}_{index}",
            regex=p.regex,
            score=p.score,
            entity_type=p.entity_type,
            is_weak_pattern=p.is_weak_pattern,
            ignore_case=p.ignore_case,
        )
        for index, p in enumerate(schema.patterns)
    ]
    return RecognizerConfig(
        name=schema.name,
        patterns=patterns,
        supported_languages=list(schema.supported_languages),
        supported_countries=list(schema.supported_countries),
        priority=schema.priority,
        specificity=schema.specificity,
        context_words=list(schema.context_words),
        deny_patterns=list(schema.deny_patterns),
        use_global_deny_list=schema.use_global_deny_list,
        use_global_context=schema.use_global_context,
        validator=registry_validator(schema.validator) if schema.validator else None,
    )


# =============================================================================
# Recognizer configuration
# =============================================================================

def parse_recognizer_config(raw_data: Any, path: Optional[Path] = None) -> List[RecognizerConfig]:
    """
    Validate parsed YAML/JSON data and build RecognizerConfigs.

    Raises:
        RecognizerConfigError: with every schema violation found
    """
    parsed = _validate_model(RecognizerFileSchema, raw_data, path, RecognizerConfigError,
                             extra_checks=_duplicate_name_errors)
    configs = [_to_recognizer_config(r) for r in parsed.recognizers]
    logger.debug(f"Parsed {len(configs)} recognizer configs from {path or '<config>'}")
    return configs


def load_recognizers_from_yaml(path: Path) -> List[RecognizerConfig]:
    """
    Load and validate recognizer definitions from a YAML file.

    Args:
        path: Path to the recognizer YAML file

    Returns:
        RecognizerConfigs ready for RecognizerRegistry.load()

    Raises:
        FileNotFoundError: If the file doesn't exist
        RecognizerConfigError: If the YAML is malformed or fails validation
    """
    path = Path(path)
    raw_data = _read_yaml(path, RecognizerConfigError)
    return parse_recognizer_config(raw_data, path)


@dataclass
class ConfigValidationReport:
    valid: bool
    errors: List[str] = field(default_factory=list)
    recognizer_count: int = 0


def validate_recognizer_config(raw_data: Any) -> ConfigValidationReport:
    """Validate recognizer config data without raising; lists all violations."""
    try:
        configs = parse_recognizer_config(raw_data)
    except RecognizerConfigError as e:
        errors = []
        for detail in e.details:
            loc = " → ".join(str(part) for part in detail.get("loc", ()))
            msg = detail.get("msg", detail.get("type", "invalid"))
            errors.append(f"{loc}: {msg}" if loc else msg)
        return ConfigValidationReport(valid=False, errors=errors)
    return ConfigValidationReport(valid=True, recognizer_count=len(configs))


# =============================================================================
# Deny-list configuration
# =============================================================================

def _deny_entry(entry) -> Union[str, re.Pattern]:
    if isinstance(entry, str):
        return entry
    if entry.type == "regex":
        return compile_deny_regex(entry.pattern)
    return entry.pattern


def load_deny_list_config(raw_data: Any, deny_list: Optional[DenyList] = None,
                          path: Optional[Path] = None, replace: bool = True) -> DenyList:
    """
    Validate deny-list data and load it into a DenyList.

    Format: {version, global: [...], by_entity_type: {TYPE: [...]},
    by_language: {lang: [...]}}, where each entry is a literal string or
    {pattern, type: string|regex}.
    """
    parsed = _validate_model(DenyListFileSchema, raw_data, path, DenyListConfigError)
    target = deny_list if deny_list is not None else get_deny_list()
    target.load_config(
        global_entries=[_deny_entry(e) for e in parsed.global_],
        by_entity_type={k: [_deny_entry(e) for e in v] for k, v in parsed.by_entity_type.items()},
        by_language={k: [_deny_entry(e) for e in v] for k, v in parsed.by_language.items()},
        replace=replace,
    )
    return target


def load_deny_list_file(path: Path, deny_list: Optional[DenyList] = None, replace: bool = True) -> DenyList:
    """Load a YAML/JSON deny-list file (see load_deny_list_config)."""
    path = Path(path)
    raw_data = _read_yaml(path, DenyListConfigError)
    return load_deny_list_config(raw_data, deny_list, path, replace)
