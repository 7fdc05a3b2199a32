"""
DenyList - False positive suppression for detected entities.

Literal entries are kept in lowercase sets (O(1) lookup of the whole trimmed
candidate); regex entries are compiled case-insensitively and searched in the
candidate. Entries are scoped globally, per entity type or per language.

Lookup order: global literals, global regexes, entity-type literals,
entity-type regexes, language literals, language regexes.

Usage:
    from redact_engine.detectors.deny_list import get_deny_list, language_scope

    deny_list = get_deny_list()
    deny_list.is_denied("MONTANT", "PERSON_NAME")        # True
    deny_list.add_pattern("Konto", scope="PERSON_NAME")
    deny_list.add_pattern("Objet", scope=language_scope("fr"))
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Pattern, Set, Union

from ..data.deny_list_defaults import (
    DEFAULT_ENTITY_PATTERNS,
    DEFAULT_GLOBAL_LITERALS,
    DEFAULT_LANGUAGE_LITERALS,
)
from .entities import EntityType, TYPE_ALIASES

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"
LANGUAGE_SCOPE_PREFIX = "language:"

DenyEntry = Union[str, Pattern]


def language_scope(language: str) -> str:
    """Scope name for entries that apply to one language only."""
    return f"{LANGUAGE_SCOPE_PREFIX}{language.lower()}"


class _ScopedEntries:
    """Literal set plus regex list for one scope."""

    __slots__ = ("literals", "regexes")

    def __init__(self):
        self.literals: Set[str] = set()
        self.regexes: List[Pattern] = []

    def add(self, entry: DenyEntry):
        if isinstance(entry, str):
            self.literals.add(entry.strip().lower())
        else:
            self.regexes.append(entry)

    def matches(self, text: str, lowered: str) -> bool:
        if lowered in self.literals:
            return True
        return any(regex.search(text) for regex in self.regexes)

    def __len__(self):
        return len(self.literals) + len(self.regexes)


def compile_deny_regex(pattern: str) -> Pattern:
    """Compile a deny pattern; all deny matching is case-insensitive."""
    return re.compile(pattern, re.IGNORECASE)


class DenyList:
    """
    Case-insensitive false-positive filter.

    Read-mostly: build it once at startup, mutate only during setup or tests.
    """

    def __init__(self, load_defaults: bool = True):
        self._global = _ScopedEntries()
        self._by_entity_type: Dict[str, _ScopedEntries] = {}
        self._by_language: Dict[str, _ScopedEntries] = {}
        if load_defaults:
            self._load_defaults()

    def _load_defaults(self):
        for literal in DEFAULT_GLOBAL_LITERALS:
            self._global.add(literal)
        for entity_type, patterns in DEFAULT_ENTITY_PATTERNS.items():
            for pattern in patterns:
                self._entity_scope(entity_type).add(compile_deny_regex(pattern))
        for language, literals in DEFAULT_LANGUAGE_LITERALS.items():
            for literal in literals:
                self._language_scope(language).add(literal)

    def _entity_scope(self, entity_type: str) -> _ScopedEntries:
        key = str(entity_type).upper()
        if key not in self._by_entity_type:
            self._by_entity_type[key] = _ScopedEntries()
        return self._by_entity_type[key]

    def _language_scope(self, language: str) -> _ScopedEntries:
        key = language.lower()
        if key not in self._by_language:
            self._by_language[key] = _ScopedEntries()
        return self._by_language[key]

    @staticmethod
    def _type_keys(entity_type) -> List[str]:
        key = entity_type.value if isinstance(entity_type, EntityType) else str(entity_type).upper()
        keys = [key]
        # Custom types from loaded recognizers have no aliases
        if key in EntityType.__members__:
            keys.extend(alias.value for alias in TYPE_ALIASES.get(EntityType(key), ()))
        return keys

    def is_denied(self, text: str, entity_type=None, language: Optional[str] = None) -> bool:
        """
        Check if text is a known false positive.

        Args:
            text: Detected entity text
            entity_type: Entity type (PERSON and PERSON_NAME share entries)
            language: Optional language code (en, fr, de)

        Returns:
            True if the text should be filtered out
        """
        normalized = text.strip()
        if not normalized:
            return False
        lowered = normalized.lower()

        if self._global.matches(normalized, lowered):
            return True

        if entity_type is not None:
            for key in self._type_keys(entity_type):
                scope = self._by_entity_type.get(key)
                if scope is not None and scope.matches(normalized, lowered):
                    return True

        if language:
            scope = self._by_language.get(language.lower())
            if scope is not None and scope.matches(normalized, lowered):
                return True

        return False

    def add_pattern(self, pattern: DenyEntry, scope: str = GLOBAL_SCOPE, is_regex: bool = False):
        """
        Add an entry at runtime.

        Args:
            pattern: Literal string, regex source (with is_regex=True) or compiled pattern
            scope: "global", an entity type name (e.g. "PERSON_NAME") or
                a language scope (e.g. "language:fr", see language_scope())
            is_regex: Treat a string pattern as a regular expression
        """
        entry = self._to_entry(pattern, is_regex)
        if scope == GLOBAL_SCOPE:
            self._global.add(entry)
        elif scope.lower().startswith(LANGUAGE_SCOPE_PREFIX):
            language = scope[len(LANGUAGE_SCOPE_PREFIX):].strip()
            if not language:
                raise ValueError(f"Language scope without a language code: {scope!r}")
            self._language_scope(language).add(entry)
        else:
            self._entity_scope(scope).add(entry)

    def add_language_pattern(self, pattern: DenyEntry, language: str, is_regex: bool = False):
        self.add_pattern(pattern, language_scope(language), is_regex)

    @staticmethod
    def _to_entry(pattern: DenyEntry, is_regex: bool) -> DenyEntry:
        if isinstance(pattern, str):
            return compile_deny_regex(pattern) if is_regex else pattern
        if pattern.flags & re.IGNORECASE:
            return pattern
        return compile_deny_regex(pattern.pattern)

    def load_config(
        self,
        global_entries: Iterable[DenyEntry] = (),
        by_entity_type: Optional[Dict[str, Iterable[DenyEntry]]] = None,
        by_language: Optional[Dict[str, Iterable[DenyEntry]]] = None,
        replace: bool = True,
    ):
        """
        Load entries from a parsed configuration.

        String entries are literals; compiled patterns are regexes. Use
        config_loader.load_deny_list_file() to read and validate a YAML/JSON
        file into this shape.
        """
        if replace:
            self._global = _ScopedEntries()
            self._by_entity_type = {}
            self._by_language = {}
        for entry in global_entries:
            self._global.add(self._to_entry(entry, False))
        for entity_type, entries in (by_entity_type or {}).items():
            for entry in entries:
                self._entity_scope(entity_type).add(self._to_entry(entry, False))
        for language, entries in (by_language or {}).items():
            for entry in entries:
                self._language_scope(language).add(self._to_entry(entry, False))
        logger.debug(f"Deny list loaded: {self.stats()}")

    def reset(self):
        """Restore the default entries (test harnesses only)."""
        self._global = _ScopedEntries()
        self._by_entity_type = {}
        self._by_language = {}
        self._load_defaults()

    def stats(self) -> Dict[str, int]:
        return {
            "global": len(self._global),
            "entity_types": sum(len(s) for s in self._by_entity_type.values()),
            "languages": sum(len(s) for s in self._by_language.values()),
        }


def is_denied_by_patterns(text: str, patterns: Iterable[Pattern]) -> bool:
    """Search text against recognizer-local deny patterns."""
    stripped = text.strip()
    return any(p.search(stripped) for p in patterns)


# Global instance for convenience
_deny_list: Optional[DenyList] = None


def get_deny_list() -> DenyList:
    """Get the global deny list instance (defaults loaded)."""
    global _deny_list
    if _deny_list is None:
        _deny_list = DenyList()
    return _deny_list


def reset_deny_list():
    """Drop the global deny list (test harnesses only)."""
    global _deny_list
    _deny_list = None
