"""
Data modules for Redact Engine.

Word lists, deny-list defaults, document keywords and Swiss place names.
"""

from .context_words import ContextWord, get_all_context_words, get_context_words
from .swiss_places import PlacesDatabase, get_places_db

__all__ = [
    "ContextWord",
    "get_context_words",
    "get_all_context_words",
    "PlacesDatabase",
    "get_places_db",
]
