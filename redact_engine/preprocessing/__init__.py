"""Text normalization ahead of detection."""

from .text_normalizer import map_span, normalize_text, normalize_with_index_map

__all__ = [
    'map_span',
    'normalize_text',
    'normalize_with_index_map',
]
