"""
Text normalization with offset tracking.

This module provides preprocessing that makes pattern matching robust while
keeping every normalized character traceable to the original document:
- Unicode normalization (fullwidth characters, compatibility forms)
- Zero-width character removal and non-breaking space folding
- Email de-obfuscation ("jean (at) example (dot) ch")
- Phone trunk prefix removal ("+41 (0) 44" -> "+41 44")

Every transformation updates an index map: index_map[i] is the offset in the
original text of normalized character i.
"""

import re
import unicodedata
from typing import List, Tuple


# U+200B-U+200D: zero width space / non-joiner / joiner
# U+2060: word joiner, U+FEFF: zero width no-break space (BOM)
ZERO_WIDTH_CHARS = frozenset('\u200b\u200c\u200d\u2060\ufeff')

# Non-breaking space, figure space, narrow no-break space
NBSP_CHARS = frozenset('\u00a0\u2007\u202f')

# U+2010-U+2015: hyphen, non-breaking hyphen, figure dash, en dash, em dash, bar
DASH_CHARS = frozenset('\u2010\u2011\u2012\u2013\u2014\u2015')

# Standalone " at " / " dot " / " point " are deliberately not rewritten
EMAIL_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'\s*\(at\)\s*', re.IGNORECASE), '@'),
    (re.compile(r'\s*\[at\]\s*', re.IGNORECASE), '@'),
    (re.compile(r'\s*\{at\}\s*', re.IGNORECASE), '@'),
    (re.compile(r'\s*\(dot\)\s*', re.IGNORECASE), '.'),
    (re.compile(r'\s*\[dot\]\s*', re.IGNORECASE), '.'),
    (re.compile(r'\s*\{dot\}\s*', re.IGNORECASE), '.'),
    # French
    (re.compile(r'\s*\(arobase\)\s*', re.IGNORECASE), '@'),
    (re.compile(r'\s+arobase\s+', re.IGNORECASE), '@'),
    (re.compile(r'\s*\(point\)\s*', re.IGNORECASE), '.'),
    # German
    (re.compile(r'\s*\(Klammeraffe\)\s*', re.IGNORECASE), '@'),
    (re.compile(r'\s+Klammeraffe\s+', re.IGNORECASE), '@'),
    (re.compile(r'\s*\(Punkt\)\s*', re.IGNORECASE), '.'),
]

PHONE_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'(\+\d{1,3})\s*\(0\)\s*'), r'\1 '),
]


def normalize_with_index_map(text: str) -> Tuple[str, List[int]]:
    """
    Normalize text for PII detection and track original offsets.

    Args:
        text: Raw input text

    Returns:
        Tuple of (normalized_text, index_map) where index_map has one entry
        per normalized character
    """
    if not text:
        return "", []

    chars, index_map = _unicode_and_whitespace(text)
    normalized = "".join(chars)

    normalized, index_map = _apply_patterns(normalized, index_map, EMAIL_PATTERNS)
    normalized, index_map = _apply_patterns(normalized, index_map, PHONE_PATTERNS)

    return normalized, index_map


def normalize_text(text: str) -> str:
    """Normalize text without keeping the index map."""
    return normalize_with_index_map(text)[0]


def map_span(start: int, end: int, index_map: List[int]) -> Tuple[int, int]:
    """
    Map a [start, end) span in normalized text back to original coordinates.

    The end offset is exclusive, so it maps through the last covered
    character: index_map[end - 1] + 1.
    """
    if not index_map:
        return start, end

    if start < len(index_map):
        mapped_start = index_map[start]
    else:
        mapped_start = index_map[-1]

    if end <= 0:
        mapped_end = 0
    elif end > len(index_map):
        mapped_end = index_map[-1] + 1
    else:
        mapped_end = index_map[end - 1] + 1

    if mapped_end <= mapped_start:
        mapped_end = mapped_start + 1
    return mapped_start, mapped_end


def _unicode_and_whitespace(text: str) -> Tuple[List[str], List[int]]:
    """NFKC per character, drop zero-width chars, fold NBSP and dash variants."""
    chars: List[str] = []
    index_map: List[int] = []
    for original_idx, char in enumerate(text):
        if char in ZERO_WIDTH_CHARS:
            continue
        if char in NBSP_CHARS:
            replacement = ' '
        elif char in DASH_CHARS:
            replacement = '-'
        else:
            replacement = unicodedata.normalize('NFKC', char)
        for out_char in replacement:
            chars.append(out_char)
            index_map.append(original_idx)
    return chars, index_map


def _apply_patterns(
    text: str,
    index_map: List[int],
    patterns: List[Tuple[re.Pattern, str]],
) -> Tuple[str, List[int]]:
    """Apply regex replacements; replaced characters map to the match start."""
    for pattern, replacement in patterns:
        matches = list(pattern.finditer(text))
        if not matches:
            continue
        # Right to left keeps earlier offsets valid
        for match in reversed(matches):
            new_text = match.expand(replacement)
            origin = index_map[match.start()] if match.start() < len(index_map) else len(index_map)
            text = text[:match.start()] + new_text + text[match.end():]
            index_map = index_map[:match.start()] + [origin] * len(new_text) + index_map[match.end():]
    return text, index_map
