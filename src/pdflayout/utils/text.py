"""
Text processing utilities for the pdflayout pipeline.

This module provides the small text predicates every heuristic stage relies on:
- Sentence-end / punctuation-end checks
- Case of the first letter (Unicode-aware via str methods)
- List-item recognition and marker stripping
- Whitespace normalization for comparisons
"""

import re
from typing import Optional

from pdflayout.constants import (
    BULLET_ITEM_RX,
    LIST_ITEM_RX,
    ORDERED_ITEM_RX,
    LETTERED_ITEM_RX,
    PUNCTUATION_END_RX,
    SENTENCE_END_RX,
    SOFT_HYPHEN,
)

_WS_RX = re.compile(r"\s+")
_INLINE_WS_RX = re.compile(r"[ \t]+")


def first_letter(text: str) -> Optional[str]:
    """Return the first character of stripped text, or None when empty."""
    stripped = (text or "").strip()
    return stripped[0] if stripped else None


def starts_with_lowercase(text: str) -> bool:
    """
    Check whether text opens with a lowercase letter.

    Example:
        >>> starts_with_lowercase("page without issue.")
        True
        >>> starts_with_lowercase("Page")
        False
    """
    ch = first_letter(text)
    return ch is not None and ch.islower()


def starts_with_capital(text: str) -> bool:
    """Check whether text opens with an uppercase letter."""
    ch = first_letter(text)
    return ch is not None and ch.isupper()


def ends_with_sentence_end(text: str) -> bool:
    """Check whether text ends with '.', '!' or '?' (ignoring trailing space)."""
    return bool(SENTENCE_END_RX.search(text or ""))


def ends_with_punctuation(text: str) -> bool:
    """Check whether text ends with a comma, semicolon, colon or dash."""
    return bool(PUNCTUATION_END_RX.search(text or ""))


def looks_like_list_item(text: str) -> bool:
    """
    Check whether text opens with a bullet, number or letter marker.

    Example:
        >>> looks_like_list_item("• first item")
        True
        >>> looks_like_list_item("2) second")
        True
        >>> looks_like_list_item("Plain sentence.")
        False
    """
    return bool(LIST_ITEM_RX.search(text or ""))


def is_ordered_item(text: str) -> bool:
    """Check whether text opens with a numeric marker like '1.' or '2)'."""
    return bool(ORDERED_ITEM_RX.search(text or ""))


def strip_list_marker(text: str) -> str:
    """
    Remove a leading list marker, returning the item text.

    Example:
        >>> strip_list_marker("1. Install the package")
        'Install the package'
        >>> strip_list_marker("- dash item")
        'dash item'
    """
    stripped = (text or "").strip()
    for rx in (ORDERED_ITEM_RX, BULLET_ITEM_RX, LETTERED_ITEM_RX):
        match = rx.match(stripped)
        if match:
            return stripped[match.end():].strip()
    return stripped


def collapse_inline_whitespace(text: str) -> str:
    """Remove soft hyphens and collapse runs of spaces/tabs to one space."""
    return _INLINE_WS_RX.sub(" ", (text or "").replace(SOFT_HYPHEN, ""))


def normalize_for_compare(text: str) -> str:
    """Lowercase and collapse all whitespace, for fuzzy text comparison."""
    return _WS_RX.sub(" ", (text or "").strip().lower())


def join_text(left: str, right: str, sep: str = " ") -> str:
    """
    Join two text fragments with a single separator, avoiding doubles.

    Example:
        >>> join_text("continued on the next,", "page without issue.")
        'continued on the next, page without issue.'
        >>> join_text("trailing ", "x")
        'trailing x'
    """
    left = left or ""
    right = right or ""
    if not left:
        return right
    if not right:
        return left
    if sep == " ":
        return left.rstrip() + " " + right.lstrip()
    return left + sep + right


def punctuation_ratio(text: str) -> float:
    """Fraction of characters that are neither letters nor whitespace."""
    if not text:
        return 0.0
    other = sum(1 for ch in text if not (ch.isalpha() or ch.isspace()))
    return other / len(text)
