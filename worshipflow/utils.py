"""
WorshipFlow Song Manager - Shared Utilities

Common helpers used across multiple modules to avoid duplication.
"""

import unicodedata
from typing import Any, Tuple


def as_text(value: Any) -> str:
    """Return *value* if it is a string, otherwise an empty string."""
    return value if isinstance(value, str) else ""


def normalize_key(value: Any) -> str:
    """Trim and lowercase a field for case-insensitive equality checks."""
    return as_text(value).strip().lower()


def collation_key(value: Any) -> Tuple[str, str, str]:
    """
    Sort key approximating a locale-aware comparison.

    Letters are compared first with accents and case ignored ("Ángel" sorts
    next to "angel").  Ties are broken by accents, unaccented first, and
    then by case, lower-case first, so "b" comes before "B".  Missing values
    sort as the empty string.
    """
    text = as_text(value)
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.casefold(), decomposed.casefold(), text.swapcase()
