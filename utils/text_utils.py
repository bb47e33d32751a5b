"""
Text utilities for matching and deduplication.

normalize_text() is applied identically to titles and handles so the two
can be compared with each other.
"""

import re
import unicodedata
from typing import Optional


# Parenthetical and bracketed segments, e.g. "(Pack of 6)", "[Clearance]"
_BRACKETED = re.compile(r"\([^)]*\)|\[[^\]]*\]")

# Shipping/rate suffixes the supplier appends to titles and handles
_SUFFIXES = (
    re.compile(r"[\s-]*-parcel-rate$"),
    re.compile(r"[\s-]*-p\d+$"),
)

# Anything but letters and digits, in any script
_NON_WORD = re.compile(r"[\W_]+")

STOPWORDS = frozenset({
    "a", "an", "the",
    "and", "or",
    "of", "for", "with", "in", "on", "at", "to", "by", "from",
})


def fold_accents(text: str) -> str:
    """
    Strip accent marks, keeping the base characters.

    "Crème Brûlée" → "Creme Brulee"
    """
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize_text(text: Optional[str]) -> str:
    """
    Normalize a title or handle for comparison.

    - "The Red Mug (Large)"   → "red mug"
    - "red-mug-parcel-rate"   → "red mug"
    - "Blue Bowl-P12"         → "blue bowl"

    Output only contains case-folded letters and digits (of any script)
    separated by single spaces, so normalizing twice gives the same result.

    Args:
        text: Raw title or handle (may be None)

    Returns:
        Normalized string, "" for empty input
    """
    if not text:
        return ""

    value = fold_accents(text).casefold()
    value = _BRACKETED.sub(" ", value).strip()

    for pattern in _SUFFIXES:
        value = pattern.sub("", value).strip()

    words = [w for w in _NON_WORD.split(value) if w and w not in STOPWORDS]
    return " ".join(words)


def slugify(text: Optional[str]) -> str:
    """
    Build a store-style handle from a title.

    "Red Mug (Large)" → "red-mug-large"
    """
    if not text:
        return ""
    value = fold_accents(text).casefold()
    return _NON_WORD.sub("-", value).strip("-")
