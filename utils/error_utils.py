"""
Error message normalization for the error-frequency tally.

Remote errors embed volatile literals (product ids, quoted SKUs, URLs).
Replacing them with placeholders lets repeats of the same failure collapse
into one tally key.
"""

import re
from typing import Optional

MAX_KEY_LENGTH = 200

# Applied in order; earlier patterns must not be broken by later ones
ERROR_PATTERNS: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"https?://\S+"), "<url>"),
    (re.compile(r"gid://\S+"), "<gid>"),
    (re.compile(
        r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b",
        re.IGNORECASE,
    ), "<uuid>"),
    (re.compile(r'"[^"]*"'), '"<value>"'),
    (re.compile(r"'[^']*'"), "'<value>'"),
    (re.compile(r"\b\d{5,}\b"), "<id>"),
    (re.compile(r"\s+"), " "),
)


def normalize_error_message(message: Optional[str]) -> str:
    """
    Reduce an error message to a stable tally key.

    'Store update-sku failed: variant 44012345678 "MUG-1" not found'
    → 'Store update-sku failed: variant <id> "<value>" not found'

    Args:
        message: Raw error text

    Returns:
        Normalized key, truncated to MAX_KEY_LENGTH characters
    """
    if not message:
        return "unknown error"

    key = message
    for pattern, placeholder in ERROR_PATTERNS:
        key = pattern.sub(placeholder, key)

    return key.strip()[:MAX_KEY_LENGTH]
