"""
String normalization utilities for subscriber and list matching.

Provides consistent normalization for the keys used to reconcile remote
contacts against the source-of-truth rows, and for looking up configured
lists by display name.
"""

from __future__ import annotations

import re
import unicodedata


def normalize_email(value: str | None) -> str:
    """
    Normalize an email address into its reconciliation key.

    Surrounding whitespace is removed and the address is lower-cased, so
    " A@B.com " and "a@b.com" identify the same subscriber.

    Args:
        value: Raw email address (may be None)

    Returns:
        Normalized email, or "" when the value is empty
    """
    if not value:
        return ""
    return value.strip().lower()


def normalize_string(value: str, remove_spaces: bool = False) -> str:
    """
    Normalize a free-text label (e.g. a list display name) for comparison.

    Args:
        value: String to normalize
        remove_spaces: If True, remove all spaces from the result.
                      If False, multiple spaces are collapsed to single space.

    Returns:
        Normalized lowercase string with accents removed
    """
    if not value:
        return ""

    # Normalize unicode (decompose accents, etc.)
    normalized = unicodedata.normalize("NFKD", value)

    # Remove combining characters (accents)
    normalized = "".join(c for c in normalized if not unicodedata.combining(c))

    normalized = normalized.lower()
    normalized = re.sub(r"\s+", " ", normalized).strip()

    if remove_spaces:
        normalized = normalized.replace(" ", "")

    return normalized
