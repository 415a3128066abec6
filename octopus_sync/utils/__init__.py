"""
octopus_sync.utils - Utility module

Common utilities including normalization, logging and retries.
"""

from octopus_sync.utils.normalization import normalize_email, normalize_string

__all__ = [
    "normalize_email",
    "normalize_string",
]
