# text.py
"""
Text normalization shared by indexing, query expansion and fallback scans.

Indexing and querying must use the exact same transform, otherwise query
terms and index tokens drift apart.
"""

import unicodedata


def strip_accents(text: str) -> str:
    """Decompose to NFD and drop every combining mark."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text) -> str:
    """
    Lowercase and strip diacritics.

    Empty or None input yields an empty string. Idempotent:
    normalize(normalize(s)) == normalize(s).
    """
    if not text:
        return ""
    return strip_accents(str(text).lower())
