# File: bandscore_app/modules/listening/logics/normalizer.py
"""Canonical forms used when comparing answers against a key."""

import re
from typing import Iterable, List, Optional

from ..schemas import Pair

_WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: Optional[str]) -> str:
    """
    Trim, collapse internal whitespace to one space and lower-case.

    Digits and punctuation are kept: gap answers are spelling-sensitive.
    """
    if text is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(text)).strip().lower()


def canonicalize_pairs(pairs: Iterable[Pair]) -> List[Pair]:
    """Sort pairs by (left, right) so equivalent pair sets compare equal."""
    return sorted((left, right) for left, right in pairs)


def normalize_pairs(pairs: Iterable[Pair]) -> List[Pair]:
    """Normalize both sides of every pair, then canonicalize."""
    return canonicalize_pairs((normalize(left), normalize(right)) for left, right in pairs)
