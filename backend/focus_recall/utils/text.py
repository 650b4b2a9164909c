"""Text processing helpers."""

from __future__ import annotations

import re

WHITESPACE_RE = re.compile(r"\s+")
PUNCTUATION_RE = re.compile(r"[^\w\s]")


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def words(text: str) -> list[str]:
    """Lower-cased whitespace tokens with punctuation removed."""
    if not text:
        return []
    return PUNCTUATION_RE.sub(" ", text.lower()).split()


__all__ = ["WHITESPACE_RE", "PUNCTUATION_RE", "normalize", "words"]
