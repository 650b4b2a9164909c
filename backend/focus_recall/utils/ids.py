"""ID helpers."""

from __future__ import annotations

import uuid


def new_id(prefix: str | None = None) -> str:
    """Short random identifier, optionally prefixed (``srch_3f2a...``)."""
    base = uuid.uuid4().hex[:20]
    return f"{prefix}_{base}" if prefix else base


__all__ = ["new_id"]
