"""Display-name normalization for users shown on leaderboards."""
from __future__ import annotations

import re
from typing import Optional

UNKNOWN_NAME = "Unknown"

_TOKEN_SPLIT = re.compile(r"[._\s]+")
_SEGMENT_SPLIT = re.compile(r"([-'])")


def _format_segment(segment: str) -> str:
    return "".join(
        part if part in ("-", "'") else part[:1].upper() + part[1:].lower()
        for part in _SEGMENT_SPLIT.split(segment)
        if part
    )


def tokenize_display_name(raw: Optional[str]) -> list[str]:
    """
    Split a raw name or email into capitalized name tokens.

    ``"jean-luc.o'neil@example.com"`` gives ``["Jean-Luc", "O'Neil"]``.
    """
    value = (raw or "").strip()
    if "@" in value:
        value = value.split("@", 1)[0]
    return [t for t in (_format_segment(s) for s in _TOKEN_SPLIT.split(value) if s) if t]


def format_first_name(raw: Optional[str]) -> str:
    tokens = tokenize_display_name(raw)
    return tokens[0] if tokens else UNKNOWN_NAME

