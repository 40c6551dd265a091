"""Unit tests for display-name normalization."""
from __future__ import annotations

from shared.utils.names import UNKNOWN_NAME, format_first_name, tokenize_display_name


def test_email_uses_local_part() -> None:
    assert tokenize_display_name("jane.doe@example.com") == ["Jane", "Doe"]


def test_hyphen_and_apostrophe_segments_capitalized() -> None:
    assert tokenize_display_name("jean-luc.o'neil@example.com") == ["Jean-Luc", "O'Neil"]


def test_first_name_from_full_name() -> None:
    assert format_first_name("  SAM   smith ") == "Sam"


def test_empty_name_is_unknown() -> None:
    assert format_first_name("") == UNKNOWN_NAME
    assert format_first_name(None) == UNKNOWN_NAME
    assert format_first_name("@example.com") == UNKNOWN_NAME
