"""Shared validation functions for all entry points.

Pure functions with no FastAPI, Click or gateway dependencies. Each returns
``(cleaned_value, None)`` on success or ``(fallback, error_message)`` on
failure, so callers can reject input before any remote call.
"""

from __future__ import annotations

import unicodedata
from typing import Any

from jiralite.types.enums import Priority

_MAX_ACTOR_LENGTH = 128


def sanitize_actor(value: Any) -> tuple[str, str | None]:
    """Validate and clean an acting user id.

    Strips whitespace, then checks: non-empty, max length, no control/format chars.
    """
    if not isinstance(value, str):
        return ("", "actor must be a string")
    # Check before stripping so "\nbad" is rejected rather than absorbed.
    for ch in value:
        cat = unicodedata.category(ch)
        if cat.startswith("C"):  # Cc (control) and Cf (format)
            return ("", f"actor must not contain control characters (found U+{ord(ch):04X})")
    cleaned = value.strip()
    if not cleaned:
        return ("", "actor must not be empty")
    if len(cleaned) > _MAX_ACTOR_LENGTH:
        return ("", f"actor must be at most {_MAX_ACTOR_LENGTH} characters")
    return (cleaned, None)


def validate_text(value: Any, *, name: str, max_length: int, required: bool = True) -> tuple[str, str | None]:
    """Check a free-text field: type, blank-ness (when *required*) and length.

    The value is returned unstripped; only the blank check looks at the
    stripped form, matching how the text is stored.
    """
    if value is None and not required:
        return ("", None)
    if not isinstance(value, str):
        return ("", f"{name} must be a string")
    if required and not value.strip():
        return ("", f"{name} must not be empty")
    if len(value) > max_length:
        return ("", f"{name} must be at most {max_length} characters")
    return (value, None)


def validate_priority(value: Any) -> tuple[Priority | None, str | None]:
    if not isinstance(value, str):
        return (None, "priority must be one of HIGH, MEDIUM, LOW")
    try:
        return (Priority(value.upper()), None)
    except ValueError:
        return (None, f"priority must be one of HIGH, MEDIUM, LOW (got {value!r})")
