"""Compilation of user-supplied refinement regexes."""

from __future__ import annotations

import re

from ..errors import InvalidRegexError

DEFAULT_FLAGS = re.IGNORECASE | re.MULTILINE

# ``g``/``y``/``u``/``d`` only affect iteration or encoding, so they carry no meaning here.
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "g": 0,
    "y": 0,
    "u": 0,
    "d": 0,
}


def compile_regex(expression: str) -> re.Pattern[str] | None:
    """Compile ``/pattern/flags`` or a bare pattern (case-insensitive, multiline)."""

    if not expression:
        return None

    last_slash = expression.rfind("/")
    if expression.startswith("/") and last_slash > 0:
        body = expression[1:last_slash]
        flag_text = expression[last_slash + 1 :]
        if flag_text:
            flags = 0
            for letter in flag_text:
                if letter not in _FLAG_MAP:
                    raise InvalidRegexError(f"Unsupported regex flag {letter!r} in {expression}")
                flags |= _FLAG_MAP[letter]
        else:
            flags = DEFAULT_FLAGS
    else:
        body = expression
        flags = DEFAULT_FLAGS

    try:
        return re.compile(body, flags)
    except re.error as exc:
        raise InvalidRegexError(f"Invalid regex {expression}: {exc}") from exc


__all__ = ["DEFAULT_FLAGS", "compile_regex"]
