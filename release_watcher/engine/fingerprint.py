"""Change-detection fingerprints for extracted values."""

from __future__ import annotations

import hashlib
import json
import math
from dataclasses import dataclass
from typing import Any

SHA256_PREFIX = "sha256:"
DISPLAY_DIGEST_LENGTH = 16


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """Display string plus the opaque key compared between polls."""

    display: str
    key: str


def canonical_json(value: Any) -> str:
    """Serialize with sorted keys at every level and no insignificant whitespace."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def format_number(value: int | float) -> str:
    if isinstance(value, float):
        if not math.isfinite(value):
            return str(value)
        if value.is_integer():
            return str(int(value))
    return repr(value)


def _hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def fingerprint(value: Any) -> Fingerprint:
    if isinstance(value, str):
        return Fingerprint(display=value, key=f"str:{value}")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        text = format_number(value)
        return Fingerprint(display=text, key=f"num:{text}")
    digest = _hash(canonical_json(value))
    return Fingerprint(
        display=f"{SHA256_PREFIX}{digest[:DISPLAY_DIGEST_LENGTH]}",
        key=f"{SHA256_PREFIX}{digest}",
    )


__all__ = ["Fingerprint", "SHA256_PREFIX", "canonical_json", "fingerprint", "format_number"]
