"""
Decoding of JSON-in-string columns from the legacy export.

Some columns hold serialized objects or single-element arrays, others hold
plain text, and the same column may do both across rows. Every such value
goes through decode_value, which yields either Structured (it decoded) or
Opaque (use the text as-is).
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class Structured:
    value: Any


@dataclass(frozen=True)
class Opaque:
    text: str


Decoded = Union[Structured, Opaque]


def decode_value(value: Any) -> Decoded:
    """Decode a cell as a structured value, falling back to opaque text"""
    if not isinstance(value, str):
        return Structured(value)
    try:
        return Structured(json.loads(value))
    except ValueError:
        return Opaque(value)


def decode_mapping(value: Any) -> Optional[Dict[str, Any]]:
    """Return the decoded object if the cell holds one"""
    decoded = decode_value(value)
    if isinstance(decoded, Structured) and isinstance(decoded.value, dict):
        return decoded.value
    return None


def unwrap_tag(value: Any) -> Optional[str]:
    """
    Single-element tag arrays: ["Furnished"] -> "Furnished".

    A value that is not a non-empty list is used as plain text. A null or
    blank first element unwraps to None.
    """
    decoded = decode_value(value)
    if isinstance(decoded, Structured) and isinstance(decoded.value, list) and decoded.value:
        first = decoded.value[0]
        if first is None:
            return None
        return str(first).strip() or None
    if isinstance(value, str):
        return value.strip() or None
    return None
