from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping


def param_to_str(value: Any) -> str:
    """Render a parameter value the way it is signed and sent.

    - None renders empty (and is therefore dropped).
    - Booleans render as lowercase `true` / `false`.
    - Enums render their wire value.
    - Lists and tuples render comma-joined.

    """

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (list, tuple)):
        return ",".join(param_to_str(v) for v in value)
    return str(value)


def clean_params(params: Mapping[str, Any]) -> Dict[str, str]:
    """Return the non-empty parameters, stringified and sorted by key."""

    out: Dict[str, str] = {}
    for key in sorted(params):
        value = param_to_str(params[key])
        if value:
            out[key] = value
    return out


def canonicalize_params(params: Mapping[str, Any]) -> str:
    """Build the sign base: sorted `key=value` pairs joined with `&`.

    Empty values are excluded. No URL encoding is applied; the server signs
    the raw string.

    Security notes:
    - Client and server must canonicalize identically, so ordering is by key
      code point regardless of the mapping's insertion order.

    """

    return "&".join(f"{k}={v}" for k, v in clean_params(params).items())
