from __future__ import annotations

import math
from typing import Any, Optional

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def coerce_bool(value: Any, *, default: bool = False) -> bool:
    """Coerce a loosely-typed config value into a boolean.

    YAML and environment values may arrive as strings like "false" or "0";
    unknown strings fall back to `default` instead of bool("false") == True.
    """
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return bool(default)
        return value != 0
    if isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
    return bool(default)


def coerce_int(value: Any, *, default: int, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    """Coerce `value` to int, falling back to `default`, then clamp to [minimum, maximum]."""
    if isinstance(value, bool):
        n = default
    elif isinstance(value, int):
        n = value
    elif isinstance(value, float) and math.isfinite(value):
        n = int(value)
    elif isinstance(value, str) and value.strip():
        try:
            n = int(float(value.strip()))
        except ValueError:
            n = default
    else:
        n = default
    if minimum is not None and n < minimum:
        n = minimum
    if maximum is not None and n > maximum:
        n = maximum
    return n


def coerce_float(value: Any, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    return f if math.isfinite(f) else default
