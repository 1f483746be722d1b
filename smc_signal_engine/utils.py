from __future__ import annotations

import math
import re
from typing import Any, Optional

def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))

def round_half_up(x: float) -> int:
    """Nearest integer with halves rounded upward (2.5 -> 3, unlike round())."""
    return int(math.floor(x + 0.5))

def is_finite(*values: Any) -> bool:
    try:
        return all(math.isfinite(float(v)) for v in values)
    except (TypeError, ValueError):
        return False

def to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(str(value).replace(",", ""))
    except Exception:
        return None

def normalize_symbol(symbol: str) -> str:
    """Canonical key for per-instrument state: upper-case alphanumerics only."""
    return re.sub(r"[^A-Z0-9]", "", str(symbol or "").upper())
