from __future__ import annotations

import math
from typing import Sequence

import numpy as np

def sma(values: Sequence[float], period: int) -> float:
    """Mean of the last `period` values.

    Fewer than `period` values returns the last value; empty returns 0.
    """
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    if n == 0:
        return 0.0
    if n < period or period <= 0:
        out = float(arr[-1])
    else:
        out = float(np.mean(arr[-period:]))
    return out if math.isfinite(out) else 0.0

def ema(values: Sequence[float], period: int) -> float:
    """Exponential moving average seeded from the first element (k = 2 / (period + 1)).

    Note:
      - The seed is values[0], not an SMA of the first `period` bars, so short
        windows lean toward the first sample.
    """
    arr = np.asarray(values, dtype=float)
    if len(arr) == 0:
        return 0.0
    k = 2.0 / (period + 1)
    out = float(arr[0])
    for v in arr[1:]:
        out = float(v) * k + out * (1.0 - k)
    return out if math.isfinite(out) else 0.0

def rsi(values: Sequence[float], period: int = 14) -> float:
    """RSI from simple averages of the last `period` gains/losses.

    Returns 50 with fewer than period + 1 values, 100 when there were gains but
    no losses, and 50 for a window with no movement at all.
    """
    c = np.asarray(values, dtype=float)
    if period <= 0 or len(c) < period + 1:
        return 50.0

    d = np.diff(c[-(period + 1):])
    if not np.all(np.isfinite(d)):
        return 50.0
    g_avg = float(np.clip(d, 0, None).sum()) / period
    l_avg = float(np.clip(-d, 0, None).sum()) / period

    if l_avg == 0.0 and g_avg == 0.0:
        return 50.0
    if l_avg == 0.0:
        return 100.0
    rs = g_avg / l_avg
    return 100.0 - (100.0 / (1.0 + rs))
