"""Market-structure detectors over trailing price/volume windows.

Every detector returns its "no signal" value (False or None) when the window is
too short or contains non-finite values; none of them raise.
"""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from .models import Bias
from .utils import is_finite

def _extremes(window: Sequence[float]) -> Optional[Tuple[float, float]]:
    """(max, min) of a window, or None if it is empty or holds any non-finite value."""
    arr = np.asarray(window, dtype=float)
    if arr.size == 0 or not np.all(np.isfinite(arr)):
        return None
    return float(arr.max()), float(arr.min())

def detect_fair_value_gap(highs: Sequence[float], lows: Sequence[float]) -> bool:
    """Gap between high[i] and low[i+2] (i = third-last bar) wider than 0.5% of high[i]."""
    if len(highs) < 3 or len(lows) < 3:
        return False
    i = len(highs) - 3
    prev_high = highs[i]
    next_low = lows[i + 2] if i + 2 < len(lows) else lows[-1]
    if not is_finite(prev_high, next_low) or prev_high == 0:
        return False
    return abs(next_low - prev_high) / abs(prev_high) > 0.005

def detect_order_block(prices: Sequence[float]) -> Optional[Bias]:
    if len(prices) < 5:
        return None
    avg = float(np.mean(prices[-5:]))
    recent = prices[-1]
    if not is_finite(recent, avg):
        return None
    if recent > avg * 1.01:
        return Bias.BULLISH
    if recent < avg * 0.99:
        return Bias.BEARISH
    return None

def detect_volume_surge(volumes: Sequence[float]) -> bool:
    if len(volumes) < 10:
        return False
    last10 = volumes[-10:]
    avg = float(np.mean(last10))
    latest = last10[-1]
    if not is_finite(latest, avg):
        return False
    return latest > avg * 1.5

def detect_liquidity_sweep(highs: Sequence[float], lows: Sequence[float], current: float) -> Optional[Bias]:
    """Price runs 0.1% past the recent range extreme but not past the prior bar's extreme.

    The recent range is the four bars before the prior bar, so the prior bar is
    the one that took the liquidity and the current price is trading inside its
    wick.
    """
    if len(highs) < 5 or len(lows) < 5:
        return None
    high_ext = _extremes(highs[-6:-2])
    low_ext = _extremes(lows[-6:-2])
    if high_ext is None or low_ext is None:
        return None
    recent_high = high_ext[0]
    recent_low = low_ext[1]
    prior_high = highs[-2]
    prior_low = lows[-2]
    if not is_finite(current, prior_high, prior_low):
        return None
    if recent_high * 1.001 < current < prior_high:
        return Bias.BEARISH
    if prior_low < current < recent_low * 0.999:
        return Bias.BULLISH
    return None

def detect_mitigation_block(prices: Sequence[float]) -> Optional[Bias]:
    if len(prices) < 6:
        return None
    last = prices[-1]
    ext = _extremes(prices[-6:-2])
    if ext is None or not is_finite(last):
        return None
    prev_high, prev_low = ext
    if prev_low * 1.02 < last < prev_high:
        return Bias.BULLISH
    if prev_low < last < prev_high * 0.98:
        return Bias.BEARISH
    return None

def detect_breaker_block(prices: Sequence[float]) -> Optional[Bias]:
    if len(prices) < 10:
        return None
    prev_ext = _extremes(prices[-10:-5])
    last_ext = _extremes(prices[-5:])
    if prev_ext is None or last_ext is None:
        return None
    prev_high, prev_low = prev_ext
    curr_high, curr_low = last_ext
    if curr_high > prev_high and curr_low > prev_low:
        return Bias.BULLISH
    if curr_low < prev_low and curr_high < prev_high:
        return Bias.BEARISH
    return None

def detect_bos(highs: Sequence[float], lows: Sequence[float]) -> Optional[Bias]:
    """Break of structure: latest high/low beyond the one three bars back (0.2%)."""
    if len(highs) < 6 or len(lows) < 6:
        return None
    prev_high, curr_high = highs[-3], highs[-1]
    prev_low, curr_low = lows[-3], lows[-1]
    if not is_finite(prev_high, curr_high, prev_low, curr_low):
        return None
    if curr_high > prev_high * 1.002:
        return Bias.BULLISH
    if curr_low < prev_low * 0.998:
        return Bias.BEARISH
    return None

def detect_choch(highs: Sequence[float], lows: Sequence[float]) -> Optional[Bias]:
    """Change of character: exactly one side broken (0.1%); both or neither -> None."""
    if len(highs) < 8 or len(lows) < 8:
        return None
    last_high, ref_high = highs[-1], highs[-3]
    last_low, ref_low = lows[-1], lows[-3]
    if not is_finite(last_high, ref_high, last_low, ref_low):
        return None
    broke_high = last_high > ref_high * 1.001
    broke_low = last_low < ref_low * 0.999
    if broke_high and not broke_low:
        return Bias.BULLISH
    if broke_low and not broke_high:
        return Bias.BEARISH
    return None
