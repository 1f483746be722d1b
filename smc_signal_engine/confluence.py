from __future__ import annotations

from typing import Optional, Sequence

from .models import Bias, FibZone, PriceSeries, StructureReport
from .structure import (
    detect_bos,
    detect_breaker_block,
    detect_choch,
    detect_fair_value_gap,
    detect_liquidity_sweep,
    detect_mitigation_block,
    detect_order_block,
    detect_volume_surge,
)
from .utils import is_finite

# Additive confluence weights
W_BOS = 22
W_CHOCH = 20
W_LIQUIDITY_SWEEP = 12
W_VOLUME_SURGE = 10
W_ORDER_BLOCK = 10
W_MITIGATION = 8
W_BREAKER = 6
W_FVG = 5
W_ZONE_ALIGNED = 10

MAX_STRUCTURE_CONFIDENCE = 99

def structure_confidence(
    *,
    bos: Optional[Bias],
    choch: Optional[Bias],
    order_block: Optional[Bias],
    liquidity_sweep: Optional[Bias],
    mitigation: Optional[Bias],
    breaker: Optional[Bias],
    has_fvg: bool,
    volume_surge: bool,
    fib_zone: FibZone,
    trend_bias: Bias,
) -> int:
    """Fixed-weight additive score (0..99). Direction is ignored; any firing detector counts."""
    score = 0
    if bos is not None:
        score += W_BOS
    if choch is not None:
        score += W_CHOCH
    if liquidity_sweep is not None:
        score += W_LIQUIDITY_SWEEP
    if volume_surge:
        score += W_VOLUME_SURGE
    if order_block is not None:
        score += W_ORDER_BLOCK
    if mitigation is not None:
        score += W_MITIGATION
    if breaker is not None:
        score += W_BREAKER
    if has_fvg:
        score += W_FVG

    if fib_zone == FibZone.DISCOUNT and trend_bias == Bias.BULLISH:
        score += W_ZONE_ALIGNED
    if fib_zone == FibZone.PREMIUM and trend_bias == Bias.BEARISH:
        score += W_ZONE_ALIGNED

    return min(score, MAX_STRUCTURE_CONFIDENCE)

def trend_bias(bos: Optional[Bias], choch: Optional[Bias]) -> Bias:
    """First match wins: any BULLISH break is checked before any BEARISH one.

    A BOS/CHoCH disagreement therefore resolves BULLISH.
    """
    if bos == Bias.BULLISH or choch == Bias.BULLISH:
        return Bias.BULLISH
    if bos == Bias.BEARISH or choch == Bias.BEARISH:
        return Bias.BEARISH
    return Bias.NEUTRAL

def fib_zone(current: float, lookback_high: float, lookback_low: float) -> FibZone:
    if not is_finite(current, lookback_high, lookback_low):
        return FibZone.NEUTRAL
    mid = lookback_low + (lookback_high - lookback_low) * 0.5
    if current < mid:
        return FibZone.DISCOUNT
    if current > mid:
        return FibZone.PREMIUM
    return FibZone.NEUTRAL

def _range(values: Sequence[float], lookback: int, current: float, pick) -> float:
    """Extreme of the lookback window; nan when the window holds a non-finite value."""
    if not len(values):
        return current
    window = values[-lookback:]
    if not is_finite(*window):
        return float("nan")
    return float(pick(window))

def analyze_structure(series: PriceSeries, current: float, lookback: int = 20) -> StructureReport:
    highs, lows = series.highs, series.lows

    bos = detect_bos(highs, lows)
    choch = detect_choch(highs, lows)
    order_block = detect_order_block(series.closes)
    liquidity_sweep = detect_liquidity_sweep(highs, lows, current)
    mitigation = detect_mitigation_block(series.closes)
    breaker = detect_breaker_block(series.closes)
    has_fvg = detect_fair_value_gap(highs, lows)
    volume_surge = detect_volume_surge(series.volumes)

    bias = trend_bias(bos, choch)
    lookback_high = _range(highs, lookback, current, max)
    lookback_low = _range(lows, lookback, current, min)
    zone = fib_zone(current, lookback_high, lookback_low)

    confidence = structure_confidence(
        bos=bos,
        choch=choch,
        order_block=order_block,
        liquidity_sweep=liquidity_sweep,
        mitigation=mitigation,
        breaker=breaker,
        has_fvg=has_fvg,
        volume_surge=volume_surge,
        fib_zone=zone,
        trend_bias=bias,
    )

    return StructureReport(
        bos=bos,
        choch=choch,
        order_block=order_block,
        liquidity_sweep=liquidity_sweep,
        mitigation=mitigation,
        breaker=breaker,
        has_fvg=has_fvg,
        volume_surge=volume_surge,
        fib_zone=zone,
        trend_bias=bias,
        lookback_high=lookback_high,
        lookback_low=lookback_low,
        confidence=confidence,
    )
