from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from .config import EngineConfig, LevelProfile
from .confluence import analyze_structure
from .indicators import ema, rsi, sma
from .models import Bias, HitStatus, Outcome, PriceSeries, Signal, SignalResult, StructureReport
from .utils import is_finite, round_half_up

# Indicator sub-score points
P_FULL_AGREEMENT = 28
P_ABOVE_AVERAGES = 6
P_EMA_TREND = 4
P_RSI_BELOW_60 = 2
P_RSI_ABOVE_40 = 2

@dataclass(frozen=True)
class IndicatorReading:
    sma20: float
    ema50: float
    ema200: float
    rsi: float
    change_pct: float
    buy_agreement: bool
    sell_agreement: bool
    score: int

@dataclass(frozen=True)
class Analysis:
    result: SignalResult
    indicators: IndicatorReading
    structure: StructureReport

def read_indicators(series: PriceSeries, current: float, previous_close: float, cfg: EngineConfig) -> IndicatorReading:
    """Indicator snapshot plus the additive sub-score (0..42)."""
    closes = series.closes
    sma20 = sma(closes, cfg.sma_period)
    ema50 = ema(closes, cfg.ema_fast)
    ema200 = ema(closes, cfg.ema_slow)
    rsi_v = rsi(closes, cfg.rsi_period)
    change = ((current - previous_close) / previous_close) * 100.0 if previous_close else 0.0
    if not is_finite(change):
        change = 0.0

    above_sma = current > sma20
    above_ema = current > ema50
    ema_bull = ema50 > ema200
    ema_bear = ema50 < ema200

    buy = above_sma and above_ema and ema_bull and rsi_v < 70 and change > 0
    sell = (not above_sma) and (not above_ema) and ema_bear and rsi_v > 30 and change < 0

    score = 0
    if buy:
        score += P_FULL_AGREEMENT
    if sell:
        score += P_FULL_AGREEMENT
    # partial agreement bonuses are long-side only
    if above_sma and above_ema:
        score += P_ABOVE_AVERAGES
    if ema_bull:
        score += P_EMA_TREND
    if rsi_v < 60:
        score += P_RSI_BELOW_60
    if rsi_v > 40:
        score += P_RSI_ABOVE_40

    return IndicatorReading(
        sma20=sma20,
        ema50=ema50,
        ema200=ema200,
        rsi=rsi_v,
        change_pct=change,
        buy_agreement=buy,
        sell_agreement=sell,
        score=score,
    )

def blend_confidence(indicator_score: float, structure_conf: float, cfg: EngineConfig) -> int:
    raw = cfg.indicator_weight * indicator_score + cfg.structure_weight * structure_conf
    return max(0, min(cfg.max_confidence, round_half_up(raw)))

def decide(ind: IndicatorReading, st: StructureReport, cfg: EngineConfig) -> Signal:
    """Both families must agree: an indicator gate AND a structure gate.

    Neither the indicator side nor the structure side can trigger a trade alone.
    The `score >= indicator_gate` branch has no direction: a long-leaning score
    still passes the SELL gate, so structure bias picks the side.
    """
    strong_bull = st.confidence >= cfg.structure_gate and Bias.BULLISH in (st.bos, st.choch)
    strong_bear = st.confidence >= cfg.structure_gate and Bias.BEARISH in (st.bos, st.choch)
    indicator_ok_buy = ind.buy_agreement or ind.score >= cfg.indicator_gate
    indicator_ok_sell = ind.sell_agreement or ind.score >= cfg.indicator_gate

    if indicator_ok_buy and (st.trend_bias == Bias.BULLISH or strong_bull):
        return Signal.BUY
    if indicator_ok_sell and (st.trend_bias == Bias.BEARISH or strong_bear):
        return Signal.SELL
    return Signal.HOLD

def compute_levels(signal: Signal, current: float, profile: LevelProfile) -> Tuple[float, Tuple[float, ...]]:
    """Stop and targets as percentage offsets; targets ordered nearest first."""
    stop_off = profile.stop_pct / 100.0
    offsets = sorted(p / 100.0 for p in profile.target_pcts)
    if signal == Signal.BUY:
        return current * (1.0 - stop_off), tuple(current * (1.0 + o) for o in offsets)
    if signal == Signal.SELL:
        return current * (1.0 + stop_off), tuple(current * (1.0 - o) for o in offsets)
    return current, (current,)

def _label(b: Optional[Bias]) -> str:
    return b.value if b is not None else "None"

def explain(ind: IndicatorReading, st: StructureReport) -> str:
    parts: List[str] = []
    side = "BUY" if ind.buy_agreement else "SELL" if ind.sell_agreement else "Neutral"
    parts.append(
        f"Indicators: {side} (SMA20:{ind.sma20:.2f}, EMA50:{ind.ema50:.2f}, "
        f"EMA200:{ind.ema200:.2f}, RSI:{round_half_up(ind.rsi)})"
    )
    parts.append(
        f"SMC: {st.trend_bias.value} (BOS:{_label(st.bos)}, CHoCH:{_label(st.choch)}, "
        f"OB:{_label(st.order_block)}, FVG:{'Yes' if st.has_fvg else 'No'}, "
        f"VolSurge:{'Yes' if st.volume_surge else 'No'})"
    )
    parts.append(f"FibZone:{st.fib_zone.value}, LookbackRange:[{st.lookback_low:.2f} - {st.lookback_high:.2f}]")
    return " | ".join(parts)

def analyze(
    series: PriceSeries,
    current: float,
    previous_close: Optional[float] = None,
    cfg: Optional[EngineConfig] = None,
) -> Analysis:
    cfg = cfg or EngineConfig()
    current = float(current) if is_finite(current) else 0.0
    prev = float(previous_close) if previous_close is not None and is_finite(previous_close) else current

    ind = read_indicators(series, current, prev, cfg)
    st = analyze_structure(series, current, lookback=cfg.lookback_range)
    signal = decide(ind, st, cfg)
    stop, targets = compute_levels(signal, current, cfg.levels())

    result = SignalResult(
        signal=signal,
        confidence=blend_confidence(ind.score, st.confidence, cfg),
        stoploss=stop,
        targets=targets,
        explanation=explain(ind, st),
        hit_status=HitStatus.ACTIVE,
        entry_price=current,
    )
    return Analysis(result=result, indicators=ind, structure=st)

def generate_signal(
    series: PriceSeries,
    current: float,
    previous_close: Optional[float] = None,
    cfg: Optional[EngineConfig] = None,
) -> SignalResult:
    return analyze(series, current, previous_close, cfg).result

def resolve_hit_status(result: SignalResult, live_price: float) -> SignalResult:
    """Re-evaluate an ACTIVE result against a live price; returns a new result.

    Already-resolved results and HOLD results are returned unchanged.
    """
    if result.hit_status != HitStatus.ACTIVE or not is_finite(live_price):
        return result
    status = HitStatus.ACTIVE
    if result.signal == Signal.BUY:
        if live_price <= result.stoploss:
            status = HitStatus.STOP_HIT
        elif result.targets and live_price >= max(result.targets):
            status = HitStatus.TARGET_HIT
    elif result.signal == Signal.SELL:
        if live_price >= result.stoploss:
            status = HitStatus.STOP_HIT
        elif result.targets and live_price <= min(result.targets):
            status = HitStatus.TARGET_HIT
    if status == result.hit_status:
        return result
    return replace(result, hit_status=status)

def outcome_for(status: HitStatus) -> Optional[Outcome]:
    if status == HitStatus.TARGET_HIT:
        return Outcome.WIN
    if status == HitStatus.STOP_HIT:
        return Outcome.LOSS
    return None
