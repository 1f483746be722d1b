from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

class Signal(str, Enum):
    SELL = "SELL"
    HOLD = "HOLD"
    BUY = "BUY"

# Q-table action index order
ACTIONS: Tuple[Signal, ...] = (Signal.SELL, Signal.HOLD, Signal.BUY)

class Bias(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"

class FibZone(str, Enum):
    PREMIUM = "PREMIUM"
    DISCOUNT = "DISCOUNT"
    NEUTRAL = "NEUTRAL"

class HitStatus(str, Enum):
    ACTIVE = "ACTIVE"
    TARGET_HIT = "TARGET_HIT"
    STOP_HIT = "STOP_HIT"

class Outcome(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"

def _floats(values: Optional[Sequence[Any]]) -> List[float]:
    out: List[float] = []
    for v in values or []:
        try:
            out.append(float(v))
        except (TypeError, ValueError):
            out.append(float("nan"))
    return out

@dataclass
class PriceSeries:
    """Chronological closes/highs/lows/volumes, most recent last. Any list may be empty."""
    closes: List[float] = field(default_factory=list)
    highs: List[float] = field(default_factory=list)
    lows: List[float] = field(default_factory=list)
    volumes: List[float] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PriceSeries":
        data = data or {}
        return cls(
            closes=_floats(data.get("prices", data.get("closes"))),
            highs=_floats(data.get("highs")),
            lows=_floats(data.get("lows")),
            volumes=_floats(data.get("volumes")),
        )

    def __len__(self) -> int:
        return len(self.closes)

@dataclass(frozen=True)
class Candle:
    open: float
    high: float
    low: float
    close: float

@dataclass(frozen=True)
class SignalResult:
    signal: Signal
    confidence: int
    stoploss: float
    targets: Tuple[float, ...]
    explanation: str
    hit_status: HitStatus = HitStatus.ACTIVE
    entry_price: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.signal.value,
            "confidence": self.confidence,
            "stoploss": self.stoploss,
            "targets": list(self.targets),
            "explanation": self.explanation,
            "hit_status": self.hit_status.value,
            "entry_price": self.entry_price,
        }

@dataclass
class RewardMemory:
    wins: int = 0
    losses: int = 0
    reward_weight: float = 1.0

@dataclass(frozen=True)
class RLContext:
    rsi: float = 50.0
    ema50: float = 0.0
    ema200: float = 0.0
    sma20: float = 0.0
    trend_bias: Bias = Bias.NEUTRAL
    smc_confidence: float = 50.0
    signal: Signal = Signal.HOLD

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["trend_bias"] = self.trend_bias.value
        d["signal"] = self.signal.value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RLContext":
        """Build from a stored snapshot; raises on a non-mapping or unparseable field."""
        return cls(
            rsi=float(data.get("rsi", 50.0)),
            ema50=float(data.get("ema50", 0.0)),
            ema200=float(data.get("ema200", 0.0)),
            sma20=float(data.get("sma20", 0.0)),
            trend_bias=Bias(data.get("trend_bias", data.get("trendBias", "NEUTRAL"))),
            smc_confidence=float(data.get("smc_confidence", data.get("smcConfidence", 50.0))),
            signal=Signal(data.get("signal", "HOLD")),
        )

@dataclass(frozen=True)
class PolicyResult:
    signal: Signal
    confidence: int
    state: str
    values: Tuple[float, float, float]
    mode: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.signal.value,
            "confidence": self.confidence,
            "state": self.state,
            "values": list(self.values),
            "mode": self.mode,
        }

@dataclass(frozen=True)
class StructureReport:
    bos: Optional[Bias]
    choch: Optional[Bias]
    order_block: Optional[Bias]
    liquidity_sweep: Optional[Bias]
    mitigation: Optional[Bias]
    breaker: Optional[Bias]
    has_fvg: bool
    volume_surge: bool
    fib_zone: FibZone
    trend_bias: Bias
    lookback_high: float
    lookback_low: float
    confidence: int
