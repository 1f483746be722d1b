from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

def _env_float(key: str, default: float) -> float:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default

def _env_int(key: str, default: int) -> int:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default

def _env_str(key: str, default: str) -> str:
    v = os.getenv(key)
    return v if v not in (None, "") else default

@dataclass(frozen=True)
class LevelProfile:
    """Stop/target distances in percent of the entry price."""
    stop_pct: float
    target_pcts: Tuple[float, ...]

LEVEL_PROFILES: Dict[str, LevelProfile] = {
    # swing-style brackets
    "standard": LevelProfile(stop_pct=1.5, target_pcts=(1.0, 2.0, 3.0)),
    # intraday watchlist brackets
    "tight": LevelProfile(stop_pct=0.9, target_pcts=(0.6, 0.75, 0.9)),
}

@dataclass(frozen=True)
class EngineConfig:
    # Indicators
    sma_period: int = _env_int("SE_SMA_PERIOD", 20)
    ema_fast: int = _env_int("SE_EMA_FAST", 50)
    ema_slow: int = _env_int("SE_EMA_SLOW", 200)
    rsi_period: int = _env_int("SE_RSI_PERIOD", 14)
    lookback_range: int = _env_int("SE_LOOKBACK_RANGE", 20)

    # Blend: final = indicator_weight * indicator_score + structure_weight * structure_conf
    indicator_weight: float = _env_float("SE_INDICATOR_WEIGHT", 0.4)
    structure_weight: float = _env_float("SE_STRUCTURE_WEIGHT", 0.6)
    max_confidence: int = _env_int("SE_MAX_CONFIDENCE", 99)

    # Decision gates
    indicator_gate: float = _env_float("SE_INDICATOR_GATE", 18.0)
    structure_gate: float = _env_float("SE_STRUCTURE_GATE", 55.0)

    # Stop/targets: named profile, optionally overridden field by field
    level_profile: str = _env_str("SE_LEVEL_PROFILE", "standard")
    stop_pct: Optional[float] = None
    target_pcts: Optional[Tuple[float, ...]] = None

    # Reward model
    reward_step: float = _env_float("SE_REWARD_STEP", 0.05)
    reward_floor: float = _env_float("SE_REWARD_FLOOR", 0.5)
    reward_ceiling: float = _env_float("SE_REWARD_CEILING", 2.0)

    # Q-learning
    q_alpha: float = _env_float("SE_Q_ALPHA", 0.1)
    q_gamma: float = _env_float("SE_Q_GAMMA", 0.95)

    # Storage (collaborators)
    db_path: str = _env_str("SE_DB_PATH", "data/signal_engine.db")
    price_table: str = _env_str("SE_PRICE_TABLE", "daily_price")
    state_path: str = _env_str("SE_STATE_PATH", "data/engine_state.json")
    qtable_key: str = _env_str("SE_QTABLE_KEY", "qtable")
    reward_key: str = _env_str("SE_REWARD_KEY", "reward_memory")

    def levels(self) -> LevelProfile:
        """Resolve the active level profile; unknown names fall back to 'standard'."""
        base = LEVEL_PROFILES.get(self.level_profile, LEVEL_PROFILES["standard"])
        return LevelProfile(
            stop_pct=float(base.stop_pct if self.stop_pct is None else self.stop_pct),
            target_pcts=tuple(base.target_pcts if self.target_pcts is None else self.target_pcts),
        )
