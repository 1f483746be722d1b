"""Tabular Q-learning policy over bucketed market context.

State key: RSI bucket, trend tag and structure-confidence bucket, e.g.
``r3_tB_smc2``. Action index order is SELL=0, HOLD=1, BUY=2.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import ACTIONS, Bias, PolicyResult, RLContext, Signal
from .utils import is_finite, round_half_up

RSI_STEPS = (30, 40, 50, 60, 70)
SMC_STEPS = (20, 40, 60, 80)
TREND_TAGS = {Bias.BULLISH: "B", Bias.BEARISH: "S", Bias.NEUTRAL: "N"}

MODE_TRAINED = "TRAINED"
MODE_BOOTSTRAP = "BOOTSTRAP"

def bucket(value: float, steps: Sequence[float]) -> int:
    for i, step in enumerate(steps):
        if value <= step:
            return i
    return len(steps)

def encode_state(ctx: RLContext) -> str:
    rsi_v = ctx.rsi if is_finite(ctx.rsi) else 50.0
    smc_v = ctx.smc_confidence if is_finite(ctx.smc_confidence) else 50.0
    r = bucket(rsi_v, RSI_STEPS)
    s = bucket(smc_v, SMC_STEPS)
    return f"r{r}_t{TREND_TAGS.get(ctx.trend_bias, 'N')}_smc{s}"

def bootstrap_values(ctx: RLContext) -> Tuple[float, float, float]:
    """Deterministic prior for an unseen state, scaled by structure confidence."""
    f = (ctx.smc_confidence if is_finite(ctx.smc_confidence) else 50.0) / 100.0
    return (
        f * (1.2 if ctx.trend_bias == Bias.BEARISH else 0.7),
        f * 0.5,
        f * (1.3 if ctx.trend_bias == Bias.BULLISH else 0.8),
    )

def best_action(values: Sequence[float]) -> Tuple[int, int]:
    """Return (argmax index, confidence 0..100). Ties go to the lowest index."""
    clean = [float(v) if is_finite(v) else 0.0 for v in values]
    best = max(clean)
    idx = clean.index(best)
    total = sum(max(v, 0.0) for v in clean) or 1.0
    return idx, round_half_up(100.0 * max(best, 0.0) / total)

class QTable:
    """State key -> [SELL, HOLD, BUY] values. Rows are never deleted."""

    def __init__(self, rows: Optional[Dict[str, Sequence[float]]] = None):
        self.rows: Dict[str, List[float]] = {}
        self._lock = threading.Lock()
        for state, values in (rows or {}).items():
            try:
                vals = [float(v) for v in values]
            except (TypeError, ValueError) as exc:
                logging.warning("qtable row skipped %s: %s", state, exc)
                continue
            if not is_finite(*vals):
                logging.warning("qtable row skipped %s: non-finite value", state)
                continue
            if len(vals) != len(ACTIONS):
                logging.warning("qtable row skipped %s: expected %d values", state, len(ACTIONS))
                continue
            self.rows[str(state)] = vals

    def __len__(self) -> int:
        return len(self.rows)

    def __contains__(self, state: str) -> bool:
        return state in self.rows

    def get(self, state: str) -> Optional[Tuple[float, float, float]]:
        row = self.rows.get(state)
        return tuple(row) if row is not None else None

    def update(self, state: str, action: int, reward: float, next_state: str, alpha: float, gamma: float) -> float:
        """One-step Q-learning: Q[s][a] += alpha * (r + gamma * max(Q[s']) - Q[s][a])."""
        if not is_finite(reward, alpha, gamma):
            raise ValueError(f"non-finite update: reward={reward!r} alpha={alpha!r} gamma={gamma!r}")
        with self._lock:
            row = self.rows.setdefault(state, [0.0] * len(ACTIONS))
            nxt = self.rows.setdefault(next_state, [0.0] * len(ACTIONS))
            row[action] += alpha * (reward + gamma * max(nxt) - row[action])
            return row[action]

    def snapshot(self) -> Dict[str, List[float]]:
        with self._lock:
            return {k: list(v) for k, v in self.rows.items()}

def q_update(
    table: QTable,
    state: str,
    action: int,
    reward: float,
    next_state: str,
    alpha: float = 0.1,
    gamma: float = 0.95,
) -> QTable:
    table.update(state, action, reward, next_state, alpha, gamma)
    return table

def policy_from_context(table: QTable, ctx: RLContext) -> PolicyResult:
    mode = MODE_TRAINED if len(table) > 0 else MODE_BOOTSTRAP
    state = encode_state(ctx)
    values = table.get(state)
    if values is None:
        values = bootstrap_values(ctx)
    idx, confidence = best_action(values)
    return PolicyResult(
        signal=ACTIONS[idx],
        confidence=confidence,
        state=state,
        values=tuple(float(v) for v in values),
        mode=mode,
    )

def action_index(signal: Any) -> int:
    """SELL/HOLD/BUY -> 0/1/2; anything unrecognised maps to HOLD."""
    try:
        return ACTIONS.index(Signal(str(getattr(signal, "value", signal)).upper()))
    except ValueError:
        return ACTIONS.index(Signal.HOLD)
