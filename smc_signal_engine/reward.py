from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional, Union

from .models import Outcome, RewardMemory
from .utils import clamp, round_half_up

def apply_adaptive_confidence(base: float, weight: float) -> int:
    return int(clamp(round_half_up(base * weight), 0, 100))

class RewardModel:
    """Per-instrument win/loss reputation.

    Each WIN nudges the weight up by `step` (ceiling 2.0), each LOSS down by
    `step` (floor 0.5). Unseen instruments weigh 1.0.
    """

    def __init__(
        self,
        memory: Optional[Dict[str, RewardMemory]] = None,
        *,
        step: float = 0.05,
        floor: float = 0.5,
        ceiling: float = 2.0,
    ):
        self.memory: Dict[str, RewardMemory] = dict(memory or {})
        self.step = float(step)
        self.floor = float(floor)
        self.ceiling = float(ceiling)
        self._lock = threading.Lock()

    def update(self, symbol: str, outcome: Union[Outcome, str]) -> RewardMemory:
        outcome = Outcome(str(getattr(outcome, "value", outcome)).upper())
        with self._lock:
            m = self.memory.get(symbol)
            if m is None:
                m = self.memory[symbol] = RewardMemory()
            if outcome == Outcome.WIN:
                m.wins += 1
                m.reward_weight = min(m.reward_weight + self.step, self.ceiling)
            else:
                m.losses += 1
                m.reward_weight = max(m.reward_weight - self.step, self.floor)
            return RewardMemory(m.wins, m.losses, m.reward_weight)

    def get_weight(self, symbol: str) -> float:
        m = self.memory.get(symbol)
        return m.reward_weight if m is not None else 1.0

    def adjust(self, symbol: str, base_confidence: float) -> int:
        return apply_adaptive_confidence(base_confidence, self.get_weight(symbol))

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {
                k: {"wins": m.wins, "losses": m.losses, "reward_weight": m.reward_weight}
                for k, m in self.memory.items()
            }

    @classmethod
    def from_snapshot(cls, data: Optional[Dict[str, Any]], **kwargs) -> "RewardModel":
        memory: Dict[str, RewardMemory] = {}
        for symbol, row in (data or {}).items():
            try:
                weight = float(row.get("reward_weight", row.get("rewardWeight", 1.0)))
                memory[str(symbol)] = RewardMemory(
                    wins=int(row.get("wins", 0)),
                    losses=int(row.get("losses", 0)),
                    reward_weight=clamp(weight, kwargs.get("floor", 0.5), kwargs.get("ceiling", 2.0)),
                )
            except (AttributeError, TypeError, ValueError) as exc:
                logging.warning("reward snapshot row skipped %s: %s", symbol, exc)
        return cls(memory, **kwargs)
