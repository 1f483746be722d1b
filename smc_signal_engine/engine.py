from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, Optional, Union

from .config import EngineConfig
from .models import Candle, Outcome, PriceSeries, RLContext, Signal, SignalResult
from .policy import QTable, policy_from_context
from .reward import RewardModel
from .signal_engine import Analysis, analyze, outcome_for, resolve_hit_status
from .store import SnapshotStore
from .trainer import Trainer, TrainingReport
from .utils import normalize_symbol

class ConfidenceEngine:
    """Signal generation plus the two learned caches (reward memory, Q-table).

    The caches are injected so tests and tenants each get their own state.
    """

    def __init__(
        self,
        cfg: Optional[EngineConfig] = None,
        rewards: Optional[RewardModel] = None,
        qtable: Optional[QTable] = None,
        trainer: Optional[Trainer] = None,
    ):
        self.cfg = cfg or EngineConfig()
        self.rewards = rewards if rewards is not None else RewardModel(
            step=self.cfg.reward_step, floor=self.cfg.reward_floor, ceiling=self.cfg.reward_ceiling,
        )
        self.qtable = qtable if qtable is not None else QTable()
        self.trainer = trainer or Trainer(self.cfg.q_alpha, self.cfg.q_gamma)

    # -- persistence --
    @classmethod
    def from_store(cls, store: SnapshotStore, cfg: Optional[EngineConfig] = None, trainer: Optional[Trainer] = None) -> "ConfidenceEngine":
        cfg = cfg or EngineConfig()
        rewards = RewardModel.from_snapshot(
            store.load(cfg.reward_key),
            step=cfg.reward_step, floor=cfg.reward_floor, ceiling=cfg.reward_ceiling,
        )
        qtable = QTable(store.load(cfg.qtable_key))
        logging.info("engine state loaded: %d q-states, %d instruments", len(qtable), len(rewards.memory))
        return cls(cfg, rewards=rewards, qtable=qtable, trainer=trainer)

    def save(self, store: SnapshotStore) -> bool:
        ok_q = store.save(self.cfg.qtable_key, self.qtable.snapshot())
        ok_r = store.save(self.cfg.reward_key, self.rewards.snapshot())
        return ok_q and ok_r

    # -- evaluation --
    def _analyze(
        self,
        series: PriceSeries,
        current: Optional[float],
        previous_close: Optional[float],
        candle: Optional[Candle],
    ) -> Analysis:
        if current is None:
            current = candle.close if candle is not None else (series.closes[-1] if series.closes else 0.0)
        return analyze(series, current, previous_close, self.cfg)

    def evaluate(
        self,
        symbol: str,
        series: PriceSeries,
        current: Optional[float] = None,
        previous_close: Optional[float] = None,
        candle: Optional[Candle] = None,
    ) -> SignalResult:
        """Signal result whose confidence is scaled by the instrument's reward weight."""
        base = self._analyze(series, current, previous_close, candle).result
        adjusted = min(self.cfg.max_confidence, self.rewards.adjust(normalize_symbol(symbol), base.confidence))
        return replace(base, confidence=adjusted)

    @staticmethod
    def context_from(analysis: Analysis) -> RLContext:
        ind, st = analysis.indicators, analysis.structure
        return RLContext(
            rsi=ind.rsi,
            ema50=ind.ema50,
            ema200=ind.ema200,
            sma20=ind.sma20,
            trend_bias=st.trend_bias,
            smc_confidence=float(st.confidence),
            signal=Signal.HOLD,
        )

    def build_context(
        self,
        series: PriceSeries,
        current: Optional[float] = None,
        previous_close: Optional[float] = None,
        candle: Optional[Candle] = None,
    ) -> RLContext:
        return self.context_from(self._analyze(series, current, previous_close, candle))

    def predict(
        self,
        symbol: str,
        series: PriceSeries,
        current: Optional[float] = None,
        previous_close: Optional[float] = None,
        candle: Optional[Candle] = None,
    ) -> Dict[str, Any]:
        """Baseline signal plus the policy's independent view of the same context."""
        analysis = self._analyze(series, current, previous_close, candle)
        ctx = self.context_from(analysis)
        policy = policy_from_context(self.qtable, ctx)
        return {
            "symbol": symbol,
            "signal": policy.signal.value,
            "confidence": policy.confidence,
            "state": policy.state,
            "values": list(policy.values),
            "mode": policy.mode,
            "baseline": analysis.result.to_dict(),
            "context": ctx.to_dict(),
        }

    # -- feedback --
    def record_outcome(self, symbol: str, outcome: Union[Outcome, str]) -> float:
        mem = self.rewards.update(normalize_symbol(symbol), outcome)
        logging.info("reward update %s %s -> weight=%.2f (W%d/L%d)",
                     symbol, getattr(outcome, "value", outcome), mem.reward_weight, mem.wins, mem.losses)
        return mem.reward_weight

    def resolve(self, symbol: str, result: SignalResult, live_price: float) -> SignalResult:
        """Check an ACTIVE result against a live price; a fresh hit feeds the reward model."""
        updated = resolve_hit_status(result, live_price)
        if updated is not result:
            outcome = outcome_for(updated.hit_status)
            if outcome is not None:
                self.record_outcome(symbol, outcome)
        return updated

    def train(self, samples: Iterable[Any]) -> TrainingReport:
        return self.trainer.train(self.qtable, samples)
