from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Tuple

from .models import RLContext
from .policy import QTable, action_index, encode_state
from .utils import is_finite

@dataclass(frozen=True)
class TradeRecord:
    """A resolved trade: the context it was predicted in, the action taken and its % return."""
    symbol: str
    context: RLContext
    action: int
    reward: float

@dataclass(frozen=True)
class Transition:
    state: str
    action: int
    reward: float
    next_state: str

@dataclass
class TrainingReport:
    processed: int = 0
    skipped: int = 0
    states: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"processed": self.processed, "skipped": self.skipped, "states": self.states}

def realized_return_pct(entry_price: float, exit_price: float) -> float:
    """Net percentage move from entry to exit, rounded to 4 places (0 for a zero entry)."""
    if not entry_price or not is_finite(entry_price, exit_price):
        return 0.0
    return round((exit_price - entry_price) / entry_price * 100.0, 4)

def parse_record(raw: Any) -> TradeRecord:
    """Accept a TradeRecord or a journal row.

    Journal rows look like ``{"symbol", "reward", "prediction": {"signal",
    "context": {...}}}``; a nested ``{"context": {"context": {...}}}`` payload is
    unwrapped as well. Raises ValueError/TypeError/KeyError on malformed input.
    """
    if isinstance(raw, TradeRecord):
        return raw
    if not isinstance(raw, Mapping):
        raise TypeError(f"record must be a mapping, got {type(raw).__name__}")

    pred = raw.get("prediction") or raw.get("predictions")
    if not isinstance(pred, Mapping):
        raise KeyError("record has no prediction")

    ctx = pred.get("context")
    if isinstance(ctx, Mapping) and isinstance(ctx.get("context"), Mapping):
        ctx = ctx["context"]
    if not isinstance(ctx, Mapping):
        raise TypeError("prediction context must be a mapping")

    reward = float(raw.get("reward") or 0.0)
    if not is_finite(reward):
        raise ValueError(f"non-finite reward: {raw.get('reward')!r}")

    return TradeRecord(
        symbol=str(raw.get("symbol", "")),
        context=RLContext.from_dict(ctx),
        action=action_index(pred.get("signal")),
        reward=reward,
    )

class Trainer:
    """Turns resolved trades into transitions and applies one-step Q updates.

    Subclasses override `transitions` to supply real next states; this base
    class approximates next_state with the same state because resolved trades
    carry no sequence.
    """

    def __init__(self, alpha: float = 0.1, gamma: float = 0.95):
        self.alpha = float(alpha)
        self.gamma = float(gamma)

    def transitions(self, records: List[TradeRecord]) -> Iterator[Transition]:
        for rec in records:
            state = encode_state(rec.context)
            yield Transition(state=state, action=rec.action, reward=rec.reward, next_state=state)

    def train(self, table: QTable, samples: Iterable[Any]) -> TrainingReport:
        report = TrainingReport()
        records: List[TradeRecord] = []
        for i, raw in enumerate(samples):
            try:
                records.append(parse_record(raw))
            except (KeyError, TypeError, ValueError) as exc:
                report.skipped += 1
                logging.warning("sample %d skipped: %s", i, exc)

        touched = set()
        for t in self.transitions(records):
            try:
                table.update(t.state, t.action, t.reward, t.next_state, self.alpha, self.gamma)
            except (IndexError, TypeError, ValueError) as exc:
                report.skipped += 1
                logging.warning("transition %s skipped: %s", t.state, exc)
                continue
            report.processed += 1
            touched.add(t.state)

        report.states = len(touched)
        logging.info(
            "training done processed=%d skipped=%d states=%d",
            report.processed, report.skipped, report.states,
        )
        return report

def train_batch(table: QTable, samples: Iterable[Any], alpha: float = 0.1, gamma: float = 0.95) -> Tuple[QTable, TrainingReport]:
    report = Trainer(alpha, gamma).train(table, samples)
    return table, report
