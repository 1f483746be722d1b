"""Signal generation & adaptive confidence engine.

Core idea:
- Indicators (SMA20 / EMA50 / EMA200 / RSI14) give a 0..42 sub-score.
- Market-structure detectors (BOS, CHoCH, order block, sweep, ...) give a 0..99
  confluence score.
- Final confidence = 0.4 * indicator + 0.6 * structure; BUY/SELL only when both
  families agree, otherwise HOLD. Stops/targets are % offsets from price.
- Feedback: a per-instrument reward weight (0.5..2.0) scales confidence, and a
  tabular Q-learning policy gives an independent view from bucketed context.
"""

__all__ = [
    "config",
    "models",
    "indicators",
    "structure",
    "confluence",
    "signal_engine",
    "reward",
    "policy",
    "trainer",
    "store",
    "db",
    "engine",
]
