import pytest

from smc_signal_engine.models import Bias, RLContext, Signal
from smc_signal_engine.policy import (
    MODE_BOOTSTRAP,
    MODE_TRAINED,
    QTable,
    action_index,
    best_action,
    bootstrap_values,
    bucket,
    encode_state,
    policy_from_context,
    q_update,
)


def test_bucket_boundaries():
    steps = (30, 40, 50, 60, 70)
    assert bucket(0, steps) == 0
    assert bucket(30, steps) == 0
    assert bucket(30.1, steps) == 1
    assert bucket(70, steps) == 4
    assert bucket(99, steps) == 5


def test_encode_state():
    assert encode_state(RLContext(rsi=55, trend_bias=Bias.BULLISH, smc_confidence=65)) == "r3_tB_smc3"
    assert encode_state(RLContext(rsi=20, trend_bias=Bias.BEARISH, smc_confidence=10)) == "r0_tS_smc0"
    assert encode_state(RLContext(rsi=80, trend_bias=Bias.NEUTRAL, smc_confidence=95)) == "r5_tN_smc4"


def test_encode_state_distinguishes_bull_and_bear():
    bull = RLContext(rsi=50, trend_bias=Bias.BULLISH, smc_confidence=50)
    bear = RLContext(rsi=50, trend_bias=Bias.BEARISH, smc_confidence=50)
    assert encode_state(bull) != encode_state(bear)


def test_bootstrap_values():
    assert bootstrap_values(RLContext(trend_bias=Bias.BULLISH, smc_confidence=50)) == pytest.approx((0.35, 0.25, 0.65))
    assert bootstrap_values(RLContext(trend_bias=Bias.BEARISH, smc_confidence=100)) == pytest.approx((1.2, 0.5, 0.8))
    assert bootstrap_values(RLContext(trend_bias=Bias.NEUTRAL, smc_confidence=0)) == (0.0, 0.0, 0.0)


def test_best_action():
    assert best_action([0.35, 0.25, 0.65]) == (2, 52)
    assert best_action([0.0, 0.0, 0.0]) == (0, 0)
    assert best_action([-1.0, -2.0, -3.0]) == (0, 0)
    assert best_action([1.0, 1.0, -5.0]) == (0, 50)


def test_policy_bootstrap_mode():
    ctx = RLContext(rsi=45, trend_bias=Bias.BEARISH, smc_confidence=70)
    res = policy_from_context(QTable(), ctx)
    assert res.mode == MODE_BOOTSTRAP
    assert res.signal == Signal.SELL
    assert res.state == "r2_tS_smc3"


def test_policy_uses_trained_row():
    ctx = RLContext(rsi=45, trend_bias=Bias.BEARISH, smc_confidence=70)
    table = QTable({"r2_tS_smc3": [0.0, 0.1, 3.0]})
    res = policy_from_context(table, ctx)
    assert res.mode == MODE_TRAINED
    assert res.signal == Signal.BUY
    assert res.values == (0.0, 0.1, 3.0)


def test_policy_trained_mode_with_unseen_state_bootstraps():
    table = QTable({"r0_tN_smc0": [1.0, 0.0, 0.0]})
    res = policy_from_context(table, RLContext(rsi=65, trend_bias=Bias.BULLISH, smc_confidence=50))
    assert res.mode == MODE_TRAINED
    assert res.signal == Signal.BUY


def test_q_update_creates_rows():
    table = QTable()
    q_update(table, "s1", 2, 1.0, "s2", alpha=0.5, gamma=0.9)
    assert table.get("s1") == (0.0, 0.0, 0.5)
    assert table.get("s2") == (0.0, 0.0, 0.0)


def test_q_update_rule():
    table = QTable({"s": [0.0, 0.0, 1.0], "n": [0.0, 2.0, 0.0]})
    q_update(table, "s", 2, 1.0, "n", alpha=0.1, gamma=0.5)
    # 1 + 0.1 * (1 + 0.5 * 2 - 1)
    assert table.get("s")[2] == pytest.approx(1.1)


def test_q_update_converges_to_reward():
    table = QTable()
    for _ in range(300):
        q_update(table, "s", 1, 2.0, "terminal", alpha=0.1, gamma=0.0)
    assert table.get("s")[1] == pytest.approx(2.0, abs=1e-6)


def test_malformed_rows_dropped_on_load():
    table = QTable({"ok": [1, 2, 3], "short": [1, 2], "junk": ["a", "b", "c"]})
    assert len(table) == 1
    assert "ok" in table


def test_action_index():
    assert action_index("SELL") == 0
    assert action_index(Signal.BUY) == 2
    assert action_index("buy") == 2
    assert action_index(None) == 1
    assert action_index("SHORT") == 1


def test_policy_deterministic():
    ctx = RLContext(rsi=61, trend_bias=Bias.NEUTRAL, smc_confidence=33)
    table = QTable()
    assert policy_from_context(table, ctx) == policy_from_context(table, ctx)


def test_non_finite_snapshot_rows_dropped():
    table = QTable({"r2_tS_smc3": ["nan", 1, 2], "r0_tN_smc0": [0.0, float("inf"), 1.0], "ok": [0, 0, 1]})
    assert len(table) == 1
    res = policy_from_context(table, RLContext(rsi=45, trend_bias=Bias.BEARISH, smc_confidence=70))
    assert res.values == pytest.approx(bootstrap_values(RLContext(rsi=45, trend_bias=Bias.BEARISH, smc_confidence=70)))


def test_non_finite_update_rejected():
    table = QTable()
    with pytest.raises(ValueError):
        table.update("s", 2, float("nan"), "s", 0.1, 0.95)
    assert "s" not in table


def test_best_action_ignores_non_finite():
    assert best_action([float("nan"), 1.0, 3.0]) == (2, 75)
    assert best_action([float("nan")] * 3) == (0, 0)
