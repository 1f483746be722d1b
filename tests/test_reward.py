import threading

import pytest

from smc_signal_engine.models import Outcome
from smc_signal_engine.reward import RewardModel, apply_adaptive_confidence


def test_unseen_symbol_is_neutral():
    assert RewardModel().get_weight("ETHUSD") == 1.0


def test_first_update_creates_memory():
    model = RewardModel()
    mem = model.update("AAPL", Outcome.WIN)
    assert (mem.wins, mem.losses) == (1, 0)
    assert mem.reward_weight == pytest.approx(1.05)


def test_wins_climb_to_ceiling():
    model = RewardModel()
    last = model.get_weight("X")
    for _ in range(40):
        model.update("X", "WIN")
        w = model.get_weight("X")
        assert last <= w <= 2.0
        last = w
    assert last == 2.0
    assert model.memory["X"].wins == 40


def test_losses_fall_to_floor():
    model = RewardModel()
    last = model.get_weight("X")
    for _ in range(15):
        model.update("X", Outcome.LOSS)
        w = model.get_weight("X")
        assert 0.5 <= w <= last
        last = w
    assert last == 0.5
    assert model.memory["X"].losses == 15


def test_invalid_outcome_rejected():
    with pytest.raises(ValueError):
        RewardModel().update("X", "DRAW")


def test_apply_adaptive_confidence():
    assert apply_adaptive_confidence(80, 2.0) == 100
    assert apply_adaptive_confidence(50, 0.5) == 25
    assert apply_adaptive_confidence(45, 1.1) == 50  # 49.5 rounds up
    assert apply_adaptive_confidence(-5, 1.0) == 0


def test_snapshot_reload():
    model = RewardModel()
    model.update("A", "WIN")
    model.update("B", "LOSS")
    again = RewardModel.from_snapshot(model.snapshot())
    assert again.get_weight("A") == pytest.approx(1.05)
    assert again.memory["B"].losses == 1


def test_snapshot_bad_rows_skipped():
    model = RewardModel.from_snapshot({"A": {"wins": "x"}, "B": {"wins": 2, "losses": 1, "rewardWeight": 9.0}})
    assert "A" not in model.memory
    assert model.get_weight("B") == 2.0


def test_concurrent_updates_are_not_lost():
    model = RewardModel()

    def worker():
        for _ in range(200):
            model.update("SYM", "WIN")

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert model.memory["SYM"].wins == 800
