import pytest

from smc_signal_engine.confluence import analyze_structure, fib_zone, structure_confidence, trend_bias
from smc_signal_engine.models import Bias, FibZone

NAN = float("nan")

NONE_FIRING = dict(
    bos=None,
    choch=None,
    order_block=None,
    liquidity_sweep=None,
    mitigation=None,
    breaker=None,
    has_fvg=False,
    volume_surge=False,
    fib_zone=FibZone.NEUTRAL,
    trend_bias=Bias.NEUTRAL,
)

# detectors switched on one at a time, heaviest first
FIRING_ORDER = [
    ("bos", Bias.BULLISH, 22),
    ("choch", Bias.BULLISH, 20),
    ("liquidity_sweep", Bias.BEARISH, 12),
    ("volume_surge", True, 10),
    ("order_block", Bias.BULLISH, 10),
    ("mitigation", Bias.BEARISH, 8),
    ("breaker", Bias.BULLISH, 6),
    ("has_fvg", True, 5),
]


def test_no_detectors_scores_zero():
    assert structure_confidence(**NONE_FIRING) == 0


@pytest.mark.parametrize("name,value,points", FIRING_ORDER)
def test_single_detector_weight(name, value, points):
    assert structure_confidence(**{**NONE_FIRING, name: value}) == points


def test_score_monotonic_and_capped():
    inputs = dict(NONE_FIRING)
    last = 0
    for name, value, _ in FIRING_ORDER:
        inputs[name] = value
        score = structure_confidence(**inputs)
        assert score >= last
        assert score <= 99
        last = score
    inputs.update(fib_zone=FibZone.DISCOUNT, trend_bias=Bias.BULLISH)
    assert structure_confidence(**inputs) == 99


def test_zone_alignment_bonus():
    assert structure_confidence(**{**NONE_FIRING, "fib_zone": FibZone.DISCOUNT, "trend_bias": Bias.BULLISH}) == 10
    assert structure_confidence(**{**NONE_FIRING, "fib_zone": FibZone.PREMIUM, "trend_bias": Bias.BEARISH}) == 10
    assert structure_confidence(**{**NONE_FIRING, "fib_zone": FibZone.PREMIUM, "trend_bias": Bias.BULLISH}) == 0


def test_trend_bias_first_match_wins():
    assert trend_bias(Bias.BULLISH, None) == Bias.BULLISH
    assert trend_bias(None, Bias.BEARISH) == Bias.BEARISH
    assert trend_bias(None, None) == Bias.NEUTRAL
    # disagreement resolves BULLISH whichever detector carries it
    assert trend_bias(Bias.BEARISH, Bias.BULLISH) == Bias.BULLISH
    assert trend_bias(Bias.BULLISH, Bias.BEARISH) == Bias.BULLISH


def test_fib_zone():
    assert fib_zone(90.0, 110.0, 80.0) == FibZone.DISCOUNT
    assert fib_zone(100.0, 110.0, 80.0) == FibZone.PREMIUM
    assert fib_zone(95.0, 110.0, 80.0) == FibZone.NEUTRAL
    assert fib_zone(float("nan"), 110.0, 80.0) == FibZone.NEUTRAL


def test_analyze_uptrend(uptrend):
    st = analyze_structure(uptrend, current=163.0)
    assert st.bos == Bias.BULLISH
    assert st.choch == Bias.BULLISH
    assert st.breaker == Bias.BULLISH
    assert st.volume_surge is True
    assert st.trend_bias == Bias.BULLISH
    assert st.fib_zone == FibZone.PREMIUM
    assert st.confidence == 22 + 20 + 10 + 6


def test_analyze_empty_series_uses_current_for_range():
    from smc_signal_engine.models import PriceSeries

    st = analyze_structure(PriceSeries(), current=50.0)
    assert st.lookback_high == 50.0
    assert st.lookback_low == 50.0
    assert st.fib_zone == FibZone.NEUTRAL
    assert st.confidence == 0


def test_non_finite_in_lookback_gives_neutral_zone():
    from smc_signal_engine.models import PriceSeries

    highs = [110.0] * 19 + [NAN]
    series = PriceSeries(closes=[100.0] * 20, highs=highs, lows=[80.0] * 20, volumes=[1.0] * 20)
    st = analyze_structure(series, current=90.0)
    assert st.lookback_high != st.lookback_high
    assert st.lookback_low == 80.0
    assert st.fib_zone == FibZone.NEUTRAL
