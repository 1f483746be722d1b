import pytest

from smc_signal_engine.config import EngineConfig
from smc_signal_engine.models import PriceSeries


def _zigzag(n, start, slope, wiggle):
    """Trend with a two-bar zigzag so RSI stays off its 0/100 rails."""
    return [start + slope * i + (wiggle if i % 2 else 0.0) for i in range(n)]


def _series(closes, surge=True):
    volumes = [1000.0] * (len(closes) - 1) + [5000.0 if surge else 1000.0]
    return PriceSeries(
        closes=closes,
        highs=[c + 0.5 for c in closes],
        lows=[c - 0.5 for c in closes],
        volumes=volumes,
    )


@pytest.fixture
def cfg():
    return EngineConfig(level_profile="standard", stop_pct=None, target_pcts=None)


@pytest.fixture
def uptrend():
    """250 rising bars ending 163.0 (prev close 162.0); RSI ~66.7, BOS+CHoCH bullish, volume surge."""
    return _series(_zigzag(250, 100.0, 0.25, 0.75))


@pytest.fixture
def downtrend():
    """250 falling bars ending 237.0 (prev close 238.0); RSI ~33.3, BOS+CHoCH bearish."""
    return _series(_zigzag(250, 300.0, -0.25, -0.75), surge=False)


@pytest.fixture
def flat():
    return PriceSeries(
        closes=[100.0] * 50,
        highs=[100.0] * 50,
        lows=[100.0] * 50,
        volumes=[1000.0] * 50,
    )
