import os
import sys
import pytest
import numpy as np

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from core.indicators import (
    calculate_bollinger_bands,
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
    calculate_support_resistance,
    calculate_technical_analysis,
    select_series,
)


def test_rsi_needs_period_plus_one_points():
    assert calculate_rsi([1.0] * 14, 14) is None
    assert calculate_rsi(list(range(15)), 14) is not None


def test_rsi_extremes():
    """Only gains gives 100, only losses gives 0"""
    assert calculate_rsi([float(i) for i in range(30)]) == 100.0
    assert calculate_rsi([float(30 - i) for i in range(30)]) == 0.0


def test_rsi_uses_most_recent_deltas():
    """Old moves outside the period do not count"""
    prices = [100.0 - i for i in range(20)] + [80.0 + i for i in range(15)]
    assert calculate_rsi(prices, 14) == 100.0


def test_rsi_balanced_moves():
    prices = [10.0, 11.0] * 10
    assert calculate_rsi(prices, 14) == pytest.approx(50.0)


def test_rsi_stays_in_range():
    rng = np.random.default_rng(7)
    for _ in range(20):
        prices = list(100 + np.cumsum(rng.normal(0, 2, size=40)))
        rsi = calculate_rsi(prices)
        assert 0.0 <= rsi <= 100.0


def test_sma_and_ema():
    prices = [1.0, 2.0, 3.0, 4.0, 5.0]

    assert calculate_sma(prices, 3) == pytest.approx(4.0)
    assert calculate_sma(prices, 6) is None
    # Seeded with mean(1, 2, 3) = 2, then smoothed by 0.5
    assert calculate_ema(prices, 3) == pytest.approx(4.0)
    assert calculate_ema(prices, 6) is None


def test_macd_histogram_is_flat():
    prices = [100.0 + i for i in range(40)]
    macd = calculate_macd(prices)

    assert macd is not None
    assert macd.macd > 0
    assert macd.signal == pytest.approx(macd.macd)
    assert macd.histogram == pytest.approx(0.0, abs=1e-9)
    assert calculate_macd(prices[:25]) is None


def test_bollinger_bands():
    flat = calculate_bollinger_bands([10.0] * 20)
    assert flat.upper == flat.middle == flat.lower == 10.0
    assert flat.bandwidth == 0.0

    bands = calculate_bollinger_bands([9.0, 11.0] * 10)
    assert bands.middle == pytest.approx(10.0)
    assert bands.upper == pytest.approx(12.0)
    assert bands.lower == pytest.approx(8.0)
    assert bands.bandwidth == pytest.approx(40.0)

    assert calculate_bollinger_bands([1.0] * 19) is None


def test_support_resistance_falls_back_to_daily_range(make_snapshot):
    snapshot = make_snapshot(price=100.0, high_24h=110.0, low_24h=90.0)

    levels = calculate_support_resistance(snapshot, [100.0] * 5)

    assert levels.resistance == 110.0
    assert levels.support == 90.0
    assert levels.strength == "weak"


def test_support_resistance_pivot(make_snapshot):
    snapshot = make_snapshot(price=100.0, high_24h=110.0, low_24h=90.0)

    levels = calculate_support_resistance(snapshot, [100.0] * 20)

    assert levels.pivot == pytest.approx(100.0)
    assert levels.resistance == pytest.approx(110.0)
    assert levels.support == pytest.approx(90.0)
    assert levels.max_price == levels.min_price == 100.0
    assert levels.strength == "weak"


@pytest.fixture
def pivot_snapshot(make_snapshot):
    """Pivot 110 with resistance at 120 and support at 100"""
    return make_snapshot(price=110.0, high_24h=120.0, low_24h=100.0)


def test_support_resistance_two_touches_is_moderate(pivot_snapshot):
    prices = [110.0] * 18 + [101.0, 119.0]

    levels = calculate_support_resistance(pivot_snapshot, prices)

    assert levels.resistance == pytest.approx(120.0)
    assert levels.support == pytest.approx(100.0)
    assert levels.strength == "moderate"


def test_support_resistance_three_touches_is_strong(pivot_snapshot):
    prices = [110.0] * 17 + [101.0, 119.0, 100.5]

    assert calculate_support_resistance(pivot_snapshot, prices).strength == "strong"


def test_support_resistance_touch_band_is_strict(pivot_snapshot):
    """A price exactly 2% away from a level is not a touch"""
    prices = [110.0] * 17 + [101.0, 119.0, 102.0]

    assert calculate_support_resistance(pivot_snapshot, prices).strength == "moderate"


def test_support_resistance_counts_only_recent_touches(pivot_snapshot):
    prices = [100.0] * 5 + [110.0] * 19 + [101.0]

    assert calculate_support_resistance(pivot_snapshot, prices).strength == "weak"



def test_select_series_prefers_history(make_snapshot):
    snapshot = make_snapshot(sparkline=[1.0] * 30)
    history = [2.0] * 25

    series, source = select_series(history, snapshot, 20)

    assert source == "history"
    assert series == history


def test_select_series_falls_back_to_sparkline(make_snapshot):
    """The embedded series fills in without touching the stored history"""
    snapshot = make_snapshot(sparkline=[1.0, None] * 15 + [1.0] * 10)
    history = [2.0] * 5

    series, source = select_series(history, snapshot, 20)

    assert source == "sparkline"
    assert len(series) == 25
    assert history == [2.0] * 5


def test_technical_analysis_insufficient_data(make_snapshot):
    result = calculate_technical_analysis(make_snapshot(), [50000.0] * 10)

    assert not result.available
    assert result.to_dict() == {'available': False, 'reason': 'Insufficient price history'}


def test_technical_analysis_bullish_alignment(make_snapshot):
    """A steadily rising series puts price above SMA20 above SMA50"""
    history = [100.0 + i for i in range(60)]
    snapshot = make_snapshot(price=160.0)

    result = calculate_technical_analysis(snapshot, history)

    assert result.available
    assert result.data_source == "history"
    assert result.data_points == 60
    assert "Bullish MA alignment (Price > SMA20 > SMA50)" in result.signals
    assert result.moving_averages['sma20'] == pytest.approx(149.5)
    assert result.moving_averages['sma50'] == pytest.approx(134.5)
    assert result.moving_averages['sma200'] is None
    assert result.rsi == 100.0


def test_short_rising_series(make_snapshot):
    """Thirty rising points: no long average until the series is padded to 50"""
    rising = [100.0 + i for i in range(30)]
    snapshot = make_snapshot(price=130.0)

    result = calculate_technical_analysis(snapshot, rising)
    assert result.moving_averages['sma20'] is not None
    assert result.moving_averages['sma50'] is None
    assert "Bullish MA alignment (Price > SMA20 > SMA50)" not in result.signals

    padded = [rising[0]] * 20 + rising
    result = calculate_technical_analysis(snapshot, padded)
    assert result.moving_averages['sma20'] >= result.moving_averages['sma50']
    assert "Bullish MA alignment (Price > SMA20 > SMA50)" in result.signals


def test_technical_analysis_bearish_alignment(make_snapshot):
    history = [200.0 - i for i in range(60)]
    snapshot = make_snapshot(price=140.0)

    result = calculate_technical_analysis(snapshot, history)

    assert "Bearish MA alignment (Price < SMA20 < SMA50)" in result.signals
    assert result.rsi == 0.0


def test_technical_analysis_serializes(make_snapshot):
    history = [100.0 + (i % 5) for i in range(30)]
    data = calculate_technical_analysis(make_snapshot(price=102.0), history).to_dict()

    assert data['available'] is True
    assert set(data['moving_averages']) == {'sma20', 'sma50', 'sma200', 'ema12', 'ema26'}
    assert set(data['bollinger_bands']) == {'upper', 'middle', 'lower', 'bandwidth'}
    assert data['support_resistance']['strength'] in ("weak", "moderate", "strong")


if __name__ == '__main__':
    pytest.main(['-xvs', __file__])
