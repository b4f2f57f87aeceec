"""
Indicator library: pure functions over an ordered price sequence
(oldest first). Every function returns None when the sequence is shorter
than the window it needs; insufficient data is never an error.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from models.asset_snapshot import AssetSnapshot
from models.indicator_result import (
    BollingerBands,
    IndicatorResult,
    MACDResult,
    SupportResistance,
)

# Points required before the full technical analysis is attempted
MIN_ANALYSIS_POINTS = 20

# Relative distance at which a price "touches" a support/resistance level
TOUCH_TOLERANCE = 0.02


def _as_array(prices: Sequence[float]) -> np.ndarray:
    return np.asarray(prices, dtype=float)


def calculate_rsi(prices: Sequence[float], period: int = 14) -> Optional[float]:
    """
    Relative strength index over the most recent ``period`` price deltas.

    Args:
        prices: Ordered price sequence
        period: Number of deltas averaged

    Returns:
        Oscillator value in [0, 100], or None with fewer than period + 1 points
    """
    if period <= 0 or len(prices) < period + 1:
        return None

    deltas = np.diff(_as_array(prices))[-period:]
    avg_gain = np.clip(deltas, 0, None).sum() / period
    avg_loss = np.clip(-deltas, 0, None).sum() / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return float(100 - (100 / (1 + rs)))


def calculate_sma(prices: Sequence[float], period: int) -> Optional[float]:
    """Simple average of the last ``period`` prices."""
    if period <= 0 or len(prices) < period:
        return None
    return float(_as_array(prices)[-period:].mean())


def calculate_ema(prices: Sequence[float], period: int) -> Optional[float]:
    """
    Exponential average seeded with the simple average of the first
    ``period`` prices, then smoothed with factor 2 / (period + 1).
    """
    if period <= 0 or len(prices) < period:
        return None

    values = _as_array(prices)
    multiplier = 2 / (period + 1)
    ema = values[:period].mean()
    for price in values[period:]:
        ema = price * multiplier + ema * (1 - multiplier)
    return float(ema)


def calculate_macd(prices: Sequence[float],
                   fast_period: int = 12,
                   slow_period: int = 26,
                   signal_period: int = 9) -> Optional[MACDResult]:
    """
    Convergence/divergence triple.

    The signal line is a fixed 80/20 blend of the MACD line with itself,
    not an exponential average of the MACD series, so the histogram is
    zero up to rounding. ``signal_period`` is accepted for interface
    compatibility and unused.
    """
    if len(prices) < slow_period:
        return None

    fast_ema = calculate_ema(prices, fast_period)
    slow_ema = calculate_ema(prices, slow_period)
    if fast_ema is None or slow_ema is None:
        return None

    macd_line = fast_ema - slow_ema
    signal_line = macd_line * 0.2 + macd_line * 0.8
    return MACDResult(macd=macd_line, signal=signal_line, histogram=macd_line - signal_line)


def calculate_bollinger_bands(prices: Sequence[float],
                              period: int = 20,
                              multiplier: float = 2) -> Optional[BollingerBands]:
    """Volatility bands around the simple average using population deviation."""
    if period <= 0 or len(prices) < period:
        return None

    window = _as_array(prices)[-period:]
    middle = float(window.mean())
    half_width = multiplier * float(window.std())
    upper = middle + half_width
    lower = middle - half_width
    bandwidth = (upper - lower) / middle * 100 if middle else 0.0

    return BollingerBands(upper=upper, middle=middle, lower=lower, bandwidth=bandwidth)


def _near_level(prices: np.ndarray, level: float) -> np.ndarray:
    if not level:
        return np.zeros(len(prices), dtype=bool)
    return np.abs(prices - level) / abs(level) < TOUCH_TOLERANCE


def calculate_support_resistance(snapshot: AssetSnapshot,
                                 prices: Sequence[float],
                                 lookback: int = MIN_ANALYSIS_POINTS) -> SupportResistance:
    """
    Pivot-based support and resistance.

    With fewer than ``lookback`` prices the daily high/low are used as
    resistance/support with "weak" strength.
    """
    high = snapshot.high_24h
    low = snapshot.low_24h
    current = snapshot.current_price

    if len(prices) < lookback:
        return SupportResistance(resistance=high, support=low, strength="weak")

    recent = _as_array(prices)[-lookback:]

    pivot = (high + low + current) / 3
    resistance = 2 * pivot - low
    support = 2 * pivot - high

    touches = int(np.count_nonzero(_near_level(recent, resistance) | _near_level(recent, support)))

    if touches >= 3:
        strength = "strong"
    elif touches >= 2:
        strength = "moderate"
    else:
        strength = "weak"

    return SupportResistance(
        resistance=resistance,
        support=support,
        strength=strength,
        pivot=pivot,
        max_price=float(recent.max()),
        min_price=float(recent.min())
    )


def select_series(history: Sequence[float],
                  snapshot: AssetSnapshot,
                  min_points: int = MIN_ANALYSIS_POINTS) -> Tuple[List[float], str]:
    """
    Choose the price series for this cycle's computations.

    The snapshot's embedded series replaces the stored history only when the
    history is too short and the embedded series (nulls dropped) is long
    enough. The stored history itself is never modified.

    Returns:
        Tuple of (series, source) where source is "history" or "sparkline"
    """
    series = list(history)
    if len(series) < min_points:
        embedded = snapshot.sparkline_prices()
        if len(embedded) >= min_points:
            return embedded, "sparkline"
    return series, "history"


def _rounded(value: Optional[float], digits: int) -> Optional[float]:
    return round(value, digits) if value is not None else None


def calculate_technical_analysis(snapshot: AssetSnapshot,
                                 history: Sequence[float],
                                 rsi_period: int = 14,
                                 min_points: int = MIN_ANALYSIS_POINTS) -> IndicatorResult:
    """
    Compute the full indicator set and the human-readable signal list for
    one asset.

    Args:
        snapshot: The asset's snapshot for this cycle
        history: Stored price history for the asset
        rsi_period: Oscillator period
        min_points: Points required for the analysis

    Returns:
        IndicatorResult (``available`` is False with insufficient data)
    """
    prices, source = select_series(history, snapshot, min_points)
    if len(prices) < min_points:
        return IndicatorResult.unavailable("Insufficient price history")

    current = snapshot.current_price

    rsi = calculate_rsi(prices, rsi_period)
    sma20 = calculate_sma(prices, 20)
    sma50 = calculate_sma(prices, 50)
    sma200 = calculate_sma(prices, 200)
    ema12 = calculate_ema(prices, 12)
    ema26 = calculate_ema(prices, 26)
    macd = calculate_macd(prices)
    bollinger = calculate_bollinger_bands(prices)
    levels = calculate_support_resistance(snapshot, prices)

    signals = []

    if sma20 is not None and sma50 is not None:
        if current > sma20 > sma50:
            signals.append("Bullish MA alignment (Price > SMA20 > SMA50)")
        elif current < sma20 < sma50:
            signals.append("Bearish MA alignment (Price < SMA20 < SMA50)")

    if bollinger is not None:
        if current <= bollinger.lower:
            signals.append("Price at lower Bollinger Band - potential bounce")
        elif current >= bollinger.upper:
            signals.append("Price at upper Bollinger Band - potential reversal")

    if macd is not None:
        if macd.macd > macd.signal and macd.histogram > 0:
            signals.append("MACD bullish crossover")
        elif macd.macd < macd.signal and macd.histogram < 0:
            signals.append("MACD bearish crossover")

    distance_to_support = (current - levels.support) / levels.support * 100 if levels.support else 0.0
    distance_to_resistance = (levels.resistance - current) / current * 100 if levels.resistance and current else 0.0

    if 0 < distance_to_support < 2:
        signals.append(f"Near {levels.strength} support level")
    if 0 < distance_to_resistance < 2:
        signals.append(f"Near {levels.strength} resistance level")

    levels.resistance = round(levels.resistance, 6)
    levels.support = round(levels.support, 6)
    levels.pivot = _rounded(levels.pivot, 6)
    levels.distance_to_support = round(distance_to_support, 2)
    levels.distance_to_resistance = round(distance_to_resistance, 2)

    return IndicatorResult(
        available=True,
        data_source=source,
        rsi=_rounded(rsi, 2),
        moving_averages={
            'sma20': _rounded(sma20, 6),
            'sma50': _rounded(sma50, 6),
            'sma200': _rounded(sma200, 6),
            'ema12': _rounded(ema12, 6),
            'ema26': _rounded(ema26, 6)
        },
        macd=MACDResult(
            macd=round(macd.macd, 6),
            signal=round(macd.signal, 6),
            histogram=round(macd.histogram, 6)
        ) if macd else None,
        bollinger_bands=BollingerBands(
            upper=round(bollinger.upper, 6),
            middle=round(bollinger.middle, 6),
            lower=round(bollinger.lower, 6),
            bandwidth=round(bollinger.bandwidth, 2)
        ) if bollinger else None,
        support_resistance=levels,
        signals=signals,
        data_points=len(prices)
    )
