"""
Signal classifiers: stateless weighted rules turning one asset snapshot
(plus its price history) into a ScoredSignal.

The rule constants are fixed; changing them changes published output.
"""

from typing import Optional, Sequence

from core.indicators import calculate_rsi, select_series
from models.asset_snapshot import AssetSnapshot
from models.scored_signal import BEARISH, BULLISH, HTF, ScoredSignal

# (minimum market cap, minimum 24h volume, penalty)
BULLISH_LIQUIDITY = (10_000_000, 100_000, 3)
BEARISH_LIQUIDITY = (50_000_000, 500_000, 4)
HTF_LIQUIDITY = (100_000_000, 5_000_000, 6)

RSI_PERIOD = 14

# The oscillator needs more than RSI_PERIOD points
RSI_MIN_POINTS = RSI_PERIOD + 1


def apply_liquidity_filter(score: float,
                           market_cap: float,
                           volume: float,
                           min_market_cap: float,
                           min_volume: float,
                           penalty: float) -> float:
    """
    Subtract the penalty (floored at 0) when market cap or volume is below
    its minimum; otherwise return the score unchanged.
    """
    if market_cap < min_market_cap or volume < min_volume:
        return max(0, score - penalty)
    return score


def asset_rsi(snapshot: AssetSnapshot, history: Sequence[float]) -> Optional[float]:
    """Oscillator on the asset's history, or its embedded series as fallback."""
    series, _ = select_series(history, snapshot, RSI_MIN_POINTS)
    if len(series) < RSI_MIN_POINTS:
        return None
    return calculate_rsi(series, RSI_PERIOD)


def _daily_position(snapshot: AssetSnapshot) -> Optional[float]:
    high, low = snapshot.high_24h, snapshot.low_24h
    if high == 0 or low == 0 or high == low:
        return None
    return (snapshot.current_price - low) / (high - low)


def price_momentum_score(snapshot: AssetSnapshot) -> int:
    """Early-momentum score favouring steady gains over finished pumps."""
    change_1h = snapshot.change_1h
    change_24h = snapshot.change_24h
    change_7d = snapshot.change_7d

    score = 0

    if 0.5 < change_1h < 3:
        score += 2
    elif change_1h >= 3:
        score -= 1

    if 2 < change_24h < 8:
        score += 2
    elif change_24h >= 8:
        score -= 2

    if change_7d < -15 and change_24h > 0:
        score += 3
    elif change_7d > 15:
        score -= 1

    return score


def classify_bullish(snapshot: AssetSnapshot, history: Sequence[float] = ()) -> ScoredSignal:
    """
    Short-horizon bullish opportunity score.

    Args:
        snapshot: The asset's snapshot for this cycle
        history: The asset's stored price series

    Returns:
        ScoredSignal labelled "bullish"
    """
    result = ScoredSignal(label=BULLISH)
    volume_ratio = snapshot.volume_to_market_cap

    if 0.08 < volume_ratio < 0.25:
        result.add(2, "Moderate volume increase - potential accumulation")

    momentum = price_momentum_score(snapshot)
    if momentum >= 3:
        result.add(momentum, f"Early positive momentum ({momentum}/7)")
    elif momentum < 0:
        result.add(momentum, "Already pumped - reducing score")

    position = _daily_position(snapshot)
    if position is not None and 0.4 < position < 0.7:
        result.add(3, "Accumulation pattern detected")

    if 3 < snapshot.market_cap_change_24h < 12:
        result.add(2, "Steady market cap growth")

    if abs(snapshot.change_1h) < 2 and snapshot.change_24h > -5 and volume_ratio > 0.05:
        result.add(3, "Potential whale accumulation pattern")

    if snapshot.change_7d < -10 and snapshot.change_24h > 0 and snapshot.change_1h > -1:
        result.add(2, "Recovery from dip - potential bounce")

    if snapshot.high_24h and snapshot.low_24h and snapshot.current_price:
        daily_range = (snapshot.high_24h - snapshot.low_24h) / snapshot.current_price * 100
        if daily_range < 8:
            result.add(2, "Consolidation pattern - building pressure")

    rsi = asset_rsi(snapshot, history)
    if rsi is not None:
        if rsi < 35:
            result.add(3, f"Oversold - potential reversal (RSI: {rsi:.2f})")
        elif rsi > 65:
            result.add(-2, f"Already overbought (RSI: {rsi:.2f})")

    if snapshot.change_24h > 15:
        result.add(-5, "Already pumped significantly today")

    min_cap, min_volume, penalty = BULLISH_LIQUIDITY
    result.score = apply_liquidity_filter(
        result.score, snapshot.market_cap, snapshot.total_volume, min_cap, min_volume, penalty
    )
    return result


def classify_bearish(snapshot: AssetSnapshot, history: Sequence[float] = ()) -> ScoredSignal:
    """
    Short-horizon bearish (shorting) opportunity score.

    Args:
        snapshot: The asset's snapshot for this cycle
        history: The asset's stored price series

    Returns:
        ScoredSignal labelled "bearish"
    """
    result = ScoredSignal(label=BEARISH)
    change_1h = snapshot.change_1h
    change_24h = snapshot.change_24h
    change_7d = snapshot.change_7d
    volume_ratio = snapshot.volume_to_market_cap

    if change_1h < -1 and change_24h < -3:
        result.add(3, "Strong bearish momentum - early decline")
    elif change_1h < -0.5 and change_24h < -1.5:
        result.add(2, "Moderate bearish momentum")

    if snapshot.high_24h > 0 and snapshot.current_price < snapshot.high_24h * 0.95:
        result.add(2, "Breaking down from 24h high")

    if volume_ratio > 0.1 and change_24h < -2:
        result.add(3, "High volume with price decline - potential distribution")

    rsi = asset_rsi(snapshot, history)
    if rsi is not None and rsi > 70:
        result.add(3, f"Overbought condition (RSI: {rsi:.2f}) - potential reversal")

    if change_7d > 15 and change_24h < -3:
        result.add(2, "Recent pump losing steam - potential correction")

    if change_7d > 0 and change_24h < -2 and change_1h < -1:
        result.add(2, "Bearish divergence - weekly gains fading")

    if change_24h > 5 and change_1h < -2:
        result.add(3, "Failed breakout - potential reversal")

    if snapshot.market_cap_change_24h < -5 and volume_ratio > 0.08:
        result.add(2, "Market cap declining with volume")

    min_cap, min_volume, penalty = BEARISH_LIQUIDITY
    result.score = apply_liquidity_filter(
        result.score, snapshot.market_cap or 1, snapshot.total_volume, min_cap, min_volume, penalty
    )

    if change_24h < -15:
        result.add(-3, "Already declined significantly")

    return result


def classify_htf(snapshot: AssetSnapshot, history: Sequence[float] = ()) -> ScoredSignal:
    """
    Long-horizon ("HTF") candidate score, weighted towards the 7d and 30d
    trend rather than short-term moves.

    Args:
        snapshot: The asset's snapshot for this cycle
        history: The asset's stored price series

    Returns:
        ScoredSignal labelled "htf" with the raw (unstabilized) score
    """
    result = ScoredSignal(label=HTF)
    change_1h = snapshot.change_1h
    change_24h = snapshot.change_24h
    change_7d = snapshot.change_7d
    change_30d = snapshot.change_30d
    market_cap = snapshot.market_cap or 1
    rank = snapshot.market_cap_rank or 999

    if change_30d > 20 and change_7d > 5:
        result.add(5, "Strong monthly uptrend with weekly momentum")
    elif change_30d > 10 and change_7d > 0:
        result.add(4, "Positive monthly trend with weekly consolidation")
    elif change_30d > 5 and change_7d > -5:
        result.add(2, "Moderate monthly growth with stable weekly trend")

    if change_7d > 15 and change_30d > 25:
        result.add(4, "Accelerating long-term momentum")

    if change_30d < -20 and change_7d > 10:
        result.add(5, "Strong recovery from monthly decline - potential reversal")
    elif change_30d < -10 and change_7d > 5:
        result.add(3, "Moderate recovery from monthly decline")

    if change_7d > 3 and change_30d > 10:
        result.add(3, "Sustained growth pattern - HTF suitable")

    if market_cap > 1_000_000_000:
        result.add(3, "Large cap stability for long-term holding")
    elif market_cap > 500_000_000:
        result.add(2, "Large mid cap with institutional interest")
    elif market_cap > 100_000_000:
        result.add(1, "Mid cap with growth potential")

    volume_ratio = snapshot.total_volume / market_cap
    if 0.01 < volume_ratio < 0.20:
        result.add(2, "Consistent volume for HTF investment")
    elif volume_ratio > 0.005:
        result.add(1, "Adequate volume for HTF consideration")

    rsi = asset_rsi(snapshot, history)
    if rsi is not None:
        if 35 < rsi < 75:
            result.add(2, f"Healthy RSI for HTF entry ({rsi:.2f})")
        elif rsi < 35:
            result.add(3, f"Oversold RSI - HTF accumulation zone ({rsi:.2f})")

    if rank > 300:
        result.add(-4, "Very low ranked coin - high risk for HTF")
    elif rank > 150:
        result.add(-2, "Lower ranked coin - moderate risk for HTF")
    elif rank <= 30:
        result.add(3, "Top 30 coin - excellent for HTF investment")
    elif rank <= 50:
        result.add(2, "Top 50 coin - suitable for HTF investment")
    elif rank <= 100:
        result.add(1, "Top 100 coin - good HTF candidate")

    if change_24h > 30:
        result.add(-2, "Extreme short-term pump - wait for consolidation")
    elif change_1h > 15:
        result.add(-1, "Recent large spike - monitor for HTF entry")

    min_cap, min_volume, penalty = HTF_LIQUIDITY
    result.score = apply_liquidity_filter(
        result.score, market_cap, snapshot.total_volume, min_cap, min_volume, penalty
    )

    if change_30d > 0 and change_7d > -5 and result.score >= 4:
        result.add(2, "Multi-timeframe HTF alignment")

    if abs(change_7d) < 20 and change_30d > 5:
        result.add(1, "Stable weekly performance with monthly growth")

    return result
