"""
Market-level analysis over one cycle's snapshot batch: overall trend,
BTC analysis, market-cap aggregates (TOTAL / TOTAL2 / TOTAL3) and the
market leader between them.
"""

import math
from typing import Dict, List, Optional, Sequence, Any

import pandas as pd

from core.indicators import calculate_technical_analysis
from core.regime_stabilizer import RegimeStabilizer
from models.asset_snapshot import AssetSnapshot
from models.regime import Observation
from utils.logging_utils import get_component_logger

logger = get_component_logger("core.market_analysis")

MARKET_LEADER_CHANNEL = "market_leader"

CHANGE_COLUMNS = ['change_1h', 'change_24h', 'change_7d', 'change_30d']

INDEX_NAMES = {
    'total': ('TOTAL', 'Total Crypto Market Cap'),
    'total2': ('TOTAL2', 'Total Market Cap (excl. BTC)'),
    'total3': ('TOTAL3', 'Altcoin Market Cap'),
}


def snapshots_frame(snapshots: Sequence[AssetSnapshot]) -> pd.DataFrame:
    """One row per snapshot, in batch (market-cap) order."""
    columns = ['asset_id', 'current_price', 'total_volume', 'market_cap'] + CHANGE_COLUMNS
    if not snapshots:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([s.to_dict() for s in snapshots])[columns]


def analyze_market_trend(snapshots: Sequence[AssetSnapshot], sample_size: int = 20) -> Dict[str, Any]:
    """
    Overall market trend from the top ``sample_size`` assets.

    An asset counts as bullish with 24h > 2 and 7d > 0, bearish with
    24h < -2 and 7d < 0. The market is bullish (bearish) when at least 60%
    of the sample is.

    Args:
        snapshots: Snapshot batch in market-cap order
        sample_size: Number of leading assets considered

    Returns:
        Dictionary with trend, description and details
    """
    if not snapshots:
        return {
            'trend': 'Unknown',
            'description': 'Unable to determine market trend - no data available',
            'details': {}
        }

    df = snapshots_frame(snapshots).head(sample_size)
    bullish = (df['change_24h'] > 2) & (df['change_7d'] > 0)
    bearish = (df['change_24h'] < -2) & (df['change_7d'] < 0)

    bullish_count = int(bullish.sum())
    bearish_count = int(bearish.sum())
    neutral_count = len(df) - bullish_count - bearish_count

    avg_change_24h = float(df['change_24h'].mean())
    total_market_cap = float(df['market_cap'].sum())
    volume_ratio = float(df['total_volume'].sum()) / total_market_cap * 100 if total_market_cap else 0.0

    if bullish_count >= len(df) * 0.6:
        trend = 'Bullish'
        if avg_change_24h > 5:
            description = 'Strong bullish momentum across major cryptocurrencies'
        else:
            description = 'Moderate bullish sentiment in the crypto market'
    elif bearish_count >= len(df) * 0.6:
        trend = 'Bearish'
        if avg_change_24h < -5:
            description = 'Strong bearish pressure across major cryptocurrencies'
        else:
            description = 'Moderate bearish sentiment in the crypto market'
    else:
        trend = 'Neutral'
        if abs(avg_change_24h) < 1:
            description = 'Sideways market with mixed signals from major cryptocurrencies'
        elif avg_change_24h > 0:
            description = 'Cautiously bullish with mixed signals across the market'
        else:
            description = 'Cautiously bearish with mixed signals across the market'

    return {
        'trend': trend,
        'description': description,
        'details': {
            'bullish_coins': bullish_count,
            'bearish_coins': bearish_count,
            'neutral_coins': neutral_count,
            'avg_change_1h': round(float(df['change_1h'].mean()), 2),
            'avg_change_24h': round(avg_change_24h, 2),
            'avg_change_7d': round(float(df['change_7d'].mean()), 2),
            'volume_ratio': round(volume_ratio, 2),
            'total_coins_analyzed': len(df)
        }
    }


def _weighted_changes(df: pd.DataFrame) -> Dict[str, float]:
    total = df['market_cap'].sum()
    if not total:
        return {column: 0.0 for column in CHANGE_COLUMNS}
    weights = df['market_cap'] / total
    return {column: float((weights * df[column]).sum()) for column in CHANGE_COLUMNS}


def compute_market_aggregates(snapshots: Sequence[AssetSnapshot],
                              btc_id: str = 'bitcoin',
                              eth_id: str = 'ethereum') -> Dict[str, Dict[str, float]]:
    """
    Synthetic market-cap indices over the batch.

    TOTAL covers every asset, TOTAL2 excludes BTC, TOTAL3 excludes BTC and
    ETH. Percentage changes are market-cap weighted within each index.

    Returns:
        Dictionary of index key -> {market_cap, total_volume, change_*}
    """
    df = snapshots_frame(snapshots)
    subsets = {
        'total': df,
        'total2': df[df['asset_id'] != btc_id],
        'total3': df[~df['asset_id'].isin([btc_id, eth_id])],
    }

    aggregates = {}
    for key, subset in subsets.items():
        aggregate = {
            'market_cap': float(subset['market_cap'].sum()),
            'total_volume': float(subset['total_volume'].sum())
        }
        aggregate.update(_weighted_changes(subset))
        aggregates[key] = aggregate
    return aggregates


def determine_market_phase(change_24h: float, change_7d: float, change_30d: float) -> Dict[str, str]:
    """Phase label, strength and description of a market-cap index."""
    if change_24h > 2 and change_7d > 5 and change_30d > 10:
        return {'phase': 'Bull Run', 'strength': 'Strong',
                'description': 'Strong upward momentum across all timeframes'}
    if change_24h > 1 and change_7d > 2 and change_30d > 5:
        return {'phase': 'Bull Market', 'strength': 'Moderate',
                'description': 'Consistent upward trend'}
    if change_7d > 3 or change_30d > 8:
        return {'phase': 'Recovery', 'strength': 'Moderate',
                'description': 'Market recovering from previous decline'}
    if change_24h < -2 and change_7d < -5 and change_30d < -10:
        return {'phase': 'Bear Market', 'strength': 'Strong',
                'description': 'Strong downward pressure across timeframes'}
    if change_24h < -1 and change_7d < -3 and change_30d < -5:
        return {'phase': 'Correction', 'strength': 'Moderate',
                'description': 'Market in correction phase'}
    if change_7d < -2 or change_30d < -5:
        return {'phase': 'Decline', 'strength': 'Weak',
                'description': 'Gradual market decline'}
    return {'phase': 'Consolidation',
            'strength': 'Weak' if abs(change_7d) < 2 else 'Moderate',
            'description': 'Market moving sideways with low volatility'}


def calculate_acceleration(change_1h: float, change_24h: float, change_7d: float) -> str:
    short_term = (change_1h + change_24h) / 2
    if short_term > change_7d + 1:
        return 'Accelerating Up'
    if short_term < change_7d - 1:
        return 'Accelerating Down'
    return 'Stable'


def calculate_momentum(change_1h: float, change_24h: float, change_7d: float) -> Dict[str, Any]:
    """Weighted momentum (1h 20%, 24h 40%, 7d 40%) with its label."""
    score = change_1h * 0.2 + change_24h * 0.4 + change_7d * 0.4

    if score > 3:
        momentum = 'Very Bullish'
    elif score > 1:
        momentum = 'Bullish'
    elif score > -1:
        momentum = 'Neutral'
    elif score > -3:
        momentum = 'Bearish'
    else:
        momentum = 'Very Bearish'

    return {
        'momentum': momentum,
        'score': round(score, 2),
        'acceleration': calculate_acceleration(change_1h, change_24h, change_7d)
    }


def generate_market_cap_signals(change_1h: float, change_24h: float, change_7d: float,
                                change_30d: float, volume: float, market_cap: float) -> List[str]:
    signals = []

    if change_1h > 0.5 and change_24h > 1:
        signals.append('Strong short-term momentum')
    elif change_1h < -0.5 and change_24h < -1:
        signals.append('Bearish short-term momentum')

    if change_7d > 5 and change_30d > 10:
        signals.append('Sustained uptrend across timeframes')
    elif change_7d < -5 and change_30d < -10:
        signals.append('Sustained downtrend across timeframes')

    if change_24h > 2 and change_7d < -3:
        signals.append('Potential trend reversal - bounce from decline')
    elif change_24h < -2 and change_7d > 3:
        signals.append('Potential trend reversal - pullback from gains')

    volume_ratio = volume / market_cap * 100 if volume and market_cap else 0
    if volume_ratio > 2:
        signals.append('High trading activity')
    elif volume_ratio < 0.5:
        signals.append('Low trading activity')

    if change_30d > 20:
        signals.append('Monthly bull run in progress')
    elif change_30d < -20:
        signals.append('Monthly bear market conditions')

    return signals


def analyze_market_cap_index(aggregate: Dict[str, float], symbol: str, name: str) -> Dict[str, Any]:
    """Phase, momentum and signals of one synthetic index."""
    change_1h = aggregate['change_1h']
    change_24h = aggregate['change_24h']
    change_7d = aggregate['change_7d']
    change_30d = aggregate['change_30d']

    return {
        'name': name,
        'symbol': symbol,
        'current_value': aggregate['market_cap'],
        'market_cap': aggregate['market_cap'],
        'volume_24h': aggregate['total_volume'],
        'price_changes': {
            'change_1h': round(change_1h, 4),
            'change_24h': round(change_24h, 4),
            'change_7d': round(change_7d, 4),
            'change_30d': round(change_30d, 4)
        },
        'market_phase': determine_market_phase(change_24h, change_7d, change_30d),
        'momentum': calculate_momentum(change_1h, change_24h, change_7d),
        'signals': generate_market_cap_signals(
            change_1h, change_24h, change_7d, change_30d,
            aggregate['total_volume'], aggregate['market_cap']
        )
    }


def identify_market_leader(total_change: float, total2_change: float, total3_change: float) -> Dict[str, str]:
    """Raw (unstabilized) market leader from the three 24h index changes."""
    if total_change > total2_change and total_change > total3_change:
        return {'leader': 'Bitcoin', 'strength': 'Leading market direction'}
    if total2_change > total_change and total2_change > total3_change:
        return {'leader': 'Large Cap Altcoins', 'strength': 'Driving market performance'}
    if total3_change > total_change and total3_change > total2_change:
        return {'leader': 'Small Cap Altcoins', 'strength': 'Outperforming larger caps'}
    return {'leader': 'Mixed', 'strength': 'No clear market leader'}


def analyze_market_relationships(aggregates: Dict[str, Dict[str, float]],
                                 stabilizer: RegimeStabilizer) -> Dict[str, Any]:
    """
    Dominance figures and performance relationships between the indices,
    with the market leader stabilized through its channel.
    """
    total = aggregates['total']
    total2 = aggregates['total2']
    total3 = aggregates['total3']

    btc_dominance = None
    altcoin_dominance = None
    if total['market_cap']:
        btc_dominance = round((total['market_cap'] - total2['market_cap']) / total['market_cap'] * 100, 1)
        altcoin_dominance = round(total3['market_cap'] / total['market_cap'] * 100, 1)

    total_change = total['change_24h']
    total2_change = total2['change_24h']
    total3_change = total3['change_24h']

    relationships = []

    if total_change > total2_change + 1:
        relationships.append('Bitcoin outperforming altcoins')
    elif total2_change > total_change + 1:
        relationships.append('Altcoins outperforming Bitcoin')
    else:
        relationships.append('Bitcoin and altcoins moving in sync')

    if total3_change > total2_change and total3_change > total_change:
        relationships.append('Altcoins leading the market')
    elif total_change > total2_change and total_change > total3_change:
        relationships.append('Bitcoin leading the market')

    if btc_dominance:
        if total_change - total2_change > 0.5:
            relationships.append('Bitcoin dominance increasing')
        elif total2_change - total_change > 0.5:
            relationships.append('Bitcoin dominance decreasing')

    return {
        'btc_dominance': btc_dominance,
        'altcoin_dominance': altcoin_dominance,
        'relationships': relationships,
        'market_leader': stabilize_market_leader(total_change, total2_change, total3_change, stabilizer)
    }


def stabilize_market_leader(total_change: float, total2_change: float, total3_change: float,
                            stabilizer: RegimeStabilizer) -> Dict[str, Any]:
    """
    Feed the raw leader into the market-leader channel. The hysteresis
    metric is the spread between the best and worst 24h index change.
    """
    raw = identify_market_leader(total_change, total2_change, total3_change)
    changes = [total_change, total2_change, total3_change]
    margin = abs(max(changes) - min(changes))

    observation = Observation(
        label=raw['leader'],
        score=margin,
        metrics={'margin': margin},
        details={
            'strength': raw['strength'],
            'changes': {'total': total_change, 'total2': total2_change, 'total3': total3_change}
        }
    )
    state = stabilizer.observe(MARKET_LEADER_CHANNEL, observation)

    strength = raw['strength']
    if state.stabilized:
        strength = f"{state.details.get('strength', strength)} (stabilized)"

    return {
        'leader': state.label,
        'strength': strength,
        'stabilized': state.stabilized,
        'stability': {
            'dominant_leader': state.stability['dominant_label'],
            'stability_ratio': state.stability['dominance_ratio'],
            'recent_switches': state.stability['recent_switches'],
            'margin': round(margin, 2)
        }
    }


def analyze_market_cap_indices(snapshots: Sequence[AssetSnapshot],
                               stabilizer: RegimeStabilizer,
                               btc_id: str = 'bitcoin',
                               eth_id: str = 'ethereum') -> Optional[Dict[str, Any]]:
    """
    Full market-cap analysis: the three indices and their relationships.

    Returns:
        Dictionary keyed total/total2/total3/analysis, or None without data
    """
    if not snapshots:
        logger.warning("No snapshots available for market cap analysis")
        return None

    aggregates = compute_market_aggregates(snapshots, btc_id, eth_id)
    analysis = {
        key: analyze_market_cap_index(aggregates[key], symbol, name)
        for key, (symbol, name) in INDEX_NAMES.items()
    }
    analysis['analysis'] = analyze_market_relationships(aggregates, stabilizer)
    return analysis


def analyze_btc_sentiment(snapshot: AssetSnapshot) -> Dict[str, Any]:
    change_24h = snapshot.change_24h
    change_7d = snapshot.change_7d
    volume_ratio = snapshot.volume_to_market_cap * 100

    confidence = 'Medium'
    signals = []

    if change_24h > 3 and change_7d > 5:
        sentiment = 'Very Bullish'
        confidence = 'High' if volume_ratio > 3 else 'Medium'
        signals.append('Strong upward momentum')
    elif change_24h > 1 and change_7d > 0:
        sentiment = 'Bullish'
        confidence = 'High' if volume_ratio > 2 else 'Medium'
        signals.append('Positive trend')
    elif change_24h < -3 and change_7d < -5:
        sentiment = 'Very Bearish'
        confidence = 'High' if volume_ratio > 3 else 'Medium'
        signals.append('Strong downward pressure')
    elif change_24h < -1 and change_7d < 0:
        sentiment = 'Bearish'
        confidence = 'High' if volume_ratio > 2 else 'Medium'
        signals.append('Negative trend')
    else:
        sentiment = 'Neutral'
        signals.append('Sideways movement')

    if volume_ratio > 4:
        signals.append('High trading volume')
    elif volume_ratio < 1:
        signals.append('Low trading volume')

    return {
        'sentiment': sentiment,
        'confidence': confidence,
        'signals': signals,
        'volume_ratio': round(volume_ratio, 2)
    }


def calculate_btc_key_levels(current_price: float, high_24h: float, low_24h: float) -> Dict[str, Any]:
    """Psychological round-thousand levels around the price plus the daily range."""
    rounded = math.floor(current_price / 1000) * 1000
    levels = []
    for step in range(-2, 3):
        level = rounded + step * 1000
        if level <= 0:
            continue
        levels.append({
            'level': level,
            'type': 'current' if step == 0 else ('resistance' if step > 0 else 'support'),
            'distance': round((level - current_price) / current_price * 100, 2) if current_price else 0.0
        })

    return {
        'psychological': levels,
        'daily_high': high_24h,
        'daily_low': low_24h,
        'mid_point': round((high_24h + low_24h) / 2, 2) if high_24h and low_24h else None
    }


def analyze_btc_volume(volume: float, market_cap: float) -> Dict[str, Any]:
    ratio = volume / (market_cap or 1) * 100

    if ratio > 4:
        analysis, strength = 'Very High - Significant market activity', 'High'
    elif ratio > 2.5:
        analysis, strength = 'High - Above average trading', 'High'
    elif ratio > 1.5:
        analysis, strength = 'Moderate - Normal trading activity', 'Medium'
    else:
        analysis, strength = 'Low - Below average trading', 'Low'

    return {'ratio': round(ratio, 2), 'analysis': analysis, 'strength': strength, 'volume_24h': volume}


def _direction(change: float) -> str:
    if change > 0:
        return 'Up'
    if change < 0:
        return 'Down'
    return 'Flat'


def _strength(change: float, strong: float, moderate: float) -> str:
    if abs(change) > strong:
        return 'Strong'
    if abs(change) > moderate:
        return 'Moderate'
    return 'Weak'


def analyze_btc_trend(change_1h: float, change_24h: float, change_7d: float, change_30d: float) -> List[Dict]:
    """Per-timeframe direction and strength; the 1h frame only when it moved over 1%."""
    trends = []

    if abs(change_1h) > 1:
        trends.append({
            'timeframe': '1h',
            'direction': 'Up' if change_1h > 0 else 'Down',
            'strength': 'Strong' if abs(change_1h) > 2 else 'Moderate',
            'change': round(change_1h, 2)
        })

    for timeframe, change, strong, moderate in (('24h', change_24h, 3, 1),
                                                 ('7d', change_7d, 10, 3),
                                                 ('30d', change_30d, 20, 5)):
        trends.append({
            'timeframe': timeframe,
            'direction': _direction(change),
            'strength': _strength(change, strong, moderate),
            'change': round(change, 2)
        })

    return trends


def analyze_btc(snapshot: Optional[AssetSnapshot],
                history: Sequence[float] = (),
                total_market_cap: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """
    BTC dashboard analysis.

    Args:
        snapshot: The BTC snapshot of this cycle (None if absent)
        history: Stored BTC price history
        total_market_cap: Batch-wide market cap used for dominance

    Returns:
        Analysis dictionary, or None without a snapshot
    """
    if snapshot is None:
        return None

    high, low = snapshot.high_24h, snapshot.low_24h
    if total_market_cap:
        dominance = round(snapshot.market_cap / total_market_cap * 100, 1)
    else:
        dominance = None

    technical = calculate_technical_analysis(snapshot, history)

    return {
        'name': snapshot.name or 'Bitcoin',
        'symbol': (snapshot.symbol or 'btc').upper(),
        'current_price': snapshot.current_price,
        'market_cap': snapshot.market_cap,
        'volume_24h': snapshot.total_volume,
        'dominance': dominance,
        'price_changes': {
            'change_1h': snapshot.change_1h,
            'change_24h': snapshot.change_24h,
            'change_7d': snapshot.change_7d,
            'change_30d': snapshot.change_30d
        },
        'daily_range': {
            'high': high,
            'low': low,
            'range': round((high - low) / low * 100, 2) if high > 0 and low > 0 else 0
        },
        'technical_analysis': technical.to_dict(),
        'market_sentiment': analyze_btc_sentiment(snapshot),
        'key_levels': calculate_btc_key_levels(snapshot.current_price, high, low),
        'volume_analysis': analyze_btc_volume(snapshot.total_volume, snapshot.market_cap),
        'trend_analysis': analyze_btc_trend(
            snapshot.change_1h, snapshot.change_24h, snapshot.change_7d, snapshot.change_30d
        )
    }
