"""
Market cycle analysis: BTC, total-market and altcoin cycle readings,
combined into an overall risk/opportunity estimate and a cycle phase that
is stabilized through the ``cycle_phase`` channel.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from core.market_analysis import snapshots_frame
from core.regime_stabilizer import RegimeStabilizer
from models.asset_snapshot import AssetSnapshot
from models.regime import Observation
from utils.logging_utils import get_component_logger

DEFAULT_LOGGER = get_component_logger("core.cycle_analysis")

CYCLE_PHASE_CHANNEL = "cycle_phase"

# Reference levels of the current cycle
BTC_ATH_ESTIMATE = 73000
BTC_ATL_ESTIMATE = 15500
MARKET_CAP_CYCLE_HIGH = 3_000_000_000_000
MARKET_CAP_CYCLE_LOW = 800_000_000_000

CYCLE_WEIGHTS = {'btc': 0.5, 'market': 0.3, 'altcoin': 0.2}

HISTORICAL_CONTEXT = {
    'last_cycle_top': '2021-11',
    'last_cycle_low': '2022-11',
    'average_cycle_length': '4 years',
    'current_cycle_start': '2022-11',
    'next_halving': '2028'
}


def calculate_price_position(current_price: float, ath: float, atl: float) -> Dict[str, Any]:
    position = (current_price - atl) / (ath - atl) * 100

    if position > 80:
        zone, risk = 'Cycle Top Zone', 'Very High'
    elif position > 60:
        zone, risk = 'Late Cycle', 'High'
    elif position > 40:
        zone, risk = 'Mid Cycle', 'Medium'
    elif position > 20:
        zone, risk = 'Early Cycle', 'Low'
    else:
        zone, risk = 'Cycle Bottom Zone', 'Very Low'

    return {'position': round(position, 1), 'zone': zone, 'risk': risk}


def calculate_cycle_momentum(change_24h: float, change_7d: float, change_30d: float) -> Dict[str, Any]:
    """Weighted momentum (24h 30%, 7d 40%, 30d 30%)."""
    momentum = change_24h * 0.3 + change_7d * 0.4 + change_30d * 0.3

    if momentum > 15:
        strength, direction = 'Very Strong', 'Up'
    elif momentum > 5:
        strength, direction = 'Strong', 'Up'
    elif momentum > -5:
        strength, direction = 'Neutral', 'Sideways'
    elif momentum > -15:
        strength, direction = 'Weak', 'Down'
    else:
        strength, direction = 'Very Weak', 'Down'

    return {'momentum': round(momentum, 1), 'strength': strength, 'direction': direction}


def estimate_fear_greed(price_from_ath: float) -> int:
    """Rough fear/greed index from the distance to the all-time high."""
    if price_from_ath > -10:
        return 85
    if price_from_ath > -30:
        return 65
    if price_from_ath > -50:
        return 50
    if price_from_ath > -70:
        return 25
    return 10


def analyze_volume_profile(volume: float, market_cap: float) -> Dict[str, Any]:
    ratio = volume / market_cap * 100 if market_cap > 0 else 0.0
    if ratio > 5:
        return {'profile': 'High Volume', 'ratio': round(ratio, 2), 'signal': 'Strong Activity'}
    if ratio > 2:
        return {'profile': 'Normal Volume', 'ratio': round(ratio, 2), 'signal': 'Moderate Activity'}
    return {'profile': 'Low Volume', 'ratio': round(ratio, 2), 'signal': 'Weak Activity'}


def analyze_technical_position(technical: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Net technical stance from the indicator signal strings."""
    if not technical or not technical.get('available'):
        return {'position': 'Unknown', 'signals': [], 'strength': 'Low'}

    signals = technical.get('signals') or []
    bullish = sum(1 for s in signals if 'bullish' in s or 'buy' in s or 'strong' in s)
    bearish = sum(1 for s in signals if 'bearish' in s or 'sell' in s or 'weak' in s)

    if bullish > bearish + 1:
        return {'position': 'Bullish', 'signals': signals, 'strength': 'High'}
    if bearish > bullish + 1:
        return {'position': 'Bearish', 'signals': signals, 'strength': 'High'}
    return {'position': 'Neutral', 'signals': signals, 'strength': 'Medium'}


def determine_btc_cycle_stage(position: float, momentum: float) -> Dict[str, str]:
    if position > 80 and momentum < -5:
        return {'stage': 'Cycle Top', 'confidence': 'High'}
    if position > 70 and momentum > 10:
        return {'stage': 'Late Bull Run', 'confidence': 'High'}
    if position > 50 and momentum > 5:
        return {'stage': 'Mid Bull Run', 'confidence': 'Medium'}
    if position > 30 and momentum > 0:
        return {'stage': 'Early Bull Run', 'confidence': 'Medium'}
    if position < 30 and momentum < -10:
        return {'stage': 'Bear Market', 'confidence': 'High'}
    if position < 20 and momentum > -5:
        return {'stage': 'Cycle Bottom', 'confidence': 'High'}
    return {'stage': 'Accumulation', 'confidence': 'Medium'}


def generate_btc_cycle_signals(indicators: Dict[str, Any], stage: Dict[str, str]) -> List[str]:
    signals = []
    if stage['stage'] == 'Cycle Top':
        signals.append('Cycle top formation detected')
    if stage['stage'] == 'Cycle Bottom':
        signals.append('Cycle bottom opportunity')
    if indicators['price_position']['zone'] == 'Cycle Top Zone':
        signals.append('Price in dangerous top zone')
    if indicators['price_position']['zone'] == 'Cycle Bottom Zone':
        signals.append('Price in accumulation zone')
    if indicators['fear_greed_index'] > 80:
        signals.append('Extreme greed - high risk')
    if indicators['fear_greed_index'] < 20:
        signals.append('Extreme fear - opportunity')

    high_volume = indicators['volume_profile']['profile'] == 'High Volume'
    direction = indicators['momentum']['direction']
    if high_volume and direction == 'Down':
        signals.append('High volume selling pressure')
    if high_volume and direction == 'Up':
        signals.append('High volume buying pressure')
    return signals


def analyze_btc_cycle(btc_analysis: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    BTC cycle reading from the BTC analysis.

    Args:
        btc_analysis: Output of market_analysis.analyze_btc

    Returns:
        Cycle dictionary with risk and opportunity scores (0-10), or None
    """
    if not btc_analysis:
        return None

    price = btc_analysis.get('current_price') or 0
    changes = btc_analysis.get('price_changes') or {}
    price_from_ath = (price - BTC_ATH_ESTIMATE) / BTC_ATH_ESTIMATE * 100
    price_from_atl = (price - BTC_ATL_ESTIMATE) / BTC_ATL_ESTIMATE * 100

    indicators = {
        'price_position': calculate_price_position(price, BTC_ATH_ESTIMATE, BTC_ATL_ESTIMATE),
        'momentum': calculate_cycle_momentum(
            changes.get('change_24h', 0), changes.get('change_7d', 0), changes.get('change_30d', 0)
        ),
        'volume_profile': analyze_volume_profile(
            btc_analysis.get('volume_24h') or 0, btc_analysis.get('market_cap') or 0
        ),
        'technical_position': analyze_technical_position(btc_analysis.get('technical_analysis')),
        'fear_greed_index': estimate_fear_greed(price_from_ath)
    }

    position = indicators['price_position']['position']
    direction = indicators['momentum']['direction']
    stage = determine_btc_cycle_stage(position, indicators['momentum']['momentum'])

    risk = position / 10 + (2 if direction == 'Down' else 0) + (3 if indicators['fear_greed_index'] > 80 else 0)
    opportunity = (100 - position) / 10 + (2 if direction == 'Up' else 0) \
        + (3 if indicators['fear_greed_index'] < 20 else 0)

    return {
        'asset': 'Bitcoin',
        'current_price': price,
        'price_from_ath': round(price_from_ath, 1),
        'price_from_atl': round(price_from_atl, 1),
        'cycle_stage': stage,
        'indicators': indicators,
        'signals': generate_btc_cycle_signals(indicators, stage),
        'risk_score': min(risk, 10),
        'opportunity_score': min(opportunity, 10)
    }


def calculate_market_cap_position(market_cap: float) -> float:
    position = (market_cap - MARKET_CAP_CYCLE_LOW) / (MARKET_CAP_CYCLE_HIGH - MARKET_CAP_CYCLE_LOW) * 100
    return round(max(0.0, min(100.0, position)), 1)


def analyze_dominance_shift(relationships: Optional[Dict[str, Any]]) -> Dict[str, str]:
    if not relationships or not relationships.get('relationships'):
        return {'shift': 'Stable', 'significance': 'Low'}

    items = relationships['relationships']
    if any('Bitcoin outperforming' in r for r in items):
        return {'shift': 'Bitcoin Dominance Rising', 'significance': 'High'}
    if any('Altcoins outperforming' in r for r in items):
        return {'shift': 'Altcoin Dominance Rising', 'significance': 'High'}
    return {'shift': 'Stable', 'significance': 'Medium'}


def detect_altcoin_season(market_cap_analysis: Dict[str, Any]) -> bool:
    """Altcoins (TOTAL2) outperforming the whole market by more than 5% over 7d."""
    total = market_cap_analysis.get('total')
    total2 = market_cap_analysis.get('total2')
    if not total or not total2:
        return False
    return total2['price_changes']['change_7d'] > total['price_changes']['change_7d'] + 5


def determine_market_cycle_stage(position: float, momentum: float) -> Dict[str, str]:
    if position > 80 and momentum < -5:
        return {'stage': 'Market Top', 'confidence': 'High'}
    if position > 60 and momentum > 10:
        return {'stage': 'Late Bull Run', 'confidence': 'High'}
    if position < 30 and momentum < -10:
        return {'stage': 'Bear Market', 'confidence': 'High'}
    if position < 20:
        return {'stage': 'Market Bottom', 'confidence': 'Medium'}
    return {'stage': 'Mid Cycle', 'confidence': 'Medium'}


def analyze_market_cycle(market_cap_analysis: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Total-market cycle reading from the market-cap index analysis."""
    if not market_cap_analysis or not market_cap_analysis.get('total'):
        return None

    total = market_cap_analysis['total']
    changes = total['price_changes']
    market_cap = total.get('current_value') or 0

    indicators = {
        'market_cap_position': calculate_market_cap_position(market_cap),
        'market_momentum': calculate_cycle_momentum(
            changes['change_24h'], changes['change_7d'], changes['change_30d']
        ),
        'dominance_shift': analyze_dominance_shift(market_cap_analysis.get('analysis')),
        'market_phase': total.get('market_phase'),
        'altcoin_season': detect_altcoin_season(market_cap_analysis)
    }

    position = indicators['market_cap_position']
    direction = indicators['market_momentum']['direction']
    altcoin_season = indicators['altcoin_season']
    stage = determine_market_cycle_stage(position, indicators['market_momentum']['momentum'])

    signals = []
    if stage['stage'] == 'Market Top':
        signals.append('Market showing top characteristics')
    if stage['stage'] == 'Market Bottom':
        signals.append('Market in bottom zone')
    if altcoin_season:
        signals.append('Altcoin season detected')

    risk = position / 10 + (2 if direction == 'Down' else 0) + (1 if altcoin_season else 0)
    opportunity = (100 - position) / 10 + (2 if direction == 'Up' else 0) + (0 if altcoin_season else 1)

    return {
        'total_market_cap': market_cap,
        'cycle_stage': stage,
        'indicators': indicators,
        'signals': signals,
        'risk_score': min(risk, 10),
        'opportunity_score': min(opportunity, 10)
    }


def calculate_altcoin_strength(avg_24h: float, avg_7d: float, avg_30d: float) -> Dict[str, Any]:
    strength = (avg_24h + avg_7d + avg_30d) / 3
    if strength > 10:
        label = 'Very Strong'
    elif strength > 5:
        label = 'Strong'
    elif strength > -5:
        label = 'Neutral'
    else:
        label = 'Weak'
    return {'strength': label, 'score': round(strength, 1)}


def calculate_market_breadth(altcoins: pd.DataFrame) -> Dict[str, Any]:
    """Share of altcoins up over 24h."""
    breadth = float((altcoins['change_24h'] > 0).mean() * 100)
    if breadth > 70:
        assessment = 'Strong'
    elif breadth > 30:
        assessment = 'Mixed'
    else:
        assessment = 'Weak'
    return {'breadth': round(breadth, 1), 'assessment': assessment}


def calculate_speculation_level(altcoins: pd.DataFrame) -> Dict[str, Any]:
    """Share of altcoins that moved more than 20% in 24h."""
    ratio = float((altcoins['change_24h'].abs() > 20).mean() * 100)
    if ratio > 30:
        level = 'Extreme'
    elif ratio > 15:
        level = 'High'
    elif ratio > 5:
        level = 'Moderate'
    else:
        level = 'Low'
    return {'level': level, 'ratio': round(ratio, 1)}


def detect_market_rotation(altcoins: pd.DataFrame) -> Dict[str, str]:
    """Compare the top 10 altcoins' 24h performance with ranks 11-30."""
    top = altcoins['change_24h'].iloc[:10]
    mid = altcoins['change_24h'].iloc[10:30]
    if top.empty or mid.empty:
        return {'rotation': 'Stable', 'strength': 'Neutral'}

    top_avg = top.mean()
    mid_avg = mid.mean()
    if mid_avg > top_avg + 3:
        return {'rotation': 'Into Smaller Caps', 'strength': 'Strong'}
    if top_avg > mid_avg + 3:
        return {'rotation': 'Into Larger Caps', 'strength': 'Strong'}
    return {'rotation': 'Stable', 'strength': 'Neutral'}


def determine_altcoin_cycle_stage(indicators: Dict[str, Any]) -> Dict[str, str]:
    momentum = indicators['altcoin_momentum']['momentum']
    speculation = indicators['speculation']['level']

    if speculation == 'Extreme' and momentum > 15:
        return {'stage': 'Altcoin Bubble', 'confidence': 'High'}
    if indicators['altcoin_strength']['strength'] == 'Very Strong':
        return {'stage': 'Altcoin Season', 'confidence': 'High'}
    if momentum < -15:
        return {'stage': 'Altcoin Winter', 'confidence': 'High'}
    if momentum < -5:
        return {'stage': 'Altcoin Decline', 'confidence': 'Medium'}
    return {'stage': 'Altcoin Accumulation', 'confidence': 'Medium'}


def analyze_altcoin_cycle(snapshots: Sequence[AssetSnapshot],
                          excluded_ids: Sequence[str] = ('bitcoin', 'ethereum'),
                          sample_size: int = 50) -> Optional[Dict[str, Any]]:
    """
    Altcoin cycle reading over the top ``sample_size`` assets other than
    the excluded majors.
    """
    df = snapshots_frame(snapshots)
    altcoins = df[~df['asset_id'].isin(list(excluded_ids))].head(sample_size).reset_index(drop=True)
    if altcoins.empty:
        return None

    avg_24h = float(altcoins['change_24h'].mean())
    avg_7d = float(altcoins['change_7d'].mean())
    avg_30d = float(altcoins['change_30d'].mean())

    indicators = {
        'altcoin_momentum': calculate_cycle_momentum(avg_24h, avg_7d, avg_30d),
        'altcoin_strength': calculate_altcoin_strength(avg_24h, avg_7d, avg_30d),
        'breadth': calculate_market_breadth(altcoins),
        'speculation': calculate_speculation_level(altcoins),
        'rotation': detect_market_rotation(altcoins)
    }
    stage = determine_altcoin_cycle_stage(indicators)

    speculation = indicators['speculation']['level']
    momentum = indicators['altcoin_momentum']['momentum']

    risk = 0
    if speculation == 'Extreme':
        risk += 4
    if speculation == 'High':
        risk += 2
    if momentum < -10:
        risk += 3
    if indicators['breadth']['assessment'] == 'Weak':
        risk += 2

    opportunity = 0
    if speculation == 'Low':
        opportunity += 3
    if momentum > 5:
        opportunity += 3
    if indicators['breadth']['assessment'] == 'Strong':
        opportunity += 2
    if 'Smaller Caps' in indicators['rotation']['rotation']:
        opportunity += 2

    signals = []
    if stage['stage'] == 'Altcoin Bubble':
        signals.append('Altcoin bubble warning')
    if stage['stage'] == 'Altcoin Season':
        signals.append('Altcoin season active')
    if stage['stage'] == 'Altcoin Winter':
        signals.append('Altcoin winter conditions')
    if speculation == 'Extreme':
        signals.append('Extreme speculation detected')

    return {
        'altcoin_count': len(altcoins),
        'average_performance': {
            'change_24h': round(avg_24h, 2),
            'change_7d': round(avg_7d, 2),
            'change_30d': round(avg_30d, 2)
        },
        'cycle_stage': stage,
        'indicators': indicators,
        'signals': signals,
        'risk_score': min(risk, 10),
        'opportunity_score': min(opportunity, 10)
    }


def calculate_overall_cycle(btc_cycle: Optional[Dict], market_cycle: Optional[Dict],
                            altcoin_cycle: Optional[Dict]) -> Optional[Dict[str, Any]]:
    """Weighted risk/opportunity over the available cycle readings."""
    parts = [('btc', btc_cycle), ('market', market_cycle), ('altcoin', altcoin_cycle)]
    available = [(CYCLE_WEIGHTS[name], cycle) for name, cycle in parts if cycle]
    if not available:
        return None

    total_weight = sum(weight for weight, _ in available)
    risk = sum(cycle['risk_score'] * weight for weight, cycle in available) / total_weight
    opportunity = sum(cycle['opportunity_score'] * weight for weight, cycle in available) / total_weight

    return {
        'overall_risk_score': round(risk, 1),
        'overall_opportunity_score': round(opportunity, 1),
        'cycle_bias': 'Bullish' if opportunity > risk else 'Bearish',
        'cycle_strength': round(abs(opportunity - risk), 1)
    }


def determine_cycle_phase(risk: float, opportunity: float) -> Dict[str, str]:
    """Raw (unstabilized) cycle phase."""
    if risk > 8 and opportunity < 3:
        return {'phase': 'Cycle Top Warning',
                'description': 'High risk of cycle top - consider taking profits',
                'action': 'Reduce Risk'}
    if risk > 6 and opportunity < 5:
        return {'phase': 'Late Cycle',
                'description': 'Advanced cycle stage - be cautious',
                'action': 'Monitor Closely'}
    if risk < 4 and opportunity > 7:
        return {'phase': 'Cycle Bottom Opportunity',
                'description': 'High probability cycle bottom - accumulation zone',
                'action': 'Accumulate'}
    if risk < 5 and opportunity > 5:
        return {'phase': 'Early Cycle',
                'description': 'Early cycle stage - good entry opportunities',
                'action': 'Buy Dips'}
    return {'phase': 'Mid Cycle',
            'description': 'Middle of cycle - balanced risk/reward',
            'action': 'Hold & Monitor'}


def generate_cycle_signals(btc_cycle: Optional[Dict], market_cycle: Optional[Dict],
                           altcoin_cycle: Optional[Dict], overall: Optional[Dict]) -> List[str]:
    signals = []

    if btc_cycle:
        if btc_cycle['cycle_stage']['stage'] == 'Cycle Top':
            signals.append('Bitcoin showing cycle top characteristics')
        if btc_cycle['cycle_stage']['stage'] == 'Cycle Bottom':
            signals.append('Bitcoin in cycle bottom zone - accumulation opportunity')
        if btc_cycle['price_from_ath'] > -20:
            signals.append('Bitcoin near all-time highs - high risk zone')
        if btc_cycle['price_from_ath'] < -70:
            signals.append('Bitcoin deep discount from ATH - potential bottom')

    if market_cycle:
        if market_cycle['cycle_stage']['stage'] == 'Late Bull Run':
            signals.append('Market in late bull run phase - prepare for reversal')
        if market_cycle['cycle_stage']['stage'] == 'Bear Market':
            signals.append('Bear market conditions - focus on quality assets')

    if altcoin_cycle:
        if altcoin_cycle['indicators']['speculation']['level'] == 'Extreme':
            signals.append('Extreme speculation in altcoins - bubble warning')
        if altcoin_cycle['indicators']['altcoin_strength']['strength'] == 'Very Strong':
            signals.append('Altcoin season in full swing')

    if overall:
        if overall['overall_risk_score'] > 8:
            signals.append('Very high cycle risk - consider profit taking')
        if overall['overall_opportunity_score'] > 8:
            signals.append('Exceptional cycle opportunity - accumulation phase')

    return signals


def calculate_cycle_risk(overall: Optional[Dict]) -> str:
    if not overall:
        return 'Medium'
    risk = overall['overall_risk_score']
    if risk > 8:
        return 'Very High'
    if risk > 6:
        return 'High'
    if risk > 4:
        return 'Medium'
    if risk > 2:
        return 'Low'
    return 'Very Low'


def calculate_confidence_level(*cycles: Optional[Dict]) -> str:
    available = sum(1 for cycle in cycles if cycle)
    if available == 3:
        return 'High'
    if available == 2:
        return 'Medium'
    return 'Low'


class CycleAnalyzer:
    """
    Combines the cycle readings and stabilizes the resulting phase.
    """

    def __init__(self, stabilizer: RegimeStabilizer, logger: Optional[logging.Logger] = None):
        self.stabilizer = stabilizer
        self.logger = logger or DEFAULT_LOGGER

    def stabilize_phase(self, overall: Dict[str, Any]) -> Dict[str, Any]:
        """
        Feed the raw phase into the cycle-phase channel.

        Args:
            overall: Output of calculate_overall_cycle

        Returns:
            Published phase with description, action and stability metrics
        """
        risk = overall['overall_risk_score']
        opportunity = overall['overall_opportunity_score']
        raw = determine_cycle_phase(risk, opportunity)

        observation = Observation(
            label=raw['phase'],
            score=overall['cycle_strength'],
            metrics={'risk': risk, 'opportunity': opportunity},
            details={
                'description': raw['description'],
                'action': raw['action'],
                'cycle_bias': overall['cycle_bias'],
                'cycle_strength': overall['cycle_strength']
            }
        )
        state = self.stabilizer.observe(CYCLE_PHASE_CHANNEL, observation)
        stability = state.stability

        if state.stabilized:
            description = f"{state.details.get('description', raw['description'])} (stabilized)"
            action = state.details.get('action', raw['action'])
            if state.label != raw['phase']:
                self.logger.info(f"Cycle phase held at '{state.label}' (raw reading '{raw['phase']}')")
        else:
            description = raw['description']
            action = raw['action']

        return {
            'phase': state.label,
            'description': description,
            'action': action,
            'stabilized': state.stabilized,
            'stability': {
                'dominant_phase': stability['dominant_label'],
                'stability_ratio': stability['dominance_ratio'],
                'recent_switches': stability['recent_switches'],
                'avg_risk': round(stability['means']['risk'], 1),
                'avg_opportunity': round(stability['means']['opportunity'], 1),
                'risk_volatility': round(stability['deviations']['risk'], 1),
                'opportunity_volatility': round(stability['deviations']['opportunity'], 1)
            }
        }

    def analyze(self,
                snapshots: Sequence[AssetSnapshot],
                btc_analysis: Optional[Dict[str, Any]],
                market_cap_analysis: Optional[Dict[str, Any]],
                excluded_ids: Sequence[str] = ('bitcoin', 'ethereum'),
                altcoin_sample_size: int = 50) -> Optional[Dict[str, Any]]:
        """
        Full cycle analysis of one batch.

        Args:
            snapshots: Snapshot batch in market-cap order
            btc_analysis: Output of market_analysis.analyze_btc
            market_cap_analysis: Output of market_analysis.analyze_market_cap_indices
            excluded_ids: Assets left out of the altcoin reading
            altcoin_sample_size: Number of altcoins considered

        Returns:
            Cycle analysis dictionary, or None when nothing could be computed
        """
        btc_cycle = analyze_btc_cycle(btc_analysis)
        market_cycle = analyze_market_cycle(market_cap_analysis)
        altcoin_cycle = analyze_altcoin_cycle(snapshots, excluded_ids, altcoin_sample_size)

        overall = calculate_overall_cycle(btc_cycle, market_cycle, altcoin_cycle)
        if overall is None:
            self.logger.warning("No cycle readings available")
            return None

        return {
            'btc_cycle': btc_cycle,
            'market_cycle': market_cycle,
            'altcoin_cycle': altcoin_cycle,
            'overall_cycle': overall,
            'cycle_phase': self.stabilize_phase(overall),
            'cycle_signals': generate_cycle_signals(btc_cycle, market_cycle, altcoin_cycle, overall),
            'risk_level': calculate_cycle_risk(overall),
            'confidence_level': calculate_confidence_level(btc_cycle, market_cycle, altcoin_cycle),
            'historical_context': dict(HISTORICAL_CONTEXT)
        }
