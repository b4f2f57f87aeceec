import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from core.cycle_analysis import (
    CYCLE_PHASE_CHANNEL,
    CycleAnalyzer,
    analyze_altcoin_cycle,
    analyze_btc_cycle,
    calculate_confidence_level,
    calculate_cycle_risk,
    calculate_overall_cycle,
    calculate_price_position,
    determine_cycle_phase,
    estimate_fear_greed,
)
from core.market_analysis import analyze_btc, analyze_market_cap_indices
from core.regime_stabilizer import RegimeStabilizer


def overall(risk, opportunity):
    return {
        'overall_risk_score': risk,
        'overall_opportunity_score': opportunity,
        'cycle_bias': 'Bullish' if opportunity > risk else 'Bearish',
        'cycle_strength': round(abs(opportunity - risk), 1)
    }


def test_price_position_zones():
    assert calculate_price_position(73000, 73000, 15500)['zone'] == 'Cycle Top Zone'
    assert calculate_price_position(15500, 73000, 15500)['zone'] == 'Cycle Bottom Zone'

    middle = calculate_price_position(44250, 73000, 15500)
    assert middle['position'] == 50.0
    assert middle['risk'] == 'Medium'


def test_fear_greed_estimate():
    assert estimate_fear_greed(-5) == 85
    assert estimate_fear_greed(-40) == 50
    assert estimate_fear_greed(-80) == 10


def test_determine_cycle_phase():
    assert determine_cycle_phase(9, 2)['phase'] == 'Cycle Top Warning'
    assert determine_cycle_phase(7, 4)['phase'] == 'Late Cycle'
    assert determine_cycle_phase(3, 8)['phase'] == 'Cycle Bottom Opportunity'
    assert determine_cycle_phase(4, 6)['phase'] == 'Early Cycle'
    assert determine_cycle_phase(5, 5)['phase'] == 'Mid Cycle'
    assert determine_cycle_phase(5, 5)['action'] == 'Hold & Monitor'


def test_overall_cycle_weights_available_readings():
    btc = {'risk_score': 6, 'opportunity_score': 4}
    altcoin = {'risk_score': 1, 'opportunity_score': 9}

    only_btc = calculate_overall_cycle(btc, None, None)
    assert only_btc['overall_risk_score'] == 6
    assert only_btc['cycle_bias'] == 'Bearish'
    assert only_btc['cycle_strength'] == 2

    combined = calculate_overall_cycle(btc, None, altcoin)
    # Weights 0.5 and 0.2, renormalized
    assert combined['overall_risk_score'] == round((6 * 0.5 + 1 * 0.2) / 0.7, 1)

    assert calculate_overall_cycle(None, None, None) is None


def test_cycle_risk_and_confidence():
    assert calculate_cycle_risk(overall(9, 1)) == 'Very High'
    assert calculate_cycle_risk(overall(3, 5)) == 'Low'
    assert calculate_cycle_risk(None) == 'Medium'

    assert calculate_confidence_level({'a': 1}, {'b': 1}, {'c': 1}) == 'High'
    assert calculate_confidence_level({'a': 1}, None, {'c': 1}) == 'Medium'
    assert calculate_confidence_level(None, None, None) == 'Low'


def test_btc_cycle(make_snapshot):
    btc_analysis = analyze_btc(make_snapshot(price=44250.0), [], 2_000_000_000_000)

    cycle = analyze_btc_cycle(btc_analysis)

    assert cycle['indicators']['price_position']['position'] == 50.0
    assert cycle['indicators']['fear_greed_index'] == 50
    assert cycle['indicators']['technical_position']['position'] == 'Unknown'
    assert cycle['cycle_stage']['stage'] == 'Accumulation'
    assert cycle['risk_score'] == 5
    assert cycle['opportunity_score'] == 5
    assert analyze_btc_cycle(None) is None


def test_altcoin_cycle(market_snapshots):
    cycle = analyze_altcoin_cycle(market_snapshots)

    assert cycle['altcoin_count'] == 23
    assert cycle['indicators']['breadth']['assessment'] == 'Strong'
    assert cycle['indicators']['speculation']['level'] == 'Low'
    assert cycle['indicators']['rotation']['rotation'] == 'Stable'
    assert cycle['cycle_stage']['stage'] == 'Altcoin Accumulation'
    assert cycle['risk_score'] == 0
    assert cycle['opportunity_score'] == 5


def test_altcoin_cycle_without_altcoins(make_snapshot):
    assert analyze_altcoin_cycle([make_snapshot()]) is None
    assert analyze_altcoin_cycle([]) is None


def test_phase_is_held_through_a_close_reading(config):
    """Four early-cycle readings outvote a nearby mid-cycle one"""
    stabilizer = RegimeStabilizer(config)
    analyzer = CycleAnalyzer(stabilizer)

    for _ in range(4):
        analyzer.stabilize_phase(overall(4.5, 6.0))

    phase = analyzer.stabilize_phase(overall(5.2, 5.5))

    assert phase['phase'] == 'Early Cycle'
    assert phase['stabilized']
    assert phase['description'] == 'Early cycle stage - good entry opportunities (stabilized)'
    assert phase['action'] == 'Buy Dips'
    assert phase['stability']['dominant_phase'] == 'Early Cycle'
    assert phase['stability']['stability_ratio'] == 80
    assert len(stabilizer.history(CYCLE_PHASE_CHANNEL)) == 5


def test_phase_switches_on_large_move(config):
    analyzer = CycleAnalyzer(RegimeStabilizer(config))

    for _ in range(4):
        analyzer.stabilize_phase(overall(4.5, 6.0))

    phase = analyzer.stabilize_phase(overall(9.0, 1.0))

    assert phase['phase'] == 'Cycle Top Warning'
    assert not phase['stabilized']


def test_full_cycle_analysis(config, market_snapshots):
    stabilizer = RegimeStabilizer(config)
    btc_analysis = analyze_btc(market_snapshots[0], [], sum(s.market_cap for s in market_snapshots))
    market_cap_analysis = analyze_market_cap_indices(market_snapshots, stabilizer)

    result = CycleAnalyzer(stabilizer).analyze(market_snapshots, btc_analysis, market_cap_analysis)

    assert set(result) == {
        'btc_cycle', 'market_cycle', 'altcoin_cycle', 'overall_cycle', 'cycle_phase',
        'cycle_signals', 'risk_level', 'confidence_level', 'historical_context'
    }
    assert result['confidence_level'] == 'High'
    assert result['market_cycle']['cycle_stage']['stage'] == 'Mid Cycle'
    assert not result['cycle_phase']['stabilized']
    assert result['historical_context']['next_halving'] == '2028'


def test_cycle_analysis_without_readings(config):
    assert CycleAnalyzer(RegimeStabilizer(config)).analyze([], None, None) is None


if __name__ == '__main__':
    pytest.main(['-xvs', __file__])
