import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from models.analysis_snapshot import AnalysisSnapshot
from models.asset_snapshot import AssetSnapshot
from models.regime import ChannelConfig, Observation
from models.scored_signal import ScoredSignal


def test_snapshot_from_record(make_record):
    record = make_record(change_30d=12.5, sparkline=[1.0, None, 2.0])

    snapshot = AssetSnapshot.from_record(record)

    assert snapshot.asset_id == 'bitcoin'
    assert snapshot.change_30d == 12.5
    assert snapshot.market_cap_rank == 1
    assert snapshot.sparkline_prices() == [1.0, 2.0]
    assert 'sparkline' not in snapshot.to_dict()


def test_snapshot_tolerates_nulls():
    """Null and garbage upstream fields read as zero"""
    snapshot = AssetSnapshot.from_record({
        'id': 'obscure',
        'symbol': None,
        'current_price': None,
        'market_cap': 'n/a',
        'market_cap_rank': None,
        'total_volume': 1000,
        'sparkline_in_7d': None
    })

    assert snapshot.symbol == ''
    assert snapshot.current_price == 0.0
    assert snapshot.market_cap == 0.0
    assert snapshot.market_cap_rank is None
    assert snapshot.volume_to_market_cap == 1000.0
    assert snapshot.sparkline == ()


def test_scored_signal_add():
    signal = ScoredSignal(label='bullish')
    signal.add(3, "first")
    signal.add(-1, "second")

    assert signal.to_dict() == {'label': 'bullish', 'score': 2, 'reasons': ['first', 'second']}


def test_observation_round_trip():
    observation = Observation(label='Mid Cycle', score=1.5, metrics={'risk': 4.0},
                              details={'action': 'Hold & Monitor'})

    restored = Observation.from_dict(observation.to_dict())

    assert restored == observation
    assert restored.metric('risk') == 4.0
    assert restored.metric('score') == 1.5
    with pytest.raises(KeyError):
        restored.metric('opportunity')


def test_observation_from_flat_entries():
    """Flat history records map onto label, metrics and details"""
    phase = Observation.from_dict({'timestamp': 't', 'phase': 'Late Cycle', 'risk': 7,
                                   'opportunity': 3, 'action': 'Take profits'})
    assert phase.label == 'Late Cycle'
    assert phase.metrics == {'risk': 7.0, 'opportunity': 3.0}
    assert phase.details == {'action': 'Take profits'}
    assert phase.timestamp == 't'

    leader = Observation.from_dict({'leader': 'Altcoins', 'margin': 2.5, 'strength': 'Strong',
                                    'changes': {'total3': 3.0}})
    assert leader.label == 'Altcoins'
    assert leader.metric('margin') == 2.5
    assert leader.details == {'strength': 'Strong', 'changes': {'total3': 3.0}}

    scored = Observation.from_dict({'score': 6, 'reasons': ['Strong trend']})
    assert scored.label == ''
    assert scored.score == 6.0
    assert scored.details == {'reasons': ['Strong trend']}


def test_observation_from_dict_rejects_non_numeric_metrics():
    with pytest.raises(ValueError):
        Observation.from_dict({'phase': 'Mid Cycle', 'risk': 'high'})



def test_channel_config_from_dict(config):
    htf = ChannelConfig.from_dict(config['stabilizer']['htf'])

    assert htf.capacity == 10
    assert htf.floor_rule.floor == 5.0
    assert htf.floor_rule.min_current == 4
    assert ChannelConfig.from_dict(config['stabilizer']['cycle_phase']).floor_rule is None


def test_placeholder_snapshot():
    snapshot = AnalysisSnapshot.placeholder("API temporarily unavailable", {'is_limited': True})
    data = snapshot.to_dict()

    assert data['degraded'] is True
    assert data['error'] == "API temporarily unavailable"
    assert data['market_trend']['trend'] == 'Unknown'
    assert data['total_opportunities'] == 0
    assert data['fetch_status'] == {'is_limited': True}


if __name__ == '__main__':
    pytest.main(['-xvs', __file__])
