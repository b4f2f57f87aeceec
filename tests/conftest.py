import pytest
import os
from collections import deque

# Add parent directory to path
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import requests

from models.asset_snapshot import AssetSnapshot
from models.model_definitions import get_default_config


class FakeResponse:
    """Stand-in for requests.Response"""
    def __init__(self, status_code=200, payload=None, headers=None, malformed=False):
        self.status_code = status_code
        self.payload = payload if payload is not None else []
        self.headers = headers or {}
        self.malformed = malformed

    def json(self):
        if self.malformed:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeSession:
    """Replays queued responses (or raises queued exceptions) on get()"""
    def __init__(self, *outcomes):
        self.outcomes = deque(outcomes)
        self.calls = []

    def queue(self, *outcomes):
        self.outcomes.extend(outcomes)

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'headers': headers, 'timeout': timeout})
        if not self.outcomes:
            raise requests.exceptions.ConnectionError("No response queued")
        outcome = self.outcomes.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeClock:
    """Manually advanced time source; sleep() advances it too"""
    def __init__(self, now=1_000_000.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def build_record(asset_id='bitcoin', symbol='btc', name='Bitcoin', rank=1, price=50000.0,
                 change_1h=0.0, change_24h=0.0, change_7d=0.0, change_30d=0.0,
                 market_cap=1_000_000_000_000, volume=30_000_000_000,
                 high_24h=None, low_24h=None, market_cap_change_24h=0.0, sparkline=None):
    """Market record shaped like the upstream markets endpoint output"""
    record = {
        'id': asset_id,
        'symbol': symbol,
        'name': name,
        'current_price': price,
        'market_cap': market_cap,
        'market_cap_rank': rank,
        'total_volume': volume,
        'high_24h': high_24h if high_24h is not None else price * 1.02,
        'low_24h': low_24h if low_24h is not None else price * 0.98,
        'market_cap_change_percentage_24h': market_cap_change_24h,
        'price_change_percentage_1h_in_currency': change_1h,
        'price_change_percentage_24h_in_currency': change_24h,
        'price_change_percentage_7d_in_currency': change_7d,
        'price_change_percentage_30d_in_currency': change_30d,
    }
    if sparkline is not None:
        record['sparkline_in_7d'] = {'price': list(sparkline)}
    return record


def build_market(count=25):
    """A batch of records in market-cap order: BTC, ETH, then altcoins"""
    records = [
        build_record(),
        build_record('ethereum', 'eth', 'Ethereum', 2, 3000.0,
                     market_cap=400_000_000_000, volume=15_000_000_000),
    ]
    for i in range(3, count + 1):
        records.append(build_record(
            f"altcoin-{i}", f"alt{i}", f"Altcoin {i}", i, 10.0 / i,
            change_24h=1.0, change_7d=2.0, change_30d=4.0,
            market_cap=200_000_000_000 // i, volume=8_000_000_000 // i
        ))
    return records


@pytest.fixture
def config():
    """Default configuration"""
    return get_default_config()


@pytest.fixture
def make_record():
    """Factory for upstream market records"""
    return build_record


@pytest.fixture
def make_snapshot():
    """Factory for AssetSnapshot instances built from market records"""
    def _make(**kwargs):
        return AssetSnapshot.from_record(build_record(**kwargs))
    return _make


@pytest.fixture
def market_records():
    """Twenty-five records with BTC and ETH on top"""
    return build_market()


@pytest.fixture
def market_snapshots(market_records):
    return [AssetSnapshot.from_record(record) for record in market_records]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def make_response():
    """Factory for FakeResponse instances"""
    return FakeResponse


@pytest.fixture
def state_dir(tmp_path):
    """Temporary directory for persisted state"""
    directory = tmp_path / "state"
    directory.mkdir()
    return str(directory)
