import os
import sys
import pytest
import requests

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from data.fetcher import FetchCache, RateLimitState, ResilientFetcher


@pytest.fixture
def fetcher(config, fake_session, fake_clock):
    return ResilientFetcher(config, session=fake_session, clock=fake_clock, sleep=fake_clock.sleep)


def test_successful_fetch(fetcher, fake_session, make_response, market_records):
    fake_session.queue(make_response(200, market_records))

    snapshots = fetcher.fetch(25)

    assert len(snapshots) == 25
    assert snapshots[0].asset_id == 'bitcoin'
    assert snapshots[1].symbol == 'eth'
    call = fake_session.calls[0]
    assert call['url'] == 'https://api.coingecko.com/api/v3/coins/markets'
    assert call['params']['per_page'] == 25
    assert call['params']['price_change_percentage'] == '1h,24h,7d,30d'
    assert call['timeout'] == 30
    assert len(fetcher.cache) == 1


def test_records_without_id_are_skipped(fetcher, fake_session, make_response, make_record):
    fake_session.queue(make_response(200, [make_record(), {'symbol': 'x'}, "garbage"]))

    snapshots = fetcher.fetch(3)

    assert [s.asset_id for s in snapshots] == ['bitcoin']


def test_fresh_cache_avoids_network(fetcher, fake_session, fake_clock, make_response, market_records):
    fake_session.queue(make_response(200, market_records))
    fetcher.fetch(25)

    fake_clock.advance(60)
    snapshots = fetcher.fetch(25)

    assert len(snapshots) == 25
    assert len(fake_session.calls) == 1


def test_throttle_serves_cache_until_reset(fetcher, fake_session, fake_clock, make_response, market_records):
    """429 with retry-after 120: cached data until the reset time, then a new request"""
    fake_session.queue(make_response(200, market_records))
    fetcher.fetch(25)

    fake_clock.advance(3600)
    throttled_at = fake_clock.now
    fake_session.queue(make_response(429, headers={'Retry-After': '120'}))

    snapshots = fetcher.fetch(25)

    assert len(snapshots) == 25
    assert fetcher.rate_limit.is_limited
    assert fetcher.rate_limit.reset_time == throttled_at + 120
    assert len(fake_session.calls) == 2

    fake_clock.advance(60)
    assert len(fetcher.fetch(25)) == 25
    assert len(fake_session.calls) == 2

    fake_clock.advance(61)
    fake_session.queue(make_response(200, market_records[:5]))

    snapshots = fetcher.fetch(25)

    assert not fetcher.rate_limit.is_limited
    assert len(fake_session.calls) == 3
    assert len(snapshots) == 5


def test_throttle_is_not_retried(fetcher, fake_session, make_response):
    fake_session.queue(make_response(429))

    assert fetcher.fetch(25) == []
    assert len(fake_session.calls) == 1
    assert fetcher.rate_limit.retry_after == 300


def test_server_errors_retry_with_backoff(fetcher, fake_session, fake_clock, make_response):
    """Three 503s: waits of 1s and 2s, then a 60s back-off and no data"""
    fake_session.queue(make_response(503), make_response(503), make_response(503))

    assert fetcher.fetch(25) == []
    assert len(fake_session.calls) == 3
    assert fake_clock.sleeps == [1, 2]
    assert fetcher.rate_limit.is_limited
    assert fetcher.rate_limit.reset_time == fake_clock.now + 60


def test_transient_failure_then_success(fetcher, fake_session, fake_clock, make_response, market_records):
    fake_session.queue(requests.exceptions.Timeout("read timed out"), make_response(200, market_records))

    snapshots = fetcher.fetch(25)

    assert len(snapshots) == 25
    assert fake_clock.sleeps == [2]
    assert not fetcher.rate_limit.is_limited


def test_client_error_is_permanent(fetcher, fake_session, make_response):
    fake_session.queue(make_response(404))

    assert fetcher.fetch(25) == []
    assert len(fake_session.calls) == 1
    assert fetcher.rate_limit.is_limited


def test_malformed_payload(fetcher, fake_session, make_response):
    fake_session.queue(make_response(200, malformed=True))
    assert fetcher.fetch(25) == []

    fetcher.rate_limit = RateLimitState()
    fake_session.queue(make_response(200, {'error': 'not a list'}))
    assert fetcher.fetch(25) == []
    assert len(fake_session.calls) == 2


def test_failure_serves_stale_cache(config, fake_session, fake_clock, make_response, market_records):
    cache = FetchCache()
    cache.store(ResilientFetcher.cache_key(25), market_records, fake_clock.now - 7200)
    fetcher = ResilientFetcher(config, session=fake_session, cache=cache,
                               clock=fake_clock, sleep=fake_clock.sleep)
    fake_session.queue(requests.exceptions.ConnectionError("refused"),
                       requests.exceptions.ConnectionError("refused"),
                       requests.exceptions.ConnectionError("refused"))

    snapshots = fetcher.fetch(25)

    assert len(snapshots) == 25
    assert len(fake_session.calls) == 3


def test_cache_update_hook(config, fake_session, fake_clock, make_response, market_records):
    """A failing hook does not fail the fetch"""
    seen = []

    def hook(cache):
        seen.append(len(cache))
        raise OSError("disk full")

    fetcher = ResilientFetcher(config, session=fake_session, on_cache_update=hook,
                               clock=fake_clock, sleep=fake_clock.sleep)
    fake_session.queue(make_response(200, market_records))

    assert len(fetcher.fetch(25)) == 25
    assert seen == [1]


def test_status(fetcher, fake_session, fake_clock, make_response, market_records):
    status = fetcher.status()
    assert status['is_limited'] is False
    assert status['last_successful_fetch'] is None
    assert status['cache_available'] is False

    fake_session.queue(make_response(200, market_records))
    fetcher.fetch(25)

    status = fetcher.status()
    assert status['request_count'] == 1
    assert status['last_successful_fetch'] == fake_clock.now
    assert status['cache_available'] is True


def test_cache_keeps_newest_entry():
    cache = FetchCache()

    assert cache.store('key', [{'id': 'a'}], 100.0)
    assert not cache.store('key', [{'id': 'b'}], 100.0)
    assert not cache.store('key', [{'id': 'c'}], 50.0)
    assert cache.store('key', [{'id': 'd'}], 150.0)
    assert cache.get('key').data == [{'id': 'd'}]


def test_cache_serialization_skips_malformed():
    cache = FetchCache.from_dict({
        'top_assets_10': {'data': [{'id': 'bitcoin'}], 'timestamp': 123.0},
        'broken': {'data': 'nope'},
        'junk': 42
    })

    assert len(cache) == 1
    assert cache.to_dict() == {'top_assets_10': {'data': [{'id': 'bitcoin'}], 'timestamp': 123.0}}


def test_rate_limit_state_expiry():
    state = RateLimitState()
    state.limit(120, now=1000)

    assert not state.check_expiry(1100)
    assert state.is_limited
    assert state.check_expiry(1120)
    assert not state.is_limited
    assert state.reset_time is None


if __name__ == '__main__':
    pytest.main(['-xvs', __file__])
