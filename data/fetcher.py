"""
Resilient fetcher for the upstream market-data endpoint.

Wraps a requests.Session with bounded retries, backoff, a rate-limit
state machine and a keyed response cache. Callers always get a list back:
fresh data, cached data, or nothing.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from models.asset_snapshot import AssetSnapshot
from models.model_definitions import get_default_config
from utils.logging_utils import get_component_logger, log_exception

DEFAULT_LOGGER = get_component_logger("data.fetcher")


class FetchError(Exception):
    """Base class for failures of a single upstream request."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 retry_after: Optional[float] = None):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class TransientNetworkFailure(FetchError):
    """Timeout, connection failure or 5xx response. Retried with backoff."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 retry_after: Optional[float] = None, timed_out: bool = False):
        super().__init__(message, status_code, retry_after)
        self.timed_out = timed_out


class ThrottleFailure(FetchError):
    """Explicit throttling (HTTP 429). Never retried."""


class PermanentRequestFailure(FetchError):
    """Other 4xx responses and malformed payloads. Never retried."""


@dataclass
class RateLimitState:
    """Upstream throttle state. Expiry is checked at the start of every call."""
    is_limited: bool = False
    reset_time: Optional[float] = None
    retry_after: Optional[float] = None
    request_count: int = 0
    last_request: Optional[float] = None

    def limit(self, retry_after: float, now: float) -> None:
        """Enter the throttled state for ``retry_after`` seconds from ``now``."""
        self.is_limited = True
        self.retry_after = retry_after
        self.reset_time = now + retry_after

    def check_expiry(self, now: float) -> bool:
        """
        Leave the throttled state once the reset time has passed.

        Returns:
            True if the throttle was lifted by this call
        """
        if self.is_limited and self.reset_time is not None and now >= self.reset_time:
            self.is_limited = False
            self.reset_time = None
            self.retry_after = None
            return True
        return False

    def to_dict(self) -> Dict:
        return {
            'is_limited': self.is_limited,
            'reset_time': self.reset_time,
            'retry_after': self.retry_after,
            'request_count': self.request_count,
            'last_request': self.last_request
        }


@dataclass
class FetchCacheEntry:
    data: List[Dict[str, Any]] = field(default_factory=list)
    timestamp: float = 0.0


class FetchCache:
    """
    Keyed cache of successful responses. An entry is only ever replaced by
    a strictly newer one.
    """

    def __init__(self):
        self._entries: Dict[str, FetchCacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[FetchCacheEntry]:
        return self._entries.get(key)

    def store(self, key: str, data: List[Dict[str, Any]], timestamp: float) -> bool:
        """
        Store a response.

        Returns:
            True if the entry was written
        """
        existing = self._entries.get(key)
        if existing is not None and timestamp <= existing.timestamp:
            return False
        self._entries[key] = FetchCacheEntry(data=list(data), timestamp=timestamp)
        return True

    def to_dict(self) -> Dict[str, Dict]:
        return {
            key: {'data': entry.data, 'timestamp': entry.timestamp}
            for key, entry in self._entries.items()
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Dict]]) -> 'FetchCache':
        cache = cls()
        for key, value in (data or {}).items():
            if not isinstance(value, dict) or not isinstance(value.get('data'), list):
                DEFAULT_LOGGER.warning(f"Ignoring malformed cache entry {key}")
                continue
            try:
                timestamp = float(value.get('timestamp', 0))
            except (TypeError, ValueError):
                timestamp = 0.0
            cache.store(key, value['data'], timestamp)
        return cache


def _header(headers: Any, name: str) -> Optional[str]:
    """Case-insensitive header lookup that also works for plain dicts."""
    if not headers:
        return None
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


class ResilientFetcher:
    """
    Fetches the top-N market records with retry, backoff, throttle handling
    and cache fallback.
    """

    def __init__(self,
                 config: Optional[Dict] = None,
                 session: Optional[requests.Session] = None,
                 cache: Optional[FetchCache] = None,
                 on_cache_update: Optional[Callable[[FetchCache], None]] = None,
                 clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], None] = time.sleep,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the fetcher.

        Args:
            config: Full configuration dictionary (defaults if None)
            session: HTTP session to use (a new requests.Session if None)
            cache: Initial response cache, e.g. restored from disk
            on_cache_update: Called with the cache after every successful fetch
            clock: Time source in epoch seconds
            sleep: Sleep function used for backoff waits
            logger: Optional logger instance
        """
        config = config or get_default_config()
        self.settings = config.get('fetcher', {})
        self.general = config.get('general', {})

        self.session = session or requests.Session()
        self.cache = cache or FetchCache()
        self.on_cache_update = on_cache_update
        self.clock = clock
        self.sleep = sleep
        self.logger = logger or DEFAULT_LOGGER

        self.rate_limit = RateLimitState()
        self._last_success: Dict[str, float] = {}

        self.url = self.settings.get('base_url', '').rstrip('/') + self.settings.get('markets_endpoint', '')
        self.timeout = self.settings.get('timeout', 30)
        self.max_attempts = max(1, int(self.settings.get('max_attempts', 3)))
        self.cache_max_age = self.settings.get('cache_max_age', 600)

    @staticmethod
    def cache_key(asset_count: int) -> str:
        return f"top_assets_{asset_count}"

    def fetch(self, asset_count: int) -> List[AssetSnapshot]:
        """
        Fetch snapshots of the top ``asset_count`` assets. Never raises.

        Args:
            asset_count: Number of assets requested (market-cap order)

        Returns:
            List of AssetSnapshot (possibly from cache, possibly empty)
        """
        try:
            records = self.fetch_records(asset_count)
        except Exception as e:
            log_exception(self.logger, e, "Unexpected error while fetching market data:")
            return []

        return [
            AssetSnapshot.from_record(record)
            for record in records
            if isinstance(record, dict) and record.get('id')
        ]

    def fetch_records(self, asset_count: int) -> List[Dict[str, Any]]:
        """
        Fetch the raw upstream records of the top ``asset_count`` assets.

        Args:
            asset_count: Number of assets requested

        Returns:
            List of JSON records (fresh, cached or empty)
        """
        key = self.cache_key(asset_count)
        now = self.clock()

        if self.rate_limit.check_expiry(now):
            self.logger.info("Rate limit expired, resuming upstream requests")

        entry = self.cache.get(key)
        last_success = self._last_success.get(key)
        fresh = last_success is not None and now - last_success < self.cache_max_age

        if entry is not None and (self.rate_limit.is_limited or fresh):
            age_minutes = (now - entry.timestamp) / 60
            self.logger.info(f"Using cached data for {key} (age: {age_minutes:.1f} minutes)")
            return list(entry.data)

        if self.rate_limit.is_limited:
            remaining = (self.rate_limit.reset_time or now) - now
            self.logger.warning(f"Rate limited for another {remaining:.0f}s and no cached data for {key}")
            return []

        last_error: Optional[FetchError] = None

        for attempt in range(1, self.max_attempts + 1):
            self.rate_limit.request_count += 1
            self.rate_limit.last_request = self.clock()
            self.logger.info(f"Fetching top {asset_count} assets (attempt {attempt}/{self.max_attempts})")

            try:
                records = self._request(asset_count)
            except ThrottleFailure as e:
                last_error = e
                self.logger.warning(f"Upstream throttled the request: {e}")
                break
            except PermanentRequestFailure as e:
                last_error = e
                self.logger.error(f"Request failed permanently: {e}")
                break
            except TransientNetworkFailure as e:
                last_error = e
                self.logger.warning(f"Attempt {attempt} failed: {e}")
                if attempt < self.max_attempts:
                    delay = self._backoff_delay(e, attempt)
                    self.logger.info(f"Waiting {delay:.0f}s before retrying")
                    self.sleep(delay)
                continue

            self._record_success(key, records)
            return records

        return self._handle_failure(key, last_error)

    def status(self) -> Dict:
        """Rate-limit flags for publication alongside the analysis."""
        status = self.rate_limit.to_dict()
        status['last_successful_fetch'] = max(self._last_success.values()) if self._last_success else None
        status['cache_available'] = len(self.cache) > 0
        return status

    def _request(self, asset_count: int) -> List[Dict[str, Any]]:
        """Perform one request and classify its outcome."""
        params = {
            'vs_currency': self.general.get('vs_currency', 'usd'),
            'order': self.settings.get('order', 'market_cap_desc'),
            'per_page': asset_count,
            'page': 1,
            'sparkline': 'true' if self.settings.get('sparkline', True) else 'false',
            'price_change_percentage': self.settings.get('price_change_windows', '1h,24h,7d,30d')
        }
        headers = {
            'Accept': 'application/json',
            'User-Agent': self.settings.get('user_agent', 'MarketSignalEngine/1.0')
        }

        try:
            response = self.session.get(self.url, params=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransientNetworkFailure(f"Request timed out: {e}", timed_out=True)
        except requests.exceptions.ConnectionError as e:
            raise TransientNetworkFailure(f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            raise TransientNetworkFailure(f"Request error: {e}")

        status_code = response.status_code
        retry_after = _parse_retry_after(_header(response.headers, 'retry-after'))

        if status_code == 429:
            raise ThrottleFailure("HTTP 429 Too Many Requests", status_code, retry_after)
        if status_code >= 500:
            raise TransientNetworkFailure(f"HTTP {status_code} server error", status_code, retry_after)
        if status_code >= 400:
            raise PermanentRequestFailure(f"HTTP {status_code} client error", status_code, retry_after)

        try:
            payload = response.json()
        except ValueError as e:
            raise PermanentRequestFailure(f"Malformed payload: {e}", status_code)

        if not isinstance(payload, list):
            raise PermanentRequestFailure(
                f"Malformed payload: expected a list, got {type(payload).__name__}", status_code
            )

        remaining = _header(response.headers, 'x-ratelimit-remaining')
        if remaining is not None:
            try:
                if int(remaining) < self.settings.get('low_remaining_warning', 5):
                    self.logger.warning(f"Upstream rate limit nearly exhausted: {remaining} requests remaining")
            except (TypeError, ValueError):
                pass

        return payload

    def _backoff_delay(self, error: TransientNetworkFailure, attempt: int) -> float:
        if error.timed_out:
            base = self.settings.get('timeout_backoff_base', 2)
            cap = self.settings.get('timeout_backoff_cap', 10)
            return min(base * attempt, cap)

        base = self.settings.get('server_error_backoff_base', 1)
        cap = self.settings.get('server_error_backoff_cap', 30)
        return min(base * 2 ** (attempt - 1), cap)

    def _record_success(self, key: str, records: List[Dict[str, Any]]) -> None:
        now = self.clock()
        self.cache.store(key, records, now)
        self._last_success[key] = now
        self.logger.info(f"Fetched {len(records)} records for {key}")

        if self.on_cache_update is not None:
            try:
                self.on_cache_update(self.cache)
            except Exception as e:
                log_exception(self.logger, e, "Error persisting response cache:")

    def _handle_failure(self, key: str, error: Optional[FetchError]) -> List[Dict[str, Any]]:
        """Enter the throttled state and fall back to the cache."""
        if isinstance(error, ThrottleFailure):
            backoff = error.retry_after if error.retry_after is not None \
                else self.settings.get('throttle_default_backoff', 300)
        else:
            retry_after = error.retry_after if error is not None else None
            backoff = retry_after if retry_after is not None \
                else self.settings.get('failure_default_backoff', 60)

        self.rate_limit.limit(backoff, self.clock())
        self.logger.warning(f"All attempts failed for {key}; backing off for {backoff:.0f}s")

        entry = self.cache.get(key)
        if entry is not None:
            self.logger.info(f"Serving stale cached data for {key}")
            return list(entry.data)
        return []
