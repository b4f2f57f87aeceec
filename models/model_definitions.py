from typing import Dict


def get_default_config() -> Dict:
    """
    Returns a default configuration dictionary for the system.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "general": {
            "vs_currency": "usd",
            "btc_id": "bitcoin",
            "eth_id": "ethereum"
        },
        "fetcher": {
            "base_url": "https://api.coingecko.com/api/v3",
            "markets_endpoint": "/coins/markets",
            "order": "market_cap_desc",
            "price_change_windows": "1h,24h,7d,30d",
            "sparkline": True,
            "timeout": 30,  # seconds per request
            "max_attempts": 3,
            "cache_max_age": 10 * 60,  # seconds a successful fetch stays fresh
            "server_error_backoff_base": 1,
            "server_error_backoff_cap": 30,
            "timeout_backoff_base": 2,
            "timeout_backoff_cap": 10,
            "throttle_default_backoff": 5 * 60,  # explicit 429 without retry-after
            "failure_default_backoff": 60,  # exhausted retries / other failures
            "low_remaining_warning": 5,
            "user_agent": "MarketSignalEngine/1.0"
        },
        "history": {
            "max_length": 50
        },
        "indicators": {
            "rsi_period": 14,
            "min_points": 20,
            "macd_fast": 12,
            "macd_slow": 26,
            "macd_signal": 9,
            "bollinger_period": 20,
            "bollinger_multiplier": 2
        },
        "stabilizer": {
            "htf": {
                "capacity": 10,
                "window": 10,
                "dominance_threshold": 0.6,
                "tolerance": 2,
                "tolerance_keys": ["score"],
                "tolerance_mode": "mean",
                "mean_window": 5,
                "min_history": 3,
                "floor_rule": {
                    "qualifying_score": 5,
                    "min_qualifying": 3,
                    "lookback": 10,
                    "min_current": 4,
                    "floor": 5.0
                }
            },
            "market_leader": {
                "capacity": 15,
                "window": 10,
                "dominance_threshold": 0.6,
                "tolerance": 3,
                "tolerance_keys": ["margin"],
                "tolerance_mode": "absolute",
                "mean_window": 5,
                "min_history": 3
            },
            "cycle_phase": {
                "capacity": 12,
                "window": 8,
                "dominance_threshold": 0.6,
                "tolerance": 2,
                "tolerance_keys": ["risk", "opportunity"],
                "tolerance_mode": "mean",
                "mean_window": 5,
                "min_history": 3
            }
        },
        "orchestrator": {
            "asset_count": 200,
            "interval_seconds": 5 * 60,
            "bullish_threshold": 6,
            "bearish_threshold": 6,
            "htf_threshold": 5,
            "trend_sample_size": 20,
            "altcoin_sample_size": 50
        },
        "storage": {
            "state_dir": "state",
            "files": {
                "price_history": "price_history.json",
                "htf_history": "htf_history.json",
                "cycle_history": "cycle_history.json",
                "market_leader_history": "market_leader_history.json",
                "api_cache": "api_cache.json",
                "analysis": "analysis.json"
            }
        },
        "logging": {
            "level": "INFO"
        }
    }
