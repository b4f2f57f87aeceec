from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any


@dataclass
class AnalysisSnapshot:
    """
    Aggregate result of one analysis cycle, published to external consumers.
    """
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    market_trend: Dict[str, Any] = field(default_factory=dict)
    btc_analysis: Optional[Dict[str, Any]] = None
    market_cap_analysis: Optional[Dict[str, Any]] = None
    cycle_analysis: Optional[Dict[str, Any]] = None
    bullish_alerts: List[Dict[str, Any]] = field(default_factory=list)
    bearish_alerts: List[Dict[str, Any]] = field(default_factory=list)
    htf_alerts: List[Dict[str, Any]] = field(default_factory=list)
    total_analyzed: int = 0
    fetch_status: Dict[str, Any] = field(default_factory=dict)
    degraded: bool = False
    error: Optional[str] = None

    @property
    def total_opportunities(self) -> int:
        return len(self.bullish_alerts) + len(self.bearish_alerts) + len(self.htf_alerts)

    @classmethod
    def placeholder(cls, error: str, fetch_status: Optional[Dict] = None) -> 'AnalysisSnapshot':
        """Degraded snapshot published when the very first cycle has no data."""
        return cls(
            market_trend={
                'trend': 'Unknown',
                'description': 'Market data temporarily unavailable due to API limits',
                'details': {
                    'bullish_coins': 0,
                    'bearish_coins': 0,
                    'neutral_coins': 0,
                    'avg_change_24h': 0,
                    'avg_change_7d': 0,
                    'total_coins_analyzed': 0
                }
            },
            fetch_status=dict(fetch_status or {}),
            degraded=True,
            error=error
        )

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'timestamp': self.timestamp,
            'market_trend': self.market_trend,
            'btc_analysis': self.btc_analysis,
            'market_cap_analysis': self.market_cap_analysis,
            'cycle_analysis': self.cycle_analysis,
            'bullish_alerts': self.bullish_alerts,
            'bearish_alerts': self.bearish_alerts,
            'htf_alerts': self.htf_alerts,
            'total_bullish': len(self.bullish_alerts),
            'total_bearish': len(self.bearish_alerts),
            'total_htf': len(self.htf_alerts),
            'total_opportunities': self.total_opportunities,
            'total_analyzed': self.total_analyzed,
            'fetch_status': self.fetch_status,
            'degraded': self.degraded,
            'error': self.error
        }
