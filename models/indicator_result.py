from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional


@dataclass
class MACDResult:
    macd: float
    signal: float
    histogram: float


@dataclass
class BollingerBands:
    upper: float
    middle: float
    lower: float
    bandwidth: float


@dataclass
class SupportResistance:
    """Pivot-based support/resistance levels with a qualitative strength tier."""
    resistance: float
    support: float
    strength: str = "weak"
    pivot: Optional[float] = None
    max_price: Optional[float] = None
    min_price: Optional[float] = None
    distance_to_support: float = 0.0
    distance_to_resistance: float = 0.0


@dataclass
class IndicatorResult:
    """
    Technical indicators for one asset, recomputed every cycle and never persisted.
    """
    available: bool
    reason: Optional[str] = None
    data_source: Optional[str] = None
    rsi: Optional[float] = None
    moving_averages: Dict[str, Optional[float]] = field(default_factory=dict)
    macd: Optional[MACDResult] = None
    bollinger_bands: Optional[BollingerBands] = None
    support_resistance: Optional[SupportResistance] = None
    signals: List[str] = field(default_factory=list)
    data_points: int = 0

    @classmethod
    def unavailable(cls, reason: str = "Insufficient price history") -> 'IndicatorResult':
        return cls(available=False, reason=reason)

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        if not self.available:
            return {'available': False, 'reason': self.reason}
        return asdict(self)
