from dataclasses import dataclass, field, asdict
from typing import Dict, Optional, Tuple, Any


def _number(value: Any, default: float = 0.0) -> float:
    """Coerce an upstream numeric field, treating null/garbage as the default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class AssetSnapshot:
    """
    One asset's market data for a single fetch cycle. Never mutated.
    """
    asset_id: str
    symbol: str = ""
    name: str = ""
    current_price: float = 0.0
    change_1h: float = 0.0
    change_24h: float = 0.0
    change_7d: float = 0.0
    change_30d: float = 0.0
    total_volume: float = 0.0
    market_cap: float = 0.0
    market_cap_rank: Optional[int] = None
    high_24h: float = 0.0
    low_24h: float = 0.0
    market_cap_change_24h: float = 0.0
    sparkline: Tuple[Optional[float], ...] = field(default_factory=tuple)

    @classmethod
    def from_record(cls, record: Dict) -> 'AssetSnapshot':
        """
        Build a snapshot from one upstream market record.

        Args:
            record: JSON object as returned by the markets endpoint

        Returns:
            AssetSnapshot instance
        """
        sparkline = ()
        embedded = record.get('sparkline_in_7d')
        if isinstance(embedded, dict) and isinstance(embedded.get('price'), list):
            sparkline = tuple(embedded['price'])

        rank = record.get('market_cap_rank')
        try:
            rank = int(rank) if rank is not None else None
        except (TypeError, ValueError):
            rank = None

        return cls(
            asset_id=str(record.get('id', '')),
            symbol=str(record.get('symbol') or ''),
            name=str(record.get('name') or ''),
            current_price=_number(record.get('current_price')),
            change_1h=_number(record.get('price_change_percentage_1h_in_currency')),
            change_24h=_number(record.get('price_change_percentage_24h_in_currency')),
            change_7d=_number(record.get('price_change_percentage_7d_in_currency')),
            change_30d=_number(record.get('price_change_percentage_30d_in_currency')),
            total_volume=_number(record.get('total_volume')),
            market_cap=_number(record.get('market_cap')),
            market_cap_rank=rank,
            high_24h=_number(record.get('high_24h')),
            low_24h=_number(record.get('low_24h')),
            market_cap_change_24h=_number(record.get('market_cap_change_percentage_24h')),
            sparkline=sparkline,
        )

    @property
    def volume_to_market_cap(self) -> float:
        """24h volume over market capitalization (market cap of 0 counts as 1)."""
        return self.total_volume / (self.market_cap or 1)

    def sparkline_prices(self):
        """Embedded price series with null points removed."""
        return [float(p) for p in self.sparkline if p is not None]

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization (embedded series omitted)."""
        data = asdict(self)
        data.pop('sparkline')
        return data
