from collections import deque
from typing import Deque, Dict, Iterable, List, Optional
import logging

from models.asset_snapshot import AssetSnapshot
from utils.logging_utils import get_component_logger

DEFAULT_LOGGER = get_component_logger("core.price_history")


class PriceHistoryStore:
    """
    Append-only, capped per-asset price series.

    Each series keeps at most ``max_length`` observations; once full, the
    oldest price is evicted for every new one.
    """

    def __init__(self, max_length: int = 50, logger: Optional[logging.Logger] = None):
        """
        Initialize the store.

        Args:
            max_length: Maximum number of prices kept per asset
            logger: Optional logger instance
        """
        if max_length <= 0:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.max_length = max_length
        self.logger = logger or DEFAULT_LOGGER
        self._series: Dict[str, Deque[float]] = {}

    def __len__(self) -> int:
        return len(self._series)

    def __contains__(self, asset_id: str) -> bool:
        return asset_id in self._series

    def append(self, asset_id: str, price: float) -> None:
        """Append one observed price to an asset's series."""
        series = self._series.get(asset_id)
        if series is None:
            series = deque(maxlen=self.max_length)
            self._series[asset_id] = series
        series.append(float(price))

    def ingest(self, snapshots: Iterable[AssetSnapshot]) -> int:
        """
        Record the current price of every snapshot in the batch.

        Args:
            snapshots: Snapshots of one fetch cycle

        Returns:
            Number of prices ingested
        """
        count = 0
        for snapshot in snapshots:
            if not snapshot.asset_id:
                continue
            self.append(snapshot.asset_id, snapshot.current_price or 0.0)
            count += 1

        self.logger.debug(f"Ingested {count} prices into {len(self._series)} series")
        return count

    def get(self, asset_id: str) -> List[float]:
        """Copy of an asset's series, oldest first (empty if unknown)."""
        return list(self._series.get(asset_id, ()))

    def to_dict(self) -> Dict[str, List[float]]:
        """Persisted shape: asset id -> price array."""
        return {asset_id: list(series) for asset_id, series in self._series.items()}

    def load(self, data: Dict[str, List[float]]) -> None:
        """
        Replace the store's content with persisted series, keeping only the
        newest ``max_length`` prices of each.
        """
        self._series = {}
        for asset_id, prices in (data or {}).items():
            if not isinstance(prices, list):
                self.logger.warning(f"Ignoring malformed price history for {asset_id}")
                continue
            series = deque(maxlen=self.max_length)
            series.extend(float(p) for p in prices if p is not None)
            self._series[asset_id] = series

    @classmethod
    def from_dict(cls, data: Dict[str, List[float]], max_length: int = 50) -> 'PriceHistoryStore':
        store = cls(max_length=max_length)
        store.load(data)
        return store
