from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# Labels of score channels that carry a floor rule
QUALIFYING_LABEL = "qualifying"
WATCH_LABEL = "watch"

# Top-level keys of persisted history entries and where they belong
LABEL_KEYS = ("label", "phase", "leader")
METRIC_KEYS = ("risk", "opportunity", "margin")
DETAIL_KEYS = ("reasons", "signals", "description", "action", "strength", "changes",
               "cycle_bias", "cycle_strength")


@dataclass
class FloorRule:
    """
    Stickiness rule for score channels: an asset that has repeatedly
    qualified keeps a published score of at least ``floor`` while its
    current raw score stays at or above ``min_current``.
    """
    qualifying_score: float = 5
    min_qualifying: int = 3
    lookback: int = 10
    min_current: float = 4
    floor: float = 5.0
    consistency_bonus: float = 1.0
    consistency_ratio: float = 0.7
    persistence_bonus: float = 0.5
    persistence_ratio: float = 0.6
    persistence_points: int = 5

    def label_for(self, score: float) -> str:
        return QUALIFYING_LABEL if score >= self.qualifying_score else WATCH_LABEL


@dataclass
class ChannelConfig:
    """
    Parameters of one stabilization channel.

    Attributes:
        capacity: Maximum number of raw observations kept (K)
        window: Number of recent observations used for dominance (W)
        dominance_threshold: Fraction of the window that must agree (D)
        tolerance: Closeness tolerance for hysteresis (T)
        tolerance_keys: Observation metrics checked against the tolerance
        tolerance_mode: "mean" compares each metric with its recent mean,
            "absolute" compares the metric's own magnitude
        mean_window: Number of recent observations averaged for "mean" mode
        min_history: Observations required before stabilization kicks in
        floor_rule: Optional score stickiness rule
    """
    capacity: int
    window: int
    dominance_threshold: float
    tolerance: float
    tolerance_keys: List[str] = field(default_factory=lambda: ["score"])
    tolerance_mode: str = "mean"
    mean_window: int = 5
    min_history: int = 3
    floor_rule: Optional[FloorRule] = None

    def __post_init__(self):
        if self.capacity <= 0:
            raise ValueError(f"Channel capacity must be positive, got {self.capacity}")
        if not 0 < self.window <= self.capacity:
            raise ValueError(f"Channel window must be in 1..{self.capacity}, got {self.window}")
        if not 0 < self.dominance_threshold <= 1:
            raise ValueError(f"Dominance threshold must be in (0, 1], got {self.dominance_threshold}")
        if self.tolerance_mode not in ("mean", "absolute"):
            raise ValueError(f"Unknown tolerance mode: {self.tolerance_mode}")
        if self.mean_window <= 0:
            raise ValueError(f"Mean window must be positive, got {self.mean_window}")

    @classmethod
    def from_dict(cls, data: Dict) -> 'ChannelConfig':
        values = dict(data)
        floor_rule = values.pop('floor_rule', None)
        if isinstance(floor_rule, dict):
            floor_rule = FloorRule(**floor_rule)
        return cls(floor_rule=floor_rule, **values)


@dataclass
class Observation:
    """One raw classification fed into a channel."""
    label: str
    score: float = 0.0
    metrics: Dict[str, float] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)

    def metric(self, key: str) -> float:
        """Metric value, with "score" falling back to the observation score."""
        if key in self.metrics:
            return float(self.metrics[key])
        if key == "score":
            return float(self.score)
        raise KeyError(f"Observation has no metric '{key}'")

    def to_dict(self) -> Dict:
        return {
            'timestamp': self.timestamp,
            'label': self.label,
            'score': self.score,
            'metrics': dict(self.metrics),
            'details': dict(self.details)
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Observation':
        """
        Build an observation from a persisted history entry.

        Accepts the nested shape written by ``to_dict`` as well as flat
        entries such as ``{timestamp, phase, risk, opportunity, ...}``,
        ``{timestamp, leader, margin, changes}`` or
        ``{timestamp, score, reasons}``. Raises ValueError or TypeError
        for non-numeric scores or metrics.
        """
        label = next((data[key] for key in LABEL_KEYS if data.get(key)), '')

        metrics = {k: float(v) for k, v in (data.get('metrics') or {}).items()}
        for key in METRIC_KEYS:
            if key not in metrics and data.get(key) is not None:
                metrics[key] = float(data[key])

        details = dict(data.get('details') or {})
        for key in DETAIL_KEYS:
            if key not in details and key in data:
                details[key] = data[key]

        return cls(
            label=str(label),
            score=float(data.get('score', 0.0) or 0.0),
            metrics=metrics,
            details=details,
            timestamp=data.get('timestamp') or utc_timestamp()
        )


@dataclass
class StabilizedState:
    """The state a channel publishes after observing one raw reading."""
    channel: str
    label: str
    raw_label: str
    stabilized: bool
    score: float
    details: Dict[str, Any] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)
    stability: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'channel': self.channel,
            'label': self.label,
            'raw_label': self.raw_label,
            'stabilized': self.stabilized,
            'score': self.score,
            'details': dict(self.details),
            'reasons': list(self.reasons),
            'stability': dict(self.stability)
        }
