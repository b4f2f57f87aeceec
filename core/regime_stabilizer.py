"""
Regime stabilizer.

Turns a noisy stream of raw classifications into a stable published label
using a bounded history, majority-vote dominance over a recent window and
a hysteresis band on one or more numeric metrics. The same component backs
every stabilized stream: per-asset HTF status, market leader and cycle phase.
"""

from collections import Counter, deque
from typing import Deque, Dict, Iterable, List, Optional
import logging

import numpy as np

from models.model_definitions import get_default_config
from models.regime import ChannelConfig, Observation, StabilizedState
from utils.logging_utils import get_component_logger

DEFAULT_LOGGER = get_component_logger("core.regime_stabilizer")

# Separator between a channel family and its member, e.g. "htf:bitcoin"
CHANNEL_SEPARATOR = ":"


def dominant_label(labels: List[str]) -> Optional[str]:
    """
    Most frequent label; ties go to the label seen first (oldest first).
    """
    if not labels:
        return None
    # most_common is a stable sort over first-insertion order
    return Counter(labels).most_common(1)[0][0]


def count_switches(labels: List[str]) -> int:
    """Number of label changes between consecutive entries."""
    return sum(1 for previous, current in zip(labels, labels[1:]) if previous != current)


class RegimeChannel:
    """
    One stabilized classification stream.

    Holds the last ``capacity`` raw observations and publishes a
    StabilizedState for every new one.
    """

    def __init__(self, name: str, config: ChannelConfig, logger: Optional[logging.Logger] = None):
        self.name = name
        self.config = config
        self.logger = logger or DEFAULT_LOGGER
        self._history: Deque[Observation] = deque(maxlen=config.capacity)

    def __len__(self) -> int:
        return len(self._history)

    @property
    def history(self) -> List[Observation]:
        return list(self._history)

    def load(self, entries: Iterable) -> int:
        """
        Replace the history with persisted entries (oldest first).

        Entries that cannot be observed against, because they are not
        dicts, carry non-numeric values, have no label or lack one of the
        channel's tolerance metrics, are skipped with a warning. Unlabeled
        entries of a channel with a floor rule are labeled from their score.

        Returns:
            Number of entries restored
        """
        self._history.clear()
        skipped = 0
        for entry in entries or []:
            observation = entry if isinstance(entry, Observation) else self._restore(entry)
            if observation is None:
                skipped += 1
                continue
            self._history.append(observation)

        if skipped:
            self.logger.warning(f"Skipped {skipped} unusable history entries in channel {self.name}")
        return len(self._history)

    def _restore(self, entry) -> Optional[Observation]:
        if not isinstance(entry, dict):
            return None
        try:
            observation = Observation.from_dict(entry)
        except (AttributeError, TypeError, ValueError):
            return None

        if not observation.label:
            if self.config.floor_rule is None:
                return None
            observation.label = self.config.floor_rule.label_for(observation.score)

        try:
            for key in self.config.tolerance_keys:
                observation.metric(key)
        except KeyError:
            return None
        return observation

    def observe(self, observation: Observation) -> StabilizedState:
        """
        Record a raw observation and publish the channel's state.

        Args:
            observation: The raw classification of this tick

        Returns:
            StabilizedState (dominant label when stabilized, raw label otherwise)
        """
        config = self.config
        self._history.append(observation)
        history = list(self._history)

        window = history[-config.window:]
        window_labels = [entry.label for entry in window]
        dominant = dominant_label(window_labels)
        ratio = window_labels.count(dominant) / len(window)

        recent = history[-config.mean_window:]
        means = {
            key: float(np.mean([entry.metric(key) for entry in recent]))
            for key in config.tolerance_keys
        }
        if config.tolerance_mode == "absolute":
            deviations = {key: abs(observation.metric(key)) for key in config.tolerance_keys}
        else:
            deviations = {key: abs(observation.metric(key) - means[key]) for key in config.tolerance_keys}

        within_tolerance = all(deviation < config.tolerance for deviation in deviations.values())
        stabilized = (
            len(history) >= config.min_history
            and ratio > config.dominance_threshold
            and within_tolerance
        )

        if stabilized:
            label = dominant
            details = next(entry.details for entry in reversed(history) if entry.label == dominant)
            stability = {
                'dominant_label': dominant,
                'dominance_ratio': round(ratio * 100),
                'means': {key: round(value, 2) for key, value in means.items()},
                'deviations': {key: round(value, 2) for key, value in deviations.items()}
            }
            if label != observation.label:
                self.logger.debug(f"{self.name}: holding '{label}' over raw '{observation.label}'")
        else:
            label = observation.label
            details = observation.details
            stability = {
                'dominant_label': observation.label,
                'dominance_ratio': 100,
                'means': {key: observation.metric(key) for key in config.tolerance_keys},
                'deviations': {key: 0 for key in config.tolerance_keys}
            }

        stability['recent_switches'] = count_switches(window_labels)

        score, reasons, score_stats = self._published_score(history, observation)
        stability.update(score_stats)

        return StabilizedState(
            channel=self.name,
            label=label,
            raw_label=observation.label,
            stabilized=stabilized,
            score=score,
            details=dict(details),
            reasons=reasons,
            stability=stability
        )

    def _published_score(self, history: List[Observation], observation: Observation):
        """
        Mean of the stored scores, plus the floor rule's bonuses and floor
        when the channel has one.
        """
        scores = np.array([entry.score for entry in history], dtype=float)
        mean = float(scores.mean())
        variance = float(scores.var())

        reasons = list(observation.details.get('reasons', []))
        stats = {
            'score_mean': round(mean, 1),
            'score_variance': round(variance, 1),
            'data_points': len(scores)
        }

        rule = self.config.floor_rule
        if rule is None:
            return round(mean, 1), reasons, stats

        qualifying = scores >= rule.qualifying_score
        consistency = float(qualifying.mean())
        stats['consistency'] = round(consistency * 100)

        score = mean
        if consistency >= rule.consistency_ratio and mean >= rule.qualifying_score:
            score += rule.consistency_bonus
            reasons.append("Consistent HTF performer - stability bonus")

        if len(scores) >= rule.persistence_points and consistency >= rule.persistence_ratio:
            score += rule.persistence_bonus
            reasons.append("Persistent HTF candidate - longevity bonus")

        recent_qualifying = int(np.count_nonzero(scores[-rule.lookback:] >= rule.qualifying_score))
        if recent_qualifying >= rule.min_qualifying and observation.score >= rule.min_current:
            score = max(score, rule.floor)
            reasons.append("HTF status maintained via hysteresis")

        return round(score, 1), reasons, stats


class RegimeStabilizer:
    """
    Owner of all stabilization channels.

    Channels are created on first use from the ``stabilizer`` configuration
    section; a channel named ``family:member`` uses the ``family`` settings.
    """

    def __init__(self, config: Optional[Dict] = None, logger: Optional[logging.Logger] = None):
        """
        Initialize the stabilizer.

        Args:
            config: Full configuration dictionary (defaults if None)
            logger: Optional logger instance
        """
        config = config or get_default_config()
        self.logger = logger or DEFAULT_LOGGER
        self.channel_configs: Dict[str, ChannelConfig] = {
            family: ChannelConfig.from_dict(settings)
            for family, settings in config.get('stabilizer', {}).items()
        }
        self._channels: Dict[str, RegimeChannel] = {}
        # Consecutive cycles each member channel went without an observation
        self._missed: Dict[str, int] = {}

    @staticmethod
    def family(channel: str) -> str:
        return channel.split(CHANNEL_SEPARATOR, 1)[0]

    def channel(self, name: str) -> RegimeChannel:
        """Get or create a channel by name."""
        existing = self._channels.get(name)
        if existing is not None:
            return existing

        family = self.family(name)
        if family not in self.channel_configs:
            raise KeyError(f"No stabilizer configuration for channel family '{family}'")

        created = RegimeChannel(name, self.channel_configs[family], self.logger)
        self._channels[name] = created
        return created

    def channels(self, prefix: Optional[str] = None) -> List[str]:
        return [name for name in self._channels if prefix is None or name.startswith(prefix)]

    def observe(self, channel: str, observation: Observation) -> StabilizedState:
        """Feed one raw observation into a channel and return its state."""
        return self.channel(channel).observe(observation)

    def history(self, channel: str) -> List[Dict]:
        """Persistable history of a channel (empty if unknown)."""
        existing = self._channels.get(channel)
        if existing is None:
            return []
        return [entry.to_dict() for entry in existing.history]

    def load_history(self, channel: str, entries: Iterable) -> None:
        self.channel(channel).load(entries)

    def load_family(self, family: str, data: Dict[str, Iterable]) -> int:
        """
        Restore every member channel of a family from a persisted mapping.

        Returns:
            Number of channels restored
        """
        count = 0
        for member, entries in (data or {}).items():
            if not isinstance(entries, list):
                self.logger.warning(f"Ignoring malformed history for {family}{CHANNEL_SEPARATOR}{member}")
                continue
            self.load_history(f"{family}{CHANNEL_SEPARATOR}{member}", entries)
            count += 1
        return count

    def export(self, prefix: str) -> Dict[str, List[Dict]]:
        """
        Persistable histories of every channel in a family, keyed by member.

        Args:
            prefix: Channel family, e.g. "htf"

        Returns:
            Dictionary of member -> list of observation dicts
        """
        start = f"{prefix}{CHANNEL_SEPARATOR}"
        return {
            name[len(start):]: self.history(name)
            for name in self._channels
            if name.startswith(start)
        }

    def prune_family(self, family: str, active_members: Iterable[str]) -> List[str]:
        """
        Drop member channels whose asset has been absent for a full
        channel capacity of consecutive cycles.

        Args:
            family: Channel family, e.g. "htf"
            active_members: Members observed in the current cycle

        Returns:
            Names of the channels removed
        """
        start = f"{family}{CHANNEL_SEPARATOR}"
        active = {f"{start}{member}" for member in active_members}
        removed = []

        for name in [name for name in self._channels if name.startswith(start)]:
            if name in active:
                self._missed.pop(name, None)
                continue
            missed = self._missed.get(name, 0) + 1
            if missed >= self._channels[name].config.capacity:
                del self._channels[name]
                self._missed.pop(name, None)
                removed.append(name)
            else:
                self._missed[name] = missed

        if removed:
            self.logger.info(f"Pruned {len(removed)} inactive {family} channels")
        return removed

    def checkpoint(self) -> Dict:
        """Snapshot of every channel's history, for ``rollback``."""
        return {
            'channels': {name: channel.history for name, channel in self._channels.items()},
            'missed': dict(self._missed)
        }

    def rollback(self, checkpoint: Dict) -> None:
        """Return every channel to the state captured by ``checkpoint``."""
        self._channels = {}
        for name, entries in checkpoint['channels'].items():
            self.channel(name).load(entries)
        self._missed = dict(checkpoint['missed'])
