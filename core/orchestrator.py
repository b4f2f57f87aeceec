import threading
import time
import logging
from typing import Dict, List, Optional, Sequence, Any

from core.cycle_analysis import CYCLE_PHASE_CHANNEL, CycleAnalyzer
from core.indicators import calculate_technical_analysis
from core.market_analysis import (
    MARKET_LEADER_CHANNEL,
    analyze_btc,
    analyze_market_cap_indices,
    analyze_market_trend,
)
from core.price_history import PriceHistoryStore
from core.regime_stabilizer import RegimeStabilizer
from core.signal_classifiers import classify_bearish, classify_bullish, classify_htf
from data.fetcher import FetchCache, ResilientFetcher
from models.analysis_snapshot import AnalysisSnapshot
from models.asset_snapshot import AssetSnapshot
from models.model_definitions import get_default_config
from models.regime import QUALIFYING_LABEL, WATCH_LABEL, Observation, utc_timestamp
from models.scored_signal import ScoredSignal
from storage.state_repository import StateRepository
from utils.logging_utils import get_component_logger, log_exception

DEFAULT_LOGGER = get_component_logger("core.orchestrator")

HTF_FAMILY = "htf"

UNAVAILABLE_ERROR = "API temporarily unavailable"


class MarketSignalEngine:
    """
    Runs one analysis cycle at a time and publishes its AnalysisSnapshot.

    A cycle flows one way: fetch -> price history -> market, BTC and cycle
    analysis -> per-asset classifiers -> regime stabilizer -> publish and
    persist. Cycles are serialized by a lock; a failed cycle leaves the
    previously published snapshot and the price and regime histories in place.
    """

    def __init__(self,
                 config: Optional[Dict] = None,
                 fetcher: Optional[ResilientFetcher] = None,
                 repository: Optional[StateRepository] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the engine.

        Args:
            config: Configuration dictionary (defaults if None)
            fetcher: Optional ResilientFetcher instance
            repository: Optional StateRepository; without one nothing is persisted
            logger: Optional logger instance
        """
        self.config = config or get_default_config()
        self.logger = logger or DEFAULT_LOGGER
        self.repository = repository

        self.settings = self.config.get('orchestrator', {})
        general = self.config.get('general', {})
        self.btc_id = general.get('btc_id', 'bitcoin')
        self.eth_id = general.get('eth_id', 'ethereum')

        indicators = self.config.get('indicators', {})
        self.rsi_period = indicators.get('rsi_period', 14)
        self.min_points = indicators.get('min_points', 20)

        self.fetcher = fetcher or ResilientFetcher(self.config, on_cache_update=self._save_cache)
        self.price_history = PriceHistoryStore(self.config.get('history', {}).get('max_length', 50))
        self.stabilizer = RegimeStabilizer(self.config)
        self.cycle_analyzer = CycleAnalyzer(self.stabilizer)

        self._cycle_lock = threading.Lock()
        self._latest: Optional[AnalysisSnapshot] = None

    def latest(self) -> Optional[AnalysisSnapshot]:
        """The most recently published snapshot (None before the first cycle)."""
        return self._latest

    def load_state(self) -> None:
        """Restore price history, channel histories and the response cache."""
        if self.repository is None:
            return

        self.price_history.load(self.repository.load('price_history', {}))

        htf = self.repository.load('htf_history', {})
        restored = self.stabilizer.load_family(HTF_FAMILY, htf if isinstance(htf, dict) else {})

        for name, channel in (('cycle_history', CYCLE_PHASE_CHANNEL),
                              ('market_leader_history', MARKET_LEADER_CHANNEL)):
            entries = self.repository.load(name, [])
            self.stabilizer.load_history(channel, entries if isinstance(entries, list) else [])

        cache = self.repository.load('api_cache', {})
        self.fetcher.cache = FetchCache.from_dict(cache if isinstance(cache, dict) else {})

        self.logger.info(f"Restored state: {len(self.price_history)} price series, "
                         f"{restored} HTF channels, {len(self.fetcher.cache)} cached responses")

    def run_cycle(self) -> Optional[AnalysisSnapshot]:
        """
        Run one analysis cycle. Concurrent callers wait for the running one.

        Returns:
            The published AnalysisSnapshot after this cycle
        """
        with self._cycle_lock:
            start_time = time.time()
            checkpoint = self._checkpoint()
            try:
                self._run_cycle()
            except Exception as e:
                log_exception(self.logger, e, "Error in analysis cycle:")
                self._rollback(checkpoint)
                if self._latest is None:
                    self._latest = AnalysisSnapshot.placeholder(str(e), self.fetcher.status())
                return self._latest

            self.logger.info(f"Analysis cycle finished in {time.time() - start_time:.2f}s")
            return self._latest

    def _run_cycle(self) -> None:
        asset_count = self.settings.get('asset_count', 200)
        self.logger.info(f"Starting analysis cycle for the top {asset_count} assets")

        snapshots = self.fetcher.fetch(asset_count)
        if not snapshots:
            if self._latest is None:
                self.logger.warning("No market data retrieved - publishing placeholder analysis")
                self._latest = AnalysisSnapshot.placeholder(UNAVAILABLE_ERROR, self.fetcher.status())
            else:
                self.logger.warning("No market data retrieved - keeping previous analysis")
            return

        market_trend = analyze_market_trend(snapshots, self.settings.get('trend_sample_size', 20))
        self.logger.info(f"Market trend: {market_trend['trend']}")

        self.price_history.ingest(snapshots)

        btc = self._find_btc(snapshots)
        total_market_cap = sum(s.market_cap for s in snapshots)
        btc_analysis = analyze_btc(
            btc, self.price_history.get(btc.asset_id) if btc else (), total_market_cap
        )

        # Served from the fresh cache unless the upstream changed meanwhile
        aggregate_snapshots = self.fetcher.fetch(asset_count) or snapshots
        market_cap_analysis = analyze_market_cap_indices(
            aggregate_snapshots, self.stabilizer, self.btc_id, self.eth_id
        )

        cycle_analysis = self.cycle_analyzer.analyze(
            snapshots, btc_analysis, market_cap_analysis,
            (self.btc_id, self.eth_id), self.settings.get('altcoin_sample_size', 50)
        )

        bullish, bearish, htf = self._classify(snapshots)

        self._latest = AnalysisSnapshot(
            market_trend=market_trend,
            btc_analysis=btc_analysis,
            market_cap_analysis=market_cap_analysis,
            cycle_analysis=cycle_analysis,
            bullish_alerts=bullish,
            bearish_alerts=bearish,
            htf_alerts=htf,
            total_analyzed=len(snapshots),
            fetch_status=self.fetcher.status()
        )

        self.logger.info(f"Analysis complete: {len(bullish)} bullish, {len(bearish)} bearish, "
                         f"{len(htf)} HTF opportunities among {len(snapshots)} assets")

        self._persist_state()

    def _find_btc(self, snapshots: Sequence[AssetSnapshot]) -> Optional[AssetSnapshot]:
        for snapshot in snapshots:
            if snapshot.asset_id == self.btc_id or snapshot.symbol.lower() == 'btc':
                return snapshot
        return None

    def _classify(self, snapshots: Sequence[AssetSnapshot]):
        """Per-asset classifiers; returns the three alert lists, best first."""
        bullish_threshold = self.settings.get('bullish_threshold', 6)
        bearish_threshold = self.settings.get('bearish_threshold', 6)
        htf_threshold = self.settings.get('htf_threshold', 5)

        bullish: List[Dict] = []
        bearish: List[Dict] = []
        htf: List[Dict] = []

        for snapshot in snapshots:
            history = self.price_history.get(snapshot.asset_id)

            signal = classify_bullish(snapshot, history)
            if signal.score >= bullish_threshold:
                bullish.append(self._alert(snapshot, history, signal))

            signal = classify_bearish(snapshot, history)
            if signal.score >= bearish_threshold:
                bearish.append(self._alert(snapshot, history, signal))

            raw = classify_htf(snapshot, history)
            state = self.stabilizer.observe(
                f"{HTF_FAMILY}:{snapshot.asset_id}",
                Observation(
                    label=QUALIFYING_LABEL if raw.score >= htf_threshold else WATCH_LABEL,
                    score=raw.score,
                    details={'reasons': list(raw.reasons)}
                )
            )
            if state.score >= htf_threshold:
                published = ScoredSignal(label=raw.label, score=state.score, reasons=state.reasons)
                alert = self._alert(snapshot, history, published)
                alert['change_30d'] = snapshot.change_30d
                alert['raw_score'] = raw.score
                alert['stability'] = {
                    'avg_score': state.stability['score_mean'],
                    'variance': state.stability['score_variance'],
                    'consistency': state.stability.get('consistency', 0),
                    'data_points': state.stability['data_points']
                }
                htf.append(alert)

        self.stabilizer.prune_family(HTF_FAMILY, [snapshot.asset_id for snapshot in snapshots])

        for alerts in (bullish, bearish, htf):
            alerts.sort(key=lambda alert: alert['score'], reverse=True)

        return bullish, bearish, htf

    def _alert(self, snapshot: AssetSnapshot, history: List[float], signal: ScoredSignal) -> Dict[str, Any]:
        technical = calculate_technical_analysis(snapshot, history, self.rsi_period, self.min_points)
        return {
            'id': snapshot.asset_id,
            'name': snapshot.name or 'Unknown',
            'symbol': snapshot.symbol or 'unknown',
            'price': snapshot.current_price,
            'rank': snapshot.market_cap_rank,
            'change_1h': snapshot.change_1h,
            'change_24h': snapshot.change_24h,
            'change_7d': snapshot.change_7d,
            'volume': snapshot.total_volume,
            'market_cap': snapshot.market_cap,
            'score': signal.score,
            'signals': list(signal.reasons),
            'type': signal.label,
            'technical_analysis': technical.to_dict(),
            'last_updated': utc_timestamp()
        }

    def _checkpoint(self) -> Dict[str, Any]:
        """Bounded-history state a failed cycle must not leave half-updated."""
        return {
            'price_history': self.price_history.to_dict(),
            'stabilizer': self.stabilizer.checkpoint()
        }

    def _rollback(self, checkpoint: Dict[str, Any]) -> None:
        self.price_history.load(checkpoint['price_history'])
        self.stabilizer.rollback(checkpoint['stabilizer'])
        self.logger.info("Rolled back price and regime history to the previous cycle")

    def _save_cache(self, cache: FetchCache) -> None:
        if self.repository is not None:
            self.repository.save('api_cache', cache.to_dict())

    def _persist_state(self) -> None:
        """Save every state document. Failures are logged by the repository."""
        if self.repository is None:
            return

        self.repository.save('price_history', self.price_history.to_dict())
        self.repository.save('htf_history', self.stabilizer.export(HTF_FAMILY))
        self.repository.save('cycle_history', self.stabilizer.history(CYCLE_PHASE_CHANNEL))
        self.repository.save('market_leader_history', self.stabilizer.history(MARKET_LEADER_CHANNEL))
        self.repository.save('api_cache', self.fetcher.cache.to_dict())
        if self._latest is not None:
            self.repository.save('analysis', self._latest.to_dict())
