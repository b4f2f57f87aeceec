"""
Cycle scheduler: runs the engine's analysis cycle on a fixed interval in a
background thread, with on-demand triggering.
"""

import threading
import logging
from typing import Callable, List, Optional

from models.analysis_snapshot import AnalysisSnapshot
from utils.logging_utils import get_component_logger, log_exception

DEFAULT_LOGGER = get_component_logger("core.cycle_scheduler")


class CycleScheduler:
    """
    Periodic driver for MarketSignalEngine.run_cycle.

    The engine serializes cycles itself, so an on-demand run overlapping a
    scheduled one simply waits for it.
    """

    def __init__(self, engine, interval_seconds: float = 300, logger: Optional[logging.Logger] = None):
        """
        Initialize the scheduler.

        Args:
            engine: Object exposing run_cycle() -> AnalysisSnapshot
            interval_seconds: Seconds between the end of one cycle and the next
            logger: Optional logger instance
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self.engine = engine
        self.interval_seconds = interval_seconds
        self.logger = logger or DEFAULT_LOGGER

        self.worker_thread: Optional[threading.Thread] = None
        self.stop_event = threading.Event()
        self.wake_event = threading.Event()
        self.cycles_run = 0

        self.callbacks: List[Callable[[AnalysisSnapshot], None]] = []

    @property
    def running(self) -> bool:
        return self.worker_thread is not None and self.worker_thread.is_alive()

    def add_callback(self, callback: Callable[[AnalysisSnapshot], None]) -> None:
        """Register a function called with every published snapshot."""
        self.callbacks.append(callback)

    def start(self) -> None:
        """Start the worker thread; the first cycle runs immediately."""
        if self.running:
            self.logger.warning("Scheduler already running")
            return

        self.stop_event.clear()
        self.wake_event.clear()
        self.worker_thread = threading.Thread(target=self._worker, name="analysis-cycle", daemon=True)
        self.worker_thread.start()
        self.logger.info(f"Scheduler started with {self.interval_seconds}s interval")

    def stop(self, timeout: float = 5) -> None:
        """Stop the worker thread and wait for it to exit."""
        self.stop_event.set()
        self.wake_event.set()
        if self.worker_thread:
            self.worker_thread.join(timeout=timeout)
            self.worker_thread = None
            self.logger.info("Scheduler stopped")

    def trigger_now(self, wait: bool = False) -> Optional[AnalysisSnapshot]:
        """
        Request an immediate cycle.

        Args:
            wait: Run the cycle in the calling thread and return its snapshot;
                otherwise wake the worker and return None

        Returns:
            The published snapshot when ``wait`` is set (or the worker is not running)
        """
        if wait or not self.running:
            return self.run_once()

        self.wake_event.set()
        return None

    def run_once(self) -> Optional[AnalysisSnapshot]:
        """Run one cycle and notify callbacks. Errors are logged, never raised."""
        try:
            snapshot = self.engine.run_cycle()
        except Exception as e:
            log_exception(self.logger, e, "Error in scheduled analysis cycle:")
            return None

        self.cycles_run += 1
        if snapshot is not None:
            for callback in self.callbacks:
                try:
                    callback(snapshot)
                except Exception as e:
                    log_exception(self.logger, e, "Error in snapshot callback:")
        return snapshot

    def _worker(self) -> None:
        self.logger.info("Scheduler worker thread started")

        while not self.stop_event.is_set():
            self.run_once()

            # Interruptible wait: stop() or trigger_now() end it early
            self.wake_event.wait(timeout=self.interval_seconds)
            self.wake_event.clear()

        self.logger.info("Scheduler worker thread exiting")
