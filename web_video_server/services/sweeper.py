"""
Periodic removal of inactive streaming sessions.
"""
import logging
import threading

logger = logging.getLogger('web_video.sessions')


class CleanupSweeper:
    """Calls registry.sweep() every period seconds on a daemon thread"""

    def __init__(self, registry, period: float = 0.5):
        self.registry = registry
        self.period = period
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the sweep thread"""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name='session-sweeper', daemon=True)
        self._thread.start()
        logger.info(f"Cleanup sweeper started (every {self.period}s)")

    def stop(self):
        """Stop the sweep thread"""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=2)
            self._thread = None
        logger.info("Cleanup sweeper stopped")

    def tick(self):
        """Run one sweep; a skipped sweep is retried on the next tick"""
        removed = self.registry.sweep()
        if removed is None:
            logger.debug("Session registry busy, sweep deferred")
        return removed

    def _run(self):
        # Ticks are not queued: a slow sweep just delays the next one
        while not self._stop.wait(self.period):
            try:
                self.tick()
            except Exception as e:
                logger.warning(f"Sweep failed: {e}")
