"""
Timer-driven sync worker.

- start(): runs a cycle immediately, then every `interval` seconds on a
  daemon thread.
- trigger(): runs an out-of-band cycle on the caller's thread.
- before_cycle: optional hook run ahead of every cycle (settings reload).
- stop(): signals the thread; a cycle already running finishes first.

Cycles never overlap: a cycle requested while another is in flight is
skipped.
"""
import logging
import threading
from typing import Callable, Optional

from .sync_note import NOOP, NoteSynchronizer

logger = logging.getLogger(__name__)


class SyncScheduler:
    def __init__(
        self,
        synchronizer: NoteSynchronizer,
        interval: float,
        before_cycle: Optional[Callable[[], object]] = None,
    ):
        self.synchronizer = synchronizer
        self.interval = interval
        self.before_cycle = before_cycle
        self._cycle_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="tailscale-note-sync", daemon=True)
        self._thread.start()
        logger.info("Scheduled Tailscale note sync every %s seconds", self.interval)

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def trigger(self) -> str:
        """Run one cycle now. Returns the cycle outcome."""
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Sync already in progress; skipping this cycle")
            return NOOP
        try:
            if self.before_cycle is not None:
                self.before_cycle()
            return self.synchronizer.sync()
        finally:
            self._cycle_lock.release()

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.trigger()
            except Exception:  # noqa: BLE001
                logger.exception("Unexpected error during sync cycle")
            # wait() returns early when stop() is called.
            self._stop.wait(self.interval)
