"""
Timed callback scheduler.

Note messages are generated ahead of time and must leave at their performance
time. The Scheduler keeps a heap of pending callbacks and runs each one on a
background thread once the clock reaches it.
"""

import heapq
import itertools
import logging
import threading
from typing import Any, Callable, List, Optional, Tuple

from .clock import Clock

logger = logging.getLogger(__name__)

# Longest single wait, so a ManualClock moved by another thread is noticed
_MAX_WAIT_SECONDS = 0.05


class Scheduler:
    """
    Runs callbacks at clock times.

    Callbacks run in time order, ties in submission order. A failing callback
    is logged and does not stop the scheduler.
    """

    def __init__(self, clock: Clock):
        """
        Initialize scheduler.

        Args:
            clock: Clock the callback times refer to
        """
        self.clock = clock

        self._heap: List[Tuple[float, int, Callable[..., Any], tuple]] = []
        self._counter = itertools.count()
        self._condition = threading.Condition()
        self._thread: Optional[threading.Thread] = None
        self._running = False

        # Bumped by cancel_all; popped callbacks from an older epoch are skipped
        self._epoch = 0

    def call_at(self, when: float, callback: Callable[..., Any], *args):
        """Schedule callback(*args) at clock time `when`."""
        with self._condition:
            heapq.heappush(self._heap, (when, next(self._counter), callback, args))
            self._condition.notify()

    def call_later(self, delay: float, callback: Callable[..., Any], *args):
        """Schedule callback(*args) `delay` seconds from now."""
        self.call_at(self.clock.now() + max(0.0, delay), callback, *args)

    def cancel_all(self) -> int:
        """Drop every pending callback, returning how many were dropped."""
        with self._condition:
            dropped = len(self._heap)
            self._heap.clear()
            self._epoch += 1
            self._condition.notify()
        return dropped

    def pending(self) -> int:
        with self._condition:
            return len(self._heap)

    def _pop_due(self, now: float) -> List[Tuple[int, Callable[..., Any], tuple]]:
        due = []
        while self._heap and self._heap[0][0] <= now:
            _, _, callback, args = heapq.heappop(self._heap)
            due.append((self._epoch, callback, args))
        return due

    def _run_callbacks(self, due: List[Tuple[int, Callable[..., Any], tuple]]) -> int:
        """
        Run popped callbacks outside the lock.

        A cancel_all issued while the batch runs, from one of its callbacks or
        from another thread, drops the rest of the batch.

        Returns:
            Number of callbacks that ran
        """
        ran = 0
        for epoch, callback, args in due:
            with self._condition:
                if epoch != self._epoch:
                    logger.debug(f"Skipping {len(due) - ran} cancelled callbacks")
                    break
            ran += 1
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Scheduled callback {callback!r} failed: {e}", exc_info=True)
        return ran

    def run_due(self) -> int:
        """Run every callback that is due now on the calling thread."""
        with self._condition:
            due = self._pop_due(self.clock.now())
        return self._run_callbacks(due)

    def _loop(self):
        while True:
            with self._condition:
                if not self._running:
                    return

                now = self.clock.now()
                due = self._pop_due(now)

                if not due:
                    timeout = _MAX_WAIT_SECONDS
                    if self._heap:
                        timeout = min(timeout, max(0.0, self._heap[0][0] - now))
                    self._condition.wait(timeout)
                    continue

            self._run_callbacks(due)

    def start(self):
        """Start the dispatch thread (no-op if already running)."""
        with self._condition:
            if self._running:
                return
            self._running = True

        self._thread = threading.Thread(target=self._loop, name="note-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0):
        """Stop the dispatch thread; pending callbacks are kept."""
        with self._condition:
            self._running = False
            self._condition.notify_all()

        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def is_running(self) -> bool:
        return self._running


__all__ = [
    'Scheduler'
]
