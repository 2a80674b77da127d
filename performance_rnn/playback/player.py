"""
Live playback loop.

Generates events a few at a time, keeping roughly generation_buffer_seconds of
music ahead of the clock, and hands them to the decoder. If generation falls
more than max_generation_lag_seconds behind, the performance time is snapped
back to the clock. The RNN is reset periodically so it doesn't trail off into
incoherent musical babble.
"""

import logging
import threading
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from ..generation.generation_config import GenerationConfig
from .clock import Clock
from .decoder import PerformanceDecoder
from .scheduler import Scheduler

if TYPE_CHECKING:
    from ..generation.generator import PerformanceGenerator

logger = logging.getLogger(__name__)


class PerformancePlayer:
    """
    Drives a PerformanceGenerator in real time.

    Every reset starts a new generation loop with a fresh loop id; a loop
    whose id is out of date stops at its next step.
    """

    def __init__(
        self,
        generator: 'PerformanceGenerator',
        decoder: PerformanceDecoder,
        clock: Clock,
        config: Optional[GenerationConfig] = None,
        scheduler: Optional[Scheduler] = None
    ):
        """
        Initialize player.

        Args:
            generator: Event generator
            decoder: Event interpreter (owns the sink)
            clock: Clock performance time is measured on
            config: Loop timing settings (defaults to generator.config)
            scheduler: Note scheduler started and stopped with the player (optional)
        """
        self.generator = generator
        self.decoder = decoder
        self.clock = clock
        self.config = config if config is not None else generator.config
        self.scheduler = scheduler

        self._lock = threading.RLock()
        self._condition = threading.Condition(self._lock)
        self._loop_id = 0
        self._running = False
        self._reset_timer: Optional[threading.Timer] = None
        self._reset_listeners: List[Callable[[], None]] = []

        self.num_resets = 0
        self.num_drift_corrections = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def loop_id(self) -> int:
        return self._loop_id

    def add_reset_listener(self, listener: Callable[[], None]):
        """Register a callback run after every RNN reset."""
        self._reset_listeners.append(listener)

    # ------------------------------------------------------------------
    # Generation loop
    # ------------------------------------------------------------------

    def generate_step(self, loop_id: int) -> Optional[float]:
        """
        Generate and decode one batch of events.

        Args:
            loop_id: Id of the loop making the call

        Returns:
            Seconds to wait before the next call, or None if the loop is outdated
        """
        with self._lock:
            if loop_id < self._loop_id:
                # Part of an outdated loop
                return None

            outputs = self.generator.generate_steps(self.config.steps_per_generate_call)
            for index in outputs:
                self.decoder.play_output(index)

            now = self.clock.now()
            lag = now - self.decoder.current_time
            if lag > self.config.max_generation_lag_seconds:
                logger.warning(
                    f"Generation is {lag:.2f} seconds behind, which is over "
                    f"{self.config.max_generation_lag_seconds}. Resetting time!"
                )
                self.decoder.reset_time(now)
                self.num_drift_corrections += 1

            return max(0.0, self.decoder.current_time - now - self.config.generation_buffer_seconds)

    def _run_loop(self, loop_id: int):
        try:
            while True:
                delay = self.generate_step(loop_id)
                if delay is None:
                    return

                with self._condition:
                    self._condition.wait_for(lambda: self._loop_id != loop_id, timeout=delay)
                    if self._loop_id != loop_id:
                        return
        except Exception as e:
            logger.error(f"Generation loop {loop_id} failed: {e}", exc_info=True)
            with self._lock:
                if self._loop_id == loop_id:
                    self._running = False

    def _start_loop(self, loop_id: int):
        thread = threading.Thread(
            target=self._run_loop,
            args=(loop_id,),
            name=f"generation-loop-{loop_id}",
            daemon=True
        )
        thread.start()

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def reset(self):
        """
        Reset the RNN and restart the performance at the current time.

        While playing, a new generation loop replaces the current one.
        """
        with self._condition:
            self.generator.reset()
            self.decoder.reset_time(self.clock.now())
            self._loop_id += 1
            loop_id = self._loop_id
            self.num_resets += 1
            self._condition.notify_all()
            running = self._running

        logger.info(f"RNN reset (loop {loop_id})")

        for listener in self._reset_listeners:
            try:
                listener()
            except Exception as e:
                logger.error(f"Reset listener failed: {e}", exc_info=True)

        if running:
            self._start_loop(loop_id)

    def _reset_repeatedly(self):
        with self._lock:
            if not self._running:
                return

        self.reset()

        frequency = self.config.reset_rnn_frequency_seconds
        if frequency is None:
            return

        with self._lock:
            if not self._running:
                return
            self._reset_timer = threading.Timer(frequency, self._reset_repeatedly)
            self._reset_timer.daemon = True
            self._reset_timer.start()

    def start(self):
        """Start playing (no-op when already playing)."""
        with self._lock:
            if self._running:
                return
            self._running = True

        if self.scheduler is not None:
            self.scheduler.start()

        logger.info("Playback started")
        self._reset_repeatedly()

    def pause(self):
        """Stop generating and release every held note."""
        with self._condition:
            if self._reset_timer is not None:
                self._reset_timer.cancel()
                self._reset_timer = None

            was_running = self._running
            self._running = False
            self._loop_id += 1
            self._condition.notify_all()

            self.decoder.release_all(self.clock.now())
            if self.decoder.keyboard is not None:
                self.decoder.keyboard.clear()

        if was_running:
            logger.info("Playback paused")

    def toggle(self) -> bool:
        """Play/pause button. Returns True when now playing."""
        if self._running:
            self.pause()
        else:
            self.start()
        return self._running

    def close(self):
        """Pause, stop the scheduler and close the sink."""
        self.pause()
        if self.scheduler is not None:
            self.scheduler.stop()
        self.decoder.sink.close()

    # ------------------------------------------------------------------
    # Live parameters
    # ------------------------------------------------------------------

    def set_gain(self, gain: float):
        with self._lock:
            self.decoder.set_gain(gain)

    def set_note_density(self, density_index: int):
        self.generator.set_note_density(density_index)

    def set_pitch_weights(self, values: Sequence[float]):
        self.generator.set_pitch_weights(values)


__all__ = [
    'PerformancePlayer'
]
