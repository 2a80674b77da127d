"""
Shared state management for the Performance RNN Gradio GUI.

This module provides global state that is shared across all tabs
in the Gradio interface.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from performance_rnn.generation import GenerationConfig, PerformanceGenerator
from performance_rnn.playback import (
    KeyboardState,
    MidiOutputSink,
    MonotonicClock,
    PerformanceDecoder,
    PerformancePlayer,
    Scheduler,
    open_midi_output
)

logger = logging.getLogger(__name__)

# How long the "Resetting..." badge stays visible
RESET_INDICATOR_SECONDS = 1.0


class AppState:
    """
    Global application state shared across all tabs.

    Manages the loaded generator, the live player and the session logs.
    """

    def __init__(self):
        # Generator state
        self.generator: Optional[PerformanceGenerator] = None
        self.config: Optional[GenerationConfig] = None
        self.generator_loaded = False

        # Live playback state
        self.player: Optional[PerformancePlayer] = None
        self.keyboard: Optional[KeyboardState] = None
        self.last_reset_time: Optional[float] = None

        # Session logs and results
        self.logs: List[str] = []
        self.render_results: List[Dict[str, Any]] = []
        self.render_active = False

        # Guards the switch between live playback and offline rendering
        self.control_lock = threading.Lock()

    def initialize_generator(self, generator: PerformanceGenerator) -> None:
        """
        Initialize or replace generator instance.

        Args:
            generator: PerformanceGenerator instance
        """
        self.clear_player_state()
        self.generator = generator
        self.config = generator.config
        self.generator_loaded = True
        self.render_results.clear()

    def initialize_player(self, port=None) -> PerformancePlayer:
        """
        Build the live player around the loaded generator.

        Args:
            port: Open mido output port (opened from the config if None)

        Returns:
            PerformancePlayer instance
        """
        if self.generator is None:
            raise RuntimeError("No generator loaded")

        self.clear_player_state()

        if port is None:
            port = open_midi_output(self.config.midi_port, virtual=self.config.virtual_port)

        clock = MonotonicClock()
        scheduler = Scheduler(clock)
        self.keyboard = KeyboardState(scheduler)

        decoder = PerformanceDecoder(
            MidiOutputSink(port, scheduler),
            keyboard=self.keyboard,
            gain=self.config.gain,
            max_note_duration=self.config.max_note_duration_seconds,
            min_note_hold=self.config.min_note_hold_seconds
        )

        self.player = PerformancePlayer(
            self.generator, decoder, clock, self.config, scheduler=scheduler
        )
        self.player.add_reset_listener(self.on_reset)

        return self.player

    def on_reset(self) -> None:
        """Reset listener: remember when to show the resetting badge."""
        self.last_reset_time = time.monotonic()
        self.add_log("RNN reset")

    def is_resetting(self) -> bool:
        if self.last_reset_time is None:
            return False
        return time.monotonic() - self.last_reset_time < RESET_INDICATOR_SECONDS

    def add_log(self, log_message: str) -> None:
        """
        Add a log message.

        Args:
            log_message: Log message to add
        """
        timestamp = datetime.now().strftime("%H:%M:%S")
        self.logs.append(f"[{timestamp}] {log_message}")

    def get_recent_logs(self, count: int = 50) -> str:
        """
        Get recent log entries.

        Args:
            count: Number of recent entries to return

        Returns:
            Formatted log string
        """
        return "\n".join(self.logs[-count:])

    def add_render_result(self, result: Dict[str, Any]) -> None:
        self.render_results.append(result)

    def clear_player_state(self) -> None:
        """Stop and discard the live player."""
        if self.player is not None:
            try:
                self.player.close()
            except Exception as e:
                logger.error(f"Error closing player: {e}")

        self.player = None
        self.keyboard = None
        self.last_reset_time = None

    def clear_generator_state(self) -> None:
        """Clear generator state."""
        self.clear_player_state()
        self.generator = None
        self.config = None
        self.generator_loaded = False
        self.render_results.clear()


# Global state instance shared across the application
app_state = AppState()
