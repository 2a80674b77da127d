"""
Event-to-MIDI export functionality.

Converts generated event sequences to MIDI files with miditoolkit, stores
event sequences as JSON, and renders whole performances to disk.
"""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..data.constants import (
    DEFAULT_GAIN,
    MAX_NOTE_DURATION_SECONDS,
    MIN_NOTE_HOLD_SECONDS
)
from ..data.events import event_name, is_valid_index
from ..playback.decoder import PerformanceDecoder
from ..playback.sinks import RecordingSink
from .generation_config import GenerationConfig, RenderResult
from .generator import PerformanceGenerator
from .renderer import render_performance

logger = logging.getLogger(__name__)


def events_to_midi(
    event_ids: List[int],
    output_path: Path,
    gain: float = DEFAULT_GAIN,
    max_note_duration: float = MAX_NOTE_DURATION_SECONDS,
    min_note_hold: float = MIN_NOTE_HOLD_SECONDS
) -> Tuple[bool, Optional[Path], Optional[str]]:
    """
    Convert an event sequence to a MIDI file.

    Args:
        event_ids: List of event indices
        output_path: Where to save MIDI file
        gain: Velocity gain in percent
        max_note_duration: Notes held longer than this are released
        min_note_hold: Minimum note length in seconds

    Returns:
        Tuple of (success, midi_path, error_message)
    """
    try:
        if not event_ids:
            return False, None, "No events to convert"

        sink = RecordingSink()
        decoder = PerformanceDecoder(
            sink,
            gain=gain,
            max_note_duration=max_note_duration,
            min_note_hold=min_note_hold
        )

        for index in event_ids:
            decoder.play_output(index)
        sink.finish(decoder.current_time)

        return write_midi(sink, output_path)

    except Exception as e:
        error_msg = f"Error converting events to MIDI: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return False, None, error_msg


def write_midi(
    sink: RecordingSink,
    output_path: Path
) -> Tuple[bool, Optional[Path], Optional[str]]:
    """
    Save the notes of a recording as a MIDI file.

    Returns:
        Tuple of (success, midi_path, error_message)
    """
    try:
        output_path = Path(output_path)
        midi = sink.to_midi()

        # Ensure output directory exists
        output_path.parent.mkdir(parents=True, exist_ok=True)
        midi.dump(str(output_path))

        logger.info(f"Successfully saved MIDI to {output_path}")
        logger.info(f"  Total notes: {len(sink.notes)}")

        return True, output_path, None

    except Exception as e:
        error_msg = f"Error writing MIDI: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return False, None, error_msg


def save_event_sequence(
    event_ids: List[int],
    output_path: Path,
    metadata: Optional[Dict[str, Any]] = None
) -> Tuple[bool, Optional[str]]:
    """
    Save event sequence to JSON file for debugging/analysis.

    Args:
        event_ids: List of event indices
        output_path: Where to save JSON file
        metadata: Additional metadata to include (optional)

    Returns:
        Tuple of (success, error_message)
    """
    try:
        data = {
            "event_ids": list(event_ids),
            "event_names": [event_name(index) for index in event_ids],
            "sequence_length": len(event_ids),
            "metadata": metadata or {}
        }

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)

        logger.info(f"Saved event sequence to {output_path}")

        return True, None

    except Exception as e:
        error_msg = f"Error saving event sequence: {str(e)}"
        logger.error(error_msg)
        return False, error_msg


def load_event_sequence(
    json_path: Path
) -> Tuple[bool, Optional[List[int]], Optional[str]]:
    """
    Load event sequence from JSON file.

    Args:
        json_path: Path to JSON file

    Returns:
        Tuple of (success, event_ids, error_message)
    """
    try:
        with open(json_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        event_ids = data.get('event_ids', [])

        if not event_ids:
            return False, None, "No event_ids found in JSON file"

        invalid = [index for index in event_ids if not is_valid_index(index)]
        if invalid:
            return False, None, f"Invalid event ids: {invalid[:5]}"

        logger.info(f"Loaded {len(event_ids)} events from {json_path}")

        return True, event_ids, None

    except Exception as e:
        error_msg = f"Error loading event sequence: {str(e)}"
        logger.error(error_msg)
        return False, None, error_msg


class PerformanceRenderer:
    """
    Renders performances to MIDI files.

    Handles file naming, optional event sequence dumps and batch rendering.
    """

    def __init__(self, generator: PerformanceGenerator, config: Optional[GenerationConfig] = None):
        """
        Initialize renderer.

        Args:
            generator: Loaded generator
            config: Rendering settings (defaults to generator.config)
        """
        self.generator = generator
        self.config = config if config is not None else generator.config

    def render(self, index: int = 0) -> RenderResult:
        """
        Render a single performance.

        Args:
            index: Index for filename generation

        Returns:
            RenderResult with all rendering information
        """
        result = RenderResult()
        start_time = time.time()

        try:
            event_ids, sink, num_resets = render_performance(self.generator, self.config)

            result.event_ids = event_ids
            result.num_events = len(event_ids)
            result.num_notes = len(sink.notes)
            result.num_resets = num_resets
            result.duration_seconds = max((n.end for n in sink.notes), default=0.0)

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            base_filename = self.config.filename_template.format(
                timestamp=timestamp,
                index=index
            )

            if self.config.save_event_sequence:
                sequence_path = self.config.output_dir / f"{base_filename}_events.json"
                saved, _ = save_event_sequence(
                    event_ids,
                    sequence_path,
                    metadata={
                        'timestamp': timestamp,
                        'index': index,
                        'note_density_index': self.generator.note_density_index,
                        'pitch_weights': list(self.generator.pitch_weights),
                        'gain': self.config.gain,
                        'temperature': self.config.temperature,
                        'seed': self.config.seed
                    }
                )
                if saved:
                    result.event_sequence_path = sequence_path

            midi_success, midi_path, midi_error = write_midi(
                sink,
                self.config.output_dir / f"{base_filename}.mid"
            )

            if not midi_success:
                result.error_message = f"MIDI conversion failed: {midi_error}"
                logger.error(result.error_message)
            else:
                result.midi_path = midi_path
                result.success = True

        except Exception as e:
            logger.error(f"Rendering {index} failed: {e}", exc_info=True)
            result.success = False
            result.error_message = str(e)

        result.generation_time = time.time() - start_time

        if result.success:
            logger.info(f"Rendering successful: {result.get_summary()}")
        else:
            logger.error(f"Rendering failed: {result.get_summary()}")

        return result

    def render_batch(
        self,
        num_files: int,
        progress_callback=None
    ) -> List[RenderResult]:
        """
        Render multiple performances.

        Args:
            num_files: Number of files to render
            progress_callback: Callback function(current, total, result)

        Returns:
            List of RenderResult objects
        """
        results = []

        logger.info(f"Starting batch rendering: {num_files} files")

        for i in range(num_files):
            result = self.render(index=i + 1)
            results.append(result)

            if progress_callback:
                progress_callback(i + 1, num_files, result)

        successful = sum(1 for r in results if r.success)
        logger.info(f"Batch rendering complete: {successful}/{len(results)} successful")

        return results


__all__ = [
    'events_to_midi',
    'write_midi',
    'save_event_sequence',
    'load_event_sequence',
    'PerformanceRenderer'
]
