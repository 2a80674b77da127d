"""
Render tab for the Performance RNN Gradio GUI.

Renders fixed-length performances to MIDI files with the loaded model.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

import gradio as gr

from gui.state import app_state
from performance_rnn.data.constants import (
    DEFAULT_GAIN,
    DEFAULT_NOTE_DENSITY_INDEX,
    DEFAULT_RENDER_SECONDS,
    DENSITY_BIN_RANGES,
    MAX_GAIN
)
from performance_rnn.generation import PerformanceRenderer

logger = logging.getLogger(__name__)

RESULT_HEADERS = ["#", "File", "Events", "Notes", "Duration (s)", "Resets", "Time (s)"]


# ============================================================================
# Backend Functions
# ============================================================================

def render_files(
    num_files: int,
    duration: float,
    density_index: int,
    gain: float,
    output_dir: str,
    save_events: bool
) -> Tuple[str, List[list], Optional[List[str]]]:
    """
    Render performances with the loaded model.

    Returns:
        Tuple of (status message, result table rows, rendered MIDI paths)
    """
    if not app_state.generator_loaded:
        return "No model loaded. Load a checkpoint in the Player tab first.", [], None

    try:
        config = replace(
            app_state.config,
            duration_seconds=float(duration),
            note_density_index=int(density_index),
            gain=float(gain),
            output_dir=Path(output_dir),
            save_event_sequence=bool(save_events)
        )
    except ValueError as e:
        return f"Invalid settings: {e}", [], None

    with app_state.control_lock:
        if app_state.player is not None and app_state.player.is_running:
            return "Pause live playback before rendering.", [], None

        if app_state.render_active:
            return "A rendering is already in progress.", [], None

        app_state.render_active = True

    app_state.add_log(f"Rendering {int(num_files)} file(s) of {duration:g}s...")

    generator = app_state.generator
    previous_density = generator.note_density_index

    try:
        generator.set_note_density(config.note_density_index)
        results = PerformanceRenderer(generator, config).render_batch(int(num_files))
    except Exception as e:
        error_msg = f"Error during rendering: {str(e)}"
        logger.error(error_msg, exc_info=True)
        app_state.add_log(error_msg)
        return error_msg, [], None
    finally:
        generator.set_note_density(previous_density)
        generator.reset()
        app_state.render_active = False

    rows = []
    files = []
    for i, result in enumerate(results, start=1):
        app_state.add_render_result(result.to_dict())
        app_state.add_log(result.get_summary())
        rows.append([
            i,
            result.midi_path.name if result.midi_path else result.error_message,
            result.num_events,
            result.num_notes,
            round(result.duration_seconds, 2),
            result.num_resets,
            round(result.generation_time, 2)
        ])
        if result.midi_path:
            files.append(str(result.midi_path))

    successful = sum(1 for r in results if r.success)
    status = f"Rendered {successful}/{len(results)} file(s) to {config.output_dir}"

    return status, rows, files or None


# ============================================================================
# Gradio Interface
# ============================================================================

def create_render_tab(output_dir: str = "./generated") -> gr.Tab:
    """Create the render tab."""
    with gr.Tab("Render") as tab:

        gr.Markdown("""
        ## Render to MIDI

        Generate fixed-length performances offline and save them as MIDI files.
        Uses the model loaded in the Player tab.
        """)

        with gr.Row():
            with gr.Column(scale=1):
                gr.Markdown("### Settings")

                num_files = gr.Slider(label="Number of files", minimum=1, maximum=10, value=1, step=1)
                duration = gr.Slider(
                    label="Duration (seconds)",
                    minimum=5,
                    maximum=300,
                    value=DEFAULT_RENDER_SECONDS,
                    step=5
                )
                density = gr.Slider(
                    label="Note Density",
                    minimum=0,
                    maximum=len(DENSITY_BIN_RANGES) - 1,
                    value=DEFAULT_NOTE_DENSITY_INDEX,
                    step=1
                )
                gain = gr.Slider(label="Gain (%)", minimum=0, maximum=MAX_GAIN, value=DEFAULT_GAIN, step=1)
                output_dir_box = gr.Textbox(label="Output Directory", value=output_dir)
                save_events = gr.Checkbox(label="Save event sequences (JSON)", value=False)

                render_btn = gr.Button("Render", variant="primary")

            with gr.Column(scale=2):
                gr.Markdown("### Results")

                render_status = gr.Textbox(label="Status", interactive=False, lines=2)
                results_table = gr.Dataframe(headers=RESULT_HEADERS, interactive=False)
                output_files = gr.File(label="MIDI Files", file_count="multiple", interactive=False)

        render_btn.click(
            fn=render_files,
            inputs=[num_files, duration, density, gain, output_dir_box, save_events],
            outputs=[render_status, results_table, output_files]
        )

    return tab
