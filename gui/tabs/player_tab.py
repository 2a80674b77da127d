"""
Player tab for the Performance RNN Gradio GUI.

This tab drives live playback on a MIDI output port:
- Checkpoint loading and port selection
- Play/Pause and Reset RNN
- Note density, gain and pitch weight controls
- Keyboard display and resetting indicator
"""

import logging
from pathlib import Path
from typing import List, Tuple

import gradio as gr

from gui.state import app_state
from performance_rnn.data.constants import (
    DEFAULT_GAIN,
    DEFAULT_NOTE_DENSITY_INDEX,
    DEFAULT_PITCH_WEIGHTS,
    DENSITY_BIN_RANGES,
    MAX_GAIN,
    WEIGHTS_MANIFEST_FILENAME
)
from performance_rnn.generation import (
    create_live_config,
    load_generator_from_checkpoint,
    note_density_for_index
)
from performance_rnn.playback import list_output_ports

logger = logging.getLogger(__name__)

PITCH_CLASS_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


# ============================================================================
# Backend Functions
# ============================================================================

def list_available_checkpoints(checkpoint_dir: str = "checkpoints") -> List[str]:
    """List weights manifest directories and .pt files under checkpoint_dir."""
    try:
        checkpoint_path = Path(checkpoint_dir)
        if not checkpoint_path.exists():
            return []

        checkpoints = [
            p for p in checkpoint_path.iterdir()
            if p.suffix == ".pt" or (p.is_dir() and (p / WEIGHTS_MANIFEST_FILENAME).exists())
        ]
        checkpoints.sort(key=lambda p: p.stat().st_mtime, reverse=True)

        return [str(p) for p in checkpoints]

    except Exception as e:
        logger.error(f"Error listing checkpoints: {e}")
        return []


def note_name(note: int) -> str:
    """MIDI note number to name, e.g. 60 -> C4."""
    return f"{PITCH_CLASS_NAMES[note % 12]}{note // 12 - 1}"


def load_model(
    checkpoint: str,
    port_name: str,
    virtual: bool,
    density_index: int = DEFAULT_NOTE_DENSITY_INDEX,
    gain: float = DEFAULT_GAIN,
    *pitch_weights: float
) -> Tuple[str, bool]:
    """
    Load a checkpoint and open the MIDI port.

    The player starts from the control values currently shown, so sliders
    moved before loading are not lost.

    Args:
        checkpoint: Weights manifest directory or .pt file
        port_name: MIDI output port name
        virtual: Create a virtual port instead of opening port_name
        density_index: Note density slider value
        gain: Gain slider value (percent)
        *pitch_weights: The 12 pitch weight slider values (defaults if omitted)

    Returns:
        Tuple of (status message, success)
    """
    try:
        if not checkpoint:
            return "No checkpoint selected", False

        app_state.add_log(f"Loading model from {checkpoint}...")

        config = create_live_config(
            midi_port=port_name or None,
            virtual_port=bool(virtual),
            note_density_index=int(density_index),
            gain=float(gain),
            pitch_weights=[float(w) for w in pitch_weights] if pitch_weights else list(DEFAULT_PITCH_WEIGHTS)
        )
        generator = load_generator_from_checkpoint(Path(checkpoint), config)

        if generator is None:
            app_state.add_log("Failed to load checkpoint")
            return "Failed to load checkpoint", False

        app_state.initialize_generator(generator)
        app_state.initialize_player()
        app_state.add_log("Model loaded successfully")

        return f"Model loaded: {checkpoint}", True

    except Exception as e:
        error_msg = f"Error loading model: {str(e)}"
        logger.error(error_msg, exc_info=True)
        app_state.add_log(error_msg)
        return error_msg, False


def toggle_playback() -> Tuple[str, str]:
    """Play/Pause button. Returns (button label, status)."""
    if app_state.player is None:
        return "Play", "No model loaded. Please load a checkpoint first."

    # Rendering drives the same generator
    with app_state.control_lock:
        if app_state.render_active and not app_state.player.is_running:
            return "Play", "Offline render in progress. Wait for it to finish."

        playing = app_state.player.toggle()

    app_state.add_log("Playing" if playing else "Paused")

    return ("Pause" if playing else "Play"), ("Playing" if playing else "Paused")


def reset_rnn() -> str:
    if app_state.player is None:
        return "No model loaded"

    app_state.player.reset()
    return "Resetting..."


def update_note_density(density_index: int) -> str:
    """Apply a note density bin and return its display value."""
    density_index = int(density_index)
    if app_state.player is not None:
        app_state.player.set_note_density(density_index)
    return f"{note_density_for_index(density_index):g}"


def update_gain(gain: float) -> str:
    if app_state.player is not None:
        app_state.player.set_gain(gain)
    return f"{gain:g}"


def update_pitch_weights(*weights: float) -> str:
    """Apply the 12 pitch class weights."""
    if app_state.player is None:
        return "No model loaded"

    try:
        app_state.player.set_pitch_weights(list(weights))
    except ValueError as e:
        return f"Invalid pitch weights: {e}"

    return "Pitch weights updated"


def get_keyboard_display() -> str:
    """Currently lit keys, lowest first."""
    if app_state.keyboard is None:
        return ""
    return " ".join(note_name(note) for note in app_state.keyboard.pressed_keys())


def get_reset_indicator() -> str:
    return "Resetting..." if app_state.is_resetting() else ""


# ============================================================================
# Gradio Interface
# ============================================================================

def create_player_tab(checkpoint_dir: str = "checkpoints") -> gr.Tab:
    """Create the player tab with complete UI."""
    with gr.Tab("Player") as tab:

        gr.Markdown("""
        ## Live Performance

        Stream an endless piano performance to a MIDI output port.
        """)

        with gr.Row():
            # ===== LEFT COLUMN: Model & Output =====
            with gr.Column(scale=1):
                gr.Markdown("### Model")

                checkpoint_dropdown = gr.Dropdown(
                    label="Checkpoint",
                    choices=list_available_checkpoints(checkpoint_dir),
                    value=None,
                    allow_custom_value=True
                )

                port_dropdown = gr.Dropdown(
                    label="MIDI Output Port",
                    choices=list_output_ports(),
                    value=None,
                    allow_custom_value=True
                )

                virtual_checkbox = gr.Checkbox(label="Create virtual port", value=False)

                load_model_btn = gr.Button("Load Model", size="sm")

                model_status = gr.Textbox(
                    label="Model Status",
                    value="No model loaded",
                    interactive=False,
                    lines=2
                )

            # ===== RIGHT COLUMN: Controls =====
            with gr.Column(scale=2):
                gr.Markdown("### Controls")

                with gr.Row():
                    play_btn = gr.Button("Play", variant="primary", size="lg", interactive=False)
                    reset_btn = gr.Button("Reset RNN")

                reset_indicator = gr.Markdown("")

                density_slider = gr.Slider(
                    label="Note Density",
                    minimum=0,
                    maximum=len(DENSITY_BIN_RANGES) - 1,
                    value=DEFAULT_NOTE_DENSITY_INDEX,
                    step=1
                )
                density_display = gr.Textbox(
                    label="Notes per second",
                    value=f"{DENSITY_BIN_RANGES[DEFAULT_NOTE_DENSITY_INDEX]:g}",
                    interactive=False
                )

                gain_slider = gr.Slider(
                    label="Gain (%)",
                    minimum=0,
                    maximum=MAX_GAIN,
                    value=DEFAULT_GAIN,
                    step=1
                )
                gain_display = gr.Textbox(label="Gain", value=str(DEFAULT_GAIN), interactive=False)

                with gr.Accordion("Pitch Weights", open=False):
                    pitch_sliders = [
                        gr.Slider(label=name, minimum=0, maximum=2, value=weight, step=1)
                        for name, weight in zip(PITCH_CLASS_NAMES, DEFAULT_PITCH_WEIGHTS)
                    ]
                    pitch_status = gr.Textbox(label="Pitch Weights", interactive=False)

                keyboard_display = gr.Textbox(label="Keyboard", interactive=False)
                playback_status = gr.Textbox(label="Status", value="Stopped", interactive=False)

                logs_display = gr.Textbox(
                    label="Logs",
                    value="No logs yet...",
                    interactive=False,
                    lines=8,
                    autoscroll=True
                )

        # ===== Event Handlers =====

        def on_load_model(checkpoint, port_name, virtual, density_index, gain, *pitch_weights):
            status, ok = load_model(checkpoint, port_name, virtual, density_index, gain, *pitch_weights)
            return status, gr.Button(value="Play", interactive=ok)

        load_model_btn.click(
            fn=on_load_model,
            inputs=[checkpoint_dropdown, port_dropdown, virtual_checkbox, density_slider, gain_slider] + pitch_sliders,
            outputs=[model_status, play_btn]
        ).then(
            fn=lambda: app_state.get_recent_logs(),
            outputs=[logs_display]
        )

        play_btn.click(fn=toggle_playback, outputs=[play_btn, playback_status])
        reset_btn.click(fn=reset_rnn, outputs=[playback_status])

        density_slider.change(fn=update_note_density, inputs=[density_slider], outputs=[density_display])
        gain_slider.change(fn=update_gain, inputs=[gain_slider], outputs=[gain_display])

        for slider in pitch_sliders:
            slider.change(fn=update_pitch_weights, inputs=pitch_sliders, outputs=[pitch_status])

        # Refresh the keyboard and the resetting badge while playing
        timer = gr.Timer(0.2)
        timer.tick(
            fn=lambda: (get_keyboard_display(), get_reset_indicator()),
            outputs=[keyboard_display, reset_indicator]
        )

        tab.select(
            fn=lambda: app_state.get_recent_logs(),
            outputs=[logs_display]
        )

    return tab
