"""
Performance RNN control panel.

Usage:
    python -m gui.gradio_app --checkpoint_dir checkpoints --port 7860
"""

import argparse
import logging
from pathlib import Path

import gradio as gr

from gui.state import app_state
from gui.tabs import create_player_tab, create_render_tab
from performance_rnn.utils import setup_logging

logger = logging.getLogger(__name__)


def create_interface(checkpoint_dir: str = "checkpoints", output_dir: str = "./generated") -> gr.Blocks:
    """
    Build the player and render tabs.

    Args:
        checkpoint_dir: Directory scanned for checkpoints
        output_dir: Default directory for rendered MIDI files

    Returns:
        Gradio Blocks interface
    """
    with gr.Blocks(title="Performance RNN") as app:
        gr.Markdown(
            "# Performance RNN\n"
            "Route the MIDI output to a piano synthesizer to hear the live performance."
        )

        with gr.Tabs():
            create_player_tab(checkpoint_dir=checkpoint_dir)
            create_render_tab(output_dir=output_dir)

    return app


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Performance RNN control panel",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument('--host', type=str, default="localhost",
                        help="Address the web server listens on")
    parser.add_argument('--port', type=int, default=7860,
                        help="Web server port")
    parser.add_argument('--share', action='store_true',
                        help="Create a public gradio link")
    parser.add_argument('--checkpoint_dir', type=str, default="checkpoints",
                        help="Directory scanned for checkpoints")
    parser.add_argument('--output_dir', type=str, default="./generated",
                        help="Default directory for rendered MIDI files")
    parser.add_argument('--log_dir', type=Path, default=None,
                        help="Also write a timestamped log file here")

    return parser.parse_args(argv)


def main(argv=None):
    """Launch the control panel and silence the MIDI port on exit."""
    args = parse_args(argv)
    setup_logging(log_dir=args.log_dir)

    app = create_interface(checkpoint_dir=args.checkpoint_dir, output_dir=args.output_dir)

    try:
        app.launch(server_name=args.host, server_port=args.port, share=args.share, show_error=True)
    finally:
        logger.info("Shutting down, releasing MIDI output")
        app_state.clear_generator_state()


if __name__ == "__main__":
    main()
