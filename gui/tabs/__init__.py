"""
Tab modules for the Performance RNN Gradio GUI.

Each module creates a complete tab with UI and event handlers:
- player_tab: Live playback to a MIDI output port
- render_tab: Offline rendering to MIDI files
"""

from .player_tab import create_player_tab
from .render_tab import create_render_tab

__all__ = [
    'create_player_tab',
    'create_render_tab',
]
