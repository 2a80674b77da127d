"""
GUI applications for Performance RNN.

This module contains the web-based (Gradio) interface for live playback
and offline rendering.
"""

__version__ = "0.1.0"
