"""
PyTorch-based Performance RNN player.

This module runs a pretrained 3-layer LSTM performance model step by step,
decodes its output into MIDI-like events and streams them to a piano
(a MIDI output port, a recording or a MIDI file).
"""

__version__ = "0.1.0"
