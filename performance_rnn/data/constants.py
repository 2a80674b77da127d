"""
Constants for the Performance RNN event space and playback loop.

This module defines the event ranges, conditioning layout, checkpoint variable
names and timing constants used throughout the player.

Basically defines all the "magic numbers" used throughout the project
instead of having them scattered randomly throughout the modules
"""

import math
from typing import List, Tuple


# ============================================================================
# Event Space
# ============================================================================

MIN_MIDI_PITCH = 0
MAX_MIDI_PITCH = 127
VELOCITY_BINS = 32
MAX_SHIFT_STEPS = 100
STEPS_PER_SECOND = 100

# (event type, min value, max value), in index order
EVENT_RANGES: List[Tuple[str, int, int]] = [
    ('note_on', MIN_MIDI_PITCH, MAX_MIDI_PITCH),
    ('note_off', MIN_MIDI_PITCH, MAX_MIDI_PITCH),
    ('time_shift', 1, MAX_SHIFT_STEPS),
    ('velocity_change', 1, VELOCITY_BINS),
]

EVENT_SIZE = sum(max_value - min_value + 1 for _, min_value, max_value in EVENT_RANGES)

# Shift 1s. Fed to the model as the first input after every reset.
PRIMER_IDX = 355

# MIDI velocity units per velocity bin
VELOCITY_BIN_SIZE = math.ceil(127 / VELOCITY_BINS)

# Velocity used until the model emits its first velocity_change event
DEFAULT_VELOCITY = 100


# ============================================================================
# Conditioning
# ============================================================================

NOTES_PER_OCTAVE = 12
PITCH_WEIGHT_SIZE = NOTES_PER_OCTAVE

# Notes per second for each note density bin
DENSITY_BIN_RANGES = [1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 64.0]
DEFAULT_NOTE_DENSITY_INDEX = 2

# C Major scale.
DEFAULT_PITCH_WEIGHTS = [2, 0, 1, 0, 1, 1, 0, 1, 0, 1, 0, 1]

# Leading flag + density one-hot (one extra slot for "no density") + pitch histogram
CONDITIONING_SIZE = 1 + (len(DENSITY_BIN_RANGES) + 1) + PITCH_WEIGHT_SIZE
INPUT_SIZE = CONDITIONING_SIZE + EVENT_SIZE


# ============================================================================
# Model Architecture
# ============================================================================

NUM_LSTM_LAYERS = 3
HIDDEN_SIZE = 512
FORGET_BIAS = 1.0

# Variable names used by the exported checkpoint
LSTM_KERNEL_NAME = 'rnn/multi_rnn_cell/cell_{layer}/basic_lstm_cell/kernel'
LSTM_BIAS_NAME = 'rnn/multi_rnn_cell/cell_{layer}/basic_lstm_cell/bias'
FC_WEIGHTS_NAME = 'fully_connected/weights'
FC_BIASES_NAME = 'fully_connected/biases'

WEIGHTS_MANIFEST_FILENAME = 'weights_manifest.json'


# ============================================================================
# Playback Loop
# ============================================================================

# How many steps to generate per generate_step call.
# Generating more steps makes it less likely that we'll lag behind in note
# generation. Generating fewer steps keeps each call short so control changes
# (density, pitch weights) are picked up sooner.
STEPS_PER_GENERATE_CALL = 10

# How much time to try to generate ahead. More time means fewer buffer
# underruns, but also makes the lag from a control change to output larger.
GENERATION_BUFFER_SECONDS = 0.5

# If we're this far behind, reset the performance time to the clock.
MAX_GENERATION_LAG_SECONDS = 1.0

# If a note is held longer than this, release it.
MAX_NOTE_DURATION_SECONDS = 3.0

# A note-off never lands earlier than this after its note-on
MIN_NOTE_HOLD_SECONDS = 0.5

# Reset the RNN this often so it doesn't trail off into incoherent babble
RESET_RNN_FREQUENCY_SECONDS = 30.0

# How long a key stays lit on the keyboard display
KEYBOARD_FLASH_SECONDS = 0.1

# Gain is a percentage applied to note velocities
DEFAULT_GAIN = 100
MAX_GAIN = 200


# ============================================================================
# Rendering
# ============================================================================

DEFAULT_RENDER_SECONDS = 30.0
TICKS_PER_BEAT = 480
RENDER_TEMPO_BPM = 120.0
PIANO_PROGRAM = 0
