"""Constants for beatpad.

This package contains:

- ``beatpad.constants.velocity`` - Velocity range and default hit strengths
- ``beatpad.constants.controllers`` - Note-to-channel maps for pad controllers

Grid, tempo and project constants live here directly.
"""

# Pattern grid dimensions.
NUM_CHANNELS = 16
NUM_STEPS = 16

# Tempo limits.  Tempo requests outside this range are clamped, not rejected.
MIN_BPM = 40
MAX_BPM = 240
DEFAULT_BPM = 120

# Steps between metronome clicks (one click per quarter of the pattern).
METRONOME_STEP_INTERVAL = 4
METRONOME_ACCENT_GAIN = 0.4
METRONOME_GAIN = 0.2

# How long a pad stays highlighted after a hit.
PAD_HIGHLIGHT_SECONDS = 0.1

# Project record.
PROJECT_VERSION = "1.0.0"
DEFAULT_PROJECT_NAME = "Untitled Project"
IMPORTED_PROJECT_NAME = "Imported Project"
