"""Velocity constants.

Velocity is the hit strength (0-127).  Playback gain is ``velocity / 127``.
"""

MIN_VELOCITY = 0
MAX_VELOCITY = 127

# Velocity written by a manual step toggle.
DEFAULT_TOGGLE_VELOCITY = 100

# Velocity used when a pad is clicked rather than struck.
PAD_CLICK_VELOCITY = 80
