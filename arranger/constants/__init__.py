"""Constants for Arranger.

This package contains two sets of constants:

- ``arranger.constants.midi`` - MIDI channel layout, default mix values and controller numbers
- ``arranger.constants.gm_instruments`` - General MIDI Level 1 programs and instrument families

The channel layout constants are re-exported here, so
``arranger.constants.CHANNEL_DRUMS`` works as a shortcut.
"""

# Re-export the channel layout.
# These match the values in arranger.constants.midi.

CHANNEL_MIN = 0
CHANNEL_MAX = 15
CHANNEL_DRUMS = 9
NB_CHANNELS = CHANNEL_MAX - CHANNEL_MIN + 1
