"""MIDI channel layout and mix defaults.

Channels are 0-indexed: channel 9 is the General MIDI percussion channel
(shown as "channel 10" on most hardware).
"""

import typing


# ─── Channel layout ──────────────────────────────────────────────────

CHANNEL_MIN = 0
CHANNEL_MAX = 15
CHANNEL_DRUMS = 9
NB_CHANNELS = CHANNEL_MAX - CHANNEL_MIN + 1


# ─── Default mix values ──────────────────────────────────────────────

VOLUME_STD = 100
VOLUME_DRUMS_STD = 110
PAN_STD = 64
REVERB_STD = 40
CHORUS_STD = 0

VALUE_MIN = 0
VALUE_MAX = 127

TRANSPOSITION_MIN = -36
TRANSPOSITION_MAX = 36

VELOCITY_SHIFT_MIN = -64
VELOCITY_SHIFT_MAX = 64


# ─── Controller numbers ──────────────────────────────────────────────

CC_BANK_SELECT_MSB = 0
CC_VOLUME = 7
CC_PAN = 10
CC_BANK_SELECT_LSB = 32
CC_REVERB = 91
CC_CHORUS = 93


def check_channel (channel: typing.Any) -> bool:

	"""Return True if ``channel`` is a valid 0-indexed MIDI channel."""

	return isinstance(channel, int) and not isinstance(channel, bool) and CHANNEL_MIN <= channel <= CHANNEL_MAX
