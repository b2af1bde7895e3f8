"""General MIDI Level 1 instrument programs.

Program numbers are 0-indexed (0 = Acoustic Grand Piano). Every block of
eight consecutive programs forms one GM1 instrument family.

Two ways to use this module:

1. **As a lookup** - ``GM_PROGRAM_NAMES[program]`` gives the display name and
   ``family_of(program)`` the family name::

       import arranger.constants.gm_instruments

       arranger.constants.gm_instruments.family_of(33)   # "bass"

2. **As constants** - reference program numbers directly::

       import arranger.constants.gm_instruments

       program = arranger.constants.gm_instruments.FINGERED_BASS
"""

import typing


# ─── Instrument families (one per block of 8 programs) ───────────────

GM_FAMILIES: typing.List[str] = [
	"piano",
	"chromatic_percussion",
	"organ",
	"guitar",
	"bass",
	"strings",
	"ensemble",
	"brass",
	"reed",
	"pipe",
	"synth_lead",
	"synth_pad",
	"synth_effects",
	"ethnic",
	"percussive",
	"sound_effects",
]


# ─── Program names ───────────────────────────────────────────────────

GM_PROGRAM_NAMES: typing.List[str] = [
	# Piano
	"Acoustic Grand Piano", "Bright Acoustic Piano", "Electric Grand Piano", "Honky-tonk Piano",
	"Electric Piano 1", "Electric Piano 2", "Harpsichord", "Clavi",
	# Chromatic percussion
	"Celesta", "Glockenspiel", "Music Box", "Vibraphone",
	"Marimba", "Xylophone", "Tubular Bells", "Dulcimer",
	# Organ
	"Drawbar Organ", "Percussive Organ", "Rock Organ", "Church Organ",
	"Reed Organ", "Accordion", "Harmonica", "Tango Accordion",
	# Guitar
	"Acoustic Guitar (nylon)", "Acoustic Guitar (steel)", "Electric Guitar (jazz)", "Electric Guitar (clean)",
	"Electric Guitar (muted)", "Overdriven Guitar", "Distortion Guitar", "Guitar Harmonics",
	# Bass
	"Acoustic Bass", "Electric Bass (finger)", "Electric Bass (pick)", "Fretless Bass",
	"Slap Bass 1", "Slap Bass 2", "Synth Bass 1", "Synth Bass 2",
	# Strings
	"Violin", "Viola", "Cello", "Contrabass",
	"Tremolo Strings", "Pizzicato Strings", "Orchestral Harp", "Timpani",
	# Ensemble
	"String Ensemble 1", "String Ensemble 2", "Synth Strings 1", "Synth Strings 2",
	"Choir Aahs", "Voice Oohs", "Synth Voice", "Orchestra Hit",
	# Brass
	"Trumpet", "Trombone", "Tuba", "Muted Trumpet",
	"French Horn", "Brass Section", "Synth Brass 1", "Synth Brass 2",
	# Reed
	"Soprano Sax", "Alto Sax", "Tenor Sax", "Baritone Sax",
	"Oboe", "English Horn", "Bassoon", "Clarinet",
	# Pipe
	"Piccolo", "Flute", "Recorder", "Pan Flute",
	"Blown Bottle", "Shakuhachi", "Whistle", "Ocarina",
	# Synth lead
	"Lead 1 (square)", "Lead 2 (sawtooth)", "Lead 3 (calliope)", "Lead 4 (chiff)",
	"Lead 5 (charang)", "Lead 6 (voice)", "Lead 7 (fifths)", "Lead 8 (bass + lead)",
	# Synth pad
	"Pad 1 (new age)", "Pad 2 (warm)", "Pad 3 (polysynth)", "Pad 4 (choir)",
	"Pad 5 (bowed)", "Pad 6 (metallic)", "Pad 7 (halo)", "Pad 8 (sweep)",
	# Synth effects
	"FX 1 (rain)", "FX 2 (soundtrack)", "FX 3 (crystal)", "FX 4 (atmosphere)",
	"FX 5 (brightness)", "FX 6 (goblins)", "FX 7 (echoes)", "FX 8 (sci-fi)",
	# Ethnic
	"Sitar", "Banjo", "Shamisen", "Koto",
	"Kalimba", "Bag pipe", "Fiddle", "Shanai",
	# Percussive
	"Tinkle Bell", "Agogo", "Steel Drums", "Woodblock",
	"Taiko Drum", "Melodic Tom", "Synth Drum", "Reverse Cymbal",
	# Sound effects
	"Guitar Fret Noise", "Breath Noise", "Seashore", "Bird Tweet",
	"Telephone Ring", "Helicopter", "Applause", "Gunshot",
]


# ─── Frequently used programs ────────────────────────────────────────

ACOUSTIC_GRAND_PIANO = 0
ELECTRIC_PIANO_1 = 4
VIBRAPHONE = 11
DRAWBAR_ORGAN = 16
NYLON_GUITAR = 24
JAZZ_GUITAR = 26
CLEAN_GUITAR = 27
ACOUSTIC_BASS = 32
FINGERED_BASS = 33
PICKED_BASS = 34
FRETLESS_BASS = 35
STRING_ENSEMBLE_1 = 48
SYNTH_STRINGS_1 = 50
TRUMPET = 56
BRASS_SECTION = 61
ALTO_SAX = 65
TENOR_SAX = 66
FLUTE = 73
LEAD_SQUARE = 80
PAD_WARM = 89


def family_of (program: int) -> str:

	"""
	Return the GM1 family name of a 0-indexed program number.

	Raises ``ValueError`` if the program is outside 0-127.
	"""

	if not 0 <= program <= 127:
		raise ValueError(f"Invalid GM program {program}")

	return GM_FAMILIES[program // 8]
