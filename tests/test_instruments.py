import pytest

import arranger.constants.midi
import arranger.instruments
import arranger.rhythm


def test_gm_instrument_family () -> None:

	bass = arranger.instruments.gm_instrument(32)

	assert bass.name == "Acoustic Bass"
	assert bass.family == "bass"
	assert arranger.instruments.GM_DRUM_KIT.family is None
	assert arranger.instruments.VOID_INSTRUMENT.family is None


def test_void_instrument_sends_nothing () -> None:

	assert arranger.instruments.VOID_INSTRUMENT.is_void
	assert arranger.instruments.VOID_INSTRUMENT.midi_messages(3) == []


def test_instrument_midi_messages () -> None:

	"""An instrument is selected with bank select MSB, LSB then program change."""

	messages = arranger.instruments.Instrument("Jazz Guitar", 26, 1, 2).midi_messages(4)

	assert [m.type for m in messages] == ["control_change", "control_change", "program_change"]
	assert messages[0].control == arranger.constants.midi.CC_BANK_SELECT_MSB and messages[0].value == 1
	assert messages[1].control == arranger.constants.midi.CC_BANK_SELECT_LSB and messages[1].value == 2
	assert messages[2].program == 26 and messages[2].channel == 4


def test_settings_range_validation () -> None:

	settings = arranger.instruments.InstrumentSettings()

	with pytest.raises(ValueError):
		settings.volume = 128

	with pytest.raises(ValueError):
		settings.transposition = 37

	with pytest.raises(ValueError):
		settings.set("brightness", 10)

	settings.velocity_shift = -64

	assert settings.velocity_shift == -64


def test_settings_change_events () -> None:

	"""Changes emit (settings, name, old, new); unchanged values emit nothing."""

	settings = arranger.instruments.InstrumentSettings()
	received = []

	settings.events.on("change", lambda s, name, old, new: received.append((name, old, new)))

	settings.transposition = 12
	settings.transposition = 12
	settings.volume_enabled = False

	assert received == [("transposition", 0, 12), ("volume_enabled", True, False)]


def test_settings_messages_skip_disabled () -> None:

	settings = arranger.instruments.InstrumentSettings(volume=90)
	settings.reverb_enabled = False

	controls = [m.control for m in settings.midi_messages(0)]

	assert arranger.constants.midi.CC_VOLUME in controls
	assert arranger.constants.midi.CC_REVERB not in controls


def test_mix_copy_is_never_soloed () -> None:

	mix = arranger.instruments.InstrumentMix(arranger.instruments.gm_instrument(0))
	mix.mute = True
	mix.solo = True
	mix.settings.volume = 70

	copy = mix.copy()

	assert copy is not mix
	assert copy.handle != mix.handle
	assert copy.mute
	assert not copy.solo
	assert copy.settings.volume == 70
	assert copy.settings is not mix.settings


def test_mix_events () -> None:

	mix = arranger.instruments.InstrumentMix(arranger.instruments.gm_instrument(0))
	received = []

	mix.events.on("mute", lambda m, v: received.append(("mute", v)))
	mix.events.on("instrument", lambda m, old, new: received.append(("instrument", new.name)))

	mix.mute = True
	mix.mute = True
	mix.instrument = arranger.instruments.gm_instrument(4)

	assert received == [("mute", True), ("instrument", "Electric Piano 1")]


def test_provider_drums_channel () -> None:

	"""Drum voices get the GM kit on the drums channel and the void instrument elsewhere."""

	rhythm = arranger.rhythm.Rhythm(
		"r",
		"R",
		arranger.rhythm.TimeSignature(4, 4),
		[("Drums", arranger.rhythm.RhythmVoiceType.DRUMS, 9), ("Bass", arranger.rhythm.RhythmVoiceType.BASS, 1)]
	)
	provider = arranger.instruments.InstrumentProvider()

	assert provider.find_instrument(rhythm.voice("Drums"), 9) is arranger.instruments.GM_DRUM_KIT
	assert provider.find_instrument(rhythm.voice("Drums"), 8).is_void
	assert provider.find_instrument(rhythm.voice("Bass"), 1).family == "bass"
	assert provider.default_settings(rhythm.voice("Drums")).volume == arranger.constants.midi.VOLUME_DRUMS_STD
