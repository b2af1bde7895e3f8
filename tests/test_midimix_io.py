import logging
import os
import pathlib
import typing

import pytest
import yaml

import arranger.errors
import arranger.instruments
import arranger.midimix
import arranger.midimix_io
import arranger.rhythm
import arranger.rhythm_database


def _write_slots (path: str, slots: typing.Dict[int, typing.Dict[str, typing.Any]]) -> None:

	"""Write a mix file with the given slots, other channels free."""

	data = {"format": 1, "slots": [slots.get(channel) for channel in range(16)]}

	with open(path, "w") as file:
		yaml.safe_dump(data, file)


def _slot (rhythm_id: str, voice_name: str, voice_type: str, program: typing.Optional[int] = 0) -> typing.Dict[str, typing.Any]:

	return {
		"voice": [rhythm_id, voice_name],
		"time_signature": "4/4",
		"type": voice_type,
		"instrument": {"name": "Some Instrument", "program": program},
		"settings": {"volume": 90},
		"mute": False,
	}


@pytest.fixture
def bossa_mix (db: arranger.rhythm_database.RhythmDatabase) -> arranger.midimix.MidiMix:

	"""Bossa nova mix: percussion on channel 8, rerouted to the drums channel."""

	return arranger.midimix.MidiMix.from_rhythm(db.get_rhythm_instance("bossa-nova-44"), arranger.instruments.InstrumentProvider())


def test_save_and_load_keep_bindings (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase, bossa_mix: arranger.midimix.MidiMix) -> None:

	path = os.path.join(str(tmp_path), "bossa.mix.yaml")
	bossa_mix.get_instrument_mix(1).settings.volume = 77
	bossa_mix.get_instrument_mix(3).mute = True

	arranger.midimix_io.save_mix(bossa_mix, path)
	loaded = arranger.midimix_io.load_mix(path, db)

	assert not bossa_mix.needs_save
	assert bossa_mix.file_path == path
	assert loaded.voices() == bossa_mix.voices()
	assert loaded.get_instrument_mix(1).settings.volume == 77
	assert loaded.get_instrument_mix(3).mute
	assert loaded.get_instrument_mix(9).instrument == arranger.instruments.GM_DRUM_KIT
	assert not loaded.needs_save


def test_rerouted_channel_saved_before_rerouting (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase, bossa_mix: arranger.midimix.MidiMix) -> None:

	"""The file holds the pre-rerouting mix plus a flag; loading leaves rerouting off."""

	path = os.path.join(str(tmp_path), "bossa.mix.yaml")
	arranger.midimix_io.save_mix(bossa_mix, path)

	with open(path) as file:
		slot = yaml.safe_load(file)["slots"][8]

	assert slot["drums_rerouted"] is True
	assert slot["settings"]["volume_enabled"] is True
	assert slot["instrument"]["program"] is None

	loaded = arranger.midimix_io.load_mix(path, db)
	perc = loaded.get_instrument_mix(8)

	assert loaded.drums_rerouted_channels() == []
	assert perc.instrument.is_void
	assert perc.instrument_enabled
	assert loaded.channels_needing_drums_rerouting() == [8]


def test_solo_is_not_saved (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase, bossa_mix: arranger.midimix.MidiMix) -> None:

	path = os.path.join(str(tmp_path), "bossa.mix.yaml")
	bossa_mix.get_instrument_mix(1).solo = True

	arranger.midimix_io.save_mix(bossa_mix, path)
	loaded = arranger.midimix_io.load_mix(path, db)

	assert loaded.soloed_channels() == []


def test_user_channels_round_trip (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase) -> None:

	mix = arranger.midimix.MidiMix.from_rhythm(db.get_rhythm_instance("jazz-swing-44"), arranger.instruments.InstrumentProvider())
	mix.add_user_channel("Riff")
	mix.add_user_channel("Beat", drums=True)
	path = os.path.join(str(tmp_path), "user.mix.yaml")

	arranger.midimix_io.save_mix(mix, path)
	loaded = arranger.midimix_io.load_mix(path, db)

	riff = loaded.user_voice("Riff")
	beat = loaded.user_voice("Beat")

	assert isinstance(riff, arranger.rhythm.UserRhythmVoice) and not riff.is_drums
	assert beat.is_drums
	assert loaded.user_channels() == mix.user_channels()
	assert loaded.get_voice_mix(beat).instrument == arranger.instruments.GM_DRUM_KIT


def test_unknown_rhythm_is_substituted (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase, caplog: pytest.LogCaptureFixture) -> None:

	"""Voices of a missing rhythm go to the default rhythm's voices, by name then by type."""

	path = os.path.join(str(tmp_path), "old.mix.yaml")
	_write_slots(path, {
		1: _slot("vanished-44-sub", "Bass", "bass", 33),
		5: _slot("vanished-44-sub", "Keys", "chord", 4),
	})

	with caplog.at_level(logging.WARNING, logger="arranger.midimix_io"):
		loaded = arranger.midimix_io.load_mix(path, db)
		arranger.midimix_io.load_mix(path, db)

	swing = db.get_rhythm_instance("jazz-swing-44")

	assert loaded.get_voice(1) is swing.voice("Bass")
	assert loaded.get_voice(5) is swing.voice("Piano")
	assert loaded.get_instrument_mix(5).instrument.program == 4
	assert len([r for r in caplog.records if "vanished-44-sub" in r.getMessage()]) == 1


def test_melodic_instrument_on_drums_becomes_void (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase, caplog: pytest.LogCaptureFixture) -> None:

	path = os.path.join(str(tmp_path), "bad-drums.mix.yaml")
	_write_slots(path, {9: _slot("jazz-swing-44", "Drums", "drums", 0)})

	with caplog.at_level(logging.WARNING, logger="arranger.midimix_io"):
		loaded = arranger.midimix_io.load_mix(path, db)

	assert loaded.get_instrument_mix(9).instrument is arranger.instruments.VOID_INSTRUMENT
	assert any("void instrument" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize("content", [
	"slots: [",
	"just text",
	"format: 1\nslots: [null, null]\n",
])
def test_malformed_files_raise (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase, content: str) -> None:

	path = os.path.join(str(tmp_path), "broken.mix.yaml")

	with open(path, "w") as file:
		file.write(content)

	with pytest.raises(arranger.errors.MixFileError):
		arranger.midimix_io.load_mix(path, db)


def test_invalid_slot_raises (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase) -> None:

	path = os.path.join(str(tmp_path), "bad-voice.mix.yaml")
	_write_slots(path, {1: _slot("jazz-swing-44", "Tuba", "bass")})

	with pytest.raises(arranger.errors.MixFileError):
		arranger.midimix_io.load_mix(path, db)


def test_missing_file_raises (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase) -> None:

	with pytest.raises(arranger.errors.MixFileError):
		arranger.midimix_io.load_mix(os.path.join(str(tmp_path), "nowhere.mix.yaml"), db)
