import os
import pathlib

import pytest

import arranger.arrangement
import arranger.instruments
import arranger.leadsheet
import arranger.midimix
import arranger.midimix_io
import arranger.midimix_manager
import arranger.rhythm_database

from conftest import FOUR_FOUR, THREE_FOUR


def _new_arrangement (db: arranger.rhythm_database.RhythmDatabase, name: str) -> arranger.arrangement.Arrangement:

	return arranger.arrangement.Arrangement(name, arranger.leadsheet.LeadSheet("A", FOUR_FOUR, 8), db)


def test_invalid_cache_size (db: arranger.rhythm_database.RhythmDatabase) -> None:

	with pytest.raises(ValueError):
		arranger.midimix_manager.MidiMixManager(db, cache_size=0)


def test_find_mix_is_cached (manager: arranger.midimix_manager.MidiMixManager, arrangement: arranger.arrangement.Arrangement) -> None:

	mix = manager.find_mix(arrangement)

	assert manager.find_mix(arrangement) is mix
	assert manager.find_existing_mix(arrangement) is mix
	assert mix.arrangement is arrangement
	assert mix.undo_manager is arrangement.undo_manager
	assert len(manager) == 1


def test_least_recently_used_mix_is_evicted (db: arranger.rhythm_database.RhythmDatabase) -> None:

	"""Eviction detaches the mix from its arrangement."""

	manager = arranger.midimix_manager.MidiMixManager(db, cache_size=2)
	first, second, third = (_new_arrangement(db, name) for name in ("One", "Two", "Three"))

	first_mix = manager.find_mix(first)
	second_mix = manager.find_mix(second)
	manager.find_mix(first)
	manager.find_mix(third)

	assert len(manager) == 2
	assert manager.find_existing_mix(second) is None
	assert second_mix.arrangement is None
	assert manager.find_existing_mix(first) is first_mix


def test_release_detaches (manager: arranger.midimix_manager.MidiMixManager, arrangement: arranger.arrangement.Arrangement) -> None:

	mix = manager.find_mix(arrangement)
	manager.release(arrangement)
	arrangement.leadsheet.add_section("C", THREE_FOUR, 8)

	assert len(manager) == 0
	assert mix.arrangement is None
	assert mix.used_channels() == [1, 2, 3, 9]


def test_rhythm_mix_is_shared_with_adapted_rhythm (manager: arranger.midimix_manager.MidiMixManager, db: arranger.rhythm_database.RhythmDatabase) -> None:

	swing = db.get_rhythm_instance("jazz-swing-44")
	adapted = db.get_adapted_rhythm_instance(swing, THREE_FOUR)

	assert manager.find_mix_for_rhythm(adapted) is manager.find_mix_for_rhythm(swing)


def test_arrangement_mix_loaded_from_file (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase, arrangement: arranger.arrangement.Arrangement) -> None:

	"""A mix file saved next to the song file is used instead of a new mix."""

	arrangement.file_path = os.path.join(str(tmp_path), "song.yaml")
	arrangement.set_user_phrase("Riff", arranger.arrangement.Phrase(0))

	first_manager = arranger.midimix_manager.MidiMixManager(db)
	mix = first_manager.find_mix(arrangement)
	mix.get_instrument_mix(1).settings.volume = 55
	arranger.midimix_io.save_mix(mix, arrangement.mix_file_path)
	first_manager.release(arrangement)

	second_manager = arranger.midimix_manager.MidiMixManager(db)
	loaded = second_manager.find_mix(arrangement)

	assert loaded is not mix
	assert loaded.file_path == arrangement.mix_file_path
	assert loaded.arrangement is arrangement
	assert loaded.get_instrument_mix(1).settings.volume == 55
	assert loaded.get_voice(0).name == "Riff"
	assert not loaded.needs_save


def test_mismatched_mix_file_is_ignored (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase, arrangement: arranger.arrangement.Arrangement) -> None:

	arrangement.file_path = os.path.join(str(tmp_path), "song.yaml")
	bossa_mix = arranger.midimix.MidiMix.from_rhythm(db.get_rhythm_instance("bossa-nova-44"), arranger.instruments.InstrumentProvider())
	arranger.midimix_io.save_mix(bossa_mix, arrangement.mix_file_path)

	manager = arranger.midimix_manager.MidiMixManager(db)
	mix = manager.find_mix(arrangement)

	assert mix.used_channels() == [1, 2, 3, 9]
	assert mix.arrangement is arrangement
	assert mix.file_path is None


def test_loaded_mix_is_rerouted (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase) -> None:

	"""Drums rerouting saved in a mix file is applied again without recording undo steps."""

	ls = arranger.leadsheet.LeadSheet("A", FOUR_FOUR, 8)
	arrangement = arranger.arrangement.Arrangement("Bossa", ls, db)
	sgs = arrangement.song_structure
	part = sgs.parts[0]
	sgs.replace_parts([part], [part.copy(db.get_rhythm_instance("bossa-nova-44"), 0, 8, part.parent_section)])
	arrangement.undo_manager.discard_all_edits()
	arrangement.file_path = os.path.join(str(tmp_path), "bossa.yaml")

	bossa_mix = arranger.midimix.MidiMix.from_rhythm(db.get_rhythm_instance("bossa-nova-44"), arranger.instruments.InstrumentProvider())
	arranger.midimix_io.save_mix(bossa_mix, arrangement.mix_file_path)

	mix = arranger.midimix_manager.MidiMixManager(db).find_mix(arrangement)

	assert mix.file_path == arrangement.mix_file_path
	assert mix.drums_rerouted_channels() == [8]
	assert not arrangement.undo_manager.can_undo()


def test_rhythm_mix_from_mix_directory (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase, arrangement: arranger.arrangement.Arrangement) -> None:

	swing = db.get_rhythm_instance("jazz-swing-44")
	rhythm_mix = arranger.midimix.MidiMix.from_rhythm(swing, arranger.instruments.InstrumentProvider())
	rhythm_mix.get_instrument_mix(1).instrument = arranger.instruments.gm_instrument(33)

	manager = arranger.midimix_manager.MidiMixManager(db, mix_directory=str(tmp_path))
	arranger.midimix_io.save_mix(rhythm_mix, manager.rhythm_mix_file_path(swing))

	mix = manager.find_mix(arrangement)

	assert manager.rhythm_mix_file_path(swing).endswith("jazz-swing-44.mix.yaml")
	assert mix.get_instrument_mix(1).instrument.program == 33


def test_rhythm_mix_file_for_another_rhythm_is_ignored (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase) -> None:

	swing = db.get_rhythm_instance("jazz-swing-44")
	waltz_mix = arranger.midimix.MidiMix.from_rhythm(db.get_rhythm_instance("jazz-waltz-34"), arranger.instruments.InstrumentProvider())

	manager = arranger.midimix_manager.MidiMixManager(db, mix_directory=str(tmp_path))
	arranger.midimix_io.save_mix(waltz_mix, manager.rhythm_mix_file_path(swing))

	mix = manager.find_mix_for_rhythm(swing)

	assert mix.voices() == [swing.voice("Bass"), swing.voice("Piano"), swing.voice("Guitar"), swing.voice("Drums")]


def test_clear_detaches_every_mix (manager: arranger.midimix_manager.MidiMixManager, db: arranger.rhythm_database.RhythmDatabase) -> None:

	mixes = [manager.find_mix(_new_arrangement(db, name)) for name in ("One", "Two")]
	manager.clear()

	assert len(manager) == 0
	assert all(mix.arrangement is None for mix in mixes)
