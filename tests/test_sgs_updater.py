import typing

import pytest

import arranger.arrangement
import arranger.errors
import arranger.event_emitter
import arranger.leadsheet
import arranger.rhythm
import arranger.rhythm_database
import arranger.song_structure

from conftest import FOUR_FOUR, THREE_FOUR


def _parts (arrangement: arranger.arrangement.Arrangement) -> typing.List[typing.Tuple[str, int, int]]:

	return [(p.name, p.start_bar, p.nb_bars) for p in arrangement.song_structure.parts]


def test_one_part_per_section (arrangement: arranger.arrangement.Arrangement) -> None:

	parts = arrangement.song_structure.parts

	assert _parts(arrangement) == [("A", 0, 4), ("B", 4, 8)]
	assert [p.parent_section.name for p in parts] == ["A", "B"]
	assert all(p.rhythm.unique_id == "jazz-swing-44" for p in parts)


def test_added_section_splits_previous_part (arrangement: arranger.arrangement.Arrangement) -> None:

	arrangement.leadsheet.add_section("C", FOUR_FOUR, 8)

	assert _parts(arrangement) == [("A", 0, 4), ("B", 4, 4), ("C", 8, 4)]


def test_removed_section_merges_into_previous (arrangement: arranger.arrangement.Arrangement) -> None:

	ls = arrangement.leadsheet
	ls.add_section("C", FOUR_FOUR, 8)
	ls.remove_section(ls.get_section_by_name("B"))

	assert _parts(arrangement) == [("A", 0, 8), ("C", 8, 4)]


def test_new_time_signature_uses_adapted_rhythm (arrangement: arranger.arrangement.Arrangement) -> None:

	"""A 3/4 section after swing plays swing adapted to 3/4."""

	arrangement.leadsheet.add_section("Waltz", THREE_FOUR, 8)
	waltz = arrangement.song_structure.parts[-1]

	assert isinstance(waltz.rhythm, arranger.rhythm.AdaptedRhythm)
	assert waltz.rhythm.time_signature == THREE_FOUR
	assert waltz.rhythm.source.unique_id == "jazz-swing-44"


def test_section_time_signature_change_replaces_parts (arrangement: arranger.arrangement.Arrangement) -> None:

	ls = arrangement.leadsheet
	b = ls.get_section_by_name("B")
	old_part = arrangement.song_structure.parts[1]

	ls.set_section_time_signature(b, THREE_FOUR)
	new_part = arrangement.song_structure.parts[1]

	assert new_part is not old_part
	assert new_part.rhythm.time_signature == THREE_FOUR
	assert new_part.parent_section is b


def test_section_rename_renames_parts (arrangement: arranger.arrangement.Arrangement) -> None:

	ls = arrangement.leadsheet
	ls.set_section_name(ls.get_section_by_name("B"), "Chorus")

	assert _parts(arrangement)[1] == ("Chorus", 4, 8)


def test_user_renamed_part_keeps_its_name (arrangement: arranger.arrangement.Arrangement) -> None:

	sgs = arrangement.song_structure
	sgs.set_parts_name([sgs.parts[1]], "Solo")

	ls = arrangement.leadsheet
	ls.set_section_name(ls.get_section_by_name("B"), "Chorus")

	assert _parts(arrangement)[1] == ("Solo", 4, 8)


def test_move_section_resizes_neighbours (arrangement: arranger.arrangement.Arrangement) -> None:

	ls = arrangement.leadsheet
	ls.move_section(ls.get_section_by_name("B"), 6)

	assert _parts(arrangement) == [("A", 0, 6), ("B", 6, 6)]


def test_big_move_backward (arrangement: arranger.arrangement.Arrangement) -> None:

	"""A section moved before another one gets its parts re-created after its new predecessor."""

	ls = arrangement.leadsheet
	ls.add_section("C", FOUR_FOUR, 8)
	ls.move_section(ls.get_section_by_name("C"), 2)

	assert _parts(arrangement) == [("A", 0, 2), ("C", 2, 2), ("B", 4, 8)]
	assert arrangement.song_structure.parts[1].parent_section is ls.get_section_by_name("C")


def test_big_move_forward (arrangement: arranger.arrangement.Arrangement) -> None:

	ls = arrangement.leadsheet
	ls.add_section("C", FOUR_FOUR, 8)
	ls.move_section(ls.get_section_by_name("B"), 10)

	assert _parts(arrangement) == [("A", 0, 8), ("C", 8, 2), ("B", 10, 2)]


def test_middle_bars_deleted_before_waltz (arrangement: arranger.arrangement.Arrangement) -> None:

	"""A/B/C with C in 3/4: C keeps its 3/4 part wherever B's bars go."""

	ls = arrangement.leadsheet
	ls.add_section("C", THREE_FOUR, 8)

	assert _parts(arrangement) == [("A", 0, 4), ("B", 4, 4), ("C", 8, 4)]
	assert [p.rhythm.time_signature for p in arrangement.song_structure.parts] == [FOUR_FOUR, FOUR_FOUR, THREE_FOUR]

	ls.delete_bars(4, 7)

	assert _parts(arrangement) == [("A", 0, 4), ("C", 4, 4)]
	assert arrangement.song_structure.parts[1].rhythm.time_signature == THREE_FOUR


def test_middle_section_removed_before_waltz (arrangement: arranger.arrangement.Arrangement) -> None:

	ls = arrangement.leadsheet
	ls.add_section("C", THREE_FOUR, 8)
	ls.remove_section(ls.get_section_by_name("B"))

	assert _parts(arrangement) == [("A", 0, 8), ("C", 8, 4)]
	assert arrangement.song_structure.parts[1].rhythm.time_signature == THREE_FOUR


def test_inserted_initial_bars_without_catalog_rhythm (monkeypatch: pytest.MonkeyPatch, db: arranger.rhythm_database.RhythmDatabase) -> None:

	"""With no rhythm for the time signature, the new initial part plays a stub rhythm."""

	five_four = arranger.rhythm.TimeSignature(5, 4)
	arrangement = arranger.arrangement.Arrangement("Take Five", arranger.leadsheet.LeadSheet("A", five_four, 8), db)
	monkeypatch.setattr(arrangement.song_structure, "last_used_rhythm", lambda ts: None)

	arrangement.leadsheet.insert_bars(0, 2)
	parts = arrangement.song_structure.parts

	assert _parts(arrangement) == [("_A", 0, 2), ("A", 2, 8)]
	assert parts[0].rhythm is db.get_stub_rhythm_instance(five_four)


def test_size_change_resizes_last_part (arrangement: arranger.arrangement.Arrangement) -> None:

	arrangement.leadsheet.set_size_in_bars(16)

	assert _parts(arrangement) == [("A", 0, 4), ("B", 4, 12)]


def test_insert_bars_at_start (arrangement: arranger.arrangement.Arrangement) -> None:

	"""The original first part follows the copied section; a new part covers the inserted bars."""

	first_part = arrangement.song_structure.parts[0]
	arrangement.leadsheet.insert_bars(0, 2)
	parts = arrangement.song_structure.parts

	assert _parts(arrangement) == [("_A", 0, 2), ("A", 2, 4), ("B", 6, 8)]
	assert parts[0].parent_section is arrangement.leadsheet.sections[0]
	assert parts[1].parent_section is arrangement.leadsheet.get_section_by_name("A")
	assert parts[1].handle != first_part.handle


def test_delete_bars_shifts_parts (arrangement: arranger.arrangement.Arrangement) -> None:

	arrangement.leadsheet.delete_bars(1, 2)

	assert _parts(arrangement) == [("A", 0, 2), ("B", 2, 8)]


def test_delete_bars_removes_section_parts (arrangement: arranger.arrangement.Arrangement) -> None:

	"""A section starting inside the deleted bars disappears with its parts."""

	arrangement.leadsheet.delete_bars(2, 5)

	assert _parts(arrangement) == [("A", 0, 8)]


def test_song_structure_veto_blocks_lead_sheet (arrangement: arranger.arrangement.Arrangement) -> None:

	"""A song structure listener refusing new parts makes the lead sheet refuse the section."""

	def no_additions (event: arranger.song_structure.SgsChangeEvent) -> arranger.event_emitter.Verdict:

		if isinstance(event, arranger.song_structure.PartsAddedEvent):
			return arranger.event_emitter.Verdict.reject("Full")

		return arranger.event_emitter.Verdict.ok()

	arrangement.song_structure.events.on_authorize("change", no_additions)

	with pytest.raises(arranger.errors.UnsupportedEditError):
		arrangement.leadsheet.add_section("C", FOUR_FOUR, 8)

	assert [s.name for s in arrangement.leadsheet.sections] == ["A", "B"]
	assert _parts(arrangement) == [("A", 0, 4), ("B", 4, 8)]


def test_undo_restores_lead_sheet_and_parts (arrangement: arranger.arrangement.Arrangement) -> None:

	"""One lead sheet action and the part changes it caused are undone together."""

	parts_before = arrangement.song_structure.parts

	arrangement.leadsheet.add_section("C", THREE_FOUR, 8)
	arrangement.undo_manager.undo()

	assert [s.name for s in arrangement.leadsheet.sections] == ["A", "B"]
	assert arrangement.song_structure.parts == parts_before
	assert _parts(arrangement) == [("A", 0, 4), ("B", 4, 8)]

	arrangement.undo_manager.redo()

	assert _parts(arrangement) == [("A", 0, 4), ("B", 4, 4), ("C", 8, 4)]


def test_detached_updater_ignores_lead_sheet (arrangement: arranger.arrangement.Arrangement) -> None:

	arrangement.close()
	arrangement.leadsheet.add_section("C", FOUR_FOUR, 8)

	assert _parts(arrangement) == [("A", 0, 4), ("B", 4, 8)]
