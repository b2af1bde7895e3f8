import pathlib

import pytest

import arranger.arrangement
import arranger.errors
import arranger.event_emitter
import arranger.rhythm
import arranger.rhythm_database


SONG = """\
name: Blue Waltz
bars: 16
time_signature: 4/4
sections:
  - {name: Intro, bar: 0}
  - {name: Theme, bar: 4, rhythm: bossa-nova-44}
  - {name: Waltz, bar: 12, time_signature: 3/4}
user_phrases:
  Riff: {}
  Beat: {drums: true}
"""


def test_mix_file_path (arrangement: arranger.arrangement.Arrangement) -> None:

	assert arrangement.mix_file_path is None

	arrangement.file_path = "/songs/blue.yaml"

	assert arrangement.mix_file_path == "/songs/blue.mix.yaml"


def test_user_phrase_lifecycle (arrangement: arranger.arrangement.Arrangement) -> None:

	received = []
	arrangement.events.on("user_phrase", lambda name, old, new: received.append((name, old is None, new is None)))

	phrase = arranger.arrangement.Phrase(0)
	arrangement.set_user_phrase("Riff", phrase)
	arrangement.rename_user_phrase("Riff", "Hook")

	assert arrangement.user_phrase_names == ["Hook"]
	assert arrangement.user_phrase("Hook") is phrase
	assert arrangement.remove_user_phrase("Hook") is phrase
	assert received == [("Riff", True, False), ("Hook", False, True)]


def test_user_phrase_content_change (arrangement: arranger.arrangement.Arrangement) -> None:

	changes = []
	arrangement.events.on("user_phrase_content", lambda name, old, new: changes.append(name))

	arrangement.set_user_phrase("Riff", arranger.arrangement.Phrase(0))
	arrangement.set_user_phrase("Riff", arranger.arrangement.Phrase(0))

	assert changes == ["Riff"]


def test_user_phrase_errors (arrangement: arranger.arrangement.Arrangement) -> None:

	arrangement.set_user_phrase("Riff", arranger.arrangement.Phrase(0))
	arrangement.set_user_phrase("Hook", arranger.arrangement.Phrase(0))

	with pytest.raises(KeyError):
		arrangement.remove_user_phrase("Nothing")

	with pytest.raises(ValueError):
		arrangement.rename_user_phrase("Riff", "Hook")

	with pytest.raises(ValueError):
		arrangement.set_user_phrase("", arranger.arrangement.Phrase(0))


def test_rejected_phrase_is_not_added (arrangement: arranger.arrangement.Arrangement) -> None:

	arrangement.events.on_authorize("user_phrase", lambda name, old, new: arranger.event_emitter.Verdict.reject("No room"))

	with pytest.raises(arranger.errors.UnsupportedEditError):
		arrangement.set_user_phrase("Riff", arranger.arrangement.Phrase(0))

	assert arrangement.user_phrase_names == []


def test_rename_undo (arrangement: arranger.arrangement.Arrangement) -> None:

	arrangement.set_user_phrase("Riff", arranger.arrangement.Phrase(0))
	arrangement.set_user_phrase("Hook", arranger.arrangement.Phrase(0))
	arrangement.rename_user_phrase("Riff", "Lick")
	arrangement.undo_manager.undo()

	assert arrangement.user_phrase_names == ["Riff", "Hook"]


def test_phrase_notes_stay_sorted () -> None:

	phrase = arranger.arrangement.Phrase(0)
	phrase.add_note(60, 100, 2.0, 1.0)
	phrase.add_note(64, 90, 0.5, 0.5)

	assert [n.pitch for n in phrase.notes] == [64, 60]


def test_load_arrangement (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase) -> None:

	path = tmp_path / "blue.yaml"
	path.write_text(SONG)

	arrangement = arranger.arrangement.load_arrangement(str(path), db)
	parts = arrangement.song_structure.parts

	assert arrangement.name == "Blue Waltz"
	assert arrangement.file_path == str(path)
	assert [(p.name, p.start_bar, p.nb_bars) for p in parts] == [("Intro", 0, 4), ("Theme", 4, 8), ("Waltz", 12, 4)]
	assert parts[0].rhythm.unique_id == "jazz-swing-44"
	assert parts[1].rhythm.unique_id == "bossa-nova-44"
	assert isinstance(parts[2].rhythm, arranger.rhythm.AdaptedRhythm)
	assert arrangement.user_phrase("Beat").drums
	assert not arrangement.undo_manager.can_undo()


def test_load_arrangement_needs_sections (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase) -> None:

	path = tmp_path / "empty.yaml"
	path.write_text("name: Nothing\n")

	with pytest.raises(ValueError):
		arranger.arrangement.load_arrangement(str(path), db)


def test_load_arrangement_unknown_rhythm (tmp_path: pathlib.Path, db: arranger.rhythm_database.RhythmDatabase) -> None:

	path = tmp_path / "polka.yaml"
	path.write_text("sections:\n  - {name: A, bar: 0, rhythm: polka-24}\n")

	with pytest.raises(arranger.errors.UnavailableRhythmError):
		arranger.arrangement.load_arrangement(str(path), db)
