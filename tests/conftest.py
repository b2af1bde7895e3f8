import typing

import mido
import pytest

import arranger.arrangement
import arranger.leadsheet
import arranger.midimix
import arranger.midimix_manager
import arranger.rhythm
import arranger.rhythm_database


class FakeMidiOut:

	"""Minimal MIDI output stub for tests, recording what is sent."""

	def __init__ (self) -> None:

		self.sent: typing.List[mido.Message] = []
		self.closed = False

	def send (self, message: mido.Message) -> None:

		"""Record an outgoing MIDI message."""

		self.sent.append(message)

	def close (self) -> None:

		"""Mark the fake device closed."""

		self.closed = True


# Module-level reference so tests can access the most recently opened FakeMidiOut.
_current_fake_output: typing.Optional[FakeMidiOut] = None


def _fake_get_output_names () -> typing.List[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global _current_fake_output
	fake = FakeMidiOut()
	_current_fake_output = fake
	return fake


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output for all tests that need it."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


def rhythm_definition (unique_id: str, ts: str, nb_voices: int) -> typing.Dict[str, typing.Any]:

	"""Catalog entry with a drums voice on channel 9 and chord voices on channels 0, 1, 2..."""

	voices = [{"name": "Drums", "type": "drums", "channel": 9}]
	voices.extend({"name": f"Voice {i}", "type": "chord", "channel": i} for i in range(nb_voices - 1))

	return {"id": unique_id, "name": unique_id, "time_signature": ts, "voices": voices}


FOUR_FOUR = arranger.rhythm.TimeSignature(4, 4)
THREE_FOUR = arranger.rhythm.TimeSignature(3, 4)


@pytest.fixture
def db () -> arranger.rhythm_database.RhythmDatabase:

	"""The default rhythm catalog: jazz swing and bossa nova in 4/4, jazz waltz in 3/4."""

	return arranger.rhythm_database.RhythmDatabase.with_defaults()


@pytest.fixture
def leadsheet () -> arranger.leadsheet.LeadSheet:

	"""A 12 bar 4/4 lead sheet: A at bar 0, B at bar 4."""

	ls = arranger.leadsheet.LeadSheet("A", FOUR_FOUR, 12)
	ls.add_section("B", FOUR_FOUR, 4)
	return ls


@pytest.fixture
def arrangement (db: arranger.rhythm_database.RhythmDatabase, leadsheet: arranger.leadsheet.LeadSheet) -> arranger.arrangement.Arrangement:

	"""An arrangement whose two parts play jazz swing."""

	return arranger.arrangement.Arrangement("Test Song", leadsheet, db)


@pytest.fixture
def manager (db: arranger.rhythm_database.RhythmDatabase) -> arranger.midimix_manager.MidiMixManager:

	return arranger.midimix_manager.MidiMixManager(db)


@pytest.fixture
def mix (manager: arranger.midimix_manager.MidiMixManager, arrangement: arranger.arrangement.Arrangement) -> arranger.midimix.MidiMix:

	"""The mix of ``arrangement``: swing drums on 9, bass on 1, piano on 2, guitar on 3."""

	return manager.find_mix(arrangement)
