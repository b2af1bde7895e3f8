"""The arrangement: a lead sheet, its part timeline and the user phrases.

An :class:`Arrangement` owns one :class:`arranger.undo.UndoManager` shared by
every component, so one user action on the lead sheet is undone together
with the part and channel changes it caused.

User phrase changes are proposed on ``events`` before they happen and
emitted after:
	``"user_phrase"``: ``(name, old_phrase, new_phrase)``, a phrase added
	(``old_phrase`` is ``None``) or removed (``new_phrase`` is ``None``)
	``"user_phrase_content"``: ``(name, old_phrase, new_phrase)``
	``"user_phrase_name"``: ``(old_name, new_name)``
"""

import dataclasses
import logging
import os
import threading
import typing

import yaml

import arranger.event_emitter
import arranger.leadsheet
import arranger.rhythm
import arranger.rhythm_database
import arranger.sgs_updater
import arranger.song_structure
import arranger.undo


logger = logging.getLogger(__name__)


MIX_FILE_SUFFIX = ".mix.yaml"


@dataclasses.dataclass
class PhraseNote:

	"""
	A note of a user phrase.
	"""

	pitch: int
	velocity: int
	position: float		# In natural beats from the song start
	duration: float


@dataclasses.dataclass
class Phrase:

	"""
	Notes played on a user channel, independent of the rhythms.
	"""

	channel: int
	drums: bool = False
	notes: typing.List[PhraseNote] = dataclasses.field(default_factory=list)

	def add_note (self, pitch: int, velocity: int, position: float, duration: float) -> None:

		self.notes.append(PhraseNote(pitch, velocity, position, duration))
		self.notes.sort(key=lambda n: n.position)


class Arrangement:

	"""
	A song being arranged.

	Example:
		```python
		db = arranger.rhythm_database.RhythmDatabase.with_defaults()
		leadsheet = arranger.leadsheet.LeadSheet("A", arranger.rhythm.TimeSignature(4, 4), 16)
		arrangement = arranger.arrangement.Arrangement("Blue Bossa", leadsheet, db)
		arrangement.set_user_phrase("Riff", arranger.arrangement.Phrase(0))
		```
	"""

	def __init__ (
		self,
		name: str,
		leadsheet: arranger.leadsheet.LeadSheet,
		rhythm_database: arranger.rhythm_database.RhythmDatabase,
		undo_manager: typing.Optional[arranger.undo.UndoManager] = None
	) -> None:

		self.name = name
		self.leadsheet = leadsheet
		self.rhythm_database = rhythm_database
		self.undo_manager = undo_manager if undo_manager is not None else arranger.undo.UndoManager()
		self.events = arranger.event_emitter.EventEmitter()
		self.file_path: typing.Optional[str] = None

		self._lock = threading.RLock()
		self._phrases: typing.Dict[str, Phrase] = {}

		self.song_structure = arranger.song_structure.SongStructure.from_leadsheet(leadsheet, rhythm_database)

		leadsheet.undo_manager = self.undo_manager
		self.song_structure.undo_manager = self.undo_manager
		self.sgs_updater = arranger.sgs_updater.SgsUpdater(self.song_structure, leadsheet)

		logger.info(f"Created arrangement {name!r} with {len(self.song_structure.parts)} parts")

	@property
	def mix_file_path (self) -> typing.Optional[str]:

		"""The mix file saved alongside the song file, if the song has one."""

		if self.file_path is None:
			return None

		return os.path.splitext(self.file_path)[0] + MIX_FILE_SUFFIX

	def close (self) -> None:

		"""Stop following the lead sheet."""

		self.sgs_updater.detach()

	# ─── User phrases ────────────────────────────────────────────────

	@property
	def user_phrase_names (self) -> typing.List[str]:

		with self._lock:
			return list(self._phrases)

	def user_phrase (self, name: str) -> typing.Optional[Phrase]:

		with self._lock:
			return self._phrases.get(name)

	def set_user_phrase (self, name: str, phrase: Phrase) -> None:

		"""
		Add a user phrase, or replace the notes of an existing one.

		Raises ``UnsupportedEditError`` if a listener rejects the change, e.g.
		when no MIDI channel is left for a new phrase.
		"""

		logger.debug(f"set_user_phrase() name={name!r} phrase={phrase}")

		if not name:
			raise ValueError("Empty user phrase name")

		with self._lock:

			old = self._phrases.get(name)

			if old is phrase:
				return

			event_name = "user_phrase" if old is None else "user_phrase_content"
			self.events.propose(event_name, name, old, phrase).raise_if_rejected()

			with arranger.undo.optional_compound(self.undo_manager, f"Set user phrase {name}"):
				self._phrases[name] = phrase
				self._edit_happened(f"Set user phrase {name}", "phrase_set", (name, old), (name, phrase))
				self.events.emit_sync(event_name, name, old, phrase)

	def remove_user_phrase (self, name: str) -> Phrase:

		"""
		Remove a user phrase and return it.

		Raises ``KeyError`` for an unknown name and ``UnsupportedEditError`` if
		a listener rejects the change.
		"""

		logger.debug(f"remove_user_phrase() name={name!r}")

		with self._lock:

			phrase = self._phrases[name]
			self.events.propose("user_phrase", name, phrase, None).raise_if_rejected()

			with arranger.undo.optional_compound(self.undo_manager, f"Remove user phrase {name}"):
				del self._phrases[name]
				self._edit_happened(f"Remove user phrase {name}", "phrase_set", (name, phrase), (name, None))
				self.events.emit_sync("user_phrase", name, phrase, None)

			return phrase

	def rename_user_phrase (self, old_name: str, new_name: str) -> None:

		"""
		Rename a user phrase, keeping its channel.

		Raises ``KeyError`` for an unknown name, ``ValueError`` if ``new_name``
		is taken, and ``UnsupportedEditError`` if a listener rejects the change.
		"""

		logger.debug(f"rename_user_phrase() {old_name!r} -> {new_name!r}")

		with self._lock:

			if old_name not in self._phrases:
				raise KeyError(old_name)

			if old_name == new_name:
				return

			if not new_name or new_name in self._phrases:
				raise ValueError(f"Invalid or used user phrase name {new_name!r}")

			self.events.propose("user_phrase_name", old_name, new_name).raise_if_rejected()

			with arranger.undo.optional_compound(self.undo_manager, f"Rename user phrase {old_name}"):
				self._rename(old_name, new_name)
				self._edit_happened(f"Rename user phrase {old_name}", "phrase_rename", (new_name, old_name), (old_name, new_name))
				self.events.emit_sync("user_phrase_name", old_name, new_name)

	# ─── Undo replay ─────────────────────────────────────────────────

	def replay_edit (self, edit: arranger.undo.UndoableEdit, state: typing.Any, forward: bool) -> None:

		with self._lock:

			if edit.kind == "phrase_set":

				name, phrase = state
				current = self._phrases.get(name)

				if phrase is None:
					self._phrases.pop(name, None)
				else:
					self._phrases[name] = phrase

				if current is not None and phrase is not None:
					self.events.emit_sync("user_phrase_content", name, current, phrase)
				else:
					self.events.emit_sync("user_phrase", name, current, phrase)

			elif edit.kind == "phrase_rename":

				from_name, to_name = state
				self._rename(from_name, to_name)
				self.events.emit_sync("user_phrase_name", from_name, to_name)

			else:
				raise ValueError(f"Unknown edit kind {edit.kind!r}")

	def _rename (self, old_name: str, new_name: str) -> None:

		# Keep insertion order so user channels list in a stable order
		self._phrases = {(new_name if k == old_name else k): v for k, v in self._phrases.items()}

	def _edit_happened (self, name: str, kind: str, before: typing.Any, after: typing.Any) -> None:

		self.undo_manager.edit_happened(arranger.undo.UndoableEdit(name, self, kind, before, after))

	def __repr__ (self) -> str:

		return f"Arrangement({self.name!r})"


def load_arrangement (path: str, rhythm_database: arranger.rhythm_database.RhythmDatabase) -> Arrangement:

	"""
	Build an arrangement from a YAML song file.

	The file holds ``name``, ``bars``, ``time_signature`` and a list of
	``sections``, each with ``name``, ``bar`` and optionally
	``time_signature`` and a ``rhythm`` id. ``user_phrases`` maps phrase
	names to ``{drums: bool}``.

	Raises ``ValueError`` on a malformed song file and
	``UnavailableRhythmError`` on an unknown rhythm id.
	"""

	with open(path, "r") as file:
		data = yaml.safe_load(file)

	if not isinstance(data, dict) or not isinstance(data.get("sections"), list) or not data["sections"]:
		raise ValueError(f"{path}: a song needs a list of sections")

	default_ts = arranger.rhythm.TimeSignature.parse(str(data.get("time_signature", "4/4")))
	sections = sorted(data["sections"], key=lambda s: int(s.get("bar", 0)))

	if int(sections[0].get("bar", 0)) != 0:
		raise ValueError(f"{path}: the first section must start at bar 0")

	def section_ts (section: typing.Dict[str, typing.Any]) -> arranger.rhythm.TimeSignature:
		return arranger.rhythm.TimeSignature.parse(str(section["time_signature"])) if "time_signature" in section else default_ts

	leadsheet = arranger.leadsheet.LeadSheet(str(sections[0]["name"]), section_ts(sections[0]), int(data.get("bars", 4)))

	for section in sections[1:]:
		leadsheet.add_section(str(section["name"]), section_ts(section), int(section["bar"]))

	arrangement = Arrangement(str(data.get("name", os.path.basename(path))), leadsheet, rhythm_database)
	arrangement.file_path = path
	sgs = arrangement.song_structure

	for section in sections:

		if "rhythm" not in section:
			continue

		rhythm = rhythm_database.get_rhythm_instance(str(section["rhythm"]))
		old_parts = sgs.get_parts(lambda p: p.parent_section is not None and p.parent_section.name == str(section["name"]))
		new_parts = [p.copy(rhythm, p.start_bar, p.nb_bars, p.parent_section) for p in old_parts]
		sgs.replace_parts(old_parts, new_parts)

	for name, options in (data.get("user_phrases") or {}).items():
		drums = bool((options or {}).get("drums", False))
		arrangement.set_user_phrase(str(name), Phrase(0, drums))

	arrangement.undo_manager.discard_all_edits()
	logger.info(f"Loaded {arrangement!r} from {path}")
	return arrangement
