"""The part timeline derived from a lead sheet.

A :class:`SongStructure` owns an ordered, contiguous list of :class:`Part`
objects. Part 0 starts at bar 0 and every part starts where the previous one
ends; start bars are maintained here and never set by callers.

Parts live in an arena keyed by a stable integer ``handle``. The ordered part
list, the undo records and the change events all refer to parts by handle, so
a part removed and later restored by undo is the very same object.

Changes that may alter the set of rhythms (add, remove, replace) are proposed
to ``events`` authorize callbacks first; a rejection raises
``UnsupportedEditError`` before anything is modified.
"""

import contextlib
import dataclasses
import itertools
import logging
import threading
import typing

import arranger.errors
import arranger.event_emitter
import arranger.leadsheet
import arranger.rhythm
import arranger.rhythm_database
import arranger.undo


logger = logging.getLogger(__name__)


LEADSHEET_ACTION = "leadsheet_action"


class Part:

	"""
	A bar range of the song played with one rhythm.

	Attributes:
		handle: Stable integer id, unique across all parts.
		rhythm: The rhythm played in this part.
		parent_section: The lead sheet section this part was created for.
		properties: Free-form client properties.
	"""

	_handles = itertools.count(1)

	def __init__ (
		self,
		rhythm: arranger.rhythm.Rhythm,
		start_bar: int,
		nb_bars: int,
		parent_section: typing.Optional[arranger.leadsheet.SectionItem] = None,
		name: typing.Optional[str] = None
	) -> None:

		if start_bar < 0 or nb_bars < 1:
			raise ValueError(f"Invalid part bars start={start_bar} size={nb_bars}")

		if parent_section is not None and parent_section.time_signature != rhythm.time_signature:
			raise ValueError(f"{rhythm!r} does not match the time signature of {parent_section}")

		self.handle = next(Part._handles)
		self.rhythm = rhythm
		self.parent_section = parent_section
		self.properties: typing.Dict[str, typing.Any] = {}
		self.container: typing.Optional["SongStructure"] = None

		self._start_bar = start_bar
		self._nb_bars = nb_bars
		self._name = name if name is not None else (parent_section.name if parent_section is not None else rhythm.name)
		self._rp_values: typing.Dict[str, typing.Any] = {rp.id: rp.default for rp in rhythm.parameters}

	@property
	def start_bar (self) -> int:

		return self._start_bar

	@property
	def nb_bars (self) -> int:

		return self._nb_bars

	@property
	def name (self) -> str:

		return self._name

	@property
	def bar_range (self) -> range:

		return range(self._start_bar, self._start_bar + self._nb_bars)

	def get_rp_value (self, parameter: arranger.rhythm.RhythmParameter) -> typing.Any:

		return self._rp_values[parameter.id]

	def copy (
		self,
		rhythm: typing.Optional[arranger.rhythm.Rhythm],
		start_bar: int,
		nb_bars: int,
		parent_section: typing.Optional[arranger.leadsheet.SectionItem]
	) -> "Part":

		"""
		Return a new part with this part's name, properties and parameter values.

		If ``rhythm`` is given and differs from ours, values of compatible
		rhythm parameters are converted; the others keep their defaults.
		"""

		new_rhythm = rhythm if rhythm is not None else self.rhythm
		result = Part(new_rhythm, start_bar, nb_bars, parent_section, self._name)
		result.container = self.container
		result.properties = dict(self.properties)

		if new_rhythm is self.rhythm:
			result._rp_values = dict(self._rp_values)
			return result

		for new_rp in new_rhythm.parameters:

			old_rp = next((rp for rp in self.rhythm.parameters if new_rp.is_compatible_with(rp)), None)

			if old_rp is not None:
				result._rp_values[new_rp.id] = new_rp.convert_value(old_rp, self._rp_values[old_rp.id])

		return result

	def __repr__ (self) -> str:

		return f"Part(#{self.handle} {self._name!r} {self.rhythm.unique_id} [{self._start_bar}:{self._start_bar + self._nb_bars}])"


# ─── Change events ───────────────────────────────────────────────────

@dataclasses.dataclass
class SgsChangeEvent:

	source: "SongStructure"

	@property
	def music_affecting (self) -> bool:

		return True


@dataclasses.dataclass
class PartsAddedEvent (SgsChangeEvent):

	parts: typing.List[Part]


@dataclasses.dataclass
class PartsRemovedEvent (SgsChangeEvent):

	parts: typing.List[Part]


@dataclasses.dataclass
class PartsReplacedEvent (SgsChangeEvent):

	old_parts: typing.List[Part]
	new_parts: typing.List[Part]


@dataclasses.dataclass
class PartsResizedEvent (SgsChangeEvent):

	"""``old_sizes`` maps part handles to their size before the change."""

	old_sizes: typing.Dict[int, int]


@dataclasses.dataclass
class PartsRenamedEvent (SgsChangeEvent):

	parts: typing.List[Part]

	@property
	def music_affecting (self) -> bool:

		return False


@dataclasses.dataclass
class RpValueChangedEvent (SgsChangeEvent):

	part: Part
	parameter: arranger.rhythm.RhythmParameter
	old_value: typing.Any
	new_value: typing.Any


@dataclasses.dataclass
class SgsActionEvent (SgsChangeEvent):

	"""
	Start (``complete=False``) or end of one public operation.

	``sub_events`` collects the change events fired while the action is open.
	"""

	action_id: str
	data: typing.Any
	complete: bool = False
	sub_events: typing.List[SgsChangeEvent] = dataclasses.field(default_factory=list)

	@property
	def music_affecting (self) -> bool:

		return any(e.music_affecting for e in self.sub_events)


@dataclasses.dataclass(frozen=True)
class PartsSnapshot:

	"""Undo record state: part order and last-used rhythms, plus the parts concerned."""

	order: typing.Tuple[int, ...]
	last_rhythms: typing.Dict[arranger.rhythm.TimeSignature, arranger.rhythm.Rhythm]
	handles: typing.Tuple[int, ...]


class SongStructure:

	"""
	Ordered, contiguous, non-overlapping parts.

	Example:
		```python
		sgs = arranger.song_structure.SongStructure.from_leadsheet(leadsheet, db)
		first = sgs.parts[0]
		sgs.resize_parts({first.handle: 8})
		```
	"""

	def __init__ (
		self,
		db: arranger.rhythm_database.RhythmDatabase,
		leadsheet: typing.Optional[arranger.leadsheet.LeadSheet] = None
	) -> None:

		self.db = db
		self.leadsheet = leadsheet
		self.events = arranger.event_emitter.EventEmitter()
		self.undo_manager: typing.Optional[arranger.undo.UndoManager] = None

		self._lock = threading.RLock()
		self._arena: typing.Dict[int, Part] = {}
		self._order: typing.List[int] = []
		self._last_rhythms: typing.Dict[arranger.rhythm.TimeSignature, arranger.rhythm.Rhythm] = {}
		self._active_action: typing.Optional[SgsActionEvent] = None

	@classmethod
	def from_leadsheet (
		cls,
		leadsheet: arranger.leadsheet.LeadSheet,
		db: arranger.rhythm_database.RhythmDatabase
	) -> "SongStructure":

		"""Build a song structure with one part per lead sheet section."""

		sgs = cls(db, leadsheet)

		for section in leadsheet.sections:
			rhythm = sgs.recommended_rhythm(section.time_signature, sgs.size_in_bars)
			part = sgs.create_part(rhythm, section.name, sgs.size_in_bars, len(leadsheet.get_bar_range(section)), section, False)
			sgs.add_parts([part])

		return sgs

	def deep_copy (self, leadsheet: typing.Optional[arranger.leadsheet.LeadSheet] = None) -> "SongStructure":

		"""
		Return a copy with new parts. Parent sections are looked up by name in ``leadsheet``.
		"""

		with self._lock:

			result = SongStructure(self.db, leadsheet)

			for part in self.parts:

				parent = None

				if part.parent_section is not None and leadsheet is not None:
					parent = leadsheet.get_section_by_name(part.parent_section.name)

				new_part = part.copy(None, part.start_bar, part.nb_bars, parent)
				new_part.container = result
				result._arena[new_part.handle] = new_part
				result._order.append(new_part.handle)

			result._last_rhythms = dict(self._last_rhythms)
			return result

	# ─── Queries ─────────────────────────────────────────────────────

	@property
	def parts (self) -> typing.List[Part]:

		with self._lock:
			return [self._arena[h] for h in self._order]

	@property
	def size_in_bars (self) -> int:

		with self._lock:
			return sum(self._arena[h].nb_bars for h in self._order)

	def part_by_handle (self, handle: int) -> Part:

		return self._arena[handle]

	def get_part (self, bar: int) -> typing.Optional[Part]:

		"""Return the part containing ``bar``."""

		with self._lock:
			return next((p for p in self.parts if bar in p.bar_range), None)

	def get_parts (self, predicate: typing.Callable[[Part], bool]) -> typing.List[Part]:

		with self._lock:
			return [p for p in self.parts if predicate(p)]

	def unique_rhythms (self, exclude_adapted: bool = False, exclude_implicit_source: bool = False) -> typing.List[arranger.rhythm.Rhythm]:

		"""
		Return the rhythms used by the parts, in part order.

		The source rhythm of an adapted rhythm is included even when no part
		uses it directly (an "implicit" source), unless ``exclude_implicit_source``.
		"""

		with self._lock:

			used = [p.rhythm for p in self.parts]
			result: typing.List[arranger.rhythm.Rhythm] = []

			for rhythm in used:

				if rhythm in result:
					continue

				if isinstance(rhythm, arranger.rhythm.AdaptedRhythm):

					if not exclude_adapted:
						result.append(rhythm)

					if not exclude_implicit_source and rhythm.source not in used and rhythm.source not in result:
						result.append(rhythm.source)

				else:
					result.append(rhythm)

			return result

	def unique_rhythm_voices (self) -> typing.List[arranger.rhythm.RhythmVoice]:

		"""Return the voices of every source rhythm in use."""

		voices: typing.List[arranger.rhythm.RhythmVoice] = []

		for rhythm in self.unique_rhythms(exclude_adapted=True):
			voices.extend(rv for rv in rhythm.voices if not any(rv is v for v in voices))

		return voices

	def unique_time_signatures (self) -> typing.List[arranger.rhythm.TimeSignature]:

		result: typing.List[arranger.rhythm.TimeSignature] = []

		for part in self.parts:
			if part.rhythm.time_signature not in result:
				result.append(part.rhythm.time_signature)

		return result

	def last_used_rhythm (self, ts: arranger.rhythm.TimeSignature) -> typing.Optional[arranger.rhythm.Rhythm]:

		with self._lock:
			return self._last_rhythms.get(ts)

	def recommended_rhythm (self, ts: arranger.rhythm.TimeSignature, bar: int) -> arranger.rhythm.Rhythm:

		"""
		Pick a rhythm for a new part at ``bar`` in time signature ``ts``.

		Tries the last rhythm used for ``ts``, then the ``ts`` adaptation of
		the rhythm playing just before ``bar``, then the catalog default for
		``ts``. Falls back to a stub rhythm if the catalog has nothing.
		"""

		with self._lock:

			if bar < 0 or bar > self.size_in_bars:
				raise ValueError(f"Invalid bar {bar} for size {self.size_in_bars}")

			rhythm: typing.Optional[arranger.rhythm.Rhythm] = self.last_used_rhythm(ts)

			if rhythm is None and self._order:
				current = self.get_part(bar - 1 if bar > 0 else bar)
				assert current is not None
				rhythm = self.db.get_adapted_rhythm_instance(arranger.rhythm.source_rhythm(current.rhythm), ts)

			if rhythm is None:

				try:
					rhythm = self.db.get_default_rhythm(ts)

				except arranger.errors.UnavailableRhythmError as e:
					logger.warning(f"No rhythm available for {ts}, using a stub rhythm: {e}")
					rhythm = self.db.get_stub_rhythm_instance(ts)

			logger.debug(f"recommended_rhythm() ts={ts} bar={bar} -> {rhythm!r}")
			return rhythm

	def to_position_in_natural_beats (self, bar: int) -> float:

		"""Return the position of the start of ``bar`` in quarter-note beats."""

		with self._lock:

			if not 0 <= bar <= self.size_in_bars:
				raise ValueError(f"Invalid bar {bar} for size {self.size_in_bars}")

			beats = 0.0

			for part in self.parts:

				natural = part.rhythm.time_signature.natural_beats

				if bar in part.bar_range:
					return beats + (bar - part.start_bar) * natural

				beats += part.nb_bars * natural

			return beats

	def create_part (
		self,
		rhythm: arranger.rhythm.Rhythm,
		name: str,
		start_bar: int,
		nb_bars: int,
		parent_section: typing.Optional[arranger.leadsheet.SectionItem],
		reuse_prev_values: bool
	) -> Part:

		"""
		Create a part ready to be passed to ``add_parts()``.

		With ``reuse_prev_values``, the part copies the parameter values of the
		part playing just before ``start_bar``.
		"""

		with self._lock:

			previous = self.get_part(start_bar - 1) if start_bar > 0 and reuse_prev_values else None

			if previous is not None:
				part = previous.copy(rhythm, start_bar, nb_bars, parent_section)
			else:
				part = Part(rhythm, start_bar, nb_bars, parent_section)
				part.container = self

			part._name = name
			return part

	# ─── Authorization ───────────────────────────────────────────────

	def authorize_add_parts (self, parts: typing.List[Part]) -> arranger.event_emitter.Verdict:

		return self.events.propose("change", PartsAddedEvent(self, list(parts)))

	def authorize_remove_parts (self, parts: typing.List[Part]) -> arranger.event_emitter.Verdict:

		return self.events.propose("change", PartsRemovedEvent(self, list(parts)))

	def authorize_replace_parts (self, old_parts: typing.List[Part], new_parts: typing.List[Part]) -> arranger.event_emitter.Verdict:

		return self.events.propose("change", PartsReplacedEvent(self, list(old_parts), list(new_parts)))

	# ─── Mutators ────────────────────────────────────────────────────

	def add_parts (self, parts: typing.List[Part]) -> None:

		"""
		Insert parts. Each part's ``start_bar`` must be the start of an
		existing part, or the end of the song.

		Raises ``UnsupportedEditError`` if a listener rejects the change.
		"""

		logger.debug(f"add_parts() parts={parts}")

		if not parts:
			return

		with self._lock:

			for part in parts:
				if part.handle in self._order:
					raise ValueError(f"{part} already in song structure")

			self.authorize_add_parts(parts).raise_if_rejected()

			with arranger.undo.optional_compound(self.undo_manager, "Add parts"):

				with self._action("add_parts", list(parts)):

					for part in parts:
						self._add_part_impl(part)

			self.ensure_adapted_rhythms()

	def remove_parts (self, parts: typing.List[Part]) -> None:

		"""
		Remove parts; the following parts move back to stay contiguous.

		Raises ``UnsupportedEditError`` if a listener rejects the change.
		"""

		logger.debug(f"remove_parts() parts={parts}")

		if not parts:
			return

		with self._lock:

			for part in parts:
				if part.handle not in self._order:
					raise ValueError(f"{part} not in song structure")

			self.authorize_remove_parts(parts).raise_if_rejected()

			with arranger.undo.optional_compound(self.undo_manager, "Remove parts"):

				with self._action("remove_parts", list(parts)):

					before = self._snapshot(parts)

					for part in parts:
						self._order.remove(part.handle)

					self._update_start_bars()
					self._edit_happened("Remove parts", "remove", before, self._snapshot(parts))
					self._fire(PartsRemovedEvent(self, list(parts)))

	def replace_parts (self, old_parts: typing.List[Part], new_parts: typing.List[Part]) -> None:

		"""
		Replace parts one for one. Replacement parts must cover the same bars.

		All replacements are authorized together, so changing the rhythm of
		several parts at once is accepted when the end result fits.

		Raises ``UnsupportedEditError`` if a listener rejects the change.
		"""

		logger.debug(f"replace_parts() old_parts={old_parts} new_parts={new_parts}")

		if len(old_parts) != len(new_parts):
			raise ValueError(f"Part lists differ in size: {old_parts} {new_parts}")

		with self._lock:

			for old, new in zip(old_parts, new_parts):

				if (
					old.handle not in self._order
					or (old is not new and new.handle in self._order)
					or old.start_bar != new.start_bar
					or old.nb_bars != new.nb_bars
				):
					raise ValueError(f"Invalid replacement {old} -> {new}")

			if all(old is new for old, new in zip(old_parts, new_parts)):
				return

			self.authorize_replace_parts(old_parts, new_parts).raise_if_rejected()

			with arranger.undo.optional_compound(self.undo_manager, "Replace parts"):

				with self._action("replace_parts", list(new_parts)):

					before = self._snapshot(old_parts)

					for old, new in zip(old_parts, new_parts):
						self._arena[new.handle] = new
						self._order[self._order.index(old.handle)] = new.handle
						new.container = self
						self._last_rhythms[new.rhythm.time_signature] = new.rhythm

					self._edit_happened("Replace parts", "replace", before, self._snapshot(new_parts))
					self._fire(PartsReplacedEvent(self, list(old_parts), list(new_parts)))

			self.ensure_adapted_rhythms()

	def resize_parts (self, sizes: typing.Dict[int, int]) -> None:

		"""
		Change part sizes, given as a part handle to size mapping.

		Resizing never changes the rhythms in use, so it is not proposed to
		authorize callbacks.
		"""

		logger.debug(f"resize_parts() sizes={sizes}")

		with self._lock:

			for handle, size in sizes.items():
				if handle not in self._order or size < 1:
					raise ValueError(f"Invalid resize of part #{handle} to {size}")

			old_sizes = {h: self._arena[h].nb_bars for h in sizes}

			if old_sizes == sizes:
				return

			with arranger.undo.optional_compound(self.undo_manager, "Resize parts"):

				with self._action("resize_parts", dict(sizes)):

					self._apply_sizes(sizes)
					self._edit_happened("Resize parts", "resize", old_sizes, dict(sizes))
					self._fire(PartsResizedEvent(self, old_sizes))

	def set_parts_name (self, parts: typing.List[Part], name: str) -> None:

		"""Rename parts. Does nothing if they already all have this name."""

		with self._lock:

			if not parts or all(p.name == name for p in parts):
				return

			with arranger.undo.optional_compound(self.undo_manager, "Rename parts"):

				with self._action("set_parts_name", list(parts)):

					old_names = {p.handle: p.name for p in parts}

					for part in parts:
						part._name = name

					self._edit_happened("Rename parts", "rename", old_names, {p.handle: name for p in parts})
					self._fire(PartsRenamedEvent(self, list(parts)))

	def set_rhythm_parameter_value (self, part: Part, parameter: arranger.rhythm.RhythmParameter, value: typing.Any) -> None:

		"""Set the value of a rhythm parameter of one part."""

		with self._lock:

			if part.handle not in self._order or parameter not in part.rhythm.parameters:
				raise ValueError(f"Invalid parameter {parameter.id!r} for {part}")

			if not parameter.is_valid_value(value):
				raise ValueError(f"Invalid value {value!r} for parameter {parameter.id!r}")

			old_value = part.get_rp_value(parameter)

			if old_value == value:
				return

			with arranger.undo.optional_compound(self.undo_manager, f"Set {parameter.id}"):

				with self._action("set_rhythm_parameter_value", parameter):

					part._rp_values[parameter.id] = value
					self._edit_happened(f"Set {parameter.id}", "rp_value", (part.handle, parameter, old_value), (part.handle, parameter, value))
					self._fire(RpValueChangedEvent(self, part, parameter, old_value, value))

	def fire_leadsheet_action (self, event: arranger.leadsheet.LeadSheetActionEvent) -> None:

		"""
		Mirror a lead sheet action so the part changes it causes are grouped
		in one ``SgsActionEvent``.
		"""

		with self._lock:

			if not event.complete:

				if self._active_action is None:
					self._action_start(LEADSHEET_ACTION, event)

			elif self._active_action is not None and self._active_action.action_id == LEADSHEET_ACTION:
				self._action_complete(LEADSHEET_ACTION)

	def ensure_adapted_rhythms (self) -> None:

		"""Create in the catalog every time signature adaptation of every rhythm in use."""

		signatures = {r.time_signature for r in self.unique_rhythms(False, True)}

		for rhythm in self.unique_rhythms(True, False):
			for ts in signatures:
				if ts != rhythm.time_signature and self.db.get_adapted_rhythm_instance(rhythm, ts) is None:
					logger.debug(f"No {ts} adaptation for {rhythm!r}")

	# ─── Undo replay ─────────────────────────────────────────────────

	def replay_edit (self, edit: arranger.undo.UndoableEdit, state: typing.Any, forward: bool) -> None:

		"""Restore ``state`` recorded by ``edit`` and re-fire the matching event."""

		with self._lock:

			if edit.kind in ("add", "remove", "replace"):

				self._order = list(state.order)
				self._last_rhythms = dict(state.last_rhythms)
				self._update_start_bars()

				for handle in state.order:
					self._arena[handle].container = self

				parts = [self._arena[h] for h in edit.after.handles]

				if edit.kind == "replace":
					old = [self._arena[h] for h in edit.before.handles]
					self._fire(PartsReplacedEvent(self, old, parts) if forward else PartsReplacedEvent(self, parts, old))

				elif (edit.kind == "add") == forward:
					self._fire(PartsAddedEvent(self, parts))

				else:
					self._fire(PartsRemovedEvent(self, parts))

			elif edit.kind == "resize":

				other = edit.before if forward else edit.after
				self._apply_sizes(state)
				self._fire(PartsResizedEvent(self, dict(other)))

			elif edit.kind == "rename":

				for handle, name in state.items():
					self._arena[handle]._name = name

				self._fire(PartsRenamedEvent(self, [self._arena[h] for h in state]))

			elif edit.kind == "rp_value":

				handle, parameter, value = state
				other = (edit.before if forward else edit.after)[2]
				part = self._arena[handle]
				part._rp_values[parameter.id] = value
				self._fire(RpValueChangedEvent(self, part, parameter, other, value))

			elif edit.kind in ("action_start", "action_complete"):

				action_id, data = edit.after
				opening = (edit.kind == "action_start") == forward

				if opening:
					self._active_action = SgsActionEvent(self, action_id, data)
					self._fire(self._active_action)

				elif self._active_action is not None:
					self._active_action.complete = True
					self._fire(self._active_action)
					self._active_action = None

			else:
				raise ValueError(f"Unknown edit kind {edit.kind!r}")

	# ─── Internals ───────────────────────────────────────────────────

	def _add_part_impl (self, part: Part) -> None:

		size = self.size_in_bars
		bar = part.start_bar

		if bar > size:
			raise ValueError(f"{part} starts after the end of the song ({size} bars)")

		before = self._snapshot([part])

		if bar == size:
			index = len(self._order)

		else:
			current = self.get_part(bar)
			assert current is not None

			if current.start_bar != bar:
				raise ValueError(f"{part} does not start at a part boundary ({current})")

			index = self._order.index(current.handle)

		self._arena[part.handle] = part
		self._order.insert(index, part.handle)
		part.container = self
		self._last_rhythms[part.rhythm.time_signature] = part.rhythm
		self._update_start_bars()

		self._edit_happened(f"Add part {part.name}", "add", before, self._snapshot([part]))
		self._fire(PartsAddedEvent(self, [part]))

	def _apply_sizes (self, sizes: typing.Dict[int, int]) -> None:

		for handle, size in sizes.items():
			self._arena[handle]._nb_bars = size

		self._update_start_bars()

	def _update_start_bars (self) -> None:

		bar = 0

		for handle in self._order:
			part = self._arena[handle]
			part._start_bar = bar
			bar += part.nb_bars

	def _snapshot (self, parts: typing.List[Part]) -> PartsSnapshot:

		return PartsSnapshot(tuple(self._order), dict(self._last_rhythms), tuple(p.handle for p in parts))

	def _fire (self, event: SgsChangeEvent) -> None:

		if not isinstance(event, SgsActionEvent) and self._active_action is not None:
			self._active_action.sub_events.append(event)

		self.events.emit_sync("change", event)

	@contextlib.contextmanager
	def _action (self, action_id: str, data: typing.Any) -> typing.Iterator[None]:

		if self._active_action is not None:
			yield
			return

		self._action_start(action_id, data)

		try:
			yield

		finally:
			self._action_complete(action_id)

	def _action_start (self, action_id: str, data: typing.Any) -> None:

		self._edit_happened(f"Action {action_id}", "action_start", None, (action_id, data))
		self._active_action = SgsActionEvent(self, action_id, data)
		self._fire(self._active_action)

	def _action_complete (self, action_id: str) -> None:

		action = self._active_action
		assert action is not None and action.action_id == action_id, action_id

		self._edit_happened(f"Action {action_id}", "action_complete", None, (action_id, action.data))
		action.complete = True
		self._fire(action)
		self._active_action = None

	def _edit_happened (self, name: str, kind: str, before: typing.Any, after: typing.Any) -> None:

		if self.undo_manager is not None:
			self.undo_manager.edit_happened(arranger.undo.UndoableEdit(name, self, kind, before, after))

	def __repr__ (self) -> str:

		return f"SongStructure({self.parts})"
