"""Section timeline of a song.

A :class:`LeadSheet` is a bar timeline split into named sections, each with a
time signature. The first section always starts at bar 0.

Every change is delivered in two phases on ``events``:

1. ``events.propose("change", event)`` before anything is modified. Any
   rejection aborts the change with ``UnsupportedEditError``.
2. ``events.emit_sync("change", event)`` once the change is applied.

Operations made of several changes (``insert_bars``, ``delete_bars``, ...)
are bracketed by :class:`LeadSheetActionEvent` start/complete notifications;
nested operations are folded into the outermost one.
"""

import contextlib
import dataclasses
import logging
import threading
import typing

import arranger.event_emitter
import arranger.rhythm
import arranger.undo


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Section:

	"""Name and time signature of a section."""

	name: str
	time_signature: arranger.rhythm.TimeSignature


class SectionItem:

	"""
	A section placed on the timeline. Compared by identity.
	"""

	def __init__ (self, data: Section, bar: int) -> None:

		self.data = data
		self.bar = bar
		self.container: typing.Optional["LeadSheet"] = None

	@property
	def name (self) -> str:

		return self.data.name

	@property
	def time_signature (self) -> arranger.rhythm.TimeSignature:

		return self.data.time_signature

	def __repr__ (self) -> str:

		return f"SectionItem({self.data.name!r}, {self.data.time_signature}, bar={self.bar})"


# ─── Change events ───────────────────────────────────────────────────

@dataclasses.dataclass
class LeadSheetEvent:

	source: "LeadSheet"
	items: typing.List[SectionItem]


@dataclasses.dataclass
class ItemAddedEvent (LeadSheetEvent):
	pass


@dataclasses.dataclass
class ItemRemovedEvent (LeadSheetEvent):
	pass


@dataclasses.dataclass
class ItemChangedEvent (LeadSheetEvent):

	old_data: Section
	new_data: Section


@dataclasses.dataclass
class ItemBarShiftedEvent (LeadSheetEvent):

	delta: int


@dataclasses.dataclass
class SectionMovedEvent (LeadSheetEvent):

	old_bar: int
	new_bar: int


@dataclasses.dataclass
class SizeChangedEvent (LeadSheetEvent):

	old_size: int
	new_size: int


@dataclasses.dataclass
class LeadSheetActionEvent (LeadSheetEvent):

	"""Start (``complete=False``) or end of a multi-change operation."""

	action_id: str
	data: typing.Any
	complete: bool = False


class LeadSheet:

	"""
	An ordered timeline of sections.

	Example:
		```python
		ls = arranger.leadsheet.LeadSheet("A", arranger.rhythm.TimeSignature(4, 4), 12)
		ls.add_section("B", arranger.rhythm.TimeSignature(4, 4), 4)
		ls.add_section("C", arranger.rhythm.TimeSignature(3, 4), 8)
		```
	"""

	MAX_SIZE = 1024

	def __init__ (
		self,
		init_section_name: str = "A",
		time_signature: arranger.rhythm.TimeSignature = arranger.rhythm.TimeSignature(4, 4),
		size_in_bars: int = 4
	) -> None:

		if not 1 <= size_in_bars <= self.MAX_SIZE:
			raise ValueError(f"Invalid size {size_in_bars}")

		self.events = arranger.event_emitter.EventEmitter()
		self.undo_manager: typing.Optional[arranger.undo.UndoManager] = None

		self._lock = threading.RLock()
		self._size = size_in_bars
		self._active_action: typing.Optional[LeadSheetActionEvent] = None

		init_section = SectionItem(Section(init_section_name, time_signature), 0)
		init_section.container = self
		self._sections: typing.List[SectionItem] = [init_section]

	# ─── Queries ─────────────────────────────────────────────────────

	@property
	def size_in_bars (self) -> int:

		return self._size

	@property
	def sections (self) -> typing.List[SectionItem]:

		with self._lock:
			return list(self._sections)

	def get_section (self, bar: int) -> typing.Optional[SectionItem]:

		"""Return the section containing ``bar``."""

		with self._lock:

			result = None

			for section in self._sections:

				if section.bar > bar:
					break

				result = section

			return result

	def get_section_by_name (self, name: str) -> typing.Optional[SectionItem]:

		with self._lock:
			return next((s for s in self._sections if s.data.name == name), None)

	def next_section (self, section: SectionItem) -> typing.Optional[SectionItem]:

		with self._lock:
			index = self._index_of(section)
			return self._sections[index + 1] if index + 1 < len(self._sections) else None

	def get_bar_range (self, section: SectionItem) -> range:

		"""Return the bars covered by ``section``."""

		with self._lock:
			following = self.next_section(section)
			end = following.bar if following is not None else self._size
			return range(section.bar, end)

	def contains (self, section: SectionItem) -> bool:

		with self._lock:
			return any(s is section for s in self._sections)

	def deep_copy (self) -> "LeadSheet":

		"""Return an independent lead sheet with equal sections (no listeners)."""

		with self._lock:

			init = self._sections[0]
			result = LeadSheet(init.data.name, init.data.time_signature, self._size)

			for section in self._sections[1:]:
				item = SectionItem(section.data, section.bar)
				item.container = result
				result._sections.append(item)

			return result

	# ─── Mutators ────────────────────────────────────────────────────

	def add_section (self, name: str, time_signature: arranger.rhythm.TimeSignature, bar: int) -> SectionItem:

		"""
		Add a section starting at ``bar``.

		If a section already starts there it is renamed and given the new time
		signature instead, and that section is returned.

		Raises ``UnsupportedEditError`` if a listener rejects the change.
		"""

		logger.debug(f"add_section() name={name!r} ts={time_signature} bar={bar}")

		with self._lock:

			if not 0 <= bar < self._size:
				raise ValueError(f"Bar {bar} outside lead sheet of {self._size} bars")

			same_name = self.get_section_by_name(name)

			if same_name is not None and same_name.bar != bar:
				raise ValueError(f"Section name {name!r} already used at bar {same_name.bar}")

			current = self.get_section(bar)
			assert current is not None

			if current.bar == bar:

				with arranger.undo.optional_compound(self.undo_manager, f"Add section {name}"):
					self.set_section_name(current, name)
					self.set_section_time_signature(current, time_signature)

				return current

			item = SectionItem(Section(name, time_signature), bar)
			event = ItemAddedEvent(self, [item])
			self._authorize(event)

			with arranger.undo.optional_compound(self.undo_manager, f"Add section {name}"):

				with self._action("add_section", item):

					self._insert(item)
					self._edit_happened(f"Add section {name}", "add", None, item)
					self.events.emit_sync("change", event)

			return item

	def remove_section (self, section: SectionItem) -> None:

		"""
		Remove a section. The initial section can't be removed.

		Raises ``UnsupportedEditError`` if a listener rejects the change.
		"""

		logger.debug(f"remove_section() section={section}")

		with self._lock:

			if section.bar == 0:
				raise ValueError(f"Can't remove the initial section {section}")

			self._index_of(section)
			self._remove_section_impl(section)

	def set_section_name (self, section: SectionItem, name: str) -> None:

		"""Rename a section. Names are unique within the lead sheet."""

		with self._lock:

			if section.data.name == name:
				return

			self._index_of(section)

			if self.get_section_by_name(name) is not None:
				raise ValueError(f"Section name {name!r} already used")

			with arranger.undo.optional_compound(self.undo_manager, f"Rename section {section.data.name}"):
				with self._action("set_section_name", section):
					self._change_section(section, Section(name, section.data.time_signature))

	def set_section_time_signature (self, section: SectionItem, time_signature: arranger.rhythm.TimeSignature) -> None:

		"""
		Change the time signature of a section.

		Raises ``UnsupportedEditError`` if a listener rejects the change.
		"""

		with self._lock:

			if section.data.time_signature == time_signature:
				return

			self._index_of(section)

			with arranger.undo.optional_compound(self.undo_manager, f"Set time signature of {section.data.name}"):
				with self._action("set_section_time_signature", section):
					self._change_section(section, Section(section.data.name, time_signature))

	def move_section (self, section: SectionItem, new_bar: int) -> None:

		"""
		Move a section to another bar.

		The initial section can't be moved, and no section may already start
		at ``new_bar``.

		Raises ``UnsupportedEditError`` if a listener rejects the change.
		"""

		logger.debug(f"move_section() section={section} new_bar={new_bar}")

		with self._lock:

			if not 0 < new_bar < self._size:
				raise ValueError(f"Invalid destination bar {new_bar}")

			self._index_of(section)
			old_bar = section.bar

			if new_bar == old_bar:
				return

			at_destination = self.get_section(new_bar)

			if old_bar == 0 or (at_destination is not None and at_destination.bar == new_bar):
				raise ValueError(f"Can't move {section} to bar {new_bar}")

			event = SectionMovedEvent(self, [section], old_bar, new_bar)
			self._authorize(event)

			with arranger.undo.optional_compound(self.undo_manager, f"Move section {section.data.name}"):

				with self._action("move_section", section):

					self._set_bar(section, new_bar)
					self._edit_happened(f"Move section {section.data.name}", "move", (section, old_bar), (section, new_bar))
					self.events.emit_sync("change", event)

	def set_size_in_bars (self, new_size: int) -> None:

		"""
		Change the number of bars. Sections past the new end are removed.

		Raises ``UnsupportedEditError`` if a listener rejects the change.
		"""

		logger.debug(f"set_size_in_bars() new_size={new_size}")

		with self._lock:

			if not 1 <= new_size <= self.MAX_SIZE:
				raise ValueError(f"Invalid size {new_size}")

			old_size = self._size

			if new_size == old_size:
				return

			trailing = [s for s in self._sections if s.bar >= new_size]

			for section in trailing:
				self._authorize(ItemRemovedEvent(self, [section]))

			with arranger.undo.optional_compound(self.undo_manager, f"Set size {new_size}"):

				with self._action("set_size_in_bars", old_size):

					for section in reversed(trailing):
						self._remove_section_impl(section)

					event = SizeChangedEvent(self, [], old_size, new_size)
					self._authorize(event)

					self._size = new_size
					self._edit_happened(f"Set size {new_size}", "size", old_size, new_size)
					self.events.emit_sync("change", event)

	def insert_bars (self, bar: int, nb_bars: int) -> None:

		"""
		Insert ``nb_bars`` empty bars before ``bar``.

		Inserting at bar 0 keeps the initial section's identity at bar 0
		(renamed with a leading underscore) and adds a copy of it right after
		the inserted bars.
		"""

		logger.debug(f"insert_bars() bar={bar} nb_bars={nb_bars}")

		with self._lock:

			if not 0 <= bar <= self._size or nb_bars < 0:
				raise ValueError(f"Invalid insertion bar={bar} nb_bars={nb_bars}")

			if nb_bars == 0:
				return

			with arranger.undo.optional_compound(self.undo_manager, f"Insert {nb_bars} bars"):

				with self._action("insert_bars", bar):

					self.set_size_in_bars(self._size + nb_bars)

					if bar > 0:
						self._shift([s for s in self._sections if s.bar >= bar], nb_bars)

					else:
						init_section = self._sections[0]
						self._shift(self._sections[1:], nb_bars)

						new_name = "_" + init_section.data.name

						while self.get_section_by_name(new_name) is not None:
							new_name = "_" + new_name

						init_data = init_section.data
						self.set_section_name(init_section, new_name)
						self.add_section(init_data.name, init_data.time_signature, nb_bars)

	def delete_bars (self, bar_from: int, bar_to: int) -> None:

		"""
		Delete bars ``bar_from`` to ``bar_to`` inclusive, and their sections.

		Raises ``UnsupportedEditError`` if a listener rejects a section removal.
		"""

		logger.debug(f"delete_bars() bar_from={bar_from} bar_to={bar_to}")

		with self._lock:

			nb_bars = bar_to - bar_from + 1

			if bar_from < 0 or bar_to < bar_from or bar_to >= self._size or nb_bars >= self._size:
				raise ValueError(f"Invalid bar range [{bar_from}, {bar_to}] for size {self._size}")

			init_section = self._sections[0]
			after_section = self.get_section(bar_to + 1) if bar_to + 1 < self._size else None
			remove_init = bar_from == 0 and after_section is not None and after_section.bar == bar_to + 1

			removed = [s for s in self._sections if s is not init_section and bar_from <= s.bar <= bar_to]
			moved = [s for s in self._sections if s.bar > bar_to]

			for section in removed + ([init_section] if remove_init else []):
				self._authorize(ItemRemovedEvent(self, [section]))

			with arranger.undo.optional_compound(self.undo_manager, f"Delete bars {bar_from}-{bar_to}"):

				with self._action("delete_bars", bar_from):

					for section in reversed(removed):
						self._remove_section_impl(section)

					if remove_init:
						self._remove_section_impl(init_section)

					self._shift(moved, -nb_bars)
					self.set_size_in_bars(self._size - nb_bars)

	# ─── Undo replay ─────────────────────────────────────────────────

	def replay_edit (self, edit: arranger.undo.UndoableEdit, state: typing.Any, forward: bool) -> None:

		"""Restore ``state`` recorded by ``edit`` and re-fire the matching notification."""

		with self._lock:

			if edit.kind in ("add", "remove"):

				item = edit.after if edit.kind == "add" else edit.before
				present = (edit.kind == "add") == forward

				if present:
					self._insert(item)
					self.events.emit_sync("change", ItemAddedEvent(self, [item]))
				else:
					self._sections.remove(item)
					self.events.emit_sync("change", ItemRemovedEvent(self, [item]))

			elif edit.kind == "change":

				item, data = state
				other = (edit.before if forward else edit.after)[1]
				item.data = data
				self.events.emit_sync("change", ItemChangedEvent(self, [item], other, data))

			elif edit.kind == "move":

				item, bar = state
				other = (edit.before if forward else edit.after)[1]
				self._set_bar(item, bar)
				self.events.emit_sync("change", SectionMovedEvent(self, [item], other, bar))

			elif edit.kind == "shift":

				items, delta = edit.after
				delta = delta if forward else -delta

				for item in items:
					item.bar += delta

				self._sections.sort(key=lambda s: s.bar)
				self.events.emit_sync("change", ItemBarShiftedEvent(self, list(items), delta))

			elif edit.kind == "size":

				other = edit.before if forward else edit.after
				self._size = state
				self.events.emit_sync("change", SizeChangedEvent(self, [], other, state))

			elif edit.kind in ("action_start", "action_complete"):

				action_id, data = edit.after
				opening = (edit.kind == "action_start") == forward

				if opening:
					self._active_action = LeadSheetActionEvent(self, [], action_id, data)
					self.events.emit_sync("change", self._active_action)
				elif self._active_action is not None:
					self._active_action.complete = True
					self.events.emit_sync("change", self._active_action)
					self._active_action = None

			else:
				raise ValueError(f"Unknown edit kind {edit.kind!r}")

	# ─── Internals ───────────────────────────────────────────────────

	def _index_of (self, section: SectionItem) -> int:

		for index, candidate in enumerate(self._sections):
			if candidate is section:
				return index

		raise ValueError(f"{section} is not in this lead sheet")

	def _insert (self, item: SectionItem) -> None:

		item.container = self
		self._sections.append(item)
		self._sections.sort(key=lambda s: s.bar)

	def _set_bar (self, item: SectionItem, bar: int) -> None:

		item.bar = bar
		self._sections.sort(key=lambda s: s.bar)

	def _authorize (self, event: LeadSheetEvent) -> None:

		self.events.propose("change", event).raise_if_rejected()

	def _remove_section_impl (self, section: SectionItem) -> None:

		event = ItemRemovedEvent(self, [section])
		self._authorize(event)

		with arranger.undo.optional_compound(self.undo_manager, f"Remove section {section.data.name}"):

			with self._action("remove_section", section):

				self._sections.remove(section)
				self._edit_happened(f"Remove section {section.data.name}", "remove", section, None)
				self.events.emit_sync("change", event)

	def _change_section (self, section: SectionItem, new_data: Section) -> None:

		old_data = section.data
		event = ItemChangedEvent(self, [section], old_data, new_data)
		self._authorize(event)

		section.data = new_data
		self._edit_happened(f"Change section {old_data.name}", "change", (section, old_data), (section, new_data))
		self.events.emit_sync("change", event)

	def _shift (self, items: typing.List[SectionItem], delta: int) -> None:

		if not items or delta == 0:
			return

		for item in items:
			item.bar += delta

		self._sections.sort(key=lambda s: s.bar)
		self._edit_happened(f"Shift sections {delta} bars", "shift", (list(items), -delta), (list(items), delta))
		self.events.emit_sync("change", ItemBarShiftedEvent(self, list(items), delta))

	@contextlib.contextmanager
	def _action (self, action_id: str, data: typing.Any) -> typing.Iterator[None]:

		"""Bracket a change with action start/complete events, unless an action is already open."""

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
		self._active_action = LeadSheetActionEvent(self, [], action_id, data)
		self.events.emit_sync("change", self._active_action)

	def _action_complete (self, action_id: str) -> None:

		action = self._active_action
		assert action is not None and action.action_id == action_id, action_id

		self._edit_happened(f"Action {action_id}", "action_complete", None, (action_id, action.data))
		action.complete = True
		self.events.emit_sync("change", action)
		self._active_action = None

	def _edit_happened (self, name: str, kind: str, before: typing.Any, after: typing.Any) -> None:

		if self.undo_manager is not None:
			self.undo_manager.edit_happened(arranger.undo.UndoableEdit(name, self, kind, before, after))

	def __repr__ (self) -> str:

		return f"LeadSheet(size={self._size}, sections={self._sections})"
