"""Undo/redo history built from plain data records.

Every mutating call on a lead sheet, part timeline, mix or arrangement
records one :class:`UndoableEdit`. An edit holds the name of the operation,
the object it applies to, and ``before``/``after`` snapshots; undoing or
redoing hands the matching snapshot back to the target's ``replay_edit()``.

Edits produced by one user action are grouped into a :class:`CompoundEdit`
with ``UndoManager.compound()``, so a single ``undo()`` reverts the whole
chain (lead sheet change, derived part changes and channel changes).
"""

import contextlib
import dataclasses
import logging
import typing

import arranger.event_emitter


logger = logging.getLogger(__name__)


class EditTarget (typing.Protocol):

	def replay_edit (self, edit: "UndoableEdit", state: typing.Any, forward: bool) -> None:
		...


@dataclasses.dataclass
class UndoableEdit:

	"""
	One recorded state change.

	Attributes:
		name: Human-readable description of the change.
		target: The object that owns the changed state.
		kind: Operation tag the target dispatches on.
		before: Snapshot restored by ``undo()``.
		after: Snapshot restored by ``redo()``.
	"""

	name: str
	target: EditTarget
	kind: str
	before: typing.Any = None
	after: typing.Any = None

	def undo (self) -> None:

		self.target.replay_edit(self, self.before, False)

	def redo (self) -> None:

		self.target.replay_edit(self, self.after, True)


@dataclasses.dataclass
class CompoundEdit:

	"""A group of edits undone and redone as one unit."""

	name: str
	edits: typing.List[UndoableEdit] = dataclasses.field(default_factory=list)

	def undo (self) -> None:

		for edit in reversed(self.edits):
			edit.undo()

	def redo (self) -> None:

		for edit in self.edits:
			edit.redo()


class UndoManager:

	"""
	Undo/redo stacks of compound edits.

	While ``undo()`` or ``redo()`` runs, ``undo_redo_in_progress`` is True:
	listeners that derive state from notifications must ignore them then,
	because the derived state has its own edits in the same history.
	"""

	def __init__ (self, max_history: int = 100) -> None:

		"""
		Args:
			max_history: Maximum number of compound edits kept for undo.
		"""

		self.max_history = max_history
		self.events = arranger.event_emitter.EventEmitter()

		self._undo_stack: typing.List[CompoundEdit] = []
		self._redo_stack: typing.List[CompoundEdit] = []
		self._current: typing.Optional[CompoundEdit] = None
		self._depth = 0
		self._in_progress = False

	@property
	def undo_redo_in_progress (self) -> bool:

		return self._in_progress

	def start_compound (self, name: str) -> None:

		"""
		Open a compound edit. Nested calls join the outermost one.
		"""

		if self._in_progress:
			raise RuntimeError(f"Can't start compound edit {name!r} during undo/redo")

		if self._depth == 0:
			self._current = CompoundEdit(name)

		self._depth += 1

	def end_compound (self) -> None:

		"""
		Close the current compound edit and push it if it holds any edit.
		"""

		if self._depth == 0:
			raise RuntimeError("No compound edit in progress")

		self._depth -= 1

		if self._depth > 0:
			return

		compound = self._current
		self._current = None

		if compound is not None and compound.edits:
			self._push(compound)

	def abort_compound (self) -> None:

		"""
		Revert and drop the edits recorded in the current compound edit.
		"""

		if self._depth == 0:
			raise RuntimeError("No compound edit in progress")

		compound = self._current
		self._current = None
		self._depth = 0

		if compound is None or not compound.edits:
			return

		logger.warning(f"Aborting compound edit {compound.name!r} ({len(compound.edits)} edits)")

		self._in_progress = True

		try:
			compound.undo()

		finally:
			self._in_progress = False

	@contextlib.contextmanager
	def compound (self, name: str) -> typing.Iterator[None]:

		"""
		Group every edit recorded inside the block into one undo step.

		If the outermost block exits with an exception, its edits are reverted.
		"""

		self.start_compound(name)

		try:
			yield

		except BaseException:

			if self._depth == 1:
				self.abort_compound()
			else:
				self._depth -= 1

			raise

		self.end_compound()

	def edit_happened (self, edit: UndoableEdit) -> None:

		"""
		Record an edit, in the open compound edit if there is one.
		"""

		if self._in_progress:
			return

		logger.debug(f"Edit happened: {edit.name}")

		if self._current is not None:
			self._current.edits.append(edit)
			return

		self._push(CompoundEdit(edit.name, [edit]))

	def undo (self) -> bool:

		"""Undo the last compound edit. Returns True if one was undone."""

		if not self.can_undo():
			return False

		compound = self._undo_stack.pop()
		logger.debug(f"Undo {compound.name!r}")

		self._in_progress = True

		try:
			compound.undo()

		finally:
			self._in_progress = False

		self._redo_stack.append(compound)
		self.events.emit_sync("changed", self)

		return True

	def redo (self) -> bool:

		"""Redo the last undone compound edit. Returns True if one was redone."""

		if not self.can_redo():
			return False

		compound = self._redo_stack.pop()
		logger.debug(f"Redo {compound.name!r}")

		self._in_progress = True

		try:
			compound.redo()

		finally:
			self._in_progress = False

		self._undo_stack.append(compound)
		self.events.emit_sync("changed", self)

		return True

	def can_undo (self) -> bool:

		return self._depth == 0 and len(self._undo_stack) > 0

	def can_redo (self) -> bool:

		return self._depth == 0 and len(self._redo_stack) > 0

	def undo_description (self) -> typing.Optional[str]:

		if self._undo_stack:
			return self._undo_stack[-1].name

		return None

	def redo_description (self) -> typing.Optional[str]:

		if self._redo_stack:
			return self._redo_stack[-1].name

		return None

	def discard_all_edits (self) -> None:

		"""Clear both stacks."""

		self._undo_stack.clear()
		self._redo_stack.clear()
		self.events.emit_sync("changed", self)

	def _push (self, compound: CompoundEdit) -> None:

		self._undo_stack.append(compound)

		if len(self._undo_stack) > self.max_history:
			self._undo_stack.pop(0)

		self._redo_stack.clear()
		self.events.emit_sync("changed", self)


@contextlib.contextmanager
def optional_compound (undo_manager: typing.Optional[UndoManager], name: str) -> typing.Iterator[None]:

	"""Open a compound edit on ``undo_manager`` if there is one."""

	if undo_manager is None or undo_manager.undo_redo_in_progress:
		yield
		return

	with undo_manager.compound(name):
		yield
