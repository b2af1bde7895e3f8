"""Keeps a song structure in sync with its lead sheet.

The updater listens to both phases of lead sheet changes: ``authorize()``
checks that the matching part changes would be accepted (the lead sheet has
not changed yet), ``commit()`` applies them (the lead sheet has changed).
"""

import enum
import logging
import typing

import arranger.errors
import arranger.event_emitter
import arranger.leadsheet
import arranger.song_structure


logger = logging.getLogger(__name__)


INSERT_BARS_ACTION = "insert_bars"


class State (enum.Enum):

	DEFAULT = "default"
	INSERT_INIT_BARS = "insert_init_bars"


class SgsUpdater:

	"""
	Translates lead sheet changes into song structure changes.

	Inserting bars at bar 0 produces an unusual sequence of lead sheet events
	(the initial section is renamed, then a copy of it is added after the new
	bars). The updater waits for the insertion to complete and then rebuilds
	the parts of the two first sections in one go.
	"""

	def __init__ (
		self,
		song_structure: arranger.song_structure.SongStructure,
		leadsheet: arranger.leadsheet.LeadSheet
	) -> None:

		self.song_structure = song_structure
		self.leadsheet = leadsheet
		self.state = State.DEFAULT

		leadsheet.events.on_authorize("change", self.authorize)
		leadsheet.events.on("change", self.commit)

	def detach (self) -> None:

		"""Stop listening to the lead sheet."""

		self.leadsheet.events.off_authorize("change", self.authorize)
		self.leadsheet.events.off("change", self.commit)

	def authorize (self, event: arranger.leadsheet.LeadSheetEvent) -> arranger.event_emitter.Verdict:

		"""Check that the song structure accepts the change ``event`` is about to make."""

		if self._undo_redo_in_progress():
			return arranger.event_emitter.Verdict.ok()

		logger.debug(f"authorize() event={event}")

		if self.state != State.DEFAULT:
			return arranger.event_emitter.Verdict.ok()

		sections = event.items

		if isinstance(event, arranger.leadsheet.LeadSheetActionEvent):
			return arranger.event_emitter.Verdict.ok()

		if isinstance(event, arranger.leadsheet.ItemChangedEvent) and sections:
			return self._authorize_section_changed(event, sections[0])

		if isinstance(event, arranger.leadsheet.ItemAddedEvent) and sections:
			return self._authorize_sections_added(sections)

		if isinstance(event, arranger.leadsheet.ItemRemovedEvent) and sections:
			return self._authorize_sections_removed(sections)

		if isinstance(event, arranger.leadsheet.SectionMovedEvent):
			return self._authorize_section_moved(event, sections[0])

		return arranger.event_emitter.Verdict.ok()

	def commit (self, event: arranger.leadsheet.LeadSheetEvent) -> None:

		"""
		Apply the song structure counterpart of a lead sheet change.

		The change was authorized beforehand, so a rejection here is a bug and
		raises ``RuntimeError``.
		"""

		if self._undo_redo_in_progress():
			logger.debug("commit() undo/redo in progress, ignored")
			return

		logger.debug(f"commit() event={event} state={self.state}")

		try:

			if self.state == State.DEFAULT:
				self._commit_default(event)

			elif (
				isinstance(event, arranger.leadsheet.LeadSheetActionEvent)
				and event.action_id == INSERT_BARS_ACTION
				and event.complete
			):
				self._commit_insert_init_bars()
				self.state = State.DEFAULT

		except arranger.errors.UnsupportedEditError as e:
			raise RuntimeError(f"Authorized lead sheet change rejected by song structure: {e.reason}") from e

	# ─── Commit ──────────────────────────────────────────────────────

	def _commit_default (self, event: arranger.leadsheet.LeadSheetEvent) -> None:

		sections = event.items

		if isinstance(event, arranger.leadsheet.LeadSheetActionEvent):

			if event.action_id == INSERT_BARS_ACTION and not event.complete and event.data == 0:
				self.state = State.INSERT_INIT_BARS
			else:
				self.song_structure.fire_leadsheet_action(event)

		elif isinstance(event, arranger.leadsheet.SizeChangedEvent):

			last_section = self.leadsheet.get_section(self.leadsheet.size_in_bars - 1)
			assert last_section is not None
			self.song_structure.resize_parts(self._section_sizes(last_section))

		elif isinstance(event, arranger.leadsheet.ItemBarShiftedEvent) and sections:

			sizes: typing.Dict[int, int] = {}
			first_bar = sections[0].bar

			if first_bar > 0:
				previous = self.leadsheet.get_section(first_bar - 1)
				assert previous is not None
				sizes.update(self._section_sizes(previous))

			last_section = self.leadsheet.get_section(sections[-1].bar)
			assert last_section is not None
			sizes.update(self._section_sizes(last_section))
			self.song_structure.resize_parts(sizes)

		elif isinstance(event, arranger.leadsheet.ItemChangedEvent) and sections:
			self._commit_section_changed(event, sections[0])

		elif isinstance(event, arranger.leadsheet.ItemAddedEvent) and sections:

			for section in sections:

				previous = self.leadsheet.get_section(section.bar - 1) if section.bar > 0 else None
				size = len(self.leadsheet.get_bar_range(section))
				self.song_structure.add_parts([self._create_part_after_section(section, size, previous)])

				if previous is not None:
					self.song_structure.resize_parts(self._section_sizes(previous))

		elif isinstance(event, arranger.leadsheet.ItemRemovedEvent) and sections:

			for section in sections:

				self.song_structure.remove_parts(self._parts_of(section))

				if section.bar > 0:
					previous = self.leadsheet.get_section(section.bar - 1)
					assert previous is not None
					self.song_structure.resize_parts(self._section_sizes(previous))

		elif isinstance(event, arranger.leadsheet.SectionMovedEvent):
			self._commit_section_moved(event, sections[0])

		else:
			logger.debug(f"Lead sheet event not handled: {event}")

	def _commit_section_changed (self, event: arranger.leadsheet.ItemChangedEvent, section: arranger.leadsheet.SectionItem) -> None:

		if event.new_data.time_signature != event.old_data.time_signature:

			old_parts = self._parts_of(section)

			if old_parts:
				rhythm = self.song_structure.recommended_rhythm(event.new_data.time_signature, old_parts[0].start_bar)
				new_parts = [p.copy(rhythm, p.start_bar, p.nb_bars, p.parent_section) for p in old_parts]
				self.song_structure.replace_parts(old_parts, new_parts)

		if event.new_data.name != event.old_data.name:

			# Parts renamed by the user keep their name
			old_name = event.old_data.name.lower()
			parts = [p for p in self._parts_of(section) if p.name.lower() == old_name]
			self.song_structure.set_parts_name(parts, event.new_data.name)

	def _commit_section_moved (self, event: arranger.leadsheet.SectionMovedEvent, section: arranger.leadsheet.SectionItem) -> None:

		new_bar = section.bar
		assert new_bar > 0, section

		previous = self.leadsheet.get_section(new_bar - 1)
		old_bar_section = self.leadsheet.get_section(event.old_bar)
		assert previous is not None and old_bar_section is not None

		sizes: typing.Dict[int, int] = {}

		if old_bar_section is previous or old_bar_section is section:
			# No other section crossed
			sizes.update(self._section_sizes(section))
			sizes.update(self._section_sizes(previous))
			self.song_structure.resize_parts(sizes)
			return

		self.song_structure.remove_parts(self._parts_of(section))
		size = len(self.leadsheet.get_bar_range(section))
		self.song_structure.add_parts([self._create_part_after_section(section, size, previous)])

		sizes.update(self._section_sizes(old_bar_section))
		sizes.update(self._section_sizes(previous))
		self.song_structure.resize_parts(sizes)

	def _commit_insert_init_bars (self) -> None:

		init_section = self.leadsheet.get_section(0)
		assert init_section is not None
		second_section = self.leadsheet.next_section(init_section)
		assert second_section is not None, init_section

		# Parts of the initial section now belong to the section that took its place
		old_parts = self._parts_of(init_section)
		new_parts = [p.copy(None, p.start_bar, p.nb_bars, second_section) for p in old_parts]
		self.song_structure.replace_parts(old_parts, new_parts)

		ts = init_section.time_signature
		rhythm = self.song_structure.last_used_rhythm(ts)

		if rhythm is None:

			try:
				rhythm = self.song_structure.db.get_default_rhythm(ts)

			except arranger.errors.UnavailableRhythmError as e:
				logger.warning(f"No rhythm available for {ts}, using a stub rhythm for the initial part: {e}")
				rhythm = self.song_structure.db.get_stub_rhythm_instance(ts)

		init_part = self.song_structure.create_part(rhythm, init_section.name, 0, second_section.bar, init_section, False)
		self.song_structure.add_parts([init_part])

	# ─── Authorize ───────────────────────────────────────────────────

	def _authorize_section_changed (self, event: arranger.leadsheet.ItemChangedEvent, section: arranger.leadsheet.SectionItem) -> arranger.event_emitter.Verdict:

		if event.new_data.time_signature == event.old_data.time_signature:
			return arranger.event_emitter.Verdict.ok()

		old_parts = self._parts_of(section)

		if not old_parts:
			return arranger.event_emitter.Verdict.ok()

		rhythm = self.song_structure.recommended_rhythm(event.new_data.time_signature, old_parts[0].start_bar)

		# The section still has its old time signature, so no parent section yet
		new_parts = [p.copy(rhythm, p.start_bar, p.nb_bars, None) for p in old_parts]
		return self.song_structure.authorize_replace_parts(old_parts, new_parts)

	def _authorize_sections_added (self, sections: typing.List[arranger.leadsheet.SectionItem]) -> arranger.event_emitter.Verdict:

		for section in sections:

			previous = self.leadsheet.get_section(section.bar - 1) if section.bar > 0 else None
			part = self._create_part_after_section(section, self._virtual_section_size(section.bar), previous)
			verdict = self.song_structure.authorize_add_parts([part])

			if not verdict:
				return verdict

		return arranger.event_emitter.Verdict.ok()

	def _authorize_sections_removed (self, sections: typing.List[arranger.leadsheet.SectionItem]) -> arranger.event_emitter.Verdict:

		for section in sections:

			verdict = self.song_structure.authorize_remove_parts(self._parts_of(section))

			if not verdict:
				return verdict

		return arranger.event_emitter.Verdict.ok()

	def _authorize_section_moved (self, event: arranger.leadsheet.SectionMovedEvent, section: arranger.leadsheet.SectionItem) -> arranger.event_emitter.Verdict:

		new_bar = event.new_bar
		old_bar = event.old_bar

		if new_bar == old_bar:
			return arranger.event_emitter.Verdict.ok()

		if new_bar > old_bar and self.leadsheet.get_section(new_bar) is section:
			return arranger.event_emitter.Verdict.ok()

		if new_bar < old_bar and self.leadsheet.get_section(new_bar) is self.leadsheet.get_section(old_bar - 1):
			return arranger.event_emitter.Verdict.ok()

		verdict = self.song_structure.authorize_remove_parts(self._parts_of(section))

		if not verdict:
			return verdict

		previous = self.leadsheet.get_section(new_bar - 1)
		part = self._create_part_after_section(section, self._virtual_section_size(new_bar), previous)
		return self.song_structure.authorize_add_parts([part])

	# ─── Helpers ─────────────────────────────────────────────────────

	def _undo_redo_in_progress (self) -> bool:

		undo_manager = self.song_structure.undo_manager
		return undo_manager is not None and undo_manager.undo_redo_in_progress

	def _parts_of (self, section: arranger.leadsheet.SectionItem) -> typing.List[arranger.song_structure.Part]:

		return self.song_structure.get_parts(lambda p: p.parent_section is section)

	def _section_sizes (self, section: arranger.leadsheet.SectionItem) -> typing.Dict[int, int]:

		size = len(self.leadsheet.get_bar_range(section))
		return {p.handle: size for p in self._parts_of(section)}

	def _virtual_section_size (self, bar: int) -> int:

		"""Size of a section starting at ``bar`` that is not yet in the lead sheet."""

		current = self.leadsheet.get_section(bar)
		assert current is not None
		return self.leadsheet.get_bar_range(current).stop - bar

	def _create_part_after_section (
		self,
		section: arranger.leadsheet.SectionItem,
		size: int,
		previous: typing.Optional[arranger.leadsheet.SectionItem]
	) -> arranger.song_structure.Part:

		"""
		Create a part for ``section`` placed after the parts of ``previous``.

		The part goes at bar 0 without a previous section, at the end of the
		song if ``previous`` has no part, and otherwise right after the first
		run of consecutive parts of ``previous``.
		"""

		if previous is None:
			bar = 0

		else:
			previous_parts = self._parts_of(previous)

			if not previous_parts:
				bar = self.song_structure.size_in_bars

			else:
				bar = -1

				for i, part in enumerate(previous_parts):

					bar = part.start_bar + part.nb_bars

					if i < len(previous_parts) - 1 and previous_parts[i + 1].start_bar != bar:
						break

		rhythm = self.song_structure.recommended_rhythm(section.time_signature, bar)
		return self.song_structure.create_part(rhythm, section.name, bar, size, section, True)
