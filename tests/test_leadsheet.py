import typing

import pytest

import arranger.errors
import arranger.event_emitter
import arranger.leadsheet
import arranger.undo

from conftest import FOUR_FOUR, THREE_FOUR


def _layout (ls: arranger.leadsheet.LeadSheet) -> typing.List[typing.Tuple[str, int]]:

	return [(s.name, s.bar) for s in ls.sections]


def test_initial_section_covers_all_bars () -> None:

	ls = arranger.leadsheet.LeadSheet("Intro", FOUR_FOUR, 8)

	assert _layout(ls) == [("Intro", 0)]
	assert ls.get_bar_range(ls.sections[0]) == range(0, 8)
	assert ls.get_section(7).name == "Intro"


def test_add_section_splits_ranges (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	c = leadsheet.add_section("C", THREE_FOUR, 8)

	assert _layout(leadsheet) == [("A", 0), ("B", 4), ("C", 8)]
	assert leadsheet.get_bar_range(leadsheet.get_section_by_name("B")) == range(4, 8)
	assert leadsheet.get_section(11) is c


def test_add_section_on_existing_bar_changes_it (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	"""Adding at a bar where a section starts renames and retimes that section."""

	b = leadsheet.get_section_by_name("B")
	result = leadsheet.add_section("Bridge", THREE_FOUR, 4)

	assert result is b
	assert b.name == "Bridge"
	assert b.time_signature == THREE_FOUR


def test_add_section_rejects_duplicate_name (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	with pytest.raises(ValueError):
		leadsheet.add_section("B", FOUR_FOUR, 8)


def test_initial_section_cannot_be_removed_or_moved (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	a = leadsheet.get_section_by_name("A")

	with pytest.raises(ValueError):
		leadsheet.remove_section(a)

	with pytest.raises(ValueError):
		leadsheet.move_section(a, 2)


def test_move_section (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	b = leadsheet.get_section_by_name("B")
	leadsheet.move_section(b, 6)

	assert _layout(leadsheet) == [("A", 0), ("B", 6)]


def test_change_events_are_bracketed (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	"""A mutation is announced between action start and action complete events."""

	received = []
	leadsheet.events.on("change", lambda event: received.append((type(event).__name__, getattr(event, "complete", None))))

	leadsheet.add_section("C", FOUR_FOUR, 8)

	assert received == [
		("LeadSheetActionEvent", False),
		("ItemAddedEvent", None),
		("LeadSheetActionEvent", True),
	]


def test_nested_operations_share_one_action (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	actions = []

	def record (event: arranger.leadsheet.LeadSheetEvent) -> None:

		if isinstance(event, arranger.leadsheet.LeadSheetActionEvent):
			actions.append((event.action_id, event.complete))

	leadsheet.events.on("change", record)
	leadsheet.insert_bars(4, 2)

	assert actions == [("insert_bars", False), ("insert_bars", True)]


def test_insert_bars_in_the_middle (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	leadsheet.insert_bars(2, 3)

	assert leadsheet.size_in_bars == 15
	assert _layout(leadsheet) == [("A", 0), ("B", 7)]


def test_insert_bars_at_start_keeps_initial_section (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	"""The initial section stays at bar 0 under a new name and a copy follows the inserted bars."""

	a = leadsheet.get_section_by_name("A")
	leadsheet.insert_bars(0, 2)

	assert _layout(leadsheet) == [("_A", 0), ("A", 2), ("B", 6)]
	assert leadsheet.sections[0] is a
	assert leadsheet.size_in_bars == 14


def test_delete_bars_removes_sections (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	leadsheet.add_section("C", FOUR_FOUR, 8)
	leadsheet.delete_bars(4, 5)

	assert _layout(leadsheet) == [("A", 0), ("C", 6)]
	assert leadsheet.size_in_bars == 10


def test_delete_bars_replacing_initial_section (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	"""Deleting the whole initial section makes the next one initial."""

	leadsheet.delete_bars(0, 3)

	assert _layout(leadsheet) == [("B", 0)]
	assert leadsheet.size_in_bars == 8


def test_shrinking_removes_trailing_sections (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	leadsheet.set_size_in_bars(4)

	assert _layout(leadsheet) == [("A", 0)]

	with pytest.raises(ValueError):
		leadsheet.set_size_in_bars(0)


def test_rejected_change_leaves_lead_sheet_untouched (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	"""A vetoed change raises before anything is modified or notified."""

	notified = []

	def veto (event: arranger.leadsheet.LeadSheetEvent) -> arranger.event_emitter.Verdict:

		if isinstance(event, arranger.leadsheet.ItemRemovedEvent):
			return arranger.event_emitter.Verdict.reject("Keep B")

		return arranger.event_emitter.Verdict.ok()

	leadsheet.events.on_authorize("change", veto)
	leadsheet.events.on("change", notified.append)

	with pytest.raises(arranger.errors.UnsupportedEditError, match="Keep B"):
		leadsheet.delete_bars(2, 5)

	assert _layout(leadsheet) == [("A", 0), ("B", 4)]
	assert leadsheet.size_in_bars == 12
	assert notified == []


def test_undo_redo_restores_layout (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	manager = arranger.undo.UndoManager()
	leadsheet.undo_manager = manager

	leadsheet.add_section("C", THREE_FOUR, 8)
	leadsheet.insert_bars(0, 2)

	assert manager.undo()
	assert _layout(leadsheet) == [("A", 0), ("B", 4), ("C", 8)]
	assert leadsheet.size_in_bars == 12

	assert manager.undo()
	assert _layout(leadsheet) == [("A", 0), ("B", 4)]

	assert manager.redo()
	assert manager.redo()
	assert _layout(leadsheet) == [("_A", 0), ("A", 2), ("B", 6), ("C", 10)]


def test_deep_copy_is_independent (leadsheet: arranger.leadsheet.LeadSheet) -> None:

	copy = leadsheet.deep_copy()
	copy.add_section("C", FOUR_FOUR, 8)

	assert _layout(leadsheet) == [("A", 0), ("B", 4)]
	assert copy.get_section_by_name("B") is not leadsheet.get_section_by_name("B")
