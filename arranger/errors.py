"""Exceptions raised by the arranger pipeline.

Rejected edits and resource shortages are recoverable: the caller aborts the
user action and reports ``reason``. Broken invariants (a channel outside 0-15,
a foreign part) raise ``ValueError`` instead and are never caught here.
"""


class ArrangerError (Exception):

	"""Base class for all arranger errors."""


class UnsupportedEditError (ArrangerError):

	"""
	An edit was vetoed by a listener before any state was changed.
	"""

	def __init__ (self, reason: str) -> None:

		super().__init__(reason)
		self.reason = reason


class MidiUnavailableError (ArrangerError):

	"""Not enough free MIDI channels to complete the operation."""

	def __init__ (self, reason: str = "Not enough MIDI channels") -> None:

		super().__init__(reason)
		self.reason = reason


class ArrangementCreationError (ArrangerError):

	"""A mix and its arrangement disagree in a way that cannot be repaired."""


class UnavailableRhythmError (ArrangerError):

	"""A rhythm identifier is unknown to the rhythm database."""


class MixFileError (ArrangerError):

	"""A mix file could not be parsed."""
