import dataclasses
import typing

import arranger.errors


CallbackType = typing.Callable[..., typing.Any]


@dataclasses.dataclass(frozen=True)
class Verdict:

	"""
	Result of a proposed change: accepted, or rejected with a reason.

	Authorize callbacks return a ``Verdict`` (or ``None``, which counts as
	accepted). Nothing raises on the veto path until a public API boundary
	calls ``raise_if_rejected()``.
	"""

	accepted: bool
	reason: str = ""

	@classmethod
	def ok (cls) -> "Verdict":

		"""Return an accepting verdict."""

		return cls(True)

	@classmethod
	def reject (cls, reason: str) -> "Verdict":

		"""Return a rejecting verdict carrying ``reason``."""

		return cls(False, reason)

	def __bool__ (self) -> bool:

		return self.accepted

	def raise_if_rejected (self) -> None:

		"""
		Raise ``UnsupportedEditError`` if this verdict is a rejection.
		"""

		if not self.accepted:
			raise arranger.errors.UnsupportedEditError(self.reason)


class EventEmitter:

	"""
	A simple event emitter with a separate authorize phase.

	``propose()`` asks the authorize callbacks whether a pending change is
	acceptable; ``emit_sync()`` tells the regular callbacks it happened.
	"""

	def __init__ (self) -> None:

		"""
		Initialize empty event registries.
		"""

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}
		self._authorizers: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.
		"""

		if event_name not in self._listeners:
			self._listeners[event_name] = []

		self._listeners[event_name].append(callback)

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if event_name not in self._listeners or callback not in self._listeners[event_name]:
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)


	def on_authorize (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register an authorize callback, consulted by ``propose()``.
		"""

		if event_name not in self._authorizers:
			self._authorizers[event_name] = []

		self._authorizers[event_name].append(callback)

	def off_authorize (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister an authorize callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if event_name not in self._authorizers or callback not in self._authorizers[event_name]:
			raise ValueError(f"Authorize callback not registered for event {event_name!r}")

		self._authorizers[event_name].remove(callback)


	def propose (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> Verdict:

		"""
		Ask every authorize callback to accept a pending change.

		Stops at the first rejection, so later callbacks are not consulted.
		"""

		for callback in list(self._authorizers.get(event_name, [])):

			verdict = callback(*args, **kwargs)

			if verdict is not None and not verdict.accepted:
				return verdict

		return Verdict.ok()


	def emit_sync (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Emit an event and call listeners immediately.
		"""

		if event_name not in self._listeners:
			return

		# Snapshot so a callback may unregister itself
		for callback in list(self._listeners[event_name]):
			callback(*args, **kwargs)
