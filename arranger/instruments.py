"""Instruments and per-channel mix settings.

An :class:`InstrumentMix` is the payload of one mix channel: an
:class:`Instrument` plus :class:`InstrumentSettings` (volume, pan, effects,
transposition, velocity shift) and the mute/solo flags. Mixes are compared by
identity and carry a stable ``handle`` so tables can key them by integer.
"""

import dataclasses
import itertools
import logging
import typing

import mido

import arranger.constants.gm_instruments
import arranger.constants.midi
import arranger.event_emitter
import arranger.rhythm


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class DrumKit:

	"""A drum kit and the name of the note map it follows."""

	name: str = "Standard"
	key_map: str = "GM"


@dataclasses.dataclass(frozen=True)
class Instrument:

	"""
	A sound selectable on a MIDI synth.

	Attributes:
		name: Display name.
		program: 0-indexed program number, or ``None`` for the void instrument
			(no program change is ever sent).
		bank_msb: Bank select MSB (CC 0).
		bank_lsb: Bank select LSB (CC 32).
		drum_kit: Set for drum kits.
	"""

	name: str
	program: typing.Optional[int]
	bank_msb: int = 0
	bank_lsb: int = 0
	drum_kit: typing.Optional[DrumKit] = None

	@property
	def family (self) -> typing.Optional[str]:

		"""GM1 family name of a melodic instrument, else ``None``."""

		if self.program is None or self.drum_kit is not None:
			return None

		return arranger.constants.gm_instruments.family_of(self.program)

	@property
	def is_void (self) -> bool:

		return self.program is None

	def midi_messages (self, channel: int) -> typing.List[mido.Message]:

		"""Bank select and program change messages selecting this instrument."""

		if self.program is None:
			return []

		return [
			mido.Message("control_change", channel=channel, control=arranger.constants.midi.CC_BANK_SELECT_MSB, value=self.bank_msb),
			mido.Message("control_change", channel=channel, control=arranger.constants.midi.CC_BANK_SELECT_LSB, value=self.bank_lsb),
			mido.Message("program_change", channel=channel, program=self.program),
		]


VOID_INSTRUMENT = Instrument("Void", None)
GM_DRUM_KIT = Instrument("GM Standard Kit", 0, drum_kit=DrumKit())


def gm_instrument (program: int) -> Instrument:

	"""Return the GM1 bank instrument for a 0-indexed program number."""

	names = arranger.constants.gm_instruments.GM_PROGRAM_NAMES

	if not 0 <= program < len(names):
		raise ValueError(f"Invalid GM program {program}")

	return Instrument(names[program], program)


def _check_range (name: str, value: int, low: int, high: int) -> int:

	if not isinstance(value, int) or isinstance(value, bool) or not low <= value <= high:
		raise ValueError(f"{name} must be an int in [{low}, {high}], got {value!r}")

	return value


def _setting (name: str) -> property:

	"""Property reading and writing one entry of ``InstrumentSettings``."""

	return property(lambda self: self._values[name], lambda self, value: self.set(name, value))


class InstrumentSettings:

	"""
	Volume, pan, effects and performance offsets of one channel.

	Every change emits ``"change"`` with ``(settings, name, old, new)``.
	"""

	_RANGES: typing.Dict[str, typing.Tuple[int, int]] = {
		"volume": (arranger.constants.midi.VALUE_MIN, arranger.constants.midi.VALUE_MAX),
		"panoramic": (arranger.constants.midi.VALUE_MIN, arranger.constants.midi.VALUE_MAX),
		"reverb": (arranger.constants.midi.VALUE_MIN, arranger.constants.midi.VALUE_MAX),
		"chorus": (arranger.constants.midi.VALUE_MIN, arranger.constants.midi.VALUE_MAX),
		"transposition": (arranger.constants.midi.TRANSPOSITION_MIN, arranger.constants.midi.TRANSPOSITION_MAX),
		"velocity_shift": (arranger.constants.midi.VELOCITY_SHIFT_MIN, arranger.constants.midi.VELOCITY_SHIFT_MAX),
	}

	_FLAGS = ("volume_enabled", "panoramic_enabled", "reverb_enabled", "chorus_enabled")

	def __init__ (
		self,
		volume: int = arranger.constants.midi.VOLUME_STD,
		panoramic: int = arranger.constants.midi.PAN_STD,
		reverb: int = arranger.constants.midi.REVERB_STD,
		chorus: int = arranger.constants.midi.CHORUS_STD,
		transposition: int = 0,
		velocity_shift: int = 0
	) -> None:

		self.events = arranger.event_emitter.EventEmitter()
		self.container: typing.Optional["InstrumentMix"] = None

		self._values: typing.Dict[str, typing.Any] = {}

		for name, value in (
			("volume", volume),
			("panoramic", panoramic),
			("reverb", reverb),
			("chorus", chorus),
			("transposition", transposition),
			("velocity_shift", velocity_shift),
		):
			low, high = self._RANGES[name]
			self._values[name] = _check_range(name, value, low, high)

		for flag in self._FLAGS:
			self._values[flag] = True

	def get (self, name: str) -> typing.Any:

		return self._values[name]

	def set (self, name: str, value: typing.Any) -> None:

		"""
		Change one setting. No event is emitted if the value is unchanged.

		Raises ``ValueError`` for an unknown name or an out-of-range value.
		"""

		if name in self._RANGES:
			low, high = self._RANGES[name]
			_check_range(name, value, low, high)

		elif name in self._FLAGS:
			value = bool(value)

		else:
			raise ValueError(f"Unknown instrument setting {name!r}")

		old = self._values[name]

		if old == value:
			return

		self._values[name] = value
		self.events.emit_sync("change", self, name, old, value)

	volume = _setting("volume")
	panoramic = _setting("panoramic")
	reverb = _setting("reverb")
	chorus = _setting("chorus")
	transposition = _setting("transposition")
	velocity_shift = _setting("velocity_shift")
	volume_enabled = _setting("volume_enabled")
	panoramic_enabled = _setting("panoramic_enabled")
	reverb_enabled = _setting("reverb_enabled")
	chorus_enabled = _setting("chorus_enabled")

	def set_from (self, other: "InstrumentSettings") -> None:

		"""Copy every value of ``other`` into this object, emitting changes."""

		for name in list(self._RANGES) + list(self._FLAGS):
			self.set(name, other.get(name))

	def copy (self) -> "InstrumentSettings":

		result = InstrumentSettings()
		result._values = dict(self._values)
		return result

	def to_dict (self) -> typing.Dict[str, typing.Any]:

		return dict(self._values)

	@classmethod
	def from_dict (cls, data: typing.Dict[str, typing.Any]) -> "InstrumentSettings":

		"""Build settings from ``to_dict()`` output; missing keys keep defaults."""

		result = cls()

		for name, value in data.items():
			result.set(name, value)

		return result

	def midi_messages (self, channel: int) -> typing.List[mido.Message]:

		"""Control change messages for every enabled setting."""

		messages = []

		for name, control in (
			("volume", arranger.constants.midi.CC_VOLUME),
			("panoramic", arranger.constants.midi.CC_PAN),
			("reverb", arranger.constants.midi.CC_REVERB),
			("chorus", arranger.constants.midi.CC_CHORUS),
		):
			if self._values[f"{name}_enabled"]:
				messages.append(mido.Message("control_change", channel=channel, control=control, value=self._values[name]))

		return messages

	def __repr__ (self) -> str:

		return f"InstrumentSettings({self._values})"


class InstrumentMix:

	"""
	An instrument with its settings and mute/solo flags.

	Events (all emitted with the mix as first argument):
		``"mute"``: ``(mix, value)``
		``"solo"``: ``(mix, value)``
		``"instrument"``: ``(mix, old_instrument, new_instrument)``
		``"instrument_enabled"``: ``(mix, value)``
	"""

	_handles = itertools.count(1)

	def __init__ (self, instrument: Instrument, settings: typing.Optional[InstrumentSettings] = None) -> None:

		self.handle = next(InstrumentMix._handles)
		self.events = arranger.event_emitter.EventEmitter()

		self._instrument = instrument
		self._mute = False
		self._solo = False
		self._instrument_enabled = True

		self.settings = settings if settings is not None else InstrumentSettings()
		self.settings.container = self

	@property
	def instrument (self) -> Instrument:

		return self._instrument

	@instrument.setter
	def instrument (self, instrument: Instrument) -> None:

		old = self._instrument

		if old == instrument:
			return

		self._instrument = instrument
		self.events.emit_sync("instrument", self, old, instrument)

	@property
	def mute (self) -> bool:

		return self._mute

	@mute.setter
	def mute (self, value: bool) -> None:

		value = bool(value)

		if value == self._mute:
			return

		self._mute = value
		self.events.emit_sync("mute", self, value)

	@property
	def solo (self) -> bool:

		return self._solo

	@solo.setter
	def solo (self, value: bool) -> None:

		value = bool(value)

		if value == self._solo:
			return

		self._solo = value
		self.events.emit_sync("solo", self, value)

	@property
	def instrument_enabled (self) -> bool:

		return self._instrument_enabled

	@instrument_enabled.setter
	def instrument_enabled (self, value: bool) -> None:

		value = bool(value)

		if value == self._instrument_enabled:
			return

		self._instrument_enabled = value
		self.events.emit_sync("instrument_enabled", self, value)

	def copy (self) -> "InstrumentMix":

		"""Return a new mix with the same instrument, settings and mute flag (never soloed)."""

		result = InstrumentMix(self._instrument, self.settings.copy())
		result._mute = self._mute
		result._instrument_enabled = self._instrument_enabled
		return result

	def midi_messages (self, channel: int) -> typing.List[mido.Message]:

		"""All messages needed to set up ``channel`` for this mix."""

		messages: typing.List[mido.Message] = []

		if self._instrument_enabled:
			messages.extend(self._instrument.midi_messages(channel))

		messages.extend(self.settings.midi_messages(channel))
		return messages

	def __repr__ (self) -> str:

		return f"InstrumentMix(#{self.handle} {self._instrument.name}{' mute' if self._mute else ''}{' solo' if self._solo else ''})"


class InstrumentProvider:

	"""
	Picks a default instrument for a voice.

	Uses the voice's preferred GM program when it has one, otherwise a GM
	program typical of the voice type. Drum voices get the GM drum kit when
	they sit on the drums channel and the void instrument elsewhere (they are
	then rerouted to the drums channel).
	"""

	_TYPE_PROGRAMS: typing.Dict[arranger.rhythm.RhythmVoiceType, int] = {
		arranger.rhythm.RhythmVoiceType.BASS: arranger.constants.gm_instruments.ACOUSTIC_BASS,
		arranger.rhythm.RhythmVoiceType.CHORD: arranger.constants.gm_instruments.ACOUSTIC_GRAND_PIANO,
		arranger.rhythm.RhythmVoiceType.PAD: arranger.constants.gm_instruments.STRING_ENSEMBLE_1,
		arranger.rhythm.RhythmVoiceType.MELODY: arranger.constants.gm_instruments.TENOR_SAX,
		arranger.rhythm.RhythmVoiceType.PHRASE: arranger.constants.gm_instruments.ACOUSTIC_GRAND_PIANO,
		arranger.rhythm.RhythmVoiceType.OTHER: arranger.constants.gm_instruments.ACOUSTIC_GRAND_PIANO,
	}

	def find_instrument (self, voice: arranger.rhythm.RhythmVoice, channel: typing.Optional[int] = None) -> Instrument:

		if voice.is_drums:

			if channel is None or channel == arranger.constants.midi.CHANNEL_DRUMS:
				return GM_DRUM_KIT

			return VOID_INSTRUMENT

		if voice.preferred_program is not None:
			return gm_instrument(voice.preferred_program)

		return gm_instrument(self._TYPE_PROGRAMS[voice.type])

	def default_settings (self, voice: arranger.rhythm.RhythmVoice) -> InstrumentSettings:

		if voice.is_drums:
			return InstrumentSettings(volume=arranger.constants.midi.VOLUME_DRUMS_STD)

		return InstrumentSettings()
