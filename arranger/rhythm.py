"""Rhythm, voice and rhythm-parameter model.

A :class:`Rhythm` produces one musical line per :class:`RhythmVoice`
("bass", "drums", ...) for a given time signature. An :class:`AdaptedRhythm`
plays a source rhythm in another time signature and shares its voices.
:class:`UserRhythmVoice` belongs to the arrangement itself (a user phrase),
not to any rhythm.

Voices are compared by identity: two voices with the same name in two
rhythms are different voices.
"""

import dataclasses
import enum
import typing


@dataclasses.dataclass(frozen=True)
class TimeSignature:

	"""A time signature such as 4/4 or 3/4."""

	upper: int
	lower: int

	def __post_init__ (self) -> None:

		if self.upper < 1 or self.lower not in (1, 2, 4, 8, 16):
			raise ValueError(f"Invalid time signature {self.upper}/{self.lower}")

	@classmethod
	def parse (cls, text: str) -> "TimeSignature":

		"""
		Parse ``"3/4"`` style text.

		Raises ``ValueError`` on malformed input.
		"""

		parts = text.strip().split("/")

		if len(parts) != 2:
			raise ValueError(f"Invalid time signature {text!r}")

		return cls(int(parts[0]), int(parts[1]))

	@property
	def natural_beats (self) -> float:

		"""Number of quarter-note beats in one bar."""

		return self.upper * 4 / self.lower

	def __str__ (self) -> str:

		return f"{self.upper}/{self.lower}"


class RhythmVoiceType (enum.Enum):

	DRUMS = "drums"
	PERCUSSION = "percussion"
	BASS = "bass"
	CHORD = "chord"
	PAD = "pad"
	MELODY = "melody"
	PHRASE = "phrase"
	OTHER = "other"


class RhythmVoice:

	"""
	One musical line produced by a rhythm.

	Attributes:
		container: The owning rhythm, or ``None`` for a user voice.
		name: Voice name, unique within its rhythm.
		type: The kind of line, used by import heuristics.
		preferred_channel: Channel the voice asks for when a mix is built.
		preferred_program: GM program the voice sounds best with, if any.
	"""

	def __init__ (
		self,
		container: typing.Optional["Rhythm"],
		name: str,
		type: RhythmVoiceType,
		preferred_channel: int = 0,
		preferred_program: typing.Optional[int] = None
	) -> None:

		self.container = container
		self.name = name
		self.type = type
		self.preferred_channel = preferred_channel
		self.preferred_program = preferred_program

	@property
	def is_drums (self) -> bool:

		return self.type in (RhythmVoiceType.DRUMS, RhythmVoiceType.PERCUSSION)

	def __repr__ (self) -> str:

		owner = self.container.unique_id if self.container is not None else "user"
		return f"RhythmVoice({owner}:{self.name})"


class UserRhythmVoice (RhythmVoice):

	"""
	The voice of a user phrase, identified by the phrase name.
	"""

	def __init__ (self, name: str, drums: bool = False) -> None:

		voice_type = RhythmVoiceType.DRUMS if drums else RhythmVoiceType.PHRASE
		super().__init__(None, name, voice_type, preferred_channel=0)

	def __repr__ (self) -> str:

		return f"UserRhythmVoice({self.name}{', drums' if self.is_drums else ''})"


@dataclasses.dataclass(frozen=True)
class RhythmParameter:

	"""
	A named per-part setting of a rhythm, e.g. ``variation`` or ``intensity``.

	Attributes:
		id: Identifier, shared by compatible parameters of different rhythms.
		values: The allowed values, in display order.
		default: The value a new part starts with.
	"""

	id: str
	values: typing.Tuple[typing.Any, ...]
	default: typing.Any

	def __post_init__ (self) -> None:

		if self.default not in self.values:
			raise ValueError(f"Default {self.default!r} not in values of parameter {self.id!r}")

	def is_valid_value (self, value: typing.Any) -> bool:

		return value in self.values

	def is_compatible_with (self, other: "RhythmParameter") -> bool:

		return self.id == other.id

	def convert_value (self, other: "RhythmParameter", value: typing.Any) -> typing.Any:

		"""
		Convert a value of a compatible parameter ``other`` into one of ours.

		Uses the same value if allowed here, otherwise the value at the same
		relative position, otherwise our default.
		"""

		if value in self.values:
			return value

		if value in other.values and len(other.values) > 1:
			ratio = other.values.index(value) / (len(other.values) - 1)
			return self.values[round(ratio * (len(self.values) - 1))]

		return self.default


class Rhythm:

	"""
	A rhythm: a named set of voices and parameters for one time signature.
	"""

	def __init__ (
		self,
		unique_id: str,
		name: str,
		time_signature: TimeSignature,
		voices: typing.Optional[typing.List[typing.Tuple[str, RhythmVoiceType, int]]] = None,
		parameters: typing.Optional[typing.List[RhythmParameter]] = None,
		preferred_programs: typing.Optional[typing.Dict[str, int]] = None
	) -> None:

		"""
		Args:
			unique_id: Catalog identifier, stable across sessions.
			name: Display name.
			time_signature: The time signature the rhythm plays in.
			voices: ``(name, type, preferred_channel)`` per voice.
			parameters: The rhythm parameters a part can set.
			preferred_programs: Optional GM program per voice name.
		"""

		self.unique_id = unique_id
		self.name = name
		self.time_signature = time_signature
		self.parameters: typing.List[RhythmParameter] = list(parameters or [])

		programs = preferred_programs or {}

		self._voices: typing.List[RhythmVoice] = [
			RhythmVoice(self, voice_name, voice_type, channel, programs.get(voice_name))
			for voice_name, voice_type, channel in (voices or [])
		]

	@property
	def voices (self) -> typing.List[RhythmVoice]:

		return list(self._voices)

	def voice (self, name: str) -> typing.Optional[RhythmVoice]:

		return next((rv for rv in self._voices if rv.name == name), None)

	def parameter (self, parameter_id: str) -> typing.Optional[RhythmParameter]:

		return next((rp for rp in self.parameters if rp.id == parameter_id), None)

	def __repr__ (self) -> str:

		return f"Rhythm({self.unique_id}, {self.time_signature})"


class AdaptedRhythm (Rhythm):

	"""
	A source rhythm played in another time signature.

	Shares the source rhythm's voice instances, so a mix built for the source
	rhythm also serves its adapted variants.
	"""

	def __init__ (self, source: Rhythm, time_signature: TimeSignature) -> None:

		if isinstance(source, AdaptedRhythm):
			raise ValueError(f"Can't adapt an adapted rhythm {source!r}")

		if source.time_signature == time_signature:
			raise ValueError(f"{source!r} already uses {time_signature}")

		super().__init__(
			f"{source.unique_id}-{time_signature.upper}-{time_signature.lower}",
			f"{source.name} [{time_signature}]",
			time_signature,
			parameters=source.parameters
		)

		self.source = source
		self._voices = source._voices

	def __repr__ (self) -> str:

		return f"AdaptedRhythm({self.source.unique_id}, {self.time_signature})"


def source_rhythm (rhythm: Rhythm) -> Rhythm:

	"""Return the source of an adapted rhythm, or the rhythm itself."""

	if isinstance(rhythm, AdaptedRhythm):
		return rhythm.source

	return rhythm
