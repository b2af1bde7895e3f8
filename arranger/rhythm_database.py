"""The rhythm catalog.

Rhythms are looked up by unique id or by time signature. The database also
owns the time-signature-adapted variants of its rhythms, and hands out stub
rhythms when nothing else fits a time signature.
"""

import logging
import typing

import arranger.errors
import arranger.rhythm


logger = logging.getLogger(__name__)


_DEFAULT_PARAMETERS: typing.List[arranger.rhythm.RhythmParameter] = [
	arranger.rhythm.RhythmParameter("variation", ("Main A-1", "Main B-1", "Main C-1", "Main D-1"), "Main A-1"),
	arranger.rhythm.RhythmParameter("intensity", (-10, -5, 0, 5, 10), 0),
	arranger.rhythm.RhythmParameter("fill", ("", "always", "random"), ""),
]


DEFAULT_CATALOG: typing.List[typing.Dict[str, typing.Any]] = [
	{
		"id": "jazz-swing-44",
		"name": "Jazz Swing",
		"time_signature": "4/4",
		"voices": [
			{"name": "Drums", "type": "drums", "channel": 9},
			{"name": "Bass", "type": "bass", "channel": 1, "program": 32},
			{"name": "Piano", "type": "chord", "channel": 2, "program": 0},
			{"name": "Guitar", "type": "chord", "channel": 3, "program": 26},
		],
	},
	{
		"id": "bossa-nova-44",
		"name": "Bossa Nova",
		"time_signature": "4/4",
		"voices": [
			{"name": "Drums", "type": "drums", "channel": 9},
			{"name": "Perc", "type": "percussion", "channel": 8},
			{"name": "Bass", "type": "bass", "channel": 1, "program": 32},
			{"name": "Guitar", "type": "chord", "channel": 3, "program": 24},
			{"name": "Strings", "type": "pad", "channel": 4, "program": 48},
		],
	},
	{
		"id": "jazz-waltz-34",
		"name": "Jazz Waltz",
		"time_signature": "3/4",
		"voices": [
			{"name": "Drums", "type": "drums", "channel": 9},
			{"name": "Bass", "type": "bass", "channel": 1, "program": 32},
			{"name": "Piano", "type": "chord", "channel": 2, "program": 0},
		],
	},
]


class RhythmDatabase:

	"""
	Lookup provider for rhythms.

	Example:
		```python
		db = arranger.rhythm_database.RhythmDatabase.with_defaults()
		waltz = db.get_default_rhythm(arranger.rhythm.TimeSignature(3, 4))
		```
	"""

	def __init__ (self) -> None:

		self._rhythms: typing.Dict[str, arranger.rhythm.Rhythm] = {}
		self._defaults: typing.Dict[arranger.rhythm.TimeSignature, str] = {}
		self._adapted: typing.Dict[typing.Tuple[str, arranger.rhythm.TimeSignature], arranger.rhythm.AdaptedRhythm] = {}
		self._stubs: typing.Dict[arranger.rhythm.TimeSignature, arranger.rhythm.Rhythm] = {}

	@classmethod
	def with_defaults (cls) -> "RhythmDatabase":

		"""Return a database holding the built-in catalog."""

		db = cls()
		db.load_catalog(DEFAULT_CATALOG)
		return db

	def add_rhythm (self, rhythm: arranger.rhythm.Rhythm, default: bool = False) -> None:

		"""
		Add a rhythm. The first rhythm of a time signature becomes its default.
		"""

		if isinstance(rhythm, arranger.rhythm.AdaptedRhythm):
			raise ValueError(f"Adapted rhythms are generated by the database: {rhythm!r}")

		if rhythm.unique_id in self._rhythms:
			raise ValueError(f"Duplicate rhythm id {rhythm.unique_id!r}")

		self._rhythms[rhythm.unique_id] = rhythm

		if default or rhythm.time_signature not in self._defaults:
			self._defaults[rhythm.time_signature] = rhythm.unique_id

		logger.debug(f"Added rhythm {rhythm!r}")

	def load_catalog (self, definitions: typing.Iterable[typing.Dict[str, typing.Any]]) -> None:

		"""
		Build rhythms from plain dictionaries (the YAML catalog format).

		Each definition has ``id``, ``name``, ``time_signature`` and ``voices``;
		each voice has ``name``, ``type``, ``channel`` and an optional
		``program``. Optional ``parameters`` override the standard set.
		"""

		for definition in definitions:

			try:
				ts = arranger.rhythm.TimeSignature.parse(str(definition["time_signature"]))

				voices = []
				programs: typing.Dict[str, int] = {}

				for voice in definition["voices"]:

					voice_type = arranger.rhythm.RhythmVoiceType(voice.get("type", "other"))
					voices.append((voice["name"], voice_type, int(voice.get("channel", 0))))

					if voice.get("program") is not None:
						programs[voice["name"]] = int(voice["program"])

				parameters = [
					arranger.rhythm.RhythmParameter(p["id"], tuple(p["values"]), p.get("default", p["values"][0]))
					for p in definition.get("parameters", [])
				] or _DEFAULT_PARAMETERS

			except (KeyError, TypeError, ValueError) as e:
				raise ValueError(f"Invalid rhythm definition {definition!r}: {e}") from e

			rhythm = arranger.rhythm.Rhythm(
				str(definition["id"]),
				str(definition.get("name", definition["id"])),
				ts,
				voices,
				parameters,
				programs
			)

			self.add_rhythm(rhythm, default=bool(definition.get("default", False)))

	def rhythms (self, ts: typing.Optional[arranger.rhythm.TimeSignature] = None) -> typing.List[arranger.rhythm.Rhythm]:

		"""Return the catalog rhythms, optionally only those of one time signature."""

		return [r for r in self._rhythms.values() if ts is None or r.time_signature == ts]

	def get_rhythm_instance (self, unique_id: str) -> arranger.rhythm.Rhythm:

		"""
		Return the rhythm with this id, including generated adapted rhythms.

		Raises ``UnavailableRhythmError`` if the id is unknown.
		"""

		rhythm = self._rhythms.get(unique_id)

		if rhythm is None:
			rhythm = next((ar for ar in self._adapted.values() if ar.unique_id == unique_id), None)

		if rhythm is None:
			rhythm = next((sr for sr in self._stubs.values() if sr.unique_id == unique_id), None)

		if rhythm is None:
			raise arranger.errors.UnavailableRhythmError(f"Rhythm {unique_id!r} not found")

		return rhythm

	def get_default_rhythm (self, ts: arranger.rhythm.TimeSignature) -> arranger.rhythm.Rhythm:

		"""
		Return the default rhythm of a time signature.

		Raises ``UnavailableRhythmError`` if the catalog has none.
		"""

		unique_id = self._defaults.get(ts)

		if unique_id is None:
			raise arranger.errors.UnavailableRhythmError(f"No rhythm for time signature {ts}")

		return self._rhythms[unique_id]

	def get_adapted_rhythm_instance (
		self,
		rhythm: arranger.rhythm.Rhythm,
		ts: arranger.rhythm.TimeSignature
	) -> typing.Optional[arranger.rhythm.AdaptedRhythm]:

		"""
		Return the variant of ``rhythm`` adapted to ``ts``, creating it once.

		Returns ``None`` if ``rhythm`` already uses ``ts`` or is itself adapted.
		"""

		if isinstance(rhythm, arranger.rhythm.AdaptedRhythm) or rhythm.time_signature == ts:
			return None

		key = (rhythm.unique_id, ts)
		adapted = self._adapted.get(key)

		if adapted is None:
			adapted = arranger.rhythm.AdaptedRhythm(rhythm, ts)
			self._adapted[key] = adapted
			logger.debug(f"Created {adapted!r}")

		return adapted

	def get_stub_rhythm_instance (self, ts: arranger.rhythm.TimeSignature) -> arranger.rhythm.Rhythm:

		"""Return a one-voice (drums) placeholder rhythm for ``ts``."""

		stub = self._stubs.get(ts)

		if stub is None:
			stub = arranger.rhythm.Rhythm(
				f"stub-{ts.upper}-{ts.lower}",
				f"Stub {ts}",
				ts,
				[("Drums", arranger.rhythm.RhythmVoiceType.DRUMS, 9)],
				_DEFAULT_PARAMETERS
			)
			self._stubs[ts] = stub

		return stub

	def find_substitute (self, unique_id: str, ts: arranger.rhythm.TimeSignature) -> arranger.rhythm.Rhythm:

		"""
		Return a rhythm to use in place of an unavailable one.

		Prefers the default rhythm of ``ts``, then the stub rhythm.
		"""

		try:
			substitute = self.get_default_rhythm(ts)

		except arranger.errors.UnavailableRhythmError:
			substitute = self.get_stub_rhythm_instance(ts)

		logger.debug(f"Substitute for {unique_id!r}: {substitute!r}")

		return substitute
