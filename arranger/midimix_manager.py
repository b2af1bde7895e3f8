"""Finds, creates and caches the mixes of arrangements and rhythms."""

import collections
import logging
import os
import threading
import typing

import arranger.arrangement
import arranger.errors
import arranger.instruments
import arranger.midimix
import arranger.midimix_io
import arranger.rhythm
import arranger.rhythm_database


logger = logging.getLogger(__name__)


class MidiMixManager:

	"""
	Mix factory with a bounded cache.

	Arrangement mixes are cached by arrangement identity, least recently used
	first out. An evicted mix is detached from its arrangement and stops
	following it, so callers done with an arrangement should ``release()`` it
	rather than rely on eviction.

	Example:
		```python
		manager = arranger.midimix_manager.MidiMixManager(db, cache_size=4)
		mix = manager.find_mix(arrangement)
		manager.release(arrangement)
		```
	"""

	def __init__ (
		self,
		rhythm_database: arranger.rhythm_database.RhythmDatabase,
		cache_size: int = 8,
		mix_directory: typing.Optional[str] = None,
		user_phrase_channel: int = 0,
		provider: typing.Optional[arranger.instruments.InstrumentProvider] = None
	) -> None:

		"""
		Args:
			rhythm_database: Resolves the rhythm ids of mix files.
			cache_size: Maximum number of arrangement mixes kept.
			mix_directory: Where ``<rhythm id>.mix.yaml`` rhythm mix files are looked up.
			user_phrase_channel: Preferred channel of new user phrases.
			provider: Picks instruments for generated mixes.
		"""

		if cache_size < 1:
			raise ValueError(f"Invalid mix cache size {cache_size}")

		self.rhythm_database = rhythm_database
		self.cache_size = cache_size
		self.mix_directory = mix_directory
		self.user_phrase_channel = user_phrase_channel
		self.provider = provider if provider is not None else arranger.instruments.InstrumentProvider()

		self._lock = threading.RLock()
		self._mixes: "collections.OrderedDict[int, typing.Tuple[arranger.arrangement.Arrangement, arranger.midimix.MidiMix]]" = collections.OrderedDict()
		self._rhythm_mixes: typing.Dict[str, arranger.midimix.MidiMix] = {}

	# ─── Arrangement mixes ───────────────────────────────────────────

	def find_mix (self, arrangement: arranger.arrangement.Arrangement) -> arranger.midimix.MidiMix:

		"""
		Return the mix of ``arrangement``: cached, else loaded from its mix file, else created.

		Raises ``MidiUnavailableError`` if the arrangement needs more than 16 channels.
		"""

		with self._lock:

			mix = self.find_existing_mix(arrangement)

			if mix is not None:
				return mix

			path = arrangement.mix_file_path
			mix = None

			if path is not None and os.path.isfile(path):
				mix = self._load_arrangement_mix(arrangement, path)

			if mix is None:
				mix = self.create_mix(arrangement)

			self._put(arrangement, mix)
			return mix

	def find_existing_mix (self, arrangement: arranger.arrangement.Arrangement) -> typing.Optional[arranger.midimix.MidiMix]:

		"""Return the cached mix of ``arrangement``, or ``None``."""

		with self._lock:

			entry = self._mixes.get(id(arrangement))

			if entry is None or entry[0] is not arrangement:
				return None

			self._mixes.move_to_end(id(arrangement))
			return entry[1]

	def create_mix (self, arrangement: arranger.arrangement.Arrangement) -> arranger.midimix.MidiMix:

		"""
		Build a new mix following ``arrangement``.

		The first rhythm keeps its own rhythm mix; the instruments of the
		following rhythms are adapted to it. User phrases get a channel each.

		Raises ``MidiUnavailableError`` if there are not enough channels.
		"""

		mix = arranger.midimix.MidiMix(self, self.user_phrase_channel)

		for rhythm in arrangement.song_structure.unique_rhythms(exclude_adapted=True):
			mix.add_rhythm(rhythm)

		for name in arrangement.user_phrase_names:
			phrase = arrangement.user_phrase(name)
			assert phrase is not None
			mix.add_user_channel(name, phrase.drums)

		mix.set_arrangement(arrangement)
		mix.needs_save = False

		logger.info(f"Created mix for {arrangement!r}: {mix}")
		return mix

	def release (self, arrangement: arranger.arrangement.Arrangement) -> None:

		"""Detach and forget the cached mix of ``arrangement``."""

		with self._lock:

			entry = self._mixes.pop(id(arrangement), None)

			if entry is not None:
				entry[1].set_arrangement(None)
				logger.debug(f"Released mix of {arrangement!r}")

	def clear (self) -> None:

		with self._lock:

			for arrangement, mix in self._mixes.values():
				mix.set_arrangement(None)

			self._mixes.clear()
			self._rhythm_mixes.clear()

	def __len__ (self) -> int:

		return len(self._mixes)

	# ─── Rhythm mixes ────────────────────────────────────────────────

	def find_mix_for_rhythm (self, rhythm: arranger.rhythm.Rhythm) -> arranger.midimix.MidiMix:

		"""
		Return the mix of a single rhythm (its source for an adapted rhythm).

		Uses ``<mix_directory>/<rhythm id>.mix.yaml`` when it exists and
		matches the rhythm, otherwise ``create_rhythm_mix()``. The result is
		shared: callers copy it before changing it.
		"""

		rhythm = arranger.rhythm.source_rhythm(rhythm)

		with self._lock:

			mix = self._rhythm_mixes.get(rhythm.unique_id)

			if mix is not None:
				return mix

			path = self.rhythm_mix_file_path(rhythm)

			if path is not None and os.path.isfile(path):
				mix = self._load_rhythm_mix(rhythm, path)

			if mix is None:
				mix = self.create_rhythm_mix(rhythm)

			self._rhythm_mixes[rhythm.unique_id] = mix
			return mix

	def create_rhythm_mix (self, rhythm: arranger.rhythm.Rhythm) -> arranger.midimix.MidiMix:

		logger.debug(f"create_rhythm_mix() rhythm={rhythm!r}")

		return arranger.midimix.MidiMix.from_rhythm(rhythm, self.provider, self)

	def rhythm_mix_file_path (self, rhythm: arranger.rhythm.Rhythm) -> typing.Optional[str]:

		if self.mix_directory is None:
			return None

		return os.path.join(self.mix_directory, arranger.rhythm.source_rhythm(rhythm).unique_id + arranger.arrangement.MIX_FILE_SUFFIX)

	# ─── Internals ───────────────────────────────────────────────────

	def _put (self, arrangement: arranger.arrangement.Arrangement, mix: arranger.midimix.MidiMix) -> None:

		self._mixes[id(arrangement)] = (arrangement, mix)
		self._mixes.move_to_end(id(arrangement))

		while len(self._mixes) > self.cache_size:
			_, (evicted, evicted_mix) = self._mixes.popitem(last=False)
			evicted_mix.set_arrangement(None)
			logger.info(f"Evicted mix of {evicted!r} from cache")

	def _load_arrangement_mix (self, arrangement: arranger.arrangement.Arrangement, path: str) -> typing.Optional[arranger.midimix.MidiMix]:

		"""Load and attach a mix file, or return ``None`` if it doesn't fit the arrangement."""

		try:
			mix = arranger.midimix_io.load_mix(path, self.rhythm_database, self)

		except arranger.errors.MixFileError as e:
			logger.warning(f"Ignoring mix file {path}: {e}")
			return None

		mix.user_phrase_channel = self.user_phrase_channel

		for channel in mix.channels_needing_drums_rerouting():
			mix.set_drums_rerouted_channel(True, channel)

		try:
			mix.set_arrangement(arrangement)
			mix.check_consistency(arrangement, True)

		except arranger.errors.ArrangementCreationError as e:
			mix.set_arrangement(None)
			logger.warning(f"Ignoring mix file {path}: {e}")
			return None

		mix.needs_save = False
		return mix

	def _load_rhythm_mix (self, rhythm: arranger.rhythm.Rhythm, path: str) -> typing.Optional[arranger.midimix.MidiMix]:

		try:
			mix = arranger.midimix_io.load_mix(path, self.rhythm_database, self)

		except arranger.errors.MixFileError as e:
			logger.warning(f"Ignoring rhythm mix file {path}: {e}")
			return None

		if any(v.container is not rhythm for v in mix.voices()) or len(mix.voices()) != len(rhythm.voices):
			logger.warning(f"Rhythm mix file {path} does not match {rhythm!r}, ignoring it")
			return None

		for channel in mix.channels_needing_drums_rerouting():
			mix.set_drums_rerouted_channel(True, channel)

		return mix
