"""The 16-channel table of an arrangement.

A :class:`MidiMix` binds each MIDI channel to nothing or to a
``(voice, InstrumentMix)`` pair. A voice sits on at most one channel and an
``InstrumentMix`` on at most one channel.

Once attached to an arrangement with ``set_arrangement()``, the mix follows
the song structure: it vetoes part changes needing more than 16 channels,
allocates channels for new rhythms and frees the channels of rhythms no
longer used. It also follows the arrangement's user phrases.

Events emitted on ``events``:
	``"channel_mix"``: ``(channel, old_mix, new_mix)``
	``"rhythm_voice"``: ``(old_voice, new_voice)``
	``"rhythm_voice_channel"``: ``(voice, old_channel, new_channel)``
	``"drums_rerouted"``: ``(channel, enabled)``
	``"mute"``: ``(mix, muted)``
	``"drums_keymap"``: ``(channel, old_key_map)``
	``"transposition"``, ``"velocity_shift"``: ``(mix, value)``
	``"modified_or_saved"``: ``(needs_save,)``
	``"music_generation"``: ``(what, data)``, for changes affecting the music
"""

import logging
import threading
import typing

import mido

import arranger.arrangement
import arranger.constants
import arranger.constants.midi
import arranger.errors
import arranger.event_emitter
import arranger.instruments
import arranger.rhythm
import arranger.song_structure
import arranger.undo


logger = logging.getLogger(__name__)


NOT_ENOUGH_CHANNELS = "Not enough MIDI channels"


class MidiMix:

	"""
	Voice and instrument mix per MIDI channel.

	Example:
		```python
		mix = arranger.midimix.MidiMix.from_rhythm(rhythm, arranger.instruments.InstrumentProvider())
		channel = mix.get_channel(rhythm.voice("Bass"))
		mix.get_instrument_mix(channel).solo = True
		```
	"""

	def __init__ (
		self,
		manager: typing.Optional["arranger.midimix_manager.MidiMixManager"] = None,
		user_phrase_channel: int = 0
	) -> None:

		"""
		Args:
			manager: Provides the rhythm mixes used when a rhythm is added.
			user_phrase_channel: Preferred channel of a new user phrase.
		"""

		self.manager = manager
		self.user_phrase_channel = user_phrase_channel
		self.arrangement: typing.Optional["arranger.arrangement.Arrangement"] = None
		self.undo_manager: typing.Optional[arranger.undo.UndoManager] = None
		self.events = arranger.event_emitter.EventEmitter()
		self.file_path: typing.Optional[str] = None
		self.needs_save = False

		self._lock = threading.RLock()
		self._voices: typing.List[typing.Optional[arranger.rhythm.RhythmVoice]] = [None] * arranger.constants.NB_CHANNELS
		self._mix_handles: typing.List[typing.Optional[int]] = [None] * arranger.constants.NB_CHANNELS
		self._arena: typing.Dict[int, arranger.instruments.InstrumentMix] = {}
		self._soloed: typing.Set[int] = set()
		self._drums_rerouted: typing.Dict[int, arranger.instruments.InstrumentMix] = {}
		self._saved_mutes: typing.List[bool] = [False] * arranger.constants.NB_CHANNELS

	@classmethod
	def from_rhythm (
		cls,
		rhythm: arranger.rhythm.Rhythm,
		provider: arranger.instruments.InstrumentProvider,
		manager: typing.Optional["arranger.midimix_manager.MidiMixManager"] = None
	) -> "MidiMix":

		"""
		Build a mix for a single rhythm, each voice on its preferred channel when free.

		Drum voices that end up on a void instrument outside the drums
		channel are rerouted to it.
		"""

		rhythm = arranger.rhythm.source_rhythm(rhythm)
		mix = cls(manager)

		for voice in rhythm.voices:

			channel = voice.preferred_channel

			if not arranger.constants.midi.check_channel(channel) or mix._voices[channel] is not None:
				channel = mix.find_free_channel(voice.is_drums)

			if channel == -1:
				raise arranger.errors.MidiUnavailableError(f"{NOT_ENOUGH_CHANNELS} for {rhythm!r}")

			instrument = provider.find_instrument(voice, channel)
			mix.set_instrument_mix(channel, voice, arranger.instruments.InstrumentMix(instrument, provider.default_settings(voice)))

		for channel in mix.channels_needing_drums_rerouting():
			mix.set_drums_rerouted_channel(True, channel)

		mix.needs_save = False
		return mix

	def deep_copy (self) -> "MidiMix":

		"""Return an unattached copy with copied instrument mixes."""

		with self._lock:

			result = MidiMix(self.manager, self.user_phrase_channel)
			result.file_path = self.file_path

			for channel in self.used_channels():

				mix = self._mix_at(channel)
				assert mix is not None
				copy = mix.copy()

				result._voices[channel] = self._voices[channel]
				result._store(channel, copy)
				result._subscribe(copy)

				if mix.handle in self._soloed:
					copy._solo = True
					result._soloed.add(copy.handle)

			for channel, saved in self._drums_rerouted.items():
				result._drums_rerouted[channel] = saved.copy()

			result._saved_mutes = list(self._saved_mutes)
			return result

	# ─── Arrangement link ────────────────────────────────────────────

	def set_arrangement (self, arrangement: typing.Optional["arranger.arrangement.Arrangement"]) -> None:

		"""
		Follow the changes of ``arrangement`` (``None`` to detach).

		Raises ``ArrangementCreationError`` if the mix holds voices foreign to
		the arrangement.
		"""

		if arrangement is self.arrangement:
			return

		if self.arrangement is not None:
			self.arrangement.song_structure.events.off_authorize("change", self._authorize_structure_change)
			self.arrangement.song_structure.events.off("change", self._structure_changed)
			self.arrangement.events.off_authorize("user_phrase", self._authorize_user_phrase)
			self.arrangement.events.off("user_phrase", self._user_phrase_changed)
			self.arrangement.events.off("user_phrase_name", self._user_phrase_renamed)
			self.undo_manager = None

		self.arrangement = None

		if arrangement is None:
			return

		self.check_consistency(arrangement, False)
		self.arrangement = arrangement

		arrangement.song_structure.events.on_authorize("change", self._authorize_structure_change)
		arrangement.song_structure.events.on("change", self._structure_changed)
		arrangement.events.on_authorize("user_phrase", self._authorize_user_phrase)
		arrangement.events.on("user_phrase", self._user_phrase_changed)
		arrangement.events.on("user_phrase_name", self._user_phrase_renamed)
		self.undo_manager = arrangement.undo_manager

	def check_consistency (self, arrangement: "arranger.arrangement.Arrangement", full_check: bool) -> None:

		"""
		Check the mix against ``arrangement``.

		Every rhythm voice must belong to a rhythm of the song. A user voice
		without its phrase is repaired by adding an empty phrase. With
		``full_check``, every song voice and every user phrase must also have
		a channel.

		Raises ``ArrangementCreationError`` on an inconsistency that can't be repaired.
		"""

		song_voices = arrangement.song_structure.unique_rhythm_voices()

		for channel in self.used_channels():

			voice = self._voices[channel]

			if isinstance(voice, arranger.rhythm.UserRhythmVoice):

				if arrangement.user_phrase(voice.name) is None:
					logger.warning(f"Missing user phrase {voice.name!r} in {arrangement.name!r}, adding an empty one")
					arrangement.set_user_phrase(voice.name, arranger.arrangement.Phrase(channel, voice.is_drums))

			elif not any(voice is v for v in song_voices):
				raise arranger.errors.ArrangementCreationError(f"Channel {channel} voice {voice!r} is not a voice of {arrangement.name!r}")

		if not full_check:
			return

		for voice in song_voices:
			if self.get_channel(voice) == -1:
				raise arranger.errors.ArrangementCreationError(f"Song voice {voice!r} has no channel in {self}")

		names = [v.name for v in self.voices()]

		for name in arrangement.user_phrase_names:
			if name not in names:
				raise arranger.errors.ArrangementCreationError(f"User phrase {name!r} has no channel in {self}")

	# ─── Queries ─────────────────────────────────────────────────────

	def get_instrument_mix (self, channel: int) -> typing.Optional[arranger.instruments.InstrumentMix]:

		self._check_channel(channel)
		return self._mix_at(channel)

	def get_voice (self, channel: int) -> typing.Optional[arranger.rhythm.RhythmVoice]:

		self._check_channel(channel)
		return self._voices[channel]

	def get_channel (self, voice: arranger.rhythm.RhythmVoice) -> int:

		"""Return the channel of ``voice``, or -1."""

		with self._lock:
			return next((i for i, v in enumerate(self._voices) if v is voice), -1)

	def get_mix_channel (self, mix: arranger.instruments.InstrumentMix) -> int:

		"""Return the channel of ``mix``, or -1."""

		with self._lock:
			return next((i for i, h in enumerate(self._mix_handles) if h == mix.handle), -1)

	def get_voice_mix (self, voice: arranger.rhythm.RhythmVoice) -> typing.Optional[arranger.instruments.InstrumentMix]:

		channel = self.get_channel(voice)
		return self._mix_at(channel) if channel != -1 else None

	def used_channels (self, rhythm: typing.Optional[arranger.rhythm.Rhythm] = None) -> typing.List[int]:

		"""Return the bound channels, only those of ``rhythm`` (or its source) if given."""

		with self._lock:

			source = arranger.rhythm.source_rhythm(rhythm) if rhythm is not None else None

			return [
				i for i, v in enumerate(self._voices)
				if v is not None and (source is None or v.container is source)
			]

	def unused_channels (self) -> typing.List[int]:

		with self._lock:
			return [i for i, v in enumerate(self._voices) if v is None]

	def voices (self) -> typing.List[arranger.rhythm.RhythmVoice]:

		with self._lock:
			return [v for v in self._voices if v is not None]

	def instrument_mixes (self) -> typing.List[arranger.instruments.InstrumentMix]:

		with self._lock:
			return [self._arena[h] for h in self._mix_handles if h is not None]

	def user_channels (self) -> typing.List[int]:

		with self._lock:
			return [i for i, v in enumerate(self._voices) if isinstance(v, arranger.rhythm.UserRhythmVoice)]

	def user_voice (self, name: str) -> typing.Optional[arranger.rhythm.UserRhythmVoice]:

		with self._lock:
			return next((v for v in self._voices if isinstance(v, arranger.rhythm.UserRhythmVoice) and v.name == name), None)

	def unique_rhythms (self) -> typing.List[arranger.rhythm.Rhythm]:

		"""Return the rhythms owning a channel, in channel order."""

		result: typing.List[arranger.rhythm.Rhythm] = []

		for voice in self.voices():
			if voice.container is not None and voice.container not in result:
				result.append(voice.container)

		return result

	def soloed_channels (self) -> typing.List[int]:

		with self._lock:
			return [i for i, h in enumerate(self._mix_handles) if h is not None and h in self._soloed]

	def drums_rerouted_channels (self) -> typing.List[int]:

		with self._lock:
			return sorted(self._drums_rerouted)

	def drums_rerouted_snapshot (self, channel: int) -> typing.Optional[arranger.instruments.InstrumentMix]:

		"""Return the copy of the mix of ``channel`` saved when it was rerouted."""

		return self._drums_rerouted.get(channel)

	def find_free_channel (self, drums: bool) -> int:

		"""
		Return a free channel, or -1.

		Returns the drums channel if ``drums`` and it is free; otherwise
		searches the channels above the drums channel upward, then those below
		it downward.
		"""

		with self._lock:

			if drums and self._voices[arranger.constants.CHANNEL_DRUMS] is None:
				return arranger.constants.CHANNEL_DRUMS

			for channel in range(arranger.constants.CHANNEL_DRUMS + 1, arranger.constants.CHANNEL_MAX + 1):
				if self._voices[channel] is None:
					return channel

			for channel in range(arranger.constants.CHANNEL_DRUMS - 1, arranger.constants.CHANNEL_MIN - 1, -1):
				if self._voices[channel] is None:
					return channel

			return -1

	def channels_needing_drums_rerouting (
		self,
		new_instruments: typing.Optional[typing.Dict[int, arranger.instruments.Instrument]] = None
	) -> typing.List[int]:

		"""
		Return the drum channels that should be rerouted to the drums channel.

		A channel qualifies when the drums channel sends its instrument, the
		channel is not the drums channel, holds a drums voice, is not rerouted
		yet, and its instrument (or its entry in ``new_instruments``) is the
		void instrument.
		"""

		with self._lock:

			drums_mix = self._mix_at(arranger.constants.CHANNEL_DRUMS)

			if drums_mix is None or not drums_mix.instrument_enabled:
				return []

			result = []

			for channel in self.used_channels():

				voice = self._voices[channel]
				mix = self._mix_at(channel)
				assert voice is not None and mix is not None

				instrument = (new_instruments or {}).get(channel, mix.instrument)

				if (
					channel != arranger.constants.CHANNEL_DRUMS
					and voice.is_drums
					and channel not in self._drums_rerouted
					and instrument.is_void
				):
					result.append(channel)

			return result

	# ─── Mutators ────────────────────────────────────────────────────

	def set_instrument_mix (
		self,
		channel: int,
		voice: typing.Optional[arranger.rhythm.RhythmVoice],
		mix: typing.Optional[arranger.instruments.InstrumentMix]
	) -> None:

		"""
		Bind ``voice`` and ``mix`` to ``channel``, or free it with ``(None, None)``.

		Solo and drums rerouting are reset on the channel. When attached to an
		arrangement, ``voice`` must be one of its rhythm voices or the voice
		of one of its user phrases.

		Raises ``ValueError`` on an invalid channel or binding.
		"""

		self._check_channel(channel)

		if (voice is None) != (mix is None):
			raise ValueError(f"Channel {channel}: voice and mix must both be set or both be None ({voice!r}, {mix!r})")

		logger.debug(f"set_instrument_mix() channel={channel} voice={voice!r} mix={mix!r}")

		with self._lock:

			if voice is not None and self.arrangement is not None:

				if isinstance(voice, arranger.rhythm.UserRhythmVoice):
					if voice.name not in self.arrangement.user_phrase_names:
						raise ValueError(f"Channel {channel}: no user phrase named {voice.name!r}")

				elif not any(voice is v for v in self.arrangement.song_structure.unique_rhythm_voices()):
					raise ValueError(f"Channel {channel}: {voice!r} does not belong to a rhythm of the song")

			if mix is not None:
				current = self.get_mix_channel(mix)

				if current not in (-1, channel):
					raise ValueError(f"{mix!r} is already bound to channel {current}")

			other = self.get_channel(voice) if voice is not None else -1

			if other not in (-1, channel):
				raise ValueError(f"{voice!r} is already bound to channel {other}")

			self._change_instrument_mix(channel, voice, mix)

	def replace_rhythm_voice (self, old_voice: arranger.rhythm.RhythmVoice, new_voice: arranger.rhythm.RhythmVoice) -> None:

		"""Put ``new_voice`` in place of ``old_voice``, keeping the channel and mix."""

		with self._lock:

			channel = self.get_channel(old_voice)

			if channel == -1 or self.get_channel(new_voice) != -1:
				raise ValueError(f"Can't replace {old_voice!r} by {new_voice!r}")

			self._voices[channel] = new_voice
			self._edit_happened("Replace voice", "rhythm_voice", (channel, old_voice), (channel, new_voice))

		self.events.emit_sync("rhythm_voice", old_voice, new_voice)
		self._music_generation_modified("rhythm_voice", new_voice)
		self._modified()

	def set_rhythm_voice_channel (self, voice: arranger.rhythm.RhythmVoice, new_channel: int) -> None:

		"""Move the whole binding of ``voice`` to the free channel ``new_channel``."""

		self._check_channel(new_channel)

		with self._lock:

			old_channel = self.get_channel(voice)

			if old_channel == -1 or self._voices[new_channel] is not None:
				raise ValueError(f"Can't move {voice!r} to channel {new_channel}")

			with arranger.undo.optional_compound(self.undo_manager, "Set voice channel"):
				self._swap_channels(old_channel, new_channel)
				self._edit_happened("Set voice channel", "rhythm_voice_channel", (new_channel, old_channel), (old_channel, new_channel))

		self.events.emit_sync("rhythm_voice_channel", voice, old_channel, new_channel)
		self._music_generation_modified("rhythm_voice_channel", voice)
		self._modified()

	def set_drums_rerouted_channel (self, enabled: bool, channel: int) -> None:

		"""
		Reroute ``channel`` to the drums channel, or stop rerouting it.

		Rerouting saves a copy of the mix then disables its instrument,
		volume, pan, reverb and chorus; stopping restores them. The drums
		channel itself is never rerouted.
		"""

		logger.debug(f"set_drums_rerouted_channel() enabled={enabled} channel={channel}")

		with self._lock:

			mix = self.get_instrument_mix(channel)

			if mix is None:
				raise ValueError(f"No instrument mix on channel {channel}")

			if enabled == (channel in self._drums_rerouted) or channel == arranger.constants.CHANNEL_DRUMS:
				return

			snapshot = mix.copy() if enabled else self._drums_rerouted[channel]
			self._reroute(channel, enabled, snapshot)
			self._edit_happened("Reroute drums", "drums_rerouted", (channel, not enabled, snapshot), (channel, enabled, snapshot))

	def add_instrument_mixes (self, from_mix: "MidiMix", rhythm: typing.Optional[arranger.rhythm.Rhythm] = None) -> None:

		"""
		Copy the rhythm voices of ``from_mix`` (only those of ``rhythm`` if given).

		A voice keeps its channel when free, otherwise gets one from
		``find_free_channel()``. Copies are never soloed; a rerouted channel
		stays rerouted. User voices are skipped.

		Raises ``MidiUnavailableError`` (and changes nothing) if there are not
		enough free channels.
		"""

		logger.debug(f"add_instrument_mixes() from={from_mix} rhythm={rhythm!r}")

		with self._lock:

			from_channels = [
				c for c in from_mix.used_channels(rhythm)
				if not isinstance(from_mix.get_voice(c), arranger.rhythm.UserRhythmVoice)
			]

			if len(self.unused_channels()) < len(from_channels):
				raise arranger.errors.MidiUnavailableError(NOT_ENOUGH_CHANNELS)

			with arranger.undo.optional_compound(self.undo_manager, "Add instrument mixes"):

				for from_channel in from_channels:

					voice = from_mix.get_voice(from_channel)
					assert voice is not None

					channel = from_channel if self._voices[from_channel] is None else self.find_free_channel(voice.is_drums)
					assert channel != -1

					source = from_mix.get_instrument_mix(from_channel)
					saved = from_mix.drums_rerouted_snapshot(from_channel)
					assert source is not None

					copy = source.copy()

					if saved is not None:
						_restore_enabled_flags(copy, saved)

					self.set_instrument_mix(channel, voice, copy)

					if saved is not None:
						self.set_drums_rerouted_channel(True, channel)

	def import_instrument_mixes (self, other: "MidiMix") -> None:

		"""
		Copy instruments and settings of ``other`` onto matching voices.

		Rhythm voices are matched by identity, then by voice type. Voices of
		``other`` still unmatched then fall back to the first three letters of
		the voice name plus the instrument family, then to the family alone.
		User voices are matched by phrase name only. Imported mixes are copies
		and never soloed.
		"""

		logger.debug(f"import_instrument_mixes() other={other}")

		with self._lock:

			remaining = [v for v in self.voices() if not isinstance(v, arranger.rhythm.UserRhythmVoice)]
			unmatched: typing.List[arranger.rhythm.RhythmVoice] = []
			matches: typing.List[typing.Tuple[arranger.rhythm.RhythmVoice, arranger.rhythm.RhythmVoice]] = []

			def match_with (other_voice: arranger.rhythm.RhythmVoice, match: typing.Optional[arranger.rhythm.RhythmVoice]) -> bool:
				if match is None:
					return False
				matches.append((other_voice, match))
				remaining.remove(match)
				return True

			for other_voice in other.voices():

				if isinstance(other_voice, arranger.rhythm.UserRhythmVoice):
					continue

				match = next((v for v in remaining if v is other_voice), None)

				if match is None:
					match = next((v for v in remaining if v.type == other_voice.type), None)

				if not match_with(other_voice, match):
					unmatched.append(other_voice)

			for key_of in (_voice_adapt_key, _voice_family):

				still_unmatched = []

				for other_voice in unmatched:
					key = key_of(other, other_voice)
					match = next((v for v in remaining if key is not None and key_of(self, v) == key), None)

					if not match_with(other_voice, match):
						still_unmatched.append(other_voice)

				unmatched = still_unmatched

			with arranger.undo.optional_compound(self.undo_manager, "Import instrument mixes"):

				for other_voice, voice in matches:
					other_mix = other.get_voice_mix(other_voice)
					assert other_mix is not None
					self.set_instrument_mix(self.get_channel(voice), voice, other_mix.copy())

				for other_channel in other.user_channels():

					other_voice = other.get_voice(other_channel)
					assert other_voice is not None
					user_voice = self.user_voice(other_voice.name)

					if user_voice is not None:
						other_mix = other.get_instrument_mix(other_channel)
						assert other_mix is not None
						self._change_instrument_mix(self.get_channel(user_voice), user_voice, other_mix.copy())

	def add_user_channel (self, name: str, drums: bool = False) -> int:

		"""
		Bind a new user voice named ``name`` and return its channel.

		A drums phrase reuses the instrument of the song's drums channel when
		there is one.

		Raises ``MidiUnavailableError`` if no channel is free.
		"""

		logger.debug(f"add_user_channel() name={name!r} drums={drums}")

		with self._lock:

			existing = self.user_voice(name)

			if existing is not None:
				return self.get_channel(existing)

			channel = self.user_phrase_channel

			if self._voices[channel] is not None:
				channel = self.find_free_channel(False)

			if channel == -1:
				raise arranger.errors.MidiUnavailableError(NOT_ENOUGH_CHANNELS)

			provider = self.manager.provider if self.manager is not None else arranger.instruments.InstrumentProvider()
			voice = arranger.rhythm.UserRhythmVoice(name, drums)
			instrument = None

			if drums:

				drums_voice = self._voices[arranger.constants.CHANNEL_DRUMS]

				if drums_voice is None:
					drums_voice = next((v for v in self.voices() if v.is_drums), None)

				if drums_voice is not None:
					drums_mix = self.get_voice_mix(drums_voice)
					assert drums_mix is not None
					instrument = drums_mix.instrument

			if instrument is None:
				instrument = provider.find_instrument(voice, channel)

			with arranger.undo.optional_compound(self.undo_manager, f"Add user channel {name}"):

				self.set_instrument_mix(channel, voice, arranger.instruments.InstrumentMix(instrument, arranger.instruments.InstrumentSettings()))

				if drums and instrument.is_void and channel != arranger.constants.CHANNEL_DRUMS:
					self.set_drums_rerouted_channel(True, channel)

			return channel

	def remove_user_channel (self, name: str) -> int:

		"""Free the channel of user phrase ``name``. Returns the channel, or -1."""

		with self._lock:

			voice = self.user_voice(name)

			if voice is None:
				return -1

			channel = self.get_channel(voice)
			self._change_instrument_mix(channel, None, None)
			return channel

	def add_rhythm (self, rhythm: arranger.rhythm.Rhythm) -> None:

		"""
		Allocate channels for the voices of ``rhythm``.

		When the mix already holds a rhythm, the incoming instruments are first
		adapted to sound like that rhythm's instruments.

		Raises ``MidiUnavailableError`` if there are not enough free channels.
		"""

		rhythm = arranger.rhythm.source_rhythm(rhythm)
		logger.debug(f"add_rhythm() rhythm={rhythm!r}")

		if self.manager is not None:
			rhythm_mix = self.manager.find_mix_for_rhythm(rhythm).deep_copy()
		else:
			rhythm_mix = MidiMix.from_rhythm(rhythm, arranger.instruments.InstrumentProvider())

		current_rhythms = self.unique_rhythms()

		if current_rhythms:
			self.adapt_instrument_mixes(rhythm_mix, current_rhythms[0])

		self.add_instrument_mixes(rhythm_mix, rhythm)

	def remove_rhythm (self, rhythm: arranger.rhythm.Rhythm) -> None:

		"""Free the channels of the voices of ``rhythm``."""

		rhythm = arranger.rhythm.source_rhythm(rhythm)
		logger.debug(f"remove_rhythm() rhythm={rhythm!r}")

		with arranger.undo.optional_compound(self.undo_manager, "Remove rhythm"):
			for channel in self.used_channels(rhythm):
				self.set_instrument_mix(channel, None, None)

	def adapt_instrument_mixes (self, other: "MidiMix", reference: arranger.rhythm.Rhythm) -> None:

		"""
		Make the mixes of ``other`` sound like those of ``reference`` in this mix.

		Voices are matched on the first three letters of their name plus the
		instrument family, then on the family alone. Drums and percussion take
		the reference drums and percussion mixes. Matching is best effort.
		"""

		by_key: typing.Dict[str, arranger.instruments.InstrumentMix] = {}
		by_family: typing.Dict[str, arranger.instruments.InstrumentMix] = {}
		drums_mix: typing.Optional[arranger.instruments.InstrumentMix] = None
		percussion_mix: typing.Optional[arranger.instruments.InstrumentMix] = None

		for channel in self.used_channels(reference):

			voice = self._voices[channel]
			mix = self._mix_at(channel)
			assert voice is not None and mix is not None

			if voice.is_drums:

				source = self._drums_rerouted.get(channel, mix)

				if voice.type == arranger.rhythm.RhythmVoiceType.DRUMS:
					drums_mix = source
				else:
					percussion_mix = source

				continue

			family = mix.instrument.family
			by_key.setdefault(_adapt_key(voice, mix), mix)

			if family is not None:
				by_family.setdefault(family, mix)

		done = set()

		for channel in other.used_channels():

			voice = other.get_voice(channel)
			other_mix = other.get_instrument_mix(channel)
			assert voice is not None and other_mix is not None

			if voice.type == arranger.rhythm.RhythmVoiceType.DRUMS:
				match = drums_mix
			elif voice.type == arranger.rhythm.RhythmVoiceType.PERCUSSION:
				match = percussion_mix
			else:
				match = by_key.get(_adapt_key(voice, other_mix))

			if match is not None:
				other_mix.instrument = match.instrument
				other_mix.settings.set_from(match.settings)
				done.add(channel)

		for channel in other.used_channels():

			if channel in done:
				continue

			other_mix = other.get_instrument_mix(channel)
			assert other_mix is not None
			family = other_mix.instrument.family

			if family is None:
				continue

			match = by_family.get(family)

			if match is not None:
				other_mix.instrument = match.instrument
				other_mix.settings.set_from(match.settings)

	def mark_saved (self) -> None:

		self.needs_save = False
		self.events.emit_sync("modified_or_saved", False)

	# ─── MIDI ────────────────────────────────────────────────────────

	def all_midi_messages (self) -> typing.List[mido.Message]:

		"""Messages setting up every bound channel."""

		messages: typing.List[mido.Message] = []

		for channel in self.used_channels():
			mix = self._mix_at(channel)
			assert mix is not None
			messages.extend(mix.midi_messages(channel))

		return messages

	def volume_midi_messages (self) -> typing.List[mido.Message]:

		messages: typing.List[mido.Message] = []

		for channel in self.used_channels():
			mix = self._mix_at(channel)
			assert mix is not None
			messages.append(mido.Message("control_change", channel=channel, control=arranger.constants.midi.CC_VOLUME, value=mix.settings.volume))

		return messages

	# ─── Undo replay ─────────────────────────────────────────────────

	def replay_edit (self, edit: arranger.undo.UndoableEdit, state: typing.Any, forward: bool) -> None:

		"""Restore ``state`` recorded by ``edit`` and re-fire the matching events."""

		with self._lock:

			if edit.kind == "channel_mix":

				channel, voice, mix = state
				replaced = self._mix_at(channel)

				if replaced is not None:
					self._unsubscribe(replaced)

				self._voices[channel] = voice
				self._store(channel, mix)

				if mix is not None:
					self._subscribe(mix)

				self.events.emit_sync("channel_mix", channel, replaced, mix)
				self._modified()
				self._music_generation_modified("channel_mix", channel)

			elif edit.kind == "rhythm_voice":

				channel, voice = state
				old_voice = self._voices[channel]
				self._voices[channel] = voice
				self.events.emit_sync("rhythm_voice", old_voice, voice)
				self._music_generation_modified("rhythm_voice", voice)
				self._modified()

			elif edit.kind == "rhythm_voice_channel":

				from_channel, to_channel = state
				voice = self._voices[from_channel]
				self._swap_channels(from_channel, to_channel)
				self.events.emit_sync("rhythm_voice_channel", voice, from_channel, to_channel)
				self._music_generation_modified("rhythm_voice_channel", voice)
				self._modified()

			elif edit.kind == "drums_rerouted":

				channel, enabled, snapshot = state
				self._reroute(channel, enabled, snapshot)

			else:
				raise ValueError(f"Unknown edit kind {edit.kind!r}")

	# ─── Arrangement listeners ───────────────────────────────────────

	def _undo_redo_in_progress (self) -> bool:

		return self.undo_manager is not None and self.undo_manager.undo_redo_in_progress

	def _authorize_structure_change (self, event: arranger.song_structure.SgsChangeEvent) -> arranger.event_emitter.Verdict:

		"""Reject part changes that would need more voices than there are channels."""

		if self._undo_redo_in_progress() or self.arrangement is None:
			return arranger.event_emitter.Verdict.ok()

		parts = self.arrangement.song_structure.parts

		if isinstance(event, arranger.song_structure.PartsAddedEvent):
			parts.extend(event.parts)

		elif isinstance(event, arranger.song_structure.PartsReplacedEvent):
			parts = [p for p in parts if not any(p is old for old in event.old_parts)] + list(event.new_parts)

		else:
			return arranger.event_emitter.Verdict.ok()

		rhythms: typing.List[arranger.rhythm.Rhythm] = []
		nb_voices = len(self.user_channels())

		for part in parts:

			rhythm = arranger.rhythm.source_rhythm(part.rhythm)

			if rhythm not in rhythms:
				rhythms.append(rhythm)
				nb_voices += len(rhythm.voices)

		if nb_voices > arranger.constants.NB_CHANNELS:
			logger.info(f"Rejected song structure change needing {nb_voices} channels")
			return arranger.event_emitter.Verdict.reject(NOT_ENOUGH_CHANNELS)

		return arranger.event_emitter.Verdict.ok()

	def _structure_changed (self, event: arranger.song_structure.SgsChangeEvent) -> None:

		if self._undo_redo_in_progress() or self.arrangement is None:
			return

		song_rhythms = self.arrangement.song_structure.unique_rhythms(exclude_adapted=True)
		mix_rhythms = self.unique_rhythms()

		removed: typing.List[arranger.song_structure.Part] = []
		added: typing.List[arranger.song_structure.Part] = []

		if isinstance(event, arranger.song_structure.PartsAddedEvent):
			added = event.parts

		elif isinstance(event, arranger.song_structure.PartsRemovedEvent):
			removed = event.parts

		elif isinstance(event, arranger.song_structure.PartsReplacedEvent):
			# Free channels before allocating new ones
			removed = event.old_parts
			added = event.new_parts

		for part in removed:

			rhythm = arranger.rhythm.source_rhythm(part.rhythm)

			if rhythm not in song_rhythms and rhythm in mix_rhythms:
				self.remove_rhythm(rhythm)
				mix_rhythms.remove(rhythm)

		for part in added:

			rhythm = arranger.rhythm.source_rhythm(part.rhythm)

			if rhythm not in mix_rhythms:

				try:
					self.add_rhythm(rhythm)

				except arranger.errors.MidiUnavailableError as e:
					raise RuntimeError(f"Authorized song structure change can't get channels for {rhythm!r}: {e}") from e

				mix_rhythms.append(rhythm)

	def _authorize_user_phrase (
		self,
		name: str,
		old_phrase: typing.Optional["arranger.arrangement.Phrase"],
		new_phrase: typing.Optional["arranger.arrangement.Phrase"]
	) -> arranger.event_emitter.Verdict:

		if self._undo_redo_in_progress() or old_phrase is not None or new_phrase is None:
			return arranger.event_emitter.Verdict.ok()

		if self.user_voice(name) is None and self._voices[self.user_phrase_channel] is not None and self.find_free_channel(False) == -1:
			return arranger.event_emitter.Verdict.reject(NOT_ENOUGH_CHANNELS)

		return arranger.event_emitter.Verdict.ok()

	def _user_phrase_changed (
		self,
		name: str,
		old_phrase: typing.Optional["arranger.arrangement.Phrase"],
		new_phrase: typing.Optional["arranger.arrangement.Phrase"]
	) -> None:

		if self._undo_redo_in_progress():
			return

		if old_phrase is None and new_phrase is not None:
			self.add_user_channel(name, new_phrase.drums)

		elif new_phrase is None:
			self.remove_user_channel(name)

	def _user_phrase_renamed (self, old_name: str, new_name: str) -> None:

		if self._undo_redo_in_progress():
			return

		old_voice = self.user_voice(old_name)
		assert old_voice is not None, old_name
		self.replace_rhythm_voice(old_voice, arranger.rhythm.UserRhythmVoice(new_name, old_voice.is_drums))

	# ─── Instrument mix listeners ────────────────────────────────────

	def _on_solo (self, mix: arranger.instruments.InstrumentMix, value: bool) -> None:

		logger.debug(f"Solo {value} on channel {self.get_mix_channel(mix)}")

		if value:

			first = not self._soloed
			self._soloed.add(mix.handle)

			if first:
				self._save_mutes()

				for other in self.instrument_mixes():
					if other is not mix:
						other.mute = True

			mix.mute = False

		else:

			self._soloed.discard(mix.handle)

			if not self._soloed:
				self._restore_mutes()
			else:
				mix.mute = True

		self._modified()

	def _on_mute (self, mix: arranger.instruments.InstrumentMix, value: bool) -> None:

		# Unmuting a channel under solo makes it soloed too
		if not value and self._soloed:
			mix.solo = True

		self.events.emit_sync("mute", mix, value)
		self._modified()

	def _on_instrument (
		self,
		mix: arranger.instruments.InstrumentMix,
		old: arranger.instruments.Instrument,
		new: arranger.instruments.Instrument
	) -> None:

		voice = self._voices[self.get_mix_channel(mix)]

		if voice is not None and voice.is_drums:

			old_map = old.drum_kit.key_map if old.drum_kit is not None else None
			new_map = new.drum_kit.key_map if new.drum_kit is not None else None

			if old_map != new_map:
				self.events.emit_sync("drums_keymap", self.get_mix_channel(mix), old_map)
				self._music_generation_modified("drums_keymap", None)

		self._modified()

	def _on_instrument_enabled (self, mix: arranger.instruments.InstrumentMix, value: bool) -> None:

		self._modified()

	def _on_settings (self, settings: arranger.instruments.InstrumentSettings, name: str, old: typing.Any, new: typing.Any) -> None:

		if name in ("transposition", "velocity_shift"):
			self.events.emit_sync(name, settings.container, new)
			self._music_generation_modified(name, settings.container)

		self._modified()

	# ─── Internals ───────────────────────────────────────────────────

	def _check_channel (self, channel: int) -> None:

		if not arranger.constants.midi.check_channel(channel):
			raise ValueError(f"Invalid MIDI channel {channel}")

	def _mix_at (self, channel: int) -> typing.Optional[arranger.instruments.InstrumentMix]:

		handle = self._mix_handles[channel]
		return self._arena[handle] if handle is not None else None

	def _store (self, channel: int, mix: typing.Optional[arranger.instruments.InstrumentMix]) -> None:

		if mix is None:
			self._mix_handles[channel] = None
			return

		self._arena[mix.handle] = mix
		self._mix_handles[channel] = mix.handle

	def _change_instrument_mix (
		self,
		channel: int,
		voice: typing.Optional[arranger.rhythm.RhythmVoice],
		mix: typing.Optional[arranger.instruments.InstrumentMix]
	) -> None:

		old_mix = self._mix_at(channel)
		old_voice = self._voices[channel]

		if old_mix is None and mix is None:
			return

		if old_mix is not None and old_mix is mix:
			return

		# Stopping the drums rerouting and rebinding are one undo step
		with arranger.undo.optional_compound(self.undo_manager, "Change instrument mix"):

			if old_mix is not None:
				old_mix.solo = False
				self._unsubscribe(old_mix)
				self.set_drums_rerouted_channel(False, channel)

			if mix is not None:
				mix.solo = False
				self._subscribe(mix)

			self._voices[channel] = voice
			self._store(channel, mix)

			self._edit_happened("Change instrument mix", "channel_mix", (channel, old_voice, old_mix), (channel, voice, mix))

		self.events.emit_sync("channel_mix", channel, old_mix, mix)
		self._modified()
		self._music_generation_modified("channel_mix", channel)

	def _reroute (self, channel: int, enabled: bool, snapshot: arranger.instruments.InstrumentMix) -> None:

		mix = self._mix_at(channel)
		assert mix is not None

		if enabled:
			self._drums_rerouted[channel] = snapshot
			mix.instrument_enabled = False
			mix.settings.chorus_enabled = False
			mix.settings.reverb_enabled = False
			mix.settings.panoramic_enabled = False
			mix.settings.volume_enabled = False

		else:
			del self._drums_rerouted[channel]
			_restore_enabled_flags(mix, snapshot)

		self.events.emit_sync("drums_rerouted", channel, enabled)
		self._music_generation_modified("drums_rerouted", channel)
		self._modified()

	def _swap_channels (self, old_channel: int, new_channel: int) -> None:

		self._voices[new_channel] = self._voices[old_channel]
		self._voices[old_channel] = None
		self._mix_handles[new_channel] = self._mix_handles[old_channel]
		self._mix_handles[old_channel] = None

		saved = self._drums_rerouted.pop(old_channel, None)

		if saved is not None:
			self._drums_rerouted[new_channel] = saved

		self._saved_mutes[new_channel] = self._saved_mutes[old_channel]
		self._saved_mutes[old_channel] = False

	def _subscribe (self, mix: arranger.instruments.InstrumentMix) -> None:

		mix.events.on("solo", self._on_solo)
		mix.events.on("mute", self._on_mute)
		mix.events.on("instrument", self._on_instrument)
		mix.events.on("instrument_enabled", self._on_instrument_enabled)
		mix.settings.events.on("change", self._on_settings)

	def _unsubscribe (self, mix: arranger.instruments.InstrumentMix) -> None:

		mix.events.off("solo", self._on_solo)
		mix.events.off("mute", self._on_mute)
		mix.events.off("instrument", self._on_instrument)
		mix.events.off("instrument_enabled", self._on_instrument_enabled)
		mix.settings.events.off("change", self._on_settings)

	def _save_mutes (self) -> None:

		for channel in range(arranger.constants.NB_CHANNELS):
			mix = self._mix_at(channel)
			self._saved_mutes[channel] = mix.mute if mix is not None else False

	def _restore_mutes (self) -> None:

		for channel in range(arranger.constants.NB_CHANNELS):
			mix = self._mix_at(channel)

			if mix is not None:
				mix.mute = self._saved_mutes[channel]

	def _modified (self) -> None:

		self.needs_save = True
		self.events.emit_sync("modified_or_saved", True)

	def _music_generation_modified (self, what: str, data: typing.Any) -> None:

		self.events.emit_sync("music_generation", what, data)

	def _edit_happened (self, name: str, kind: str, before: typing.Any, after: typing.Any) -> None:

		if self.undo_manager is not None:
			self.undo_manager.edit_happened(arranger.undo.UndoableEdit(name, self, kind, before, after))

	def __repr__ (self) -> str:

		slots = ", ".join(f"{i}:{v.name}" for i, v in enumerate(self._voices) if v is not None)
		return f"MidiMix({slots})"


def _adapt_key (voice: arranger.rhythm.RhythmVoice, mix: arranger.instruments.InstrumentMix) -> str:

	return f"{voice.name.lower()[:3]}-{mix.instrument.family or ''}"


def _restore_enabled_flags (mix: arranger.instruments.InstrumentMix, saved: arranger.instruments.InstrumentMix) -> None:

	mix.instrument_enabled = saved.instrument_enabled
	mix.settings.chorus_enabled = saved.settings.chorus_enabled
	mix.settings.reverb_enabled = saved.settings.reverb_enabled
	mix.settings.panoramic_enabled = saved.settings.panoramic_enabled
	mix.settings.volume_enabled = saved.settings.volume_enabled


def _voice_adapt_key (mix: MidiMix, voice: arranger.rhythm.RhythmVoice) -> typing.Optional[str]:

	voice_mix = mix.get_voice_mix(voice)
	return _adapt_key(voice, voice_mix) if voice_mix is not None else None


def _voice_family (mix: MidiMix, voice: arranger.rhythm.RhythmVoice) -> typing.Optional[str]:

	voice_mix = mix.get_voice_mix(voice)
	return voice_mix.instrument.family if voice_mix is not None else None
