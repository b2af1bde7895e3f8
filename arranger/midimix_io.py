"""Saving and loading mixes as YAML.

A mix file holds one entry per MIDI channel, in channel order, ``null`` for
a free channel::

	format: 1
	slots:
	  - null
	  - voice: [bossa-nova-44, Bass]
	    time_signature: 4/4
	    type: bass
	    instrument: {name: Acoustic Bass, program: 32, bank_msb: 0, bank_lsb: 0}
	    settings: {volume: 100, panoramic: 64, ...}
	    mute: false
	  - voice: USER_MELODIC
	    phrase: Riff
	    ...

A drums-rerouted channel is saved with the mix it had before rerouting. Solo
is never saved.
"""

import logging
import typing

import yaml

import arranger.constants
import arranger.errors
import arranger.instruments
import arranger.midimix
import arranger.rhythm
import arranger.rhythm_database


logger = logging.getLogger(__name__)


FORMAT_VERSION = 1

USER_MELODIC = "USER_MELODIC"
USER_DRUMS = "USER_DRUMS"

# Unavailable rhythm ids already reported, so each is logged once
_reported_unavailable: typing.Set[str] = set()


def save_mix (mix: arranger.midimix.MidiMix, path: str) -> None:

	"""
	Write ``mix`` to ``path`` and mark it saved.
	"""

	slots: typing.List[typing.Optional[typing.Dict[str, typing.Any]]] = []

	for channel in range(arranger.constants.NB_CHANNELS):

		voice = mix.get_voice(channel)

		if voice is None:
			slots.append(None)
			continue

		saved = mix.drums_rerouted_snapshot(channel)
		instrument_mix = saved if saved is not None else mix.get_instrument_mix(channel)
		assert instrument_mix is not None

		slot: typing.Dict[str, typing.Any] = {}

		if isinstance(voice, arranger.rhythm.UserRhythmVoice):
			slot["voice"] = USER_DRUMS if voice.is_drums else USER_MELODIC
			slot["phrase"] = voice.name

		else:
			assert voice.container is not None
			slot["voice"] = [voice.container.unique_id, voice.name]
			slot["time_signature"] = str(voice.container.time_signature)
			slot["type"] = voice.type.value

		slot["instrument"] = _instrument_to_dict(instrument_mix.instrument)
		slot["settings"] = instrument_mix.settings.to_dict()
		slot["mute"] = instrument_mix.mute

		if saved is not None:
			slot["drums_rerouted"] = True

		slots.append(slot)

	with open(path, "w") as file:
		yaml.safe_dump({"format": FORMAT_VERSION, "slots": slots}, file, sort_keys=False)

	logger.info(f"Saved mix to {path}")

	mix.file_path = path
	mix.mark_saved()


def load_mix (
	path: str,
	rhythm_database: arranger.rhythm_database.RhythmDatabase,
	manager: typing.Optional["arranger.midimix_manager.MidiMixManager"] = None
) -> arranger.midimix.MidiMix:

	"""
	Read a mix file.

	An unknown rhythm is replaced by a substitute of the same time signature;
	its voices are matched by name, then by type. Every slot is loaded with
	solo and drums rerouting off, and a drums voice given a melodic
	instrument gets the void instrument instead.

	Raises ``MixFileError`` if the file can't be read or parsed.
	"""

	try:
		with open(path, "r") as file:
			data = yaml.safe_load(file)

	except (OSError, yaml.YAMLError) as e:
		raise arranger.errors.MixFileError(f"Can't read mix file {path}: {e}") from e

	if not isinstance(data, dict) or not isinstance(data.get("slots"), list):
		raise arranger.errors.MixFileError(f"{path}: not a mix file")

	slots = data["slots"]

	if len(slots) != arranger.constants.NB_CHANNELS:
		raise arranger.errors.MixFileError(f"{path}: expected {arranger.constants.NB_CHANNELS} slots, found {len(slots)}")

	mix = arranger.midimix.MidiMix(manager)
	substitutes: typing.Dict[str, arranger.rhythm.Rhythm] = {}

	try:

		for channel, slot in enumerate(slots):

			if slot is None:
				continue

			voice = _voice_from_slot(slot, rhythm_database, substitutes, mix)

			if voice is None:
				logger.warning(f"{path}: no voice for channel {channel}, channel left free")
				continue

			instrument = _instrument_from_dict(slot["instrument"])

			if voice.is_drums and instrument.drum_kit is None and not instrument.is_void:
				logger.warning(f"{path}: melodic instrument {instrument.name!r} on drums channel {channel}, using the void instrument")
				instrument = arranger.instruments.VOID_INSTRUMENT

			instrument_mix = arranger.instruments.InstrumentMix(
				instrument,
				arranger.instruments.InstrumentSettings.from_dict(slot.get("settings") or {})
			)
			instrument_mix.mute = bool(slot.get("mute", False))

			mix.set_instrument_mix(channel, voice, instrument_mix)

	except (KeyError, TypeError, ValueError, arranger.errors.UnavailableRhythmError) as e:
		raise arranger.errors.MixFileError(f"{path}: invalid slot: {e}") from e

	logger.info(f"Loaded mix from {path}")

	mix.file_path = path
	mix.needs_save = False
	return mix


def _voice_from_slot (
	slot: typing.Dict[str, typing.Any],
	rhythm_database: arranger.rhythm_database.RhythmDatabase,
	substitutes: typing.Dict[str, arranger.rhythm.Rhythm],
	mix: arranger.midimix.MidiMix
) -> typing.Optional[arranger.rhythm.RhythmVoice]:

	key = slot["voice"]

	if key in (USER_MELODIC, USER_DRUMS):
		return arranger.rhythm.UserRhythmVoice(str(slot["phrase"]), key == USER_DRUMS)

	rhythm_id, voice_name = key

	try:
		rhythm = arranger.rhythm.source_rhythm(rhythm_database.get_rhythm_instance(rhythm_id))

	except arranger.errors.UnavailableRhythmError:

		rhythm = substitutes.get(rhythm_id)

		if rhythm is None:
			ts = arranger.rhythm.TimeSignature.parse(str(slot.get("time_signature", "4/4")))
			rhythm = rhythm_database.find_substitute(rhythm_id, ts)
			substitutes[rhythm_id] = rhythm

			if rhythm_id not in _reported_unavailable:
				_reported_unavailable.add(rhythm_id)
				logger.warning(f"Rhythm {rhythm_id!r} unavailable, using {rhythm!r} instead")

		free_voices = [v for v in rhythm.voices if mix.get_channel(v) == -1]
		voice_type = arranger.rhythm.RhythmVoiceType(slot.get("type", arranger.rhythm.RhythmVoiceType.OTHER.value))

		return (
			next((v for v in free_voices if v.name == voice_name), None)
			or next((v for v in free_voices if v.type == voice_type), None)
		)

	voice = rhythm.voice(voice_name)

	if voice is None:
		raise ValueError(f"Rhythm {rhythm_id!r} has no voice {voice_name!r}")

	return voice


def _instrument_to_dict (instrument: arranger.instruments.Instrument) -> typing.Dict[str, typing.Any]:

	data: typing.Dict[str, typing.Any] = {
		"name": instrument.name,
		"program": instrument.program,
		"bank_msb": instrument.bank_msb,
		"bank_lsb": instrument.bank_lsb,
	}

	if instrument.drum_kit is not None:
		data["drum_kit"] = {"name": instrument.drum_kit.name, "key_map": instrument.drum_kit.key_map}

	return data


def _instrument_from_dict (data: typing.Dict[str, typing.Any]) -> arranger.instruments.Instrument:

	if data.get("program") is None:
		return arranger.instruments.VOID_INSTRUMENT

	drum_kit = None

	if data.get("drum_kit") is not None:
		drum_kit = arranger.instruments.DrumKit(str(data["drum_kit"]["name"]), str(data["drum_kit"]["key_map"]))

	return arranger.instruments.Instrument(
		str(data["name"]),
		int(data["program"]),
		int(data.get("bank_msb", 0)),
		int(data.get("bank_lsb", 0)),
		drum_kit
	)
