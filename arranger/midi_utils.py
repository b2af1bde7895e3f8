import logging
import typing

import mido

import arranger.midimix


logger = logging.getLogger(__name__)


def select_output_device (device_name: typing.Optional[str] = None) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Open the MIDI output a mix is sent to.

	With ``device_name`` (the ``midi_output`` config key) that port must
	exist. Without it, the only available port is used; when there are
	several, none is opened and the available names are logged so one can
	be put in the config file.

	Returns:
		A tuple of (device_name, midi_out_object) or (None, None) on failure.
	"""

	try:
		outputs = mido.get_output_names()

	except (OSError, ImportError) as e:
		logger.error(f"Can't list MIDI outputs: {e}")
		return None, None

	logger.debug(f"MIDI outputs: {outputs}")

	if not outputs:
		logger.error("No MIDI output devices found")
		return None, None

	if device_name is None:

		if len(outputs) > 1:
			logger.error(f"Several MIDI outputs found, set midi_output in the config file to one of {outputs}")
			return None, None

		device_name = outputs[0]

	elif device_name not in outputs:
		logger.error(f"MIDI output {device_name!r} not found, available: {outputs}")
		return None, None

	try:
		midi_out = mido.open_output(device_name)

	except (OSError, ImportError) as e:
		logger.error(f"Can't open MIDI output {device_name!r}: {e}")
		return None, None

	logger.info(f"Sending to MIDI output {device_name!r}")
	return device_name, midi_out


def send_mix (mix: arranger.midimix.MidiMix, midi_out: typing.Any) -> int:

	"""
	Send the setup messages of every channel of ``mix`` (bank, program,
	volume, pan and effects). Returns the number of messages sent.
	"""

	messages = mix.all_midi_messages()

	for message in messages:
		midi_out.send(message)

	logger.info(f"Sent {len(messages)} MIDI messages")
	return len(messages)


def send_volumes (mix: arranger.midimix.MidiMix, midi_out: typing.Any) -> int:

	"""Send the volume of every channel of ``mix``."""

	messages = mix.volume_midi_messages()

	for message in messages:
		midi_out.send(message)

	return len(messages)


def channel_table (mix: arranger.midimix.MidiMix) -> typing.List[str]:

	"""One line per used channel, 1-indexed as shown on hardware."""

	lines = []

	for channel in mix.used_channels():

		voice = mix.get_voice(channel)
		instrument_mix = mix.get_instrument_mix(channel)
		assert voice is not None and instrument_mix is not None

		flags = []

		if instrument_mix.mute:
			flags.append("mute")

		if instrument_mix.solo:
			flags.append("solo")

		if channel in mix.drums_rerouted_channels():
			flags.append("rerouted")

		owner = voice.container.name if voice.container is not None else "User"
		lines.append(f"{channel + 1:>2}  {owner:<16} {voice.name:<12} {instrument_mix.instrument.name:<24} {' '.join(flags)}".rstrip())

	return lines
