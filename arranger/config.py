import dataclasses
import logging
import os
import typing

import yaml


logger = logging.getLogger(__name__)


def load_config (config_path: str = "config.yaml") -> typing.Dict[str, typing.Any]:

	"""
	Load configuration from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, "r") as f:
		data = yaml.safe_load(f)

	if data is None:
		return {}

	if not isinstance(data, dict):
		raise ValueError(f"Config file {config_path} must hold a mapping")

	return data


@dataclasses.dataclass
class ArrangerConfig:

	"""
	Settings of the arranger.

	Attributes:
		log_level: Name of the root logging level.
		mix_cache_size: Number of arrangement mixes kept in memory.
		user_phrase_channel: Preferred MIDI channel (0-15) of a new user phrase.
		mix_directory: Directory of ``<rhythm id>.mix.yaml`` rhythm mix files.
		midi_output: MIDI output device name; ``None`` to pick one interactively.
		rhythms: Extra rhythm catalog entries, see ``RhythmDatabase.load_catalog()``.
	"""

	log_level: str = "INFO"
	mix_cache_size: int = 8
	user_phrase_channel: int = 0
	mix_directory: typing.Optional[str] = None
	midi_output: typing.Optional[str] = None
	rhythms: typing.List[typing.Dict[str, typing.Any]] = dataclasses.field(default_factory=list)

	@classmethod
	def from_dict (cls, data: typing.Dict[str, typing.Any]) -> "ArrangerConfig":

		"""
		Build a config from a mapping, ignoring unknown keys with a warning.

		Raises ``ValueError`` on an invalid value.
		"""

		known = {f.name for f in dataclasses.fields(cls)}

		for key in data:
			if key not in known:
				logger.warning(f"Unknown config key {key!r} ignored")

		config = cls(**{k: v for k, v in data.items() if k in known})

		if not isinstance(config.mix_cache_size, int) or config.mix_cache_size < 1:
			raise ValueError(f"mix_cache_size must be a positive int, got {config.mix_cache_size!r}")

		if not isinstance(config.user_phrase_channel, int) or not 0 <= config.user_phrase_channel <= 15:
			raise ValueError(f"user_phrase_channel must be a MIDI channel 0-15, got {config.user_phrase_channel!r}")

		if not isinstance(logging.getLevelName(str(config.log_level).upper()), int):
			raise ValueError(f"Invalid log_level {config.log_level!r}")

		return config

	@classmethod
	def load (cls, config_path: str = "config.yaml") -> "ArrangerConfig":

		return cls.from_dict(load_config(config_path))
