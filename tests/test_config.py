import pathlib

import pytest

import arranger.config


def test_missing_file_gives_defaults (tmp_path: pathlib.Path) -> None:

	config = arranger.config.ArrangerConfig.load(str(tmp_path / "absent.yaml"))

	assert config == arranger.config.ArrangerConfig()
	assert config.mix_cache_size == 8
	assert config.midi_output is None


def test_empty_file_gives_defaults (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "config.yaml"
	path.write_text("")

	assert arranger.config.load_config(str(path)) == {}


def test_values_are_read (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "config.yaml"
	path.write_text(
		"log_level: debug\n"
		"mix_cache_size: 2\n"
		"user_phrase_channel: 5\n"
		"midi_output: \"Dummy MIDI\"\n"
		"rhythms:\n"
		"  - {id: polka-24, name: Polka, time_signature: 2/4, voices: [{name: Drums, type: drums, channel: 9}]}\n"
	)

	config = arranger.config.ArrangerConfig.load(str(path))

	assert config.log_level == "debug"
	assert config.mix_cache_size == 2
	assert config.user_phrase_channel == 5
	assert config.midi_output == "Dummy MIDI"
	assert config.rhythms[0]["id"] == "polka-24"


def test_unknown_keys_are_ignored (caplog: pytest.LogCaptureFixture) -> None:

	config = arranger.config.ArrangerConfig.from_dict({"tempo": 120})

	assert config == arranger.config.ArrangerConfig()
	assert "tempo" in caplog.text


@pytest.mark.parametrize("data", [
	{"mix_cache_size": 0},
	{"user_phrase_channel": 16},
	{"log_level": "LOUD"},
])
def test_invalid_values_raise (data: dict) -> None:

	with pytest.raises(ValueError):
		arranger.config.ArrangerConfig.from_dict(data)


def test_non_mapping_file_raises (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "config.yaml"
	path.write_text("- a\n- b\n")

	with pytest.raises(ValueError):
		arranger.config.load_config(str(path))
