import argparse
import logging
import sys
import typing

import arranger.arrangement
import arranger.config
import arranger.errors
import arranger.midi_utils
import arranger.midimix_io
import arranger.midimix_manager
import arranger.rhythm_database


logger = logging.getLogger(__name__)


def parse_args (argv: typing.Optional[typing.List[str]] = None) -> argparse.Namespace:

	parser = argparse.ArgumentParser(prog="arranger", description="Build the part timeline and MIDI mix of a song.")
	parser.add_argument("song", help="YAML song file")
	parser.add_argument("--config", default="config.yaml", help="YAML config file (default: config.yaml)")
	parser.add_argument("--save-mix", metavar="PATH", help="save the mix to PATH")
	parser.add_argument("--send", action="store_true", help="send the mix setup to the MIDI output")

	return parser.parse_args(argv)


def main (argv: typing.Optional[typing.List[str]] = None) -> int:

	"""
	Main entry point for the arranger application.
	"""

	args = parse_args(argv)

	try:
		config = arranger.config.ArrangerConfig.load(args.config)

	except ValueError as e:
		logger.error(f"Invalid config {args.config}: {e}")
		return 1

	logging.basicConfig(level=getattr(logging, str(config.log_level).upper()))

	db = arranger.rhythm_database.RhythmDatabase.with_defaults()
	db.load_catalog(config.rhythms)

	manager = arranger.midimix_manager.MidiMixManager(
		db,
		cache_size=config.mix_cache_size,
		mix_directory=config.mix_directory,
		user_phrase_channel=config.user_phrase_channel
	)

	try:
		arrangement = arranger.arrangement.load_arrangement(args.song, db)
		mix = manager.find_mix(arrangement)

	except (OSError, ValueError, arranger.errors.ArrangerError) as e:
		logger.error(f"Can't arrange {args.song}: {e}")
		return 1

	print(f"{arrangement.name}\n")

	for part in arrangement.song_structure.parts:
		print(f"  bar {part.start_bar:>3}  {part.nb_bars:>3} bars  {part.name:<12} {part.rhythm.name}")

	print()

	for line in arranger.midi_utils.channel_table(mix):
		print(f"  {line}")

	if args.save_mix:
		arranger.midimix_io.save_mix(mix, args.save_mix)

	if args.send:

		device_name, midi_out = arranger.midi_utils.select_output_device(config.midi_output)

		if midi_out is None:
			return 1

		try:
			arranger.midi_utils.send_mix(mix, midi_out)

		finally:
			midi_out.close()

	manager.release(arrangement)
	arrangement.close()
	return 0


if __name__ == "__main__":
	sys.exit(main())
