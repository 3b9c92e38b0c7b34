import argparse
import asyncio
import logging
import signal
import typing

import beatpad.clock
import beatpad.config
import beatpad.engine
import beatpad.exceptions
import beatpad.midi_input
import beatpad.playback
import beatpad.resources
import beatpad.storage


logger = logging.getLogger(__name__)


def parse_args (argv: typing.Optional[typing.List[str]] = None) -> argparse.Namespace:

	parser = argparse.ArgumentParser(prog="beatpad", description="Pad-driven 16-step drum sequencer.")
	parser.add_argument("--config", default="config.yaml", help="YAML config file (default: config.yaml)")
	parser.add_argument("--project", help="Project JSON file to import at start-up")
	parser.add_argument("--play", action="store_true", help="Start the transport immediately")

	return parser.parse_args(argv)


def build_engine (config: beatpad.config.Config) -> beatpad.engine.Engine:

	"""
	Create an engine wired to real devices and on-disk storage.
	"""

	return beatpad.engine.Engine(
		resolver = beatpad.resources.DefaultResolver(config.storage.sounds_dir),
		clock = beatpad.clock.AsyncioTickDriver(spin_wait=config.sequencer.spin_wait),
		playback = beatpad.playback.PlaybackEngine(config.audio.sample_rate, config.audio.channels),
		store = beatpad.storage.DirectoryStore(config.storage.directory),
		note_map = config.midi.note_map,
		bpm = config.sequencer.bpm,
		quantization = config.sequencer.quantization,
		metronome = config.sequencer.metronome,
		metronome_ref = config.sequencer.metronome_sound,
		highlight_seconds = config.sequencer.highlight_ms / 1000.0
	)


async def run (config: beatpad.config.Config, project_path: typing.Optional[str] = None, autoplay: bool = False) -> None:

	"""
	Run the engine until SIGINT or SIGTERM.
	"""

	engine = build_engine(config)

	if project_path is not None:
		try:
			with open(project_path, "r", encoding="utf-8") as f:
				engine.import_project(f.read())
		except (OSError, beatpad.exceptions.ImportValidationError) as e:
			logger.error(f"Could not import {project_path}: {e}")

	output = beatpad.playback.SoundDeviceOutput(engine.playback, device=config.audio.device, blocksize=config.audio.blocksize)

	if not output.start():
		logger.warning("No audio output - sounds will be silent")

	midi = beatpad.midi_input.MidiInput(engine.router, config.midi.input_device)

	if not midi.open():
		logger.warning("No MIDI input - pads will not respond")

	await engine.prewarm()

	if autoplay:
		engine.play()

	stop_event = asyncio.Event()
	loop = asyncio.get_running_loop()

	def _request_stop () -> None:

		"""
		Signal handler to request a clean shutdown.
		"""

		stop_event.set()

	for sig in (signal.SIGINT, signal.SIGTERM):
		loop.add_signal_handler(sig, _request_stop)

	logger.info("Ready. Press Ctrl+C to stop.")

	try:
		await stop_event.wait()
	finally:
		midi.close()
		engine.shutdown()
		output.stop()


def main (argv: typing.Optional[typing.List[str]] = None) -> None:

	"""
	Main entry point for the beatpad application.
	"""

	args = parse_args(argv)
	config = beatpad.config.load_config(args.config)

	logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))

	logger.info("beatpad starting...")

	try:
		asyncio.run(run(config, args.project, args.play))
	except KeyboardInterrupt:
		pass


if __name__ == "__main__":
	main()
