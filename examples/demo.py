"""
beatpad Demo - a four-bar beat from synthesized sounds

This demo needs no sample library: it synthesizes a kick, a snare and a
hi-hat with beatpad.tone, writes them as WAV files to a temporary directory,
assigns them to pads and programs a pattern.  If a Maschine Mikro MK3 (or
any MIDI pad controller) is connected, hitting a pad plays along, and
pressing Enter toggles recording so your hits are written into the pattern.

How to read this file
---------------------
1. Sounds      - Synthesize and save the drum sounds.
2. Engine      - Create the engine with a resolver that reads the temp dir.
3. Pattern     - Assign pads and set cells (channel, step, velocity).
4. Play        - Start audio, MIDI and the transport.  Ctrl+C to stop.
"""

import asyncio
import logging
import os
import tempfile

import soundfile

import beatpad
import beatpad.midi_input
import beatpad.playback
import beatpad.tone


logging.basicConfig(level=logging.INFO)


# --- Sounds ----------------------------------------------------------

SOUNDS = {
	"kick.wav":  dict(frequency=55.0,   duration=0.35, volume=0.9, waveform="sine"),
	"snare.wav": dict(frequency=190.0,  duration=0.2,  volume=0.5, waveform="triangle"),
	"hat.wav":   dict(frequency=6000.0, duration=0.05, volume=0.2, waveform="square"),
}


def write_sounds (directory: str) -> None:

	for name, params in SOUNDS.items():
		tone = beatpad.tone.make_tone(sample_rate=44100, **params)
		soundfile.write(os.path.join(directory, name), tone.samples, tone.sample_rate)


# --- Pattern ---------------------------------------------------------

KICK, SNARE, HAT = 0, 1, 2

def program (engine: beatpad.Engine) -> None:

	engine.assign_sound(KICK, "kick.wav")
	engine.assign_sound(SNARE, "snare.wav")
	engine.assign_sound(HAT, "hat.wav")

	for step in (0, 6, 10):
		engine.set_cell(KICK, step, 120)

	for step in (4, 12):
		engine.set_cell(SNARE, step, 110)

	# Accent the off-beats.
	for step in range(0, 16, 2):
		engine.set_cell(HAT, step, 90 if step % 4 == 2 else 50)


# --- Play ------------------------------------------------------------

async def main () -> None:

	with tempfile.TemporaryDirectory() as directory:

		write_sounds(directory)

		engine = beatpad.Engine(resolver=beatpad.FileResolver(directory), bpm=96, metronome=False)
		program(engine)

		output = beatpad.playback.SoundDeviceOutput(engine.playback)
		output.start()

		midi = beatpad.midi_input.MidiInput(engine.router)
		midi.open()

		engine.on_event("transport", lambda state: logging.info(f"Transport: {state.mode}"))

		await engine.start()

		loop = asyncio.get_running_loop()

		try:
			while True:
				await loop.run_in_executor(None, input)
				engine.toggle_recording()
		finally:
			midi.close()
			engine.shutdown()
			output.stop()


if __name__ == "__main__":
	try:
		asyncio.run(main())
	except KeyboardInterrupt:
		pass
