"""
beatpad - a pad-driven 16-step drum sequencer engine for Python.

Hit pads on a MIDI controller to hear sounds, arm recording to capture the
hits into a 16 channel x 16 step pattern, and let the transport play the
pattern back in time.

Pieces:

- **Buffer cache.** Sounds are fetched (files or http URLs), decoded with
  libsndfile and kept for the life of the process.  Requests for a sound that
  is already decoding share the same decode.
- **Channels.** Sixteen slots, each holding a sound reference.
- **Playback.** Every hit starts its own voice at gain ``velocity / 127``;
  voices end by themselves and are mixed into a sounddevice output stream.
- **Pattern grid.** 16 x 16 velocities, 0 meaning an empty cell.
- **Transport.** A tick clock at ``60000 / bpm * factor`` ms per step
  (factor 1, 0.5 or 0.25 for quarter, eighth or sixteenth steps), with
  play, stop, record and an optional metronome.
- **Input router.** Maps controller notes to channels, plays live hits and
  records them while the transport is recording.
- **Projects.** JSON export/import, autosaved sessions and a saved-project
  library on any named-blob store.

Minimal example:

    ```python
    import asyncio
    import beatpad

    async def main ():
        engine = beatpad.Engine(resolver=beatpad.FileResolver("sounds"))
        output = beatpad.playback.SoundDeviceOutput(engine.playback)
        output.start()
        engine.assign_sound(0, "kick.wav")
        for step in (0, 4, 8, 12):
            engine.set_cell(0, step, 110)
        await engine.start()
        await asyncio.sleep(8)
        engine.shutdown()
        output.stop()

    asyncio.run(main())
    ```

Run ``python -m beatpad`` to play with a pad controller and an audio device.

Package-level exports: ``Engine``, ``FileResolver``, ``Quantization``.
"""

import beatpad.engine
import beatpad.playback
import beatpad.resources
import beatpad.transport


Engine = beatpad.engine.Engine
FileResolver = beatpad.resources.FileResolver
Quantization = beatpad.transport.Quantization
