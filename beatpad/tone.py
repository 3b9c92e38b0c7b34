"""Synthesized tones.

Used for the default metronome click when no click sample is configured, and
handy for auditioning an output device without any samples on disk.
"""

import numpy

import beatpad.buffer_cache


def make_tone (
	frequency: float = 440.0,
	duration: float = 0.1,
	volume: float = 0.5,
	sample_rate: int = 44100,
	waveform: str = "sine"
) -> beatpad.buffer_cache.Buffer:

	"""
	Render a tone with an exponential decay to -60 dB over ``duration``.

	Parameters:
		frequency: Pitch in Hz.
		duration: Length in seconds.
		volume: Peak amplitude (0-1).
		sample_rate: Output sample rate.
		waveform: ``"sine"``, ``"square"``, ``"sawtooth"`` or ``"triangle"``.
	"""

	if duration <= 0:
		raise ValueError("Tone duration must be positive")

	frames = max(1, int(round(duration * sample_rate)))
	t = numpy.arange(frames, dtype=numpy.float64) / sample_rate
	phase = (frequency * t) % 1.0

	if waveform == "sine":
		wave = numpy.sin(2.0 * numpy.pi * phase)
	elif waveform == "square":
		wave = numpy.where(phase < 0.5, 1.0, -1.0)
	elif waveform == "sawtooth":
		wave = 2.0 * phase - 1.0
	elif waveform == "triangle":
		wave = 1.0 - 4.0 * numpy.abs(phase - 0.5)
	else:
		raise ValueError(f"Unknown waveform {waveform!r}")

	# 0.001 = -60 dB at the final frame.
	envelope = numpy.power(0.001, t / duration)

	samples = (volume * wave * envelope).astype(numpy.float32).reshape(frames, 1)
	samples.setflags(write=False)

	return beatpad.buffer_cache.Buffer(samples=samples, sample_rate=sample_rate)


def make_click (sample_rate: int = 44100) -> beatpad.buffer_cache.Buffer:

	"""A short, bright click suitable for a metronome."""

	return make_tone(frequency=1500.0, duration=0.05, volume=1.0, sample_rate=sample_rate)
