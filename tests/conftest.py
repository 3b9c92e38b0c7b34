import asyncio
import io
import typing

import mido
import numpy
import pytest
import soundfile

import beatpad.buffer_cache
import beatpad.clock
import beatpad.engine
import beatpad.playback


class FakeMidiIn:

	"""Minimal MIDI input stub for tests."""

	def __init__ (self, callback: typing.Optional[typing.Callable] = None) -> None:

		"""Store the callback for injecting test messages."""

		self.callback = callback
		self.name = ""
		self.closed = False

	def close (self) -> None:

		"""Mark the fake port closed."""

		self.closed = True

	def inject (self, message: mido.Message) -> None:

		"""Simulate receiving a MIDI message by calling the stored callback."""

		if self.callback is not None:
			self.callback(message)


# Module-level reference so tests can access the most recently created FakeMidiIn.
_current_fake_input: typing.Optional[FakeMidiIn] = None

_fake_input_names: typing.List[str] = ["Dummy MIDI", "Maschine Mikro MK3"]


def _fake_get_input_names () -> typing.List[str]:

	"""Return the fake MIDI input names for tests."""

	return list(_fake_input_names)


def _fake_open_input (name: str, callback: typing.Optional[typing.Callable] = None) -> FakeMidiIn:

	"""Return a fake MIDI input regardless of the name."""

	global _current_fake_input
	fake = FakeMidiIn(callback=callback)
	fake.name = name
	_current_fake_input = fake
	return fake


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use fake MIDI inputs for all tests that need it."""

	monkeypatch.setattr(mido, "get_input_names", _fake_get_input_names)
	monkeypatch.setattr(mido, "open_input", _fake_open_input)


def wav_bytes (frames: int = 441, sample_rate: int = 44100, channels: int = 1, value: float = 0.5) -> bytes:

	"""Encode a constant-valued 16-bit WAV file in memory."""

	data = numpy.full((frames, channels), value, dtype=numpy.float32)
	out = io.BytesIO()
	soundfile.write(out, data, sample_rate, format="WAV", subtype="PCM_16")

	return out.getvalue()


class FakeResolver:

	"""
	Serves bytes from a dict and counts fetches.

	Set ``gate`` to an ``asyncio.Event`` to hold every fetch until it is set.
	"""

	def __init__ (self, blobs: typing.Optional[typing.Dict[str, bytes]] = None) -> None:

		self.blobs: typing.Dict[str, bytes] = dict(blobs or {})
		self.fetches: typing.List[str] = []
		self.gate: typing.Optional[asyncio.Event] = None

	async def fetch (self, ref: str) -> bytes:

		self.fetches.append(ref)

		if self.gate is not None:
			await self.gate.wait()

		if ref not in self.blobs:
			raise OSError(f"No such resource: {ref}")

		return self.blobs[ref]


class RecordingPlayback (beatpad.playback.PlaybackEngine):

	"""A playback engine that remembers every voice it starts."""

	def __init__ (self) -> None:

		super().__init__(sample_rate=44100, channels=2)
		self.played: typing.List[typing.Tuple[beatpad.buffer_cache.Buffer, float]] = []

	def play (self, buffer: beatpad.buffer_cache.Buffer, gain: float) -> beatpad.playback.Voice:

		self.played.append((buffer, gain))
		return super().play(buffer, gain)


@pytest.fixture
def resolver () -> FakeResolver:

	"""A resolver holding a kick, a snare and some undecodable bytes."""

	return FakeResolver({
		"kick.wav": wav_bytes(value=0.5),
		"snare.wav": wav_bytes(value=0.25),
		"broken.wav": b"this is not audio",
	})


@pytest.fixture
def clock () -> beatpad.clock.SimulatedClock:

	return beatpad.clock.SimulatedClock()


@pytest.fixture
def playback () -> RecordingPlayback:

	return RecordingPlayback()


@pytest.fixture
def engine (resolver: FakeResolver, clock: beatpad.clock.SimulatedClock, playback: RecordingPlayback) -> beatpad.engine.Engine:

	"""An engine on a simulated clock with no persistence."""

	return beatpad.engine.Engine(resolver=resolver, clock=clock, playback=playback)


async def settle () -> None:

	"""Let pending loads (worker-thread decodes included) finish."""

	for _ in range(20):
		await asyncio.sleep(0.01)
