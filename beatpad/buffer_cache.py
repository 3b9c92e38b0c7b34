import asyncio
import dataclasses
import functools
import io
import logging
import typing

import numpy
import soundfile

import beatpad.exceptions
import beatpad.resources


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, eq=False)
class Buffer:

	"""
	Decoded audio: float32 samples shaped (frames, channels).

	Buffers are shared read-only by every channel that references the same
	resource, so nothing may write into ``samples``.
	"""

	samples: numpy.ndarray
	sample_rate: int

	@property
	def frames (self) -> int:
		return int(self.samples.shape[0])

	@property
	def channels (self) -> int:
		return int(self.samples.shape[1])

	@property
	def duration (self) -> float:
		return self.frames / self.sample_rate


def decode_audio (data: bytes) -> Buffer:

	"""
	Decode audio file bytes (WAV, FLAC, OGG, AIFF and anything else libsndfile
	reads) into a ``Buffer``.

	Raises ``DecodeError`` when the bytes are not audio or hold no frames.
	"""

	if not data:
		raise beatpad.exceptions.DecodeError("No audio data")

	try:
		samples, sample_rate = soundfile.read(io.BytesIO(data), dtype="float32", always_2d=True)
	except (soundfile.SoundFileError, RuntimeError) as e:
		raise beatpad.exceptions.DecodeError(f"Cannot decode audio: {e}") from e

	if samples.shape[0] == 0:
		raise beatpad.exceptions.DecodeError("Audio contains no frames")

	samples.setflags(write=False)

	return Buffer(samples=samples, sample_rate=int(sample_rate))


class BufferCache:

	"""
	Process-wide cache of decoded buffers keyed by resource reference.

	Loads for a reference that is already being decoded share the pending
	result through an in-flight map, so each reference is fetched and decoded
	at most once at a time.  Failed loads are not cached and the next request
	starts over.  Nothing is ever evicted.
	"""

	def __init__ (
		self,
		resolver: beatpad.resources.ResourceResolver,
		decoder: typing.Callable[[bytes], Buffer] = decode_audio
	) -> None:

		"""
		Parameters:
			resolver: Fetches the raw bytes for a reference.
			decoder: Turns bytes into a ``Buffer``; runs in a worker thread.
		"""

		self.resolver = resolver
		self.decoder = decoder

		self._buffers: typing.Dict[str, Buffer] = {}
		self._in_flight: typing.Dict[str, asyncio.Future] = {}


	def peek (self, ref: str) -> typing.Optional[Buffer]:

		"""Return the cached buffer for ``ref`` without loading it."""

		return self._buffers.get(ref)


	def is_loading (self, ref: str) -> bool:

		return ref in self._in_flight


	def __contains__ (self, ref: str) -> bool:
		return ref in self._buffers


	def __len__ (self) -> int:
		return len(self._buffers)


	def request (self, ref: str) -> asyncio.Future:

		"""
		Start loading ``ref`` if needed and return a future for its buffer.

		Never blocks, so it is safe to call from the tick.  Must be called with
		an event loop running.  Callers that only want the side effect of
		loading may drop the future: failures are logged here.
		"""

		loop = asyncio.get_running_loop()

		cached = self._buffers.get(ref)

		if cached is not None:
			done = loop.create_future()
			done.set_result(cached)
			return done

		pending = self._in_flight.get(ref)

		if pending is None:
			pending = loop.create_task(self._load(ref))
			self._in_flight[ref] = pending
			pending.add_done_callback(functools.partial(self._finish, ref))

		return pending


	async def load (self, ref: str) -> Buffer:

		"""
		Return the buffer for ``ref``, loading and caching it if necessary.

		Concurrent calls for the same reference await the same decode.
		Cancelling one caller does not cancel the shared decode.  Raises
		``DecodeError`` (or ``ResourceFetchError``) on failure.
		"""

		cached = self._buffers.get(ref)

		if cached is not None:
			return cached

		return await asyncio.shield(self.request(ref))


	async def _load (self, ref: str) -> Buffer:

		logger.debug(f"Loading {ref}")

		try:
			data = await self.resolver.fetch(ref)
		except OSError as e:
			raise beatpad.exceptions.ResourceFetchError(f"Cannot fetch {ref}: {e}") from e

		buffer = await asyncio.to_thread(self.decoder, data)

		self._buffers[ref] = buffer

		logger.info(f"Loaded {ref} ({buffer.duration:.2f}s, {buffer.channels}ch, {buffer.sample_rate}Hz)")

		return buffer


	def _finish (self, ref: str, task: asyncio.Future) -> None:

		"""Drop the in-flight entry and log a failure; the result is already cached on success."""

		if self._in_flight.get(ref) is task:
			del self._in_flight[ref]

		if task.cancelled():
			return

		error = task.exception()

		if error is not None:
			logger.warning(f"Failed to load {ref}: {error}")
