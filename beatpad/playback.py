import logging
import threading
import typing

import numpy

import beatpad.buffer_cache
import beatpad.constants.velocity


logger = logging.getLogger(__name__)


def velocity_to_gain (velocity: int) -> float:

	"""Map a velocity in [0, 127] linearly onto a gain in [0, 1]."""

	if not beatpad.constants.velocity.MIN_VELOCITY <= velocity <= beatpad.constants.velocity.MAX_VELOCITY:
		raise ValueError(f"Velocity {velocity} outside [0, 127]")

	return velocity / beatpad.constants.velocity.MAX_VELOCITY


def conform (samples: numpy.ndarray, source_rate: int, target_rate: int, channels: int) -> numpy.ndarray:

	"""
	Resample (linear interpolation) and remap channels so a buffer can be
	mixed straight into the output.

	Mono sources are copied to every output channel; sources with more
	channels than the output keep the first channels, except that a mono
	output gets the average of all source channels.
	"""

	if source_rate != target_rate:
		frames = samples.shape[0]
		target_frames = max(1, int(round(frames * target_rate / source_rate)))
		source_positions = numpy.arange(frames, dtype=numpy.float64)
		target_positions = numpy.linspace(0, frames - 1, target_frames)
		samples = numpy.stack(
			[numpy.interp(target_positions, source_positions, samples[:, c]) for c in range(samples.shape[1])],
			axis = 1
		)

	source_channels = samples.shape[1]

	if source_channels == channels:
		out = samples
	elif source_channels == 1:
		out = numpy.repeat(samples, channels, axis=1)
	elif channels == 1:
		out = samples.mean(axis=1, keepdims=True)
	elif source_channels > channels:
		out = samples[:, :channels]
	else:
		# Fewer source channels than outputs (e.g. stereo into 4 outputs): pad with silence.
		out = numpy.zeros((samples.shape[0], channels), dtype=samples.dtype)
		out[:, :source_channels] = samples

	return numpy.ascontiguousarray(out, dtype=numpy.float32)


class Voice:

	"""
	One playing instance of a buffer.

	A voice ends itself when the last frame has been rendered; ``stop()`` ends
	it early.  Finished voices are dropped by the playback engine.
	"""

	def __init__ (self, samples: numpy.ndarray, gain: float) -> None:

		self.samples = samples
		self.gain = gain
		self.position = 0
		self._stopped = False


	@property
	def finished (self) -> bool:
		return self._stopped or self.position >= self.samples.shape[0]


	def stop (self) -> None:

		"""End playback at the next rendered block."""

		self._stopped = True


	def mix_into (self, block: numpy.ndarray) -> None:

		"""Add the next ``len(block)`` frames of this voice into ``block``."""

		if self.finished:
			return

		count = min(block.shape[0], self.samples.shape[0] - self.position)
		block[:count] += self.samples[self.position:self.position + count] * self.gain
		self.position += count


class PlaybackEngine:

	"""
	Starts voices and mixes them into output blocks.

	``trigger()`` is called from the event loop and ``render()`` from the
	audio device's callback thread; a lock guards the voice list between
	them.  There is no limit on the number of simultaneous voices.
	"""

	def __init__ (self, sample_rate: int = 44100, channels: int = 2) -> None:

		if sample_rate <= 0:
			raise ValueError("Sample rate must be positive")

		if channels <= 0:
			raise ValueError("Channel count must be positive")

		self.sample_rate = sample_rate
		self.channels = channels

		self._voices: typing.List[Voice] = []
		self._lock = threading.Lock()
		self._conformed: typing.Dict[int, typing.Tuple[beatpad.buffer_cache.Buffer, numpy.ndarray]] = {}


	@property
	def active_voices (self) -> int:

		with self._lock:
			return sum(1 for voice in self._voices if not voice.finished)


	def _samples_for (self, buffer: beatpad.buffer_cache.Buffer) -> numpy.ndarray:

		"""Return the buffer's samples in the output format, converting once per buffer."""

		entry = self._conformed.get(id(buffer))

		if entry is not None and entry[0] is buffer:
			return entry[1]

		samples = conform(buffer.samples, buffer.sample_rate, self.sample_rate, self.channels)
		self._conformed[id(buffer)] = (buffer, samples)

		return samples


	def trigger (self, buffer: beatpad.buffer_cache.Buffer, velocity: int) -> Voice:

		"""
		Start a voice at gain ``velocity / 127``.

		Raises ``ValueError`` for velocities outside [0, 127].
		"""

		return self.play(buffer, velocity_to_gain(velocity))


	def play (self, buffer: beatpad.buffer_cache.Buffer, gain: float) -> Voice:

		"""Start a voice at an explicit gain."""

		voice = Voice(self._samples_for(buffer), gain)

		with self._lock:
			self._voices.append(voice)

		return voice


	def stop_all (self) -> None:

		with self._lock:
			for voice in self._voices:
				voice.stop()
			self._voices = []


	def render (self, frames: int) -> numpy.ndarray:

		"""
		Mix the next ``frames`` frames of every active voice.

		Returns a float32 array shaped (frames, channels), clipped to [-1, 1].
		"""

		block = numpy.zeros((frames, self.channels), dtype=numpy.float32)

		with self._lock:
			voices = [voice for voice in self._voices if not voice.finished]

		for voice in voices:
			voice.mix_into(block)

		with self._lock:
			self._voices = [voice for voice in self._voices if not voice.finished]

		numpy.clip(block, -1.0, 1.0, out=block)

		return block


class SoundDeviceOutput:

	"""
	Plays a ``PlaybackEngine`` through a sounddevice output stream.

	The stream callback pulls blocks from ``PlaybackEngine.render()``.
	"""

	def __init__ (
		self,
		playback: PlaybackEngine,
		device: typing.Optional[typing.Union[int, str]] = None,
		blocksize: int = 256,
		latency: typing.Union[str, float] = "low"
	) -> None:

		self.playback = playback
		self.device = device
		self.blocksize = blocksize
		self.latency = latency
		self.stream: typing.Any = None


	@property
	def running (self) -> bool:
		return self.stream is not None


	def start (self) -> bool:

		"""
		Open and start the output stream.

		Returns ``False`` (with the error logged) when PortAudio is missing or
		the device cannot be opened.
		"""

		if self.stream is not None:
			return True

		# Importing sounddevice loads PortAudio.
		try:
			import sounddevice
		except OSError as e:
			logger.error(f"Audio output unavailable: {e}")
			return False

		try:
			stream = sounddevice.OutputStream(
				samplerate = self.playback.sample_rate,
				channels = self.playback.channels,
				blocksize = self.blocksize,
				dtype = "float32",
				latency = self.latency,
				device = self.device,
				callback = self._callback
			)
			stream.start()
		except sounddevice.PortAudioError as e:
			logger.error(f"Failed to open audio output: {e}")
			return False

		self.stream = stream

		logger.info(f"Audio output started ({self.playback.sample_rate}Hz, {self.playback.channels}ch, block {self.blocksize})")

		return True


	def stop (self) -> None:

		"""Stop and close the output stream."""

		if self.stream is None:
			return

		try:
			self.stream.stop()
			self.stream.close()
		except Exception:
			logger.exception("Failed to close audio output")
		finally:
			self.stream = None

		logger.info("Audio output stopped")


	def _callback (self, outdata: numpy.ndarray, frames: int, time_info: typing.Any, status: typing.Any) -> None:

		if status:
			logger.debug(f"Audio stream status: {status}")

		outdata[:] = self.playback.render(frames)
