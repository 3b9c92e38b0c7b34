import dataclasses
import enum
import logging
import math
import typing

import beatpad.buffer_cache
import beatpad.channels
import beatpad.clock
import beatpad.constants
import beatpad.event_emitter
import beatpad.grid
import beatpad.playback


logger = logging.getLogger(__name__)


class Quantization (enum.Enum):

	"""
	Step length, as a fraction of a beat.
	"""

	QUARTER = 1.0
	EIGHTH = 0.5
	SIXTEENTH = 0.25


	@classmethod
	def parse (cls, value: typing.Union["Quantization", str]) -> "Quantization":

		"""
		Accept an enum member or a name: ``"quarter"``, ``"eighth"``,
		``"sixteenth"``, ``"4n"``, ``"8n"``, ``"16n"``, ``"1/4"``, ``"1/8"``, ``"1/16"``.
		"""

		if isinstance(value, cls):
			return value

		key = str(value).strip().lower()

		if key not in _QUANTIZATION_NAMES:
			raise ValueError(f"Unknown quantization {value!r}")

		return _QUANTIZATION_NAMES[key]


_QUANTIZATION_NAMES: typing.Dict[str, Quantization] = {
	"quarter": Quantization.QUARTER,
	"4n": Quantization.QUARTER,
	"1/4": Quantization.QUARTER,
	"eighth": Quantization.EIGHTH,
	"8n": Quantization.EIGHTH,
	"1/8": Quantization.EIGHTH,
	"sixteenth": Quantization.SIXTEENTH,
	"16n": Quantization.SIXTEENTH,
	"1/16": Quantization.SIXTEENTH,
}


def clamp_tempo (bpm: float) -> int:

	"""
	Round a tempo to an integer and clamp it to [40, 240].

	Raises ``ValueError`` for NaN or infinite tempos.
	"""

	if isinstance(bpm, float) and not math.isfinite(bpm):
		raise ValueError(f"Tempo must be a finite number, got {bpm!r}")

	return max(beatpad.constants.MIN_BPM, min(beatpad.constants.MAX_BPM, int(round(bpm))))


def tick_interval_ms (tempo: float, quantization: Quantization) -> float:

	"""Milliseconds between steps: ``60000 / tempo * factor``."""

	return 60000.0 / tempo * quantization.value


@dataclasses.dataclass(frozen=True)
class TransportState:

	"""
	A read-only snapshot of the transport for display.
	"""

	tempo: int = beatpad.constants.DEFAULT_BPM
	quantization: Quantization = Quantization.SIXTEENTH
	playing: bool = False
	recording: bool = False
	current_step: int = 0

	@property
	def mode (self) -> str:

		"""``"STOPPED"``, ``"PLAYING"`` or ``"PLAYING+RECORDING"``."""

		if not self.playing:
			return "STOPPED"

		return "PLAYING+RECORDING" if self.recording else "PLAYING"


class Transport:

	"""
	The step clock.

	While playing, each tick advances the current step, sounds the metronome
	and plays every channel whose cell at the new step holds a velocity.  The
	tick never waits for a buffer: sounds that are still loading fire when
	they arrive, after their step.

	Recording is layered on playing.  Arming it while stopped starts playback;
	stopping disarms it.

	Emits ``step`` (step), ``transport`` (TransportState) and
	``tempo_changed`` (bpm).
	"""

	def __init__ (
		self,
		grid: beatpad.grid.PatternGrid,
		player: beatpad.channels.ChannelPlayer,
		clock: beatpad.clock.TickDriver,
		events: typing.Optional[beatpad.event_emitter.EventEmitter] = None,
		tempo: float = beatpad.constants.DEFAULT_BPM,
		quantization: typing.Union[Quantization, str] = Quantization.SIXTEENTH,
		metronome: bool = False,
		metronome_ref: typing.Optional[str] = None,
		metronome_buffer: typing.Optional[beatpad.buffer_cache.Buffer] = None
	) -> None:

		"""
		Parameters:
			grid: The pattern to play; shared, never copied.
			player: Plays channel sounds.
			clock: Source of the repeating tick.
			events: Emitter for transport notifications.
			tempo: Initial tempo in BPM (clamped to [40, 240]).
			quantization: Initial step length.
			metronome: Whether to click every fourth step.
			metronome_ref: Resource reference for the click sample.  Used once
				it is cached; until then ``metronome_buffer`` is played.
			metronome_buffer: Fallback click (a synthesized tone by default).
		"""

		self.grid = grid
		self.player = player
		self.clock = clock
		self.events = events if events is not None else beatpad.event_emitter.EventEmitter()

		self.metronome = metronome
		self.metronome_ref = metronome_ref
		self.metronome_buffer = metronome_buffer

		self._tempo = clamp_tempo(tempo)
		self._quantization = Quantization.parse(quantization)
		self._playing = False
		self._recording = False
		self._current_step = 0
		self._handle: typing.Optional[beatpad.clock.TickHandle] = None


	# -- read-only state ------------------------------------------------------

	@property
	def tempo (self) -> int:
		return self._tempo

	@property
	def quantization (self) -> Quantization:
		return self._quantization

	@property
	def playing (self) -> bool:
		return self._playing

	@property
	def recording (self) -> bool:
		return self._recording

	@property
	def current_step (self) -> int:
		return self._current_step

	@property
	def tick_interval_ms (self) -> float:
		return tick_interval_ms(self._tempo, self._quantization)


	def state (self) -> TransportState:

		return TransportState(
			tempo = self._tempo,
			quantization = self._quantization,
			playing = self._playing,
			recording = self._recording,
			current_step = self._current_step
		)


	# -- commands ---------------------------------------------------------------

	def play (self) -> None:

		"""
		Start from step 0.  Does nothing if already playing.
		"""

		if self._playing:
			return

		self._current_step = 0
		self._playing = True
		self._install_tick()

		logger.info(f"Transport playing at {self._tempo} BPM ({self._quantization.name.lower()}, {self.tick_interval_ms:.1f} ms/step)")

		self.events.emit("transport", self.state())


	def stop (self) -> None:

		"""
		Stop ticking.  The current step is kept; recording is disarmed.  Sounds
		and loads already started by earlier ticks carry on.
		"""

		if not self._playing:
			return

		self._cancel_tick()
		self._playing = False
		self._recording = False

		logger.info(f"Transport stopped at step {self._current_step}")

		self.events.emit("transport", self.state())


	def toggle_playing (self) -> bool:

		"""Play if stopped, stop if playing.  Returns the new playing flag."""

		if self._playing:
			self.stop()
		else:
			self.play()

		return self._playing


	def toggle_recording (self) -> bool:

		"""
		Flip the recording flag.  Arming while stopped also starts playback;
		disarming leaves playback running.  Returns the new recording flag.
		"""

		self._recording = not self._recording

		logger.info(f"Recording {'armed' if self._recording else 'disarmed'}")

		if self._recording and not self._playing:
			self.play()
		else:
			self.events.emit("transport", self.state())

		return self._recording


	def set_tempo (self, bpm: float) -> int:

		"""
		Change the tempo, clamped to [40, 240].  While playing the tick is
		replaced without moving the current step.  Returns the applied tempo.
		Raises ``ValueError`` for NaN or infinite tempos.
		"""

		tempo = clamp_tempo(bpm)

		if tempo != bpm:
			logger.debug(f"Tempo {bpm} clamped to {tempo}")

		if tempo == self._tempo:
			return tempo

		self._tempo = tempo
		self._replace_tick()

		logger.info(f"Tempo set to {tempo} BPM")

		self.events.emit("tempo_changed", tempo)

		return tempo


	def set_quantization (self, quantization: typing.Union[Quantization, str]) -> Quantization:

		"""
		Change the step length.  While playing the tick is replaced without
		moving the current step.
		"""

		quantization = Quantization.parse(quantization)

		if quantization is self._quantization:
			return quantization

		self._quantization = quantization
		self._replace_tick()

		logger.info(f"Quantization set to {quantization.name.lower()}")

		self.events.emit("transport", self.state())

		return quantization


	def rewind (self) -> None:

		"""Move the current step back to 0; while playing the next tick plays step 1."""

		self._current_step = 0

		self.events.emit("transport", self.state())


	def set_metronome (self, enabled: bool) -> None:

		self.metronome = enabled


	# -- tick -------------------------------------------------------------------

	def _install_tick (self) -> None:

		self._handle = self.clock.schedule(self.tick_interval_ms / 1000.0, self._on_tick)


	def _cancel_tick (self) -> None:

		if self._handle is not None:
			self._handle.cancel()
			self._handle = None


	def _replace_tick (self) -> None:

		"""Swap the running tick for one at the current interval; at most one is ever active."""

		if not self._playing:
			return

		self._cancel_tick()
		self._install_tick()


	def _on_tick (self) -> None:

		self._current_step = (self._current_step + 1) % beatpad.constants.NUM_STEPS
		step = self._current_step

		self.events.emit("step", step)

		if self.metronome and step % beatpad.constants.METRONOME_STEP_INTERVAL == 0:
			self._click(step)

		for channel, velocity in enumerate(self.grid.column(step)):

			if velocity <= 0:
				continue

			try:
				self.player.play(channel, velocity)
			except Exception:
				logger.exception(f"Failed to play channel {channel} at step {step}")


	def _click (self, step: int) -> None:

		gain = beatpad.constants.METRONOME_ACCENT_GAIN if step == 0 else beatpad.constants.METRONOME_GAIN

		buffer = None

		if self.metronome_ref is not None:
			buffer = self.player.cache.peek(self.metronome_ref)

			if buffer is None:
				self.player.cache.request(self.metronome_ref)

		if buffer is None:
			buffer = self.metronome_buffer

		if buffer is not None:
			self.player.playback.play(buffer, gain)
