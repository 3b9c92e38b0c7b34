import dataclasses
import logging
import time
import typing

import beatpad.channels
import beatpad.constants
import beatpad.constants.controllers.maschine_mikro_mk3
import beatpad.constants.velocity
import beatpad.event_emitter
import beatpad.grid
import beatpad.transport


logger = logging.getLogger(__name__)


def validate_note_map (note_map: typing.Mapping[int, int]) -> typing.Dict[int, int]:

	"""
	Check that a note map sends exactly 16 notes onto channels 0-15, one each.

	Returns a plain dict copy; raises ``ValueError`` otherwise.
	"""

	mapping = {int(note): int(channel) for note, channel in note_map.items()}

	if len(mapping) != beatpad.constants.NUM_CHANNELS:
		raise ValueError(f"Note map must have {beatpad.constants.NUM_CHANNELS} entries, got {len(mapping)}")

	if sorted(mapping.values()) != list(range(beatpad.constants.NUM_CHANNELS)):
		raise ValueError("Note map must assign each channel 0-15 exactly once")

	for note in mapping:
		if not 0 <= note <= 127:
			raise ValueError(f"Note {note} outside [0, 127]")

	return mapping


@dataclasses.dataclass(frozen=True)
class ActivePad:

	"""
	Highlight token for the most recently hit pad.

	The UI polls it and stops highlighting once ``now >= expires_at``; the
	engine never schedules anything to clear it.
	"""

	channel: int
	velocity: int
	triggered_at: float
	expires_at: float

	def is_active (self, now: float) -> bool:
		return now < self.expires_at


class InputRouter:

	"""
	Routes external note events to channels.

	Every mapped hit with a velocity above zero is played at once, whatever
	the transport is doing.  While the transport is playing and recording the
	hit also overwrites the grid cell at the current step.  Unmapped notes are
	ignored.
	"""

	def __init__ (
		self,
		transport: beatpad.transport.Transport,
		grid: beatpad.grid.PatternGrid,
		player: beatpad.channels.ChannelPlayer,
		note_map: typing.Optional[typing.Mapping[int, int]] = None,
		highlight_seconds: float = beatpad.constants.PAD_HIGHLIGHT_SECONDS,
		events: typing.Optional[beatpad.event_emitter.EventEmitter] = None,
		time_source: typing.Callable[[], float] = time.monotonic
	) -> None:

		"""
		Parameters:
			transport: Read for its recording state and current step.
			grid: Receives recorded hits.
			player: Plays live hits.
			note_map: Note number to channel table; defaults to the Maschine
				Mikro MK3 layout.
			highlight_seconds: Lifetime of the active pad token.
			events: Emitter for ``note`` (channel, velocity) notifications.
			time_source: Clock used when an event carries no timestamp.
		"""

		self.transport = transport
		self.grid = grid
		self.player = player
		self.highlight_seconds = highlight_seconds
		self.events = events if events is not None else beatpad.event_emitter.EventEmitter()
		self.time_source = time_source

		if note_map is None:
			note_map = beatpad.constants.controllers.maschine_mikro_mk3.MASCHINE_MIKRO_MK3_NOTE_MAP

		self.note_map = validate_note_map(note_map)
		self._active_pad: typing.Optional[ActivePad] = None


	@property
	def active_pad (self) -> typing.Optional[ActivePad]:

		"""The latest highlight token, expired or not."""

		return self._active_pad


	def active_channel (self, now: typing.Optional[float] = None) -> typing.Optional[int]:

		"""The highlighted channel at ``now``, or ``None`` once the token has expired."""

		if self._active_pad is None:
			return None

		if now is None:
			now = self.time_source()

		return self._active_pad.channel if self._active_pad.is_active(now) else None


	def channel_for (self, note: int) -> typing.Optional[int]:

		return self.note_map.get(note)


	def on_note_event (self, note: int, velocity: int, timestamp: typing.Optional[float] = None) -> typing.Optional[int]:

		"""
		Handle one note-on from the input source.

		Returns the channel the note maps to, or ``None`` when it is unmapped
		(nothing changes in that case).
		"""

		channel = self.note_map.get(note)

		if channel is None:
			logger.debug(f"Ignoring unmapped note {note}")
			return None

		if not beatpad.constants.velocity.MIN_VELOCITY <= velocity <= beatpad.constants.velocity.MAX_VELOCITY:
			logger.warning(f"Ignoring note {note} with velocity {velocity} outside [0, 127]")
			return None

		if velocity == 0:
			return channel

		triggered_at = timestamp if timestamp is not None else self.time_source()
		self._active_pad = ActivePad(channel, velocity, triggered_at, triggered_at + self.highlight_seconds)

		try:
			self.player.play(channel, velocity)
		except Exception:
			logger.exception(f"Failed to play channel {channel}")

		if self.transport.playing and self.transport.recording:
			self.grid.set(channel, self.transport.current_step, velocity)
			logger.debug(f"Recorded channel {channel} at step {self.transport.current_step} (velocity {velocity})")

		self.events.emit("note", channel, velocity)

		return channel
