import logging
import typing

import beatpad.buffer_cache
import beatpad.channels
import beatpad.clock
import beatpad.constants
import beatpad.constants.velocity
import beatpad.event_emitter
import beatpad.exceptions
import beatpad.grid
import beatpad.input_router
import beatpad.playback
import beatpad.project
import beatpad.resources
import beatpad.storage
import beatpad.tone
import beatpad.transport


logger = logging.getLogger(__name__)


class Engine:

	"""
	The step sequencer: one object owning the grid, the channel sounds, the
	transport and the input router.

	Every change goes through a method here or on one of the components it
	exposes.  When a persistence store is given, the session (sounds,
	sequence, bpm) is restored from it at construction and saved back after
	each change.

	The engine must be driven from a running asyncio loop: the tick, buffer
	loads and MIDI input all run on it.

	Example:
		```python
		engine = beatpad.engine.Engine(resolver=beatpad.resources.FileResolver("sounds"))
		engine.assign_sound(0, "kick.wav")
		engine.set_cell(0, 0, 100)
		await engine.start()
		```
	"""

	def __init__ (
		self,
		resolver: typing.Optional[beatpad.resources.ResourceResolver] = None,
		clock: typing.Optional[beatpad.clock.TickDriver] = None,
		playback: typing.Optional[beatpad.playback.PlaybackEngine] = None,
		store: typing.Optional[beatpad.storage.PersistenceStore] = None,
		note_map: typing.Optional[typing.Mapping[int, int]] = None,
		bpm: float = beatpad.constants.DEFAULT_BPM,
		quantization: typing.Union[beatpad.transport.Quantization, str] = beatpad.transport.Quantization.SIXTEENTH,
		metronome: bool = False,
		metronome_ref: typing.Optional[str] = None,
		highlight_seconds: float = beatpad.constants.PAD_HIGHLIGHT_SECONDS
	) -> None:

		"""
		Parameters:
			resolver: Fetches sound bytes (default: files relative to the cwd).
			clock: Tick source (default: the asyncio wall clock).
			playback: Voice mixer (default: 44.1 kHz stereo).
			store: Optional persistence store for autosave and saved projects.
			note_map: Note to channel table (default: Maschine Mikro MK3).
			bpm: Initial tempo, overridden by a stored session.
			quantization: Initial step length.
			metronome: Click every fourth step.
			metronome_ref: Sample to use as the click instead of a synthesized tone.
			highlight_seconds: Lifetime of the active pad token.
		"""

		self.events = beatpad.event_emitter.EventEmitter()

		self.cache = beatpad.buffer_cache.BufferCache(resolver if resolver is not None else beatpad.resources.DefaultResolver())
		self.playback = playback if playback is not None else beatpad.playback.PlaybackEngine()
		self.clock = clock if clock is not None else beatpad.clock.AsyncioTickDriver()

		self.registry = beatpad.channels.ChannelRegistry(self.cache, self.events)
		self.grid = beatpad.grid.PatternGrid(self.events)
		self.player = beatpad.channels.ChannelPlayer(self.registry, self.cache, self.playback)

		self.transport = beatpad.transport.Transport(
			grid = self.grid,
			player = self.player,
			clock = self.clock,
			events = self.events,
			tempo = bpm,
			quantization = quantization,
			metronome = metronome,
			metronome_ref = metronome_ref,
			metronome_buffer = beatpad.tone.make_click(self.playback.sample_rate)
		)

		self.router = beatpad.input_router.InputRouter(
			transport = self.transport,
			grid = self.grid,
			player = self.player,
			note_map = note_map,
			highlight_seconds = highlight_seconds,
			events = self.events
		)

		self.project_name = beatpad.constants.DEFAULT_PROJECT_NAME

		self.store = store
		self.session: typing.Optional[beatpad.storage.SessionStore] = None
		self.library: typing.Optional[beatpad.storage.ProjectLibrary] = None

		if store is not None:
			self.session = beatpad.storage.SessionStore(store)
			self.library = beatpad.storage.ProjectLibrary(store)
			self._restore_session()
			self._attach_autosave()


	# -- persistence hooks ------------------------------------------------------

	def _restore_session (self) -> None:

		assert self.session is not None

		sounds = self.session.load_sounds()
		sequence = self.session.load_sequence()
		bpm = self.session.load_bpm()

		if sounds is not None:
			self.registry.replace(sounds)

		if sequence is not None:
			self.grid.replace(sequence)

		if bpm is not None:
			self.transport.set_tempo(bpm)

		logger.info("Session restored from storage")


	def _attach_autosave (self) -> None:

		assert self.session is not None

		session = self.session

		self.events.on("sounds_changed", session.save_sounds)
		self.events.on("pattern_changed", lambda *_: session.save_sequence(self.grid.to_list()))
		self.events.on("tempo_changed", session.save_bpm)


	# -- read-only state for the UI -----------------------------------------------

	@property
	def current_step (self) -> int:
		return self.transport.current_step

	@property
	def playing (self) -> bool:
		return self.transport.playing

	@property
	def recording (self) -> bool:
		return self.transport.recording

	@property
	def tempo (self) -> int:
		return self.transport.tempo

	@property
	def quantization (self) -> beatpad.transport.Quantization:
		return self.transport.quantization

	@property
	def active_pad (self) -> typing.Optional[beatpad.input_router.ActivePad]:
		return self.router.active_pad

	def state (self) -> beatpad.transport.TransportState:
		return self.transport.state()

	def sounds (self) -> typing.List[typing.Optional[str]]:
		return self.registry.sounds()

	def pattern (self) -> beatpad.grid.Matrix:
		return self.grid.to_list()

	def on_event (self, event_name: str, callback: typing.Callable[..., typing.Any]) -> None:

		"""
		Subscribe to ``step``, ``transport``, ``note``, ``pattern_changed``,
		``sounds_changed`` or ``tempo_changed``.
		"""

		self.events.on(event_name, callback)


	# -- sounds -----------------------------------------------------------------

	def assign_sound (self, channel: int, ref: typing.Optional[str]) -> None:

		"""Assign a sound to a channel (``None`` clears it) and start loading it."""

		self.registry.assign(channel, ref)


	def trigger_pad (self, channel: int, velocity: int = beatpad.constants.velocity.PAD_CLICK_VELOCITY) -> bool:

		"""
		Play a channel as if its pad were clicked; no recording, no highlight.
		"""

		return self.player.play(channel, velocity)


	async def prewarm (self) -> int:

		"""Load every assigned sound (and the metronome sample); returns how many are ready."""

		if self.transport.metronome_ref is not None:
			try:
				await self.cache.load(self.transport.metronome_ref)
			except beatpad.exceptions.DecodeError:
				logger.warning("Metronome sample unavailable - using the synthesized click")

		return await self.registry.prewarm()


	# -- grid -------------------------------------------------------------------

	def set_cell (self, channel: int, step: int, velocity: int) -> None:

		self.grid.set(channel, step, velocity)


	def toggle_cell (self, channel: int, step: int, velocity: int = beatpad.constants.velocity.DEFAULT_TOGGLE_VELOCITY) -> int:

		"""
		Switch a cell on or off; switching on previews the sound if it is loaded.
		"""

		new_velocity = self.grid.toggle(channel, step, velocity)

		if new_velocity > 0:
			ref = self.registry.resolve(channel)
			buffer = self.cache.peek(ref) if ref is not None else None

			if buffer is not None:
				self.playback.trigger(buffer, new_velocity)

		return new_velocity


	def clear_pattern (self) -> None:

		"""Empty every cell and rewind the transport to step 0."""

		self.grid.clear()
		self.transport.rewind()


	def clear_channel (self, channel: int) -> None:

		self.grid.clear_channel(channel)


	def reset (self) -> None:

		"""Clear the pattern and unassign every sound."""

		self.grid.clear()
		self.registry.clear()


	# -- transport --------------------------------------------------------------

	def play (self) -> None:
		self.transport.play()

	def stop (self) -> None:
		self.transport.stop()

	def toggle_playing (self) -> bool:
		return self.transport.toggle_playing()

	def toggle_recording (self) -> bool:
		return self.transport.toggle_recording()

	def set_tempo (self, bpm: float) -> int:
		return self.transport.set_tempo(bpm)

	def set_quantization (self, quantization: typing.Union[beatpad.transport.Quantization, str]) -> beatpad.transport.Quantization:
		return self.transport.set_quantization(quantization)

	def set_metronome (self, enabled: bool) -> None:
		self.transport.set_metronome(enabled)


	async def start (self) -> None:

		"""
		Pre-load every assigned sound, then start playback.

		Pre-loading first means the opening steps do not fire late while their
		buffers decode.
		"""

		await self.prewarm()
		self.transport.play()


	def shutdown (self) -> None:

		"""Stop the transport and silence every voice."""

		self.transport.stop()
		self.playback.stop_all()


	# -- input ------------------------------------------------------------------

	def on_note_event (self, note: int, velocity: int, timestamp: typing.Optional[float] = None) -> typing.Optional[int]:

		"""Entry point for external note-on events; see ``InputRouter.on_note_event``."""

		return self.router.on_note_event(note, velocity, timestamp)


	# -- projects ---------------------------------------------------------------

	def snapshot (self, name: typing.Optional[str] = None) -> beatpad.project.Project:

		"""Return the current state as a ``Project``."""

		return beatpad.project.Project(
			name = name or self.project_name or beatpad.constants.DEFAULT_PROJECT_NAME,
			sounds = self.registry.sounds(),
			sequence = self.grid.to_list(),
			bpm = self.transport.tempo
		)


	def load_project (self, project: beatpad.project.Project) -> None:

		"""
		Replace sounds, sequence, tempo and name with those of ``project``.

		The project is validated in full before anything changes.
		"""

		sounds = beatpad.project.validate_sounds(list(project.sounds))
		sequence = beatpad.project.validate_sequence(project.sequence)
		bpm = beatpad.project.validate_bpm(project.bpm)

		self.registry.replace(sounds)
		self.grid.replace(sequence)
		self.transport.set_tempo(bpm)
		self.project_name = project.name

		logger.info(f"Loaded project {project.name!r}")


	def export_project (self) -> str:

		"""Return the current state as a JSON project record."""

		return beatpad.project.export_json(self.snapshot())


	def import_project (self, text: str) -> beatpad.project.Project:

		"""
		Load a JSON project record.

		Raises ``ImportValidationError`` and leaves the engine untouched if the
		record is invalid or lacks ``sounds``, ``sequence`` or ``bpm``.
		"""

		project = beatpad.project.import_json(text)
		self.load_project(project)

		return project


	def _require_library (self) -> beatpad.storage.ProjectLibrary:

		if self.library is None:
			raise RuntimeError("No persistence store configured")

		return self.library


	def save_project (self, name: typing.Optional[str] = None) -> typing.Optional[str]:

		"""
		Save the current state to the project library.

		Returns the name used, or ``None`` if the store could not write it (the
		current project name is then left unchanged).
		"""

		project = self.snapshot(name)

		if not self._require_library().save(project):
			logger.error(f"Failed to save project {project.name!r}")
			return None

		self.project_name = project.name

		return project.name


	def open_project (self, name_or_index: typing.Union[str, int]) -> bool:

		"""Load a project from the library; returns ``False`` if it does not exist."""

		project = self._require_library().get(name_or_index)

		if project is None:
			return False

		self.load_project(project)

		return True


	def delete_project (self, name_or_index: typing.Union[str, int]) -> bool:

		"""
		Remove a project from the library.  Deleting the current project resets
		the project name.
		"""

		library = self._require_library()
		names = library.names()

		if isinstance(name_or_index, int):
			name = names[name_or_index] if 0 <= name_or_index < len(names) else None
		else:
			name = name_or_index if name_or_index in names else None

		if name is None:
			return False

		deleted = library.delete(name_or_index)

		if deleted and name == self.project_name:
			self.project_name = beatpad.constants.DEFAULT_PROJECT_NAME

		return deleted
