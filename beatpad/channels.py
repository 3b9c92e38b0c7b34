import asyncio
import logging
import typing

import beatpad.buffer_cache
import beatpad.constants
import beatpad.event_emitter
import beatpad.exceptions
import beatpad.playback


logger = logging.getLogger(__name__)


class ChannelRegistry:

	"""
	Maps the 16 channel slots to resource references.

	Assigning a reference starts loading its buffer in the background so the
	first hit on the channel is usually ready to play.  Emits
	``sounds_changed`` with the full list of references after every change.
	"""

	def __init__ (
		self,
		cache: beatpad.buffer_cache.BufferCache,
		events: typing.Optional[beatpad.event_emitter.EventEmitter] = None
	) -> None:

		self.cache = cache
		self.events = events if events is not None else beatpad.event_emitter.EventEmitter()
		self._refs: typing.List[typing.Optional[str]] = [None] * beatpad.constants.NUM_CHANNELS


	@staticmethod
	def _check_channel (channel: int) -> None:

		if isinstance(channel, bool) or not isinstance(channel, int) or not 0 <= channel < beatpad.constants.NUM_CHANNELS:
			raise beatpad.exceptions.InvalidChannel(f"Channel {channel!r} outside [0, 15]")


	def assign (self, channel: int, ref: typing.Optional[str]) -> None:

		"""
		Map ``channel`` to ``ref`` (``None`` clears the slot) and pre-load it.

		Raises ``InvalidChannel`` for channels outside [0, 15].
		"""

		self._check_channel(channel)

		self._refs[channel] = ref

		if ref is not None:
			self._preload(ref)

		logger.debug(f"Channel {channel} -> {ref}")

		self.events.emit("sounds_changed", self.sounds())


	def _preload (self, ref: str) -> None:

		try:
			asyncio.get_running_loop()
		except RuntimeError:
			logger.debug(f"No running event loop - {ref} will load on first use")
			return

		self.cache.request(ref)


	def resolve (self, channel: int) -> typing.Optional[str]:

		"""Return the reference assigned to ``channel``, if any."""

		self._check_channel(channel)

		return self._refs[channel]


	def sounds (self) -> typing.List[typing.Optional[str]]:

		"""Return all 16 references in channel order."""

		return list(self._refs)


	def replace (self, refs: typing.Sequence[typing.Optional[str]]) -> None:

		"""Assign all 16 channels at once; emits a single ``sounds_changed``."""

		if len(refs) != beatpad.constants.NUM_CHANNELS:
			raise ValueError(f"Expected {beatpad.constants.NUM_CHANNELS} sounds, got {len(refs)}")

		self._refs = list(refs)

		for ref in self._refs:
			if ref is not None:
				self._preload(ref)

		self.events.emit("sounds_changed", self.sounds())


	def clear (self) -> None:

		"""Unassign every channel."""

		self._refs = [None] * beatpad.constants.NUM_CHANNELS
		self.events.emit("sounds_changed", self.sounds())


	async def prewarm (self) -> int:

		"""
		Load the buffer of every assigned channel.

		Failures are logged by the cache and skipped.  Returns how many
		distinct buffers are ready.
		"""

		refs = {ref for ref in self._refs if ref is not None}

		results = await asyncio.gather(*(self.cache.load(ref) for ref in refs), return_exceptions=True)

		ready = sum(1 for result in results if isinstance(result, beatpad.buffer_cache.Buffer))

		logger.info(f"Pre-loaded {ready} of {len(refs)} sounds")

		return ready


class ChannelPlayer:

	"""
	Plays a channel's sound: registry lookup, then cache, then a voice.

	Shared by the transport (pattern playback) and the input router (live
	hits).  A buffer that is not cached yet is requested and played as soon as
	it arrives, after its nominal moment.  Unassigned channels are silent.
	"""

	def __init__ (
		self,
		registry: ChannelRegistry,
		cache: beatpad.buffer_cache.BufferCache,
		playback: beatpad.playback.PlaybackEngine
	) -> None:

		self.registry = registry
		self.cache = cache
		self.playback = playback


	def play (self, channel: int, velocity: int) -> bool:

		"""
		Trigger ``channel`` at ``velocity``.

		Returns ``True`` when a voice started immediately, ``False`` when the
		channel is unassigned or its buffer is still loading.
		"""

		ref = self.registry.resolve(channel)

		if ref is None:
			return False

		buffer = self.cache.peek(ref)

		if buffer is not None:
			self.playback.trigger(buffer, velocity)
			return True

		future = self.cache.request(ref)
		future.add_done_callback(lambda done: self._play_late(channel, ref, velocity, done))

		return False


	def _play_late (self, channel: int, ref: str, velocity: int, future: asyncio.Future) -> None:

		if future.cancelled() or future.exception() is not None:
			return

		logger.debug(f"Channel {channel} fired late ({ref} was still loading)")

		self.playback.trigger(future.result(), velocity)
