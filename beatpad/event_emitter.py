import asyncio
import inspect
import logging
import typing


logger = logging.getLogger(__name__)

CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	A small event emitter for engine notifications.

	Emitting never blocks and never raises: the transport emits from inside
	its tick, so a slow or broken listener must not hold up or stop the clock.
	Coroutine listeners are scheduled as tasks on the running loop; exceptions
	from plain listeners are logged and swallowed.
	"""

	def __init__ (self) -> None:

		"""
		Initialize an empty event registry.
		"""

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.
		"""

		self._listeners.setdefault(event_name, []).append(callback)


	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if callback not in self._listeners.get(event_name, []):
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)


	def listener_count (self, event_name: str) -> int:

		"""Return how many callbacks are registered for an event."""

		return len(self._listeners.get(event_name, []))


	def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call every listener for an event.

		Coroutine functions are wrapped in a task when a loop is running and
		skipped with a warning otherwise.
		"""

		for callback in list(self._listeners.get(event_name, [])):

			if inspect.iscoroutinefunction(callback):

				try:
					loop = asyncio.get_running_loop()
				except RuntimeError:
					logger.warning(f"No running event loop - async listener for {event_name!r} skipped")
					continue

				loop.create_task(self._run_async(event_name, callback, *args, **kwargs))
				continue

			try:
				callback(*args, **kwargs)
			except Exception:
				logger.exception(f"Listener for {event_name!r} failed")


	@staticmethod
	async def _run_async (event_name: str, callback: CallbackType, *args: typing.Any, **kwargs: typing.Any) -> None:

		try:
			await callback(*args, **kwargs)
		except Exception:
			logger.exception(f"Async listener for {event_name!r} failed")
