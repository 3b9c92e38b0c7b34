"""Repeating tick drivers.

The transport never sleeps or schedules on its own: it asks a ``TickDriver``
for a repeating tick and gets back a ``TickHandle`` it can cancel.  Two
drivers are provided:

- ``AsyncioTickDriver`` - wall-clock ticks on the running asyncio loop.
- ``SimulatedClock`` - ticks fired by explicitly advancing simulated time,
  for deterministic tests and offline rendering.

A hardware audio clock can be plugged in by implementing the same interface.
"""

import abc
import asyncio
import logging
import time
import typing


logger = logging.getLogger(__name__)

TickCallback = typing.Callable[[], None]


class TickHandle:

	"""
	A scheduled repeating tick.

	``cancel()`` stops future ticks.  A tick that is already running is not
	interrupted.
	"""

	def __init__ (self, interval: float, callback: TickCallback) -> None:

		if interval <= 0:
			raise ValueError("Tick interval must be positive")

		self.interval = interval
		self.callback = callback
		self.active = True
		self.ticks = 0


	def cancel (self) -> None:

		self.active = False


	def fire (self) -> None:

		"""Run the callback once.  Exceptions are logged so the clock keeps going."""

		self.ticks += 1

		try:
			self.callback()
		except Exception:
			logger.exception("Tick callback failed")


class TickDriver (abc.ABC):

	"""
	Interface for anything that can call a function at a fixed interval.
	"""

	@abc.abstractmethod
	def schedule (self, interval: float, callback: TickCallback) -> TickHandle:

		"""
		Call ``callback`` every ``interval`` seconds, first one interval from now.
		"""

		...


	@abc.abstractmethod
	def now (self) -> float:

		"""Current time in seconds on this driver's clock."""

		...


class AsyncioTickDriver (TickDriver):

	"""
	Drives ticks from a task on the running asyncio loop.

	Tick times are computed from the start time rather than from the previous
	wake-up, so lateness never accumulates into drift.  With ``spin_wait``
	enabled the task sleeps to within ``spin_threshold`` of each tick and
	busy-waits the rest, trading a little CPU for tighter timing.
	"""

	def __init__ (
		self,
		spin_wait: bool = True,
		spin_threshold: float = 0.001,
		_jitter_log: typing.Optional[typing.List[float]] = None
	) -> None:

		"""
		Parameters:
			spin_wait: Use the hybrid sleep+spin strategy (default) instead of
				pure ``asyncio.sleep()``.
			spin_threshold: Seconds before each tick at which sleeping stops
				and spinning starts.
			_jitter_log: Optional list to append per-tick lateness (seconds)
				to.  Intended for the tick jitter benchmark.
		"""

		self.spin_wait = spin_wait
		self.spin_threshold = spin_threshold
		self._jitter_log = _jitter_log
		self._tasks: typing.Dict[TickHandle, asyncio.Task] = {}


	def now (self) -> float:
		return time.perf_counter()


	def schedule (self, interval: float, callback: TickCallback) -> TickHandle:

		"""
		Start a repeating tick.  Must be called while an event loop is running.
		"""

		handle = _AsyncioTickHandle(interval, callback, self)
		task = asyncio.get_running_loop().create_task(self._run(handle))
		self._tasks[handle] = task
		task.add_done_callback(lambda _: self._tasks.pop(handle, None))

		return handle


	def _cancel (self, handle: TickHandle) -> None:

		task = self._tasks.pop(handle, None)

		if task is not None and task is not _current_task():
			task.cancel()


	async def _run (self, handle: TickHandle) -> None:

		next_tick_time = time.perf_counter() + handle.interval

		while handle.active:

			sleep_time = next_tick_time - time.perf_counter()

			if sleep_time > 0:
				if self.spin_wait and sleep_time > self.spin_threshold:
					await asyncio.sleep(sleep_time - self.spin_threshold)
					while time.perf_counter() < next_tick_time:
						pass
				else:
					await asyncio.sleep(sleep_time)
			else:
				# Running late: still yield so other tasks are not starved.
				await asyncio.sleep(0)

			if not handle.active:
				break

			if self._jitter_log is not None:
				self._jitter_log.append(time.perf_counter() - next_tick_time)

			handle.fire()
			next_tick_time += handle.interval


class _AsyncioTickHandle (TickHandle):

	def __init__ (self, interval: float, callback: TickCallback, driver: AsyncioTickDriver) -> None:

		super().__init__(interval, callback)
		self._driver = driver


	def cancel (self) -> None:

		super().cancel()
		self._driver._cancel(self)


def _current_task () -> typing.Optional[asyncio.Task]:

	try:
		return asyncio.current_task()
	except RuntimeError:
		return None


class SimulatedClock (TickDriver):

	"""
	A driver whose time only moves when ``advance()`` is called.

	Ticks due inside the advanced span fire in time order, each with
	``now()`` set to its exact due time.
	"""

	def __init__ (self, start: float = 0.0) -> None:

		self._now = start
		self._handles: typing.List[typing.Tuple[TickHandle, typing.List[float]]] = []


	def now (self) -> float:
		return self._now


	def schedule (self, interval: float, callback: TickCallback) -> TickHandle:

		handle = TickHandle(interval, callback)
		self._handles.append((handle, [self._now + interval]))

		return handle


	@property
	def active_handles (self) -> typing.List[TickHandle]:
		return [handle for handle, _ in self._handles if handle.active]


	def advance (self, seconds: float) -> int:

		"""
		Move time forward, firing every tick that falls due.  Returns the number
		of ticks fired.
		"""

		if seconds < 0:
			raise ValueError("Cannot move simulated time backwards")

		target = self._now + seconds
		fired = 0

		while True:

			self._handles = [entry for entry in self._handles if entry[0].active]

			# Tolerance absorbs float error from repeatedly adding intervals.
			due = [entry for entry in self._handles if entry[1][0] <= target + 1e-9]

			if not due:
				break

			handle, next_due = min(due, key=lambda entry: entry[1][0])

			self._now = max(self._now, next_due[0])
			next_due[0] += handle.interval
			handle.fire()
			fired += 1

		self._now = target

		return fired


	def advance_ms (self, milliseconds: float) -> int:

		return self.advance(milliseconds / 1000.0)
