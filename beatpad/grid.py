import typing

import beatpad.constants
import beatpad.constants.velocity
import beatpad.event_emitter
import beatpad.exceptions


Matrix = typing.List[typing.List[int]]


def empty_matrix () -> Matrix:

	"""Return a fresh 16 x 16 matrix of zeros."""

	return [[0] * beatpad.constants.NUM_STEPS for _ in range(beatpad.constants.NUM_CHANNELS)]


def check_velocity (velocity: int) -> None:

	"""Raise ``ValueError`` unless velocity is an int in [0, 127]."""

	if isinstance(velocity, bool) or not isinstance(velocity, int):
		raise ValueError(f"Velocity must be an integer, got {velocity!r}")

	if not beatpad.constants.velocity.MIN_VELOCITY <= velocity <= beatpad.constants.velocity.MAX_VELOCITY:
		raise ValueError(f"Velocity {velocity} outside [0, 127]")


def validate_matrix (matrix: typing.Any) -> Matrix:

	"""
	Check that a value is a 16 x 16 matrix of velocities and return a copy.

	Raises ``ValueError`` describing the first problem found.
	"""

	if not isinstance(matrix, (list, tuple)) or len(matrix) != beatpad.constants.NUM_CHANNELS:
		raise ValueError(f"Pattern must have {beatpad.constants.NUM_CHANNELS} rows")

	rows: Matrix = []

	for channel, row in enumerate(matrix):

		if not isinstance(row, (list, tuple)) or len(row) != beatpad.constants.NUM_STEPS:
			raise ValueError(f"Pattern row {channel} must have {beatpad.constants.NUM_STEPS} steps")

		for velocity in row:
			check_velocity(velocity)

		rows.append(list(row))

	return rows


class PatternGrid:

	"""
	The 16 channel x 16 step velocity matrix.

	A velocity of zero is an empty cell.  The transport and the input router
	share one instance, so every edit is visible to the next tick.  Every
	mutation emits ``pattern_changed``.
	"""

	def __init__ (self, events: typing.Optional[beatpad.event_emitter.EventEmitter] = None) -> None:

		self.events = events if events is not None else beatpad.event_emitter.EventEmitter()
		self._cells: Matrix = empty_matrix()


	@staticmethod
	def _check_address (channel: int, step: int) -> None:

		for index in (channel, step):
			if isinstance(index, bool) or not isinstance(index, int):
				raise beatpad.exceptions.InvalidCellAddress(f"Cell ({channel!r}, {step!r}) indices must be integers")

		if not 0 <= channel < beatpad.constants.NUM_CHANNELS or not 0 <= step < beatpad.constants.NUM_STEPS:
			raise beatpad.exceptions.InvalidCellAddress(f"Cell ({channel}, {step}) is outside the 16 x 16 grid")


	def get (self, channel: int, step: int) -> int:

		"""Return the velocity stored at (channel, step)."""

		self._check_address(channel, step)

		return self._cells[channel][step]


	def set (self, channel: int, step: int, velocity: int) -> None:

		"""
		Overwrite the velocity at (channel, step).

		Raises ``InvalidCellAddress`` for indices outside [0, 15] and
		``ValueError`` for velocities outside [0, 127].  The grid is unchanged
		in both cases.
		"""

		self._check_address(channel, step)
		check_velocity(velocity)

		self._cells[channel][step] = velocity
		self.events.emit("pattern_changed", channel, step, velocity)


	def toggle (self, channel: int, step: int, velocity: int = beatpad.constants.velocity.DEFAULT_TOGGLE_VELOCITY) -> int:

		"""
		Switch a cell between empty and ``velocity``; return the new value.
		"""

		new_velocity = 0 if self.get(channel, step) > 0 else velocity
		self.set(channel, step, new_velocity)

		return new_velocity


	def clear (self) -> None:

		"""Empty every cell."""

		for row in self._cells:
			row[:] = [0] * beatpad.constants.NUM_STEPS

		self.events.emit("pattern_changed", None, None, None)


	def clear_channel (self, channel: int) -> None:

		"""Empty every step of one channel."""

		self._check_address(channel, 0)

		self._cells[channel][:] = [0] * beatpad.constants.NUM_STEPS
		self.events.emit("pattern_changed", channel, None, None)


	def replace (self, matrix: typing.Any) -> None:

		"""
		Load a whole matrix; validated completely before any cell changes.
		"""

		rows = validate_matrix(matrix)

		for channel, row in enumerate(rows):
			self._cells[channel][:] = row

		self.events.emit("pattern_changed", None, None, None)


	def row (self, channel: int) -> typing.List[int]:

		"""Return a copy of one channel's steps."""

		self._check_address(channel, 0)

		return list(self._cells[channel])


	def column (self, step: int) -> typing.List[int]:

		"""Return the velocities of every channel at one step."""

		self._check_address(0, step)

		return [row[step] for row in self._cells]


	def to_list (self) -> Matrix:

		"""Return a deep copy of the matrix."""

		return [list(row) for row in self._cells]


	def is_empty (self) -> bool:

		return not any(any(row) for row in self._cells)
