import pytest

import beatpad.exceptions
import beatpad.grid


def test_new_grid_is_empty () -> None:

	"""A fresh grid holds 16 x 16 zeros."""

	grid = beatpad.grid.PatternGrid()

	assert grid.is_empty()
	assert grid.to_list() == [[0] * 16 for _ in range(16)]


def test_write_then_read_every_cell () -> None:

	"""Writing a velocity to any in-range cell reads back the same value."""

	grid = beatpad.grid.PatternGrid()

	for channel in range(16):
		for step in range(16):
			velocity = (channel * 16 + step) % 128
			grid.set(channel, step, velocity)
			assert grid.get(channel, step) == velocity


@pytest.mark.parametrize("channel, step", [(-1, 0), (16, 0), (0, -1), (0, 16), (20, 20)])
def test_out_of_range_write_is_rejected (channel: int, step: int) -> None:

	"""Out-of-range indices raise InvalidCellAddress and leave the grid unchanged."""

	grid = beatpad.grid.PatternGrid()
	grid.set(3, 3, 64)
	before = grid.to_list()

	with pytest.raises(beatpad.exceptions.InvalidCellAddress):
		grid.set(channel, step, 100)

	assert grid.to_list() == before


@pytest.mark.parametrize("velocity", [-1, 128, 1.5, True])
def test_invalid_velocity_is_rejected (velocity: object) -> None:

	"""Velocities outside [0, 127] (or not integers) are rejected."""

	grid = beatpad.grid.PatternGrid()

	with pytest.raises(ValueError):
		grid.set(0, 0, velocity)  # type: ignore[arg-type]

	assert grid.get(0, 0) == 0


def test_toggle_switches_between_empty_and_velocity () -> None:

	"""toggle() turns an empty cell on at 100 and an occupied cell off."""

	grid = beatpad.grid.PatternGrid()

	assert grid.toggle(2, 5) == 100
	assert grid.get(2, 5) == 100
	assert grid.toggle(2, 5) == 0
	assert grid.get(2, 5) == 0


def test_clear_channel_only_touches_one_row () -> None:

	grid = beatpad.grid.PatternGrid()
	grid.set(0, 0, 90)
	grid.set(1, 0, 80)

	grid.clear_channel(0)

	assert grid.row(0) == [0] * 16
	assert grid.get(1, 0) == 80


def test_replace_rejects_bad_matrix_without_changes () -> None:

	"""replace() validates the whole matrix before writing anything."""

	grid = beatpad.grid.PatternGrid()
	grid.set(0, 0, 100)

	bad = [[1] * 16 for _ in range(16)]
	bad[15][15] = 300

	with pytest.raises(ValueError):
		grid.replace(bad)

	assert grid.get(0, 0) == 100
	assert grid.get(1, 1) == 0


def test_column_reads_all_channels_at_a_step () -> None:

	grid = beatpad.grid.PatternGrid()
	grid.set(0, 4, 100)
	grid.set(15, 4, 50)

	column = grid.column(4)

	assert column[0] == 100
	assert column[15] == 50
	assert sum(column) == 150


def test_mutations_emit_pattern_changed () -> None:

	"""Every mutation is announced so the session can be saved."""

	grid = beatpad.grid.PatternGrid()
	received = []

	grid.events.on("pattern_changed", lambda *args: received.append(args))

	grid.set(1, 2, 3)
	grid.clear()

	assert received == [(1, 2, 3), (None, None, None)]


@pytest.mark.parametrize("channel, step", [(0, 1.5), (1.0, 0), ("0", 0), (True, 0)])
def test_non_integer_address_is_rejected (channel: object, step: object) -> None:

	grid = beatpad.grid.PatternGrid()

	with pytest.raises(beatpad.exceptions.InvalidCellAddress):
		grid.set(channel, step, 10)  # type: ignore[arg-type]

	with pytest.raises(beatpad.exceptions.InvalidCellAddress):
		grid.get(channel, step)  # type: ignore[arg-type]

	assert grid.is_empty()
