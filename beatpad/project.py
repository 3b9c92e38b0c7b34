"""The project record.

A project is the persisted state of a session::

	{
	  "name": "Untitled Project",
	  "date": "2026-10-18T12:00:00+00:00",
	  "sounds": [16 resource references or null],
	  "sequence": [16 rows of 16 velocities in 0-127],
	  "bpm": 120,
	  "version": "1.0.0"
	}

``sounds``, ``sequence`` and ``bpm`` are required on import; anything wrong
with them raises ``ImportValidationError`` before any engine state is
touched.
"""

import dataclasses
import datetime
import json
import math
import typing

import beatpad.constants
import beatpad.exceptions
import beatpad.grid
import beatpad.transport


REQUIRED_FIELDS = ("sounds", "sequence", "bpm")


def _now_iso () -> str:
	return datetime.datetime.now(datetime.timezone.utc).isoformat()


@dataclasses.dataclass
class Project:

	"""
	A complete, self-contained copy of a session's musical state.
	"""

	name: str = beatpad.constants.DEFAULT_PROJECT_NAME
	sounds: typing.List[typing.Optional[str]] = dataclasses.field(default_factory=lambda: [None] * beatpad.constants.NUM_CHANNELS)
	sequence: beatpad.grid.Matrix = dataclasses.field(default_factory=beatpad.grid.empty_matrix)
	bpm: int = beatpad.constants.DEFAULT_BPM
	date: str = dataclasses.field(default_factory=_now_iso)
	version: str = beatpad.constants.PROJECT_VERSION


	def to_dict (self) -> typing.Dict[str, typing.Any]:

		return {
			"name": self.name,
			"date": self.date,
			"sounds": list(self.sounds),
			"sequence": [list(row) for row in self.sequence],
			"bpm": self.bpm,
			"version": self.version,
		}


def validate_sounds (sounds: typing.Any) -> typing.List[typing.Optional[str]]:

	if not isinstance(sounds, list) or len(sounds) != beatpad.constants.NUM_CHANNELS:
		raise beatpad.exceptions.ImportValidationError(f"'sounds' must be a list of {beatpad.constants.NUM_CHANNELS} entries")

	for index, ref in enumerate(sounds):
		if ref is not None and not isinstance(ref, str):
			raise beatpad.exceptions.ImportValidationError(f"'sounds[{index}]' must be a string or null")

	return list(sounds)


def validate_sequence (sequence: typing.Any) -> beatpad.grid.Matrix:

	try:
		return beatpad.grid.validate_matrix(sequence)
	except ValueError as e:
		raise beatpad.exceptions.ImportValidationError(f"'sequence' is invalid: {e}") from e


def validate_bpm (bpm: typing.Any) -> int:

	"""Accept any finite number; out-of-range tempos are clamped like live tempo changes."""

	if isinstance(bpm, bool) or not isinstance(bpm, (int, float)):
		raise beatpad.exceptions.ImportValidationError("'bpm' must be a number")

	if isinstance(bpm, float) and not math.isfinite(bpm):
		raise beatpad.exceptions.ImportValidationError(f"'bpm' must be finite, got {bpm!r}")

	return beatpad.transport.clamp_tempo(bpm)


def from_dict (data: typing.Any) -> Project:

	"""
	Build a ``Project`` from a decoded project record.

	Raises ``ImportValidationError`` if a required field is missing or any
	field is malformed.
	"""

	if not isinstance(data, dict):
		raise beatpad.exceptions.ImportValidationError("Project must be a JSON object")

	missing = [field for field in REQUIRED_FIELDS if data.get(field) is None]

	if missing:
		raise beatpad.exceptions.ImportValidationError(f"Project is missing {', '.join(missing)}")

	name = data.get("name") or beatpad.constants.IMPORTED_PROJECT_NAME

	if not isinstance(name, str):
		raise beatpad.exceptions.ImportValidationError("'name' must be a string")

	return Project(
		name = name,
		sounds = validate_sounds(data["sounds"]),
		sequence = validate_sequence(data["sequence"]),
		bpm = validate_bpm(data["bpm"]),
		date = str(data.get("date") or _now_iso()),
		version = str(data.get("version") or beatpad.constants.PROJECT_VERSION),
	)


def export_json (project: Project) -> str:

	"""Serialize a project as indented JSON."""

	return json.dumps(project.to_dict(), indent=2)


def import_json (text: str) -> Project:

	"""
	Parse and validate a JSON project record.

	Raises ``ImportValidationError`` for invalid JSON or an invalid record.
	"""

	try:
		data = json.loads(text)
	except (TypeError, ValueError) as e:
		raise beatpad.exceptions.ImportValidationError(f"Project is not valid JSON: {e}") from e

	return from_dict(data)
