import json
import logging
import os
import re
import tempfile
import typing

import beatpad.constants
import beatpad.exceptions
import beatpad.project


logger = logging.getLogger(__name__)


# Keys used by the session autosave and the project library.
SOUNDS_KEY = "pad_sounds"
SEQUENCE_KEY = "sequence"
BPM_KEY = "bpm"
PROJECTS_KEY = "saved_projects"


@typing.runtime_checkable
class PersistenceStore (typing.Protocol):

	"""
	Protocol for named-blob storage.
	"""

	def load (self, key: str) -> typing.Optional[str]:

		"""Return the blob stored under ``key``, or ``None``."""

		...


	def save (self, key: str, blob: str) -> bool:

		"""Store ``blob`` under ``key``; return whether it was written."""

		...


class MemoryStore:

	"""A ``PersistenceStore`` held in a dict."""

	def __init__ (self) -> None:

		self.blobs: typing.Dict[str, str] = {}


	def load (self, key: str) -> typing.Optional[str]:
		return self.blobs.get(key)


	def save (self, key: str, blob: str) -> bool:

		self.blobs[key] = blob

		return True


	def delete (self, key: str) -> None:
		self.blobs.pop(key, None)


class DirectoryStore:

	"""
	A ``PersistenceStore`` writing one ``<key>.json`` file per key.

	Writes go to a temporary file that replaces the target, so a crash never
	leaves a half-written blob behind.
	"""

	_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

	def __init__ (self, directory: str) -> None:

		self.directory = os.path.expanduser(directory)


	def path_for (self, key: str) -> str:

		if not self._KEY_PATTERN.match(key):
			raise ValueError(f"Invalid storage key {key!r}")

		return os.path.join(self.directory, f"{key}.json")


	def load (self, key: str) -> typing.Optional[str]:

		path = self.path_for(key)

		try:
			with open(path, "r", encoding="utf-8") as f:
				return f.read()
		except FileNotFoundError:
			return None
		except OSError as e:
			logger.error(f"Failed to read {path}: {e}")
			return None


	def save (self, key: str, blob: str) -> bool:

		path = self.path_for(key)

		try:
			os.makedirs(self.directory, exist_ok=True)
			fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")

			try:
				with os.fdopen(fd, "w", encoding="utf-8") as f:
					f.write(blob)
				os.replace(tmp_path, path)
			except BaseException:
				os.unlink(tmp_path)
				raise

		except OSError as e:
			logger.error(f"Failed to save {path}: {e}")
			return False

		return True


	def delete (self, key: str) -> None:

		try:
			os.unlink(self.path_for(key))
		except FileNotFoundError:
			pass


class ProjectLibrary:

	"""
	Named projects kept as one JSON list under ``saved_projects``.

	Projects are addressed by name or by list index.  Saving a project whose
	name already exists replaces it in place.
	"""

	def __init__ (self, store: PersistenceStore) -> None:

		self.store = store


	def _read (self) -> typing.List[typing.Dict[str, typing.Any]]:

		blob = self.store.load(PROJECTS_KEY)

		if blob is None:
			return []

		try:
			projects = json.loads(blob)
		except ValueError:
			logger.error("Saved projects are not valid JSON - ignoring them")
			return []

		if not isinstance(projects, list):
			logger.error("Saved projects are not a list - ignoring them")
			return []

		return [project for project in projects if isinstance(project, dict)]


	def _write (self, projects: typing.List[typing.Dict[str, typing.Any]]) -> bool:

		return self.store.save(PROJECTS_KEY, json.dumps(projects, indent=2))


	def _index_of (self, projects: typing.List[typing.Dict[str, typing.Any]], name_or_index: typing.Union[str, int]) -> int:

		if isinstance(name_or_index, int):
			return name_or_index if 0 <= name_or_index < len(projects) else -1

		for index, project in enumerate(projects):
			if project.get("name") == name_or_index:
				return index

		return -1


	def names (self) -> typing.List[str]:

		return [str(project.get("name", "")) for project in self._read()]


	def save (self, project: beatpad.project.Project) -> bool:

		"""Add ``project``, replacing any saved project with the same name."""

		projects = self._read()
		record = project.to_dict()
		index = self._index_of(projects, project.name)

		if index >= 0:
			projects[index] = record
		else:
			projects.append(record)

		saved = self._write(projects)

		if saved:
			logger.info(f"Saved project {project.name!r}")

		return saved


	def get (self, name_or_index: typing.Union[str, int]) -> typing.Optional[beatpad.project.Project]:

		"""
		Return a saved project, or ``None`` if there is no such project.

		Raises ``ImportValidationError`` if the stored record is malformed.
		"""

		projects = self._read()
		index = self._index_of(projects, name_or_index)

		if index < 0:
			return None

		return beatpad.project.from_dict(projects[index])


	def delete (self, name_or_index: typing.Union[str, int]) -> bool:

		"""Remove a saved project; returns ``False`` if it did not exist."""

		projects = self._read()
		index = self._index_of(projects, name_or_index)

		if index < 0:
			return False

		removed = projects.pop(index)

		logger.info(f"Deleted project {removed.get('name')!r}")

		return self._write(projects)


class SessionStore:

	"""
	Persists the live session (sounds, sequence, bpm) after each change and
	restores it at start-up.

	Each value has its own key so an edit only rewrites what changed.
	"""

	def __init__ (self, store: PersistenceStore) -> None:

		self.store = store


	def save_sounds (self, sounds: typing.List[typing.Optional[str]]) -> bool:
		return self.store.save(SOUNDS_KEY, json.dumps(sounds))


	def save_sequence (self, sequence: typing.List[typing.List[int]]) -> bool:
		return self.store.save(SEQUENCE_KEY, json.dumps(sequence))


	def save_bpm (self, bpm: int) -> bool:
		return self.store.save(BPM_KEY, str(bpm))


	def _load_json (self, key: str) -> typing.Any:

		blob = self.store.load(key)

		if blob is None:
			return None

		try:
			return json.loads(blob)
		except ValueError:
			logger.error(f"Failed to load {key} from storage - ignoring it")
			return None


	def load_sounds (self) -> typing.Optional[typing.List[typing.Optional[str]]]:

		sounds = self._load_json(SOUNDS_KEY)

		if sounds is None:
			return None

		try:
			return beatpad.project.validate_sounds(sounds)
		except beatpad.exceptions.ImportValidationError as e:
			logger.error(f"Stored sounds are invalid - ignoring them: {e}")
			return None


	def load_sequence (self) -> typing.Optional[typing.List[typing.List[int]]]:

		sequence = self._load_json(SEQUENCE_KEY)

		if sequence is None:
			return None

		try:
			return beatpad.project.validate_sequence(sequence)
		except beatpad.exceptions.ImportValidationError as e:
			logger.error(f"Stored sequence is invalid - ignoring it: {e}")
			return None


	def load_bpm (self) -> typing.Optional[int]:

		bpm = self._load_json(BPM_KEY)

		if bpm is None:
			return None

		try:
			return beatpad.project.validate_bpm(bpm)
		except beatpad.exceptions.ImportValidationError as e:
			logger.error(f"Stored bpm is invalid - ignoring it: {e}")
			return None
