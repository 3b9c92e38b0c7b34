"""Resource resolvers.

A resolver turns a resource reference into raw bytes for decoding.  The
engine never interprets references itself: a reference may be a path relative
to a sounds directory, an absolute path, a ``file://`` URL or an http(s) URL.

Fetching runs in a worker thread so the event loop never blocks on IO.  Any
failure is raised as ``ResourceFetchError``.
"""

import asyncio
import logging
import os
import typing
import urllib.error
import urllib.parse
import urllib.request

import beatpad.exceptions


logger = logging.getLogger(__name__)


@typing.runtime_checkable
class ResourceResolver (typing.Protocol):

	"""
	Protocol for objects that fetch the bytes behind a resource reference.
	"""

	async def fetch (self, ref: str) -> bytes:

		"""
		Return the raw bytes for ``ref`` or raise ``ResourceFetchError``.
		"""

		...


class FileResolver:

	"""
	Reads references as local file paths.

	Relative paths are resolved against ``base_dir``; ``file://`` URLs are
	accepted too.
	"""

	def __init__ (self, base_dir: str = ".") -> None:

		self.base_dir = os.path.expanduser(base_dir)


	def path_for (self, ref: str) -> str:

		"""Return the filesystem path a reference points to."""

		if ref.startswith("file://"):
			return urllib.request.url2pathname(urllib.parse.urlparse(ref).path)

		path = os.path.expanduser(ref)

		if os.path.isabs(path):
			return path

		return os.path.join(self.base_dir, path)


	async def fetch (self, ref: str) -> bytes:

		path = self.path_for(ref)

		try:
			return await asyncio.to_thread(self._read, path)
		except OSError as e:
			raise beatpad.exceptions.ResourceFetchError(f"Cannot read {path}: {e}") from e


	@staticmethod
	def _read (path: str) -> bytes:

		with open(path, "rb") as f:
			return f.read()


class HttpResolver:

	"""
	Downloads http(s) references with ``urllib``.

	No timeout is applied unless one is given: a stalled download leaves the
	sound silent until it resolves or fails.
	"""

	def __init__ (self, timeout: typing.Optional[float] = None) -> None:

		self.timeout = timeout


	async def fetch (self, ref: str) -> bytes:

		try:
			return await asyncio.to_thread(self._download, ref)
		except (urllib.error.URLError, OSError, ValueError) as e:
			raise beatpad.exceptions.ResourceFetchError(f"Cannot download {ref}: {e}") from e


	def _download (self, ref: str) -> bytes:

		logger.debug(f"Downloading {ref}")

		with urllib.request.urlopen(ref, timeout=self.timeout) as response:
			return response.read()


class DefaultResolver:

	"""
	Dispatches http(s) references to ``HttpResolver`` and everything else to
	``FileResolver``.
	"""

	def __init__ (self, base_dir: str = ".", timeout: typing.Optional[float] = None) -> None:

		self.files = FileResolver(base_dir)
		self.http = HttpResolver(timeout)


	async def fetch (self, ref: str) -> bytes:

		scheme = urllib.parse.urlparse(ref).scheme.lower()

		if scheme in ("http", "https"):
			return await self.http.fetch(ref)

		return await self.files.fetch(ref)
