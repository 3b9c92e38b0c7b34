"""Exceptions raised by the beatpad engine.

All of them describe local, recoverable failures: the transport keeps running
whatever happens to an individual sound or edit.
"""


class DecodeError (Exception):

	"""Resource bytes could not be decoded as audio.

	Nothing is cached when this is raised, so a later load retries.
	"""


class ResourceFetchError (DecodeError):

	"""The bytes for a resource reference could not be fetched (IO or network)."""


class InvalidCellAddress (ValueError):

	"""A grid channel or step index is outside [0, 15]."""


class InvalidChannel (ValueError):

	"""A channel index is outside [0, 15]."""


class ImportValidationError (ValueError):

	"""A project payload is missing required fields or has malformed values."""
