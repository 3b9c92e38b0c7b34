import asyncio
import logging
import time
import typing

import mido

import beatpad.constants.controllers.maschine_mikro_mk3
import beatpad.input_router


logger = logging.getLogger(__name__)


def select_input_device (
	device_name: typing.Optional[str] = None,
	callback: typing.Optional[typing.Callable] = None,
	keywords: typing.Sequence[str] = beatpad.constants.controllers.maschine_mikro_mk3.PORT_NAME_KEYWORDS
) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Select and open a MIDI input port.

	If ``device_name`` is given and present, that port is opened.  Otherwise
	the first port whose name contains every one of ``keywords``
	(case-insensitive) is used, falling back to the first port available.

	Returns:
		A tuple of (device_name, midi_in_object) or (None, None) when no port
		could be opened.
	"""

	try:
		inputs = mido.get_input_names()
		logger.info(f"Available MIDI inputs: {inputs}")

		if not inputs:
			logger.error("No MIDI input devices found.")
			return None, None

		target: typing.Optional[str] = None

		if device_name is not None:
			if device_name in inputs:
				target = device_name
			else:
				logger.warning(f"MIDI input device '{device_name}' not found.")

		if target is None:
			for name in inputs:
				lowered = name.lower()
				if all(keyword in lowered for keyword in keywords):
					target = name
					break

		if target is None:
			target = inputs[0]
			logger.warning(f"Fallback to: {target}")

		midi_in = mido.open_input(target, callback=callback)
		logger.info(f"Opened MIDI input: {target}")

		return target, midi_in

	except Exception as e:
		logger.error(f"Failed to open MIDI input: {e}")
		return None, None


class MidiInput:

	"""
	Feeds note-on messages from a MIDI input port to an input router.

	mido delivers messages on its own callback thread; each note-on is handed
	to the event loop with ``call_soon_threadsafe`` so the router, the grid
	and the transport are only ever touched from the loop.
	"""

	def __init__ (
		self,
		router: beatpad.input_router.InputRouter,
		device_name: typing.Optional[str] = None,
		time_source: typing.Callable[[], float] = time.monotonic
	) -> None:

		self.router = router
		self.device_name = device_name
		self.time_source = time_source

		self.midi_in: typing.Any = None
		self._loop: typing.Optional[asyncio.AbstractEventLoop] = None


	@property
	def connected (self) -> bool:
		return self.midi_in is not None


	def open (self) -> bool:

		"""
		Open the port.  Must be called with the event loop running.  Returns
		whether a port was opened.
		"""

		if self.midi_in is not None:
			return True

		self._loop = asyncio.get_running_loop()

		device_name, midi_in = select_input_device(self.device_name, self._on_message)

		if device_name is None:
			self._loop = None
			return False

		self.device_name = device_name
		self.midi_in = midi_in

		return True


	def close (self) -> None:

		if self.midi_in is not None:
			self.midi_in.close()
			self.midi_in = None
			logger.info("MIDI input closed")

		self._loop = None


	def _on_message (self, message: typing.Any) -> None:

		"""Runs on mido's callback thread."""

		if self._loop is None or message.type != "note_on":
			return

		self._loop.call_soon_threadsafe(
			self.router.on_note_event, message.note, message.velocity, self.time_source()
		)
