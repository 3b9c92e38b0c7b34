import asyncio

import mido
import pytest

import beatpad.engine
import beatpad.midi_input
import conftest


def test_select_prefers_named_device (patch_midi: None) -> None:

	name, midi_in = beatpad.midi_input.select_input_device("Dummy MIDI")

	assert name == "Dummy MIDI"
	assert midi_in is conftest._current_fake_input


def test_select_matches_controller_keywords (patch_midi: None) -> None:

	"""Without a name (or with a missing one) the Maschine port is picked by keyword."""

	name, _ = beatpad.midi_input.select_input_device()
	assert name == "Maschine Mikro MK3"

	name, _ = beatpad.midi_input.select_input_device("Not Plugged In")
	assert name == "Maschine Mikro MK3"


def test_select_falls_back_to_first_port (patch_midi: None, monkeypatch: pytest.MonkeyPatch) -> None:

	monkeypatch.setattr(conftest, "_fake_input_names", ["Some Keyboard", "Other"])

	name, _ = beatpad.midi_input.select_input_device()

	assert name == "Some Keyboard"


def test_select_with_no_ports (patch_midi: None, monkeypatch: pytest.MonkeyPatch) -> None:

	monkeypatch.setattr(conftest, "_fake_input_names", [])

	assert beatpad.midi_input.select_input_device() == (None, None)


@pytest.mark.asyncio
async def test_note_on_is_forwarded_through_the_loop (patch_midi: None, engine: beatpad.engine.Engine) -> None:

	"""A note-on from the MIDI callback reaches the router on the event loop."""

	midi = beatpad.midi_input.MidiInput(engine.router)

	assert midi.open()
	assert midi.connected

	notes = []
	engine.on_event("note", lambda channel, velocity: notes.append((channel, velocity)))

	conftest._current_fake_input.inject(mido.Message("note_on", note=12, velocity=100))
	assert notes == []

	await asyncio.sleep(0)

	assert notes == [(0, 100)]


@pytest.mark.asyncio
async def test_other_messages_are_ignored (patch_midi: None, engine: beatpad.engine.Engine) -> None:

	midi = beatpad.midi_input.MidiInput(engine.router)
	midi.open()

	notes = []
	engine.on_event("note", lambda *args: notes.append(args))

	fake = conftest._current_fake_input
	fake.inject(mido.Message("note_off", note=12, velocity=0))
	fake.inject(mido.Message("control_change", control=1, value=64))
	fake.inject(mido.Message("clock"))

	await asyncio.sleep(0)

	assert notes == []


@pytest.mark.asyncio
async def test_close_releases_port (patch_midi: None, engine: beatpad.engine.Engine) -> None:

	midi = beatpad.midi_input.MidiInput(engine.router)
	midi.open()
	fake = conftest._current_fake_input

	midi.close()

	assert fake.closed
	assert not midi.connected

	notes = []
	engine.on_event("note", lambda *args: notes.append(args))
	fake.inject(mido.Message("note_on", note=12, velocity=100))
	await asyncio.sleep(0)

	assert notes == []
