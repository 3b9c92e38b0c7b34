import json

import pytest

import beatpad.clock
import beatpad.engine
import beatpad.exceptions
import beatpad.storage
import conftest


def _engine_with_store (store: beatpad.storage.MemoryStore, resolver: conftest.FakeResolver = None) -> beatpad.engine.Engine:

	return beatpad.engine.Engine(
		resolver = resolver if resolver is not None else conftest.FakeResolver(),
		clock = beatpad.clock.SimulatedClock(),
		playback = conftest.RecordingPlayback(),
		store = store
	)


def test_import_without_bpm_keeps_prior_state (engine: beatpad.engine.Engine) -> None:

	"""A record missing a required field is rejected and nothing changes."""

	engine.assign_sound(0, "kick.wav")
	engine.set_cell(0, 0, 100)
	engine.set_tempo(90)

	record = {
		"name": "Incomplete",
		"sounds": ["snare.wav"] * 16,
		"sequence": [[1] * 16 for _ in range(16)],
	}

	with pytest.raises(beatpad.exceptions.ImportValidationError):
		engine.import_project(json.dumps(record))

	assert engine.sounds()[0] == "kick.wav"
	assert engine.sounds()[1] is None
	assert engine.grid.get(0, 0) == 100
	assert engine.grid.get(1, 1) == 0
	assert engine.tempo == 90
	assert engine.project_name == "Untitled Project"


def test_export_and_import_between_engines (engine: beatpad.engine.Engine) -> None:

	engine.assign_sound(4, "snare.wav")
	engine.set_cell(4, 8, 64)
	engine.set_tempo(101)

	text = engine.export_project()

	other = beatpad.engine.Engine(resolver=conftest.FakeResolver(), clock=beatpad.clock.SimulatedClock(), playback=conftest.RecordingPlayback())
	project = other.import_project(text)

	assert project.name == "Untitled Project"
	assert other.sounds() == engine.sounds()
	assert other.pattern() == engine.pattern()
	assert other.tempo == 101


def test_changes_are_autosaved_and_restored () -> None:

	"""With a store, every change is saved and a new engine picks the session up."""

	store = beatpad.storage.MemoryStore()

	first = _engine_with_store(store)
	first.assign_sound(2, "hat.wav")
	first.set_cell(2, 6, 70)
	first.set_tempo(150)

	assert json.loads(store.load(beatpad.storage.SOUNDS_KEY))[2] == "hat.wav"
	assert json.loads(store.load(beatpad.storage.SEQUENCE_KEY))[2][6] == 70
	assert store.load(beatpad.storage.BPM_KEY) == "150"

	second = _engine_with_store(store)

	assert second.sounds()[2] == "hat.wav"
	assert second.grid.get(2, 6) == 70
	assert second.tempo == 150


def test_corrupt_session_falls_back_to_defaults () -> None:

	store = beatpad.storage.MemoryStore()
	store.save(beatpad.storage.SEQUENCE_KEY, "{oops")
	store.save(beatpad.storage.BPM_KEY, "97")

	engine = _engine_with_store(store)

	assert engine.grid.is_empty()
	assert engine.tempo == 97


@pytest.mark.asyncio
async def test_toggle_cell_previews_loaded_sound (engine: beatpad.engine.Engine, playback: conftest.RecordingPlayback) -> None:

	"""Switching a cell on previews its sound if loaded; switching it off is silent."""

	engine.assign_sound(1, "kick.wav")
	await engine.prewarm()

	assert engine.toggle_cell(1, 4) == 100
	assert len(playback.played) == 1

	assert engine.toggle_cell(1, 4) == 0
	assert len(playback.played) == 1


def test_toggle_cell_with_unloaded_sound_is_silent (engine: beatpad.engine.Engine, playback: conftest.RecordingPlayback) -> None:

	engine.assign_sound(1, "kick.wav")

	assert engine.toggle_cell(1, 4) == 100
	assert playback.played == []


def test_reset_clears_pattern_and_sounds (engine: beatpad.engine.Engine) -> None:

	engine.assign_sound(0, "kick.wav")
	engine.set_cell(0, 0, 100)
	engine.set_tempo(80)

	engine.reset()

	assert engine.grid.is_empty()
	assert engine.sounds() == [None] * 16
	assert engine.tempo == 80


def test_assign_rejects_bad_channel (engine: beatpad.engine.Engine) -> None:

	with pytest.raises(beatpad.exceptions.InvalidChannel):
		engine.assign_sound(16, "kick.wav")


@pytest.mark.asyncio
async def test_trigger_pad_plays_at_click_velocity (engine: beatpad.engine.Engine, playback: conftest.RecordingPlayback) -> None:

	engine.assign_sound(0, "kick.wav")
	await engine.prewarm()

	assert engine.trigger_pad(0)
	assert playback.played[0][1] == pytest.approx(80 / 127)
	assert engine.grid.is_empty()


@pytest.mark.asyncio
async def test_start_prewarms_before_playing (engine: beatpad.engine.Engine, resolver: conftest.FakeResolver) -> None:

	"""start() loads every assigned sound, then starts the transport from step 0."""

	engine.assign_sound(0, "kick.wav")
	engine.assign_sound(1, "snare.wav")
	engine.assign_sound(2, "broken.wav")

	await engine.start()

	assert engine.playing
	assert engine.current_step == 0
	assert "kick.wav" in engine.cache
	assert "snare.wav" in engine.cache
	assert "broken.wav" not in engine.cache


@pytest.mark.asyncio
async def test_prewarm_loads_metronome_sample (resolver: conftest.FakeResolver) -> None:

	engine = beatpad.engine.Engine(
		resolver = resolver,
		clock = beatpad.clock.SimulatedClock(),
		playback = conftest.RecordingPlayback(),
		metronome = True,
		metronome_ref = "snare.wav"
	)

	await engine.prewarm()

	assert "snare.wav" in engine.cache


def test_shutdown_stops_and_silences (engine: beatpad.engine.Engine, playback: conftest.RecordingPlayback) -> None:

	engine.set_metronome(True)
	engine.play()
	engine.clock.advance_ms(500)

	assert playback.active_voices == 1

	engine.shutdown()

	assert not engine.playing
	assert playback.active_voices == 0


def test_save_open_and_delete_projects () -> None:

	"""Projects are saved by name, reopened by name or index, and deleted."""

	engine = _engine_with_store(beatpad.storage.MemoryStore())

	engine.set_cell(0, 0, 100)
	engine.set_tempo(100)
	assert engine.save_project("first") == "first"

	engine.clear_pattern()
	engine.set_tempo(140)
	engine.save_project("second")

	assert engine.library.names() == ["first", "second"]

	assert engine.open_project("first")
	assert engine.grid.get(0, 0) == 100
	assert engine.tempo == 100
	assert engine.project_name == "first"

	assert engine.open_project(1)
	assert engine.grid.is_empty()
	assert engine.tempo == 140

	assert not engine.open_project("missing")

	assert engine.delete_project("second")
	assert engine.project_name == "Untitled Project"
	assert engine.library.names() == ["first"]

	assert not engine.delete_project("second")


def test_save_without_name_uses_current_project_name () -> None:

	engine = _engine_with_store(beatpad.storage.MemoryStore())

	assert engine.save_project() == "Untitled Project"

	engine.save_project("Named")
	assert engine.save_project() == "Named"
	assert engine.library.names() == ["Untitled Project", "Named"]


def test_project_library_requires_a_store (engine: beatpad.engine.Engine) -> None:

	with pytest.raises(RuntimeError):
		engine.save_project("nowhere")


def test_events_reach_subscribers (engine: beatpad.engine.Engine) -> None:

	seen = []

	for name in ("transport", "pattern_changed", "sounds_changed", "tempo_changed"):
		engine.on_event(name, lambda *args, name=name: seen.append(name))

	engine.set_cell(0, 0, 1)
	engine.assign_sound(0, "kick.wav")
	engine.set_tempo(100)
	engine.play()

	assert seen == ["pattern_changed", "sounds_changed", "tempo_changed", "transport"]


def test_non_finite_stored_bpm_is_ignored () -> None:

	store = beatpad.storage.MemoryStore()
	store.save(beatpad.storage.BPM_KEY, "Infinity")

	engine = _engine_with_store(store)

	assert engine.tempo == 120


class _ReadOnlyStore (beatpad.storage.MemoryStore):

	def save (self, key: str, blob: str) -> bool:
		return False


def test_failed_save_reports_none_and_keeps_name () -> None:

	"""When the store cannot write, save_project returns None and the project name is unchanged."""

	engine = _engine_with_store(_ReadOnlyStore())

	assert engine.save_project("beat") is None
	assert engine.project_name == "Untitled Project"
	assert engine.library.get("beat") is None


def test_clear_pattern_rewinds_transport (engine: beatpad.engine.Engine) -> None:

	engine.set_cell(0, 0, 100)
	engine.play()
	engine.clock.advance_ms(125 * 5)

	engine.clear_pattern()

	assert engine.grid.is_empty()
	assert engine.current_step == 0
	assert engine.playing
