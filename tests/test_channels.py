import pytest

import beatpad.buffer_cache
import beatpad.channels
import beatpad.exceptions
import conftest


def _components (resolver: conftest.FakeResolver) -> tuple:

	cache = beatpad.buffer_cache.BufferCache(resolver)
	registry = beatpad.channels.ChannelRegistry(cache)
	playback = conftest.RecordingPlayback()
	player = beatpad.channels.ChannelPlayer(registry, cache, playback)

	return cache, registry, playback, player


@pytest.mark.parametrize("channel", [-1, 16, True, "0"])
def test_assign_rejects_invalid_channel (resolver: conftest.FakeResolver, channel: object) -> None:

	_, registry, _, _ = _components(resolver)

	with pytest.raises(beatpad.exceptions.InvalidChannel):
		registry.assign(channel, "kick.wav")  # type: ignore[arg-type]

	assert registry.sounds() == [None] * 16


def test_assign_and_clear_emit_sounds_changed (resolver: conftest.FakeResolver) -> None:

	_, registry, _, _ = _components(resolver)
	received = []
	registry.events.on("sounds_changed", received.append)

	registry.assign(3, "kick.wav")
	registry.assign(3, None)
	registry.clear()

	assert len(received) == 3
	assert received[0][3] == "kick.wav"
	assert received[1] == [None] * 16


@pytest.mark.asyncio
async def test_assign_starts_loading (resolver: conftest.FakeResolver) -> None:

	"""Assigning a sound begins its decode in the background."""

	cache, registry, _, _ = _components(resolver)

	registry.assign(0, "kick.wav")

	assert cache.is_loading("kick.wav")

	await conftest.settle()

	assert "kick.wav" in cache


@pytest.mark.asyncio
async def test_prewarm_counts_ready_sounds (resolver: conftest.FakeResolver) -> None:

	"""Shared references load once; failures are skipped."""

	cache, registry, _, _ = _components(resolver)

	registry.replace(["kick.wav", "kick.wav", "snare.wav", "broken.wav"] + [None] * 12)

	assert await registry.prewarm() == 2
	assert resolver.fetches.count("kick.wav") == 1


def test_replace_requires_sixteen_entries (resolver: conftest.FakeResolver) -> None:

	_, registry, _, _ = _components(resolver)

	with pytest.raises(ValueError):
		registry.replace(["kick.wav"])


@pytest.mark.asyncio
async def test_player_fires_immediately_when_cached (resolver: conftest.FakeResolver) -> None:

	cache, registry, playback, player = _components(resolver)
	registry.assign(0, "kick.wav")
	await registry.prewarm()

	assert player.play(0, 127) is True
	assert playback.played[0][0] is cache.peek("kick.wav")


@pytest.mark.asyncio
async def test_player_fires_late_when_loading (resolver: conftest.FakeResolver) -> None:

	"""A hit on a sound still loading plays once the buffer arrives."""

	_, registry, playback, player = _components(resolver)
	registry.assign(0, "snare.wav")

	assert player.play(0, 64) is False
	assert playback.played == []

	await conftest.settle()

	assert len(playback.played) == 1
	assert playback.played[0][1] == pytest.approx(64 / 127)


@pytest.mark.asyncio
async def test_player_is_silent_for_broken_or_unassigned (resolver: conftest.FakeResolver) -> None:

	_, registry, playback, player = _components(resolver)
	registry.assign(1, "broken.wav")

	assert player.play(0, 100) is False
	assert player.play(1, 100) is False

	await conftest.settle()

	assert playback.played == []
