"""Unit tests for single-flight playback with a fake audio backend."""

import asyncio

import pytest

from kiddo.models.sessions import LoadingState
from kiddo.playback.engine import PlaybackEngine, get_playback_engine

pytestmark = pytest.mark.anyio


class FakeResource:
    def __init__(self, ref, log, on_finished, fail_play=False):
        self.ref = ref
        self.log = log
        self.on_finished = on_finished
        self.fail_play = fail_play

    async def play(self):
        if self.fail_play:
            raise RuntimeError("output device unavailable")
        self.log.append(("play", self.ref))

    async def pause(self):
        self.log.append(("pause", self.ref))

    async def unload(self):
        self.log.append(("unload", self.ref))


class FakeBackend:
    """Records every call; loads can be held open with gates or made to fail."""

    def __init__(self):
        self.log = []
        self.gates = {}
        self.failures = {}
        self.fail_play = set()
        self.resources = {}

    async def load(self, ref, on_finished):
        self.log.append(("load", ref))
        if ref in self.gates:
            await self.gates[ref].wait()
        if ref in self.failures:
            raise self.failures[ref]
        resource = FakeResource(ref, self.log, on_finished, fail_play=ref in self.fail_play)
        self.resources[ref] = resource
        return resource

    def calls(self, name):
        return [ref for call, ref in self.log if call == name]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def engine(backend):
    return PlaybackEngine(backend)


class TestPlaybackEngine:
    """Test load, toggle, release and error handling."""

    async def test_play_loads_and_plays(self, engine, backend):
        await engine.play("a.mp3")

        assert engine.state.current_audio_ref == "a.mp3"
        assert engine.state.loading_state == LoadingState.LOADED
        assert engine.state.is_playing
        assert backend.log == [("load", "a.mp3"), ("play", "a.mp3")]

    async def test_same_ref_toggles_with_single_load(self, engine, backend):
        await engine.play("a.mp3")
        await engine.play("a.mp3")

        assert not engine.state.is_playing
        assert engine.state.loading_state == LoadingState.LOADED

        await engine.play("a.mp3")

        assert engine.state.is_playing
        assert backend.calls("load") == ["a.mp3"]
        assert backend.calls("pause") == ["a.mp3"]

    async def test_other_ref_releases_previous_before_loading(self, engine, backend):
        await engine.play("a.mp3")
        await engine.play("b.mp3")

        assert backend.log.index(("unload", "a.mp3")) < backend.log.index(("load", "b.mp3"))
        assert engine.state.current_audio_ref == "b.mp3"
        assert engine.state.is_playing

    async def test_stale_load_is_released_not_committed(self, engine, backend):
        backend.gates["a.mp3"] = asyncio.Event()

        first = asyncio.create_task(engine.play("a.mp3"))
        await asyncio.sleep(0)
        assert engine.state.loading_state == LoadingState.LOADING

        second = asyncio.create_task(engine.play("b.mp3"))
        await asyncio.sleep(0)
        backend.gates["a.mp3"].set()
        await asyncio.gather(first, second)

        assert engine.state.current_audio_ref == "b.mp3"
        assert engine.state.is_playing
        assert ("play", "a.mp3") not in backend.log
        assert backend.log.index(("unload", "a.mp3")) < backend.log.index(("load", "b.mp3"))

    async def test_replay_of_superseded_ref_plays_it(self, engine, backend):
        backend.gates["a.mp3"] = asyncio.Event()

        tasks = []
        for ref in ("a.mp3", "b.mp3", "a.mp3"):
            tasks.append(asyncio.create_task(engine.play(ref)))
            await asyncio.sleep(0)
        backend.gates["a.mp3"].set()
        await asyncio.gather(*tasks)

        assert engine.state.current_audio_ref == "a.mp3"
        assert engine.state.loading_state == LoadingState.LOADED
        assert engine.state.is_playing
        assert backend.calls("load") == ["a.mp3"]
        assert backend.calls("pause") == []

    async def test_play_queued_behind_same_ref_does_not_toggle(self, engine, backend):
        backend.gates["a.mp3"] = asyncio.Event()

        first = asyncio.create_task(engine.play("a.mp3"))
        await asyncio.sleep(0)
        second = asyncio.create_task(engine.play("a.mp3"))
        await asyncio.sleep(0)
        backend.gates["a.mp3"].set()
        await asyncio.gather(first, second)

        assert engine.state.is_playing
        assert backend.calls("load") == ["a.mp3"]
        assert backend.calls("play") == ["a.mp3"]

    async def test_stop_during_load_commits_paused(self, engine, backend):
        backend.gates["a.mp3"] = asyncio.Event()

        task = asyncio.create_task(engine.play("a.mp3"))
        await asyncio.sleep(0)
        await engine.stop()
        backend.gates["a.mp3"].set()
        await task

        assert engine.state.loading_state == LoadingState.LOADED
        assert engine.state.current_audio_ref == "a.mp3"
        assert not engine.state.is_playing
        assert backend.calls("play") == []

        await engine.play("a.mp3")
        assert engine.state.is_playing
        assert backend.calls("load") == ["a.mp3"]

    async def test_load_failure_sets_error(self, engine, backend):
        backend.failures["missing.mp3"] = FileNotFoundError("missing.mp3")

        await engine.play("missing.mp3")

        assert engine.state.loading_state == LoadingState.ERROR
        assert engine.state.current_audio_ref is None
        assert not engine.state.is_playing
        assert "missing.mp3" in engine.state.error

    async def test_play_failure_unloads_and_sets_error(self, engine, backend):
        backend.fail_play.add("a.mp3")

        await engine.play("a.mp3")

        assert engine.state.loading_state == LoadingState.ERROR
        assert engine.state.error == "output device unavailable"
        assert backend.calls("unload") == ["a.mp3"]

    async def test_recovers_after_error(self, engine, backend):
        backend.failures["bad.mp3"] = RuntimeError("decode failed")
        await engine.play("bad.mp3")
        await engine.play("good.mp3")

        assert engine.state.loading_state == LoadingState.LOADED
        assert engine.state.error is None
        assert engine.state.is_playing

    async def test_finish_stops_playing_but_keeps_loaded(self, engine, backend):
        await engine.play("a.mp3")
        backend.resources["a.mp3"].on_finished()

        assert not engine.state.is_playing
        assert engine.state.loading_state == LoadingState.LOADED

        await engine.play("a.mp3")
        assert engine.state.is_playing
        assert backend.calls("load") == ["a.mp3"]

    async def test_finish_of_replaced_resource_is_ignored(self, engine, backend):
        await engine.play("a.mp3")
        await engine.play("b.mp3")

        backend.resources["a.mp3"].on_finished()

        assert engine.state.current_audio_ref == "b.mp3"
        assert engine.state.is_playing

    async def test_stop_keeps_resource(self, engine, backend):
        await engine.play("a.mp3")
        await engine.stop()

        assert not engine.state.is_playing
        assert engine.state.current_audio_ref == "a.mp3"
        assert backend.calls("unload") == []

    async def test_close_releases_resource(self, backend):
        async with PlaybackEngine(backend) as engine:
            await engine.play("a.mp3")

        assert backend.calls("unload") == ["a.mp3"]
        assert engine.state.loading_state == LoadingState.IDLE
        assert engine.state.current_audio_ref is None

    async def test_subscribers_see_state_changes(self, engine):
        seen = []
        unsubscribe = engine.subscribe(lambda state: seen.append(state.loading_state))

        await engine.play("a.mp3")
        unsubscribe()
        await engine.stop()

        assert LoadingState.LOADING in seen
        assert seen[-1] == LoadingState.LOADED

    def test_unsubscribe_twice_is_harmless(self, engine):
        unsubscribe = engine.subscribe(lambda state: None)

        unsubscribe()
        unsubscribe()

        assert engine._listeners == []


def test_get_playback_engine_is_process_wide(backend, monkeypatch):
    monkeypatch.setattr("kiddo.playback.engine._engine", None)

    first = get_playback_engine(backend)
    second = get_playback_engine()

    assert first is second
    assert first._backend is backend
