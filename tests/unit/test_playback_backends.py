"""Unit tests for the sounddevice playback backend."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest
from pydub import AudioSegment

from kiddo.playback.backends import SoundDeviceBackend, SoundDeviceResource

pytestmark = pytest.mark.anyio


@pytest.fixture
def sd():
    fake = MagicMock()
    with patch.dict("sys.modules", {"sounddevice": fake}):
        yield fake


class TestSoundDeviceResource:
    """Test play, pause and finish bookkeeping."""

    async def test_play_to_end_fires_finished(self, sd):
        finished = asyncio.Event()
        segment = AudioSegment.silent(duration=50, frame_rate=8000)
        resource = SoundDeviceResource("a.mp3", segment, finished.set)

        await resource.play()
        await asyncio.wait_for(finished.wait(), timeout=1.0)

        samples, frame_rate = sd.play.call_args.args
        assert frame_rate == 8000
        assert samples.shape == (400, 1)
        assert resource._position_ms == 0

    async def test_pause_keeps_position_and_cancels_finish(self, sd):
        finished = MagicMock()
        segment = AudioSegment.silent(duration=1000, frame_rate=8000)
        resource = SoundDeviceResource("a.mp3", segment, finished)

        await resource.play()
        await asyncio.sleep(0.05)
        await resource.pause()

        sd.stop.assert_called_once()
        assert 0 < resource._position_ms < 1000
        await asyncio.sleep(0)
        finished.assert_not_called()

    async def test_play_after_unload_fails(self, sd):
        resource = SoundDeviceResource("a.mp3", AudioSegment.silent(duration=50), MagicMock())
        await resource.unload()

        with pytest.raises(RuntimeError):
            await resource.play()


class TestSoundDeviceBackend:
    """Test reading narration before decoding."""

    async def test_reads_local_file(self, tmp_path):
        path = tmp_path / "audio_1.mp3"
        path.write_bytes(b"ID3 data")

        assert await SoundDeviceBackend()._read(str(path)) == b"ID3 data"
        assert await SoundDeviceBackend()._read(f"file://{path}") == b"ID3 data"

    async def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await SoundDeviceBackend()._read(str(tmp_path / "missing.mp3"))
