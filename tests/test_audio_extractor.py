"""
Tests for the audio extractor, using a fake decoder or a stand-in ffmpeg executable.
"""

import threading

import numpy as np
import pytest

from whisperburn.audio_extractor import AudioExtractor, FFmpegDecoder
from whisperburn.exceptions import AudioReadingError, NoAudioTrackError

from conftest import FakeDecoder


def pcm(*values):
    return np.array(values, dtype='<i2').tobytes()


class TestExtract:

    def test_scaling(self, media_file):
        extractor = AudioExtractor(FakeDecoder([pcm(0, 16384, -32768, 32767)]))
        samples = extractor.extract(media_file)
        assert samples.dtype == np.float32
        np.testing.assert_allclose(samples, [0.0, 0.5, -1.0, 32767 / 32768.0])

    def test_requests_mono_16k_first_track(self, media_file):
        decoder = FakeDecoder([pcm(1)])
        AudioExtractor(decoder).extract(media_file)
        assert decoder.opened == [(media_file, 0, 16000, 1)]

    def test_blocks_split_mid_sample(self, media_file):
        data = pcm(100, -200, 300, -400)
        whole = AudioExtractor(FakeDecoder([data])).extract(media_file)
        split = AudioExtractor(FakeDecoder([data[:3], data[3:5], data[5:]])).extract(media_file)
        np.testing.assert_array_equal(whole, split)
        assert len(split) == 4

    def test_trailing_odd_byte_dropped(self, media_file):
        samples = AudioExtractor(FakeDecoder([pcm(8, 16) + b"\x01"])).extract(media_file)
        assert len(samples) == 2

    def test_zero_frames_returns_empty_buffer(self, media_file):
        decoder = FakeDecoder([])
        samples = AudioExtractor(decoder).extract(media_file)
        assert len(samples) == 0
        assert decoder.stream.closed

    def test_no_audio_track(self, media_file):
        with pytest.raises(NoAudioTrackError):
            AudioExtractor(FakeDecoder([pcm(1)], tracks=[])).extract(media_file)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AudioExtractor(FakeDecoder([pcm(1)])).extract(str(tmp_path / "missing.mp4"))

    def test_mid_stream_failure_discards_output(self, media_file):
        decoder = FakeDecoder([pcm(1, 2), pcm(3, 4), pcm(5, 6)], fail_after=1)
        with pytest.raises(AudioReadingError):
            AudioExtractor(decoder).extract(media_file)
        assert decoder.stream.aborted
        assert not decoder.stream.closed


FLOOD_STDERR = "head -c 262144 /dev/zero | tr '\\000' 'e' >&2"


def drain(stream):
    received = bytearray()
    for block in stream:
        received.extend(block)
    stream.close()
    return bytes(received)


def run_with_deadline(func, seconds=10):
    """Runs func on a thread; returns (finished, result, error)."""
    outcome = {}

    def target():
        try:
            outcome["result"] = func()
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=target, daemon=True)
    worker.start()
    worker.join(timeout=seconds)
    return not worker.is_alive(), outcome.get("result"), outcome.get("error")


class TestFFmpegDecoder:
    """Runs FFmpegDecoder against a stand-in ffmpeg executable."""

    def test_noisy_stderr_does_not_block_stdout(self, fake_ffmpeg, media_file):
        ffmpeg_path = fake_ffmpeg(f"{FLOOD_STDERR}\nhead -c 32000 /dev/zero\nexit 0")
        decoder = FFmpegDecoder(ffmpeg_path=ffmpeg_path)
        stream = decoder.open_pcm(media_file, 0, 16000, 1)

        finished, received, error = run_with_deadline(lambda: drain(stream))

        assert finished, "decoder stalled while ffmpeg was writing to stderr"
        assert error is None
        assert len(received) == 32000

    def test_failure_after_noisy_stderr(self, fake_ffmpeg, media_file):
        ffmpeg_path = fake_ffmpeg(f"{FLOOD_STDERR}\necho 'Invalid data found' >&2\nexit 1")
        stream = FFmpegDecoder(ffmpeg_path=ffmpeg_path).open_pcm(media_file, 0, 16000, 1)

        finished, _, error = run_with_deadline(lambda: drain(stream))

        assert finished
        assert isinstance(error, AudioReadingError)
        assert "Invalid data found" in str(error)

    def test_abort_stops_running_decoder(self, fake_ffmpeg, media_file):
        ffmpeg_path = fake_ffmpeg("exec sleep 30")
        stream = FFmpegDecoder(ffmpeg_path=ffmpeg_path).open_pcm(media_file, 0, 16000, 1)

        finished, _, error = run_with_deadline(stream.abort)

        assert finished
        assert error is None

    def test_missing_executable(self, tmp_path, media_file):
        decoder = FFmpegDecoder(ffmpeg_path=str(tmp_path / "no-such-ffmpeg"))
        with pytest.raises(AudioReadingError):
            decoder.open_pcm(media_file, 0, 16000, 1)
