"""
Shared fakes for the external collaborators: media decoder, inference engine and transcoder.
"""

import os
import stat
import sys
from contextlib import contextmanager

import pytest

from whisperburn.audio_extractor import MediaDecoder, PcmStream
from whisperburn.burner import TranscodeResult, Transcoder
from whisperburn.exceptions import AudioReadingError
from whisperburn.model_context import ModelStore
from whisperburn.transcriber import EngineBackend, EngineContext


class FakePcmStream(PcmStream):
    def __init__(self, blocks, fail_after=None):
        self.blocks = list(blocks)
        self.fail_after = fail_after
        self.closed = False
        self.aborted = False

    def __iter__(self):
        for i, block in enumerate(self.blocks):
            if self.fail_after is not None and i == self.fail_after:
                raise AudioReadingError("decoder died mid-stream")
            yield block

    def close(self):
        self.closed = True

    def abort(self):
        self.aborted = True


class FakeDecoder(MediaDecoder):
    def __init__(self, blocks=(), tracks=None, fail_after=None):
        self.tracks = [{"codec_type": "audio", "index": 0}] if tracks is None else tracks
        self.stream = FakePcmStream(blocks, fail_after)
        self.opened = []

    def audio_tracks(self, media_path):
        return list(self.tracks)

    def open_pcm(self, media_path, track_index, sample_rate, channels):
        self.opened.append((media_path, track_index, sample_rate, channels))
        return self.stream


class FakeEngineContext(EngineContext):
    def __init__(self, path, events, segments=(), code=0, language=None, error=None):
        self.path = path
        self.events = events
        self.segments = list(segments)
        self.code = code
        self.language = language
        self.error = error
        self.runs = []
        self.freed = False

    def full(self, samples, params):
        self.events.append(("full", self.path))
        self.runs.append((samples, params))
        if self.error is not None:
            raise self.error
        return self.code

    def n_segments(self):
        return len(self.segments)

    def segment_text(self, index):
        return self.segments[index][2]

    def segment_t0(self, index):
        return self.segments[index][0]

    def segment_t1(self, index):
        return self.segments[index][1]

    def detected_language(self):
        return self.language

    def free(self):
        self.freed = True
        self.events.append(("free", self.path))


class FakeBackend(EngineBackend):
    """Hands out FakeEngineContexts and records init/free ordering in ``events``."""

    def __init__(self, segments=(), code=0, language=None, error=None):
        self.events = []
        self.contexts = []
        self.segments = segments
        self.code = code
        self.language = language
        self.error = error
        self.init_result = "context"  # "context", "none" or an exception instance

    def init_from_file(self, model_path):
        self.events.append(("init", model_path))
        if isinstance(self.init_result, Exception):
            raise self.init_result
        if self.init_result == "none":
            return None
        context = FakeEngineContext(model_path, self.events, self.segments,
                                    self.code, self.language, self.error)
        self.contexts.append(context)
        return context

    @property
    def init_count(self):
        return sum(1 for kind, _ in self.events if kind == "init")


class FakeTranscoder(Transcoder):
    """Pretends to be ffmpeg: optionally writes the output file the stream points at."""

    def __init__(self, return_code=0, logs="", write_output=True, error=None, events=None):
        self.return_code = return_code
        self.logs = logs
        self.write_output = write_output
        self.error = error
        self.events = events if events is not None else []
        self.calls = []

    def execute(self, stream):
        args = stream.get_args()
        self.calls.append(args)
        self.events.append(("execute", None))
        if self.error is not None:
            raise self.error
        if self.write_output and self.return_code == 0:
            output = [a for a in args if a.endswith("output.mp4")][0]
            with open(output, "wb") as f:
                f.write(b"burned")
        return TranscodeResult(self.return_code, self.logs)


@pytest.fixture
def models_dir(tmp_path):
    path = tmp_path / "models"
    path.mkdir()
    for name in ("tiny", "base"):
        (path / f"{name}.pt").write_bytes(b"weights")
    return path


@pytest.fixture
def store(models_dir):
    return ModelStore(str(models_dir))


@pytest.fixture
def media_file(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"not really a video")
    return str(path)


@pytest.fixture
def recording_access():
    """Scoped access policy that logs enter/exit per path."""
    events = []

    @contextmanager
    def access(path):
        events.append(("enter", os.path.basename(path)))
        try:
            yield path
        finally:
            events.append(("exit", os.path.basename(path)))

    access.events = events
    return access


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Writes an executable shell script standing in for the ffmpeg binary."""
    if sys.platform == "win32":
        pytest.skip("fake ffmpeg executables are shell scripts")

    def write(body, name="ffmpeg"):
        path = tmp_path / "bin" / name
        path.parent.mkdir(exist_ok=True)
        path.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return write
