"""
Tests for the command-line handler.
"""

import logging
from concurrent.futures import Future

import pytest

from whisperburn import cli


class StalledOrchestrator:
    """Accepts a burn job and never finishes it."""

    def __init__(self):
        self.shutdown_calls = []

    def burn(self, video_path, subtitle_path, style):
        return Future()

    def shutdown(self, wait=True):
        self.shutdown_calls.append(wait)


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "video.mp4").write_bytes(b"video")
    (tmp_path / "subs.srt").write_text("1\n00:00:00,000 --> 00:00:01,000\nhi\n\n", encoding="utf-8")
    yield tmp_path
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


class TestBurnCommand:

    def test_timeout_exits_with_error(self, workdir, monkeypatch, capsys):
        orchestrator = StalledOrchestrator()
        monkeypatch.setattr(cli, "build_burn_orchestrator", lambda config, output_dir=None: orchestrator)

        with pytest.raises(SystemExit) as excinfo:
            cli.CLIHandler().run(["-c", "absent.yaml", "burn", "video.mp4", "subs.srt", "--timeout", "0.05"])

        assert excinfo.value.code == 1
        assert orchestrator.shutdown_calls == [False]
        output = capsys.readouterr().out
        assert "Stopped waiting" in output
        assert "unexpected" not in output.lower()

    def test_invalid_subtitles_exit_with_error(self, workdir):
        (workdir / "subs.srt").write_text("", encoding="utf-8")
        with pytest.raises(SystemExit) as excinfo:
            cli.CLIHandler().run(["-c", "absent.yaml", "burn", "video.mp4", "subs.srt"])
        assert excinfo.value.code == 1
