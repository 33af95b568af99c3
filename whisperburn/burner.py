"""Burns an external subtitle file into a video with ffmpeg."""

import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Callable, ContextManager, List, Optional

import ffmpeg

from .exceptions import WhisperBurnError, BurnError, FileSetupError, FileSystemError
from .models import BurnJob, BurnStatus
from .style_translator import SubtitleStyle, subtitles_filter
from .utils import ensure_dir_exists, reserve_unique_path

logger = logging.getLogger(__name__)

# Staged file names are free of characters that need filter escaping.
STAGED_VIDEO_STEM = "input"
DEFAULT_VIDEO_EXTENSION = ".mp4"
STAGED_SUBTITLE_NAME = "subs.srt"
STAGED_OUTPUT_NAME = "output.mp4"
OUTPUT_STEM = "burned_output"
OUTPUT_EXTENSION = ".mp4"

StatusCallback = Callable[[BurnJob], None]
ScopedAccess = Callable[[str], ContextManager]


@dataclass
class TranscodeResult:
    return_code: int
    logs: str = ""

    @property
    def success(self) -> bool:
        return self.return_code == 0


class Transcoder(ABC):
    """Runs one transcoding invocation to completion."""

    @abstractmethod
    def execute(self, stream) -> TranscodeResult:
        """Runs a compiled ffmpeg-python output stream."""
        pass


class FFmpegTranscoder(Transcoder):
    """Runs the ffmpeg executable through ffmpeg-python."""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'

    def execute(self, stream) -> TranscodeResult:
        logger.info(f"FFmpeg Cmd: {' '.join(stream.compile(cmd=self.ffmpeg_cmd))}")
        try:
            # run_async + communicate is what ffmpeg-python's run() does, minus
            # dropping the exit status on failure.
            process = stream.run_async(cmd=self.ffmpeg_cmd, pipe_stdout=True, pipe_stderr=True)
            _, stderr = process.communicate()
        except OSError as e:
            logger.error(f"Could not start {self.ffmpeg_cmd}: {e}")
            return TranscodeResult(-1, f"Could not start {self.ffmpeg_cmd}: {e}")
        logs = stderr.decode('utf-8', errors='replace') if stderr else ""
        return TranscodeResult(process.returncode, logs)


def staged_video_name(video_path: str) -> str:
    """'input' plus the source's extension, so ffmpeg still sees the container type."""
    extension = os.path.splitext(video_path)[1] or DEFAULT_VIDEO_EXTENSION
    return STAGED_VIDEO_STEM + extension


def no_scoped_access(path: str) -> ContextManager:
    """Default access policy: plain files need no grant."""
    return nullcontext(path)


class BurnOrchestrator:
    """
    Runs burn jobs on a background worker.

    Each job copies its inputs into a private temporary directory, runs the
    transcoder there, moves the result to ``output_dir`` and removes the
    temporary directory whatever the outcome. All changes to a job happen on
    the worker thread that runs it.
    """

    def __init__(
        self,
        output_dir: str,
        transcoder: Optional[Transcoder] = None,
        video_encoder: str = "h264_videotoolbox",
        video_bitrate: str = "5M",
        temp_root: Optional[str] = None,
        access: Optional[ScopedAccess] = None,
        max_workers: int = 1,
    ):
        """
        Args:
            output_dir: Where finished videos are placed.
            transcoder: Executes ffmpeg invocations; FFmpegTranscoder by default.
            video_encoder: ffmpeg video encoder, normally a hardware one.
            video_bitrate: Target video bitrate, e.g. "5M".
            temp_root: Parent for per-job working directories (system temp by default).
            access: Returns a context manager granting read access to a user file.
                Entered right before that file is copied and left right after.
            max_workers: Number of jobs that may run at the same time.
        """
        self.output_dir = output_dir
        self.transcoder = transcoder or FFmpegTranscoder()
        self.video_encoder = video_encoder
        self.video_bitrate = video_bitrate
        self.temp_root = temp_root
        self.access = access or no_scoped_access
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="burn")

    def build_stream(self, video_path: str, subtitle_path: str, output_path: str, style: SubtitleStyle):
        """ffmpeg-python stream: input, subtitle filter, encoder, audio copy, output, overwrite."""
        return (
            ffmpeg
            .input(video_path)
            .output(
                output_path,
                vf=subtitles_filter(subtitle_path, style),
                **{'c:v': self.video_encoder, 'b:v': self.video_bitrate, 'c:a': 'copy'}
            )
            .overwrite_output()
        )

    def build_command(self, video_path: str, subtitle_path: str, output_path: str,
                      style: SubtitleStyle) -> List[str]:
        """The ffmpeg arguments ``build_stream`` compiles to."""
        return self.build_stream(video_path, subtitle_path, output_path, style).get_args()

    def burn(self, video_path: str, subtitle_path: str, style: SubtitleStyle,
             on_status: Optional[StatusCallback] = None) -> "Future[BurnJob]":
        """
        Starts a burn job without blocking the caller.

        Returns:
            A future resolving to the finished BurnJob. On failure the future
            raises the job's error (FileSetupError, BurnError, ...), which is
            also kept on ``job.error``.
        """
        job = BurnJob(video_path=video_path, subtitle_path=subtitle_path, style=style)
        logger.info(f"[{job.job_id}] Queued burn of {subtitle_path} into {video_path}")
        return self._executor.submit(self._run, job, on_status)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _run(self, job: BurnJob, on_status: Optional[StatusCallback]) -> BurnJob:
        try:
            self._stage(job, on_status)
            self._transcode(job, on_status)
        except WhisperBurnError as e:
            job.error = e
        except Exception as e:
            logger.critical(f"[{job.job_id}] Unexpected error during burn: {e}", exc_info=True)
            job.error = BurnError(f"Unexpected error: {e}")
            job.error.__cause__ = e
        finally:
            self._cleanup(job)

        if job.error is not None:
            self._set_status(job, BurnStatus.FAILED, f"Failed. {job.error.description}", on_status)
            raise job.error
        self._set_status(job, BurnStatus.SUCCEEDED, f"Success! Saved to {job.output_path}", on_status)
        return job

    def _stage(self, job: BurnJob, on_status: Optional[StatusCallback]) -> None:
        self._set_status(job, BurnStatus.STAGING, "Preparing files...", on_status)
        try:
            job.temp_dir = tempfile.mkdtemp(prefix="whisperburn_", dir=self.temp_root)
        except OSError as e:
            raise FileSetupError(f"File setup failed: could not create working directory: {e}") from e
        logger.debug(f"[{job.job_id}] Working directory: {job.temp_dir}")

        self._copy_input(job.video_path, os.path.join(job.temp_dir, staged_video_name(job.video_path)))
        self._copy_input(job.subtitle_path, os.path.join(job.temp_dir, STAGED_SUBTITLE_NAME))

    def _copy_input(self, source: str, destination: str) -> None:
        try:
            with self.access(source):
                shutil.copyfile(source, destination)
        except OSError as e:
            logger.error(f"Could not copy {source} to {destination}: {e}")
            raise FileSetupError(f"File setup failed: could not copy {source}: {e}") from e

    def _transcode(self, job: BurnJob, on_status: Optional[StatusCallback]) -> None:
        staged_output = os.path.join(job.temp_dir, STAGED_OUTPUT_NAME)
        stream = self.build_stream(
            os.path.join(job.temp_dir, staged_video_name(job.video_path)),
            os.path.join(job.temp_dir, STAGED_SUBTITLE_NAME),
            staged_output,
            job.style,
        )
        self._set_status(job, BurnStatus.RUNNING, "Starting FFmpeg...", on_status)
        result = self.transcoder.execute(stream)

        if not result.success:
            logger.error(f"[{job.job_id}] ffmpeg failed with code {result.return_code}")
            raise BurnError(result.logs, result.return_code)
        if not os.path.isfile(staged_output):
            raise BurnError("Transcoder reported success but wrote no output file.", result.return_code)

        ensure_dir_exists(self.output_dir)
        try:
            final_path = reserve_unique_path(self.output_dir, OUTPUT_STEM, OUTPUT_EXTENSION)
        except OSError as e:
            raise FileSystemError(f"Could not create output file in {self.output_dir}: {e}") from e
        try:
            # Replaces the empty placeholder reserved above
            shutil.move(staged_output, final_path)
        except OSError as e:
            self._discard(final_path)
            raise FileSystemError(f"Could not move burned video to {final_path}: {e}") from e
        job.output_path = final_path

    @staticmethod
    def _discard(path: str) -> None:
        try:
            os.remove(path)
        except OSError:
            logger.warning(f"Could not remove placeholder output {path}")

    def _cleanup(self, job: BurnJob) -> None:
        if not job.temp_dir:
            return
        shutil.rmtree(job.temp_dir, ignore_errors=True)
        if os.path.exists(job.temp_dir):
            logger.warning(f"[{job.job_id}] Could not fully remove working directory {job.temp_dir}")
        else:
            logger.debug(f"[{job.job_id}] Removed working directory {job.temp_dir}")

    @staticmethod
    def _set_status(job: BurnJob, status: BurnStatus, message: str,
                    on_status: Optional[StatusCallback]) -> None:
        job.status = status
        job.message = message
        log = logger.error if status is BurnStatus.FAILED else logger.info
        log(f"[{job.job_id}] {status.value}: {message}")
        if on_status is not None:
            on_status(job)
