"""Decodes the audio track of a media file into 16 kHz mono float samples."""

import collections
import ffmpeg
import os
import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterator, List, Optional

import numpy as np

from .exceptions import AudioReadingError, NoAudioTrackError
from .models import SAMPLE_RATE, CHANNELS

logger = logging.getLogger(__name__)

# Bytes per signed 16-bit sample
SAMPLE_WIDTH = 2
INT16_SCALE = 32768.0
DEFAULT_BLOCK_SIZE = 64 * 1024
STDERR_BLOCK_SIZE = 4096
# Only the end of ffmpeg's error output is kept for error messages
STDERR_TAIL_BLOCKS = 16


class PcmStream(ABC):
    """Raw little-endian signed 16-bit PCM, delivered in blocks of arbitrary length."""

    @abstractmethod
    def __iter__(self) -> Iterator[bytes]:
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Waits for the decoder to finish.

        Raises:
            AudioReadingError: If the decoder reported an error.
        """
        pass

    @abstractmethod
    def abort(self) -> None:
        """Stops the decoder without checking its status."""
        pass


class MediaDecoder(ABC):
    """Demuxing/decoding collaborator used by AudioExtractor."""

    @abstractmethod
    def audio_tracks(self, media_path: str) -> List[dict]:
        """
        Lists the audio tracks of a media container, in container order.

        Raises:
            AudioReadingError: If the container cannot be opened.
        """
        pass

    @abstractmethod
    def open_pcm(self, media_path: str, track_index: int, sample_rate: int, channels: int) -> PcmStream:
        """Starts decoding one audio track to s16le PCM at the requested rate/layout."""
        pass


class _FFmpegPcmStream(PcmStream):
    """
    Reads PCM from a running ffmpeg process.

    stderr is drained on its own thread so ffmpeg never stalls on a full
    stderr pipe while stdout is being read.
    """

    def __init__(self, process, block_size: int):
        self._process = process
        self._block_size = block_size
        self._stderr_tail = collections.deque(maxlen=STDERR_TAIL_BLOCKS)
        self._stderr_reader = threading.Thread(target=self._drain_stderr, name="ffmpeg-stderr", daemon=True)
        self._stderr_reader.start()

    def _drain_stderr(self) -> None:
        if self._process.stderr is None:
            return
        for chunk in iter(lambda: self._process.stderr.read(STDERR_BLOCK_SIZE), b""):
            self._stderr_tail.append(chunk)

    def __iter__(self) -> Iterator[bytes]:
        while True:
            block = self._process.stdout.read(self._block_size)
            if not block:
                return
            yield block

    def close(self) -> None:
        return_code = self._process.wait()
        self._finish()
        if return_code != 0:
            message = b"".join(self._stderr_tail).decode('utf-8', errors='replace').strip() or "No stderr output"
            logger.error(f"ffmpeg exited with code {return_code} while decoding audio: {message}")
            raise AudioReadingError(f"Could not decode audio file (ffmpeg exit code {return_code}): {message}")

    def abort(self) -> None:
        if self._process.poll() is None:
            self._process.kill()
        self._process.wait()
        self._finish()

    def _finish(self) -> None:
        self._stderr_reader.join()
        for pipe in (self._process.stdout, self._process.stderr):
            if pipe is not None:
                pipe.close()


class FFmpegDecoder(MediaDecoder):
    """MediaDecoder built on ffmpeg/ffprobe via ffmpeg-python."""

    def __init__(self, ffmpeg_path: Optional[str] = None, ffprobe_path: Optional[str] = None,
                 block_size: int = DEFAULT_BLOCK_SIZE):
        """
        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
            ffprobe_path: Optional path to ffprobe; defaults to the one next to ffmpeg_path.
            block_size: Number of bytes requested per read from the decoder.
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        if ffprobe_path:
            self.ffprobe_cmd = ffprobe_path
        elif ffmpeg_path:
            self.ffprobe_cmd = os.path.join(os.path.dirname(ffmpeg_path), 'ffprobe')
        else:
            self.ffprobe_cmd = 'ffprobe'
        self.block_size = block_size
        logger.debug(f"Using ffmpeg command: {self.ffmpeg_cmd}, ffprobe command: {self.ffprobe_cmd}")

    def audio_tracks(self, media_path: str) -> List[dict]:
        try:
            info = ffmpeg.probe(media_path, cmd=self.ffprobe_cmd)
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffprobe failed for {media_path}: {stderr_output}")
            raise AudioReadingError(f"Could not open media file {media_path}: {stderr_output}") from e
        return [s for s in info.get('streams', []) if s.get('codec_type') == 'audio']

    def open_pcm(self, media_path: str, track_index: int, sample_rate: int, channels: int) -> PcmStream:
        try:
            process = (
                ffmpeg
                .input(media_path)[f'a:{track_index}']
                .output('pipe:', format='s16le', acodec='pcm_s16le', ac=channels, ar=sample_rate)
                .global_args('-nostdin', '-loglevel', 'error')
                .run_async(cmd=self.ffmpeg_cmd, pipe_stdout=True, pipe_stderr=True)
            )
        except OSError as e:
            raise AudioReadingError(f"Could not start ffmpeg ({self.ffmpeg_cmd}): {e}") from e
        return _FFmpegPcmStream(process, self.block_size)


class AudioExtractor:
    """Produces the float sample buffer consumed by the inference engine."""

    def __init__(self, decoder: Optional[MediaDecoder] = None,
                 sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS):
        self.decoder = decoder or FFmpegDecoder()
        self.sample_rate = sample_rate
        self.channels = channels

    def extract(self, media_path: str) -> np.ndarray:
        """
        Decodes the first audio track of a media file.

        Resampling and down-mixing are left to the decoder, which is asked for
        16-bit mono PCM at ``sample_rate``. Blocks are consumed as they arrive
        and each sample is scaled by 1/32768.

        Args:
            media_path: Path to an audio or video file.

        Returns:
            A float32 array in [-1.0, 1.0). Empty when the track has no frames.

        Raises:
            FileNotFoundError: If the media file does not exist.
            NoAudioTrackError: If the container has no audio track.
            AudioReadingError: If decoding fails; partial output is discarded.
        """
        if not os.path.exists(media_path):
            raise FileNotFoundError(f"Input media file not found: {media_path}")

        tracks = self.decoder.audio_tracks(media_path)
        if not tracks:
            raise NoAudioTrackError(f"No audio track found in {media_path}.")
        logger.info(f"Decoding audio track 0 of {len(tracks)} from {media_path} "
                    f"({self.sample_rate} Hz, {self.channels} ch)")

        stream = self.decoder.open_pcm(media_path, 0, self.sample_rate, self.channels)
        blocks = []
        carry = b""
        try:
            for block in stream:
                if carry:
                    block = carry + block
                usable = len(block) - (len(block) % SAMPLE_WIDTH)
                carry = block[usable:]
                if usable:
                    blocks.append(np.frombuffer(block[:usable], dtype='<i2'))
        except AudioReadingError:
            stream.abort()
            raise
        except OSError as e:
            stream.abort()
            raise AudioReadingError(f"Reading decoded audio from {media_path} failed: {e}") from e
        stream.close()

        if carry:
            logger.warning(f"Dropping {len(carry)} trailing byte(s) that do not form a full sample.")
        if not blocks:
            logger.warning(f"Audio track of {media_path} contained no samples.")
            return np.zeros(0, dtype=np.float32)

        samples = np.concatenate(blocks).astype(np.float32) / INT16_SCALE
        logger.info(f"Decoded {len(samples)} samples ({len(samples) / self.sample_rate:.2f}s)")
        return samples
