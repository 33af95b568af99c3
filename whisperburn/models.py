"""Data models for WhisperBurn."""

import enum
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

# Times are kept in the engine's native unit: hundredths of a second.
CENTISECONDS_PER_SECOND = 100

SAMPLE_RATE = 16000
CHANNELS = 1

MAX_THREADS = 8
MIN_THREADS = 2

NO_AUDIO_MESSAGE = "Error: No audio data derived."


@dataclass
class Segment:
    """Represents a single timed chunk of text (times in hundredths of a second)."""
    start: int
    end: int
    text: str

    def __post_init__(self):
        if self.start < 0 or self.end < 0:
            raise ValueError(f"Segment times must be non-negative: {self.start} -> {self.end}")
        if self.start > self.end:
            raise ValueError(f"Segment start {self.start} is after end {self.end}")

    @property
    def start_seconds(self) -> float:
        return self.start / CENTISECONDS_PER_SECOND

    @property
    def end_seconds(self) -> float:
        return self.end / CENTISECONDS_PER_SECOND


@dataclass(frozen=True)
class LanguageHint:
    """Either auto-detection (code is None) or an explicit language code."""
    code: Optional[str] = None

    @classmethod
    def auto(cls) -> "LanguageHint":
        return cls(None)

    @classmethod
    def explicit(cls, code: str) -> "LanguageHint":
        if not code or not code.strip():
            raise ValueError("An explicit language hint needs a language code.")
        return cls(code.strip().lower())

    @classmethod
    def parse(cls, value: Optional[str]) -> "LanguageHint":
        """Maps None, '' and 'auto' to auto-detection, anything else to a code."""
        if value is None or not value.strip() or value.strip().lower() == "auto":
            return cls.auto()
        return cls.explicit(value)

    @property
    def is_auto(self) -> bool:
        return self.code is None

    def __str__(self):
        return self.code or "auto"


def thread_count(cpu_count: Optional[int]) -> int:
    """Inference threads: leave one core for the host, stay within [2, 8]."""
    cores = cpu_count or 1
    return max(MIN_THREADS, min(cores - 1, MAX_THREADS))


@dataclass(frozen=True)
class RunParameters:
    """Parameters for a single inference run. Immutable per run."""
    n_threads: int
    language: LanguageHint = field(default_factory=LanguageHint.auto)
    no_speech_threshold: float = 0.6
    strategy: str = "greedy"
    translate: bool = False


@dataclass
class TranscriptionResult:
    """Holds the structured output from the ASR process."""
    language: Optional[str]
    segments: List[Segment] = field(default_factory=list)
    media_path: Optional[str] = None
    model_name: Optional[str] = None
    no_audio_data: bool = False

    @classmethod
    def no_audio(cls, media_path: str, model_name: Optional[str] = None) -> "TranscriptionResult":
        return cls(language=None, media_path=media_path, model_name=model_name, no_audio_data=True)


class BurnStatus(enum.Enum):
    PENDING = "pending"
    STAGING = "staging"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BurnStatus.SUCCEEDED, BurnStatus.FAILED)


@dataclass
class BurnJob:
    """One request to burn a subtitle file into a video."""
    video_path: str
    subtitle_path: str
    style: "SubtitleStyle"  # noqa: F821 - defined in style_translator
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    temp_dir: Optional[str] = None
    output_path: Optional[str] = None
    status: BurnStatus = BurnStatus.PENDING
    message: str = "Ready to burn."
    error: Optional[Exception] = None
