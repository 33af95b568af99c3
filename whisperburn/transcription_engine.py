"""Orchestrates the transcription pipeline: load model, decode audio, run inference, collect segments."""

import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

from .audio_extractor import AudioExtractor
from .model_context import ModelContext
from .subtitle_formatter import SubtitleFormatter, SRTFormatter
from .models import (
    LanguageHint, RunParameters, Segment, TranscriptionResult, NO_AUDIO_MESSAGE, thread_count,
)
from .exceptions import InferenceError
from .transcriber import EngineContext

logger = logging.getLogger(__name__)


class TranscriptionEngine:
    """
    Turns a media file into timestamped segments using a shared ModelContext.

    ``transcribe`` blocks for the whole run. The inference call cannot be
    interrupted, so callers that must stay responsive use ``submit`` and
    drop the returned future if they lose interest.
    """

    def __init__(
        self,
        context: ModelContext,
        extractor: AudioExtractor,
        formatter: Optional[SubtitleFormatter] = None,
        no_speech_threshold: float = 0.6,
        cpu_count: Optional[int] = None,
        max_workers: int = 1,
    ):
        """
        Args:
            context: The model context shared by every transcription.
            extractor: Decodes media files into the engine's sample format.
            formatter: Renders segments as subtitle text (SRT by default).
            no_speech_threshold: Silence threshold passed to the engine; lower
                values suppress silence more aggressively.
            cpu_count: Core count used for the thread formula; defaults to os.cpu_count().
            max_workers: Background workers used by ``submit``.
        """
        self.context = context
        self.extractor = extractor
        self.formatter = formatter or SRTFormatter()
        self.no_speech_threshold = no_speech_threshold
        self.cpu_count = cpu_count if cpu_count is not None else os.cpu_count()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="transcribe")

    def run_parameters(self, language: LanguageHint) -> RunParameters:
        return RunParameters(
            n_threads=thread_count(self.cpu_count),
            language=language,
            no_speech_threshold=self.no_speech_threshold,
        )

    def transcribe(self, media_path: str, model_name: str,
                   language: Optional[LanguageHint] = None) -> TranscriptionResult:
        """
        Executes load -> extract -> infer for one media file.

        Args:
            media_path: Audio or video file to transcribe.
            model_name: Model to use, e.g. "base".
            language: Language hint; auto-detection when omitted.

        Returns:
            The ordered segments, or a result flagged ``no_audio_data`` when the
            audio track has no samples.

        Raises:
            FileNotFoundError: If the media file does not exist.
            ModelNotFoundError, ContextInitializationError: From loading the model.
            NoAudioTrackError, AudioReadingError: From decoding the audio.
            InferenceError: If the engine reports a failure.
        """
        language = language or LanguageHint.auto()
        if not os.path.exists(media_path):
            raise FileNotFoundError(f"Input media file not found: {media_path}")

        start_time = time.time()
        logger.info(f"--- Starting transcription of {media_path} with model '{model_name}' (language: {language}) ---")

        with self.context.session(model_name) as handle:
            samples = self.extractor.extract(media_path)
            if len(samples) == 0:
                logger.warning(f"No audio data derived from {media_path}; skipping inference.")
                return TranscriptionResult.no_audio(media_path, model_name)

            params = self.run_parameters(language)
            self._run_inference(handle, samples, params)
            segments = self._collect_segments(handle)
            detected = handle.detected_language()

        logger.info(f"--- Transcription finished: {len(segments)} segments in {time.time() - start_time:.2f} seconds ---")
        return TranscriptionResult(
            language=language.code or detected,
            segments=segments,
            media_path=media_path,
            model_name=model_name,
        )

    def transcribe_to_srt(self, media_path: str, model_name: str,
                          language: Optional[LanguageHint] = None) -> str:
        """Like ``transcribe`` but returns subtitle text (or the no-audio message)."""
        result = self.transcribe(media_path, model_name, language)
        if result.no_audio_data:
            return NO_AUDIO_MESSAGE
        return self.formatter.format(result.segments)

    def submit(self, media_path: str, model_name: str,
               language: Optional[LanguageHint] = None) -> "Future[TranscriptionResult]":
        """Runs ``transcribe`` on a background worker."""
        return self._executor.submit(self.transcribe, media_path, model_name, language)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    @staticmethod
    def _run_inference(handle: EngineContext, samples, params: RunParameters) -> None:
        try:
            code = handle.full(samples, params)
        except Exception as e:
            logger.error(f"Inference engine raised: {e}", exc_info=True)
            raise InferenceError(-1, str(e)) from e
        if code != 0:
            logger.error(f"Inference engine returned code {code}")
            raise InferenceError(code)

    @staticmethod
    def _collect_segments(handle: EngineContext) -> List[Segment]:
        segments = []
        for i in range(handle.n_segments()):
            t0 = handle.segment_t0(i)
            t1 = handle.segment_t1(i)
            segments.append(Segment(start=t0, end=max(t0, t1), text=handle.segment_text(i).strip()))
        return segments
