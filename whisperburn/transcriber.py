"""Speech-recognition engine contract and its Whisper implementation."""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from .models import RunParameters, CENTISECONDS_PER_SECOND

logger = logging.getLogger(__name__)


class EngineContext(ABC):
    """
    A loaded model inside the inference engine.

    Mirrors a native engine's handle: one synchronous ``full`` run, then the
    results are read back segment by segment. Times are in hundredths of a
    second.
    """

    @abstractmethod
    def full(self, samples: np.ndarray, params: RunParameters) -> int:
        """Runs inference over the samples. Returns 0 on success, an error code otherwise."""
        pass

    @abstractmethod
    def n_segments(self) -> int:
        pass

    @abstractmethod
    def segment_text(self, index: int) -> str:
        pass

    @abstractmethod
    def segment_t0(self, index: int) -> int:
        pass

    @abstractmethod
    def segment_t1(self, index: int) -> int:
        pass

    def detected_language(self) -> Optional[str]:
        return None

    @abstractmethod
    def free(self) -> None:
        """Releases the model. The handle must not be used afterwards."""
        pass


class EngineBackend(ABC):
    """Creates engine contexts from model files."""

    @abstractmethod
    def init_from_file(self, model_path: str) -> Optional[EngineContext]:
        """
        Loads a model file.

        Returns:
            A ready context, or None if the engine could not initialise one.
        """
        pass


class WhisperContext(EngineContext):
    """EngineContext around a loaded openai-whisper model."""

    def __init__(self, model, device: str, fp16: bool):
        self._model = model
        self.device = device
        self.fp16 = fp16
        self._segments: List[dict] = []
        self._language: Optional[str] = None

    def full(self, samples: np.ndarray, params: RunParameters) -> int:
        import torch

        if self._model is None:
            logger.error("Inference requested on a released Whisper context.")
            return -1

        torch.set_num_threads(params.n_threads)
        logger.info(f"Running Whisper on {len(samples)} samples "
                    f"(threads={params.n_threads}, language={params.language}, "
                    f"no_speech_threshold={params.no_speech_threshold})")
        # temperature=0.0 without beam_size/best_of is greedy decoding;
        # language=None lets Whisper auto-detect.
        result = self._model.transcribe(
            samples,
            language=params.language.code,
            task='translate' if params.translate else 'transcribe',
            temperature=0.0,
            no_speech_threshold=params.no_speech_threshold,
            fp16=self.fp16 if self.device == "cuda" else False, # FP16 only works on CUDA
            verbose=None
        )
        self._segments = [s for s in result.get('segments', []) if 'start' in s and 'end' in s]
        self._language = result.get('language')
        logger.info(f"Whisper produced {len(self._segments)} segments. Detected language: {self._language or 'N/A'}")
        return 0

    def n_segments(self) -> int:
        return len(self._segments)

    def segment_text(self, index: int) -> str:
        return self._segments[index].get('text', '')

    def segment_t0(self, index: int) -> int:
        return int(round(float(self._segments[index]['start']) * CENTISECONDS_PER_SECOND))

    def segment_t1(self, index: int) -> int:
        return int(round(float(self._segments[index]['end']) * CENTISECONDS_PER_SECOND))

    def detected_language(self) -> Optional[str]:
        return self._language

    def free(self) -> None:
        if self._model is None:
            return
        import torch

        self._model = None
        self._segments = []
        if self.device == "cuda" and torch.cuda.is_available():
            torch.cuda.empty_cache()
        logger.debug("Whisper model released.")


class WhisperBackend(EngineBackend):
    """Implements the engine backend using OpenAI's Whisper models."""

    def __init__(self, device: str = "cuda", fp16: bool = True):
        """
        Args:
            device: The device to run the model on ("cuda" or "cpu").
            fp16: Whether to use float16 precision (faster on compatible GPUs).

        Raises:
            ValueError: If the specified device is invalid.
        """
        import torch

        if device not in ["cuda", "cpu"]:
            raise ValueError(f"Invalid device specified: {device}. Choose 'cuda' or 'cpu'.")
        if device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA device requested but not available. Falling back to CPU.")
            device = "cpu"
        self.device = device
        self.fp16 = fp16 and device == "cuda"

    def init_from_file(self, model_path: str) -> Optional[EngineContext]:
        import whisper

        logger.info(f"Loading Whisper model from {model_path} on device '{self.device}' (FP16: {self.fp16})")
        model = whisper.load_model(model_path, device=self.device)
        if model is None:
            return None
        logger.info("Whisper model loaded.")
        return WhisperContext(model, self.device, self.fp16)
