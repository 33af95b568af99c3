"""Model discovery on disk and the lifecycle of the one loaded model."""

import logging
import os
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from .exceptions import ModelNotFoundError, ContextInitializationError, FileSystemError
from .transcriber import EngineBackend, EngineContext

logger = logging.getLogger(__name__)

# Catalogue order used for listing
KNOWN_MODELS = ("tiny", "base", "small", "medium")


class ModelStore:
    """Maps model names to files in the model directory."""

    def __init__(self, models_dir: str, prefix: str = "", extension: str = ".pt"):
        self.models_dir = models_dir
        self.prefix = prefix
        self.extension = extension

    def path_for(self, model_name: str) -> str:
        return os.path.join(self.models_dir, f"{self.prefix}{model_name}{self.extension}")

    def is_available(self, model_name: str) -> bool:
        return os.path.isfile(self.path_for(model_name))

    def resolve(self, model_name: str) -> str:
        """
        Returns the model file path.

        Raises:
            ModelNotFoundError: If no file exists for the model.
        """
        path = self.path_for(model_name)
        if not os.path.isfile(path):
            raise ModelNotFoundError(model_name, path)
        return path

    def available_models(self) -> List[str]:
        return [name for name in KNOWN_MODELS if self.is_available(name)]

    def remove(self, model_name: str) -> None:
        path = self.resolve(model_name)
        try:
            os.remove(path)
        except OSError as e:
            raise FileSystemError(f"Could not remove model file {path}: {e}") from e
        logger.info(f"Removed model '{model_name}' ({path})")


class ModelContext:
    """
    Owns at most one loaded model.

    Loading a different model frees the previous engine handle first. Every
    operation takes the same lock, so load, inference and release on one
    context never overlap. Use ``session()`` to keep the lock across a load
    and the run that follows it.
    """

    def __init__(self, store: ModelStore, backend: EngineBackend):
        self.store = store
        self.backend = backend
        self._lock = threading.RLock()
        self._handle: Optional[EngineContext] = None
        self._model_name: Optional[str] = None
        self._model_path: Optional[str] = None

    @property
    def loaded_model(self) -> Optional[str]:
        return self._model_name

    def is_loaded(self, model_name: Optional[str] = None) -> bool:
        with self._lock:
            if self._handle is None:
                return False
            return model_name is None or model_name == self._model_name

    def load(self, model_name: str) -> None:
        """
        Makes ``model_name`` the loaded model.

        Raises:
            ModelNotFoundError: If the model file is missing.
            ContextInitializationError: If the engine fails to load the file.
                The context is left unloaded.
        """
        with self._lock:
            path = self.store.resolve(model_name)
            if self._handle is not None and self._model_path == path:
                logger.debug(f"Model '{model_name}' already loaded.")
                return

            self.release()

            logger.info(f"Loading model '{model_name}' from {path}...")
            try:
                handle = self.backend.init_from_file(path)
            except Exception as e:
                logger.error(f"Engine failed to load model '{model_name}': {e}", exc_info=True)
                raise ContextInitializationError(f"Failed to initialize Whisper context for '{model_name}': {e}") from e
            if handle is None:
                raise ContextInitializationError(f"Failed to initialize Whisper context for '{model_name}'.")

            self._handle = handle
            self._model_name = model_name
            self._model_path = path
            logger.info(f"Model '{model_name}' loaded.")

    def release(self) -> None:
        """Frees the loaded model, if any."""
        with self._lock:
            if self._handle is None:
                return
            handle, name = self._handle, self._model_name
            self._handle = None
            self._model_name = None
            self._model_path = None
            handle.free()
            logger.info(f"Released model '{name}'.")

    @contextmanager
    def session(self, model_name: str) -> Iterator[EngineContext]:
        """Holds the context lock, loads ``model_name`` and yields its handle."""
        with self._lock:
            self.load(model_name)
            yield self._handle

    def __enter__(self) -> "ModelContext":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()
