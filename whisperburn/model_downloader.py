"""Fetches model files over HTTP into the model directory."""

import logging
import os
import tempfile
from typing import Dict, Optional

import requests
from tqdm import tqdm

from .exceptions import ModelDownloadError, ModelNotFoundError
from .model_context import ModelStore, KNOWN_MODELS
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def default_model_urls(url_template: Optional[str] = None) -> Dict[str, str]:
    """
    Download URLs for the catalogue models.

    With a template (containing ``{name}``) every catalogue model is mapped
    through it; otherwise the checkpoint URLs shipped with openai-whisper are used.
    """
    if url_template:
        return {name: url_template.format(name=name) for name in KNOWN_MODELS}
    import whisper

    return {name: whisper._MODELS[name] for name in KNOWN_MODELS if name in whisper._MODELS}


class ModelDownloader:
    """Downloads a model and moves it into place, replacing any stale copy."""

    def __init__(self, store: ModelStore, urls: Optional[Dict[str, str]] = None,
                 timeout: float = 60.0, show_progress: bool = True):
        self.store = store
        self._urls = urls
        self.timeout = timeout
        self.show_progress = show_progress

    @property
    def urls(self) -> Dict[str, str]:
        if self._urls is None:
            self._urls = default_model_urls()
        return self._urls

    def download(self, model_name: str) -> str:
        """
        Fetches ``model_name`` into the model directory.

        Returns:
            Path of the stored model file.

        Raises:
            ModelNotFoundError: If the name is not in the catalogue.
            ModelDownloadError: If the request or the write fails. No partial
                file is left behind.
        """
        url = self.urls.get(model_name)
        if url is None:
            raise ModelNotFoundError(model_name)

        destination = self.store.path_for(model_name)
        ensure_dir_exists(os.path.dirname(destination) or ".")
        fd, partial_path = tempfile.mkstemp(prefix=f".{model_name}_", suffix=".part",
                                            dir=os.path.dirname(destination) or ".")
        logger.info(f"Downloading model '{model_name}' from {url}")
        try:
            with os.fdopen(fd, 'wb') as out, requests.get(url, stream=True, timeout=self.timeout) as resp:
                resp.raise_for_status()
                total = int(resp.headers.get('Content-Length', 0)) or None
                with tqdm(total=total, unit='B', unit_scale=True, desc=model_name,
                          disable=not self.show_progress) as bar:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        out.write(chunk)
                        bar.update(len(chunk))
            os.replace(partial_path, destination)
        except requests.exceptions.RequestException as e:
            self._discard(partial_path)
            logger.error(f"Download of model '{model_name}' failed: {e}")
            raise ModelDownloadError(f"Download failed for model '{model_name}': {e}") from e
        except OSError as e:
            self._discard(partial_path)
            logger.error(f"Could not save model '{model_name}' to {destination}: {e}")
            raise ModelDownloadError(f"File save error for model '{model_name}': {e}") from e

        logger.info(f"Model '{model_name}' saved to {destination}")
        return destination

    @staticmethod
    def _discard(path: str) -> None:
        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError:
                logger.warning(f"Could not remove partial download: {path}")
