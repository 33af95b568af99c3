"""Custom Exceptions for the WhisperBurn application."""

from typing import Optional


class WhisperBurnError(Exception):
    """Base class for exceptions in this package."""

    @property
    def kind(self) -> str:
        """Short name of the failure, e.g. 'ModelNotFoundError'."""
        return type(self).__name__

    @property
    def description(self) -> str:
        """Human-readable description suitable for a status line."""
        return str(self)


class ConfigurationError(WhisperBurnError):
    """Exception raised for errors in configuration loading."""
    pass


class FileSystemError(WhisperBurnError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass


class ModelNotFoundError(WhisperBurnError):
    """The requested model file is not present in the model directory."""

    def __init__(self, model_name: str, path: Optional[str] = None):
        self.model_name = model_name
        self.path = path
        message = f"Model '{model_name}' not found"
        if path:
            message += f" (expected at {path})"
        super().__init__(message + ".")


class ContextInitializationError(WhisperBurnError):
    """The inference engine could not create a context for a model."""
    pass


class AudioReadingError(WhisperBurnError):
    """Exception raised when audio could not be decoded from a media file."""
    pass


class NoAudioTrackError(WhisperBurnError):
    """The media container holds no audio track."""
    pass


class InferenceError(WhisperBurnError):
    """The inference engine returned a failure status."""

    def __init__(self, code: int, detail: Optional[str] = None):
        self.code = code
        message = f"Whisper inference failed with code {code}."
        if detail:
            message += f" {detail}"
        super().__init__(message)


class FormattingError(WhisperBurnError):
    """Exception raised for errors during subtitle formatting or parsing."""
    pass


class FileSetupError(WhisperBurnError):
    """Staging of burn inputs into the working directory failed."""
    pass


class BurnError(WhisperBurnError):
    """The transcoder reported a failure while burning subtitles."""

    def __init__(self, log_text: str, return_code: Optional[int] = None):
        self.log_text = log_text or "Unknown Error"
        self.return_code = return_code
        super().__init__(f"Burn failed (return code {return_code}). Logs: {self.log_text}")


class ModelDownloadError(WhisperBurnError):
    """Fetching a model file over HTTP failed."""
    pass
