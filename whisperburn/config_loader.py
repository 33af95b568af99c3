"""Handles loading configuration from YAML files."""

import copy
import yaml
import os
import logging
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    # Model storage: <models_dir>/<model_prefix><name><model_extension>
    'models_dir': os.path.join('~', 'Documents'),
    'model_prefix': '',
    'model_extension': '.pt',
    'model_url_template': None,
    'default_model': 'base',
    'device': 'cuda',
    'whisper_fp16': True,
    'no_speech_threshold': 0.6,
    'language': 'auto',
    # Burning
    'output_dir': os.path.join('~', 'Documents'),
    'temp_dir': None,
    'ffmpeg_path': None,
    'video_encoder': 'h264_videotoolbox',
    'video_bitrate': '5M',
    'style': {
        'font_size': 24,
        'margin_v': 20,
        'font_color': '#FFFFFF',
        'alignment': 'bottom-center',
    },
    # Logging
    'log_dir': 'logs',
    'log_file': 'whisperburn.log',
}


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay ``overrides`` on ``defaults``, descending into nested mappings."""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Loads configuration settings from a YAML file."""

    def load_config(self, config_path: str) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Values from the file override ``DEFAULT_CONFIG``; keys the file does
        not mention keep their defaults.

        Args:
            config_path: The path to the YAML configuration file.

        Returns:
            A dictionary containing the merged configuration settings.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML or
                              if there are other reading errors.
        """
        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
            logger.error(f"Configuration path is not a file: {config_path}")
            raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except OSError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")
        if 'style' in loaded and not isinstance(loaded['style'], dict):
            raise ConfigurationError(f"'style' in {config_path} must be a mapping.")

        config = _merge(DEFAULT_CONFIG, loaded)
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config

    def load_or_default(self, config_path: Optional[str]) -> dict:
        """Like ``load_config`` but falls back to the defaults when the file is missing."""
        if config_path and os.path.exists(config_path):
            return self.load_config(config_path)
        logger.warning(f"Config file not found at {config_path}, using defaults.")
        return copy.deepcopy(DEFAULT_CONFIG)


def expand_path(value: Optional[str]) -> Optional[str]:
    """Expands '~' and environment variables in a configured path."""
    if not value:
        return value
    return os.path.abspath(os.path.expanduser(os.path.expandvars(value)))
