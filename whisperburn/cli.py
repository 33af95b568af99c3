"""Command-Line Interface handler for WhisperBurn."""

import argparse
import logging
import os
import sys
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import List, Optional

from .config_loader import ConfigLoader, expand_path
from .log_setup import setup_logging
from .audio_extractor import AudioExtractor, FFmpegDecoder
from .burner import BurnOrchestrator, FFmpegTranscoder
from .model_context import ModelContext, ModelStore, KNOWN_MODELS
from .model_downloader import ModelDownloader, default_model_urls
from .models import LanguageHint, NO_AUDIO_MESSAGE
from .style_translator import Alignment, SubtitleStyle, parse_hex_color
from .subtitle_formatter import SRTFormatter
from .transcriber import WhisperBackend
from .transcription_engine import TranscriptionEngine
from .exceptions import WhisperBurnError, ConfigurationError

logger = logging.getLogger(__name__) # Get logger for this module


def build_model_store(config: dict) -> ModelStore:
    return ModelStore(
        expand_path(config['models_dir']),
        prefix=config.get('model_prefix', ''),
        extension=config.get('model_extension', '.pt'),
    )


def build_transcription_engine(config: dict) -> TranscriptionEngine:
    """Wires the transcription pipeline from configuration."""
    device = config.get('device', 'cuda')
    context = ModelContext(
        build_model_store(config),
        WhisperBackend(device=device, fp16=config.get('whisper_fp16', True)),
    )
    extractor = AudioExtractor(FFmpegDecoder(ffmpeg_path=config.get('ffmpeg_path')))
    return TranscriptionEngine(
        context,
        extractor,
        formatter=SRTFormatter(),
        no_speech_threshold=float(config.get('no_speech_threshold', 0.6)),
    )


def build_burn_orchestrator(config: dict, output_dir: Optional[str] = None) -> BurnOrchestrator:
    return BurnOrchestrator(
        output_dir=expand_path(output_dir or config['output_dir']),
        transcoder=FFmpegTranscoder(ffmpeg_path=config.get('ffmpeg_path')),
        video_encoder=config.get('video_encoder', 'h264_videotoolbox'),
        video_bitrate=str(config.get('video_bitrate', '5M')),
        temp_root=expand_path(config.get('temp_dir')),
    )


class CLIHandler:
    """Parses arguments and dispatches to the transcription and burn pipelines."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            prog="whisperburn",
            description="WhisperBurn: transcribe media into SRT subtitles and burn subtitles into videos.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter # Show defaults in help
        )
        parser.add_argument(
            "-c", "--config",
            default="config.yaml",
            help="Path to the configuration YAML file. Defaults are used if it does not exist."
        )
        parser.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Set the logging level for console and file output."
        )
        parser.add_argument(
            "--device",
            default=None, # Default taken from config
            choices=["cuda", "cpu"],
            help="Override the processing device (cuda or cpu) specified in config."
        )
        parser.add_argument(
            "--temp-dir",
            default=None,
            help="Override the parent directory for temporary burn working directories."
        )
        subparsers = parser.add_subparsers(dest="command", required=True)

        transcribe = subparsers.add_parser("transcribe", help="Generate an SRT file from a media file.")
        transcribe.add_argument("media", help="Path to the input audio or video file.")
        transcribe.add_argument("-m", "--model", default=None, help="Model name (tiny, base, small, medium).")
        transcribe.add_argument("-l", "--language", default=None,
                                help="Language code, or 'auto' to let the model detect it.")
        transcribe.add_argument("-o", "--output", default=None,
                                help="Output .srt path. Defaults to the media path with an .srt extension.")

        burn = subparsers.add_parser("burn", help="Burn an SRT file into a video.")
        burn.add_argument("video", help="Path to the input video file.")
        burn.add_argument("subtitles", help="Path to the .srt subtitle file.")
        burn.add_argument("-o", "--output-dir", default=None, help="Directory for the burned video.")
        burn.add_argument("--font-size", type=int, default=None, help="Font size in points (10-60).")
        burn.add_argument("--margin-v", type=int, default=None, help="Vertical margin in pixels (0-100).")
        burn.add_argument("--color", default=None, help="Font colour as #RRGGBB.")
        burn.add_argument("--alignment", default=None,
                          choices=[a.name.lower().replace('_', '-') for a in Alignment],
                          help="Subtitle position.")
        burn.add_argument("--timeout", type=float, default=None,
                          help="Stop waiting after this many seconds (ffmpeg keeps running).")

        models = subparsers.add_parser("models", help="List, download or remove models.")
        models.add_argument("--download", metavar="NAME", choices=KNOWN_MODELS, help="Download a model.")
        models.add_argument("--remove", metavar="NAME", choices=KNOWN_MODELS, help="Delete a downloaded model.")

        return parser

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Parses arguments, sets up logging, loads config, and runs the chosen command."""
        args = self.parser.parse_args(argv)

        log_level = getattr(logging, args.log_level.upper(), logging.INFO)
        setup_logging(log_level=log_level, log_dir=None) # Console only until config is known

        try:
            config = ConfigLoader().load_or_default(args.config)
        except ConfigurationError as e:
            logger.critical(f"Failed to load configuration from {args.config}: {e}")
            sys.exit(1)

        setup_logging(log_level=log_level, log_dir=config.get('log_dir'),
                      log_file=config.get('log_file', 'whisperburn.log'))

        if args.device:
            logger.info(f"Overriding device from config with CLI argument: {args.device}")
            config['device'] = args.device
        if args.temp_dir:
            logger.info(f"Overriding temp_dir from config with CLI argument: {args.temp_dir}")
            config['temp_dir'] = args.temp_dir

        try:
            handler = getattr(self, f"_cmd_{args.command}")
            handler(args, config)
            sys.exit(0)
        except WhisperBurnError as e:
            logger.error(f"{e.kind}: {e.description}")
            sys.exit(1)
        except FileNotFoundError as e:
            logger.error(str(e))
            sys.exit(1)
        except KeyboardInterrupt:
            logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
            sys.exit(1)
        except Exception as e:
            logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
            sys.exit(2) # Use a different exit code for unexpected crashes

    def _cmd_transcribe(self, args, config: dict) -> None:
        model_name = args.model or config.get('default_model', 'base')
        language = LanguageHint.parse(args.language if args.language is not None else config.get('language'))
        output_path = args.output or os.path.splitext(args.media)[0] + ".srt"

        engine = build_transcription_engine(config)
        try:
            result = engine.transcribe(args.media, model_name, language)
            if result.no_audio_data:
                print(NO_AUDIO_MESSAGE)
                return
            engine.formatter.write(result.segments, output_path)
        finally:
            engine.shutdown()
            engine.context.release()
        print(f"Wrote {len(result.segments)} subtitles to {output_path}")

    def _cmd_burn(self, args, config: dict) -> None:
        style_config = dict(config.get('style') or {})
        if args.font_size is not None:
            style_config['font_size'] = args.font_size
        if args.margin_v is not None:
            style_config['margin_v'] = args.margin_v
        if args.color is not None:
            parse_hex_color(args.color) # Fail early on a bad value
            style_config['font_color'] = args.color
        if args.alignment is not None:
            style_config['alignment'] = args.alignment
        try:
            style = SubtitleStyle.from_config(style_config)
        except ValueError as e:
            raise ConfigurationError(f"Invalid subtitle style: {e}") from e

        cues = SRTFormatter().validate_file(args.subtitles)
        logger.info(f"Subtitle file {args.subtitles} has {cues} cues.")

        orchestrator = build_burn_orchestrator(config, args.output_dir)
        try:
            future = orchestrator.burn(args.video, args.subtitles, style)
            try:
                job = future.result(timeout=args.timeout)
            except FuturesTimeoutError:
                logger.error(f"Stopped waiting after {args.timeout} seconds; ffmpeg continues in the background "
                             "and its working directory is removed when it finishes.")
                sys.exit(1)
        finally:
            orchestrator.shutdown(wait=args.timeout is None)
        print(job.message)

    def _cmd_models(self, args, config: dict) -> None:
        store = build_model_store(config)
        if args.download:
            downloader = ModelDownloader(store, urls=default_model_urls(config.get('model_url_template')))
            path = downloader.download(args.download)
            print(f"Downloaded '{args.download}' to {path}")
        if args.remove:
            store.remove(args.remove)
            print(f"Removed '{args.remove}'")
        for name in KNOWN_MODELS:
            marker = "available" if store.is_available(name) else "-"
            print(f"{name:<8} {marker:<10} {store.path_for(name)}")
