#!/usr/bin/env python3
"""
WhisperBurn Batch Processing Entry Point

Transcribes every media file in a directory, smallest first, writing one
SRT file per input into a Subs/ subfolder. The model is loaded once and
shared by the whole batch.
"""

import argparse
import logging
import os
import sys
import time
from typing import List, Tuple

# Progress bar library
from tqdm import tqdm

from whisperburn.cli import build_transcription_engine
from whisperburn.config_loader import ConfigLoader
from whisperburn.log_setup import setup_logging
from whisperburn.models import LanguageHint
from whisperburn.exceptions import WhisperBurnError, ConfigurationError, FileSystemError
from whisperburn.utils import ensure_dir_exists

# Initialize logger for this script
logger = logging.getLogger(__name__)

MEDIA_EXTENSIONS = (".mp4", ".mov", ".mkv", ".m4v", ".avi", ".mp3", ".wav", ".m4a", ".flac")


def find_and_sort_media(input_dir: str, extensions=MEDIA_EXTENSIONS) -> List[Tuple[str, int]]:
    """
    Finds media files in the input directory and sorts them by size.

    Returns:
        A list of (filepath, filesize) tuples, smallest first.

    Raises:
        FileNotFoundError: If the input directory doesn't exist.
        ValueError: If the input path is not a directory.
    """
    if not os.path.exists(input_dir):
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    if not os.path.isdir(input_dir):
        raise ValueError(f"Input path is not a directory: {input_dir}")

    media = []
    logger.info(f"Scanning directory for media files: {input_dir}")
    for filename in os.listdir(input_dir):
        if filename.lower().endswith(extensions):
            filepath = os.path.join(input_dir, filename)
            try:
                if os.path.isfile(filepath):
                    media.append((filepath, os.path.getsize(filepath)))
            except OSError as e:
                logger.warning(f"Could not access file {filepath}: {e}. Skipping.")

    media.sort(key=lambda item: item[1])
    logger.info(f"Found {len(media)} media files. Sorted by size (smallest first).")
    return media


def run_batch_processing():
    """Parses arguments, sets up, and runs the batch transcription."""
    parser = argparse.ArgumentParser(
        description="WhisperBurn Batch: generate SRT subtitles for every media file in a directory.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("-i", "--input-dir", required=True,
                        help="Directory containing the input media files.")
    parser.add_argument("-c", "--config", default="config.yaml",
                        help="Path to the configuration YAML file.")
    parser.add_argument("-m", "--model", default=None,
                        help="Model name; defaults to default_model from config.")
    parser.add_argument("-l", "--language", default=None,
                        help="Language code, or 'auto' to let the model detect it.")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Set the logging level for console and file output.")
    parser.add_argument("--device", default=None, choices=["cuda", "cpu"],
                        help="Override the processing device (cuda or cpu) specified in config.")

    args = parser.parse_args()

    # --- Setup Logging (Initial) ---
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    setup_logging(log_level=log_level, log_dir=None)

    # --- Load Configuration ---
    try:
        config = ConfigLoader().load_or_default(args.config)
    except ConfigurationError as e:
        logger.critical(f"Failed to load configuration: {e}")
        sys.exit(1)

    # --- Re-configure Logging (Final) ---
    setup_logging(log_level=log_level, log_dir=config.get('log_dir'),
                  log_file='whisperburn_batch.log')

    if args.device:
        logger.info(f"Overriding device from config with CLI argument: {args.device}")
        config['device'] = args.device

    model_name = args.model or config.get('default_model', 'base')
    language = LanguageHint.parse(args.language if args.language is not None else config.get('language'))

    # --- Find and Sort Media ---
    try:
        media_paths = [path for path, _ in find_and_sort_media(args.input_dir)]
    except (FileNotFoundError, ValueError) as e:
        logger.critical(f"Input directory error: {e}")
        sys.exit(1)
    if not media_paths:
        logger.warning(f"No media files found in {args.input_dir}. Exiting.")
        sys.exit(0)

    subs_dir = os.path.join(args.input_dir, "Subs")
    try:
        ensure_dir_exists(subs_dir)
    except FileSystemError as e:
        logger.critical(f"Could not create output directory: {e}")
        sys.exit(1)

    # One engine, so the model stays loaded across the whole batch
    engine = build_transcription_engine(config)

    total_files = len(media_paths)
    files_processed = 0
    files_failed = 0
    batch_start_time = time.time()
    logger.info(f"--- Starting batch transcription of {total_files} files with model '{model_name}' ---")

    try:
        with tqdm(total=total_files, unit="file", desc="Starting Batch") as pbar:
            for media_path in media_paths:
                filename = os.path.basename(media_path)
                pbar.set_description(f"Processing: {filename[:30]}...")
                srt_path = os.path.join(subs_dir, f"{os.path.splitext(filename)[0]}.srt")
                try:
                    result = engine.transcribe(media_path, model_name, language)
                    if result.no_audio_data:
                        logger.warning(f"No audio data in '{filename}'; no subtitle written.")
                        files_failed += 1
                    else:
                        engine.formatter.write(result.segments, srt_path)
                        logger.info(f"Wrote {len(result.segments)} subtitles to {srt_path}")
                        files_processed += 1
                except (WhisperBurnError, FileNotFoundError) as e:
                    logger.error(f"Transcription failed for '{filename}': {e}")
                    files_failed += 1
                except Exception as e:
                    logger.error(f"An unexpected error occurred processing '{filename}': {e}", exc_info=True)
                    files_failed += 1
                finally:
                    pbar.update(1)
    except KeyboardInterrupt:
        logger.warning("Batch process interrupted by user (Ctrl+C). Exiting.")
        sys.exit(1)
    finally:
        engine.shutdown()
        engine.context.release()

    logger.info("--- Batch Transcription Finished ---")
    logger.info(f"Total time: {time.time() - batch_start_time:.2f} seconds")
    logger.info(f"Successfully processed: {files_processed}/{total_files} files")
    logger.info(f"Failed: {files_failed}/{total_files} files")

    sys.exit(1 if files_failed > 0 else 0)


if __name__ == "__main__":
    if sys.version_info < (3, 8):
        sys.stderr.write("WhisperBurn requires Python 3.8 or later.\n")
        sys.exit(1)

    run_batch_processing()
