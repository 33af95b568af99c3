"""Handles formatting transcription segments into subtitle text (SRT) and reading it back."""

import logging
import re
from abc import ABC, abstractmethod
from typing import List, Sequence

from .models import Segment
from .exceptions import FormattingError
from .utils import format_time_srt, parse_time_srt

logger = logging.getLogger(__name__)

_TIMING_RE = re.compile(
    r'^\s*(\d+:\d{1,2}:\d{1,2}[,.]\d{1,3})\s*-->\s*(\d+:\d{1,2}:\d{1,2}[,.]\d{1,3})'
)


class SubtitleFormatter(ABC):
    """Abstract base class for subtitle formatters."""

    @abstractmethod
    def format(self, segments: Sequence[Segment]) -> str:
        """Renders segments as subtitle file text. Must not have side effects."""
        pass

    @abstractmethod
    def parse(self, text: str) -> List[Segment]:
        """
        Reads subtitle file text back into segments.

        Raises:
            FormattingError: If the text is not valid for this format.
        """
        pass

    def write(self, segments: Sequence[Segment], output_path: str) -> None:
        """
        Formats the segments and writes them to a UTF-8 file.

        Raises:
            FormattingError: If the file cannot be written.
        """
        text = self.format(segments)
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(text)
        except OSError as e:
            logger.error(f"Failed to write subtitle file to {output_path}: {e}", exc_info=True)
            raise FormattingError(f"Could not write subtitle file: {e}") from e
        logger.info(f"Successfully wrote {len(segments)} subtitle blocks to {output_path}")

    def validate_file(self, path: str) -> int:
        """
        Checks that a subtitle file can be read by this formatter.

        Returns:
            The number of subtitle blocks in the file.

        Raises:
            FormattingError: If the file is unreadable, malformed or empty.
        """
        try:
            with open(path, 'r', encoding='utf-8-sig') as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise FormattingError(f"Could not read subtitle file {path}: {e}") from e
        segments = self.parse(text)
        if not segments:
            raise FormattingError(f"Subtitle file {path} contains no subtitle blocks.")
        return len(segments)


class SRTFormatter(SubtitleFormatter):
    """Formats subtitles in the SRT (SubRip Text) format.

    SRT format:
        1
        00:00:00,000 --> 00:00:02,500
        Hello

        2
        00:00:02,500 --> 00:00:05,000
        world
    """

    def format(self, segments: Sequence[Segment]) -> str:
        blocks = []
        for index, segment in enumerate(segments, start=1):
            blocks.append(
                f"{index}\n"
                f"{format_time_srt(segment.start)} --> {format_time_srt(segment.end)}\n"
                f"{segment.text}\n\n"
            )
        return "".join(blocks)

    def parse(self, text: str) -> List[Segment]:
        lines = text.lstrip('\ufeff').replace('\r\n', '\n').replace('\r', '\n').split('\n')
        segments: List[Segment] = []
        i = 0
        while i < len(lines):
            if not lines[i].strip():
                i += 1
                continue

            # Index line is optional in lenient readers; accept a timing line directly.
            if _TIMING_RE.match(lines[i]) is None:
                i += 1
            if i >= len(lines):
                raise FormattingError(f"Subtitle block at line {i} has no timing line.")
            match = _TIMING_RE.match(lines[i])
            if match is None:
                raise FormattingError(f"Invalid SRT timing line {i + 1}: {lines[i]!r}")
            try:
                start = parse_time_srt(match.group(1))
                end = parse_time_srt(match.group(2))
                i += 1
                text_lines = []
                while i < len(lines) and lines[i].strip():
                    text_lines.append(lines[i])
                    i += 1
                segments.append(Segment(start=start, end=end, text="\n".join(text_lines).strip()))
            except ValueError as e:
                raise FormattingError(f"Invalid SRT block near line {i + 1}: {e}") from e

        logger.debug(f"Parsed {len(segments)} SRT blocks.")
        return segments
