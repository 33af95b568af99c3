"""Translates subtitle style settings into ffmpeg's subtitles filter syntax."""

import enum
from dataclasses import dataclass
from typing import Any, Mapping, Tuple

FONT_SIZE_RANGE = (10, 60)
MARGIN_V_RANGE = (0, 100)

# Fixed parts of the override: thin outline, transparent outline colour, outline+shadow border.
OUTLINE_WIDTH = 1
OUTLINE_COLOUR = "&H00000000"
BORDER_STYLE = 1


class Alignment(enum.Enum):
    """Subtitle position; values are ASS numpad alignment codes."""
    BOTTOM_CENTER = 2
    TOP_CENTER = 6
    CENTER = 10
    BOTTOM_LEFT = 1

    @classmethod
    def from_name(cls, name: str) -> "Alignment":
        key = name.strip().upper().replace('-', '_').replace(' ', '_')
        try:
            return cls[key]
        except KeyError:
            valid = ", ".join(a.name.lower().replace('_', '-') for a in cls)
            raise ValueError(f"Unknown alignment {name!r}. Choose one of: {valid}") from None


def _clamp(value: float, bounds: Tuple[int, int]) -> int:
    low, high = bounds
    return int(max(low, min(high, int(value))))


def parse_hex_color(value: str) -> Tuple[int, int, int]:
    """Parses '#RRGGBB' (or 'RRGGBB') into an RGB triple."""
    digits = value.strip().lstrip('#')
    if len(digits) != 6:
        raise ValueError(f"Colour must look like #RRGGBB, got {value!r}")
    try:
        return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)
    except ValueError:
        raise ValueError(f"Colour must look like #RRGGBB, got {value!r}") from None


@dataclass(frozen=True)
class SubtitleStyle:
    """Snapshot of the user's style choices, taken when a burn starts."""
    font_size: int = 24
    margin_v: int = 20
    color: Tuple[int, int, int] = (255, 255, 255)
    alignment: Alignment = Alignment.BOTTOM_CENTER

    def __post_init__(self):
        object.__setattr__(self, 'font_size', _clamp(self.font_size, FONT_SIZE_RANGE))
        object.__setattr__(self, 'margin_v', _clamp(self.margin_v, MARGIN_V_RANGE))
        object.__setattr__(self, 'color', tuple(self.color))
        if len(self.color) != 3:
            raise ValueError(f"Colour must be an (r, g, b) triple, got {self.color!r}")

    @classmethod
    def from_config(cls, style: Mapping[str, Any]) -> "SubtitleStyle":
        color = style.get('font_color', '#FFFFFF')
        alignment = style.get('alignment', Alignment.BOTTOM_CENTER)
        return cls(
            font_size=style.get('font_size', 24),
            margin_v=style.get('margin_v', 20),
            color=parse_hex_color(color) if isinstance(color, str) else tuple(color),
            alignment=Alignment.from_name(alignment) if isinstance(alignment, str) else Alignment(alignment),
        )


def ass_color(rgb: Tuple[int, int, int]) -> str:
    """
    Encodes an RGB colour the way libass expects it: &HAABBGGRR.

    The alpha byte is 00 (opaque) and the channels are written in
    blue, green, red order. Channels are clamped to 0-255.
    """
    r, g, b = (max(0, min(255, int(c))) for c in rgb)
    return f"&H00{b:02X}{g:02X}{r:02X}"


def translate(style: SubtitleStyle) -> str:
    """Builds the force_style override string for a style."""
    return (
        f"FontSize={style.font_size},"
        f"PrimaryColour={ass_color(style.color)},"
        f"Alignment={style.alignment.value},"
        f"MarginV={style.margin_v},"
        f"Outline={OUTLINE_WIDTH},"
        f"OutlineColour={OUTLINE_COLOUR},"
        f"BorderStyle={BORDER_STYLE}"
    )


def escape_filter_path(path: str) -> str:
    """Escapes single quotes so a path can sit inside a single-quoted filter argument."""
    return path.replace("'", "\\'")


def subtitles_filter(subtitle_path: str, style: SubtitleStyle) -> str:
    """The complete -vf expression that renders ``subtitle_path`` with ``style``."""
    return f"subtitles='{escape_filter_path(subtitle_path)}':force_style='{translate(style)}'"
