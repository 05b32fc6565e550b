"""
Color Utilities - HEX/HSL conversion, shade scales and WCAG contrast.

All colors are handled as uppercase "#RRGGBB" strings. HSL values use
h: 0-360, s: 0-100, l: 0-100.
"""

import colorsys
import re
from dataclasses import dataclass

WHITE = "#FFFFFF"
BLACK = "#000000"

WCAG_AA_RATIO = 4.5
WCAG_AAA_RATIO = 7.0

# Shade key -> target lightness. "500" is the palette's main color.
SHADE_LIGHTNESS: dict[str, float] = {
    "50": 95.0,
    "100": 90.0,
    "200": 80.0,
    "300": 70.0,
    "400": 60.0,
    "600": 45.0,
    "700": 35.0,
    "800": 25.0,
    "900": 15.0,
    "950": 10.0,
}
SHADE_KEYS: tuple[str, ...] = (
    "50", "100", "200", "300", "400", "500", "600", "700", "800", "900", "950"
)

_HEX_RE = re.compile(r"^#?([0-9A-Fa-f]{6}|[0-9A-Fa-f]{3})$")

# (upper bound of hue range, name); red wraps around 330-360
_HUE_NAMES: tuple[tuple[float, str], ...] = (
    (15, "Red"),
    (45, "Orange"),
    (75, "Yellow"),
    (150, "Green"),
    (200, "Cyan"),
    (250, "Blue"),
    (290, "Purple"),
    (330, "Magenta"),
    (360, "Red"),
)


@dataclass(frozen=True)
class WCAGResult:
    """Contrast check between a foreground and a background color."""

    ratio: float
    aa: bool
    aaa: bool


def normalize_hex(value: str) -> str:
    """
    Normalize a HEX color to uppercase "#RRGGBB".

    Raises:
        ValueError: If the value is not a 3 or 6 digit HEX color
    """
    match = _HEX_RE.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"Invalid HEX color: {value!r}")
    digits = match.group(1).upper()
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return f"#{digits}"


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    """Convert HEX to an (r, g, b) tuple of 0-255 ints."""
    digits = normalize_hex(value)[1:]
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Convert 0-255 channel values to HEX, clamping out-of-range input."""
    channels = [int(round(max(0.0, min(255.0, c)))) for c in (r, g, b)]
    return "#{:02X}{:02X}{:02X}".format(*channels)


def hex_to_hsl(value: str) -> tuple[float, float, float]:
    """Convert HEX to (h, s, l)."""
    r, g, b = hex_to_rgb(value)
    h, l, s = colorsys.rgb_to_hls(r / 255, g / 255, b / 255)
    return h * 360, s * 100, l * 100


def hsl_to_hex(h: float, s: float, l: float) -> str:
    """Convert (h, s, l) to HEX, clamping saturation and lightness."""
    s = max(0.0, min(100.0, s))
    l = max(0.0, min(100.0, l))
    r, g, b = colorsys.hls_to_rgb((h % 360) / 360, l / 100, s / 100)
    return rgb_to_hex(r * 255, g * 255, b * 255)


def generate_shades(main: str) -> dict[str, str]:
    """
    Generate the 50-950 shade scale for a base color.

    The hue and saturation of ``main`` are kept; only lightness varies.
    Shade "500" is ``main`` itself.
    """
    base = normalize_hex(main)
    h, s, _ = hex_to_hsl(base)
    shades = {key: hsl_to_hex(h, s, lightness) for key, lightness in SHADE_LIGHTNESS.items()}
    shades["500"] = base
    return {key: shades[key] for key in SHADE_KEYS}


def relative_luminance(value: str) -> float:
    """WCAG 2.1 relative luminance of a color."""

    def _linear(channel: int) -> float:
        c = channel / 255
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = hex_to_rgb(value)
    return 0.2126 * _linear(r) + 0.7152 * _linear(g) + 0.0722 * _linear(b)


def contrast_ratio(color1: str, color2: str) -> float:
    """Contrast ratio between two colors (1.0 to 21.0)."""
    lum1 = relative_luminance(color1)
    lum2 = relative_luminance(color2)
    brightest, darkest = max(lum1, lum2), min(lum1, lum2)
    return (brightest + 0.05) / (darkest + 0.05)


def check_wcag(foreground: str, background: str) -> WCAGResult:
    """Check normal-text WCAG compliance for a color pair."""
    ratio = contrast_ratio(foreground, background)
    return WCAGResult(
        ratio=round(ratio, 2),
        aa=ratio >= WCAG_AA_RATIO,
        aaa=ratio >= WCAG_AAA_RATIO,
    )


def adjust_lightness(value: str, delta: float) -> str:
    """Shift lightness by ``delta`` points, keeping hue and saturation."""
    h, s, l = hex_to_hsl(value)
    return hsl_to_hex(h, s, l + delta)


def adjust_saturation(value: str, delta: float) -> str:
    """Shift saturation by ``delta`` points, keeping hue and lightness."""
    h, s, l = hex_to_hsl(value)
    return hsl_to_hex(h, s + delta, l)


def improve_contrast(
    foreground: str,
    background: str,
    target_ratio: float = WCAG_AA_RATIO,
    step: float = 2.0,
) -> str:
    """
    Move ``foreground`` away from ``background`` in lightness until the pair
    reaches ``target_ratio``.

    Dark backgrounds lighten the foreground, light backgrounds darken it.
    Hue and saturation are unchanged. Returns the input unchanged when it
    already passes.
    """
    current = normalize_hex(foreground)
    if contrast_ratio(current, background) >= target_ratio:
        return current

    h, s, l = hex_to_hsl(current)
    direction = 1.0 if relative_luminance(background) < 0.18 else -1.0
    while 0.0 < l < 100.0:
        l = max(0.0, min(100.0, l + direction * step))
        current = hsl_to_hex(h, s, l)
        if contrast_ratio(current, background) >= target_ratio:
            break
    return current


def color_name(value: str) -> str:
    """Coarse color family name for a HEX color, based on hue."""
    h, s, l = hex_to_hsl(value)
    if s < 10:
        return "Gray"
    for upper, name in _HUE_NAMES:
        if h < upper:
            return name
    return "Red"
