"""
Artifact Models - The generated design system, as immutable pydantic models.

NO DICTIONARIES - Palettes, typography and metadata are typed models.
IMMUTABLE - Every model is frozen; refinement always builds a new artifact.

Validation is deliberately lenient about what the generative model returns:
shades may be "#HEX" strings or {"hex": "#HEX"} objects, missing shades are
derived from the palette's main color, and the accessibility report is always
recomputed from the colors.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.services.colors import (
    BLACK,
    SHADE_KEYS,
    WHITE,
    check_wcag,
    generate_shades,
    normalize_hex,
)


class ColorPalette(BaseModel):
    """A named color with its 50-950 shade scale."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=100)
    main: str
    shades: dict[str, str] = Field(default_factory=dict)
    description: str | None = None

    @model_validator(mode="before")
    @classmethod
    def fill_shades(cls, data: Any) -> Any:
        """Normalize shade entries and derive any missing ones from main."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        main = data.get("main")
        if main is None:
            return data
        raw_shades = data.get("shades")
        if not isinstance(raw_shades, dict):
            raw_shades = {}
        derived = generate_shades(normalize_hex(main))
        shades: dict[str, str] = {}
        for key in SHADE_KEYS:
            value = raw_shades.get(key)
            if isinstance(value, dict):
                value = value.get("hex")
            shades[key] = value if value else derived[key]
        data["shades"] = shades
        return data

    @field_validator("main")
    @classmethod
    def validate_main(cls, v: str) -> str:
        """Ensure main is a valid HEX color."""
        return normalize_hex(v)

    @field_validator("shades")
    @classmethod
    def validate_shades(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure every shade is a valid HEX color."""
        return {key: normalize_hex(value) for key, value in v.items()}


class SemanticColors(BaseModel):
    """Status colors."""

    model_config = ConfigDict(frozen=True)

    success: ColorPalette
    error: ColorPalette
    warning: ColorPalette
    info: ColorPalette


class ColorSystem(BaseModel):
    """All palettes of a design system."""

    model_config = ConfigDict(frozen=True)

    primary: ColorPalette
    secondary: ColorPalette
    accent: ColorPalette
    neutral: ColorPalette | None = None
    semantic: SemanticColors | None = None
    # Extra palettes of larger tiers (dark mode, UI states)
    additional: dict[str, ColorPalette] = Field(default_factory=dict)


class ContrastCheck(BaseModel):
    """WCAG contrast result for one foreground/background pair."""

    model_config = ConfigDict(frozen=True)

    foreground: str
    background: str
    ratio: float
    aa: bool
    aaa: bool


def _font_family(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("family")
    return value


class FontPair(BaseModel):
    """A heading/body font pairing suggestion."""

    model_config = ConfigDict(frozen=True)

    name: str
    heading: str
    body: str
    description: str | None = None
    use_case: str | None = None

    @field_validator("heading", "body", mode="before")
    @classmethod
    def unwrap_family(cls, v: Any) -> Any:
        """Accept {"family": "Inter"} as well as "Inter"."""
        return _font_family(v)


class Typography(BaseModel):
    """Fonts, type scale, line heights and weights."""

    model_config = ConfigDict(frozen=True)

    heading_font: str = Field(..., min_length=1)
    body_font: str = Field(..., min_length=1)
    mono_font: str = "JetBrains Mono"
    font_pairs: list[FontPair] = Field(default_factory=list)
    type_scale: dict[str, str] = Field(default_factory=dict)
    line_heights: dict[str, float] = Field(default_factory=dict)
    weights: dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def fonts_from_pairs(cls, data: Any) -> Any:
        """Fall back to the first font pair when heading/body fonts are missing."""
        if not isinstance(data, dict):
            return data
        pairs = data.get("font_pairs")
        if isinstance(pairs, list) and pairs and isinstance(pairs[0], dict):
            first = pairs[0]
            data = dict(data)
            for field_name, key in (("heading_font", "heading"), ("body_font", "body")):
                if not data.get(field_name):
                    data[field_name] = _font_family(first.get(key))
        return data


class Component(BaseModel):
    """A UI component description."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    description: str | None = None


class ArtifactMetadata(BaseModel):
    """How and when an artifact was produced."""

    model_config = ConfigDict(frozen=True)

    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    tier: str
    provider: str | None = None
    model: str | None = None
    tokens_used: int | None = None
    response_size: int | None = None
    generation_ms: int | None = None
    brand_summary: str | None = None


# (report key, palette, foreground shade, background color or shade)
TEXT_PAIRS: tuple[tuple[str, str, str, str], ...] = (
    ("primary_on_white", "primary", "main", WHITE),
    ("secondary_on_white", "secondary", "main", WHITE),
    ("accent_on_white", "accent", "main", WHITE),
    ("primary_on_black", "primary", "main", BLACK),
    ("secondary_on_black", "secondary", "main", BLACK),
    ("accent_on_black", "accent", "main", BLACK),
    ("neutral_text_on_light", "neutral", "900", "50"),
)


def palette_color(palette: ColorPalette, shade: str) -> str:
    """Resolve "main" or a shade key on a palette."""
    return palette.main if shade == "main" else palette.shades[shade]


def build_accessibility_report(colors: ColorSystem) -> dict[str, ContrastCheck]:
    """Compute the WCAG report for the standard text pairs of a color system."""
    report: dict[str, ContrastCheck] = {}
    for key, palette_name, fg_shade, background in TEXT_PAIRS:
        palette: ColorPalette | None = getattr(colors, palette_name)
        if palette is None:
            continue
        foreground = palette_color(palette, fg_shade)
        if not background.startswith("#"):
            background = palette_color(palette, background)
        result = check_wcag(foreground, background)
        report[key] = ContrastCheck(
            foreground=foreground,
            background=background,
            ratio=result.ratio,
            aa=result.aa,
            aaa=result.aaa,
        )
    return report


class DesignSystemArtifact(BaseModel):
    """
    A complete generated design system.

    ``accessibility`` is derived from ``colors`` on every validation, so a
    caller-supplied report is ignored.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    colors: ColorSystem
    accessibility: dict[str, ContrastCheck] = Field(default_factory=dict)
    typography: Typography
    components: list[Component] = Field(default_factory=list)
    metadata: ArtifactMetadata
    parent_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def compute_accessibility(cls, data: Any) -> Any:
        """Recompute the accessibility report from the colors."""
        if not isinstance(data, dict) or "colors" not in data:
            return data
        data = dict(data)
        colors = ColorSystem.model_validate(data["colors"])
        data["colors"] = colors
        data["accessibility"] = build_accessibility_report(colors)
        return data

    def component_names(self) -> list[str]:
        """Component names in artifact order."""
        return [component.name for component in self.components]
