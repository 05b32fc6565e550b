"""
Design Token Exporters - Render an artifact as CSS variables, a Tailwind theme
or Figma Tokens JSON.

Pure functions; pricing lives in EXPORT_COSTS. Every value that came from the
generative model (font names, palette keys, type scale sizes) is reduced to a
safe character set before it is written into CSS or JavaScript.
"""

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from app.models.api import ExportFormat
from app.models.artifact import ColorPalette, DesignSystemArtifact

ADVANCED_EXPORT_COST = 2

# Credits charged per format; CSS and Tailwind are free
EXPORT_COSTS: dict[ExportFormat, int] = {
    ExportFormat.CSS: 0,
    ExportFormat.TAILWIND: 0,
    ExportFormat.FIGMA: ADVANCED_EXPORT_COST,
}

_TOKEN_NAME_RE = re.compile(r"[^a-z0-9]+")
_UNSAFE_VALUE_RE = re.compile(r"[^\w .,%()#+-]")


@dataclass(frozen=True)
class RenderedExport:
    """Exported file body with its media type and suggested filename."""

    content: str
    media_type: str
    filename: str


def export_cost(fmt: ExportFormat) -> int:
    return EXPORT_COSTS[fmt]


def token_name(key: str) -> str:
    """Lower-case, hyphenated token name ("Dark Mode" -> "dark-mode")."""
    return _TOKEN_NAME_RE.sub("-", key.lower()).strip("-") or "token"


def safe_value(value: object) -> str:
    return _UNSAFE_VALUE_RE.sub("", str(value)).strip()


def palettes(artifact: DesignSystemArtifact) -> list[tuple[str, ColorPalette]]:
    """All palettes in export order: brand, neutral, semantic, additional."""
    colors = artifact.colors
    found = [
        ("primary", colors.primary),
        ("secondary", colors.secondary),
        ("accent", colors.accent),
    ]
    if colors.neutral is not None:
        found.append(("neutral", colors.neutral))
    if colors.semantic is not None:
        for name in ("success", "error", "warning", "info"):
            found.append((name, getattr(colors.semantic, name)))
    found.extend((token_name(key), palette) for key, palette in colors.additional.items())
    return found


def _font_stack(font: str, fallback: str) -> str:
    return f'"{safe_value(font)}", {fallback}'


def export_css(artifact: DesignSystemArtifact) -> str:
    """CSS custom properties on :root."""
    typography = artifact.typography
    lines = [f"/* Design system {artifact.id} */", ":root {", "  /* Colors */"]
    for name, palette in palettes(artifact):
        lines.append(f"  --color-{name}: {palette.main};")
        lines.extend(
            f"  --color-{name}-{shade}: {hex_value};" for shade, hex_value in palette.shades.items()
        )

    lines.append("")
    lines.append("  /* Typography */")
    lines.append(f"  --font-heading: {_font_stack(typography.heading_font, 'sans-serif')};")
    lines.append(f"  --font-body: {_font_stack(typography.body_font, 'sans-serif')};")
    lines.append(f"  --font-mono: {_font_stack(typography.mono_font, 'monospace')};")
    for step, size in typography.type_scale.items():
        lines.append(f"  --font-size-{token_name(step)}: {safe_value(size)};")
    for step, height in typography.line_heights.items():
        lines.append(f"  --line-height-{token_name(step)}: {height:g};")
    for step, weight in typography.weights.items():
        lines.append(f"  --font-weight-{token_name(step)}: {weight};")
    lines.append("}")
    return "\n".join(lines) + "\n"


def tailwind_theme(artifact: DesignSystemArtifact) -> dict[str, Any]:
    """The ``theme.extend`` section of a Tailwind config."""
    typography = artifact.typography
    theme: dict[str, Any] = {
        "colors": {
            name: {"DEFAULT": palette.main, **palette.shades}
            for name, palette in palettes(artifact)
        },
        "fontFamily": {
            "heading": [safe_value(typography.heading_font), "sans-serif"],
            "body": [safe_value(typography.body_font), "sans-serif"],
            "mono": [safe_value(typography.mono_font), "monospace"],
        },
    }
    if typography.type_scale:
        theme["fontSize"] = {
            token_name(step): safe_value(size) for step, size in typography.type_scale.items()
        }
    if typography.line_heights:
        theme["lineHeight"] = {
            token_name(step): f"{height:g}" for step, height in typography.line_heights.items()
        }
    if typography.weights:
        theme["fontWeight"] = {
            token_name(step): str(weight) for step, weight in typography.weights.items()
        }
    return theme


def export_tailwind(artifact: DesignSystemArtifact) -> str:
    """A ``tailwind.config.js`` module. JSON is a valid JavaScript object literal."""
    config = {"theme": {"extend": tailwind_theme(artifact)}}
    return (
        "/** @type {import('tailwindcss').Config} */\n"
        f"module.exports = {json.dumps(config, indent=2)}\n"
    )


def _value_tokens(values: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {key: {"$value": value} for key, value in values.items()}


def figma_tokens(artifact: DesignSystemArtifact) -> dict[str, Any]:
    """Tokens in the Figma Tokens plugin format."""
    typography = artifact.typography
    colors: dict[str, Any] = {}
    for name, palette in palettes(artifact):
        colors[name] = {
            "$type": "color",
            "$description": palette.description or palette.name,
            "main": {"$value": palette.main},
            **_value_tokens(palette.shades),
        }
    return {
        "$metadata": {
            "generator": "design-system-forge",
            "artifactId": artifact.id,
            "generatedAt": artifact.metadata.generated_at.isoformat(),
            "tier": artifact.metadata.tier,
        },
        "colors": colors,
        "typography": {
            "fontFamilies": {
                "$type": "fontFamily",
                "heading": {"$value": typography.heading_font},
                "body": {"$value": typography.body_font},
                "mono": {"$value": typography.mono_font},
            },
            "fontSize": {"$type": "dimension", **_value_tokens(typography.type_scale)},
            "fontWeight": {"$type": "number", **_value_tokens(typography.weights)},
            "lineHeight": {"$type": "number", **_value_tokens(typography.line_heights)},
        },
    }


def export_figma(artifact: DesignSystemArtifact) -> str:
    return json.dumps(figma_tokens(artifact), indent=2, ensure_ascii=False) + "\n"


_RENDERERS: dict[ExportFormat, tuple[Callable[[DesignSystemArtifact], str], str, str]] = {
    ExportFormat.CSS: (export_css, "text/css", "design-tokens.css"),
    ExportFormat.TAILWIND: (export_tailwind, "text/javascript", "tailwind.config.js"),
    ExportFormat.FIGMA: (export_figma, "application/json", "figma-tokens.json"),
}


def render(artifact: DesignSystemArtifact, fmt: ExportFormat) -> RenderedExport:
    """Render ``artifact`` in ``fmt``."""
    renderer, media_type, filename = _RENDERERS[fmt]
    return RenderedExport(content=renderer(artifact), media_type=media_type, filename=filename)
