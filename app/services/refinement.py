"""
Refinement Engine - Constraint-preserving mutation of a previous artifact.

Keep flags become an explicit set of locked field paths that every step
consults. Steps run in a fixed order: accessibility, tone (the only model
call), specific changes. The previous artifact is never modified; a failed
tone call yields the previous artifact unchanged with ``degraded=True``.
"""

import asyncio
import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import anthropic

from app.config import settings
from app.exceptions import InvalidAIResponseError, RefinementDegradedError
from app.models.artifact import TEXT_PAIRS, DesignSystemArtifact
from app.models.domain import ModelRequest, RefinementConstraints, RefinementResult
from app.observability.logging import get_logger
from app.observability.metrics import metrics
from app.observability.tracing import model_span, record_usage
from app.services import colors
from app.services.ai_client import GenerativeModel
from app.services.generation import extract_json

logger = get_logger(__name__)

PRIMARY = "colors.primary"
SECONDARY = "colors.secondary"
ACCENT = "colors.accent"
TYPOGRAPHY = "typography"

# Palettes the engine may recolor, in report order
MUTABLE_PALETTES: tuple[str, ...] = ("primary", "secondary", "accent")

# Reported pairs whose background is another shade of the same palette
SHADE_TEXT_PAIRS = tuple(pair for pair in TEXT_PAIRS if not pair[3].startswith("#"))

LIGHTNESS_STEP = 10.0
SATURATION_STEP = 15.0
TYPE_SCALE_FACTOR = 1.125

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-z%]*)\s*$")

_TONE_SYSTEM_PROMPT = """You adjust the tone of an existing design system.
Respond with a single JSON object and nothing else. Only include the fields \
listed as adjustable; any other field is ignored.

Shape:
{"colors": {"<palette>": {"name": str, "main": "#RRGGBB"}},
 "typography": {"heading_font": str, "body_font": str}}
"""


def locked_paths(constraints: RefinementConstraints) -> frozenset[str]:
    """Field paths a refinement must leave untouched."""
    locked: set[str] = set()
    if constraints.keep_primary_color:
        locked.add(PRIMARY)
    if constraints.keep_secondary_color:
        locked.add(SECONDARY)
    if constraints.keep_typography:
        locked.add(TYPOGRAPHY)
    locked.update(f"components.{name.lower()}" for name in constraints.keep_components)
    return frozenset(locked)


def _set_main(data: dict[str, Any], palette: str, main: str) -> None:
    entry = data["colors"][palette]
    entry["main"] = main
    entry["shades"] = colors.generate_shades(main)


def _unlocked_palettes(locked: frozenset[str]) -> list[str]:
    return [p for p in MUTABLE_PALETTES if f"colors.{p}" not in locked]


def ensure_accessible(data: dict[str, Any], locked: frozenset[str]) -> list[str]:
    """
    Repair the reported text pairs that fail AA.

    Each unlocked palette main is darkened (or lightened) until it passes on
    white, and shades are regenerated. Shade-on-shade pairs such as neutral
    900 on 50 move only the foreground shade. Lightness moves in 2-point
    steps; hue and saturation are unchanged. The on-black pairs are
    report-only.
    """
    applied = []
    for palette in _unlocked_palettes(locked):
        main = data["colors"][palette]["main"]
        if colors.check_wcag(main, colors.WHITE).aa:
            continue
        fixed = colors.improve_contrast(main, colors.WHITE, colors.WCAG_AA_RATIO, step=2.0)
        _set_main(data, palette, fixed)
        ratio = colors.check_wcag(fixed, colors.WHITE).ratio
        applied.append(f"Adjusted {palette} {main} -> {fixed} for WCAG AA ({ratio}:1 on white)")

    for _, palette, fg_shade, bg_shade in SHADE_TEXT_PAIRS:
        entry = data["colors"].get(palette)
        if entry is None or f"colors.{palette}" in locked:
            continue
        shades = entry["shades"]
        foreground, background = shades[fg_shade], shades[bg_shade]
        if colors.check_wcag(foreground, background).aa:
            continue
        fixed = colors.improve_contrast(foreground, background, colors.WCAG_AA_RATIO, step=2.0)
        shades[fg_shade] = fixed
        ratio = colors.check_wcag(fixed, background).ratio
        applied.append(
            f"Adjusted {palette} {fg_shade} {foreground} -> {fixed} "
            f"for WCAG AA ({ratio}:1 on {palette} {bg_shade})"
        )
    return applied


def _shift_lightness(delta: float) -> Callable[[dict[str, Any], frozenset[str]], str | None]:
    def apply(data: dict[str, Any], locked: frozenset[str]) -> str | None:
        targets = _unlocked_palettes(locked)
        for palette in targets:
            _set_main(data, palette, colors.adjust_lightness(data["colors"][palette]["main"], delta))
        return ", ".join(targets) or None

    return apply


def _shift_saturation(delta: float) -> Callable[[dict[str, Any], frozenset[str]], str | None]:
    def apply(data: dict[str, Any], locked: frozenset[str]) -> str | None:
        targets = _unlocked_palettes(locked)
        for palette in targets:
            _set_main(data, palette, colors.adjust_saturation(data["colors"][palette]["main"], delta))
        return ", ".join(targets) or None

    return apply


def _increase_contrast(data: dict[str, Any], locked: frozenset[str]) -> str | None:
    targets = _unlocked_palettes(locked)
    for palette in targets:
        main = data["colors"][palette]["main"]
        _set_main(data, palette, colors.improve_contrast(main, colors.WHITE, colors.WCAG_AAA_RATIO))
    return ", ".join(targets) or None


def _scale_type(factor: float) -> Callable[[dict[str, Any], frozenset[str]], str | None]:
    def apply(data: dict[str, Any], locked: frozenset[str]) -> str | None:
        if TYPOGRAPHY in locked:
            return None
        scale = data["typography"]["type_scale"]
        for step, size in scale.items():
            match = _SIZE_RE.match(str(size))
            if match is None:
                continue
            value = round(float(match.group(1)) * factor, 3)
            scale[step] = f"{value:g}{match.group(2)}"
        return "type scale"

    return apply


CHANGE_HANDLERS: dict[str, Callable[[dict[str, Any], frozenset[str]], str | None]] = {
    "make darker": _shift_lightness(-LIGHTNESS_STEP),
    "make lighter": _shift_lightness(LIGHTNESS_STEP),
    "increase contrast": _increase_contrast,
    "decrease contrast": _shift_lightness(LIGHTNESS_STEP * 0.8),
    "more saturated": _shift_saturation(SATURATION_STEP),
    "less saturated": _shift_saturation(-SATURATION_STEP),
    "larger text": _scale_type(TYPE_SCALE_FACTOR),
    "smaller text": _scale_type(1 / TYPE_SCALE_FACTOR),
}


def apply_specific_changes(
    data: dict[str, Any], changes: tuple[str, ...], locked: frozenset[str]
) -> tuple[list[str], list[str]]:
    """Apply known changes in order. Returns (applied, skipped) descriptions."""
    applied: list[str] = []
    skipped: list[str] = []
    for change in changes:
        handler = CHANGE_HANDLERS.get(change.strip().lower())
        if handler is None:
            skipped.append(f"{change} (not supported)")
            continue
        target = handler(data, locked)
        if target is None:
            skipped.append(f"{change} (locked)")
        else:
            applied.append(f"{change.strip().lower()}: {target}")
    return applied, skipped


def _restore_locked(
    data: dict[str, Any], original: dict[str, Any], locked: frozenset[str]
) -> None:
    """Copy locked fields back from the original."""
    for palette in ("primary", "secondary"):
        if f"colors.{palette}" in locked:
            data["colors"][palette] = original["colors"][palette]
    if TYPOGRAPHY in locked:
        data["typography"] = original["typography"]


def build_explanation(
    constraints: RefinementConstraints,
    applied: list[str],
    skipped: list[str],
) -> str:
    """Templated summary of honored constraints and changes."""
    preserved = []
    if constraints.keep_primary_color:
        preserved.append("primary color")
    if constraints.keep_secondary_color:
        preserved.append("secondary color")
    if constraints.keep_typography:
        preserved.append("typography")
    if constraints.keep_components:
        preserved.append("components " + ", ".join(constraints.keep_components))

    parts = []
    if preserved:
        parts.append("Preserved " + ", ".join(preserved) + ".")
    if applied:
        parts.append("Applied: " + "; ".join(applied) + ".")
    else:
        parts.append("No changes were needed.")
    if skipped:
        parts.append("Skipped: " + "; ".join(skipped) + ".")
    return " ".join(parts)


class RefinementEngine:
    """Refines a previous artifact under constraints."""

    def __init__(self, model: GenerativeModel, timeout_seconds: float | None = None) -> None:
        self.model = model
        self.timeout_seconds = timeout_seconds or settings.refinement_timeout_seconds

    async def refine(
        self,
        previous: DesignSystemArtifact,
        constraints: RefinementConstraints,
        instruction: str | None = None,
    ) -> RefinementResult:
        """
        Build a refined artifact. Never raises for model failures.

        Args:
            previous: Artifact to refine (not modified)
            constraints: What to keep and what to change
            instruction: Sanitized free text, passed to the tone prompt
        """
        original = previous.model_dump(mode="json")
        data = previous.model_dump(mode="json")
        locked = locked_paths(constraints)
        applied: list[str] = []
        skipped: list[str] = []

        if constraints.improve_accessibility:
            applied.extend(ensure_accessible(data, locked))

        if constraints.adjust_tone is not None:
            try:
                applied.extend(
                    await self._adjust_tone(data, constraints.adjust_tone.value, locked, instruction)
                )
            except RefinementDegradedError as e:
                metrics.record_refinement("degraded")
                logger.warning("refinement_degraded", artifact_id=previous.id, error=e.message)
                return RefinementResult(
                    refined=previous,
                    explanation="Refinement failed. Original design returned.",
                    degraded=True,
                    skipped_changes=(f"tone: {constraints.adjust_tone.value}",),
                )

        changes_applied, changes_skipped = apply_specific_changes(
            data, constraints.specific_changes, locked
        )
        applied.extend(changes_applied)
        skipped.extend(changes_skipped)

        if constraints.improve_accessibility:
            applied.extend(ensure_accessible(data, locked))

        _restore_locked(data, original, locked)
        data["id"] = str(uuid4())
        data["parent_id"] = previous.id
        data["metadata"]["generated_at"] = datetime.now(UTC).isoformat()
        refined = DesignSystemArtifact.model_validate(data)

        metrics.record_refinement("success")
        logger.info(
            "refinement_completed",
            artifact_id=refined.id,
            parent_id=previous.id,
            applied=len(applied),
            skipped=len(skipped),
        )
        return RefinementResult(
            refined=refined,
            explanation=build_explanation(constraints, applied, skipped),
            applied_changes=tuple(applied),
            skipped_changes=tuple(skipped),
        )

    async def _adjust_tone(
        self,
        data: dict[str, Any],
        tone: str,
        locked: frozenset[str],
        instruction: str | None,
    ) -> list[str]:
        """
        Ask the model for a tone shift and apply it to unlocked fields only.

        Raises:
            RefinementDegradedError: Timeout, provider failure or unusable reply
        """
        palettes = _unlocked_palettes(locked)
        typography_open = TYPOGRAPHY not in locked
        if not palettes and not typography_open:
            return []

        adjustable = [
            f"- colors.{p}: {data['colors'][p]['name']} {data['colors'][p]['main']}"
            for p in palettes
        ]
        if typography_open:
            adjustable.append(
                f"- typography: heading {data['typography']['heading_font']}, "
                f"body {data['typography']['body_font']}"
            )
        user_prompt = "\n".join(
            [
                f"Make this design system {tone}.",
                *([f"User request: {instruction}"] if instruction else []),
                "Adjustable fields (current values):",
                *adjustable,
            ]
        )
        request = ModelRequest(
            system_prompt=_TONE_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            max_tokens=800,
            temperature=0.7,
        )

        with model_span("refine_tone", settings.ai_model, tone=tone) as span:
            try:
                response = await asyncio.wait_for(
                    self.model.invoke(request), timeout=self.timeout_seconds
                )
                record_usage(span, response)
                reply = extract_json(response.text)
            except (TimeoutError, anthropic.APITimeoutError) as e:
                raise RefinementDegradedError(f"tone call exceeded {self.timeout_seconds}s") from e
            except InvalidAIResponseError as e:
                raise RefinementDegradedError(e.message) from e
            except Exception as e:
                raise RefinementDegradedError(type(e).__name__) from e

        return self._apply_tone_reply(data, reply, palettes, typography_open, tone)

    def _apply_tone_reply(
        self,
        data: dict[str, Any],
        reply: dict[str, Any],
        palettes: list[str],
        typography_open: bool,
        tone: str,
    ) -> list[str]:
        applied = []
        reply_colors = reply.get("colors") if isinstance(reply.get("colors"), dict) else {}
        for palette in palettes:
            entry = reply_colors.get(palette)
            if not isinstance(entry, dict) or "main" not in entry:
                continue
            try:
                main = colors.normalize_hex(entry["main"])
            except ValueError:
                logger.warning("tone_reply_invalid_color", palette=palette, value=str(entry["main"]))
                continue
            _set_main(data, palette, main)
            if isinstance(entry.get("name"), str) and entry["name"].strip():
                data["colors"][palette]["name"] = entry["name"].strip()[:100]
            else:
                data["colors"][palette]["name"] = colors.color_name(main)
            applied.append(f"{tone}: {palette} -> {main}")

        reply_typography = reply.get("typography")
        if typography_open and isinstance(reply_typography, dict):
            for field_name in ("heading_font", "body_font"):
                value = reply_typography.get(field_name)
                if isinstance(value, str) and value.strip():
                    data["typography"][field_name] = value.strip()
                    applied.append(f"{tone}: {field_name} -> {value.strip()}")

        if not applied:
            raise RefinementDegradedError("tone reply contained no applicable fields")
        return applied
