"""
Generation Orchestrator - Brand description in, design system artifact out.

The model call is the only long-blocking step of a request. It runs under
asyncio.wait_for: on timeout the in-flight call is cancelled and
GenerationTimeoutError raised. Cancelling the caller's task cancels the call
too (CancelledError propagates untouched). Nothing here persists or charges.
"""

import asyncio
import json
import time
from typing import Any

import anthropic
from pydantic import ValidationError

from app.config import settings
from app.exceptions import GenerationFailedError, GenerationTimeoutError, InvalidAIResponseError
from app.models.api import GuardKind
from app.models.artifact import DesignSystemArtifact
from app.models.domain import ModelRequest, ModelResponse, TierConfig
from app.observability.logging import get_logger
from app.observability.metrics import metrics
from app.observability.tracing import model_span, record_usage
from app.services import input_guard, tiers
from app.services.ai_client import GenerativeModel

logger = get_logger(__name__)

# Palettes every tier gets: primary, secondary, accent, neutral + 4 semantic
CORE_PALETTE_COUNT = 8

_SYSTEM_PROMPT = """You are a senior brand and UI designer. You create complete, \
production-ready design systems from a short brand description.

Respond with a single JSON object and nothing else. No markdown, no commentary.

Schema:
{{
  "colors": {{
    "primary":   {{"name": str, "main": "#RRGGBB", "description": str}},
    "secondary": {{"name": str, "main": "#RRGGBB", "description": str}},
    "accent":    {{"name": str, "main": "#RRGGBB", "description": str}},
    "neutral":   {{"name": str, "main": "#RRGGBB", "description": str}},
    "semantic": {{
      "success": {{"name": str, "main": "#RRGGBB"}},
      "error":   {{"name": str, "main": "#RRGGBB"}},
      "warning": {{"name": str, "main": "#RRGGBB"}},
      "info":    {{"name": str, "main": "#RRGGBB"}}
    }}{additional_schema}
  }},
  "typography": {{
    "heading_font": str,
    "body_font": str,
    "mono_font": str,
    "font_pairs": [{{"name": str, "heading": str, "body": str, "description": str, "use_case": str}}],
    "type_scale": {{"<step name>": "<size in rem>"}},
    "line_heights": {{"<name>": float}},
    "weights": {{"<name>": int}}
  }}{components_schema}
}}

Requirements:
- {font_pairings} font pairs using Google Fonts families.
- A type scale with exactly {type_scale_sizes} steps.
- Primary, secondary and accent colors should reach at least 4.5:1 contrast on white.
- Colors must reflect the brand's personality; avoid generic defaults.
- Shades are derived automatically; do not include them.
"""

_ADDITIONAL_SCHEMA = """,
    "additional": {"<palette key>": {"name": str, "main": "#RRGGBB", "description": str}}"""

_COMPONENTS_SCHEMA = """,
  "components": [{"name": str, "description": str}]"""


def build_prompt(brand_description: str, tier: TierConfig) -> ModelRequest:
    """Build the tier-parameterized generation prompt."""
    extra_palettes = max(0, tier.palettes - CORE_PALETTE_COUNT)
    system_prompt = _SYSTEM_PROMPT.format(
        additional_schema=_ADDITIONAL_SCHEMA if extra_palettes else "",
        components_schema=_COMPONENTS_SCHEMA if tier.include_components else "",
        font_pairings=tier.font_pairings,
        type_scale_sizes=tier.type_scale_sizes,
    )

    lines = [
        f"Brand description: {brand_description}",
        "",
        f"Quality tier: {tier.display_name}.",
    ]
    if extra_palettes:
        lines.append(
            f"Include {extra_palettes} additional palettes for dark mode surfaces "
            "and UI states (hover, focus, disabled) under colors.additional."
        )
    if tier.include_components:
        lines.append("Describe 6-10 core UI components (buttons, inputs, cards, ...).")

    return ModelRequest(
        system_prompt=system_prompt,
        user_prompt="\n".join(lines),
        max_tokens=tier.max_tokens,
        temperature=tier.temperature,
    )


def strip_json_fences(content: str) -> str:
    """Remove markdown code fences wrapping JSON output."""
    content = content.strip()
    if content.startswith("```"):
        first_newline = content.find("\n")
        if first_newline != -1:
            content = content[first_newline + 1 :]
        if content.endswith("```"):
            content = content[:-3].rstrip()
    return content


def extract_json(text: str, max_chars: int | None = None) -> dict[str, Any]:
    """
    Parse a JSON object out of a model response.

    Oversized responses are cut at the last closing brace within
    ``max_chars``. When the first parse fails, leading and trailing text
    around the outermost braces is dropped and parsing retried once.

    Raises:
        InvalidAIResponseError: No JSON object could be parsed
    """
    max_chars = max_chars or settings.max_ai_response_chars
    content = strip_json_fences(text)

    if len(content) > max_chars:
        last_brace = content.rfind("}", 0, max_chars)
        content = content[: last_brace + 1] if last_brace != -1 else content[:max_chars]
        logger.warning("ai_response_truncated", original_chars=len(text), max_chars=max_chars)

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        start, end = content.find("{"), content.rfind("}")
        if start == -1 or end <= start:
            raise InvalidAIResponseError("response contains no JSON object")
        try:
            parsed = json.loads(content[start : end + 1])
        except json.JSONDecodeError as e:
            raise InvalidAIResponseError(f"malformed JSON: {e.msg}") from e

    if not isinstance(parsed, dict):
        raise InvalidAIResponseError("response JSON is not an object")
    return parsed


def _normalize_components(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    components = []
    for item in raw:
        if isinstance(item, str):
            components.append({"name": item})
        elif isinstance(item, dict) and item.get("name"):
            components.append({"name": item["name"], "description": item.get("description")})
    return components


def build_artifact(
    data: dict[str, Any],
    tier: TierConfig,
    response: ModelResponse,
    brand_description: str,
    generation_ms: int,
) -> DesignSystemArtifact:
    """
    Validate parsed model output into an artifact.

    Raises:
        InvalidAIResponseError: Output does not fit the artifact schema
    """
    if "colors" not in data or "typography" not in data:
        raise InvalidAIResponseError("response is missing colors or typography")

    try:
        return DesignSystemArtifact.model_validate(
            {
                "colors": data["colors"],
                "typography": data["typography"],
                "components": (
                    _normalize_components(data.get("components"))
                    if tier.include_components
                    else []
                ),
                "metadata": {
                    "tier": tier.name,
                    "provider": response.provider,
                    "model": response.model,
                    "tokens_used": response.tokens_used,
                    "response_size": len(response.text),
                    "generation_ms": generation_ms,
                    "brand_summary": brand_description[:100],
                },
            }
        )
    except ValidationError as e:
        raise InvalidAIResponseError(
            f"schema validation failed ({e.error_count()} errors)"
        ) from e


class GenerationOrchestrator:
    """Runs one bounded generative model call and validates the result."""

    def __init__(
        self,
        model: GenerativeModel,
        timeout_seconds: float | None = None,
        max_response_chars: int | None = None,
    ) -> None:
        self.model = model
        self.timeout_seconds = timeout_seconds or settings.generation_timeout_seconds
        self.max_response_chars = max_response_chars or settings.max_ai_response_chars

    async def generate(self, brand_description: str, tier: str) -> DesignSystemArtifact:
        """
        Generate a design system for a brand.

        Raises:
            InputValidationError: Description invalid or tier unknown
            GenerationTimeoutError: Model exceeded the timeout
            InvalidAIResponseError: Model output unusable
            GenerationFailedError: Any other provider failure
        """
        description = input_guard.require_valid(brand_description, GuardKind.BRAND_DESCRIPTION)
        tier_config = tiers.get(tier)
        request = build_prompt(description, tier_config)

        logger.info("generation_started", tier=tier_config.name, timeout=self.timeout_seconds)
        started = time.monotonic()

        with model_span("generate_design_system", settings.ai_model, tier=tier_config.name) as span:
            response = await self._invoke(request, tier_config, started)
            generation_ms = int((time.monotonic() - started) * 1000)
            record_usage(span, response)

            try:
                data = extract_json(response.text, self.max_response_chars)
                artifact = build_artifact(
                    data, tier_config, response, description, generation_ms
                )
            except InvalidAIResponseError as e:
                metrics.record_generation(
                    tier_config.name, "invalid_response", generation_ms / 1000, len(response.text)
                )
                logger.warning(
                    "generation_invalid_response",
                    tier=tier_config.name,
                    response_chars=len(response.text),
                    error=e.message,
                )
                raise

        metrics.record_generation(
            tier_config.name, "success", generation_ms / 1000, len(response.text)
        )
        logger.info(
            "generation_completed",
            tier=tier_config.name,
            artifact_id=artifact.id,
            generation_ms=generation_ms,
            tokens_used=response.tokens_used,
        )
        return artifact

    async def _invoke(
        self, request: ModelRequest, tier: TierConfig, started: float
    ) -> ModelResponse:
        """Call the model under the timeout, mapping provider failures."""
        try:
            return await asyncio.wait_for(self.model.invoke(request), timeout=self.timeout_seconds)
        except (TimeoutError, anthropic.APITimeoutError) as e:
            metrics.record_generation(tier.name, "timeout", time.monotonic() - started)
            logger.warning(
                "generation_timeout", tier=tier.name, timeout=self.timeout_seconds
            )
            raise GenerationTimeoutError(self.timeout_seconds) from e
        except Exception as e:
            metrics.record_generation(tier.name, "failed", time.monotonic() - started)
            logger.error(
                "generation_failed",
                tier=tier.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GenerationFailedError(type(e).__name__) from e
