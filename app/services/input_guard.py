"""
Input Guard - Sanitization and validation of untrusted free text.

Runs before any credit check or model call. Rejects prompt-injection
patterns rather than trying to neutralize them.
"""

import json
import re
from dataclasses import dataclass

from pydantic import BaseModel

from app.exceptions import InputValidationError
from app.models.api import GuardKind
from app.models.domain import GuardResult

STRUCTURED_PAYLOAD_MAX_BYTES = 100 * 1024
DESIGN_PAYLOAD_MAX_BYTES = 500 * 1024

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_WHITESPACE = re.compile(r"\s+")
_HTML_UNSAFE = re.compile(r"[<>\"'&]")

INJECTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"ignore\s+(previous|above|all)\s+(instructions?|prompts?)", re.IGNORECASE),
    re.compile(r"system\s*:\s*you\s+are", re.IGNORECASE),
    re.compile(r"\[INST\]|\[/INST\]", re.IGNORECASE),
    re.compile(r"<\|im_start\|>|<\|im_end\|>", re.IGNORECASE),
    re.compile(r"###\s*(system|user|assistant)\s*:", re.IGNORECASE),
)


@dataclass(frozen=True)
class _KindRule:
    label: str
    min_length: int
    max_length: int
    strip_html: bool = False


_RULES: dict[GuardKind, _KindRule] = {
    GuardKind.BRAND_DESCRIPTION: _KindRule("Brand description", 10, 500),
    GuardKind.REFINEMENT_INSTRUCTION: _KindRule("Refinement instruction", 1, 1000),
    GuardKind.DESIGN_SYSTEM_NAME: _KindRule("Design system name", 1, 200, strip_html=True),
}


def sanitize(text: str, max_length: int) -> str:
    """Strip control characters, collapse whitespace, trim and truncate."""
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:max_length]


def contains_injection(text: str) -> bool:
    return any(pattern.search(text) for pattern in INJECTION_PATTERNS)


def validate(text: str | None, kind: GuardKind) -> GuardResult:
    """
    Validate one free-text input of the given kind.

    Length is checked on the raw text (after trimming) so that oversized
    input is rejected rather than silently truncated. The sanitized text is
    returned for use downstream.
    """
    rule = _RULES[kind]
    if text is None or not isinstance(text, str):
        return GuardResult(valid=False, sanitized="", error=f"{rule.label} is required")

    sanitized = sanitize(text, rule.max_length)
    if rule.strip_html:
        sanitized = _HTML_UNSAFE.sub("", sanitized).strip()

    if not sanitized:
        return GuardResult(valid=False, sanitized="", error=f"{rule.label} is required")

    raw_length = len(_WHITESPACE.sub(" ", _CONTROL_CHARS.sub("", text)).strip())
    if raw_length > rule.max_length:
        return GuardResult(
            valid=False,
            sanitized=sanitized,
            error=f"{rule.label} must be at most {rule.max_length} characters",
        )
    if len(sanitized) < rule.min_length:
        return GuardResult(
            valid=False,
            sanitized=sanitized,
            error=f"{rule.label} must be at least {rule.min_length} characters",
        )
    if contains_injection(text):
        return GuardResult(
            valid=False,
            sanitized=sanitized,
            error="Input contains potentially harmful content",
        )
    return GuardResult(valid=True, sanitized=sanitized)


def require_valid(text: str | None, kind: GuardKind) -> str:
    """
    Validate and return the sanitized text.

    Raises:
        InputValidationError: If the text is invalid
    """
    result = validate(text, kind)
    if not result.valid:
        raise InputValidationError(result.error or "Invalid input", field=kind.value)
    return result.sanitized


def payload_size(payload: object) -> int:
    """UTF-8 byte size of the JSON serialization of a payload."""
    if isinstance(payload, BaseModel):
        return len(payload.model_dump_json().encode("utf-8"))
    return len(json.dumps(payload, default=str, separators=(",", ":")).encode("utf-8"))


def validate_payload_size(
    payload: object, max_bytes: int = STRUCTURED_PAYLOAD_MAX_BYTES
) -> bool:
    return payload_size(payload) <= max_bytes


def require_payload_size(
    payload: object, max_bytes: int = STRUCTURED_PAYLOAD_MAX_BYTES, field: str | None = None
) -> None:
    """
    Raises:
        InputValidationError: If the serialized payload exceeds ``max_bytes``
    """
    if not validate_payload_size(payload, max_bytes):
        raise InputValidationError(
            f"Payload too large (max {max_bytes // 1024} KB)", field=field
        )
