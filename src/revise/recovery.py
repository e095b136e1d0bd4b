"""Recover edit proposals from imperfect assistant output.

Assistants are asked for a single JSON object of the shape::

    {"assistant_message": "...", "think": "...", "plan": [...],
     "verify": "...", "done": false, "edits": [{"op": "write", ...}]}

Real responses arrive wrapped in Markdown fences, surrounded by prose, with
typographic quotes, or cut off mid-stream. Recovery tries, in order: the
whole text, the first balanced ``{...}`` object, and finally the array that
follows an ``"edits"`` key. ``None`` means nothing usable was found, which
callers treat as "no proposal" rather than an error.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .structured import EditOperation, edit_from_mapping
from .telemetry import emit_event
from .utils.brackets import extract_balanced

LOGGER = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Proposed changes recovered from a partial response."
_MAX_SNIPPET = 1200
_EDITS_KEY = re.compile(r'"edits"\s*:')
_PLAN_MARKER = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s*")


@dataclass(slots=True)
class RecoveredProposal:
    """Edits and commentary extracted from one assistant response."""

    edits: list[EditOperation] = field(default_factory=list)
    message: str = ""
    think: str | None = None
    plan: list[str] = field(default_factory=list)
    verify: str | None = None
    done: bool | None = None


class AssistantEnvelope(BaseModel):
    """Loose schema of the JSON object assistants are asked to emit."""

    model_config = ConfigDict(extra="ignore")

    assistant_message: Optional[str] = None
    summary: Optional[str] = None
    think: Optional[str] = None
    plan: List[str] = []
    verify: Optional[str] = None
    done: Optional[bool] = None
    edits: List[Any] = []

    @field_validator("assistant_message", "summary", "think", "verify", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (list, tuple)):
            return "\n".join(str(item) for item in value)
        return json.dumps(value) if isinstance(value, dict) else str(value)

    @field_validator("plan", mode="before")
    @classmethod
    def _coerce_plan(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.splitlines()
        if not isinstance(value, (list, tuple)):
            return [str(value)]
        steps = []
        for item in value:
            step = _PLAN_MARKER.sub("", str(item)).strip()
            if step:
                steps.append(step)
        return steps

    @field_validator("done", mode="before")
    @classmethod
    def _coerce_done(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return lowered if lowered in {"true", "false", "yes", "no", "1", "0"} else None
        if isinstance(value, (bool, int)):
            return bool(value)
        return None

    @field_validator("edits", mode="before")
    @classmethod
    def _coerce_edits(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []


def shorten_for_log(text: str) -> str:
    """Trim ``text`` for inclusion in log messages."""
    trimmed = text.strip()
    if not trimmed:
        return "<empty response body>"
    if len(trimmed) <= _MAX_SNIPPET:
        return trimmed
    return trimmed[:_MAX_SNIPPET] + "..."


def _strip_code_fence(payload: str) -> str:
    """Remove Markdown-style code fences that wrap JSON payloads."""
    if not payload.startswith("```"):
        return payload
    fence_header_match = re.match(r"```(?:json)?", payload[:10], re.IGNORECASE)
    if not fence_header_match:
        return payload
    content_start = payload.find("\n", len(fence_header_match.group(0)))
    if content_start == -1:
        return payload
    fence_end = payload.rfind("```")
    if fence_end <= content_start:
        # Unterminated fence: keep everything after the opening line.
        return payload[content_start + 1 :].strip()
    return payload[content_start + 1 : fence_end].strip()


def _normalise_json_string(payload: str) -> str:
    """Normalise common non-JSON characters emitted by models."""
    translation = {
        0x201C: '"',
        0x201D: '"',
        0x00A0: " ",
        0xFEFF: "",
    }
    return payload.translate(str.maketrans(translation))


def _strip_trailing_commas(payload: str) -> str:
    """Remove trailing commas before closing braces/brackets."""
    return re.sub(r",(\s*[}\]])", r"\1", payload)


def _loads(candidate: str | None) -> Any:
    """Decode ``candidate``, retrying with the usual model-output repairs."""
    if not candidate:
        return None
    attempts = [candidate]
    for repaired in (_strip_trailing_commas(candidate), _normalise_json_string(_strip_trailing_commas(candidate))):
        if repaired not in attempts:
            attempts.append(repaired)
    for attempt in attempts:
        try:
            return json.loads(attempt)
        except json.JSONDecodeError:
            continue
    return None


def _recover_object(text: str) -> dict[str, Any] | None:
    parsed = _loads(text)
    if isinstance(parsed, dict):
        return parsed
    parsed = _loads(extract_balanced(text, "{"))
    if isinstance(parsed, dict):
        return parsed
    return None


def _recover_edit_array(text: str) -> list[Any] | None:
    match = _EDITS_KEY.search(text)
    if match is None:
        return None
    parsed = _loads(extract_balanced(text, "[", start=match.end(), allow_truncated=True))
    return parsed if isinstance(parsed, list) else None


def _convert_edits(raw_edits: list[Any]) -> list[EditOperation]:
    edits = []
    for entry in raw_edits:
        edit = edit_from_mapping(entry)
        if edit is None:
            LOGGER.debug("Skipping unusable edit entry: %s", shorten_for_log(json.dumps(entry, default=str)))
            continue
        edits.append(edit)
    return edits


def recover_edits(raw_text: str) -> RecoveredProposal | None:
    """Extract a :class:`RecoveredProposal` from ``raw_text`` or return ``None``."""
    text = _strip_code_fence((raw_text or "").strip())
    if not text:
        return None

    payload = _recover_object(text)
    if payload is not None:
        try:
            envelope = AssistantEnvelope.model_validate(payload)
        except ValidationError as error:
            LOGGER.debug("Assistant payload failed validation: %s", error)
            envelope = None
        if envelope is not None:
            edits = _convert_edits(envelope.edits)
            message = (envelope.assistant_message or envelope.summary or "").strip()
            if edits or message:
                emit_event("edits.recovered", strategy="object", edits=len(edits))
                return RecoveredProposal(
                    edits=edits,
                    message=message,
                    think=envelope.think,
                    plan=list(envelope.plan),
                    verify=envelope.verify,
                    done=envelope.done,
                )

    raw_edits = _recover_edit_array(text)
    if raw_edits:
        edits = _convert_edits(raw_edits)
        if edits:
            LOGGER.warning("Recovered %d edit(s) from a truncated response", len(edits))
            emit_event("edits.recovered", strategy="edits-array", edits=len(edits))
            return RecoveredProposal(edits=edits, message=FALLBACK_MESSAGE)

    LOGGER.info("No edits recoverable from response: %s", shorten_for_log(text))
    return None
