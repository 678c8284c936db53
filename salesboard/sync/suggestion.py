"""Mapping suggestion port and its implementations.

``MappingSuggester`` is the contract the analysis path depends on. The
Anthropic-backed suggester asks a model for a mapping; the heuristic suggester
uses the header alias tables. Either way the result is reconciled with the
keyword type detector before anyone sees it.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

import anthropic
import httpx

from ..config import settings
from ..errors import MappingSuggestionUnavailable
from ..models import SHEET_TYPES
from ..schemas.mapping import ColumnMapping, MappingSuggestion
from .field_mapper import FIELD_ALIASES, auto_mappings, coerce_mappings, resolve_target
from .transforms import TRANSFORMATIONS, canonical_transformation, normalize_column_name
from .type_detector import detect_entity_type

logger = logging.getLogger(__name__)

CONFIDENCE_ANCHORS = {"high": 90, "medium": 60, "low": 30}
DEFAULT_CONFIDENCE = 50

SUGGESTED_DEFAULTS: dict[str, dict[str, str]] = {
    "leads": {"source": "other", "status": "new"},
    "appointments": {"status": "scheduled"},
    "deals": {"currency": "USD"},
}


def normalize_confidence(value: Any) -> int:
    """Coarse labels to anchors, numbers pass through (clamped), missing -> 50."""
    if value is None or isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    if isinstance(value, (int, float)):
        return max(0, min(100, round(value)))
    text = str(value).strip().lower()
    if text in CONFIDENCE_ANCHORS:
        return CONFIDENCE_ANCHORS[text]
    try:
        return max(0, min(100, round(float(text.rstrip("%")))))
    except ValueError:
        return DEFAULT_CONFIDENCE


class MappingSuggester(Protocol):
    async def suggest_mapping(
        self,
        entity_type_hint: str | None,
        headers: list[str],
        sample_rows: list[dict[str, str]],
    ) -> MappingSuggestion: ...


class HeuristicMappingSuggester:
    """Rule-based suggestions from the header alias tables."""

    async def suggest_mapping(
        self,
        entity_type_hint: str | None,
        headers: list[str],
        sample_rows: list[dict[str, str]],
    ) -> MappingSuggestion:
        detected, confidence = detect_entity_type(headers)
        entity_type = entity_type_hint if entity_type_hint in SHEET_TYPES else detected
        return MappingSuggestion(
            entity_type=entity_type,
            mappings=auto_mappings(entity_type, headers),
            suggested_defaults=dict(SUGGESTED_DEFAULTS.get(entity_type, {})),
            confidence=confidence,
        )


def _build_prompt(entity_type_hint: str | None) -> str:
    lines = [
        "You map spreadsheet columns onto a sales pipeline database.",
        "Entity types and their fields:",
    ]
    for entity, fields in FIELD_ALIASES.items():
        lines.append(f"- {entity}: {', '.join(fields)}")
    lines += [
        "Use target_field \"custom\" with a custom_key for useful columns with no field,",
        "and \"skip\" for columns to ignore.",
        f"Transformations: {', '.join(TRANSFORMATIONS)}.",
        "Use combine_datetime with time_column when date and time are separate columns.",
    ]
    if entity_type_hint:
        lines.append(f"The user expects this tab to contain {entity_type_hint}.")
    lines += [
        "Return ONLY JSON of the form:",
        '{"entity_type": "...", "confidence": 0-100, "mappings": [{"source_column": "...", '
        '"target_field": "...", "confidence": 0-100, "transformation": "...", "custom_key": null, '
        '"time_column": null}], "warnings": ["..."], "suggested_defaults": {"field": "value"}}',
    ]
    return "\n".join(lines)


def parse_suggestion_json(text: str) -> dict:
    """Pull the JSON object out of a model reply, tolerating code fences."""
    match = re.search(r"\{[\s\S]*\}", text or "")
    if not match:
        raise MappingSuggestionUnavailable("Suggestion reply contained no JSON object")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise MappingSuggestionUnavailable(f"Suggestion reply was not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MappingSuggestionUnavailable("Suggestion reply was not a JSON object")
    return data


class AnthropicMappingSuggester:
    """Mapping suggestions from Claude.

    Any failure (no key, API error, timeout, unparseable reply) surfaces as
    ``MappingSuggestionUnavailable``.
    """

    def __init__(self, api_key: str | None = None, model: str | None = None, client: Any = None):
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.anthropic_model
        self._client = client

    def _get_client(self):
        if self._client is not None:
            return self._client
        if not self.api_key:
            raise MappingSuggestionUnavailable("Set SB_ANTHROPIC_API_KEY to enable mapping suggestions.")
        self._client = anthropic.AsyncAnthropic(
            api_key=self.api_key, timeout=settings.suggestion_timeout_seconds,
        )
        return self._client

    async def suggest_mapping(
        self,
        entity_type_hint: str | None,
        headers: list[str],
        sample_rows: list[dict[str, str]],
    ) -> MappingSuggestion:
        client = self._get_client()
        user_prompt = (
            f"Column headers: {json.dumps(headers)}\n\n"
            f"Sample rows:\n{json.dumps(sample_rows[:3], indent=2)}"
        )
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=2048,
                system=_build_prompt(entity_type_hint),
                messages=[{"role": "user", "content": user_prompt}],
            )
        except (anthropic.APIError, httpx.HTTPError) as e:
            logger.warning("Mapping suggestion request failed: %s", e)
            raise MappingSuggestionUnavailable(f"Mapping suggestion request failed: {e}") from e

        text = "".join(getattr(block, "text", "") for block in response.content)
        data = parse_suggestion_json(text)

        entity_type = str(data.get("entity_type") or entity_type_hint or "").strip().lower()
        if entity_type not in SHEET_TYPES:
            entity_type = entity_type_hint if entity_type_hint in SHEET_TYPES else detect_entity_type(headers)[0]
        return MappingSuggestion(
            entity_type=entity_type,
            mappings=coerce_mappings(data.get("mappings")),
            warnings=[str(w) for w in data.get("warnings") or []],
            suggested_defaults={
                str(k): str(v) for k, v in (data.get("suggested_defaults") or {}).items() if v is not None
            },
            confidence=normalize_confidence(data.get("confidence")),
        )


def reconcile_suggestion(
    suggestion: MappingSuggestion,
    headers: list[str],
    entity_type_hint: str | None = None,
) -> MappingSuggestion:
    """Cross-check a suggestion against the keyword detector and clean its mappings.

    The user's hint wins outright. Otherwise a disagreement goes to the
    detector only when it is confident and the suggestion is not.
    """
    detected, detected_confidence = detect_entity_type(headers)
    warnings = list(suggestion.warnings)
    entity_type = suggestion.entity_type
    confidence = suggestion.confidence

    if entity_type_hint in SHEET_TYPES:
        if entity_type != entity_type_hint:
            warnings.append(f"Suggested type {entity_type!r} overridden by requested type {entity_type_hint!r}")
        entity_type = entity_type_hint
    elif entity_type not in SHEET_TYPES:
        entity_type, confidence = detected, detected_confidence
    elif entity_type == detected:
        confidence = max(confidence, detected_confidence)
    else:
        if detected_confidence >= 70 and confidence < detected_confidence:
            warnings.append(f"Headers look like {detected}, not {entity_type}; using {detected}")
            entity_type, confidence = detected, detected_confidence
        else:
            warnings.append(f"Headers also resemble {detected} (confidence {detected_confidence})")

    if entity_type != suggestion.entity_type:
        # The suggested mapping targeted another entity's fields
        mappings = auto_mappings(entity_type, headers)
    else:
        mappings = _clean_mappings(entity_type, suggestion.mappings, headers, warnings)

    defaults = dict(SUGGESTED_DEFAULTS.get(entity_type, {}))
    defaults.update(suggestion.suggested_defaults)
    return MappingSuggestion(
        entity_type=entity_type,
        mappings=mappings,
        warnings=warnings,
        suggested_defaults={k: v for k, v in defaults.items() if resolve_target(entity_type, k)},
        confidence=confidence,
    )


def _clean_mappings(
    entity_type: str, mappings: list[ColumnMapping], headers: list[str], warnings: list[str],
) -> list[ColumnMapping]:
    known = set(headers)
    cleaned: list[ColumnMapping] = []
    for m in mappings:
        if m.source_column not in known:
            warnings.append(f"Ignoring mapping for unknown column {m.source_column!r}")
            continue
        update: dict[str, Any] = {}
        if canonical_transformation(m.transformation) is None:
            update["transformation"] = "none"
        if not m.is_dropped and m.target_field != "custom":
            field = resolve_target(entity_type, m.target_field)
            if field is None:
                warnings.append(f"{m.source_column!r}: unknown field {m.target_field!r}, kept as custom")
                update.update(target_field="custom", custom_key=m.custom_key or normalize_column_name(m.source_column))
            elif field != m.target_field:
                update["target_field"] = field
        cleaned.append(m.model_copy(update=update) if update else m)

    mapped = {m.source_column for m in cleaned}
    for header in headers:
        if header and header not in mapped:
            cleaned.append(ColumnMapping(source_column=header, target_field="skip", confidence=DEFAULT_CONFIDENCE))
    return cleaned
