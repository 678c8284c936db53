"""Header-keyword entity type detector.

Scores each entity type by weighted keyword hits over the tokens of the
normalized headers. Runs alongside every mapping suggestion as a cross-check.
"""

from __future__ import annotations

from .transforms import normalize_column_name

KEYWORD_WEIGHTS: dict[str, dict[str, int]] = {
    "team": {
        "role": 3, "position": 2, "team": 2, "member": 2, "title": 1, "hire": 1,
        "active": 1, "first": 1, "last": 1, "department": 2, "commission": 1,
    },
    "leads": {
        "lead": 2, "source": 2, "utm": 3, "campaign": 1, "phone": 1, "stage": 1,
        "opt": 1, "interest": 1, "qualified": 2, "inquiry": 2,
    },
    "appointments": {
        "appointment": 3, "scheduled": 3, "booking": 3, "booked": 2, "show": 2,
        "setter": 1, "closer": 1, "outcome": 2, "time": 1, "form": 1, "meeting": 2,
    },
    "calls": {
        "call": 2, "duration": 3, "dial": 3, "dials": 3, "voicemail": 3, "connected": 2,
        "answered": 2, "recording": 1, "disposition": 2,
    },
    "deals": {
        "deal": 3, "revenue": 2, "cash": 3, "fees": 3, "fee": 3, "payment": 3,
        "currency": 3, "refund": 3, "contract": 2, "collected": 2, "closed": 1,
    },
}

DEFAULT_TYPE = "leads"


def score_headers(headers: list[str]) -> dict[str, int]:
    scores = {entity: 0 for entity in KEYWORD_WEIGHTS}
    for header in headers:
        tokens = [t for t in normalize_column_name(header).split("_") if t]
        for entity, weights in KEYWORD_WEIGHTS.items():
            scores[entity] += sum(weights.get(token, 0) for token in tokens)
    return scores


def detect_entity_type(headers: list[str]) -> tuple[str, int]:
    """Return (entity_type, confidence 0-100) for a header row."""
    scores = score_headers(headers)
    ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
    (best, top), (_, second) = ranked[0], ranked[1]
    if top == 0:
        return DEFAULT_TYPE, 30
    confidence = round(100 * top / (top + second))
    return best, max(30, min(confidence, 95))
