"""Free-text status normalization.

Each function maps a sheet's status cell onto a closed vocabulary using ordered
substring rules. Multi-token rules come first ("no show" before "show",
"no close" before "close"). Pure and deterministic.
"""

from __future__ import annotations

import re

LEAD_STATUSES = ("new", "contacted", "qualified", "unqualified")
APPOINTMENT_STATUSES = ("scheduled", "completed", "no_show", "cancelled", "rescheduled")
CALL_OUTCOMES = ("closed", "no_close", "follow_up", "no_show", "cancelled", "pending")
CALL_STATUSES = ("connected", "no_answer", "voicemail", "completed")
DEAL_STATUSES = ("pending", "won", "lost", "refunded", "chargeback")
ROLES = ("setter", "closer", "admin")


def _clean(value: str | None) -> str:
    """Lowercase, punctuation to spaces, collapsed whitespace."""
    text = re.sub(r"[^a-z0-9']+", " ", (value or "").lower())
    return " ".join(text.split())


def _tokens(text: str) -> set[str]:
    return set(text.split())


def _is_no_show(text: str) -> bool:
    tokens = _tokens(text)
    if "dns" in tokens or "noshow" in tokens:
        return True
    if "no" in tokens and "show" in tokens:
        return True
    return "did not show" in text or "didn't show" in text or "didnt show" in text


def _is_no_close(text: str) -> bool:
    return any(p in text for p in ("no close", "not closed", "didn't close", "didnt close", "did not close", "noclose"))


def normalize_lead_status(value: str | None) -> str:
    text = _clean(value)
    if not text:
        return "new"
    if "unqualified" in text or "disqualified" in text or "not qualified" in text:
        return "unqualified"
    if "qualified" in text:
        return "qualified"
    if "contact" in text or "reached" in text:
        return "contacted"
    return "new"


def normalize_appointment_status(value: str | None) -> str:
    text = _clean(value)
    if not text:
        return "scheduled"
    if "cancel" in text:
        return "cancelled"
    if _is_no_show(text):
        return "no_show"
    if "resch" in text:
        return "rescheduled"
    tokens = _tokens(text)
    if tokens & {"completed", "complete", "done", "closed", "showed", "show", "held", "attended"}:
        return "completed"
    return "scheduled"


def normalize_call_outcome(value: str | None) -> str:
    """Outcome of a sales call; ``closed`` is the terminal state that yields a deal."""
    text = _clean(value)
    if not text:
        return "pending"
    if _is_no_close(text):
        return "no_close"
    if _is_no_show(text):
        return "no_show"
    if "cancel" in text:
        return "cancelled"
    if "follow" in text or "callback" in text or "call back" in text:
        return "follow_up"
    tokens = _tokens(text)
    if tokens & {"won", "closed", "close", "sold", "paid"}:
        return "closed"
    return "pending"


def normalize_call_status(value: str | None) -> str:
    text = _clean(value)
    if not text:
        return "connected"
    if "no answer" in text or "noanswer" in text or "unanswered" in text or "didn't answer" in text:
        return "no_answer"
    if "voicemail" in text or "vm" in _tokens(text):
        return "voicemail"
    if "complete" in text or "done" in text:
        return "completed"
    return "connected"


def normalize_deal_status(value: str | None) -> str:
    text = _clean(value)
    if not text:
        return "pending"
    if "refund" in text:
        return "refunded"
    if "charge" in text:
        return "chargeback"
    if _is_no_close(text) or _tokens(text) & {"lost", "dead"}:
        return "lost"
    if _tokens(text) & {"won", "closed", "close", "paid", "sold"}:
        return "won"
    return "pending"


def normalize_role(value: str | None) -> str:
    text = _clean(value)
    if "admin" in text or "manager" in text:
        return "admin"
    if "close" in text:
        return "closer"
    return "setter"


LEAD_SOURCES = ("website", "referral", "social_media", "email_campaign", "cold_call", "event", "other")


def normalize_lead_source(value: str | None) -> str:
    text = _clean(value)
    if not text:
        return "other"
    if "refer" in text:
        return "referral"
    if any(k in text for k in ("facebook", "instagram", "tiktok", "linkedin", "youtube", "social")) or _tokens(text) & {"fb", "ig"}:
        return "social_media"
    if "email" in text or "newsletter" in text:
        return "email_campaign"
    if "cold" in text or "outbound" in text:
        return "cold_call"
    if "event" in text or "webinar" in text:
        return "event"
    if "web" in text or "site" in text or "organic" in text or "google" in text:
        return "website"
    return "other"
