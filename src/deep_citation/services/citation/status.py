"""Verification status classification and text indicators."""

from dataclasses import dataclass
from typing import Any

from deep_citation.schemas.verification import SearchStatus, Verification

INDICATOR_VERIFIED = "☑"
INDICATOR_PARTIAL = "✅"
INDICATOR_NOT_FOUND = "❌"
INDICATOR_PENDING = "⌛"
INDICATOR_UNKNOWN = "◌"

PARTIAL_STATUSES = frozenset(
    {
        SearchStatus.FOUND_ON_OTHER_PAGE,
        SearchStatus.FOUND_ON_OTHER_LINE,
        SearchStatus.PARTIAL_TEXT_FOUND,
        SearchStatus.FIRST_WORD_FOUND,
        SearchStatus.FOUND_PHRASE_MISSED_ANCHOR_TEXT,
        SearchStatus.FOUND_ANCHOR_TEXT_ONLY,
    }
)
PENDING_STATUSES = frozenset({SearchStatus.PENDING, SearchStatus.LOADING})


@dataclass(frozen=True)
class CitationStatus:
    """Coarse classification of a verification result."""

    is_verified: bool
    is_partial_match: bool
    is_miss: bool
    is_pending: bool


def coerce_verification(value: Verification | dict[str, Any] | None) -> Verification | None:
    if value is None or isinstance(value, Verification):
        return value
    return Verification.model_validate(value)


def get_citation_status(verification: Verification | dict[str, Any] | None) -> CitationStatus:
    """Classify a verification. A missing verification is pending."""
    verification = coerce_verification(verification)
    status = verification.status if verification else None
    is_partial = status in PARTIAL_STATUSES
    return CitationStatus(
        is_verified=status == SearchStatus.FOUND or is_partial,
        is_partial_match=is_partial,
        is_miss=status == SearchStatus.NOT_FOUND,
        is_pending=status is None or status in PENDING_STATUSES,
    )


def get_verification_text_indicator(verification: Verification | dict[str, Any] | None) -> str:
    """Single character shown in place of a verified citation."""
    verification = coerce_verification(verification)
    status = verification.status if verification else None
    if status is None or status in PENDING_STATUSES:
        return INDICATOR_PENDING
    if status == SearchStatus.FOUND:
        return INDICATOR_VERIFIED
    if status in PARTIAL_STATUSES:
        return INDICATOR_PARTIAL
    if status == SearchStatus.NOT_FOUND:
        return INDICATOR_NOT_FOUND
    return INDICATOR_UNKNOWN
