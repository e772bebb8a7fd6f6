"""Verification results returned by the verification service."""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, ConfigDict, Field, field_validator

from deep_citation.core.logging_utils import get_logger
from deep_citation.schemas.common import BaseSchema

logger = get_logger(__name__)


class SearchStatus(str, Enum):
    """Outcome of searching a source for a cited phrase."""

    FOUND = "found"
    FOUND_ANCHOR_TEXT_ONLY = "found_anchor_text_only"
    FOUND_PHRASE_MISSED_ANCHOR_TEXT = "found_phrase_missed_anchor_text"
    FOUND_ON_OTHER_PAGE = "found_on_other_page"
    FOUND_ON_OTHER_LINE = "found_on_other_line"
    PARTIAL_TEXT_FOUND = "partial_text_found"
    FIRST_WORD_FOUND = "first_word_found"
    NOT_FOUND = "not_found"
    PENDING = "pending"
    LOADING = "loading"
    SKIPPED = "skipped"
    TIMESTAMP_WIP = "timestamp_wip"


class Verification(BaseSchema):
    """Read-only verification result for one citation."""

    model_config = ConfigDict(extra="allow")

    status: SearchStatus | None = None
    match_snippet: str | None = Field(
        default=None,
        validation_alias=AliasChoices("matchSnippet", "match_snippet", "verifiedMatchSnippet"),
    )
    page: int | None = Field(
        default=None,
        validation_alias=AliasChoices("page", "pageNumber", "verifiedPageNumber"),
    )
    timestamps: Any = None
    evidence: Any = None

    @field_validator("status", mode="before")
    @classmethod
    def known_status(cls, v: Any) -> Any:
        """Unknown statuses are treated as unresolved."""
        if isinstance(v, dict):
            v = v.get("status")
        if v is None or isinstance(v, SearchStatus):
            return v
        try:
            return SearchStatus(str(v).lower())
        except ValueError:
            logger.debug("UNKNOWN_VERIFICATION_STATUS", status=str(v))
            return None


class VerifyCitationsResponse(BaseSchema):
    """Verification results keyed by the labels of the request."""

    model_config = ConfigDict(extra="allow")

    verifications: dict[str, Verification] = Field(default_factory=dict)
