"""Citation records.

A citation is one of three kinds, each with only the fields that make
sense for it. ``Citation`` is the discriminated union; use
``coerce_citation`` to build one from a dict in either camelCase or
snake_case.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
    model_validator,
)

from deep_citation.schemas.common import BaseSchema
from deep_citation.services.citation.attributes import get_citation_page_number
from deep_citation.services.citation.ranges import parse_line_ids, parse_timestamps


class CitationKind(str, Enum):
    """Source kinds a citation can point into."""

    DOCUMENT = "document"
    URL = "url"
    AUDIO_VIDEO = "audio-video"


class ScreenBox(BaseSchema):
    """Rectangle on a rendered page, for image-region citations."""

    x: float
    y: float
    width: float = Field(ge=0)
    height: float = Field(ge=0)


class _CitationBase(BaseSchema):
    attachment_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("attachmentId", "attachment_id", "fileId", "file_id"),
    )
    full_phrase: str | None = None
    anchor_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("anchorText", "anchor_text", "keySpan", "key_span"),
    )
    reasoning: str | None = None
    value: str | None = None

    def key_fields(self) -> dict[str, Any]:
        """Fields that identify this citation's content."""
        return {
            "attachment_id": self.attachment_id or None,
            "full_phrase": self.full_phrase or None,
            "anchor_text": self.anchor_text or None,
        }


def _with_page_number(data: Any) -> Any:
    if not isinstance(data, dict):
        return data
    if data.get("pageNumber") is None and data.get("page_number") is None:
        page_id = next(
            (data[k] for k in ("startPageId", "start_page_id", "startPageKey", "start_page_key") if data.get(k)),
            None,
        )
        page_number = get_citation_page_number(page_id)
        if page_number is not None:
            data = {**data, "page_number": page_number}
    return data


class DocumentCitation(_CitationBase):
    """Citation into an uploaded document."""

    kind: Literal["document"] = "document"
    start_page_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("startPageId", "start_page_id", "startPageKey", "start_page_key"),
    )
    page_number: int | None = None
    line_ids: tuple[int, ...] = ()
    selection: ScreenBox | None = None

    @model_validator(mode="before")
    @classmethod
    def fill_page_number(cls, data: Any) -> Any:
        return _with_page_number(data)

    @field_validator("line_ids", mode="before")
    @classmethod
    def coerce_line_ids(cls, v: Any) -> tuple[int, ...]:
        return parse_line_ids(v)

    def key_fields(self) -> dict[str, Any]:
        return {
            **super().key_fields(),
            "page_number": self.page_number,
            "line_ids": list(self.line_ids),
            "selection": self.selection.model_dump() if self.selection else None,
        }


class UrlCitation(_CitationBase):
    """Citation into a web page."""

    kind: Literal["url"] = "url"
    url: str | None = None
    title: str | None = None
    domain: str | None = None
    start_page_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("startPageId", "start_page_id", "startPageKey", "start_page_key"),
    )
    page_number: int | None = None
    line_ids: tuple[int, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def fill_page_number(cls, data: Any) -> Any:
        return _with_page_number(data)

    @field_validator("line_ids", mode="before")
    @classmethod
    def coerce_line_ids(cls, v: Any) -> tuple[int, ...]:
        return parse_line_ids(v)

    def key_fields(self) -> dict[str, Any]:
        return {
            **super().key_fields(),
            "page_number": self.page_number,
            "line_ids": list(self.line_ids),
        }


class AudioVideoCitation(_CitationBase):
    """Citation into an audio or video transcript."""

    kind: Literal["audio-video"] = "audio-video"
    timestamps: tuple[str, ...] = ()

    @field_validator("timestamps", mode="before")
    @classmethod
    def coerce_timestamps(cls, v: Any) -> tuple[str, ...]:
        return parse_timestamps(v)

    def key_fields(self) -> dict[str, Any]:
        return {
            **super().key_fields(),
            "timestamps": list(self.timestamps),
        }


def citation_kind(value: Any) -> str | None:
    """Pick the union member for a dict or model.

    An explicit ``kind`` (or legacy ``type``) wins; otherwise timestamps
    mean audio/video, a url means a web page and anything else is a
    document.
    """
    if not isinstance(value, dict):
        return getattr(value, "kind", None)
    kind = value.get("kind") or value.get("type")
    if kind:
        kind = str(kind).replace("_", "-").lower()
        return "audio-video" if kind in ("audio-video", "av", "audio", "video") else kind
    if value.get("timestamps"):
        return CitationKind.AUDIO_VIDEO.value
    if value.get("url"):
        return CitationKind.URL.value
    return CitationKind.DOCUMENT.value


Citation = Annotated[
    Union[
        Annotated[DocumentCitation, Tag("document")],
        Annotated[UrlCitation, Tag("url")],
        Annotated[AudioVideoCitation, Tag("audio-video")],
    ],
    Discriminator(citation_kind),
]

_citation_adapter: TypeAdapter[Citation] = TypeAdapter(Citation)


def coerce_citation(value: Any) -> Citation:
    """Return ``value`` as a Citation model, validating dicts."""
    if isinstance(value, DocumentCitation | UrlCitation | AudioVideoCitation):
        return value
    if isinstance(value, dict) and "kind" in value:
        value = {**value, "kind": citation_kind(value)}
    return _citation_adapter.validate_python(value)


class CitationData(BaseSchema):
    """One entry of a deferred citation data block.

    Models write ``[N]`` in the visible text and list the citations in a
    JSON block after it; ``id`` is the ``N`` of the marker.
    """

    id: int = Field(strict=True)
    attachment_id: str | None = None
    reasoning: str | None = None
    full_phrase: str | None = None
    anchor_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("anchorText", "anchor_text", "keySpan", "key_span"),
    )
    page_id: str | None = None
    line_ids: tuple[int, ...] = ()
    timestamps: tuple[str, ...] = ()

    @field_validator("line_ids", mode="before")
    @classmethod
    def coerce_line_ids(cls, v: Any) -> tuple[int, ...]:
        return parse_line_ids(v)

    @field_validator("timestamps", mode="before")
    @classmethod
    def coerce_timestamps(cls, v: Any) -> tuple[str, ...]:
        return parse_timestamps(v)
