"""Upload and conversion payloads."""

from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, ConfigDict, Field

from deep_citation.schemas.common import BaseSchema


class FileMetadata(BaseSchema):
    """Metadata the service extracted from an uploaded file."""

    model_config = ConfigDict(extra="allow")

    filename: str | None = None
    mime_type: str | None = None
    page_count: int | None = None
    byte_size: int | None = Field(
        default=None,
        validation_alias=AliasChoices("byteSize", "byte_size", "textByteSize"),
    )


class UploadFileResponse(BaseSchema):
    """Result of uploading one file."""

    model_config = ConfigDict(extra="allow")

    attachment_id: str
    extracted_text_portion: str = Field(
        default="",
        validation_alias=AliasChoices(
            "extractedTextPortion", "extracted_text_portion", "deepTextPromptPortion"
        ),
    )
    metadata: FileMetadata | None = None
    status: str | None = None
    processing_time_ms: float | None = None
    error: str | None = None


@dataclass(frozen=True)
class FileInput:
    """One file for ``prepare_files``."""

    file: Any
    filename: str | None = None
    attachment_id: str | None = None


class FileDataPart(BaseSchema):
    """Prepared file, ready to be placed into a prompt."""

    attachment_id: str
    extracted_text_portion: str
    filename: str | None = None


class ConvertFileResponse(BaseSchema):
    """Result of converting a URL or office file to PDF."""

    model_config = ConfigDict(extra="allow")

    attachment_id: str
    status: str | None = None
    metadata: dict[str, Any] | None = None
