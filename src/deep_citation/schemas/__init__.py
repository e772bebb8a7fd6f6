"""Pydantic schemas for citations, verifications and uploads."""

from deep_citation.schemas.attachment import (
    ConvertFileResponse,
    FileDataPart,
    FileInput,
    FileMetadata,
    UploadFileResponse,
)
from deep_citation.schemas.citation import (
    AudioVideoCitation,
    Citation,
    CitationKind,
    DocumentCitation,
    ScreenBox,
    UrlCitation,
    coerce_citation,
)
from deep_citation.schemas.verification import (
    SearchStatus,
    Verification,
    VerifyCitationsResponse,
)

__all__ = [
    "AudioVideoCitation",
    "Citation",
    "CitationKind",
    "ConvertFileResponse",
    "DocumentCitation",
    "FileDataPart",
    "FileInput",
    "FileMetadata",
    "ScreenBox",
    "SearchStatus",
    "UploadFileResponse",
    "UrlCitation",
    "Verification",
    "VerifyCitationsResponse",
    "coerce_citation",
]
