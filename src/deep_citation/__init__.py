"""
DeepCitation - citation normalization and verification for LLM output.

Quick Start
-----------
Clean up citation markup and strip it for display:

    from deep_citation import normalize_citations, replace_citations

    text = normalize_citations(llm_output)
    plain = replace_citations(text, leave_anchor_text_behind=True)

Verify citations against uploaded sources:

    from deep_citation import DeepCitationClient, get_all_citations

    async with DeepCitationClient(api_key="sk-...") as client:
        upload = await client.upload_file(pdf_bytes, filename="report.pdf")
        citations = get_all_citations(llm_output)
        result = await client.verify_attachment(upload.attachment_id, citations)
        marked = replace_citations(
            llm_output,
            verifications=result.verifications,
            show_verification_status=True,
        )

Public API Exports
------------------

Parsing:
    CitationNormalizer, normalize_citations: canonicalize ``<cite>`` markers
    extract_citations, get_all_citations: structured citation records
    replace_citations, resolve_citations: strip or annotate markers
    generate_citation_key: content fingerprint of a citation
    parse_deferred_citation_response, replace_deferred_markers: ``[N]`` markers
        with a trailing citation data block

Client:
    DeepCitationClient: upload and verification API client

Schemas:
    Citation, DocumentCitation, UrlCitation, AudioVideoCitation
    Verification, SearchStatus, VerifyCitationsResponse

Errors:
    DeepCitationError and its subclasses
"""

from importlib import import_module

__version__ = "0.1.0"

_EXPORTS = {
    # Parsing
    "CitationNormalizer": "deep_citation.services.citation.normalizer",
    "normalize_citations": "deep_citation.services.citation.normalizer",
    "extract_citations": "deep_citation.services.citation.extractor",
    "get_all_citations": "deep_citation.services.citation.extractor",
    "group_citations_by_attachment_id": "deep_citation.services.citation.extractor",
    "replace_citations": "deep_citation.services.citation.extractor",
    "resolve_citations": "deep_citation.services.citation.extractor",
    "get_citation_page_number": "deep_citation.services.citation.extractor",
    "remove_line_id_metadata": "deep_citation.services.citation.extractor",
    "remove_page_number_metadata": "deep_citation.services.citation.extractor",
    "generate_citation_key": "deep_citation.services.citation.citation_keys",
    "parse_deferred_citation_response": "deep_citation.services.citation.deferred",
    "has_deferred_citations": "deep_citation.services.citation.deferred",
    "extract_visible_text": "deep_citation.services.citation.deferred",
    "replace_deferred_markers": "deep_citation.services.citation.deferred",
    "get_citation_marker_ids": "deep_citation.services.citation.deferred",
    "deferred_citation_to_citation": "deep_citation.services.citation.deferred",
    "get_all_citations_from_deferred_response": "deep_citation.services.citation.deferred",
    "DeferredCitationResponse": "deep_citation.services.citation.deferred",
    "get_citation_status": "deep_citation.services.citation.status",
    "get_verification_text_indicator": "deep_citation.services.citation.status",
    # Client
    "DeepCitationClient": "deep_citation.services.verification.client",
    # Schemas
    "Citation": "deep_citation.schemas.citation",
    "DocumentCitation": "deep_citation.schemas.citation",
    "UrlCitation": "deep_citation.schemas.citation",
    "AudioVideoCitation": "deep_citation.schemas.citation",
    "ScreenBox": "deep_citation.schemas.citation",
    "CitationData": "deep_citation.schemas.citation",
    "SearchStatus": "deep_citation.schemas.verification",
    "Verification": "deep_citation.schemas.verification",
    "VerifyCitationsResponse": "deep_citation.schemas.verification",
    "UploadFileResponse": "deep_citation.schemas.attachment",
    "FileInput": "deep_citation.schemas.attachment",
    "FileDataPart": "deep_citation.schemas.attachment",
    # Errors
    "DeepCitationError": "deep_citation.core.exceptions",
    "ConfigurationError": "deep_citation.core.exceptions",
    "InvalidInputError": "deep_citation.core.exceptions",
    "UploadError": "deep_citation.core.exceptions",
    "VerificationError": "deep_citation.core.exceptions",
    "ConversionError": "deep_citation.core.exceptions",
}


def __getattr__(name: str):
    """Lazy loading of exports to keep ``import deep_citation`` light."""
    module = _EXPORTS.get(name)
    if module is None:
        raise AttributeError(f"module 'deep_citation' has no attribute '{name}'")
    return getattr(import_module(module), name)


__all__ = list(_EXPORTS)
