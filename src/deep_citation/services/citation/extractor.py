"""Citation extraction and marker replacement.

Both directions work on normalized text. ``extract_citations`` turns every
marker into a structured record; ``replace_citations`` strips markers for
display, optionally leaving the anchor text and a verification indicator
in their place.

Verifications are matched to markers by citation key. A mapping keyed by
the 1-based position of the marker (``"1"``, ``"2"``, ...) is still
honored as a fallback for older callers.
"""

import re
from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from deep_citation.core.logging_utils import get_logger, truncate
from deep_citation.schemas.citation import Citation, coerce_citation
from deep_citation.schemas.verification import Verification
from deep_citation.services.citation.attributes import (
    QUOTED_ATTRIBUTES,
    canonical_attribute_name,
    get_citation_page_number,
    scan_attributes,
    unescape_quotes,
)
from deep_citation.services.citation.citation_keys import generate_citation_key
from deep_citation.services.citation.deferred import (
    get_all_citations_from_deferred_response,
    has_deferred_citations,
)
from deep_citation.services.citation.normalizer import CitationNormalizer
from deep_citation.services.citation.status import (
    coerce_verification,
    get_verification_text_indicator,
)

logger = get_logger(__name__)

__all__ = [
    "ExtractedCitation",
    "ResolvedCitation",
    "extract_citations",
    "get_all_citations",
    "get_citation_page_number",
    "group_citations_by_attachment_id",
    "parse_cite_tag",
    "remove_line_id_metadata",
    "remove_page_number_metadata",
    "replace_citations",
    "resolve_citations",
]

# A canonical marker; never spans into the next one. A "/>" inside a quoted
# value does not close it.
CITE_TAG = re.compile(
    rf"<cite\b{QUOTED_ATTRIBUTES}/>|<cite\b(?:(?!<cite\b)[\s\S])*?/>",
    re.IGNORECASE,
)

PAGE_NUMBER_METADATA = re.compile(r"<page_number_\d+_index_\d+>|</page_number_\d+_index_\d+>")
LINE_ID_METADATA = re.compile(r"<line id=\"[^\"]*\">|</line>")

# Keys that mark a dict as a citation object in JSON output
JSON_CITATION_KEYS = frozenset(
    {
        "fullPhrase",
        "full_phrase",
        "startPageKey",
        "start_page_key",
        "startPageId",
        "start_page_id",
        "keySpan",
        "key_span",
        "anchorText",
        "anchor_text",
        "lineIds",
        "line_ids",
    }
)


@dataclass(frozen=True)
class ExtractedCitation:
    """One marker found in normalized text."""

    ordinal: int
    key: str
    citation: Citation
    start: int
    end: int

    @property
    def anchor_text(self) -> str | None:
        return self.citation.anchor_text


@dataclass(frozen=True)
class ResolvedCitation:
    """A marker paired with its verification, ready for rendering."""

    ordinal: int
    key: str
    citation: Citation
    verification: Verification | None
    indicator: str


def parse_cite_tag(tag: str) -> Citation | None:
    """Parse one ``<cite ... />`` marker. Returns None if it has no usable attributes."""
    body = tag.strip()[len("<cite"):]
    if body.endswith("/>"):
        body = body[:-2]

    values: dict[str, str] = {}
    for name, value in scan_attributes(body.replace("\\_", "_")):
        values[canonical_attribute_name(name)] = unescape_quotes(value)
    if not values:
        return None

    data: dict[str, Any] = {
        key: values.get(key) or None
        for key in ("attachment_id", "full_phrase", "anchor_text", "reasoning", "value")
    }
    if values.get("timestamps"):
        data["timestamps"] = values["timestamps"]
    else:
        data["start_page_id"] = values.get("start_page_id") or None
        data["line_ids"] = values.get("line_ids")
        if values.get("url"):
            data.update(url=values["url"], title=values.get("title"), domain=values.get("domain"))

    try:
        return coerce_citation(data)
    except ValidationError as e:
        logger.debug("CITATION_PARSE_SKIPPED", tag=truncate(tag, 80), error=str(e))
        return None


def _normalized(text: str, normalizer: CitationNormalizer | None) -> str:
    return (normalizer or CitationNormalizer()).normalize(text)


def extract_citations(
    text: str | None,
    *,
    normalizer: CitationNormalizer | None = None,
) -> list[ExtractedCitation]:
    """Normalize ``text`` and return every marker in order of appearance.

    ``start``/``end`` are offsets into the normalized text. Ordinals count
    every marker, including ones that could not be parsed and are
    therefore left out of the result.
    """
    if not text:
        return []
    normalized = _normalized(text, normalizer)
    extracted = []
    for ordinal, match in enumerate(CITE_TAG.finditer(normalized), start=1):
        citation = parse_cite_tag(match.group(0))
        if citation is None:
            continue
        extracted.append(
            ExtractedCitation(
                ordinal=ordinal,
                key=generate_citation_key(citation),
                citation=citation,
                start=match.start(),
                end=match.end(),
            )
        )
    return extracted


def _is_citation_object(item: Any) -> bool:
    return isinstance(item, dict) and not JSON_CITATION_KEYS.isdisjoint(item)


def _is_citation_payload(data: Any) -> bool:
    if isinstance(data, list):
        return any(_is_citation_object(item) for item in data)
    return _is_citation_object(data)


def _find_json_citations(data: Any) -> Iterator[dict[str, Any]]:
    """Yield citation objects at the root or under ``citation``/``citations`` keys."""
    if _is_citation_payload(data):
        items = data if isinstance(data, list) else [data]
        yield from (item for item in items if _is_citation_object(item))
        return
    if isinstance(data, list):
        for item in data:
            yield from _find_json_citations(item)
    elif isinstance(data, dict):
        for key, value in data.items():
            if key in ("citation", "citations") and _is_citation_payload(value):
                items = value if isinstance(value, list) else [value]
                yield from (item for item in items if _is_citation_object(item))
            else:
                yield from _find_json_citations(value)


def _strings_in(data: Any) -> Iterator[str]:
    if isinstance(data, str):
        yield data
    elif isinstance(data, list):
        for item in data:
            yield from _strings_in(item)
    elif isinstance(data, dict):
        for value in data.values():
            yield from _strings_in(value)


def get_all_citations(llm_output: Any) -> dict[str, Citation]:
    """Collect every citation with a phrase from model output, keyed by citation key.

    ``llm_output`` may be text containing markers, or parsed JSON holding
    citation objects (camelCase or snake_case) and/or strings with markers.
    Text with a deferred citation data block contributes its entries too.
    """
    if not llm_output:
        return {}

    citations: dict[str, Citation] = {}

    if isinstance(llm_output, dict | list):
        for item in _find_json_citations(llm_output):
            try:
                citation = coerce_citation(item)
            except ValidationError as e:
                logger.debug("JSON_CITATION_SKIPPED", error=str(e))
                continue
            if citation.full_phrase:
                citations[generate_citation_key(citation)] = citation
        texts: Iterable[str] = _strings_in(llm_output)
    else:
        texts = [str(llm_output)]

    for text in texts:
        if has_deferred_citations(text):
            citations.update(get_all_citations_from_deferred_response(text))
        if "cite" not in text.lower():
            continue
        for extracted in extract_citations(text):
            if extracted.citation.full_phrase:
                citations[extracted.key] = extracted.citation

    return citations


def group_citations_by_attachment_id(
    citations: Mapping[str, Citation] | Iterable[Citation],
) -> dict[str, dict[str, Citation]]:
    """Group citations by attachment id ("" when missing), keeping their keys."""
    if isinstance(citations, Mapping):
        entries = list(citations.items())
    else:
        entries = [(generate_citation_key(c), coerce_citation(c)) for c in citations]

    grouped: dict[str, dict[str, Citation]] = defaultdict(dict)
    for key, citation in entries:
        grouped[citation.attachment_id or ""][key] = citation
    return dict(grouped)


def _lookup(
    verifications: Mapping[str, Verification | dict[str, Any]],
    key: str,
    ordinal: int,
) -> Verification | None:
    found = verifications.get(key)
    if found is None:
        found = verifications.get(str(ordinal))
    try:
        return coerce_verification(found)
    except ValidationError as e:
        logger.debug("VERIFICATION_SKIPPED", key=key, ordinal=ordinal, error=str(e))
        return None


def resolve_citations(
    text: str | None,
    verifications: Mapping[str, Verification | dict[str, Any]] | None = None,
    *,
    normalizer: CitationNormalizer | None = None,
) -> list[ResolvedCitation]:
    """Pair every marker with its verification and indicator."""
    verifications = verifications or {}
    resolved = []
    for extracted in extract_citations(text, normalizer=normalizer):
        verification = _lookup(verifications, extracted.key, extracted.ordinal)
        resolved.append(
            ResolvedCitation(
                ordinal=extracted.ordinal,
                key=extracted.key,
                citation=extracted.citation,
                verification=verification,
                indicator=get_verification_text_indicator(verification),
            )
        )
    return resolved


def replace_citations(
    text: str | None,
    *,
    verifications: Mapping[str, Verification | dict[str, Any]] | None = None,
    leave_anchor_text_behind: bool = False,
    show_verification_status: bool = False,
    normalizer: CitationNormalizer | None = None,
) -> str:
    """Remove citation markers from ``text``.

    Args:
        text: Model output, normalized first.
        verifications: Verification per citation key (or legacy ordinal).
        leave_anchor_text_behind: Put each marker's anchor text where it was.
        show_verification_status: Put a status indicator where each marker
            was, after the anchor text. Unresolved citations show as pending.
    """
    if not text:
        return ""
    verifications = verifications or {}
    normalized = _normalized(text, normalizer)
    ordinal = 0

    def replace(match: re.Match[str]) -> str:
        nonlocal ordinal
        ordinal += 1
        citation = parse_cite_tag(match.group(0))
        if citation is None:
            return ""

        output = (citation.anchor_text or "") if leave_anchor_text_behind else ""
        if show_verification_status:
            verification = _lookup(verifications, generate_citation_key(citation), ordinal)
            output += get_verification_text_indicator(verification)
        return output

    return CITE_TAG.sub(replace, normalized)


def remove_page_number_metadata(text: str) -> str:
    """Strip ``<page_number_N_index_M>`` wrappers from extracted document text."""
    return PAGE_NUMBER_METADATA.sub("", text)


def remove_line_id_metadata(text: str) -> str:
    """Strip ``<line id="...">`` wrappers from extracted document text."""
    return LINE_ID_METADATA.sub("", text)
