"""Deferred citations: ``[N]`` markers plus a trailing JSON data block.

Instead of inline ``<cite>`` markers a model can be asked to write plain
``[N]`` references and list the citations once, at the end::

    Revenue grew 45% [1].

    <<<CITATION_DATA>>>
    [{"n": 1, "a": "abc", "f": "Revenue grew 45%", "k": "45%", "p": "1_0", "l": [3, 4]}]
    <<<END_CITATION_DATA>>>

The block holds a list of entries or a mapping of attachment id to a list
of entries. Entries use compact keys (``n`` id, ``a`` attachment id, ``r``
reasoning, ``f`` full phrase, ``k`` anchor text, ``p`` page id, ``l`` line
ids, ``t`` timestamps with ``s``/``e``) or their full names. Broken JSON
is run through ``json_repair`` before giving up.
"""

import json
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from json_repair import repair_json
from pydantic import ValidationError

from deep_citation.core.logging_utils import get_logger, truncate
from deep_citation.schemas.citation import Citation, CitationData, coerce_citation
from deep_citation.services.citation.citation_keys import generate_citation_key

logger = get_logger(__name__)

__all__ = [
    "CITATION_DATA_END",
    "CITATION_DATA_START",
    "DeferredCitationResponse",
    "deferred_citation_to_citation",
    "extract_visible_text",
    "get_all_citations_from_deferred_response",
    "get_citation_marker_ids",
    "has_deferred_citations",
    "parse_deferred_citation_response",
    "parse_page_id",
    "replace_deferred_markers",
]

CITATION_DATA_START = "<<<CITATION_DATA>>>"
CITATION_DATA_END = "<<<END_CITATION_DATA>>>"

COMPACT_KEYS = {
    "n": "id",
    "a": "attachment_id",
    "r": "reasoning",
    "f": "full_phrase",
    "k": "anchor_text",
    "p": "page_id",
    "l": "line_ids",
    "t": "timestamps",
}

DEFERRED_MARKER = re.compile(r"\[(\d+)\]")

CODE_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
CODE_FENCE_END = re.compile(r"\s*```$")

COMPACT_PAGE_ID = re.compile(r"^(\d+)_(\d+)$")
LEGACY_PAGE_ID = re.compile(r"page[_a-zA-Z]*(\d+)_index_(\d+)", re.IGNORECASE)

Replacer = Callable[[int, CitationData | None], str]


@dataclass(frozen=True)
class DeferredCitationResponse:
    """A model response split into visible text and its citation entries."""

    visible_text: str
    citations: tuple[CitationData, ...] = ()
    citation_map: dict[int, CitationData] = field(default_factory=dict)
    success: bool = True
    error: str | None = None


def _expand_compact_keys(data: Mapping[str, Any], attachment_id: str | None = None) -> dict[str, Any]:
    expanded: dict[str, Any] = {}
    for key, value in data.items():
        if key in ("t", "timestamps") and isinstance(value, Mapping):
            expanded["timestamps"] = {
                "start_time": value.get("s", value.get("start_time")),
                "end_time": value.get("e", value.get("end_time")),
            }
        else:
            expanded[COMPACT_KEYS.get(key, key)] = value
    if attachment_id and not expanded.get("attachment_id"):
        expanded["attachment_id"] = attachment_id
    return expanded


def _is_grouped(parsed: Any) -> bool:
    """Whether ``parsed`` maps attachment ids to lists of entries."""
    return isinstance(parsed, dict) and bool(parsed) and all(isinstance(v, list) for v in parsed.values())


def _citations_from_json(parsed: Any) -> list[CitationData]:
    if _is_grouped(parsed):
        return [
            CitationData.model_validate(_expand_compact_keys(entry, attachment_id))
            for attachment_id, entries in parsed.items()
            for entry in entries
            if isinstance(entry, dict)
        ]
    entries = parsed if isinstance(parsed, list) else [parsed]
    return [
        CitationData.model_validate(_expand_compact_keys(entry) if isinstance(entry, dict) else entry)
        for entry in entries
    ]


def _strip_code_fence(block: str) -> str:
    return CODE_FENCE_END.sub("", CODE_FENCE_START.sub("", block))


def _load_citation_json(block: str) -> Any:
    try:
        return json.loads(block)
    except json.JSONDecodeError as e:
        logger.warning("CITATION_JSON_REPAIR", error=truncate(str(e), 200))
        return json.loads(repair_json(_strip_code_fence(block)))


def parse_deferred_citation_response(llm_response: Any) -> DeferredCitationResponse:
    """Split a model response into visible text and citation entries.

    Text without a data block is returned whole with no citations. A block
    that cannot be parsed even after repair gives ``success=False`` and an
    ``error``; the visible text is still returned.
    """
    if not llm_response or not isinstance(llm_response, str):
        return DeferredCitationResponse(visible_text="", success=False, error="Invalid input: expected a string")

    start = llm_response.find(CITATION_DATA_START)
    if start == -1:
        return DeferredCitationResponse(visible_text=llm_response.strip())

    visible_text = llm_response[:start].strip()
    end = llm_response.find(CITATION_DATA_END, start)
    block = llm_response[start + len(CITATION_DATA_START):end if end != -1 else None].strip()
    if not block:
        return DeferredCitationResponse(visible_text=visible_text)

    try:
        citations = _citations_from_json(_load_citation_json(block))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("CITATION_DATA_PARSE_FAILED", error=truncate(str(e), 200))
        return DeferredCitationResponse(
            visible_text=visible_text,
            success=False,
            error=f"Failed to parse citation JSON: {e}",
        )

    return DeferredCitationResponse(
        visible_text=visible_text,
        citations=tuple(citations),
        citation_map={citation.id: citation for citation in citations},
    )


def has_deferred_citations(response: Any) -> bool:
    return isinstance(response, str) and CITATION_DATA_START in response


def extract_visible_text(llm_response: Any) -> str:
    """The response without its citation data block."""
    return parse_deferred_citation_response(llm_response).visible_text


def replace_deferred_markers(
    text: str,
    *,
    citation_map: Mapping[int, CitationData] | None = None,
    show_anchor_text: bool = False,
    replacer: Replacer | None = None,
) -> str:
    """Replace every ``[N]`` marker in ``text``.

    Args:
        text: Visible text with ``[N]`` markers.
        citation_map: Entries by id, as in ``DeferredCitationResponse.citation_map``.
        show_anchor_text: Put the entry's anchor text where the marker was.
        replacer: Builds the replacement from the id and its entry (None
            when unknown). Takes precedence over ``show_anchor_text``.

    Markers are removed when there is nothing to put in their place. The
    surrounding whitespace is left as it is.
    """
    citation_map = citation_map or {}

    def replace(match: re.Match[str]) -> str:
        marker_id = int(match.group(1))
        data = citation_map.get(marker_id)
        if replacer is not None:
            return replacer(marker_id, data)
        if show_anchor_text and data is not None and data.anchor_text:
            return data.anchor_text
        return ""

    return DEFERRED_MARKER.sub(replace, text)


def get_citation_marker_ids(text: str) -> list[int]:
    """Ids of all ``[N]`` markers in order of appearance, repeats included."""
    return [int(match.group(1)) for match in DEFERRED_MARKER.finditer(text)]


def parse_page_id(page_id: str | None) -> tuple[int | None, str | None]:
    """Page number and canonical start page id for a page id.

    Accepts the compact ``'N_I'`` form and ``'page_number_N_index_I'``.
    ``0_0`` is read as the first page; other zero pages are kept.
    """
    if not page_id:
        return None, None
    match = COMPACT_PAGE_ID.match(page_id) or LEGACY_PAGE_ID.search(page_id)
    if match is None:
        return None, None
    page_number, index = int(match.group(1)), int(match.group(2))
    if page_number == 0 and index == 0:
        page_number = 1
    return page_number, f"page_number_{page_number}_index_{index}"


def deferred_citation_to_citation(data: CitationData) -> Citation:
    """Convert a data block entry into a Citation.

    Entries with timestamps become audio/video citations, all others
    document citations.
    """
    fields: dict[str, Any] = {
        "attachment_id": data.attachment_id,
        "full_phrase": data.full_phrase,
        "anchor_text": data.anchor_text,
        "reasoning": data.reasoning,
    }
    if data.timestamps:
        fields["timestamps"] = list(data.timestamps)
    else:
        page_number, start_page_id = parse_page_id(data.page_id)
        fields.update(page_number=page_number, start_page_id=start_page_id, line_ids=list(data.line_ids))
    return coerce_citation(fields)


def get_all_citations_from_deferred_response(llm_response: Any) -> dict[str, Citation]:
    """Citations with a phrase from a deferred response, keyed by citation key."""
    parsed = parse_deferred_citation_response(llm_response)
    citations: dict[str, Citation] = {}
    for data in parsed.citations:
        citation = deferred_citation_to_citation(data)
        if citation.full_phrase:
            citations[generate_citation_key(citation)] = citation
    return citations
