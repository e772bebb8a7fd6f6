"""Content fingerprints for citations and verification requests.

A citation key depends only on what a citation says, never on the label
or position a caller stores it under. Markers that differ only in
attribute order, attribute spelling or line id notation (``'1-3'`` versus
``[1, 2, 3]``) get the same key. Changing the phrase, anchor text, lines,
page, timestamps or selection gives a new one.
"""

import hashlib
import json
from collections.abc import Iterable, Mapping
from typing import Any

from deep_citation.schemas.citation import Citation, coerce_citation

KEY_LENGTH = 16

KEY_FIELDS = (
    "attachment_id",
    "page_number",
    "full_phrase",
    "anchor_text",
    "line_ids",
    "timestamps",
    "selection",
)


def canonical_json(data: Any) -> str:
    """Serialize with sorted keys and no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def citation_key_fields(citation: Citation | Mapping[str, Any]) -> dict[str, Any]:
    """The identifying fields of a citation, with every key present."""
    fields: dict[str, Any] = dict.fromkeys(KEY_FIELDS)
    fields.update(line_ids=[], timestamps=[])
    fields.update(coerce_citation(citation).key_fields())
    return fields


def generate_citation_key(citation: Citation | Mapping[str, Any]) -> str:
    """Return the 16 hex character key for a citation."""
    serialized = canonical_json(citation_key_fields(citation))
    return hashlib.sha1(serialized.encode("utf-8")).hexdigest()[:KEY_LENGTH]


def fingerprint_verification_request(
    attachment_id: str,
    citations: Iterable[Citation],
    output_image_format: str | None = None,
) -> str:
    """Fingerprint a verification request by content.

    The citations are compared as a multiset of their full serialized
    content, so the labels they are sent under and their order do not
    matter.
    """
    contents = sorted(canonical_json(citation.to_wire()) for citation in citations)
    payload = {
        "attachment_id": attachment_id,
        "citations": contents,
        "output_image_format": output_image_format,
    }
    return hashlib.sha1(canonical_json(payload).encode("utf-8")).hexdigest()
