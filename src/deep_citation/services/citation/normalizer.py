"""Canonicalize inline ``<cite>`` markup.

Models emit citation markers in whatever shape they saw in training or in
an older prompt: camelCase or legacy attribute names, wrapped content,
unclosed tags, HTML entities, markdown emphasis, ranges instead of lists.
``CitationNormalizer`` rewrites every marker it recognizes into one
canonical self-closing form and leaves all other text alone::

    <cite attachment_id='abc' start_page_id='page_number_1_index_0'
          full_phrase='Revenue grew 45%' anchor_text='45%' line_ids='1,2,3' />

Normalization never raises. A fragment that cannot be parsed is returned
exactly as written.
"""

import re
from collections.abc import Callable

from deep_citation.core.app_config import get_app_config
from deep_citation.core.logging_utils import get_logger, truncate
from deep_citation.services.citation.attributes import (
    QUOTED_ATTRIBUTES,
    RANGE_ATTRIBUTES,
    TEXT_ATTRIBUTES,
    canonical_attribute_name,
    scan_attributes,
)
from deep_citation.services.citation.ranges import expand_ranges, is_range_value

logger = get_logger(__name__)

WarningHook = Callable[[str], None]

DOCUMENT_ORDER = (
    "attachment_id",
    "reasoning",
    "start_page_id",
    "full_phrase",
    "anchor_text",
    "line_ids",
    "value",
)
AUDIO_VIDEO_ORDER = (
    "attachment_id",
    "full_phrase",
    "anchor_text",
    "timestamps",
    "reasoning",
    "value",
)

# "cite attachment_id=" written without its "<", but not "excite"/"recite"
MISSING_BRACKET = re.compile(
    r"(?<![<A-Za-z])cite\s+(attachment_id|attachmentId|file_id|fileId)\s*=",
    re.IGNORECASE,
)

# One marker: self-closing, wrapped up to </cite>, or an opening tag that
# ends its line with no closing tag anywhere after it. Never spans into
# the next marker. Quoted values are skipped whole, so a "<br/>" inside a
# phrase does not end the tag; with unbalanced quotes the marker ends at
# the first "/>" or ">" that fits.
UNCLOSED_END = r">(?=[ \t]*(?:\r?\n|$))(?![\s\S]*</cite>)"
MARKER = re.compile(
    rf"<cite\b{QUOTED_ATTRIBUTES}(?:/>|>(?:(?!<cite\b)[\s\S])*?</cite>|{UNCLOSED_END})"
    rf"|<cite\b(?:(?!<cite\b)[\s\S])*?(?:/>|</cite>|{UNCLOSED_END})",
    re.IGNORECASE,
)

# Opening tag of a wrapped marker, honoring quoted values
OPEN_TAG = re.compile(
    r"<cite\b((?:'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"|[^'\">])*)>",
    re.IGNORECASE,
)
QUOTE_THEN_CLOSE = re.compile(r"['\"]\s*>")

ENTITIES = {
    "&amp;": "&",
    "&quot;": '"',
    "&apos;": "'",
    "&lt;": "<",
    "&gt;": ">",
}
ENTITY_PATTERN = re.compile("|".join(ENTITIES))
MARKDOWN_EMPHASIS = re.compile(r"[*_]{2,}|\*")
LINE_BREAKS = re.compile(r"(?:\r\n|\r|\n)+")


def decode_entities(value: str) -> str:
    """Decode the five XML entities in one pass."""
    return ENTITY_PATTERN.sub(lambda m: ENTITIES[m.group(0)], value)


def escape_quotes(value: str) -> str:
    """Escape every quote exactly once.

    Doubly escaped quotes collapse to one escape and already escaped
    quotes are left as they are.
    """
    for quote in ("'", '"'):
        value = value.replace("\\\\" + quote, quote).replace("\\" + quote, quote)
        value = value.replace(quote, "\\" + quote)
    return value


class CitationNormalizer:
    """Rewrites citation markers into canonical form.

    Args:
        max_range_size: Widest line id range expanded in full.
        range_sample_count: Values kept when a wider range is sampled.
        on_warning: Called with a message for every anomaly that was
            absorbed (collapsed or sampled ranges, unparseable markers).
    """

    def __init__(
        self,
        *,
        max_range_size: int | None = None,
        range_sample_count: int | None = None,
        on_warning: WarningHook | None = None,
    ):
        parsing = get_app_config().parsing
        self.max_range_size = max_range_size or parsing.max_range_size
        self.range_sample_count = range_sample_count or parsing.range_sample_count
        self._on_warning = on_warning

    def _warn(self, message: str) -> None:
        logger.debug("CITATION_NORMALIZE_WARNING", detail=message)
        if self._on_warning is not None:
            self._on_warning(message)

    def normalize(self, text: str | None) -> str:
        """Canonicalize all markers in ``text`` and trim the result."""
        if not text:
            return ""
        text = MISSING_BRACKET.sub(r"<cite \1=", text.strip())
        return MARKER.sub(self._rewrite_marker, text)

    def _rewrite_marker(self, match: re.Match[str]) -> str:
        fragment = match.group(0)
        lowered = fragment.lower()

        if lowered.endswith("/>"):
            inner, attributes = "", fragment[len("<cite"):-2]
        elif lowered.endswith("</cite>"):
            inner, attributes = self._split_wrapped(fragment[: -len("</cite>")])
        else:
            inner, attributes = "", fragment[len("<cite"):-1]

        tag = self.canonical_tag(attributes)
        if tag is None:
            self._warn(f"Unparseable citation marker left as-is: {truncate(fragment, 80)}")
            return fragment
        return inner.strip() + tag

    def _split_wrapped(self, fragment: str) -> tuple[str, str]:
        """Split ``<cite attrs>inner`` into ``(inner, attrs)``."""
        opening = OPEN_TAG.match(fragment)
        if opening:
            return fragment[opening.end():], opening.group(1)
        # Unbalanced quotes: the tag most likely ends at a quote followed by ">"
        close = QUOTE_THEN_CLOSE.search(fragment)
        end = close.end() if close else fragment.find(">") + 1
        if end <= 0:
            return "", fragment[len("<cite"):]
        return fragment[end:], fragment[len("<cite"):end - 1]

    def canonical_tag(self, attributes: str) -> str | None:
        """Build the canonical marker for the attribute text of one marker.

        Returns None when no attribute could be read.
        """
        pairs = scan_attributes(attributes.replace("\\_", "_"))
        if not pairs:
            return None

        values: dict[str, str] = {}
        for name, raw in pairs:
            canonical = canonical_attribute_name(name)
            values[canonical] = self._normalize_value(canonical, raw)

        order = AUDIO_VIDEO_ORDER if values.get("timestamps") else DOCUMENT_ORDER
        names = [name for name in order if name in values]
        names += sorted(name for name in values if name not in order)
        rendered = " ".join(f"{name}='{values[name]}'" for name in names)
        return f"<cite {rendered} />"

    def _normalize_value(self, name: str, value: str) -> str:
        if name in RANGE_ATTRIBUTES and is_range_value(value):
            return expand_ranges(
                value,
                max_range_size=self.max_range_size,
                sample_count=self.range_sample_count,
                on_warning=self._warn,
            )
        value = decode_entities(value)
        if name in TEXT_ATTRIBUTES:
            value = MARKDOWN_EMPHASIS.sub("", value)
        value = LINE_BREAKS.sub(" ", value)
        return escape_quotes(value)


def normalize_citations(text: str | None, *, on_warning: WarningHook | None = None) -> str:
    """Canonicalize every citation marker in ``text``."""
    return CitationNormalizer(on_warning=on_warning).normalize(text)
