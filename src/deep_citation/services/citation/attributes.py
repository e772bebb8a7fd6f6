"""Attribute scanning for ``<cite .../>`` markers.

The scanner accepts what models actually emit: unquoted
values, unescaped apostrophes inside quoted values, missing closing quotes
and camelCase or legacy attribute names.
"""

import re

# Canonical name for every spelling seen in generated markup, keyed by the
# snake_case lowercased form of the spelling
ATTRIBUTE_ALIASES: dict[str, str] = {
    "attachment_id": "attachment_id",
    "attachmentid": "attachment_id",
    "file_id": "attachment_id",
    "fileid": "attachment_id",
    "start_page_id": "start_page_id",
    "start_pageid": "start_page_id",
    "startpageid": "start_page_id",
    "start_page_key": "start_page_id",
    "start_pagekey": "start_page_id",
    "startpagekey": "start_page_id",
    "page_id": "start_page_id",
    "pageid": "start_page_id",
    "page_key": "start_page_id",
    "pagekey": "start_page_id",
    "full_phrase": "full_phrase",
    "fullphrase": "full_phrase",
    "anchor_text": "anchor_text",
    "anchortext": "anchor_text",
    "key_span": "anchor_text",
    "keyspan": "anchor_text",
    "line_ids": "line_ids",
    "lineids": "line_ids",
    "line_id": "line_ids",
    "lineid": "line_ids",
    "timestamps": "timestamps",
    "timestamp": "timestamps",
    "reasoning": "reasoning",
    "value": "value",
}

TEXT_ATTRIBUTES = frozenset({"full_phrase", "anchor_text", "reasoning", "value"})
RANGE_ATTRIBUTES = frozenset({"line_ids", "timestamps"})

CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
FIRST_ATTRIBUTE = re.compile(r"\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*")
NAME_EQUALS = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)\s*=\s*")
# Whitespace that may precede another attribute; the name is only peeked at
ATTRIBUTE_GAP = re.compile(r"\s+(?=[A-Za-z_][A-Za-z0-9_]*\s*=)")

# Attribute text of a marker up to its closing "/>" or ">". Quoted values
# may contain "<", ">" and "/>"; none of them may reach into another marker.
QUOTED_ATTRIBUTES = (
    r"(?:'(?:(?!<cite\b)[^'\\]|\\.)*'"
    r"|\"(?:(?!<cite\b)[^\"\\]|\\.)*\""
    r"|[^'\"<>/]|/(?!>))*"
)

PAGE_NUMBER_PATTERN = re.compile(r"page[_a-zA-Z]*(\d+)", re.IGNORECASE)
DIGITS_PATTERN = re.compile(r"\d+")


def canonical_attribute_name(name: str) -> str:
    """Map any historical spelling of an attribute to its canonical name.

    Unknown names are snake_cased and lowercased.
    """
    snake = CAMEL_BOUNDARY.sub("_", name.replace("\\_", "_")).lower()
    return ATTRIBUTE_ALIASES.get(snake, ATTRIBUTE_ALIASES.get(snake.replace("_", ""), snake))


def is_known_attribute(name: str) -> bool:
    return canonical_attribute_name(name) in ATTRIBUTE_ALIASES.values()


def strip_value_quotes(raw: str) -> str:
    """Remove the surrounding quotes of a raw attribute value, if any."""
    value = raw.strip()
    if value[:1] in ("'", '"'):
        quote = value[0]
        value = value[1:]
        if value.endswith(quote):
            value = value[:-1]
    return value


def scan_attributes(source: str) -> list[tuple[str, str]]:
    """Split the inside of a marker into ``(name, value)`` pairs.

    Names are returned as written and values without their quotes. A new
    attribute starts where whitespace is followed by ``name=`` and either
    the previous value just closed a quote or ``name`` is a known
    attribute. Anything else stays part of the current value, so an
    apostrophe or ``=`` inside a phrase does not split it.

    Returns an empty list when ``source`` does not start with an attribute.
    """
    first = FIRST_ATTRIBUTE.match(source)
    if not first:
        return []

    pairs: list[tuple[str, str]] = []
    name, value_start = first.group(1), first.end()

    for gap in ATTRIBUTE_GAP.finditer(source, value_start):
        if gap.start() <= value_start:
            continue
        candidate = NAME_EQUALS.match(source, gap.end())
        if candidate is None:
            continue
        closed_quote = source[gap.start() - 1] in ("'", '"')
        if not (closed_quote or is_known_attribute(candidate.group(1))):
            continue
        pairs.append((name, strip_value_quotes(source[value_start:gap.start()])))
        name, value_start = candidate.group(1), candidate.end()

    pairs.append((name, strip_value_quotes(source[value_start:])))
    return pairs


def unescape_quotes(value: str) -> str:
    """Turn canonical ``\\'`` and ``\\"`` escapes back into bare quotes."""
    return value.replace("\\'", "'").replace('\\"', '"')


def get_citation_page_number(start_page_id: str | None) -> int | None:
    """Page number encoded in a page id such as ``page_number_3_index_0``."""
    if not start_page_id:
        return None
    match = PAGE_NUMBER_PATTERN.search(start_page_id)
    if match:
        return int(match.group(1))
    match = DIGITS_PATTERN.search(start_page_id)
    return int(match.group(0)) if match else None
