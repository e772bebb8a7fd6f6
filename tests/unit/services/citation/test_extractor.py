"""Unit tests for citation extraction and marker replacement."""

import pytest

from deep_citation.schemas.citation import AudioVideoCitation, DocumentCitation, UrlCitation
from deep_citation.services.citation.citation_keys import generate_citation_key
from deep_citation.services.citation.extractor import (
    extract_citations,
    get_all_citations,
    get_citation_page_number,
    group_citations_by_attachment_id,
    parse_cite_tag,
    remove_line_id_metadata,
    remove_page_number_metadata,
    replace_citations,
    resolve_citations,
)

SCENARIO_INPUT = (
    "Revenue grew 45%<cite attachment_id='abc123' key_span='Revenue Growth' "
    "full_phrase='Revenue grew 45%' start_page_key='page_1_index_0' line_ids='1-3' /> last year."
)

THREE_CITATIONS = (
    "Alpha<cite attachment_id='doc1' start_page_id='page_number_1_index_0' full_phrase='Alpha phrase' "
    "anchor_text='Alpha' line_ids='1' /> "
    "Beta<cite attachment_id='doc1' start_page_id='page_number_1_index_0' full_phrase='Beta phrase' "
    "anchor_text='Beta' line_ids='2' /> "
    "Gamma<cite attachment_id='doc1' start_page_id='page_number_1_index_0' full_phrase='Gamma phrase' "
    "anchor_text='Gamma' line_ids='3' />"
)


def _citation(name: str, line: int) -> DocumentCitation:
    return DocumentCitation(
        attachment_id="doc1",
        start_page_id="page_number_1_index_0",
        full_phrase=f"{name} phrase",
        anchor_text=name,
        line_ids=(line,),
    )


class TestReplaceCitations:
    """Tests for replace_citations."""

    def test_markers_removed(self) -> None:
        assert replace_citations(SCENARIO_INPUT) == "Revenue grew 45% last year."

    def test_anchor_text_left_behind(self) -> None:
        result = replace_citations(SCENARIO_INPUT, leave_anchor_text_behind=True)
        assert result == "Revenue grew 45%Revenue Growth last year."

    def test_pending_without_verifications(self) -> None:
        result = replace_citations(SCENARIO_INPUT, show_verification_status=True)
        assert result == "Revenue grew 45%⌛ last year."

    def test_each_citation_gets_its_own_status(self) -> None:
        """Citations on one attachment are matched by content, not position."""
        verifications = {
            generate_citation_key(_citation("Gamma", 3)): {"status": "not_found"},
            generate_citation_key(_citation("Alpha", 1)): {"status": "found"},
            generate_citation_key(_citation("Beta", 2)): {"status": "found_on_other_page"},
        }
        result = replace_citations(
            THREE_CITATIONS,
            verifications=verifications,
            leave_anchor_text_behind=True,
            show_verification_status=True,
        )
        assert result == "AlphaAlpha☑ BetaBeta✅ GammaGamma❌"

    def test_status_after_anchor_text(self) -> None:
        verifications = {generate_citation_key(_citation("Alpha", 1)): {"status": "found"}}
        text = THREE_CITATIONS.split(" Beta")[0]
        result = replace_citations(
            text, verifications=verifications, leave_anchor_text_behind=True, show_verification_status=True
        )
        assert result == "AlphaAlpha☑"

    def test_ordinal_keys_still_honored(self) -> None:
        verifications = {"1": {"status": "found"}, "3": {"status": "not_found"}}
        result = replace_citations(THREE_CITATIONS, verifications=verifications, show_verification_status=True)
        assert result == "Alpha☑ Beta⌛ Gamma❌"

    def test_content_key_wins_over_ordinal(self) -> None:
        verifications = {
            "1": {"status": "not_found"},
            generate_citation_key(_citation("Alpha", 1)): {"status": "found"},
        }
        result = replace_citations(THREE_CITATIONS, verifications=verifications, show_verification_status=True)
        assert result.startswith("Alpha☑")

    def test_statuses_hidden_unless_requested(self) -> None:
        verifications = {generate_citation_key(_citation("Alpha", 1)): {"status": "found"}}
        assert replace_citations(THREE_CITATIONS, verifications=verifications) == "Alpha Beta Gamma"

    def test_input_normalized_first(self) -> None:
        text = "Claim<cite fileId='a' fullPhrase='x' keySpan='Claim'>Inner</cite> end"
        assert replace_citations(text, leave_anchor_text_behind=True) == "ClaimInnerClaim end"

    def test_unparseable_marker_removed(self) -> None:
        assert replace_citations("Broken <cite />") == "Broken "

    def test_tag_inside_phrase_removed_with_marker(self) -> None:
        text = "A<cite attachment_id='a' full_phrase='use &lt;br/&gt; tags' anchor_text='br' line_ids='1' /> B"
        assert replace_citations(text) == "A B"
        assert replace_citations(text, leave_anchor_text_behind=True) == "Abr B"

    def test_malformed_verification_is_pending(self) -> None:
        verifications = {"1": {"status": "found", "page": "n/a"}}
        result = replace_citations(SCENARIO_INPUT, verifications=verifications, show_verification_status=True)
        assert result == "Revenue grew 45%⌛ last year."

    def test_empty_input(self) -> None:
        assert replace_citations("") == ""
        assert replace_citations(None) == ""

    @pytest.mark.parametrize(
        "text",
        ["<cite", "<cite attachment_id='", "cite cite cite />", "<cite <cite <cite />", "'''\"\"\"<>"],
    )
    def test_garbage_does_not_raise(self, text: str) -> None:
        assert isinstance(replace_citations(text, show_verification_status=True), str)


class TestExtractCitations:
    """Tests for extract_citations and parse_cite_tag."""

    def test_scenario_record(self) -> None:
        (extracted,) = extract_citations(SCENARIO_INPUT)
        citation = extracted.citation
        assert isinstance(citation, DocumentCitation)
        assert extracted.ordinal == 1
        assert citation.attachment_id == "abc123"
        assert citation.full_phrase == "Revenue grew 45%"
        assert citation.anchor_text == "Revenue Growth"
        assert citation.start_page_id == "page_1_index_0"
        assert citation.page_number == 1
        assert citation.line_ids == (1, 2, 3)
        assert extracted.anchor_text == "Revenue Growth"
        assert extracted.key == generate_citation_key(citation)

    def test_offsets_point_at_markers(self) -> None:
        extracted = extract_citations(THREE_CITATIONS)
        assert [e.ordinal for e in extracted] == [1, 2, 3]
        for item in extracted:
            assert THREE_CITATIONS[item.start:item.end].startswith("<cite")
            assert THREE_CITATIONS[item.start:item.end].endswith("/>")

    def test_unparseable_markers_keep_ordinals(self) -> None:
        extracted = extract_citations("A<cite /> B<cite attachment_id='a' full_phrase='x' />")
        assert [e.ordinal for e in extracted] == [2]

    def test_escaped_quotes_unescaped(self) -> None:
        citation = parse_cite_tag("<cite attachment_id='a' full_phrase='It\\'s \\\"quoted\\\"' />")
        assert citation.full_phrase == "It's \"quoted\""

    def test_audio_video_citation(self) -> None:
        citation = parse_cite_tag("<cite attachment_id='av' full_phrase='x' timestamps='00:01:00,00:02:00' />")
        assert isinstance(citation, AudioVideoCitation)
        assert citation.timestamps == ("00:01:00", "00:02:00")

    def test_url_citation(self) -> None:
        citation = parse_cite_tag(
            "<cite attachment_id='w' full_phrase='x' url='https://example.com/a' title='Example' />"
        )
        assert isinstance(citation, UrlCitation)
        assert citation.url == "https://example.com/a"
        assert citation.title == "Example"

    def test_tag_without_attributes(self) -> None:
        assert parse_cite_tag("<cite />") is None

    def test_empty_input(self) -> None:
        assert extract_citations(None) == []


class TestResolveCitations:
    """Tests for resolve_citations."""

    def test_pairs_markers_with_verifications(self) -> None:
        verifications = {generate_citation_key(_citation("Beta", 2)): {"status": "found", "page": 1}}
        resolved = resolve_citations(THREE_CITATIONS, verifications)
        assert [r.indicator for r in resolved] == ["⌛", "☑", "⌛"]
        assert resolved[1].verification.page == 1
        assert resolved[0].verification is None

    def test_malformed_verification_left_unresolved(self) -> None:
        verifications = {
            generate_citation_key(_citation("Alpha", 1)): {"status": "found", "page": "n/a"},
            generate_citation_key(_citation("Beta", 2)): {"status": "found"},
        }
        resolved = resolve_citations(THREE_CITATIONS, verifications)
        assert [r.indicator for r in resolved] == ["⌛", "☑", "⌛"]
        assert resolved[0].verification is None

    def test_tag_inside_phrase_extracted_whole(self) -> None:
        (extracted,) = extract_citations("<cite attachment_id='a' full_phrase='x <y/> z' line_ids='1' />")
        assert extracted.citation.full_phrase == "x <y/> z"
        assert extracted.citation.line_ids == (1,)


class TestGetAllCitations:
    """Tests for get_all_citations."""

    def test_from_text(self) -> None:
        citations = get_all_citations(THREE_CITATIONS)
        assert len(citations) == 3
        for key, citation in citations.items():
            assert key == generate_citation_key(citation)

    def test_duplicates_collapse(self) -> None:
        text = SCENARIO_INPUT + " Again" + SCENARIO_INPUT
        assert len(get_all_citations(text)) == 1

    def test_citations_without_phrase_skipped(self) -> None:
        assert get_all_citations("<cite attachment_id='a' anchor_text='x' />") == {}

    def test_from_json_object(self) -> None:
        data = {"fileId": "doc1", "fullPhrase": "Alpha phrase", "keySpan": "Alpha", "lineIds": [1],
                "startPageKey": "page_number_1_index_0"}
        citations = get_all_citations(data)
        assert list(citations) == [generate_citation_key(_citation("Alpha", 1))]

    def test_from_json_list(self) -> None:
        data = [
            {"attachment_id": "doc1", "full_phrase": "one"},
            {"attachment_id": "doc1", "full_phrase": "two"},
            {"unrelated": True},
        ]
        assert len(get_all_citations(data)) == 2

    def test_from_nested_json(self) -> None:
        data = {
            "answer": "Text<cite attachment_id='doc2' full_phrase='inline' />",
            "sections": [{"citations": [{"attachmentId": "doc1", "fullPhrase": "nested"}]}],
            "meta": {"citation": {"attachmentId": "doc3", "fullPhrase": "single"}},
        }
        phrases = sorted(c.full_phrase for c in get_all_citations(data).values())
        assert phrases == ["inline", "nested", "single"]

    def test_empty(self) -> None:
        assert get_all_citations(None) == {}
        assert get_all_citations("no markers") == {}


class TestGroupCitationsByAttachmentId:
    """Tests for group_citations_by_attachment_id."""

    def test_groups_keep_keys(self) -> None:
        citations = get_all_citations(THREE_CITATIONS + SCENARIO_INPUT)
        grouped = group_citations_by_attachment_id(citations)
        assert set(grouped) == {"doc1", "abc123"}
        assert len(grouped["doc1"]) == 3
        for key, citation in grouped["abc123"].items():
            assert citations[key] is citation

    def test_missing_attachment_grouped_under_empty_string(self) -> None:
        grouped = group_citations_by_attachment_id([{"fullPhrase": "x"}])
        assert list(grouped) == [""]

    def test_sequence_keyed_by_citation_key(self) -> None:
        citation = _citation("Alpha", 1)
        grouped = group_citations_by_attachment_id([citation])
        assert grouped == {"doc1": {generate_citation_key(citation): citation}}


class TestMetadataHelpers:
    """Tests for the text cleanup helpers."""

    def test_remove_page_number_metadata(self) -> None:
        text = "<page_number_1_index_0>Hello</page_number_1_index_0>"
        assert remove_page_number_metadata(text) == "Hello"

    def test_remove_line_id_metadata(self) -> None:
        assert remove_line_id_metadata('<line id="4">Hello</line> world') == "Hello world"

    @pytest.mark.parametrize(
        ("page_id", "expected"),
        [
            ("page_number_3_index_0", 3),
            ("page_1_index_0", 1),
            ("page12", 12),
            ("7", 7),
            ("no digits", None),
            (None, None),
        ],
    )
    def test_get_citation_page_number(self, page_id: str | None, expected: int | None) -> None:
        assert get_citation_page_number(page_id) == expected
