"""Unit tests for line id and timestamp range handling."""

from deep_citation.services.citation.ranges import (
    expand_ranges,
    is_range_value,
    parse_line_ids,
    parse_timestamps,
    sample_range,
)


class TestExpandRanges:
    """Tests for expand_ranges."""

    def test_ascending_range(self) -> None:
        assert expand_ranges("3-7") == "3,4,5,6,7"

    def test_single_value(self) -> None:
        assert expand_ranges("42") == "42"

    def test_list_unchanged(self) -> None:
        assert expand_ranges("1,2,5,8") == "1,2,5,8"

    def test_mixed_ranges_and_values(self) -> None:
        assert expand_ranges("1-3,7,9-11") == "1,2,3,7,9,10,11"

    def test_descending_range_keeps_start(self) -> None:
        """A descending range collapses to its start value."""
        assert expand_ranges("10-5") == "10"

    def test_descending_range_reports_warning(self) -> None:
        seen: list[str] = []
        expand_ranges("10-5", on_warning=seen.append)
        assert len(seen) == 1
        assert "10-5" in seen[0]

    def test_brackets_removed(self) -> None:
        assert expand_ranges("[1,2,3]") == "1,2,3"

    def test_line_labels_removed(self) -> None:
        assert expand_ranges("line1,line2,line3") == "1,2,3"

    def test_spaces_removed(self) -> None:
        assert expand_ranges("1, 2, 3") == "1,2,3"

    def test_stray_commas_collapsed(self) -> None:
        assert expand_ranges(",1,,2,") == "1,2"

    def test_oversized_range_is_sampled(self) -> None:
        """Ranges wider than the limit are sampled, keeping both ends."""
        seen: list[str] = []
        values = expand_ranges("1-5000", on_warning=seen.append).split(",")
        assert len(values) == 50
        assert values[0] == "1"
        assert values[-1] == "5000"
        assert seen

    def test_custom_limits(self) -> None:
        values = expand_ranges("1-20", max_range_size=10, sample_count=5).split(",")
        assert len(values) == 5
        assert values[0] == "1"
        assert values[-1] == "20"


class TestSampleRange:
    """Tests for sample_range."""

    def test_sorted_and_unique(self) -> None:
        samples = sample_range(100, 2000, 50)
        assert samples == sorted(set(samples))
        assert samples[0] == 100
        assert samples[-1] == 2000


class TestIsRangeValue:
    """Tests for recognizing line id values."""

    def test_numeric_lists(self) -> None:
        assert is_range_value("1-3,7") is True
        assert is_range_value("[1, 2]") is True

    def test_clock_timestamps_are_not_ranges(self) -> None:
        assert is_range_value("00:01:00-00:01:30") is False


class TestParseLineIds:
    """Tests for parse_line_ids."""

    def test_string_is_sorted_and_deduplicated(self) -> None:
        assert parse_line_ids("3,1,2,2") == (1, 2, 3)

    def test_range_string(self) -> None:
        assert parse_line_ids("1-3") == (1, 2, 3)

    def test_sequence(self) -> None:
        assert parse_line_ids([3, "1"]) == (1, 3)

    def test_empty_inputs(self) -> None:
        assert parse_line_ids(None) == ()
        assert parse_line_ids("") == ()
        assert parse_line_ids([]) == ()

    def test_free_text_is_ignored(self) -> None:
        assert parse_line_ids("see: above") == ()


class TestParseTimestamps:
    """Tests for parse_timestamps."""

    def test_comma_separated(self) -> None:
        assert parse_timestamps("00:01, 00:05") == ("00:01", "00:05")

    def test_start_end_mapping(self) -> None:
        assert parse_timestamps({"startTime": "00:01", "endTime": "00:05"}) == ("00:01", "00:05")

    def test_sequence_keeps_order(self) -> None:
        assert parse_timestamps(["30", "10"]) == ("30", "10")
