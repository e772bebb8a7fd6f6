"""Line id and timestamp range handling.

Generated markup writes line references in many shapes: ``'3-7'``,
``'[1,2,3]'``, ``'line1,line2'``, ``'1-3,7,9-11'``. Everything here turns
those into plain comma-separated integers.
"""

import re
from collections.abc import Callable, Iterable
from typing import Any

DEFAULT_MAX_RANGE_SIZE = 1000
DEFAULT_RANGE_SAMPLE_COUNT = 50

RANGE_PATTERN = re.compile(r"(\d+)\s*-\s*(\d+)")
# Labels, brackets and whitespace around the numbers
DECORATION_PATTERN = re.compile(r"[A-Za-z_\[\](){}\s]")
# Values made only of numbers, separators and decoration
RANGE_VALUE_PATTERN = re.compile(r"^[\[\](){}A-Za-z0-9_\-,\s]*$")
REPEATED_COMMAS = re.compile(r",{2,}")

WarningHook = Callable[[str], None]


def sample_range(start: int, end: int, sample_count: int = DEFAULT_RANGE_SAMPLE_COUNT) -> list[int]:
    """Pick ``sample_count`` values spread across ``start..end``, both ends included."""
    step = max((end - start) // (sample_count - 1), 1)
    samples = [start + i * step for i in range(sample_count - 1)]
    samples = [value for value in samples if value < end]
    samples.append(end)
    return samples


def expand_ranges(
    value: str,
    *,
    max_range_size: int = DEFAULT_MAX_RANGE_SIZE,
    sample_count: int = DEFAULT_RANGE_SAMPLE_COUNT,
    on_warning: WarningHook | None = None,
) -> str:
    """Strip decoration and expand ``a-b`` ranges into explicit lists.

    ``'1-3,7'`` becomes ``'1,2,3,7'``. A descending range keeps only its
    start value, so ``'10-5'`` becomes ``'10'``. Ranges wider than
    ``max_range_size`` are sampled down to ``sample_count`` values.
    """

    def expand(match: re.Match[str]) -> str:
        start, end = int(match.group(1)), int(match.group(2))
        if end < start:
            if on_warning:
                on_warning(f"Descending range {start}-{end} collapsed to {start}")
            return str(start)
        if end - start + 1 > max_range_size:
            if on_warning:
                on_warning(f"Range {start}-{end} exceeds {max_range_size} values, sampling {sample_count}")
            return ",".join(str(n) for n in sample_range(start, end, sample_count))
        return ",".join(str(n) for n in range(start, end + 1))

    cleaned = DECORATION_PATTERN.sub("", value)
    expanded = RANGE_PATTERN.sub(expand, cleaned)
    return REPEATED_COMMAS.sub(",", expanded).strip(",")


def is_range_value(value: str) -> bool:
    """Whether ``value`` looks like a line id list rather than free text."""
    return bool(RANGE_VALUE_PATTERN.match(value))


def parse_line_ids(value: Any) -> tuple[int, ...]:
    """Parse line ids from markup text or a sequence into sorted unique integers."""
    if value is None:
        return ()
    if isinstance(value, int):
        return (value,)
    if isinstance(value, str):
        if not is_range_value(value):
            return ()
        parts: Iterable[Any] = expand_ranges(value).split(",")
    else:
        parts = value

    line_ids: set[int] = set()
    for part in parts:
        if isinstance(part, int):
            line_ids.add(part)
        elif isinstance(part, str) and part.strip().isdigit():
            line_ids.add(int(part))
    return tuple(sorted(line_ids))


def parse_timestamps(value: Any) -> tuple[str, ...]:
    """Parse timestamps into an ordered tuple of strings.

    Accepts ``'00:01,00:05'``, a sequence, or a ``{startTime, endTime}`` mapping.
    """
    if value is None:
        return ()
    if isinstance(value, dict):
        bounds = (
            value.get("startTime", value.get("start_time")),
            value.get("endTime", value.get("end_time")),
        )
        return tuple(str(b) for b in bounds if b is not None)
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(str(part) for part in value)
