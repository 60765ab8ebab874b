"""HTTP byte-range selection.

Parses a ``Range`` request header against the authoritative object length
and decides what the response should contain:

- no header, or one we cannot parse: the full body (200)
- more than one satisfiable range: the full body (200), since
  ``multipart/byteranges`` responses are not produced
- nothing satisfiable: 416 with ``Content-Range: bytes */{total}``
- exactly one range: 206 with that slice
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

_RANGE_HEADER = re.compile(r"bytes=([^;]+)")
_SPEC_SPLIT = re.compile(r",\s*")


@dataclass(frozen=True)
class ByteRange:
    """Inclusive, zero-indexed byte range."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid byte range {self.start}-{self.end}")

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total_length: int) -> str:
        """Value for the Content-Range header of a 206 response."""
        return f"bytes {self.start}-{self.end}/{total_length}"


class RangeKind(str, Enum):
    FULL = "full"
    SATISFIABLE = "satisfiable"
    UNSATISFIABLE = "unsatisfiable"
    MULTI_UNSUPPORTED = "multi_unsupported"


@dataclass(frozen=True)
class RangeSelection:
    kind: RangeKind
    byte_range: ByteRange | None = None

    @property
    def serves_full_body(self) -> bool:
        return self.kind in (RangeKind.FULL, RangeKind.MULTI_UNSUPPORTED)


def _to_int(value: str) -> int | None:
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        return None
    return int(value)


def parse_byte_ranges(header: str | None, total_length: int) -> list[ByteRange] | None:
    """Resolve a Range header into concrete byte ranges.

    Args:
        header: Raw ``Range`` header value
        total_length: Current size of the object in bytes

    Returns:
        None if the header is absent or syntactically invalid, an empty list
        if no requested range overlaps the object, otherwise the ranges with
        their ends clamped to ``total_length - 1``.
    """
    if not header:
        return None
    match = _RANGE_HEADER.search(header)
    if match is None:
        return None

    ranges: list[ByteRange] = []
    for spec in _SPEC_SPLIT.split(match.group(1).strip()):
        if "-" not in spec:
            return None
        first, _, last = spec.partition("-")

        if not first.strip():
            # Suffix range: the last N bytes
            suffix = _to_int(last)
            if suffix is None:
                return None
            start = max(total_length - suffix, 0)
            end = total_length - 1
        else:
            start = _to_int(first)
            if start is None:
                return None
            if not last.strip():
                end = total_length - 1
            else:
                end = _to_int(last)
                if end is None or end < start:
                    return None
                end = min(end, total_length - 1)

        if start <= end:
            ranges.append(ByteRange(start, end))

    # Overlapping ranges that add up to more than the object are refused
    if sum(r.size for r in ranges) > total_length:
        return []
    return ranges


def select_range(header: str | None, total_length: int) -> RangeSelection:
    """Decide how to answer a request carrying ``header``."""
    ranges = parse_byte_ranges(header, total_length)
    if ranges is None:
        return RangeSelection(RangeKind.FULL)
    if not ranges:
        return RangeSelection(RangeKind.UNSATISFIABLE)
    if len(ranges) > 1:
        return RangeSelection(RangeKind.MULTI_UNSUPPORTED)
    return RangeSelection(RangeKind.SATISFIABLE, ranges[0])


def unsatisfiable_content_range(total_length: int) -> str:
    """Value for the Content-Range header of a 416 response."""
    return f"bytes */{total_length}"
