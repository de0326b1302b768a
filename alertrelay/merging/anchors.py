"""Anchor detection and range partitioning over a reference string."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..errors import DiffCoverageError
from .segments import Edit, EditKind


@dataclass(frozen=True)
class OffsetRange:
    """Half-open interval ``[start, end)`` of reference string offsets."""

    start: int
    end: int

    def slice(self, text: str) -> str:
        return text[self.start : self.end]


def unchanged_offsets(edits: Sequence[Edit], reference_length: int) -> set[int]:
    """Return the reference offsets an edit script leaves untouched."""
    unchanged: set[int] = set()
    cursor = 0
    for edit in edits:
        if edit.kind is EditKind.ADDED:
            continue
        for _ in edit.value:
            if edit.kind is EditKind.UNCHANGED:
                unchanged.add(cursor)
            cursor += 1
    if cursor != reference_length:
        raise DiffCoverageError(cursor, reference_length)
    return unchanged


def intersect_offsets(offset_sets: Iterable[set[int]]) -> set[int]:
    common: set[int] | None = None
    for offsets in offset_sets:
        common = set(offsets) if common is None else common & offsets
    return common if common is not None else set()


def anchor_ranges(anchors: set[int], reference_length: int) -> list[OffsetRange]:
    ranges: list[OffsetRange] = []
    range_start: int | None = None
    # One past the end so a range touching the last character gets closed.
    for offset in range(reference_length + 1):
        if offset in anchors and range_start is None:
            range_start = offset
        elif offset not in anchors and range_start is not None:
            ranges.append(OffsetRange(range_start, offset))
            range_start = None
    return ranges


def varying_ranges(anchors: Sequence[OffsetRange], reference_length: int) -> list[OffsetRange]:
    """Return the gaps between anchor ranges, including gaps at either end of the string."""
    if not anchors:
        return [OffsetRange(0, reference_length)]
    bounded = [OffsetRange(-1, 0), *anchors, OffsetRange(reference_length, reference_length + 1)]
    ranges: list[OffsetRange] = []
    for left, right in zip(bounded, bounded[1:]):
        if left.end != right.start:
            ranges.append(OffsetRange(left.end, right.start))
    return ranges
