"""Merge near-duplicate strings into a single template."""

from __future__ import annotations

from collections.abc import Sequence

from ..errors import EmptyInputError
from .anchors import anchor_ranges, intersect_offsets, unchanged_offsets, varying_ranges
from .segments import diff_segmented
from .variants import compose, extract_variants


def merge_strings(strings: Sequence[str]) -> str:
    """
    Merge strings that differ only in places into one human-readable template.

    Text shared by every string is kept verbatim (taken from the first string),
    and each place where the strings differ becomes a sorted set of the
    distinct alternatives, e.g. ``["Error on host-1", "Error on host-2"]``
    becomes ``"Error on {host-1, host-2}"``.

    Raises:
        EmptyInputError: if ``strings`` is empty.
        DiffCoverageError: if a diff fails to account for the whole reference string.
    """
    if not strings:
        raise EmptyInputError("No strings to merge.")
    reference = strings[0]
    if all(text == reference for text in strings[1:]):
        return reference

    # The reference is diffed against itself too, so it needs no special casing below.
    diffs = [diff_segmented(reference, text) for text in strings]
    length = len(reference)
    anchors = intersect_offsets(unchanged_offsets(edits, length) for edits in diffs)
    anchor_spans = anchor_ranges(anchors, length)
    varying_spans = varying_ranges(anchor_spans, length)
    if not varying_spans:
        return reference
    variant_lists = [extract_variants(edits, varying_spans) for edits in diffs]
    return compose(reference, anchor_spans, varying_spans, variant_lists)
