"""Token segmentation and token-level diffs."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

_SEGMENT_RE = re.compile(r"[A-Za-z0-9-]+|[^A-Za-z0-9-]+")


class EditKind(Enum):
    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class Edit:
    kind: EditKind
    value: str

    @property
    def added(self) -> bool:
        return self.kind is EditKind.ADDED

    @property
    def removed(self) -> bool:
        return self.kind is EditKind.REMOVED


def segment_string(text: str) -> list[str]:
    """Split text into alternating runs of word characters and separators."""
    return _SEGMENT_RE.findall(text)


def diff_tokens(reference: Sequence[str], candidate: Sequence[str]) -> list[Edit]:
    """
    Compute a shortest edit script turning ``reference`` into ``candidate``.

    Consecutive tokens of the same kind are joined into a single edit. Inside a
    changed region the removed run always precedes the added run.
    """
    steps = _backtrack(reference, candidate, _shortest_edit_trace(reference, candidate))
    edits: list[Edit] = []
    removed: list[str] = []
    added: list[str] = []
    unchanged: list[str] = []

    def flush_changes() -> None:
        if removed:
            edits.append(Edit(EditKind.REMOVED, "".join(removed)))
            removed.clear()
        if added:
            edits.append(Edit(EditKind.ADDED, "".join(added)))
            added.clear()

    for kind, token in steps:
        if kind is EditKind.UNCHANGED:
            flush_changes()
            unchanged.append(token)
            continue
        if unchanged:
            edits.append(Edit(EditKind.UNCHANGED, "".join(unchanged)))
            unchanged.clear()
        if kind is EditKind.REMOVED:
            removed.append(token)
        else:
            added.append(token)
    flush_changes()
    if unchanged:
        edits.append(Edit(EditKind.UNCHANGED, "".join(unchanged)))
    return edits


def diff_segmented(reference: str, candidate: str) -> list[Edit]:
    return diff_tokens(segment_string(reference), segment_string(candidate))


def _shortest_edit_trace(a: Sequence[str], b: Sequence[str]) -> list[dict[int, int]]:
    # Frontier of the furthest x reached on each diagonal k = x - y, one snapshot per edit distance.
    n, m = len(a), len(b)
    frontier: dict[int, int] = {1: 0}
    trace: list[dict[int, int]] = []
    for depth in range(n + m + 1):
        trace.append(dict(frontier))
        for k in range(-depth, depth + 1, 2):
            if k == -depth or (k != depth and frontier[k - 1] < frontier[k + 1]):
                x = frontier[k + 1]
            else:
                x = frontier[k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            frontier[k] = x
            if x >= n and y >= m:
                return trace
    return trace


def _backtrack(
    a: Sequence[str],
    b: Sequence[str],
    trace: list[dict[int, int]],
) -> list[tuple[EditKind, str]]:
    x, y = len(a), len(b)
    steps: list[tuple[EditKind, str]] = []
    for depth in range(len(trace) - 1, -1, -1):
        frontier = trace[depth]
        k = x - y
        if k == -depth or (k != depth and frontier.get(k - 1, -1) < frontier.get(k + 1, -1)):
            prev_k = k + 1
        else:
            prev_k = k - 1
        prev_x = frontier.get(prev_k, 0)
        prev_y = prev_x - prev_k
        while x > prev_x and y > prev_y:
            steps.append((EditKind.UNCHANGED, a[x - 1]))
            x -= 1
            y -= 1
        if depth > 0:
            if x == prev_x:
                steps.append((EditKind.ADDED, b[prev_y]))
            else:
                steps.append((EditKind.REMOVED, a[prev_x]))
        x, y = prev_x, prev_y
    steps.reverse()
    return steps
