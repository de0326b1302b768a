"""Variant extraction for varying ranges and template composition."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..errors import VariantCountError
from .anchors import OffsetRange
from .segments import Edit, EditKind


@dataclass(frozen=True)
class CharacterEntry:
    offset: int
    char: str
    inserted: bool


def character_entries(edits: Sequence[Edit]) -> list[CharacterEntry]:
    """
    Flatten an edit script into the characters of the candidate string.

    Each character is tagged with the reference offset it sits at. Inserted
    characters share the offset of the reference position they precede.
    """
    entries: list[CharacterEntry] = []
    cursor = 0
    for edit in edits:
        if edit.kind is EditKind.ADDED:
            entries.extend(CharacterEntry(cursor, char, True) for char in edit.value)
            continue
        for char in edit.value:
            if edit.kind is EditKind.UNCHANGED:
                entries.append(CharacterEntry(cursor, char, False))
            cursor += 1
    return entries


def extract_variants(edits: Sequence[Edit], ranges: Sequence[OffsetRange]) -> list[str]:
    """Return the text one candidate string contributes to each varying range."""
    entries = character_entries(edits)
    variants: list[str] = []
    for span in ranges:
        # Inclusive of span.end so insertions right before the next anchor are kept.
        chars = [
            entry.char
            for entry in entries
            if span.start <= entry.offset < span.end or (entry.offset == span.end and entry.inserted)
        ]
        variants.append("".join(chars))
    return variants


def render_variants(variants: Iterable[str]) -> str:
    return "{" + ", ".join(sorted(set(variants))) + "}"


def compose(
    reference: str,
    anchors: Sequence[OffsetRange],
    varying: Sequence[OffsetRange],
    variant_lists: Sequence[Sequence[str]],
) -> str:
    """Interleave verbatim anchor text with rendered variant sets."""
    for variants in variant_lists:
        if len(variants) != len(varying):
            raise VariantCountError(len(variants), len(varying))
    parts: list[str] = []
    anchor_idx = 0
    varying_idx = 0
    on_varying = bool(varying) and varying[0].start == 0
    while anchor_idx < len(anchors) or varying_idx < len(varying):
        if on_varying and varying_idx < len(varying):
            parts.append(render_variants(variants[varying_idx] for variants in variant_lists))
            varying_idx += 1
        elif anchor_idx < len(anchors):
            parts.append(anchors[anchor_idx].slice(reference))
            anchor_idx += 1
        else:
            break
        on_varying = not on_varying
    return "".join(parts)
