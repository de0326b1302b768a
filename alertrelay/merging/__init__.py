"""Multi-string alignment and merging."""

from .core import merge_strings
from .segments import Edit, EditKind, diff_segmented, diff_tokens, segment_string

__all__ = ["merge_strings", "Edit", "EditKind", "diff_segmented", "diff_tokens", "segment_string"]
