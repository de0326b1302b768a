"""Alertmanager to Matrix relay."""

from .merging import merge_strings

__all__ = ["merge_strings"]
