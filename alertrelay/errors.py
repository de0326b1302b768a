"""Exception hierarchy for alertrelay."""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for all alertrelay errors."""


class MergeError(RelayError):
    """Raised when summary strings cannot be merged into a template."""


class EmptyInputError(MergeError, ValueError):
    """Raised when merging is requested for zero strings."""


class DiffCoverageError(MergeError, RuntimeError):
    """Raised when an edit script does not cover every character of the reference string.

    This points at a defect in the tokenizer or differ, not at bad input.
    """

    def __init__(self, covered: int, expected: int) -> None:
        self.covered: int = covered
        self.expected: int = expected
        super().__init__(f"Diff covered {covered} of {expected} reference characters.")


class VariantCountError(MergeError, RuntimeError):
    """Raised when a string produced a different number of variants than there are varying ranges."""

    def __init__(self, found: int, expected: int) -> None:
        self.found: int = found
        self.expected: int = expected
        super().__init__(f"Expected {expected} variant(s) per string, found {found}.")


class ConfigError(RelayError, ValueError):
    """Raised when the environment configuration is missing or invalid."""


class MatrixError(RelayError):
    """Raised when the Matrix homeserver rejects a request."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code: int = status_code
        self.detail: str = detail
        super().__init__(f"Matrix API error {status_code}: {detail}")
