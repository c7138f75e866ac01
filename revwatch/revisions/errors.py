"""Errors raised while building revision descriptors."""

from __future__ import annotations


class InvalidRevisionDescriptorError(ValueError):
    """Raised when a revision descriptor violates its construction rules."""

    def __init__(self, message: str, *, kind: str | None = None) -> None:
        """Record the offending descriptor kind for diagnostics."""
        self.kind = kind
        super().__init__(message)

    @classmethod
    def missing_value(cls, kind: str) -> InvalidRevisionDescriptorError:
        """Return an error for a non-branch descriptor without a value."""
        return cls(f"{kind} descriptors require a value", kind=kind)

    @classmethod
    def unknown_kind(cls, text: str) -> InvalidRevisionDescriptorError:
        """Return an error for an unrecognised descriptor kind spelling."""
        return cls(f"unknown revision kind: {text!r}")

    @classmethod
    def invalid_revision_number(cls, value: str) -> InvalidRevisionDescriptorError:
        """Return an error for a revision number that is not a positive int."""
        return cls(
            f"revision numbers must be positive integers, got: {value!r}",
            kind="revision_number",
        )

    @classmethod
    def invalid_commit(cls, value: str) -> InvalidRevisionDescriptorError:
        """Return an error for a commit value that is not a hex object name."""
        return cls(
            f"commit values must be 4-64 hexadecimal characters, got: {value!r}",
            kind="commit",
        )
