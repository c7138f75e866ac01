"""Revision descriptors: which point in a project's history to watch."""

from __future__ import annotations

import dataclasses
import enum
import re

from .errors import InvalidRevisionDescriptorError

_COMMIT_PATTERN = re.compile(r"[0-9a-fA-F]{4,64}")


class RevisionKind(enum.StrEnum):
    """Mutually exclusive ways of pinning a revision."""

    BRANCH = "branch"
    COMMIT = "commit"
    REVISION_NUMBER = "revision_number"
    TAG = "tag"

    @classmethod
    def parse(cls, text: str) -> RevisionKind:
        """Parse a stored or user-supplied kind spelling.

        Accepts the enum values plus the short ``revnum`` spelling used by
        the ``versions.revision_kind`` column.

        Raises
        ------
        InvalidRevisionDescriptorError
            If ``text`` does not name a revision kind.

        """
        normalized = text.strip().lower()
        if normalized == "revnum":
            return cls.REVISION_NUMBER
        try:
            return cls(normalized)
        except ValueError as exc:
            raise InvalidRevisionDescriptorError.unknown_kind(text) from exc

    @property
    def storage_name(self) -> str:
        """Return the spelling persisted in ``versions.revision_kind``."""
        if self is RevisionKind.REVISION_NUMBER:
            return "revnum"
        return self.value


def _normalize_value(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclasses.dataclass(frozen=True, slots=True)
class RevisionDescriptor:
    """Immutable description of the revision a target tracks.

    ``value`` may only be absent for branch descriptors, where it means the
    repository's default branch (or trunk). Empty strings are treated as
    absent.
    """

    anchor_id: str
    kind: RevisionKind
    value: str | None = None

    def __post_init__(self) -> None:
        """Normalize ``value`` and enforce the per-kind invariants."""
        value = _normalize_value(self.value)
        object.__setattr__(self, "value", value)

        if value is None:
            if self.kind is not RevisionKind.BRANCH:
                raise InvalidRevisionDescriptorError.missing_value(self.kind.value)
            return

        if self.kind is RevisionKind.REVISION_NUMBER and (
            not value.isdigit() or int(value) < 1
        ):
            raise InvalidRevisionDescriptorError.invalid_revision_number(value)
        if self.kind is RevisionKind.COMMIT and not _COMMIT_PATTERN.fullmatch(value):
            raise InvalidRevisionDescriptorError.invalid_commit(value)

    @classmethod
    def branch(cls, anchor_id: str, name: str | None = None) -> RevisionDescriptor:
        """Track a named branch, or the default branch when ``name`` is None."""
        return cls(anchor_id, RevisionKind.BRANCH, name)

    @classmethod
    def commit(cls, anchor_id: str, sha: str) -> RevisionDescriptor:
        """Track a fixed commit."""
        return cls(anchor_id, RevisionKind.COMMIT, sha)

    @classmethod
    def revision_number(cls, anchor_id: str, number: int | str) -> RevisionDescriptor:
        """Track a numbered revision (Subversion)."""
        return cls(anchor_id, RevisionKind.REVISION_NUMBER, str(number))

    @classmethod
    def tag(cls, anchor_id: str, name: str) -> RevisionDescriptor:
        """Track a tag."""
        return cls(anchor_id, RevisionKind.TAG, name)

    @classmethod
    def from_storage(
        cls, anchor_id: str, kind_text: str, value: str | None
    ) -> RevisionDescriptor:
        """Build a descriptor from persisted ``revision_kind``/``value`` columns."""
        return cls(anchor_id, RevisionKind.parse(kind_text), value)

    @property
    def is_default_branch(self) -> bool:
        """Return True when the descriptor points at the default branch/trunk."""
        return self.kind is RevisionKind.BRANCH and self.value is None

    def describe(self) -> str:
        """Return a short human-readable form such as ``tag:v2.0``."""
        if self.value is None:
            return f"{self.kind.value}:<default>"
        return f"{self.kind.value}:{self.value}"
